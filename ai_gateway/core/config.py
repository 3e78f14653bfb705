from pydantic_settings import BaseSettings, SettingsConfigDict

from ai_gateway.gateway.types import GatewayConfig


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # OpenAI
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    openai_base_url: str = ""  # empty = https://api.openai.com/v1

    # Anthropic
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3.7-sonnet"
    anthropic_base_url: str = ""

    # Google
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash"
    google_base_url: str = ""

    # Gateway behaviour
    default_provider: str = "openai"
    fallback_enabled: bool = True
    max_retries: int = 3
    retry_base_delay_ms: int = 1000
    retry_max_delay_ms: int = 60_000
    retry_jitter: bool = False
    cache_enabled: bool = True
    cache_ttl_ms: int = 3_600_000  # 1 hour
    cache_max_entries: int = 1000
    request_timeout_ms: int = 30_000
    health_check_interval_ms: int = 300_000  # 0 disables the background health-check loop

    # PostgreSQL
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "gateway_user"
    postgres_password: str = "changeme"
    postgres_db: str = "ai_gateway"

    @property
    def postgres_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def postgres_url_sync(self) -> str:
        """For Alembic migrations (sync driver)."""
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Conversation persistence: False keeps records in process memory
    persist_conversations: bool = False

    # App
    app_env: str = "development"
    app_debug: bool = True
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # CORS
    allowed_origins: str = "*"  # comma-separated

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable

    @property
    def configured_providers(self) -> list[str]:
        return [
            name
            for name, key in (
                ("openai", self.openai_api_key),
                ("anthropic", self.anthropic_api_key),
                ("google", self.google_api_key),
            )
            if key
        ]

    def gateway_config(self) -> GatewayConfig:
        """Build the validated orchestrator config. Raises ConfigurationError."""
        return GatewayConfig(
            default_provider=self.default_provider,
            fallback_enabled=self.fallback_enabled,
            max_retries=self.max_retries,
            base_delay_ms=self.retry_base_delay_ms,
            max_delay_ms=self.retry_max_delay_ms,
            retry_jitter=self.retry_jitter,
            cache_enabled=self.cache_enabled,
            cache_ttl_ms=self.cache_ttl_ms,
            cache_max_entries=self.cache_max_entries,
            health_check_interval_ms=self.health_check_interval_ms,
            request_timeout_ms=self.request_timeout_ms,
        )


settings = Settings()


def validate_settings_for_production() -> None:
    """Validate critical settings. Called on startup in non-test environments."""
    errors: list[str] = []

    providers = settings.configured_providers
    if not providers:
        errors.append("At least one of OPENAI_API_KEY, ANTHROPIC_API_KEY, GOOGLE_API_KEY must be set")
    elif settings.default_provider not in providers and not settings.fallback_enabled:
        errors.append(f"DEFAULT_PROVIDER '{settings.default_provider}' has no API key and fallback is disabled")

    if settings.app_env == "production":
        if settings.allowed_origins == "*":
            errors.append("ALLOWED_ORIGINS must not be '*' in production")
        if settings.app_debug:
            errors.append("APP_DEBUG must be false in production")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
