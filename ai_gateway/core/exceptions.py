"""Gateway error taxonomy.

Every error surfaced to callers derives from GatewayError. The class-level
``retryable`` flag drives the retry executor; ``code`` is a stable string
used in API error bodies and metrics labels.
"""

from __future__ import annotations

REDACTION_MARKER = "[REDACTED]"


class GatewayError(Exception):
    """Base class for all gateway errors."""

    code: str = "gateway_error"
    retryable: bool = True

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        status_code: int | None = None,
        error_type: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status_code = status_code
        self.error_type = error_type

    def __str__(self) -> str:
        return self.message


class ConfigurationError(GatewayError):
    code = "configuration_error"
    retryable = False


class InvalidMessageError(GatewayError):
    code = "invalid_message"
    retryable = False


class InvalidRequestError(GatewayError):
    code = "invalid_request"
    retryable = False


class AuthenticationError(GatewayError):
    code = "authentication_error"
    retryable = False


class ProviderPermissionError(GatewayError):
    """HTTP 403 from a backend."""

    code = "permission_error"
    retryable = False


class RateLimitError(GatewayError):
    code = "rate_limit_error"
    retryable = True

    def __init__(self, message: str, *, retry_after: float | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class ServerError(GatewayError):
    code = "server_error"
    retryable = True


class APIError(GatewayError):
    """Non-2xx status with no dedicated mapping."""

    code = "api_error"
    retryable = True


class NetworkError(GatewayError):
    """Transport failure or timeout."""

    code = "network_error"
    retryable = True


class InvalidResponseFormatError(GatewayError):
    code = "invalid_response_format"
    retryable = False


class MalformedResultError(InvalidResponseFormatError):
    """A successful call returned a result missing content, tokens, model or provider."""

    code = "malformed_result"
    retryable = True


class ProviderNotFoundError(GatewayError):
    code = "provider_not_found"
    retryable = False


class NoProvidersAvailableError(GatewayError):
    code = "no_providers_available"
    retryable = False


class MaxRetriesExceededError(GatewayError):
    code = "max_retries_exceeded"
    retryable = False

    def __init__(self, original_error: BaseException, attempts: int, **kwargs):
        super().__init__(f"Max retries exceeded after {attempts} attempts: {original_error}", **kwargs)
        self.original_error = original_error
        self.attempts = attempts


def is_non_retryable(error: BaseException) -> bool:
    """Return True when retrying ``error`` cannot succeed.

    Validation and format errors are never retried, nor are 4xx responses
    other than 429. Unknown exceptions are treated as transient.
    """
    status = getattr(error, "status_code", None)
    if isinstance(status, int) and 400 <= status < 500 and status != 429:
        return True
    if isinstance(error, GatewayError):
        return not error.retryable
    return False


def redact_secret(text: str, secret: str | None) -> str:
    """Replace every verbatim occurrence of ``secret`` in ``text``."""
    if not secret or not text:
        return text
    return text.replace(secret, REDACTION_MARKER)


def sanitize_error(error: BaseException, secret: str | None) -> BaseException:
    """Strip ``secret`` from an error message, keeping the error class.

    GatewayErrors are sanitized in place (including a wrapped
    ``original_error``). Foreign exceptions whose text contains the secret
    are converted to a NetworkError chained to the original.
    """
    if not secret:
        return error

    if isinstance(error, GatewayError):
        error.message = redact_secret(error.message, secret)
        error.args = (error.message,)
        original = getattr(error, "original_error", None)
        if original is not None:
            error.original_error = sanitize_error(original, secret)
        return error

    text = str(error)
    if secret not in text:
        return error
    sanitized = NetworkError(redact_secret(text, secret), error_type=type(error).__name__)
    sanitized.__cause__ = None
    return sanitized
