"""AI Provider Gateway: one chat-completion API over several AI backends."""

__version__ = "1.0.0"
