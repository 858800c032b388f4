"""Custom exceptions for the snapshot toolkit."""

from .types import SkipReason


class GibError(Exception):
    """Base exception for all toolkit errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class DataSourceError(GibError):
    """Raised when the RPC node or an off-chain host fails or returns invalid data."""

    def __init__(
        self,
        source: str,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
    ):
        full_message = f"[{source}] {message}"
        super().__init__(
            full_message,
            {
                "source": source,
                "endpoint": endpoint,
                "status_code": status_code,
            },
        )
        self.source = source
        self.endpoint = endpoint
        self.status_code = status_code


class RateLimitError(DataSourceError):
    """Raised when the RPC provider rate limit is hit."""

    def __init__(
        self,
        source: str,
        retry_after_seconds: float | None = None,
        endpoint: str | None = None,
    ):
        message = "Rate limit exceeded"
        if retry_after_seconds:
            message += f", retry after {retry_after_seconds}s"
        super().__init__(source, message, endpoint=endpoint, status_code=429)
        self.retry_after_seconds = retry_after_seconds


class ConfigurationError(GibError):
    """Raised when configuration or an input file is invalid or missing."""

    def __init__(self, config_key: str, message: str):
        full_message = f"Configuration error [{config_key}]: {message}"
        super().__init__(full_message, {"config_key": config_key})
        self.config_key = config_key


class TokenSkipped(GibError):
    """Raised when a single token cannot be processed and must be skipped."""

    def __init__(self, token: str, reason: SkipReason, message: str | None = None):
        full_message = f"{token}: {message or reason.display_name}"
        super().__init__(full_message, {"token": token, "reason": reason.value})
        self.token = token
        self.reason = reason
