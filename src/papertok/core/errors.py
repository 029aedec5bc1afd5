"""Error types and user-facing error classes."""

import asyncio
from enum import Enum


class PaperTokError(Exception):
    """Base class for all PaperTok errors."""


# === arXiv feed errors ===


class ArxivError(PaperTokError):
    """Failure while fetching papers from arXiv."""


class InvalidQueryError(ArxivError):
    def __init__(self, message: str = "Select at least one research category") -> None:
        super().__init__(message)


class NetworkError(ArxivError):
    def __init__(self, message: str = "Network request failed") -> None:
        super().__init__(message)


class ParseError(ArxivError):
    def __init__(self, message: str = "Failed to parse arXiv response") -> None:
        super().__init__(message)


class RateLimitedError(ArxivError):
    def __init__(self, message: str = "arXiv API rate limit exceeded") -> None:
        super().__init__(message)


class HttpError(ArxivError):
    def __init__(self, status_code: int, message: str = "HTTP request failed") -> None:
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message


# === LLM provider errors ===


class LLMError(PaperTokError):
    """Failure while calling an LLM provider."""


class InvalidConfigurationError(LLMError):
    def __init__(self, message: str = "LLM provider is not configured") -> None:
        super().__init__(message)


class LLMNetworkError(LLMError):
    def __init__(self, message: str = "Network error") -> None:
        super().__init__(message)


class ApiError(LLMError):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"API error ({status_code}): {message}")
        self.status_code = status_code
        self.message = message


class InvalidResponseError(LLMError):
    def __init__(self, message: str = "Invalid response format") -> None:
        super().__init__(message)


class RateLimitExceededError(LLMError):
    def __init__(self, message: str = "Request rate limit exceeded") -> None:
        super().__init__(message)


class InsufficientBalanceError(LLMError):
    def __init__(self, message: str = "Insufficient account balance") -> None:
        super().__init__(message)


class AuthenticationFailedError(LLMError):
    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message)


class LLMTimeoutError(LLMError):
    def __init__(self, message: str = "Request timed out") -> None:
        super().__init__(message)


# === Boundary classification ===


class ErrorKind(str, Enum):
    NO_NETWORK = "no_network"
    BAD_CREDENTIALS = "bad_credentials"
    RATE_LIMITED = "rate_limited"
    PROVIDER_ERROR = "provider_error"
    MALFORMED_DATA = "malformed_data"
    NOT_CONFIGURED = "not_configured"
    CANCELLED = "cancelled"


_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.NO_NETWORK: "Network unavailable or request timed out. Check your connection and retry.",
    ErrorKind.BAD_CREDENTIALS: "Authentication failed or balance exhausted. Check your API key and account.",
    ErrorKind.RATE_LIMITED: "Rate limited. Wait a few seconds and try again.",
    ErrorKind.PROVIDER_ERROR: "The server returned an error. Try again later.",
    ErrorKind.MALFORMED_DATA: "Received malformed data. Retry the request.",
    ErrorKind.NOT_CONFIGURED: "Configuration missing. Select categories or configure an AI provider.",
    ErrorKind.CANCELLED: "Request cancelled.",
}


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception to the class of action the user should take."""
    if isinstance(exc, asyncio.CancelledError):
        return ErrorKind.CANCELLED
    if isinstance(exc, (NetworkError, LLMNetworkError, LLMTimeoutError)):
        return ErrorKind.NO_NETWORK
    if isinstance(exc, (AuthenticationFailedError, InsufficientBalanceError)):
        return ErrorKind.BAD_CREDENTIALS
    if isinstance(exc, (RateLimitedError, RateLimitExceededError)):
        return ErrorKind.RATE_LIMITED
    if isinstance(exc, (ParseError, InvalidResponseError)):
        return ErrorKind.MALFORMED_DATA
    if isinstance(exc, (InvalidQueryError, InvalidConfigurationError)):
        return ErrorKind.NOT_CONFIGURED
    return ErrorKind.PROVIDER_ERROR


def user_message(exc: BaseException) -> str:
    """Actionable message for an exception."""
    kind = classify_error(exc)
    detail = str(exc)
    if kind == ErrorKind.PROVIDER_ERROR and detail:
        return f"{_MESSAGES[kind]} ({detail})"
    return _MESSAGES[kind]
