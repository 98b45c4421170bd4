"""
Error types raised by the client and the dump tooling.

Every error derives from TCGPlayerError so callers can catch the whole family
at once. The CLI maps any of them to exit status 1.
"""
from typing import List, Optional


class TCGPlayerError(Exception):
    """Base class for all errors raised by this package."""


class ConfigError(TCGPlayerError):
    """Missing credentials, missing identifiers or invalid configuration."""


class ConfigValidationError(ConfigError, ValueError):
    """Raised when a loaded configuration file fails validation."""


class AuthError(TCGPlayerError):
    """Credential exchange failed or credentials were empty at call time."""


class TransportError(TCGPlayerError):
    """
    Network-level failure that survived the retry policy.

    Attributes:
        status: Last HTTP status seen, or None for connection failures
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ApiError(TCGPlayerError):
    """
    Non-success envelope carrying explicit error messages.

    Attributes:
        status: HTTP status of the response
        errors: Error strings reported by the API
    """

    def __init__(self, errors: List[str], status: Optional[int] = None):
        super().__init__(" ".join(errors))
        self.status = status
        self.errors = list(errors)


class DecodeError(TCGPlayerError):
    """
    Response body was not valid JSON.

    Attributes:
        body: The raw body that failed to decode
    """

    def __init__(self, message: str, body: str = ""):
        super().__init__(f"{message}: {body}")
        self.body = body


class Cancelled(TCGPlayerError):
    """The cancellation signal fired while waiting for a permit."""
