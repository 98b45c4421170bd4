"""Core building blocks: config, throttling, auth, envelopes and pagination."""

from tcg_catalog.core.config import (
    DEFAULT_CONFIG,
    ClientConfig,
    Credentials,
    get_default_config,
    load_config,
    validate_config,
)
from tcg_catalog.core.datasource import DataSource, Page, PageFetcher, RequestSpec
from tcg_catalog.core.envelope import Envelope, decode
from tcg_catalog.core.errors import (
    ApiError,
    AuthError,
    Cancelled,
    ConfigError,
    ConfigValidationError,
    DecodeError,
    TCGPlayerError,
    TransportError,
)
from tcg_catalog.core.pagination import (
    PaginationResult,
    fetch_all,
    page_offsets,
    sort_by_key,
)
from tcg_catalog.core.rate_limiter import (
    FakeTimeProvider,
    Permit,
    RateLimiter,
    RateLimiterStats,
    SystemTimeProvider,
    TimeProvider,
    TokenBucket,
)
from tcg_catalog.core.token_store import Token, TokenStore

__all__ = [
    # config
    "DEFAULT_CONFIG",
    "ClientConfig",
    "Credentials",
    "get_default_config",
    "load_config",
    "validate_config",
    # datasource
    "DataSource",
    "Page",
    "PageFetcher",
    "RequestSpec",
    # envelope
    "Envelope",
    "decode",
    # errors
    "ApiError",
    "AuthError",
    "Cancelled",
    "ConfigError",
    "ConfigValidationError",
    "DecodeError",
    "TCGPlayerError",
    "TransportError",
    # pagination
    "PaginationResult",
    "fetch_all",
    "page_offsets",
    "sort_by_key",
    # rate_limiter
    "FakeTimeProvider",
    "Permit",
    "RateLimiter",
    "RateLimiterStats",
    "SystemTimeProvider",
    "TimeProvider",
    "TokenBucket",
    # token_store
    "Token",
    "TokenStore",
]
