"""
Access token lifecycle with single-flight refresh.

The store owns the current bearer token. When the token is missing or inside
the skew window before its expiry, exactly one refresh runs; every caller that
arrives while it is in flight awaits the same result.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple

from .errors import AuthError
from .rate_limiter import SystemTimeProvider, TimeProvider

logger = logging.getLogger(__name__)

# Returns (access_token, lifetime_in_seconds)
TokenExchange = Callable[[], Awaitable[Tuple[str, float]]]

DEFAULT_SKEW = 3600.0


@dataclass(frozen=True)
class Token:
    """
    Immutable bearer token snapshot.

    Attributes:
        value: The access token string
        expires_at: Expiry as seconds since epoch
    """

    value: str
    expires_at: float

    def is_usable(self, now: float, skew: float = DEFAULT_SKEW) -> bool:
        """A token is usable while non-empty and now < expires_at - skew."""
        return bool(self.value) and now < self.expires_at - skew


class TokenStore:
    """
    Holds the current token and refreshes it at most once per expiry window.

    Args:
        exchange: Coroutine function performing the credential exchange
        skew: Safety margin subtracted from the stated expiry
        time_provider: Clock used for expiry checks
    """

    def __init__(
        self,
        exchange: TokenExchange,
        skew: float = DEFAULT_SKEW,
        time_provider: Optional[TimeProvider] = None,
    ):
        self._exchange = exchange
        self.skew = skew
        self.time_provider = time_provider or SystemTimeProvider()
        self._token: Optional[Token] = None
        self._inflight: Optional["asyncio.Future[Token]"] = None
        self.refresh_count = 0

    @property
    def token(self) -> Optional[Token]:
        return self._token

    def invalidate(self) -> None:
        """Drop the current token so the next call refreshes."""
        self._token = None

    async def ensure_valid(self) -> Token:
        """
        Return a usable token, refreshing it if needed.

        Returns:
            The current usable Token

        Raises:
            AuthError: If the refresh this call waited on failed
        """
        token = self._token
        if token is not None and token.is_usable(self.time_provider.now(), self.skew):
            return token

        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._refresh())

        # Shield so one caller being cancelled doesn't abort the shared refresh
        return await asyncio.shield(self._inflight)

    async def _refresh(self) -> Token:
        try:
            self.refresh_count += 1
            logger.debug("Refreshing access token")
            try:
                value, expires_in = await self._exchange()
            except AuthError:
                raise
            except Exception as e:
                raise AuthError(f"Token exchange failed: {e}") from e

            token = Token(value=value, expires_at=self.time_provider.now() + float(expires_in))
            if not token.is_usable(self.time_provider.now(), self.skew):
                logger.warning(
                    f"Token lifetime {expires_in}s is shorter than the "
                    f"{self.skew:.0f}s skew window; every call will refresh"
                )
            self._token = token
            return token
        finally:
            self._inflight = None
