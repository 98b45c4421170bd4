"""
Authenticating HTTP transport.

Every attempt goes through the same steps:
- wait for a rate limiter permit
- make sure a valid access token is available (refreshing it if needed)
- attach the bearer credential and send the request

Transient failures (connection errors, 429 and most 5xx) are retried with
exponential backoff; 4xx responses are handed back to the caller untouched.
"""
import asyncio
import json
import logging
import random
import time
from dataclasses import dataclass, field
from email.utils import parsedate_to_datetime
from typing import Dict, Optional, Tuple
from urllib.parse import urlsplit

import aiohttp

from .config import Credentials
from .datasource import RequestSpec
from .errors import AuthError, Cancelled, TransportError
from .rate_limiter import RateLimiter, SystemTimeProvider, TimeProvider, sleep_unless_cancelled
from .telemetry import TelemetryDecision, create_event, get_recorder
from .token_store import DEFAULT_SKEW, TokenStore

logger = logging.getLogger(__name__)

IDEMPOTENT_METHODS = ("GET", "HEAD", "PUT", "DELETE", "OPTIONS")


@dataclass
class TransportResponse:
    """
    Fully read HTTP response.

    Attributes:
        status: HTTP status code
        headers: Response headers
        body: Raw response body
        elapsed_ms: Time spent on the final attempt
        attempts: Number of attempts made
    """
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    elapsed_ms: float = 0.0
    attempts: int = 1

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


@dataclass
class RetryPolicy:
    """
    Connection-level retry settings.

    Attributes:
        max_retries: Retries after the first attempt
        wait_min: Backoff for the first retry
        wait_max: Upper bound for any single backoff
        jitter: Whether to spread backoffs by +/-25%
    """
    max_retries: int = 4
    wait_min: float = 1.0
    wait_max: float = 30.0
    jitter: bool = False

    def should_retry_status(self, status: int, method: str = "GET") -> bool:
        """
        Determine if a response status is worth retrying.

        Args:
            status: HTTP status code
            method: HTTP method

        Returns:
            True for 429 and for 5xx (except 501) on idempotent methods
        """
        if status == 429:
            return True

        if 500 <= status < 600 and status != 501:
            if method.upper() not in IDEMPOTENT_METHODS:
                logger.warning(f"Not retrying {status} for non-idempotent method {method}")
                return False
            return True

        return False

    def backoff(self, attempt: int) -> float:
        """
        Calculate exponential backoff.

        Args:
            attempt: Retry attempt number (0-based)

        Returns:
            Seconds to wait
        """
        wait = min(self.wait_min * (2 ** attempt), self.wait_max)
        if self.jitter:
            wait *= 0.75 + random.random() * 0.5
        return wait


def parse_retry_after(value: str, now: float) -> Optional[float]:
    """
    Parse Retry-After header value.

    Args:
        value: Header value (either seconds or HTTP-date)
        now: Current time in seconds since epoch

    Returns:
        Seconds to wait, or None if parse failed
    """
    try:
        return max(0.0, float(value))
    except ValueError:
        pass

    try:
        retry_date = parsedate_to_datetime(value)
        return max(0.0, retry_date.timestamp() - now)
    except (ValueError, TypeError):
        return None


class AuthenticatingTransport:
    """
    Rate-limited, token-authenticated wrapper around an aiohttp session.

    The session is owned by the caller. The credential exchange shares the
    session but bypasses the limiter and the bearer header.
    """

    def __init__(
        self,
        credentials: Credentials,
        session: aiohttp.ClientSession,
        rate_limiter: RateLimiter,
        token_url: str,
        token_store: Optional[TokenStore] = None,
        retry_policy: Optional[RetryPolicy] = None,
        timeout: float = 30.0,
        token_skew: float = DEFAULT_SKEW,
        time_provider: Optional[TimeProvider] = None,
    ):
        """
        Initialize the transport.

        Args:
            credentials: Key pair for the client-credentials exchange
            session: HTTP session used for every call
            rate_limiter: Shared limiter; one permit per attempt
            token_url: Credential exchange endpoint
            token_store: Optional pre-built store (defaults to one backed by request_token)
            retry_policy: Retry settings (defaults to RetryPolicy())
            timeout: Total timeout per attempt in seconds
            token_skew: Safety margin before token expiry
            time_provider: Clock used for backoff sleeps and token expiry
        """
        self.credentials = credentials
        self.session = session
        self.rate_limiter = rate_limiter
        self.token_url = token_url
        self.retry_policy = retry_policy or RetryPolicy()
        self.time_provider = time_provider or SystemTimeProvider()
        self.token_store = token_store or TokenStore(
            self.request_token,
            skew=token_skew,
            time_provider=self.time_provider,
        )
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self.host = urlsplit(token_url).netloc

    async def request_token(self) -> Tuple[str, float]:
        """
        Exchange the key pair for an access token.

        Returns:
            Tuple of (access_token, expires_in seconds)

        Raises:
            AuthError: On any failure of the exchange
        """
        if not self.credentials.complete:
            raise AuthError("missing public or private key")

        form = {
            "grant_type": "client_credentials",
            "client_id": self.credentials.public_key,
            "client_secret": self.credentials.private_key,
        }

        start = time.monotonic()
        try:
            async with self.session.post(self.token_url, data=form, timeout=self._timeout) as resp:
                status = resp.status
                body = await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AuthError(f"Token request failed: {e}") from e
        elapsed_ms = (time.monotonic() - start) * 1000

        if status != 200:
            raise AuthError(f"Token request failed: {status} {body}")

        try:
            data = json.loads(body)
        except ValueError as e:
            raise AuthError(f"Token response is not JSON: {e}: {body}") from e

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            raise AuthError("Token request succeeded but access_token missing in response")

        expires_in = float(data.get("expires_in") or 0)

        get_recorder().record(create_event(
            host=self.host,
            endpoint=self.token_url,
            decision=TelemetryDecision.TOKEN_REFRESH,
            status=status,
            elapsed_ms=elapsed_ms,
            detail={"expires_in": expires_in},
        ))
        logger.info(f"Obtained access token valid for {expires_in:.0f}s")

        return access_token, expires_in

    async def _round_trip(
        self,
        request: RequestSpec,
        cancel: Optional[asyncio.Event],
    ) -> TransportResponse:
        await self.rate_limiter.acquire(cancel, endpoint=request.url)

        if not self.credentials.complete:
            raise AuthError("missing public or private key")

        token = await self.token_store.ensure_valid()

        headers = dict(request.headers)
        headers["Authorization"] = f"Bearer {token.value}"

        start = time.monotonic()
        async with self.session.request(
            request.method,
            request.url,
            params=request.query_params or None,
            data=request.body,
            headers=headers,
            timeout=self._timeout,
        ) as resp:
            body = await resp.read()
            return TransportResponse(
                status=resp.status,
                headers=dict(resp.headers),
                body=body,
                elapsed_ms=(time.monotonic() - start) * 1000,
            )

    async def _backoff(
        self,
        request: RequestSpec,
        attempt: int,
        decision: TelemetryDecision,
        wait: float,
        cancel: Optional[asyncio.Event],
        status: Optional[int] = None,
        reason: str = "",
    ) -> None:
        get_recorder().record(create_event(
            host=self.host,
            endpoint=request.url,
            decision=decision,
            status=status,
            sleep_s=wait,
            attempt=attempt,
            detail={"reason": reason} if reason else None,
        ))
        logger.warning(
            f"{request.method} {request.url} failed ({reason or status}), "
            f"retry {attempt + 1}/{self.retry_policy.max_retries} in {wait:.2f}s"
        )
        await sleep_unless_cancelled(self.time_provider, wait, cancel)
        if cancel is not None and cancel.is_set():
            raise Cancelled(f"{request.method} {request.url} retry cancelled")

    async def send(
        self,
        request: RequestSpec,
        cancel: Optional[asyncio.Event] = None,
    ) -> TransportResponse:
        """
        Send a request with authentication, throttling and retries.

        Args:
            request: Request to send
            cancel: Optional cancellation signal for permit waits and retry sleeps

        Returns:
            The final TransportResponse (any status that is not retried)

        Raises:
            Cancelled: If cancel fires while waiting for a permit or a retry
            AuthError: If credentials are empty or the token exchange fails
            TransportError: If retries are exhausted
        """
        attempt = 0
        policy = self.retry_policy

        while True:
            try:
                response = await self._round_trip(request, cancel)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                idempotent = request.method.upper() in IDEMPOTENT_METHODS
                if attempt >= policy.max_retries or not idempotent:
                    raise TransportError(
                        f"{request.method} {request.url} giving up after "
                        f"{attempt + 1} attempt(s): {e!r}"
                    ) from e
                await self._backoff(
                    request, attempt, TelemetryDecision.RETRY_NETWORK,
                    policy.backoff(attempt), cancel, reason=repr(e),
                )
                attempt += 1
                continue

            response.attempts = attempt + 1
            if not policy.should_retry_status(response.status, request.method):
                return response

            if attempt >= policy.max_retries:
                raise TransportError(
                    f"{request.method} {request.url} giving up after "
                    f"{attempt + 1} attempt(s): status {response.status}",
                    status=response.status,
                )

            wait = policy.backoff(attempt)
            decision = TelemetryDecision.RETRY_5XX
            if response.status == 429:
                decision = TelemetryDecision.RETRY_429
                retry_after = response.headers.get("Retry-After")
                if retry_after:
                    parsed = parse_retry_after(retry_after, self.time_provider.now())
                    if parsed is not None:
                        wait = parsed

            await self._backoff(request, attempt, decision, wait, cancel, status=response.status)
            attempt += 1
