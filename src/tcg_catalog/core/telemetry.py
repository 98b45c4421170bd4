"""
Structured telemetry for the rate limiter, transport and pagination engine.

This module provides structured logging capabilities for understanding:
- Throttling decisions taken by the rate limiter
- Retry behavior and backoff decisions in the transport
- Token refreshes
- Page failures during bulk fetches
"""
import json
import logging
import threading
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class TelemetryLevel(Enum):
    """Telemetry verbosity levels."""
    INFO = "info"
    DEBUG = "debug"


class TelemetryDecision(Enum):
    """Decision types recorded by the client."""
    ALLOW = "allow"                  # Permit granted immediately
    THROTTLE = "throttle"            # Permit granted after waiting for tokens
    RETRY_429 = "retry_429"          # Retrying after a 429 response
    RETRY_5XX = "retry_5xx"          # Retrying after a 5xx response
    RETRY_NETWORK = "retry_network"  # Retrying after a connection failure
    TOKEN_REFRESH = "token_refresh"  # Access token exchanged
    PAGE_FAILED = "page_failed"      # Page fetch failed and was skipped


_NOTABLE_DECISIONS = {
    TelemetryDecision.THROTTLE.value,
    TelemetryDecision.RETRY_429.value,
    TelemetryDecision.RETRY_5XX.value,
    TelemetryDecision.RETRY_NETWORK.value,
    TelemetryDecision.TOKEN_REFRESH.value,
    TelemetryDecision.PAGE_FAILED.value,
}


@dataclass
class TelemetryEvent:
    """
    A single telemetry event capturing client activity.

    Attributes:
        timestamp: ISO 8601 timestamp of event
        host: API host name
        endpoint: URL or endpoint being accessed
        status: HTTP status code (None if not applicable)
        elapsed_ms: Request duration in milliseconds
        decision: Decision taken (allow, throttle, retry, ...)
        sleep_s: Time slept before proceeding
        attempt: Retry attempt number (0 for first attempt)
        tokens_available: Number of tokens left in the bucket
        detail: Free-form context such as an error message or page offset
    """
    timestamp: str
    host: str
    endpoint: str
    status: Optional[int]
    elapsed_ms: float
    decision: str
    sleep_s: float = 0.0
    attempt: int = 0
    tokens_available: float = 0.0
    detail: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for logging."""
        return {k: v for k, v in asdict(self).items() if v is not None or k == "status"}

    def to_json(self) -> str:
        """Convert event to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    def to_keyvalue(self) -> str:
        """Convert event to key=value format."""
        pairs = []
        for key, value in self.to_dict().items():
            if isinstance(value, dict):
                # Flatten nested dicts
                for subkey, subval in value.items():
                    pairs.append(f"{key}.{subkey}={subval}")
            else:
                pairs.append(f"{key}={value}")
        return " ".join(pairs)


@dataclass
class TelemetryStats:
    """
    Aggregated statistics for telemetry analysis.

    Useful for tests and runtime monitoring.
    """
    total_events: int = 0
    total_sleeps: int = 0
    total_sleep_time: float = 0.0
    total_elapsed_time: float = 0.0
    decisions_by_type: Dict[str, int] = field(default_factory=dict)
    status_codes: Dict[int, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert stats to dictionary."""
        avg_latency = (
            self.total_elapsed_time / self.total_events
            if self.total_events > 0
            else 0.0
        )

        return {
            "total_events": self.total_events,
            "total_sleeps": self.total_sleeps,
            "total_sleep_time": self.total_sleep_time,
            "avg_latency_ms": round(avg_latency, 2),
            "decisions_by_type": self.decisions_by_type,
            "status_codes": self.status_codes,
        }


class TelemetryRecorder:
    """
    Records and emits structured telemetry.

    Features:
    - Structured logging in JSON or key=value format
    - Configurable verbosity (info/debug)
    - Optional in-memory statistics collection
    - Optional event history (off by default, unbounded when on)
    - Thread-safe operation
    """

    def __init__(
        self,
        level: TelemetryLevel = TelemetryLevel.INFO,
        format_json: bool = True,
        collect_stats: bool = False,
        keep_events: bool = False,
    ):
        """
        Initialize telemetry recorder.

        Args:
            level: Logging verbosity level
            format_json: If True, log as JSON; otherwise use key=value
            collect_stats: If True, collect in-memory statistics
            keep_events: If True, keep every recorded event for get_events()
        """
        self.level = level
        self.format_json = format_json
        self.collect_stats = collect_stats
        self.keep_events = keep_events

        self._stats = TelemetryStats()
        self._stats_lock = threading.Lock()

        # Event history, only filled when keep_events is set
        self._events: List[TelemetryEvent] = []
        self._events_lock = threading.Lock()

    def record(self, event: TelemetryEvent) -> None:
        """
        Record a telemetry event.

        Args:
            event: Event to record
        """
        if self.format_json:
            log_message = f"telemetry {event.to_json()}"
        else:
            log_message = f"telemetry {event.to_keyvalue()}"

        if self.level == TelemetryLevel.DEBUG:
            logger.debug(log_message)
        elif event.decision in _NOTABLE_DECISIONS or (event.status and event.status >= 400):
            # Only throttling, retries and failures are worth INFO
            logger.info(log_message)
        else:
            logger.debug(log_message)

        if self.collect_stats:
            with self._stats_lock:
                self._stats.total_events += 1
                self._stats.total_elapsed_time += event.elapsed_ms

                if event.sleep_s > 0:
                    self._stats.total_sleeps += 1
                    self._stats.total_sleep_time += event.sleep_s

                self._stats.decisions_by_type[event.decision] = (
                    self._stats.decisions_by_type.get(event.decision, 0) + 1
                )

                if event.status:
                    self._stats.status_codes[event.status] = (
                        self._stats.status_codes.get(event.status, 0) + 1
                    )

        if self.keep_events:
            with self._events_lock:
                self._events.append(event)

    def get_stats(self) -> TelemetryStats:
        """Get current statistics snapshot."""
        with self._stats_lock:
            return TelemetryStats(
                total_events=self._stats.total_events,
                total_sleeps=self._stats.total_sleeps,
                total_sleep_time=self._stats.total_sleep_time,
                total_elapsed_time=self._stats.total_elapsed_time,
                decisions_by_type=self._stats.decisions_by_type.copy(),
                status_codes=self._stats.status_codes.copy(),
            )

    def reset_stats(self) -> None:
        """Reset statistics."""
        with self._stats_lock:
            self._stats = TelemetryStats()

    def get_events(self) -> List[TelemetryEvent]:
        """Get all recorded events (for testing)."""
        with self._events_lock:
            return self._events.copy()

    def clear_events(self) -> None:
        """Clear event history."""
        with self._events_lock:
            self._events.clear()


_global_recorder: Optional[TelemetryRecorder] = None
_recorder_lock = threading.Lock()


def get_recorder() -> TelemetryRecorder:
    """
    Get the global telemetry recorder instance.

    Creates a default recorder if none exists.
    """
    global _global_recorder

    if _global_recorder is None:
        with _recorder_lock:
            if _global_recorder is None:
                _global_recorder = TelemetryRecorder()

    return _global_recorder


def set_recorder(recorder: TelemetryRecorder) -> None:
    """
    Set the global telemetry recorder instance.

    Args:
        recorder: Recorder instance to use globally
    """
    global _global_recorder

    with _recorder_lock:
        _global_recorder = recorder


def create_event(
    host: str,
    endpoint: str,
    decision: TelemetryDecision,
    status: Optional[int] = None,
    elapsed_ms: float = 0.0,
    sleep_s: float = 0.0,
    attempt: int = 0,
    tokens_available: float = 0.0,
    detail: Optional[Dict[str, Any]] = None,
) -> TelemetryEvent:
    """
    Helper to create a telemetry event with current timestamp.

    Args:
        host: API host name
        endpoint: URL or endpoint
        decision: Decision taken
        status: HTTP status code
        elapsed_ms: Request duration in milliseconds
        sleep_s: Time slept before proceeding
        attempt: Retry attempt number
        tokens_available: Tokens available in bucket
        detail: Extra context for the event

    Returns:
        TelemetryEvent ready for recording
    """
    from datetime import datetime, timezone

    return TelemetryEvent(
        timestamp=datetime.now(timezone.utc).isoformat(),
        host=host,
        endpoint=endpoint,
        status=status,
        elapsed_ms=elapsed_ms,
        decision=decision.value,
        sleep_s=sleep_s,
        attempt=attempt,
        tokens_available=tokens_available,
        detail=detail or {},
    )
