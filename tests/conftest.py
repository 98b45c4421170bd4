"""Shared fixtures."""
import pytest

from tcg_catalog.core.rate_limiter import FakeTimeProvider
from tcg_catalog.core.telemetry import TelemetryLevel, TelemetryRecorder, set_recorder


@pytest.fixture
def fake_time():
    """Provide fake time provider."""
    return FakeTimeProvider(initial_time=1000.0)


@pytest.fixture(autouse=True)
def telemetry_recorder():
    """Fresh global recorder per test so events don't leak between tests."""
    recorder = TelemetryRecorder(level=TelemetryLevel.DEBUG, format_json=False, collect_stats=True,
                                 keep_events=True)
    set_recorder(recorder)
    yield recorder
    set_recorder(TelemetryRecorder())
