"""
Shared pytest fixtures for the secaudit test suite.

Time is injected everywhere through a FakeClock so window and ordering
behaviour is deterministic.
"""

import itertools
import logging

import pytest

from secaudit.core.models import SecurityEvent
from secaudit.core.taxonomy import (
    EventResult,
    SecurityEventType,
    default_severity,
)

T0 = 1_700_000_000_000   # 2023-11-14 22:13:20 UTC

_ids = itertools.count(1)


class FakeClock:
    """Callable epoch-millisecond clock that only moves when told to."""

    def __init__(self, start: int = T0):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


def make_event(
    event_type: SecurityEventType = SecurityEventType.AUTH_SUCCESS,
    timestamp: int = T0,
    **overrides,
) -> SecurityEvent:
    """Build a stored-style SecurityEvent without going through the logger."""
    values = dict(
        id=f"evt_test_{next(_ids)}",
        timestamp=timestamp,
        type=event_type,
        severity=default_severity(event_type),
        result=EventResult.SUCCESS,
        message=f"{event_type.value} test event",
        correlation_id="cor_test",
    )
    values.update(overrides)
    return SecurityEvent(**values)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def _quiet_alert_logs(caplog):
    """Capture secaudit diagnostics at WARNING so tests can assert on them."""
    caplog.set_level(logging.WARNING, logger="secaudit")
    yield
