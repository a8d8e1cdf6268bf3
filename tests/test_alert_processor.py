"""
Tests for AlertProcessor: threshold evaluation and channel fan-out.

Covers: queue draining, sliding-window frequency threshold, concurrent
per-channel dispatch with timeouts and failure isolation, background
scheduling, and shutdown.
"""

import asyncio
import threading
import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from secaudit.alerting.processor import (
    AlertBatch,
    AlertProcessor,
    AlertSender,
    LoggingAlertSender,
)
from secaudit.core.config import AlertChannel, AlertingConfig, AlertThresholds
from secaudit.core.taxonomy import SecurityEventType, Severity
from secaudit.intel.event_store import AuditEventStore

from conftest import T0, FakeClock, make_event


# ===================================================================
# Helpers
# ===================================================================


def _make_config(frequency=2, window_ms=60_000, channels=("email", "slack"),
                 enabled=True, timeout=1.0, severity=Severity.HIGH):
    return AlertingConfig(
        enabled=enabled,
        channels=list(channels),
        thresholds=AlertThresholds(severity=severity, frequency=frequency, time_window_ms=window_ms),
        channel_timeout_seconds=timeout,
    )


def _make_processor(config=None, sender=None, clock=None):
    store = AuditEventStore()
    processor = AlertProcessor(store, config or _make_config(), sender=sender, clock=clock or FakeClock())
    return store, processor


class RecordingSender(AlertSender):
    """Synchronous sender that records (channel, batch_id) calls."""

    def __init__(self, fail_on=()):
        self.calls = []
        self.fail_on = set(fail_on)

    def send(self, channel, batch):
        self.calls.append((channel, batch.batch_id))
        return channel not in self.fail_on


class BlockingSender(AlertSender):
    """Synchronous sender where one channel blocks until released."""

    def __init__(self, blocked_channel):
        self.blocked_channel = blocked_channel
        self.release = threading.Event()
        self.delivered = []

    def send(self, channel, batch):
        if channel == self.blocked_channel:
            self.release.wait(10.0)
            return True
        self.delivered.append((channel, batch.batch_id))
        return True


class SlowSender(AlertSender):
    """Async sender where one channel hangs."""

    def __init__(self, slow_channel, delay=5.0):
        self.slow_channel = slow_channel
        self.delay = delay

    async def send(self, channel, batch):
        if channel == self.slow_channel:
            await asyncio.sleep(self.delay)
        return True


# ===================================================================
# AlertBatch
# ===================================================================


class TestAlertBatch:

    def test_summary(self):
        batch = AlertBatch(events=[
            make_event(SecurityEventType.XSS_ATTEMPT),
            make_event(SecurityEventType.PERMISSION_VIOLATION),
            make_event(SecurityEventType.XSS_ATTEMPT),
        ], window_count=3)
        summary = batch.summary()
        assert summary["count"] == 3
        assert summary["critical"] == 2
        assert summary["types"] == ["XSS_ATTEMPT", "PERMISSION_VIOLATION"]
        assert summary["window_count"] == 3

    def test_batch_ids_unique(self):
        assert AlertBatch(events=[]).batch_id != AlertBatch(events=[]).batch_id

    def test_to_dict_serializes_events(self):
        batch = AlertBatch(events=[make_event(SecurityEventType.XSS_ATTEMPT)])
        d = batch.to_dict()
        assert d["events"][0]["type"] == "XSS_ATTEMPT"


# ===================================================================
# Evaluation
# ===================================================================


class TestEvaluate:

    def test_empty_queue(self):
        _, processor = _make_processor()
        assert processor.evaluate() is None

    def test_below_threshold_drains_and_suppresses(self):
        store, processor = _make_processor(config=_make_config(frequency=3))
        store.add(make_event(SecurityEventType.XSS_ATTEMPT, T0))
        assert processor.evaluate() is None
        assert store.pending_alerts == 0
        assert processor.stats()["events_suppressed"] == 1

    def test_threshold_met(self):
        store, processor = _make_processor(config=_make_config(frequency=2))
        first = make_event(SecurityEventType.XSS_ATTEMPT, T0 - 1000)
        second = make_event(SecurityEventType.CSRF_ATTEMPT, T0)
        store.add(first)
        store.add(second)
        batch = processor.evaluate()
        assert batch is not None
        assert batch.events == [first, second]
        assert batch.window_count == 2
        assert batch.created_at == T0

    def test_window_counts_already_drained_events(self):
        store, processor = _make_processor(config=_make_config(frequency=2))
        store.add(make_event(SecurityEventType.XSS_ATTEMPT, T0 - 1000))
        assert processor.evaluate() is None
        latest = make_event(SecurityEventType.XSS_ATTEMPT, T0)
        store.add(latest)
        batch = processor.evaluate()
        assert batch.events == [latest]
        assert batch.window_count == 2

    def test_events_outside_window_not_counted(self):
        store, processor = _make_processor(config=_make_config(frequency=2, window_ms=1000))
        store.add(make_event(SecurityEventType.XSS_ATTEMPT, T0 - 5000))
        store.add(make_event(SecurityEventType.XSS_ATTEMPT, T0))
        assert processor.evaluate() is None

    def test_severity_floor(self):
        store, processor = _make_processor(
            config=_make_config(frequency=2, severity=Severity.CRITICAL)
        )
        store.add(make_event(SecurityEventType.PERMISSION_VIOLATION, T0))   # HIGH
        store.add(make_event(SecurityEventType.XSS_ATTEMPT, T0))            # CRITICAL
        assert processor.evaluate() is None

    def test_disabled_still_drains(self):
        store, processor = _make_processor(config=_make_config(frequency=1, enabled=False))
        store.add(make_event(SecurityEventType.XSS_ATTEMPT, T0))
        assert processor.evaluate() is None
        assert store.pending_alerts == 0
        assert processor.stats()["events_drained"] == 1


# ===================================================================
# Dispatch
# ===================================================================


class TestDispatch:

    @pytest.mark.asyncio
    async def test_sends_to_every_channel(self):
        sender = RecordingSender()
        _, processor = _make_processor(sender=sender)
        batch = AlertBatch(events=[make_event(SecurityEventType.XSS_ATTEMPT)])
        result = await processor.dispatch(batch)
        assert result == {"email": True, "slack": True}
        assert sorted(c for c, _ in sender.calls) == ["email", "slack"]

    @pytest.mark.asyncio
    async def test_async_sender(self):
        sender = MagicMock(spec=AlertSender)
        sender.send = AsyncMock(return_value=True)
        _, processor = _make_processor(sender=sender)
        result = await processor.dispatch(AlertBatch(events=[]))
        assert result == {"email": True, "slack": True}
        assert sender.send.await_count == 2

    @pytest.mark.asyncio
    async def test_failed_channel_isolated(self):
        sender = RecordingSender(fail_on={"slack"})
        _, processor = _make_processor(sender=sender)
        result = await processor.dispatch(AlertBatch(events=[]))
        assert result == {"email": True, "slack": False}
        assert processor.stats()["channel_failures"] == 1

    @pytest.mark.asyncio
    async def test_raising_channel_isolated(self, caplog):
        async def send(channel, batch):
            if channel == "email":
                raise ConnectionError("smtp down")
            return True

        sender = MagicMock(spec=AlertSender)
        sender.send = send
        _, processor = _make_processor(sender=sender)
        result = await processor.dispatch(AlertBatch(events=[]))
        assert result == {"email": False, "slack": True}
        assert "Alert channel email failed" in caplog.text

    @pytest.mark.asyncio
    async def test_slow_channel_times_out(self, caplog):
        sender = SlowSender(slow_channel="slack")
        _, processor = _make_processor(sender=sender, config=_make_config(timeout=0.05))
        start = time.monotonic()
        result = await processor.dispatch(AlertBatch(events=[]))
        assert time.monotonic() - start < 2.0
        assert result == {"email": True, "slack": False}
        assert "timed out" in caplog.text

    @pytest.mark.asyncio
    async def test_no_channels(self):
        _, processor = _make_processor(config=_make_config(channels=()))
        assert await processor.dispatch(AlertBatch(events=[])) == {}

    @pytest.mark.asyncio
    async def test_evaluate_and_dispatch(self):
        sender = RecordingSender()
        store, processor = _make_processor(sender=sender, config=_make_config(frequency=1))
        store.add(make_event(SecurityEventType.XSS_ATTEMPT, T0))
        result = await processor.evaluate_and_dispatch()
        assert result == {"email": True, "slack": True}
        assert await processor.evaluate_and_dispatch() is None

    def test_logging_sender(self, caplog):
        batch = AlertBatch(events=[make_event(SecurityEventType.XSS_ATTEMPT)])
        assert LoggingAlertSender().send("email", batch) is True
        assert "SECURITY ALERT [email]" in caplog.text


# ===================================================================
# Background scheduling
# ===================================================================


class TestSchedule:

    def test_schedule_and_flush(self):
        sender = RecordingSender()
        _, processor = _make_processor(sender=sender)
        try:
            future = processor.schedule(AlertBatch(events=[]))
            assert future is not None
            assert processor.flush(timeout=5.0) is True
            assert future.result() == {"email": True, "slack": True}
            assert len(sender.calls) == 2
        finally:
            processor.shutdown()

    def test_hung_sync_channel_does_not_stall_later_batches(self, caplog):
        sender = BlockingSender(blocked_channel="slack")
        _, processor = _make_processor(sender=sender, config=_make_config(timeout=0.1))
        try:
            first = AlertBatch(events=[])
            second = AlertBatch(events=[])
            processor.schedule(first)
            processor.schedule(second)

            start = time.monotonic()
            assert processor.flush(timeout=2.0) is True
            assert time.monotonic() - start < 2.0
            assert sender.delivered == [
                ("email", first.batch_id), ("email", second.batch_id),
            ]
            assert processor.stats()["channel_failures"] == 2
            assert "Alert channel slack timed out" in caplog.text
        finally:
            sender.release.set()
            processor.shutdown()

    def test_flush_without_pending(self):
        _, processor = _make_processor()
        assert processor.flush(timeout=0.1) is True

    def test_schedule_after_shutdown_drops(self, caplog):
        sender = RecordingSender()
        _, processor = _make_processor(sender=sender)
        processor.shutdown()
        assert processor.schedule(AlertBatch(events=[])) is None
        assert sender.calls == []
        assert "dropping batch" in caplog.text

    def test_stats_shape(self):
        _, processor = _make_processor()
        stats = processor.stats()
        assert stats["enabled"] is True
        assert stats["channels"] == [AlertChannel.EMAIL.value, AlertChannel.SLACK.value]
        assert stats["pending_dispatches"] == 0
