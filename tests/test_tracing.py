"""
Tests for the development trace sinks.
"""

import json
import logging

import pytest
import structlog
from structlog.testing import capture_logs

from secaudit.core.models import ThreatIndicator
from secaudit.core.taxonomy import SecurityEventType
from secaudit.core.tracing import (
    NullTraceSink,
    StructlogTraceSink,
    configure_structlog,
)

from conftest import make_event


@pytest.fixture
def trace_logger_reset():
    yield
    structlog.reset_defaults()
    trace_logger = logging.getLogger("secaudit.trace")
    for handler in list(trace_logger.handlers):
        trace_logger.removeHandler(handler)
        handler.close()


class TestStructlogTraceSink:

    def test_emits_structured_event(self):
        event = make_event(
            SecurityEventType.XSS_ATTEMPT, user_id="u1",
            threat=ThreatIndicator(score=90, category="HIGH_RISK"),
        )
        with capture_logs() as logs:
            StructlogTraceSink().emit(event)
        assert len(logs) == 1
        entry = logs[0]
        assert entry["event"] == "security_event"
        assert entry["log_level"] == "critical"
        assert entry["event_id"] == event.id
        assert entry["event_type"] == "XSS_ATTEMPT"
        assert entry["user"] == "u1"
        assert entry["threat"]["score"] == 90

    def test_level_follows_severity(self):
        with capture_logs() as logs:
            sink = StructlogTraceSink()
            sink.emit(make_event(SecurityEventType.AUTH_SUCCESS))
            sink.emit(make_event(SecurityEventType.AUTH_FAILURE))
        assert [e["log_level"] for e in logs] == ["info", "warning"]

    def test_null_sink(self):
        assert NullTraceSink().emit(make_event()) is None


class TestConfigureStructlog:

    def test_writes_daily_json_file(self, tmp_path, trace_logger_reset):
        configure_structlog(log_dir=tmp_path)
        event = make_event(SecurityEventType.PERMISSION_VIOLATION)
        StructlogTraceSink().emit(event)

        files = list(tmp_path.glob("security_audit_*.log"))
        assert len(files) == 1
        line = json.loads(files[0].read_text(encoding="utf-8").strip().splitlines()[-1])
        assert line["event"] == "security_event"
        assert line["event_id"] == event.id
        assert line["level"] == "warning"
        assert line["logger"] == "secaudit.trace"
        assert "timestamp" in line
