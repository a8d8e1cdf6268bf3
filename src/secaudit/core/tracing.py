# Security Audit - Development Trace Sinks
#
# After an event is stored the logger hands it to a trace sink. The
# default sink does nothing; StructlogTraceSink writes one structured JSON
# line per event through structlog. Sinks must return quickly: the logger
# swallows (and reports) any exception they raise.

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import structlog

from .models import SecurityEvent
from .taxonomy import Severity

_SEVERITY_METHOD = {
    Severity.CRITICAL: "critical",
    Severity.HIGH: "warning",
    Severity.MEDIUM: "warning",
    Severity.LOW: "info",
    Severity.INFO: "info",
}


def configure_structlog(log_dir: Optional[Path] = None) -> None:
    """Route structlog through stdlib logging as JSON lines.

    Args:
        log_dir: When given, also append to a daily
            ``security_audit_<date>.log`` file in this directory.
    """
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        today = datetime.now().strftime("%Y-%m-%d")
        file_handler = logging.FileHandler(
            log_dir / f"security_audit_{today}.log", mode="a", encoding="utf-8"
        )
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(message)s"))  # structlog formats
        trace_logger = logging.getLogger("secaudit.trace")
        trace_logger.addHandler(file_handler)
        trace_logger.setLevel(logging.INFO)


class TraceSink:
    """Receives every stored event. Implementations must not block."""

    def emit(self, event: SecurityEvent) -> None:
        raise NotImplementedError


class NullTraceSink(TraceSink):
    """Default sink: discards events."""

    def emit(self, event: SecurityEvent) -> None:
        return None


class StructlogTraceSink(TraceSink):
    """Writes each event as a structured ``security_event`` log line."""

    def __init__(self, logger_name: str = "secaudit.trace"):
        self.logger = structlog.get_logger(logger_name)

    def emit(self, event: SecurityEvent) -> None:
        log = getattr(self.logger, _SEVERITY_METHOD[event.severity])
        log(
            "security_event",
            event_id=event.id,
            event_type=event.type.value,
            severity=event.severity.value,
            user=event.user_id,
            message=event.message,
            correlation_id=event.correlation_id,
            threat=event.threat.to_dict() if event.threat else None,
        )
