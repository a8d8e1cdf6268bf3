# Security Audit - Core
#
# Event taxonomy, data model, configuration, anonymisation and the
# SecurityAuditLogger entry point.

from .taxonomy import (
    Severity,
    EventResult,
    SecurityEventType,
    EVENT_SEVERITY,
    SEVERITY_ORDER,
    default_severity,
)
from .exceptions import AuditError, ConfigurationError
from .models import (
    ActorContext,
    EventDraft,
    EventFilter,
    SecurityEvent,
    StoreStatistics,
    ThreatIndicator,
)
from .config import (
    AlertChannel,
    AlertingConfig,
    AlertThresholds,
    AuditLogConfig,
    StorageBackend,
)
from .anonymizer import Anonymizer
from .tracing import (
    NullTraceSink,
    StructlogTraceSink,
    TraceSink,
    configure_structlog,
)
from .audit_log import AttackKind, AuthOutcome, SecurityAuditLogger

__all__ = [
    "Severity",
    "EventResult",
    "SecurityEventType",
    "EVENT_SEVERITY",
    "SEVERITY_ORDER",
    "default_severity",
    "AuditError",
    "ConfigurationError",
    "ActorContext",
    "EventDraft",
    "EventFilter",
    "SecurityEvent",
    "StoreStatistics",
    "ThreatIndicator",
    "AlertChannel",
    "AlertingConfig",
    "AlertThresholds",
    "AuditLogConfig",
    "StorageBackend",
    "Anonymizer",
    "NullTraceSink",
    "StructlogTraceSink",
    "TraceSink",
    "configure_structlog",
    "AttackKind",
    "AuthOutcome",
    "SecurityAuditLogger",
]
