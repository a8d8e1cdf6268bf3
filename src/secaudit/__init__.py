# Security Audit - Main Package
#
# Security event logging with threat detection, threshold alerting and
# compliance reporting.

__version__ = "0.1.0"
__description__ = "Security audit event logging and threat detection"

from .core import (
    ActorContext,
    AttackKind,
    AuditLogConfig,
    AuthOutcome,
    ConfigurationError,
    EventDraft,
    EventFilter,
    EventResult,
    SecurityAuditLogger,
    SecurityEvent,
    SecurityEventType,
    Severity,
)
from .intel import AuditEventStore

__all__ = [
    "__version__",
    "ActorContext",
    "AttackKind",
    "AuditEventStore",
    "AuditLogConfig",
    "AuthOutcome",
    "ConfigurationError",
    "EventDraft",
    "EventFilter",
    "EventResult",
    "SecurityAuditLogger",
    "SecurityEvent",
    "SecurityEventType",
    "Severity",
]
