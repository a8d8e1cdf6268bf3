# Security Audit - Intel
#
# Event history storage and heuristic threat scoring.

from .event_store import AuditEventStore, EventPersistence
from .threat_detector import ThreatDetector, categorize_score

__all__ = [
    "AuditEventStore",
    "EventPersistence",
    "ThreatDetector",
    "categorize_score",
]
