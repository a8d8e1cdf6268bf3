# Security Audit - Event Data Model
#
# SecurityEvent is the immutable record kept by the store. Callers never
# build one directly: they hand an EventDraft (or a plain dict from an
# untyped integration) to SecurityAuditLogger.log(), which enriches it.

from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .taxonomy import (
    EventResult,
    SecurityEventType,
    Severity,
    coerce_event_type,
    coerce_result,
)

MetadataValue = Union[str, int, float, bool, Mapping[str, Any]]

# Sensitive metadata keys and the maximum length kept for each
TRUNCATED_FIELDS: Dict[str, int] = {
    "payload": 200,
}


# ── Metadata ─────────────────────────────────────────────────────────

def sanitize_metadata(raw: Optional[Mapping[str, Any]]) -> Mapping[str, MetadataValue]:
    """Constrain a metadata bag to the supported value types.

    - keys become strings, insertion order is kept
    - ``None`` values are dropped
    - nested mappings are sanitised recursively
    - other values are stringified
    - known sensitive keys (``payload``) are truncated

    Returns a read-only mapping.
    """
    if not raw:
        return MappingProxyType({})

    clean: Dict[str, MetadataValue] = {}
    for key, value in raw.items():
        if value is None:
            continue
        key = str(key)
        if isinstance(value, Mapping):
            clean[key] = sanitize_metadata(value)
            continue
        if not isinstance(value, (str, bool, int, float)):
            value = str(value)
        limit = TRUNCATED_FIELDS.get(key)
        if limit is not None and isinstance(value, str):
            value = value[:limit]
        clean[key] = value
    return MappingProxyType(clean)


def metadata_to_dict(metadata: Mapping[str, Any]) -> Dict[str, Any]:
    """Convert a (possibly read-only, nested) metadata mapping to plain dicts."""
    return {
        k: metadata_to_dict(v) if isinstance(v, Mapping) else v
        for k, v in metadata.items()
    }


# ── Actor context ────────────────────────────────────────────────────

@dataclass(frozen=True)
class ActorContext:
    """Who/where an event came from, as supplied by the request layer."""

    user_id: Optional[str] = None
    session_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "user_id": self.user_id,
            "session_id": self.session_id,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
        }


# ── Threat indicator ─────────────────────────────────────────────────

@dataclass(frozen=True)
class ThreatIndicator:
    """Risk annotation computed by the ThreatDetector (score is never 0)."""

    score: int
    category: str
    indicators: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "category": self.category,
            "indicators": list(self.indicators),
            "recommendations": list(self.recommendations),
        }


# ── Caller input ─────────────────────────────────────────────────────

# camelCase keys accepted from untyped (JSON) integrations
_DRAFT_KEY_ALIASES: Dict[str, str] = {
    "userId": "user_id",
    "sessionId": "session_id",
    "ipAddress": "ip_address",
    "userAgent": "user_agent",
    "stackTrace": "stack_trace",
    "correlationId": "correlation_id",
    "event_type": "type",
}


@dataclass
class EventDraft:
    """A partial security event as supplied by a caller.

    ``severity`` is an optional override; when omitted the taxonomy
    default for ``type`` is used.
    """

    type: SecurityEventType
    message: str = ""
    result: EventResult = EventResult.SUCCESS
    severity: Optional[Severity] = None
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    resource: Optional[str] = None
    action: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    stack_trace: Optional[str] = None
    correlation_id: Optional[str] = None

    def with_context(self, context: Optional[ActorContext]) -> "EventDraft":
        """Fill actor fields from ``context`` where the draft leaves them unset."""
        if context is None:
            return self
        updates = {
            k: v for k, v in context.to_dict().items()
            if v is not None and getattr(self, k) is None
        }
        return replace(self, **updates) if updates else self

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EventDraft":
        """Build a draft from an untyped mapping.

        Unknown types/results are coerced (see ``coerce_event_type``) and
        the coercion is recorded in ``metadata["coercion_notes"]``.
        Unknown keys are ignored; an unparseable severity override is
        discarded in favour of the taxonomy default.
        """
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            key = _DRAFT_KEY_ALIASES.get(key, key)
            if key in known:
                values[key] = value

        notes: List[str] = []
        event_type, note = coerce_event_type(values.get("type"))
        values["type"] = event_type
        if note:
            notes.append(note)

        if "result" in values:
            result, note = coerce_result(values["result"])
            values["result"] = result
            if note:
                notes.append(note)

        if values.get("severity") is not None:
            try:
                values["severity"] = Severity.parse(values["severity"])
            except ValueError:
                notes.append(f"unrecognized severity: {values['severity']!r}")
                values["severity"] = None

        metadata = values.get("metadata")
        metadata = dict(metadata) if isinstance(metadata, Mapping) else {}
        if notes:
            metadata["coercion_notes"] = "; ".join(notes)
        values["metadata"] = metadata or None

        if values.get("message") is None:
            values["message"] = ""
        return cls(**values)


# ── Stored event ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class SecurityEvent:
    """An enriched, immutable security event."""

    id: str
    timestamp: int                 # epoch milliseconds
    type: SecurityEventType
    severity: Severity
    result: EventResult
    message: str
    correlation_id: str
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    resource: Optional[str] = None
    action: Optional[str] = None
    metadata: Mapping[str, MetadataValue] = field(
        default_factory=lambda: MappingProxyType({}), hash=False
    )
    stack_trace: Optional[str] = None
    threat: Optional[ThreatIndicator] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "type": self.type.value,
            "severity": self.severity.value,
            "result": self.result.value,
            "message": self.message,
            "correlation_id": self.correlation_id,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "resource": self.resource,
            "action": self.action,
            "metadata": metadata_to_dict(self.metadata),
            "stack_trace": self.stack_trace,
            "threat": self.threat.to_dict() if self.threat else None,
        }


# ── Queries ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class EventFilter:
    """Store query. Every field is optional; ``limit`` is applied last."""

    type: Optional[SecurityEventType] = None
    severity: Optional[Severity] = None   # minimum, inclusive
    user_id: Optional[str] = None
    result: Optional[EventResult] = None
    start_time: Optional[int] = None      # inclusive, epoch ms
    end_time: Optional[int] = None        # inclusive, epoch ms
    limit: Optional[int] = None

    def matches(self, event: SecurityEvent) -> bool:
        if self.type is not None and event.type != self.type:
            return False
        if self.severity is not None and not event.severity.at_least(self.severity):
            return False
        if self.user_id is not None and event.user_id != self.user_id:
            return False
        if self.result is not None and event.result != self.result:
            return False
        if self.start_time is not None and event.timestamp < self.start_time:
            return False
        if self.end_time is not None and event.timestamp > self.end_time:
            return False
        return True


@dataclass
class StoreStatistics:
    """Snapshot of store contents."""

    total: int = 0
    by_severity: Dict[Severity, int] = field(default_factory=dict)
    by_type: Dict[SecurityEventType, int] = field(default_factory=dict)
    recent_threats: List[SecurityEvent] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "by_severity": {s.value: n for s, n in self.by_severity.items()},
            "by_type": {t.value: n for t, n in self.by_type.items()},
            "recent_threats": [e.to_dict() for e in self.recent_threats],
        }
