# Security Audit - Audit Logger
#
# SecurityAuditLogger is the single entry point for recording security
# events. Every event passes through the same pipeline:
#   severity resolution -> log-level gate -> enrichment -> anonymisation
#   -> threat detection -> store -> alert evaluation -> trace sink
#
# The store is owned by (or injected into) the logger; there is no
# process-wide instance. Components that need the same history are given
# the same store explicitly.

import logging
import secrets
import time
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Union

from ..alerting.processor import AlertBatch, AlertProcessor, AlertSender
from ..intel.event_store import AuditEventStore, EventPersistence
from ..intel.threat_detector import ThreatDetector
from ..reporting.compliance import ComplianceReport, ComplianceReporter, ComplianceState
from .anonymizer import Anonymizer
from .config import AuditLogConfig, StorageBackend
from .models import (
    ActorContext,
    EventDraft,
    EventFilter,
    SecurityEvent,
    StoreStatistics,
    sanitize_metadata,
)
from .taxonomy import (
    EventResult,
    SecurityEventType,
    Severity,
    coerce_event_type,
    coerce_result,
    default_severity,
)
from .tracing import NullTraceSink, TraceSink

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class AuthOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    LOGOUT = "logout"


class AttackKind(str, Enum):
    SQL = "sql"
    XSS = "xss"
    CSRF = "csrf"
    PATH_TRAVERSAL = "path-traversal"
    BRUTE_FORCE = "brute-force"
    SESSION_HIJACK = "session-hijack"


_AUTH_EVENT_TYPES = {
    AuthOutcome.SUCCESS: SecurityEventType.AUTH_SUCCESS,
    AuthOutcome.FAILURE: SecurityEventType.AUTH_FAILURE,
    AuthOutcome.LOGOUT: SecurityEventType.AUTH_LOGOUT,
}

_ATTACK_EVENT_TYPES = {
    AttackKind.SQL: SecurityEventType.SQL_INJECTION_ATTEMPT,
    AttackKind.XSS: SecurityEventType.XSS_ATTEMPT,
    AttackKind.CSRF: SecurityEventType.CSRF_ATTEMPT,
    AttackKind.PATH_TRAVERSAL: SecurityEventType.PATH_TRAVERSAL_ATTEMPT,
    AttackKind.BRUTE_FORCE: SecurityEventType.BRUTE_FORCE_ATTEMPT,
    AttackKind.SESSION_HIJACK: SecurityEventType.SESSION_HIJACK_ATTEMPT,
}


class SecurityAuditLogger:
    """
    Security audit logger with threat detection and alerting.

    Features:
    - Taxonomy-driven severity with per-event override
    - Minimum log level gate
    - Correlation ids, optional anonymisation of user id and IP
    - Heuristic threat scoring against recent history
    - Bounded in-memory history with filtered queries
    - Threshold-based alert dispatch to external channels
    - Compliance reporting

    ``log()`` never raises for well-typed input and never waits for alert
    delivery; ``alog()`` runs the same pipeline and awaits delivery.
    """

    def __init__(
        self,
        config: Union[AuditLogConfig, Mapping[str, Any], None] = None,
        store: Optional[AuditEventStore] = None,
        detector: Optional[ThreatDetector] = None,
        sender: Optional[AlertSender] = None,
        trace_sink: Optional[TraceSink] = None,
        persistence: Optional[EventPersistence] = None,
        reporter: Optional[ComplianceReporter] = None,
        clock: Optional[Callable[[], int]] = None,
        threat_detection: bool = True,
    ):
        """
        Initialize the audit logger.

        Args:
            config: AuditLogConfig or a mapping accepted by
                ``AuditLogConfig.from_dict`` (default config when omitted)
            store: Shared event store (a private one sized by
                ``config.max_events`` when omitted)
            detector: Threat detector (default rules when omitted)
            sender: External alert sender (log-only when omitted)
            trace_sink: Receives every stored event (no-op when omitted)
            persistence: External storage collaborator for non-memory
                ``config.storage`` backends
            reporter: Compliance reporter (24 h window when omitted)
            clock: Returns "now" in epoch milliseconds
            threat_detection: Set False to skip threat scoring

        Raises:
            ConfigurationError: if ``config`` is invalid
        """
        if config is None:
            config = AuditLogConfig()
        elif not isinstance(config, AuditLogConfig):
            config = AuditLogConfig.from_dict(config)
        self.config = config

        self._clock = clock or _now_ms
        self.store = store if store is not None else AuditEventStore(max_size=config.max_events)
        self.detector: Optional[ThreatDetector] = None
        if threat_detection:
            self.detector = detector or ThreatDetector()
        self.anonymizer = Anonymizer(config.anonymization_salt)
        self.alerts = AlertProcessor(
            self.store, config.alerting, sender=sender, clock=self._clock
        )
        self.trace_sink = trace_sink or NullTraceSink()
        self.persistence = persistence
        self.reporter = reporter or ComplianceReporter()

        if config.storage != StorageBackend.MEMORY and persistence is None:
            logger.warning(
                "Storage backend %r configured without a persistence "
                "collaborator; events are kept in memory only",
                config.storage.value,
            )

    # ------------------------------------------------------------------
    # Logging pipeline
    # ------------------------------------------------------------------

    def log(self, event: Union[EventDraft, Mapping[str, Any]]) -> Optional[SecurityEvent]:
        """
        Record a security event.

        Args:
            event: EventDraft, or a plain mapping from an untyped
                integration (see ``EventDraft.from_dict``)

        Returns:
            The stored SecurityEvent, or None if the event was dropped
            (logger disabled, below ``log_level``, or unusable input)
        """
        try:
            stored = self._record(event)
        except Exception:
            logger.exception("Security audit logging failed")
            return None
        if stored is None:
            return None

        try:
            batch = self.alerts.evaluate()
            if batch is not None:
                self.alerts.schedule(batch)
        except Exception:
            logger.exception("Alert evaluation failed for event %s", stored.id)
        self._trace(stored)
        return stored

    async def alog(self, event: Union[EventDraft, Mapping[str, Any]]) -> Optional[SecurityEvent]:
        """Same as ``log`` but awaits alert dispatch before returning."""
        try:
            stored = self._record(event)
        except Exception:
            logger.exception("Security audit logging failed")
            return None
        if stored is None:
            return None

        try:
            batch: Optional[AlertBatch] = self.alerts.evaluate()
            if batch is not None:
                await self.alerts.dispatch(batch)
        except Exception:
            logger.exception("Alert evaluation failed for event %s", stored.id)
        self._trace(stored)
        return stored

    def _record(self, event: Union[EventDraft, Mapping[str, Any]]) -> Optional[SecurityEvent]:
        """Run the pipeline up to and including the store write."""
        if not self.config.enabled:
            return None

        if isinstance(event, Mapping):
            draft = EventDraft.from_dict(event)
        elif isinstance(event, EventDraft):
            draft = event
        else:
            logger.warning("Ignoring audit event of unsupported type %s", type(event).__name__)
            return None

        notes = []
        event_type, note = coerce_event_type(draft.type)
        if note:
            notes.append(note)
        result, note = coerce_result(draft.result)
        if note:
            notes.append(note)

        severity = default_severity(event_type)
        if draft.severity is not None:
            try:
                severity = Severity.parse(draft.severity)
            except ValueError:
                notes.append(f"unrecognized severity: {draft.severity!r}")

        if not severity.at_least(self.config.log_level):
            return None

        metadata: Dict[str, Any] = dict(draft.metadata or {})
        if notes:
            metadata["coercion_notes"] = "; ".join(
                filter(None, [metadata.get("coercion_notes")] + notes)
            )

        user_id = draft.user_id
        ip_address = draft.ip_address
        if self.config.anonymization:
            user_id = self.anonymizer.hash_user_id(user_id)
            ip_address = self.anonymizer.anonymize_ip(ip_address)

        now = self._clock()
        enriched = SecurityEvent(
            id=self._generate_event_id(now),
            timestamp=now,
            type=event_type,
            severity=severity,
            result=result,
            message=draft.message or f"{event_type.value} ({result.value})",
            correlation_id=draft.correlation_id or self._generate_correlation_id(),
            user_id=user_id,
            session_id=draft.session_id,
            ip_address=ip_address,
            user_agent=draft.user_agent,
            resource=draft.resource,
            action=draft.action,
            metadata=sanitize_metadata(metadata),
            stack_trace=draft.stack_trace,
        )

        threat = self._detect(enriched)
        if threat is not None:
            enriched = replace(enriched, threat=threat)

        self.store.add(enriched)
        self._persist(enriched)
        return enriched

    def _detect(self, event: SecurityEvent):
        if self.detector is None:
            return None
        try:
            return self.detector.detect(event, self.store)
        except Exception:
            logger.warning("Threat detection failed for event %s", event.id, exc_info=True)
            return None

    def _persist(self, event: SecurityEvent) -> None:
        if self.persistence is None or self.config.storage == StorageBackend.MEMORY:
            return
        try:
            self.persistence.persist(event, encrypt=self.config.encryption)
        except Exception:
            logger.warning(
                "Persistence backend %r failed for event %s",
                self.config.storage.value, event.id, exc_info=True,
            )

    def _trace(self, event: SecurityEvent) -> None:
        try:
            self.trace_sink.emit(event)
        except Exception:
            logger.debug("Trace sink failed for event %s", event.id, exc_info=True)

    @staticmethod
    def _generate_event_id(now: int) -> str:
        return f"evt_{now}_{secrets.token_hex(6)}"

    @staticmethod
    def _generate_correlation_id() -> str:
        return f"cor_{secrets.token_hex(8)}"

    # ------------------------------------------------------------------
    # Convenience wrappers
    # ------------------------------------------------------------------

    @staticmethod
    def _auth_draft(
        outcome: Union[AuthOutcome, str],
        user_id: Optional[str],
        metadata: Optional[Dict[str, Any]],
        context: Optional[ActorContext],
    ) -> EventDraft:
        try:
            outcome = AuthOutcome(outcome)
        except ValueError:
            return EventDraft.from_dict({
                "type": f"AUTH_{str(outcome).upper()}",
                "user_id": user_id,
                "metadata": metadata,
            }).with_context(context)

        return EventDraft(
            type=_AUTH_EVENT_TYPES[outcome],
            user_id=user_id,
            result=EventResult.FAILURE if outcome == AuthOutcome.FAILURE else EventResult.SUCCESS,
            message=f"Authentication {outcome.value} for user {user_id or 'unknown'}",
            metadata=metadata,
        ).with_context(context)

    @staticmethod
    def _access_draft(
        granted: bool,
        resource: str,
        action: str,
        user_id: Optional[str],
        reason: Optional[str],
        context: Optional[ActorContext],
    ) -> EventDraft:
        return EventDraft(
            type=SecurityEventType.ACCESS_GRANTED if granted else SecurityEventType.ACCESS_DENIED,
            user_id=user_id,
            resource=resource,
            action=action,
            result=EventResult.SUCCESS if granted else EventResult.FAILURE,
            message=f"{action} access to {resource} {'granted' if granted else 'denied'}",
            metadata={"reason": reason},
        ).with_context(context)

    @staticmethod
    def _attack_draft(
        kind: Union[AttackKind, str],
        details: Optional[Mapping[str, Any]],
        context: Optional[ActorContext],
    ) -> EventDraft:
        details = dict(details or {})
        metadata = {
            "payload": details.get("payload"),
            "source": details.get("source"),
            "target": details.get("target"),
        }
        try:
            kind = AttackKind(kind)
            event_type: Union[SecurityEventType, str] = _ATTACK_EVENT_TYPES[kind]
            label = kind.value
        except ValueError:
            event_type = str(kind)
            label = str(kind)

        return EventDraft(
            type=event_type,
            user_id=details.get("user_id", details.get("userId")),
            ip_address=details.get("ip_address", details.get("ipAddress")),
            result=EventResult.FAILURE,
            message=f"{label.upper()} attack attempt detected",
            metadata=metadata,
        ).with_context(context)

    def log_auth(
        self,
        outcome: Union[AuthOutcome, str],
        user_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        context: Optional[ActorContext] = None,
    ) -> Optional[SecurityEvent]:
        """Log an authentication success, failure or logout."""
        return self.log(self._auth_draft(outcome, user_id, metadata, context))

    def log_access(
        self,
        granted: bool,
        resource: str,
        action: str,
        user_id: Optional[str] = None,
        reason: Optional[str] = None,
        context: Optional[ActorContext] = None,
    ) -> Optional[SecurityEvent]:
        """Log an access-control decision."""
        return self.log(self._access_draft(granted, resource, action, user_id, reason, context))

    def log_attack(
        self,
        kind: Union[AttackKind, str],
        details: Optional[Mapping[str, Any]] = None,
        context: Optional[ActorContext] = None,
    ) -> Optional[SecurityEvent]:
        """
        Log an attack attempt.

        Args:
            kind: sql, xss, csrf, path-traversal, brute-force, session-hijack
            details: Optional payload, source, target, user_id, ip_address
        """
        return self.log(self._attack_draft(kind, details, context))

    async def alog_auth(
        self,
        outcome: Union[AuthOutcome, str],
        user_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        context: Optional[ActorContext] = None,
    ) -> Optional[SecurityEvent]:
        """``log_auth`` that awaits alert dispatch."""
        return await self.alog(self._auth_draft(outcome, user_id, metadata, context))

    async def alog_access(
        self,
        granted: bool,
        resource: str,
        action: str,
        user_id: Optional[str] = None,
        reason: Optional[str] = None,
        context: Optional[ActorContext] = None,
    ) -> Optional[SecurityEvent]:
        """``log_access`` that awaits alert dispatch."""
        return await self.alog(self._access_draft(granted, resource, action, user_id, reason, context))

    async def alog_attack(
        self,
        kind: Union[AttackKind, str],
        details: Optional[Mapping[str, Any]] = None,
        context: Optional[ActorContext] = None,
    ) -> Optional[SecurityEvent]:
        """``log_attack`` that awaits alert dispatch."""
        return await self.alog(self._attack_draft(kind, details, context))

    # ------------------------------------------------------------------
    # Queries and reporting
    # ------------------------------------------------------------------

    def get_events(self, filter: Optional[EventFilter] = None, **criteria) -> list:
        """
        Query stored events.

        Pass an EventFilter, its fields as keyword arguments, or both
        (keywords override the matching filter fields)::

            audit.get_events(severity=Severity.HIGH, limit=20)
        """
        if criteria:
            filter = replace(filter, **criteria) if filter is not None else EventFilter(**criteria)
        return self.store.get_events(filter)

    def get_statistics(self) -> StoreStatistics:
        return self.store.get_statistics()

    def compliance_state(self) -> ComplianceState:
        alerting = self.config.alerting
        return ComplianceState(
            audit_logging_enabled=self.config.enabled,
            retention_days=self.config.retention_days,
            threat_detection_active=self.detector is not None,
            alerting_configured=alerting.enabled and bool(alerting.channels),
        )

    def compliance_report(self) -> ComplianceReport:
        now = self._clock()
        window = self.store.get_events(EventFilter(
            start_time=now - self.reporter.window_ms, end_time=now,
        ))
        return self.reporter.generate(
            self.store.get_statistics(), window, self.compliance_state(), now
        )

    def generate_compliance_report(self) -> str:
        """Formatted compliance report text."""
        return self.reporter.render(self.compliance_report())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def flush_alerts(self, timeout: Optional[float] = None) -> bool:
        """Wait for background alert dispatches started by ``log()``."""
        return self.alerts.flush(timeout)

    def close(self) -> None:
        """Stop background dispatch; undelivered alerts are dropped."""
        self.alerts.shutdown()
