# Security Audit - Threat Detector
#
# Heuristic, additive threat scoring for a single event:
#   1. Event type is an attack attempt            +50
#   2. Event severity is CRITICAL                 +40
#   3. metadata.payload looks like script content +30
#   4. metadata.payload contains path traversal   +30
#   5. >5 failures for the same user in 5 minutes +20
#
# Output: a ``ThreatIndicator`` with a score capped at 100, a risk band and
# recommendations, or ``None`` when no rule fires.

import logging
from typing import List, Optional, Tuple

from ..core.models import EventFilter, SecurityEvent, ThreatIndicator
from ..core.taxonomy import EventResult, Severity
from .event_store import AuditEventStore

logger = logging.getLogger(__name__)


# ── Rules ────────────────────────────────────────────────────────────

ATTACK_ATTEMPT = "Attack attempt detected"
CRITICAL_EVENT = "Critical security event"
SCRIPT_INJECTION = "Potential script injection"
PATH_TRAVERSAL = "Path traversal pattern"
REPEATED_FAILURES = "Multiple failed attempts"

_RULE_POINTS = {
    ATTACK_ATTEMPT: 50,
    CRITICAL_EVENT: 40,
    SCRIPT_INJECTION: 30,
    PATH_TRAVERSAL: 30,
    REPEATED_FAILURES: 20,
}

# Lower-cased substrings matched against metadata.payload
_SCRIPT_MARKERS: Tuple[str, ...] = ("script", "onerror=", "onload=", "eval(")
_TRAVERSAL_MARKERS: Tuple[str, ...] = ("../", "..\\", "..%2f", "%2e%2e/", "%2e%2e%2f")

FAILURE_WINDOW_MS = 5 * 60 * 1000
FAILURE_THRESHOLD = 5          # strictly more than this many failures fires

MAX_SCORE = 100

# Risk bands (medium, high)
_RISK_BANDS = (40, 70)

HIGH_RISK = "HIGH_RISK"
MEDIUM_RISK = "MEDIUM_RISK"
LOW_RISK = "LOW_RISK"

_RECOMMENDATIONS = {
    ATTACK_ATTEMPT: ("Block source IP temporarily", "Increase monitoring for this user"),
    SCRIPT_INJECTION: ("Review input validation", "Enable WAF rules"),
    REPEATED_FAILURES: ("Consider account lockout", "Implement CAPTCHA"),
}


def categorize_score(score: int) -> str:
    medium, high = _RISK_BANDS
    if score >= high:
        return HIGH_RISK
    if score >= medium:
        return MEDIUM_RISK
    return LOW_RISK


def recommendations_for(indicators: List[str]) -> List[str]:
    """Map fired indicators to de-duplicated recommendations, in order."""
    recs: List[str] = []
    for indicator in indicators:
        for rec in _RECOMMENDATIONS.get(indicator, ()):
            if rec not in recs:
                recs.append(rec)
    return recs


# ── ThreatDetector ───────────────────────────────────────────────────

class ThreatDetector:
    """Stateless scorer combining per-event signals with store history.

    Args:
        failure_window_ms: Look-back window for the repeated-failure rule.
        failure_threshold: Failures (including the event itself) must
            exceed this count for the rule to fire.
    """

    def __init__(
        self,
        failure_window_ms: int = FAILURE_WINDOW_MS,
        failure_threshold: int = FAILURE_THRESHOLD,
    ):
        self._failure_window_ms = failure_window_ms
        self._failure_threshold = failure_threshold

    # ------------------------------------------------------------------
    # Per-event signals
    # ------------------------------------------------------------------

    @staticmethod
    def _payload(event: SecurityEvent) -> str:
        payload = event.metadata.get("payload")
        return payload.lower() if isinstance(payload, str) else ""

    @staticmethod
    def _has_marker(text: str, markers: Tuple[str, ...]) -> bool:
        return any(m in text for m in markers)

    # ------------------------------------------------------------------
    # History signal
    # ------------------------------------------------------------------

    def _recent_failures(self, event: SecurityEvent, store: AuditEventStore) -> int:
        """Count FAILURE events for the event's user in the look-back
        window, the event itself included."""
        prior = store.get_events(EventFilter(
            user_id=event.user_id,
            result=EventResult.FAILURE,
            start_time=event.timestamp - self._failure_window_ms,
            end_time=event.timestamp,
        ))
        count = sum(1 for e in prior if e.id != event.id)
        if event.result == EventResult.FAILURE:
            count += 1
        return count

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def detect(
        self, event: SecurityEvent, store: Optional[AuditEventStore] = None
    ) -> Optional[ThreatIndicator]:
        """Score ``event``. Returns ``None`` when no rule fires."""
        indicators: List[str] = []

        if event.type.is_attack_attempt:
            indicators.append(ATTACK_ATTEMPT)

        if event.severity == Severity.CRITICAL:
            indicators.append(CRITICAL_EVENT)

        payload = self._payload(event)
        if payload:
            if self._has_marker(payload, _SCRIPT_MARKERS):
                indicators.append(SCRIPT_INJECTION)
            if self._has_marker(payload, _TRAVERSAL_MARKERS):
                indicators.append(PATH_TRAVERSAL)

        # Failures are only attributable when the event names a user
        if store is not None and event.user_id:
            try:
                if self._recent_failures(event, store) > self._failure_threshold:
                    indicators.append(REPEATED_FAILURES)
            except Exception:
                logger.warning(
                    "Failure-history query failed for event %s; skipping rule",
                    event.id, exc_info=True,
                )

        score = sum(_RULE_POINTS[i] for i in indicators)
        if score == 0:
            return None

        score = min(MAX_SCORE, score)
        return ThreatIndicator(
            score=score,
            category=categorize_score(score),
            indicators=tuple(indicators),
            recommendations=tuple(recommendations_for(indicators)),
        )
