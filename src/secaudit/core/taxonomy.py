# Security Audit - Event Taxonomy
#
# Closed set of security event types and the default severity each one
# carries. Severity is a totally ordered enum so "minimum severity" and
# "at least X" checks never depend on string comparison.

from enum import Enum
from typing import Dict, Optional, Tuple


class Severity(str, Enum):
    """
    Criticality tier attached to every stored event.

    Ordering: CRITICAL > HIGH > MEDIUM > LOW > INFO
    """
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    INFO = "INFO"

    @property
    def rank(self) -> int:
        """Numeric rank for ordering (higher = worse)."""
        return SEVERITY_RANK[self]

    def at_least(self, other: "Severity") -> bool:
        """True if this severity is the same as or worse than ``other``."""
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value) -> "Severity":
        """Accept a Severity or its (case-insensitive) name.

        Raises:
            ValueError: if the value is not a known severity.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown severity: {value!r}") from None


SEVERITY_RANK: Dict[Severity, int] = {
    Severity.INFO: 0,
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}

# Display order for tables and statistics (worst first)
SEVERITY_ORDER: Tuple[Severity, ...] = (
    Severity.CRITICAL,
    Severity.HIGH,
    Severity.MEDIUM,
    Severity.LOW,
    Severity.INFO,
)


class EventResult(str, Enum):
    """Outcome of the operation an event describes."""
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    ERROR = "ERROR"


class SecurityEventType(str, Enum):
    """Types of security events that can be audited."""
    # Authentication
    AUTH_SUCCESS = "AUTH_SUCCESS"
    AUTH_FAILURE = "AUTH_FAILURE"
    AUTH_LOGOUT = "AUTH_LOGOUT"
    AUTH_TOKEN_REFRESH = "AUTH_TOKEN_REFRESH"
    AUTH_PASSWORD_CHANGE = "AUTH_PASSWORD_CHANGE"
    AUTH_2FA_ENABLED = "AUTH_2FA_ENABLED"
    AUTH_2FA_DISABLED = "AUTH_2FA_DISABLED"

    # Access control
    ACCESS_GRANTED = "ACCESS_GRANTED"
    ACCESS_DENIED = "ACCESS_DENIED"
    PERMISSION_VIOLATION = "PERMISSION_VIOLATION"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    SUSPICIOUS_ACTIVITY = "SUSPICIOUS_ACTIVITY"

    # Attack attempts
    SQL_INJECTION_ATTEMPT = "SQL_INJECTION_ATTEMPT"
    XSS_ATTEMPT = "XSS_ATTEMPT"
    CSRF_ATTEMPT = "CSRF_ATTEMPT"
    PATH_TRAVERSAL_ATTEMPT = "PATH_TRAVERSAL_ATTEMPT"
    SESSION_HIJACK_ATTEMPT = "SESSION_HIJACK_ATTEMPT"
    BRUTE_FORCE_ATTEMPT = "BRUTE_FORCE_ATTEMPT"

    # Data operations
    DATA_EXPORT = "DATA_EXPORT"
    DATA_IMPORT = "DATA_IMPORT"
    DATA_DELETION = "DATA_DELETION"

    # Configuration and scanning
    CONFIGURATION_CHANGE = "CONFIGURATION_CHANGE"
    SECURITY_SCAN = "SECURITY_SCAN"
    VULNERABILITY_DETECTED = "VULNERABILITY_DETECTED"
    ENCRYPTION_ERROR = "ENCRYPTION_ERROR"

    # Keys and webhooks
    API_KEY_CREATED = "API_KEY_CREATED"
    API_KEY_REVOKED = "API_KEY_REVOKED"
    WEBHOOK_REGISTERED = "WEBHOOK_REGISTERED"
    WEBHOOK_FAILED = "WEBHOOK_FAILED"

    # Coercion target for types arriving from untyped integrations
    UNRECOGNIZED = "UNRECOGNIZED"

    @property
    def is_attack_attempt(self) -> bool:
        return self.value.endswith("_ATTEMPT")


EVENT_SEVERITY: Dict[SecurityEventType, Severity] = {
    SecurityEventType.AUTH_SUCCESS: Severity.INFO,
    SecurityEventType.AUTH_FAILURE: Severity.MEDIUM,
    SecurityEventType.AUTH_LOGOUT: Severity.INFO,
    SecurityEventType.AUTH_TOKEN_REFRESH: Severity.INFO,
    SecurityEventType.AUTH_PASSWORD_CHANGE: Severity.MEDIUM,
    SecurityEventType.AUTH_2FA_ENABLED: Severity.INFO,
    SecurityEventType.AUTH_2FA_DISABLED: Severity.MEDIUM,
    SecurityEventType.ACCESS_GRANTED: Severity.INFO,
    SecurityEventType.ACCESS_DENIED: Severity.MEDIUM,
    SecurityEventType.PERMISSION_VIOLATION: Severity.HIGH,
    SecurityEventType.RATE_LIMIT_EXCEEDED: Severity.MEDIUM,
    SecurityEventType.SUSPICIOUS_ACTIVITY: Severity.HIGH,
    SecurityEventType.SQL_INJECTION_ATTEMPT: Severity.CRITICAL,
    SecurityEventType.XSS_ATTEMPT: Severity.CRITICAL,
    SecurityEventType.CSRF_ATTEMPT: Severity.CRITICAL,
    SecurityEventType.PATH_TRAVERSAL_ATTEMPT: Severity.CRITICAL,
    SecurityEventType.SESSION_HIJACK_ATTEMPT: Severity.CRITICAL,
    SecurityEventType.BRUTE_FORCE_ATTEMPT: Severity.HIGH,
    SecurityEventType.DATA_EXPORT: Severity.MEDIUM,
    SecurityEventType.DATA_IMPORT: Severity.MEDIUM,
    SecurityEventType.DATA_DELETION: Severity.HIGH,
    SecurityEventType.CONFIGURATION_CHANGE: Severity.MEDIUM,
    SecurityEventType.SECURITY_SCAN: Severity.INFO,
    SecurityEventType.VULNERABILITY_DETECTED: Severity.CRITICAL,
    SecurityEventType.ENCRYPTION_ERROR: Severity.HIGH,
    SecurityEventType.API_KEY_CREATED: Severity.MEDIUM,
    SecurityEventType.API_KEY_REVOKED: Severity.MEDIUM,
    SecurityEventType.WEBHOOK_REGISTERED: Severity.LOW,
    SecurityEventType.WEBHOOK_FAILED: Severity.MEDIUM,
    SecurityEventType.UNRECOGNIZED: Severity.MEDIUM,
}


def default_severity(event_type: SecurityEventType) -> Severity:
    """Default severity for an event type."""
    return EVENT_SEVERITY[event_type]


def coerce_event_type(raw) -> Tuple[SecurityEventType, Optional[str]]:
    """Map a loosely typed value onto the closed event-type set.

    Unknown or malformed values become ``UNRECOGNIZED`` together with a
    note describing what was received; they are never dropped.
    """
    if isinstance(raw, SecurityEventType):
        return raw, None
    if isinstance(raw, str):
        try:
            return SecurityEventType(raw.strip().upper()), None
        except ValueError:
            pass
    return SecurityEventType.UNRECOGNIZED, f"unrecognized event type: {raw!r}"


def coerce_result(raw) -> Tuple[EventResult, Optional[str]]:
    """Same as ``coerce_event_type`` for results; unknown values become ERROR."""
    if isinstance(raw, EventResult):
        return raw, None
    if isinstance(raw, str):
        try:
            return EventResult(raw.strip().upper()), None
        except ValueError:
            pass
    return EventResult.ERROR, f"unrecognized result: {raw!r}"
