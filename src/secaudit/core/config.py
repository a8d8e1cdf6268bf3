# Security Audit - Configuration
#
# AuditLogConfig is built once per SecurityAuditLogger and validated at
# construction time. Invalid configuration is the only error this package
# raises to its host application.

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from .exceptions import ConfigurationError
from .taxonomy import Severity


class StorageBackend(str, Enum):
    """Where events are kept. Only MEMORY is implemented in this package;
    the others are forwarded to an external persistence collaborator."""

    MEMORY = "memory"
    DATABASE = "database"
    FILE = "file"


class AlertChannel(str, Enum):
    """Alert destinations understood by external senders."""

    EMAIL = "email"
    SLACK = "slack"
    WEBHOOK = "webhook"


DEFAULT_MAX_EVENTS = 10_000
DEFAULT_RETENTION_DAYS = 90
DEFAULT_TIME_WINDOW_MS = 300_000       # 5 minutes
DEFAULT_CHANNEL_TIMEOUT = 5.0          # seconds per channel send


def _parse_severity(value: Any, name: str) -> Severity:
    try:
        return Severity.parse(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name}: {exc}") from None


def _parse_enum(enum_cls, value: Any, name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigurationError(
            f"{name}: unknown value {value!r} (expected one of: {allowed})"
        ) from None


@dataclass
class AlertThresholds:
    """Sliding-window alert threshold.

    An alert batch is dispatched when at least ``frequency`` events with
    severity >= ``severity`` were stored within the last ``time_window_ms``.
    """

    severity: Severity = Severity.HIGH
    frequency: int = 10
    time_window_ms: int = DEFAULT_TIME_WINDOW_MS

    def __post_init__(self):
        self.severity = _parse_severity(self.severity, "alerting.thresholds.severity")
        if isinstance(self.frequency, bool) or not isinstance(self.frequency, int) or self.frequency < 1:
            raise ConfigurationError(
                f"alerting.thresholds.frequency must be a positive integer, got {self.frequency!r}"
            )
        if isinstance(self.time_window_ms, bool) or not isinstance(self.time_window_ms, int) or self.time_window_ms <= 0:
            raise ConfigurationError(
                f"alerting.thresholds.time_window_ms must be a positive integer, got {self.time_window_ms!r}"
            )


@dataclass
class AlertingConfig:
    """Alert dispatch settings."""

    enabled: bool = True
    channels: List[AlertChannel] = field(default_factory=lambda: [AlertChannel.EMAIL])
    thresholds: AlertThresholds = field(default_factory=AlertThresholds)
    channel_timeout_seconds: float = DEFAULT_CHANNEL_TIMEOUT

    def __post_init__(self):
        channels: List[AlertChannel] = []
        for ch in self.channels:
            parsed = _parse_enum(AlertChannel, ch, "alerting.channels")
            if parsed not in channels:
                channels.append(parsed)
        self.channels = channels
        if self.channel_timeout_seconds <= 0:
            raise ConfigurationError(
                "alerting.channel_timeout_seconds must be positive"
            )


@dataclass
class AuditLogConfig:
    """
    Security audit configuration.

    Attributes:
        enabled: Master switch; a disabled logger drops every event
        log_level: Minimum severity that is persisted
        storage: Storage selector (only memory is implemented here)
        retention_days: Informational; purging is done by the storage backend
        encryption: Passed through to the external persistence collaborator
        anonymization: Hash user ids and mask IP addresses before storage
        anonymization_salt: Salt mixed into user-id hashes
        max_events: Ring buffer capacity
        alerting: Alert dispatch settings
    """

    enabled: bool = True
    log_level: Severity = Severity.INFO
    storage: StorageBackend = StorageBackend.MEMORY
    retention_days: int = DEFAULT_RETENTION_DAYS
    encryption: bool = False
    anonymization: bool = False
    anonymization_salt: str = ""
    max_events: int = DEFAULT_MAX_EVENTS
    alerting: AlertingConfig = field(default_factory=AlertingConfig)

    def __post_init__(self):
        self.log_level = _parse_severity(self.log_level, "log_level")
        self.storage = _parse_enum(StorageBackend, self.storage, "storage")
        if not isinstance(self.retention_days, int) or self.retention_days < 0:
            raise ConfigurationError(
                f"retention_days must be a non-negative integer, got {self.retention_days!r}"
            )
        if not isinstance(self.max_events, int) or self.max_events < 1:
            raise ConfigurationError(
                f"max_events must be a positive integer, got {self.max_events!r}"
            )

    # ------------------------------------------------------------------
    # Untyped construction
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]] = None) -> "AuditLogConfig":
        """Build a config from a (JSON-style) mapping.

        Accepts both snake_case and the camelCase keys used by web
        front-ends (``logLevel``, ``retention``, ``timeWindow``...).
        Missing keys keep their defaults.

        Raises:
            ConfigurationError: on invalid values.
        """
        data = dict(data or {})
        kwargs: Dict[str, Any] = {}

        for key, target in (
            ("enabled", "enabled"),
            ("log_level", "log_level"),
            ("logLevel", "log_level"),
            ("storage", "storage"),
            ("retention", "retention_days"),
            ("retention_days", "retention_days"),
            ("encryption", "encryption"),
            ("anonymization", "anonymization"),
            ("anonymization_salt", "anonymization_salt"),
            ("anonymizationSalt", "anonymization_salt"),
            ("max_events", "max_events"),
            ("maxEvents", "max_events"),
        ):
            if key in data:
                kwargs[target] = data[key]

        alerting = data.get("alerting")
        if alerting is not None:
            if not isinstance(alerting, Mapping):
                raise ConfigurationError("alerting must be a mapping")
            kwargs["alerting"] = _alerting_from_dict(alerting)

        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "log_level": self.log_level.value,
            "storage": self.storage.value,
            "retention_days": self.retention_days,
            "encryption": self.encryption,
            "anonymization": self.anonymization,
            "max_events": self.max_events,
            "alerting": {
                "enabled": self.alerting.enabled,
                "channels": [c.value for c in self.alerting.channels],
                "thresholds": {
                    "severity": self.alerting.thresholds.severity.value,
                    "frequency": self.alerting.thresholds.frequency,
                    "time_window_ms": self.alerting.thresholds.time_window_ms,
                },
                "channel_timeout_seconds": self.alerting.channel_timeout_seconds,
            },
        }


def _alerting_from_dict(data: Mapping[str, Any]) -> AlertingConfig:
    kwargs: Dict[str, Any] = {}
    if "enabled" in data:
        kwargs["enabled"] = data["enabled"]
    if "channels" in data:
        channels = data["channels"]
        if isinstance(channels, str) or not isinstance(channels, (list, tuple)):
            raise ConfigurationError("alerting.channels must be a list")
        kwargs["channels"] = list(channels)
    for key in ("channel_timeout_seconds", "channelTimeoutSeconds"):
        if key in data:
            kwargs["channel_timeout_seconds"] = data[key]

    thresholds = data.get("thresholds")
    if thresholds is not None:
        if not isinstance(thresholds, Mapping):
            raise ConfigurationError("alerting.thresholds must be a mapping")
        t_kwargs: Dict[str, Any] = {}
        if "severity" in thresholds:
            t_kwargs["severity"] = thresholds["severity"]
        if "frequency" in thresholds:
            t_kwargs["frequency"] = thresholds["frequency"]
        for key in ("time_window_ms", "timeWindow", "timeWindowMs"):
            if key in thresholds:
                t_kwargs["time_window_ms"] = thresholds[key]
        kwargs["thresholds"] = AlertThresholds(**t_kwargs)

    return AlertingConfig(**kwargs)
