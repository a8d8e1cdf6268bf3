# Security Audit - Compliance Report
#
# Builds an audit-health snapshot from store statistics and the events of
# the reporting window, then renders it as a fixed-width text table.
# Both steps are pure: the same inputs always give the same report.

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence, Tuple

from ..core.models import SecurityEvent, StoreStatistics
from ..core.taxonomy import SEVERITY_ORDER, Severity

DAY_MS = 24 * 60 * 60 * 1000
BAR_WIDTH = 40
TOP_TYPES = 5
RECENT_THREATS_SHOWN = 3
REPORT_WIDTH = 80

PASS = "PASS"
FAIL = "FAIL"


def format_timestamp(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime(
        "%Y-%m-%d %H:%M:%S UTC"
    )


def _format_window(ms: int) -> str:
    seconds = ms // 1000
    if seconds >= 86400 and seconds % 86400 == 0:
        days = seconds // 86400
        return "Last 24 Hours" if days == 1 else f"Last {days} Days"
    if seconds >= 3600:
        return f"Last {seconds // 3600} Hours"
    return f"Last {max(1, seconds // 60)} Minutes"


# ── Report model ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class ComplianceState:
    """Current subsystem state evaluated by the checklist."""

    audit_logging_enabled: bool
    retention_days: int
    threat_detection_active: bool
    alerting_configured: bool


@dataclass
class SeverityRow:
    severity: Severity
    count: int
    percentage: float
    bar: str


@dataclass
class ChecklistItem:
    name: str
    passed: bool
    detail: str

    @property
    def status(self) -> str:
        return PASS if self.passed else FAIL


@dataclass
class ComplianceReport:
    generated_at: int
    window_ms: int
    total_events: int
    window_event_count: int
    critical_events: int
    severity_distribution: List[SeverityRow] = field(default_factory=list)
    top_event_types: List[Tuple[str, int]] = field(default_factory=list)
    recent_threats: List[SecurityEvent] = field(default_factory=list)
    checklist: List[ChecklistItem] = field(default_factory=list)

    @property
    def critical_status(self) -> str:
        return FAIL if self.critical_events > 0 else PASS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at,
            "window_ms": self.window_ms,
            "total_events": self.total_events,
            "window_event_count": self.window_event_count,
            "critical_events": self.critical_events,
            "critical_status": self.critical_status,
            "severity_distribution": [
                {
                    "severity": row.severity.value,
                    "count": row.count,
                    "percentage": row.percentage,
                }
                for row in self.severity_distribution
            ],
            "top_event_types": [
                {"type": t, "count": n} for t, n in self.top_event_types
            ],
            "recent_threats": [
                {
                    "timestamp": e.timestamp,
                    "type": e.type.value,
                    "severity": e.severity.value,
                }
                for e in self.recent_threats
            ],
            "checklist": [
                {"name": c.name, "status": c.status, "detail": c.detail}
                for c in self.checklist
            ],
        }


# ── Reporter ─────────────────────────────────────────────────────────

class ComplianceReporter:
    """Pure report builder.

    Args:
        window_ms: Length of the reporting window (default 24 h).
        bar_width: Width of the severity distribution bars.
    """

    def __init__(self, window_ms: int = DAY_MS, bar_width: int = BAR_WIDTH):
        self.window_ms = window_ms
        self.bar_width = bar_width

    def _distribution(self, stats: StoreStatistics) -> List[SeverityRow]:
        counts = [stats.by_severity.get(s, 0) for s in SEVERITY_ORDER]
        max_count = max(counts) if counts else 0
        rows = []
        for severity, count in zip(SEVERITY_ORDER, counts):
            pct = round(count / stats.total * 100, 1) if stats.total else 0.0
            filled = (count * self.bar_width) // max_count if max_count else 0
            rows.append(SeverityRow(
                severity=severity,
                count=count,
                percentage=pct,
                bar="█" * filled + "░" * (self.bar_width - filled),
            ))
        return rows

    @staticmethod
    def _top_types(stats: StoreStatistics) -> List[Tuple[str, int]]:
        ranked = sorted(
            ((t.value, n) for t, n in stats.by_type.items()),
            key=lambda item: (-item[1], item[0]),
        )
        return ranked[:TOP_TYPES]

    def generate(
        self,
        stats: StoreStatistics,
        window_events: Sequence[SecurityEvent],
        state: ComplianceState,
        now: int,
    ) -> ComplianceReport:
        """Build the report for ``window_events`` (the events of the
        reporting window ending at ``now``)."""
        critical = sum(1 for e in window_events if e.severity == Severity.CRITICAL)

        # Newest first
        recent = list(reversed(stats.recent_threats[-RECENT_THREATS_SHOWN:]))

        checklist = [
            ChecklistItem(
                "Audit Logging",
                state.audit_logging_enabled,
                "ENABLED" if state.audit_logging_enabled else "DISABLED",
            ),
            ChecklistItem(
                "Event Retention",
                state.retention_days > 0,
                f"{state.retention_days} days" if state.retention_days > 0 else "NOT CONFIGURED",
            ),
            ChecklistItem(
                "Critical Events",
                critical == 0,
                "NONE DETECTED" if critical == 0 else f"{critical} REQUIRE REVIEW",
            ),
            ChecklistItem(
                "Threat Detection",
                state.threat_detection_active,
                "ACTIVE" if state.threat_detection_active else "INACTIVE",
            ),
            ChecklistItem(
                "Alerting System",
                state.alerting_configured,
                "CONFIGURED" if state.alerting_configured else "NOT CONFIGURED",
            ),
        ]

        return ComplianceReport(
            generated_at=now,
            window_ms=self.window_ms,
            total_events=stats.total,
            window_event_count=len(window_events),
            critical_events=critical,
            severity_distribution=self._distribution(stats),
            top_event_types=self._top_types(stats),
            recent_threats=recent,
            checklist=checklist,
        )

    # ------------------------------------------------------------------
    # Text rendering
    # ------------------------------------------------------------------

    def render(self, report: ComplianceReport) -> str:
        inner = REPORT_WIDTH - 2

        def line(text: str = "") -> str:
            return "│  " + text.ljust(inner - 2) + "│"

        rule = "├" + "─" * inner + "┤"

        out = [
            "┌" + "─" * inner + "┐",
            "│" + "SECURITY COMPLIANCE AUDIT REPORT".center(inner) + "│",
            rule,
            line(f"Generated: {format_timestamp(report.generated_at)}"),
            line(f"Reporting Period: {_format_window(report.window_ms)}"),
            rule,
            line("EXECUTIVE SUMMARY"),
            rule,
            line(f"Total Security Events: {report.total_events}"),
            line(f"Events in Reporting Period: {report.window_event_count}"),
            line(
                f"Critical Events: {report.critical_events} "
                f"[{report.critical_status}]"
                + (" ATTENTION REQUIRED" if report.critical_events else "")
            ),
            rule,
            line("EVENTS BY SEVERITY"),
            rule,
        ]

        for row in report.severity_distribution:
            out.append(line(
                f"{row.severity.value:<8} │ {row.bar} │ "
                f"{row.count:>5} ({row.percentage:.1f}%)"
            ))

        out += [rule, line("TOP SECURITY EVENT TYPES"), rule]
        if report.top_event_types:
            for event_type, count in report.top_event_types:
                out.append(line(f"{event_type:<30} │ {count:>10} events"))
        else:
            out.append(line("No events recorded"))

        if report.recent_threats:
            out += [rule, line("RECENT THREATS DETECTED"), rule]
            for event in report.recent_threats:
                out.append(line(
                    f"{format_timestamp(event.timestamp)} - "
                    f"{event.type.value:<28} [{event.severity.value}]"
                ))

        out += [rule, line("COMPLIANCE STATUS"), rule]
        for item in report.checklist:
            out.append(line(f"[{item.status}] {item.name}: {item.detail}"))
        out.append("└" + "─" * inner + "┘")

        return "\n".join(out)
