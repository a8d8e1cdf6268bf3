# Security Audit - REST API Routes
#
#   GET /api/security-audit/events            : filtered event history
#   GET /api/security-audit/statistics        : counts by severity/type
#   GET /api/security-audit/compliance-report : text + structured report
#
# Read-only. The router is built around an explicit SecurityAuditLogger so
# the host decides which logger (and store) it exposes; auth dependencies
# are supplied by the host as well.

from typing import Optional, Sequence

from fastapi import APIRouter, HTTPException, Query
from fastapi.params import Depends

from ..core.audit_log import SecurityAuditLogger
from ..core.models import EventFilter
from ..core.taxonomy import EventResult, SecurityEventType, Severity

MAX_PAGE = 1000


def _parse_or_422(parser, value, name):
    try:
        return parser(value)
    except ValueError:
        raise HTTPException(
            status_code=422,
            detail=f"Invalid {name}: {value!r}",
        ) from None


def _event_type(value: str) -> SecurityEventType:
    return SecurityEventType(value.strip().upper())


def _result(value: str) -> EventResult:
    return EventResult(value.strip().upper())


def build_audit_router(
    audit_logger: SecurityAuditLogger,
    dependencies: Optional[Sequence[Depends]] = None,
) -> APIRouter:
    """Create the security-audit router bound to ``audit_logger``.

    Args:
        audit_logger: Logger whose store is queried.
        dependencies: Route dependencies (e.g. session-token checks)
            applied to every endpoint.
    """
    router = APIRouter(
        prefix="/api/security-audit",
        tags=["security-audit"],
        dependencies=list(dependencies or []),
    )

    @router.get("/events")
    async def get_events(
        type: Optional[str] = Query(None, description="Exact event type"),
        severity: Optional[str] = Query(None, description="Minimum severity"),
        user_id: Optional[str] = None,
        result: Optional[str] = None,
        start_time: Optional[int] = Query(None, description="Epoch ms, inclusive"),
        end_time: Optional[int] = Query(None, description="Epoch ms, inclusive"),
        limit: int = Query(100, ge=1, le=MAX_PAGE),
    ):
        """Return stored events matching the query, oldest first."""
        event_filter = EventFilter(
            type=_parse_or_422(_event_type, type, "type") if type else None,
            severity=_parse_or_422(Severity.parse, severity, "severity") if severity else None,
            user_id=user_id,
            result=_parse_or_422(_result, result, "result") if result else None,
            start_time=start_time,
            end_time=end_time,
            limit=limit,
        )
        events = audit_logger.get_events(event_filter)
        return {
            "events": [e.to_dict() for e in events],
            "count": len(events),
        }

    @router.get("/statistics")
    async def get_statistics():
        """Return counts by severity and type plus recent threats."""
        return audit_logger.get_statistics().to_dict()

    @router.get("/compliance-report")
    async def get_compliance_report():
        """Return the compliance report as structured data and text."""
        report = audit_logger.compliance_report()
        return {
            "report": report.to_dict(),
            "text": audit_logger.reporter.render(report),
        }

    return router
