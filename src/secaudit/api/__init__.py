# Security Audit - Web integration
#
# Request-context extraction and a read-only FastAPI router over a
# SecurityAuditLogger.

from .context import extract_security_context
from .routes import build_audit_router

__all__ = [
    "extract_security_context",
    "build_audit_router",
]
