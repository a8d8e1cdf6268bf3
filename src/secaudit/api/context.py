# Security Audit - Request Context
#
# Pulls actor information out of an incoming HTTP request so route
# handlers can attach it to audit events:
#   x-user-id header        -> user_id
#   "session" cookie        -> session_id
#   x-forwarded-for (first) -> ip_address, else x-real-ip, else peer
#   user-agent header       -> user_agent

from typing import Optional

from fastapi import Request

from ..core.models import ActorContext


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client is not None:
        return request.client.host
    return None


def extract_security_context(request: Request) -> ActorContext:
    """Build an ActorContext from request headers and cookies."""
    return ActorContext(
        user_id=request.headers.get("x-user-id") or None,
        session_id=request.cookies.get("session") or None,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent") or None,
    )
