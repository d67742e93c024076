"""
Audit context utilities for extracting request metadata.

Provides a helper for extracting the audit-relevant information (who acted,
from which address, with which client) from FastAPI requests.
"""

from fastapi import Request

from app.core.security import Principal
from app.services.audit_service import AuditContext

USER_AGENT_MAX_LENGTH = 512


def extract_audit_context(request: Request, principal: Principal) -> AuditContext:
    """
    Extract audit context from FastAPI request and the authenticated caller.

    Args:
        request: FastAPI Request object
        principal: The verified caller

    Returns:
        AuditContext with actor_id, ip_address and user_agent
    """
    # Extract IP address (handle proxies)
    ip_address = None
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        # Take the first IP in the chain (original client)
        ip_address = forwarded_for.split(",")[0].strip()
    elif request.client:
        ip_address = request.client.host

    # Extract user agent (limit length for storage)
    user_agent = request.headers.get("user-agent", "")[:USER_AGENT_MAX_LENGTH] or None

    return AuditContext(
        actor_id=principal.subject,
        ip_address=ip_address,
        user_agent=user_agent,
    )
