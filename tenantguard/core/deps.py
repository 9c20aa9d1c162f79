"""
FastAPI dependencies for authentication.

WHY: Every admin API route needs the acting principal. Resolving it in
one dependency keeps token handling in a single place and binds the
principal to the request context so log lines and audit events pick it
up without threading it through every call.
"""

from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from tenantguard.core.auth import resolve_principal
from tenantguard.core.exceptions import AuthenticationRequired
from tenantguard.middleware.request_context import bind_principal


# auto_error=False so a missing header is rendered by our own 401 handler
security = HTTPBearer(auto_error=False)


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Resolve the acting principal from the identity provider token.

    Usage:
        @router.get("/organizations")
        async def list_orgs(principal: str = Depends(get_current_principal)):
            ...

    Returns:
        Opaque principal identifier

    Raises:
        AuthenticationRequired: If no token is supplied or it does not verify
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationRequired()

    principal = resolve_principal(credentials.credentials)
    bind_principal(principal)
    return principal

