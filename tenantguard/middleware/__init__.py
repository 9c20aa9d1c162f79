"""
Middleware package.

Request context capture for audit events and log correlation.
"""

from tenantguard.middleware.request_context import (
    RequestContextMiddleware,
    RequestContext,
    bind_principal,
    get_client_ip,
    get_request_context,
    request_context_scope,
)

__all__ = [
    "RequestContextMiddleware",
    "RequestContext",
    "bind_principal",
    "get_client_ip",
    "get_request_context",
    "request_context_scope",
]
