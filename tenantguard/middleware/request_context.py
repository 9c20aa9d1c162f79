"""
Request context middleware.

WHAT: Captures request id, client IP and user agent for every request and
exposes them through a ContextVar.

WHY: Audit events record where a privileged action came from, and every
log line carries the request id. Services and DAOs read the context
without being handed the request object.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, replace
from typing import Callable, Iterator, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


REQUEST_ID_HEADER = "X-Request-ID"


@dataclass(frozen=True)
class RequestContext:
    """
    Request-scoped context data.

    Fields:
    - request_id: correlation id (taken from X-Request-ID when supplied)
    - ip_address: client IP, honouring proxy headers
    - user_agent: client User-Agent header
    - path / method: request line, for log lines
    - principal: resolved principal once authentication succeeded
    """

    request_id: str
    ip_address: Optional[str]
    user_agent: Optional[str]
    path: str = ""
    method: str = ""
    principal: Optional[str] = None


_request_context: ContextVar[Optional[RequestContext]] = ContextVar(
    "request_context", default=None
)


def get_request_context() -> Optional[RequestContext]:
    """Return the current request context, or None outside a request."""
    return _request_context.get()


def bind_principal(principal: str) -> None:
    """
    Attach the authenticated principal to the current request context.

    No-op outside a request.
    """
    ctx = _request_context.get()
    if ctx is not None:
        _request_context.set(replace(ctx, principal=principal))


@contextmanager
def request_context_scope(context: RequestContext) -> Iterator[RequestContext]:
    """
    Install a context for code running outside the HTTP stack.

    Administrative scripts use this so their audit events carry a request
    id and origin just like API calls do.
    """
    token = _request_context.set(context)
    try:
        yield context
    finally:
        _request_context.reset(token)


def get_client_ip(request: Request) -> Optional[str]:
    """
    Extract the client IP address from a request.

    Checks X-Real-IP, then the first hop of X-Forwarded-For, then the
    socket peer. These headers are only trustworthy behind a proxy that
    overwrites them.
    """
    x_real_ip = request.headers.get("X-Real-IP")
    if x_real_ip:
        return x_real_ip.strip()

    x_forwarded_for = request.headers.get("X-Forwarded-For")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()

    if request.client and request.client.host:
        return request.client.host

    return None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware that stores a RequestContext for the lifetime of a request.

    The context is set on request.state (for handlers) and in the
    ContextVar (for services), and the request id is echoed back in the
    X-Request-ID response header.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        context = RequestContext(
            request_id=request_id,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
            path=request.url.path,
            method=request.method,
        )
        request.state.context = context
        token = _request_context.set(context)

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            _request_context.reset(token)
