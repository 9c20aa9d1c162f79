"""
Main FastAPI application.

WHY: This is the entry point for the administrative API. It configures
logging, middleware, routes and exception handlers.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from tenantguard.core.config import settings
from tenantguard.core.exceptions import AppException
from tenantguard.core.exception_handlers import (
    app_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    generic_exception_handler,
)
from tenantguard.core.logging import configure_logging
from tenantguard.middleware import RequestContextMiddleware
from tenantguard.api import invitations, memberships, organizations, security


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    WHY: Factory pattern allows easier testing with different configurations.

    Returns:
        Configured FastAPI application instance
    """
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Multi-tenant authorization core: organizations, memberships, audit",
        version=settings.VERSION,
        docs_url=f"{settings.API_V1_PREFIX}/docs",
        redoc_url=f"{settings.API_V1_PREFIX}/redoc",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    )

    # Register exception handlers
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Request id, client IP and user agent for logs and audit events
    app.add_middleware(RequestContextMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["health"])
    async def health_check() -> dict:
        """Liveness check; does not touch the database."""
        return {"status": "healthy", "version": settings.VERSION}

    app.include_router(organizations.router, prefix=settings.API_V1_PREFIX)
    app.include_router(memberships.router, prefix=settings.API_V1_PREFIX)
    app.include_router(invitations.organization_router, prefix=settings.API_V1_PREFIX)
    app.include_router(invitations.router, prefix=settings.API_V1_PREFIX)
    app.include_router(security.router, prefix=settings.API_V1_PREFIX)

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tenantguard.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="info" if settings.DEBUG else "warning",
    )
