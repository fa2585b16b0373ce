"""
Keystone Access - Main Application Entry Point
Multi-tenant authorization, entitlement and hierarchy service
"""

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import structlog

from keystone.core.config import get_settings
from keystone.core.errors import (
    AuthenticationAbsent,
    AuthorizationDenied,
    CommandParseError,
    InvariantViolation,
    NotFound,
    UnsupportedContentType,
)
from keystone.api import access, admin, auth, members

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Initializing Keystone Access")
    # Tables are created by Alembic migrations, not auto-generated
    logger.info("Database managed by Alembic migrations")

    yield

    # Shutdown
    logger.info("Shutting down Keystone Access")


# Create FastAPI application
app = FastAPI(
    title="Keystone Access API",
    description="Multi-tenant authorization, entitlements and membership hierarchy",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure middleware stack
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Typed failures -> status codes; only codes and names reach the client
@app.exception_handler(AuthenticationAbsent)
async def authentication_absent_handler(request: Request, exc: AuthenticationAbsent):
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"error": "unauthenticated"},
    )


@app.exception_handler(AuthorizationDenied)
async def authorization_denied_handler(request: Request, exc: AuthorizationDenied):
    logger.info(f"Forbidden: {exc.reason}", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"error": "forbidden", "reason": exc.reason},
    )


@app.exception_handler(InvariantViolation)
async def invariant_violation_handler(request: Request, exc: InvariantViolation):
    logger.info(f"Invariant violation: {exc.invariant}", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"error": "invariant_violation", "invariant": exc.invariant},
    )


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "not_found", "resource": exc.resource},
    )


@app.exception_handler(CommandParseError)
async def command_parse_error_handler(request: Request, exc: CommandParseError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "invalid_command", "detail": exc.errors},
    )


@app.exception_handler(UnsupportedContentType)
async def unsupported_content_type_handler(request: Request, exc: UnsupportedContentType):
    return JSONResponse(
        status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
        content={"error": "unsupported_content_type"},
    )


# Include routers
app.include_router(auth.router, prefix=f"{settings.API_V1_PREFIX}/auth", tags=["auth"])
app.include_router(access.router, prefix=f"{settings.API_V1_PREFIX}/tenants", tags=["access"])
app.include_router(members.router, prefix=f"{settings.API_V1_PREFIX}/tenants", tags=["members"])
app.include_router(admin.router, prefix=f"{settings.API_V1_PREFIX}/admin", tags=["admin"])


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "keystone-access"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "keystone.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level="info",
    )
