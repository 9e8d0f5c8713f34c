"""
Entraide API Server

Entry point for the FastAPI application.
"""

from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from entraide_api.api.v1 import router as api_router
from entraide_api.core.auth import IdentityProvider, LocalIdentityProvider
from entraide_api.core.config import Settings, get_settings
from entraide_api.core.database import init_db
from entraide_api.core.errors import AppError, UpstreamFailure
from entraide_api.core.logging import configure_logging
from entraide_api.core.middleware import RequestIdMiddleware, SecurityHeadersMiddleware
from entraide_api.core.redis import InMemoryRevocationList, RedisRevocationList, RevocationList, close_redis
from entraide_api.core.storage import BlobStore, build_blob_store

log = structlog.get_logger()


def error_response(status: int, code: str, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={"error": {"code": code, "message": message, "status": status, **extra}},
    )


def _format_validation_error(err: dict) -> str:
    location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
    return f"{location}: {err.get('msg')}" if location else str(err.get("msg"))


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        extra = exc.details()
        if isinstance(exc, UpstreamFailure) and settings.debug and exc.cause:
            extra["detail"] = exc.cause
        if exc.status_code >= 500:
            log.error("request.failed", code=exc.code, path=request.url.path)
        return error_response(exc.status_code, exc.code, exc.message, **extra)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        violations = [_format_validation_error(e) for e in exc.errors()]
        return error_response(400, "VALIDATION_FAILED", "Validation failed", violations=violations)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return error_response(404, "ROUTE_NOT_FOUND", "Route not found", path=request.url.path)
        if exc.status_code == 405:
            return error_response(405, "METHOD_NOT_ALLOWED", "Method not allowed", path=request.url.path)
        return error_response(exc.status_code, f"HTTP_{exc.status_code}", str(exc.detail))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        log.exception("request.unhandled_error", path=request.url.path, method=request.method)
        extra = {"detail": str(exc)} if settings.debug else {}
        return error_response(500, "INTERNAL_ERROR", "Internal server error", **extra)


def create_app(
    settings: Optional[Settings] = None,
    *,
    session_factory: Optional[sessionmaker] = None,
    identity_provider: Optional[IdentityProvider] = None,
    blob_store: Optional[BlobStore] = None,
    revocations: Optional[RevocationList] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Every collaborator can be injected; anything left out is built from
    ``settings``.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    if session_factory is None:
        from entraide_api.core.database import async_session_factory

        session_factory = async_session_factory
    if revocations is None:
        revocations = InMemoryRevocationList() if settings.use_in_memory_backends else RedisRevocationList()
    if identity_provider is None:
        identity_provider = LocalIdentityProvider(session_factory, settings, revocations)
    if blob_store is None:
        blob_store = build_blob_store(settings)

    app = FastAPI(
        title="Entraide",
        description="Community aid coordination: projects, volunteers, and offered resources.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.identity_provider = identity_provider
    app.state.blob_store = blob_store

    # Middleware (order matters: last added is outermost)
    app.add_middleware(SecurityHeadersMiddleware, production=settings.is_production)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-Id"],
    )

    register_exception_handlers(app, settings)

    app.include_router(api_router, prefix="/api")

    @app.on_event("startup")
    async def on_startup():
        log.info("Entraide starting", environment=settings.environment)
        if settings.auto_create_tables:
            await init_db(session_factory.kw["bind"])

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Entraide shutting down")
        await close_redis()

    return app


app = create_app()
