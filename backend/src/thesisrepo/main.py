"""Thesis Repository Backend - Main FastAPI Application

This module creates and configures the FastAPI application, including:
- Thesis, document and calendar routers
- Middleware (request ID correlation, CORS)
- Exception handlers for the storage, integrity and workflow errors
- Health and observability endpoints

The storage backend is selected once, in the lifespan handler, from Settings.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .auth.roles import PermissionDeniedError
from .config import Settings, get_settings
from .documents.resolver import DocumentResolver
from .documents.router import router as documents_router
from .domain.documents.errors import (
    BackendError,
    ConfigurationError,
    DocumentNotFoundError,
    DocumentValidationError,
    IntegrityFailure,
    StorageIOError,
)
from .infrastructure.storage.router import StorageRouter
from .infrastructure.storage.storage_config import load_storage_config
from .observability.logging_config import configure_logging
from .observability.middleware import RequestIDMiddleware
from .observability.router import router as observability_router
from .scheduling.router import router as calendar_router
from .theses.router import router as theses_router
from .theses.status import InvalidTransition
from .theses.workflow import ConcurrentTransitionError

logger = logging.getLogger(__name__)


def _error_response(status_code: int, content: dict) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors to HTTP responses.

    Payloads follow {"error": <code>, "detail": <message>, ...} and never
    contain credentials.
    """

    @app.exception_handler(InvalidTransition)
    async def invalid_transition_handler(request: Request, exc: InvalidTransition) -> JSONResponse:
        return _error_response(status.HTTP_409_CONFLICT, exc.to_dict())

    @app.exception_handler(ConcurrentTransitionError)
    async def concurrent_transition_handler(request: Request, exc: ConcurrentTransitionError) -> JSONResponse:
        return _error_response(status.HTTP_409_CONFLICT, exc.to_dict())

    @app.exception_handler(DocumentNotFoundError)
    async def document_not_found_handler(request: Request, exc: DocumentNotFoundError) -> JSONResponse:
        return _error_response(status.HTTP_404_NOT_FOUND, exc.to_dict())

    @app.exception_handler(IntegrityFailure)
    async def integrity_failure_handler(request: Request, exc: IntegrityFailure) -> JSONResponse:
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.to_dict())

    @app.exception_handler(ConfigurationError)
    async def storage_configuration_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
        logger.error(f"Storage not configured: {exc.message}", extra={"backend": exc.backend, "stage": exc.stage})
        return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, exc.to_dict())

    @app.exception_handler(BackendError)
    async def storage_backend_handler(request: Request, exc: BackendError) -> JSONResponse:
        return _error_response(status.HTTP_502_BAD_GATEWAY, exc.to_dict())

    @app.exception_handler(StorageIOError)
    async def storage_io_handler(request: Request, exc: StorageIOError) -> JSONResponse:
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.to_dict())

    @app.exception_handler(DocumentValidationError)
    async def document_validation_handler(request: Request, exc: DocumentValidationError) -> JSONResponse:
        return _error_response(
            status.HTTP_400_BAD_REQUEST,
            {"error": DocumentValidationError.code, "detail": str(exc)},
        )

    @app.exception_handler(PermissionDeniedError)
    async def permission_denied_handler(request: Request, exc: PermissionDeniedError) -> JSONResponse:
        logger.info(f"Permission denied on {request.method} {request.url.path}: {exc.message}")
        return _error_response(
            status.HTTP_403_FORBIDDEN,
            {"error": PermissionDeniedError.code, "detail": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning(f"Validation error on {request.method} {request.url.path}")
        return _error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            {
                "error": "validation_error",
                "detail": "Request validation failed",
                "details": jsonable_errors(exc),
            },
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        """Logs the full error but returns a generic message."""
        logger.error(f"Database error on {request.method} {request.url.path}", exc_info=exc)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            {
                "error": "database_error",
                "detail": "A database error occurred. Please try again later.",
            },
        )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


def create_app(settings: Optional[Settings] = None, storage: Optional[StorageRouter] = None) -> FastAPI:
    """Application factory.

    Args:
        settings: Settings to use (defaults to get_settings())
        storage: Prebuilt storage router (tests); built from settings otherwise
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Thesis repository API starting up...")
        logger.info(f"Environment: {settings.ENVIRONMENT}")

        app.state.settings = settings
        router = storage or StorageRouter(load_storage_config(settings))
        app.state.storage_router = router
        app.state.document_resolver = DocumentResolver(router)
        logger.info(f"Storage backend: {router.backend_name}")

        yield

        logger.info("Thesis repository API shutting down...")

    is_production = settings.ENVIRONMENT == "production"
    app = FastAPI(
        title="Thesis Repository API",
        description="Document lifecycle for an academic thesis repository",
        version="0.1.0",
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
        openapi_url=None if is_production else "/openapi.json",
        lifespan=lifespan,
    )

    # Request ID Middleware (must be first for proper correlation)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    register_exception_handlers(app)

    app.include_router(observability_router)
    app.include_router(theses_router, prefix="/api/v1")
    app.include_router(documents_router, prefix="/api/v1")
    app.include_router(calendar_router, prefix="/api/v1")

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, Any]:
        return {"name": "Thesis Repository API", "version": "0.1.0", "status": "running"}

    return app


def build_default_app() -> FastAPI:
    settings = get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)
    return create_app(settings)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "thesisrepo.main:build_default_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        log_level=get_settings().LOG_LEVEL.lower(),
    )
