"""Application entry point and FastAPI app factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
import sys
from pathlib import Path
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config.dependencies import build_call_service
from .config.settings import settings
from .controllers import calls, test, transcriptions
from .database import SessionFactory, dispose_engine, init_models
from .middleware import StructuredLoggingMiddleware, TelemetryMiddleware
from .pipelines.calls import AudioValidationError, CallPipelineMap
from .services.call_repository import DuplicateCallError, PersistenceError
from .services.call_service import (
    CallNotFoundError,
    CallStateError,
    TranscriptionNotFoundError,
)

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _rotating_handler(path_value: str, max_bytes: int, fmt: str) -> RotatingFileHandler:
    log_path = Path(path_value)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_path,
        maxBytes=max_bytes,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def _configure_logging() -> None:
    """Route app, middleware, pipeline and transcript logs to their sinks."""

    logging.getLogger().handlers.clear()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(logging.Formatter(_LOG_FORMAT))

    root_logger = logging.getLogger()
    root_logger.addHandler(stdout_handler)
    root_logger.addHandler(_rotating_handler(settings.log_file, 1_000_000, _LOG_FORMAT))
    root_logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)

    middleware_logger = logging.getLogger("callscribe.middleware.structured")
    middleware_logger.handlers.clear()
    middleware_stdout = logging.StreamHandler(sys.stdout)
    middleware_stdout.setFormatter(logging.Formatter("%(message)s"))
    middleware_logger.addHandler(middleware_stdout)
    middleware_logger.setLevel(logging.INFO)
    middleware_logger.propagate = False

    # Pipeline records also reach the root handlers; the file keeps a
    # per-call trail that survives app log rotation.
    pipeline_logger = logging.getLogger("callscribe.pipeline")
    pipeline_logger.handlers.clear()
    pipeline_logger.addHandler(
        _rotating_handler(
            settings.pipeline_log_file,
            500_000,
            "%(asctime)s | %(levelname)s | %(message)s",
        )
    )
    pipeline_logger.setLevel(logging.INFO)

    transcript_logger = logging.getLogger("callscribe.logs.transcript")
    transcript_logger.handlers.clear()
    transcript_logger.addHandler(
        _rotating_handler(
            settings.transcript_log_file,
            500_000,
            "%(asctime)s | %(levelname)s | %(message)s",
        )
    )
    transcript_logger.setLevel(logging.INFO)
    transcript_logger.propagate = False

    noisy_loggers = [
        "botocore",
        "boto3",
        "urllib3",
        "httpx",
        "httpcore",
        "openai",
        "twilio",
        "sqlalchemy.engine",
    ]
    for name in noisy_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Startup
    service = getattr(app.state, "call_service", None)
    if service is None:
        await init_models()
        service = build_call_service(SessionFactory)
        app.state.call_service = service

    logger.info(
        "Call pipeline stages: %s",
        " -> ".join(CallPipelineMap.stage_names()),
    )
    if settings.pipeline.resume_on_startup:
        try:
            await service.pipeline.resume_stranded()
        except PersistenceError as exc:
            logger.error("Could not resume stranded calls: %s", exc)

    yield

    # Shutdown
    await service.pipeline.supervisor.drain(timeout=settings.pipeline.shutdown_grace_seconds)
    await dispose_engine()


def _error(status_code: int, message: str, error: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"message": message, "error": error},
    )


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        detail = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
            for err in errors
        )
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid request", detail or None)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(AudioValidationError)
    async def audio_validation_handler(request: Request, exc: AudioValidationError):
        return _error(exc.status_code, "Invalid audio upload", str(exc))

    @app.exception_handler(CallNotFoundError)
    async def call_not_found_handler(request: Request, exc: CallNotFoundError):
        return _error(status.HTTP_404_NOT_FOUND, "Call not found", str(exc))

    @app.exception_handler(TranscriptionNotFoundError)
    async def transcription_not_found_handler(
        request: Request, exc: TranscriptionNotFoundError
    ):
        return _error(status.HTTP_404_NOT_FOUND, "Transcription not found", str(exc))

    @app.exception_handler(DuplicateCallError)
    async def duplicate_call_handler(request: Request, exc: DuplicateCallError):
        return _error(status.HTTP_409_CONFLICT, "Call already exists", str(exc))

    @app.exception_handler(CallStateError)
    async def call_state_handler(request: Request, exc: CallStateError):
        return _error(status.HTTP_409_CONFLICT, "Call is not in a valid state", str(exc))

    @app.exception_handler(PersistenceError)
    async def persistence_handler(request: Request, exc: PersistenceError):
        logger.error("Persistence failure on %s %s: %s", request.method, request.url.path, exc)
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Database unavailable", str(exc))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            str(exc) if settings.debug else None,
        )


def create_app(*, configure_logging: bool = True) -> FastAPI:
    """Create and configure the FastAPI application."""

    if configure_logging:
        _configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        description="Call recording transcription and analysis API",
        lifespan=lifespan,
    )

    app.add_middleware(TelemetryMiddleware)
    app.add_middleware(StructuredLoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    app.include_router(calls.router)
    app.include_router(transcriptions.router)
    app.include_router(test.router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        """Root endpoint."""

        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.app_version,
            "status": "operational",
        }

    @app.get("/health", include_in_schema=False)
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""

        return {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
        }

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Expose application metrics for Prometheus scraping."""

        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    _register_exception_handlers(app)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "callscribe.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
