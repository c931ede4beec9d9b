"""
Main FastAPI application.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from examhub.api.v1.api import api_router
from examhub.core.analytics import AnalyticsTracker
from examhub.core.config import settings
from examhub.core.db_error_handling import DatabaseOperationError
from examhub.core.error_responses import ErrorMessages
from examhub.core.errors import (
    ConcurrentModificationError,
    ExecutionError,
    NotFoundError,
    TestDataCorruptedError,
    UnauthorizedError,
    ValidationError,
)
from examhub.core.logging_config import setup_logging
from examhub.middleware import (
    RequestLoggingMiddleware,
    RequestSizeLimitMiddleware,
    SecurityHeadersMiddleware,
)
from examhub.models import Base, engine

setup_logging()

logger = logging.getLogger(__name__)

# Status for each client-facing engine error
_ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    UnauthorizedError: status.HTTP_403_FORBIDDEN,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    ConcurrentModificationError: status.HTTP_409_CONFLICT,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan event handler.

    Creates missing tables on startup. Schema changes to existing tables
    are applied out of band.
    """
    Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} starting ({settings.ENV})")
    yield
    engine.dispose()
    logger.info("Application shutting down")


tags_metadata = [
    {"name": "health", "description": "Health check endpoints"},
    {"name": "plans", "description": "Test plan authoring and execution creation"},
    {
        "name": "executions",
        "description": "Test execution lifecycle, answer submission, scoring and results",
    },
]


def _server_error_response(
    request: Request, exc: Exception, **log_extra
) -> JSONResponse:
    """Log an internal failure under a fresh error_id and hide its details."""
    error_id = str(uuid.uuid4())
    logger.error(
        f"Unhandled exception [error_id={error_id}]: {exc}",
        exc_info=exc,
        extra={"error_id": error_id, **log_extra},
    )
    AnalyticsTracker.track_api_error(
        method=request.method,
        path=str(request.url.path),
        error_type=exc.__class__.__name__,
        error_message=str(exc),
        user_id=getattr(request.state, "user_id", None),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": ErrorMessages.INTERNAL_ERROR, "error_id": error_id},
    )


def create_application() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
        description=(
            "**ExamHub API** - test planning and execution for students, tutors "
            "and parents.\n\n"
            "* Test plans fix a sampled question set for a student\n"
            "* Executions move through NOT_STARTED, IN_PROGRESS, PAUSED, "
            "COMPLETED and ABANDONED\n"
            "* Answers are graded on submission; scores are computed on completion\n\n"
            "All endpoints except health checks require a JWT bearer token."
        ),
        docs_url=f"{settings.API_V1_PREFIX}/docs",
        redoc_url=f"{settings.API_V1_PREFIX}/redoc",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        openapi_tags=tags_metadata,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    )
    app.add_middleware(RequestLoggingMiddleware, slow_request_threshold=1.0)
    app.add_middleware(
        SecurityHeadersMiddleware, hsts_enabled=settings.ENV == "production"
    )
    app.add_middleware(
        RequestSizeLimitMiddleware, max_body_size=settings.MAX_REQUEST_BODY_BYTES
    )

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.exception_handler(ExecutionError)
    async def execution_error_handler(request: Request, exc: ExecutionError):
        """
        Map engine errors to HTTP statuses.

        Errors without a client-facing status (corrupted test data) are
        reported as 500 without their message.
        """
        status_code = next(
            (code for cls, code in _ERROR_STATUS.items() if isinstance(exc, cls)),
            None,
        )
        if status_code is None:
            extra = {}
            if isinstance(exc, TestDataCorruptedError):
                extra["execution_id"] = exc.execution_id
            return _server_error_response(request, exc, **extra)

        AnalyticsTracker.track_api_error(
            method=request.method,
            path=str(request.url.path),
            error_type=exc.__class__.__name__,
            error_message=exc.message,
            user_id=getattr(request.state, "user_id", None),
        )
        content = {"detail": exc.message}
        if exc.details is not None and not isinstance(exc, UnauthorizedError):
            content["details"] = exc.details
        return JSONResponse(status_code=status_code, content=content)

    @app.exception_handler(DatabaseOperationError)
    async def database_error_handler(request: Request, exc: DatabaseOperationError):
        return _server_error_response(request, exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions and track them in analytics."""
        if exc.status_code >= 400:
            AnalyticsTracker.track_api_error(
                method=request.method,
                path=str(request.url.path),
                error_type="HTTPException",
                error_message=str(exc.detail),
                user_id=getattr(request.state, "user_id", None),
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        """Handle request validation errors with a serializable error list."""
        errors = [
            {
                "loc": list(error.get("loc", [])),
                "msg": str(error.get("msg", "")),
                "type": str(error.get("type", "")),
            }
            for error in exc.errors()
        ]
        AnalyticsTracker.track_api_error(
            method=request.method,
            path=str(request.url.path),
            error_type="RequestValidationError",
            error_message=str(errors),
            user_id=getattr(request.state, "user_id", None),
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": errors},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Return 500 with a tracking id and no internal details."""
        return _server_error_response(request, exc)

    return app


app = create_application()


@app.get("/")
async def root():
    """
    Root endpoint.
    """
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": f"{settings.API_V1_PREFIX}/docs",
    }
