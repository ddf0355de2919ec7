import sys
import uuid
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from gestioncartes import __version__
from gestioncartes.api.responses import error, error_from_exception
from gestioncartes.api.v1.router import router as v1_router
from gestioncartes.config import get_settings
from gestioncartes.db.session import Database
from gestioncartes.error_codes import INTERNAL_ERROR, VALIDATION_ERROR
from gestioncartes.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    GestionCartesException,
    NotFoundError,
    ValidationError,
)


def configure_logging() -> None:
    """Configure structured JSON logging with loguru."""
    settings = get_settings()

    # Remove default handler
    logger.remove()

    # Add JSON structured logging
    logger.add(
        sys.stdout,
        format="{message}",
        level=settings.log_level,
        serialize=True,
    )


def configure_sentry() -> None:
    """Initialize Sentry if DSN is configured."""
    settings = get_settings()

    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn.get_secret_value(),
            environment=settings.environment,
            traces_sample_rate=1.0 if settings.environment == "local" else 0.1,
        )
        logger.info("Sentry initialized", environment=settings.environment)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    configure_logging()
    configure_sentry()

    settings = get_settings()
    owns_database = getattr(app.state, "database", None) is None
    if owns_database:
        app.state.database = Database.from_settings(settings)
    if settings.is_local:
        # migrations are applied by alembic everywhere else
        await app.state.database.create_all()
    logger.info("Application startup", version=__version__, environment=settings.environment)

    yield

    # Shutdown
    if owns_database:
        await app.state.database.dispose()
    logger.info("Application shutdown")


# Framework HTTP errors reported with the application error codes
_HTTP_STATUS_ERRORS: dict[int, type[GestionCartesException]] = {
    status.HTTP_401_UNAUTHORIZED: AuthenticationError,
    status.HTTP_403_FORBIDDEN: AuthorizationError,
    status.HTTP_404_NOT_FOUND: NotFoundError,
    status.HTTP_409_CONFLICT: ConflictError,
    status.HTTP_422_UNPROCESSABLE_ENTITY: ValidationError,
}


def _from_http_exception(exc: StarletteHTTPException) -> GestionCartesException:
    exc_class = _HTTP_STATUS_ERRORS.get(exc.status_code)
    if exc_class is not None:
        return exc_class(str(exc.detail))
    mapped = GestionCartesException(str(exc.detail))
    mapped.status_code = exc.status_code
    mapped.code = f"HTTP_{exc.status_code}"
    return mapped


def create_app(database: Database | None = None) -> FastAPI:
    """
    Application factory for creating configured FastAPI instances.

    Args:
        database: Pre-opened database handle. When omitted, the lifespan
            opens one from settings and disposes it on shutdown.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    app = FastAPI(
        title="Gestion Cartes API",
        description="Card issuance tracking with an audited, undoable action journal",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
    )
    if database is not None:
        app.state.database = database

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.is_local else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request context middleware
    @app.middleware("http")
    async def add_request_context(request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        # Import here to avoid circular dependency
        from gestioncartes.middleware.context import get_current_context

        log_context = {"request_id": request_id}

        with logger.contextualize(**log_context):
            logger.info(
                "Request started",
                method=request.method,
                path=request.url.path,
            )

            response = await call_next(request)

            ctx = get_current_context()
            if ctx:
                log_context.update({
                    "user_id": ctx.actor.user_id,
                    "user_name": ctx.actor.user_name,
                    "role": ctx.actor.role,
                })

            response.headers["X-Request-ID"] = request_id

            with logger.contextualize(**log_context):
                logger.info(
                    "Request completed",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                )

            return response

    # Global exception handlers
    @app.exception_handler(GestionCartesException)
    async def application_exception_handler(request: Request, exc: GestionCartesException):
        request_id = getattr(request.state, "request_id", "unknown")
        logger.warning(
            "Application exception",
            request_id=request_id,
            code=exc.code,
            status_code=exc.status_code,
            retryable=exc.retryable,
            message=exc.message,
        )
        return error_from_exception(exc, request_id)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        request_id = getattr(request.state, "request_id", "unknown")
        logger.warning("Validation error", request_id=request_id, errors=exc.errors())
        return error(
            code=VALIDATION_ERROR,
            message="Request validation failed",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            request_id=request_id,
            details={"errors": exc.errors()},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        request_id = getattr(request.state, "request_id", "unknown")
        logger.warning(
            "HTTP exception", request_id=request_id, status_code=exc.status_code, detail=exc.detail
        )
        return error_from_exception(_from_http_exception(exc), request_id)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        request_id = getattr(request.state, "request_id", "unknown")
        logger.exception("Unhandled exception", request_id=request_id)
        return error(
            code=INTERNAL_ERROR,
            message="An unexpected error occurred",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            request_id=request_id,
        )

    # Mount versioned API router
    app.include_router(v1_router, prefix=settings.api_v1_prefix)

    return app


# Create app instance
app = create_app()
