from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from trackle import __version__
from trackle.base_microservice import BaseMicroservice, ErrorResponse, create_engine_and_sessions, create_tables
from trackle.config import Settings
from trackle.errors import AppError, ErrorKind, STATUS_CODES
from trackle.auth.jwt import TokenService
from trackle.auth.router import router as auth_router, me_router
from trackle.exercises.router import router as exercises_router
from trackle.templates.router import router as templates_router
from trackle.workouts.router import router as workouts_router
from trackle.statistics.router import router as statistics_router

base_service = BaseMicroservice("trackle")

_HTTP_STATUS_KINDS = {
    401: ErrorKind.AUTHENTICATION,
    403: ErrorKind.AUTHORIZATION,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.DUPLICATE_ENTRY,
}


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request data"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    if field:
        return f"Invalid request data: {field}: {first.get('msg')}"
    return f"Invalid request data: {first.get('msg')}"


def register_error_handlers(app: FastAPI, debug: bool = False):
    """
    Translate every failure into the standard error envelope.

    AppErrors map to the status code of their kind; anything unexpected is
    logged with its traceback and answered with a generic internal error.
    """
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            base_service.logger.error(
                f"{request.method} {request.url.path} failed: {exc}",
                exc_info=exc.cause,
            )
        elif exc.cause is not None:
            base_service.log_error(exc, context=f"{request.method} {request.url.path}")
        return ErrorResponse(
            message=exc.message,
            error=exc.kind.value,
            status_code=exc.status_code,
            detail=str(exc.cause) if debug and exc.cause is not None else None,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return ErrorResponse(
            message=_validation_message(exc),
            error=ErrorKind.VALIDATION.value,
            status_code=STATUS_CODES[ErrorKind.VALIDATION],
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code in _HTTP_STATUS_KINDS:
            kind = _HTTP_STATUS_KINDS[exc.status_code]
        elif exc.status_code >= 500:
            kind = ErrorKind.INTERNAL
        else:
            kind = ErrorKind.VALIDATION
        return ErrorResponse(message=str(exc.detail), error=kind.value, status_code=exc.status_code)

    @app.middleware("http")
    async def recover_unhandled_errors(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            base_service.logger.exception(f"Unhandled error on {request.method} {request.url.path}")
            return ErrorResponse(
                message="An unexpected error occurred",
                error=ErrorKind.INTERNAL.value,
                status_code=STATUS_CODES[ErrorKind.INTERNAL],
                detail=f"{type(e).__name__}: {e}" if debug else None,
            )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the API application.

    Settings default to the process environment; a missing JWT secret stops
    the service here, before it accepts any request.
    """
    settings = settings or Settings.from_env()
    logging.getLogger("trackle").setLevel(settings.log_level.upper())

    engine, session_factory = create_engine_and_sessions(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        base_service.log_event("service.startup", {"service": "trackle"})
        await create_tables(engine)
        yield
        await engine.dispose()
        base_service.log_event("service.shutdown", {"service": "trackle"})

    app = FastAPI(
        title="Trackle API",
        description="Workout tracking: exercises, templates and logged workouts",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.token_service = TokenService.from_settings(settings)

    register_error_handlers(app, debug=settings.debug)

    app.include_router(auth_router)
    app.include_router(me_router, prefix="/api")
    app.include_router(exercises_router, prefix="/api/exercises")
    app.include_router(templates_router, prefix="/api/me/templates")
    app.include_router(workouts_router, prefix="/api/me/workouts")
    app.include_router(statistics_router, prefix="/api/me/stats")

    @app.get("/health", tags=["health"])
    async def health_check():
        """Overall system health check."""
        return base_service.api_response(data={"status": "ok", "version": __version__})

    return app
