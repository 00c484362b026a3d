"""
Book Inventory Service: FastAPI application.

Run with:
    uvicorn main:app --reload
"""

import logging
import time
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import CredentialStore
from config import Settings, load_settings
from database import build_engine, build_session_factory, init_db
from routes import auth as auth_routes
from routes import books as book_routes
from schemas import ErrorResponse
from services.notifications import LoggingBookEventListener, NotificationPublisher

logger = logging.getLogger(__name__)

_REASONS = {
    status.HTTP_400_BAD_REQUEST: "Bad Request",
    status.HTTP_401_UNAUTHORIZED: "Unauthorized",
    status.HTTP_403_FORBIDDEN: "Forbidden",
    status.HTTP_404_NOT_FOUND: "Not Found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "Method Not Allowed",
    status.HTTP_409_CONFLICT: "Conflict",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "Internal Server Error",
}


def _error_response(request: Request, status_code: int, message: Optional[str], error: Optional[str] = None, headers=None) -> JSONResponse:
    body = ErrorResponse(
        timestamp=int(time.time() * 1000),
        status=status_code,
        error=error or _REASONS.get(status_code, "Error"),
        message=message,
        path=request.url.path,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = ", ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
            for err in exc.errors()
        )
        logger.warning(f"Validation error on {request.url.path}: {errors}")
        return _error_response(request, status.HTTP_400_BAD_REQUEST, errors, error="Validation Error")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code >= 500:
            logger.error(f"{exc.status_code} on {request.url.path}: {exc.detail}")
        else:
            logger.warning(f"{exc.status_code} on {request.url.path}: {exc.detail}")
        return _error_response(request, exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=exc)
        return _error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred. Please try again later.",
        )


def create_app(
    settings: Optional[Settings] = None,
    credentials: Optional[CredentialStore] = None,
    publisher: Optional[NotificationPublisher] = None,
) -> FastAPI:
    """
    Build the application with all collaborators wired explicitly.

    Args:
        settings: Configuration; read from the environment when omitted
        credentials: Account store; built from `settings` when omitted
        publisher: Notification publisher, used as given; when omitted a fresh
            one is built (with the logging listener if enabled)

    Returns:
        Configured FastAPI application
    """
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    engine = build_engine(settings.database_url, echo=settings.database_echo)
    init_db(engine)

    if publisher is None:
        publisher = NotificationPublisher()
        if settings.enable_event_logging:
            publisher.register(LoggingBookEventListener())

    app = FastAPI(
        title="Book Inventory Service",
        version="1.0",
        description="API for managing book inventory",
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.credentials = credentials if credentials is not None else CredentialStore.from_settings(settings)
    app.state.publisher = publisher

    register_exception_handlers(app)
    app.include_router(auth_routes.router)
    app.include_router(book_routes.router)

    @app.get("/health", tags=["Health"])
    def health():
        return {"status": "ok", "service": "book-inventory"}

    logger.info("Book Inventory Service initialised")
    return app


app = create_app()
