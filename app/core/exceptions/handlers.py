from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import httpx
import traceback

from app.core.exceptions.errors import NotificationNotFoundError, StoreNotFoundError
from app.core.responses import create_json_response, send_error
from app.utils.logging import get_logger


def register_exception_handlers(app):
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger = get_logger()
        logger.error(
            f"Unhandled exception for {request.method} {request.url}: {exc}\n"
            f"Traceback: {traceback.format_exc()}\n"
            f"User-Agent: {request.headers.get('user-agent')}"
        )
        return create_json_response(
            send_error(
                message="An unexpected error occurred.",
                data={"detail": str(exc)},
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        logger = get_logger()
        raw_errors = exc.errors()
        logger.warning(
            f"Validation error for {request.method} {request.url}: {raw_errors}"
        )

        friendly_errors = {}
        for error in raw_errors:
            field = ".".join(map(str, error["loc"]))
            if field.startswith("body."):
                field = field.replace("body.", "")
            friendly_errors[field] = error["msg"]

        return create_json_response(
            send_error(
                message="Validation failed",
                data={"errors": friendly_errors},
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            )
        )

    @app.exception_handler(StoreNotFoundError)
    async def store_not_found_handler(request: Request, exc: StoreNotFoundError):
        logger = get_logger()
        logger.warning(f"Cache store not found for {request.method} {request.url}")
        return create_json_response(
            send_error(
                message=str(exc),
                data={"store": exc.name},
                status_code=status.HTTP_404_NOT_FOUND,
            )
        )

    @app.exception_handler(NotificationNotFoundError)
    async def notification_not_found_handler(
        request: Request, exc: NotificationNotFoundError
    ):
        return create_json_response(
            send_error(
                message=str(exc),
                data={"notification": exc.notification_id},
                status_code=status.HTTP_404_NOT_FOUND,
            )
        )

    # Raised when an uncached asset cannot be fetched from the origin.
    @app.exception_handler(httpx.TransportError)
    async def upstream_unavailable_handler(
        request: Request, exc: httpx.TransportError
    ):
        logger = get_logger()
        logger.error(
            f"Upstream unavailable for {request.method} {request.url}: {exc!r}"
        )
        return create_json_response(
            send_error(
                message="Upstream service unavailable.",
                data={"detail": str(exc) or type(exc).__name__},
                status_code=status.HTTP_502_BAD_GATEWAY,
            )
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger = get_logger()
        logger.warning(
            f"HTTP {exc.status_code} for {request.method} {request.url}: {exc.detail}"
        )
        return create_json_response(
            send_error(message=exc.detail, status_code=exc.status_code)
        )
