import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class FeedError(Exception):
    """Base class for failures talking to or decoding the arrivals feed."""


class TransportError(FeedError):
    """Raised when the feed cannot be reached or answers with a failure status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedPayloadError(FeedError):
    """Raised when a response line is not a JSON array or a field has the wrong type."""


class RecordTooShortError(MalformedPayloadError):
    def __init__(self, kind: str, minimum: int, actual: int) -> None:
        super().__init__(f"{kind} record has {actual} fields, expected at least {minimum}")
        self.kind = kind
        self.minimum = minimum
        self.actual = actual


class NoCurrentStopError(Exception):
    """Raised when an operation needs a selected stop and none is set."""


def _error_response(status_code: int, detail: object) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, "code": status_code})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.warning(
        "HTTP exception",
        extra={"url": request.url.path, "status_code": exc.status_code},
    )
    return _error_response(exc.status_code, exc.detail)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.warning("Validation failed", extra={"url": request.url.path, "status_code": 422})
    return _error_response(422, exc.errors())


async def feed_exception_handler(request: Request, exc: FeedError) -> JSONResponse:
    logger.warning("Feed unavailable: %s", exc, extra={"url": request.url.path, "status_code": 502})
    return _error_response(502, "feed_unavailable")


async def no_current_stop_handler(request: Request, exc: NoCurrentStopError) -> JSONResponse:
    return _error_response(409, "no_current_stop")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        exc_info=exc,
        extra={"url": request.url.path, "status_code": 500},
    )
    return _error_response(500, "internal_error")
