"""
HTTP mapping for domain errors.

Services raise RailbookError subclasses; this is the only place that picks a
status code. Every error response uses the same envelope:

    {"error": {"kind": "SEAT_UNAVAILABLE", "message": "Some seats are not available"}}

which is also what railbook.clients parses on the calling side.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from railbook.core.exceptions import ErrorKind, RailbookError
from railbook.core.logging import get_logger
from railbook.schemas.errors import ErrorBody, ErrorEnvelope

logger = get_logger(__name__)

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.HOLD_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.SEAT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_AMOUNT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.ALREADY_CANCELLED: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_RESERVED: status.HTTP_409_CONFLICT,
    ErrorKind.SEAT_UNAVAILABLE: status.HTTP_409_CONFLICT,
    ErrorKind.HOLD_EXPIRED: status.HTTP_409_CONFLICT,
    ErrorKind.PAYMENT_FAILED: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorKind.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorKind.UNREACHABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.COLLABORATOR_ERROR: status.HTTP_502_BAD_GATEWAY,
}


def error_response(status_code: int, kind: ErrorKind, message: str) -> JSONResponse:
    envelope = ErrorEnvelope(error=ErrorBody(kind=kind, message=message))
    response = JSONResponse(status_code=status_code, content=envelope.model_dump(mode="json"))
    if status_code == status.HTTP_401_UNAUTHORIZED:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


async def railbook_error_handler(request: Request, exc: RailbookError) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_400_BAD_REQUEST)
    if status_code >= 500:
        logger.error("domain_error", kind=exc.kind.value, message=exc.message, status_code=status_code)
    else:
        logger.info("domain_error", kind=exc.kind.value, message=exc.message, status_code=status_code)
    return error_response(status_code, exc.kind, exc.message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    logger.info("request_validation_failed", errors=len(errors))
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg')}" if location else str(first.get("msg", "Invalid request"))
    return error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, ErrorKind.INVALID_REQUEST, message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", error_type=type(exc).__name__)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorKind.COLLABORATOR_ERROR,
        "Internal server error",
    )


EXCEPTION_HANDLERS = {
    RailbookError: railbook_error_handler,
    RequestValidationError: validation_error_handler,
    Exception: unhandled_error_handler,
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
