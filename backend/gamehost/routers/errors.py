from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..domain.errors import BookingError, ErrorCode

logger = logging.getLogger(__name__)

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.CAPACITY: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.DISABLED: status.HTTP_403_FORBIDDEN,
    ErrorCode.TOO_EARLY: status.HTTP_425_TOO_EARLY,
    ErrorCode.UNKNOWN: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class BookingHTTPException(HTTPException):
    """HTTPException that renders as `{success: false, error, code}`."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        status_code: Optional[int] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        if headers is None and code == ErrorCode.UNAUTHORIZED:
            headers = {"WWW-Authenticate": "Bearer"}
        super().__init__(status_code=status_code or STATUS_BY_CODE[code], detail=message, headers=headers)
        self.code = code
        self.message = message

    @classmethod
    def from_error(cls, exc: BookingError) -> "BookingHTTPException":
        return cls(exc.code, exc.message)

    def body(self) -> dict[str, object]:
        return {"success": False, "error": self.message, "code": self.code.value}


async def booking_http_exception_handler(request: Request, exc: BookingHTTPException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.body(), headers=exc.headers)


def _describe(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    message = error.get("msg", "Invalid request")
    return f"{location}: {message}" if location else message


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = _describe(errors[0]) if errors else "Invalid request"
    return JSONResponse(
        status_code=422,
        content={"success": False, "error": message, "code": ErrorCode.VALIDATION.value},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingHTTPException, booking_http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)  # type: ignore[arg-type]
