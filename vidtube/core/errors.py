"""Error taxonomy, result type and FastAPI exception handlers.

Core operations return an ``Outcome`` instead of raising; the HTTP layer
turns a failed outcome into an ``ApiError`` which the handlers below render
as ``{statusCode, data, message, success: false, errors}``.
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Generic, TypeVar

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorKind(IntEnum):
    """Failure categories, valued by their HTTP status code."""

    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    NOT_FOUND = 404
    CONFLICT = 409
    INTERNAL = 500


class ApiError(Exception):
    """Raised at the transport edge for a failure that maps to an HTTP status."""

    def __init__(
        self,
        status_code: int,
        message: str = "Something went wrong",
        errors: list[Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.errors = errors or []
        super().__init__(message)


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str
    errors: list[Any] = field(default_factory=list)

    def to_error(self) -> ApiError:
        return ApiError(int(self.kind), self.message, list(self.errors))


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a core operation: either a value or a Failure."""

    value: T | None = None
    failure: Failure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    def unwrap(self) -> T:
        """Return the value, raising ApiError if the operation failed."""
        if self.failure is not None:
            raise self.failure.to_error()
        return self.value  # type: ignore[return-value]

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def fail(
        cls, kind: ErrorKind, message: str, errors: list[Any] | None = None
    ) -> "Outcome[T]":
        return cls(failure=Failure(kind, message, errors or []))

    @classmethod
    def from_failure(cls, failure: Failure) -> "Outcome[T]":
        return cls(failure=failure)


def error_body(status_code: int, message: str, errors: list[Any] | None = None) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "data": None,
        "message": message,
        "success": False,
        "errors": errors or [],
    }


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(error_body(exc.status_code, exc.message, exc.errors)),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, message),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(
            status.HTTP_400_BAD_REQUEST,
            "Invalid request",
            jsonable_encoder(exc.errors()),
        ),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error the app can raise in the uniform error shape."""
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
