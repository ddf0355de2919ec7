"""Standard API response helpers and schemas."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from gestioncartes.exceptions import GestionCartesException

T = TypeVar("T")


class StandardResponse(BaseModel, Generic[T]):
    data: T
    request_id: str
    timestamp: str


class ErrorBody(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None
    request_id: str


class ErrorResponse(BaseModel):
    error: ErrorBody


def success(data: T, request_id: str) -> StandardResponse[T]:
    return StandardResponse(
        data=data,
        request_id=request_id,
        timestamp=datetime.now(UTC).isoformat(),
    )


def error(
    code: str,
    message: str,
    status_code: int,
    request_id: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    payload = ErrorResponse(
        error=ErrorBody(
            code=code,
            message=message,
            details=details,
            request_id=request_id,
        )
    )
    return JSONResponse(status_code=status_code, content=payload.model_dump(mode="json"))


def error_from_exception(exc: GestionCartesException, request_id: str) -> JSONResponse:
    """Render an application exception; retryable errors say so in `details`."""
    details = exc.details
    if exc.retryable:
        details = {**(details or {}), "retryable": True}
    return error(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        request_id=request_id,
        details=details,
    )
