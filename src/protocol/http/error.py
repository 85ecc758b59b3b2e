from __future__ import annotations

import logging
from typing import Any, Dict, Optional, cast

from fastapi import Request
from fastapi import HTTPException as FastAPIHTTPException
from fastapi.responses import JSONResponse
from starlette import status
from fastapi.exceptions import RequestValidationError

from ...engine.game import RejectReason


logger = logging.getLogger(__name__)

# Engine rejections: bad input is 400, requests blocked by game phase are 409
REJECTION_STATUS: Dict[RejectReason, int] = {
    RejectReason.ILLEGAL_MOVE: status.HTTP_400_BAD_REQUEST,
    RejectReason.NO_HISTORY: status.HTTP_400_BAD_REQUEST,
    RejectReason.INVALID_PIECE: status.HTTP_400_BAD_REQUEST,
    RejectReason.NOT_YOUR_TURN: status.HTTP_409_CONFLICT,
    RejectReason.PROMOTION_PENDING: status.HTTP_409_CONFLICT,
    RejectReason.GAME_OVER: status.HTTP_409_CONFLICT,
    RejectReason.UNDO_DISABLED: status.HTTP_409_CONFLICT,
}


class EngineRejection(FastAPIHTTPException):
    """HTTP error raised when the engine refuses a request; `code` is the reason."""

    def __init__(self, reason: RejectReason, message: Optional[str] = None) -> None:
        super().__init__(
            status_code=REJECTION_STATUS.get(reason, status.HTTP_400_BAD_REQUEST),
            detail=message or reason.value.replace("_", " "),
        )
        self.code = reason.value


def error_envelope(
    *,
    code: str,
    message: str,
    err_type: str,
    request_id: str,
    field_errors: list[dict[str, str]] | None = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
            "type": err_type,
            "request_id": request_id,
        }
    }
    if field_errors:
        payload["error"]["field_errors"] = field_errors
    return payload


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "")
    if isinstance(exc, FastAPIHTTPException):
        return _render_http_exception(exc, request_id)
    # Fallback (shouldn't happen with registration), treat as 500
    return _internal_error(request_id)


async def exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "")
    if isinstance(exc, FastAPIHTTPException):
        return _render_http_exception(exc, request_id)
    logger.exception("Unhandled exception", extra={"request_id": request_id})
    return _internal_error(request_id)


async def request_validation_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "")
    errors = []
    rve = cast(RequestValidationError, exc)
    for e in rve.errors():
        loc = ".".join(str(p) for p in e.get("loc", []) if p is not None)
        msg = e.get("msg", "invalid value")
        typ = e.get("type", "value_error")
        errors.append({"field": loc, "code": typ, "message": msg})
    payload = error_envelope(
        code="unprocessable_entity",
        message="Validation error",
        err_type="client_error",
        request_id=request_id,
        field_errors=errors or None,
    )
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=payload)


def _render_http_exception(exc: FastAPIHTTPException, request_id: str) -> JSONResponse:
    status_code = exc.status_code
    code = getattr(exc, "code", None) or _status_to_code(status_code)
    payload = error_envelope(
        code=code,
        message=exc.detail if isinstance(exc.detail, str) else str(exc.detail),
        err_type="client_error" if 400 <= status_code < 500 else "server_error",
        request_id=request_id,
    )
    return JSONResponse(status_code=status_code, content=payload)


def _internal_error(request_id: str) -> JSONResponse:
    payload = error_envelope(
        code="internal_error",
        message="Internal Server Error",
        err_type="server_error",
        request_id=request_id,
    )
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)


def _status_to_code(status_code: int) -> str:
    if status_code == status.HTTP_404_NOT_FOUND:
        return "not_found"
    if status_code == status.HTTP_400_BAD_REQUEST:
        return "bad_request"
    if status_code == status.HTTP_409_CONFLICT:
        return "conflict"
    if status_code == status.HTTP_422_UNPROCESSABLE_ENTITY:
        return "unprocessable_entity"
    if 500 <= status_code < 600:
        return "internal_error"
    return "error"
