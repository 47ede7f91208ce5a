"""Response envelopes shared by every router: ``{"success": ..., "data" | "error": ...}``."""
from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.core.exceptions import ERROR_MESSAGES, ErrorCode
from app.services.outcomes import Rejected


def ok(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder({"success": True, "data": data}))


def error(status_code: int, code: ErrorCode, message: str | None = None, **meta: Any) -> JSONResponse:
    body = {"message": message or ERROR_MESSAGES.get(code, code.value), "code": code.value}
    body.update({key: value for key, value in meta.items() if value is not None})
    return JSONResponse(status_code=status_code, content=jsonable_encoder({"success": False, "error": body}))


def rejected(outcome: Rejected) -> JSONResponse:
    return error(
        outcome.status_code,
        outcome.code,
        lockUntil=outcome.lock_until,
        remainingAttempts=outcome.remaining_attempts,
    )
