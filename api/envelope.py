"""
api/envelope.py -- Build the standard {success, message, data?, code?} response.

Route handlers return ok(...); the exception handlers in api/main.py return
fail(...). Keeping both here means there is exactly one place that decides
the wire shape of a response.
"""

from __future__ import annotations

from fastapi.responses import JSONResponse

from api.models import ApiResponse


def ok(message: str, data: dict | None = None, status_code: int = 200) -> JSONResponse:
    body = ApiResponse(success=True, message=message, data=data)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def fail(status_code: int, message: str, code: str) -> JSONResponse:
    body = ApiResponse(success=False, message=message, code=code)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))
