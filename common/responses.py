"""
Storefront - Response Envelope
===============================
Every endpoint answers {success, data?, count?, message?}.
"""

import logging
from typing import Any, Optional

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from common.exceptions import StorefrontError, UpstreamFailureError

logger = logging.getLogger("storefront.request")


def ok(data: Any = None, count: Optional[int] = None, message: Optional[str] = None) -> dict:
    body = {"success": True}
    if data is not None:
        body["data"] = data
    if count is not None:
        body["count"] = count
    if message is not None:
        body["message"] = message
    return body


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"success": False, "message": message}, status_code=status_code)


async def storefront_error_handler(request: Request, exc: StorefrontError):
    return error_response(exc.message, exc.status_code)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return error_response(str(exc.detail), exc.status_code)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = jsonable_encoder(exc.errors())
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", []) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", ""))
    return error_response("; ".join(parts) or "Invalid request", 422)


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Store failure on {request.method} {request.url.path}: {exc}")
    return error_response(UpstreamFailureError("Data store unavailable").message, UpstreamFailureError.status_code)
