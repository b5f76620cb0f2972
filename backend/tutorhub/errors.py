"""
Error envelope handlers.

Every failed request answers with::

    {"success": false, "message": "...", "error": "CODE", "details": {...}}

``details`` is omitted when there is nothing to add.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


def _code_from_status(status_code: int) -> str:
    mapping = {
        400: "BAD_REQUEST",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
        422: "VALIDATION_ERROR",
        500: "INTERNAL_SERVER_ERROR",
    }
    return mapping.get(status_code, "ERROR")


def _envelope(message: str, code: str, details: Optional[Any] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "message": message, "error": code}
    if details:
        body["details"] = jsonable_encoder(details)
    return body


def _parse_detail(detail: Any) -> tuple[Optional[str], Optional[str], Optional[Any]]:
    if isinstance(detail, dict):
        code = detail.get("code") if isinstance(detail.get("code"), str) else None
        message = detail.get("message") or detail.get("detail")
        return (message if isinstance(message, str) else None), code, detail.get("details")
    if isinstance(detail, str):
        return detail, None, None
    if detail is None:
        return None, None, None
    return str(detail), None, None


def _http_error_response(exc: StarletteHTTPException) -> JSONResponse:
    message, code, details = _parse_detail(exc.detail)
    return JSONResponse(
        _envelope(
            message or _code_from_status(exc.status_code).replace("_", " ").capitalize(),
            code or _code_from_status(exc.status_code),
            details,
        ),
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return _http_error_response(exc)

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return _http_error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            _envelope(
                "Request validation failed",
                "VALIDATION_ERROR",
                {"errors": exc.errors()},
            ),
            status_code=422,
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled error", extra={"path": request.url.path, "method": request.method}
        )
        return JSONResponse(
            _envelope("Internal Server Error", "INTERNAL_SERVER_ERROR"), status_code=500
        )
