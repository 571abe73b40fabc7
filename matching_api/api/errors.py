"""Global error handlers producing the `{success: false, ...}` envelope with request_id."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from matching_api.domain.identity.policy import CoreError
from matching_api.obs.logging import current_request_id

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or current_request_id() or request.headers.get("X-Request-Id")


def error_payload(request: Request, error: str, reason: str, **extra: object) -> dict:
    payload = {"success": False, "error": error, "reason": reason, "request_id": _request_id(request)}
    payload.update(extra)
    return payload


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(CoreError)
    async def core_exc_handler(request: Request, exc: CoreError):  # type: ignore[override]
        extra = {}
        stage = getattr(exc, "stage", None)
        if stage:
            extra["stage"] = stage
        return JSONResponse(
            status_code=exc.status_code,
            content=error_payload(request, exc.message, exc.reason, **extra),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        detail = exc.detail if isinstance(exc.detail, str) else "http_error"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_payload(request, detail, detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        payload = error_payload(request, "Invalid request body", "validation_error", errors=jsonable_errors(exc))
        return JSONResponse(status_code=400, content=payload)

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):  # type: ignore[override]
        logger.error("unhandled_exception", extra={"path": request.url.path}, exc_info=exc)
        return JSONResponse(status_code=500, content=error_payload(request, "internal_error", "internal_error"))


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": str(err.get("msg", "")), "type": str(err.get("type", ""))}
        for err in exc.errors()
    ]
