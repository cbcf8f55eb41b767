from __future__ import annotations

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chatgate.core.errors import ChatGateError


logger = logging.getLogger(__name__)


def error_body(message: str) -> dict[str, str]:
    # Every API failure uses the same single-field shape.
    return {"error": message}


async def chatgate_exception_handler(request: Request, exc: ChatGateError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "request_failed path=%s status=%s request_id=%s detail=%s",
            request.url.path,
            exc.status_code,
            getattr(request.state, "request_id", None),
            exc,
            exc_info=exc,
        )
    return JSONResponse(content=error_body(exc.public_message), status_code=exc.status_code)


async def starlette_http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(content=error_body(detail), status_code=exc.status_code, headers=exc.headers)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # Malformed bodies are client errors; report 400 rather than FastAPI's 422.
    logger.info("request_validation_failed path=%s errors=%s", request.url.path, exc.errors())
    return JSONResponse(content=error_body("Invalid request"), status_code=400)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Avoid leaking stack traces; the detail goes to the log only.
    logger.exception(
        "request_unhandled_error path=%s request_id=%s",
        request.url.path,
        getattr(request.state, "request_id", None),
        exc_info=exc,
    )
    return JSONResponse(content=error_body("Internal server error"), status_code=500)
