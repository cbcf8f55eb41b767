from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import time
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chatgate.apps.api.container import AppServices, build_services
from chatgate.apps.api.deps import build_request_context
from chatgate.apps.api.errors import (
    chatgate_exception_handler,
    error_body,
    starlette_http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from chatgate.apps.api.routes.admin import router as admin_router
from chatgate.apps.api.routes.auth import router as auth_router
from chatgate.apps.api.routes.chat import router as chat_router
from chatgate.apps.api.routes.health import router as health_router
from chatgate.apps.api.routes.pages import router as pages_router
from chatgate.core.config import Settings, get_settings
from chatgate.core.errors import ChatGateError
from chatgate.core.logging import configure_logging
from chatgate.services.gate import OUTCOME_DENIED, OUTCOME_UNAVAILABLE, GateDecision


logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "Service temporarily unavailable"


def _gate_response(request: Request, decision: GateDecision, settings: Settings):
    if decision.outcome == OUTCOME_UNAVAILABLE:
        if request.url.path.startswith("/api/"):
            return JSONResponse(content=error_body(UNAVAILABLE_MESSAGE), status_code=503)
        return HTMLResponse(
            content=f"<!doctype html><title>Unavailable</title><h1>{UNAVAILABLE_MESSAGE}</h1>",
            status_code=503,
        )

    response = RedirectResponse(url=decision.redirect_to or "/", status_code=307)
    if decision.outcome == OUTCOME_DENIED and decision.blocked_ip:
        response.set_cookie(
            settings.blocked_ip_cookie_name,
            decision.blocked_ip,
            max_age=settings.blocked_ip_cookie_max_age_s,
            httponly=True,
            secure=settings.is_production,
            samesite="lax",
            path="/",
        )
    return response


def create_app(settings: Settings | None = None, services: AppServices | None = None) -> FastAPI:
    """Build the ASGI app.

    ``services`` lets tests hand in a container wired to SQLite and mock
    transports; otherwise everything is built from ``settings`` (or the
    environment, which raises ``ConfigurationError`` when incomplete).
    """
    if services is not None:
        settings = services.settings
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.services.aclose()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.services = services

    @app.middleware("http")
    async def access_gate_middleware(request: Request, call_next):  # type: ignore[override]
        gate = request.app.state.services.gate
        decision = await gate.evaluate(build_request_context(request))
        if not decision.allowed:
            return _gate_response(request, decision, settings)
        # Downstream handlers read these through RequestContext, never from headers again.
        request.state.client_ip = decision.client_ip
        request.state.user = decision.user
        return await call_next(request)

    # Registered last so it wraps the gate and every response gets a request id.
    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
        start = time.monotonic()
        response = await call_next(request)
        latency_ms = (time.monotonic() - start) * 1000.0
        logger.info(
            "request method=%s path=%s status=%s latency_ms=%.1f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            latency_ms,
            request_id,
        )
        response.headers.setdefault("X-Request-Id", request_id)
        return response

    @app.exception_handler(ChatGateError)
    async def _chatgate_exception_handler(request: Request, exc: ChatGateError):
        return await chatgate_exception_handler(request, exc)

    @app.exception_handler(StarletteHTTPException)
    async def _starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        return await starlette_http_exception_handler(request, exc)

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(request: Request, exc: RequestValidationError):
        return await validation_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        return await unhandled_exception_handler(request, exc)

    app.include_router(health_router)
    app.include_router(chat_router)
    app.include_router(admin_router)
    app.include_router(auth_router)
    app.include_router(pages_router)

    return app
