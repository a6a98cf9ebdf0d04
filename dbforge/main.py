# dbforge/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from dbforge import __version__
from dbforge.config import Settings, get_settings
from dbforge.deps import build_services
from dbforge.errors import DBForgeError
from dbforge.llms.registry import ProviderFactory
from dbforge.logging import safe_extra, setup_logging
from dbforge.middleware.correlation import CORRELATION_ID_HEADER, REQUEST_ID_HEADER, CorrelationIdMiddleware
from dbforge.routers.automation import router as automation_router
from dbforge.routers.databases import router as databases_router
from dbforge.routers.monitor import router as monitor_router
from dbforge.routers.records import router as records_router
from dbforge.routers.schema import router as schema_router

log = logging.getLogger(__name__)

PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, x-request-id, x-correlation-id",
}


class PreflightMiddleware(BaseHTTPMiddleware):
    """Every OPTIONS request gets 200 with an empty body, whatever the route."""

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=PREFLIGHT_HEADERS)
        return await call_next(request)


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DBForgeError)
    async def _dbforge_error(request: Request, exc: DBForgeError):
        log.warning(
            "request.failed",
            extra=safe_extra({"path": request.url.path, "status": exc.status_code, "error": exc.message}),
        )
        return ORJSONResponse(exc.to_body(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _body_invalid(request: Request, exc: RequestValidationError):
        return ORJSONResponse(
            {
                "error": "Invalid request",
                "message": "Request body or parameters failed validation",
                "hint": "Check that all property names and values are properly formatted",
                "errors": [
                    {"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()
                ],
            },
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        log.exception("request.unhandled", extra=safe_extra({"path": request.url.path}))
        return ORJSONResponse({"error": "Internal server error", "message": str(exc)}, status_code=500)


def create_app(
    settings: Optional[Settings] = None,
    *,
    notion_transport: Optional[httpx.AsyncBaseTransport] = None,
    providers: Optional[ProviderFactory] = None,
    sleep=None,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Startup:
          - build the service graph (workspace client, catalog, listing cache, engine)
        Shutdown:
          - close the shared workspace HTTP client
        """
        services = build_services(
            settings,
            notion_transport=notion_transport,
            providers=providers,
            sleep=sleep,
        )
        app.state.services = services
        missing = settings.missing_required()
        if missing:
            log.warning("startup.missing_settings", extra=safe_extra({"missing": missing}))
        log.info("startup.complete", extra=safe_extra({"service": settings.SERVICE_NAME, "env": settings.ENV}))
        try:
            yield
        finally:
            await services.aclose()
            log.info("shutdown.complete")

    app = FastAPI(title=settings.SERVICE_NAME, version=__version__, lifespan=lifespan)

    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*", REQUEST_ID_HEADER, CORRELATION_ID_HEADER],
        expose_headers=[
            REQUEST_ID_HEADER,
            CORRELATION_ID_HEADER,
            "X-Cache",
            "X-Response-Time",
            "X-Database-Count",
        ],
    )
    # outermost: answers preflights before CORSMiddleware sees them
    app.add_middleware(PreflightMiddleware)
    _install_error_handlers(app)

    app.include_router(records_router)
    app.include_router(databases_router)
    app.include_router(schema_router)
    app.include_router(automation_router)
    app.include_router(monitor_router)

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    return app


app = create_app()


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run("dbforge.main:app", host="0.0.0.0", port=settings.PORT, log_level=settings.LOG_LEVEL.lower())
