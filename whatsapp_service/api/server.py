"""
WhatsApp Session Server
=======================
Creates the FastAPI application: session lifecycle in the lifespan, bearer
protected API routes, rate limiting, and the static control panel.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..core.logger import StructuredLogger, configure_third_party_loggers
from ..infrastructure.config.settings import get_settings
from ..infrastructure.container import Container
from .session_routes import router as session_router

PANEL_PATH = Path(__file__).parent / "static" / "panel.html"


def create_app(container: Optional[Container] = None) -> FastAPI:
    """Creates the session service application."""

    # 1. Initialize Dependencies
    if container is None:
        settings = get_settings()
        logger = StructuredLogger("SessionServer", settings.logging)
        container = Container(settings, logger)
    else:
        settings = container.settings
        logger = container.logger

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_third_party_loggers()
        logger.info("server.startup", {"app": settings.app_name, "version": settings.version})

        publisher = await container.create_status_publisher()
        controller = await container.create_session_controller()
        app.state.status_publisher = publisher
        app.state.session_controller = controller

        publisher.start_heartbeat()
        started = await controller.start()
        logger.info("server.session_started" if started else "server.session_start_failed", {
            "generation": controller.generation
        })

        yield

        logger.info("server.shutdown")
        await publisher.stop_heartbeat()
        await controller.shutdown()
        logger.info("server.shutdown_complete")

    app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)
    app.state.service_token = settings.whatsapp.service_token

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 401:
            logger.warning("api.unauthorized", {
                "endpoint": str(request.url.path),
                "client_ip": request.client.host if request.client else "unknown"
            })
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": str(exc.detail)},
            headers=getattr(exc, "headers", None)
        )

    # Sync handler: SlowAPIMiddleware calls it without awaiting
    def custom_rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning("api.rate_limit_exceeded", {
            "client_ip": request.client.host if request.client else "unknown",
            "endpoint": str(request.url.path),
            "method": request.method,
            "limit": str(exc.detail) if hasattr(exc, 'detail') else "unknown"
        })
        return JSONResponse(
            status_code=429,
            content={"message": "Too many requests. Please try again later."}
        )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.server.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, custom_rate_limit_handler)
    app.add_middleware(SlowAPIMiddleware)

    if settings.server.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.server.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(session_router)

    @app.get("/", response_class=HTMLResponse, include_in_schema=False)
    async def control_panel():
        return HTMLResponse(PANEL_PATH.read_text(encoding="utf-8"))

    return app
