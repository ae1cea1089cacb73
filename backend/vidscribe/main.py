"""
FastAPI application factory.
"""
from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import auth, billing, transcriptions
from .config import Config
from .errors import VidscribeError
from .services.container import AppServices

logger = logging.getLogger(__name__)


def create_app(config: Optional[Config] = None, services: Optional[AppServices] = None) -> FastAPI:
    config = config or (services.config if services else Config())
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_services = services or AppServices.from_config(config)
        app.state.services = app_services
        await app_services.startup()
        try:
            yield
        finally:
            await app_services.shutdown()

    app = FastAPI(title="Vidscribe API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(VidscribeError)
    async def vidscribe_error_handler(request: Request, exc: VidscribeError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/client-settings")
    async def client_settings():
        """Polling, paging and upload limits the dashboard client runs with."""
        return {
            "poll_interval_seconds": config.poll_interval_seconds,
            "poll_max_failures": config.poll_max_failures,
            "history_page_size": config.history_page_size,
            "max_upload_size_bytes": config.max_upload_size_bytes,
        }

    app.include_router(auth.router)
    app.include_router(transcriptions.router)
    app.include_router(billing.router)
    return app
