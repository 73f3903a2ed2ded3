"""
FastAPI application factory for the account hub.

This module builds the FastAPI application that game clients, world processes
and the web frontend talk to. It sets up:
- logging from ``config.logging``
- CORS middleware restricted to the configured web origins
- the shared ``AccountHub`` service container
- the background task runner, started and stopped by the app lifespan
- every API route module
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from account_hub import __version__
from account_hub.api.routes import register_routes
from account_hub.config import config
from account_hub.services.hub import AccountHub

logger = logging.getLogger(__name__)

LOG_FORMATS = {
    "simple": "%(levelname)s %(message)s",
    "detailed": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
}


def configure_logging() -> None:
    """Apply ``config.logging`` to the root logger."""
    logging.basicConfig(
        level=getattr(logging, config.logging.level.upper(), logging.INFO),
        format=LOG_FORMATS.get(config.logging.format, LOG_FORMATS["detailed"]),
        force=True,
    )


def create_app(hub: AccountHub | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        hub: Service container; tests pass one with injected collaborators.
            Defaults to ``AccountHub.build()``.
    """
    hub = hub or AccountHub.build()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        hub.tasks.start()
        logger.info("Account hub started (environment=%s)", config.security.environment)
        try:
            yield
        finally:
            hub.tasks.stop()
            logger.info("Account hub stopped")

    app = FastAPI(title="Account Hub", version=__version__, lifespan=lifespan)
    app.state.hub = hub

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    register_routes(app, hub)
    return app


def start_server(host: str | None = None, port: int | None = None) -> None:
    """Run the hub with uvicorn on the configured (or given) host and port."""
    import uvicorn

    configure_logging()
    uvicorn.run(
        create_app(),
        host=host or config.server.host,
        port=port or config.server.port,
        log_level=config.logging.level.lower(),
    )
