# src/rchat/main.py
"""Main entry point for the RChat application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from rchat.api.v1 import (
    admin_router,
    auth_router,
    channels_router,
    conversations_router,
    messages_router,
    public_router,
    realtime_router,
    servers_router,
)
from rchat.core.errors import register_error_handlers
from rchat.core.settings import settings
from rchat.db import SessionLocal, create_tables
from rchat.services.fanout import ConnectionManager
from rchat.services.servers import ensure_default_server, recompute_counts

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="RChat API",
    description="Multi-tenant chat with live presence and moderation",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

register_error_handlers(app)

# One registry and bus per process
app.state.connections = ConnectionManager()

# Include API routers
app.include_router(auth_router, prefix="/api/v1")
app.include_router(servers_router, prefix="/api/v1")
app.include_router(channels_router, prefix="/api/v1")
app.include_router(conversations_router, prefix="/api/v1")
app.include_router(messages_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")
app.include_router(public_router, prefix="/api/v1")
app.include_router(realtime_router)


def bootstrap() -> None:
    """Create tables, the default community and repaired counts."""
    create_tables()
    with SessionLocal() as db:
        server, channel = ensure_default_server(db)
        recompute_counts(db)
        logger.info("Default server %s ready (channel %s)", server.name, channel.id)


@app.on_event("startup")
async def on_startup() -> None:
    if settings.auto_bootstrap:
        bootstrap()


@app.get("/health")
async def health_check() -> dict[str, str | int]:
    """Health check endpoint to verify the service is running."""
    manager: ConnectionManager = app.state.connections
    return {
        "status": "ok",
        "connections": manager.connection_count(),
        "online_users": len(manager.online_usernames()),
    }


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "RChat API",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("rchat.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
