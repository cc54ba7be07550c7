"""
FastAPI Application Entry Point

This module creates and configures the development backend for the
Smart-Home Face Gate. It implements the backend contract the client relies
on, in memory, so the client can run end to end without the real service.

The application provides:
- REST endpoints for the face identity registry and face verification
- REST endpoints for listing and toggling devices
- Health check endpoint

Usage:
    # From project root:
    uvicorn api.app:app --host 0.0.0.0 --port 8000 --reload

    # Or run directly:
    python -m api.app
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from api.routes import devices_router, face_recognition_router
from api.schemas import HealthResponse
from api.store import DeviceStore, FaceRegistryStore
from core.config import configure_logging, get_server_config

logger = logging.getLogger(__name__)

API_PREFIX = "/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log startup/shutdown of the development backend."""
    logger.info("=" * 60)
    logger.info("Starting Smart-Home Face Gate development backend")
    logger.info(
        f"{len(app.state.registry_store)} identities enrolled, "
        f"{len(app.state.device_store)} devices"
    )
    logger.info("=" * 60)

    yield

    logger.info("Shutting down development backend")


def create_app(
    prefix: str = API_PREFIX,
    registry_store: Optional[FaceRegistryStore] = None,
    device_store: Optional[DeviceStore] = None,
) -> FastAPI:
    """
    Build a backend app with its own in-memory state.

    Args:
        prefix: Path prefix for every route (matches the client's base URL path).
        registry_store: Identity store to serve; a fresh one by default.
        device_store: Device store to serve; the default devices by default.
    """
    app = FastAPI(
        title="Smart-Home Face Gate Development Backend",
        description="""
In-memory stand-in for the smart-home backend.

## Features
- **Face recognition**: list, register, authenticate and remove identities
- **Devices**: list devices and toggle them (door lock included)
        """,
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.registry_store = registry_store if registry_store is not None else FaceRegistryStore()
    app.state.device_store = device_store if device_store is not None else DeviceStore()

    # Configure CORS for web client access
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Allows all origins (adjust for production)
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    api_router = APIRouter(prefix=prefix)
    api_router.include_router(face_recognition_router)
    api_router.include_router(devices_router)

    @api_router.get("/health", response_model=HealthResponse, tags=["system"])
    async def health_check(request: Request):
        """Report backend status and registry size."""
        return HealthResponse(
            status="healthy",
            enrolled_users=len(request.app.state.registry_store),
            devices=len(request.app.state.device_store),
        )

    app.include_router(api_router)

    @app.get("/", tags=["system"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "Smart-Home Face Gate Development Backend",
            "version": "0.1.0",
            "docs": "/docs",
            "health": f"{prefix}/health",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    configure_logging()
    server = get_server_config()

    logger.info(f"Starting server on {server['host']}:{server['port']}")
    uvicorn.run(
        "api.app:app",
        host=server["host"],
        port=server["port"],
        reload=True,
        log_level="info",
    )
