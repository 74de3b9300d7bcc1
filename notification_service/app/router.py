"""Router registration plus health and metrics endpoints."""

from __future__ import annotations

from fastapi import APIRouter, FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from notification_service.features.notifications.router import admin_router
from notification_service.features.notifications.router import router as notifications_router
from notification_service.features.notifications.stream import stream_router

system_router = APIRouter(tags=["system"])


@system_router.get("/health", summary="Liveness check")
async def health() -> dict[str, str]:
    """Report that the process is serving requests."""
    return {"status": "ok"}


@system_router.get("/metrics", summary="Prometheus metrics", include_in_schema=False)
async def metrics() -> Response:
    """Expose Prometheus metrics in text format."""
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)


def setup_routers(app: FastAPI) -> None:
    """Register all routers. Admin routes go first so static paths win."""
    app.include_router(system_router)
    app.include_router(admin_router)
    app.include_router(stream_router)
    app.include_router(notifications_router)
