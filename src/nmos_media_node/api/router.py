"""Top-level API router composition."""

from fastapi import APIRouter

from nmos_media_node.api.routes import (
    connection_router,
    health_router,
    node_control_router,
    node_resources_router,
)

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(node_control_router)
api_router.include_router(node_resources_router)
api_router.include_router(connection_router)

__all__ = ["api_router"]
