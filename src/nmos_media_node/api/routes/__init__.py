"""Route modules public API."""

from nmos_media_node.api.routes.connection import router as connection_router
from nmos_media_node.api.routes.health import router as health_router
from nmos_media_node.api.routes.node_control import router as node_control_router
from nmos_media_node.api.routes.node_resources import router as node_resources_router

__all__ = [
    "connection_router",
    "health_router",
    "node_control_router",
    "node_resources_router",
]
