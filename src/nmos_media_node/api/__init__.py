"""HTTP API public surface."""

from nmos_media_node.api.router import api_router

__all__ = ["api_router"]
