"""Application services public API."""

from nmos_media_node.application.services.node_service import CONNECTION_VIEWS, NodeService

__all__ = ["CONNECTION_VIEWS", "NodeService"]
