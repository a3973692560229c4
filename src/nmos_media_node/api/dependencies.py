"""Dependency providers for FastAPI routes."""

from functools import lru_cache

from nmos_media_node.application.services import NodeService
from nmos_media_node.bootstrap import build_node_service
from nmos_media_node.config import Settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return singleton settings."""

    return Settings()


@lru_cache(maxsize=1)
def get_node_service() -> NodeService:
    """Return singleton service graph."""

    return build_node_service(get_settings())


__all__ = ["get_node_service", "get_settings"]
