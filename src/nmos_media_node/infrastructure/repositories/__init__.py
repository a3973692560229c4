"""Node model implementations."""

from nmos_media_node.infrastructure.repositories.in_memory_node_model import (
    InMemoryNodeModel,
    InMemoryResourceStore,
)

__all__ = ["InMemoryNodeModel", "InMemoryResourceStore"]
