"""Node change events."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from nmos_media_node.domain.resource_types import ResourceType


class NodeOperation(StrEnum):
    """Logical operations that change the node graph."""

    NODE_INITIALIZED = "node-initialized"
    SENDER_ADDED = "sender-added"
    SENDER_REMOVED = "sender-removed"
    RECEIVER_ADDED = "receiver-added"
    RECEIVER_REMOVED = "receiver-removed"
    ACTIVATED = "activated"
    DEACTIVATED = "deactivated"
    STAGED = "staged"


@dataclass(slots=True, frozen=True)
class NodeChangeEvent:
    """Summary of one completed logical operation."""

    operation: NodeOperation
    resource_type: ResourceType
    resource_id: str
    internal_id: str
    version: int


__all__ = ["NodeChangeEvent", "NodeOperation"]
