"""No-op node event publisher."""

from __future__ import annotations

from nmos_media_node.domain.events import NodeChangeEvent
from nmos_media_node.domain.ports import NodeEventPublisher


class NoopNodeEventPublisher(NodeEventPublisher):
    """No-op implementation for environments without event streaming."""

    def publish_change(self, event: NodeChangeEvent) -> None:
        _ = event


__all__ = ["NoopNodeEventPublisher"]
