"""Node event publisher implementations."""

from nmos_media_node.infrastructure.events.mqtt_node_event_publisher import (
    MqttNodeEventPublisher,
)
from nmos_media_node.infrastructure.events.noop_node_event_publisher import (
    NoopNodeEventPublisher,
)

__all__ = ["MqttNodeEventPublisher", "NoopNodeEventPublisher"]
