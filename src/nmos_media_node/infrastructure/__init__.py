"""Infrastructure layer public API."""

from nmos_media_node.infrastructure.callbacks import (
    HttpActivationNotifier,
    LoggingActivationCallback,
)
from nmos_media_node.infrastructure.events import (
    MqttNodeEventPublisher,
    NoopNodeEventPublisher,
)
from nmos_media_node.infrastructure.host_interfaces import (
    PsutilHostInterfaceProvider,
    StaticHostInterfaceProvider,
)
from nmos_media_node.infrastructure.repositories import (
    InMemoryNodeModel,
    InMemoryResourceStore,
)

__all__ = [
    "HttpActivationNotifier",
    "InMemoryNodeModel",
    "InMemoryResourceStore",
    "LoggingActivationCallback",
    "MqttNodeEventPublisher",
    "NoopNodeEventPublisher",
    "PsutilHostInterfaceProvider",
    "StaticHostInterfaceProvider",
]
