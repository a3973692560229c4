"""Application bootstrap/wiring."""

import logging
import socket

from nmos_media_node.application.services import NodeService
from nmos_media_node.application.services.resource_factory import base_url
from nmos_media_node.config import Settings
from nmos_media_node.domain.entities import HostInterface, NodeDescriptor
from nmos_media_node.domain.identity import make_id, make_seed_id
from nmos_media_node.domain.ports import (
    ActivationCallback,
    HostInterfaceProvider,
    NodeEventPublisher,
)
from nmos_media_node.domain.resource_types import (
    ASSET_FUNCTION_TAG,
    ASSET_INSTANCE_ID_TAG,
    ASSET_MANUFACTURER_TAG,
    ASSET_PRODUCT_TAG,
    ResourceType,
)
from nmos_media_node.infrastructure.callbacks import (
    HttpActivationNotifier,
    LoggingActivationCallback,
)
from nmos_media_node.infrastructure.events import (
    MqttNodeEventPublisher,
    NoopNodeEventPublisher,
)
from nmos_media_node.infrastructure.host_interfaces import PsutilHostInterfaceProvider
from nmos_media_node.infrastructure.repositories import InMemoryNodeModel

logger = logging.getLogger(__name__)


def build_node_descriptor(
    settings: Settings,
    host_interfaces: list[HostInterface],
) -> NodeDescriptor:
    """Node identity and presentation from settings.

    Asset tags name the node "<manufacturer> <product> <instance id>" and
    describe it by its functions unless a label or description is configured.
    """

    label = settings.label
    description = settings.description
    tags: dict[str, list[str]] = {}
    if settings.has_asset_tags:
        tags = {
            ASSET_MANUFACTURER_TAG: [str(settings.asset_manufacturer)],
            ASSET_PRODUCT_TAG: [str(settings.asset_product)],
            ASSET_INSTANCE_ID_TAG: [str(settings.asset_instance_id)],
            ASSET_FUNCTION_TAG: list(settings.asset_functions),
        }
        if not label:
            label = " ".join(
                [
                    str(settings.asset_manufacturer),
                    str(settings.asset_product),
                    str(settings.asset_instance_id),
                ]
            )
        if not description:
            description = ", ".join(settings.asset_functions)

    host_addresses = tuple(settings.host_addresses)
    if not host_addresses:
        host_addresses = tuple(
            address
            for host_interface in host_interfaces
            for address in host_interface.addresses
            if ":" not in address and not address.startswith("127.")
        )

    return NodeDescriptor(
        host_name=settings.host_name or socket.gethostname(),
        label=label,
        description=description,
        tags=tags,
        host_addresses=host_addresses,
        http_port=settings.port,
    )


def _build_activation_callback(settings: Settings) -> ActivationCallback:
    if settings.activation_webhook_url is None:
        return LoggingActivationCallback()
    logger.info("Activations are posted to '%s'.", settings.activation_webhook_url)
    return HttpActivationNotifier(
        url=settings.activation_webhook_url,
        timeout_seconds=settings.activation_webhook_timeout_seconds,
    )


def _build_node_event_publisher(
    settings: Settings,
    node_id: str,
    node_href: str,
) -> NodeEventPublisher:
    if settings.node_events_mqtt_enabled:
        if settings.node_events_mqtt_host is None:
            raise ValueError(
                "NMOS_NODE_NODE_EVENTS_MQTT_HOST is required when "
                "NMOS_NODE_NODE_EVENTS_MQTT_ENABLED=true."
            )
        return MqttNodeEventPublisher(
            node_id=node_id,
            broker_host=settings.node_events_mqtt_host,
            broker_port=settings.node_events_mqtt_port,
            topic_prefix=settings.node_events_mqtt_topic_prefix,
            qos=settings.node_events_mqtt_qos,
            username=settings.node_events_mqtt_username,
            password=settings.node_events_mqtt_password,
            node_href=node_href,
        )
    return NoopNodeEventPublisher()


def build_node_service(
    settings: Settings,
    host_interface_provider: HostInterfaceProvider | None = None,
    activation_callback: ActivationCallback | None = None,
    event_publisher: NodeEventPublisher | None = None,
) -> NodeService:
    """Compose service graph and create the node."""

    if host_interface_provider is None:
        host_interface_provider = PsutilHostInterfaceProvider()
    seed_id = make_seed_id(settings.seed)
    descriptor = build_node_descriptor(settings, host_interface_provider.list_interfaces())
    if activation_callback is None:
        activation_callback = _build_activation_callback(settings)
    if event_publisher is None:
        event_publisher = _build_node_event_publisher(
            settings, make_id(seed_id, ResourceType.NODE), f"{base_url(descriptor)}/"
        )

    service = NodeService(
        model=InMemoryNodeModel(),
        descriptor=descriptor,
        seed_id=seed_id,
        host_interfaces=host_interface_provider,
        activation_callback=activation_callback,
        event_publisher=event_publisher,
    )
    service.init()
    return service


__all__ = ["build_node_descriptor", "build_node_service"]
