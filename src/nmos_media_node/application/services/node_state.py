"""Derived node state: the shared clock and the advertised interfaces."""

from __future__ import annotations

import logging
from typing import Any

from nmos_media_node.domain.entities import HostInterface, Resource, make_version
from nmos_media_node.domain.errors import InternalInconsistencyError
from nmos_media_node.domain.ports import ResourceStore
from nmos_media_node.domain.resource_types import ResourceType

logger = logging.getLogger(__name__)


def _find_node(node_resources: ResourceStore[Resource], node_id: str) -> Resource:
    node = node_resources.find(node_id, ResourceType.NODE)
    if node is None:
        raise InternalInconsistencyError(f"Node '{node_id}' is missing.")
    return node


def update_node_clock(
    node_resources: ResourceStore[Resource],
    node_id: str,
    clock: dict[str, Any],
) -> bool:
    """Replace the node clock of the same name if it differs.

    The clock must already exist. Returns True when the node was modified.
    """

    node = _find_node(node_resources, node_id)
    clocks = node.data.get("clocks", [])
    index = next(
        (i for i, existing in enumerate(clocks) if existing.get("name") == clock["name"]),
        None,
    )
    if index is None:
        raise InternalInconsistencyError(f"Node clock '{clock['name']}' is missing.")
    if clocks[index] == clock:
        return False

    def apply(resource: Resource) -> None:
        resource.data["clocks"][index] = dict(clock)
        resource.bump_version()

    node_resources.modify(node_id, ResourceType.NODE, apply)
    logger.info("Updated node clock '%s' to %s.", clock["name"], clock.get("ref_type"))
    return True


def update_node_interfaces(
    node_resources: ResourceStore[Resource],
    node_id: str,
    host_interfaces: list[HostInterface],
) -> bool:
    """Advertise exactly the host interfaces bound by a live sender or receiver.

    Returns True when the node was modified.
    """

    node = _find_node(node_resources, node_id)

    interface_names: set[str] = set()
    for resource_type in (ResourceType.SENDER, ResourceType.RECEIVER):
        for resource in node_resources.list(resource_type):
            interface_names.update(resource.data.get("interface_bindings", []))

    interfaces = [
        host_interface.node_interface()
        for host_interface in host_interfaces
        if host_interface.name in interface_names
    ]
    if interfaces == node.data.get("interfaces", []):
        return False

    def apply(resource: Resource) -> None:
        resource.data["interfaces"] = interfaces
        resource.bump_version()

    node_resources.modify(node_id, ResourceType.NODE, apply)
    logger.info("Node interfaces now %s.", [interface["name"] for interface in interfaces])
    return True


def find_interface(
    host_interfaces: list[HostInterface],
    address: str | None,
) -> HostInterface | None:
    """Return the first host interface bound to `address`."""

    if not address:
        return None
    for host_interface in host_interfaces:
        if address in host_interface.addresses:
            return host_interface
    return None


def find_source_for_sender(
    node_resources: ResourceStore[Resource],
    sender: Resource,
) -> Resource | None:
    flow_id = sender.data.get("flow_id")
    if flow_id is None:
        return None
    flow = node_resources.find(flow_id, ResourceType.FLOW)
    if flow is None:
        return None
    return node_resources.find(flow.data["source_id"], ResourceType.SOURCE)


def set_resource_subscription(
    resource: Resource,
    active: bool,
    peer_id: str | None,
    activation_time: str | None = None,
) -> None:
    """Mirror the connection state on the sender or receiver `subscription`."""

    peer_field = "receiver_id" if resource.type is ResourceType.SENDER else "sender_id"
    resource.data["subscription"] = {peer_field: peer_id, "active": active}
    resource.data["version"] = activation_time or make_version()


__all__ = [
    "find_interface",
    "find_source_for_sender",
    "set_resource_subscription",
    "update_node_clock",
    "update_node_interfaces",
]
