"""Resolution of "auto" transport parameters at activation."""

from __future__ import annotations

import ipaddress
import zlib
from collections.abc import Sequence
from typing import Any

from nmos_media_node.domain.connection import (
    AUTO,
    DEFAULT_RTP_PORT,
    ConnectionResource,
    ReceiverTransportParams,
    SenderTransportParams,
    TransportParams,
)
from nmos_media_node.domain.entities import Resource
from nmos_media_node.domain.resource_types import ResourceType, is_rtp_transport


def make_source_specific_multicast_address_v4(resource_id: str, leg: int) -> str:
    """Repeatable multicast address for one leg of a sender.

    CRC-32 of `"<id>/<leg>"` (UTF-8) read as a big-endian IPv4 address, then
    moved into 232.0.1.0-232.255.255.255, the source-specific multicast block
    reserved for local host allocation. Changing the hash changes every
    previously assigned address.
    """

    digest = zlib.crc32(f"{resource_id}/{leg}".encode("utf-8")) & 0xFFFFFFFF
    octets = bytearray(digest.to_bytes(4, "big"))
    octets[0] = 232
    octets[2] |= 1
    return str(ipaddress.IPv4Address(bytes(octets)))


def _constraint_enum_front(
    constraints: list[dict[str, Any]],
    leg: int,
    field_name: str,
) -> Any:
    if leg >= len(constraints):
        return None
    values = constraints[leg].get(field_name, {}).get("enum") or []
    return values[0] if values else None


def resolve_rtp_auto(
    resource_type: ResourceType,
    transport_params: Sequence[TransportParams],
) -> None:
    """Apply the RTP defaults to any ports still left as "auto"."""

    for params in transport_params:
        if params.destination_port == AUTO:
            params.destination_port = DEFAULT_RTP_PORT
        if (
            resource_type is ResourceType.SENDER
            and isinstance(params, SenderTransportParams)
            and params.source_port == AUTO
        ):
            params.source_port = DEFAULT_RTP_PORT


def resolve_auto(
    resource: Resource,
    connection: ConnectionResource,
    transport_params: Sequence[TransportParams],
) -> None:
    """Fill "auto" values from the constraint sets and the multicast generator.

    Non-RTP resources are left untouched.
    """

    if not is_rtp_transport(resource.data.get("transport")):
        return

    for leg, params in enumerate(transport_params):
        if isinstance(params, SenderTransportParams):
            if params.source_ip == AUTO:
                source_ip = _constraint_enum_front(connection.constraints, leg, "source_ip")
                if source_ip is not None:
                    params.source_ip = source_ip
            if params.destination_ip == AUTO:
                params.destination_ip = make_source_specific_multicast_address_v4(
                    connection.id, leg
                )
        elif isinstance(params, ReceiverTransportParams) and params.interface_ip == AUTO:
            interface_ip = _constraint_enum_front(connection.constraints, leg, "interface_ip")
            if interface_ip is not None:
                params.interface_ip = interface_ip

    resolve_rtp_auto(connection.type, transport_params)


__all__ = [
    "make_source_specific_multicast_address_v4",
    "resolve_auto",
    "resolve_rtp_auto",
]
