"""Host interface enumeration."""

from __future__ import annotations

import logging
import socket

import psutil

from nmos_media_node.domain.entities import HostInterface
from nmos_media_node.domain.ports import HostInterfaceProvider

logger = logging.getLogger(__name__)


def normalize_mac_address(address: str) -> str | None:
    """Return a MAC address as lower-case, dash-separated octets."""

    octets = address.replace("-", ":").lower().split(":")
    if len(octets) != 6 or not all(len(octet) == 2 for octet in octets):
        return None
    return "-".join(octets)


class PsutilHostInterfaceProvider(HostInterfaceProvider):
    """Interfaces reported by the operating system, in the order it lists them."""

    def list_interfaces(self) -> list[HostInterface]:
        interfaces = []
        for name, entries in psutil.net_if_addrs().items():
            addresses: list[str] = []
            port_id = None
            for entry in entries:
                if entry.family in (socket.AF_INET, socket.AF_INET6):
                    addresses.append(entry.address.split("%", 1)[0])
                elif entry.family == psutil.AF_LINK:
                    port_id = normalize_mac_address(entry.address)
            interfaces.append(
                HostInterface(name=name, addresses=tuple(addresses), port_id=port_id)
            )
        logger.debug("Host interfaces: %s", [interface.name for interface in interfaces])
        return interfaces


class StaticHostInterfaceProvider(HostInterfaceProvider):
    """Fixed interface list, for hosts whose interfaces are configured explicitly."""

    def __init__(self, interfaces: list[HostInterface]) -> None:
        self._interfaces = list(interfaces)

    def list_interfaces(self) -> list[HostInterface]:
        return list(self._interfaces)


__all__ = [
    "PsutilHostInterfaceProvider",
    "StaticHostInterfaceProvider",
    "normalize_mac_address",
]
