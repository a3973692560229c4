"""Host interface provider implementations."""

from nmos_media_node.infrastructure.host_interfaces.psutil_host_interface_provider import (
    PsutilHostInterfaceProvider,
    StaticHostInterfaceProvider,
    normalize_mac_address,
)

__all__ = [
    "PsutilHostInterfaceProvider",
    "StaticHostInterfaceProvider",
    "normalize_mac_address",
]
