"""Domain entities."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any

from nmos_media_node.domain.resource_types import GROUP_HINT_TAG, INTERNAL_ID_TAG, ResourceType

_version_lock = threading.Lock()
_last_version_ns = 0


def make_version(timestamp_ns: int | None = None) -> str:
    """Return a `<seconds>:<nanoseconds>` version stamp.

    Stamps handed out by this process are strictly increasing.
    """

    global _last_version_ns

    with _version_lock:
        now = time.time_ns() if timestamp_ns is None else timestamp_ns
        if now <= _last_version_ns:
            now = _last_version_ns + 1
        _last_version_ns = now
    seconds, nanoseconds = divmod(now, 1_000_000_000)
    return f"{seconds}:{nanoseconds}"


@dataclass(slots=True)
class Resource:
    """IS-04 resource in the node graph, keyed by id and type."""

    id: str
    type: ResourceType
    data: dict[str, Any]

    @property
    def version(self) -> str:
        return str(self.data.get("version", ""))

    def bump_version(self) -> str:
        version = make_version()
        self.data["version"] = version
        return version

    @property
    def internal_id(self) -> str:
        values = self.data.get("tags", {}).get(INTERNAL_ID_TAG, [])
        return values[0] if values else ""

    @property
    def group_hint(self) -> str:
        values = self.data.get("tags", {}).get(GROUP_HINT_TAG, [])
        return values[0] if values else ""


@dataclass(slots=True, frozen=True)
class HostInterface:
    """Network interface reported by the host."""

    name: str
    addresses: tuple[str, ...] = ()
    port_id: str | None = None
    chassis_id: str | None = None

    def node_interface(self) -> dict[str, Any]:
        """IS-04 node `interfaces` entry."""

        return {"name": self.name, "chassis_id": self.chassis_id, "port_id": self.port_id}


@dataclass(slots=True, frozen=True)
class NodeDescriptor:
    """Node-level identity and presentation settings."""

    host_name: str
    label: str = ""
    description: str = ""
    tags: dict[str, list[str]] = field(default_factory=dict)
    host_addresses: tuple[str, ...] = ()
    http_port: int = 8080


@dataclass(slots=True)
class ResourceConfigs:
    """Side map of per-resource settings kept alongside the graph."""

    senders: dict[str, str] = field(default_factory=dict)
    receivers: dict[str, str] = field(default_factory=dict)
    clock_domains: dict[str, int] = field(default_factory=dict)

    def sdp_for(self, resource_type: ResourceType, resource_id: str) -> str | None:
        configs = self.senders if resource_type is ResourceType.SENDER else self.receivers
        return configs.get(resource_id)


__all__ = [
    "HostInterface",
    "NodeDescriptor",
    "Resource",
    "ResourceConfigs",
    "make_version",
]
