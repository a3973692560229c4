"""Ports for the resource store, host interfaces, activation and change events."""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractContextManager
from typing import Protocol, TypeVar

from nmos_media_node.domain.connection import ConnectionResource
from nmos_media_node.domain.entities import HostInterface, Resource, ResourceConfigs
from nmos_media_node.domain.events import NodeChangeEvent
from nmos_media_node.domain.resource_types import ResourceType

T = TypeVar("T", Resource, ConnectionResource)


class ResourceStore(Protocol[T]):
    """Resources keyed by id and type.

    Callers hold the model write lock for the whole of a logical operation.
    """

    def insert(self, resource: T) -> bool:
        """Insert a resource; return False if the id and type are already present."""

    def find(self, resource_id: str, resource_type: ResourceType) -> T | None:
        """Return a resource by id and type."""

    def modify(
        self,
        resource_id: str,
        resource_type: ResourceType,
        mutator: Callable[[T], None],
    ) -> bool:
        """Apply `mutator` in place; return False if the resource is missing."""

    def erase(self, resource_id: str, resource_type: ResourceType) -> bool:
        """Remove a resource; return False if it was missing."""

    def list(self, resource_type: ResourceType | None = None) -> list[T]:
        """Return resources in insertion order, optionally of one type."""


class NodeModel(Protocol):
    """Node and connection resources guarded by a single write lock."""

    @property
    def node_resources(self) -> ResourceStore[Resource]:
        """IS-04 resources."""

    @property
    def connection_resources(self) -> ResourceStore[ConnectionResource]:
        """IS-05 resources."""

    @property
    def configs(self) -> ResourceConfigs:
        """Side map of per-resource settings."""

    def write_lock(self) -> AbstractContextManager[object]:
        """Return the process-wide write lock."""

    def notify(self) -> int:
        """Wake waiters after a completed operation; return the new change counter."""

    def wait_for_change(self, since: int, timeout: float | None = None) -> int:
        """Block until the change counter exceeds `since` or the timeout expires."""


class HostInterfaceProvider(Protocol):
    """Enumerates the host's network interfaces."""

    def list_interfaces(self) -> list[HostInterface]:
        """Return interfaces in host order with their bound addresses."""


class ActivationCallback(Protocol):
    """Receives the effective session description on each activation."""

    def __call__(self, internal_id: str, sdp: str | None) -> None:
        """`sdp` is None when the sender or receiver was deactivated."""


class NodeEventPublisher(Protocol):
    """Publishes one event per completed logical operation."""

    def publish_change(self, event: NodeChangeEvent) -> None:
        """Publish a node change event."""


__all__ = [
    "ActivationCallback",
    "HostInterfaceProvider",
    "NodeEventPublisher",
    "NodeModel",
    "ResourceStore",
]
