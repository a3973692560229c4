"""In-memory node model: resource stores, write lock and change notification."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from contextlib import AbstractContextManager

from nmos_media_node.domain.connection import ConnectionResource
from nmos_media_node.domain.entities import Resource, ResourceConfigs
from nmos_media_node.domain.ports import NodeModel, ResourceStore, T
from nmos_media_node.domain.resource_types import ResourceType


class InMemoryResourceStore(ResourceStore[T]):
    """Resources keyed by `(id, type)` in insertion order.

    Not synchronized; callers hold the owning model's write lock.
    """

    def __init__(self) -> None:
        self._resources: dict[tuple[str, ResourceType], T] = {}

    def insert(self, resource: T) -> bool:
        key = (resource.id, resource.type)
        if key in self._resources:
            return False
        self._resources[key] = resource
        return True

    def find(self, resource_id: str, resource_type: ResourceType) -> T | None:
        return self._resources.get((resource_id, resource_type))

    def modify(
        self,
        resource_id: str,
        resource_type: ResourceType,
        mutator: Callable[[T], None],
    ) -> bool:
        resource = self._resources.get((resource_id, resource_type))
        if resource is None:
            return False
        mutator(resource)
        return True

    def erase(self, resource_id: str, resource_type: ResourceType) -> bool:
        return self._resources.pop((resource_id, resource_type), None) is not None

    def list(self, resource_type: ResourceType | None = None) -> list[T]:
        return [
            resource
            for resource in self._resources.values()
            if resource_type is None or resource.type is resource_type
        ]

    def __len__(self) -> int:
        return len(self._resources)


class InMemoryNodeModel(NodeModel):
    """Node model for a single process, guarded by one re-entrant lock."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._changed = threading.Condition(self._lock)
        self._change_count = 0
        self._node_resources: InMemoryResourceStore[Resource] = InMemoryResourceStore()
        self._connection_resources: InMemoryResourceStore[ConnectionResource] = (
            InMemoryResourceStore()
        )
        self._configs = ResourceConfigs()

    @property
    def node_resources(self) -> InMemoryResourceStore[Resource]:
        return self._node_resources

    @property
    def connection_resources(self) -> InMemoryResourceStore[ConnectionResource]:
        return self._connection_resources

    @property
    def configs(self) -> ResourceConfigs:
        return self._configs

    @property
    def change_count(self) -> int:
        with self._lock:
            return self._change_count

    def write_lock(self) -> AbstractContextManager[object]:
        return self._lock

    def notify(self) -> int:
        with self._changed:
            self._change_count += 1
            self._changed.notify_all()
            return self._change_count

    def wait_for_change(self, since: int, timeout: float | None = None) -> int:
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._changed:
            while self._change_count <= since:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    break
                self._changed.wait(remaining)
            return self._change_count


__all__ = ["InMemoryNodeModel", "InMemoryResourceStore"]
