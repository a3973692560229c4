"""Node use-case service."""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Sequence
from typing import Any
from uuid import UUID

from pydantic import ValidationError

from nmos_media_node.application.services.activation import (
    handle_activation,
    make_activation_report,
    set_transportfile,
)
from nmos_media_node.application.services.auto_resolver import resolve_auto
from nmos_media_node.application.services.node_state import (
    find_interface,
    find_source_for_sender,
    set_resource_subscription,
    update_node_clock,
    update_node_interfaces,
)
from nmos_media_node.application.services.resource_factory import (
    make_device,
    make_node,
    make_receiver_resources,
    make_sender_resources,
)
from nmos_media_node.application.services.sdp_mapping import (
    get_group_hint,
    get_internal_id,
    get_sdp_parameters,
    get_session_info,
    get_transport_params,
    get_ts_refclks,
)
from nmos_media_node.domain.clocks import (
    DEFAULT_CLOCK_NAME,
    DEFAULT_PTP_DOMAIN,
    TsRefClk,
    make_internal_clock,
    make_node_clock,
)
from nmos_media_node.domain.connection import (
    Activation,
    ConnectionEndpoint,
    ConnectionResource,
    ReceiverEndpoint,
    SenderEndpoint,
    TransportFile,
    TransportParams,
)
from nmos_media_node.domain.entities import (
    HostInterface,
    NodeDescriptor,
    Resource,
    make_version,
)
from nmos_media_node.domain.errors import (
    DuplicateResourceError,
    InternalInconsistencyError,
    InvalidStagedRequestError,
    NoMatchingInterfaceError,
    ResourceNotFoundError,
    SdpParseError,
)
from nmos_media_node.domain.events import NodeChangeEvent, NodeOperation
from nmos_media_node.domain.identity import make_id
from nmos_media_node.domain.ports import (
    ActivationCallback,
    HostInterfaceProvider,
    NodeEventPublisher,
    NodeModel,
)
from nmos_media_node.domain.resource_types import (
    APPLICATION_SDP,
    CONNECTION_TYPES,
    ActivationMode,
    ResourceType,
)
from nmos_media_node.domain.session_description import (
    SessionDescription,
    parse_session_description,
)

logger = logging.getLogger(__name__)

CONNECTION_VIEWS = ("staged", "active", "constraints")


class NodeService:
    """Keeps the node resource graph consistent with the senders and receivers it hosts.

    Every public operation runs under the model write lock and either completes
    or leaves the graph unchanged. Waiters are notified and a change event is
    published once per completed operation, after the lock is released.
    """

    def __init__(
        self,
        model: NodeModel,
        descriptor: NodeDescriptor,
        seed_id: UUID,
        host_interfaces: HostInterfaceProvider,
        activation_callback: ActivationCallback,
        event_publisher: NodeEventPublisher,
    ) -> None:
        self._model = model
        self._descriptor = descriptor
        self._seed_id = seed_id
        self._host_interfaces = host_interfaces
        self._activation_callback = activation_callback
        self._event_publisher = event_publisher
        self._node_id = make_id(seed_id, ResourceType.NODE)
        self._device_id = make_id(seed_id, ResourceType.DEVICE)

    @property
    def node_id(self) -> str:
        return self._node_id

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def model(self) -> NodeModel:
        return self._model

    def init(self) -> None:
        """Create the node, with a single internal clock, and its device."""

        with self._model.write_lock():
            store = self._model.node_resources
            if store.find(self._node_id, ResourceType.NODE) is not None:
                raise DuplicateResourceError(f"Node '{self._node_id}' already exists.")
            node = make_node(
                self._node_id,
                self._descriptor,
                [make_internal_clock(DEFAULT_CLOCK_NAME)],
            )
            device = make_device(self._device_id, self._node_id, self._descriptor)
            self._insert_all([node, device], [])
            self._model.configs.clock_domains[DEFAULT_CLOCK_NAME] = DEFAULT_PTP_DOMAIN

        logger.info(
            "Initialized node '%s' on host '%s'.",
            self._node_id,
            self._descriptor.host_name,
        )
        self._completed(NodeOperation.NODE_INITIALIZED, ResourceType.NODE, self._node_id, "")

    def add_sender(self, sdp: str) -> Resource:
        """Create a sender, with its source, flow and connection resource, from `sdp`."""

        session_description = parse_session_description(sdp)
        internal_id = get_internal_id(session_description)
        sdp_params = get_sdp_parameters(session_description)
        transport_params = get_transport_params(ResourceType.SENDER, session_description)
        host_interfaces = self._host_interfaces.list_interfaces()
        interface_names = _interface_names(
            host_interfaces,
            [getattr(params, "source_ip", None) for params in transport_params],
        )

        with self._model.write_lock():
            self._ensure_unused(internal_id)
            self._require_node()
            self._require_clock(DEFAULT_CLOCK_NAME)
            resources = make_sender_resources(
                seed_id=self._seed_id,
                internal_id=internal_id,
                group_hint=get_group_hint(session_description),
                session_info=get_session_info(session_description),
                sdp_params=sdp_params,
                transport_params=transport_params,
                interface_names=interface_names,
                descriptor=self._descriptor,
                clock_name=DEFAULT_CLOCK_NAME,
            )
            connection = resources.connection
            resolve_auto(resources.sender, connection, connection.active.transport_params)

            self._insert_all(
                [resources.source, resources.flow, resources.sender],
                [connection],
            )
            self._update_device(ResourceType.SENDER, add=resources.sender.id)
            update_node_interfaces(self._model.node_resources, self._node_id, host_interfaces)
            self._update_clock(DEFAULT_CLOCK_NAME, sdp_params.ts_refclk)
            self._model.configs.senders[resources.sender.id] = sdp
            sender = copy.deepcopy(resources.sender)

        logger.info(
            "Added %s sender '%s' as '%s'.",
            resources.media_format,
            internal_id,
            sender.id,
        )
        self._completed(NodeOperation.SENDER_ADDED, ResourceType.SENDER, sender.id, internal_id)
        return sender

    def add_receiver(self, sdp: str) -> Resource:
        """Create a receiver and its connection resource from `sdp`."""

        session_description = parse_session_description(sdp)
        internal_id = get_internal_id(session_description)
        sdp_params = get_sdp_parameters(session_description)
        transport_params = get_transport_params(ResourceType.RECEIVER, session_description)
        host_interfaces = self._host_interfaces.list_interfaces()
        interface_names = _interface_names(
            host_interfaces,
            [getattr(params, "interface_ip", None) for params in transport_params],
        )

        with self._model.write_lock():
            self._ensure_unused(internal_id)
            self._require_node()
            resources = make_receiver_resources(
                seed_id=self._seed_id,
                internal_id=internal_id,
                group_hint=get_group_hint(session_description),
                session_info=get_session_info(session_description),
                sdp_params=sdp_params,
                transport_params=transport_params,
                interface_names=interface_names,
            )
            connection = resources.connection
            resolve_auto(resources.receiver, connection, connection.active.transport_params)

            self._insert_all([resources.receiver], [connection])
            self._update_device(ResourceType.RECEIVER, add=resources.receiver.id)
            update_node_interfaces(self._model.node_resources, self._node_id, host_interfaces)
            self._model.configs.receivers[resources.receiver.id] = sdp
            receiver = copy.deepcopy(resources.receiver)

        logger.info(
            "Added %s receiver '%s' as '%s'.",
            resources.media_format,
            internal_id,
            receiver.id,
        )
        self._completed(
            NodeOperation.RECEIVER_ADDED, ResourceType.RECEIVER, receiver.id, internal_id
        )
        return receiver

    def remove_sender(self, internal_id: str) -> None:
        """Remove a sender with its connection resource, flow and source."""

        sender_id = make_id(self._seed_id, ResourceType.SENDER, internal_id)
        host_interfaces = self._host_interfaces.list_interfaces()

        with self._model.write_lock():
            store = self._model.node_resources
            sender = store.find(sender_id, ResourceType.SENDER)
            if sender is None:
                raise ResourceNotFoundError(f"Sender '{internal_id}' not found.")
            flow = store.find(sender.data.get("flow_id", ""), ResourceType.FLOW)

            self._model.connection_resources.erase(sender_id, ResourceType.SENDER)
            store.erase(sender_id, ResourceType.SENDER)
            if flow is not None:
                store.erase(flow.id, ResourceType.FLOW)
                store.erase(flow.data.get("source_id", ""), ResourceType.SOURCE)
            self._update_device(ResourceType.SENDER, remove=sender_id)
            update_node_interfaces(store, self._node_id, host_interfaces)
            self._model.configs.senders.pop(sender_id, None)

        logger.info("Removed sender '%s'.", internal_id)
        self._completed(NodeOperation.SENDER_REMOVED, ResourceType.SENDER, sender_id, internal_id)

    def remove_receiver(self, internal_id: str) -> None:
        """Remove a receiver with its connection resource."""

        receiver_id = make_id(self._seed_id, ResourceType.RECEIVER, internal_id)
        host_interfaces = self._host_interfaces.list_interfaces()

        with self._model.write_lock():
            store = self._model.node_resources
            if store.find(receiver_id, ResourceType.RECEIVER) is None:
                raise ResourceNotFoundError(f"Receiver '{internal_id}' not found.")

            self._model.connection_resources.erase(receiver_id, ResourceType.RECEIVER)
            store.erase(receiver_id, ResourceType.RECEIVER)
            self._update_device(ResourceType.RECEIVER, remove=receiver_id)
            update_node_interfaces(store, self._node_id, host_interfaces)
            self._model.configs.receivers.pop(receiver_id, None)

        logger.info("Removed receiver '%s'.", internal_id)
        self._completed(
            NodeOperation.RECEIVER_REMOVED, ResourceType.RECEIVER, receiver_id, internal_id
        )

    def force_activate(self, internal_id: str, sdp: str | None) -> None:
        """Activate a sender or receiver with `sdp`, or deactivate it when `sdp` is None.

        Bypasses the staged endpoint. The activation callback is invoked before
        the write lock is released.
        """

        with self._model.write_lock():
            resource = self._find_by_internal_id(internal_id)
            connection = self._find_connection(resource)

            session_description: SessionDescription | None = None
            transport_params: list[TransportParams] = []
            if sdp is not None:
                session_description = parse_session_description(sdp)
                transport_params = _fit_legs(
                    connection, get_transport_params(resource.type, session_description)
                )

            node = copy.deepcopy(self._find_resource(ResourceType.NODE, self._node_id))
            clock_domains = dict(self._model.configs.clock_domains)
            try:
                if resource.type is ResourceType.SENDER and session_description is not None:
                    source = find_source_for_sender(self._model.node_resources, resource)
                    if source is None:
                        raise InternalInconsistencyError(
                            f"Source of sender '{resource.id}' is missing."
                        )
                    self._update_clock(
                        source.data.get("clock_name", DEFAULT_CLOCK_NAME),
                        get_ts_refclks(session_description),
                    )

                activation_time = make_version()
                working = copy.deepcopy(connection)
                active = working.active
                setattr(active, working.peer_field, None)
                active.master_enable = sdp is not None
                active.activation = Activation(activation_time=activation_time)
                if sdp is not None:
                    if isinstance(active, ReceiverEndpoint):
                        active.transport_file = TransportFile.sdp(sdp)
                    active.transport_params = transport_params
                working.version = activation_time

                resource = self._commit(resource, working, activation_time)
            except Exception:
                self._restore_node(node, clock_domains)
                raise

        operation = NodeOperation.ACTIVATED if sdp is not None else NodeOperation.DEACTIVATED
        self._completed(operation, resource.type, resource.id, internal_id)

    def stage_connection(
        self,
        resource_type: ResourceType,
        resource_id: str,
        patch: dict[str, Any],
    ) -> ConnectionEndpoint:
        """Merge `patch` into the staged endpoint, activating it when requested.

        Only immediate activation is supported. Returns the staged endpoint.
        """

        with self._model.write_lock():
            resource = self._find_resource(resource_type, resource_id)
            connection = self._find_connection(resource)
            working = copy.deepcopy(connection)
            working.staged = _merge_staged(working, patch)
            mode = working.staged.activation.mode

            if mode is None:
                activated = False
                self._model.connection_resources.modify(
                    working.id, working.type, _replace_connection(working)
                )
            elif mode == ActivationMode.IMMEDIATE:
                activated = True
                activation_time = make_version()
                active = working.staged.model_copy(deep=True)
                resolve_auto(resource, working, active.transport_params)
                active.activation = Activation(
                    mode=ActivationMode.IMMEDIATE.value,
                    activation_time=activation_time,
                )
                working.active = active
                working.version = activation_time
                working.staged.activation = Activation()
                resource = self._commit(resource, working, activation_time)
            else:
                raise InvalidStagedRequestError(f"Activation mode '{mode}' is not supported.")
            staged = working.staged.model_copy(deep=True)

        if not activated:
            operation = NodeOperation.STAGED
        elif working.active.master_enable:
            operation = NodeOperation.ACTIVATED
        else:
            operation = NodeOperation.DEACTIVATED
        self._completed(operation, resource.type, resource.id, resource.internal_id)
        return staged

    def get_resource(self, resource_type: ResourceType, resource_id: str) -> Resource:
        with self._model.write_lock():
            return copy.deepcopy(self._find_resource(resource_type, resource_id))

    def list_resources(self, resource_type: ResourceType) -> list[Resource]:
        with self._model.write_lock():
            return copy.deepcopy(self._model.node_resources.list(resource_type))

    def get_node_self(self) -> Resource:
        return self.get_resource(ResourceType.NODE, self._node_id)

    def get_connection(
        self,
        resource_type: ResourceType,
        resource_id: str,
        view: str,
    ) -> Any:
        """Return the `staged`, `active` or `constraints` document of a connection resource."""

        if resource_type not in CONNECTION_TYPES:
            raise ResourceNotFoundError(f"{resource_type} has no connection resource.")
        if view not in CONNECTION_VIEWS:
            raise ResourceNotFoundError(f"Unknown connection endpoint '{view}'.")
        with self._model.write_lock():
            connection = self._model.connection_resources.find(resource_id, resource_type)
            if connection is None:
                raise ResourceNotFoundError(
                    f"{resource_type.capitalize()} '{resource_id}' not found."
                )
            if view == "constraints":
                return copy.deepcopy(connection.constraints)
            endpoint: ConnectionEndpoint = getattr(connection, view)
            return endpoint.model_dump(mode="json")

    def get_transportfile(self, sender_id: str) -> TransportFile:
        with self._model.write_lock():
            connection = self._model.connection_resources.find(sender_id, ResourceType.SENDER)
            if connection is None:
                raise ResourceNotFoundError(f"Sender '{sender_id}' not found.")
            if connection.transportfile is None or connection.transportfile.data is None:
                raise ResourceNotFoundError(f"Sender '{sender_id}' has no transport file.")
            return connection.transportfile.model_copy()

    def _commit(
        self,
        resource: Resource,
        working: ConnectionResource,
        activation_time: str,
    ) -> Resource:
        """Store an activated connection resource and report the activation.

        The transport file and the report are built before anything is stored.
        """

        if resource.type is ResourceType.SENDER:
            set_transportfile(
                self._model.node_resources,
                self._model.configs,
                self._node_id,
                resource,
                working,
            )
        report = make_activation_report(self._model.configs, resource, working)

        active = working.active
        updated = copy.deepcopy(resource)
        set_resource_subscription(
            updated, active.master_enable, getattr(active, working.peer_field), activation_time
        )
        self._model.connection_resources.modify(
            working.id, working.type, _replace_connection(working)
        )
        self._model.node_resources.modify(
            resource.id, resource.type, _replace_data(updated.data)
        )
        if report is not None:
            handle_activation(report, self._activation_callback)
        return updated

    def _find_resource(self, resource_type: ResourceType, resource_id: str) -> Resource:
        resource = self._model.node_resources.find(resource_id, resource_type)
        if resource is None:
            raise ResourceNotFoundError(
                f"{resource_type.capitalize()} '{resource_id}' not found."
            )
        return resource

    def _find_by_internal_id(self, internal_id: str) -> Resource:
        store = self._model.node_resources
        for resource_type in (ResourceType.SENDER, ResourceType.RECEIVER):
            resource = store.find(make_id(self._seed_id, resource_type, internal_id), resource_type)
            if resource is not None:
                return resource
        raise ResourceNotFoundError(f"Sender or receiver '{internal_id}' not found.")

    def _find_connection(self, resource: Resource) -> ConnectionResource:
        connection = self._model.connection_resources.find(resource.id, resource.type)
        if connection is None:
            raise InternalInconsistencyError(
                f"Connection resource of {resource.type} '{resource.id}' is missing."
            )
        return connection

    def _ensure_unused(self, internal_id: str) -> None:
        store = self._model.node_resources
        for resource_type in (ResourceType.SENDER, ResourceType.RECEIVER):
            if store.find(make_id(self._seed_id, resource_type, internal_id), resource_type):
                raise DuplicateResourceError(
                    f"Internal id '{internal_id}' is already used by a {resource_type}."
                )

    def _require_node(self) -> None:
        if self._model.node_resources.find(self._node_id, ResourceType.NODE) is None:
            raise InternalInconsistencyError("Node has not been initialized.")
        if self._model.node_resources.find(self._device_id, ResourceType.DEVICE) is None:
            raise InternalInconsistencyError(f"Device '{self._device_id}' is missing.")

    def _require_clock(self, clock_name: str) -> None:
        node = self._find_resource(ResourceType.NODE, self._node_id)
        if not any(clock.get("name") == clock_name for clock in node.data.get("clocks", [])):
            raise InternalInconsistencyError(f"Node clock '{clock_name}' is missing.")

    def _restore_node(self, node: Resource, clock_domains: dict[str, int]) -> None:
        self._model.node_resources.modify(
            self._node_id, ResourceType.NODE, _replace_data(node.data)
        )
        self._model.configs.clock_domains.clear()
        self._model.configs.clock_domains.update(clock_domains)

    def _insert_all(
        self,
        resources: Sequence[Resource],
        connections: Sequence[ConnectionResource],
    ) -> None:
        """Insert every resource or none of them."""

        inserted: list[tuple[Any, Resource | ConnectionResource]] = []
        stores: list[tuple[Any, Sequence[Resource | ConnectionResource]]] = [
            (self._model.node_resources, resources),
            (self._model.connection_resources, connections),
        ]
        for store, items in stores:
            for item in items:
                if not store.insert(item):
                    for inserted_store, inserted_item in reversed(inserted):
                        inserted_store.erase(inserted_item.id, inserted_item.type)
                    raise DuplicateResourceError(
                        f"{item.type.capitalize()} '{item.id}' already exists."
                    )
                inserted.append((store, item))

    def _update_device(
        self,
        resource_type: ResourceType,
        add: str | None = None,
        remove: str | None = None,
    ) -> None:
        field_name = f"{resource_type}s"

        def apply(device: Resource) -> None:
            ids = list(device.data.get(field_name, []))
            if add is not None and add not in ids:
                ids.append(add)
            if remove is not None and remove in ids:
                ids.remove(remove)
            device.data[field_name] = ids
            device.bump_version()

        if not self._model.node_resources.modify(self._device_id, ResourceType.DEVICE, apply):
            raise InternalInconsistencyError(f"Device '{self._device_id}' is missing.")

    def _update_clock(self, clock_name: str, ts_refclks: list[list[TsRefClk]]) -> None:
        domains = self._model.configs.clock_domains
        clock, ptp_domain = make_node_clock(
            clock_name, ts_refclks, domains.get(clock_name, DEFAULT_PTP_DOMAIN)
        )
        update_node_clock(self._model.node_resources, self._node_id, clock)
        domains[clock_name] = ptp_domain

    def _completed(
        self,
        operation: NodeOperation,
        resource_type: ResourceType,
        resource_id: str,
        internal_id: str,
    ) -> None:
        version = self._model.notify()
        self._event_publisher.publish_change(
            NodeChangeEvent(
                operation=operation,
                resource_type=resource_type,
                resource_id=resource_id,
                internal_id=internal_id,
                version=version,
            )
        )


def _interface_names(
    host_interfaces: list[HostInterface],
    addresses: list[str | None],
) -> list[str]:
    names = []
    for address in addresses:
        host_interface = find_interface(host_interfaces, address)
        if host_interface is None:
            raise NoMatchingInterfaceError(
                f"No host interface is bound to leg address '{address}'."
            )
        names.append(host_interface.name)
    return names


def _replace_connection(
    working: ConnectionResource,
) -> Callable[[ConnectionResource], None]:
    def apply(target: ConnectionResource) -> None:
        target.version = working.version
        target.staged = working.staged
        target.active = working.active
        target.transportfile = working.transportfile

    return apply


def _replace_data(data: dict[str, Any]) -> Callable[[Resource], None]:
    def apply(target: Resource) -> None:
        target.data = copy.deepcopy(data)

    return apply


def _fit_legs(
    connection: ConnectionResource,
    transport_params: list[TransportParams],
) -> list[TransportParams]:
    """Pad the legs of a session description to the leg count of `connection`.

    Missing legs keep their current active transport parameters.
    """

    legs = connection.leg_count
    if len(transport_params) > legs:
        raise SdpParseError(
            f"Session description has {len(transport_params)} legs, expected at most {legs}."
        )
    current = connection.active.transport_params
    padding = [
        (current[leg] if leg < len(current) else transport_params[0]).model_copy(deep=True)
        for leg in range(len(transport_params), legs)
    ]
    return [*transport_params, *padding]


def _merge_staged(connection: ConnectionResource, patch: dict[str, Any]) -> ConnectionEndpoint:
    """Apply a staged patch to a copy of the staged endpoint."""

    if not isinstance(patch, dict):
        raise InvalidStagedRequestError("Staged patch must be a JSON object.")
    staged = connection.staged.model_dump()
    legs = staged["transport_params"]

    transport_file = patch.get("transport_file")
    if transport_file is not None and connection.type is ResourceType.SENDER:
        raise InvalidStagedRequestError("Senders have no staged transport_file.")
    if isinstance(transport_file, dict) and transport_file:
        staged["transport_file"] = {**staged["transport_file"], **transport_file}
        data = staged["transport_file"].get("data")
        if data:
            if staged["transport_file"].get("type") != APPLICATION_SDP:
                raise InvalidStagedRequestError(
                    f"Transport file type must be '{APPLICATION_SDP}'."
                )
            file_params = get_transport_params(
                ResourceType.RECEIVER, parse_session_description(data)
            )
            if len(file_params) != len(legs):
                raise InvalidStagedRequestError(
                    f"Transport file has {len(file_params)} legs, expected {len(legs)}."
                )
            legs = [
                {**leg, **params.model_dump()}
                for leg, params in zip(legs, file_params, strict=True)
            ]

    patch_legs = patch.get("transport_params")
    if patch_legs is not None:
        if not isinstance(patch_legs, list) or len(patch_legs) != len(legs):
            raise InvalidStagedRequestError(
                f"Staged transport_params must have {len(legs)} legs."
            )
        legs = [{**leg, **patch_leg} for leg, patch_leg in zip(legs, patch_legs, strict=True)]

    for key, value in patch.items():
        if key in {"transport_params", "transport_file"}:
            continue
        if key == "activation" and isinstance(value, dict):
            staged["activation"] = {"mode": None, "requested_time": None, **value}
            staged["activation"]["activation_time"] = None
        else:
            staged[key] = value
    staged["transport_params"] = legs

    endpoint_type = SenderEndpoint if connection.type is ResourceType.SENDER else ReceiverEndpoint
    try:
        return endpoint_type.model_validate(staged)
    except ValidationError as exc:
        raise InvalidStagedRequestError(f"Invalid staged patch: {exc}") from exc


__all__ = ["CONNECTION_VIEWS", "NodeService"]
