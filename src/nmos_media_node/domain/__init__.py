"""Domain public API."""

from nmos_media_node.domain.clocks import TsRefClk
from nmos_media_node.domain.connection import (
    Activation,
    ConnectionResource,
    ReceiverEndpoint,
    ReceiverTransportParams,
    SenderEndpoint,
    SenderTransportParams,
    TransportFile,
)
from nmos_media_node.domain.entities import (
    HostInterface,
    NodeDescriptor,
    Resource,
    ResourceConfigs,
)
from nmos_media_node.domain.errors import (
    DuplicateResourceError,
    InternalInconsistencyError,
    InvalidStagedRequestError,
    NoMatchingInterfaceError,
    NodeError,
    ResourceNotFoundError,
    SdpParseError,
    UnsupportedFormatError,
)
from nmos_media_node.domain.events import NodeChangeEvent, NodeOperation
from nmos_media_node.domain.ports import (
    ActivationCallback,
    HostInterfaceProvider,
    NodeEventPublisher,
    NodeModel,
    ResourceStore,
)
from nmos_media_node.domain.resource_types import ActivationMode, ResourceType
from nmos_media_node.domain.session_description import SessionDescription

__all__ = [
    "Activation",
    "ActivationCallback",
    "ActivationMode",
    "ConnectionResource",
    "DuplicateResourceError",
    "HostInterface",
    "HostInterfaceProvider",
    "InternalInconsistencyError",
    "InvalidStagedRequestError",
    "NoMatchingInterfaceError",
    "NodeChangeEvent",
    "NodeDescriptor",
    "NodeError",
    "NodeEventPublisher",
    "NodeModel",
    "NodeOperation",
    "ReceiverEndpoint",
    "ReceiverTransportParams",
    "Resource",
    "ResourceConfigs",
    "ResourceNotFoundError",
    "ResourceStore",
    "ResourceType",
    "SdpParseError",
    "SenderEndpoint",
    "SenderTransportParams",
    "SessionDescription",
    "TransportFile",
    "TsRefClk",
    "UnsupportedFormatError",
]
