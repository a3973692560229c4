"""Resource kinds and IS-04/IS-05 vocabulary."""

from enum import StrEnum


class ResourceType(StrEnum):
    """Kinds of resource held in the node graph."""

    NODE = "node"
    DEVICE = "device"
    SOURCE = "source"
    FLOW = "flow"
    SENDER = "sender"
    RECEIVER = "receiver"


class FormatUrn(StrEnum):
    """IS-04 format identifiers."""

    VIDEO = "urn:x-nmos:format:video"
    AUDIO = "urn:x-nmos:format:audio"
    DATA = "urn:x-nmos:format:data"
    MUX = "urn:x-nmos:format:mux"


class ActivationMode(StrEnum):
    """IS-05 activation modes."""

    IMMEDIATE = "activate_immediate"
    SCHEDULED_ABSOLUTE = "activate_scheduled_absolute"
    SCHEDULED_RELATIVE = "activate_scheduled_relative"


TRANSPORT_RTP = "urn:x-nmos:transport:rtp"
DEVICE_TYPE_GENERIC = "urn:x-nmos:device:generic"
CONNECTION_CONTROL_TYPE = "urn:x-nmos:control:sr-ctrl/v1.1"
API_VERSION = "v1.3"
CONNECTION_API_VERSION = "v1.1"
INTERNAL_ID_TAG = "urn:x-nvnmos:id"
GROUP_HINT_TAG = "urn:x-nmos:tag:grouphint/v1.0"
APPLICATION_SDP = "application/sdp"

ASSET_MANUFACTURER_TAG = "urn:x-nmos:tag:asset:manufacturer/v1.0"
ASSET_PRODUCT_TAG = "urn:x-nmos:tag:asset:product/v1.0"
ASSET_INSTANCE_ID_TAG = "urn:x-nmos:tag:asset:instance-id/v1.0"
ASSET_FUNCTION_TAG = "urn:x-nmos:tag:asset:function/v1.0"

CONNECTION_TYPES = frozenset({ResourceType.SENDER, ResourceType.RECEIVER})


def is_rtp_transport(transport: str | None) -> bool:
    """Return True for the RTP transport and its subclassifications."""

    if transport is None:
        return False
    return transport == TRANSPORT_RTP or transport.startswith(f"{TRANSPORT_RTP}.")


__all__ = [
    "API_VERSION",
    "APPLICATION_SDP",
    "ASSET_FUNCTION_TAG",
    "ASSET_INSTANCE_ID_TAG",
    "ASSET_MANUFACTURER_TAG",
    "ASSET_PRODUCT_TAG",
    "ActivationMode",
    "CONNECTION_API_VERSION",
    "CONNECTION_CONTROL_TYPE",
    "CONNECTION_TYPES",
    "DEVICE_TYPE_GENERIC",
    "FormatUrn",
    "GROUP_HINT_TAG",
    "INTERNAL_ID_TAG",
    "ResourceType",
    "TRANSPORT_RTP",
    "is_rtp_transport",
]
