"""Construction of IS-04 resources and their IS-05 connection resources."""

from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from typing import Any
from uuid import UUID

from nmos_media_node.application.services.sdp_mapping import (
    get_format_bit_rate,
    get_transport_bit_rate,
)
from nmos_media_node.domain.connection import (
    ConnectionResource,
    ReceiverTransportParams,
    SenderTransportParams,
    TransportParams,
    make_connection_resource,
)
from nmos_media_node.domain.entities import NodeDescriptor, Resource, make_version
from nmos_media_node.domain.formats import (
    VIDEO_SMPTE291,
    VIDEO_SMPTE2022_6,
    AudioParameters,
    DataParameters,
    FormatParameters,
    MediaFormat,
    MuxParameters,
    VideoJxsvParameters,
    VideoRawParameters,
    canonical_media_type,
    get_format,
    get_format_parameters,
)
from nmos_media_node.domain.identity import make_id
from nmos_media_node.domain.resource_types import (
    API_VERSION,
    CONNECTION_CONTROL_TYPE,
    DEVICE_TYPE_GENERIC,
    GROUP_HINT_TAG,
    INTERNAL_ID_TAG,
    TRANSPORT_RTP,
    ResourceType,
)
from nmos_media_node.domain.sdp_parameters import SdpParameters

MUX_GRAIN_RATE = Fraction(50)

_CAP_FORMAT = "urn:x-nmos:cap:format:"
_CAP_TRANSPORT = "urn:x-nmos:cap:transport:"

_COMPONENT_NAMES = {
    "YCbCr": ("Y", "Cb", "Cr"),
    "CLYCbCr": ("Y", "Cb", "Cr"),
    "ICtCp": ("I", "Ct", "Cp"),
    "RGB": ("R", "G", "B"),
    "XYZ": ("X", "Y", "Z"),
    "KEY": ("Key",),
}

_SUBSAMPLING = {
    "4:4:4": (1, 1),
    "4:2:2": (2, 1),
    "4:2:0": (2, 2),
    "4:1:1": (4, 1),
}

_SENDER_CONSTRAINT_KEYS = (
    "source_ip",
    "destination_ip",
    "source_port",
    "destination_port",
    "rtp_enabled",
)
_RECEIVER_CONSTRAINT_KEYS = (
    "source_ip",
    "multicast_ip",
    "interface_ip",
    "destination_port",
    "rtp_enabled",
)


@dataclass(slots=True)
class SenderResources:
    """Everything created together for one sender."""

    source: Resource
    flow: Resource
    sender: Resource
    connection: ConnectionResource
    media_format: MediaFormat


@dataclass(slots=True)
class ReceiverResources:
    """Everything created together for one receiver."""

    receiver: Resource
    connection: ConnectionResource
    media_format: MediaFormat


def make_rational(value: Fraction) -> dict[str, int]:
    return {"numerator": value.numerator, "denominator": value.denominator}


def base_url(descriptor: NodeDescriptor) -> str:
    host = descriptor.host_addresses[0] if descriptor.host_addresses else descriptor.host_name
    return f"http://{host}:{descriptor.http_port}"


def _core(
    resource_id: str,
    label: str = "",
    description: str = "",
    tags: dict[str, list[str]] | None = None,
) -> dict[str, Any]:
    return {
        "id": resource_id,
        "version": make_version(),
        "label": label,
        "description": description,
        "tags": dict(tags or {}),
    }


def make_node(
    node_id: str,
    descriptor: NodeDescriptor,
    clocks: list[dict[str, Any]],
) -> Resource:
    hosts = list(descriptor.host_addresses) or [descriptor.host_name]
    data = _core(node_id, descriptor.label, descriptor.description, descriptor.tags)
    data.update(
        {
            "href": f"{base_url(descriptor)}/",
            "hostname": descriptor.host_name,
            "api": {
                "versions": [API_VERSION],
                "endpoints": [
                    {"host": host, "port": descriptor.http_port, "protocol": "http"}
                    for host in hosts
                ],
            },
            "caps": {},
            "services": [],
            "clocks": clocks,
            "interfaces": [],
        }
    )
    return Resource(id=node_id, type=ResourceType.NODE, data=data)


def make_device(device_id: str, node_id: str, descriptor: NodeDescriptor) -> Resource:
    data = _core(device_id, descriptor.label, descriptor.description, descriptor.tags)
    data.update(
        {
            "type": DEVICE_TYPE_GENERIC,
            "node_id": node_id,
            "senders": [],
            "receivers": [],
            "controls": [
                {"href": f"{base_url(descriptor)}/connection/", "type": CONNECTION_CONTROL_TYPE}
            ],
        }
    )
    return Resource(id=device_id, type=ResourceType.DEVICE, data=data)


def _tags(internal_id: str, group_hint: str) -> dict[str, list[str]]:
    tags = {INTERNAL_ID_TAG: [internal_id]}
    if group_hint:
        tags[GROUP_HINT_TAG] = [group_hint]
    return tags


def _components(sampling: str, width: int, height: int, depth: int) -> list[dict[str, Any]]:
    prefix, _, subsampling = sampling.partition("-")
    names = _COMPONENT_NAMES.get(prefix, ("Y",))
    horizontal, vertical = _SUBSAMPLING.get(subsampling, (1, 1))
    components = []
    for index, name in enumerate(names):
        divisor_w, divisor_h = (1, 1) if index == 0 else (horizontal, vertical)
        components.append(
            {
                "name": name,
                "width": width // divisor_w,
                "height": height // divisor_h,
                "bit_depth": depth,
            }
        )
    return components


def _source(
    source_id: str,
    device_id: str,
    clock_name: str,
    media_format: MediaFormat,
    grain_rate: Fraction | None,
    label: str,
    description: str,
) -> dict[str, Any]:
    data = _core(source_id, label, description)
    data.update(
        {
            "caps": {},
            "device_id": device_id,
            "parents": [],
            "clock_name": clock_name,
            "format": media_format.urn.value,
        }
    )
    if grain_rate is not None:
        data["grain_rate"] = make_rational(grain_rate)
    return data


def _flow(
    flow_id: str,
    source_id: str,
    device_id: str,
    media_format: MediaFormat,
    media_type: str,
    grain_rate: Fraction | None,
    label: str,
    description: str,
) -> dict[str, Any]:
    data = _core(flow_id, label, description)
    data.update(
        {
            "source_id": source_id,
            "device_id": device_id,
            "parents": [],
            "format": media_format.urn.value,
            "media_type": media_type,
        }
    )
    if grain_rate is not None:
        data["grain_rate"] = make_rational(grain_rate)
    return data


def _video_flow_fields(params: VideoRawParameters | VideoJxsvParameters) -> dict[str, Any]:
    return {
        "frame_width": params.width,
        "frame_height": params.height,
        "interlace_mode": params.interlace_mode,
        "colorspace": params.colorimetry,
        "transfer_characteristic": params.tcs,
        "components": _components(params.sampling, params.width, params.height, params.depth),
    }


def _interface_constraints(
    keys: tuple[str, ...],
    field_name: str,
    addresses: list[str | None],
) -> list[dict[str, Any]]:
    constraints = []
    for address in addresses:
        leg: dict[str, Any] = {key: {} for key in keys}
        leg[field_name] = {"enum": [address]}
        constraints.append(leg)
    return constraints


def make_sender_resources(
    *,
    seed_id: UUID,
    internal_id: str,
    group_hint: str,
    session_info: str,
    sdp_params: SdpParameters,
    transport_params: list[TransportParams],
    interface_names: list[str],
    descriptor: NodeDescriptor,
    clock_name: str,
) -> SenderResources:
    """Build the source, flow, sender and connection resource for a sender."""

    device_id = make_id(seed_id, ResourceType.DEVICE)
    source_id = make_id(seed_id, ResourceType.SOURCE, internal_id)
    flow_id = make_id(seed_id, ResourceType.FLOW, internal_id)
    sender_id = make_id(seed_id, ResourceType.SENDER, internal_id)

    media_type = canonical_media_type(sdp_params.media_type)
    media_format = get_format(media_type)
    params = get_format_parameters(sdp_params)
    label = sdp_params.session_name
    grain_rate = _grain_rate(params)

    source = _source(
        source_id, device_id, clock_name, media_format, grain_rate, label, session_info
    )
    flow = _flow(
        flow_id, source_id, device_id, media_format, media_type, grain_rate, label, session_info
    )
    if isinstance(params, (VideoRawParameters, VideoJxsvParameters)):
        flow.update(_video_flow_fields(params))
    if isinstance(params, VideoJxsvParameters):
        flow.update(
            {
                "profile": params.profile,
                "level": params.level,
                "sublevel": params.sublevel,
                "bit_rate": get_format_bit_rate(sdp_params),
            }
        )
    elif isinstance(params, AudioParameters):
        source["channels"] = [
            {"label": "", "symbol": f"U{index:02d}"}
            for index in range(1, params.channel_count + 1)
        ]
        flow.update(
            {
                "sample_rate": make_rational(params.sample_rate),
                "bit_depth": params.bit_depth,
            }
        )
    elif isinstance(params, DataParameters):
        flow["DID_SDID"] = [
            {"DID": f"0x{did:02X}", "SDID": f"0x{sdid:02X}"} for did, sdid in params.did_sdids
        ]

    sender = _core(sender_id, label, session_info, _tags(internal_id, group_hint))
    sender.update(
        {
            "caps": {},
            "flow_id": flow_id,
            "transport": TRANSPORT_RTP,
            "device_id": device_id,
            "manifest_href": (
                f"{base_url(descriptor)}/connection/senders/{sender_id}/transportfile"
            ),
            "interface_bindings": list(interface_names),
            "subscription": {"receiver_id": None, "active": False},
        }
    )
    if isinstance(params, VideoJxsvParameters):
        transport_bit_rate = get_transport_bit_rate(sdp_params)
        if transport_bit_rate:
            sender["bit_rate"] = transport_bit_rate
        if params.packet_transmission_mode != "codestream":
            sender["packet_transmission_mode"] = params.packet_transmission_mode
        if params.tp:
            sender["st2110_21_sender_type"] = params.tp

    source_ips = [
        leg.source_ip for leg in transport_params if isinstance(leg, SenderTransportParams)
    ]
    connection = make_connection_resource(
        ResourceType.SENDER,
        sender_id,
        make_version(),
        _interface_constraints(_SENDER_CONSTRAINT_KEYS, "source_ip", source_ips),
    )

    return SenderResources(
        source=Resource(id=source_id, type=ResourceType.SOURCE, data=source),
        flow=Resource(id=flow_id, type=ResourceType.FLOW, data=flow),
        sender=Resource(id=sender_id, type=ResourceType.SENDER, data=sender),
        connection=connection,
        media_format=media_format,
    )


def _grain_rate(params: FormatParameters) -> Fraction | None:
    if isinstance(params, (VideoRawParameters, VideoJxsvParameters)):
        return params.exactframerate
    if isinstance(params, AudioParameters):
        return params.sample_rate
    if isinstance(params, DataParameters):
        return params.exactframerate
    return MUX_GRAIN_RATE


def make_receiver_resources(
    *,
    seed_id: UUID,
    internal_id: str,
    group_hint: str,
    session_info: str,
    sdp_params: SdpParameters,
    transport_params: list[TransportParams],
    interface_names: list[str],
) -> ReceiverResources:
    """Build the receiver and its connection resource."""

    device_id = make_id(seed_id, ResourceType.DEVICE)
    receiver_id = make_id(seed_id, ResourceType.RECEIVER, internal_id)

    media_type = canonical_media_type(sdp_params.media_type)
    media_format = get_format(media_type)
    params = get_format_parameters(sdp_params)

    caps: dict[str, Any] = {"media_types": [_receiver_media_type(params, media_type)]}
    constraint_set = _constraint_set(params, sdp_params)
    if constraint_set:
        caps["constraint_sets"] = [constraint_set]
        caps["version"] = make_version()

    receiver = _core(
        receiver_id, sdp_params.session_name, session_info, _tags(internal_id, group_hint)
    )
    receiver.update(
        {
            "device_id": device_id,
            "transport": TRANSPORT_RTP,
            "interface_bindings": list(interface_names),
            "subscription": {"sender_id": None, "active": False},
            "format": media_format.urn.value,
            "caps": caps,
        }
    )

    interface_ips = [
        leg.interface_ip for leg in transport_params if isinstance(leg, ReceiverTransportParams)
    ]
    connection = make_connection_resource(
        ResourceType.RECEIVER,
        receiver_id,
        make_version(),
        _interface_constraints(_RECEIVER_CONSTRAINT_KEYS, "interface_ip", interface_ips),
    )

    return ReceiverResources(
        receiver=Resource(id=receiver_id, type=ResourceType.RECEIVER, data=receiver),
        connection=connection,
        media_format=media_format,
    )


def _receiver_media_type(params: FormatParameters, media_type: str) -> str:
    if isinstance(params, AudioParameters):
        return f"audio/L{params.bit_depth}"
    if isinstance(params, DataParameters):
        return VIDEO_SMPTE291
    if isinstance(params, MuxParameters):
        return VIDEO_SMPTE2022_6
    return media_type


def _constraint_set(params: FormatParameters, sdp_params: SdpParameters) -> dict[str, Any]:
    if isinstance(params, VideoRawParameters):
        interlace_modes = (
            ["interlaced_bff", "interlaced_tff", "interlaced_psf"]
            if params.interlace
            else ["progressive"]
        )
        return {
            f"{_CAP_FORMAT}grain_rate": {"enum": [make_rational(params.exactframerate)]},
            f"{_CAP_FORMAT}frame_width": {"enum": [params.width]},
            f"{_CAP_FORMAT}frame_height": {"enum": [params.height]},
            f"{_CAP_FORMAT}interlace_mode": {"enum": interlace_modes},
            f"{_CAP_FORMAT}color_sampling": {"enum": [params.sampling]},
        }
    if isinstance(params, VideoJxsvParameters):
        constraints: dict[str, Any] = {}
        for name in ("profile", "level", "sublevel"):
            value = getattr(params, name)
            if value:
                constraints[f"{_CAP_FORMAT}{name}"] = {"enum": [value]}
        format_bit_rate = get_format_bit_rate(sdp_params)
        if format_bit_rate:
            constraints[f"{_CAP_FORMAT}bit_rate"] = {"maximum": format_bit_rate}
        transport_bit_rate = get_transport_bit_rate(sdp_params)
        if transport_bit_rate:
            constraints[f"{_CAP_TRANSPORT}bit_rate"] = {"maximum": transport_bit_rate}
        constraints[f"{_CAP_TRANSPORT}packet_transmission_mode"] = {
            "enum": [params.packet_transmission_mode]
        }
        return constraints
    if isinstance(params, AudioParameters):
        constraints = {
            f"{_CAP_FORMAT}channel_count": {"enum": [params.channel_count]},
            f"{_CAP_FORMAT}sample_rate": {"enum": [make_rational(params.sample_rate)]},
            f"{_CAP_FORMAT}sample_depth": {"enum": [params.bit_depth]},
        }
        if sdp_params.packet_time:
            constraints[f"{_CAP_TRANSPORT}packet_time"] = {"enum": [sdp_params.packet_time]}
        if sdp_params.max_packet_time:
            constraints[f"{_CAP_TRANSPORT}max_packet_time"] = {
                "enum": [sdp_params.max_packet_time]
            }
        return constraints
    if isinstance(params, DataParameters) and params.exactframerate is not None:
        return {f"{_CAP_FORMAT}grain_rate": {"enum": [make_rational(params.exactframerate)]}}
    return {}


__all__ = [
    "ReceiverResources",
    "SenderResources",
    "base_url",
    "make_device",
    "make_node",
    "make_rational",
    "make_receiver_resources",
    "make_sender_resources",
]
