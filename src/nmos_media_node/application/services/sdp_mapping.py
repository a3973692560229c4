"""Mapping between session descriptions and node parameters.

Vendor attributes used on the wire:

* `a=x-nvnmos-id:<internal id>` (session level, required)
* `a=x-nvnmos-group-hint:<group hint>` (session level)
* `a=x-nvnmos-iface-ip:<address>` (media level, sender source or receiver interface)
* `a=x-nvnmos-src-port:<port>` (media level, senders)
* `a=inactive` (media level, leg disabled)
"""

from __future__ import annotations

import ipaddress
import time
from collections.abc import Sequence

from nmos_media_node.domain.clocks import TsRefClk
from nmos_media_node.domain.connection import (
    AUTO,
    ReceiverTransportParams,
    SenderTransportParams,
    TransportParams,
)
from nmos_media_node.domain.errors import SdpParseError
from nmos_media_node.domain.resource_types import ResourceType
from nmos_media_node.domain.sdp_parameters import SdpParameters
from nmos_media_node.domain.session_description import (
    MediaDescription,
    SdpAttribute,
    SdpConnection,
    SdpTiming,
    SessionDescription,
    find_attribute,
    find_attributes,
)

INTERNAL_ID_ATTRIBUTE = "x-nvnmos-id"
GROUP_HINT_ATTRIBUTE = "x-nvnmos-group-hint"
INTERFACE_IP_ATTRIBUTE = "x-nvnmos-iface-ip"
SOURCE_PORT_ATTRIBUTE = "x-nvnmos-src-port"
INACTIVE_ATTRIBUTE = "inactive"
FORMAT_BIT_RATE_FMTP = "x-nvnmos-format-bit-rate"
TRANSPORT_BIT_RATE_FMTP = "x-nvnmos-transport-bit-rate"
VENDOR_FMTP_PREFIX = "x-nvnmos-"

# approximate IP/UDP/RTP overhead
TRANSPORT_BIT_RATE_FACTOR = 1.05

NTP_UNIX_EPOCH_OFFSET = 2_208_988_800


def ntp_seconds_now() -> int:
    """Current time in whole NTP seconds, used for origin session versions."""

    return int(time.time()) + NTP_UNIX_EPOCH_OFFSET


def get_internal_id(session_description: SessionDescription) -> str:
    """Return the internal id; its absence is a parse failure."""

    attribute = find_attribute(session_description.attributes, INTERNAL_ID_ATTRIBUTE)
    if attribute is None or not attribute.value:
        raise SdpParseError(f"Session description has no 'a={INTERNAL_ID_ATTRIBUTE}' attribute.")
    return attribute.value


def get_group_hint(session_description: SessionDescription) -> str:
    attribute = find_attribute(session_description.attributes, GROUP_HINT_ATTRIBUTE)
    if attribute is None or attribute.value is None:
        return ""
    return attribute.value


def get_session_info(session_description: SessionDescription) -> str:
    return session_description.information or ""


def get_ts_refclks(session_description: SessionDescription) -> list[list[TsRefClk]]:
    """Return every clock reference of each leg.

    A leg without its own `a=ts-refclk` lines takes the session-level ones.
    """

    session_refclks = _parse_ts_refclks(session_description.attributes)
    result = []
    for media in session_description.media_descriptions:
        refclks = _parse_ts_refclks(media.attributes)
        result.append(refclks if refclks else list(session_refclks))
    return result


def _parse_ts_refclks(attributes: list[SdpAttribute]) -> list[TsRefClk]:
    refclks = []
    for attribute in find_attributes(attributes, "ts-refclk"):
        refclk = TsRefClk.parse(attribute.value)
        if refclk is not None:
            refclks.append(refclk)
    return refclks


def get_sdp_parameters(session_description: SessionDescription) -> SdpParameters:
    """Extract codec and session parameters from the first media description."""

    if not session_description.media_descriptions:
        raise SdpParseError("Session description has no media descriptions.")
    media = session_description.media_descriptions[0]
    if not media.formats:
        raise SdpParseError("Media description has no payload format.")
    try:
        payload_type = int(media.formats[0])
    except ValueError as exc:
        raise SdpParseError(f"Invalid RTP payload type '{media.formats[0]}'.") from exc

    rtpmap = find_attribute(media.attributes, "rtpmap")
    if rtpmap is None or not rtpmap.value:
        raise SdpParseError("Media description has no 'a=rtpmap' attribute.")
    encoding_name, clock_rate, channel_count = _parse_rtpmap(rtpmap.value)

    group_semantics = ""
    media_stream_ids: list[str] = []
    group = find_attribute(session_description.attributes, "group")
    if group is not None and group.value:
        group_semantics, *media_stream_ids = group.value.split()

    bandwidths = media.bandwidths or session_description.bandwidths
    connection = media.connections[0] if media.connections else session_description.connection
    mediaclk = find_attribute(media.attributes, "mediaclk") or find_attribute(
        session_description.attributes, "mediaclk"
    )

    return SdpParameters(
        session_name=session_description.session_name,
        origin=session_description.origin.model_copy(),
        media=media.media,
        encoding_name=encoding_name,
        payload_type=payload_type,
        clock_rate=clock_rate,
        protocol=media.protocol,
        channel_count=channel_count,
        fmtp=_parse_fmtp(find_attribute(media.attributes, "fmtp")),
        packet_time=_float_attribute(media, "ptime"),
        max_packet_time=_float_attribute(media, "maxptime"),
        framerate=_float_attribute(media, "framerate"),
        bandwidth=bandwidths[0] if bandwidths else None,
        ts_refclk=get_ts_refclks(session_description),
        mediaclk=mediaclk.value if mediaclk is not None else None,
        group_semantics=group_semantics,
        media_stream_ids=media_stream_ids,
        connection_ttl=connection.ttl if connection is not None else None,
    )


def _parse_rtpmap(value: str) -> tuple[str, int, int]:
    _, _, encoding = value.strip().partition(" ")
    parts = encoding.strip().split("/")
    if len(parts) < 2:
        raise SdpParseError(f"Malformed rtpmap '{value}'.")
    try:
        clock_rate = int(parts[1])
        channel_count = int(parts[2]) if len(parts) > 2 else 0
    except ValueError as exc:
        raise SdpParseError(f"Malformed rtpmap '{value}'.") from exc
    return parts[0], clock_rate, channel_count


def _parse_fmtp(attribute: SdpAttribute | None) -> list[tuple[str, str]]:
    if attribute is None or not attribute.value:
        return []
    _, _, parameters = attribute.value.strip().partition(" ")
    fmtp = []
    for parameter in parameters.split(";"):
        parameter = parameter.strip()
        if not parameter:
            continue
        name, _, value = parameter.partition("=")
        fmtp.append((name.strip(), value.strip()))
    return fmtp


def _float_attribute(media: MediaDescription, name: str) -> float:
    attribute = find_attribute(media.attributes, name)
    if attribute is None or not attribute.value:
        return 0.0
    try:
        return float(attribute.value)
    except ValueError as exc:
        raise SdpParseError(f"Invalid 'a={name}' value '{attribute.value}'.") from exc


def _is_multicast(address: str) -> bool:
    try:
        return ipaddress.ip_address(address).is_multicast
    except ValueError as exc:
        raise SdpParseError(f"Invalid connection address '{address}'.") from exc


def _source_filter_address(attributes: list[SdpAttribute]) -> str | None:
    # a=source-filter: incl IN IP4 <destination> <source> [<source>...]
    attribute = find_attribute(attributes, "source-filter")
    if attribute is None or not attribute.value:
        return None
    tokens = attribute.value.split()
    if len(tokens) < 5 or tokens[0] != "incl":
        return None
    return tokens[4]


def get_transport_params(
    resource_type: ResourceType,
    session_description: SessionDescription,
) -> list[TransportParams]:
    """Return the transport parameters of each leg for a sender or receiver."""

    result: list[TransportParams] = []
    for media in session_description.media_descriptions:
        connection = media.connections[0] if media.connections else session_description.connection
        if connection is None:
            raise SdpParseError("Media description has no connection address.")
        multicast = _is_multicast(connection.address)
        source_ip = _source_filter_address(media.attributes) or _source_filter_address(
            session_description.attributes
        )
        interface_ip = find_attribute(media.attributes, INTERFACE_IP_ATTRIBUTE)
        rtp_enabled = find_attribute(media.attributes, INACTIVE_ATTRIBUTE) is None

        if resource_type is ResourceType.SENDER:
            source_port: int | str = AUTO
            source_port_attribute = find_attribute(media.attributes, SOURCE_PORT_ATTRIBUTE)
            if source_port_attribute is not None and source_port_attribute.value:
                try:
                    source_port = int(source_port_attribute.value)
                except ValueError as exc:
                    raise SdpParseError(
                        f"Invalid 'a={SOURCE_PORT_ATTRIBUTE}' value "
                        f"'{source_port_attribute.value}'."
                    ) from exc
            result.append(
                SenderTransportParams(
                    source_ip=interface_ip.value if interface_ip is not None else source_ip,
                    destination_ip=connection.address,
                    source_port=source_port,
                    destination_port=media.port,
                    rtp_enabled=rtp_enabled,
                )
            )
        else:
            receiver_interface_ip = AUTO if multicast else connection.address
            if interface_ip is not None:
                receiver_interface_ip = interface_ip.value
            result.append(
                ReceiverTransportParams(
                    source_ip=source_ip,
                    multicast_ip=connection.address if multicast else None,
                    interface_ip=receiver_interface_ip,
                    destination_port=media.port,
                    rtp_enabled=rtp_enabled,
                )
            )
    return result


def get_format_bit_rate(sdp_params: SdpParameters) -> int:
    """Format bit rate in kilobits/second, or 0 when unknown."""

    format_bit_rate = sdp_params.find_fmtp(FORMAT_BIT_RATE_FMTP)
    if format_bit_rate is not None:
        return _bit_rate(FORMAT_BIT_RATE_FMTP, format_bit_rate)
    transport_bit_rate = sdp_params.find_fmtp(TRANSPORT_BIT_RATE_FMTP)
    if transport_bit_rate is not None:
        rate = _bit_rate(TRANSPORT_BIT_RATE_FMTP, transport_bit_rate)
        return int(rate / TRANSPORT_BIT_RATE_FACTOR)
    bandwidth = sdp_params.application_specific_bandwidth()
    if bandwidth is not None:
        return int(bandwidth / TRANSPORT_BIT_RATE_FACTOR)
    return 0


def get_transport_bit_rate(sdp_params: SdpParameters) -> int:
    """Transport bit rate in kilobits/second, or 0 when unknown."""

    transport_bit_rate = sdp_params.find_fmtp(TRANSPORT_BIT_RATE_FMTP)
    if transport_bit_rate is not None:
        return _bit_rate(TRANSPORT_BIT_RATE_FMTP, transport_bit_rate)
    format_bit_rate = sdp_params.find_fmtp(FORMAT_BIT_RATE_FMTP)
    if format_bit_rate is not None:
        # nearest Megabit/second
        estimate = _bit_rate(FORMAT_BIT_RATE_FMTP, format_bit_rate) * TRANSPORT_BIT_RATE_FACTOR
        return int(estimate / 1e3 + 0.5) * 1000
    bandwidth = sdp_params.application_specific_bandwidth()
    if bandwidth is not None:
        return bandwidth
    return 0


def _bit_rate(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise SdpParseError(
            f"Format parameter '{name}' must be an integer, got '{value}'."
        ) from exc


def without_vendor_fmtp(sdp_params: SdpParameters) -> list[tuple[str, str]]:
    return [
        (name, value)
        for name, value in sdp_params.fmtp
        if not name.startswith(VENDOR_FMTP_PREFIX)
    ]


def make_transportfile_description(
    sdp_params: SdpParameters,
    transport_params: Sequence[TransportParams],
) -> SessionDescription:
    """Build a session description with one media block per leg."""

    group_attributes: list[SdpAttribute] = []
    media_stream_ids = list(sdp_params.media_stream_ids)
    if sdp_params.group_semantics and media_stream_ids:
        group_attributes.append(
            SdpAttribute(
                name="group",
                value=" ".join([sdp_params.group_semantics, *media_stream_ids]),
            )
        )

    media_descriptions = []
    for leg, params in enumerate(transport_params):
        media_descriptions.append(
            _make_media_description(
                sdp_params,
                params,
                sdp_params.ts_refclk[leg] if leg < len(sdp_params.ts_refclk) else [],
                media_stream_ids[leg] if leg < len(media_stream_ids) else None,
            )
        )

    return SessionDescription(
        origin=sdp_params.origin.model_copy(),
        session_name=sdp_params.session_name,
        timings=[SdpTiming()],
        attributes=group_attributes,
        media_descriptions=media_descriptions,
    )


def _make_media_description(
    sdp_params: SdpParameters,
    params: TransportParams,
    ts_refclks: list[TsRefClk],
    media_stream_id: str | None,
) -> MediaDescription:
    if isinstance(params, SenderTransportParams):
        address = params.destination_ip
    else:
        address = params.multicast_ip or params.interface_ip
    address = address or AUTO
    multicast = _is_multicast_address(address)
    port = params.destination_port if isinstance(params.destination_port, int) else 0

    attributes: list[SdpAttribute] = []
    if multicast and params.source_ip and params.source_ip != AUTO:
        attributes.append(
            SdpAttribute(
                name="source-filter",
                value=f" incl IN {_address_type(address)} {address} {params.source_ip}",
            )
        )
    rtpmap = f"{sdp_params.payload_type} {sdp_params.encoding_name}/{sdp_params.clock_rate}"
    if sdp_params.channel_count:
        rtpmap = f"{rtpmap}/{sdp_params.channel_count}"
    attributes.append(SdpAttribute(name="rtpmap", value=rtpmap))
    if sdp_params.fmtp:
        parameters = "; ".join(
            f"{name}={value}" if value else name for name, value in sdp_params.fmtp
        )
        attributes.append(
            SdpAttribute(name="fmtp", value=f"{sdp_params.payload_type} {parameters}")
        )
    for name, number in (
        ("ptime", sdp_params.packet_time),
        ("maxptime", sdp_params.max_packet_time),
        ("framerate", sdp_params.framerate),
    ):
        if number:
            attributes.append(SdpAttribute(name=name, value=_format_number(number)))
    if sdp_params.mediaclk is not None:
        attributes.append(SdpAttribute(name="mediaclk", value=sdp_params.mediaclk))
    attributes.extend(SdpAttribute(name="ts-refclk", value=ref.render()) for ref in ts_refclks)
    if media_stream_id is not None:
        attributes.append(SdpAttribute(name="mid", value=media_stream_id))

    return MediaDescription(
        media=sdp_params.media,
        port=port,
        protocol=sdp_params.protocol,
        formats=[str(sdp_params.payload_type)],
        connections=[
            SdpConnection(
                address_type=_address_type(address),
                address=address,
                ttl=sdp_params.connection_ttl if multicast and ":" not in address else None,
            )
        ],
        bandwidths=[sdp_params.bandwidth] if sdp_params.bandwidth is not None else [],
        attributes=attributes,
    )


def _is_multicast_address(address: str) -> bool:
    try:
        return ipaddress.ip_address(address).is_multicast
    except ValueError:
        return False


def _address_type(address: str) -> str:
    return "IP6" if ":" in address else "IP4"


def _format_number(number: float) -> str:
    if float(number).is_integer():
        return str(int(number))
    return f"{number:g}"


def make_session_description(
    resource_type: ResourceType,
    internal_id: str,
    group_hint: str,
    session_info: str,
    sdp_params: SdpParameters,
    transport_params: Sequence[TransportParams],
) -> SessionDescription:
    """Build the internal session description handed to the activation callback.

    Adds the vendor attributes so the text can be used to re-create or
    re-activate the same sender or receiver.
    """

    session_description = make_transportfile_description(sdp_params, transport_params)

    session_description.attributes.append(
        SdpAttribute(name=INTERNAL_ID_ATTRIBUTE, value=internal_id)
    )
    if group_hint:
        session_description.attributes.append(
            SdpAttribute(name=GROUP_HINT_ATTRIBUTE, value=group_hint)
        )
    if session_info:
        session_description.information = session_info

    for media, params in zip(session_description.media_descriptions, transport_params, strict=True):
        if isinstance(params, SenderTransportParams):
            if isinstance(params.source_port, int):
                media.attributes.append(
                    SdpAttribute(name=SOURCE_PORT_ATTRIBUTE, value=str(params.source_port))
                )
            interface_address = params.source_ip
        else:
            interface_address = params.interface_ip
        if interface_address:
            media.attributes.append(
                SdpAttribute(name=INTERFACE_IP_ATTRIBUTE, value=interface_address)
            )
        if not params.rtp_enabled:
            media.attributes.append(SdpAttribute(name=INACTIVE_ATTRIBUTE))

    return session_description


__all__ = [
    "FORMAT_BIT_RATE_FMTP",
    "GROUP_HINT_ATTRIBUTE",
    "INACTIVE_ATTRIBUTE",
    "INTERFACE_IP_ATTRIBUTE",
    "INTERNAL_ID_ATTRIBUTE",
    "SOURCE_PORT_ATTRIBUTE",
    "TRANSPORT_BIT_RATE_FACTOR",
    "TRANSPORT_BIT_RATE_FMTP",
    "get_format_bit_rate",
    "get_group_hint",
    "get_internal_id",
    "get_sdp_parameters",
    "get_session_info",
    "get_transport_bit_rate",
    "get_transport_params",
    "get_ts_refclks",
    "make_session_description",
    "make_transportfile_description",
    "ntp_seconds_now",
    "without_vendor_fmtp",
]
