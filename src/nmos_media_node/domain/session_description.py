"""Session description (SDP) wire models and text codec.

Only the lines used by the broadcast media profiles are modelled; `u=`, `e=`,
`p=`, `r=`, `z=` and `k=` lines are accepted and dropped.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from nmos_media_node.domain.errors import SdpParseError

CRLF = "\r\n"

_IGNORED_TYPES = frozenset("uepzrk")


class SdpModel(BaseModel):
    """Base model for session description parts."""

    model_config = ConfigDict(extra="forbid")


class SdpAttribute(SdpModel):
    """`a=<name>[:<value>]` line."""

    name: str
    value: str | None = None

    def render(self) -> str:
        if self.value is None:
            return self.name
        return f"{self.name}:{self.value}"


class SdpOrigin(SdpModel):
    """`o=` line."""

    username: str = "-"
    session_id: int = 0
    session_version: int = 0
    network_type: str = "IN"
    address_type: str = "IP4"
    unicast_address: str = "127.0.0.1"


class SdpConnection(SdpModel):
    """`c=` line; `ttl` only applies to IPv4 multicast."""

    network_type: str = "IN"
    address_type: str = "IP4"
    address: str
    ttl: int | None = None
    address_count: int | None = None


class SdpBandwidth(SdpModel):
    """`b=<type>:<value>` line."""

    bandwidth_type: str
    bandwidth: int


class SdpTiming(SdpModel):
    """`t=` line."""

    start_time: int = 0
    stop_time: int = 0


class MediaDescription(SdpModel):
    """`m=` section."""

    media: str
    port: int
    port_count: int | None = None
    protocol: str = "RTP/AVP"
    formats: list[str] = Field(default_factory=list)
    information: str | None = None
    connections: list[SdpConnection] = Field(default_factory=list)
    bandwidths: list[SdpBandwidth] = Field(default_factory=list)
    attributes: list[SdpAttribute] = Field(default_factory=list)


class SessionDescription(SdpModel):
    """Whole session description."""

    version: int = 0
    origin: SdpOrigin = Field(default_factory=SdpOrigin)
    session_name: str = "-"
    information: str | None = None
    connection: SdpConnection | None = None
    bandwidths: list[SdpBandwidth] = Field(default_factory=list)
    timings: list[SdpTiming] = Field(default_factory=lambda: [SdpTiming()])
    attributes: list[SdpAttribute] = Field(default_factory=list)
    media_descriptions: list[MediaDescription] = Field(default_factory=list)


def find_attribute(attributes: list[SdpAttribute], name: str) -> SdpAttribute | None:
    """Return the first attribute with the given name."""

    for attribute in attributes:
        if attribute.name == name:
            return attribute
    return None


def find_attributes(attributes: list[SdpAttribute], name: str) -> list[SdpAttribute]:
    """Return every attribute with the given name, in order."""

    return [attribute for attribute in attributes if attribute.name == name]


def parse_session_description(text: str) -> SessionDescription:
    """Parse session description text into its structured form."""

    if not text or not text.strip():
        raise SdpParseError("Session description is empty.")

    fields: dict[str, object] = {}
    timings: list[SdpTiming] = []
    session_attributes: list[SdpAttribute] = []
    session_bandwidths: list[SdpBandwidth] = []
    media_descriptions: list[MediaDescription] = []
    current: MediaDescription | None = None
    seen: set[str] = set()

    for number, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line:
            continue
        if len(line) < 2 or line[1] != "=":
            raise SdpParseError(f"Malformed session description line {number}: {raw_line!r}")
        line_type, value = line[0], line[2:]

        if line_type == "m":
            current = _parse_media(value, number)
            media_descriptions.append(current)
            continue

        if current is not None:
            if line_type == "i":
                current.information = value
            elif line_type == "c":
                current.connections.append(_parse_connection(value, number))
            elif line_type == "b":
                current.bandwidths.append(_parse_bandwidth(value, number))
            elif line_type == "a":
                current.attributes.append(_parse_attribute(value))
            elif line_type not in _IGNORED_TYPES:
                raise SdpParseError(
                    f"Unexpected '{line_type}=' line {number} in media description."
                )
            continue

        seen.add(line_type)
        if line_type == "v":
            try:
                fields["version"] = int(value)
            except ValueError as exc:
                raise SdpParseError(f"Invalid protocol version on line {number}.") from exc
        elif line_type == "o":
            fields["origin"] = _parse_origin(value, number)
        elif line_type == "s":
            fields["session_name"] = value
        elif line_type == "i":
            fields["information"] = value
        elif line_type == "c":
            fields["connection"] = _parse_connection(value, number)
        elif line_type == "b":
            session_bandwidths.append(_parse_bandwidth(value, number))
        elif line_type == "t":
            timings.append(_parse_timing(value, number))
        elif line_type == "a":
            session_attributes.append(_parse_attribute(value))
        elif line_type not in _IGNORED_TYPES:
            raise SdpParseError(f"Unknown session description line type '{line_type}='.")

    for required in ("v", "o", "s"):
        if required not in seen:
            raise SdpParseError(f"Session description is missing the '{required}=' line.")
    return SessionDescription(
        **fields,  # type: ignore[arg-type]
        bandwidths=session_bandwidths,
        timings=timings or [SdpTiming()],
        attributes=session_attributes,
        media_descriptions=media_descriptions,
    )


def format_session_description(session_description: SessionDescription) -> str:
    """Serialize a session description with CRLF line endings."""

    origin = session_description.origin
    lines = [
        f"v={session_description.version}",
        (
            f"o={origin.username} {origin.session_id} {origin.session_version} "
            f"{origin.network_type} {origin.address_type} {origin.unicast_address}"
        ),
        f"s={session_description.session_name}",
    ]
    if session_description.information:
        lines.append(f"i={session_description.information}")
    if session_description.connection is not None:
        lines.append(f"c={_format_connection(session_description.connection)}")
    lines.extend(
        f"b={bandwidth.bandwidth_type}:{bandwidth.bandwidth}"
        for bandwidth in session_description.bandwidths
    )
    lines.extend(
        f"t={timing.start_time} {timing.stop_time}" for timing in session_description.timings
    )
    lines.extend(f"a={attribute.render()}" for attribute in session_description.attributes)

    for media in session_description.media_descriptions:
        port = str(media.port)
        if media.port_count is not None:
            port = f"{port}/{media.port_count}"
        lines.append(f"m={' '.join([media.media, port, media.protocol, *media.formats])}")
        if media.information:
            lines.append(f"i={media.information}")
        lines.extend(f"c={_format_connection(connection)}" for connection in media.connections)
        lines.extend(
            f"b={bandwidth.bandwidth_type}:{bandwidth.bandwidth}" for bandwidth in media.bandwidths
        )
        lines.extend(f"a={attribute.render()}" for attribute in media.attributes)

    return CRLF.join(lines) + CRLF


def _parse_origin(value: str, number: int) -> SdpOrigin:
    parts = value.split()
    if len(parts) != 6:
        raise SdpParseError(f"Malformed origin line {number}: expected 6 fields.")
    try:
        session_id = int(parts[1])
        session_version = int(parts[2])
    except ValueError as exc:
        raise SdpParseError(f"Malformed origin line {number}: non-numeric session id.") from exc
    return SdpOrigin(
        username=parts[0],
        session_id=session_id,
        session_version=session_version,
        network_type=parts[3],
        address_type=parts[4],
        unicast_address=parts[5],
    )


def _parse_connection(value: str, number: int) -> SdpConnection:
    parts = value.split()
    if len(parts) != 3:
        raise SdpParseError(f"Malformed connection line {number}: expected 3 fields.")
    network_type, address_type, address = parts
    ttl: int | None = None
    address_count: int | None = None
    pieces = address.split("/")
    try:
        if address_type == "IP4" and len(pieces) > 1:
            ttl = int(pieces[1])
            if len(pieces) > 2:
                address_count = int(pieces[2])
        elif len(pieces) > 1:
            address_count = int(pieces[1])
    except ValueError as exc:
        raise SdpParseError(f"Malformed connection address on line {number}.") from exc
    return SdpConnection(
        network_type=network_type,
        address_type=address_type,
        address=pieces[0],
        ttl=ttl,
        address_count=address_count,
    )


def _format_connection(connection: SdpConnection) -> str:
    address = connection.address
    if connection.ttl is not None:
        address = f"{address}/{connection.ttl}"
    if connection.address_count is not None:
        address = f"{address}/{connection.address_count}"
    return f"{connection.network_type} {connection.address_type} {address}"


def _parse_bandwidth(value: str, number: int) -> SdpBandwidth:
    bandwidth_type, separator, amount = value.partition(":")
    if not separator:
        raise SdpParseError(f"Malformed bandwidth line {number}.")
    try:
        return SdpBandwidth(bandwidth_type=bandwidth_type, bandwidth=int(amount))
    except ValueError as exc:
        raise SdpParseError(f"Malformed bandwidth value on line {number}.") from exc


def _parse_timing(value: str, number: int) -> SdpTiming:
    parts = value.split()
    if len(parts) != 2:
        raise SdpParseError(f"Malformed timing line {number}.")
    try:
        return SdpTiming(start_time=int(parts[0]), stop_time=int(parts[1]))
    except ValueError as exc:
        raise SdpParseError(f"Malformed timing line {number}.") from exc


def _parse_attribute(value: str) -> SdpAttribute:
    name, separator, attribute_value = value.partition(":")
    return SdpAttribute(name=name, value=attribute_value if separator else None)


def _parse_media(value: str, number: int) -> MediaDescription:
    parts = value.split()
    if len(parts) < 3:
        raise SdpParseError(f"Malformed media line {number}.")
    port_text, _, count_text = parts[1].partition("/")
    try:
        port = int(port_text)
        port_count = int(count_text) if count_text else None
    except ValueError as exc:
        raise SdpParseError(f"Malformed media port on line {number}.") from exc
    return MediaDescription(
        media=parts[0],
        port=port,
        port_count=port_count,
        protocol=parts[2],
        formats=parts[3:],
    )


__all__ = [
    "CRLF",
    "MediaDescription",
    "SdpAttribute",
    "SdpBandwidth",
    "SdpConnection",
    "SdpModel",
    "SdpOrigin",
    "SdpTiming",
    "SessionDescription",
    "find_attribute",
    "find_attributes",
    "format_session_description",
    "parse_session_description",
]
