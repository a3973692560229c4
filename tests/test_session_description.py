from __future__ import annotations

import pytest

from conftest import AUDIO_SENDER_SDP, VIDEO_SENDER_SDP
from nmos_media_node.domain.errors import SdpParseError
from nmos_media_node.domain.session_description import (
    SdpAttribute,
    find_attribute,
    find_attributes,
    format_session_description,
    parse_session_description,
)


def test_parse_session_and_media_sections() -> None:
    description = parse_session_description(VIDEO_SENDER_SDP)

    assert description.version == 0
    assert description.origin.session_id == 1443716955
    assert description.origin.unicast_address == "192.168.1.10"
    assert description.session_name == "Camera 1"
    assert description.information == "Primary camera feed"
    assert len(description.media_descriptions) == 2

    first = description.media_descriptions[0]
    assert first.media == "video"
    assert first.port == 5020
    assert first.protocol == "RTP/AVP"
    assert first.formats == ["96"]
    assert first.connections[0].address == "239.100.1.1"
    assert first.connections[0].ttl == 64
    assert find_attribute(first.attributes, "mid") == SdpAttribute(name="mid", value="primary")


def test_attribute_value_keeps_everything_after_first_colon() -> None:
    description = parse_session_description(VIDEO_SENDER_SDP)

    group_hint = find_attribute(description.attributes, "x-nvnmos-group-hint")

    assert group_hint is not None
    assert group_hint.value == "camera-1:video"


def test_property_attributes_have_no_value() -> None:
    sdp = AUDIO_SENDER_SDP + "a=inactive\n"

    media = parse_session_description(sdp).media_descriptions[0]

    assert find_attributes(media.attributes, "inactive") == [SdpAttribute(name="inactive")]


def test_parse_accepts_unmodelled_line_types() -> None:
    sdp = AUDIO_SENDER_SDP.replace(
        "t=0 0",
        "u=http://example.com/mic\ne=ops@example.com\np=+1 555 0100\nt=0 0\nr=7d 1h 0 25h",
    )

    description = parse_session_description(sdp)

    assert description.session_name == "Microphone 1"
    assert len(description.media_descriptions) == 1


def test_parse_reads_multicast_address_count_and_ipv6() -> None:
    sdp = AUDIO_SENDER_SDP.replace("c=IN IP4 239.100.3.1/64", "c=IN IP4 239.100.3.1/32/2")
    connection = parse_session_description(sdp).media_descriptions[0].connections[0]
    assert (connection.address, connection.ttl, connection.address_count) == (
        "239.100.3.1",
        32,
        2,
    )

    sdp = AUDIO_SENDER_SDP.replace("c=IN IP4 239.100.3.1/64", "c=IN IP6 ff3e::1234/3")
    connection = parse_session_description(sdp).media_descriptions[0].connections[0]
    assert (connection.address, connection.ttl, connection.address_count) == (
        "ff3e::1234",
        None,
        3,
    )


@pytest.mark.parametrize(
    "text",
    [
        "",
        "   \n",
        "v=0\ns=missing origin\n",
        "v=0\no=- 1 1 IN IP4 127.0.0.1\n",
        "v=0\no=- 1 IN IP4 127.0.0.1\ns=-\n",
        "v=x\no=- 1 1 IN IP4 127.0.0.1\ns=-\n",
        "v=0\no=- 1 1 IN IP4 127.0.0.1\ns=-\nnot a line\n",
        "v=0\no=- 1 1 IN IP4 127.0.0.1\ns=-\nm=video five RTP/AVP 96\n",
        "v=0\no=- 1 1 IN IP4 127.0.0.1\ns=-\nm=video 5000 RTP/AVP 96\nc=IN IP4\n",
        "v=0\no=- 1 1 IN IP4 127.0.0.1\ns=-\nb=AS\n",
        "v=0\no=- 1 1 IN IP4 127.0.0.1\ns=-\nx=unknown\n",
    ],
)
def test_parse_rejects_malformed_text(text: str) -> None:
    with pytest.raises(SdpParseError):
        parse_session_description(text)


def test_format_uses_crlf_and_line_order() -> None:
    description = parse_session_description(VIDEO_SENDER_SDP.replace("\r\n", "\n"))

    text = format_session_description(description)

    assert text.endswith("\r\n")
    assert "\n" not in text.replace("\r\n", "")
    lines = text.split("\r\n")
    assert lines[:5] == [
        "v=0",
        "o=- 1443716955 1443716955 IN IP4 192.168.1.10",
        "s=Camera 1",
        "i=Primary camera feed",
        "t=0 0",
    ]
    assert lines[lines.index("m=video 5020 RTP/AVP 96") + 1] == "c=IN IP4 239.100.1.1/64"


def test_format_then_parse_preserves_description() -> None:
    description = parse_session_description(VIDEO_SENDER_SDP)

    assert parse_session_description(format_session_description(description)) == description
