from __future__ import annotations

import pytest

from nmos_media_node.application.services import NodeService
from nmos_media_node.domain.entities import HostInterface, NodeDescriptor
from nmos_media_node.domain.events import NodeChangeEvent
from nmos_media_node.domain.identity import make_seed_id
from nmos_media_node.infrastructure.host_interfaces import StaticHostInterfaceProvider
from nmos_media_node.infrastructure.repositories import InMemoryNodeModel

_VIDEO_FMTP = (
    "a=fmtp:96 sampling=YCbCr-4:2:2; width=1920; height=1080; exactframerate=25; "
    "depth=10; TCS=SDR; colorimetry=BT709; PM=2110GPM; SSN=ST2110-20:2017; TP=2110TPN"
)

VIDEO_SENDER_SDP = "\r\n".join(
    [
        "v=0",
        "o=- 1443716955 1443716955 IN IP4 192.168.1.10",
        "s=Camera 1",
        "i=Primary camera feed",
        "t=0 0",
        "a=x-nvnmos-id:camera-1",
        "a=x-nvnmos-group-hint:camera-1:video",
        "a=group:DUP primary secondary",
        "m=video 5020 RTP/AVP 96",
        "c=IN IP4 239.100.1.1/64",
        "a=source-filter: incl IN IP4 239.100.1.1 192.168.1.10",
        "a=rtpmap:96 raw/90000",
        _VIDEO_FMTP,
        "a=mediaclk:direct=0",
        "a=ts-refclk:ptp=IEEE1588-2008:AC-DE-48-23-45-67-01-9F:42",
        "a=mid:primary",
        "m=video 5020 RTP/AVP 96",
        "c=IN IP4 239.100.2.1/64",
        "a=x-nvnmos-iface-ip:192.168.2.10",
        "a=x-nvnmos-src-port:6000",
        "a=rtpmap:96 raw/90000",
        _VIDEO_FMTP,
        "a=mediaclk:direct=0",
        "a=ts-refclk:ptp=IEEE1588-2008:AC-DE-48-23-45-67-01-9F:42",
        "a=mid:secondary",
        "",
    ]
)

AUDIO_SENDER_SDP = "\n".join(
    [
        "v=0",
        "o=- 1443716956 1443716956 IN IP4 192.168.1.10",
        "s=Microphone 1",
        "t=0 0",
        "a=x-nvnmos-id:mic-1",
        "a=ts-refclk:ptp=IEEE1588-2008:traceable",
        "m=audio 5030 RTP/AVP 97",
        "c=IN IP4 239.100.3.1/64",
        "a=source-filter: incl IN IP4 239.100.3.1 192.168.1.10",
        "a=rtpmap:97 L24/48000/2",
        "a=ptime:1",
        "a=mediaclk:direct=0",
        "",
    ]
)

VIDEO_RECEIVER_SDP = "\r\n".join(
    [
        "v=0",
        "o=- 1443716957 1443716957 IN IP4 192.168.1.10",
        "s=Monitor 1",
        "i=Confidence monitor",
        "t=0 0",
        "a=x-nvnmos-id:monitor-1",
        "m=video 5020 RTP/AVP 96",
        "c=IN IP4 239.100.1.1/64",
        "a=source-filter: incl IN IP4 239.100.1.1 192.168.50.20",
        "a=x-nvnmos-iface-ip:192.168.1.10",
        "a=rtpmap:96 raw/90000",
        _VIDEO_FMTP,
        "",
    ]
)

HOST_INTERFACES = [
    HostInterface(name="lo", addresses=("127.0.0.1",), port_id=None),
    HostInterface(name="eth0", addresses=("192.168.1.10",), port_id="00-1b-21-aa-00-01"),
    HostInterface(name="eth1", addresses=("192.168.2.10",), port_id="00-1b-21-aa-00-02"),
    HostInterface(name="eth2", addresses=("10.0.0.5",), port_id="00-1b-21-aa-00-03"),
]


class RecordingActivationCallback:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str | None]] = []

    def __call__(self, internal_id: str, sdp: str | None) -> None:
        self.calls.append((internal_id, sdp))


class RecordingEventPublisher:
    def __init__(self) -> None:
        self.events: list[NodeChangeEvent] = []

    def publish_change(self, event: NodeChangeEvent) -> None:
        self.events.append(event)


@pytest.fixture
def activation_callback() -> RecordingActivationCallback:
    return RecordingActivationCallback()


@pytest.fixture
def event_publisher() -> RecordingEventPublisher:
    return RecordingEventPublisher()


@pytest.fixture
def node_service(
    activation_callback: RecordingActivationCallback,
    event_publisher: RecordingEventPublisher,
) -> NodeService:
    service = NodeService(
        model=InMemoryNodeModel(),
        descriptor=NodeDescriptor(host_name="node-a", host_addresses=("192.168.1.10",)),
        seed_id=make_seed_id("test-node"),
        host_interfaces=StaticHostInterfaceProvider(HOST_INTERFACES),
        activation_callback=activation_callback,
        event_publisher=event_publisher,
    )
    service.init()
    return service
