from __future__ import annotations

import logging

import pytest

from conftest import (
    AUDIO_SENDER_SDP,
    VIDEO_RECEIVER_SDP,
    VIDEO_SENDER_SDP,
    RecordingActivationCallback,
    RecordingEventPublisher,
)
from nmos_media_node.application.services import NodeService
from nmos_media_node.application.services.sdp_mapping import (
    get_sdp_parameters,
    get_transport_params,
)
from nmos_media_node.domain.clocks import NULL_GMID
from nmos_media_node.domain.connection import SenderTransportParams
from nmos_media_node.domain.entities import Resource
from nmos_media_node.domain.errors import (
    DuplicateResourceError,
    InternalInconsistencyError,
    InvalidStagedRequestError,
    NoMatchingInterfaceError,
    ResourceNotFoundError,
    SdpParseError,
    UnsupportedFormatError,
)
from nmos_media_node.domain.events import NodeOperation
from nmos_media_node.domain.resource_types import ResourceType
from nmos_media_node.domain.session_description import (
    find_attribute,
    find_attributes,
    parse_session_description,
)


def _lines(sdp: str) -> list[str]:
    return [line for line in sdp.splitlines() if line]


def _single_clock_reference_sdp() -> str:
    lines = [
        line
        for line in _lines(VIDEO_SENDER_SDP)
        if not line.startswith(("a=group:", "a=mid:", "a=ts-refclk:"))
    ]
    session_end = lines.index("m=video 5020 RTP/AVP 96")
    lines.insert(session_end, "a=ts-refclk:ptp=IEEE1588-2008:08-00-11-FF-FE-21-E1-B0:127")
    return "\r\n".join(lines) + "\r\n"


def _first_leg_sdp() -> str:
    second_leg = VIDEO_SENDER_SDP.index("m=video", VIDEO_SENDER_SDP.index("m=video") + 1)
    return VIDEO_SENDER_SDP[:second_leg]


def _node(service: NodeService) -> dict:
    return service.get_node_self().data


def test_init_creates_node_with_internal_clock_and_device(node_service: NodeService) -> None:
    node = _node(node_service)
    device = node_service.get_resource(ResourceType.DEVICE, node_service.device_id)

    assert node["clocks"] == [{"name": "clk0", "ref_type": "internal"}]
    assert node["interfaces"] == []
    assert node["hostname"] == "node-a"
    assert device.data["node_id"] == node_service.node_id
    assert device.data["senders"] == []
    assert device.data["receivers"] == []


def test_init_twice_raises_duplicate(node_service: NodeService) -> None:
    with pytest.raises(DuplicateResourceError):
        node_service.init()


def test_add_sender_builds_consistent_resource_graph(node_service: NodeService) -> None:
    sender = node_service.add_sender(VIDEO_SENDER_SDP)

    flow = node_service.get_resource(ResourceType.FLOW, sender.data["flow_id"])
    source = node_service.get_resource(ResourceType.SOURCE, flow.data["source_id"])
    device = node_service.get_resource(ResourceType.DEVICE, node_service.device_id)

    assert sender.internal_id == "camera-1"
    assert sender.group_hint == "camera-1:video"
    assert sender.data["label"] == "Camera 1"
    assert sender.data["description"] == "Primary camera feed"
    assert sender.data["interface_bindings"] == ["eth0", "eth1"]
    assert sender.data["device_id"] == node_service.device_id
    assert sender.data["manifest_href"].endswith(f"/connection/senders/{sender.id}/transportfile")
    assert device.data["senders"] == [sender.id]
    assert flow.data["media_type"] == "video/raw"
    assert flow.data["frame_width"] == 1920
    assert flow.data["frame_height"] == 1080
    assert flow.data["grain_rate"] == {"numerator": 25, "denominator": 1}
    assert [component["width"] for component in flow.data["components"]] == [1920, 960, 960]
    assert source.data["format"] == "urn:x-nmos:format:video"
    assert source.data["clock_name"] == "clk0"


def test_add_sender_advertises_bound_interfaces_and_ptp_clock(node_service: NodeService) -> None:
    node_service.add_sender(VIDEO_SENDER_SDP)

    node = _node(node_service)

    assert node["interfaces"] == [
        {"name": "eth0", "chassis_id": None, "port_id": "00-1b-21-aa-00-01"},
        {"name": "eth1", "chassis_id": None, "port_id": "00-1b-21-aa-00-02"},
    ]
    assert node["clocks"] == [
        {
            "name": "clk0",
            "ref_type": "ptp",
            "traceable": False,
            "version": "IEEE1588-2008",
            "gmid": "ac-de-48-23-45-67-01-9f",
            "locked": True,
        }
    ]
    assert node_service.model.configs.clock_domains["clk0"] == 42


def test_add_sender_constrains_source_ip_and_resolves_auto_values(
    node_service: NodeService,
) -> None:
    sender = node_service.add_sender(VIDEO_SENDER_SDP)

    constraints = node_service.get_connection(ResourceType.SENDER, sender.id, "constraints")
    active = node_service.get_connection(ResourceType.SENDER, sender.id, "active")
    staged = node_service.get_connection(ResourceType.SENDER, sender.id, "staged")

    assert [leg["source_ip"] for leg in constraints] == [
        {"enum": ["192.168.1.10"]},
        {"enum": ["192.168.2.10"]},
    ]
    assert constraints[0]["destination_port"] == {}
    assert [leg["source_ip"] for leg in active["transport_params"]] == [
        "192.168.1.10",
        "192.168.2.10",
    ]
    assert all(
        leg["destination_ip"].startswith("232.") for leg in active["transport_params"]
    )
    assert active["transport_params"][0]["destination_port"] == 5004
    assert active["master_enable"] is False
    assert staged["transport_params"][0]["destination_ip"] == "auto"


def test_add_receiver_builds_caps_and_interface_constraints(node_service: NodeService) -> None:
    receiver = node_service.add_receiver(VIDEO_RECEIVER_SDP)

    device = node_service.get_resource(ResourceType.DEVICE, node_service.device_id)
    constraints = node_service.get_connection(ResourceType.RECEIVER, receiver.id, "constraints")
    constraint_set = receiver.data["caps"]["constraint_sets"][0]

    assert receiver.internal_id == "monitor-1"
    assert receiver.data["format"] == "urn:x-nmos:format:video"
    assert receiver.data["caps"]["media_types"] == ["video/raw"]
    assert constraint_set["urn:x-nmos:cap:format:frame_width"] == {"enum": [1920]}
    assert receiver.data["interface_bindings"] == ["eth0"]
    assert device.data["receivers"] == [receiver.id]
    assert constraints[0]["interface_ip"] == {"enum": ["192.168.1.10"]}
    assert [interface["name"] for interface in _node(node_service)["interfaces"]] == ["eth0"]


def test_receiver_does_not_change_node_clock(node_service: NodeService) -> None:
    node_service.add_receiver(VIDEO_RECEIVER_SDP)

    assert _node(node_service)["clocks"] == [{"name": "clk0", "ref_type": "internal"}]


def test_duplicate_internal_id_is_rejected_without_changing_graph(
    node_service: NodeService,
) -> None:
    node_service.add_sender(VIDEO_SENDER_SDP)
    resources_before = len(node_service.model.node_resources.list())

    with pytest.raises(DuplicateResourceError):
        node_service.add_sender(VIDEO_SENDER_SDP)
    receiver_sdp = VIDEO_RECEIVER_SDP.replace("x-nvnmos-id:monitor-1", "x-nvnmos-id:camera-1")
    with pytest.raises(DuplicateResourceError):
        node_service.add_receiver(receiver_sdp)

    assert len(node_service.model.node_resources.list()) == resources_before


def test_unmatched_leg_address_fails_without_changes(node_service: NodeService) -> None:
    sdp = AUDIO_SENDER_SDP.replace("239.100.3.1 192.168.1.10", "239.100.3.1 192.168.9.9")

    with pytest.raises(NoMatchingInterfaceError):
        node_service.add_sender(sdp)

    assert node_service.model.node_resources.list(ResourceType.SENDER) == []
    assert node_service.model.connection_resources.list() == []


def test_add_sender_rejects_unsupported_media_type(node_service: NodeService) -> None:
    sdp = AUDIO_SENDER_SDP.replace("a=rtpmap:97 L24/48000/2", "a=rtpmap:97 opus/48000/2")

    with pytest.raises(UnsupportedFormatError):
        node_service.add_sender(sdp)


def test_add_sender_requires_internal_id(node_service: NodeService) -> None:
    sdp = AUDIO_SENDER_SDP.replace("a=x-nvnmos-id:mic-1\n", "")

    with pytest.raises(SdpParseError):
        node_service.add_sender(sdp)


def test_add_sender_without_node_clock_leaves_graph_unchanged(
    node_service: NodeService,
) -> None:
    def drop_clocks(node: Resource) -> None:
        node.data["clocks"] = []

    node_service.model.node_resources.modify(node_service.node_id, ResourceType.NODE, drop_clocks)

    with pytest.raises(InternalInconsistencyError):
        node_service.add_sender(VIDEO_SENDER_SDP)

    for resource_type in (ResourceType.SOURCE, ResourceType.FLOW, ResourceType.SENDER):
        assert node_service.list_resources(resource_type) == []
    assert len(node_service.model.connection_resources) == 0
    assert node_service.list_resources(ResourceType.DEVICE)[0].data["senders"] == []


def test_remove_sender_erases_flow_source_and_interfaces(node_service: NodeService) -> None:
    sender = node_service.add_sender(VIDEO_SENDER_SDP)
    flow_id = sender.data["flow_id"]
    source_id = node_service.get_resource(ResourceType.FLOW, flow_id).data["source_id"]
    node_version = _node(node_service)["version"]

    node_service.remove_sender("camera-1")

    device = node_service.get_resource(ResourceType.DEVICE, node_service.device_id)
    assert sender.id not in device.data["senders"]
    with pytest.raises(ResourceNotFoundError):
        node_service.get_resource(ResourceType.FLOW, flow_id)
    with pytest.raises(ResourceNotFoundError):
        node_service.get_resource(ResourceType.SOURCE, source_id)
    with pytest.raises(ResourceNotFoundError):
        node_service.get_connection(ResourceType.SENDER, sender.id, "active")
    assert _node(node_service)["interfaces"] == []
    assert _node(node_service)["version"] != node_version
    assert sender.id not in node_service.model.configs.senders


def test_remove_keeps_interfaces_still_bound_by_other_resources(
    node_service: NodeService,
) -> None:
    node_service.add_sender(VIDEO_SENDER_SDP)
    node_service.add_receiver(VIDEO_RECEIVER_SDP)

    node_service.remove_sender("camera-1")

    assert [interface["name"] for interface in _node(node_service)["interfaces"]] == ["eth0"]


def test_remove_unknown_resources_raise_not_found(node_service: NodeService) -> None:
    with pytest.raises(ResourceNotFoundError):
        node_service.remove_sender("missing")
    with pytest.raises(ResourceNotFoundError):
        node_service.remove_receiver("missing")


def test_latest_sender_decides_node_clock(node_service: NodeService) -> None:
    node_service.add_sender(VIDEO_SENDER_SDP)
    version = _node(node_service)["version"]

    node_service.add_sender(AUDIO_SENDER_SDP)

    clock = _node(node_service)["clocks"][0]
    assert clock["ref_type"] == "ptp"
    assert clock["traceable"] is True
    assert clock["gmid"] == NULL_GMID
    assert _node(node_service)["version"] != version


def test_force_activate_sender_regenerates_transport_file_and_calls_back(
    node_service: NodeService,
    activation_callback: RecordingActivationCallback,
) -> None:
    sender = node_service.add_sender(VIDEO_SENDER_SDP)

    node_service.force_activate("camera-1", VIDEO_SENDER_SDP)

    active = node_service.get_connection(ResourceType.SENDER, sender.id, "active")
    transportfile = node_service.get_transportfile(sender.id)
    description = parse_session_description(transportfile.data or "")
    updated = node_service.get_resource(ResourceType.SENDER, sender.id)

    assert active["master_enable"] is True
    assert active["receiver_id"] is None
    assert active["activation"]["activation_time"] is not None
    assert transportfile.type == "application/sdp"
    assert find_attribute(description.attributes, "x-nvnmos-id") is None
    assert [
        attribute.value
        for media in description.media_descriptions
        for attribute in find_attributes(media.attributes, "ts-refclk")
    ] == ["ptp=IEEE1588-2008:AC-DE-48-23-45-67-01-9F:42"] * 2
    assert updated.data["subscription"] == {"receiver_id": None, "active": True}
    assert activation_callback.calls[-1][0] == "camera-1"
    assert activation_callback.calls[-1][1] is not None


def test_activation_round_trip_keeps_codec_and_applies_new_transport(
    node_service: NodeService,
    activation_callback: RecordingActivationCallback,
) -> None:
    node_service.add_sender(VIDEO_SENDER_SDP)
    changed = VIDEO_SENDER_SDP.replace("239.100.1.1", "239.100.9.9").replace(
        "m=video 5020", "m=video 5040", 1
    )

    node_service.force_activate("camera-1", changed)

    text = activation_callback.calls[-1][1]
    assert text is not None
    result = parse_session_description(text)
    expected = parse_session_description(changed)
    result_params = get_sdp_parameters(result)
    created_params = get_sdp_parameters(parse_session_description(VIDEO_SENDER_SDP))

    assert result_params.media_type == created_params.media_type
    assert result_params.clock_rate == created_params.clock_rate
    assert result_params.fmtp == created_params.fmtp
    assert get_transport_params(ResourceType.SENDER, result) == get_transport_params(
        ResourceType.SENDER, expected
    )
    assert find_attribute(result.attributes, "x-nvnmos-id").value == "camera-1"
    assert find_attribute(result.attributes, "x-nvnmos-group-hint").value == "camera-1:video"
    assert result.information == "Primary camera feed"


def test_two_leg_activation_expands_duplication_group(
    node_service: NodeService,
    activation_callback: RecordingActivationCallback,
) -> None:
    sdp = _single_clock_reference_sdp()
    node_service.add_sender(sdp)

    node_service.force_activate("camera-1", sdp)

    text = activation_callback.calls[-1][1]
    assert text is not None
    result = parse_session_description(text)
    refclks = [
        [attribute.value for attribute in find_attributes(media.attributes, "ts-refclk")]
        for media in result.media_descriptions
    ]
    assert find_attribute(result.attributes, "group").value == "DUP 0 1"
    mids = [find_attribute(media.attributes, "mid").value for media in result.media_descriptions]
    assert mids == ["0", "1"]
    assert refclks[0] == refclks[1]
    assert refclks[0] == ["ptp=IEEE1588-2008:08-00-11-FF-FE-21-E1-B0:127"]


def test_single_leg_activation_of_two_leg_sender_keeps_both_legs(
    node_service: NodeService,
    activation_callback: RecordingActivationCallback,
) -> None:
    sender = node_service.add_sender(VIDEO_SENDER_SDP)

    node_service.force_activate("camera-1", _first_leg_sdp().replace("239.100.1.1", "239.100.9.9"))

    active = node_service.get_connection(ResourceType.SENDER, sender.id, "active")
    assert [leg["destination_ip"] for leg in active["transport_params"]] == [
        "239.100.9.9",
        "239.100.2.1",
    ]
    text = activation_callback.calls[-1][1]
    assert text is not None
    result = parse_session_description(text)
    assert len(result.media_descriptions) == 2
    assert find_attribute(result.attributes, "group").value == "DUP primary secondary"
    mids = [find_attribute(media.attributes, "mid").value for media in result.media_descriptions]
    assert mids == ["primary", "secondary"]
    assert [
        [attribute.value for attribute in find_attributes(media.attributes, "ts-refclk")]
        for media in result.media_descriptions
    ] == [["ptp=IEEE1588-2008:AC-DE-48-23-45-67-01-9F:42"]] * 2


def test_force_activate_rejects_more_legs_than_the_receiver_has(
    node_service: NodeService,
) -> None:
    node_service.add_receiver(VIDEO_RECEIVER_SDP)

    with pytest.raises(SdpParseError):
        node_service.force_activate("monitor-1", VIDEO_SENDER_SDP)


def test_failing_activation_callback_does_not_undo_activation(
    node_service: NodeService,
    event_publisher: RecordingEventPublisher,
    caplog: pytest.LogCaptureFixture,
) -> None:
    def failing_callback(internal_id: str, sdp: str | None) -> None:
        raise RuntimeError("media pipeline unavailable")

    sender = node_service.add_sender(VIDEO_SENDER_SDP)
    node_service._activation_callback = failing_callback
    start = node_service.model.wait_for_change(0, timeout=0)

    with caplog.at_level(logging.WARNING):
        node_service.force_activate("camera-1", VIDEO_SENDER_SDP)

    active = node_service.get_connection(ResourceType.SENDER, sender.id, "active")
    assert active["master_enable"] is True
    assert node_service.model.wait_for_change(start, timeout=0) == start + 1
    assert event_publisher.events[-1].operation == NodeOperation.ACTIVATED
    assert "Activation callback for sender 'camera-1' failed" in caplog.text


def test_internal_clock_is_referenced_by_interface_mac(node_service: NodeService) -> None:
    sdp = AUDIO_SENDER_SDP.replace("a=ts-refclk:ptp=IEEE1588-2008:traceable\n", "")
    sender = node_service.add_sender(sdp)

    node_service.force_activate("mic-1", sdp)

    transportfile = node_service.get_transportfile(sender.id).data or ""
    assert "a=ts-refclk:localmac=00-1B-21-AA-00-01" in transportfile


def test_force_activate_without_sdp_signals_deactivation(
    node_service: NodeService,
    activation_callback: RecordingActivationCallback,
) -> None:
    sender = node_service.add_sender(VIDEO_SENDER_SDP)
    receiver = node_service.add_receiver(VIDEO_RECEIVER_SDP)
    node_service.force_activate("camera-1", VIDEO_SENDER_SDP)

    node_service.force_activate("camera-1", None)
    node_service.force_activate("monitor-1", None)

    assert activation_callback.calls[-2:] == [("camera-1", None), ("monitor-1", None)]
    for resource_type, resource_id in (
        (ResourceType.SENDER, sender.id),
        (ResourceType.RECEIVER, receiver.id),
    ):
        active = node_service.get_connection(resource_type, resource_id, "active")
        resource = node_service.get_resource(resource_type, resource_id)
        assert active["master_enable"] is False
        assert resource.data["subscription"]["active"] is False


def test_force_activate_receiver_stores_transport_file(
    node_service: NodeService,
    activation_callback: RecordingActivationCallback,
) -> None:
    receiver = node_service.add_receiver(VIDEO_RECEIVER_SDP)

    node_service.force_activate("monitor-1", VIDEO_RECEIVER_SDP)

    active = node_service.get_connection(ResourceType.RECEIVER, receiver.id, "active")
    assert active["transport_file"] == {"data": VIDEO_RECEIVER_SDP, "type": "application/sdp"}
    assert active["transport_params"][0]["multicast_ip"] == "239.100.1.1"
    assert active["transport_params"][0]["source_ip"] == "192.168.50.20"
    text = activation_callback.calls[-1][1]
    assert text is not None
    media = parse_session_description(text).media_descriptions[0]
    assert find_attribute(media.attributes, "x-nvnmos-iface-ip").value == "192.168.1.10"


def test_force_activate_unknown_internal_id_raises_not_found(node_service: NodeService) -> None:
    with pytest.raises(ResourceNotFoundError):
        node_service.force_activate("missing", None)


def test_stage_without_activation_only_updates_staged(
    node_service: NodeService,
    activation_callback: RecordingActivationCallback,
    event_publisher: RecordingEventPublisher,
) -> None:
    sender = node_service.add_sender(VIDEO_SENDER_SDP)

    staged = node_service.stage_connection(
        ResourceType.SENDER,
        sender.id,
        {"master_enable": True, "transport_params": [{"destination_port": 5100}, {}]},
    )

    active = node_service.get_connection(ResourceType.SENDER, sender.id, "active")
    assert staged.master_enable is True
    assert isinstance(staged.transport_params[0], SenderTransportParams)
    assert staged.transport_params[0].destination_port == 5100
    assert active["master_enable"] is False
    assert activation_callback.calls == []
    assert event_publisher.events[-1].operation is NodeOperation.STAGED


def test_stage_immediate_activation_commits_and_resolves(
    node_service: NodeService,
    activation_callback: RecordingActivationCallback,
    event_publisher: RecordingEventPublisher,
) -> None:
    sender = node_service.add_sender(VIDEO_SENDER_SDP)

    staged = node_service.stage_connection(
        ResourceType.SENDER,
        sender.id,
        {
            "master_enable": True,
            "transport_params": [{"destination_ip": "239.200.0.1"}, {}],
            "activation": {"mode": "activate_immediate"},
        },
    )

    active = node_service.get_connection(ResourceType.SENDER, sender.id, "active")
    transportfile = node_service.get_transportfile(sender.id).data or ""
    assert staged.activation.mode is None
    assert active["activation"]["mode"] == "activate_immediate"
    assert active["transport_params"][0]["destination_ip"] == "239.200.0.1"
    assert active["transport_params"][1]["destination_ip"].startswith("232.")
    assert active["transport_params"][1]["source_ip"] == "192.168.2.10"
    assert "c=IN IP4 239.200.0.1/64" in transportfile
    assert activation_callback.calls[-1][0] == "camera-1"
    assert event_publisher.events[-1].operation is NodeOperation.ACTIVATED


def test_stage_receiver_transport_file_fills_transport_params(node_service: NodeService) -> None:
    receiver = node_service.add_receiver(VIDEO_RECEIVER_SDP)
    sdp = VIDEO_RECEIVER_SDP.replace("239.100.1.1 192.168.50.20", "239.100.7.7 192.168.60.1")
    sdp = sdp.replace("c=IN IP4 239.100.1.1/64", "c=IN IP4 239.100.7.7/64")

    staged = node_service.stage_connection(
        ResourceType.RECEIVER,
        receiver.id,
        {"transport_file": {"data": sdp, "type": "application/sdp"}},
    )

    params = staged.transport_params[0]
    assert params.multicast_ip == "239.100.7.7"
    assert params.source_ip == "192.168.60.1"
    assert params.interface_ip == "192.168.1.10"


@pytest.mark.parametrize(
    "patch",
    [
        {"activation": {"mode": "activate_scheduled_relative", "requested_time": "0:0"}},
        {"transport_params": [{}]},
        {"transport_file": {"data": "v=0", "type": "application/sdp"}},
        {"unknown_field": True},
    ],
)
def test_invalid_staged_patches_are_rejected(
    node_service: NodeService,
    patch: dict[str, object],
) -> None:
    sender = node_service.add_sender(VIDEO_SENDER_SDP)

    with pytest.raises(InvalidStagedRequestError):
        node_service.stage_connection(ResourceType.SENDER, sender.id, patch)


def test_each_operation_notifies_once_and_publishes_one_event(
    node_service: NodeService,
    event_publisher: RecordingEventPublisher,
) -> None:
    start = node_service.model.wait_for_change(0, timeout=0)

    sender = node_service.add_sender(VIDEO_SENDER_SDP)
    node_service.force_activate("camera-1", VIDEO_SENDER_SDP)
    node_service.remove_sender("camera-1")

    assert node_service.model.wait_for_change(start, timeout=0) == start + 3
    assert [event.operation for event in event_publisher.events[-3:]] == [
        NodeOperation.SENDER_ADDED,
        NodeOperation.ACTIVATED,
        NodeOperation.SENDER_REMOVED,
    ]
    assert event_publisher.events[-1].resource_id == sender.id
    assert event_publisher.events[-1].version == start + 3
