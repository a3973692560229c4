from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from conftest import VIDEO_RECEIVER_SDP, VIDEO_SENDER_SDP, RecordingActivationCallback
from nmos_media_node.api.dependencies import get_node_service, get_settings
from nmos_media_node.application.services import NodeService
from nmos_media_node.main import app


@pytest.fixture
def client(node_service: NodeService) -> Iterator[TestClient]:
    get_node_service.cache_clear()
    get_settings.cache_clear()
    app.dependency_overrides[get_node_service] = lambda: node_service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _add_sender(client: TestClient) -> str:
    response = client.post("/senders", json={"sdp": VIDEO_SENDER_SDP})
    assert response.status_code == 201
    return response.json()["id"]


def test_healthz(client: TestClient, node_service: NodeService) -> None:
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "nodeId": node_service.node_id}


def test_add_sender_returns_internal_and_resource_ids(client: TestClient) -> None:
    response = client.post("/senders", json={"sdp": VIDEO_SENDER_SDP})

    assert response.status_code == 201
    body = response.json()
    assert body["internalId"] == "camera-1"
    sender = client.get(f"/node/senders/{body['id']}")
    assert sender.status_code == 200
    assert sender.json()["label"] == "Camera 1"
    assert [item["id"] for item in client.get("/node/senders").json()] == [body["id"]]


def test_add_sender_twice_returns_409(client: TestClient) -> None:
    _add_sender(client)

    response = client.post("/senders", json={"sdp": VIDEO_SENDER_SDP})

    assert response.status_code == 409


@pytest.mark.parametrize(
    "sdp",
    [
        "v=0\r\n",
        VIDEO_SENDER_SDP.replace("raw/90000", "H264/90000"),
        VIDEO_SENDER_SDP.replace("192.168.2.10", "192.168.9.9"),
    ],
)
def test_add_sender_rejects_bad_session_descriptions(client: TestClient, sdp: str) -> None:
    response = client.post("/senders", json={"sdp": sdp})

    assert response.status_code == 400


def test_add_sender_requires_sdp_field(client: TestClient) -> None:
    response = client.post("/senders", json={"session": VIDEO_SENDER_SDP})

    assert response.status_code == 422


def test_remove_receiver(client: TestClient) -> None:
    created = client.post("/receivers", json={"sdp": VIDEO_RECEIVER_SDP})
    assert created.status_code == 201

    response = client.delete("/receivers/monitor-1")

    assert response.status_code == 204
    assert client.get(f"/node/receivers/{created.json()['id']}").status_code == 404
    assert client.delete("/receivers/monitor-1").status_code == 404


def test_node_self_lists_bound_interfaces(client: TestClient) -> None:
    _add_sender(client)

    response = client.get("/node/self")

    assert response.status_code == 200
    assert [interface["name"] for interface in response.json()["interfaces"]] == [
        "eth0",
        "eth1",
    ]
    assert client.get("/node/widgets").status_code == 404


def test_activation_serves_transport_file(
    client: TestClient,
    activation_callback: RecordingActivationCallback,
) -> None:
    sender_id = _add_sender(client)
    assert client.get(f"/connection/senders/{sender_id}/transportfile").status_code == 404

    response = client.post("/activations/camera-1", json={"sdp": VIDEO_SENDER_SDP})

    assert response.status_code == 204
    transportfile = client.get(f"/connection/senders/{sender_id}/transportfile")
    assert transportfile.status_code == 200
    assert transportfile.headers["content-type"].startswith("application/sdp")
    assert "a=ts-refclk:ptp=IEEE1588-2008:AC-DE-48-23-45-67-01-9F:42" in transportfile.text
    assert activation_callback.calls[-1][0] == "camera-1"


def test_deactivation_with_null_sdp(
    client: TestClient,
    activation_callback: RecordingActivationCallback,
) -> None:
    sender_id = _add_sender(client)

    response = client.post("/activations/camera-1", json={"sdp": None})

    assert response.status_code == 204
    assert activation_callback.calls == [("camera-1", None)]
    active = client.get(f"/connection/senders/{sender_id}/active").json()
    assert active["master_enable"] is False
    assert client.post("/activations/missing", json={"sdp": None}).status_code == 404


def test_connection_views(client: TestClient) -> None:
    sender_id = _add_sender(client)

    constraints = client.get(f"/connection/senders/{sender_id}/constraints")
    staged = client.get(f"/connection/senders/{sender_id}/staged")

    assert constraints.status_code == 200
    assert len(constraints.json()) == 2
    assert staged.json()["master_enable"] is False
    assert client.get(f"/connection/senders/{sender_id}/pending").status_code == 404
    assert client.get(f"/connection/flows/{sender_id}/staged").status_code == 404
    assert client.get("/connection/senders/unknown/staged").status_code == 404


def test_patch_staged_activates_immediately(
    client: TestClient,
    activation_callback: RecordingActivationCallback,
) -> None:
    sender_id = _add_sender(client)

    response = client.patch(
        f"/connection/senders/{sender_id}/staged",
        json={
            "master_enable": True,
            "transport_params": [{"destination_port": 5100}, {}],
            "activation": {"mode": "activate_immediate"},
        },
    )

    assert response.status_code == 200
    assert response.json()["activation"]["mode"] is None
    active = client.get(f"/connection/senders/{sender_id}/active").json()
    assert active["master_enable"] is True
    assert active["transport_params"][0]["destination_port"] == 5100
    assert activation_callback.calls[-1][0] == "camera-1"


def test_patch_staged_rejects_scheduled_activation(client: TestClient) -> None:
    sender_id = _add_sender(client)

    response = client.patch(
        f"/connection/senders/{sender_id}/staged",
        json={"activation": {"mode": "activate_scheduled_absolute", "requested_time": "1:0"}},
    )

    assert response.status_code == 400
