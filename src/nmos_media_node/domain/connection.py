"""IS-05 connection models for senders and receivers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from nmos_media_node.domain.resource_types import APPLICATION_SDP, ResourceType

AUTO = "auto"
DEFAULT_RTP_PORT = 5004


class ConnectionModel(BaseModel):
    """Base model for connection API documents."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class SenderTransportParams(ConnectionModel):
    """RTP sender transport parameters for one leg."""

    source_ip: str | None = AUTO
    destination_ip: str | None = AUTO
    source_port: int | str = AUTO
    destination_port: int | str = AUTO
    rtp_enabled: bool = True


class ReceiverTransportParams(ConnectionModel):
    """RTP receiver transport parameters for one leg."""

    source_ip: str | None = None
    multicast_ip: str | None = None
    interface_ip: str | None = AUTO
    destination_port: int | str = AUTO
    rtp_enabled: bool = True


TransportParams = SenderTransportParams | ReceiverTransportParams


class Activation(ConnectionModel):
    """Activation request or record."""

    mode: str | None = None
    requested_time: str | None = None
    activation_time: str | None = None


class TransportFile(ConnectionModel):
    """Transport file reference; `data` holds the session description text."""

    data: str | None = None
    type: str | None = None

    @classmethod
    def sdp(cls, data: str) -> TransportFile:
        return cls(data=data, type=APPLICATION_SDP)


class SenderEndpoint(ConnectionModel):
    """Sender `/staged` or `/active` document."""

    receiver_id: str | None = None
    master_enable: bool = False
    activation: Activation = Field(default_factory=Activation)
    transport_params: list[SenderTransportParams] = Field(default_factory=list)


class ReceiverEndpoint(ConnectionModel):
    """Receiver `/staged` or `/active` document."""

    sender_id: str | None = None
    master_enable: bool = False
    activation: Activation = Field(default_factory=Activation)
    transport_file: TransportFile = Field(default_factory=TransportFile)
    transport_params: list[ReceiverTransportParams] = Field(default_factory=list)


ConnectionEndpoint = SenderEndpoint | ReceiverEndpoint


@dataclass(slots=True)
class ConnectionResource:
    """Staged/active transport state paired 1:1 with a sender or receiver."""

    id: str
    type: ResourceType
    version: str
    constraints: list[dict[str, Any]]
    staged: ConnectionEndpoint
    active: ConnectionEndpoint
    transportfile: TransportFile | None = None

    @property
    def leg_count(self) -> int:
        return len(self.constraints)

    @property
    def peer_field(self) -> str:
        return "receiver_id" if self.type is ResourceType.SENDER else "sender_id"


def make_connection_resource(
    resource_type: ResourceType,
    resource_id: str,
    version: str,
    constraints: list[dict[str, Any]],
) -> ConnectionResource:
    """Create the connection resource with all-auto staged and active legs."""

    legs = len(constraints)
    if resource_type is ResourceType.SENDER:
        staged: ConnectionEndpoint = SenderEndpoint(
            transport_params=[SenderTransportParams() for _ in range(legs)]
        )
        active: ConnectionEndpoint = SenderEndpoint(
            transport_params=[SenderTransportParams() for _ in range(legs)]
        )
        transportfile: TransportFile | None = TransportFile()
    else:
        staged = ReceiverEndpoint(
            transport_params=[ReceiverTransportParams() for _ in range(legs)]
        )
        active = ReceiverEndpoint(
            transport_params=[ReceiverTransportParams() for _ in range(legs)]
        )
        transportfile = None
    return ConnectionResource(
        id=resource_id,
        type=resource_type,
        version=version,
        constraints=constraints,
        staged=staged,
        active=active,
        transportfile=transportfile,
    )


__all__ = [
    "AUTO",
    "Activation",
    "ConnectionEndpoint",
    "ConnectionModel",
    "ConnectionResource",
    "DEFAULT_RTP_PORT",
    "ReceiverEndpoint",
    "ReceiverTransportParams",
    "SenderEndpoint",
    "SenderTransportParams",
    "TransportFile",
    "TransportParams",
    "make_connection_resource",
]
