"""Codec and session parameters carried by a session description."""

from __future__ import annotations

from dataclasses import dataclass, field

from nmos_media_node.domain.clocks import TsRefClk
from nmos_media_node.domain.session_description import SdpBandwidth, SdpOrigin

BANDWIDTH_APPLICATION_SPECIFIC = "AS"
GROUP_SEMANTICS_DUPLICATION = "DUP"


@dataclass(slots=True)
class SdpParameters:
    """Everything but the per-leg transport parameters of a session description.

    `ts_refclk` holds the clock reference lines of each leg, with session-level
    lines applied to legs that declare none.
    """

    session_name: str
    origin: SdpOrigin
    media: str
    encoding_name: str
    payload_type: int
    clock_rate: int
    protocol: str = "RTP/AVP"
    channel_count: int = 0
    fmtp: list[tuple[str, str]] = field(default_factory=list)
    packet_time: float = 0.0
    max_packet_time: float = 0.0
    framerate: float = 0.0
    bandwidth: SdpBandwidth | None = None
    ts_refclk: list[list[TsRefClk]] = field(default_factory=list)
    mediaclk: str | None = None
    group_semantics: str = ""
    media_stream_ids: list[str] = field(default_factory=list)
    connection_ttl: int | None = None

    @property
    def media_type(self) -> str:
        return f"{self.media}/{self.encoding_name}"

    def find_fmtp(self, name: str) -> str | None:
        for fmtp_name, value in self.fmtp:
            if fmtp_name == name:
                return value
        return None

    def application_specific_bandwidth(self) -> int | None:
        if self.bandwidth is None:
            return None
        if self.bandwidth.bandwidth_type != BANDWIDTH_APPLICATION_SPECIFIC:
            return None
        return self.bandwidth.bandwidth


__all__ = [
    "BANDWIDTH_APPLICATION_SPECIFIC",
    "GROUP_SEMANTICS_DUPLICATION",
    "SdpParameters",
]
