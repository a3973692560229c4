"""Supported media formats and their per-kind parameter records."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from fractions import Fraction

from nmos_media_node.domain.errors import SdpParseError, UnsupportedFormatError
from nmos_media_node.domain.resource_types import FormatUrn
from nmos_media_node.domain.sdp_parameters import SdpParameters

VIDEO_RAW = "video/raw"
VIDEO_JXSV = "video/jxsv"
AUDIO_L24 = "audio/L24"
AUDIO_L16 = "audio/L16"
VIDEO_SMPTE291 = "video/smpte291"
VIDEO_SMPTE2022_6 = "video/SMPTE2022-6"


class MediaFormat(StrEnum):
    """Broad media kind of a sender or receiver."""

    VIDEO = "video"
    AUDIO = "audio"
    DATA = "data"
    MUX = "mux"

    @property
    def hint(self) -> str:
        """Short mnemonic for labels and log lines."""

        return self.value[0]

    @property
    def urn(self) -> FormatUrn:
        return FormatUrn[self.name]


_FORMATS_BY_MEDIA_TYPE = {
    VIDEO_RAW: MediaFormat.VIDEO,
    VIDEO_JXSV: MediaFormat.VIDEO,
    AUDIO_L24: MediaFormat.AUDIO,
    AUDIO_L16: MediaFormat.AUDIO,
    VIDEO_SMPTE291: MediaFormat.DATA,
    VIDEO_SMPTE2022_6: MediaFormat.MUX,
}


def canonical_media_type(media_type: str) -> str:
    """Return the registered spelling of a media type, matched case-insensitively."""

    lowered = media_type.lower()
    for known in _FORMATS_BY_MEDIA_TYPE:
        if known.lower() == lowered:
            return known
    return media_type


def get_format(media_type: str) -> MediaFormat:
    """Identify the media kind, failing for unsupported media types."""

    media_format = _FORMATS_BY_MEDIA_TYPE.get(canonical_media_type(media_type))
    if media_format is None:
        raise UnsupportedFormatError(f"Unsupported media type '{media_type}'.")
    return media_format


@dataclass(slots=True, frozen=True)
class VideoRawParameters:
    """SMPTE ST 2110-20 format parameters."""

    sampling: str
    depth: int
    width: int
    height: int
    exactframerate: Fraction
    colorimetry: str
    tcs: str = "SDR"
    interlace: bool = False
    segmented: bool = False
    range: str | None = None
    tp: str | None = None

    @property
    def interlace_mode(self) -> str:
        return "interlaced_tff" if self.interlace else "progressive"


@dataclass(slots=True, frozen=True)
class VideoJxsvParameters:
    """RFC 9134 JPEG XS format parameters."""

    packetmode: int
    transmode: int
    width: int
    height: int
    exactframerate: Fraction
    sampling: str
    depth: int
    colorimetry: str
    tcs: str = "SDR"
    profile: str = ""
    level: str = ""
    sublevel: str = ""
    interlace: bool = False
    segmented: bool = False
    tp: str | None = None

    @property
    def interlace_mode(self) -> str:
        return "interlaced_tff" if self.interlace else "progressive"

    @property
    def packet_transmission_mode(self) -> str:
        if self.packetmode == 0:
            return "codestream"
        return "slice_sequential" if self.transmode == 1 else "slice_out_of_order"


@dataclass(slots=True, frozen=True)
class AudioParameters:
    """SMPTE ST 2110-30 (linear PCM) format parameters."""

    channel_count: int
    bit_depth: int
    sample_rate: Fraction
    channel_order: str | None = None
    packet_time: float = 0.0


@dataclass(slots=True, frozen=True)
class DataParameters:
    """SMPTE ST 2110-40 ancillary data format parameters."""

    did_sdids: tuple[tuple[int, int], ...] = ()
    exactframerate: Fraction | None = None
    vpid_code: int | None = None


@dataclass(slots=True, frozen=True)
class MuxParameters:
    """SMPTE ST 2022-6 format parameters."""

    tp: str | None = None


FormatParameters = (
    VideoRawParameters | VideoJxsvParameters | AudioParameters | DataParameters | MuxParameters
)


def get_format_parameters(sdp_params: SdpParameters) -> FormatParameters:
    """Parse the parameter record for the media type of `sdp_params`."""

    media_type = canonical_media_type(sdp_params.media_type)
    get_format(media_type)
    if media_type == VIDEO_RAW:
        return _video_raw_parameters(sdp_params)
    if media_type == VIDEO_JXSV:
        return _video_jxsv_parameters(sdp_params)
    if media_type in {AUDIO_L24, AUDIO_L16}:
        return _audio_parameters(sdp_params)
    if media_type == VIDEO_SMPTE291:
        return _data_parameters(sdp_params)
    return MuxParameters(tp=sdp_params.find_fmtp("TP"))


def parse_rational(value: str) -> Fraction:
    """Parse `30000/1001` or `25` style rates."""

    numerator, _, denominator = value.strip().partition("/")
    try:
        return Fraction(int(numerator), int(denominator) if denominator else 1)
    except (ValueError, ZeroDivisionError) as exc:
        raise SdpParseError(f"Invalid rational value '{value}'.") from exc


def _required_int(sdp_params: SdpParameters, name: str) -> int:
    value = sdp_params.find_fmtp(name)
    if value is None:
        raise SdpParseError(f"Format parameter '{name}' is required for {sdp_params.media_type}.")
    return _int(name, value)


def _optional_int(sdp_params: SdpParameters, name: str, default: int) -> int:
    value = sdp_params.find_fmtp(name)
    return default if value is None else _int(name, value)


def _int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise SdpParseError(
            f"Format parameter '{name}' must be an integer, got '{value}'."
        ) from exc


def _required_rational(sdp_params: SdpParameters, name: str) -> Fraction:
    value = sdp_params.find_fmtp(name)
    if value is None:
        raise SdpParseError(f"Format parameter '{name}' is required for {sdp_params.media_type}.")
    return parse_rational(value)


def _video_raw_parameters(sdp_params: SdpParameters) -> VideoRawParameters:
    return VideoRawParameters(
        sampling=sdp_params.find_fmtp("sampling") or "YCbCr-4:2:2",
        depth=_required_int(sdp_params, "depth"),
        width=_required_int(sdp_params, "width"),
        height=_required_int(sdp_params, "height"),
        exactframerate=_required_rational(sdp_params, "exactframerate"),
        colorimetry=sdp_params.find_fmtp("colorimetry") or "UNSPECIFIED",
        tcs=sdp_params.find_fmtp("TCS") or "SDR",
        interlace=sdp_params.find_fmtp("interlace") is not None,
        segmented=sdp_params.find_fmtp("segmented") is not None,
        range=sdp_params.find_fmtp("RANGE"),
        tp=sdp_params.find_fmtp("TP"),
    )


def _video_jxsv_parameters(sdp_params: SdpParameters) -> VideoJxsvParameters:
    return VideoJxsvParameters(
        packetmode=_optional_int(sdp_params, "packetmode", 0),
        transmode=_optional_int(sdp_params, "transmode", 1),
        width=_required_int(sdp_params, "width"),
        height=_required_int(sdp_params, "height"),
        exactframerate=_required_rational(sdp_params, "exactframerate"),
        sampling=sdp_params.find_fmtp("sampling") or "YCbCr-4:2:2",
        depth=_optional_int(sdp_params, "depth", 10),
        colorimetry=sdp_params.find_fmtp("colorimetry") or "UNSPECIFIED",
        tcs=sdp_params.find_fmtp("TCS") or "SDR",
        profile=sdp_params.find_fmtp("profile") or "",
        level=sdp_params.find_fmtp("level") or "",
        sublevel=sdp_params.find_fmtp("sublevel") or "",
        interlace=sdp_params.find_fmtp("interlace") is not None,
        segmented=sdp_params.find_fmtp("segmented") is not None,
        tp=sdp_params.find_fmtp("TP"),
    )


def _audio_parameters(sdp_params: SdpParameters) -> AudioParameters:
    return AudioParameters(
        channel_count=sdp_params.channel_count or 1,
        bit_depth=int(sdp_params.encoding_name[1:]),
        sample_rate=Fraction(sdp_params.clock_rate),
        channel_order=sdp_params.find_fmtp("channel-order"),
        packet_time=sdp_params.packet_time,
    )


def _data_parameters(sdp_params: SdpParameters) -> DataParameters:
    did_sdids: list[tuple[int, int]] = []
    for name, value in sdp_params.fmtp:
        if name != "DID_SDID":
            continue
        codes = value.strip().lstrip("{").rstrip("}").split(",")
        if len(codes) != 2:
            raise SdpParseError(f"Invalid DID_SDID value '{value}'.")
        try:
            did_sdids.append((int(codes[0], 16), int(codes[1], 16)))
        except ValueError as exc:
            raise SdpParseError(f"Invalid DID_SDID value '{value}'.") from exc

    exactframerate = sdp_params.find_fmtp("exactframerate")
    vpid_code = sdp_params.find_fmtp("VPID_Code")
    return DataParameters(
        did_sdids=tuple(did_sdids),
        exactframerate=parse_rational(exactframerate) if exactframerate else None,
        vpid_code=_int("VPID_Code", vpid_code) if vpid_code else None,
    )


__all__ = [
    "AUDIO_L16",
    "AUDIO_L24",
    "AudioParameters",
    "DataParameters",
    "FormatParameters",
    "MediaFormat",
    "MuxParameters",
    "VIDEO_JXSV",
    "VIDEO_RAW",
    "VIDEO_SMPTE2022_6",
    "VIDEO_SMPTE291",
    "VideoJxsvParameters",
    "VideoRawParameters",
    "canonical_media_type",
    "get_format",
    "get_format_parameters",
    "parse_rational",
]
