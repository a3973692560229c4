"""Clock references (RFC 7273 ts-refclk) and IS-04 node clocks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

CLOCK_SOURCE_PTP = "ptp"
CLOCK_SOURCE_LOCAL_MAC = "localmac"
PTP_VERSION_IEEE1588_2008 = "IEEE1588-2008"
NULL_GMID = "ff-ff-ff-ff-ff-ff-ff-ff"
DEFAULT_CLOCK_NAME = "clk0"
DEFAULT_PTP_DOMAIN = 0


@dataclass(slots=True, frozen=True)
class TsRefClk:
    """One `a=ts-refclk` value.

    A PTP reference with an empty `ptp_server` is the traceable-only form.
    """

    clock_source: str
    ptp_version: str = ""
    ptp_server: str = ""
    mac_address: str = ""

    @classmethod
    def ptp(cls, ptp_version: str, ptp_server: str = "") -> TsRefClk:
        return cls(clock_source=CLOCK_SOURCE_PTP, ptp_version=ptp_version, ptp_server=ptp_server)

    @classmethod
    def local_mac(cls, mac_address: str) -> TsRefClk:
        return cls(clock_source=CLOCK_SOURCE_LOCAL_MAC, mac_address=mac_address)

    @classmethod
    def parse(cls, value: str | None) -> TsRefClk | None:
        """Parse an attribute value, returning None for unsupported clock sources."""

        if not value:
            return None
        source, _, rest = value.strip().partition("=")
        if source == CLOCK_SOURCE_PTP:
            ptp_version, _, ptp_server = rest.partition(":")
            if ptp_server == "traceable":
                ptp_server = ""
            return cls.ptp(ptp_version, ptp_server)
        if source == CLOCK_SOURCE_LOCAL_MAC:
            return cls.local_mac(rest)
        return None

    @property
    def is_ieee1588_2008(self) -> bool:
        return (
            self.clock_source == CLOCK_SOURCE_PTP
            and self.ptp_version == PTP_VERSION_IEEE1588_2008
        )

    def render(self) -> str:
        if self.clock_source == CLOCK_SOURCE_LOCAL_MAC:
            return f"{CLOCK_SOURCE_LOCAL_MAC}={self.mac_address}"
        return f"{CLOCK_SOURCE_PTP}={self.ptp_version}:{self.ptp_server or 'traceable'}"


def make_internal_clock(name: str) -> dict[str, Any]:
    return {"name": name, "ref_type": "internal"}


def make_ptp_clock(name: str, traceable: bool, gmid: str, locked: bool = True) -> dict[str, Any]:
    return {
        "name": name,
        "ref_type": "ptp",
        "traceable": traceable,
        "version": PTP_VERSION_IEEE1588_2008,
        "gmid": gmid,
        "locked": locked,
    }


def make_node_clock(
    name: str,
    ts_refclks: list[list[TsRefClk]],
    ptp_domain: int,
) -> tuple[dict[str, Any], int]:
    """Derive a node clock from per-leg clock references.

    The first leg carrying a PTP grandmaster id decides the clock. Returns the
    clock and the PTP domain number, which is only replaced when the reference
    carries an integer domain suffix.
    """

    for leg_refclks in ts_refclks:
        grandmaster = next(
            (ref for ref in leg_refclks if ref.is_ieee1588_2008 and ref.ptp_server),
            None,
        )
        if grandmaster is None:
            continue
        traceable = any(ref.is_ieee1588_2008 and not ref.ptp_server for ref in leg_refclks)
        gmid, _, domain = grandmaster.ptp_server.partition(":")
        if domain.isdigit():
            ptp_domain = int(domain)
        return make_ptp_clock(name, traceable, gmid.lower()), ptp_domain

    if any(ref.is_ieee1588_2008 and not ref.ptp_server for refs in ts_refclks for ref in refs):
        # null EUI-64, the grandmaster is unknown
        return make_ptp_clock(name, True, NULL_GMID), ptp_domain

    return make_internal_clock(name), ptp_domain


def make_ts_refclk(
    clock: dict[str, Any],
    ptp_domain: int,
    port_id: str | None = None,
) -> TsRefClk | None:
    """Build the clock reference advertised for a node clock.

    Internal clocks are referenced by the MAC of the bound interface, so
    without a `port_id` they have no reference.
    """

    if clock.get("ref_type") == "ptp":
        gmid = str(clock.get("gmid", ""))
        if not gmid or gmid == NULL_GMID:
            return TsRefClk.ptp(PTP_VERSION_IEEE1588_2008)
        return TsRefClk.ptp(PTP_VERSION_IEEE1588_2008, f"{gmid.upper()}:{ptp_domain}")
    if port_id:
        return TsRefClk.local_mac(port_id.upper())
    return None


__all__ = [
    "CLOCK_SOURCE_LOCAL_MAC",
    "CLOCK_SOURCE_PTP",
    "DEFAULT_CLOCK_NAME",
    "DEFAULT_PTP_DOMAIN",
    "NULL_GMID",
    "PTP_VERSION_IEEE1588_2008",
    "TsRefClk",
    "make_internal_clock",
    "make_node_clock",
    "make_ptp_clock",
    "make_ts_refclk",
]
