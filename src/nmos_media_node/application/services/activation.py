"""Transport file generation and activation notification."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from nmos_media_node.application.services.node_state import find_source_for_sender
from nmos_media_node.application.services.sdp_mapping import (
    get_group_hint,
    get_internal_id,
    get_sdp_parameters,
    make_session_description,
    make_transportfile_description,
    ntp_seconds_now,
    without_vendor_fmtp,
)
from nmos_media_node.domain.clocks import make_ts_refclk
from nmos_media_node.domain.connection import (
    ConnectionResource,
    ReceiverEndpoint,
    SenderEndpoint,
    TransportFile,
)
from nmos_media_node.domain.entities import Resource, ResourceConfigs
from nmos_media_node.domain.errors import InternalInconsistencyError
from nmos_media_node.domain.ports import ActivationCallback, ResourceStore
from nmos_media_node.domain.resource_types import ResourceType, is_rtp_transport
from nmos_media_node.domain.sdp_parameters import GROUP_SEMANTICS_DUPLICATION
from nmos_media_node.domain.session_description import (
    format_session_description,
    parse_session_description,
)

logger = logging.getLogger(__name__)


def set_transportfile(
    node_resources: ResourceStore[Resource],
    configs: ResourceConfigs,
    node_id: str,
    sender: Resource,
    connection: ConnectionResource,
) -> None:
    """Regenerate the sender transport file from its active transport parameters.

    Clock references come from the node clock of the sender's source, so the
    file always reflects the clock the node currently advertises. Senders
    without a stored session description keep their transport file.
    """

    sdp = configs.senders.get(sender.id)
    if sdp is None:
        return

    node = node_resources.find(node_id, ResourceType.NODE)
    if node is None:
        raise InternalInconsistencyError(f"Node '{node_id}' is missing.")
    source = find_source_for_sender(node_resources, sender)
    if source is None:
        raise InternalInconsistencyError(f"Source of sender '{sender.id}' is missing.")
    clock_name = source.data.get("clock_name")
    clock = next(
        (clock for clock in node.data.get("clocks", []) if clock.get("name") == clock_name),
        None,
    )
    if clock is None:
        raise InternalInconsistencyError(f"Node clock '{clock_name}' is missing.")

    port_ids = {
        interface["name"]: interface.get("port_id")
        for interface in node.data.get("interfaces", [])
    }
    bindings = sender.data.get("interface_bindings", [])
    ptp_domain = configs.clock_domains.get(clock_name, 0)

    sdp_params = get_sdp_parameters(parse_session_description(sdp))
    sdp_params.fmtp = without_vendor_fmtp(sdp_params)
    ts_refclk = []
    for leg in range(connection.leg_count):
        port_id = port_ids.get(bindings[leg]) if leg < len(bindings) else None
        ref = make_ts_refclk(clock, ptp_domain, port_id)
        ts_refclk.append([ref] if ref is not None else [])
    sdp_params.ts_refclk = ts_refclk
    sdp_params.origin.session_version = ntp_seconds_now()

    active = connection.active
    if not isinstance(active, SenderEndpoint):
        raise InternalInconsistencyError(f"Connection '{connection.id}' is not a sender.")
    session_description = make_transportfile_description(sdp_params, active.transport_params)
    connection.transportfile = TransportFile.sdp(format_session_description(session_description))


def effective_session_description(
    configs: ResourceConfigs,
    resource: Resource,
    connection: ConnectionResource,
) -> str | None:
    """Build the internal session description for the active connection state.

    Returns None for resources that do not use RTP or were not created from a
    session description.
    """

    if not is_rtp_transport(resource.data.get("transport")):
        return None
    stored = configs.sdp_for(resource.type, resource.id)
    if stored is None:
        return None

    active = connection.active
    if isinstance(active, ReceiverEndpoint):
        text = active.transport_file.data
    else:
        text = connection.transportfile.data if connection.transportfile else None
    if not text:
        text = stored

    sdp_params = get_sdp_parameters(parse_session_description(text))
    legs = connection.leg_count
    if legs > 1:
        sdp_params.group_semantics = GROUP_SEMANTICS_DUPLICATION
        if len(sdp_params.media_stream_ids) < legs:
            sdp_params.media_stream_ids = [str(leg) for leg in range(legs)]
        if sdp_params.ts_refclk:
            while len(sdp_params.ts_refclk) < legs:
                sdp_params.ts_refclk.append(list(sdp_params.ts_refclk[0]))
    sdp_params.origin.session_version = ntp_seconds_now()

    stored_description = parse_session_description(stored)
    session_description = make_session_description(
        resource.type,
        get_internal_id(stored_description),
        resource.group_hint or get_group_hint(stored_description),
        str(resource.data.get("description", "")),
        sdp_params,
        active.transport_params,
    )
    return format_session_description(session_description)


@dataclass(frozen=True)
class ActivationReport:
    """What the activation callback is told about one sender or receiver."""

    resource_type: ResourceType
    internal_id: str
    sdp: str | None


def make_activation_report(
    configs: ResourceConfigs,
    resource: Resource,
    connection: ConnectionResource,
) -> ActivationReport | None:
    """Describe the activation of `connection`, or return None when it is not reported."""

    if not is_rtp_transport(resource.data.get("transport")):
        return None
    if configs.sdp_for(resource.type, resource.id) is None:
        return None

    sdp = None
    if connection.active.master_enable:
        sdp = effective_session_description(configs, resource, connection)
    return ActivationReport(resource.type, resource.internal_id, sdp)


def handle_activation(report: ActivationReport, callback: ActivationCallback) -> None:
    """Report an activation to the callback.

    Callback failures are logged and never undo the activation.
    """

    if report.sdp is not None:
        logger.info("Activated %s '%s'.", report.resource_type, report.internal_id)
    else:
        logger.info("Deactivated %s '%s'.", report.resource_type, report.internal_id)
    try:
        callback(report.internal_id, report.sdp)
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "Activation callback for %s '%s' failed: %s",
            report.resource_type,
            report.internal_id,
            exc,
        )


__all__ = [
    "ActivationReport",
    "effective_session_description",
    "handle_activation",
    "make_activation_report",
    "set_transportfile",
]
