"""Routes for adding, removing and activating senders and receivers."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Response
from fastapi.responses import JSONResponse

from nmos_media_node.api.dependencies import get_node_service
from nmos_media_node.api.routes.errors import raise_http_exception
from nmos_media_node.application.services import NodeService
from nmos_media_node.domain.control_models import (
    ActivationRequest,
    ResourceCreatedResponse,
    SessionDescriptionRequest,
)
from nmos_media_node.domain.entities import Resource

router = APIRouter(tags=["node control"])


def _created(resource: Resource) -> JSONResponse:
    body = ResourceCreatedResponse(internal_id=resource.internal_id, id=resource.id)
    return JSONResponse(status_code=201, content=body.model_dump(by_alias=True))


@router.post(
    "/senders",
    response_model=ResourceCreatedResponse,
    status_code=201,
    responses={400: {"description": "Bad request"}, 409: {"description": "Conflict"}},
)
def add_sender(
    message: SessionDescriptionRequest,
    service: NodeService = Depends(get_node_service),
) -> JSONResponse:
    """Create a sender from a session description."""

    try:
        sender = service.add_sender(message.sdp)
    except Exception as exc:  # noqa: BLE001
        raise_http_exception(exc)
    return _created(sender)


@router.delete("/senders/{internal_id}", status_code=204)
def remove_sender(
    internal_id: str = Path(...),
    service: NodeService = Depends(get_node_service),
) -> Response:
    """Remove a sender by internal id."""

    try:
        service.remove_sender(internal_id)
    except Exception as exc:  # noqa: BLE001
        raise_http_exception(exc)
    return Response(status_code=204)


@router.post(
    "/receivers",
    response_model=ResourceCreatedResponse,
    status_code=201,
    responses={400: {"description": "Bad request"}, 409: {"description": "Conflict"}},
)
def add_receiver(
    message: SessionDescriptionRequest,
    service: NodeService = Depends(get_node_service),
) -> JSONResponse:
    """Create a receiver from a session description."""

    try:
        receiver = service.add_receiver(message.sdp)
    except Exception as exc:  # noqa: BLE001
        raise_http_exception(exc)
    return _created(receiver)


@router.delete("/receivers/{internal_id}", status_code=204)
def remove_receiver(
    internal_id: str = Path(...),
    service: NodeService = Depends(get_node_service),
) -> Response:
    """Remove a receiver by internal id."""

    try:
        service.remove_receiver(internal_id)
    except Exception as exc:  # noqa: BLE001
        raise_http_exception(exc)
    return Response(status_code=204)


@router.post("/activations/{internal_id}", status_code=204)
def force_activate(
    message: ActivationRequest,
    internal_id: str = Path(...),
    service: NodeService = Depends(get_node_service),
) -> Response:
    """Activate a sender or receiver, or deactivate it when `sdp` is null."""

    try:
        service.force_activate(internal_id, message.sdp)
    except Exception as exc:  # noqa: BLE001
        raise_http_exception(exc)
    return Response(status_code=204)


__all__ = ["router"]
