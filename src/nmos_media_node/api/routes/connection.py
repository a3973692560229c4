"""Connection routes for staged, active and constraints endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Response

from nmos_media_node.api.dependencies import get_node_service
from nmos_media_node.api.routes.errors import raise_http_exception
from nmos_media_node.application.services import CONNECTION_VIEWS, NodeService
from nmos_media_node.domain.resource_types import APPLICATION_SDP, ResourceType

router = APIRouter(prefix="/connection", tags=["connection"])

_CONNECTION_PATHS = {
    "senders": ResourceType.SENDER,
    "receivers": ResourceType.RECEIVER,
}


def _resource_type(resource_path: str) -> ResourceType:
    resource_type = _CONNECTION_PATHS.get(resource_path)
    if resource_type is None:
        raise HTTPException(status_code=404, detail=f"Unknown resource type '{resource_path}'.")
    return resource_type


@router.get("/senders/{sender_id}/transportfile")
def get_transportfile(
    sender_id: str = Path(...),
    service: NodeService = Depends(get_node_service),
) -> Response:
    """Return the sender's session description."""

    try:
        transportfile = service.get_transportfile(sender_id)
    except Exception as exc:  # noqa: BLE001
        raise_http_exception(exc)
    return Response(
        content=transportfile.data,
        media_type=transportfile.type or APPLICATION_SDP,
    )


@router.get("/{resource_path}/{resource_id}/{view}")
def get_connection(
    resource_path: str = Path(...),
    resource_id: str = Path(...),
    view: str = Path(...),
    service: NodeService = Depends(get_node_service),
) -> Any:
    """Return the staged, active or constraints document."""

    resource_type = _resource_type(resource_path)
    if view not in CONNECTION_VIEWS:
        raise HTTPException(status_code=404, detail=f"Unknown connection endpoint '{view}'.")
    try:
        return service.get_connection(resource_type, resource_id, view)
    except Exception as exc:  # noqa: BLE001
        raise_http_exception(exc)


@router.patch("/{resource_path}/{resource_id}/staged")
def patch_staged(
    patch: dict[str, Any] = Body(...),
    resource_path: str = Path(...),
    resource_id: str = Path(...),
    service: NodeService = Depends(get_node_service),
) -> dict[str, Any]:
    """Stage transport parameters, activating them when requested."""

    resource_type = _resource_type(resource_path)
    try:
        staged = service.stage_connection(resource_type, resource_id, patch)
    except Exception as exc:  # noqa: BLE001
        raise_http_exception(exc)
    return staged.model_dump(mode="json")


__all__ = ["router"]
