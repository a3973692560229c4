"""Read-only routes for the node resource graph."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Path

from nmos_media_node.api.dependencies import get_node_service
from nmos_media_node.api.routes.errors import raise_http_exception
from nmos_media_node.application.services import NodeService
from nmos_media_node.domain.resource_types import ResourceType

router = APIRouter(prefix="/node", tags=["node resources"])

_RESOURCE_PATHS = {
    "devices": ResourceType.DEVICE,
    "sources": ResourceType.SOURCE,
    "flows": ResourceType.FLOW,
    "senders": ResourceType.SENDER,
    "receivers": ResourceType.RECEIVER,
}


def _resource_type(resource_path: str) -> ResourceType:
    resource_type = _RESOURCE_PATHS.get(resource_path)
    if resource_type is None:
        raise HTTPException(status_code=404, detail=f"Unknown resource type '{resource_path}'.")
    return resource_type


@router.get("/self")
def get_node_self(service: NodeService = Depends(get_node_service)) -> dict[str, Any]:
    """Return the node resource."""

    try:
        return service.get_node_self().data
    except Exception as exc:  # noqa: BLE001
        raise_http_exception(exc)


@router.get("/{resource_path}")
def list_resources(
    resource_path: str = Path(...),
    service: NodeService = Depends(get_node_service),
) -> list[dict[str, Any]]:
    """List resources of one type in creation order."""

    resource_type = _resource_type(resource_path)
    return [resource.data for resource in service.list_resources(resource_type)]


@router.get("/{resource_path}/{resource_id}")
def get_resource(
    resource_path: str = Path(...),
    resource_id: str = Path(...),
    service: NodeService = Depends(get_node_service),
) -> dict[str, Any]:
    """Return one resource."""

    resource_type = _resource_type(resource_path)
    try:
        return service.get_resource(resource_type, resource_id).data
    except Exception as exc:  # noqa: BLE001
        raise_http_exception(exc)


__all__ = ["router"]
