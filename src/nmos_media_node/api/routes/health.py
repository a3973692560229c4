"""Health check routes."""

from fastapi import APIRouter, Depends

from nmos_media_node.api.dependencies import get_node_service
from nmos_media_node.application.services import NodeService

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz(service: NodeService = Depends(get_node_service)) -> dict[str, str]:
    """Liveness probe."""

    return {"status": "ok", "nodeId": service.node_id}


__all__ = ["router"]
