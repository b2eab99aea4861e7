"""Request Route — the single command endpoint in front of the dispatcher.

Invariants:
    - POST /api/v1/requests accepts one tagged request ({"kind": ..., ...})
    - A committed result is {"status": "ok", "result": ...}; a committed
      result with a failed follow-up is {"status": "partial_success", ...}
    - Errors leave through the global AgoraError handler
"""

import logging

from fastapi import APIRouter, Body, Depends

from agora.api.dependencies import get_dispatch, get_principal
from agora.core.entities import Principal
from agora.schemas.requests import parse_request
from agora.schemas.results import PartialSuccess
from agora.services.request_dispatch import RequestDispatch

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/requests", tags=["requests"])


@router.post("")
async def submit_request(
    payload: dict = Body(...),
    principal: Principal = Depends(get_principal),
    dispatch: RequestDispatch = Depends(get_dispatch),
):
    request = parse_request(payload)
    result = await dispatch.dispatch(request, principal)
    if isinstance(result, PartialSuccess):
        return {
            "status": "partial_success",
            "result": result.result.model_dump(mode="json"),
            "failed_effect": result.failed_effect,
            "error_code": result.error_code,
            "message": result.message,
        }
    return {"status": "ok", "result": result.model_dump(mode="json")}


@router.get("/kinds")
async def list_request_kinds(dispatch: RequestDispatch = Depends(get_dispatch)):
    """Every request kind the dispatcher routes."""
    return {"kinds": dispatch.request_kinds}
