"""
Platform Callback Endpoint
Receives Graph call notifications sent to the bot's callback URI
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from callbot.api.v1.dependencies import get_call_orchestrator
from callbot.domain.models.call import CallState
from callbot.infrastructure.graph.mappers import parse_call_state
from callbot.services.call_orchestrator import CallOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["callback"])


def extract_call_states(payload: Dict[str, Any]) -> List[Tuple[str, CallState]]:
    """
    Pull (call id, state) pairs out of a Graph notification batch.

    Only call resources are considered; participant and media notifications
    are ignored. A `deleted` change means the call has terminated.
    """
    states = []
    for notification in payload.get("value") or []:
        resource_data = notification.get("resourceData") or {}
        if not isinstance(resource_data, dict):
            continue

        odata_type = resource_data.get("@odata.type")
        if odata_type and odata_type != "#microsoft.graph.call":
            continue

        call_id = resource_data.get("id") or _call_id_from_resource(
            notification.get("resourceUrl") or notification.get("resource")
        )
        if not call_id:
            continue

        if notification.get("changeType") == "deleted":
            state = CallState.TERMINATED
        else:
            state = parse_call_state(resource_data.get("state"))

        if state is not None:
            states.append((call_id, state))
    return states


def _call_id_from_resource(resource: Optional[str]) -> Optional[str]:
    # /communications/calls/{id} or /app/calls/{id}
    if not resource:
        return None
    parts = [p for p in resource.split("/") if p]
    if len(parts) >= 2 and parts[-2] == "calls":
        return parts[-1]
    return None


@router.post("/callback")
async def platform_callback(
    request: Request,
    orchestrator: CallOrchestrator = Depends(get_call_orchestrator)
):
    """
    Handle call notifications from the platform.

    Feeds observed call states to the orchestrator so waiting follow-ups
    can fire and follow-ups of ended calls are withdrawn.
    """
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body")

    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Notification batch must be an object")

    states = extract_call_states(payload)
    for call_id, state in states:
        logger.info(f"Callback: call {call_id} is {state.value}")
        orchestrator.handle_call_state(call_id, state)

    return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content={"processed": len(states)})
