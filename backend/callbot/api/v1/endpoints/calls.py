"""
Call Control Endpoints
Join meetings, hang up calls and schedule follow-up actions
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel

from callbot.api.v1.dependencies import get_call_orchestrator
from callbot.domain.errors import InvalidJoinUrlError, PlatformError
from callbot.domain.models.call import Call
from callbot.domain.services.delayed_action_scheduler import BackgroundTask
from callbot.services.call_orchestrator import CallOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calls", tags=["calls"])


class JoinMeetingRequest(BaseModel):
    """Join a scheduled meeting"""
    join_url: str
    invite_participant: bool = True


class ScheduledActionResponse(BaseModel):
    """A follow-up action waiting to fire"""
    call_id: str
    kind: str
    role: str
    fire_after_seconds: float
    scheduled_at: datetime


class CallResponse(BaseModel):
    """Call summary"""
    id: str
    state: Optional[str] = None
    tenant_id: Optional[str] = None
    scheduled_actions: List[ScheduledActionResponse] = []


def _action_response(task: BackgroundTask) -> ScheduledActionResponse:
    action = task.scheduled_action
    return ScheduledActionResponse(
        call_id=action.target_call_id,
        kind=action.kind.value,
        role=action.role.value,
        fire_after_seconds=action.fire_after,
        scheduled_at=action.scheduled_at
    )


@router.post("/join", response_model=CallResponse)
async def join_meeting(
    request: JoinMeetingRequest,
    orchestrator: CallOrchestrator = Depends(get_call_orchestrator)
):
    """
    Join a Teams meeting from its join link.

    Optionally schedules an invite of the invite-target user into the
    joined call.
    """
    try:
        call = await orchestrator.join_scheduled_meeting(request.join_url)
    except InvalidJoinUrlError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except PlatformError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)

    actions = []
    if request.invite_participant:
        actions.append(_action_response(orchestrator.invite_participant(call.id)))

    return CallResponse(
        id=call.id,
        state=call.state.value if call.state else None,
        tenant_id=call.tenant_id,
        scheduled_actions=actions
    )


@router.delete("/{call_id}", status_code=status.HTTP_204_NO_CONTENT)
async def hang_up_call(
    call_id: str,
    orchestrator: CallOrchestrator = Depends(get_call_orchestrator)
):
    """Hang up a call. Calls that are already gone answer 204 too."""
    try:
        await orchestrator.hang_up(Call(id=call_id))
    except PlatformError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{call_id}/transfer",
    response_model=ScheduledActionResponse,
    status_code=status.HTTP_202_ACCEPTED
)
async def schedule_transfer(
    call_id: str,
    orchestrator: CallOrchestrator = Depends(get_call_orchestrator)
):
    """Schedule a transfer of the call to the transfer-target user."""
    return _action_response(orchestrator.transfer_call(call_id))


@router.post(
    "/{call_id}/invite",
    response_model=ScheduledActionResponse,
    status_code=status.HTTP_202_ACCEPTED
)
async def schedule_invite(
    call_id: str,
    orchestrator: CallOrchestrator = Depends(get_call_orchestrator)
):
    """Schedule an invite of the invite-target user into the call."""
    return _action_response(orchestrator.invite_participant(call_id))
