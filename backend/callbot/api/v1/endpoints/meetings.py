"""
Online Meeting Endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from callbot.api.v1.dependencies import get_call_orchestrator
from callbot.domain.errors import PlatformError
from callbot.domain.models.call import OnlineMeeting
from callbot.services.call_orchestrator import CallOrchestrator, OrganizerNotConfiguredError

router = APIRouter(prefix="/meetings", tags=["meetings"])


class CreateMeetingRequest(BaseModel):
    """Create an online meeting"""
    subject: Optional[str] = None


@router.post("", response_model=OnlineMeeting, status_code=status.HTTP_201_CREATED)
async def create_meeting(
    request: CreateMeetingRequest,
    orchestrator: CallOrchestrator = Depends(get_call_orchestrator)
):
    """
    Create (or get) an online meeting owned by the configured organizer.

    The returned join_web_url can be fed to POST /calls/join.
    """
    try:
        return await orchestrator.create_online_meeting(request.subject)
    except OrganizerNotConfiguredError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except PlatformError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
