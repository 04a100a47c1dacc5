"""
Call Domain Models
Control-plane view of a call resource owned by the remote platform
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum


class Modality(str, Enum):
    """Media modality requested for a call"""
    AUDIO = "audio"
    VIDEO = "video"
    VIDEO_BASED_SCREEN_SHARING = "videoBasedScreenSharing"
    DATA = "data"


class CallState(str, Enum):
    """Call state as reported by the platform"""
    INCOMING = "incoming"
    ESTABLISHING = "establishing"
    ESTABLISHED = "established"
    HOLD = "hold"
    TRANSFERRING = "transferring"
    TRANSFER_ACCEPTED = "transferAccepted"
    REDIRECTING = "redirecting"
    TERMINATING = "terminating"
    TERMINATED = "terminated"

    @property
    def is_final(self) -> bool:
        return self in (CallState.TERMINATING, CallState.TERMINATED)


class Identity(BaseModel):
    """A single user identity"""
    model_config = ConfigDict(frozen=True)

    id: str
    display_name: Optional[str] = None
    tenant_id: Optional[str] = None


class IdentitySet(BaseModel):
    """Identity wrapper used by call targets and meeting organizers"""
    model_config = ConfigDict(frozen=True)

    user: Optional[Identity] = None


class CallTarget(BaseModel):
    """Invitation target for a call, transfer or invite"""
    model_config = ConfigDict(frozen=True)

    identity: IdentitySet
    endpoint_type: Optional[str] = None


class ServiceHostedMediaConfig(BaseModel):
    """Marker: media is hosted by the platform"""
    model_config = ConfigDict(frozen=True)


class ChatInfo(BaseModel):
    """Chat thread coordinates of a Teams meeting"""
    model_config = ConfigDict(frozen=True)

    thread_id: str
    message_id: str = "0"
    reply_chain_message_id: Optional[str] = None


class MeetingInfo(BaseModel):
    """Organizer coordinates of a Teams meeting"""
    model_config = ConfigDict(frozen=True)

    organizer: IdentitySet

    @property
    def organizer_tenant_id(self) -> Optional[str]:
        user = self.organizer.user
        return user.tenant_id if user else None


class Call(BaseModel):
    """
    Call resource.

    `id` and `state` are assigned by the platform; everything else is
    what the orchestrator asked for when creating the call.
    """
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    state: Optional[CallState] = None
    callback_uri: Optional[str] = None
    tenant_id: Optional[str] = None
    targets: List[CallTarget] = Field(default_factory=list)
    requested_modalities: List[Modality] = Field(default_factory=list)
    media_config: Optional[ServiceHostedMediaConfig] = None
    chat_info: Optional[ChatInfo] = None
    meeting_info: Optional[MeetingInfo] = None


class CallResult(BaseModel):
    """Outcome of a test call, returned synchronously to the trigger endpoint"""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    call_id: Optional[str] = Field(default=None, alias="callId")
    error: Optional[str] = None


class OnlineMeeting(BaseModel):
    """Online meeting created (or fetched) on behalf of the organizer"""
    id: str
    join_web_url: Optional[str] = None
    subject: Optional[str] = None
    start_date_time: Optional[datetime] = None
    end_date_time: Optional[datetime] = None
