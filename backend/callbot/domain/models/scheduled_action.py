"""
Scheduled Action Models
Deferred follow-up work against a live call, held in memory only
"""
from pydantic import BaseModel, ConfigDict
from datetime import datetime
from enum import Enum

from callbot.domain.models.directory import DirectoryRole


class ActionKind(str, Enum):
    """Follow-up action issued against an existing call"""
    TRANSFER = "transfer"
    INVITE = "invite"


class ScheduledAction(BaseModel):
    """A transfer or invite waiting to fire"""
    model_config = ConfigDict(frozen=True)

    target_call_id: str
    kind: ActionKind
    fire_after: float  # seconds
    role: DirectoryRole
    scheduled_at: datetime
