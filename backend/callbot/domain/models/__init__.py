"""Domain models"""

# Call models
from .call import (
    Modality,
    CallState,
    Identity,
    IdentitySet,
    CallTarget,
    ServiceHostedMediaConfig,
    ChatInfo,
    MeetingInfo,
    Call,
    CallResult,
    OnlineMeeting,
)

# Directory models
from .directory import (
    User,
    DirectoryRole,
    Directory,
)

# Scheduled follow-up actions
from .scheduled_action import (
    ActionKind,
    ScheduledAction,
)
