"""
Call Control Client Interface
Abstract base class for remote call-control platforms
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List

from callbot.domain.models.call import Call, CallTarget, OnlineMeeting


class CallControlClient(ABC):
    """
    Capability surface over the remote call-control platform.

    Every method raises PlatformError on failure, and CallNotFoundError
    when the referenced call no longer exists. Implementations do not
    retry and do not cache.
    """

    @abstractmethod
    async def create_call(self, call: Call) -> Call:
        """
        Create a call resource.

        Args:
            call: Call description (no id yet)

        Returns:
            The platform's call, carrying its assigned id
        """
        pass

    @abstractmethod
    async def transfer_call(self, call_id: str, target: CallTarget) -> None:
        """Transfer an active call to another participant"""
        pass

    @abstractmethod
    async def invite_participants(self, call_id: str, targets: List[CallTarget]) -> None:
        """Invite participants into an active call"""
        pass

    @abstractmethod
    async def delete_call(self, call_id: str) -> None:
        """Hang up a call"""
        pass

    @abstractmethod
    async def get_call(self, call_id: str) -> Call:
        """Fetch the current state of a call"""
        pass

    @abstractmethod
    async def create_online_meeting(
        self,
        organizer_user_id: str,
        subject: str,
        start_time: datetime,
        end_time: datetime
    ) -> OnlineMeeting:
        """Create an online meeting owned by `organizer_user_id`, or get the existing one"""
        pass

    async def close(self) -> None:
        """Release resources"""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name"""
        pass
