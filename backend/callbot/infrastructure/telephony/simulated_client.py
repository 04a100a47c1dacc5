"""
Simulated Call Control Client
In-memory stand-in for the Graph platform, used when credentials are absent
"""
import logging
import uuid
from datetime import datetime
from typing import Dict, List

from callbot.domain.errors import CallNotFoundError
from callbot.domain.interfaces.call_control import CallControlClient
from callbot.domain.models.call import Call, CallState, CallTarget, OnlineMeeting

logger = logging.getLogger(__name__)


class SimulatedCallControlClient(CallControlClient):
    """
    Keeps calls in a dict. Created calls are immediately established;
    transfers and invites are logged and recorded for inspection.
    """

    def __init__(self):
        self._calls: Dict[str, Call] = {}
        self.transfers: List[tuple[str, CallTarget]] = []
        self.invites: List[tuple[str, List[CallTarget]]] = []

    @property
    def name(self) -> str:
        return "simulated"

    async def create_call(self, call: Call) -> Call:
        call_id = str(uuid.uuid4())
        created = call.model_copy(update={"id": call_id, "state": CallState.ESTABLISHED})
        self._calls[call_id] = created
        logger.warning(f"Call control not configured - simulating call with id: {call_id}")
        return created

    async def transfer_call(self, call_id: str, target: CallTarget) -> None:
        self._require(call_id)
        self.transfers.append((call_id, target))
        logger.info(f"Simulated transfer of call {call_id} to {target.identity.user.id}")

    async def invite_participants(self, call_id: str, targets: List[CallTarget]) -> None:
        self._require(call_id)
        self.invites.append((call_id, list(targets)))
        logger.info(f"Simulated invite of {len(targets)} participants into call {call_id}")

    async def delete_call(self, call_id: str) -> None:
        self._require(call_id)
        del self._calls[call_id]
        logger.info(f"Simulated hangup for {call_id}")

    async def get_call(self, call_id: str) -> Call:
        return self._require(call_id)

    async def create_online_meeting(
        self,
        organizer_user_id: str,
        subject: str,
        start_time: datetime,
        end_time: datetime
    ) -> OnlineMeeting:
        meeting_id = str(uuid.uuid4())
        return OnlineMeeting(
            id=meeting_id,
            join_web_url=f"https://teams.microsoft.com/l/meetup-join/simulated/{meeting_id}",
            subject=subject,
            start_date_time=start_time,
            end_date_time=end_time
        )

    def _require(self, call_id: str) -> Call:
        call = self._calls.get(call_id)
        if call is None:
            raise CallNotFoundError(call_id)
        return call
