"""
Unit Tests for SimulatedCallControlClient
"""
import pytest
from datetime import datetime

from callbot.domain.errors import CallNotFoundError
from callbot.domain.models.call import Call, CallState
from callbot.domain.models.directory import User


@pytest.fixture
def client():
    from callbot.infrastructure.telephony.simulated_client import SimulatedCallControlClient
    return SimulatedCallControlClient()


class TestSimulatedClient:
    """In-memory call lifecycle"""

    @pytest.mark.asyncio
    async def test_create_assigns_id(self, client):
        call = await client.create_call(Call(tenant_id="T1"))

        assert call.id
        assert call.state == CallState.ESTABLISHED
        assert call.tenant_id == "T1"
        assert (await client.get_call(call.id)).id == call.id

    @pytest.mark.asyncio
    async def test_transfer_and_invite_recorded(self, client):
        call = await client.create_call(Call())
        target = User(id="u2", display_name="B").to_call_target()

        await client.transfer_call(call.id, target)
        await client.invite_participants(call.id, [target])

        assert client.transfers == [(call.id, target)]
        assert client.invites == [(call.id, [target])]

    @pytest.mark.asyncio
    async def test_delete_then_not_found(self, client):
        call = await client.create_call(Call())

        await client.delete_call(call.id)

        with pytest.raises(CallNotFoundError):
            await client.delete_call(call.id)

    @pytest.mark.asyncio
    async def test_unknown_call(self, client):
        with pytest.raises(CallNotFoundError):
            await client.transfer_call("missing", User(id="u2", display_name="B").to_call_target())

    @pytest.mark.asyncio
    async def test_online_meeting(self, client):
        meeting = await client.create_online_meeting(
            "organizer-1", "Standup", datetime(2024, 1, 1, 12, 0), datetime(2024, 1, 1, 12, 30)
        )

        assert meeting.subject == "Standup"
        assert meeting.join_web_url.startswith("https://teams.microsoft.com/l/meetup-join/")
