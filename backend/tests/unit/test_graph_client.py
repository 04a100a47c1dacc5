"""
Tests for the Microsoft Graph call-control client
Request shapes, error mapping and token caching against a mock transport
"""
import json
import pytest
import httpx
from datetime import datetime

from callbot.domain.errors import CallNotFoundError, PlatformError
from callbot.domain.models.call import (
    Call,
    CallState,
    ChatInfo,
    Identity,
    IdentitySet,
    MeetingInfo,
    Modality,
    ServiceHostedMediaConfig,
)
from callbot.domain.models.directory import User
from callbot.infrastructure.graph.auth import ClientCredentialTokenProvider
from callbot.infrastructure.graph.call_control_client import GraphCallControlClient


TOKEN_URL = "https://login.microsoftonline.com/tenant-123/oauth2/v2.0/token"
GRAPH = "https://graph.microsoft.com/v1.0"


class GraphStub:
    """Records requests and answers from a route table"""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.requests = []
        self.token_requests = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if str(request.url) == TOKEN_URL:
            self.token_requests += 1
            return httpx.Response(200, json={"access_token": f"token-{self.token_requests}", "expires_in": 3600})

        self.requests.append(request)
        key = (request.method, request.url.path.replace("/v1.0", "", 1))
        status_code, body = self.routes.get(key, (200, {}))
        if body is None:
            return httpx.Response(status_code)
        return httpx.Response(status_code, json=body)

    def body(self, index: int = -1):
        return json.loads(self.requests[index].content)


def make_client(stub: GraphStub) -> GraphCallControlClient:
    transport = httpx.MockTransport(stub)
    token_provider = ClientCredentialTokenProvider(
        tenant_id="tenant-123",
        client_id="client-456",
        client_secret="secret",
        transport=transport
    )
    return GraphCallControlClient(token_provider, transport=transport)


def outbound_call() -> Call:
    return Call(
        callback_uri="https://bot.example.com/api/v1/callback",
        tenant_id="tenant-123",
        targets=[User(id="u1", display_name="A").to_call_target()],
        requested_modalities=[Modality.AUDIO],
        media_config=ServiceHostedMediaConfig()
    )


class TestTokenProvider:
    """Tests for client-credential tokens"""

    def test_requires_credentials(self):
        """Missing credentials fail fast"""
        with pytest.raises(ValueError):
            ClientCredentialTokenProvider(tenant_id="", client_id="x", client_secret="y")

    @pytest.mark.asyncio
    async def test_token_is_cached(self):
        """One token serves many requests"""
        stub = GraphStub()
        client = make_client(stub)

        await client.delete_call("c1")
        await client.delete_call("c2")

        assert stub.token_requests == 1
        assert stub.requests[0].headers["Authorization"] == "Bearer token-1"

    @pytest.mark.asyncio
    async def test_token_failure(self):
        """Token endpoint errors surface as PlatformError"""
        def handler(request):
            return httpx.Response(401, json={"error": "invalid_client"})

        provider = ClientCredentialTokenProvider(
            tenant_id="tenant-123",
            client_id="client-456",
            client_secret="bad",
            transport=httpx.MockTransport(handler)
        )

        with pytest.raises(PlatformError) as exc_info:
            await provider.get_token()

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_token_without_access_token(self):
        """A 200 token response missing access_token is a PlatformError"""
        def handler(request):
            return httpx.Response(200, json={"token_type": "Bearer"})

        provider = ClientCredentialTokenProvider(
            tenant_id="tenant-123",
            client_id="client-456",
            client_secret="secret",
            transport=httpx.MockTransport(handler)
        )

        with pytest.raises(PlatformError) as exc_info:
            await provider.get_token()

        assert isinstance(exc_info.value.cause, KeyError)
        assert provider.is_token_expired() is True


class TestCreateCall:
    """Tests for POST /communications/calls"""

    @pytest.mark.asyncio
    async def test_request_body(self):
        """Outbound call body carries target, media and callback"""
        stub = GraphStub({("POST", "/communications/calls"): (201, {"id": "c1", "state": "establishing"})})
        client = make_client(stub)

        await client.create_call(outbound_call())

        body = stub.body()
        assert body["@odata.type"] == "#microsoft.graph.call"
        assert body["requestedModalities"] == ["audio"]
        assert body["callbackUri"] == "https://bot.example.com/api/v1/callback"
        assert body["tenantId"] == "tenant-123"
        assert body["mediaConfig"]["@odata.type"] == "#microsoft.graph.serviceHostedMediaConfig"
        assert body["targets"][0]["identity"]["user"] == {
            "@odata.type": "#microsoft.graph.identity",
            "id": "u1",
            "displayName": "A",
        }
        assert "chatInfo" not in body

    @pytest.mark.asyncio
    async def test_returns_platform_id(self):
        """Created call keeps the request fields and gains id and state"""
        stub = GraphStub({("POST", "/communications/calls"): (201, {"id": "c1", "state": "establishing"})})
        client = make_client(stub)

        call = await client.create_call(outbound_call())

        assert call.id == "c1"
        assert call.state == CallState.ESTABLISHING
        assert call.targets[0].identity.user.id == "u1"

    @pytest.mark.asyncio
    async def test_meeting_join_body(self):
        """Meeting joins send chat and organizer info"""
        stub = GraphStub({("POST", "/communications/calls"): (201, {"id": "c2"})})
        client = make_client(stub)

        await client.create_call(Call(
            tenant_id="T1",
            requested_modalities=[Modality.AUDIO],
            media_config=ServiceHostedMediaConfig(),
            chat_info=ChatInfo(thread_id="19:meeting_x@thread.v2", message_id="0"),
            meeting_info=MeetingInfo(organizer=IdentitySet(user=Identity(id="O1", tenant_id="T1")))
        ))

        body = stub.body()
        assert body["chatInfo"]["threadId"] == "19:meeting_x@thread.v2"
        assert body["chatInfo"]["messageId"] == "0"
        assert body["meetingInfo"]["@odata.type"] == "#microsoft.graph.organizerMeetingInfo"
        assert body["meetingInfo"]["organizer"]["user"]["tenantId"] == "T1"
        assert "targets" not in body

    @pytest.mark.asyncio
    async def test_non_json_success_body(self):
        """A 2xx HTML body from a gateway is a PlatformError, not a decode error"""
        def handler(request):
            if str(request.url) == TOKEN_URL:
                return httpx.Response(200, json={"access_token": "t", "expires_in": 3600})
            return httpx.Response(201, text="<html>gateway</html>")

        transport = httpx.MockTransport(handler)
        provider = ClientCredentialTokenProvider("tenant-123", "client-456", "secret", transport=transport)
        client = GraphCallControlClient(provider, transport=transport)

        with pytest.raises(PlatformError) as exc_info:
            await client.create_call(outbound_call())

        assert exc_info.value.status_code == 201
        assert isinstance(exc_info.value.cause, ValueError)

    @pytest.mark.asyncio
    async def test_non_json_body_reported_by_test_call(self):
        """run_test_call reports a malformed Graph response as a failed result"""
        from callbot.core.config import Settings
        from callbot.domain.models.directory import Directory
        from callbot.domain.services.delayed_action_scheduler import DelayedActionScheduler
        from callbot.services.call_orchestrator import CallOrchestrator

        def handler(request):
            if str(request.url) == TOKEN_URL:
                return httpx.Response(200, json={"access_token": "t", "expires_in": 3600})
            return httpx.Response(201, text="<html>gateway</html>")

        transport = httpx.MockTransport(handler)
        provider = ClientCredentialTokenProvider("tenant-123", "client-456", "secret", transport=transport)
        orchestrator = CallOrchestrator(
            client=GraphCallControlClient(provider, transport=transport),
            directory=Directory([User(id="u1", display_name="A"), User(id="u2", display_name="B")]),
            scheduler=DelayedActionScheduler(),
            settings=Settings(tenant_id="tenant-123", bot_base_url="https://bot.example.com")
        )

        result = await orchestrator.run_test_call()

        assert result.success is False
        assert result.call_id is None
        assert "non-JSON" in result.error
        assert orchestrator.scheduler.get_stats()["scheduled"] == 0

    @pytest.mark.asyncio
    async def test_missing_id(self):
        """A response without an id is a platform error"""
        stub = GraphStub({("POST", "/communications/calls"): (201, {})})
        client = make_client(stub)

        with pytest.raises(PlatformError):
            await client.create_call(outbound_call())

    @pytest.mark.asyncio
    async def test_rejected(self):
        """Graph error message is carried into PlatformError"""
        stub = GraphStub({
            ("POST", "/communications/calls"): (
                403, {"error": {"code": "Forbidden", "message": "Bot is not allowed to call"}}
            )
        })
        client = make_client(stub)

        with pytest.raises(PlatformError) as exc_info:
            await client.create_call(outbound_call())

        assert exc_info.value.status_code == 403
        assert "Bot is not allowed to call" in exc_info.value.message
        assert not isinstance(exc_info.value, CallNotFoundError)


class TestCallActions:
    """Tests for transfer, invite, delete and get"""

    @pytest.mark.asyncio
    async def test_transfer(self):
        stub = GraphStub({("POST", "/communications/calls/c1/transfer"): (202, None)})
        client = make_client(stub)

        await client.transfer_call("c1", User(id="u2", display_name="B").to_call_target(endpoint_type="default"))

        body = stub.body()
        assert body["transferTarget"]["endpointType"] == "default"
        assert body["transferTarget"]["identity"]["user"]["id"] == "u2"

    @pytest.mark.asyncio
    async def test_invite(self):
        stub = GraphStub({("POST", "/communications/calls/c1/participants/invite"): (200, {"id": "op"})})
        client = make_client(stub)

        await client.invite_participants("c1", [User(id="u3", display_name="C").to_call_target()])

        participants = stub.body()["participants"]
        assert len(participants) == 1
        assert participants[0]["@odata.type"] == "#microsoft.graph.invitationParticipantInfo"
        assert participants[0]["identity"]["user"]["id"] == "u3"

    @pytest.mark.asyncio
    async def test_delete(self):
        stub = GraphStub({("DELETE", "/communications/calls/c1"): (204, None)})
        client = make_client(stub)

        await client.delete_call("c1")

        assert stub.requests[0].method == "DELETE"

    @pytest.mark.asyncio
    async def test_delete_missing_call(self):
        """404 on a call resource becomes CallNotFoundError"""
        stub = GraphStub({("DELETE", "/communications/calls/gone"): (404, {"error": {"code": "NotFound"}})})
        client = make_client(stub)

        with pytest.raises(CallNotFoundError) as exc_info:
            await client.delete_call("gone")

        assert exc_info.value.call_id == "gone"

    @pytest.mark.asyncio
    async def test_get_call_state(self):
        stub = GraphStub({("GET", "/communications/calls/c1"): (200, {"id": "c1", "state": "established"})})
        client = make_client(stub)

        call = await client.get_call("c1")

        assert call.state == CallState.ESTABLISHED

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        """Network errors surface as PlatformError"""
        def handler(request):
            if str(request.url) == TOKEN_URL:
                return httpx.Response(200, json={"access_token": "t", "expires_in": 3600})
            raise httpx.ConnectError("connection refused", request=request)

        transport = httpx.MockTransport(handler)
        provider = ClientCredentialTokenProvider("tenant-123", "client-456", "secret", transport=transport)
        client = GraphCallControlClient(provider, transport=transport)

        with pytest.raises(PlatformError) as exc_info:
            await client.transfer_call("c1", User(id="u2", display_name="B").to_call_target())

        assert isinstance(exc_info.value.cause, httpx.ConnectError)


class TestOnlineMeeting:
    """Tests for createOrGet online meetings"""

    @pytest.mark.asyncio
    async def test_create_or_get(self):
        stub = GraphStub({
            ("POST", "/users/organizer-1/onlineMeetings/createOrGet"): (201, {
                "id": "m1",
                "joinWebUrl": "https://teams.microsoft.com/l/meetup-join/abc",
                "subject": "Standup",
                "startDateTime": "2024-01-01T12:00:00Z",
                "endDateTime": "2024-01-01T12:30:00Z",
            })
        })
        client = make_client(stub)

        meeting = await client.create_online_meeting(
            organizer_user_id="organizer-1",
            subject="Standup",
            start_time=datetime(2024, 1, 1, 12, 0),
            end_time=datetime(2024, 1, 1, 12, 30)
        )

        assert meeting.id == "m1"
        assert meeting.join_web_url == "https://teams.microsoft.com/l/meetup-join/abc"
        assert meeting.start_date_time.year == 2024

        body = stub.body()
        assert body["subject"] == "Standup"
        assert body["startDateTime"] == "2024-01-01T12:00:00"
        assert body["externalId"]
