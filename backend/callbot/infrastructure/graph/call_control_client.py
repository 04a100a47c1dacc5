"""
Microsoft Graph Call Control Client
Creates, transfers, invites into and hangs up calls via the Graph
Communications API.
"""
import logging
from typing import Any, Dict, List, Optional
from datetime import datetime
import uuid

import httpx

from callbot.domain.errors import CallNotFoundError, PlatformError
from callbot.domain.interfaces.call_control import CallControlClient
from callbot.domain.models.call import Call, CallTarget, OnlineMeeting
from callbot.infrastructure.graph.auth import ClientCredentialTokenProvider
from callbot.infrastructure.graph.mappers import (
    call_from_graph,
    call_to_graph,
    online_meeting_from_graph,
    target_to_graph,
)

logger = logging.getLogger(__name__)


class GraphCallControlClient(CallControlClient):
    """
    Call control over Microsoft Graph.

    Setup Required:
    - Register an app in Microsoft Entra admin center with a bot channel
    - Grant Calls.Initiate.All, Calls.JoinGroupCall.All and
      OnlineMeetings.ReadWrite.All application permissions
    - Set TENANT_ID, CLIENT_ID and CLIENT_SECRET env vars

    API Reference:
    - https://learn.microsoft.com/en-us/graph/api/application-post-calls
    - https://learn.microsoft.com/en-us/graph/api/call-transfer
    - https://learn.microsoft.com/en-us/graph/api/participant-invite
    - https://learn.microsoft.com/en-us/graph/api/call-delete
    """

    API_BASE_URL = "https://graph.microsoft.com/v1.0"

    def __init__(
        self,
        token_provider: ClientCredentialTokenProvider,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._token_provider = token_provider
        self._timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return "graph"

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        call_id: Optional[str] = None
    ) -> httpx.Response:
        """
        Send an authenticated Graph request.

        Raises:
            CallNotFoundError: 404 on a call resource
            PlatformError: Any other non-2xx response or transport failure
        """
        headers = await self._token_provider.get_auth_headers()
        if json is not None:
            headers["Content-Type"] = "application/json"

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.request(
                    method,
                    f"{self.API_BASE_URL}{path}",
                    json=json,
                    headers=headers
                )
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise PlatformError(f"{method} {path} failed: {e}", cause=e)

        if response.status_code == 404 and call_id is not None:
            raise CallNotFoundError(call_id)

        if not response.is_success:
            logger.error(f"{method} {path} returned {response.status_code}: {response.text}")
            raise PlatformError(
                f"{method} {path} returned {response.status_code}: {_error_message(response)}",
                status_code=response.status_code
            )

        return response

    async def create_call(self, call: Call) -> Call:
        response = await self._request("POST", "/communications/calls", json=call_to_graph(call))
        created = call_from_graph(_json_body(response), requested=call)

        if not created.id:
            raise PlatformError("No call id returned from Graph")

        logger.info(f"Call created: id={created.id} state={created.state}")
        return created

    async def transfer_call(self, call_id: str, target: CallTarget) -> None:
        await self._request(
            "POST",
            f"/communications/calls/{call_id}/transfer",
            json={"transferTarget": target_to_graph(target)},
            call_id=call_id
        )
        logger.info(f"Transfer requested for call {call_id}")

    async def invite_participants(self, call_id: str, targets: List[CallTarget]) -> None:
        await self._request(
            "POST",
            f"/communications/calls/{call_id}/participants/invite",
            json={"participants": [target_to_graph(t) for t in targets]},
            call_id=call_id
        )
        logger.info(f"Invited {len(targets)} participants into call {call_id}")

    async def delete_call(self, call_id: str) -> None:
        await self._request("DELETE", f"/communications/calls/{call_id}", call_id=call_id)
        logger.info(f"Call hung up: {call_id}")

    async def get_call(self, call_id: str) -> Call:
        response = await self._request("GET", f"/communications/calls/{call_id}", call_id=call_id)
        return call_from_graph(_json_body(response), requested=Call(id=call_id))

    async def create_online_meeting(
        self,
        organizer_user_id: str,
        subject: str,
        start_time: datetime,
        end_time: datetime
    ) -> OnlineMeeting:
        body = {
            "startDateTime": start_time.isoformat(),
            "endDateTime": end_time.isoformat(),
            "subject": subject,
            "externalId": str(uuid.uuid4())
        }
        response = await self._request(
            "POST",
            f"/users/{organizer_user_id}/onlineMeetings/createOrGet",
            json=body
        )
        try:
            meeting = online_meeting_from_graph(_json_body(response))
        except (KeyError, ValueError) as e:
            raise PlatformError(f"Malformed online meeting from Graph: {e}", cause=e)
        logger.info(f"Online meeting ready: id={meeting.id}")
        return meeting


def _error_message(response: httpx.Response) -> str:
    """Graph error bodies look like {"error": {"code": ..., "message": ...}}"""
    try:
        error = response.json().get("error") or {}
    except (ValueError, AttributeError):
        return response.text
    return error.get("message") or error.get("code") or response.text


def _json_body(response: httpx.Response) -> Dict[str, Any]:
    """Decode a success response, which Graph always sends as a JSON object."""
    try:
        data = response.json()
    except ValueError as e:
        raise PlatformError(
            f"Graph returned a non-JSON body ({response.status_code})",
            status_code=response.status_code,
            cause=e
        )
    if not isinstance(data, dict):
        raise PlatformError(
            f"Graph returned unexpected JSON ({response.status_code})",
            status_code=response.status_code
        )
    return data
