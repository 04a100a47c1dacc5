"""
Graph Payload Mapping
Converts domain call models to and from Microsoft Graph JSON
"""
from datetime import datetime
from typing import Any, Dict, Optional

from callbot.domain.models.call import (
    Call,
    CallState,
    CallTarget,
    ChatInfo,
    Identity,
    IdentitySet,
    MeetingInfo,
    OnlineMeeting,
)


def identity_to_graph(identity: Identity) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "@odata.type": "#microsoft.graph.identity",
        "id": identity.id,
    }
    if identity.display_name is not None:
        body["displayName"] = identity.display_name
    if identity.tenant_id is not None:
        body["tenantId"] = identity.tenant_id
    return body


def identity_set_to_graph(identity_set: IdentitySet) -> Dict[str, Any]:
    body: Dict[str, Any] = {"@odata.type": "#microsoft.graph.identitySet"}
    if identity_set.user is not None:
        body["user"] = identity_to_graph(identity_set.user)
    return body


def target_to_graph(target: CallTarget) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "@odata.type": "#microsoft.graph.invitationParticipantInfo",
        "identity": identity_set_to_graph(target.identity),
    }
    if target.endpoint_type is not None:
        body["endpointType"] = target.endpoint_type
    return body


def chat_info_to_graph(chat_info: ChatInfo) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "@odata.type": "#microsoft.graph.chatInfo",
        "threadId": chat_info.thread_id,
        "messageId": chat_info.message_id,
    }
    if chat_info.reply_chain_message_id is not None:
        body["replyChainMessageId"] = chat_info.reply_chain_message_id
    return body


def meeting_info_to_graph(meeting_info: MeetingInfo) -> Dict[str, Any]:
    return {
        "@odata.type": "#microsoft.graph.organizerMeetingInfo",
        "organizer": identity_set_to_graph(meeting_info.organizer),
    }


def call_to_graph(call: Call) -> Dict[str, Any]:
    """Request body for POST /communications/calls"""
    body: Dict[str, Any] = {
        "@odata.type": "#microsoft.graph.call",
        "requestedModalities": [m.value for m in call.requested_modalities],
    }
    if call.callback_uri is not None:
        body["callbackUri"] = call.callback_uri
    if call.tenant_id is not None:
        body["tenantId"] = call.tenant_id
    if call.targets:
        body["targets"] = [target_to_graph(t) for t in call.targets]
    if call.media_config is not None:
        body["mediaConfig"] = {"@odata.type": "#microsoft.graph.serviceHostedMediaConfig"}
    if call.chat_info is not None:
        body["chatInfo"] = chat_info_to_graph(call.chat_info)
    if call.meeting_info is not None:
        body["meetingInfo"] = meeting_info_to_graph(call.meeting_info)
    return body


def parse_call_state(value: Optional[str]) -> Optional[CallState]:
    if not value:
        return None
    try:
        return CallState(value)
    except ValueError:
        return None


def call_from_graph(data: Dict[str, Any], requested: Optional[Call] = None) -> Call:
    """
    Build a Call from a Graph response.

    Fields the response omits are taken from the request that created it.
    """
    base = requested or Call()
    return base.model_copy(update={
        "id": data.get("id") or base.id,
        "state": parse_call_state(data.get("state")) or base.state,
        "callback_uri": data.get("callbackUri") or base.callback_uri,
        "tenant_id": data.get("tenantId") or base.tenant_id,
    })


def online_meeting_from_graph(data: Dict[str, Any]) -> OnlineMeeting:
    return OnlineMeeting(
        id=data["id"],
        join_web_url=data.get("joinWebUrl"),
        subject=data.get("subject"),
        start_date_time=_parse_datetime(data.get("startDateTime")),
        end_date_time=_parse_datetime(data.get("endDateTime")),
    )


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
