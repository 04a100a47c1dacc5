"""
Meeting Join URL Parser
Extracts chat and organizer coordinates from a Teams meeting join link
"""
import json
import re
from typing import Tuple
from urllib.parse import unquote

from callbot.domain.errors import InvalidJoinUrlError
from callbot.domain.models.call import ChatInfo, Identity, IdentitySet, MeetingInfo


# https://teams.microsoft.com/l/meetup-join/<thread id>/<message id>?context={"Tid":...,"Oid":...}
_JOIN_URL_PATTERN = re.compile(
    r"^https://teams\.microsoft\.(?:com|us)/.*/(?P<thread>[^/?]+)/(?P<message>[^/?]+)"
    r"\?context=(?P<context>\{.*\})",
    re.IGNORECASE
)


def parse_join_url(join_url: str) -> Tuple[ChatInfo, MeetingInfo]:
    """
    Parse a Teams meeting join URL.

    Args:
        join_url: Join link as copied from the meeting invite (URL-encoded or not)

    Returns:
        Tuple of (ChatInfo, MeetingInfo). MeetingInfo carries the organizer's
        tenant id when the link includes one.

    Raises:
        InvalidJoinUrlError: If the link is not a well-formed meeting link
    """
    if not join_url or not join_url.strip():
        raise InvalidJoinUrlError(join_url or "", "join URL is empty")

    decoded = unquote(join_url.strip())
    match = _JOIN_URL_PATTERN.match(decoded)
    if not match:
        raise InvalidJoinUrlError(join_url, "not a Teams meeting join link")

    try:
        context = json.loads(match.group("context"))
    except json.JSONDecodeError as e:
        raise InvalidJoinUrlError(join_url, f"context is not valid JSON ({e.msg})")

    if not isinstance(context, dict):
        raise InvalidJoinUrlError(join_url, "context must be a JSON object")

    organizer_id = context.get("Oid")
    if not organizer_id:
        raise InvalidJoinUrlError(join_url, "context has no organizer id (Oid)")

    chat_info = ChatInfo(
        thread_id=match.group("thread"),
        message_id=match.group("message"),
        reply_chain_message_id=context.get("MessageId")
    )
    meeting_info = MeetingInfo(
        organizer=IdentitySet(
            user=Identity(id=organizer_id, tenant_id=context.get("Tid") or None)
        )
    )
    return chat_info, meeting_info
