"""
Call Orchestrator
Drives the control-plane lifecycle of calls: outbound test calls, meeting
joins, delayed transfer/invite follow-ups and hang-up.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional, Tuple

from callbot.core.config import ConfigManager, Settings
from callbot.domain.errors import CallingBotError, CallNotFoundError
from callbot.domain.interfaces.call_control import CallControlClient
from callbot.domain.models.call import (
    Call,
    CallResult,
    CallState,
    ChatInfo,
    MeetingInfo,
    Modality,
    OnlineMeeting,
    ServiceHostedMediaConfig,
)
from callbot.domain.models.directory import Directory, DirectoryRole
from callbot.domain.models.scheduled_action import ActionKind, ScheduledAction
from callbot.domain.services.call_state_watcher import CallStateWatcher, WatchOutcome
from callbot.domain.services.delayed_action_scheduler import BackgroundTask, DelayedActionScheduler
from callbot.domain.services.join_url_parser import parse_join_url

logger = logging.getLogger(__name__)


JoinUrlParser = Callable[[str], Tuple[ChatInfo, MeetingInfo]]


class OrganizerNotConfiguredError(CallingBotError):
    """Raised when an online meeting is requested without an organizer user."""
    def __init__(self, message: str = "No meeting organizer configured. Set ORGANIZER_USER_ID."):
        super().__init__(message)


class CallOrchestrator:
    """
    Call orchestration over a remote call-control platform.

    Responsibilities:
    - Place outbound calls to the primary directory user
    - Join scheduled Teams meetings from a join link
    - Schedule transfer / invite follow-ups that run after the triggering
      request has returned (best effort: logged, never retried)
    - Hang up calls, treating already-gone calls as success

    The orchestrator never mutates a call after creation; follow-ups only
    reference the call id.
    """

    def __init__(
        self,
        client: CallControlClient,
        directory: Directory,
        scheduler: DelayedActionScheduler,
        settings: Settings,
        state_watcher: Optional[CallStateWatcher] = None,
        join_url_parser: JoinUrlParser = parse_join_url
    ):
        self._client = client
        self._directory = directory
        self._scheduler = scheduler
        self._settings = settings
        self._state_watcher = state_watcher
        self._parse_join_url = join_url_parser

    @property
    def scheduler(self) -> DelayedActionScheduler:
        return self._scheduler

    @property
    def client(self) -> CallControlClient:
        return self._client

    @property
    def directory(self) -> Directory:
        return self._directory

    # ========================
    # Outbound calls
    # ========================

    async def create_outbound_call(self) -> Call:
        """
        Place an audio call to the primary directory user.

        Raises:
            DirectoryExhaustedError: No primary target (create is not attempted)
            PlatformError: The platform rejected the call
        """
        target_user = self._directory.get(DirectoryRole.PRIMARY_TARGET)

        call = Call(
            callback_uri=self._settings.callback_uri,
            tenant_id=self._settings.tenant_id,
            targets=[target_user.to_call_target()],
            requested_modalities=[Modality.AUDIO],
            media_config=ServiceHostedMediaConfig()
        )

        logger.info(f"Creating outbound call to {target_user.display_name}")
        return await self._client.create_call(call)

    async def run_test_call(self) -> CallResult:
        """
        Place a test call and schedule its transfer.

        Returns as soon as the call is created; the transfer fires later on
        its own and its outcome is never reported here.
        """
        try:
            call = await self.create_outbound_call()
        except CallingBotError as e:
            logger.error(f"Test call failed: {e.message}")
            return CallResult(success=False, error=e.message)

        self.transfer_call(call.id)
        return CallResult(success=True, call_id=call.id)

    # ========================
    # Meetings
    # ========================

    async def join_scheduled_meeting(self, join_url: str) -> Call:
        """
        Join a scheduled meeting from its join link.

        The organizer's tenant from the link wins over the configured tenant.

        Raises:
            InvalidJoinUrlError: The link could not be parsed (nothing is created)
            PlatformError: The platform rejected the join
        """
        chat_info, meeting_info = self._parse_join_url(join_url)
        tenant_id = meeting_info.organizer_tenant_id or self._settings.tenant_id

        call = Call(
            callback_uri=self._settings.callback_uri,
            tenant_id=tenant_id,
            requested_modalities=[Modality.AUDIO],
            media_config=ServiceHostedMediaConfig(),
            chat_info=chat_info,
            meeting_info=meeting_info
        )

        logger.info(f"Joining meeting thread {chat_info.thread_id} in tenant {tenant_id[:8]}...")
        return await self._client.create_call(call)

    async def create_online_meeting(self, subject: Optional[str] = None) -> OnlineMeeting:
        """
        Create (or get) an online meeting owned by the configured organizer.

        Raises:
            OrganizerNotConfiguredError: ORGANIZER_USER_ID is not set
            PlatformError: The platform rejected the request
        """
        organizer_user_id = self._settings.organizer_user_id
        if not organizer_user_id:
            raise OrganizerNotConfiguredError()

        start_time = datetime.utcnow()
        end_time = start_time + timedelta(minutes=self._settings.meeting_duration_minutes)

        return await self._client.create_online_meeting(
            organizer_user_id=organizer_user_id,
            subject=subject or self._settings.meeting_subject,
            start_time=start_time,
            end_time=end_time
        )

    # ========================
    # Scheduled follow-ups
    # ========================

    def transfer_call(self, call_id: str) -> BackgroundTask:
        """Schedule a transfer of `call_id` to the transfer target."""
        return self._schedule(
            ActionKind.TRANSFER,
            call_id,
            DirectoryRole.TRANSFER_TARGET,
            self._settings.transfer_delay_seconds,
            lambda: self._transfer(call_id)
        )

    def invite_participant(self, call_id: str) -> BackgroundTask:
        """Schedule an invite of the invite target into `call_id`."""
        return self._schedule(
            ActionKind.INVITE,
            call_id,
            DirectoryRole.INVITE_TARGET,
            self._settings.invite_delay_seconds,
            lambda: self._invite(call_id)
        )

    def _schedule(
        self,
        kind: ActionKind,
        call_id: str,
        role: DirectoryRole,
        delay: float,
        perform: Callable[[], Awaitable[None]]
    ) -> BackgroundTask:
        action = ScheduledAction(
            target_call_id=call_id,
            kind=kind,
            fire_after=delay,
            role=role,
            scheduled_at=datetime.utcnow()
        )

        if self._state_watcher is None:
            return self._scheduler.schedule(
                delay, perform, name=kind.value, call_id=call_id, scheduled_action=action
            )

        # Waiting for the established state stays cancellable by hang_up and
        # terminated notifications; only perform() itself is not
        return self._scheduler.schedule(
            0,
            perform,
            name=kind.value,
            call_id=call_id,
            scheduled_action=action,
            ready=lambda: self._wait_until_established(call_id, kind, delay)
        )

    async def _wait_until_established(self, call_id: str, kind: ActionKind, fallback_delay: float) -> bool:
        outcome = await self._state_watcher.wait_until_established(call_id)

        if outcome == WatchOutcome.ESTABLISHED:
            return True
        if outcome == WatchOutcome.UNAVAILABLE:
            # Platform cannot report state: fall back to the fixed wait
            await asyncio.sleep(fallback_delay)
            return True

        logger.warning(f"Skipping {kind.value} for call {call_id}: {outcome.value}")
        return False

    async def _transfer(self, call_id: str) -> None:
        user = self._directory.get(DirectoryRole.TRANSFER_TARGET)
        logger.info(f"Transferring call {call_id} to {user.display_name}")
        await self._client.transfer_call(call_id, user.to_call_target(endpoint_type="default"))

    async def _invite(self, call_id: str) -> None:
        user = self._directory.get(DirectoryRole.INVITE_TARGET)
        logger.info(f"Inviting {user.display_name} into call {call_id}")
        await self._client.invite_participants(call_id, [user.to_call_target()])

    # ========================
    # Teardown
    # ========================

    async def hang_up(self, call: Call) -> None:
        """
        Hang up a call and withdraw its pending follow-ups.

        A call the platform no longer knows about counts as hung up.

        Raises:
            PlatformError: The platform rejected the delete
        """
        if not call.id:
            raise ValueError("Cannot hang up a call without an id")

        try:
            await self._client.delete_call(call.id)
        except CallNotFoundError:
            logger.info(f"Call {call.id} already gone")

        self._scheduler.cancel_for_call(call.id)
        if self._state_watcher is not None:
            self._state_watcher.forget(call.id)

    def handle_call_state(self, call_id: str, state: CallState) -> None:
        """Apply a call state reported by a platform notification."""
        if self._state_watcher is not None:
            self._state_watcher.record_state(call_id, state)

        if state == CallState.TERMINATED:
            self._scheduler.cancel_for_call(call_id)
            if self._state_watcher is not None:
                self._state_watcher.forget(call_id)

    async def aclose(self) -> None:
        """Cancel outstanding follow-ups and release the client."""
        await self._scheduler.shutdown()
        await self._client.close()


def build_call_orchestrator(
    settings: Settings,
    config: Optional[ConfigManager] = None,
    client: Optional[CallControlClient] = None
) -> CallOrchestrator:
    """
    Wire an orchestrator from settings.

    Args:
        settings: Application settings
        config: YAML config holding the `directory` section
        client: Call-control client (defaults to the one chosen by settings)
    """
    from callbot.infrastructure.telephony.factory import CallControlFactory

    config = config or ConfigManager(settings.environment)
    directory = Directory.from_config(config.get("directory"))
    client = client or CallControlFactory.create(settings)

    state_watcher = None
    if settings.action_trigger == "state_watch":
        state_watcher = CallStateWatcher(
            client,
            timeout=settings.state_watch_timeout_seconds,
            poll_interval=settings.state_poll_interval_seconds
        )
    elif settings.action_trigger != "fixed_delay":
        raise ValueError(
            f"Unknown action trigger: {settings.action_trigger}. Available: fixed_delay, state_watch"
        )

    logger.info(
        f"CallOrchestrator using {client.name} call control, "
        f"{settings.action_trigger} follow-ups, {directory!r}"
    )

    return CallOrchestrator(
        client=client,
        directory=directory,
        scheduler=DelayedActionScheduler(),
        settings=settings,
        state_watcher=state_watcher
    )
