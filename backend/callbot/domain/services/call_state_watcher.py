"""
Call State Watcher
Waits for a call to become established before follow-up actions run
"""
import asyncio
import logging
from enum import Enum
from typing import Dict, Optional

from callbot.domain.errors import CallNotFoundError, PlatformError
from callbot.domain.interfaces.call_control import CallControlClient
from callbot.domain.models.call import CallState

logger = logging.getLogger(__name__)


class WatchOutcome(str, Enum):
    """How a wait for the established state ended"""
    ESTABLISHED = "established"
    ENDED = "ended"
    TIMED_OUT = "timed_out"
    UNAVAILABLE = "unavailable"


class CallStateWatcher:
    """
    Tracks call state from two sources: callback notifications pushed via
    `record_state()`, and polling `CallControlClient.get_call()`.

    A notification wakes waiters immediately; polling covers platforms or
    deployments where notifications do not reach the bot.
    """

    def __init__(
        self,
        client: CallControlClient,
        timeout: float = 60.0,
        poll_interval: float = 2.0
    ):
        self._client = client
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._states: Dict[str, CallState] = {}
        self._changed: Dict[str, asyncio.Event] = {}

    def record_state(self, call_id: str, state: CallState) -> None:
        """Record a state reported by the platform and wake any waiter."""
        event = self._changed.get(call_id)
        if state.is_final and event is None:
            # Nobody is waiting on an ended call
            self._states.pop(call_id, None)
            return

        previous = self._states.get(call_id)
        self._states[call_id] = state
        if previous != state:
            logger.debug(f"Call {call_id} state {previous} -> {state.value}")

        if event is not None:
            event.set()

    def last_known_state(self, call_id: str) -> Optional[CallState]:
        return self._states.get(call_id)

    def forget(self, call_id: str) -> None:
        self._states.pop(call_id, None)

    async def wait_until_established(self, call_id: str) -> WatchOutcome:
        """
        Wait for `call_id` to reach the established state.

        Returns:
            ESTABLISHED once the call is established, ENDED if it terminated
            or disappeared first, TIMED_OUT after `timeout` seconds, and
            UNAVAILABLE if the platform cannot report call state.
        """
        event = self._changed.setdefault(call_id, asyncio.Event())
        outcome = WatchOutcome.TIMED_OUT
        try:
            outcome = await asyncio.wait_for(self._watch(call_id, event), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Call {call_id} not established after {self.timeout}s")
        finally:
            if self._changed.get(call_id) is event:
                del self._changed[call_id]
            if outcome == WatchOutcome.ENDED:
                self._states.pop(call_id, None)
        return outcome

    async def _watch(self, call_id: str, event: asyncio.Event) -> WatchOutcome:
        while True:
            event.clear()
            state = self._states.get(call_id)
            if state is None:
                try:
                    call = await self._client.get_call(call_id)
                except CallNotFoundError:
                    return WatchOutcome.ENDED
                except NotImplementedError:
                    return WatchOutcome.UNAVAILABLE
                except PlatformError as e:
                    logger.warning(f"Could not read state of call {call_id}: {e}")
                else:
                    state = call.state

            if state == CallState.ESTABLISHED:
                return WatchOutcome.ESTABLISHED
            if state is not None and state.is_final:
                return WatchOutcome.ENDED

            # Once a notification has arrived for this call, polling stops
            try:
                await asyncio.wait_for(event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
