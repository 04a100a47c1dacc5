"""
Delayed Action Scheduler
Runs deferred work on background tasks that outlive the scheduling request
"""
import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from callbot.domain.models.scheduled_action import ScheduledAction

logger = logging.getLogger(__name__)


Action = Callable[[], Awaitable[None]]
Precondition = Callable[[], Awaitable[bool]]


class TaskStatus(str, Enum):
    """Lifecycle of a background task"""
    PENDING = "pending"
    WAITING = "waiting"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class BackgroundTask:
    """
    Handle on a scheduled action.

    The scheduling code path never observes the action's outcome; the
    handle exists so shutdown, cancellation and tests can reach it.
    """

    def __init__(
        self,
        name: str,
        delay: float,
        call_id: Optional[str] = None,
        scheduled_action: Optional[ScheduledAction] = None
    ):
        self.name = name
        self.delay = delay
        self.call_id = call_id
        self.scheduled_action = scheduled_action
        self.created_at = datetime.utcnow()
        self.started_at: Optional[datetime] = None
        self.finished_at: Optional[datetime] = None
        self.status = TaskStatus.PENDING
        self.error: Optional[BaseException] = None
        self.skipped = False
        self._task: Optional[asyncio.Task] = None

    @property
    def done(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED)

    def cancel(self) -> bool:
        """Withdraw the action if it has not started running yet."""
        if self._task is None or self.status not in (TaskStatus.PENDING, TaskStatus.WAITING):
            return False
        self._task.cancel()
        return True

    async def wait(self) -> None:
        """Wait for the action to finish. Never raises the action's error."""
        if self._task is None:
            return
        await asyncio.gather(self._task, return_exceptions=True)

    def __repr__(self) -> str:
        return f"<BackgroundTask {self.name} call={self.call_id} status={self.status.value}>"


class DelayedActionScheduler:
    """
    Fire-and-forget scheduler.

    `schedule()` returns immediately; the action runs exactly once, no
    earlier than `delay` seconds later, on its own asyncio task. Errors
    raised by the action are logged and counted, never re-raised.
    """

    def __init__(self):
        self._tasks: Dict[int, BackgroundTask] = {}
        self._next_id = 0

        # Stats
        self._scheduled = 0
        self._completed = 0
        self._failed = 0
        self._cancelled = 0

    def schedule(
        self,
        delay: float,
        action: Action,
        *,
        name: str = "action",
        call_id: Optional[str] = None,
        scheduled_action: Optional[ScheduledAction] = None,
        ready: Optional[Precondition] = None
    ) -> BackgroundTask:
        """
        Schedule `action` to run after `delay` seconds.

        Args:
            ready: Optional coroutine awaited after the delay. The task stays
                cancellable (WAITING) while it runs; if it returns False the
                action is skipped.

        Must be called from a running event loop.
        """
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")

        handle = BackgroundTask(name, delay, call_id=call_id, scheduled_action=scheduled_action)
        task_id = self._next_id
        self._next_id += 1

        task = asyncio.create_task(self._run(handle, action, ready), name=f"scheduled-{name}")
        # Bookkeeping runs in a done callback so tasks cancelled before
        # their first step are accounted for too
        task.add_done_callback(lambda t: self._on_done(task_id, handle, t))
        handle._task = task
        self._tasks[task_id] = handle
        self._scheduled += 1

        logger.debug(f"Scheduled {name} for call {call_id} in {delay}s")
        return handle

    async def _run(self, handle: BackgroundTask, action: Action, ready: Optional[Precondition]) -> None:
        await asyncio.sleep(handle.delay)

        if ready is not None:
            handle.status = TaskStatus.WAITING
            if not await ready():
                handle.skipped = True
                return

        # No await between here and the action: cancel() refuses from now on
        handle.status = TaskStatus.RUNNING
        handle.started_at = datetime.utcnow()
        await action()

    def _on_done(self, task_id: int, handle: BackgroundTask, task: asyncio.Task) -> None:
        self._tasks.pop(task_id, None)
        handle.finished_at = datetime.utcnow()

        if task.cancelled():
            handle.status = TaskStatus.CANCELLED
            self._cancelled += 1
            logger.info(f"Scheduled {handle.name} for call {handle.call_id} cancelled")
            return

        error = task.exception()
        if error is not None:
            handle.status = TaskStatus.FAILED
            handle.error = error
            self._failed += 1
            logger.error(
                f"Scheduled {handle.name} for call {handle.call_id} failed: {error}",
                exc_info=error
            )
            return

        handle.status = TaskStatus.COMPLETED
        self._completed += 1

    def pending(self, call_id: Optional[str] = None) -> List[BackgroundTask]:
        """Tasks that have not finished, optionally filtered by call id."""
        return [
            t for t in self._tasks.values()
            if call_id is None or t.call_id == call_id
        ]

    def cancel_for_call(self, call_id: str) -> int:
        """
        Cancel every not-yet-started action targeting `call_id`.

        Returns:
            Number of actions withdrawn
        """
        cancelled = sum(1 for task in self.pending(call_id) if task.cancel())
        if cancelled:
            logger.info(f"Cancelled {cancelled} pending actions for call {call_id}")
        return cancelled

    async def wait_idle(self) -> None:
        """Wait until every scheduled action has finished."""
        while self._tasks:
            await asyncio.gather(*(t.wait() for t in list(self._tasks.values())))

    async def shutdown(self) -> None:
        """Cancel all outstanding actions and wait for them to unwind."""
        tasks = list(self._tasks.values())
        for task in tasks:
            if task._task is not None:
                task._task.cancel()
        await asyncio.gather(*(t.wait() for t in tasks))
        logger.info(f"Scheduler shut down ({len(tasks)} actions cancelled)")

    def get_stats(self) -> Dict[str, int]:
        return {
            "scheduled": self._scheduled,
            "pending": len(self._tasks),
            "completed": self._completed,
            "failed": self._failed,
            "cancelled": self._cancelled,
        }
