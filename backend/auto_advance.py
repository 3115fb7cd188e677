from typing import Awaitable, Callable, Dict, Optional
import asyncio
import logging

logger = logging.getLogger(__name__)


class PhaseTimers:
    """One outstanding scheduled action per room.

    Scheduling always cancels whatever the room had pending. A timer removes
    itself from the table before running its callback, so the callback may
    freely schedule the room's next action.
    """

    def __init__(self):
        self._tasks: Dict[str, asyncio.Task] = {}
        self._labels: Dict[str, str] = {}

    def schedule(self, room_code: str, delay: float,
                 callback: Callable[[], Awaitable[None]], label: str = "") -> asyncio.Task:
        self.cancel(room_code)
        task = asyncio.create_task(self._run(room_code, delay, callback, label))
        self._tasks[room_code] = task
        self._labels[room_code] = label
        logger.debug("Room %s: scheduled %s in %.1fs", room_code, label or "action", delay)
        return task

    async def _run(self, room_code: str, delay: float,
                   callback: Callable[[], Awaitable[None]], label: str):
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            return
        if self._tasks.get(room_code) is asyncio.current_task():
            del self._tasks[room_code]
            self._labels.pop(room_code, None)
        try:
            await callback()
        except Exception:
            logger.exception("Scheduled %s failed for room %s", label or "action", room_code)

    def cancel(self, room_code: str) -> bool:
        task = self._tasks.pop(room_code, None)
        self._labels.pop(room_code, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def is_pending(self, room_code: str) -> bool:
        task = self._tasks.get(room_code)
        return task is not None and not task.done()

    def pending_label(self, room_code: str) -> Optional[str]:
        if not self.is_pending(room_code):
            return None
        return self._labels.get(room_code)

    def cancel_all(self):
        for code in list(self._tasks):
            self.cancel(code)

    def forget_all(self):
        """Drop references without cancelling (tasks may belong to a closed loop)."""
        self._tasks.clear()
        self._labels.clear()
