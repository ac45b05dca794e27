import asyncio
from typing import Awaitable, Callable, Dict, List

from shared.logging.logger import get_logger

log = get_logger("lobby.scheduler")


class TeardownScheduler:
    """
    Delayed, cancellable teardown timers keyed by lobby post id.

    At most one timer exists per post; scheduling again replaces it.
    """

    def __init__(self):
        # post_id -> pending timer task
        self._tasks: Dict[int, asyncio.Task] = {}

    def schedule(
        self,
        post_id: int,
        delay: float,
        callback: Callable[[int], Awaitable[None]],
    ) -> asyncio.Task:
        self.cancel(post_id)
        task = asyncio.create_task(self._run(post_id, delay, callback))
        self._tasks[post_id] = task
        log.debug(f"Teardown for post #{post_id} scheduled in {delay:.0f}s")
        return task

    async def _run(
        self,
        post_id: int,
        delay: float,
        callback: Callable[[int], Awaitable[None]],
    ) -> None:
        try:
            await asyncio.sleep(delay)
            # Deregister before firing so the callback cannot cancel itself
            if self._tasks.get(post_id) is asyncio.current_task():
                self._tasks.pop(post_id, None)
            await callback(post_id)
        except asyncio.CancelledError:
            log.debug(f"Teardown timer for post #{post_id} cancelled")
            raise
        except Exception as e:
            log.error(f"Scheduled teardown for post #{post_id} failed: {e}")

    def cancel(self, post_id: int) -> bool:
        task = self._tasks.pop(post_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def cancel_all(self) -> int:
        cancelled = 0
        for post_id in list(self._tasks):
            if self.cancel(post_id):
                cancelled += 1
        if cancelled:
            log.info(f"Cancelled {cancelled} pending teardown timer(s)")
        return cancelled

    def pending(self) -> List[int]:
        return [post_id for post_id, task in self._tasks.items() if not task.done()]

    def __contains__(self, post_id: int) -> bool:
        task = self._tasks.get(post_id)
        return task is not None and not task.done()
