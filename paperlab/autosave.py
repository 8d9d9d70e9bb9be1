from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class Debouncer:
    """
    Keep only the latest pushed value and flush it once nothing new has
    arrived for delay_s. cancel() drops a pending flush (component teardown).

    Only a timer that is still sleeping is ever cancelled. Once its quiet
    period is over the save it started runs to completion.
    """

    def __init__(self, flush: Callable[[Any], Awaitable[None]], delay_s: float = 1.0) -> None:
        self._flush = flush
        self._delay_s = float(delay_s)
        self._value: Any = None
        self._has_value = False
        self._task: asyncio.Task | None = None
        self._flushing: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._has_value

    def push(self, value: Any) -> None:
        self._value = value
        self._has_value = True
        self._cancel_timer()
        self._task = asyncio.get_running_loop().create_task(self._later())

    async def flush_now(self) -> None:
        self._cancel_timer()
        await self._after_inflight(self._flushing)
        await self._drain()

    async def _drain(self) -> None:
        if not self._has_value:
            return
        value = self._value
        self._value = None
        self._has_value = False
        await self._flush(value)

    async def _after_inflight(self, task: asyncio.Task | None) -> None:
        if task is not None and task is not asyncio.current_task() and not task.done():
            await asyncio.shield(task)

    def cancel(self) -> None:
        self._cancel_timer()
        self._value = None
        self._has_value = False

    def _cancel_timer(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _later(self) -> None:
        await asyncio.sleep(self._delay_s)
        # Past the quiet period: no longer a cancellable timer.
        me = asyncio.current_task()
        if self._task is me:
            self._task = None
        prev, self._flushing = self._flushing, me
        try:
            # Saves land in push order.
            await self._after_inflight(prev)
            await self._drain()
        except Exception:
            logger.exception("debounced flush failed")
        finally:
            if self._flushing is me:
                self._flushing = None


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


class ReadingProgressTracker:
    """
    Reading progress only moves forward: scrolling back never lowers it, and
    a save is scheduled only when the highest page viewed strictly increases.
    """

    def __init__(
        self,
        num_pages: int,
        save: Callable[[int], Awaitable[None]],
        *,
        stored_progress: int = 0,
        delay_s: float = 1.0,
    ) -> None:
        self.num_pages = max(0, int(num_pages))
        self.stored_progress = int(stored_progress or 0)
        self._save = save
        self.highest_page = 0
        if self.stored_progress and self.num_pages:
            self.highest_page = math.ceil(self.stored_progress / 100 * self.num_pages)
        self._debouncer = Debouncer(self._persist, delay_s)

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    def progress_for(self, page: int) -> int:
        if not self.num_pages:
            return 0
        return _round_half_up(page / self.num_pages * 100)

    def observe(self, page: int) -> bool:
        page = min(int(page), self.num_pages)
        if page <= self.highest_page:
            return False
        self.highest_page = page
        self._debouncer.push(self.progress_for(page))
        return True

    async def flush(self) -> None:
        await self._debouncer.flush_now()

    def cancel(self) -> None:
        self._debouncer.cancel()

    async def _persist(self, progress: int) -> None:
        if progress == self.stored_progress:
            return
        await self._save(progress)
        self.stored_progress = progress
