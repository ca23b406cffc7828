"""Clock and countdown-timer services."""
import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import UTC, date, datetime
from typing import Callable, Dict, Optional

from qiaomu import monitoring

logger = logging.getLogger(__name__)

TickCallback = Callable[[], None]


class Clock(ABC):
    """Source of the current time and calendar date."""

    @abstractmethod
    def now(self) -> datetime:
        """Current timezone-aware timestamp."""

    @abstractmethod
    def today(self) -> date:
        """Current local calendar date."""


class SystemClock(Clock):
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    def today(self) -> date:
        return date.today()


class TimerHandle:
    """Registration of a repeating timer; cancel() stops further ticks."""

    def __init__(self, name: str, interval: float, callback: TickCallback, scheduler: "Scheduler"):
        self.name = name
        self.interval = interval
        self.callback = callback
        self.active = True
        self._scheduler = scheduler

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._scheduler._release(self)

    def __repr__(self) -> str:
        return f"<TimerHandle {self.name} every {self.interval}s active={self.active}>"


class Scheduler(ABC):
    """Drives repeating timers.

    While paused, due ticks are skipped rather than queued, so countdowns
    stand still.
    """

    def __init__(self):
        self.paused = False
        self.timers: Dict[int, TimerHandle] = {}

    def every(self, interval: float, callback: TickCallback, name: str = "timer") -> TimerHandle:
        """Call callback every interval seconds until the handle is cancelled."""
        handle = TimerHandle(name, interval, callback, self)
        self.timers[id(handle)] = handle
        monitoring.active_timers.inc()
        self._start(handle)
        logger.debug(f"Timer {name} registered ({interval}s)")
        return handle

    async def start(self) -> None:
        """Begin driving timers."""

    async def stop(self) -> None:
        """Cancel every timer."""
        self.cancel_all()

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False

    def cancel_all(self) -> None:
        for handle in list(self.timers.values()):
            handle.cancel()

    def _fire(self, handle: TimerHandle) -> None:
        if not handle.active or self.paused:
            return
        try:
            handle.callback()
        except Exception:
            logger.exception(f"Timer {handle.name} callback failed")

    def _release(self, handle: TimerHandle) -> None:
        if self.timers.pop(id(handle), None) is not None:
            monitoring.active_timers.dec()
        self._stop(handle)

    @abstractmethod
    def _start(self, handle: TimerHandle) -> None:
        """Begin driving a newly registered timer."""

    def _stop(self, handle: TimerHandle) -> None:
        """Release resources of a cancelled timer."""


class SchedulerService(Scheduler):
    """Scheduler running each timer as an asyncio task."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        super().__init__()
        self.loop = loop
        self.tasks: Dict[int, asyncio.Task] = {}
        self.running = False

    async def start(self) -> None:
        """Start the scheduler service."""
        if self.running:
            return
        self.loop = self.loop or asyncio.get_running_loop()
        self.running = True
        logger.info("Scheduler service started")

    async def stop(self) -> None:
        """Stop the scheduler service and cancel every timer."""
        if not self.running:
            return

        self.running = False
        logger.info("Stopping scheduler service...")

        tasks = list(self.tasks.values())
        self.cancel_all()
        await asyncio.gather(*tasks, return_exceptions=True)
        self.tasks.clear()

    def _start(self, handle: TimerHandle) -> None:
        loop = self.loop or asyncio.get_running_loop()
        self.tasks[id(handle)] = loop.create_task(self._run(handle))

    def _stop(self, handle: TimerHandle) -> None:
        task = self.tasks.pop(id(handle), None)
        if task is not None and task is not _current_task():
            task.cancel()

    async def _run(self, handle: TimerHandle) -> None:
        """Tick loop of one timer."""
        try:
            while handle.active:
                await asyncio.sleep(handle.interval)
                self._fire(handle)
        except asyncio.CancelledError:
            pass


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
