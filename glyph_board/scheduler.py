"""
Debounce scheduler: fire the pipeline once drawing has been idle long enough.

States:
    IDLE     no stroke in progress, nothing armed
    DRAWING  a stroke is in progress
    PENDING  a stroke with ink has ended; the idle timer is armed

Any stroke start or sample cancels the armed timer. A stroke that never
produced ink does not arm it.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

from .config import PIPELINE_CONFIG
from .surface import StrokeEvent

logger = logging.getLogger(__name__)

Trigger = Callable[[], Union[Awaitable[object], object]]


class SchedulerState(str, Enum):
    IDLE = "idle"
    DRAWING = "drawing"
    PENDING = "pending"


class DebounceScheduler:
    def __init__(self, trigger: Trigger, delay_ms: int = PIPELINE_CONFIG["idle_delay_ms"],
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        self.trigger = trigger
        self.delay_ms = delay_ms
        self.state = SchedulerState.IDLE
        self.has_ink = False
        self.fire_count = 0
        self._loop = loop
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def delay(self) -> float:
        return self.delay_ms / 1000.0

    @property
    def pending(self) -> bool:
        return self._timer is not None

    @property
    def task(self) -> Optional[asyncio.Task]:
        """The most recently fired pipeline task, if the trigger was a coroutine."""
        return self._task

    def handle(self, event: StrokeEvent) -> None:
        """Surface listener entry point."""
        if event is StrokeEvent.START:
            self.on_stroke_start()
        elif event is StrokeEvent.SAMPLE:
            self.on_stroke_sample()
        elif event is StrokeEvent.END:
            self.on_stroke_end()

    def on_stroke_start(self) -> None:
        self.cancel()
        self.state = SchedulerState.DRAWING

    def on_stroke_sample(self) -> None:
        self.cancel()
        self.has_ink = True
        self.state = SchedulerState.DRAWING

    def on_stroke_end(self) -> None:
        self.cancel()
        if not self.has_ink:
            self.state = SchedulerState.IDLE
            return
        loop = self._loop or asyncio.get_running_loop()
        self._timer = loop.call_later(self.delay, self._fire)
        self.state = SchedulerState.PENDING

    def cancel(self) -> None:
        """Drop the armed timer, if any. A pipeline already running is left alone."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            if self.state is SchedulerState.PENDING:
                self.state = SchedulerState.IDLE

    def _fire(self) -> None:
        self._timer = None
        self.state = SchedulerState.IDLE
        self.has_ink = False
        self.fire_count += 1
        logger.debug(f"Idle for {self.delay_ms} ms, firing pipeline")

        result = self.trigger()
        if inspect.isawaitable(result):
            loop = self._loop or asyncio.get_running_loop()
            self._task = asyncio.ensure_future(result, loop=loop)
            self._task.add_done_callback(self._log_task_failure)

    @staticmethod
    def _log_task_failure(task: asyncio.Future) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Pipeline task failed", exc_info=error)

    async def wait(self) -> None:
        """Wait for the last fired pipeline task to finish."""
        if self._task is not None:
            await self._task
