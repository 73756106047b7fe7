import asyncio
import logging
import math
from typing import Awaitable, Callable, Optional, Set
from .adapters.base import PlaybackAdapter
from .clients.progress_client import ProgressClient
from .engine import WatchEngine, floor_duration
from .models import LessonKind, LessonRef, PlaybackSample, WatchState

logger = logging.getLogger(__name__)

EligibleCallback = Callable[[LessonRef], Awaitable[None]]

class LessonTracker:
    """
    Tracking session for the lesson currently on screen.

    Only one lesson is tracked at a time. Starting a new lesson detaches the
    previous adapter and replaces the WatchState, so late callbacks from the
    old lesson can't touch the new one.
    """

    def __init__(self, progress: ProgressClient, engine: Optional[WatchEngine] = None,
                 on_eligible: Optional[EligibleCallback] = None):
        self.progress = progress
        self.engine = engine or WatchEngine()
        self.on_eligible = on_eligible
        self.course_id: Optional[str] = None
        self.lesson: Optional[LessonRef] = None
        self.adapter: Optional[PlaybackAdapter] = None
        self.enabled = False
        self.state = WatchState()
        self._attach_task: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()

    @property
    def active(self) -> bool:
        return self.enabled and self.lesson is not None and self.lesson.kind == LessonKind.VIDEO

    def start(self, course_id: str, lesson: LessonRef, adapter: Optional[PlaybackAdapter], enabled: bool = True):
        """Begins a fresh tracking session. With enabled=False the lesson is shown but nothing is recorded."""
        self.stop()
        self.course_id = course_id
        self.lesson = lesson
        self.enabled = enabled
        self.state = WatchState()
        if adapter is None or not enabled:
            return
        self.adapter = adapter
        self._attach_task = asyncio.ensure_future(self._attach(adapter, lesson))

    def stop(self):
        if self._attach_task is not None and not self._attach_task.done():
            self._attach_task.cancel()
        self._attach_task = None

        if self.adapter is not None:
            self.adapter.detach()
        # Lesson switch is a terminal event for the old lesson
        if self.active and (self.state.watched_seconds or self.state.duration_seconds):
            self.persist()
        self.adapter = None
        self.lesson = None
        self.enabled = False
        self.state = WatchState()

    def disable(self):
        """Stops recording the current lesson without a final write."""
        if self._attach_task is not None and not self._attach_task.done():
            self._attach_task.cancel()
        if self.adapter is not None:
            self.adapter.detach()
        self.adapter = None
        self.enabled = False

    async def wait_attached(self):
        if self._attach_task is not None:
            await asyncio.gather(self._attach_task, return_exceptions=True)

    async def _attach(self, adapter: PlaybackAdapter, lesson: LessonRef):
        try:
            await adapter.attach(lesson, self)
            logger.debug(f"{adapter.name} tracking attached for lesson {lesson.id}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Tracking disabled for lesson {lesson.id}: {e!r}")

    # TrackingSink

    def on_ready(self, duration: Optional[float]):
        if not self.active:
            return
        if duration and duration > 0:
            self.state.duration_seconds = floor_duration(duration)
        self._spawn(self._seed(self.state, self.course_id, self.lesson))

    def on_metadata(self, duration: Optional[float]):
        if not self.active:
            return
        self.engine.apply_metadata(self.state, duration)
        self.persist()

    def on_sample(self, sample: PlaybackSample):
        if not self.active:
            return
        was_eligible = self.state.completion_eligible
        if self.engine.apply_sample(self.state, sample):
            self.persist()
        if self.state.completion_eligible and not was_eligible:
            self._notify_eligible()

    def on_ended(self, duration: Optional[float]):
        if not self.active:
            return
        self.engine.apply_ended(self.state, duration)
        self.persist()
        if self.state.completion_eligible:
            self._notify_eligible()

    # Persistence

    def persist(self):
        """Writes the full snapshot without waiting for it. Later writes supersede earlier ones."""
        if not self.active or self.course_id is None:
            return
        watched = int(math.floor(self.state.watched_seconds))
        duration = int(self.state.duration_seconds)
        self._spawn(self.progress.save_watch_progress(self.course_id, self.lesson.id, watched, duration))

    async def _seed(self, state: WatchState, course_id: str, lesson: LessonRef):
        record = await self.progress.get_lesson_progress(course_id, lesson.id)
        if state is not self.state:
            logger.debug(f"Dropping stored progress for {lesson.id}, lesson changed")
            return
        if self.engine.seed(state, record):
            self._notify_eligible()
        self.persist()

    def _notify_eligible(self):
        if self.on_eligible is not None and self.lesson is not None:
            self._spawn(self.on_eligible(self.lesson))

    def _spawn(self, coro: Awaitable):
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task):
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background tracking task failed: {task.exception()!r}")

    async def flush(self):
        """Waits for every in-flight write. Used on shutdown and in tests."""
        pending = [t for t in self._pending if not t.done()]
        while pending:
            await asyncio.gather(*pending, return_exceptions=True)
            pending = [t for t in self._pending if not t.done()]
