import asyncio
import inspect
import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Optional, Protocol
from ..models import LessonRef, PlaybackSample

logger = logging.getLogger(__name__)

class TrackingSink(Protocol):
    """Receives the normalized signal stream of whichever adapter is active."""

    def on_ready(self, duration: Optional[float]) -> None: ...

    def on_metadata(self, duration: Optional[float]) -> None: ...

    def on_sample(self, sample: PlaybackSample) -> None: ...

    def on_ended(self, duration: Optional[float]) -> None: ...

class PlaybackAdapter(ABC):
    """One playback backend behind the tracking contract."""
    name = "base"

    def __init__(self):
        self.sink: Optional[TrackingSink] = None
        self.detached = False

    @abstractmethod
    async def attach(self, lesson: LessonRef, sink: TrackingSink):
        """Starts emitting signals into sink. Must never raise on a missing backend."""

    @abstractmethod
    def detach(self):
        """Releases listeners, timers and players. Safe to call more than once."""

def finite_or_zero(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0

def release(obj: Any, *method_names: str):
    """Best-effort teardown of an SDK player. SDK teardown methods may return awaitables."""
    if obj is None:
        return
    for name in method_names:
        method = getattr(obj, name, None)
        if not callable(method):
            continue
        try:
            result = method()
        except Exception as e:
            logger.debug(f"Ignoring {name}() failure on {type(obj).__name__}: {e}")
            continue
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            task.add_done_callback(_discard_result)

def _discard_result(task: "asyncio.Future"):
    if not task.cancelled() and task.exception() is not None:
        logger.debug(f"Ignoring async teardown failure: {task.exception()}")
