import logging
from typing import Any, Callable, Dict, Optional
from ..config import settings
from ..models import LessonRef, PlaybackSample
from .base import PlaybackAdapter, TrackingSink, finite_or_zero

logger = logging.getLogger(__name__)

class NativeMediaAdapter(PlaybackAdapter):
    """
    Tracks an uploaded or direct-URL video played by a media element.

    The element is anything exposing add_event_listener/remove_event_listener
    and the duration, current_time and playback_rate attributes.
    """
    name = "native"

    def __init__(self, element: Any, max_playback_rate: Optional[float] = None):
        super().__init__()
        self.element = element
        self.max_playback_rate = max_playback_rate if max_playback_rate is not None else settings.MAX_PLAYBACK_RATE
        self._listeners: Dict[str, Callable[..., None]] = {}

    async def attach(self, lesson: LessonRef, sink: TrackingSink):
        if self.element is None:
            logger.warning(f"No media element for lesson {lesson.id}, tracking disabled")
            return

        self.sink = sink
        self._listeners = {
            "loadedmetadata": self._on_loaded_metadata,
            "timeupdate": self._on_time_update,
            "ratechange": self._on_rate_change,
            "ended": self._on_ended,
        }
        for event, handler in self._listeners.items():
            self.element.add_event_listener(event, handler)

        # Stored progress is fetched straight away; the element reports its duration later
        sink.on_ready(0.0)

    def detach(self):
        if self.element is not None:
            for event, handler in self._listeners.items():
                self.element.remove_event_listener(event, handler)
        self._listeners = {}
        self.detached = True
        self.sink = None

    def _on_loaded_metadata(self, *_):
        if self.sink:
            self.sink.on_metadata(finite_or_zero(self.element.duration))

    def _on_time_update(self, *_):
        if self.sink:
            self.sink.on_sample(PlaybackSample(
                current_seconds=finite_or_zero(self.element.current_time),
                duration_seconds=finite_or_zero(self.element.duration)
            ))

    def _on_rate_change(self, *_):
        # Sped-up playback would make watch time meaningless
        rate = finite_or_zero(self.element.playback_rate)
        if rate > self.max_playback_rate:
            logger.info(f"Playback rate {rate}x above {self.max_playback_rate}x, resetting to 1x")
            self.element.playback_rate = 1.0

    def _on_ended(self, *_):
        if self.sink:
            self.sink.on_ended(finite_or_zero(self.element.duration))
