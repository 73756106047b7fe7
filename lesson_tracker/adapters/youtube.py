import asyncio
import logging
from typing import Any, Optional
from ..config import settings
from ..models import LessonRef, PlaybackSample
from .base import PlaybackAdapter, TrackingSink, finite_or_zero, release
from .scripts import ScriptLoader, script_loader

logger = logging.getLogger(__name__)

READY_CALLBACK = "onYouTubeIframeAPIReady"

# YT.PlayerState
ENDED = 0
PLAYING = 1

class YouTubeAdapter(PlaybackAdapter):
    """
    Tracks a YouTube embed through the iframe API.

    The API only exposes getters, so position is polled while the player
    reports it is playing.
    """
    name = "youtube"

    def __init__(self, frame: Any, host: Any, loader: Optional[ScriptLoader] = None,
                 poll_interval: Optional[float] = None):
        super().__init__()
        self.frame = frame
        self.host = host
        self.loader = loader or script_loader
        self.poll_interval = poll_interval if poll_interval is not None else settings.YOUTUBE_POLL_INTERVAL_SECONDS
        self.player: Any = None
        self._poll_task: Optional[asyncio.Task] = None

    def _sdk_ready(self) -> bool:
        yt = getattr(self.host, "YT", None)
        return yt is not None and getattr(yt, "Player", None) is not None

    async def attach(self, lesson: LessonRef, sink: TrackingSink):
        if self.frame is None:
            logger.warning(f"No embed frame for lesson {lesson.id}, tracking disabled")
            return

        self.sink = sink
        try:
            load = self.loader.load_once(settings.YOUTUBE_IFRAME_API_URL, self._sdk_ready, READY_CALLBACK)
            await asyncio.shield(load)
        except Exception as e:
            logger.warning(f"YouTube tracking unavailable for lesson {lesson.id}: {e!r}")
            return

        if self.detached or not self._sdk_ready():
            return

        self.player = self.host.YT.Player(self.frame, events={
            "onReady": self._on_ready,
            "onStateChange": self._on_state_change,
        })
        logger.debug(f"YouTube player bound for lesson {lesson.id}")

    def detach(self):
        self.stop_poll()
        release(self.player, "destroy")
        self.player = None
        self.detached = True
        self.sink = None

    def _read(self, getter: str) -> float:
        method = getattr(self.player, getter, None) if self.player is not None else None
        if not callable(method):
            return 0.0
        try:
            return finite_or_zero(method())
        except Exception as e:
            logger.debug(f"YouTube {getter}() failed: {e}")
            return 0.0

    def _on_ready(self, event: Any = None):
        if self.sink:
            self.sink.on_ready(self._read("getDuration"))

    def _on_state_change(self, event: Any):
        state = event.get("data") if isinstance(event, dict) else getattr(event, "data", None)
        if state == PLAYING:
            self.start_poll()
        elif state == ENDED:
            self.stop_poll()
            if self.sink:
                self.sink.on_ended(self._read("getDuration"))

    def poll_once(self):
        if self.sink:
            self.sink.on_sample(PlaybackSample(
                current_seconds=self._read("getCurrentTime"),
                duration_seconds=self._read("getDuration")
            ))

    def start_poll(self):
        if self._poll_task is not None and not self._poll_task.done():
            return
        self._poll_task = asyncio.ensure_future(self._poll())

    def stop_poll(self):
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def _poll(self):
        while not self.detached:
            await asyncio.sleep(self.poll_interval)
            self.poll_once()
