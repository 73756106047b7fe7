import asyncio
import inspect
import logging
from typing import Any, Optional, Set
from ..config import settings
from ..models import LessonRef, PlaybackSample
from .base import PlaybackAdapter, TrackingSink, finite_or_zero, release
from .scripts import ScriptLoader, script_loader

logger = logging.getLogger(__name__)

EVENTS = ("loaded", "timeupdate", "ended")

class VimeoAdapter(PlaybackAdapter):
    """Tracks a Vimeo embed. The player pushes timeupdate events, no polling needed."""
    name = "vimeo"

    def __init__(self, frame: Any, host: Any, loader: Optional[ScriptLoader] = None):
        super().__init__()
        self.frame = frame
        self.host = host
        self.loader = loader or script_loader
        self.player: Any = None
        self._tasks: Set[asyncio.Task] = set()

    def _sdk_ready(self) -> bool:
        vimeo = getattr(self.host, "Vimeo", None)
        return vimeo is not None and getattr(vimeo, "Player", None) is not None

    async def attach(self, lesson: LessonRef, sink: TrackingSink):
        if self.frame is None:
            logger.warning(f"No embed frame for lesson {lesson.id}, tracking disabled")
            return

        self.sink = sink
        try:
            await asyncio.shield(self.loader.load_once(settings.VIMEO_PLAYER_API_URL, self._sdk_ready))
        except Exception as e:
            logger.warning(f"Vimeo tracking unavailable for lesson {lesson.id}: {e!r}")
            return

        if self.detached or not self._sdk_ready():
            return

        self.player = self.host.Vimeo.Player(self.frame)
        self.player.on("loaded", self._on_loaded)
        self.player.on("timeupdate", self._on_time_update)
        self.player.on("ended", self._on_ended)

    def detach(self):
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()
        if self.player is not None:
            off = getattr(self.player, "off", None)
            if callable(off):
                for event in EVENTS:
                    try:
                        off(event)
                    except Exception as e:
                        logger.debug(f"Vimeo off({event}) failed: {e}")
        release(self.player, "unload", "destroy")
        self.player = None
        self.detached = True
        self.sink = None

    def _on_loaded(self, *_):
        task = asyncio.ensure_future(self._report_ready())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _report_ready(self):
        duration = 0.0
        try:
            result = self.player.getDuration()
            if inspect.isawaitable(result):
                result = await result
            duration = finite_or_zero(result)
        except Exception as e:
            logger.debug(f"Vimeo getDuration() failed: {e}")
        if self.sink:
            self.sink.on_ready(duration)

    def _on_time_update(self, data: Any = None):
        data = data or {}
        if self.sink:
            self.sink.on_sample(PlaybackSample(
                current_seconds=finite_or_zero(data.get("seconds")),
                duration_seconds=finite_or_zero(data.get("duration"))
            ))

    def _on_ended(self, *_):
        if self.sink:
            self.sink.on_ended(None)
