import logging
import math
from typing import Optional
from .config import settings
from .models import LessonProgressRecord, PlaybackSample, WatchState

logger = logging.getLogger(__name__)

def js_round(value: float) -> int:
    """Round half up, the way the players' own clocks are rounded for display."""
    return int(math.floor(value + 0.5))

def floor_duration(value: Optional[float]) -> int:
    if value is None or not math.isfinite(value) or value <= 0:
        return 0
    return int(math.floor(value))

class WatchEngine:
    """
    Turns raw playback samples into accumulated watch time.

    Only small forward deltas count as watched. Rewinds, seeks and
    jumps after a stalled/backgrounded tab move the reference position
    without crediting any time.
    """

    def __init__(self, seek_threshold: Optional[float] = None, completion_ratio: Optional[float] = None,
                 persist_cadence: Optional[int] = None):
        self.seek_threshold = seek_threshold if seek_threshold is not None else settings.SEEK_THRESHOLD_SECONDS
        self.completion_ratio = completion_ratio if completion_ratio is not None else settings.COMPLETION_RATIO
        self.persist_cadence = persist_cadence if persist_cadence is not None else settings.PERSIST_CADENCE_SECONDS

    def apply_sample(self, state: WatchState, sample: PlaybackSample) -> bool:
        """
        Accumulates one sample into state.
        Returns True when the sample lands on the persistence cadence.
        """
        if sample.duration_seconds > 0:
            state.duration_seconds = floor_duration(sample.duration_seconds)

        delta = sample.current_seconds - state.last_observed_seconds
        if 0 < delta < self.seek_threshold:
            watched = state.watched_seconds + delta
            if state.duration_seconds:
                watched = min(state.duration_seconds, watched)
            state.watched_seconds = watched
        elif delta != 0:
            logger.debug(f"Ignoring position jump of {delta:.1f}s")

        # Always move the reference so a seek doesn't poison the next delta
        state.last_observed_seconds = sample.current_seconds

        self.update_eligibility(state)

        if self.persist_cadence <= 0:
            return False
        return js_round(sample.current_seconds) % self.persist_cadence == 0

    def apply_metadata(self, state: WatchState, duration: Optional[float]):
        state.duration_seconds = floor_duration(duration)

    def apply_ended(self, state: WatchState, duration: Optional[float]) -> bool:
        """Full credit on a genuine end of playback. Returns True on the eligibility transition."""
        final = floor_duration(duration)
        if final:
            state.duration_seconds = final
        state.watched_seconds = max(state.watched_seconds, state.duration_seconds)
        return self.update_eligibility(state)

    def seed(self, state: WatchState, record: Optional[LessonProgressRecord]) -> bool:
        """Server values win when a lesson is (re)loaded."""
        if record is None:
            return False
        state.duration_seconds = floor_duration(record.duration_seconds) or state.duration_seconds
        watched = record.watched_seconds or 0.0
        if state.duration_seconds:
            watched = min(state.duration_seconds, watched)
        state.watched_seconds = max(0.0, watched)
        return self.update_eligibility(state)

    def update_eligibility(self, state: WatchState) -> bool:
        """
        Flips completion_eligible once the watched ratio reaches the threshold.
        Returns True only on the transition; eligibility never reverts.
        """
        if state.completion_eligible or not state.duration_seconds:
            return False
        if state.ratio >= self.completion_ratio:
            state.completion_eligible = True
            logger.info(f"Completion unlocked at {state.watched_seconds:.1f}/{state.duration_seconds}s")
            return True
        return False
