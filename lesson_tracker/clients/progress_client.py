import logging
import httpx
from typing import Any, Dict, Optional
from ..config import settings
from ..models import CourseProgress, LessonProgressRecord
from .http import build_http_client, clean_id

logger = logging.getLogger(__name__)

class ProgressClient:
    """
    Thin wrapper over the backend progress service.

    GET /progress/{courseId}                      -> CourseProgress
    PUT /progress/{courseId}/lessons/{lessonId}   -> 200, body ignored
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.client = client or build_http_client()

    async def get_course_progress(self, course_id: str) -> CourseProgress:
        cid = clean_id(course_id)
        try:
            resp = await self.client.get(f"/progress/{cid}")
            resp.raise_for_status()
            data = resp.json() or {}
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch progress for course {cid}: {e}")
            raise
        data.setdefault("courseId", cid)
        if data.get("lessons") is None:
            data["lessons"] = {}
        return CourseProgress.model_validate(data)

    async def get_lesson_progress(self, course_id: str, lesson_id: str) -> Optional[LessonProgressRecord]:
        """
        Best effort: returns None when the lesson has no record or the backend is unreachable.
        """
        try:
            progress = await self.get_course_progress(course_id)
        except httpx.HTTPError:
            return None
        return progress.lessons.get(clean_id(lesson_id))

    async def upsert_lesson_progress(
        self,
        course_id: str,
        lesson_id: str,
        completed: Optional[bool] = None,
        watched_seconds: Optional[int] = None,
        duration_seconds: Optional[int] = None,
        quiz_score_percent: Optional[float] = None,
        quiz_score_text: Optional[str] = None,
    ):
        cid = clean_id(course_id)
        lid = clean_id(lesson_id)
        payload: Dict[str, Any] = {
            "completed": completed,
            "watchedSeconds": watched_seconds,
            "durationSeconds": duration_seconds,
            "quizScorePercent": quiz_score_percent,
            "quizScoreText": quiz_score_text,
        }
        payload = {k: v for k, v in payload.items() if v is not None}

        if settings.DRY_RUN:
            logger.info(f"[DRY RUN] Would update progress for {cid}/{lid}: {payload}")
            return

        try:
            resp = await self.client.put(f"/progress/{cid}/lessons/{lid}", json=payload)
            resp.raise_for_status()
            logger.debug(f"Updated progress for {cid}/{lid}: {payload}")
        except httpx.HTTPError as e:
            logger.error(f"Failed to update progress for {cid}/{lid}: {e}")
            raise

    async def save_watch_progress(self, course_id: str, lesson_id: str, watched_seconds: int, duration_seconds: int) -> bool:
        """Fire-and-forget write of a watch snapshot. Failures are dropped; the next tick catches up."""
        try:
            await self.upsert_lesson_progress(
                course_id, lesson_id,
                watched_seconds=watched_seconds,
                duration_seconds=duration_seconds
            )
            return True
        except httpx.HTTPError:
            return False

    async def mark_lesson_completed(self, course_id: str, lesson_id: str):
        await self.upsert_lesson_progress(course_id, lesson_id, completed=True)

    async def aclose(self):
        await self.client.aclose()
