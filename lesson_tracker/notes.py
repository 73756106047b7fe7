import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict
from .config import settings
from .errors import AccessDenied, NotesUnavailable
from .models import LessonNote
from .state import read_json, write_json

logger = logging.getLogger(__name__)

def notes_key(email: str, course_id: str) -> str:
    return f"{(email or '').strip().lower()}:{str(course_id or '').strip()}"

class NotesStore:
    """Private per-lesson notes, one JSON file shared by every viewer and course."""

    def __init__(self, path: str):
        self.path = Path(path)
        self.notes: Dict[str, Dict[str, dict]] = read_json(self.path, {})
        if not isinstance(self.notes, dict):
            logger.error(f"Ignoring malformed notes file {self.path}")
            self.notes = {}

    def get_note(self, email: str, course_id: str, lesson_id: str) -> LessonNote:
        lesson_id = (lesson_id or "").strip()
        if not (email or "").strip() or not lesson_id:
            return LessonNote()
        entry = self.notes.get(notes_key(email, course_id), {}).get(lesson_id)
        return LessonNote.model_validate(entry) if entry else LessonNote()

    def save_note(self, email: str, course_id: str, lesson_id: str, text: str) -> LessonNote:
        lesson_id = (lesson_id or "").strip()
        if not (email or "").strip() or not lesson_id:
            raise AccessDenied("Not logged in", reason="login_required")

        note = LessonNote(text=text or "", updated_at_iso=datetime.now(timezone.utc).isoformat())
        self.notes.setdefault(notes_key(email, course_id), {})[lesson_id] = note.model_dump(by_alias=True)

        if settings.PERSIST_ENABLED:
            try:
                write_json(self.path, self.notes)
            except OSError as e:
                logger.error(f"Failed to save notes to {self.path}: {e}")
                raise NotesUnavailable()
        return note
