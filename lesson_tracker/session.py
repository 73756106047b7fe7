import logging
import httpx
from typing import Any, Dict, List, Optional, Set, Tuple
from .adapters.factory import adapter_for
from .adapters.scripts import ScriptLoader
from .clients.course_client import CertificateClient, EnrollmentClient
from .clients.progress_client import ProgressClient
from .engine import WatchEngine, js_round
from .errors import AccessDenied, CompletionRejected, NotesUnavailable, TrackerError
from .models import CertificateRecord, LessonKind, LessonNote, LessonRef, LessonStatus, Module, QuizResult, Viewer
from .notes import NotesStore
from .quiz import QuizAttempt, QuizCatalog
from .state import SessionStore
from .tracker import LessonTracker

logger = logging.getLogger(__name__)

DEFAULT_COURSE_ID = "1"

class CourseSession:
    """
    The course-content page without the page: lesson access, completion
    gating, quiz attempts and course-level progress for one viewer.
    """

    def __init__(
        self,
        modules: List[Module],
        viewer: Viewer,
        progress: ProgressClient,
        enrollments: Optional[EnrollmentClient] = None,
        certificates: Optional[CertificateClient] = None,
        host: Any = None,
        loader: Optional[ScriptLoader] = None,
        quizzes: Optional[QuizCatalog] = None,
        store: Optional[SessionStore] = None,
        engine: Optional[WatchEngine] = None,
        course_id: Optional[str] = None,
        notes: Optional[NotesStore] = None,
    ):
        self.modules = modules
        self.viewer = viewer
        self.progress = progress
        self.enrollments = enrollments
        self.certificates = certificates
        self.host = host
        self.loader = loader
        self.quizzes = quizzes or QuizCatalog()
        self.store = store
        self.notes = notes
        self.course_id = course_id or DEFAULT_COURSE_ID
        self.is_enrolled = False
        self.certificate: Optional[CertificateRecord] = None
        self.completed: Set[str] = set()
        self.current_lesson: Optional[LessonRef] = None
        self.quiz: Optional[QuizAttempt] = None
        self.tracker = LessonTracker(progress, engine=engine, on_eligible=self._auto_complete)

    @property
    def lessons(self) -> List[LessonRef]:
        return [lesson for module in self.modules for lesson in module.lessons]

    def find_lesson(self, lesson_id: str) -> Optional[LessonRef]:
        return next((l for l in self.lessons if l.id == lesson_id), None)

    @property
    def can_track(self) -> bool:
        return self.viewer.is_logged_in and bool(self.viewer.email)

    async def open(self, course_id: Optional[str] = None):
        """Resolves the course, loads enrollment and stored completion, then opens the first lesson."""
        self.course_id = str(course_id or self.viewer.active_course_id or self.course_id or DEFAULT_COURSE_ID)
        self.viewer.active_course_id = self.course_id
        if self.store is not None:
            self.store.state = self.viewer
            self.store.save()

        if self.can_track:
            if self.enrollments is not None:
                self.is_enrolled = await self.enrollments.is_enrolled(self.viewer.email, self.course_id)
            if self.certificates is not None:
                self.certificate = await self.certificates.get_by_course(self.viewer.email, self.course_id)
            await self.apply_stored_progress()

        logger.info(f"Opened course {self.course_id} ({len(self.lessons)} lessons, enrolled={self.is_enrolled})")

        first = next((l for l in self.lessons if self.can_access_lesson(l)), None)
        await self.load_lesson(first)

    async def close(self):
        self.tracker.stop()
        await self.tracker.flush()

    # Identity

    async def login(self, email: str):
        """Signs the viewer in and reopens the course with their enrollment and progress."""
        if self.store is not None:
            self.store.state = self.viewer
            self.store.login(email)
        else:
            self.viewer.email = email.strip()
            self.viewer.is_logged_in = bool(self.viewer.email)
        if not self.viewer.is_logged_in:
            raise AccessDenied("An email is required to sign in", reason="login_required")
        logger.info(f"Viewer {self.viewer.email} signed in")
        await self.open(self.course_id)

    def drop_identity(self):
        """Forgets the viewer after the backend rejected the session (HTTP 401)."""
        if not self.viewer.is_logged_in:
            return
        logger.warning("Backend rejected the session, signing out")
        if self.store is not None:
            self.store.state = self.viewer
            self.store.clear()
        else:
            self.viewer.email = ""
            self.viewer.is_logged_in = False
        self.is_enrolled = False
        self.certificate = None
        self.completed.clear()
        self.tracker.disable()

    async def logout(self):
        self.drop_identity()
        await self.open(self.course_id)

    async def apply_stored_progress(self):
        if not self.viewer.email:
            return
        course = await self.progress.get_course_progress(self.course_id)
        for lesson in self.lessons:
            record = course.lessons.get(lesson.id)
            if record is not None and record.completed:
                self.completed.add(lesson.id)

    # Access and status

    def can_access_lesson(self, lesson: LessonRef) -> bool:
        if lesson.is_preview:
            return True
        if not self.viewer.is_logged_in:
            return False
        return self.is_enrolled

    def is_completed(self, lesson: LessonRef) -> bool:
        return lesson.id in self.completed

    def lesson_status(self, lesson: LessonRef) -> LessonStatus:
        if self.is_completed(lesson):
            return LessonStatus.COMPLETED
        if not self.can_access_lesson(lesson):
            return LessonStatus.LOCKED
        if lesson.kind == LessonKind.QUIZ:
            return LessonStatus.IN_PROGRESS
        if lesson.kind == LessonKind.VIDEO:
            current = self.current_lesson is not None and self.current_lesson.id == lesson.id
            if current and self.tracker.state.completion_eligible:
                return LessonStatus.ELIGIBLE
            return LessonStatus.IN_PROGRESS
        return LessonStatus.ELIGIBLE

    # Lesson loading

    async def load_lesson(self, lesson: Optional[LessonRef]):
        if lesson is None:
            self.tracker.stop()
            self.current_lesson = None
            self.quiz = None
            return

        if not self.can_access_lesson(lesson):
            if not self.viewer.is_logged_in:
                raise AccessDenied("Login to access this lesson", reason="login_required")
            raise AccessDenied("Enroll to unlock this lesson", reason="enrollment_required")

        self.current_lesson = lesson
        self.quiz = QuizAttempt(self.quizzes.questions_for(lesson)) if lesson.kind == LessonKind.QUIZ else None

        # Without a host the player reports through the service endpoints instead
        adapter = adapter_for(lesson, self.host, self.loader) if self.can_track and self.host is not None else None
        self.tracker.start(self.course_id, lesson, adapter, enabled=self.can_track)
        logger.info(f"Loaded lesson {lesson.id} ({lesson.kind.value})")

    def _neighbours(self) -> Tuple[Optional[LessonRef], Optional[LessonRef]]:
        if self.current_lesson is None:
            return None, None
        ids = [l.id for l in self.lessons]
        try:
            index = ids.index(self.current_lesson.id)
        except ValueError:
            return None, None
        lessons = self.lessons
        prev = lessons[index - 1] if index > 0 else None
        nxt = lessons[index + 1] if index + 1 < len(lessons) else None
        return prev, nxt

    @property
    def is_first_lesson(self) -> bool:
        return self._neighbours()[0] is None

    @property
    def is_last_lesson(self) -> bool:
        return self._neighbours()[1] is None

    async def next_lesson(self) -> Optional[LessonRef]:
        nxt = self._neighbours()[1]
        if nxt is not None:
            await self.load_lesson(nxt)
        return nxt

    async def previous_lesson(self) -> Optional[LessonRef]:
        prev = self._neighbours()[0]
        if prev is not None:
            await self.load_lesson(prev)
        return prev

    # Completion

    @property
    def watched_percent(self) -> int:
        return self.tracker.state.watched_percent

    @property
    def can_mark_current_lesson_complete(self) -> bool:
        lesson = self.current_lesson
        if lesson is None or not self.viewer.is_logged_in or self.is_completed(lesson):
            return False
        if lesson.kind == LessonKind.VIDEO:
            return self.tracker.state.completion_eligible
        return lesson.kind != LessonKind.QUIZ

    async def mark_lesson_complete(self, lesson: Optional[LessonRef] = None):
        lesson = lesson or self.current_lesson
        if lesson is None:
            raise CompletionRejected("No lesson is open", reason="no_lesson")
        if not self.viewer.is_logged_in:
            raise CompletionRejected("Login to track your progress", reason="login_required")
        if self.is_completed(lesson):
            raise CompletionRejected("This lesson is already completed", reason="already_completed")
        if lesson.kind == LessonKind.QUIZ:
            raise CompletionRejected("Pass the quiz to complete this lesson", reason="quiz_requires_submission")
        if lesson.kind == LessonKind.VIDEO:
            current = self.current_lesson is not None and self.current_lesson.id == lesson.id
            if not (current and self.tracker.state.completion_eligible):
                raise CompletionRejected("Finish the video to complete this lesson", reason="watch_required")

        self.completed.add(lesson.id)
        logger.info(f"Lesson {lesson.id} completed")
        if self.viewer.email:
            await self.progress.mark_lesson_completed(self.course_id, lesson.id)

    async def _auto_complete(self, lesson: LessonRef):
        if self.is_completed(lesson) or not self.viewer.is_logged_in:
            return
        try:
            await self.mark_lesson_complete(lesson)
        except TrackerError as e:
            logger.debug(f"Auto-complete skipped for {lesson.id}: {e.reason}")
        except httpx.HTTPError as e:
            logger.warning(f"Auto-complete of {lesson.id} not saved: {e}")

    # Quiz

    def select_quiz_answer(self, question_id: str, option_index: int) -> bool:
        if self.quiz is None:
            return False
        return self.quiz.select_answer(question_id, option_index)

    async def submit_quiz(self) -> QuizResult:
        lesson = self.current_lesson
        if lesson is None or lesson.kind != LessonKind.QUIZ or self.quiz is None:
            raise TrackerError("No quiz lesson is open", reason="not_a_quiz")

        result = self.quiz.submit()
        if result.passed and self.viewer.is_logged_in:
            self.completed.add(lesson.id)
            if self.viewer.email:
                await self.progress.upsert_lesson_progress(
                    self.course_id, lesson.id,
                    completed=True,
                    quiz_score_percent=result.percent,
                    quiz_score_text=result.text
                )
        return result

    def retry_quiz(self):
        if self.quiz is not None:
            self.quiz.retry()

    # Notes

    def current_note(self) -> LessonNote:
        if self.current_lesson is None or not self.viewer.is_logged_in or self.notes is None:
            return LessonNote()
        return self.notes.get_note(self.viewer.email, self.course_id, self.current_lesson.id)

    def save_current_note(self, text: str) -> LessonNote:
        if self.current_lesson is None:
            raise TrackerError("No lesson is open", reason="no_lesson")
        if not self.viewer.is_logged_in:
            raise AccessDenied("Login to keep notes", reason="login_required")
        if self.notes is None:
            raise NotesUnavailable("Notes are not available in this session")
        return self.notes.save_note(self.viewer.email, self.course_id, self.current_lesson.id, text)

    # Course level

    @property
    def progress_percent(self) -> int:
        total = len(self.lessons)
        if not total:
            return 0
        done = sum(1 for l in self.lessons if self.is_completed(l))
        return js_round(done / total * 100)

    @property
    def progress_text(self) -> str:
        lessons = self.lessons
        return f"{sum(1 for l in lessons if self.is_completed(l))}/{len(lessons)}"

    def module_counts(self) -> Dict[str, Tuple[int, int]]:
        """module title -> (completed, total)"""
        return {
            m.title: (sum(1 for l in m.lessons if self.is_completed(l)), len(m.lessons))
            for m in self.modules
        }

    @property
    def is_course_completed(self) -> bool:
        lessons = self.lessons
        return bool(lessons) and all(self.is_completed(l) for l in lessons)

    def final_exam_path(self) -> str:
        if not self.viewer.is_logged_in or not self.viewer.email:
            raise AccessDenied("Sign in to take the final exam.", reason="login_required")
        if not self.is_enrolled:
            raise AccessDenied("Enroll to unlock the final exam.", reason="enrollment_required")
        if not self.is_course_completed:
            raise AccessDenied("Complete the course to unlock the final exam.", reason="course_incomplete")
        return f"/exam/{self.course_id}"

    def certificate_path(self) -> Optional[str]:
        if self.certificate is None:
            return None
        return f"/verify-certificate/{self.certificate.id}"
