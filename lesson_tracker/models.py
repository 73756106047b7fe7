from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional

class LessonKind(str, Enum):
    VIDEO = "video"
    ARTICLE = "article"
    QUIZ = "quiz"
    RESOURCE = "resource"

class ContentSource(str, Enum):
    UPLOAD = "upload"
    YOUTUBE = "youtube"
    VIMEO = "vimeo"
    URL = "url"

class LessonStatus(str, Enum):
    LOCKED = "locked"
    IN_PROGRESS = "in_progress"
    ELIGIBLE = "eligible"
    COMPLETED = "completed"

class LessonRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    kind: LessonKind = LessonKind.VIDEO
    source: ContentSource = ContentSource.URL
    video_url: Optional[str] = None
    is_preview: bool = False
    duration_label: str = ""  # Display text, e.g. "5:30" or "10 questions"

class Module(BaseModel):
    title: str
    lessons: List[LessonRef] = Field(default_factory=list)

class PlaybackSample(BaseModel):
    current_seconds: float = 0.0
    duration_seconds: float = 0.0

class WatchState(BaseModel):
    duration_seconds: int = 0
    watched_seconds: float = 0.0
    last_observed_seconds: float = 0.0
    completion_eligible: bool = False

    @property
    def ratio(self) -> float:
        if not self.duration_seconds:
            return 0.0
        return self.watched_seconds / self.duration_seconds

    @property
    def watched_percent(self) -> int:
        if not self.duration_seconds:
            return 0
        return min(100, int(self.ratio * 100 + 0.5))

class LessonProgressRecord(BaseModel):
    """Server-held progress for one lesson. Wire format is camelCase."""
    model_config = ConfigDict(populate_by_name=True)

    completed: bool = False
    watched_seconds: Optional[float] = Field(default=None, alias="watchedSeconds")
    duration_seconds: Optional[float] = Field(default=None, alias="durationSeconds")
    updated_at_iso: Optional[str] = Field(default=None, alias="updatedAtIso")
    quiz_score_percent: Optional[float] = Field(default=None, alias="quizScorePercent")
    quiz_score_text: Optional[str] = Field(default=None, alias="quizScoreText")

class CourseProgress(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    course_id: str = Field(alias="courseId")
    percent: float = 0
    lessons: Dict[str, LessonProgressRecord] = Field(default_factory=dict)

class QuizQuestion(BaseModel):
    id: str
    prompt: str
    options: List[str]
    correct_index: int

class QuizResult(BaseModel):
    correct: int
    total: int
    percent: int
    passed: bool

    @property
    def text(self) -> str:
        return f"{self.correct}/{self.total} ({self.percent}%)"

class CertificateRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    id: str
    course_id: str = Field(alias="courseId")
    course_title: str = Field(default="", alias="courseTitle")
    user_email: str = Field(default="", alias="userEmail")
    user_name: str = Field(default="", alias="userName")
    score_percent: float = Field(default=0, alias="scorePercent")
    issued_at_iso: Optional[str] = Field(default=None, alias="issuedAtIso")

class EnrollmentRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    id: str
    email: str = ""
    course_id: str = Field(alias="courseId")
    enrolled_at_iso: Optional[str] = Field(default=None, alias="enrolledAtIso")
    status: Optional[str] = None

class Viewer(BaseModel):
    email: str = ""
    is_logged_in: bool = False
    active_course_id: Optional[str] = None

class LessonNote(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = ""
    updated_at_iso: Optional[str] = Field(default=None, alias="updatedAtIso")
