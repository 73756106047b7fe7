import httpx
import logging
from fastapi import FastAPI, Depends, HTTPException, Header
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from .config import settings
from .errors import AccessDenied, NotesUnavailable, TrackerError
from .models import LessonKind, PlaybackSample
from .session import CourseSession

logger = logging.getLogger(__name__)

app = FastAPI(title="Lesson Progress Tracker")
session: Optional[CourseSession] = None

class ReadyEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    duration_seconds: float = Field(default=0.0, alias="durationSeconds")

class SampleEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    current_seconds: float = Field(alias="currentSeconds")
    duration_seconds: float = Field(default=0.0, alias="durationSeconds")

class QuizAnswer(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    question_id: str = Field(alias="questionId")
    option_index: int = Field(alias="optionIndex")

class LoginRequest(BaseModel):
    email: str

class NoteBody(BaseModel):
    text: str = ""

def get_token(x_token: Optional[str] = Header(None, alias="X-Token")):
    if settings.HTTP_SERVER_TOKEN and x_token != settings.HTTP_SERVER_TOKEN:
        raise HTTPException(status_code=401, detail="Invalid token")

def get_session() -> CourseSession:
    if session is None:
        raise HTTPException(status_code=503, detail="Session not ready")
    return session

def get_video_session() -> CourseSession:
    """Player events need an open video lesson. They are accepted but ignored when tracking is off."""
    s = get_session()
    lesson = s.current_lesson
    if lesson is None or lesson.kind != LessonKind.VIDEO:
        raise HTTPException(status_code=409, detail="No video lesson is open")
    return s

def rejected(e: TrackerError) -> HTTPException:
    if isinstance(e, AccessDenied):
        status = 403
    elif isinstance(e, NotesUnavailable):
        status = 503
    else:
        status = 409
    return HTTPException(status_code=status, detail={"title": e.title, "message": e.message, "reason": e.reason})

def backend_unavailable(e: httpx.HTTPError) -> HTTPException:
    logger.error(f"Backend call failed: {e!r}")
    return HTTPException(status_code=502, detail={
        "title": "Server error",
        "message": "Please try again shortly.",
        "reason": "backend_unavailable"
    })

def watch_summary(s: CourseSession) -> dict:
    return {
        "tracking": s.tracker.active,
        "watched_seconds": s.tracker.state.watched_seconds,
        "completion_eligible": s.tracker.state.completion_eligible
    }

@app.get("/healthz")
def healthz():
    if not session:
        return {"status": "starting"}
    return {"status": "ok"}

@app.get("/status", dependencies=[Depends(get_token)])
def status():
    if not session:
        return {"status": "not_ready"}

    lesson = session.current_lesson
    state = session.tracker.state
    return {
        "course_id": session.course_id,
        "lesson_id": lesson.id if lesson else None,
        "lesson_status": session.lesson_status(lesson).value if lesson else None,
        "watch": {
            "duration_seconds": state.duration_seconds,
            "watched_seconds": state.watched_seconds,
            "watched_percent": state.watched_percent,
            "completion_eligible": state.completion_eligible,
        },
        "can_mark_complete": session.can_mark_current_lesson_complete,
        "course_percent": session.progress_percent,
        "course_completed": session.is_course_completed,
        "config": {
            "seek_threshold": settings.SEEK_THRESHOLD_SECONDS,
            "completion_ratio": settings.COMPLETION_RATIO,
            "persist_cadence": settings.PERSIST_CADENCE_SECONDS,
        }
    }

@app.get("/metrics", response_class=PlainTextResponse)
def metrics():
    if not session:
        return ""

    state = session.tracker.state
    lines = [
        f'lesson_tracker_watched_seconds {state.watched_seconds}',
        f'lesson_tracker_duration_seconds {state.duration_seconds}',
        f'lesson_tracker_completion_eligible {int(state.completion_eligible)}',
        f'lesson_tracker_lessons_completed {len(session.completed)}',
        f'lesson_tracker_lessons_total {len(session.lessons)}'
    ]
    return "\n".join(lines)

@app.post("/events/ready", dependencies=[Depends(get_token)])
async def ready(event: ReadyEvent):
    s = get_video_session()
    s.tracker.on_ready(event.duration_seconds)
    return {"ok": True, "tracking": s.tracker.active}

@app.post("/events/sample", dependencies=[Depends(get_token)])
async def sample(event: SampleEvent):
    s = get_video_session()
    s.tracker.on_sample(PlaybackSample(current_seconds=event.current_seconds, duration_seconds=event.duration_seconds))
    return watch_summary(s)

@app.post("/events/ended", dependencies=[Depends(get_token)])
async def ended(event: ReadyEvent):
    s = get_video_session()
    s.tracker.on_ended(event.duration_seconds)
    return watch_summary(s)

@app.post("/session/login", dependencies=[Depends(get_token)])
async def login(body: LoginRequest):
    s = get_session()
    try:
        await s.login(body.email)
    except TrackerError as e:
        raise rejected(e)
    except httpx.HTTPError as e:
        raise backend_unavailable(e)
    return {"email": s.viewer.email, "enrolled": s.is_enrolled, "course_percent": s.progress_percent}

@app.post("/session/logout", dependencies=[Depends(get_token)])
async def logout():
    await get_session().logout()
    return {"ok": True}

@app.post("/lessons/{lesson_id}/open", dependencies=[Depends(get_token)])
async def open_lesson(lesson_id: str):
    s = get_session()
    lesson = s.find_lesson(lesson_id)
    if lesson is None:
        raise HTTPException(status_code=404, detail="Unknown lesson")
    try:
        await s.load_lesson(lesson)
    except TrackerError as e:
        raise rejected(e)
    return {"lesson_id": lesson.id, "status": s.lesson_status(lesson).value}

@app.post("/lessons/current/complete", dependencies=[Depends(get_token)])
async def complete_current():
    s = get_session()
    try:
        await s.mark_lesson_complete()
    except TrackerError as e:
        raise rejected(e)
    except httpx.HTTPError as e:
        raise backend_unavailable(e)
    return {"completed": True, "course_percent": s.progress_percent}

@app.get("/lessons/current/note", dependencies=[Depends(get_token)])
async def get_note():
    return get_session().current_note().model_dump(by_alias=True)

@app.put("/lessons/current/note", dependencies=[Depends(get_token)])
async def put_note(body: NoteBody):
    try:
        note = get_session().save_current_note(body.text)
    except TrackerError as e:
        raise rejected(e)
    return note.model_dump(by_alias=True)

@app.post("/quiz/answer", dependencies=[Depends(get_token)])
async def quiz_answer(answer: QuizAnswer):
    s = get_session()
    try:
        accepted = s.select_quiz_answer(answer.question_id, answer.option_index)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"accepted": accepted}

@app.post("/quiz/submit", dependencies=[Depends(get_token)])
async def quiz_submit():
    s = get_session()
    try:
        result = await s.submit_quiz()
    except TrackerError as e:
        raise rejected(e)
    except httpx.HTTPError as e:
        raise backend_unavailable(e)
    return {"score": result.text, "percent": result.percent, "passed": result.passed}

@app.post("/quiz/retry", dependencies=[Depends(get_token)])
async def quiz_retry():
    get_session().retry_quiz()
    return {"ok": True}
