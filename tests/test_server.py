import tempfile
import unittest
import httpx
from pathlib import Path
from fastapi.testclient import TestClient
from lesson_tracker import server
from lesson_tracker.config import settings
from lesson_tracker.engine import WatchEngine
from lesson_tracker.models import ContentSource, CourseProgress, LessonKind, LessonRef, Module, QuizQuestion, Viewer
from lesson_tracker.notes import NotesStore
from lesson_tracker.quiz import QuizCatalog
from lesson_tracker.session import CourseSession

class MockProgress:
    def __init__(self):
        self.writes = []
        self.completed = []
        self.offline = False

    async def get_course_progress(self, course_id):
        return CourseProgress(course_id=course_id)

    async def get_lesson_progress(self, course_id, lesson_id):
        return None

    async def save_watch_progress(self, course_id, lesson_id, watched_seconds, duration_seconds):
        self.writes.append((lesson_id, watched_seconds, duration_seconds))
        return True

    async def mark_lesson_completed(self, course_id, lesson_id):
        if self.offline:
            raise httpx.ConnectError("backend down")
        self.completed.append(lesson_id)

    async def upsert_lesson_progress(self, course_id, lesson_id, **fields):
        if self.offline:
            raise httpx.ConnectError("backend down")
        self.completed.append(lesson_id)

VIDEO = LessonRef(id="v1", title="Intro", kind=LessonKind.VIDEO, source=ContentSource.URL,
                  video_url="https://cdn/intro.mp4", is_preview=True)
QUIZ = LessonRef(id="q1", title="Check", kind=LessonKind.QUIZ, is_preview=True)
LOCKED = LessonRef(id="a1", title="Members only", kind=LessonKind.ARTICLE)

class TestServer(unittest.TestCase):
    def setUp(self):
        settings.HTTP_SERVER_TOKEN = None
        self.progress = MockProgress()
        self.tmp = tempfile.TemporaryDirectory()
        self.session = CourseSession(
            [Module(title="M1", lessons=[VIDEO, QUIZ, LOCKED])],
            Viewer(email="ada@example.com", is_logged_in=True),
            self.progress,
            quizzes=QuizCatalog({"q1": [QuizQuestion(id="x", prompt="?", options=["a", "b"], correct_index=1)]}),
            engine=WatchEngine(seek_threshold=2.5, completion_ratio=0.9, persist_cadence=5),
            course_id="c1",
            notes=NotesStore(str(Path(self.tmp.name) / "notes.json")),
        )
        self.client = TestClient(server.app)

    def tearDown(self):
        server.session = None
        settings.HTTP_SERVER_TOKEN = None
        self.tmp.cleanup()

    def test_healthz_before_and_after_start(self):
        self.assertEqual(self.client.get("/healthz").json(), {"status": "starting"})
        server.session = self.session
        self.assertEqual(self.client.get("/healthz").json(), {"status": "ok"})

    def test_not_ready(self):
        self.assertEqual(self.client.post("/events/sample", json={"currentSeconds": 1}).status_code, 503)

    def test_samples_accumulate(self):
        server.session = self.session
        self.assertEqual(self.client.post("/lessons/v1/open").status_code, 200)

        for t in range(1, 4):
            resp = self.client.post("/events/sample", json={"currentSeconds": t, "durationSeconds": 100})
            self.assertEqual(resp.status_code, 200)
        resp = self.client.post("/events/sample", json={"currentSeconds": 60, "durationSeconds": 100})
        self.assertEqual(resp.json()["watched_seconds"], 3)

        status = self.client.get("/status").json()
        self.assertEqual(status["lesson_id"], "v1")
        self.assertEqual(status["watch"]["duration_seconds"], 100)
        self.assertFalse(status["watch"]["completion_eligible"])
        self.assertFalse(status["can_mark_complete"])

    def test_ended_unlocks_completion(self):
        server.session = self.session
        self.client.post("/lessons/v1/open")
        resp = self.client.post("/events/ended", json={"durationSeconds": 100})
        self.assertTrue(resp.json()["completion_eligible"])
        self.assertEqual(resp.json()["watched_seconds"], 100)

    def test_early_completion_is_rejected(self):
        server.session = self.session
        self.client.post("/lessons/v1/open")
        resp = self.client.post("/lessons/current/complete")
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()["detail"]["reason"], "watch_required")

    def test_events_need_a_video_lesson(self):
        server.session = self.session
        self.client.post("/lessons/q1/open")
        self.assertEqual(self.client.post("/events/sample", json={"currentSeconds": 1}).status_code, 409)

    def test_open_unknown_and_locked(self):
        server.session = self.session
        self.session.viewer.is_logged_in = False
        self.assertEqual(self.client.post("/lessons/nope/open").status_code, 404)
        resp = self.client.post("/lessons/a1/open")
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["detail"]["reason"], "login_required")

    def test_quiz_flow(self):
        server.session = self.session
        self.client.post("/lessons/q1/open")

        resp = self.client.post("/quiz/submit")
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()["detail"]["reason"], "incomplete")

        self.assertEqual(self.client.post("/quiz/answer", json={"questionId": "nope", "optionIndex": 0}).status_code, 422)
        self.assertTrue(self.client.post("/quiz/answer", json={"questionId": "x", "optionIndex": 0}).json()["accepted"])
        resp = self.client.post("/quiz/submit")
        self.assertEqual(resp.json(), {"score": "0/1 (0%)", "percent": 0, "passed": False})

        self.client.post("/quiz/retry")
        self.client.post("/quiz/answer", json={"questionId": "x", "optionIndex": 1})
        self.assertTrue(self.client.post("/quiz/submit").json()["passed"])

    def test_token_guard(self):
        server.session = self.session
        settings.HTTP_SERVER_TOKEN = "secret"
        self.assertEqual(self.client.get("/status").status_code, 401)
        self.assertEqual(self.client.get("/status", headers={"X-Token": "secret"}).status_code, 200)

    def test_metrics(self):
        server.session = self.session
        self.client.post("/lessons/v1/open")
        body = self.client.get("/metrics").text
        self.assertIn("lesson_tracker_lessons_total 3", body)
        self.assertIn("lesson_tracker_completion_eligible 0", body)

    def test_anonymous_samples_are_accepted_but_ignored(self):
        server.session = self.session
        self.session.viewer.email = ""
        self.session.viewer.is_logged_in = False
        self.assertEqual(self.client.post("/lessons/v1/open").status_code, 200)

        resp = self.client.post("/events/sample", json={"currentSeconds": 1, "durationSeconds": 100})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"tracking": False, "watched_seconds": 0, "completion_eligible": False})
        self.assertEqual(self.client.post("/events/ended", json={"durationSeconds": 100}).status_code, 200)
        self.assertEqual(self.progress.writes, [])

    def test_completion_with_backend_down(self):
        server.session = self.session
        self.session.is_enrolled = True
        self.client.post("/lessons/a1/open")
        self.progress.offline = True

        resp = self.client.post("/lessons/current/complete")
        self.assertEqual(resp.status_code, 502)
        self.assertEqual(resp.json()["detail"], {
            "title": "Server error",
            "message": "Please try again shortly.",
            "reason": "backend_unavailable"
        })
        self.assertIn("a1", self.session.completed)

    def test_quiz_submit_with_backend_down(self):
        server.session = self.session
        self.client.post("/lessons/q1/open")
        self.client.post("/quiz/answer", json={"questionId": "x", "optionIndex": 1})
        self.progress.offline = True

        resp = self.client.post("/quiz/submit")
        self.assertEqual(resp.status_code, 502)
        self.assertEqual(resp.json()["detail"]["reason"], "backend_unavailable")

    def test_login_and_logout(self):
        server.session = self.session
        self.session.viewer.email = ""
        self.session.viewer.is_logged_in = False

        self.assertEqual(self.client.post("/session/login", json={"email": "  "}).status_code, 403)
        resp = self.client.post("/session/login", json={"email": " ada@example.com "})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["email"], "ada@example.com")
        self.assertTrue(self.session.can_track)

        self.assertEqual(self.client.post("/session/logout").status_code, 200)
        self.assertFalse(self.session.viewer.is_logged_in)
        self.assertFalse(self.session.can_track)

    def test_notes(self):
        server.session = self.session
        self.client.post("/lessons/v1/open")
        self.assertEqual(self.client.get("/lessons/current/note").json(), {"text": "", "updatedAtIso": None})

        resp = self.client.put("/lessons/current/note", json={"text": "closures!"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["text"], "closures!")
        self.assertIsNotNone(resp.json()["updatedAtIso"])
        self.assertEqual(self.client.get("/lessons/current/note").json()["text"], "closures!")

    def test_notes_need_login(self):
        server.session = self.session
        self.session.viewer.is_logged_in = False
        self.client.post("/lessons/v1/open")
        resp = self.client.put("/lessons/current/note", json={"text": "hi"})
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["detail"]["reason"], "login_required")

if __name__ == '__main__':
    unittest.main()
