import json
import tempfile
import unittest
from pathlib import Path
from lesson_tracker.config import settings
from lesson_tracker.state import SessionStore

class TestSessionStore(unittest.TestCase):
    def setUp(self):
        settings.PERSIST_ENABLED = True
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "session.json"

    def tearDown(self):
        self.tmp.cleanup()

    def test_missing_file_is_anonymous(self):
        store = SessionStore(str(self.path))
        self.assertFalse(store.state.is_logged_in)
        self.assertIsNone(store.state.active_course_id)

    def test_round_trip(self):
        store = SessionStore(str(self.path))
        store.state.active_course_id = "3"
        store.login("  ada@example.com ")

        reloaded = SessionStore(str(self.path))
        self.assertTrue(reloaded.state.is_logged_in)
        self.assertEqual(reloaded.state.email, "ada@example.com")
        self.assertEqual(reloaded.state.active_course_id, "3")

    def test_clear_keeps_active_course(self):
        store = SessionStore(str(self.path))
        store.state.active_course_id = "3"
        store.login("ada@example.com")
        viewer = store.state
        store.clear()

        self.assertIs(store.state, viewer)
        self.assertEqual(viewer.email, "")

        data = json.loads(self.path.read_text())
        self.assertFalse(data["is_logged_in"])
        self.assertEqual(data["active_course_id"], "3")

    def test_corrupt_file_starts_fresh(self):
        self.path.write_text("{not json")
        store = SessionStore(str(self.path))
        self.assertFalse(store.state.is_logged_in)

    def test_persist_disabled(self):
        settings.PERSIST_ENABLED = False
        try:
            SessionStore(str(self.path)).login("ada@example.com")
        finally:
            settings.PERSIST_ENABLED = True
        self.assertFalse(self.path.exists())

    def test_unwritable_path_goes_read_only(self):
        store = SessionStore(str(Path(self.tmp.name) / "missing-dir" / "session.json"))
        store.login("ada@example.com")
        self.assertTrue(store.read_only)

if __name__ == '__main__':
    unittest.main()
