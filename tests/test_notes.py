import json
import tempfile
import unittest
from pathlib import Path
from lesson_tracker.config import settings
from lesson_tracker.errors import AccessDenied, NotesUnavailable
from lesson_tracker.notes import NotesStore

class TestNotesStore(unittest.TestCase):
    def setUp(self):
        settings.PERSIST_ENABLED = True
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "notes.json"

    def tearDown(self):
        self.tmp.cleanup()

    def test_missing_note_is_empty(self):
        note = NotesStore(str(self.path)).get_note("ada@example.com", "7", "l1")
        self.assertEqual(note.text, "")
        self.assertIsNone(note.updated_at_iso)

    def test_notes_are_keyed_by_viewer_course_and_lesson(self):
        store = NotesStore(str(self.path))
        saved = store.save_note(" Ada@Example.com ", "7", "l1", "remember closures")
        self.assertIsNotNone(saved.updated_at_iso)

        reloaded = NotesStore(str(self.path))
        self.assertEqual(reloaded.get_note("ada@example.com", "7", "l1").text, "remember closures")
        self.assertEqual(reloaded.get_note("ada@example.com", "8", "l1").text, "")
        self.assertEqual(reloaded.get_note("bob@example.com", "7", "l1").text, "")
        self.assertEqual(reloaded.get_note("ada@example.com", "7", "l2").text, "")

        data = json.loads(self.path.read_text())
        self.assertEqual(data["ada@example.com:7"]["l1"]["text"], "remember closures")

    def test_saving_needs_an_identity(self):
        store = NotesStore(str(self.path))
        with self.assertRaises(AccessDenied):
            store.save_note("", "7", "l1", "hi")
        self.assertEqual(store.get_note("", "7", "l1").text, "")

    def test_unwritable_path(self):
        store = NotesStore(str(Path(self.tmp.name) / "missing-dir" / "notes.json"))
        with self.assertRaises(NotesUnavailable):
            store.save_note("ada@example.com", "7", "l1", "hi")

    def test_corrupt_file_starts_empty(self):
        self.path.write_text("[1, 2")
        self.assertEqual(NotesStore(str(self.path)).notes, {})

if __name__ == '__main__':
    unittest.main()
