import json
import logging
import os
from pathlib import Path
from .models import Viewer
from .config import settings

logger = logging.getLogger(__name__)

def write_json(path: Path, data):
    """Temp file, fsync, rename. Readers never see a half-written file."""
    tmp_path = path.with_suffix('.tmp')
    with open(tmp_path, 'w') as f:
        json.dump(data, f, indent=2)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, path)

def read_json(path: Path, default):
    if not path.exists():
        return default
    try:
        with open(path, 'r') as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to read {path}: {e}. Starting fresh.")
        return default

class SessionStore:
    """
    Viewer identity and the active course, kept on disk between runs.
    Plays the part of the browser's local storage; not a security boundary.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.state = Viewer()
        self.read_only = False
        self._load()

    def _load(self):
        data = read_json(self.path, None)
        if data is None:
            logger.info(f"No session at {self.path}, starting anonymous.")
            return
        try:
            self.state = Viewer(**data)
        except (TypeError, ValueError) as e:
            logger.error(f"Ignoring malformed session file: {e}")

    def save(self):
        if not settings.PERSIST_ENABLED or self.read_only:
            return
        try:
            write_json(self.path, self.state.model_dump())
        except OSError as e:
            logger.error(f"Failed to save session to {self.path}: {e}")
            self.read_only = True

    def login(self, email: str):
        self.state.email = email.strip()
        self.state.is_logged_in = bool(self.state.email)
        self.save()

    def clear(self):
        """Drops the identity in place but keeps the active course."""
        self.state.email = ""
        self.state.is_logged_in = False
        self.save()
