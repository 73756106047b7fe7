import asyncio
import json
import logging
import signal
import sys
import httpx
import uvicorn
from pathlib import Path
from typing import List

from .config import settings
from .state import SessionStore
from .clients.http import build_http_client
from .clients.progress_client import ProgressClient
from .clients.course_client import CertificateClient, EnrollmentClient
from .models import Module
from .notes import NotesStore
from .session import CourseSession
from . import server

# Setup logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
# Silence noisy libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

logger = logging.getLogger("main")

def load_outline(path: str) -> List[Module]:
    """Course outline: a JSON list of modules, each with its lessons."""
    outline = Path(path)
    if not outline.exists():
        logger.warning(f"No course outline at {outline}, starting with an empty course")
        return []
    try:
        with open(outline, 'r') as f:
            data = json.load(f)
        modules = data.get("modules", []) if isinstance(data, dict) else data
        return [Module.model_validate(m) for m in modules]
    except Exception as e:
        logger.error(f"Failed to read course outline {outline}: {e}", exc_info=True)
        return []

class TrackerService:
    def __init__(self):
        self.store = SessionStore(settings.SESSION_PATH)
        self.http = build_http_client(on_unauthorized=lambda: self.session.drop_identity())
        self.session = CourseSession(
            load_outline(settings.COURSE_OUTLINE_PATH),
            self.store.state,
            ProgressClient(self.http),
            enrollments=EnrollmentClient(self.http),
            certificates=CertificateClient(self.http),
            store=self.store,
            notes=NotesStore(settings.NOTES_PATH),
        )

    async def start(self):
        try:
            await self.session.open(settings.COURSE_ID)
        except httpx.HTTPError as e:
            logger.error(f"Could not load course state from backend: {e}")

        # Link session to server module
        server.session = self.session

        tasks = []
        if settings.HTTP_SERVER_ENABLED:
            config = uvicorn.Config(server.app, host="0.0.0.0", port=settings.HTTP_SERVER_PORT, log_level="warning")
            tasks.append(asyncio.create_task(uvicorn.Server(config).serve()))
        else:
            logger.info("HTTP server disabled, nothing to serve")

        try:
            await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            pass
        finally:
            await self.session.close()
            await self.http.aclose()

def handle_sigterm(sig, frame):
    logger.info("Received SIGTERM, shutting down...")
    sys.exit(0)

if __name__ == "__main__":
    signal.signal(signal.SIGTERM, handle_sigterm)
    service = TrackerService()
    try:
        asyncio.run(service.start())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
