from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Backend
    API_BASE_URL: str = "http://localhost:3000/api"
    API_TOKEN: Optional[str] = None
    REQUEST_TIMEOUT_SECONDS: int = 30
    COURSE_ID: Optional[str] = None

    # Watch tracking
    SEEK_THRESHOLD_SECONDS: float = 2.5
    COMPLETION_RATIO: float = 0.9
    PERSIST_CADENCE_SECONDS: int = 5
    MAX_PLAYBACK_RATE: float = 2.0
    QUIZ_PASS_PERCENT: int = 60

    # Embedded players
    YOUTUBE_IFRAME_API_URL: str = "https://www.youtube.com/iframe_api"
    VIMEO_PLAYER_API_URL: str = "https://player.vimeo.com/api/player.js"
    YOUTUBE_POLL_INTERVAL_SECONDS: float = 1.0
    SCRIPT_READY_POLL_INTERVAL_SECONDS: float = 0.1
    SCRIPT_READY_TIMEOUT_SECONDS: float = 15.0

    # Persistence
    SESSION_PATH: str = "/data/session.json"
    NOTES_PATH: str = "/data/notes.json"
    COURSE_OUTLINE_PATH: str = "/data/course.json"
    PERSIST_ENABLED: bool = True

    # System
    LOG_LEVEL: str = "INFO"
    DRY_RUN: bool = False
    HTTP_SERVER_ENABLED: bool = True
    HTTP_SERVER_PORT: int = 8080
    HTTP_SERVER_TOKEN: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

settings = Settings()
