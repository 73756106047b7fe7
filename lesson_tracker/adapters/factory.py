import re
from typing import Any, Optional
from ..models import ContentSource, LessonKind, LessonRef
from .base import PlaybackAdapter
from .native import NativeMediaAdapter
from .scripts import ScriptLoader
from .vimeo import VimeoAdapter
from .youtube import YouTubeAdapter

def adapter_for(lesson: LessonRef, host: Any, loader: Optional[ScriptLoader] = None) -> Optional[PlaybackAdapter]:
    """
    Picks the adapter for a lesson's content source.

    host is the page the lesson plays in: media_element and embed_frame
    attributes, plus whatever SDK globals (YT, Vimeo) it has loaded.
    """
    if lesson.kind != LessonKind.VIDEO or not lesson.video_url:
        return None

    if lesson.source in (ContentSource.URL, ContentSource.UPLOAD):
        return NativeMediaAdapter(getattr(host, "media_element", None))
    if lesson.source == ContentSource.YOUTUBE:
        return YouTubeAdapter(getattr(host, "embed_frame", None), host, loader)
    if lesson.source == ContentSource.VIMEO:
        return VimeoAdapter(getattr(host, "embed_frame", None), host, loader)
    return None

YOUTUBE_ID = re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/)([^&\s]+)")
VIMEO_ID = re.compile(r"vimeo\.com/(\d+)")

def youtube_video_id(url: str) -> Optional[str]:
    match = YOUTUBE_ID.search(url or "")
    return match.group(1) if match else None

def vimeo_video_id(url: str) -> Optional[str]:
    match = VIMEO_ID.search(url or "")
    return match.group(1) if match else None

def embed_url(lesson: LessonRef) -> Optional[str]:
    """URL the page should load for a video lesson, with the JS API enabled for embeds."""
    if lesson.kind != LessonKind.VIDEO or not lesson.video_url:
        return None
    if lesson.source == ContentSource.YOUTUBE:
        video_id = youtube_video_id(lesson.video_url)
        return f"https://www.youtube.com/embed/{video_id}?rel=0&modestbranding=1&enablejsapi=1" if video_id else None
    if lesson.source == ContentSource.VIMEO:
        video_id = vimeo_video_id(lesson.video_url)
        return f"https://player.vimeo.com/video/{video_id}?api=1&player_id=vimeo-player" if video_id else None
    return lesson.video_url
