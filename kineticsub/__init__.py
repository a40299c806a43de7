"""Animated kinetic subtitles: keyframes, easing, motion paths, baked ASS scripts and ffmpeg export."""

__version__ = "0.2.0"
__all__ = [
    "animation",
    "sync_engine",
    "subtitle",
    "project",
    "ass",
    "render",
    "transcription",
    "media",
    "editor",
]