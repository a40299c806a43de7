"""Media handling for the editor: audio import, backgrounds and transcription results."""

from __future__ import annotations

import queue
import threading
import uuid
from collections.abc import Callable, Iterable
from enum import Enum
from pathlib import Path

from kineticsub.project import MediaFile
from kineticsub.subtitle import Subtitle, SubtitleWord
from kineticsub.transcription import (
    DownloadProgress,
    RawWord,
    Transcribing,
    TranscriptionDone,
    TranscriptionError,
    TranscriptionMessage,
)

SOLID_BG_COLOR = (0.05, 0.05, 0.05, 1.0)
_PHRASE_GAP = 0.4
_PHRASE_MAX_WORDS = 6
_PHRASE_ENDINGS = (".", "?", "!", ",")

Transcriber = Callable[[str, Callable[[TranscriptionMessage], None]], None]


class TranscribeMode(Enum):
    PHRASE = "Phrase"
    WORD = "Word"


def _phrase_subtitle(phrase: list[SubtitleWord], sub_id: str, media_id: str) -> Subtitle:
    sub = Subtitle(
        id=sub_id,
        text=" ".join(w.text for w in phrase),
        timeline_start=phrase[0].start,
        timeline_end=phrase[-1].end,
    )
    sub.words = list(phrase)
    sub.media_id = media_id
    return sub


def words_to_subtitles(
    words: Iterable[RawWord],
    offset: float,
    media_id: str,
    mode: TranscribeMode,
    next_id: int,
) -> tuple[list[Subtitle], int]:
    """Build subtitles from recognised words placed at ``offset`` on the timeline.

    Returns the new subtitles and the next free id number.
    """
    subs: list[Subtitle] = []

    if mode is TranscribeMode.WORD:
        for w in words:
            sub = Subtitle(
                id=f"sub_{next_id}",
                text=w.text,
                timeline_start=offset + w.start,
                timeline_end=offset + w.end,
            )
            sub.media_id = media_id
            subs.append(sub)
            next_id += 1
        return subs, next_id

    phrase: list[SubtitleWord] = []

    def flush() -> None:
        nonlocal next_id
        if phrase:
            subs.append(_phrase_subtitle(phrase, f"sub_{next_id}", media_id))
            next_id += 1
            phrase.clear()

    for w in words:
        abs_start = offset + w.start
        abs_end = offset + w.end
        if phrase and (
            abs_start - phrase[-1].end > _PHRASE_GAP or len(phrase) >= _PHRASE_MAX_WORDS
        ):
            flush()
        phrase.append(SubtitleWord(text=w.text, start=abs_start, end=abs_end))
        if w.text.endswith(_PHRASE_ENDINGS):
            flush()
    flush()
    return subs, next_id


class MediaMixin:
    """Media and transcription operations for the editor.

    The host class provides ``project`` and the methods ``update_duration``,
    ``snapshot``, ``mark_modified`` and ``sort_subtitles``.
    """

    whisper_queue: queue.Queue | None = None
    whisper_status: str = ""
    transcribing_media_id: str | None = None
    transcribe_mode: TranscribeMode = TranscribeMode.PHRASE
    next_id: int = 0

    def import_audio(self, path: str | Path) -> MediaFile:
        """Add an audio file to the media list (not yet on the timeline)."""
        path = Path(path)
        media = MediaFile(
            id=f"media_{uuid.uuid4()}",
            name=path.name,
            path=str(path),
            timeline_offset=0.0,
            duration=60.0,
            on_timeline=False,
        )
        self.project.media_files.append(media)
        self.update_duration()
        self.snapshot()
        return media

    def add_solid_bg(self) -> MediaFile:
        """Add a dark solid-colour background track to the timeline."""
        media = MediaFile(
            id=f"bg_{uuid.uuid4()}",
            name="Solid Background",
            path="",
            timeline_offset=0.0,
            duration=max(self.project.duration, 10.0),
            on_timeline=True,
            is_video_track=True,
            color=SOLID_BG_COLOR,
        )
        self.project.media_files.append(media)
        self.update_duration()
        self.snapshot()
        return media

    def toggle_media_timeline(self, media_id: str) -> None:
        media = next((m for m in self.project.media_files if m.id == media_id), None)
        if media is not None:
            media.on_timeline = not media.on_timeline
        self.update_duration()
        self.snapshot()

    def move_media(self, index: int, delta_secs: float) -> None:
        """Shift a media file and every subtitle attached to it."""
        if not 0 <= index < len(self.project.media_files):
            return
        media = self.project.media_files[index]
        old_offset = media.timeline_offset
        new_offset = max(old_offset + delta_secs, 0.0)
        actual_delta = new_offset - old_offset
        media.timeline_offset = new_offset

        for sub in self.project.subtitles:
            if sub.media_id == media.id:
                sub.timeline_start = max(sub.timeline_start + actual_delta, 0.0)
                sub.timeline_end = max(sub.timeline_end + actual_delta, sub.timeline_start + 0.05)
        self.mark_modified()
        self.update_duration()

    def start_auto_transcription(self, media_id: str, transcriber: Transcriber) -> bool:
        """Start transcribing an on-timeline audio file in a background thread.

        ``transcriber(audio_path, send)`` reports its progress and result through
        ``send``; an exception it raises is reported as an error. Returns False if
        the media is not an audio track on the timeline.
        """
        media = next((m for m in self.project.media_files if m.id == media_id), None)
        if media is None or not media.on_timeline or media.is_video_track:
            return False
        audio_path = media.path

        self.project.subtitles = [s for s in self.project.subtitles if s.media_id != media_id]

        messages: queue.Queue = queue.Queue()
        self.whisper_queue = messages
        self.transcribing_media_id = media_id
        self.whisper_status = "Initializing Whisper..."

        def run() -> None:
            try:
                transcriber(audio_path, messages.put)
            except Exception as exc:  # reported to the editor, not raised in the thread
                messages.put(TranscriptionError(str(exc)))

        threading.Thread(target=run, daemon=True).start()
        return True

    def _finish_whisper(self) -> None:
        self.whisper_queue = None
        self.transcribing_media_id = None

    def poll_whisper(self) -> None:
        """Handle at most one pending transcription message."""
        if self.whisper_queue is None:
            return
        try:
            msg = self.whisper_queue.get_nowait()
        except queue.Empty:
            return

        if isinstance(msg, DownloadProgress):
            pct = int(msg.downloaded / msg.total * 100.0) if msg.total > 0 else 0
            self.whisper_status = f"Downloading Model... {pct}%"
        elif isinstance(msg, Transcribing):
            self.whisper_status = "Transcribing Audio..."
        elif isinstance(msg, TranscriptionDone):
            media_id = self.transcribing_media_id
            media = next((m for m in self.project.media_files if m.id == media_id), None)
            offset = 0.0
            if media is not None:
                media.duration = msg.duration
                offset = media.timeline_offset
            subs, self.next_id = words_to_subtitles(
                msg.words, offset, media_id, self.transcribe_mode, self.next_id
            )
            self.project.subtitles.extend(subs)
            self.sort_subtitles()
            self.update_duration()
            self.whisper_status = "Done!"
            self._finish_whisper()
            self.snapshot()
        elif isinstance(msg, TranscriptionError):
            self.whisper_status = f"Error: {msg.message}"
            self._finish_whisper()

    def whisper_is_running(self) -> bool:
        return self.whisper_queue is not None