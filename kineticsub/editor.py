"""The editor's state: project, selection, history, playback, keyframes and export."""

from __future__ import annotations

import copy
import queue
import threading
import uuid
from enum import Enum
from pathlib import Path
from typing import Protocol

from kineticsub.animation import Easing, Keyframe
from kineticsub.media import MediaMixin, TranscribeMode
from kineticsub.project import Project, RenderMode
from kineticsub.render import RenderDone, RenderError, RenderProgress, run_render
from kineticsub.subtitle import Subtitle
from kineticsub.sync_engine import SyncEngine

_MIN_CLIP_LENGTH = 0.05
_KEYFRAME_MERGE_DISTANCE = 0.02
_MIN_DURATION = 5.0
_EASE_OUT = next(e for e in Easing.all() if e.label() == "Ease Out")


class KeyframeMode(Enum):
    OFF = "Off"
    RECORD = "Record"


class AudioOutput(Protocol):
    """What the editor needs from an audio player kept in sync with the playhead."""

    def load(self, path: str) -> None: ...

    def play_from(self, time_secs: float) -> None: ...

    def pause(self) -> None: ...

    def is_playing(self) -> bool: ...


class EditorViewModel(MediaMixin):
    """All state behind the editor, independent of any user interface."""

    def __init__(self, audio_player: AudioOutput | None = None) -> None:
        self.project = Project()
        self.filepath: Path | None = None
        self.sync = SyncEngine(self.project.duration)

        self.history: list[Project] = [copy.deepcopy(self.project)]
        self.history_index = 0
        self.pending_snapshot = False

        self.selected_id: str | None = None
        self.selected_ids: set[str] = set()
        self.selected_path_node: int | None = None

        self.timeline_zoom = 100.0
        self.timeline_scroll = 0.0
        self.new_sub_text = ""

        self.whisper_queue: queue.Queue | None = None
        self.whisper_status = ""
        self.transcribing_media_id: str | None = None
        self.transcribe_mode = TranscribeMode.PHRASE

        self.next_id = 0
        self.keyframe_mode = KeyframeMode.OFF
        self.audio_player = audio_player

        self.show_fps = False
        self.current_fps = 0.0
        self.render_mode = RenderMode.IMAGE_SEQUENCE
        self.render_include_audio = True
        self.render_transparent_bg = True

        self.is_rendering = False
        self.render_progress = 0.0
        self.render_status = ""
        self.render_queue: queue.Queue | None = None

    # ── Timeline ─────────────────────────────────────────────────────────────

    def update_duration(self) -> None:
        """Stretch the project to cover every on-timeline media file and subtitle."""
        ends = [_MIN_DURATION]
        ends += [m.timeline_offset + m.duration for m in self.project.media_files if m.on_timeline]
        ends += [s.timeline_end for s in self.project.subtitles]
        max_end = max(ends)
        self.project.duration = max_end
        self.sync.duration = max_end
        if self.sync.current_time > max_end:
            self.sync.seek(max_end)

    def px_to_time(self, px: float) -> float:
        return self.timeline_scroll + px / self.timeline_zoom

    def time_to_px(self, t: float) -> float:
        return (t - self.timeline_scroll) * self.timeline_zoom

    # ── Playback ─────────────────────────────────────────────────────────────

    def _pause_audio(self) -> None:
        if self.audio_player is not None:
            self.audio_player.pause()

    def tick(self) -> None:
        """Advance the clock, update the frame rate and keep audio in step."""
        dt = self.sync.tick()
        if dt > 0.0:
            instant_fps = 1.0 / dt
            if self.current_fps == 0.0:
                self.current_fps = instant_fps
            else:
                self.current_fps = self.current_fps * 0.9 + instant_fps * 0.1

        player = self.audio_player
        if player is None:
            return
        t = self.sync.current_time
        if self.sync.is_playing():
            media = next((m for m in self.project.media_files if m.on_timeline), None)
            if media is None:
                return
            if media.timeline_offset <= t < media.timeline_offset + media.duration:
                if not player.is_playing():
                    player.load(media.path)
                    player.play_from(t - media.timeline_offset)
            elif player.is_playing():
                player.pause()
        elif player.is_playing():
            player.pause()

    def toggle_play(self) -> None:
        self.sync.toggle_play_pause()
        # Pausing also forces the next tick to restart audio at the playhead.
        self._pause_audio()

    def skip(self, delta: float) -> None:
        self.sync.skip(delta)
        self._pause_audio()

    def seek_to(self, t: float) -> None:
        self.sync.seek(t)
        self._pause_audio()

    def current_time(self) -> float:
        return self.sync.current_time

    def is_playing(self) -> bool:
        return self.sync.is_playing()

    # ── History ──────────────────────────────────────────────────────────────

    def mark_modified(self) -> None:
        """Ask for a snapshot once the pointer is released."""
        self.pending_snapshot = True

    def maybe_snapshot(self, is_pointer_down: bool) -> None:
        if self.pending_snapshot and not is_pointer_down:
            self.snapshot()

    def snapshot(self) -> None:
        """Record the current project, dropping any undone states after it."""
        del self.history[self.history_index + 1:]
        self.history.append(copy.deepcopy(self.project))
        self.history_index += 1
        self.pending_snapshot = False

    def undo(self) -> None:
        if self.history_index > 0:
            self.history_index -= 1
            self.project = copy.deepcopy(self.history[self.history_index])
            self.update_duration()

    def redo(self) -> None:
        if self.history_index + 1 < len(self.history):
            self.history_index += 1
            self.project = copy.deepcopy(self.history[self.history_index])
            self.update_duration()

    # ── Save / load ──────────────────────────────────────────────────────────

    def save_project(self, path: str | Path | None = None) -> Path:
        """Write the project as JSON to ``path`` or to the file it was last saved to."""
        if path is not None:
            self.filepath = Path(path)
        if self.filepath is None:
            raise ValueError("no file to save the project to")
        self.filepath.write_text(self.project.to_json(), encoding="utf-8")
        self.project.name = self.filepath.stem
        return self.filepath

    def load_project(self, path: str | Path) -> None:
        """Replace the project with one read from ``path`` and reset history."""
        path = Path(path)
        project = Project.from_json(path.read_text(encoding="utf-8"))
        self.project = project
        self.filepath = path
        self.selected_id = None
        self.selected_ids.clear()
        self.update_duration()
        self.sync.stop()
        self.history = [copy.deepcopy(self.project)]
        self.history_index = 0

    # ── Export ───────────────────────────────────────────────────────────────

    def start_render(self, out_path: str | Path) -> threading.Thread:
        """Export a copy of the project in a background thread."""
        self.is_rendering = True
        self.render_progress = 0.0
        self.render_status = "Preparing to export..."
        messages: queue.Queue = queue.Queue()
        self.render_queue = messages

        thread = threading.Thread(
            target=run_render,
            args=(
                copy.deepcopy(self.project),
                out_path,
                self.render_mode,
                self.render_include_audio,
                self.render_transparent_bg,
                messages.put,
            ),
            daemon=True,
        )
        thread.start()
        return thread

    def poll_render(self) -> None:
        """Apply every pending export message."""
        if self.render_queue is None:
            return
        finished = False
        while True:
            try:
                msg = self.render_queue.get_nowait()
            except queue.Empty:
                break
            if isinstance(msg, RenderProgress):
                self.render_progress = msg.progress
                self.render_status = msg.status
            elif isinstance(msg, RenderDone):
                self.render_progress = 1.0
                self.render_status = "Export Complete!"
                finished = True
            elif isinstance(msg, RenderError):
                self.render_status = f"Error: {msg.message}"
                finished = True
        if finished:
            self.render_queue = None

    # ── Subtitles ────────────────────────────────────────────────────────────

    @staticmethod
    def _shift(sub: Subtitle, delta_secs: float) -> None:
        sub.timeline_start = max(sub.timeline_start + delta_secs, 0.0)
        sub.timeline_end = max(sub.timeline_end + delta_secs, sub.timeline_start + _MIN_CLIP_LENGTH)

    def move_subtitle_idx(self, index: int, delta_secs: float) -> None:
        if 0 <= index < len(self.project.subtitles):
            self._shift(self.project.subtitles[index], delta_secs)
        self.mark_modified()
        self.update_duration()

    def move_selected_subtitles(self, delta_secs: float) -> None:
        """Move all selected subtitles together."""
        for sub in self.project.subtitles:
            if sub.id in self.selected_ids:
                self._shift(sub, delta_secs)
        self.mark_modified()
        self.update_duration()

    def next_id_str(self) -> str:
        sub_id = f"sub_{self.next_id}"
        self.next_id += 1
        return sub_id

    def add_subtitle_at(self, text: str, start: float, end: float) -> Subtitle:
        sub = Subtitle(id=self.next_id_str(), text=text, timeline_start=start, timeline_end=end)
        self.project.subtitles.append(sub)
        self.sort_subtitles()
        self.update_duration()
        self.snapshot()
        return sub

    def insert_subtitle_at_playhead(self) -> Subtitle | None:
        """Add the pending text as a three-second subtitle at the playhead."""
        text = self.new_sub_text.strip()
        if not text:
            return None
        start = self.sync.current_time
        end = min(start + 3.0, self.project.duration)
        sub = self.add_subtitle_at(text, start, end)
        self.new_sub_text = ""
        return sub

    def delete_subtitle(self, sub_id: str) -> None:
        self.project.subtitles = [s for s in self.project.subtitles if s.id != sub_id]
        if self.selected_id == sub_id:
            self.selected_id = None
        self.selected_ids.discard(sub_id)
        self.update_duration()
        self.snapshot()

    def delete_selected_subtitles(self) -> None:
        ids = self.selected_ids
        self.project.subtitles = [s for s in self.project.subtitles if s.id not in ids]
        if self.selected_id in ids:
            self.selected_id = None
        self.selected_ids = set()
        self.update_duration()
        self.snapshot()

    def select_subtitle(self, sub_id: str | None) -> None:
        self.selected_id = sub_id
        self.selected_ids = set() if sub_id is None else {sub_id}

    def toggle_select(self, sub_id: str) -> None:
        if sub_id in self.selected_ids:
            self.selected_ids.discard(sub_id)
            if self.selected_id == sub_id:
                self.selected_id = next(iter(self.selected_ids), None)
        else:
            self.selected_ids.add(sub_id)
            if self.selected_id is None:
                self.selected_id = sub_id

    def selected_subtitle(self) -> Subtitle | None:
        if self.selected_id is None:
            return None
        return next((s for s in self.project.subtitles if s.id == self.selected_id), None)

    def active_subtitle(self) -> Subtitle | None:
        """The subtitle under the playhead, preferring the selected one."""
        t = self.sync.current_time
        selected = self.selected_subtitle()
        if selected is not None and selected.timeline_start <= t < selected.timeline_end:
            return selected
        for sub in self.project.subtitles:
            if sub.timeline_start > t:
                break
            if t < sub.timeline_end:
                return sub
        return None

    def sort_subtitles(self) -> None:
        self.project.subtitles.sort(key=lambda s: s.timeline_start)

    # ── Keyframes ────────────────────────────────────────────────────────────

    def write_keyframe_now(self) -> None:
        """Key every selected subtitle's current transform at the playhead."""
        current_t = self.sync.current_time
        for sub in self.project.subtitles:
            if sub.id not in self.selected_ids:
                continue
            local_time = current_t - sub.timeline_start
            if local_time < 0.0 or local_time > sub.duration():
                continue
            sub.keyframes = [
                k for k in sub.keyframes
                if abs(k.time_offset - local_time) >= _KEYFRAME_MERGE_DISTANCE
            ]
            sub.keyframes.append(Keyframe(
                id=f"kf_{uuid.uuid4()}",
                time_offset=local_time,
                x=sub.x, y=sub.y, scale=sub.scale,
                rotation=sub.rotation, opacity=sub.opacity,
                skew_x=sub.skew_x, skew_y=sub.skew_y,
                yaw=sub.yaw, pitch=sub.pitch,
                path_progress=sub.path_progress,
                mask_center=tuple(sub.mask_center),
                mask_size=tuple(sub.mask_size),
                mask_rotation=sub.mask_rotation,
                mask_feather=sub.mask_feather,
                easing=_EASE_OUT,
            ))
            sub.keyframes.sort(key=lambda k: k.time_offset)
        self.snapshot()

    def maybe_autorecord_keyframe(self) -> None:
        if self.keyframe_mode is KeyframeMode.RECORD:
            self.write_keyframe_now()