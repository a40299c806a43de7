"""Export a project through ffmpeg as a video file or a zipped PNG sequence."""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
import zipfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from kineticsub.ass import color_to_ffmpeg_hex, generate_ass_baked
from kineticsub.project import Project, RenderMode

ASS_FILE_NAME = "subs.ass"
FRAME_PATTERN = "frame_%04d.png"
_CREATE_NO_WINDOW = 0x08000000


@dataclass(frozen=True)
class RenderProgress:
    """Fraction of the export done (0..1) and a status line."""

    progress: float
    status: str


@dataclass(frozen=True)
class RenderDone:
    """The export finished."""


@dataclass(frozen=True)
class RenderError:
    """The export failed."""

    message: str


RenderMessage = Union[RenderProgress, RenderDone, RenderError]


def _display_number(value: float) -> str:
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def build_ffmpeg_command(
    project: Project,
    out_path: str | os.PathLike[str],
    mode: RenderMode,
    include_audio: bool,
    transparent_bg: bool,
) -> list[str]:
    """The ffmpeg argument list, meant to run inside the directory holding the script."""
    res_w, res_h = project.resolution
    fps = _display_number(project.fps)
    size = f"s={res_w}x{res_h}:r={fps}:d={project.duration:.3f}"
    cmd = ["ffmpeg", "-y"]

    background = next((m for m in project.media_files if m.on_timeline and m.is_video_track), None)
    audio = next((m for m in project.media_files if m.on_timeline and not m.is_video_track), None)
    transparent_seq = mode is RenderMode.IMAGE_SEQUENCE and transparent_bg

    if transparent_seq:
        cmd += ["-f", "lavfi", "-i", f"color=c=black@0.0:{size}"]
    elif background is not None:
        if background.color is not None:
            hex_color = color_to_ffmpeg_hex(background.color)
            cmd += ["-f", "lavfi", "-i", f"color=c={hex_color}:{size}"]
        else:
            cmd += ["-i", background.path]
    else:
        cmd += ["-f", "lavfi", "-i", f"color=c=black:{size}"]

    has_audio = mode is RenderMode.VIDEO and include_audio and audio is not None
    if has_audio:
        cmd += ["-i", audio.path]

    if transparent_seq:
        cmd += ["-vf", f"format=rgba,ass={ASS_FILE_NAME}"]
    else:
        cmd += ["-vf", f"ass={ASS_FILE_NAME}"]

    if mode is RenderMode.IMAGE_SEQUENCE:
        cmd += ["-c:v", "png"]
        if transparent_seq:
            cmd += ["-pix_fmt", "rgba"]
        cmd.append(FRAME_PATTERN)
    else:
        if has_audio:
            cmd += ["-map", "0:v", "-map", "1:a", "-c:a", "aac", "-b:a", "192k"]
        else:
            cmd.append("-an")
        cmd += ["-c:v", "libx264", "-preset", "fast", "-crf", "22", str(out_path)]
    return cmd


def _strict_float(text: str) -> float | None:
    if not text or text != text.strip() or "_" in text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def parse_progress_seconds(line: str) -> float | None:
    """Seconds reached according to a ``time=HH:MM:SS.cc`` field, if the line has one."""
    idx = line.find("time=")
    if idx < 0:
        return None
    rest = line[idx + 5:]
    if len(rest) < 11:
        return None
    parts = rest[:11].split(":")
    if len(parts) != 3:
        return None
    values = [_strict_float(p) for p in parts]
    if any(v is None for v in values):
        return None
    h, m, s = values
    return h * 3600.0 + m * 60.0 + s


def _fraction(current: float, duration: float) -> float:
    if duration == 0.0:
        return 1.0 if current > 0.0 else 0.0
    return min(max(current / duration, 0.0), 1.0)


def _is_error_line(lower: str) -> bool:
    return "error" in lower or "invalid" in lower or "unrecognized" in lower


def _zip_frames(
    temp_dir: Path, out_path: str | os.PathLike[str], send: Callable[[RenderMessage], None]
) -> bool:
    send(RenderProgress(0.5, "Zipping sequence..."))
    try:
        archive = zipfile.ZipFile(out_path, "w", compression=zipfile.ZIP_STORED)
    except OSError as exc:
        send(RenderError(f"Failed to create Zip file: {exc}"))
        return False
    with archive:
        frames = sorted(p for p in temp_dir.iterdir() if p.suffix == ".png")
        total = len(frames)
        for idx, frame in enumerate(frames):
            try:
                archive.write(frame, frame.name)
            except OSError:
                pass
            if idx % 10 == 0:
                pct = 0.5 + idx / total * 0.48
                send(RenderProgress(pct, f"Zipping frame {idx + 1}/{total}"))
    return True


def run_render(
    project: Project,
    out_path: str | os.PathLike[str],
    mode: RenderMode,
    include_audio: bool,
    transparent_bg: bool,
    send: Callable[[RenderMessage], None],
) -> None:
    """Bake the subtitles, run ffmpeg and report progress through ``send``."""
    res_w, res_h = project.resolution
    send(RenderProgress(0.02, "Baking frame-by-frame animations..."))
    ass_content = generate_ass_baked(project, float(project.fps), res_w, res_h)

    temp_dir = Path(tempfile.gettempdir()) / "kineticsub_render"
    shutil.rmtree(temp_dir, ignore_errors=True)
    try:
        temp_dir.mkdir(parents=True, exist_ok=True)
        (temp_dir / ASS_FILE_NAME).write_text(ass_content, encoding="utf-8")
    except OSError as exc:
        send(RenderError(f"Failed to write ASS file: {exc}"))
        return

    send(RenderProgress(0.05, "Rendering frames..."))
    cmd = build_ffmpeg_command(project, out_path, mode, include_audio, transparent_bg)
    extra = {"creationflags": _CREATE_NO_WINDOW} if os.name == "nt" else {}
    try:
        proc = subprocess.Popen(
            cmd,
            cwd=str(temp_dir),
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            **extra,
        )
    except OSError as exc:
        send(RenderError(f"Failed to start FFMPEG: {exc}"))
        return

    last_error = ""
    for raw in proc.stderr:
        try:
            line = raw.decode("utf-8").rstrip("\n").rstrip("\r")
        except UnicodeDecodeError:
            continue
        if "time=" in line:
            seconds = parse_progress_seconds(line)
            if seconds is not None:
                p = _fraction(seconds, project.duration)
                send(RenderProgress(0.05 + p * 0.45, f"Rendering Text: {int(p * 100.0)}%"))
            continue
        lower = line.lower()
        if _is_error_line(lower):
            last_error = line
        elif not last_error and not lower.startswith("frame=") and line.strip():
            last_error = line

    if proc.wait() != 0:
        if last_error:
            send(RenderError(f"FFMPEG: {last_error}"))
        else:
            send(RenderError(
                "FFMPEG crashed unexpectedly. Ensure ffmpeg is installed properly."
            ))
        return

    if mode is RenderMode.IMAGE_SEQUENCE and not _zip_frames(temp_dir, out_path, send):
        return
    send(RenderDone())