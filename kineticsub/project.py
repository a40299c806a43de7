"""Project documents: media files, subtitles and output settings."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from kineticsub.subtitle import Subtitle

Color = tuple[float, float, float, float]


class RenderMode(Enum):
    IMAGE_SEQUENCE = "ImageSequence"
    VIDEO = "Video"


def _number(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, got {value!r}")
    return float(value)


def _unsigned(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
    return value


def _require(data: Any, keys: tuple[str, ...], what: str) -> None:
    if not isinstance(data, dict):
        raise ValueError(f"{what} must be an object, got {data!r}")
    missing = [key for key in keys if key not in data]
    if missing:
        raise ValueError(f"{what} is missing fields: {', '.join(missing)}")


@dataclass
class MediaFile:
    """An audio file or background track placed in the project."""

    id: str
    name: str
    path: str
    timeline_offset: float
    duration: float
    on_timeline: bool
    is_video_track: bool = False
    color: Color | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "path": self.path,
            "timeline_offset": self.timeline_offset,
            "duration": self.duration,
            "on_timeline": self.on_timeline,
            "is_video_track": self.is_video_track,
            "color": None if self.color is None else list(self.color),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> MediaFile:
        _require(data, ("id", "name", "path", "timeline_offset", "duration", "on_timeline"),
                 "media file")
        for key in ("id", "name", "path"):
            if not isinstance(data[key], str):
                raise ValueError(f"{key} must be a string, got {data[key]!r}")
        flags = {key: data.get(key, False) for key in ("on_timeline", "is_video_track")}
        for key, flag in flags.items():
            if not isinstance(flag, bool):
                raise ValueError(f"{key} must be a boolean, got {flag!r}")
        raw_color = data.get("color")
        color = None
        if raw_color is not None:
            if not isinstance(raw_color, (list, tuple)) or len(raw_color) != 4:
                raise ValueError(f"color must be four numbers, got {raw_color!r}")
            color = tuple(_number(c, "color") for c in raw_color)
        return MediaFile(
            id=data["id"],
            name=data["name"],
            path=data["path"],
            timeline_offset=_number(data["timeline_offset"], "timeline_offset"),
            duration=_number(data["duration"], "duration"),
            on_timeline=flags["on_timeline"],
            is_video_track=flags["is_video_track"],
            color=color,
        )


@dataclass
class Project:
    """Everything saved in a project file."""

    name: str = "Untitled"
    media_files: list[MediaFile] = field(default_factory=list)
    subtitles: list[Subtitle] = field(default_factory=list)
    duration: float = 10.0
    resolution: tuple[int, int] = (1920, 1080)
    fps: int = 30

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "media_files": [m.to_dict() for m in self.media_files],
            "subtitles": [s.to_dict() for s in self.subtitles],
            "duration": self.duration,
            "resolution": list(self.resolution),
            "fps": self.fps,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Project:
        _require(data, ("name", "media_files", "subtitles", "duration"), "project")
        if not isinstance(data["name"], str):
            raise ValueError(f"name must be a string, got {data['name']!r}")
        for key in ("media_files", "subtitles"):
            if not isinstance(data[key], list):
                raise ValueError(f"{key} must be a list")
        resolution = data.get("resolution", [1920, 1080])
        if not isinstance(resolution, (list, tuple)) or len(resolution) != 2:
            raise ValueError(f"resolution must be two integers, got {resolution!r}")
        return Project(
            name=data["name"],
            media_files=[MediaFile.from_dict(m) for m in data["media_files"]],
            subtitles=[Subtitle.from_dict(s) for s in data["subtitles"]],
            duration=_number(data["duration"], "duration"),
            resolution=(
                _unsigned(resolution[0], "resolution"),
                _unsigned(resolution[1], "resolution"),
            ),
            fps=_unsigned(data.get("fps", 30), "fps"),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @staticmethod
    def from_json(text: str) -> Project:
        return Project.from_dict(json.loads(text))