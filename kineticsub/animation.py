"""Easing curves, keyframes and animation presets for subtitle motion."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Protocol


class EasingKind(Enum):
    """The shape of an easing curve; values are the serialised names."""

    LINEAR = "Linear"
    EASE_IN = "EaseIn"
    EASE_OUT = "EaseOut"
    EASE_IN_OUT = "EaseInOut"
    BOUNCE = "Bounce"
    ELASTIC = "Elastic"
    BACK = "Back"
    CUSTOM = "Custom"


_EASING_LABELS = {
    EasingKind.LINEAR: "Linear",
    EasingKind.EASE_IN: "Ease In",
    EasingKind.EASE_OUT: "Ease Out",
    EasingKind.EASE_IN_OUT: "Ease In/Out",
    EasingKind.BOUNCE: "Bounce",
    EasingKind.ELASTIC: "Elastic",
    EasingKind.BACK: "Back",
    EasingKind.CUSTOM: "Custom Bezier",
}

DEFAULT_BEZIER_HANDLES = (0.25, 0.1, 0.25, 1.0)


@dataclass(frozen=True)
class Easing:
    """An easing curve; custom curves carry four cubic-bezier handle values."""

    kind: EasingKind = EasingKind.LINEAR
    handles: tuple[float, float, float, float] | None = None

    def __post_init__(self) -> None:
        if self.kind is EasingKind.CUSTOM:
            if self.handles is None or len(self.handles) != 4:
                raise ValueError("a custom easing needs exactly four handle values")
            object.__setattr__(self, "handles", tuple(float(h) for h in self.handles))
        elif self.handles is not None:
            raise ValueError(f"{self.kind.value} easing takes no handles")

    def label(self) -> str:
        return _EASING_LABELS[self.kind]

    @staticmethod
    def all() -> list[Easing]:
        """Every easing choice, with the default custom bezier last."""
        simple = [Easing(kind) for kind in EasingKind if kind is not EasingKind.CUSTOM]
        return simple + [Easing(EasingKind.CUSTOM, DEFAULT_BEZIER_HANDLES)]

    def to_json(self) -> Any:
        if self.kind is EasingKind.CUSTOM:
            return {EasingKind.CUSTOM.value: list(self.handles)}
        return self.kind.value

    @staticmethod
    def from_json(data: Any) -> Easing:
        if isinstance(data, str):
            try:
                kind = EasingKind(data)
            except ValueError:
                raise ValueError(f"unknown easing: {data!r}") from None
            if kind is EasingKind.CUSTOM:
                raise ValueError("custom easing needs handle values")
            return Easing(kind)
        if isinstance(data, dict) and set(data) == {EasingKind.CUSTOM.value}:
            handles = data[EasingKind.CUSTOM.value]
            if not isinstance(handles, (list, tuple)) or len(handles) != 4:
                raise ValueError("custom easing needs four handle values")
            return Easing(EasingKind.CUSTOM, tuple(float(h) for h in handles))
        raise ValueError(f"invalid easing: {data!r}")


@dataclass
class Keyframe:
    """A snapshot of animatable properties at a time offset within a subtitle."""

    id: str
    time_offset: float
    x: float
    y: float
    scale: float
    rotation: float
    opacity: float
    skew_x: float = 0.0
    skew_y: float = 0.0
    yaw: float = 0.0
    pitch: float = 0.0
    path_progress: float = 0.0
    mask_center: tuple[float, float] = (0.0, 0.0)
    mask_size: tuple[float, float] = (200.0, 200.0)
    mask_rotation: float = 0.0
    mask_feather: float = 0.0
    easing: Easing = Easing()

    _REQUIRED = ("id", "time_offset", "x", "y", "scale", "rotation", "opacity", "easing")
    _OPTIONAL_SCALARS = (
        "skew_x", "skew_y", "yaw", "pitch", "path_progress", "mask_rotation", "mask_feather",
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "time_offset": self.time_offset,
            "x": self.x,
            "y": self.y,
            "scale": self.scale,
            "rotation": self.rotation,
            "opacity": self.opacity,
            "skew_x": self.skew_x,
            "skew_y": self.skew_y,
            "yaw": self.yaw,
            "pitch": self.pitch,
            "path_progress": self.path_progress,
            "mask_center": list(self.mask_center),
            "mask_size": list(self.mask_size),
            "mask_rotation": self.mask_rotation,
            "mask_feather": self.mask_feather,
            "easing": self.easing.to_json(),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Keyframe:
        missing = [key for key in Keyframe._REQUIRED if key not in data]
        if missing:
            raise ValueError(f"keyframe is missing fields: {', '.join(missing)}")
        optional = {key: float(data[key]) for key in Keyframe._OPTIONAL_SCALARS if key in data}
        if "mask_center" in data:
            optional["mask_center"] = _pair(data["mask_center"])
        if "mask_size" in data:
            optional["mask_size"] = _pair(data["mask_size"])
        return Keyframe(
            id=str(data["id"]),
            time_offset=float(data["time_offset"]),
            x=float(data["x"]),
            y=float(data["y"]),
            scale=float(data["scale"]),
            rotation=float(data["rotation"]),
            opacity=float(data["opacity"]),
            easing=Easing.from_json(data["easing"]),
            **optional,
        )


def _pair(values: Any) -> tuple[float, float]:
    if not isinstance(values, (list, tuple)) or len(values) != 2:
        raise ValueError(f"expected two numbers, got {values!r}")
    return (float(values[0]), float(values[1]))


@dataclass
class InterpolatedState:
    """Resolved transform of a subtitle at one moment."""

    x: float
    y: float
    scale: float
    rotation: float
    opacity: float
    skew_x: float
    skew_y: float
    yaw: float
    pitch: float
    path_progress: float
    mask_center: tuple[float, float]
    mask_size: tuple[float, float]
    mask_rotation: float
    mask_feather: float


class _Animatable(Protocol):
    x: float
    y: float
    scale: float
    rotation: float
    opacity: float
    skew_x: float
    skew_y: float
    yaw: float
    pitch: float
    path_progress: float
    mask_center: Any
    mask_size: Any
    mask_rotation: float
    mask_feather: float

    def duration(self) -> float: ...


SLIDE_DISTANCE = 80.0


class AnimationPreset(Enum):
    """Ready-made keyframe sets that can be applied to a subtitle."""

    FADE_IN = "Fade In"
    FADE_OUT = "Fade Out"
    SLIDE_UP = "Slide Up"
    SLIDE_DOWN = "Slide Down"
    SLIDE_LEFT = "Slide Left"
    SLIDE_RIGHT = "Slide Right"
    BOUNCE_IN = "Bounce In"
    ZOOM_IN = "Zoom In"
    ZOOM_OUT = "Zoom Out"
    TYPE_WRITER = "Typewriter"

    def label(self) -> str:
        return self.value

    @classmethod
    def all(cls) -> tuple[AnimationPreset, ...]:
        """The presets offered to the user; the typewriter preset is not among them."""
        return tuple(preset for preset in cls if preset is not cls.TYPE_WRITER)

    def generate_keyframes(self, sub: _Animatable) -> list[Keyframe]:
        dur = sub.duration()
        in_dur = min(dur * 0.25, 0.5)
        out_start = max(dur - min(dur * 0.25, 0.5), in_dur)

        base = Keyframe(
            id="",
            time_offset=0.0,
            x=sub.x,
            y=sub.y,
            scale=sub.scale,
            rotation=sub.rotation,
            opacity=sub.opacity,
            skew_x=sub.skew_x,
            skew_y=sub.skew_y,
            yaw=sub.yaw,
            pitch=sub.pitch,
            path_progress=sub.path_progress,
            mask_center=tuple(sub.mask_center),
            mask_size=tuple(sub.mask_size),
            mask_rotation=sub.mask_rotation,
            mask_feather=sub.mask_feather,
            easing=Easing(),
        )

        def kf(t: float, kind: EasingKind, **changes: float) -> Keyframe:
            return replace(
                base, id=f"kf_{uuid.uuid4()}", time_offset=t, easing=Easing(kind), **changes
            )

        ease_out, ease_in = EasingKind.EASE_OUT, EasingKind.EASE_IN
        if self is AnimationPreset.FADE_IN:
            return [kf(0.0, ease_out, opacity=0.0), kf(in_dur, ease_out, opacity=1.0)]
        if self is AnimationPreset.FADE_OUT:
            return [kf(out_start, ease_in, opacity=1.0), kf(dur, ease_in, opacity=0.0)]
        if self in _SLIDE_OFFSETS:
            dx, dy = _SLIDE_OFFSETS[self]
            return [
                kf(0.0, ease_out, x=base.x + dx, y=base.y + dy, opacity=0.0),
                kf(in_dur, ease_out, opacity=1.0),
            ]
        if self is AnimationPreset.BOUNCE_IN:
            return [
                kf(0.0, EasingKind.BOUNCE, y=base.y + SLIDE_DISTANCE, scale=0.3, opacity=0.0),
                kf(in_dur * 0.6, EasingKind.BOUNCE, y=base.y - 10.0, scale=1.1, opacity=1.0),
                kf(in_dur, ease_out, scale=1.0, opacity=1.0),
            ]
        if self is AnimationPreset.ZOOM_IN:
            return [
                kf(0.0, EasingKind.BACK, scale=0.0, opacity=0.0),
                kf(in_dur, EasingKind.BACK, opacity=1.0),
            ]
        if self is AnimationPreset.ZOOM_OUT:
            return [
                kf(out_start, ease_in, opacity=1.0),
                kf(dur, ease_in, scale=0.0, opacity=0.0),
            ]
        return [kf(0.0, EasingKind.LINEAR, opacity=1.0)]


_SLIDE_OFFSETS = {
    AnimationPreset.SLIDE_UP: (0.0, SLIDE_DISTANCE),
    AnimationPreset.SLIDE_DOWN: (0.0, -SLIDE_DISTANCE),
    AnimationPreset.SLIDE_LEFT: (SLIDE_DISTANCE, 0.0),
    AnimationPreset.SLIDE_RIGHT: (-SLIDE_DISTANCE, 0.0),
}


def ease_out_cubic(t: float) -> float:
    return 1.0 - (1.0 - t) ** 3


def ease_in_cubic(t: float) -> float:
    return t * t * t


def ease_in_out(t: float) -> float:
    if t < 0.5:
        return 4.0 * t * t * t
    return 1.0 - (-2.0 * t + 2.0) ** 3 / 2.0


def ease_bounce(t: float) -> float:
    n1, d1 = 7.5625, 2.75
    if t < 1.0 / d1:
        return n1 * t * t
    if t < 2.0 / d1:
        t -= 1.5 / d1
        return n1 * t * t + 0.75
    if t < 2.5 / d1:
        t -= 2.25 / d1
        return n1 * t * t + 0.9375
    t -= 2.625 / d1
    return n1 * t * t + 0.984375


def ease_elastic(t: float) -> float:
    if t in (0.0, 1.0):
        return t
    c4 = math.tau / 3.0
    return -(2.0 ** (10.0 * t - 10.0)) * math.sin((t * 10.0 - 10.75) * c4)


def ease_back(t: float) -> float:
    c1 = 1.70158
    c3 = c1 + 1.0
    return c3 * t * t * t - c1 * t * t


def _cubic_bezier(t: float, p1: float, p2: float) -> float:
    u = 1.0 - t
    return 3.0 * u * u * t * p1 + 3.0 * u * t * t * p2 + t * t * t


def _cubic_bezier_deriv(t: float, p1: float, p2: float) -> float:
    u = 1.0 - t
    return 3.0 * u * u * p1 + 6.0 * u * t * (p2 - p1) + 3.0 * t * t * (1.0 - p2)


def solve_cubic_bezier(p: float, x1: float, y1: float, x2: float, y2: float) -> float:
    """Evaluate a CSS-style cubic bezier timing curve at progress ``p``."""
    if p <= 0.0:
        return 0.0
    if p >= 1.0:
        return 1.0
    t = p
    for _ in range(8):
        f = _cubic_bezier(t, x1, x2) - p
        if abs(f) < 0.001:
            break
        d = _cubic_bezier_deriv(t, x1, x2)
        if abs(d) < 1e-6:
            break
        t -= f / d
    t = min(max(t, 0.0), 1.0)
    return _cubic_bezier(t, y1, y2)


def apply_ease(t: float, easing: Easing) -> float:
    """Map linear progress ``t`` (clamped to 0..1) through ``easing``."""
    c = min(max(t, 0.0), 1.0)
    kind = easing.kind
    if kind is EasingKind.LINEAR:
        return c
    if kind is EasingKind.EASE_IN:
        return ease_in_cubic(c)
    if kind is EasingKind.EASE_OUT:
        return ease_out_cubic(c)
    if kind is EasingKind.EASE_IN_OUT:
        return ease_in_out(c)
    if kind is EasingKind.BOUNCE:
        return ease_bounce(c)
    if kind is EasingKind.ELASTIC:
        return 1.0 - ease_elastic(1.0 - c)
    if kind is EasingKind.BACK:
        return max(ease_back(c), 0.0)
    x1, y1, x2, y2 = easing.handles
    return solve_cubic_bezier(c, x1, y1, x2, y2)