"""Subtitle clips: styling, motion paths, masks, expressions and interpolation."""

from __future__ import annotations

import math
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from typing import Any

from kineticsub.animation import InterpolatedState, Keyframe, apply_ease, ease_out_cubic

Color = tuple[float, float, float, float]


class TextDeform(Enum):
    NONE = "None"
    ARC = "Arc"
    BULGE = "Bulge"
    WAVE = "Wave"
    FLAG = "Flag"


class TextFillMode(Enum):
    SOLID = "Solid"
    GRADIENT = "Gradient"
    IMAGE_TEXTURE = "ImageTexture"
    VIDEO_TEXTURE = "VideoTexture"


class BlendMode(Enum):
    NORMAL = "Normal"
    MULTIPLY = "Multiply"
    SCREEN = "Screen"
    OVERLAY = "Overlay"
    COLOR_DODGE = "ColorDodge"


class TrackMatte(Enum):
    NONE = "None"
    ALPHA = "Alpha"
    ALPHA_INVERTED = "AlphaInverted"
    LUMA = "Luma"
    LUMA_INVERTED = "LumaInverted"


class PathType(Enum):
    NONE = "None"
    CIRCLE = "Circle"
    STAR = "Star"
    CUSTOM = "Custom"


class MaskType(Enum):
    NONE = "None"
    STRAIGHT = "Straight"
    RECTANGLE = "Rectangle"
    CIRCLE = "Circle"


class TextAlign(Enum):
    LEFT = "Left"
    CENTER = "Center"
    RIGHT = "Right"


class LoopMode(Enum):
    NONE = "None"
    LOOP = "Loop"
    PING_PONG = "PingPong"


class WordAnimationKind(Enum):
    NONE = "None"
    KARAOKE_HIGHLIGHT = "KaraokeHighlight"
    KARAOKE_POP = "KaraokePop"
    CASCADE_FADE = "CascadeFade"


@dataclass
class GlitchSettings:
    enabled: bool = False
    rgb_split: float = 0.0
    intensity: float = 0.0
    scanlines: bool = False


@dataclass
class BloomSettings:
    enabled: bool = False
    intensity: float = 1.0
    radius: float = 20.0
    color: Color = (1.0, 1.0, 1.0, 1.0)


@dataclass
class StrokeProps:
    enabled: bool = True
    width: float = 4.0
    color: Color = (0.0, 0.0, 0.0, 1.0)


@dataclass
class PathNode:
    x: float
    y: float
    smooth: bool


@dataclass(frozen=True)
class WordAnimation:
    """Per-word karaoke effect; highlight carries a colour, pop a scale."""

    kind: WordAnimationKind = WordAnimationKind.NONE
    color: Color | None = None
    scale: float | None = None

    def __post_init__(self) -> None:
        if self.kind is WordAnimationKind.KARAOKE_HIGHLIGHT:
            if self.color is None or len(self.color) != 4 or self.scale is not None:
                raise ValueError("karaoke highlight needs a four-part colour and no scale")
            object.__setattr__(self, "color", tuple(float(c) for c in self.color))
        elif self.kind is WordAnimationKind.KARAOKE_POP:
            if self.scale is None or self.color is not None:
                raise ValueError("karaoke pop needs a scale and no colour")
            object.__setattr__(self, "scale", float(self.scale))
        elif self.color is not None or self.scale is not None:
            raise ValueError(f"{self.kind.value} word animation takes no parameters")

    def _to_json(self) -> Any:
        if self.kind is WordAnimationKind.KARAOKE_HIGHLIGHT:
            return {self.kind.value: {"color": list(self.color)}}
        if self.kind is WordAnimationKind.KARAOKE_POP:
            return {self.kind.value: {"scale": self.scale}}
        return self.kind.value

    @staticmethod
    def _from_json(data: Any) -> WordAnimation:
        if isinstance(data, str):
            kind = _enum(WordAnimationKind)(data)
            if kind in (WordAnimationKind.KARAOKE_HIGHLIGHT, WordAnimationKind.KARAOKE_POP):
                raise ValueError(f"{kind.value} needs parameters")
            return WordAnimation(kind)
        if isinstance(data, dict) and len(data) == 1:
            (name, payload), = data.items()
            kind = _enum(WordAnimationKind)(name)
            if not isinstance(payload, dict):
                raise ValueError(f"invalid word animation: {data!r}")
            if kind is WordAnimationKind.KARAOKE_HIGHLIGHT and set(payload) == {"color"}:
                return WordAnimation(kind, color=_floats(4)(payload["color"]))
            if kind is WordAnimationKind.KARAOKE_POP and set(payload) == {"scale"}:
                return WordAnimation(kind, scale=_float(payload["scale"]))
        raise ValueError(f"invalid word animation: {data!r}")


@dataclass
class SubtitleWord:
    text: str
    start: float
    end: float
    custom_color: Color | None = None


@dataclass
class PhysicsSettings:
    enabled: bool = False
    gravity: float = 2000.0
    bounce: float = 0.6
    floor_y: float = 400.0
    initial_velocity_x: float = 0.0
    initial_velocity_y: float = 0.0


@dataclass
class Expressions:
    x: str = ""
    y: str = ""
    scale: str = ""
    rotation: str = ""


def _parse_number(text: str, fallback: float) -> float:
    if "_" in text:
        return fallback
    try:
        return float(text)
    except ValueError:
        return fallback


def eval_expr(expr: str, t: float) -> float:
    """Evaluate a tiny expression: ``wiggle(freq,amp)`` or ``time*k``; anything else is 0."""
    s = expr.replace(" ", "").lower()
    if not s:
        return 0.0
    if s.startswith("wiggle("):
        if s.endswith(")"):
            parts = s[len("wiggle("):-1].split(",")
            if len(parts) == 2:
                freq = _parse_number(parts[0], 0.0)
                amp = _parse_number(parts[1], 0.0)
                p1 = math.sin(t * freq * 6.28318)
                p2 = math.cos(t * freq * 4.123 + 2.0)
                p3 = math.sin(t * freq * 2.5 + 4.0)
                return (p1 + p2 + p3) / 3.0 * amp
    elif s.startswith("time*"):
        rest = s
        while rest.startswith("time*"):
            rest = rest[len("time*"):]
        return t * _parse_number(rest, 1.0)
    return 0.0


def _floor_index(t: float) -> int:
    if math.isnan(t) or t <= 0.0:
        return 0
    if math.isinf(t):
        return sys.maxsize
    return int(t)


def _lerp(a: float, b: float, e: float) -> float:
    return a + (b - a) * e


@dataclass
class Subtitle:
    """A timed text clip with its transform, style and animation."""

    id: str
    text: str
    timeline_start: float
    timeline_end: float
    media_id: str | None = None
    parent_id: str | None = None
    x: float = 0.0
    y: float = 0.0
    scale: float = 1.0
    rotation: float = 0.0
    opacity: float = 1.0
    skew_x: float = 0.0
    skew_y: float = 0.0
    yaw: float = 0.0
    pitch: float = 0.0
    path_type: PathType = PathType.NONE
    path_scale_x: float = 100.0
    path_scale_y: float = 100.0
    path_orient: bool = False
    path_align_words: bool = False
    custom_path: list[PathNode] = field(default_factory=list)
    path_progress: float = 0.0
    mask_type: MaskType = MaskType.NONE
    mask_invert: bool = False
    mask_center: tuple[float, float] = (0.0, 0.0)
    mask_size: tuple[float, float] = (200.0, 200.0)
    mask_rotation: float = 0.0
    mask_feather: float = 0.0
    words: list[SubtitleWord] = field(default_factory=list)
    word_animation: WordAnimation = WordAnimation()
    font_size: float = 36.0
    bold: bool = False
    italic: bool = False
    color: Color = (1.0, 1.0, 1.0, 1.0)
    text_fill_mode: TextFillMode = TextFillMode.SOLID
    text_fill_path: str | None = None
    stroke_enabled: bool = False
    stroke_width: float = 2.0
    stroke_color: Color = (0.0, 0.0, 0.0, 1.0)
    additional_strokes_enabled: bool = False
    additional_strokes: list[StrokeProps] = field(default_factory=list)
    gradient_enabled: bool = False
    gradient_color: Color = (1.0, 0.8, 0.0, 1.0)
    shadow_enabled: bool = True
    shadow_offset: tuple[float, float] = (3.0, 3.0)
    shadow_blur: float = 6.0
    shadow_color: Color = (0.0, 0.0, 0.0, 0.7)
    bloom: BloomSettings = field(default_factory=BloomSettings)
    bg_box_enabled: bool = False
    bg_box_color: Color = (0.0, 0.0, 0.0, 0.6)
    bg_box_padding: float = 8.0
    bg_box_radius: Color = (0.0, 0.0, 0.0, 0.0)
    text_deform: TextDeform = TextDeform.NONE
    text_deform_amount: float = 0.0
    blend_mode: BlendMode = BlendMode.NORMAL
    track_matte: TrackMatte = TrackMatte.NONE
    glitch: GlitchSettings = field(default_factory=GlitchSettings)
    loop_mode: LoopMode = LoopMode.NONE
    physics: PhysicsSettings = field(default_factory=PhysicsSettings)
    expressions: Expressions = field(default_factory=Expressions)
    letter_spacing: float = 0.0
    text_align: TextAlign = TextAlign.CENTER
    motion_blur: float = 0.0
    keyframes: list[Keyframe] = field(default_factory=list)

    def duration(self) -> float:
        return self.timeline_end - self.timeline_start

    # ── Motion path ──────────────────────────────────────────────────────────

    def _star_point(self, i: int, n: int) -> tuple[float, float]:
        a = i * math.tau / n - math.pi / 2.0
        r = self.path_scale_x if i % 2 == 0 else self.path_scale_y
        return math.cos(a) * r, math.sin(a) * r

    def _custom_point(self, p: float) -> tuple[float, float]:
        pts = self.custom_path
        if not pts:
            return 0.0, 0.0
        if len(pts) == 1:
            return pts[0].x * self.path_scale_x, pts[0].y * self.path_scale_y
        n = len(pts) - 1
        t = p * n
        idx = min(_floor_index(t), n - 1)
        frac = t - idx
        p1, p2 = pts[idx], pts[idx + 1]
        if p1.smooth:
            p0 = pts[idx - 1] if idx > 0 else p1
            p3 = pts[idx + 2] if idx + 2 < len(pts) else p2
            t2 = frac * frac
            t3 = t2 * frac
            f0 = -0.5 * t3 + t2 - 0.5 * frac
            f1 = 1.5 * t3 - 2.5 * t2 + 1.0
            f2 = -1.5 * t3 + 2.0 * t2 + 0.5 * frac
            f3 = 0.5 * t3 - 0.5 * t2
            return (
                (p0.x * f0 + p1.x * f1 + p2.x * f2 + p3.x * f3) * self.path_scale_x,
                (p0.y * f0 + p1.y * f1 + p2.y * f2 + p3.y * f3) * self.path_scale_y,
            )
        return (
            _lerp(p1.x, p2.x, frac) * self.path_scale_x,
            _lerp(p1.y, p2.y, frac) * self.path_scale_y,
        )

    def _path_point(self, p: float) -> tuple[float, float]:
        if self.path_type is PathType.CIRCLE:
            a = p * math.tau
            return math.cos(a) * self.path_scale_x, math.sin(a) * self.path_scale_y
        if self.path_type is PathType.STAR:
            n = 10
            t = p * n
            idx = min(_floor_index(t), n - 1)
            frac = t - idx
            x1, y1 = self._star_point(idx, n)
            x2, y2 = self._star_point(idx + 1, n)
            return x1 + (x2 - x1) * frac, y1 + (y2 - y1) * frac
        if self.path_type is PathType.CUSTOM:
            return self._custom_point(p)
        return 0.0, 0.0

    def evaluate_path(self, p: float) -> tuple[float, float, float]:
        """Offset along the motion path at progress ``p`` and its heading in radians."""
        x, y = self._path_point(p)
        dp = 0.01
        ax, ay = self._path_point(p + dp) if p < 0.99 else (x, y)
        bx, by = self._path_point(p - dp) if p > 0.01 else (x, y)
        if 0.01 < p < 0.99:
            angle = math.atan2(ay - by, ax - bx)
        elif p < 0.99:
            angle = math.atan2(ay - y, ax - x)
        else:
            angle = math.atan2(y - by, x - bx)
        return x, y, angle

    # ── Interpolation ────────────────────────────────────────────────────────

    def _apply_keyframes(self, base: InterpolatedState, local_time: float) -> None:
        ordered = sorted(self.keyframes, key=lambda k: k.time_offset)
        first, last = ordered[0], ordered[-1]
        first_t, last_t = first.time_offset, last.time_offset
        kf_dur = last_t - first_t
        eval_time = local_time

        if kf_dur > 0.0 and local_time > last_t:
            elapsed = local_time - first_t
            if self.loop_mode is LoopMode.NONE:
                eval_time = last_t
            elif self.loop_mode is LoopMode.LOOP:
                eval_time = first_t + math.fmod(elapsed, kf_dur)
            else:
                cycle = math.floor(elapsed / kf_dur)
                rem = math.fmod(elapsed, kf_dur)
                eval_time = first_t + rem if cycle % 2 == 0 else last_t - rem
        elif local_time < first_t:
            eval_time = first_t

        for k1, k2 in zip(ordered, ordered[1:]):
            if k1.time_offset <= eval_time <= k2.time_offset:
                span = k2.time_offset - k1.time_offset
                raw = (eval_time - k1.time_offset) / span if span > 0.0 else 1.0
                e = apply_ease(raw, k2.easing)
                for name in (
                    "x", "y", "scale", "rotation", "opacity", "skew_x", "skew_y", "yaw",
                    "pitch", "path_progress", "mask_rotation", "mask_feather",
                ):
                    setattr(base, name, _lerp(getattr(k1, name), getattr(k2, name), e))
                base.mask_center = tuple(
                    _lerp(a, b, e) for a, b in zip(k1.mask_center, k2.mask_center)
                )
                base.mask_size = tuple(_lerp(a, b, e) for a, b in zip(k1.mask_size, k2.mask_size))
                return

        if eval_time <= first_t:
            held = first
        elif eval_time >= last_t:
            held = last
        else:
            return
        base.x, base.y, base.scale = held.x, held.y, held.scale
        base.rotation, base.opacity = held.rotation, held.opacity

    def _physics_offset(self, local_time: float) -> tuple[float, float]:
        dt = 1.0 / 60.0
        sim_t = 0.0
        px = py = 0.0
        vx = self.physics.initial_velocity_x
        vy = self.physics.initial_velocity_y
        gravity, bounce, floor = self.physics.gravity, self.physics.bounce, self.physics.floor_y
        while sim_t < local_time:
            vy += gravity * dt
            px += vx * dt
            py += vy * dt
            if py > floor:
                py = floor
                vy = -vy * bounce
                vx *= 0.95
            sim_t += dt
        return px, py

    def get_interpolated_state(
        self, current_time: float, all_subs: Sequence[Subtitle] = (), depth: int = 0
    ) -> InterpolatedState:
        """Resolve keyframes, expressions, physics and parenting at ``current_time``."""
        base = InterpolatedState(
            x=self.x, y=self.y, scale=self.scale, rotation=self.rotation, opacity=self.opacity,
            skew_x=self.skew_x, skew_y=self.skew_y, yaw=self.yaw, pitch=self.pitch,
            path_progress=self.path_progress,
            mask_center=tuple(self.mask_center), mask_size=tuple(self.mask_size),
            mask_rotation=self.mask_rotation, mask_feather=self.mask_feather,
        )
        local_time = current_time - self.timeline_start

        if self.keyframes:
            self._apply_keyframes(base, local_time)
        else:
            anim_dur = 0.08
            if 0.0 <= local_time < anim_dur:
                p = ease_out_cubic(local_time / anim_dur)
                base.scale *= 0.4 + p * 0.6
                base.opacity = p
            elif local_time < 0.0:
                base.opacity = 0.0

        base.x += eval_expr(self.expressions.x, local_time)
        base.y += eval_expr(self.expressions.y, local_time)
        base.scale += eval_expr(self.expressions.scale, local_time)
        base.rotation += eval_expr(self.expressions.rotation, local_time)

        if self.physics.enabled and local_time > 0.0:
            px, py = self._physics_offset(local_time)
            base.x += px
            base.y += py

        if depth < 5 and self.parent_id is not None:
            parent = next((s for s in all_subs if s.id == self.parent_id), None)
            if parent is not None:
                p_state = parent.get_interpolated_state(current_time, all_subs, depth + 1)
                base.x += p_state.x
                base.y += p_state.y
                base.scale *= p_state.scale
                base.rotation += p_state.rotation

        return base

    # ── Keyframe lookup ──────────────────────────────────────────────────────

    def keyframe_at(self, local_time: float) -> Keyframe | None:
        return next((k for k in self.keyframes if abs(k.time_offset - local_time) < 0.02), None)

    def has_keyframe_nearby(self, local_time: float) -> bool:
        return any(abs(k.time_offset - local_time) < 0.05 for k in self.keyframes)

    def prev_keyframe_time(self, local_time: float) -> float | None:
        earlier = [k.time_offset for k in self.keyframes if k.time_offset <= local_time - 0.02]
        return max(earlier, default=None)

    def next_keyframe_time(self, local_time: float) -> float | None:
        later = [k.time_offset for k in self.keyframes if k.time_offset > local_time + 0.02]
        return min(later, default=None)

    # ── Serialisation ────────────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        return {name: _to_json(getattr(self, name)) for name in _SUBTITLE_PARSERS}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Subtitle:
        if not isinstance(data, dict):
            raise ValueError(f"subtitle must be an object, got {data!r}")
        missing = [key for key in _SUBTITLE_REQUIRED if key not in data]
        if missing:
            raise ValueError(f"subtitle is missing fields: {', '.join(missing)}")
        kwargs = {
            name: parse(data[name]) for name, parse in _SUBTITLE_PARSERS.items() if name in data
        }
        for name, default in _SERIALISED_DEFAULTS.items():
            kwargs.setdefault(name, default)
        return Subtitle(**kwargs)


# ── JSON helpers ─────────────────────────────────────────────────────────────


def _to_json(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, WordAnimation):
        return value._to_json()
    if isinstance(value, Keyframe):
        return value.to_dict()
    if is_dataclass(value):
        return {f.name: _to_json(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, (list, tuple)):
        return [_to_json(v) for v in value]
    return value


def _float(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"expected a number, got {value!r}")
    return float(value)


def _boolean(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"expected a boolean, got {value!r}")
    return value


def _string(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError(f"expected a string, got {value!r}")
    return value


def _floats(count: int) -> Callable[[Any], tuple[float, ...]]:
    def parse(value: Any) -> tuple[float, ...]:
        if not isinstance(value, (list, tuple)) or len(value) != count:
            raise ValueError(f"expected {count} numbers, got {value!r}")
        return tuple(_float(v) for v in value)

    return parse


def _optional(parse: Callable[[Any], Any]) -> Callable[[Any], Any]:
    return lambda value: None if value is None else parse(value)


def _enum(cls: type[Enum]) -> Callable[[Any], Any]:
    def parse(value: Any) -> Any:
        try:
            return cls(value)
        except (ValueError, TypeError):
            raise ValueError(f"unknown {cls.__name__}: {value!r}") from None

    return parse


def _list_of(parse: Callable[[Any], Any]) -> Callable[[Any], list[Any]]:
    def parse_list(value: Any) -> list[Any]:
        if not isinstance(value, list):
            raise ValueError(f"expected a list, got {value!r}")
        return [parse(v) for v in value]

    return parse_list


def _record(
    cls: type, parsers: dict[str, Callable[[Any], Any]], optional: frozenset[str] = frozenset()
) -> Callable[[Any], Any]:
    def parse(data: Any) -> Any:
        if not isinstance(data, dict):
            raise ValueError(f"{cls.__name__} must be an object, got {data!r}")
        missing = [k for k in parsers if k not in data and k not in optional]
        if missing:
            raise ValueError(f"{cls.__name__} is missing fields: {', '.join(missing)}")
        return cls(**{k: p(data[k]) for k, p in parsers.items() if k in data})

    return parse


def _keyframe(data: Any) -> Keyframe:
    if not isinstance(data, dict):
        raise ValueError(f"keyframe must be an object, got {data!r}")
    return Keyframe.from_dict(data)


_COLOR = _floats(4)
_VEC2 = _floats(2)

_parse_glitch = _record(
    GlitchSettings,
    {"enabled": _boolean, "rgb_split": _float, "intensity": _float, "scanlines": _boolean},
)
_parse_bloom = _record(
    BloomSettings,
    {"enabled": _boolean, "intensity": _float, "radius": _float, "color": _COLOR},
)
_parse_stroke = _record(StrokeProps, {"enabled": _boolean, "width": _float, "color": _COLOR})
_parse_path_node = _record(PathNode, {"x": _float, "y": _float, "smooth": _boolean})
_parse_word = _record(
    SubtitleWord,
    {"text": _string, "start": _float, "end": _float, "custom_color": _optional(_COLOR)},
    optional=frozenset({"custom_color"}),
)
_parse_physics = _record(
    PhysicsSettings,
    {
        "enabled": _boolean, "gravity": _float, "bounce": _float, "floor_y": _float,
        "initial_velocity_x": _float, "initial_velocity_y": _float,
    },
)
_parse_expressions = _record(
    Expressions, {"x": _string, "y": _string, "scale": _string, "rotation": _string}
)

_SUBTITLE_PARSERS: dict[str, Callable[[Any], Any]] = {
    "id": _string,
    "media_id": _optional(_string),
    "text": _string,
    "timeline_start": _float,
    "timeline_end": _float,
    "parent_id": _optional(_string),
    "x": _float,
    "y": _float,
    "scale": _float,
    "rotation": _float,
    "opacity": _float,
    "skew_x": _float,
    "skew_y": _float,
    "yaw": _float,
    "pitch": _float,
    "path_type": _enum(PathType),
    "path_scale_x": _float,
    "path_scale_y": _float,
    "path_orient": _boolean,
    "path_align_words": _boolean,
    "custom_path": _list_of(_parse_path_node),
    "path_progress": _float,
    "mask_type": _enum(MaskType),
    "mask_invert": _boolean,
    "mask_center": _VEC2,
    "mask_size": _VEC2,
    "mask_rotation": _float,
    "mask_feather": _float,
    "words": _list_of(_parse_word),
    "word_animation": WordAnimation._from_json,
    "font_size": _float,
    "bold": _boolean,
    "italic": _boolean,
    "color": _COLOR,
    "text_fill_mode": _enum(TextFillMode),
    "text_fill_path": _optional(_string),
    "stroke_enabled": _boolean,
    "stroke_width": _float,
    "stroke_color": _COLOR,
    "additional_strokes_enabled": _boolean,
    "additional_strokes": _list_of(_parse_stroke),
    "gradient_enabled": _boolean,
    "gradient_color": _COLOR,
    "shadow_enabled": _boolean,
    "shadow_offset": _VEC2,
    "shadow_blur": _float,
    "shadow_color": _COLOR,
    "bloom": _parse_bloom,
    "bg_box_enabled": _boolean,
    "bg_box_color": _COLOR,
    "bg_box_padding": _float,
    "bg_box_radius": _COLOR,
    "text_deform": _enum(TextDeform),
    "text_deform_amount": _float,
    "blend_mode": _enum(BlendMode),
    "track_matte": _enum(TrackMatte),
    "glitch": _parse_glitch,
    "loop_mode": _enum(LoopMode),
    "physics": _parse_physics,
    "expressions": _parse_expressions,
    "letter_spacing": _float,
    "text_align": _enum(TextAlign),
    "motion_blur": _float,
    "keyframes": _list_of(_keyframe),
}

_SUBTITLE_REQUIRED = (
    "id", "text", "timeline_start", "timeline_end", "x", "y", "scale", "rotation",
    "opacity", "font_size", "bold", "italic", "color", "keyframes",
)

# Stored projects that omit these fields load with different values than new clips get.
_SERIALISED_DEFAULTS = {"shadow_enabled": False, "bg_box_padding": 0.0}