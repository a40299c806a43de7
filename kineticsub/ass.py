"""Advanced SubStation Alpha output: colour helpers and frame-baked subtitle scripts."""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Sequence

from kineticsub.animation import InterpolatedState
from kineticsub.project import Project
from kineticsub.subtitle import MaskType, Subtitle, WordAnimationKind

_HEADER = (
    "[Script Info]\n"
    "ScriptType: v4.00+\n"
    "PlayResX: {res_w}\n"
    "PlayResY: {res_h}\n"
    "WrapStyle: 0\n"
    "ScaledBorderAndShadow: yes\n\n"
    "[V4+ Styles]\n"
    "Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, "
    "BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, "
    "BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding\n"
    "Style: Default,Arial,36,&H00FFFFFF,&H000000FF,&H00000000,&H80000000,0,0,0,0,100,100,"
    "0,0,1,2,2,5,0,0,0,1\n\n"
    "[Events]\n"
    "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text\n"
)

_KARAOKE_POP_COLOR = (1.0, 1.0, 0.0, 1.0)


def _to_byte(value: float) -> int:
    if math.isnan(value):
        return 0
    return int(min(max(value, 0.0), 255.0))


def _to_u32(value: float) -> int:
    if math.isnan(value) or value <= 0.0:
        return 0
    if math.isinf(value):
        return 0xFFFFFFFF
    return min(int(value), 0xFFFFFFFF)


def _rgb(c: Sequence[float]) -> tuple[int, int, int]:
    return _to_byte(c[0] * 255.0), _to_byte(c[1] * 255.0), _to_byte(c[2] * 255.0)


def color_to_ffmpeg_hex(c: Sequence[float]) -> str:
    """Colour as an ffmpeg ``0xRRGGBB`` literal; alpha is ignored."""
    r, g, b = _rgb(c)
    return f"0x{r:02X}{g:02X}{b:02X}"


def format_time(secs: float) -> str:
    """Timestamp in the ``H:MM:SS.cc`` form used by dialogue lines."""
    h = _to_u32(secs / 3600.0)
    m = _to_u32(math.fmod(secs, 3600.0) / 60.0)
    s = math.fmod(secs, 60.0)
    return f"{h}:{m:02d}:{s:05.2f}"


def color_to_ass(c: Sequence[float]) -> str:
    """Colour as an override-tag value ``&H00BBGGRR&``."""
    r, g, b = _rgb(c)
    return f"&H00{b:02X}{g:02X}{r:02X}&"


def alpha_to_ass(opacity: float) -> str:
    """Opacity as an inverted alpha value ``&HAA&`` (00 is opaque)."""
    scaled = opacity * 255.0
    clamped = scaled if math.isnan(scaled) else min(max(scaled, 0.0), 255.0)
    return f"&H{_to_byte(255.0 - clamped):02X}&"


def _polygon(points: Sequence[tuple[float, float]]) -> str:
    out = ["m "]
    for i, (px, py) in enumerate(points):
        if i == 1:
            out.append("l ")
        out.append(f"{px:.1f} {py:.1f} ")
    return "".join(out)


def _mask_tag(
    sub: Subtitle, state: InterpolatedState, base_x: float, base_y: float, feather_expand: float
) -> str:
    tag_name = "\\iclip" if sub.mask_invert else "\\clip"
    mx = base_x + state.mask_center[0]
    my = base_y + state.mask_center[1]
    rot = math.radians(state.mask_rotation)
    cos_r, sin_r = math.cos(rot), math.sin(rot)

    def rot_pt(dx: float, dy: float) -> tuple[float, float]:
        return mx + dx * cos_r - dy * sin_r, my + dx * sin_r + dy * cos_r

    if sub.mask_type is MaskType.RECTANGLE:
        hw = state.mask_size[0] / 2.0 + feather_expand
        hh = state.mask_size[1] / 2.0 + feather_expand
        points = [rot_pt(-hw, -hh), rot_pt(hw, -hh), rot_pt(hw, hh), rot_pt(-hw, hh)]
    elif sub.mask_type is MaskType.STRAIGHT:
        dist = 10000.0
        ex = feather_expand
        points = [rot_pt(-dist, -ex), rot_pt(dist, -ex), rot_pt(dist, dist), rot_pt(-dist, dist)]
    elif sub.mask_type is MaskType.CIRCLE:
        r = max(state.mask_size[0], 0.1) + feather_expand
        segments = 16
        points = [
            (mx + math.cos(a) * r, my + math.sin(a) * r)
            for a in (i / segments * math.tau for i in range(segments))
        ]
    else:
        return ""
    return f"{tag_name}(1,{_polygon(points)})"


def build_static_ass_tags(
    sub: Subtitle, state: InterpolatedState, res_w: int, res_h: int, feather_expand: float
) -> str:
    """Override tags that place and style ``sub`` in one frame's ``state``."""
    base_x = res_w / 2.0 + state.x
    base_y = res_h / 2.0 + state.y
    scale_pct = state.scale * 100.0
    tags = [
        "\\an5",
        f"\\pos({base_x:.1f},{base_y:.1f})",
        f"\\fs{sub.font_size:.1f}",
        f"\\fscx{scale_pct:.1f}\\fscy{scale_pct:.1f}",
        f"\\frz{-state.rotation:.1f}",
    ]
    if state.pitch != 0.0:
        tags.append(f"\\frx{state.pitch:.1f}")
    if state.yaw != 0.0:
        tags.append(f"\\fry{state.yaw:.1f}")
    if state.skew_x != 0.0:
        tags.append(f"\\fax{state.skew_x:.2f}")
    if state.skew_y != 0.0:
        tags.append(f"\\fay{state.skew_y:.2f}")
    tags.append(f"\\alpha{alpha_to_ass(state.opacity)}")
    if sub.bold:
        tags.append("\\b1")
    if sub.italic:
        tags.append("\\i1")
    tags.append(f"\\c{color_to_ass(sub.color)}")

    if sub.stroke_enabled:
        tags.append(f"\\bord{sub.stroke_width * state.scale:.1f}")
        tags.append(f"\\3c{color_to_ass(sub.stroke_color)}")
    else:
        tags.append("\\bord0")

    if sub.shadow_enabled:
        shadow = max(abs(sub.shadow_offset[0]), abs(sub.shadow_offset[1])) * state.scale
        tags.append(f"\\shad{shadow:.1f}")
        tags.append(f"\\4c{color_to_ass(sub.shadow_color)}")
    else:
        tags.append("\\shad0")

    if sub.mask_type is not MaskType.NONE:
        tags.append(_mask_tag(sub, state, base_x, base_y, feather_expand))
    return "".join(tags)


def _formatted_text(sub: Subtitle, state: InterpolatedState, t: float) -> str:
    if not sub.words or len(sub.words) != len(sub.text.split()):
        return sub.text.replace("\n", "\\N")
    anim = sub.word_animation
    parts = []
    for word in sub.words:
        active = word.start <= t <= word.end
        color = sub.color
        word_scale = 1.0
        alpha = state.opacity
        if anim.kind is WordAnimationKind.KARAOKE_HIGHLIGHT:
            if active:
                color = anim.color
        elif anim.kind is WordAnimationKind.KARAOKE_POP:
            if active:
                word_scale = anim.scale
                color = _KARAOKE_POP_COLOR
        elif anim.kind is WordAnimationKind.CASCADE_FADE:
            if t < word.start:
                alpha = 0.0
            elif active:
                alpha = state.opacity * ((t - word.start) / max(word.end - word.start, 0.01))
        if word.custom_color is not None:
            color = word.custom_color
        size = state.scale * 100.0 * word_scale
        parts.append(
            f"{{\\alpha{alpha_to_ass(alpha)}\\c{color_to_ass(color)}"
            f"\\fscx{size:.1f}\\fscy{size:.1f}}}{word.text}"
        )
    return " ".join(parts)


def _stage_lines(
    sub: Subtitle,
    state: InterpolatedState,
    t_start: float,
    t_end: float,
    opacity_mult: float,
    feather_expand: float,
    res_w: int,
    res_h: int,
) -> list[str]:
    st = replace(state)
    px, py, heading = sub.evaluate_path(st.path_progress)
    st.x += px
    st.y += py
    if sub.path_orient:
        st.rotation += math.degrees(heading)
    st.opacity *= opacity_mult
    if st.opacity <= 0.01:
        return []

    tags = build_static_ass_tags(sub, st, res_w, res_h, feather_expand)
    text = _formatted_text(sub, st, t_start)
    start, end = format_time(t_start), format_time(t_end)

    def dialogue(line_tags: str) -> str:
        return f"Dialogue: 0,{start},{end},Default,,0,0,0,,{{{line_tags}}}{text}\n"

    alpha_tag = f"\\alpha{alpha_to_ass(st.opacity)}"
    color_tag = f"\\c{color_to_ass(sub.color)}"
    lines = []

    if sub.bloom.enabled:
        passes = 3
        for i in range(1, passes + 1):
            blur_amt = sub.bloom.radius / passes * i
            alpha_factor = 1.0 - i / passes
            bloom_alpha = st.opacity * sub.bloom.intensity * alpha_factor * 0.5
            bloom_tags = tags.replace(alpha_tag, f"\\alpha{alpha_to_ass(bloom_alpha)}")
            bloom_tags = bloom_tags.replace(color_tag, f"\\c{color_to_ass(sub.bloom.color)}")
            bloom_tags += f"\\blur{blur_amt:.1f}\\bord0\\shad0"
            lines.append(dialogue(bloom_tags))

    if sub.additional_strokes_enabled:
        for stroke in sorted(sub.additional_strokes, key=lambda s: s.width, reverse=True):
            if stroke.enabled:
                stroke_color = color_to_ass(stroke.color)
                stroke_tags = tags.replace(color_tag, f"\\c{stroke_color}")
                stroke_tags += f"\\bord{stroke.width * st.scale:.1f}\\3c{stroke_color}\\shad0"
                lines.append(dialogue(stroke_tags))

    lines.append(dialogue(tags))

    if sub.glitch.enabled and sub.glitch.rgb_split > 0.0:
        split = sub.glitch.rgb_split
        faded_alpha = f"\\alpha{alpha_to_ass(st.opacity * 0.7)}"
        base_x = res_w / 2.0 + st.x
        base_y = res_h / 2.0 + st.y
        pos_tag = f"\\pos({base_x:.1f},{base_y:.1f})"
        for channel_color, dx in (("\\c&H0000FF&", -split), ("\\c&HFFFF00&", split)):
            split_tags = tags.replace(color_tag, channel_color).replace(alpha_tag, faded_alpha)
            split_tags = split_tags.replace(pos_tag, f"\\pos({base_x + dx:.1f},{base_y:.1f})")
            lines.append(dialogue(split_tags))
    return lines


def _subtitle_frame_lines(
    sub: Subtitle, project: Project, t_start: float, t_end: float, res_w: int, res_h: int
) -> list[str]:
    state = sub.get_interpolated_state(t_start, project.subtitles, 0)
    if state.opacity <= 0.01:
        return []

    blur_steps = 3 if sub.motion_blur > 0.0 else 0
    feather_steps = 4 if sub.mask_feather > 0.0 and sub.mask_type is not MaskType.NONE else 0
    lines: list[str] = []

    for b_step in range(blur_steps, -1, -1):
        blur_t = t_start - b_step * 0.02 * sub.motion_blur
        if blur_t < sub.timeline_start and b_step > 0:
            continue
        base_state = sub.get_interpolated_state(blur_t, project.subtitles, 0)
        base_op = 0.25 if b_step > 0 else 1.0
        if feather_steps == 0:
            lines += _stage_lines(sub, base_state, t_start, t_end, base_op, 0.0, res_w, res_h)
            continue
        for f_step in range(feather_steps, -1, -1):
            f_pct = f_step / feather_steps
            if f_step == 0:
                mult, expand = base_op, 0.0
            else:
                mult, expand = base_op * (1.0 - f_pct) ** 2, f_pct * sub.mask_feather
            lines += _stage_lines(sub, base_state, t_start, t_end, mult, expand, res_w, res_h)
    return lines


def generate_ass_baked(project: Project, fps: float, res_w: int, res_h: int) -> str:
    """A complete script with one dialogue line per subtitle pass per frame."""
    out = [_HEADER.format(res_w=res_w, res_h=res_h)]
    dt = 1.0 / fps
    total_frames = _to_u32(math.ceil(project.duration * fps))
    for frame in range(total_frames + 1):
        t_start = frame * dt
        t_end = t_start + dt + 0.01
        for sub in project.subtitles:
            if t_end > sub.timeline_start and t_start < sub.timeline_end:
                out.extend(_subtitle_frame_lines(sub, project, t_start, t_end, res_w, res_h))
    return "".join(out)