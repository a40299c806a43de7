import re

import pytest

from kineticsub.animation import InterpolatedState
from kineticsub.ass import (
    alpha_to_ass,
    build_static_ass_tags,
    color_to_ass,
    color_to_ffmpeg_hex,
    format_time,
    generate_ass_baked,
)
from kineticsub.project import Project
from kineticsub.subtitle import (
    BloomSettings,
    GlitchSettings,
    MaskType,
    Subtitle,
    SubtitleWord,
    WordAnimation,
    WordAnimationKind,
)


def _state(**changes):
    values = dict(
        x=0.0, y=0.0, scale=1.0, rotation=0.0, opacity=1.0, skew_x=0.0, skew_y=0.0,
        yaw=0.0, pitch=0.0, path_progress=0.0, mask_center=(0.0, 0.0),
        mask_size=(200.0, 200.0), mask_rotation=0.0, mask_feather=0.0,
    )
    values.update(changes)
    return InterpolatedState(**values)


def _sub(**changes):
    return Subtitle(id="s1", text="Hello", timeline_start=0.0, timeline_end=1.0, **changes)


def _dialogues(script):
    return [line for line in script.splitlines() if line.startswith("Dialogue:")]


def _parse_time(text):
    h, m, s = text.split(":")
    return int(h) * 3600 + int(m) * 60 + float(s)


def test_white_matches_default_style_colour():
    assert color_to_ass((1.0, 1.0, 1.0, 1.0)) == "&H00FFFFFF&"


def test_alpha_extremes():
    assert alpha_to_ass(1.0) == "&H00&"
    assert alpha_to_ass(0.0) == "&HFF&"


@pytest.mark.parametrize(
    "color", [(1.0, 0.0, 0.0, 1.0), (0.2, 0.5, 0.9, 1.0), (0.0, 0.3, 1.0, 0.5)]
)
def test_ass_colour_is_ffmpeg_colour_reversed(color):
    hex_rgb = color_to_ffmpeg_hex(color)[2:]
    ass = color_to_ass(color)
    assert ass.startswith("&H00") and ass.endswith("&")
    assert ass[4:10] == hex_rgb[4:6] + hex_rgb[2:4] + hex_rgb[0:2]


def test_colours_are_clamped():
    assert color_to_ass((2.0, -1.0, 0.5, 1.0)) == color_to_ass((1.0, 0.0, 0.5, 1.0))
    assert color_to_ffmpeg_hex((5.0, 5.0, 5.0, 1.0)) == color_to_ffmpeg_hex((1.0, 1.0, 1.0, 1.0))
    assert alpha_to_ass(3.0) == alpha_to_ass(1.0)
    assert alpha_to_ass(-2.0) == alpha_to_ass(0.0)


def test_alpha_decreases_with_opacity():
    values = [int(alpha_to_ass(o / 10)[2:4], 16) for o in range(11)]
    assert values == sorted(values, reverse=True)


@pytest.mark.parametrize("secs", [0.0, 0.5, 59.99, 61.25, 3599.5, 3723.4])
def test_format_time_round_trip(secs):
    text = format_time(secs)
    assert re.fullmatch(r"\d+:\d{2}:\d{2}\.\d{2}", text)
    assert _parse_time(text) == pytest.approx(secs, abs=0.006)


def test_static_tags_basic_layout():
    tags = build_static_ass_tags(_sub(), _state(x=10.0, y=-20.0), 1920, 1080, 0.0)
    assert tags.startswith("\\an5")
    assert f"\\pos({960 + 10.0:.1f},{540 - 20.0:.1f})" in tags
    assert f"\\alpha{alpha_to_ass(1.0)}" in tags
    assert f"\\c{color_to_ass((1.0, 1.0, 1.0, 1.0))}" in tags
    assert "\\bord0" in tags
    assert "\\clip" not in tags


def test_static_tags_stroke_and_shadow_toggles():
    plain = build_static_ass_tags(_sub(shadow_enabled=False), _state(), 100, 100, 0.0)
    assert "\\shad0" in plain and "\\4c" not in plain
    stroked = build_static_ass_tags(_sub(stroke_enabled=True), _state(), 100, 100, 0.0)
    assert "\\3c" in stroked and "\\bord0" not in stroked
    assert "\\shad0" not in stroked and "\\4c" in stroked


def test_static_tags_optional_3d_tags_only_when_set():
    flat = build_static_ass_tags(_sub(), _state(), 100, 100, 0.0)
    assert "\\frx" not in flat and "\\fry" not in flat and "\\fax" not in flat
    tilted = build_static_ass_tags(_sub(), _state(pitch=15.0, skew_x=0.25), 100, 100, 0.0)
    assert "\\frx15.0" in tilted
    assert "\\fax0.25" in tilted


def _clip_points(tags):
    match = re.search(r"\\i?clip\(1,m (.*)\)", tags)
    numbers = [float(v) for v in match.group(1).replace("l ", "").split()]
    return list(zip(numbers[0::2], numbers[1::2]))


def test_rectangle_mask_polygon():
    sub = _sub(mask_type=MaskType.RECTANGLE)
    tags = build_static_ass_tags(sub, _state(mask_size=(100.0, 40.0)), 200, 200, 0.0)
    points = _clip_points(tags)
    assert len(points) == 4
    xs = sorted({p[0] for p in points})
    ys = sorted({p[1] for p in points})
    assert xs == [50.0, 150.0]
    assert ys == [80.0, 120.0]


def test_feather_expands_rectangle_and_invert_uses_iclip():
    sub = _sub(mask_type=MaskType.RECTANGLE, mask_invert=True)
    narrow = _clip_points(build_static_ass_tags(sub, _state(), 200, 200, 0.0))
    wide = _clip_points(build_static_ass_tags(sub, _state(), 200, 200, 5.0))
    tags = build_static_ass_tags(sub, _state(), 200, 200, 0.0)
    assert "\\iclip(" in tags
    assert max(p[0] for p in wide) == pytest.approx(max(p[0] for p in narrow) + 5.0)


def test_circle_mask_has_sixteen_points_on_radius():
    sub = _sub(mask_type=MaskType.CIRCLE)
    points = _clip_points(build_static_ass_tags(sub, _state(mask_size=(50.0, 50.0)), 200, 200, 0.0))
    assert len(points) == 16
    for px, py in points:
        assert ((px - 100) ** 2 + (py - 100) ** 2) ** 0.5 == pytest.approx(50.0, abs=0.1)


def test_script_header_and_empty_project():
    script = generate_ass_baked(Project(duration=1.0), 10.0, 1280, 720)
    assert script.startswith("[Script Info]\n")
    assert "PlayResX: 1280\n" in script
    assert "PlayResY: 720\n" in script
    assert "[Events]" in script
    assert _dialogues(script) == []


def test_dialogue_lines_have_ordered_times_within_subtitle():
    project = Project(duration=1.0, subtitles=[_sub()])
    lines = _dialogues(generate_ass_baked(project, 10.0, 1920, 1080))
    assert lines
    for line in lines:
        fields = line.split(",", 9)
        start, end = _parse_time(fields[1]), _parse_time(fields[2])
        assert end > start
        assert start < 1.0
        assert line.endswith("Hello")


def test_bloom_adds_three_passes_per_line():
    plain = Project(duration=1.0, subtitles=[_sub()])
    bloomed = Project(duration=1.0, subtitles=[_sub(bloom=BloomSettings(enabled=True))])
    plain_lines = _dialogues(generate_ass_baked(plain, 10.0, 1920, 1080))
    bloom_lines = _dialogues(generate_ass_baked(bloomed, 10.0, 1920, 1080))
    assert len(bloom_lines) == 4 * len(plain_lines)
    assert sum("\\blur" in line for line in bloom_lines) == 3 * len(plain_lines)


def test_glitch_adds_two_shifted_lines():
    sub = _sub(glitch=GlitchSettings(enabled=True, rgb_split=6.0))
    lines = _dialogues(generate_ass_baked(Project(duration=1.0, subtitles=[sub]), 10.0, 200, 200))
    plain = _dialogues(
        generate_ass_baked(Project(duration=1.0, subtitles=[_sub()]), 10.0, 200, 200)
    )
    assert len(lines) == 3 * len(plain)
    assert any("\\pos(94.0,100.0)" in line for line in lines)
    assert any("\\pos(106.0,100.0)" in line for line in lines)


def test_newlines_become_hard_breaks():
    sub = Subtitle(id="s1", text="one\ntwo", timeline_start=0.0, timeline_end=1.0)
    lines = _dialogues(generate_ass_baked(Project(duration=1.0, subtitles=[sub]), 10.0, 100, 100))
    assert lines
    assert all(line.endswith("one\\Ntwo") for line in lines)


def test_subtitle_outside_range_produces_nothing():
    sub = Subtitle(id="late", text="Late", timeline_start=5.0, timeline_end=6.0)
    script = generate_ass_baked(Project(duration=1.0, subtitles=[sub]), 10.0, 100, 100)
    assert _dialogues(script) == []