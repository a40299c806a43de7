import json

import pytest

from kineticsub.animation import Easing, Keyframe
from kineticsub.project import MediaFile, Project
from kineticsub.subtitle import Subtitle


def sample_project():
    sub = Subtitle("sub_0", "Hello there", 0.5, 2.5, media_id="media_1")
    sub.keyframes = [
        Keyframe(id="kf_a", time_offset=0.0, x=0.0, y=0.0, scale=1.0, rotation=0.0,
                 opacity=0.0, easing=Easing())
    ]
    return Project(
        name="Demo",
        media_files=[
            MediaFile("media_1", "voice.wav", "/tmp/voice.wav", 0.0, 60.0, True),
            MediaFile("bg_1", "Solid Background", "", 0.0, 10.0, True, True, (0.05, 0.05, 0.05, 1.0)),
        ],
        subtitles=[sub],
        duration=60.0,
        resolution=(1280, 720),
        fps=24,
    )


def test_default_project():
    project = Project()
    assert project.name == "Untitled"
    assert project.duration == 10.0
    assert project.resolution == (1920, 1080)
    assert project.fps == 30
    assert project.media_files == [] and project.subtitles == []


def test_json_round_trip():
    project = sample_project()
    assert Project.from_json(project.to_json()) == project


def test_dict_round_trip():
    project = sample_project()
    assert Project.from_dict(project.to_dict()) == project


def test_resolution_serialised_as_list():
    data = json.loads(sample_project().to_json())
    assert data["resolution"] == [1280, 720]
    assert data["fps"] == 24


def test_pretty_json_layout():
    text = Project().to_json()
    assert text.startswith('{\n  "name": "Untitled"')


def test_missing_resolution_and_fps_use_defaults():
    data = Project(name="Old").to_dict()
    del data["resolution"]
    del data["fps"]
    project = Project.from_dict(data)
    assert project.resolution == (1920, 1080)
    assert project.fps == 30


def test_missing_name_raises():
    data = Project().to_dict()
    del data["name"]
    with pytest.raises(ValueError):
        Project.from_dict(data)


@pytest.mark.parametrize("fps", [-1, 29.97, True])
def test_invalid_fps_raises(fps):
    data = Project().to_dict()
    data["fps"] = fps
    with pytest.raises(ValueError):
        Project.from_dict(data)


def test_media_file_optional_fields_default():
    media = MediaFile.from_dict({
        "id": "media_1", "name": "a.mp3", "path": "/tmp/a.mp3",
        "timeline_offset": 0.0, "duration": 60.0, "on_timeline": False,
    })
    assert media.is_video_track is False
    assert media.color is None


def test_media_file_round_trip():
    media = MediaFile("bg_1", "Solid Background", "", 1.5, 10.0, True, True, (0.05, 0.05, 0.05, 1.0))
    assert MediaFile.from_dict(media.to_dict()) == media


def test_media_file_bad_color_raises():
    data = MediaFile("m", "n", "p", 0.0, 1.0, True).to_dict()
    data["color"] = [1.0, 0.0]
    with pytest.raises(ValueError):
        MediaFile.from_dict(data)


def test_invalid_json_raises():
    with pytest.raises(ValueError):
        Project.from_json("{not json")
    with pytest.raises(ValueError):
        Project.from_json("[1, 2]")