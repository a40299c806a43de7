import time

import pytest

from kineticsub.media import MediaMixin, TranscribeMode, words_to_subtitles
from kineticsub.project import MediaFile, Project
from kineticsub.subtitle import Subtitle
from kineticsub.transcription import (
    DownloadProgress,
    RawWord,
    Transcribing,
    TranscriptionDone,
)


class Host(MediaMixin):
    def __init__(self):
        self.project = Project()
        self.snapshots = 0
        self.modified = False
        self.duration_updates = 0

    def update_duration(self):
        self.duration_updates += 1

    def snapshot(self):
        self.snapshots += 1

    def mark_modified(self):
        self.modified = True

    def sort_subtitles(self):
        self.project.subtitles.sort(key=lambda s: s.timeline_start)


def _audio(media_id="a1", offset=0.0, on_timeline=True):
    return MediaFile(
        id=media_id, name="a.wav", path="a.wav", timeline_offset=offset,
        duration=60.0, on_timeline=on_timeline,
    )


def _run_until_done(host, timeout=5.0):
    statuses = []
    deadline = time.monotonic() + timeout
    while host.whisper_is_running() and time.monotonic() < deadline:
        host.poll_whisper()
        if not statuses or statuses[-1] != host.whisper_status:
            statuses.append(host.whisper_status)
        time.sleep(0.001)
    return statuses


def test_word_mode_one_subtitle_per_word():
    words = [RawWord("Hi", 0.0, 0.5), RawWord("there", 0.5, 1.0)]
    subs, next_id = words_to_subtitles(words, 2.0, "m", TranscribeMode.WORD, 7)
    assert [s.id for s in subs] == ["sub_7", "sub_8"]
    assert next_id == 9
    assert [s.text for s in subs] == ["Hi", "there"]
    assert subs[0].timeline_start == pytest.approx(2.0)
    assert subs[1].timeline_end == pytest.approx(3.0)
    assert all(s.media_id == "m" for s in subs)
    assert all(not s.words for s in subs)


def test_phrase_mode_breaks_on_punctuation():
    words = [
        RawWord("Hello", 0.0, 0.3), RawWord("world.", 0.3, 0.6),
        RawWord("Next", 0.7, 0.9), RawWord("one", 0.9, 1.2),
    ]
    subs, next_id = words_to_subtitles(words, 0.0, "m", TranscribeMode.PHRASE, 0)
    assert [s.text for s in subs] == ["Hello world.", "Next one"]
    assert next_id == 2
    assert [w.text for w in subs[0].words] == ["Hello", "world."]
    assert subs[0].timeline_start == pytest.approx(0.0)
    assert subs[0].timeline_end == pytest.approx(0.6)


def test_phrase_mode_breaks_on_gap():
    words = [RawWord("a", 0.0, 0.2), RawWord("b", 1.0, 1.2)]
    subs, _ = words_to_subtitles(words, 0.0, "m", TranscribeMode.PHRASE, 0)
    assert [s.text for s in subs] == ["a", "b"]


def test_phrase_mode_limits_words_per_phrase():
    words = [RawWord(f"w{i}", i * 0.1, i * 0.1 + 0.1) for i in range(8)]
    subs, _ = words_to_subtitles(words, 0.0, "m", TranscribeMode.PHRASE, 0)
    assert [len(s.words) for s in subs] == [6, 2]
    assert sum(len(s.text.split()) for s in subs) == 8


def test_import_audio_adds_media_off_timeline(tmp_path):
    host = Host()
    media = MediaMixin.import_audio(host, tmp_path / "voice.mp3")
    assert host.project.media_files == [media]
    assert media.name == "voice.mp3"
    assert media.id.startswith("media_")
    assert media.duration == 60.0
    assert media.on_timeline is False
    assert host.snapshots == 1


def test_add_solid_bg():
    host = Host()
    host.project.duration = 25.0
    media = MediaMixin.add_solid_bg(host)
    assert media.name == "Solid Background"
    assert media.is_video_track and media.on_timeline
    assert media.color == (0.05, 0.05, 0.05, 1.0)
    assert media.duration == 25.0
    assert media.id.startswith("bg_")
    assert host.project.media_files == [media]


def test_toggle_media_timeline():
    host = Host()
    host.project.media_files.append(_audio(on_timeline=False))
    host.toggle_media_timeline("a1")
    assert host.project.media_files[0].on_timeline is True
    host.toggle_media_timeline("a1")
    assert host.project.media_files[0].on_timeline is False
    assert host.snapshots == 2


def test_move_media_moves_attached_subtitles_by_actual_delta():
    host = Host()
    host.project.media_files.append(_audio(offset=1.0))
    attached = Subtitle(id="s1", text="x", timeline_start=2.0, timeline_end=3.0, media_id="a1")
    other = Subtitle(id="s2", text="y", timeline_start=2.0, timeline_end=3.0)
    host.project.subtitles += [attached, other]
    host.move_media(0, -5.0)
    assert host.project.media_files[0].timeline_offset == 0.0
    assert attached.timeline_start == pytest.approx(1.0)
    assert attached.timeline_end == pytest.approx(2.0)
    assert other.timeline_start == 2.0
    assert host.modified


def test_move_media_out_of_range_is_ignored():
    host = Host()
    MediaMixin.move_media(host, 3, 1.0)
    assert host.modified is False
    assert host.duration_updates == 0
    assert host.project.media_files == []


def test_transcription_refused_for_video_or_off_timeline():
    host = Host()
    host.project.media_files.append(_audio("off", on_timeline=False))
    bg = host.add_solid_bg()
    assert host.start_auto_transcription("off", lambda p, send: None) is False
    assert host.start_auto_transcription(bg.id, lambda p, send: None) is False
    assert host.start_auto_transcription("missing", lambda p, send: None) is False
    assert host.whisper_is_running() is False


def test_transcription_flow_creates_subtitles():
    host = Host()
    host.transcribe_mode = TranscribeMode.WORD
    host.project.media_files.append(_audio(offset=2.0))
    host.project.subtitles.append(
        Subtitle(id="old", text="old", timeline_start=0.0, timeline_end=1.0, media_id="a1")
    )
    seen_paths = []

    def transcriber(path, send):
        seen_paths.append(path)
        send(DownloadProgress(50, 100))
        send(Transcribing())
        send(TranscriptionDone([RawWord("Hi", 0.0, 0.5), RawWord("you", 0.5, 1.0)], 12.5))

    assert host.start_auto_transcription("a1", transcriber) is True
    assert all(s.id != "old" for s in host.project.subtitles)
    statuses = _run_until_done(host)
    assert seen_paths == ["a.wav"]
    assert "Downloading Model... 50%" in statuses
    assert "Transcribing Audio..." in statuses
    assert host.whisper_status == "Done!"
    assert [s.text for s in host.project.subtitles] == ["Hi", "you"]
    assert host.project.subtitles[0].timeline_start == pytest.approx(2.0)
    assert host.project.media_files[0].duration == 12.5
    assert host.next_id == 2
    assert host.transcribing_media_id is None
    assert host.snapshots == 1


def test_transcription_error_is_reported():
    host = Host()
    host.project.media_files.append(_audio())

    def transcriber(path, send):
        raise RuntimeError("boom")

    assert host.start_auto_transcription("a1", transcriber)
    _run_until_done(host)
    assert host.whisper_status == "Error: boom"
    assert host.whisper_is_running() is False
    assert host.project.subtitles == []
    assert host.snapshots == 0