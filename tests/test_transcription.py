import wave

import pytest

from kineticsub.transcription import (
    RawWord,
    TranscriptionDone,
    decode_wav,
    filter_segments,
    resample_linear,
)


def _write_wav(path, samples, rate=16000, channels=1):
    with wave.open(str(path), "wb") as writer:
        writer.setnchannels(channels)
        writer.setsampwidth(2)
        writer.setframerate(rate)
        writer.writeframes(b"".join(s.to_bytes(2, "little", signed=True) for s in samples))
    return str(path)


def test_resample_same_rate_is_identity():
    data = [0.1, -0.4, 0.9, 0.0]
    assert resample_linear(data, 16000.0, 16000.0) == data


def test_resample_halving_keeps_even_samples():
    data = [0.1, 0.2, 0.3, 0.4, 0.5, 0.6]
    assert resample_linear(data, 32000.0, 16000.0) == [0.1, 0.3, 0.5]


def test_resample_doubling_length_and_bounds():
    data = [0.0, 1.0, 0.5]
    out = resample_linear(data, 8000.0, 16000.0)
    assert len(out) == 2 * len(data)
    assert out[0] == data[0]
    assert all(min(data) <= v <= max(data) for v in out)


def test_resample_empty():
    assert resample_linear([], 44100.0, 16000.0) == []


def test_decode_mono_wav(tmp_path):
    path = _write_wav(tmp_path / "a.wav", [32767, -32767, 0])
    assert decode_wav(path) == [1.0, -1.0, 0.0]


def test_decode_stereo_is_mixed_down(tmp_path):
    path = _write_wav(tmp_path / "s.wav", [32767, -32767, 32767, 32767], channels=2)
    assert decode_wav(path) == [0.0, 1.0]


def test_decode_resamples_to_16k(tmp_path):
    path = _write_wav(tmp_path / "r.wav", [32767, 0, -32767, 0], rate=32000)
    assert decode_wav(path) == [1.0, -1.0]


def test_decode_invalid_file(tmp_path):
    bad = tmp_path / "bad.wav"
    bad.write_bytes(b"not a wave file at all")
    with pytest.raises(ValueError):
        decode_wav(str(bad))


def test_filter_segments_keeps_words():
    words = filter_segments([("  hello ", 0, 100), ("[BLANK_AUDIO]", 100, 200),
                             ("world", 200, 300)])
    assert [w.text for w in words] == ["hello", "world"]
    assert words[0] == RawWord("hello", 0.0, 1.0)
    assert words[1].start < words[1].end


def test_filter_segments_drops_zero_length_and_blank():
    words = filter_segments([("   ", 0, 10), ("same", 50, 50), ("ok", 300, 400)])
    assert [w.text for w in words] == ["ok"]


def test_filter_segments_all_silent_raises():
    with pytest.raises(ValueError, match="No words found"):
        filter_segments([("[MUSIC]", 0, 100)])


def test_done_message_carries_words():
    words = filter_segments([("hi", 0, 100)])
    done = TranscriptionDone(words, 2.0)
    assert done.words == words
    assert done.duration == 2.0