"""Transcription support: messages, audio decoding to 16 kHz mono and segment filtering."""

from __future__ import annotations

import wave
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Union

TARGET_RATE = 16000
_I16_MAX = 32767.0


@dataclass(frozen=True)
class RawWord:
    """A recognised word with start and end in seconds."""

    text: str
    start: float
    end: float


@dataclass(frozen=True)
class DownloadProgress:
    downloaded: int
    total: int


@dataclass(frozen=True)
class Transcribing:
    """Recognition has started."""


@dataclass(frozen=True)
class TranscriptionDone:
    """Recognised words and the exact audio duration in seconds."""

    words: list[RawWord] = field(default_factory=list)
    duration: float = 0.0


@dataclass(frozen=True)
class TranscriptionError:
    message: str


TranscriptionMessage = Union[DownloadProgress, Transcribing, TranscriptionDone, TranscriptionError]


def resample_linear(samples: Sequence[float], from_rate: float, to_rate: float) -> list[float]:
    """Resample by linear interpolation between neighbouring samples."""
    ratio = from_rate / to_rate
    out_len = int(len(samples) / ratio)
    last = len(samples) - 1
    out = []
    for i in range(out_len):
        src = i * ratio
        lo = int(src)
        hi = min(lo + 1, last)
        t = src - lo
        out.append(samples[lo] * (1.0 - t) + samples[hi] * t)
    return out


def _pcm_samples(frames: bytes, width: int) -> list[int]:
    if width == 2:
        return [int.from_bytes(frames[i:i + 2], "little", signed=True)
                for i in range(0, len(frames) - 1, 2)]
    if width == 1:
        return [b - 128 for b in frames]
    raise ValueError(f"unsupported sample width: {width * 8} bits")


def decode_wav(path: str) -> list[float]:
    """Read a PCM WAV file as 16 kHz samples in -1..1, mixing stereo to mono."""
    try:
        with wave.open(str(path), "rb") as reader:
            channels = reader.getnchannels()
            rate = reader.getframerate()
            width = reader.getsampwidth()
            frames = reader.readframes(reader.getnframes())
    except wave.Error as exc:
        raise ValueError(str(exc)) from exc
    samples = [s / _I16_MAX for s in _pcm_samples(frames, width)]
    if channels == 2:
        samples = [(a + b) / 2.0 for a, b in zip(samples[0::2], samples[1::2])]
    if rate != TARGET_RATE:
        samples = resample_linear(samples, float(rate), float(TARGET_RATE))
    return samples


def filter_segments(segments: Iterable[tuple[str, int, int]]) -> list[RawWord]:
    """Turn recogniser segments (text, start and end in centiseconds) into words.

    Bracketed annotations, empty text and segments without positive length are
    dropped; an empty result is an error.
    """
    words = []
    for text, start_cs, end_cs in segments:
        text = text.strip()
        if not text or text.startswith("["):
            continue
        start = start_cs / 100.0
        end = end_cs / 100.0
        if end > start:
            words.append(RawWord(text, start, end))
    if not words:
        raise ValueError("No words found. Is the audio silent?")
    return words