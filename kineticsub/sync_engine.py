"""Playback clock that drives the timeline independently of rendering."""

from __future__ import annotations

import time
from collections.abc import Callable
from enum import Enum


class PlaybackState(Enum):
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


class SyncEngine:
    """Tracks the playhead and advances it while playing."""

    def __init__(self, duration: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.duration = float(duration)
        self.current_time = 0.0
        self.state = PlaybackState.STOPPED
        self._clock = clock
        self._last_tick = clock()

    def is_playing(self) -> bool:
        return self.state is PlaybackState.PLAYING

    def play(self) -> None:
        self.state = PlaybackState.PLAYING
        self._last_tick = self._clock()

    def pause(self) -> None:
        self.state = PlaybackState.PAUSED

    def stop(self) -> None:
        self.state = PlaybackState.STOPPED
        self.current_time = 0.0

    def toggle_play_pause(self) -> None:
        if self.state is PlaybackState.PLAYING:
            self.pause()
        else:
            self.play()

    def seek(self, time: float) -> None:
        """Move the playhead; only negative times are clamped, not the duration."""
        self.current_time = max(time, 0.0)
        self._last_tick = self._clock()

    def skip(self, delta: float) -> None:
        self.seek(self.current_time + delta)

    def tick(self) -> float:
        """Advance the clock once per frame and return the elapsed seconds."""
        now = self._clock()
        dt = now - self._last_tick
        self._last_tick = now
        if self.state is PlaybackState.PLAYING:
            self.current_time += dt
            if self.current_time >= self.duration:
                self.current_time = self.duration
                self.pause()
        return dt

    def progress(self) -> float:
        """Progress through the total duration, 0 when there is no duration."""
        if self.duration > 0.0:
            return self.current_time / self.duration
        return 0.0