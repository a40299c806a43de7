import pytest

from kineticsub.sync_engine import PlaybackState, SyncEngine


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(clock):
    return SyncEngine(10.0, clock=clock)


def test_starts_stopped(engine):
    assert engine.state is PlaybackState.STOPPED
    assert engine.is_playing() is False
    assert engine.current_time == 0.0


def test_tick_advances_while_playing(engine, clock):
    engine.play()
    clock.now += 0.5
    assert engine.tick() == pytest.approx(0.5)
    assert engine.current_time == pytest.approx(0.5)


def test_tick_returns_dt_when_paused_without_advancing(engine, clock):
    engine.seek(2.0)
    engine.pause()
    clock.now += 0.25
    assert engine.tick() == pytest.approx(0.25)
    assert engine.current_time == 2.0


def test_reaching_end_pauses_at_duration(engine, clock):
    engine.seek(9.5)
    engine.play()
    clock.now += 2.0
    engine.tick()
    assert engine.current_time == engine.duration
    assert engine.state is PlaybackState.PAUSED


def test_toggle_play_pause(engine):
    engine.toggle_play_pause()
    assert engine.is_playing()
    engine.toggle_play_pause()
    assert engine.state is PlaybackState.PAUSED
    engine.toggle_play_pause()
    assert engine.is_playing()


def test_seek_clamps_negative_only(engine):
    engine.seek(-3.0)
    assert engine.current_time == 0.0
    engine.seek(25.0)
    assert engine.current_time == 25.0


def test_skip_is_relative(engine):
    engine.seek(4.0)
    engine.skip(-1.5)
    assert engine.current_time == pytest.approx(2.5)
    engine.skip(-10.0)
    assert engine.current_time == 0.0


def test_seek_resets_tick_reference(engine, clock):
    engine.play()
    clock.now += 3.0
    engine.seek(1.0)
    clock.now += 0.5
    engine.tick()
    assert engine.current_time == pytest.approx(1.5)


def test_stop_resets_time(engine):
    engine.seek(5.0)
    engine.play()
    engine.stop()
    assert engine.current_time == 0.0
    assert engine.state is PlaybackState.STOPPED


def test_progress(engine):
    engine.seek(5.0)
    assert engine.progress() == pytest.approx(0.5)
    empty = SyncEngine(0.0)
    empty.seek(3.0)
    assert empty.progress() == 0.0