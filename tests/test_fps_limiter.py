import time

import pytest

from rana.fps_limiter import FpsLimiter


@pytest.fixture
def fake_time(monkeypatch):
    state = {"now": 0.0, "sleeps": []}

    def monotonic():
        return state["now"]

    def sleep(seconds):
        state["sleeps"].append(seconds)

    monkeypatch.setattr(time, "monotonic", monotonic)
    monkeypatch.setattr(time, "sleep", sleep)
    return state


def _frame(limiter, state, duration):
    limiter.start()
    state["now"] += duration
    return limiter.stop()


@pytest.mark.parametrize(
    "fps, duration, frame_ms, sleeps",
    [(2, 0.25, 250, [0.25]), (2, 0.5, 500, []), (4, 0.5, 500, [])],
    ids=["short-frame", "at-budget", "long-frame"],
)
def test_frame_sleeps_only_remaining_budget(fake_time, fps, duration, frame_ms, sleeps):
    limiter = FpsLimiter(fps)
    assert _frame(limiter, fake_time, duration) == frame_ms
    assert fake_time["sleeps"] == sleeps


def test_frame_count_accumulates(fake_time):
    limiter = FpsLimiter(2)
    for _ in range(3):
        _frame(limiter, fake_time, 0.25)
    assert (limiter.frame_count, limiter.frame_rate) == (3, 750)


def test_average_computed_after_window(fake_time):
    limiter = FpsLimiter(2)
    for _ in range(30):
        _frame(limiter, fake_time, 0.25)
    assert limiter.average_frame_time is None
    _frame(limiter, fake_time, 0.25)
    assert limiter.average_frame_time == 250
    assert (limiter.frame_count, limiter.frame_rate) == (0, 0)


def test_context_manager_times_frame(fake_time):
    limiter = FpsLimiter(2)
    with limiter:
        fake_time["now"] += 0.25
    assert limiter.frame_time == 250
    assert fake_time["sleeps"] == [0.25]


def test_verbose_prints_frame_time(fake_time, capsys):
    limiter = FpsLimiter(2, verbose=True)
    _frame(limiter, fake_time, 0.25)
    assert capsys.readouterr().out == "250\n"


def test_stop_without_start_raises():
    with pytest.raises(RuntimeError):
        FpsLimiter(30).stop()


@pytest.mark.parametrize("fps", [0, -5])
def test_non_positive_fps_rejected(fps):
    with pytest.raises(ValueError):
        FpsLimiter(fps)