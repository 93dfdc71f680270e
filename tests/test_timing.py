import pytest

from countdown.services.timing import eta_minutes, round_half_away, timer_progress


@pytest.mark.parametrize(
    ("value", "expected"),
    [(0.0, 0), (0.49, 0), (0.5, 1), (1.5, 2), (2.5, 3), (-0.5, -1), (-1.5, -2), (-2.4, -2)],
)
def test_round_half_away_from_zero(value: float, expected: int) -> None:
    assert round_half_away(value) == expected


def test_eta_uses_server_time() -> None:
    assert eta_minutes(61000, 1000) == 1
    assert eta_minutes(1000 + 90_000, 1000) == 2
    assert eta_minutes(1000, 1000) == 0


def test_eta_is_not_clamped_when_overdue() -> None:
    assert eta_minutes(1000, 1000 + 150_000) == -3


def test_timer_progress() -> None:
    assert timer_progress(30.0, 30.0) == 0.0
    assert timer_progress(30.0, 15.0) == 50.0
    assert timer_progress(30.0, 0.0) == 100.0
    assert timer_progress(0.0, 0.0) == 0.0
