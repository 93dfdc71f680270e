import math

MS_PER_MINUTE = 60_000


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def eta_minutes(predicted_ms: float, server_ms: float) -> int:
    """Whole minutes from the server clock to a predicted time; negative when overdue."""
    return round_half_away((predicted_ms - server_ms) / MS_PER_MINUTE)


def timer_progress(interval: float, remaining: float) -> float:
    """Percentage of ``interval`` already elapsed."""
    if interval <= 0:
        return 0.0
    return (interval - remaining) / interval * 100
