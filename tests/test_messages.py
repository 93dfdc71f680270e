from countdown.models.transit import StopMessage
from countdown.services.messages import format_messages, group_active_messages

NOW = 10_000


def message(priority: int, text: str, start: float = 0, end: float = 20_000) -> StopMessage:
    return StopMessage(priority=priority, text=text, active_from=start, active_until=end)


def test_only_active_messages_are_kept() -> None:
    messages = [
        message(0, "starts now", start=NOW),
        message(0, "ends now", end=NOW),
        message(0, "future", start=NOW + 1),
        message(0, "expired", end=NOW - 1),
    ]
    bands = group_active_messages(messages, NOW, max_priority=5)
    assert bands == {0: ["starts now", "ends now"]}


def test_bands_ordered_by_priority_then_arrival() -> None:
    messages = [
        message(3, "c1"),
        message(0, "a1"),
        message(3, "c2"),
        message(1, "b1"),
        message(0, "a2"),
    ]
    bands = group_active_messages(messages, NOW, max_priority=5)
    assert list(bands) == [0, 1, 3]
    assert format_messages(bands) == " * a1 * a2 * b1 * c1 * c2"


def test_priorities_above_ceiling_are_not_shown() -> None:
    messages = [message(6, "reserved band"), message(5, "lowest")]
    assert group_active_messages(messages, NOW, max_priority=5) == {5: ["lowest"]}
    assert group_active_messages(messages, NOW, max_priority=9) == {
        5: ["lowest"],
        6: ["reserved band"],
    }


def test_no_messages_formats_to_empty_string() -> None:
    assert format_messages({}) == ""
