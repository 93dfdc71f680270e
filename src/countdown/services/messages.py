from collections import defaultdict
from collections.abc import Iterable

from countdown.models.transit import StopMessage

BULLET = " * "


def group_active_messages(
    messages: Iterable[StopMessage], server_time: float, max_priority: int
) -> dict[int, list[str]]:
    """Bucket the texts of messages active at ``server_time`` by priority band.

    Bands are scanned from 0 up to ``max_priority`` inclusive; anything outside
    that range is not displayed. Arrival order is kept within a band.
    """
    bands: dict[int, list[str]] = defaultdict(list)
    for message in messages:
        if 0 <= message.priority <= max_priority and message.is_active(server_time):
            bands[message.priority].append(message.text)
    return {band: bands[band] for band in range(max_priority + 1) if band in bands}


def format_messages(bands: dict[int, list[str]]) -> str:
    return "".join(BULLET + text for band in sorted(bands) for text in bands[band])
