"""Decoder for the feed's newline-delimited JSON array bodies.

Every response is a sequence of JSON arrays, one per line. The first is the
version array, whose third element is the server clock in epoch
milliseconds; the remaining lines are data arrays with positional fields.
"""

import json
import logging
import math
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from countdown.core.errors import MalformedPayloadError

logger = logging.getLogger(__name__)

VERSION_MIN_FIELDS = 3
SERVER_TIME_FIELD = 2


def iter_arrays(body: bytes) -> Iterator[list[Any]]:
    """Yield each line of ``body`` decoded as a JSON array, lazily and in order.

    Blank lines are skipped. A line that is not valid JSON, or not an array,
    raises :class:`MalformedPayloadError` when it is reached.
    """
    for lineno, line in enumerate(body.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            decoded = json.loads(line)
        except ValueError as exc:
            raise MalformedPayloadError(f"line {lineno} is not valid JSON") from exc
        if not isinstance(decoded, list):
            raise MalformedPayloadError(f"line {lineno} is not a JSON array")
        yield decoded


@dataclass
class FeedResponse:
    server_time: float
    records: Iterator[list[Any]]


def open_response(body: bytes) -> FeedResponse | None:
    """Read the version array and return the server time with the remaining records.

    Returns ``None`` when there is nothing usable: an empty body, a version
    array shorter than three fields or a server time that is not a finite
    number. The returned ``records`` iterator is single-use.
    """
    records = iter_arrays(body)
    version = next(records, None)
    if version is None or len(version) < VERSION_MIN_FIELDS:
        logger.debug("Response has no usable version array")
        return None
    server_time = version[SERVER_TIME_FIELD]
    if (
        isinstance(server_time, bool)
        or not isinstance(server_time, (int, float))
        or not math.isfinite(server_time)
    ):
        logger.debug("Version array server time is not a finite number: %r", server_time)
        return None
    return FeedResponse(server_time=float(server_time), records=records)
