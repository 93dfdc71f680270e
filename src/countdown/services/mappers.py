"""Positional decoders, one per feed endpoint.

Field positions are fixed by the remote service. Position 0 of every data
array is the record envelope and is never read. Each mapper checks the
record length before indexing and raises :class:`RecordTooShortError` when
the record is shorter than its contract.
"""

import math
from collections.abc import Collection, Sequence
from dataclasses import dataclass
from typing import Any

from countdown.core.errors import MalformedPayloadError, RecordTooShortError
from countdown.models.transit import (
    JourneyProgressEntry,
    Stop,
    StopKind,
    StopMessage,
    Vehicle,
    VehicleKind,
)
from countdown.services.timing import eta_minutes

ARRIVAL_MIN_FIELDS = 6
STOP_DETAIL_MIN_FIELDS = 7
STOP_LIST_MIN_FIELDS = 8
MESSAGE_MIN_FIELDS = 5
JOURNEY_PROGRESS_MIN_FIELDS = 3


@dataclass(frozen=True)
class ArrivalRecord:
    vehicle: Vehicle
    direction_id: str


def _require(record: Sequence[Any], minimum: int, kind: str) -> None:
    if len(record) < minimum:
        raise RecordTooShortError(kind, minimum, len(record))


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _number(record: Sequence[Any], position: int, kind: str) -> float:
    value = record[position]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedPayloadError(f"{kind} field {position} is not numeric: {value!r}")
    if not math.isfinite(value):
        raise MalformedPayloadError(f"{kind} field {position} is not finite: {value!r}")
    return float(value)


def stop_kind(stop_type: str, river_stop_type: str) -> StopKind:
    return StopKind.RIVER if stop_type == river_stop_type else StopKind.BUS


def map_arrival(
    record: Sequence[Any], server_time: float, kind: VehicleKind = VehicleKind.BUS
) -> ArrivalRecord:
    _require(record, ARRIVAL_MIN_FIELDS, "arrival")
    vehicle = Vehicle(
        id=_text(record[4]),
        line=_text(record[1]),
        destination=_text(record[3]),
        eta=eta_minutes(_number(record, 5, "arrival"), server_time),
        kind=kind,
    )
    return ArrivalRecord(vehicle=vehicle, direction_id=_text(record[2]))


def map_stop_detail(record: Sequence[Any], river_stop_type: str) -> Stop:
    """Decode a stop detail record. The stop code is not part of the record."""
    _require(record, STOP_DETAIL_MIN_FIELDS, "stop detail")
    return Stop(
        name=_text(record[1]),
        kind=stop_kind(_text(record[2]), river_stop_type),
        towards=_text(record[3]),
        indicator=_text(record[4]),
        latitude=_number(record, 5, "stop detail"),
        longitude=_number(record, 6, "stop detail"),
    )


def map_listed_stop(
    record: Sequence[Any], river_stop_type: str, listed_stop_types: Collection[str]
) -> Stop | None:
    """Decode a stop list record, or ``None`` when it should not be listed.

    Records of an unlisted stop type are dropped, as are records with a null
    stop code, which the feed returns for some multi-stop stations.
    """
    _require(record, STOP_LIST_MIN_FIELDS, "stop list")
    stop_type = _text(record[3])
    if stop_type not in listed_stop_types or record[2] is None:
        return None
    return Stop(
        id=_text(record[2]),
        name=_text(record[1]),
        kind=stop_kind(stop_type, river_stop_type),
        towards=_text(record[4]),
        indicator=_text(record[5]),
        latitude=_number(record, 6, "stop list"),
        longitude=_number(record, 7, "stop list"),
    )


def map_message(record: Sequence[Any]) -> StopMessage:
    _require(record, MESSAGE_MIN_FIELDS, "message")
    return StopMessage(
        priority=int(_number(record, 1, "message")),
        text=_text(record[2]),
        active_from=_number(record, 3, "message"),
        active_until=_number(record, 4, "message"),
    )


def map_journey_progress(record: Sequence[Any]) -> JourneyProgressEntry:
    _require(record, JOURNEY_PROGRESS_MIN_FIELDS, "journey progress")
    return JourneyProgressEntry(
        stop_name=_text(record[1]),
        eta_epoch_ms=_number(record, 2, "journey progress"),
    )
