"""Replace-as-a-unit collections published by the orchestrator.

Contents are held in a tuple that is swapped in one assignment, so a reader
always sees either the previous or the new cycle, never a mix. Sorting is
left to whoever projects the contents for display.
"""

from collections.abc import Callable, Iterable, Iterator

from countdown.models.transit import JourneyProgressEntry, Vehicle

Listener = Callable[[], None]


class ArrivalsContainer:
    def __init__(self, on_change: Listener | None = None) -> None:
        self._vehicles: tuple[Vehicle, ...] = ()
        self._on_change = on_change

    @property
    def vehicles(self) -> tuple[Vehicle, ...]:
        return self._vehicles

    def replace(self, vehicles: Iterable[Vehicle]) -> None:
        self._vehicles = tuple(vehicles)
        if self._on_change:
            self._on_change()

    def clear(self) -> None:
        self.replace(())

    def __len__(self) -> int:
        return len(self._vehicles)

    def __iter__(self) -> Iterator[Vehicle]:
        return iter(self._vehicles)


class JourneyProgressContainer:
    """Remaining stops ahead of the tracked vehicle, nearest first."""

    def __init__(self, on_change: Listener | None = None) -> None:
        self._state: tuple[float, tuple[JourneyProgressEntry, ...]] = (0.0, ())
        self._on_change = on_change

    @property
    def server_time(self) -> float:
        return self._state[0]

    @property
    def entries(self) -> tuple[JourneyProgressEntry, ...]:
        return self._state[1]

    @property
    def next_stop(self) -> str:
        entries = self.entries
        return entries[0].stop_name if entries else ""

    def replace(self, entries: Iterable[JourneyProgressEntry], server_time: float) -> None:
        self._state = (server_time, tuple(entries))
        if self._on_change:
            self._on_change()

    def clear(self) -> None:
        self.replace((), 0.0)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[JourneyProgressEntry]:
        return iter(self.entries)
