"""Station reference data: the favorites store seam and the CSV download."""

import csv
import logging
from pathlib import Path
from typing import Protocol

from countdown.core.errors import TransportError
from countdown.models.transit import Stop, StopKind
from countdown.services.mappers import stop_kind
from countdown.services.transport import Transport

logger = logging.getLogger(__name__)


class StationStore(Protocol):
    def has_stations(self) -> bool: ...

    def import_stations(self, path: Path) -> bool: ...

    def add_stop(self, stop: Stop) -> None: ...

    def query_stops(self, kind: StopKind | None = None) -> list[Stop]: ...

    def make_favorite(self, code: str) -> bool: ...

    def unfavorite(self, code: str) -> bool: ...

    def is_favorite(self, code: str) -> bool: ...


class InMemoryStationStore:
    """Keeps stops keyed by code, favorites listed first when queried."""

    def __init__(self, river_stop_type: str = "SLRS") -> None:
        self.river_stop_type = river_stop_type
        self._stops: dict[str, Stop] = {}
        self._favorites: set[str] = set()
        self._stations_imported = False

    def has_stations(self) -> bool:
        return self._stations_imported

    def import_stations(self, path: Path) -> bool:
        try:
            with path.open(newline="", encoding="utf-8") as handle:
                for row in csv.DictReader(handle):
                    stop = self._row_to_stop(row)
                    if stop is not None:
                        self._stops[stop.id] = stop
        except (OSError, csv.Error, UnicodeDecodeError):
            logger.exception("Station import from %s failed", path)
            return False
        self._stations_imported = True
        logger.info("Imported stations from %s, %d stops known", path, len(self._stops))
        return True

    def _row_to_stop(self, row: dict[str, str]) -> Stop | None:
        code = (row.get("code") or "").strip()
        if not code:
            return None
        try:
            latitude = float(row.get("latitude") or 0.0)
            longitude = float(row.get("longitude") or 0.0)
        except ValueError:
            logger.debug("Skipping station %s with bad coordinates", code)
            return None
        return Stop(
            id=code,
            name=(row.get("name") or "").strip(),
            kind=stop_kind((row.get("type") or "").strip(), self.river_stop_type),
            latitude=latitude,
            longitude=longitude,
        )

    def add_stop(self, stop: Stop) -> None:
        self._stops[stop.id] = stop.model_copy()

    def query_stops(self, kind: StopKind | None = None) -> list[Stop]:
        stops = [stop for stop in self._stops.values() if kind is None or stop.kind == kind]
        return sorted(stops, key=lambda stop: (stop.id not in self._favorites, stop.name))

    def make_favorite(self, code: str) -> bool:
        if code not in self._stops:
            return False
        self._favorites.add(code)
        return True

    def unfavorite(self, code: str) -> bool:
        if code not in self._favorites:
            return False
        self._favorites.discard(code)
        return True

    def is_favorite(self, code: str) -> bool:
        return code in self._favorites


class StationDownloader:
    """Fetches the station CSV once, following redirects, and hands it to the store."""

    def __init__(
        self,
        transport: Transport,
        store: StationStore,
        url: str,
        path: Path,
        max_redirects: int = 5,
    ) -> None:
        self.transport = transport
        self.store = store
        self.url = url
        self.path = path
        self.max_redirects = max_redirects
        self.downloading = False

    async def ensure_stations(self) -> bool:
        """Import the local CSV, downloading it first when it is missing."""
        if self.path.exists():
            return self._import()
        if self.downloading:
            return False
        self.downloading = True
        try:
            return await self._download()
        finally:
            self.downloading = False

    def _import(self) -> bool:
        ok = self.store.import_stations(self.path)
        if not ok:
            logger.warning("Station import failed", extra={"url": str(self.path)})
        return ok

    async def _download(self) -> bool:
        url = self.url
        for _ in range(self.max_redirects + 1):
            try:
                response = await self.transport.get(url)
            except TransportError as exc:
                logger.warning("Stations download failed: %s", exc, extra={"url": url})
                return False

            if response.is_redirect:
                target = response.redirect_target()
                if target is None:
                    logger.warning(
                        "Redirect without location",
                        extra={"url": url, "status_code": response.status_code},
                    )
                    return False
                logger.info("Redirecting stations download to %s", target)
                url = target
                continue

            if not response.is_success:
                logger.warning(
                    "Stations download returned an error",
                    extra={"url": url, "status_code": response.status_code},
                )
                return False

            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_bytes(response.content)
            except OSError:
                logger.exception("Could not write %s", self.path)
                return False
            return self._import()

        logger.warning("Stations download exceeded %d redirects", self.max_redirects)
        return False
