"""Poll orchestration for the current stop and the tracked vehicle.

Everything here runs on the event loop thread. Each request kind owns a
:class:`RequestSlot` that allows one live request at a time; invalidating a
slot detaches whatever is in flight so its response is dropped when it
lands. The two poll streams add a periodic poll job and a display-refresh
job, both scheduled on a shared APScheduler instance, on top of a slot.
"""

import logging
from collections.abc import Awaitable, Callable
from contextlib import suppress
from datetime import UTC, datetime
from enum import Enum
from functools import lru_cache, partial
from pathlib import Path

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from countdown.core.app_config import AppConfig, load_app_config
from countdown.core.config import Settings, get_settings
from countdown.core.errors import MalformedPayloadError, TransportError
from countdown.core.logging import poll_cycle_ctx
from countdown.core.scheduler import create_scheduler
from countdown.models.transit import (
    JourneyProgressEntry,
    Stop,
    StopKind,
    StopMessage,
    Vehicle,
    VehicleKind,
)
from countdown.services import notifier as events
from countdown.services.containers import ArrivalsContainer, JourneyProgressContainer
from countdown.services.decoder import open_response
from countdown.services.endpoints import FeedRequests
from countdown.services.mappers import (
    map_arrival,
    map_journey_progress,
    map_listed_stop,
    map_message,
    map_stop_detail,
)
from countdown.services.messages import format_messages, group_active_messages
from countdown.services.notifier import Notifier
from countdown.services.stations import InMemoryStationStore, StationDownloader, StationStore
from countdown.services.timing import timer_progress
from countdown.services.transport import HttpxTransport, Transport

logger = logging.getLogger(__name__)

STOP_DETAIL_FIELDS = ("name", "towards", "indicator", "latitude", "longitude", "kind")


class SlotState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"


class RequestSlot:
    def __init__(self, name: str) -> None:
        self.name = name
        self.state = SlotState.IDLE
        self.generation = 0

    @property
    def busy(self) -> bool:
        return self.state is SlotState.REQUESTING

    def begin(self) -> int | None:
        """Claim the slot; returns a token, or ``None`` if a request is live."""
        if self.busy:
            return None
        self.state = SlotState.REQUESTING
        return self.generation

    def finish(self, token: int) -> bool:
        """Release the slot; ``False`` means the response is stale."""
        if token != self.generation:
            return False
        self.state = SlotState.IDLE
        return True

    def invalidate(self) -> None:
        self.generation += 1
        self.state = SlotState.IDLE


class PollStream(RequestSlot):
    """A request slot driven by a periodic poll job plus a display-refresh job."""

    def __init__(
        self,
        name: str,
        interval: float,
        display_interval: float,
        scheduler: AsyncIOScheduler,
        on_tick: Callable[[], Awaitable[None]],
        on_display: Callable[[], None],
    ) -> None:
        super().__init__(name)
        self.interval = interval
        self.display_interval = display_interval
        self._scheduler = scheduler
        self._on_tick = on_tick
        self._on_display = on_display
        self._poll_job: Job | None = None
        self._display_job: Job | None = None

    @property
    def running(self) -> bool:
        return self._poll_job is not None

    def start(self) -> None:
        """Fetch now, then every ``interval`` seconds until stopped."""
        self.cancel_timers()
        # max_instances=1 turns a tick that lands mid-request into a no-op.
        self._poll_job = self._scheduler.add_job(
            self._run_tick,
            "interval",
            seconds=self.interval,
            next_run_time=datetime.now(UTC),
            max_instances=1,
            name=f"Poll {self.name}",
        )
        self._display_job = self._scheduler.add_job(
            self._refresh_display,
            "interval",
            seconds=self.display_interval,
            max_instances=1,
            name=f"Refresh {self.name} display",
        )

    def stop(self) -> None:
        self.cancel_timers()
        self.invalidate()

    def cancel_timers(self) -> None:
        """Remove both jobs; a request already in flight runs to completion."""
        for job in (self._poll_job, self._display_job):
            if job is not None:
                with suppress(JobLookupError):
                    job.remove()
        self._poll_job = None
        self._display_job = None

    def timer_progress(self) -> float:
        if self._poll_job is None:
            return 0.0
        job = self._scheduler.get_job(self._poll_job.id)
        next_run_time = getattr(job, "next_run_time", None)
        if next_run_time is None:
            return 0.0
        remaining = (next_run_time - datetime.now(UTC)).total_seconds()
        return timer_progress(self.interval, min(max(remaining, 0.0), self.interval))

    async def _run_tick(self) -> None:
        token = poll_cycle_ctx.set(f"{self.name}:{self.generation}")
        try:
            await self._on_tick()
        except Exception:
            logger.exception("Poll cycle failed", extra={"stream": self.name})
        finally:
            poll_cycle_ctx.reset(token)

    async def _refresh_display(self) -> None:
        self._on_display()


class PollOrchestrator:
    """Owns the current stop and vehicle and keeps their containers up to date."""

    def __init__(
        self,
        settings: Settings,
        app_config: AppConfig,
        transport: Transport,
        store: StationStore,
        notifier: Notifier | None = None,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self.settings = settings
        self.app_config = app_config
        self.transport = transport
        self.store = store
        self.notifier = notifier or Notifier()
        self.scheduler = scheduler or create_scheduler()
        self.requests = FeedRequests(settings.feed_base_url)

        self.current_stop = Stop()
        self.current_stop_messages = ""
        self.current_vehicle_id = ""
        self.current_vehicle_line = ""
        self.current_destination = ""
        # Direction of the last arrival decoded; journey progress requests filter on it.
        self.current_direction_id = ""
        self.listed_stops: list[Stop] = []

        self.arrivals_container = ArrivalsContainer(
            on_change=partial(self.notifier.publish, events.ARRIVALS_CHANGED)
        )
        self.journey_progress_container = JourneyProgressContainer(
            on_change=self._on_progress_changed
        )

        display_interval = settings.display_interval_ms / 1000
        self.arrivals = PollStream(
            "arrivals",
            settings.arrivals_interval_seconds,
            display_interval,
            self.scheduler,
            self.fetch_arrivals,
            partial(self.notifier.publish, events.DISPLAY_TICK, stream="arrivals"),
        )
        self.journey_progress = PollStream(
            "journey_progress",
            settings.journey_progress_interval_seconds,
            display_interval,
            self.scheduler,
            self.fetch_journey_progress,
            partial(self.notifier.publish, events.DISPLAY_TICK, stream="journey_progress"),
        )
        self.stop_slot = RequestSlot("stop")
        self.stop_list_slot = RequestSlot("list_of_stops")
        self.messages_slot = RequestSlot("messages")

        self.stations = StationDownloader(
            transport,
            store,
            str(settings.stations_url),
            Path(settings.stations_path),
            max_redirects=settings.max_redirects,
        )

    # -- stream control -------------------------------------------------

    def start_arrivals_update(self) -> None:
        logger.info("Arrivals updates started", extra={"stop_code": self.current_stop.id})
        self.arrivals.start()

    def stop_arrivals_update(self) -> None:
        logger.info("Arrivals updates stopped", extra={"stop_code": self.current_stop.id})
        self.arrivals.stop()
        self.arrivals_container.clear()
        self._publish_download_state()

    def start_journey_progress_update(self) -> None:
        if not self.current_vehicle_id:
            logger.info("No vehicle selected, journey progress not started")
            return
        self.journey_progress.start()

    def stop_journey_progress_update(self) -> None:
        self.journey_progress.stop()
        self.current_direction_id = ""
        self.current_vehicle_id = ""
        self.journey_progress_container.clear()
        self._publish_download_state()

    def set_current_vehicle(self, vehicle_id: str, line: str = "", destination: str = "") -> None:
        if vehicle_id != self.current_vehicle_id:
            self.journey_progress.invalidate()
        self.current_vehicle_id = vehicle_id
        self.current_vehicle_line = line
        self.current_destination = destination

    # -- feed requests --------------------------------------------------

    async def _request(self, slot: RequestSlot, url: str) -> bytes | None:
        """GET ``url`` through ``slot``; ``None`` means no update this cycle."""
        token = slot.begin()
        if token is None:
            logger.debug("Request already in flight", extra={"stream": slot.name})
            return None
        self._publish_download_state()
        try:
            body = await self._get_body(slot.name, url)
        finally:
            fresh = slot.finish(token)
            self._publish_download_state()
        if not fresh:
            logger.info("Discarding superseded response", extra={"stream": slot.name, "url": url})
            return None
        return body

    async def _get_body(self, stream: str, url: str) -> bytes | None:
        try:
            response = await self.transport.get(url)
        except TransportError as exc:
            logger.warning("Feed request failed: %s", exc, extra={"stream": stream, "url": url})
            return None
        if not response.is_success:
            logger.warning(
                "Feed returned an error status",
                extra={"stream": stream, "url": url, "status_code": response.status_code},
            )
            return None
        return response.content

    async def fetch_arrivals(self) -> None:
        stop = self.current_stop
        if stop.kind is StopKind.NONE:
            return
        # River buses are served by the bus arrivals endpoint.
        await self._get_bus_arrivals_by_code(stop.id, stop.kind)

    async def _get_bus_arrivals_by_code(self, code: str, kind: StopKind) -> None:
        body = await self._request(self.arrivals, self.requests.arrivals(code))
        if body is None:
            return
        vehicle_kind = VehicleKind.BOAT if kind is StopKind.RIVER else VehicleKind.BUS
        vehicles: list[Vehicle] = []
        direction_id: str | None = None
        skipped = 0
        try:
            response = open_response(body)
            if response is None:
                return
            for record in response.records:
                try:
                    arrival = map_arrival(record, response.server_time, vehicle_kind)
                except MalformedPayloadError as exc:
                    skipped += 1
                    logger.debug("Skipping arrival record: %s", exc, extra={"stop_code": code})
                    continue
                vehicles.append(arrival.vehicle)
                direction_id = arrival.direction_id
        except MalformedPayloadError as exc:
            logger.warning("Discarding arrivals response: %s", exc, extra={"stop_code": code})
            return

        if skipped and not vehicles:
            logger.warning(
                "No usable arrival records, keeping previous arrivals",
                extra={"stop_code": code},
            )
            return
        if direction_id is not None:
            self.current_direction_id = direction_id
        self.arrivals_container.replace(vehicles)

    async def fetch_journey_progress(self) -> None:
        if not self.current_vehicle_id:
            return
        url = self.requests.journey_progress(self.current_vehicle_id, self.current_direction_id)
        body = await self._request(self.journey_progress, url)
        if body is None:
            return
        entries: list[JourneyProgressEntry] = []
        try:
            response = open_response(body)
            if response is None:
                return
            for record in response.records:
                try:
                    entries.append(map_journey_progress(record))
                except MalformedPayloadError as exc:
                    logger.debug("Skipping journey progress record: %s", exc)
        except MalformedPayloadError as exc:
            logger.warning("Discarding journey progress response: %s", exc)
            return

        if not entries:
            # Seen upstream without a known cause; treated as no update.
            logger.warning(
                "Journey progress response had no stops",
                extra={"stream": self.journey_progress.name},
            )
            return
        self.journey_progress_container.replace(entries, response.server_time)

    async def get_stop_by_code(self, code: str) -> None:
        """Make ``code`` the current stop and fill in its details from the feed."""
        if code != self.current_stop.id:
            self.arrivals.invalidate()
            self.stop_slot.invalidate()
            self.messages_slot.invalidate()
            self.arrivals_container.clear()
            self.current_stop_messages = ""
            self.current_stop.clear()
        self.current_stop.id = code

        body = await self._request(self.stop_slot, self.requests.stop_detail(code))
        if body is None:
            return
        try:
            response = open_response(body)
            record = next(response.records, None) if response else None
            if record is None:
                return
            detail = map_stop_detail(record, self.app_config.river_stop_type)
        except MalformedPayloadError as exc:
            logger.warning("Discarding stop detail: %s", exc, extra={"stop_code": code})
            return

        for name in STOP_DETAIL_FIELDS:
            setattr(self.current_stop, name, getattr(detail, name))
        self.notifier.publish(events.STOP_CHANGED, stop=self.current_stop.model_dump(mode="json"))

    async def get_stop_messages(self, code: str) -> None:
        body = await self._request(self.messages_slot, self.requests.stop_messages(code))
        if body is None:
            return
        messages: list[StopMessage] = []
        try:
            response = open_response(body)
            if response is None:
                return
            for record in response.records:
                try:
                    messages.append(map_message(record))
                except MalformedPayloadError as exc:
                    logger.debug("Skipping message record: %s", exc, extra={"stop_code": code})
        except MalformedPayloadError as exc:
            logger.warning("Discarding stop messages: %s", exc, extra={"stop_code": code})
            return

        bands = group_active_messages(
            messages, response.server_time, self.app_config.max_message_priority
        )
        self.current_stop_messages = format_messages(bands)
        self.notifier.publish(events.MESSAGES_CHANGED, messages=self.current_stop_messages)

    async def get_stops_by_name(self, name: str) -> list[Stop]:
        """Search the feed for stops called ``name`` and add them to the store."""
        body = await self._request(self.stop_list_slot, self.requests.stops_by_name(name))
        if body is None:
            return self.listed_stops
        try:
            response = open_response(body)
            records = response.records if response else iter(())
            for record in records:
                try:
                    stop = map_listed_stop(
                        record,
                        self.app_config.river_stop_type,
                        self.app_config.listed_stop_types,
                    )
                except MalformedPayloadError as exc:
                    logger.debug("Skipping stop list record: %s", exc)
                    continue
                if stop is not None:
                    self.store.add_stop(stop)
        except MalformedPayloadError as exc:
            logger.warning("Stop list response cut short: %s", exc)
        return self.show_stops(StopKind.BUS)

    def clear_current_stop(self) -> None:
        self.stop_slot.invalidate()
        self.messages_slot.invalidate()
        self.current_stop.clear()
        self.current_stop_messages = ""
        self.notifier.publish(events.STOP_CHANGED, stop=self.current_stop.model_dump(mode="json"))

    # -- favorites and stations -------------------------------------------

    def show_stops(self, kind: StopKind | None) -> list[Stop]:
        self.listed_stops = self.store.query_stops(kind)
        self.notifier.publish(events.STOPS_CHANGED, total=len(self.listed_stops))
        return self.listed_stops

    async def set_stops_query(self, kind: StopKind | None) -> list[Stop]:
        """Show a preset stop category, importing station data on first use."""
        if not self.store.has_stations():
            logger.info("No stations in store, importing reference data")
            await self.stations.ensure_stations()
        return self.show_stops(kind)

    def favor_stop(self, code: str, favorite: bool) -> bool:
        if favorite:
            ok = self.store.make_favorite(code)
        else:
            ok = self.store.unfavorite(code)
        self.show_stops(StopKind.BUS)
        return ok

    def is_stop_favorite(self, code: str) -> bool:
        return self.store.is_favorite(code)

    # -- presentation state ---------------------------------------------

    @property
    def next_stop(self) -> str:
        return self.journey_progress_container.next_stop

    def download_state(self) -> dict[str, bool]:
        return {
            "arrivals": self.arrivals.busy,
            "journey_progress": self.journey_progress.busy,
            "stop": self.stop_slot.busy,
            "list_of_stops": self.stop_list_slot.busy,
            "stations": self.stations.downloading,
        }

    def _publish_download_state(self) -> None:
        self.notifier.publish(events.DOWNLOAD_STATE_CHANGED, **self.download_state())

    def _on_progress_changed(self) -> None:
        self.notifier.publish(events.JOURNEY_PROGRESS_CHANGED)
        logger.debug("Next stop: %s", self.next_stop)
        self.notifier.publish(events.NEXT_STOP_CHANGED, next_stop=self.next_stop)

    async def aclose(self) -> None:
        self.arrivals.stop()
        self.journey_progress.stop()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        await self.transport.aclose()


@lru_cache
def get_orchestrator() -> PollOrchestrator:
    settings = get_settings()
    app_config = load_app_config()
    return PollOrchestrator(
        settings,
        app_config,
        HttpxTransport(settings.http_timeout_seconds),
        InMemoryStationStore(app_config.river_stop_type),
    )
