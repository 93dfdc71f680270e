import asyncio
import json
from collections import deque
from collections.abc import Callable, Generator
from pathlib import Path

import anyio
import pytest
from fastapi.testclient import TestClient

from countdown.core.app_config import AppConfig
from countdown.core.config import Settings
from countdown.core.errors import TransportError
from countdown.main import app
from countdown.services.orchestrator import PollOrchestrator, get_orchestrator
from countdown.services.stations import InMemoryStationStore
from countdown.services.transport import TransportResponse

SERVER_TIME = 1_400_000_000_000


def feed_body(*arrays: list) -> bytes:
    """Encode arrays the way the feed does: one JSON array per line."""
    return "\r\n".join(json.dumps(array) for array in arrays).encode()


def version_array(server_time: float = SERVER_TIME) -> list:
    return [4, "1.0", server_time]


class FakeTransport:
    """Replays scripted responses in call order and records requested URLs."""

    def __init__(self) -> None:
        self.urls: list[str] = []
        self.scripted: deque[TransportResponse | Exception] = deque()
        self.gate: asyncio.Event | None = None
        self.closed = False

    def add(self, content: bytes = b"", status_code: int = 200, location: str | None = None) -> None:
        self.scripted.append(
            TransportResponse(status_code=status_code, content=content, url="", location=location)
        )

    def fail(self, message: str = "connection refused") -> None:
        self.scripted.append(TransportError(message))

    async def get(self, url: str) -> TransportResponse:
        self.urls.append(url)
        item = self.scripted.popleft() if self.scripted else TransportError("nothing scripted")
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(item, Exception):
            raise item
        return TransportResponse(
            status_code=item.status_code,
            content=item.content,
            url=url,
            location=item.location,
        )

    async def aclose(self) -> None:
        self.closed = True


async def wait_until(predicate: Callable[[], object], timeout: float = 2.0) -> None:
    with anyio.fail_after(timeout):
        while not predicate():
            await asyncio.sleep(0.001)


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        FEED_BASE_URL="https://feed.example.com/instant_V1",
        STATIONS_URL="https://example.com/stations.csv",
        STATIONS_PATH=str(tmp_path / "data" / "stations.csv"),
        ARRIVALS_INTERVAL_SECONDS=30,
        JOURNEY_PROGRESS_INTERVAL_SECONDS=30,
    )


@pytest.fixture()
def app_config() -> AppConfig:
    return AppConfig()


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def store() -> InMemoryStationStore:
    return InMemoryStationStore()


@pytest.fixture()
def orchestrator(
    settings: Settings,
    app_config: AppConfig,
    transport: FakeTransport,
    store: InMemoryStationStore,
) -> PollOrchestrator:
    return PollOrchestrator(settings, app_config, transport, store)


@pytest.fixture()
def client(
    orchestrator: PollOrchestrator, monkeypatch: pytest.MonkeyPatch
) -> Generator[TestClient, None, None]:
    monkeypatch.setattr("countdown.main.get_orchestrator", lambda: orchestrator)
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"
