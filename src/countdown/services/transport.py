"""HTTP capability used by the orchestrator; redirects are left to the caller."""

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from countdown.core.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass
class TransportResponse:
    status_code: int
    content: bytes
    url: str
    location: str | None = None

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status_code < 400

    def redirect_target(self) -> str | None:
        """The ``Location`` header resolved against the requested URL."""
        if not self.location:
            return None
        return str(httpx.URL(self.url).join(self.location))


class Transport(Protocol):
    async def get(self, url: str) -> TransportResponse: ...

    async def aclose(self) -> None: ...


class HttpxTransport:
    def __init__(self, timeout: float, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=False)

    async def get(self, url: str) -> TransportResponse:
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            raise TransportError(f"GET {url} failed: {type(exc).__name__}") from exc
        return TransportResponse(
            status_code=response.status_code,
            content=response.content,
            url=str(response.url),
            location=response.headers.get("location"),
        )

    async def aclose(self) -> None:
        await self._client.aclose()
