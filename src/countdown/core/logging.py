import json
import logging
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

# "<stream>:<generation>" of the poll cycle currently being processed.
poll_cycle_ctx: ContextVar[str | None] = ContextVar("poll_cycle", default=None)

_EXTRA_FIELDS = ("stream", "stop_code", "url", "status_code")


class JsonLogFormatter(logging.Formatter):
    """Render logs as JSON strings with a minimal schema."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        base: dict[str, Any] = {
            "ts": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }

        cycle = poll_cycle_ctx.get()
        if cycle:
            base["cycle"] = cycle

        for attr in _EXTRA_FIELDS:
            value = getattr(record, attr, None)
            if value is not None:
                base[attr] = value

        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(base, ensure_ascii=True)


def setup_logging(level: int = logging.INFO) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    for name in ("uvicorn.access", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [handler]
        uvicorn_logger.propagate = False
