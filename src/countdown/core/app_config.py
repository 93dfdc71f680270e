from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field

from countdown.core.config import get_settings

# Stop point types documented by the arrivals API that are worth listing.
LISTED_STOP_TYPES = ["STBR", "STBC", "SRVA", "STZZ", "STBN", "SLRS", "STBS", "STSS"]


class AppConfig(BaseModel):
    """Feed contract values that may change without a code change."""

    river_stop_type: str = "SLRS"
    listed_stop_types: list[str] = Field(default_factory=lambda: list(LISTED_STOP_TYPES))
    # Five bands are published today; the feed reserves up to ten.
    max_message_priority: int = Field(default=5, ge=0, le=9)
    default_stop_code: str | None = None


@lru_cache
def load_app_config() -> AppConfig:
    settings = get_settings()
    path = Path(settings.app_config_path)
    if path.exists():
        data = json.loads(path.read_text())
        return AppConfig(**data)
    return AppConfig()
