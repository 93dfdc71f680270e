from functools import lru_cache

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application runtime configuration."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: str = Field(default="dev", validation_alias="ENV")
    api_title: str = Field(default="Countdown", validation_alias="API_TITLE")
    feed_base_url: str = Field(
        default="http://countdown.api.tfl.gov.uk/interfaces/ura/instant_V1",
        validation_alias="FEED_BASE_URL",
    )
    arrivals_interval_seconds: float = Field(
        default=30.0, gt=0, validation_alias="ARRIVALS_INTERVAL_SECONDS"
    )
    journey_progress_interval_seconds: float = Field(
        default=30.0, gt=0, validation_alias="JOURNEY_PROGRESS_INTERVAL_SECONDS"
    )
    display_interval_ms: int = Field(default=16, gt=0, validation_alias="DISPLAY_INTERVAL_MS")
    stations_url: AnyHttpUrl = Field(
        default="https://github.com/KrisztianOlah/london-sail/raw/devel/stations.csv",
        validation_alias="STATIONS_URL",
    )
    stations_path: str = Field(default="data/stations.csv", validation_alias="STATIONS_PATH")
    max_redirects: int = Field(default=5, ge=0, validation_alias="MAX_REDIRECTS")
    http_timeout_seconds: float = Field(default=8.0, validation_alias="HTTP_TIMEOUT_SECONDS")
    cors_origins: str = Field(default="*", validation_alias="CORS_ORIGINS")
    app_config_path: str = Field(
        default="config/app_config.json", validation_alias="APP_CONFIG_PATH"
    )

    @property
    def allowed_origins(self) -> list[str]:
        if self.cors_origins.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
