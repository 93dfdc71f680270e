from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class VehicleKind(str, Enum):
    BOAT = "Boat"
    BUS = "Bus"
    DLR = "Dlr"
    OVERGROUND = "OverGround"
    UNDERGROUND = "UnderGround"


class StopKind(str, Enum):
    NONE = "none"
    BUS = "bus"
    RIVER = "river"


class Vehicle(BaseModel):
    """A bus, river bus or train predicted to call at the current stop."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Registration number for buses")
    line: str
    destination: str
    eta: int = Field(description="Minutes relative to server time, negative when overdue")
    towards: str = ""
    platform: str = ""
    kind: VehicleKind = VehicleKind.BUS


class Stop(BaseModel):
    id: str = ""
    name: str = ""
    towards: str = ""
    indicator: str = ""
    latitude: float = 0.0
    longitude: float = 0.0
    kind: StopKind = StopKind.NONE

    def clear(self) -> None:
        for name, field in type(self).model_fields.items():
            setattr(self, name, field.default)


class StopMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    priority: int
    text: str
    active_from: float = Field(description="Epoch milliseconds")
    active_until: float = Field(description="Epoch milliseconds")

    def is_active(self, server_time: float) -> bool:
        return self.active_from <= server_time <= self.active_until


class JourneyProgressEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    stop_name: str
    eta_epoch_ms: float


class ArrivalsResponse(BaseModel):
    stop: Stop
    vehicles: list[Vehicle]


class JourneyStopEta(BaseModel):
    stop_name: str
    eta_minutes: int


class JourneyProgressResponse(BaseModel):
    vehicle_id: str
    line: str
    destination: str
    next_stop: str
    stops: list[JourneyStopEta]


class CurrentStopResponse(BaseModel):
    stop: Stop
    messages: str
    is_favorite: bool = False


class StopListResponse(BaseModel):
    total: int
    stops: list[Stop]


class CurrentVehicleRequest(BaseModel):
    id: str
    line: str = ""
    destination: str = ""


class DownloadState(BaseModel):
    arrivals: bool
    journey_progress: bool
    stop: bool
    list_of_stops: bool
    stations: bool


class StatusResponse(BaseModel):
    downloading: DownloadState
    arrivals_timer_progress: float
    journey_progress_timer_progress: float
    next_stop: str
    messages: str


class FavoriteResponse(BaseModel):
    code: str
    favorite: bool
    ok: bool
