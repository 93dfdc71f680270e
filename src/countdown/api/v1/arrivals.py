from fastapi import APIRouter, Depends, Query, status

from countdown.core.errors import NoCurrentStopError
from countdown.models.transit import (
    ArrivalsResponse,
    CurrentStopResponse,
    CurrentVehicleRequest,
    DownloadState,
    FavoriteResponse,
    JourneyProgressResponse,
    JourneyStopEta,
    StatusResponse,
    StopKind,
    StopListResponse,
)
from countdown.services.orchestrator import PollOrchestrator, get_orchestrator
from countdown.services.timing import eta_minutes

router = APIRouter(prefix="/api", tags=["arrivals"])


def _current_stop(orchestrator: PollOrchestrator) -> CurrentStopResponse:
    stop = orchestrator.current_stop
    return CurrentStopResponse(
        stop=stop,
        messages=orchestrator.current_stop_messages,
        is_favorite=bool(stop.id) and orchestrator.is_stop_favorite(stop.id),
    )


@router.get("/stop", response_model=CurrentStopResponse)
async def get_current_stop(
    orchestrator: PollOrchestrator = Depends(get_orchestrator),
) -> CurrentStopResponse:
    return _current_stop(orchestrator)


@router.put("/stop/{code}", response_model=CurrentStopResponse)
async def select_stop(
    code: str,
    orchestrator: PollOrchestrator = Depends(get_orchestrator),
) -> CurrentStopResponse:
    await orchestrator.get_stop_by_code(code)
    await orchestrator.get_stop_messages(code)
    return _current_stop(orchestrator)


@router.delete("/stop", status_code=status.HTTP_204_NO_CONTENT)
async def clear_stop(orchestrator: PollOrchestrator = Depends(get_orchestrator)) -> None:
    orchestrator.clear_current_stop()


@router.get("/arrivals", response_model=ArrivalsResponse)
async def get_arrivals(
    orchestrator: PollOrchestrator = Depends(get_orchestrator),
) -> ArrivalsResponse:
    # sorted() is stable, so equal ETAs keep feed order.
    vehicles = sorted(orchestrator.arrivals_container.vehicles, key=lambda vehicle: vehicle.eta)
    return ArrivalsResponse(stop=orchestrator.current_stop, vehicles=vehicles)


@router.post("/arrivals/start", status_code=status.HTTP_202_ACCEPTED)
async def start_arrivals(orchestrator: PollOrchestrator = Depends(get_orchestrator)) -> dict:
    if orchestrator.current_stop.kind is StopKind.NONE:
        raise NoCurrentStopError()
    orchestrator.start_arrivals_update()
    return {"running": orchestrator.arrivals.running}


@router.post("/arrivals/stop", status_code=status.HTTP_202_ACCEPTED)
async def stop_arrivals(orchestrator: PollOrchestrator = Depends(get_orchestrator)) -> dict:
    orchestrator.stop_arrivals_update()
    return {"running": orchestrator.arrivals.running}


@router.put("/vehicle", status_code=status.HTTP_204_NO_CONTENT)
async def set_vehicle(
    vehicle: CurrentVehicleRequest,
    orchestrator: PollOrchestrator = Depends(get_orchestrator),
) -> None:
    orchestrator.set_current_vehicle(vehicle.id, vehicle.line, vehicle.destination)


@router.get("/journey-progress", response_model=JourneyProgressResponse)
async def get_journey_progress(
    orchestrator: PollOrchestrator = Depends(get_orchestrator),
) -> JourneyProgressResponse:
    container = orchestrator.journey_progress_container
    stops = [
        JourneyStopEta(
            stop_name=entry.stop_name,
            eta_minutes=eta_minutes(entry.eta_epoch_ms, container.server_time),
        )
        for entry in container.entries
    ]
    stops.sort(key=lambda item: item.eta_minutes)
    return JourneyProgressResponse(
        vehicle_id=orchestrator.current_vehicle_id,
        line=orchestrator.current_vehicle_line,
        destination=orchestrator.current_destination,
        next_stop=container.next_stop,
        stops=stops,
    )


@router.post("/journey-progress/start", status_code=status.HTTP_202_ACCEPTED)
async def start_journey_progress(
    orchestrator: PollOrchestrator = Depends(get_orchestrator),
) -> dict:
    orchestrator.start_journey_progress_update()
    return {"running": orchestrator.journey_progress.running}


@router.post("/journey-progress/stop", status_code=status.HTTP_202_ACCEPTED)
async def stop_journey_progress(
    orchestrator: PollOrchestrator = Depends(get_orchestrator),
) -> dict:
    orchestrator.stop_journey_progress_update()
    return {"running": orchestrator.journey_progress.running}


@router.get("/status", response_model=StatusResponse)
async def get_status(orchestrator: PollOrchestrator = Depends(get_orchestrator)) -> StatusResponse:
    return StatusResponse(
        downloading=DownloadState(**orchestrator.download_state()),
        arrivals_timer_progress=orchestrator.arrivals.timer_progress(),
        journey_progress_timer_progress=orchestrator.journey_progress.timer_progress(),
        next_stop=orchestrator.next_stop,
        messages=orchestrator.current_stop_messages,
    )


@router.get("/stops", response_model=StopListResponse)
async def list_stops(
    kind: StopKind | None = Query(None, description="Stop category, all stops when omitted"),
    orchestrator: PollOrchestrator = Depends(get_orchestrator),
) -> StopListResponse:
    stops = await orchestrator.set_stops_query(kind)
    return StopListResponse(total=len(stops), stops=stops)


@router.post("/stops/search", response_model=StopListResponse)
async def search_stops(
    name: str = Query(..., min_length=1, description="Stop point name"),
    orchestrator: PollOrchestrator = Depends(get_orchestrator),
) -> StopListResponse:
    stops = await orchestrator.get_stops_by_name(name)
    return StopListResponse(total=len(stops), stops=stops)


@router.put("/favorites/{code}", response_model=FavoriteResponse)
async def add_favorite(
    code: str,
    orchestrator: PollOrchestrator = Depends(get_orchestrator),
) -> FavoriteResponse:
    ok = orchestrator.favor_stop(code, True)
    return FavoriteResponse(code=code, favorite=orchestrator.is_stop_favorite(code), ok=ok)


@router.delete("/favorites/{code}", response_model=FavoriteResponse)
async def remove_favorite(
    code: str,
    orchestrator: PollOrchestrator = Depends(get_orchestrator),
) -> FavoriteResponse:
    ok = orchestrator.favor_stop(code, False)
    return FavoriteResponse(code=code, favorite=orchestrator.is_stop_favorite(code), ok=ok)
