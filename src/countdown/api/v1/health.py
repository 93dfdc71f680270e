from fastapi import APIRouter, Request

from countdown.models.common import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    version = request.app.version or "0.0.0"
    return HealthResponse(version=str(version))
