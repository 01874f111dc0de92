import time

from fastapi import APIRouter

from splitpay.features.health.schemas import HealthResponse

router = APIRouter()

_STARTED_AT = time.monotonic()


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="ok", uptime=round(time.monotonic() - _STARTED_AT, 3))
