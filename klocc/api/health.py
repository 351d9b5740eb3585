from fastapi import APIRouter, Depends
from klocc.api.jobs import get_orchestrator
from klocc.schemas.jobs import HealthResponse
from klocc.services.orchestrator import JobOrchestrator

router = APIRouter()

@router.get("", response_model=HealthResponse)
async def health_check(orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    """
    Liveness probe with cache gauges.

    Only reads counters, so it stays fast while repositories are being cloned.
    """
    stats = await orchestrator.stats()
    return HealthResponse(status="healthy", **stats)
