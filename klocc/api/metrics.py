from fastapi import APIRouter, Depends
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from klocc.api.jobs import get_orchestrator
from klocc.core import metrics
from klocc.services.orchestrator import JobOrchestrator

router = APIRouter()

# Native metrics export support for Prometheus.
@router.get("")
async def export_metrics(orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    stats = await orchestrator.stats()
    metrics.CACHED_REPOSITORIES.set(stats["cached_count"])
    metrics.INFLIGHT_ANALYSES.set(stats["inflight_count"])
    return Response(content=generate_latest(metrics.REGISTRY), media_type=CONTENT_TYPE_LATEST)
