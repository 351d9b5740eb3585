from fastapi import APIRouter, Depends, Request, Response
from klocc.schemas.jobs import JobRequest, JobResponse
from klocc.services.orchestrator import JobOrchestrator, Outcome
from klocc.core import metrics
import logging

router = APIRouter()
logger = logging.getLogger(__name__)

# HTTP status for each failure code, successes are 200
FAILURE_STATUS = {
    Outcome.BAD_PROVIDER: 400,
    Outcome.FETCH_FAILED: 502,
    Outcome.ANALYSIS_FAILED: 500,
}

# Dependency for JobOrchestrator, created once by the app factory
def get_orchestrator(request: Request) -> JobOrchestrator:
    return request.app.state.orchestrator

@router.post("", response_model=JobResponse)
async def submit_job(
    job: JobRequest,
    response: Response,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """
    Count lines of code of a repository.

    Served from cache when the last analysis is recent or the remote HEAD has
    not moved since, otherwise the repository is cloned and counted again
    before responding.
    """
    logger.debug(f"[JOBS] Request data: provider={job.provider}, username={job.username}, reponame={job.reponame}")

    result = await orchestrator.submit(job.provider, job.username, job.reponame)
    metrics.JOB_OUTCOMES.labels(outcome=result.outcome.value).inc()

    if not result.is_success:
        response.status_code = FAILURE_STATUS[result.outcome]
        return JobResponse(
            status=result.outcome.value,
            message=result.message,
            error=result.message,
            error_kind=result.error_kind,
        )

    return JobResponse(
        status=result.outcome.value,
        message=result.message,
        data=result.record.to_dict(),
    )
