from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from contextlib import asynccontextmanager
from typing import Optional
from klocc import __version__
from klocc.api import health, jobs, metrics as metrics_api
from klocc.core import metrics
from klocc.core.config import Settings, settings
from klocc.core.logging import setup_logging
from klocc.services.analyzer import SourceAnalyzer
from klocc.services.cache import AnalysisCache
from klocc.services.git_client import GitClient
from klocc.services.orchestrator import JobOrchestrator
import logging

logger = logging.getLogger(__name__)


class JobBodyLimit:
    """
    Refuse job request bodies larger than ``max_bytes`` with a 413.

    A declared Content-Length is checked up front. Bodies without one
    (chunked uploads) are counted while they are received and refused as soon
    as the running total passes the limit, so they are never buffered whole.
    """

    def __init__(self, app, path: str, max_bytes: int):
        self.app = app
        self.path = path
        self.max_bytes = max_bytes

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or scope["method"] != "POST" or scope["path"] != self.path:
            await self.app(scope, receive, send)
            return

        length = Headers(scope=scope).get("content-length")
        if length is not None and length.isdigit() and int(length) > self.max_bytes:
            logger.warning(f"Refused job request body of {length} bytes")
            await self.too_large()(scope, receive, send)
            return

        received = 0

        async def limited_receive():
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    logger.warning(f"Refused streamed job request body after {received} bytes")
                    raise HTTPException(status_code=413, detail=self.detail)
            return message

        await self.app(scope, limited_receive, send)

    @property
    def detail(self) -> str:
        return f"Request body exceeds {self.max_bytes} bytes"

    def too_large(self) -> JSONResponse:
        return JSONResponse(status_code=413, content={"detail": self.detail})


def build_orchestrator(app_settings: Settings) -> JobOrchestrator:
    """Wire the cache and the git/analyzer collaborators from settings."""
    git_client = GitClient(
        git_binary=app_settings.GIT_BINARY,
        ls_remote_timeout=app_settings.LS_REMOTE_TIMEOUT_SECONDS,
        clone_timeout=app_settings.CLONE_TIMEOUT_SECONDS,
        clone_depth=app_settings.CLONE_DEPTH,
        recurse_submodules=app_settings.RECURSE_SUBMODULES,
    )
    analyzer = SourceAnalyzer(git_client, temp_dir_prefix=app_settings.TEMP_DIR_PREFIX)
    return JobOrchestrator(
        cache=AnalysisCache(),
        git_client=git_client,
        analyzer=analyzer,
        trust_window_seconds=app_settings.TRUST_WINDOW_SECONDS,
        collapse_inflight=app_settings.COLLAPSE_INFLIGHT,
    )


def create_app(app_settings: Settings = settings, orchestrator: Optional[JobOrchestrator] = None) -> FastAPI:
    setup_logging(app_settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle startup and shutdown events."""
        logger.info(f"{app_settings.PROJECT_NAME} starting up (trust window {app_settings.TRUST_WINDOW_SECONDS}s)")
        yield
        stats = await app.state.orchestrator.stats()
        logger.info(f"{app_settings.PROJECT_NAME} shutting down, dropping {stats['cached_count']} cached analyses")

    app = FastAPI(
        title=app_settings.PROJECT_NAME,
        description="Counts lines of code of public git repositories",
        version=__version__,
        lifespan=lifespan
    )

    # The store lives as long as the app and is shared by every handler.
    app.state.orchestrator = orchestrator or build_orchestrator(app_settings)

    jobs_path = f"{app_settings.API_PREFIX}/jobs"

    # Add validation error handler to log 422 errors
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.error(f"[VALIDATION ERROR] on {request.url}: {exc.errors()}")
        return JSONResponse(
            status_code=422,
            content={"detail": jsonable_errors(exc)},
        )

    @app.middleware("http")
    async def count_job_requests(request: Request, call_next):
        response = await call_next(request)
        if request.method == "POST" and request.url.path == jobs_path:
            metrics.TOTAL_REQUESTS_SERVED.inc()
        return response

    # Job payloads are three short strings, anything bigger is refused
    # before it is read into memory.
    app.add_middleware(JobBodyLimit, path=jobs_path, max_bytes=app_settings.MAX_BODY_BYTES)

    # Configure CORS
    # Results are public, so any origin may read them; no cookies are involved.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix=f"{app_settings.API_PREFIX}/health", tags=["health"])
    app.include_router(jobs.router, prefix=jobs_path, tags=["jobs"])
    app.include_router(metrics_api.router, prefix=f"{app_settings.API_PREFIX}/metrics", tags=["metrics"])

    return app


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold the raised ValueError itself, which is not JSON serializable
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


app = create_app()
