"""
Per-request job flow.

    START -> CHECK_CACHE -> (VERIFY) -> (RECOMPUTE) -> outcome

The cache lock is only taken inside AnalysisCache calls, never around the
remote hash lookup or the clone-and-count work, which both run on worker
threads through asyncio.to_thread.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from klocc.core import metrics
from klocc.core.exceptions import AnalysisError, RemoteFetchError, UnsupportedProviderError
from klocc.models.analysis import AnalysisRecord
from klocc.services.analyzer import SourceAnalyzer
from klocc.services.cache import AnalysisCache
from klocc.services.freshness import FreshnessDecision, decide, hash_matches
from klocc.services.git_client import GitClient
from klocc.utils.url_helpers import expand_repo_url, repo_name_from_url

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    SERVED_CACHED_RECENT = "served_cached_recent"
    SERVED_CACHED_VERIFIED = "served_cached_verified"
    SERVED_FRESH = "served_fresh"
    BAD_PROVIDER = "bad_provider"
    FETCH_FAILED = "fetch_failed"
    ANALYSIS_FAILED = "analysis_failed"

    @property
    def is_success(self) -> bool:
        return self in (Outcome.SERVED_CACHED_RECENT, Outcome.SERVED_CACHED_VERIFIED, Outcome.SERVED_FRESH)


MESSAGES = {
    Outcome.SERVED_CACHED_RECENT: "Your request was satisfied instantly, because it was found in cache.",
    Outcome.SERVED_CACHED_VERIFIED: "Your request was satisfied from cache, the repository has not changed since the last analysis.",
    Outcome.SERVED_FRESH: "The repo was analyzed successfully and result was stored for later reference.",
}


@dataclass(frozen=True)
class JobOutcome:
    outcome: Outcome
    record: Optional[AnalysisRecord] = None
    message: str = ""
    error_kind: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.outcome.is_success

    @classmethod
    def served(cls, outcome: Outcome, record: AnalysisRecord) -> "JobOutcome":
        return cls(outcome=outcome, record=record, message=MESSAGES[outcome])

    @classmethod
    def failed(cls, outcome: Outcome, message: str, error_kind: Optional[str] = None) -> "JobOutcome":
        return cls(outcome=outcome, message=message, error_kind=error_kind)


class JobOrchestrator:
    """
    Decides for every request whether to serve the cache, verify it against
    the remote, or clone and count the repository again.

    Args:
        cache: The shared analysis store.
        git_client: Used for the cheap remote HEAD lookup.
        analyzer: Clone-and-count collaborator.
        trust_window_seconds: Age below which a record is served without a
            remote check.
        collapse_inflight: Let concurrent requests for one repository share a
            single running recomputation.
        clock: Returns the current time in epoch seconds.
    """

    def __init__(
        self,
        cache: AnalysisCache,
        git_client: GitClient,
        analyzer: SourceAnalyzer,
        trust_window_seconds: float = 300,
        collapse_inflight: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache = cache
        self.git_client = git_client
        self.analyzer = analyzer
        self.trust_window_seconds = trust_window_seconds
        self.collapse_inflight = collapse_inflight
        self.clock = clock
        # Running recomputations keyed by clone URL
        self._inflight: Dict[str, "asyncio.Task[JobOutcome]"] = {}

    async def submit(self, provider: str, owner: str, name: str) -> JobOutcome:
        """
        Run one job request to completion.

        Args:
            provider: Provider alias ("github", "gitlab").
            owner: Repository owner.
            name: Repository name.

        Returns:
            A JobOutcome carrying either the record served or the failure code.
        """
        try:
            repo_url = expand_repo_url(provider, owner, name)
        except UnsupportedProviderError as e:
            logger.warning(f"Rejected job for {provider}/{owner}/{name}: {e.message}")
            return JobOutcome.failed(Outcome.BAD_PROVIDER, e.message, e.kind)

        record = await self.cache.get(repo_url)
        decision = decide(record, self.clock(), self.trust_window_seconds)

        if decision is FreshnessDecision.SERVE_CACHED:
            logger.info(f"Serving {repo_url} from cache (verified within the trust window)")
            return JobOutcome.served(Outcome.SERVED_CACHED_RECENT, record)

        # Both remaining paths need the remote HEAD: to verify the cached
        # record, or to stamp the hash on the record about to be computed.
        try:
            remote_hash = await asyncio.to_thread(self.git_client.fetch_remote_head_hash, repo_url, "HEAD")
        except RemoteFetchError as e:
            logger.error(f"Failed to fetch latest hash for {repo_url}: {e.message}")
            return JobOutcome.failed(Outcome.FETCH_FAILED, e.message, e.kind)

        if decision is FreshnessDecision.VERIFY_THEN_SERVE_OR_RECOMPUTE and hash_matches(record, remote_hash):
            current = await self.cache.renew(repo_url, record, self.clock())
            logger.info(f"Cache for {repo_url} verified against remote HEAD {remote_hash}")
            return JobOutcome.served(Outcome.SERVED_CACHED_VERIFIED, current or record)

        if record is not None:
            logger.info(f"Remote HEAD of {repo_url} moved ({record.last_known_commit_hash} -> {remote_hash}), recomputing")
        else:
            logger.info(f"No cached analysis for {repo_url}, computing")

        return await self._recompute(repo_url, remote_hash)

    async def _recompute(self, repo_url: str, remote_hash: str) -> JobOutcome:
        if not self.collapse_inflight:
            return await self._run_analysis(repo_url, remote_hash)

        # No await between the lookup and the insert, so two requests on the
        # event loop cannot both start a task for the same key.
        task = self._inflight.get(repo_url)
        if task is None:
            task = asyncio.create_task(self._run_analysis(repo_url, remote_hash))
            self._inflight[repo_url] = task
            task.add_done_callback(lambda _: self._forget(repo_url, task))
        else:
            logger.info(f"Joining running analysis of {repo_url}")

        # Shielded so a disconnecting caller does not cancel work others wait on.
        return await asyncio.shield(task)

    def _forget(self, repo_url: str, task: "asyncio.Task[JobOutcome]") -> None:
        if self._inflight.get(repo_url) is task:
            del self._inflight[repo_url]
        # Every waiter may have been cancelled, so nobody else is left to
        # retrieve an unexpected error.
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Analysis of {repo_url} crashed", exc_info=task.exception())

    async def _run_analysis(self, repo_url: str, remote_hash: str) -> JobOutcome:
        repo_name = repo_name_from_url(repo_url)
        started = self.clock()

        try:
            body = await asyncio.to_thread(self.analyzer.clone_and_analyze, repo_url, repo_name)
        except AnalysisError as e:
            logger.error(f"Analysis of {repo_url} failed ({e.kind}): {e.message}")
            return JobOutcome.failed(Outcome.ANALYSIS_FAILED, e.message, e.kind)

        record = AnalysisRecord.from_body(repo_url, remote_hash, body, self.clock())
        await self.cache.upsert(repo_url, record)
        metrics.TOTAL_REPOSITORIES_SERVED.inc()

        logger.info(
            f"Analyzed {repo_url} at {remote_hash} in {record.created_at - started:.1f}s "
            f"({record.total.code} lines of code)"
        )
        return JobOutcome.served(Outcome.SERVED_FRESH, record)

    async def stats(self) -> Dict[str, int]:
        return {
            "cached_count": await self.cache.count(),
            "inflight_count": len(self._inflight),
        }
