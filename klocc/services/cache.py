import asyncio
import logging
from typing import Dict, List, Optional

from klocc.models.analysis import AnalysisRecord

logger = logging.getLogger(__name__)

class AnalysisCache:
    """
    Process-wide in-memory store of analysis records keyed by clone URL.

    One lock guards the whole key space. Every method holds it only for the
    dictionary operation itself, so no caller can keep it across a clone or a
    remote lookup. The store is created once per application and handed to
    request handlers, it is lost on restart.
    """

    def __init__(self) -> None:
        self._records: Dict[str, AnalysisRecord] = {}
        self._lock = asyncio.Lock()

    async def get(self, repo_url: str) -> Optional[AnalysisRecord]:
        """
        Return the record cached for a repository.

        Args:
            repo_url: The canonical clone URL.

        Returns:
            The current record, or None if the repository was never analyzed.
        """
        async with self._lock:
            record = self._records.get(repo_url)

        if record is None:
            logger.debug(f"Cache miss for {repo_url}")
        return record

    async def upsert(self, repo_url: str, record: AnalysisRecord) -> None:
        """
        Save or replace the record for a repository.

        Args:
            repo_url: The canonical clone URL.
            record: A complete record from a successful analysis.

        Raises:
            ValueError: If the record belongs to another repository.
        """
        if record.repository_url != repo_url:
            raise ValueError(
                f"Record for {record.repository_url} cannot be stored under {repo_url}"
            )

        async with self._lock:
            replaced = repo_url in self._records
            self._records[repo_url] = record

        if replaced:
            logger.info(f"Updated cache for {repo_url} ({record.last_known_commit_hash})")
        else:
            logger.info(f"Created new cache entry for {repo_url} ({record.last_known_commit_hash})")

    async def renew(self, repo_url: str, record: AnalysisRecord, verified_at: float) -> Optional[AnalysisRecord]:
        """
        Mark a record as verified against the remote at ``verified_at``.

        The entry is only touched if it is still the record the caller
        verified. If a recomputation replaced it in the meantime the newer
        record is kept and returned instead.

        Returns:
            The record now stored for the repository, or None if it vanished.
        """
        async with self._lock:
            current = self._records.get(repo_url)
            if current is record:
                current = record.renewed(verified_at)
                self._records[repo_url] = current

        return current

    async def count(self) -> int:
        async with self._lock:
            return len(self._records)

    async def keys(self) -> List[str]:
        async with self._lock:
            return list(self._records)
