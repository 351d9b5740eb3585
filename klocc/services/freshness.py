"""
Freshness policy for cached analyses.

Recomputing is expensive (full clone and scan). Asking the remote for its HEAD
hash is cheap but still a network round trip, so a short trust window turns a
burst of identical requests into zero network calls, and the hash check keeps
older entries honest without recloning when nothing was pushed.
"""
from enum import Enum
from typing import Optional

from klocc.models.analysis import AnalysisRecord


class FreshnessDecision(str, Enum):
    SERVE_CACHED = "serve_cached"
    VERIFY_THEN_SERVE_OR_RECOMPUTE = "verify_then_serve_or_recompute"
    RECOMPUTE = "recompute"


def decide(record: Optional[AnalysisRecord], now: float, trust_window_seconds: float) -> FreshnessDecision:
    if record is None:
        return FreshnessDecision.RECOMPUTE

    if now - record.verified_at < trust_window_seconds:
        return FreshnessDecision.SERVE_CACHED

    return FreshnessDecision.VERIFY_THEN_SERVE_OR_RECOMPUTE


def hash_matches(record: Optional[AnalysisRecord], remote_hash: str) -> bool:
    """True when the cached analysis was made from the commit the remote points at."""
    if record is None or not record.last_known_commit_hash:
        return False
    return record.last_known_commit_hash == remote_hash
