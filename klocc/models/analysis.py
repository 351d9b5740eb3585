from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict


@dataclass(frozen=True)
class Counts:
    code: int = 0
    comments: int = 0
    blanks: int = 0

    @property
    def lines(self) -> int:
        return self.code + self.comments + self.blanks

    def __add__(self, other: "Counts") -> "Counts":
        return Counts(
            code=self.code + other.code,
            comments=self.comments + other.comments,
            blanks=self.blanks + other.blanks,
        )

    def to_dict(self) -> Dict[str, int]:
        return {"code": self.code, "comments": self.comments, "blanks": self.blanks}


@dataclass(frozen=True)
class LanguageStats:
    """Totals for one language plus per-file counts keyed by repo-relative path."""

    total: Counts
    files: Dict[str, Counts] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total.to_dict(),
            "files": {path: counts.to_dict() for path, counts in self.files.items()},
        }


@dataclass(frozen=True)
class AnalysisBody:
    """Result of counting one checkout, before it is tied to a commit and a time."""

    total: Counts
    languages: Dict[str, LanguageStats] = field(default_factory=dict)


@dataclass(frozen=True)
class AnalysisRecord:
    """
    Cached analysis of one repository.

    Records are immutable. A recomputation replaces the whole record, and a
    successful freshness check replaces it with a copy that only differs in
    ``verified_at``, so readers never observe a half-updated entry.
    """

    repository_url: str
    last_known_commit_hash: str
    created_at: float
    verified_at: float
    total: Counts
    languages: Dict[str, LanguageStats] = field(default_factory=dict)

    @classmethod
    def from_body(cls, repository_url: str, commit_hash: str, body: AnalysisBody, now: float) -> "AnalysisRecord":
        return cls(
            repository_url=repository_url,
            last_known_commit_hash=commit_hash,
            created_at=now,
            verified_at=now,
            total=body.total,
            languages=body.languages,
        )

    def renewed(self, verified_at: float) -> "AnalysisRecord":
        return replace(self, verified_at=verified_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "repo": self.repository_url,
            "hash": self.last_known_commit_hash,
            "created_at": self.created_at,
            "verified_at": self.verified_at,
            "total": self.total.to_dict(),
            "languages": {name: stats.to_dict() for name, stats in self.languages.items()},
        }
