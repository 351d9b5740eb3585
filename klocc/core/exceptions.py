"""
Error taxonomy for the job pipeline.

Services raise these; the orchestrator catches them and turns them into a
caller-visible outcome. Anything not derived from ``KloccError`` is a bug and
is left to propagate.
"""


class KloccError(Exception):
    """Base class for expected failures of a job."""

    kind: str = "error"

    def __init__(self, message: str, kind: str | None = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class UnsupportedProviderError(KloccError):
    kind = "bad_provider"


class InvalidRepositoryNameError(UnsupportedProviderError):
    """Owner or repository name is malformed; the provider itself is fine."""

    kind = "invalid_name"


class RemoteFetchError(KloccError):
    """`git ls-remote` did not yield a usable hash.

    kind is one of ``network``, ``not_found`` or ``invalid_output``.
    """

    kind = "network"


class AnalysisError(KloccError):
    kind = "analysis_error"


class CloneError(AnalysisError):
    kind = "clone_failed"


class ScanError(AnalysisError):
    kind = "scan_failed"


class WorkspaceError(AnalysisError):
    """Temporary workspace could not be created or used."""

    kind = "io"
