"""
Thin wrapper around the git command line.

Both operations are blocking and are meant to be run on a worker thread
(the orchestrator uses asyncio.to_thread). Failures are raised as
RemoteFetchError / CloneError with enough detail to tell a missing
repository from a network problem.
"""
import logging
import os
import re
import subprocess
from typing import List, Optional

from klocc.core.exceptions import CloneError, RemoteFetchError

logger = logging.getLogger(__name__)

# Full SHA-1 or SHA-256 object id.
COMMIT_HASH_PATTERN = re.compile(r"^(?:[0-9a-f]{40}|[0-9a-f]{64})$")

# Substrings git prints when the remote answered but the repository is not there
# (or is private, which looks the same without credentials).
NOT_FOUND_MARKERS = (
    "repository not found",
    "not found",
    "does not exist",
    "could not read username",
    "authentication failed",
)


class GitClient:
    def __init__(
        self,
        git_binary: str = "git",
        ls_remote_timeout: float = 30.0,
        clone_timeout: float = 300.0,
        clone_depth: int = 1,
        recurse_submodules: bool = True,
    ) -> None:
        self.git_binary = git_binary
        self.ls_remote_timeout = ls_remote_timeout
        self.clone_timeout = clone_timeout
        self.clone_depth = clone_depth
        self.recurse_submodules = recurse_submodules

    def _env(self) -> dict:
        env = dict(os.environ)
        # Never wait for credentials on a private or missing repository.
        env["GIT_TERMINAL_PROMPT"] = "0"
        env["GIT_ASKPASS"] = "echo"
        return env

    def _run(self, args: List[str], timeout: float) -> subprocess.CompletedProcess:
        cmd = [self.git_binary, *args]
        logger.debug(f"Running: {' '.join(cmd)}")
        return subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=self._env(),
            timeout=timeout,
            check=False,
        )

    def fetch_remote_head_hash(self, repo_url: str, branch: str = "HEAD") -> str:
        """
        Return the commit hash the remote currently has for ``branch``.

        Uses ``git ls-remote`` so nothing is cloned.

        Args:
            repo_url: Clone URL of the repository.
            branch: Ref to resolve. "HEAD" is the remote's default branch.

        Returns:
            The commit hash as a lowercase hex string.

        Raises:
            RemoteFetchError: kind "network" if git could not run or reach the
                remote, "not_found" if the repository or ref does not exist,
                "invalid_output" if the output does not hold a hash.
        """
        try:
            result = self._run(["ls-remote", "--", repo_url, branch], timeout=self.ls_remote_timeout)
        except subprocess.TimeoutExpired:
            raise RemoteFetchError(
                f"Timed out fetching latest hash from {repo_url} for the branch '{branch}'",
                kind="network",
            )
        except OSError as e:
            raise RemoteFetchError(f"Internal error while executing git: {e}", kind="network")

        if result.returncode != 0:
            stderr = _decode(result.stderr)
            kind = "not_found" if _looks_like_not_found(stderr) else "network"
            raise RemoteFetchError(
                f"Failed to fetch latest hash from the remote repository ({repo_url}) "
                f"for the branch '{branch}': {stderr or 'non-zero exit status'}",
                kind=kind,
            )

        try:
            output = result.stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            raise RemoteFetchError(f"Invalid UTF-8 sequence in git output: {e}", kind="invalid_output")

        first_line = output.strip().splitlines()[0] if output.strip() else ""
        if not first_line:
            # ls-remote exits 0 with no output when the ref does not exist.
            raise RemoteFetchError(f"No ref '{branch}' found in {repo_url}", kind="not_found")

        commit_hash = first_line.split("\t", 1)[0].strip().lower()
        if not COMMIT_HASH_PATTERN.match(commit_hash):
            raise RemoteFetchError(
                f"Unexpected 'git ls-remote' output for {repo_url}: {first_line!r}",
                kind="invalid_output",
            )

        return commit_hash

    def clone(self, repo_url: str, destination: str) -> None:
        """
        Shallow, single-branch clone of the default branch into ``destination``.

        Raises:
            CloneError: If git could not be started, timed out or exited non-zero.
        """
        args = ["clone", "--depth", str(self.clone_depth), "--single-branch"]
        if self.recurse_submodules:
            args += ["--recurse-submodules", "--shallow-submodules"]
        args += ["--", repo_url, destination]

        try:
            result = self._run(args, timeout=self.clone_timeout)
        except subprocess.TimeoutExpired:
            raise CloneError(f"Timed out cloning {repo_url} after {self.clone_timeout}s")
        except OSError as e:
            raise CloneError(f"Internal error while executing git: {e}")

        if result.returncode != 0:
            stderr = _decode(result.stderr)
            raise CloneError(
                f"Failed to fetch the repository {repo_url}: {stderr or 'non-zero exit status'}"
            )


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace").strip()


def _looks_like_not_found(stderr: str) -> bool:
    lowered = stderr.lower()
    return any(marker in lowered for marker in NOT_FOUND_MARKERS)
