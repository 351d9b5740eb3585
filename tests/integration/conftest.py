import threading
import time
from pathlib import Path
from typing import AsyncGenerator, Dict, List

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from klocc.core.exceptions import CloneError, RemoteFetchError
from klocc.main import create_app
from klocc.services.analyzer import SourceAnalyzer
from klocc.services.cache import AnalysisCache
from klocc.services.orchestrator import JobOrchestrator

TRUST_WINDOW = 300

DEMO_FILES = {
    "src/main.py": "import os\n\n# entry point\nprint(os.getcwd())\n",
    "src/util.py": "def double(x):\n    return x * 2\n",
    "README.md": "# demo\n",
}


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGitClient:
    """
    Stands in for the git command line.

    ``heads`` maps clone URLs to the hash ls-remote should report, ``trees``
    maps them to the files a clone should produce. Unknown URLs behave like a
    missing repository.
    """

    def __init__(self) -> None:
        self.heads: Dict[str, str] = {}
        self.trees: Dict[str, Dict[str, str]] = {}
        self.ls_remote_calls: List[str] = []
        self.clone_calls: List[str] = []
        self.clone_destinations: List[str] = []
        # Seconds a clone takes, to keep an analysis running while others arrive
        self.clone_delay = 0.0
        self._lock = threading.Lock()

    def fetch_remote_head_hash(self, repo_url: str, branch: str = "HEAD") -> str:
        with self._lock:
            self.ls_remote_calls.append(repo_url)
        if repo_url not in self.heads:
            raise RemoteFetchError(f"Repository {repo_url} not found", kind="not_found")
        return self.heads[repo_url]

    def clone(self, repo_url: str, destination: str) -> None:
        with self._lock:
            self.clone_calls.append(repo_url)
            self.clone_destinations.append(destination)
        if self.clone_delay:
            time.sleep(self.clone_delay)
        if repo_url not in self.trees:
            raise CloneError(f"Failed to fetch the repository {repo_url}")
        for relative, content in self.trees[repo_url].items():
            path = Path(destination) / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def git_client() -> FakeGitClient:
    client = FakeGitClient()
    url = "https://github.com/alice/demo.git"
    client.heads[url] = "1" * 40
    client.trees[url] = dict(DEMO_FILES)
    return client


@pytest.fixture
def workspace_root(tmp_path) -> Path:
    root = tmp_path / "workspaces"
    root.mkdir()
    return root


@pytest.fixture
def orchestrator(git_client, clock, workspace_root) -> JobOrchestrator:
    analyzer = SourceAnalyzer(git_client, temp_dir_prefix="klocc-it", temp_root=str(workspace_root))
    return JobOrchestrator(
        cache=AnalysisCache(),
        git_client=git_client,
        analyzer=analyzer,
        trust_window_seconds=TRUST_WINDOW,
        clock=clock,
    )


@pytest_asyncio.fixture
async def client(orchestrator) -> AsyncGenerator[AsyncClient, None]:
    """Provide an AsyncClient for an app wired to the fake git host."""
    app = create_app(orchestrator=orchestrator)

    # Use ASGITransport for testing FastAPI apps
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
