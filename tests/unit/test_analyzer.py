import os
from pathlib import Path
import pytest
from unittest.mock import MagicMock
from klocc.core.exceptions import CloneError, ScanError, WorkspaceError
from klocc.models.analysis import Counts
from klocc.services.analyzer import SourceAnalyzer
from klocc.services.git_client import GitClient

URL = "https://github.com/alice/demo.git"

MAIN_PY = "import os\n\n# comment\nprint(os.name)\n"
UTIL_PY = "def add(a, b):\n    return a + b\n"


def write_repo(root: Path) -> None:
    (root / "src").mkdir(parents=True)
    (root / "src" / "main.py").write_text(MAIN_PY)
    (root / "util.py").write_text(UTIL_PY)
    (root / ".git").mkdir()
    (root / ".git" / "hooks.py").write_text("print('not part of the checkout')\n")


def fake_clone(url: str, destination: str) -> None:
    write_repo(Path(destination))


@pytest.fixture
def temp_root(tmp_path):
    root = tmp_path / "workspaces"
    root.mkdir()
    return root


@pytest.fixture
def git_client():
    client = MagicMock(spec=GitClient)
    client.clone.side_effect = fake_clone
    return client


@pytest.fixture
def analyzer(git_client, temp_root):
    return SourceAnalyzer(git_client, temp_dir_prefix="klocc-test", temp_root=str(temp_root))


def test_analyze_directory_counts(tmp_path):
    """Counts code, comment and blank lines per file and language."""
    repo = tmp_path / "demo"
    write_repo(repo)

    body = SourceAnalyzer(MagicMock(spec=GitClient)).analyze_directory(repo)

    assert list(body.languages) == ["Python"]
    python = body.languages["Python"]
    assert python.files["src/main.py"] == Counts(code=2, comments=1, blanks=1)
    assert python.files["util.py"] == Counts(code=2, comments=0, blanks=0)
    assert python.total == Counts(code=4, comments=1, blanks=1)
    assert body.total == python.total


def test_analyze_directory_skips_vcs_metadata(tmp_path):
    repo = tmp_path / "demo"
    write_repo(repo)

    body = SourceAnalyzer(MagicMock(spec=GitClient)).analyze_directory(repo)

    for stats in body.languages.values():
        assert not any(path.startswith(".git") for path in stats.files)


def test_files_ordered_by_size(tmp_path):
    repo = tmp_path / "demo"
    repo.mkdir()
    (repo / "small.py").write_text("x = 1\n")
    (repo / "big.py").write_text("x = 1\ny = 2\nz = 3\n")

    body = SourceAnalyzer(MagicMock(spec=GitClient)).analyze_directory(repo)

    assert list(body.languages["Python"].files) == ["big.py", "small.py"]


def test_analyze_missing_directory(tmp_path):
    with pytest.raises(ScanError):
        SourceAnalyzer(MagicMock(spec=GitClient)).analyze_directory(tmp_path / "missing")


def test_clone_and_analyze_paths_are_repo_relative(analyzer, git_client, temp_root):
    """Paths never leak the temporary directory the repository was cloned into."""
    body = analyzer.clone_and_analyze(URL, "demo")

    destination = git_client.clone.call_args.args[1]
    assert destination.startswith(str(temp_root))
    assert Path(destination).name == "demo"

    files = body.languages["Python"].files
    assert set(files) == {"src/main.py", "util.py"}
    for path in files:
        assert not os.path.isabs(path)
        assert str(temp_root) not in path
    assert body.total.code > 0


def test_workspace_removed_after_success(analyzer, temp_root):
    analyzer.clone_and_analyze(URL, "demo")
    assert list(temp_root.iterdir()) == []


def test_workspace_removed_after_clone_failure(analyzer, git_client, temp_root):
    def failing_clone(url, destination):
        # Leave a partial checkout behind before failing
        Path(destination).mkdir(parents=True)
        (Path(destination) / "partial.py").write_text("x = 1\n")
        raise CloneError("Failed to fetch the repository")

    git_client.clone.side_effect = failing_clone

    with pytest.raises(CloneError):
        analyzer.clone_and_analyze(URL, "demo")
    assert list(temp_root.iterdir()) == []


def test_workspace_removed_after_scan_failure(analyzer, temp_root, monkeypatch):
    def failing_scan(root):
        raise ScanError("boom")

    monkeypatch.setattr(analyzer, "analyze_directory", failing_scan)

    with pytest.raises(ScanError):
        analyzer.clone_and_analyze(URL, "demo")
    assert list(temp_root.iterdir()) == []


def test_workspace_creation_failure(git_client, tmp_path):
    analyzer = SourceAnalyzer(git_client, temp_root=str(tmp_path / "does-not-exist"))

    with pytest.raises(WorkspaceError) as exc_info:
        analyzer.clone_and_analyze(URL, "demo")
    assert exc_info.value.kind == "io"
    git_client.clone.assert_not_called()
