import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Iterator, Optional

from pygount import SourceAnalysis

from klocc.core.exceptions import ScanError, WorkspaceError
from klocc.models.analysis import AnalysisBody, Counts, LanguageStats
from klocc.services.git_client import GitClient

logger = logging.getLogger(__name__)

# Directories that never hold analyzable sources of the checkout itself.
SKIPPED_DIRECTORIES = {".git", ".hg", ".svn"}

# Service responsible for turning a remote repository into line counts
class SourceAnalyzer:
    def __init__(self, git_client: GitClient, temp_dir_prefix: str = "cloned_repositories", temp_root: Optional[str] = None) -> None:
        self.git_client = git_client
        self.temp_dir_prefix = temp_dir_prefix
        # None means the platform default temp directory
        self.temp_root = temp_root

    def clone_and_analyze(self, repo_url: str, repo_name: str) -> AnalysisBody:
        """
        Clones a repository into a throwaway directory and counts its lines.

        Blocking: run it on a worker thread. The temporary directory is
        removed on every exit path, including clone and scan failures.

        Args:
            repo_url: The clone URL.
            repo_name: Repository name, used as the checkout directory name.

        Returns:
            Totals and per-language / per-file counts with repo-relative paths.

        Raises:
            WorkspaceError: If the temporary directory cannot be created.
            CloneError: If git fails to clone the repository.
            ScanError: If counting fails on the cloned tree.
        """
        logger.info(f"Starting KLOCC procedure for {repo_url}")

        try:
            workspace = tempfile.TemporaryDirectory(prefix=self.temp_dir_prefix, dir=self.temp_root)
        except OSError as e:
            raise WorkspaceError(f"Failed to create temporary directory: {e}")

        with workspace as tmp:
            checkout = Path(tmp) / repo_name

            logger.info(f"Cloning {repo_url} ...")
            self.git_client.clone(repo_url, str(checkout))

            logger.info(f"Counting lines for {repo_url} ...")
            body = self.analyze_directory(checkout)

            logger.info(f"Cleaning up after {repo_url} ...")

        return body

    def analyze_directory(self, root: Path) -> AnalysisBody:
        """
        Count code, comment and blank lines of every source file below ``root``.

        Paths in the result are relative to ``root`` and use "/" separators.
        Languages are ordered by total lines (biggest first), files inside a
        language by their own total lines.
        """
        root = Path(root)
        if not root.is_dir():
            raise ScanError(f"Checkout {root.name} is not a directory")

        per_language: Dict[str, Dict[str, Counts]] = {}
        try:
            for path in _iter_files(root):
                analysis = SourceAnalysis.from_file(str(path), root.name)
                if not analysis.is_countable:
                    continue

                # Lines holding only string literals are code, docstrings are
                # already reported by pygount as documentation.
                counts = Counts(
                    code=analysis.code_count + analysis.string_count,
                    comments=analysis.documentation_count,
                    blanks=analysis.empty_count,
                )
                relative = path.relative_to(root).as_posix()
                per_language.setdefault(analysis.language, {})[relative] = counts
        except OSError as e:
            raise ScanError(f"Failed to count lines in {root.name}: {e}")

        languages: Dict[str, LanguageStats] = {}
        for language, files in per_language.items():
            ordered = dict(sorted(files.items(), key=lambda item: (-item[1].lines, item[0])))
            total = sum(ordered.values(), Counts())
            languages[language] = LanguageStats(total=total, files=ordered)

        languages = dict(sorted(languages.items(), key=lambda item: (-item[1].total.lines, item[0])))
        total = sum((stats.total for stats in languages.values()), Counts())

        logger.debug(f"Counted {len(languages)} languages in {root.name}: {total}")
        return AnalysisBody(total=total, languages=languages)


def _iter_files(root: Path) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        # Prune in place so os.walk does not descend into VCS metadata.
        dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRECTORIES)
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            if path.is_symlink():
                continue
            yield path
