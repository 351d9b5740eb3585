"""
Repository URL helpers.

The service never accepts raw URLs from callers. A provider alias plus owner
and repository name are expanded into a canonical clone URL here, which is
also the cache key, so the same repository always maps to the same entry.
"""
import re
from typing import Dict

from klocc.core.exceptions import InvalidRepositoryNameError, UnsupportedProviderError

# Supported git hosts. This is the only place where provider aliases are matched.
PROVIDERS: Dict[str, str] = {
    "github": "https://github.com/{owner}/{name}.git",
    "gitlab": "https://gitlab.com/{owner}/{name}.git",
}

# Owner and repository names as accepted by the supported hosts. A leading
# dash or dot is refused so a name can never be read as a git option or a
# relative path.
NAME_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$")


def is_valid_name(value: str) -> bool:
    return bool(value) and NAME_PATTERN.match(value) is not None


def expand_repo_url(provider: str, owner: str, name: str) -> str:
    """
    Expand a provider alias, owner and repository name into a clone URL.

    Args:
        provider: Provider alias, e.g. "github" or "gitlab".
        owner: User or organization that owns the repository.
        name: Repository name, without a ".git" suffix.

    Returns:
        The canonical clone URL.

    Raises:
        UnsupportedProviderError: If the alias is unknown.
        InvalidRepositoryNameError: If the owner or repository name is malformed.

    Examples:
        >>> expand_repo_url("github", "alice", "demo")
        'https://github.com/alice/demo.git'

        >>> expand_repo_url("gitlab", "alice", "demo")
        'https://gitlab.com/alice/demo.git'
    """
    template = PROVIDERS.get(provider)
    if template is None:
        raise UnsupportedProviderError(
            f"Service provider for git with a name '{provider}' is not supported!"
        )

    if not is_valid_name(owner) or not is_valid_name(name):
        raise InvalidRepositoryNameError(
            f"Invalid repository reference '{owner}/{name}' for provider '{provider}'"
        )

    return template.format(owner=owner, name=name)


def repo_name_from_url(url: str) -> str:
    """
    Return the last path component of a clone URL without the ".git" suffix.

    >>> repo_name_from_url("https://github.com/alice/demo.git")
    'demo'
    """
    tail = url.rstrip("/").rsplit("/", 1)[-1]
    if tail.endswith(".git"):
        tail = tail[:-4]
    return tail
