import pytest
from klocc.core.exceptions import InvalidRepositoryNameError, UnsupportedProviderError
from klocc.utils.url_helpers import expand_repo_url, is_valid_name, repo_name_from_url


class TestExpandRepoUrl:
    """Test cases for provider alias expansion."""

    def test_supported_providers(self):
        """Test that every supported provider expands to its clone URL."""
        test_cases = [
            (("github", "alice", "demo"), "https://github.com/alice/demo.git"),
            (("gitlab", "alice", "demo"), "https://gitlab.com/alice/demo.git"),
            (("github", "some-org", "repo.name_2"), "https://github.com/some-org/repo.name_2.git"),
        ]

        for args, expected in test_cases:
            assert expand_repo_url(*args) == expected, f"Failed for: {args}"

    def test_expansion_is_deterministic(self):
        """The same triple always yields the same cache key."""
        assert expand_repo_url("github", "alice", "demo") == expand_repo_url("github", "alice", "demo")

    def test_unsupported_provider(self):
        """Test that unknown aliases are rejected."""
        for provider in ["bitbucket", "GitHub", "", "github.com"]:
            with pytest.raises(UnsupportedProviderError, match="not supported"):
                expand_repo_url(provider, "alice", "demo")

    def test_malformed_names(self):
        """Names that could be read as options or paths are rejected."""
        invalid = [
            ("alice", "--upload-pack=touch"),
            ("-alice", "demo"),
            ("alice", "../demo"),
            ("alice/evil", "demo"),
            ("alice", ""),
            ("alice", ".hidden"),
        ]

        for owner, name in invalid:
            with pytest.raises(InvalidRepositoryNameError) as exc_info:
                expand_repo_url("github", owner, name)
            assert exc_info.value.kind == "invalid_name"
            assert "not supported" not in exc_info.value.message

    def test_error_kind(self):
        with pytest.raises(UnsupportedProviderError) as exc_info:
            expand_repo_url("bitbucket", "alice", "demo")
        assert exc_info.value.kind == "bad_provider"


def test_is_valid_name():
    assert is_valid_name("demo")
    assert is_valid_name("demo.js")
    assert not is_valid_name("-demo")
    assert not is_valid_name("de mo")


def test_repo_name_from_url():
    assert repo_name_from_url("https://github.com/alice/demo.git") == "demo"
    assert repo_name_from_url("https://gitlab.com/alice/demo") == "demo"
    assert repo_name_from_url("https://gitlab.com/alice/demo.git/") == "demo"
