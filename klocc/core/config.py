from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import List

class Settings(BaseSettings):
    """
    Application-wide settings managed by Pydantic.
    Reads configuration from environment variables and .env files.
    """
    # General project metadata
    PROJECT_NAME: str = "KLOCC"
    API_PREFIX: str = "/api"

    # Server
    HOST: str = "127.0.0.1"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Origins allowed to call the API from the browser.
    # "*" keeps the service usable from any static frontend.
    CORS_ORIGINS: List[str] = ["*"]

    # Hard limit for job request bodies. The body only carries three short
    # strings, anything larger is rejected before parsing.
    MAX_BODY_BYTES: int = 4096

    # Freshness policy
    # A cached analysis younger than this is served without asking the remote
    # for its HEAD hash. Keeps bursts of identical requests from hammering the
    # git host. 0 disables the fast path.
    TRUST_WINDOW_SECONDS: int = 60 * 5

    # Share one running clone-and-count between concurrent requests for the
    # same repository instead of cloning it once per request.
    COLLAPSE_INFLIGHT: bool = True

    # Git
    GIT_BINARY: str = "git"
    LS_REMOTE_TIMEOUT_SECONDS: float = 30.0
    CLONE_TIMEOUT_SECONDS: float = 300.0
    CLONE_DEPTH: int = 1
    # Submodules are cloned shallow as well. Private submodules make the
    # whole clone fail, so this can be switched off per deployment.
    RECURSE_SUBMODULES: bool = True
    TEMP_DIR_PREFIX: str = "cloned_repositories"

    @field_validator("TRUST_WINDOW_SECONDS", "LS_REMOTE_TIMEOUT_SECONDS", "CLONE_TIMEOUT_SECONDS")
    @classmethod
    def non_negative(cls, v):
        if v < 0:
            raise ValueError("Durations must not be negative")
        return v

    @field_validator("CLONE_DEPTH", "MAX_BODY_BYTES")
    @classmethod
    def positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Must be a positive integer")
        return v

    @field_validator("API_PREFIX")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """
        Normalize the API prefix so routers can be mounted with plain
        concatenation ("/api/" and "/api" both become "/api").
        """
        return "/" + v.strip("/") if v.strip("/") else ""

    # Pydantic Configuration
    model_config = SettingsConfigDict(
        env_file=".env",              # Load variables from .env file
        env_file_encoding="utf-8",    # Ensure correct encoding
        case_sensitive=True,          # Environment variables are case-sensitive
        extra="ignore"                # Ignore extra fields in .env not defined here
    )

# Instantiate the settings object to be imported elsewhere
settings = Settings()
