from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from klocc.utils.url_helpers import is_valid_name


class JobRequest(BaseModel):
    """Typed input for the POST /jobs endpoint."""

    provider: str = Field(..., min_length=1, max_length=32, description="Git host alias, e.g. 'github'")
    username: str = Field(..., min_length=1, max_length=100, description="Repository owner")
    reponame: str = Field(..., min_length=1, max_length=100, description="Repository name")

    @field_validator("username", "reponame")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not is_valid_name(v):
            raise ValueError("may only contain letters, digits, '_', '-' and '.', and must not start with '-' or '.'")
        return v


class JobResponse(BaseModel):
    status: str
    message: str
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    cached_count: int
    inflight_count: int
