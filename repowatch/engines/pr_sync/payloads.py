"""Validated shapes of the GitHub REST payloads the sync depends on.

Only the fields the sync reads are declared; everything else GitHub sends
is ignored. A payload that does not fit raises :class:`GitHubPayloadError`,
which callers can tell apart from transport failures.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


class GitHubPayloadError(ValueError):
    """Raised when a GitHub response does not have the expected shape."""

    def __init__(self, what: str, detail: str) -> None:
        self.what = what
        self.detail = detail
        super().__init__(f"unexpected GitHub payload for {what}: {detail}")


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class GitHubUserPayload(_Payload):
    id: int
    login: str
    name: str | None = None
    avatar_url: str | None = None


class GitHubOwnerPayload(_Payload):
    login: str


class GitHubRepoPayload(_Payload):
    id: int
    name: str
    owner: GitHubOwnerPayload
    html_url: str
    default_branch: str = "main"
    description: str | None = None


class GitHubPullRequestSummary(_Payload):
    """An item of ``GET /repos/{owner}/{repo}/pulls``."""

    number: int
    state: Literal["open", "closed"]


class GitHubPullRequestPayload(_Payload):
    """``GET /repos/{owner}/{repo}/pulls/{number}``."""

    id: int
    number: int
    title: str = ""
    body: str | None = None
    state: Literal["open", "closed"]
    user: GitHubUserPayload
    created_at: datetime
    merged_at: datetime | None = None
    closed_at: datetime | None = None
    additions: int = Field(default=0, ge=0)
    deletions: int = Field(default=0, ge=0)
    changed_files: int = Field(default=0, ge=0)


def parse_payload(model: type[ModelT], data: Any, what: str) -> ModelT:
    """Validate *data* against *model*, raising :class:`GitHubPayloadError`."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise GitHubPayloadError(what, _summarize(exc)) from exc


def _summarize(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors()[:3]:
        loc = ".".join(str(p) for p in err["loc"]) or "<root>"
        parts.append(f"{loc}: {err['msg']}")
    if exc.error_count() > 3:
        parts.append(f"... {exc.error_count() - 3} more")
    return "; ".join(parts)
