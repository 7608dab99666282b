"""Provider-agnostic data models.

These are the only shapes that cross the adapter boundary.  They are
transient read models: built fresh on every call and never mutated
afterwards (all models are frozen).
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Provider = Literal["github", "gitlab", "azure-devops"]

_SHA_RE = re.compile(r"^[0-9a-f]{40}$", re.IGNORECASE)


def is_commit_sha(value: str) -> bool:
    """True if *value* is a full 40-character hex commit identifier."""
    return bool(_SHA_RE.match(value))


class PullRequestState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class RepositoryRef(_Frozen):
    """Identifies a repository on a specific provider.

    ``project`` is only meaningful for Azure DevOps, where it is mandatory.
    """

    provider: Provider
    owner: str
    repo_name: str
    project: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo_name}"


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


class Branch(_Frozen):
    name: str
    sha: str
    is_default: bool = False
    protected: bool = False


class PullRequest(_Frozen):
    """A pull request (GitHub, Azure DevOps) or merge request (GitLab)."""

    id: int
    """Provider-internal key."""

    number: int
    """Display number (``#12`` / ``!12``); equals ``id`` on Azure DevOps."""

    title: str
    description: str | None = None
    state: PullRequestState
    source_branch: str
    target_branch: str
    author: str = "unknown"
    url: str
    draft: bool = False
    created_at: datetime
    updated_at: datetime


class CommitResult(_Frozen):
    sha: str
    message: str


# ---------------------------------------------------------------------------
# Operation inputs
# ---------------------------------------------------------------------------


class CreateBranchInput(_Frozen):
    name: str
    from_ref: str
    """Source branch name or 40-character commit SHA."""


class CreatePullRequestInput(_Frozen):
    title: str
    description: str | None = None
    source_branch: str
    target_branch: str
    draft: bool = False


class ListPullRequestsOptions(_Frozen):
    state: Literal["open", "closed", "all"] = "open"
    limit: int = Field(default=30, ge=1)
    """Page-size hint.  GitHub and GitLab cap pages at 100; backends that
    filter locally may return fewer."""


class CommitFileInput(_Frozen):
    path: str
    content: str
    message: str
    branch: str
