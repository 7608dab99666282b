"""Unified forge interface — the contract every provider adapter implements.

All code that needs branch or pull-request operations on a source-code forge
(GitHub, GitLab or Azure DevOps) must go through a ``ForgeService``
implementation obtained from :mod:`gitforge.factory`.  Callers should
type-hint against ``ForgeService``, never against a concrete adapter.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from gitforge.models import (
    Branch,
    CommitFileInput,
    CommitResult,
    CreateBranchInput,
    CreatePullRequestInput,
    ListPullRequestsOptions,
    PullRequest,
    RepositoryRef,
)


@runtime_checkable
class ForgeService(Protocol):
    """Branch, pull-request and file-commit operations.

    ``GitHubClient``, ``GitLabClient`` and ``AzureDevOpsClient`` implement this
    protocol.  All methods are coroutines and are safe to run concurrently on
    one instance.

    Every method raises one of the normalized errors from
    :mod:`gitforge.errors` on failure; backend-native exceptions never escape.
    """

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    async def create_branch(self, ref: RepositoryRef, data: CreateBranchInput) -> Branch:
        """Create a branch from an existing branch or commit.

        Args:
            ref:  Target repository.
            data: New branch name and ``from_ref`` (branch name or 40-hex SHA).
                  A SHA is used as-is; a branch name is resolved to its tip.

        Raises:
            NotFoundError:   ``from_ref`` does not resolve.
            ValidationError: the branch already exists.
        """
        ...

    async def get_branch(self, ref: RepositoryRef, name: str) -> Branch:
        """Fetch one branch.

        Raises:
            NotFoundError: with ``resource="branch"`` if the branch is absent.
        """
        ...

    async def list_branches(self, ref: RepositoryRef) -> list[Branch]:
        """Return the first page (100) of branches in backend order."""
        ...

    # ------------------------------------------------------------------
    # Pull requests
    # ------------------------------------------------------------------

    async def create_pull_request(
        self, ref: RepositoryRef, data: CreatePullRequestInput
    ) -> PullRequest:
        """Open a pull request (merge request on GitLab)."""
        ...

    async def get_pull_request(self, ref: RepositoryRef, number: int) -> PullRequest:
        """Fetch a pull request by its display number.

        Raises:
            NotFoundError: with ``resource="pull-request"`` if absent.
        """
        ...

    async def list_pull_requests(
        self,
        ref: RepositoryRef,
        options: ListPullRequestsOptions | None = None,
    ) -> list[PullRequest]:
        """List pull requests; defaults to open ones, 30 per page."""
        ...

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def commit_file(self, ref: RepositoryRef, data: CommitFileInput) -> CommitResult:
        """Create or update a single file on a branch in one commit."""
        ...

    async def aclose(self) -> None:
        """Release the underlying HTTP client."""
        ...
