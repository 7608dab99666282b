"""GitHub forge adapter.

Implements :class:`~gitforge.forge.ForgeService` against the GitHub REST API
v3.  Works with github.com and GitHub Enterprise (pass the API base URL).

GitHub reports branch protection on the branch payload but default-branch
membership only on the repository, so every branch read is joined with a
repository read.

Usage::

    client = GitHubClient(token="ghp_...")
    ref = RepositoryRef(provider="github", owner="octocat", repo_name="hello-world")
    branches = await client.list_branches(ref)
"""

from __future__ import annotations

import asyncio
import base64
from typing import Any
from urllib.parse import quote

import httpx

from gitforge.errors import ForgeError, NotFoundError, is_not_found, map_error
from gitforge.logging import get_logger
from gitforge.models import (
    Branch,
    CommitFileInput,
    CommitResult,
    CreateBranchInput,
    CreatePullRequestInput,
    ListPullRequestsOptions,
    Provider,
    PullRequest,
    PullRequestState,
    RepositoryRef,
    is_commit_sha,
)

logger = get_logger("gitforge.github")

_GITHUB_API = "https://api.github.com"
PROVIDER: Provider = "github"
MAX_PAGE_SIZE = 100

# Failures that are translated by map_error; normalized errors pass through.
_NATIVE_ERRORS = (httpx.HTTPError, AttributeError, KeyError, TypeError, ValueError)


def _map_pr_state(state: str, merged: bool) -> PullRequestState:
    if merged:
        return PullRequestState.MERGED
    if state == "open":
        return PullRequestState.OPEN
    return PullRequestState.CLOSED


class GitHubClient:
    """GitHub REST API v3 adapter.

    Args:
        token:    GitHub personal access token.  Empty string makes
                  unauthenticated requests (60 req/h).
        base_url: API base URL.  Override for GitHub Enterprise.
        timeout:  HTTP timeout in seconds (default 30).
    """

    provider: Provider = PROVIDER

    def __init__(
        self,
        token: str = "",
        base_url: str = _GITHUB_API,
        timeout: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(headers=headers, timeout=timeout, follow_redirects=True)

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        logger.debug("GitHub %s %s", method, path)
        response = await self._client.request(
            method, f"{self._base_url}{path}", params=params, json=json
        )
        response.raise_for_status()
        if not response.content:
            return None
        return response.json()

    def _fail(self, exc: BaseException, operation: str, **kwargs: Any) -> ForgeError:
        error = map_error(PROVIDER, exc, operation, **kwargs)
        logger.warning("GitHub %s failed: %s: %s", operation, type(error).__name__, error)
        return error

    def _repo_path(self, ref: RepositoryRef) -> str:
        """Return URL-encoded ``/repos/owner/name``."""
        return f"/repos/{quote(ref.owner, safe='')}/{quote(ref.repo_name, safe='')}"

    def _pr_from_dict(self, data: dict[str, Any]) -> PullRequest:
        # List payloads omit ``merged``; ``merged_at`` is present on both shapes.
        merged = bool(data.get("merged")) or data.get("merged_at") is not None
        return PullRequest(
            id=data["id"],
            number=data["number"],
            title=data["title"],
            description=data.get("body"),
            state=_map_pr_state(data["state"], merged),
            source_branch=data["head"]["ref"],
            target_branch=data["base"]["ref"],
            author=(data.get("user") or {}).get("login") or "unknown",
            url=data["html_url"],
            draft=bool(data.get("draft")),
            created_at=data["created_at"],
            updated_at=data["updated_at"],
        )

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    async def create_branch(self, ref: RepositoryRef, data: CreateBranchInput) -> Branch:
        repo = self._repo_path(ref)
        try:
            if is_commit_sha(data.from_ref):
                sha = data.from_ref
            else:
                try:
                    source = await self._request(
                        "GET", f"{repo}/git/ref/heads/{quote(data.from_ref)}"
                    )
                except httpx.HTTPStatusError as exc:
                    if is_not_found(exc):
                        raise NotFoundError(PROVIDER, "branch", data.from_ref) from exc
                    raise
                sha = source["object"]["sha"]

            await self._request(
                "POST",
                f"{repo}/git/refs",
                json={"ref": f"refs/heads/{data.name}", "sha": sha},
            )
            repo_data = await self._request("GET", repo)
        except _NATIVE_ERRORS as exc:
            raise self._fail(exc, "createBranch", identifier=ref.full_name) from exc

        return Branch(
            name=data.name,
            sha=sha,
            is_default=repo_data.get("default_branch") == data.name,
            protected=False,
        )

    async def get_branch(self, ref: RepositoryRef, name: str) -> Branch:
        repo = self._repo_path(ref)
        try:
            branch, repo_data = await asyncio.gather(
                self._request("GET", f"{repo}/branches/{quote(name)}"),
                self._request("GET", repo),
            )
            return Branch(
                name=branch["name"],
                sha=branch["commit"]["sha"],
                is_default=repo_data.get("default_branch") == name,
                protected=bool(branch.get("protected")),
            )
        except _NATIVE_ERRORS as exc:
            raise self._fail(exc, "getBranch", resource="branch", identifier=name) from exc

    async def list_branches(self, ref: RepositoryRef) -> list[Branch]:
        repo = self._repo_path(ref)
        try:
            branches, repo_data = await asyncio.gather(
                self._request("GET", f"{repo}/branches", params={"per_page": MAX_PAGE_SIZE}),
                self._request("GET", repo),
            )
            default_branch = repo_data.get("default_branch")
            return [
                Branch(
                    name=item["name"],
                    sha=item["commit"]["sha"],
                    is_default=item["name"] == default_branch,
                    protected=bool(item.get("protected")),
                )
                for item in branches
            ]
        except _NATIVE_ERRORS as exc:
            raise self._fail(exc, "listBranches", identifier=ref.full_name) from exc

    # ------------------------------------------------------------------
    # Pull requests
    # ------------------------------------------------------------------

    async def create_pull_request(
        self, ref: RepositoryRef, data: CreatePullRequestInput
    ) -> PullRequest:
        payload: dict[str, Any] = {
            "title": data.title,
            "head": data.source_branch,
            "base": data.target_branch,
            "draft": data.draft,
        }
        if data.description is not None:
            payload["body"] = data.description
        try:
            pr = await self._request("POST", f"{self._repo_path(ref)}/pulls", json=payload)
            return self._pr_from_dict(pr)
        except _NATIVE_ERRORS as exc:
            raise self._fail(exc, "createPullRequest", identifier=ref.full_name) from exc

    async def get_pull_request(self, ref: RepositoryRef, number: int) -> PullRequest:
        try:
            pr = await self._request("GET", f"{self._repo_path(ref)}/pulls/{number}")
            return self._pr_from_dict(pr)
        except _NATIVE_ERRORS as exc:
            raise self._fail(
                exc, "getPullRequest", resource="pull-request", identifier=str(number)
            ) from exc

    async def list_pull_requests(
        self,
        ref: RepositoryRef,
        options: ListPullRequestsOptions | None = None,
    ) -> list[PullRequest]:
        options = options or ListPullRequestsOptions()
        try:
            items = await self._request(
                "GET",
                f"{self._repo_path(ref)}/pulls",
                params={"state": options.state, "per_page": min(options.limit, MAX_PAGE_SIZE)},
            )
            return [self._pr_from_dict(item) for item in items]
        except _NATIVE_ERRORS as exc:
            raise self._fail(exc, "listPullRequests", identifier=ref.full_name) from exc

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def commit_file(self, ref: RepositoryRef, data: CommitFileInput) -> CommitResult:
        """Create or update a file through the contents API.

        Updating requires the current blob SHA, so the file is read first;
        a 404 there means the file is new.
        """
        path = f"{self._repo_path(ref)}/contents/{quote(data.path.lstrip('/'))}"
        payload: dict[str, Any] = {
            "message": data.message,
            "content": base64.b64encode(data.content.encode("utf-8")).decode("ascii"),
            "branch": data.branch,
        }
        try:
            try:
                existing = await self._request("GET", path, params={"ref": data.branch})
            except httpx.HTTPStatusError as exc:
                if not is_not_found(exc):
                    raise
                existing = None
            if isinstance(existing, dict) and existing.get("sha"):
                payload["sha"] = existing["sha"]

            result = await self._request("PUT", path, json=payload)
            return CommitResult(sha=result["commit"]["sha"], message=data.message)
        except _NATIVE_ERRORS as exc:
            raise self._fail(exc, "commitFile", identifier=ref.full_name) from exc

    def __repr__(self) -> str:  # pragma: no cover
        return f"GitHubClient(base_url={self._base_url!r})"
