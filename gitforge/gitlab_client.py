"""GitLab forge adapter.

Implements :class:`~gitforge.forge.ForgeService` against the GitLab REST API
v4.  Works with both gitlab.com and self-hosted instances — pass the instance
URL (e.g. ``https://gitlab.internal``) as *base_url*.

GitLab identifies a project by its ``owner/repo`` path (URL-encoded), not by
separate owner and name fields.  Merge requests are marked draft with a
``Draft:`` title prefix; the API also reports a ``draft`` (older instances:
``work_in_progress``) flag, and either source counts.

Authentication uses a personal access token via the ``PRIVATE-TOKEN`` header.
"""

from __future__ import annotations

import asyncio
import re
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

logger = get_logger("gitforge.gitlab")

PROVIDER: Provider = "gitlab"
DRAFT_PREFIX = "Draft: "
MAX_PAGE_SIZE = 100
_DRAFT_RE = re.compile(r"^draft:\s*", re.IGNORECASE)

_NATIVE_ERRORS = (httpx.HTTPError, AttributeError, KeyError, TypeError, ValueError)


def _encode(value: str) -> str:
    """URL-encode a path segment (``group/project`` → ``group%2Fproject``)."""
    return quote(value, safe="")


def _map_mr_state(state: str) -> PullRequestState:
    if state == "merged":
        return PullRequestState.MERGED
    if state == "opened":
        return PullRequestState.OPEN
    # closed, locked
    return PullRequestState.CLOSED


def _is_draft(data: dict[str, Any]) -> bool:
    if data.get("draft") or data.get("work_in_progress"):
        return True
    return bool(_DRAFT_RE.match(str(data.get("title") or "")))


def _draft_title(title: str) -> str:
    """Prefix *title* with exactly ``Draft: ``, rewriting any existing variant."""
    return f"{DRAFT_PREFIX}{_DRAFT_RE.sub('', title, count=1)}"


class GitLabClient:
    """GitLab REST API v4 adapter.

    Args:
        token:    GitLab personal access token.
        base_url: GitLab instance URL, e.g. ``"https://gitlab.com"``.
                  Trailing slash is stripped.
        timeout:  HTTP timeout in seconds (default 30).
    """

    provider: Provider = PROVIDER

    def __init__(
        self,
        token: str = "",
        base_url: str = "https://gitlab.com",
        timeout: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_base = f"{self._base_url}/api/v4"
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if token:
            headers["PRIVATE-TOKEN"] = token
        self._client = httpx.AsyncClient(headers=headers, timeout=timeout, follow_redirects=True)

    async def __aenter__(self) -> GitLabClient:
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
        logger.debug("GitLab %s %s", method, path)
        response = await self._client.request(
            method, f"{self._api_base}{path}", params=params, json=json
        )
        response.raise_for_status()
        if not response.content:
            return None
        return response.json()

    def _fail(self, exc: BaseException, operation: str, **kwargs: Any) -> ForgeError:
        error = map_error(PROVIDER, exc, operation, **kwargs)
        logger.warning("GitLab %s failed: %s: %s", operation, type(error).__name__, error)
        return error

    def _project_path(self, ref: RepositoryRef) -> str:
        """Return ``/projects/<encoded owner/repo>``."""
        return f"/projects/{_encode(ref.full_name)}"

    def _branch_from_dict(self, data: dict[str, Any], default_branch: str | None) -> Branch:
        return Branch(
            name=data["name"],
            sha=data["commit"]["id"],
            is_default=data["name"] == default_branch,
            protected=bool(data.get("protected")),
        )

    def _mr_from_dict(self, data: dict[str, Any]) -> PullRequest:
        return PullRequest(
            id=data["id"],
            number=data["iid"],
            title=data["title"],
            description=data.get("description"),
            state=_map_mr_state(data["state"]),
            source_branch=data["source_branch"],
            target_branch=data["target_branch"],
            author=(data.get("author") or {}).get("username") or "unknown",
            url=data["web_url"],
            draft=_is_draft(data),
            created_at=data["created_at"],
            updated_at=data["updated_at"],
        )

    async def _file_exists(self, file_path: str, branch: str) -> bool:
        # Any failure of the probe means "absent"; the write that follows
        # surfaces real problems (auth, missing branch, ...).
        try:
            await self._request("GET", file_path, params={"ref": branch})
        except _NATIVE_ERRORS as exc:
            logger.debug("GitLab file probe %s@%s treated as absent: %s", file_path, branch, exc)
            return False
        return True

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    async def create_branch(self, ref: RepositoryRef, data: CreateBranchInput) -> Branch:
        project = self._project_path(ref)
        try:
            if is_commit_sha(data.from_ref):
                sha = data.from_ref
            else:
                try:
                    source = await self._request(
                        "GET", f"{project}/repository/branches/{_encode(data.from_ref)}"
                    )
                except httpx.HTTPStatusError as exc:
                    if is_not_found(exc):
                        raise NotFoundError(PROVIDER, "branch", data.from_ref) from exc
                    raise
                sha = source["commit"]["id"]

            branch = await self._request(
                "POST",
                f"{project}/repository/branches",
                json={"branch": data.name, "ref": sha},
            )
            project_data = await self._request("GET", project)
            return self._branch_from_dict(branch, project_data.get("default_branch"))
        except _NATIVE_ERRORS as exc:
            raise self._fail(exc, "createBranch", identifier=ref.full_name) from exc

    async def get_branch(self, ref: RepositoryRef, name: str) -> Branch:
        project = self._project_path(ref)
        try:
            branch, project_data = await asyncio.gather(
                self._request("GET", f"{project}/repository/branches/{_encode(name)}"),
                self._request("GET", project),
            )
            return self._branch_from_dict(branch, project_data.get("default_branch"))
        except _NATIVE_ERRORS as exc:
            raise self._fail(exc, "getBranch", resource="branch", identifier=name) from exc

    async def list_branches(self, ref: RepositoryRef) -> list[Branch]:
        project = self._project_path(ref)
        try:
            branches, project_data = await asyncio.gather(
                self._request("GET", f"{project}/repository/branches", params={"per_page": MAX_PAGE_SIZE}),
                self._request("GET", project),
            )
            default_branch = project_data.get("default_branch")
            return [self._branch_from_dict(item, default_branch) for item in branches]
        except _NATIVE_ERRORS as exc:
            raise self._fail(exc, "listBranches", identifier=ref.full_name) from exc

    # ------------------------------------------------------------------
    # Merge requests
    # ------------------------------------------------------------------

    async def create_pull_request(
        self, ref: RepositoryRef, data: CreatePullRequestInput
    ) -> PullRequest:
        payload: dict[str, Any] = {
            "source_branch": data.source_branch,
            "target_branch": data.target_branch,
            "title": _draft_title(data.title) if data.draft else data.title,
        }
        if data.description is not None:
            payload["description"] = data.description
        try:
            mr = await self._request(
                "POST", f"{self._project_path(ref)}/merge_requests", json=payload
            )
            return self._mr_from_dict(mr)
        except _NATIVE_ERRORS as exc:
            raise self._fail(exc, "createPullRequest", identifier=ref.full_name) from exc

    async def get_pull_request(self, ref: RepositoryRef, number: int) -> PullRequest:
        try:
            mr = await self._request("GET", f"{self._project_path(ref)}/merge_requests/{number}")
            return self._mr_from_dict(mr)
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
        params: dict[str, Any] = {"per_page": min(options.limit, MAX_PAGE_SIZE)}
        # GitLab's own "closed" filter excludes merged MRs, so closed is
        # fetched unfiltered and narrowed below.
        if options.state == "open":
            params["state"] = "opened"
        try:
            items = await self._request(
                "GET", f"{self._project_path(ref)}/merge_requests", params=params
            )
            mrs = [self._mr_from_dict(item) for item in items]
        except _NATIVE_ERRORS as exc:
            raise self._fail(exc, "listPullRequests", identifier=ref.full_name) from exc

        if options.state == "closed":
            mrs = [mr for mr in mrs if mr.state is not PullRequestState.OPEN]
        return mrs

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def commit_file(self, ref: RepositoryRef, data: CommitFileInput) -> CommitResult:
        """Create or update a file, then read the branch tip for the commit SHA.

        The files API needs to know whether the file exists (POST creates,
        PUT edits) and its response does not carry the new commit id.
        """
        project = self._project_path(ref)
        file_path = f"{project}/repository/files/{_encode(data.path.lstrip('/'))}"
        payload = {
            "branch": data.branch,
            "content": data.content,
            "commit_message": data.message,
        }
        try:
            exists = await self._file_exists(file_path, data.branch)
            await self._request("PUT" if exists else "POST", file_path, json=payload)
            branch = await self._request(
                "GET", f"{project}/repository/branches/{_encode(data.branch)}"
            )
            return CommitResult(sha=branch["commit"]["id"], message=data.message)
        except _NATIVE_ERRORS as exc:
            raise self._fail(exc, "commitFile", identifier=ref.full_name) from exc

    def __repr__(self) -> str:  # pragma: no cover
        return f"GitLabClient(base_url={self._base_url!r})"
