"""Azure DevOps forge adapter.

Implements :class:`~gitforge.forge.ForgeService` against the Azure DevOps Git
REST API (``api-version=7.1``).

Azure DevOps differs from GitHub and GitLab in a few ways this adapter hides:

* Every repository lives inside a *project*; ``RepositoryRef.project`` is
  mandatory and its absence fails before any request is sent.
* Branches are refs (``refs/heads/<name>``); creating one is a ref update
  whose old object id is all zeros.
* Pull-request status is 1=active, 2=abandoned, 3=completed.  The service's
  own filter only knows "active" or "all", so closed PRs are filtered locally.
* Pushes must state whether a file is added or edited.  We push as ``add``
  and, if that fails, push the identical change once more as ``edit``.

Authentication is HTTP Basic with an empty user name and the PAT as password.
"""

from __future__ import annotations

import asyncio
import re
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx

from gitforge.errors import ForgeError, NotFoundError, ValidationError, map_error
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

logger = get_logger("gitforge.azure_devops")

PROVIDER: Provider = "azure-devops"
API_VERSION = "7.1"
NULL_OBJECT_ID = "0" * 40

STATUS_ACTIVE = 1
STATUS_ABANDONED = 2
STATUS_COMPLETED = 3

# The REST API serializes PullRequestStatus as strings; the SDKs use ints.
_STATUS_NAMES = {
    "notset": 0,
    "active": STATUS_ACTIVE,
    "abandoned": STATUS_ABANDONED,
    "completed": STATUS_COMPLETED,
    "all": 4,
}

_NATIVE_ERRORS = (httpx.HTTPError, AttributeError, KeyError, TypeError, ValueError)
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def _status_code(value: Any) -> int | None:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return _STATUS_NAMES.get(value.lower())
    return None


def _map_pr_state(status: Any) -> PullRequestState:
    code = _status_code(status)
    if code == STATUS_ACTIVE:
        return PullRequestState.OPEN
    if code == STATUS_COMPLETED:
        return PullRequestState.MERGED
    return PullRequestState.CLOSED


def _branch_name(ref_name: str | None) -> str:
    """``refs/heads/main`` → ``main``."""
    if not ref_name:
        return "unknown"
    return ref_name.removeprefix("refs/heads/")


def _parse_dt(value: str | None) -> datetime | None:
    """Parse an Azure timestamp; these can carry 7 fractional digits."""
    if not value:
        return None
    value = _FRACTION_RE.sub(r"\1", value)
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _require_project(ref: RepositoryRef) -> str:
    if not ref.project:
        raise ValidationError(
            PROVIDER,
            "Azure DevOps requires a project name. Set RepositoryRef.project.",
            field="project",
        )
    return ref.project


class AzureDevOpsClient:
    """Azure DevOps Git REST adapter.

    Args:
        token:   Personal access token with Code (read & write) scope.
        org_url: Organization URL, e.g. ``"https://dev.azure.com/myorg"``.
        timeout: HTTP timeout in seconds (default 30).
    """

    provider: Provider = PROVIDER

    def __init__(self, token: str, org_url: str, timeout: float = 30.0) -> None:
        self._org_url = org_url.rstrip("/")
        self._client = httpx.AsyncClient(
            auth=httpx.BasicAuth("", token),
            headers={"Accept": "application/json"},
            timeout=timeout,
            follow_redirects=True,
        )

    async def __aenter__(self) -> AzureDevOpsClient:
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
        query = {"api-version": API_VERSION, **(params or {})}
        logger.debug("Azure DevOps %s %s", method, path)
        response = await self._client.request(
            method, f"{self._org_url}{path}", params=query, json=json
        )
        response.raise_for_status()
        if not response.content:
            return None
        return response.json()

    def _fail(self, exc: BaseException, operation: str, **kwargs: Any) -> ForgeError:
        error = map_error(PROVIDER, exc, operation, **kwargs)
        logger.warning("Azure DevOps %s failed: %s: %s", operation, type(error).__name__, error)
        return error

    def _repo_path(self, ref: RepositoryRef, project: str) -> str:
        return (
            f"/{quote(project, safe='')}/_apis/git/repositories/"
            f"{quote(ref.repo_name, safe='')}"
        )

    async def _find_ref(self, repo_path: str, branch: str) -> dict[str, Any] | None:
        """Return the ref object for ``refs/heads/<branch>``, or ``None``.

        The ``filter`` parameter is a prefix match, so the result is narrowed
        to the exact ref name.
        """
        data = await self._request("GET", f"{repo_path}/refs", params={"filter": f"heads/{branch}"})
        wanted = f"refs/heads/{branch}"
        for item in (data or {}).get("value", []):
            if item.get("name") == wanted:
                return item
        return None

    async def _default_branch(self, repo_path: str) -> str | None:
        data = await self._request("GET", repo_path)
        default = data.get("defaultBranch")
        return _branch_name(default) if default else None

    def _pr_from_dict(self, data: dict[str, Any], ref: RepositoryRef, project: str) -> PullRequest:
        repository = data.get("repository") or {}
        repo_name = repository.get("name") or ref.repo_name
        project_name = (repository.get("project") or {}).get("name") or project
        pr_id = data["pullRequestId"]
        created_by = data.get("createdBy") or {}
        created_at = _parse_dt(data.get("creationDate"))
        # No "last updated" field; a closed PR's closedDate is the best signal.
        updated_at = _parse_dt(data.get("closedDate")) or created_at
        return PullRequest(
            id=pr_id,
            number=pr_id,
            title=data.get("title") or "",
            description=data.get("description"),
            state=_map_pr_state(data.get("status")),
            source_branch=_branch_name(data.get("sourceRefName")),
            target_branch=_branch_name(data.get("targetRefName")),
            author=created_by.get("displayName") or created_by.get("uniqueName") or "unknown",
            url=f"{self._org_url}/{project_name}/_git/{repo_name}/pullrequest/{pr_id}",
            draft=bool(data.get("isDraft")),
            created_at=created_at,
            updated_at=updated_at,
        )

    async def _push(
        self,
        repo_path: str,
        data: CommitFileInput,
        old_object_id: str,
        change_type: str,
    ) -> dict[str, Any]:
        push = {
            "refUpdates": [{"name": f"refs/heads/{data.branch}", "oldObjectId": old_object_id}],
            "commits": [
                {
                    "comment": data.message,
                    "changes": [
                        {
                            "changeType": change_type,
                            "item": {"path": f"/{data.path.lstrip('/')}"},
                            "newContent": {"content": data.content, "contentType": "rawtext"},
                        }
                    ],
                }
            ],
        }
        return await self._request("POST", f"{repo_path}/pushes", json=push)

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    async def create_branch(self, ref: RepositoryRef, data: CreateBranchInput) -> Branch:
        project = _require_project(ref)
        repo_path = self._repo_path(ref, project)
        try:
            if is_commit_sha(data.from_ref):
                sha = data.from_ref
            else:
                source = await self._find_ref(repo_path, data.from_ref)
                if not source or not source.get("objectId"):
                    raise NotFoundError(PROVIDER, "branch", data.from_ref)
                sha = source["objectId"]

            results = await self._request(
                "POST",
                f"{repo_path}/refs",
                json=[
                    {
                        "name": f"refs/heads/{data.name}",
                        "oldObjectId": NULL_OBJECT_ID,
                        "newObjectId": sha,
                    }
                ],
            )
            values = (results or {}).get("value") or [{}]
            result = values[0]
            if not result.get("success"):
                reason = result.get("customMessage") or result.get("updateStatus") or "unknown error"
                raise ValidationError(PROVIDER, f"Failed to create branch: {reason}")

            default_branch = await self._default_branch(repo_path)
        except _NATIVE_ERRORS as exc:
            raise self._fail(exc, "createBranch", identifier=ref.full_name) from exc

        return Branch(
            name=data.name,
            sha=sha,
            is_default=default_branch == data.name,
            protected=False,
        )

    async def get_branch(self, ref: RepositoryRef, name: str) -> Branch:
        project = _require_project(ref)
        repo_path = self._repo_path(ref, project)
        try:
            found, default_branch = await asyncio.gather(
                self._find_ref(repo_path, name),
                self._default_branch(repo_path),
            )
        except _NATIVE_ERRORS as exc:
            raise self._fail(exc, "getBranch", resource="branch", identifier=name) from exc

        if found is None:
            raise NotFoundError(PROVIDER, "branch", name)
        return Branch(
            name=name,
            sha=found.get("objectId") or "",
            is_default=default_branch == name,
            protected=bool(found.get("isLocked")),
        )

    async def list_branches(self, ref: RepositoryRef) -> list[Branch]:
        project = _require_project(ref)
        repo_path = self._repo_path(ref, project)
        try:
            refs, default_branch = await asyncio.gather(
                self._request(
                    "GET", f"{repo_path}/refs", params={"filter": "heads/", "$top": 100}
                ),
                self._default_branch(repo_path),
            )
            branches = []
            for item in (refs or {}).get("value", []):
                name = _branch_name(item.get("name"))
                branches.append(
                    Branch(
                        name=name,
                        sha=item.get("objectId") or "",
                        is_default=name == default_branch,
                        protected=bool(item.get("isLocked")),
                    )
                )
            return branches
        except _NATIVE_ERRORS as exc:
            raise self._fail(exc, "listBranches", identifier=ref.full_name) from exc

    # ------------------------------------------------------------------
    # Pull requests
    # ------------------------------------------------------------------

    async def create_pull_request(
        self, ref: RepositoryRef, data: CreatePullRequestInput
    ) -> PullRequest:
        project = _require_project(ref)
        payload: dict[str, Any] = {
            "title": data.title,
            "sourceRefName": f"refs/heads/{data.source_branch}",
            "targetRefName": f"refs/heads/{data.target_branch}",
            "isDraft": data.draft,
        }
        if data.description is not None:
            payload["description"] = data.description
        try:
            pr = await self._request(
                "POST", f"{self._repo_path(ref, project)}/pullrequests", json=payload
            )
            return self._pr_from_dict(pr, ref, project)
        except _NATIVE_ERRORS as exc:
            raise self._fail(exc, "createPullRequest", identifier=ref.full_name) from exc

    async def get_pull_request(self, ref: RepositoryRef, number: int) -> PullRequest:
        project = _require_project(ref)
        try:
            pr = await self._request(
                "GET", f"{self._repo_path(ref, project)}/pullrequests/{number}"
            )
            if not pr:
                raise NotFoundError(PROVIDER, "pull-request", str(number))
            return self._pr_from_dict(pr, ref, project)
        except _NATIVE_ERRORS as exc:
            raise self._fail(
                exc, "getPullRequest", resource="pull-request", identifier=str(number)
            ) from exc

    async def list_pull_requests(
        self,
        ref: RepositoryRef,
        options: ListPullRequestsOptions | None = None,
    ) -> list[PullRequest]:
        project = _require_project(ref)
        options = options or ListPullRequestsOptions()
        status = "active" if options.state == "open" else "all"
        try:
            data = await self._request(
                "GET",
                f"{self._repo_path(ref, project)}/pullrequests",
                params={"searchCriteria.status": status, "$top": options.limit},
            )
            items = (data or {}).get("value", [])
            if options.state == "closed":
                items = [
                    item
                    for item in items
                    if _status_code(item.get("status")) in (STATUS_ABANDONED, STATUS_COMPLETED)
                ]
            return [self._pr_from_dict(item, ref, project) for item in items]
        except _NATIVE_ERRORS as exc:
            raise self._fail(exc, "listPullRequests", identifier=ref.full_name) from exc

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def commit_file(self, ref: RepositoryRef, data: CommitFileInput) -> CommitResult:
        project = _require_project(ref)
        repo_path = self._repo_path(ref, project)
        try:
            tip = await self._find_ref(repo_path, data.branch)
            if not tip or not tip.get("objectId"):
                raise NotFoundError(PROVIDER, "branch", data.branch)
            old_object_id = tip["objectId"]

            try:
                push = await self._push(repo_path, data, old_object_id, "add")
            except _NATIVE_ERRORS as exc:
                logger.info(
                    "Azure DevOps push of %s as 'add' failed (%s); retrying as 'edit'",
                    data.path,
                    exc,
                )
                push = await self._push(repo_path, data, old_object_id, "edit")

            commits = (push or {}).get("commits") or [{}]
            return CommitResult(sha=commits[0].get("commitId") or "", message=data.message)
        except _NATIVE_ERRORS as exc:
            raise self._fail(exc, "commitFile", identifier=ref.full_name) from exc

    def __repr__(self) -> str:  # pragma: no cover
        return f"AzureDevOpsClient(org_url={self._org_url!r})"
