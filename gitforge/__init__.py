"""gitforge — one interface for branches and pull requests on GitHub, GitLab and Azure DevOps.

Use :func:`~gitforge.factory.create_git_forge` to obtain an adapter.

Quick start::

    from gitforge import GitHubConfig, RepositoryRef, create_git_forge

    forge = create_git_forge(GitHubConfig(token="ghp_..."))
    repo  = RepositoryRef(provider="github", owner="owner", repo_name="repo")
    prs   = await forge.list_pull_requests(repo)
"""

from gitforge.azure_devops_client import AzureDevOpsClient
from gitforge.config import (
    AzureDevOpsConfig,
    GitHubConfig,
    GitLabConfig,
    ProviderConfig,
    Settings,
    get_settings,
    parse_provider_config,
)
from gitforge.errors import (
    AuthenticationError,
    ErrorKind,
    ForgeError,
    ForgeFailure,
    GenericError,
    NotFoundError,
    RateLimitError,
    ValidationError,
    classify,
    map_error,
)
from gitforge.factory import create_git_forge, get_git_forge
from gitforge.forge import ForgeService
from gitforge.github_client import GitHubClient
from gitforge.gitlab_client import GitLabClient
from gitforge.logging import get_logger, setup_logging
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
)

__all__ = [
    # Protocol & models
    "ForgeService",
    "Provider",
    "RepositoryRef",
    "Branch",
    "PullRequest",
    "PullRequestState",
    "CommitResult",
    "CreateBranchInput",
    "CreatePullRequestInput",
    "ListPullRequestsOptions",
    "CommitFileInput",
    # Errors
    "ForgeError",
    "ForgeFailure",
    "ErrorKind",
    "AuthenticationError",
    "NotFoundError",
    "RateLimitError",
    "ValidationError",
    "GenericError",
    "classify",
    "map_error",
    # Adapters
    "GitHubClient",
    "GitLabClient",
    "AzureDevOpsClient",
    # Configuration & facade
    "ProviderConfig",
    "GitHubConfig",
    "GitLabConfig",
    "AzureDevOpsConfig",
    "Settings",
    "get_settings",
    "parse_provider_config",
    "create_git_forge",
    "get_git_forge",
    # Logging
    "setup_logging",
    "get_logger",
]
