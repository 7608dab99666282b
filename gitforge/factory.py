"""Forge facade.

:func:`create_git_forge` is the single entry-point for obtaining a
:class:`~gitforge.forge.ForgeService`.  The adapter is chosen once, at
construction time, from the configuration's ``type`` tag; calling code never
branches on the provider afterwards.

Usage::

    from gitforge.config import GitHubConfig
    from gitforge.factory import create_git_forge

    forge = create_git_forge(GitHubConfig(token="ghp_..."))
    branch = await forge.create_branch(
        RepositoryRef(provider="github", owner="myorg", repo_name="myrepo"),
        CreateBranchInput(name="feature/new-thing", from_ref="main"),
    )

    # Or from GITFORGE_* environment variables / .env
    forge = get_git_forge()
"""

from __future__ import annotations

from typing import Callable

from gitforge.azure_devops_client import AzureDevOpsClient
from gitforge.config import (
    AzureDevOpsConfig,
    GitHubConfig,
    GitLabConfig,
    Settings,
    get_settings,
)
from gitforge.forge import ForgeService
from gitforge.github_client import GitHubClient
from gitforge.gitlab_client import GitLabClient
from gitforge.logging import get_logger

logger = get_logger("gitforge.factory")


def _github(config: GitHubConfig, timeout: float) -> ForgeService:
    if config.base_url:
        return GitHubClient(token=config.token, base_url=config.base_url, timeout=timeout)
    return GitHubClient(token=config.token, timeout=timeout)


def _gitlab(config: GitLabConfig, timeout: float) -> ForgeService:
    if config.base_url:
        return GitLabClient(token=config.token, base_url=config.base_url, timeout=timeout)
    return GitLabClient(token=config.token, timeout=timeout)


def _azure_devops(config: AzureDevOpsConfig, timeout: float) -> ForgeService:
    return AzureDevOpsClient(token=config.token, org_url=config.org_url, timeout=timeout)


_CONSTRUCTORS: dict[str, Callable[..., ForgeService]] = {
    "github": _github,
    "gitlab": _gitlab,
    "azure-devops": _azure_devops,
}


def create_git_forge(
    config: GitHubConfig | GitLabConfig | AzureDevOpsConfig,
    timeout: float = 30.0,
) -> ForgeService:
    """Return the adapter for *config*.

    Args:
        config:  One of the provider configuration variants.
        timeout: HTTP timeout in seconds for the adapter's client.
    """
    logger.debug("Creating %s forge adapter", config.type)
    return _CONSTRUCTORS[config.type](config, timeout)


def get_git_forge(settings: Settings | None = None) -> ForgeService:
    """Build an adapter from :class:`~gitforge.config.Settings`.

    Uses the cached environment settings when *settings* is not given.
    """
    settings = settings or get_settings()
    return create_git_forge(settings.provider_config(), timeout=settings.timeout)
