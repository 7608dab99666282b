"""Tests for provider configuration, the facade and logging setup."""

from __future__ import annotations

import logging
import sys

import pydantic
import pytest

import gitforge.logging as forge_logging
from gitforge.azure_devops_client import AzureDevOpsClient
from gitforge.config import (
    AzureDevOpsConfig,
    GitHubConfig,
    GitLabConfig,
    Settings,
    parse_provider_config,
)
from gitforge.factory import create_git_forge, get_git_forge
from gitforge.forge import ForgeService
from gitforge.github_client import GitHubClient
from gitforge.gitlab_client import GitLabClient


# ═══════════════════════════════════════════════════════════════════════════
# 1. Provider configuration
# ═══════════════════════════════════════════════════════════════════════════

class TestProviderConfig:

    def test_parse_github(self):
        config = parse_provider_config({"type": "github", "token": "ghp_x"})
        assert isinstance(config, GitHubConfig)
        assert config.base_url is None

    def test_parse_gitlab_with_base_url(self):
        config = parse_provider_config(
            {"type": "gitlab", "token": "glpat", "base_url": "https://git.acme.io"}
        )
        assert isinstance(config, GitLabConfig)
        assert config.base_url == "https://git.acme.io"

    def test_parse_azure(self):
        config = parse_provider_config(
            {"type": "azure-devops", "token": "pat", "org_url": "https://dev.azure.com/acme"}
        )
        assert isinstance(config, AzureDevOpsConfig)

    def test_azure_requires_org_url(self):
        with pytest.raises(pydantic.ValidationError):
            parse_provider_config({"type": "azure-devops", "token": "pat"})

    def test_unknown_type_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            parse_provider_config({"type": "bitbucket", "token": "x"})

    def test_configs_are_frozen(self):
        config = GitHubConfig(token="ghp_x")
        with pytest.raises(pydantic.ValidationError):
            config.token = "other"


# ═══════════════════════════════════════════════════════════════════════════
# 2. Facade
# ═══════════════════════════════════════════════════════════════════════════

class TestCreateGitForge:

    @pytest.mark.parametrize(
        "config, expected",
        [
            (GitHubConfig(token="t"), GitHubClient),
            (GitLabConfig(token="t"), GitLabClient),
            (AzureDevOpsConfig(token="t", org_url="https://dev.azure.com/acme"), AzureDevOpsClient),
        ],
    )
    def test_dispatches_on_type(self, config, expected):
        forge = create_git_forge(config)
        assert isinstance(forge, expected)
        assert isinstance(forge, ForgeService)
        assert forge.provider == config.type

    def test_github_default_base_url(self):
        forge = create_git_forge(GitHubConfig(token="t"))
        assert forge._base_url == "https://api.github.com"

    def test_github_enterprise_base_url(self):
        forge = create_git_forge(GitHubConfig(token="t", base_url="https://ghe.acme.io/api/v3/"))
        assert forge._base_url == "https://ghe.acme.io/api/v3"

    def test_gitlab_default_base_url(self):
        forge = create_git_forge(GitLabConfig(token="t"))
        assert forge._api_base == "https://gitlab.com/api/v4"

    def test_gitlab_self_hosted(self):
        forge = create_git_forge(GitLabConfig(token="t", base_url="https://git.acme.io"))
        assert forge._api_base == "https://git.acme.io/api/v4"

    def test_timeout_is_forwarded(self):
        forge = create_git_forge(GitHubConfig(token="t"), timeout=5.0)
        assert forge._client.timeout.read == 5.0

    @pytest.mark.asyncio
    async def test_adapter_is_async_context_manager(self):
        async with create_git_forge(GitLabConfig(token="t")) as forge:
            assert not forge._client.is_closed
        assert forge._client.is_closed


# ═══════════════════════════════════════════════════════════════════════════
# 3. Environment settings
# ═══════════════════════════════════════════════════════════════════════════

class TestSettings:

    def test_defaults(self, monkeypatch):
        for var in ("GITFORGE_PROVIDER", "GITFORGE_TOKEN", "GITFORGE_BASE_URL", "GITFORGE_ORG_URL"):
            monkeypatch.delenv(var, raising=False)
        settings = Settings(_env_file=None)
        assert settings.provider == "github"
        assert settings.timeout == 30.0
        assert settings.log_file == ""

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("GITFORGE_PROVIDER", "gitlab")
        monkeypatch.setenv("GITFORGE_TOKEN", "glpat-env")
        monkeypatch.setenv("GITFORGE_BASE_URL", "https://git.acme.io")
        settings = Settings(_env_file=None)

        config = settings.provider_config()
        assert isinstance(config, GitLabConfig)
        assert config.token == "glpat-env"
        assert config.base_url == "https://git.acme.io"

    def test_empty_base_url_means_default(self):
        config = Settings(_env_file=None, provider="github", token="t", base_url="").provider_config()
        assert isinstance(config, GitHubConfig)
        assert config.base_url is None

    def test_azure_provider_config(self):
        settings = Settings(
            _env_file=None,
            provider="azure-devops",
            token="pat",
            org_url="https://dev.azure.com/acme",
        )
        config = settings.provider_config()
        assert isinstance(config, AzureDevOpsConfig)
        assert config.org_url == "https://dev.azure.com/acme"

    def test_get_git_forge_from_settings(self):
        settings = Settings(
            _env_file=None,
            provider="azure-devops",
            token="pat",
            org_url="https://dev.azure.com/acme/",
            timeout=12.0,
        )
        forge = get_git_forge(settings)
        assert isinstance(forge, AzureDevOpsClient)
        assert forge._org_url == "https://dev.azure.com/acme"
        assert forge._client.timeout.read == 12.0


# ═══════════════════════════════════════════════════════════════════════════
# 4. Logging
# ═══════════════════════════════════════════════════════════════════════════

class TestLogging:

    @pytest.fixture
    def clean_logger(self, monkeypatch):
        monkeypatch.setattr(forge_logging, "_configured", False)
        logger = logging.getLogger("gitforge")
        saved = (logger.handlers[:], logger.level, logger.propagate)
        logger.handlers.clear()
        yield logger
        for handler in logger.handlers:
            handler.close()
        logger.handlers[:], logger.level, logger.propagate = saved

    def test_console_only_by_default(self, clean_logger):
        forge_logging.setup_logging(Settings(_env_file=None, log_level="debug", log_file=""))
        assert clean_logger.level == logging.DEBUG
        assert len(clean_logger.handlers) == 1
        assert clean_logger.handlers[0].stream is sys.stderr

    def test_rotating_file_handler(self, clean_logger, tmp_path):
        log_file = tmp_path / "logs" / "gitforge.log"
        forge_logging.setup_logging(Settings(_env_file=None, log_file=str(log_file)))
        assert len(clean_logger.handlers) == 2
        assert log_file.parent.is_dir()

    def test_idempotent(self, clean_logger):
        settings = Settings(_env_file=None)
        forge_logging.setup_logging(settings)
        forge_logging.setup_logging(settings)
        assert len(clean_logger.handlers) == 1

    def test_get_logger_default_name(self):
        assert forge_logging.get_logger().name == "gitforge"
        assert forge_logging.get_logger("gitforge.github").name == "gitforge.github"
