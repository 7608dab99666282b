"""Provider configuration and environment settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic_settings import BaseSettings, SettingsConfigDict


# ---------------------------------------------------------------------------
# Provider configuration (discriminated on ``type``)
# ---------------------------------------------------------------------------


class GitHubConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["github"] = "github"
    token: str
    base_url: str | None = None
    """API base URL; defaults to ``https://api.github.com``.  Set for GitHub Enterprise."""


class GitLabConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["gitlab"] = "gitlab"
    token: str
    base_url: str | None = None
    """Instance URL; defaults to ``https://gitlab.com``."""


class AzureDevOpsConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["azure-devops"] = "azure-devops"
    token: str
    org_url: str
    """Organization URL, e.g. ``https://dev.azure.com/myorg``."""


ProviderConfig = Annotated[
    Union[GitHubConfig, GitLabConfig, AzureDevOpsConfig],
    Field(discriminator="type"),
]

_provider_config_adapter: TypeAdapter[ProviderConfig] = TypeAdapter(ProviderConfig)


def parse_provider_config(data: dict[str, Any]) -> GitHubConfig | GitLabConfig | AzureDevOpsConfig:
    """Validate a plain mapping into the matching config variant.

    Raises:
        pydantic.ValidationError: unknown ``type`` or missing fields.
    """
    return _provider_config_adapter.validate_python(data)


# ---------------------------------------------------------------------------
# Environment settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Reads ``GITFORGE_*`` variables (and ``.env``) for callers that want
    environment-driven construction via :func:`gitforge.factory.get_git_forge`."""

    model_config = SettingsConfigDict(
        env_prefix="GITFORGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    provider: Literal["github", "gitlab", "azure-devops"] = "github"
    token: str = ""
    base_url: str = ""
    org_url: str = ""
    timeout: float = 30.0

    log_level: str = "INFO"
    # Empty disables the rotating file handler.
    log_file: str = ""

    def provider_config(self) -> GitHubConfig | GitLabConfig | AzureDevOpsConfig:
        if self.provider == "azure-devops":
            return AzureDevOpsConfig(token=self.token, org_url=self.org_url)
        if self.provider == "gitlab":
            return GitLabConfig(token=self.token, base_url=self.base_url or None)
        return GitHubConfig(token=self.token, base_url=self.base_url or None)


@lru_cache
def get_settings() -> Settings:
    return Settings()
