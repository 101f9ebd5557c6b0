"""projectsmith configuration.

Centralised, typed settings for the provisioning pipeline and its
collaborators. All settings use Pydantic v2 models so they can be validated at
construction time and serialised to/from JSON or environment variables without
boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from projectsmith.integrations.package_managers import PackageManager
from projectsmith.utils import ensure_dir


class GitHubConfig(BaseModel):
    """Access to the GitHub REST API."""

    token: str | None = Field(default=None, repr=False)
    api_url: str = Field(default="https://api.github.com")
    timeout: int = Field(default=30, ge=1, description="Per-request timeout in seconds")


class DeploymentConfig(BaseModel):
    """How the deployment CLI is invoked and how its output is read."""

    cli: str = Field(default="vercel", description="Deployment CLI executable")
    domain_suffix: str = Field(
        default=".vercel.app",
        description="Domain suffix that identifies the deployment URL in CLI output",
    )
    timeout: int = Field(default=600, ge=10, description="Deploy command timeout in seconds")
    env_targets: list[str] = Field(
        default_factory=lambda: ["production", "preview", "development"],
        description="Environments each deployment variable is added to",
    )


class DependencyConfig(BaseModel):
    """Defaults for the install / dev-server stage."""

    package_manager: PackageManager = Field(default=PackageManager.NPM)
    auto_install: bool = Field(default=False)
    auto_run_dev_server: bool = Field(default=False)
    install_timeout: int = Field(default=600, ge=10, description="Install timeout in seconds")


class Config(BaseModel):
    """Global projectsmith configuration.

    Created once by the CLI entry point (or by a host application) and passed
    to the ``Pipeline`` and the catalog loader.
    """

    projects_dir: Path = Field(default_factory=lambda: Path.home() / "Projects")
    catalog_path: Path | None = Field(
        default=None, description="Template catalog JSON; the bundled catalog when unset"
    )
    metadata_path: Path | None = Field(
        default=None, description="Template display metadata JSON; bundled when unset"
    )
    command_timeout: int = Field(default=120, ge=1, description="Timeout for git commands")
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    deployment: DeploymentConfig = Field(default_factory=DeploymentConfig)
    dependencies: DependencyConfig = Field(default_factory=DependencyConfig)

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file.

        The GitHub token is never written; supply it through the environment.
        """
        target = Path(path)
        ensure_dir(target.parent)
        target.write_text(
            self.model_dump_json(indent=2, exclude={"github": {"token"}}),
            encoding="utf-8",
        )
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls, base: "Config | None" = None) -> "Config":
        """Build a ``Config`` from environment variables.

        Values found in the environment override *base* (or the defaults).
        Recognised variables (all optional):
            PSMITH_PROJECTS_DIR, PSMITH_CATALOG, PSMITH_METADATA,
            PSMITH_GITHUB_TOKEN (falls back to GITHUB_TOKEN), PSMITH_GITHUB_API_URL,
            PSMITH_DEPLOY_CLI, PSMITH_DEPLOY_DOMAIN, PSMITH_PACKAGE_MANAGER,
            PSMITH_AUTO_INSTALL, PSMITH_AUTO_DEV_SERVER.

        Raises:
            ValidationError: PSMITH_PACKAGE_MANAGER names an unknown package manager.
        """
        config = base or cls()

        github_kwargs: dict[str, Any] = {}
        token = os.environ.get("PSMITH_GITHUB_TOKEN") or os.environ.get("GITHUB_TOKEN")
        if token:
            github_kwargs["token"] = token
        if os.environ.get("PSMITH_GITHUB_API_URL"):
            github_kwargs["api_url"] = os.environ["PSMITH_GITHUB_API_URL"]

        deploy_kwargs: dict[str, Any] = {}
        if os.environ.get("PSMITH_DEPLOY_CLI"):
            deploy_kwargs["cli"] = os.environ["PSMITH_DEPLOY_CLI"]
        if os.environ.get("PSMITH_DEPLOY_DOMAIN"):
            deploy_kwargs["domain_suffix"] = os.environ["PSMITH_DEPLOY_DOMAIN"]

        dep_kwargs: dict[str, Any] = {}
        if os.environ.get("PSMITH_PACKAGE_MANAGER"):
            dep_kwargs["package_manager"] = os.environ["PSMITH_PACKAGE_MANAGER"].strip().lower()
        if os.environ.get("PSMITH_AUTO_INSTALL"):
            dep_kwargs["auto_install"] = _env_flag(os.environ["PSMITH_AUTO_INSTALL"])
        if os.environ.get("PSMITH_AUTO_DEV_SERVER"):
            dep_kwargs["auto_run_dev_server"] = _env_flag(os.environ["PSMITH_AUTO_DEV_SERVER"])

        updates: dict[str, Any] = {
            "github": config.github.model_copy(update=github_kwargs),
            "deployment": config.deployment.model_copy(update=deploy_kwargs),
            "dependencies": DependencyConfig.model_validate(
                {**config.dependencies.model_dump(), **dep_kwargs}
            ),
        }
        if os.environ.get("PSMITH_PROJECTS_DIR"):
            updates["projects_dir"] = Path(os.environ["PSMITH_PROJECTS_DIR"]).expanduser()
        if os.environ.get("PSMITH_CATALOG"):
            updates["catalog_path"] = Path(os.environ["PSMITH_CATALOG"])
        if os.environ.get("PSMITH_METADATA"):
            updates["metadata_path"] = Path(os.environ["PSMITH_METADATA"])

        return config.model_copy(update=updates)


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")
