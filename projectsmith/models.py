"""Pydantic data models shared across projectsmith.

Catalog entries (``Template``, ``TemplateVariable``) and the per-run
``ProjectConfiguration`` are frozen: once a run starts nothing can change them.
``PipelineResult`` is assembled by the coordinator and handed back to the
caller.
"""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from projectsmith.errors import StageError
from projectsmith.integrations.package_managers import PackageManager
from projectsmith.utils import sanitize_name, to_env_name, to_kebab_case, to_pascal_case


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


class TemplateCategory(str, Enum):
    FULL = "full"
    BLANK = "blank"

    @property
    def display_name(self) -> str:
        return "Full Featured" if self is TemplateCategory.FULL else "Blank Starter"


class VariableType(str, Enum):
    STRING = "string"
    BOOLEAN = "boolean"
    CHOICE = "choice"
    NUMBER = "number"


class TemplateVariable(BaseModel):
    """A user-supplied value a template's files can reference as ``{{<id>}}``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    description: str = ""
    type: VariableType = VariableType.STRING
    default_value: str | None = Field(default=None, alias="defaultValue")
    required: bool = False
    placeholder: str | None = None
    options: tuple[str, ...] | None = None

    @property
    def token(self) -> str:
        """The literal placeholder substituted in generated content."""
        return "{{" + self.id + "}}"


class RemoteTemplateSource(BaseModel):
    """A GitHub repository that a clone-based template is copied from."""

    model_config = ConfigDict(frozen=True)

    repository: str = Field(..., description="owner/name on GitHub")
    branch: str = "main"

    @field_validator("repository")
    @classmethod
    def _check_repository(cls, value: str) -> str:
        if not re.fullmatch(r"[\w.-]+/[\w.-]+", value):
            raise ValueError(f"expected 'owner/name', got {value!r}")
        return value

    @property
    def clone_url(self) -> str:
        return f"https://github.com/{self.repository}.git"

    @property
    def is_default_branch(self) -> bool:
        return self.branch in ("main", "master")


class Template(BaseModel):
    """A catalog-registered project skeleton."""

    model_config = ConfigDict(frozen=True)

    id: str
    category: TemplateCategory = TemplateCategory.FULL
    directories: tuple[str, ...] = ()
    files: tuple[str, ...] = ()
    variables: tuple[TemplateVariable, ...] = ()
    remote: RemoteTemplateSource | None = None

    # Display metadata
    display_name: str = ""
    description: str = ""
    features: tuple[str, ...] = ()
    technologies: tuple[str, ...] = ()

    @field_validator("directories", "files")
    @classmethod
    def _check_relative(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for entry in value:
            path = PurePosixPath(entry)
            if not entry or path.is_absolute() or ".." in path.parts:
                raise ValueError(f"template paths must be relative and inside the project: {entry!r}")
        return value

    @property
    def is_clone_based(self) -> bool:
        return self.remote is not None

    @property
    def title(self) -> str:
        return self.display_name or self.id


# ---------------------------------------------------------------------------
# Environment variables
# ---------------------------------------------------------------------------

_SECRET_MARKERS = ("SECRET", "KEY", "TOKEN", "PASSWORD", "PASS", "PRIVATE", "CREDENTIAL")


def looks_secret(name: str, value: str = "") -> bool:
    """Heuristic: does this variable hold something that must not be echoed?

    Names marked ``PUBLIC`` (e.g. ``NEXT_PUBLIC_*``, ``STRIPE_PUBLIC_KEY``) are
    shipped to browsers anyway and are never treated as secret.
    """
    words = set(to_env_name(name).split("_"))
    if "PUBLIC" in words:
        return False
    if words & set(_SECRET_MARKERS):
        return True
    lowered = value.lower()
    return any(marker in lowered for marker in ("secret", "token", "key", "password"))


class EnvironmentVariable(BaseModel):
    """One ``NAME=value`` entry for the generated env files."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str = ""
    is_secret: bool = False

    @field_validator("name")
    @classmethod
    def _normalise_name(cls, value: str) -> str:
        normalised = to_env_name(value)
        if not normalised:
            raise ValueError(f"invalid environment variable name: {value!r}")
        return normalised

    @classmethod
    def from_pair(
        cls, name: str, value: str, is_secret: bool | None = None
    ) -> "EnvironmentVariable":
        """Build a variable, inferring ``is_secret`` when not given explicitly."""
        if is_secret is None:
            is_secret = looks_secret(name, value)
        return cls(name=name, value=value, is_secret=is_secret)


# ---------------------------------------------------------------------------
# Per-run configuration
# ---------------------------------------------------------------------------


class ProjectConfiguration(BaseModel):
    """Everything one provisioning run needs.  Immutable for the run."""

    model_config = ConfigDict(frozen=True)

    template: Template
    project_name: str
    location: Path

    # Remote repository
    create_remote_repository: bool = False
    is_private_repository: bool = False
    gitignore_template: str | None = None
    license_template: str | None = None
    repository_description: str | None = None

    # Deployment
    deploy_to_cloud: bool = False
    deploy_is_production: bool = False
    deploy_project_name: str | None = None
    deploy_environment_variables: dict[str, str] = Field(default_factory=dict)

    # Content
    template_variables: dict[str, str] = Field(
        default_factory=dict,
        description="Resolved placeholder -> value map (keys like '{{API_URL}}')",
    )
    environment_variables: tuple[EnvironmentVariable, ...] = ()
    frontend_env_conventions: bool | None = Field(
        default=None,
        description="Force .env.local (True) or .env (False); None infers from the template",
    )

    # Dependencies
    install_dependencies: bool = False
    package_manager: PackageManager = PackageManager.NPM
    auto_run_dev_server: bool = False

    @field_validator("project_name")
    @classmethod
    def _check_project_name(cls, value: str) -> str:
        name = value.strip()
        if not name:
            raise ValueError("project name must not be empty")
        if name in (".", ".."):
            raise ValueError("project name must not be '.' or '..'")
        if "/" in name or "\\" in name:
            raise ValueError("project name must not contain path separators")
        if any(ord(ch) < 32 for ch in name):
            raise ValueError("project name must not contain control characters")
        if any(ch in name for ch in "\"'`"):
            raise ValueError("project name must not contain quote characters")
        if not sanitize_name(name):
            raise ValueError("project name must contain at least one letter or digit")
        return name

    @property
    def project_slug(self) -> str:
        return to_kebab_case(self.project_name)

    @property
    def project_pascal(self) -> str:
        return to_pascal_case(self.project_name)

    @property
    def project_path(self) -> Path:
        return Path(self.location) / self.project_slug

    @property
    def deployment_name(self) -> str:
        return self.deploy_project_name or self.project_slug


# ---------------------------------------------------------------------------
# Stage outputs
# ---------------------------------------------------------------------------


class RepositoryRef(BaseModel):
    """A repository created on the version-control host."""

    name: str
    full_name: str = ""
    html_url: str = ""
    clone_url: str
    ssh_url: str = ""
    default_branch: str = "main"
    private: bool = False
    auto_initialized: bool = False


class DeploymentResult(BaseModel):
    url: str
    project_name: str = ""
    is_production: bool = False
    raw_output: str = ""


# ---------------------------------------------------------------------------
# Pipeline result
# ---------------------------------------------------------------------------


class Stage(str, Enum):
    """Pipeline stages in execution order."""

    MATERIALIZING = "materializing"
    REPO_PROVISIONING = "repo_provisioning"
    ENV_WRITING = "env_writing"
    DEPLOYING = "deploying"
    INSTALLING = "installing"


class PipelineState(str, Enum):
    IDLE = "idle"
    MATERIALIZING = "materializing"
    REPO_PROVISIONING = "repo_provisioning"
    ENV_WRITING = "env_writing"
    DEPLOYING = "deploying"
    INSTALLING = "installing"
    COMPLETED = "completed"
    FAILED = "failed"


class PipelineStatus(str, Enum):
    SUCCEEDED = "succeeded"
    PARTIALLY_FAILED = "partially_failed"
    FAILED = "failed"


class PipelineResult(BaseModel):
    """What one provisioning run produced, including how far it got."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    project_path: Path
    repository_url: str | None = None
    deployment_url: str | None = None
    log: list[str] = Field(default_factory=list)
    status: PipelineStatus = PipelineStatus.SUCCEEDED
    completed_stages: list[Stage] = Field(default_factory=list)
    failed_stage: Stage | None = None
    error: StageError | None = Field(default=None, exclude=True)
    dev_server: Any = Field(
        default=None,
        exclude=True,
        description="Unsupervised dev-server handle; never awaited by the pipeline",
    )

    @property
    def succeeded(self) -> bool:
        return self.status is PipelineStatus.SUCCEEDED

    def raise_for_status(self) -> None:
        """Re-raise the stage error if the run did not succeed."""
        if self.error is not None:
            raise self.error
