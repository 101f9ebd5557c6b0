"""Exception hierarchy for projectsmith.

Stage errors (subclasses of :class:`StageError`) are the only errors the
pipeline coordinator reports as a terminal failure.  Each carries the name of
the stage that raised it so the result can say how far provisioning got.
"""

from __future__ import annotations

from pathlib import Path


class ProjectsmithError(Exception):
    """Base class for every error raised by projectsmith."""


# ---------------------------------------------------------------------------
# Caller errors (raised before a pipeline starts)
# ---------------------------------------------------------------------------


class UnknownTemplateError(ProjectsmithError, KeyError):
    """Raised when a template id is not present in the catalog."""

    def __init__(self, template_id: str) -> None:
        self.template_id = template_id
        super().__init__(template_id)

    def __str__(self) -> str:
        return f"Unknown template: {self.template_id!r}"


class TemplateVariableError(ProjectsmithError, ValueError):
    """Raised when a template variable value is missing or has the wrong type."""

    def __init__(self, variable_id: str, message: str) -> None:
        self.variable_id = variable_id
        super().__init__(f"Template variable {variable_id!r}: {message}")


# ---------------------------------------------------------------------------
# Collaborator errors
# ---------------------------------------------------------------------------


class CommandError(ProjectsmithError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(
        self,
        message: str,
        command: str = "",
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)


class GitHubError(ProjectsmithError):
    """Base class for GitHub REST API failures."""


class GitHubUnauthorizedError(GitHubError):
    """The token is missing, invalid, or lacks the required scope."""

    def __init__(self, message: str = "Unauthorized. Please check your GitHub token.") -> None:
        super().__init__(message)


class GitHubRateLimitError(GitHubError):
    """The API rate limit is exhausted."""

    def __init__(self) -> None:
        super().__init__("GitHub API rate limit exceeded. Please try again later.")


class GitHubRepositoryExistsError(GitHubError):
    """The repository name is already taken for this account."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        super().__init__(f"A repository named {name!r} already exists.")


class GitHubAPIError(GitHubError):
    """Any other non-success response from the API."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(f"GitHub API error ({status_code}): {message}")


# ---------------------------------------------------------------------------
# Stage errors
# ---------------------------------------------------------------------------


class StageError(ProjectsmithError):
    """A pipeline stage failed.

    Attributes:
        stage: Name of the stage that failed (see ``models.Stage``).
    """

    stage: str = "unknown"

    def __init__(self, message: str, stage: str | None = None) -> None:
        if stage is not None:
            self.stage = stage
        super().__init__(message)


class TemplateResolutionError(StageError):
    """No content rule matched a template file."""

    stage = "materializing"

    def __init__(self, file_path: str, template_id: str) -> None:
        self.file_path = file_path
        self.template_id = template_id
        super().__init__(
            f"No content rule for {file_path!r} in template {template_id!r}"
        )


class FilesystemError(StageError):
    """Creating a directory or writing a file failed.

    Attributes:
        path: The path that could not be created or written.
        written: Files fully written before the failure (left on disk).
    """

    stage = "materializing"

    def __init__(
        self,
        message: str,
        path: Path | None = None,
        written: list[Path] | None = None,
    ) -> None:
        self.path = path
        self.written = list(written or [])
        super().__init__(message)


class TemplateCloneError(FilesystemError):
    """Cloning or preparing a remote template failed."""


class RepositoryProvisionError(StageError):
    """One step of remote repository provisioning failed.

    Attributes:
        step: ``create``, ``init``, ``add_remote``, ``commit`` or ``push``.
    """

    stage = "repo_provisioning"
    step = "unknown"

    def __init__(self, message: str, stderr: str = "") -> None:
        self.stderr = stderr
        super().__init__(f"Repository {self.step} failed: {message}")


class RepositoryCreateError(RepositoryProvisionError):
    step = "create"


class RepositoryInitError(RepositoryProvisionError):
    step = "init"


class RepositoryRemoteError(RepositoryProvisionError):
    step = "add_remote"


class RepositoryCommitError(RepositoryProvisionError):
    step = "commit"


class RepositoryPushError(RepositoryProvisionError):
    step = "push"


class EnvironmentWriteError(StageError):
    """Writing the env files or the ignore file failed."""

    stage = "env_writing"


class DeploymentError(StageError):
    """Base class for deployment stage failures."""

    stage = "deploying"


class NotAuthenticatedError(DeploymentError):
    def __init__(self) -> None:
        super().__init__("Not authenticated with the deployment service. Please login first.")


class DeploymentFailedError(DeploymentError):
    """The deploy command ran but no deployment URL could be extracted."""

    def __init__(self, message: str, raw_output: str = "") -> None:
        self.raw_output = raw_output
        super().__init__(f"Deployment failed: {message}")


class LinkFailedError(DeploymentError):
    def __init__(self, message: str) -> None:
        super().__init__(f"Failed to link project: {message}")


class EnvVarFailedError(DeploymentError):
    def __init__(self, key: str, message: str) -> None:
        self.key = key
        super().__init__(f"Failed to set environment variable {key!r}: {message}")


class DependencyInstallError(StageError):
    """The package manager install command exited non-zero."""

    stage = "installing"

    def __init__(self, command: str, returncode: int, stderr: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"Dependency install failed (exit {returncode}): {command}\n{stderr}".rstrip()
        )
