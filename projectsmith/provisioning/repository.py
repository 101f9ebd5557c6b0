"""Remote repository provisioning.

Creates the GitHub repository, then turns the local project tree into a git
repository pushed to it.  Each step fails with its own error type; a failure
stops the remaining steps and leaves earlier effects (the local tree, the
remote repository) in place.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from projectsmith.errors import (
    CommandError,
    GitHubError,
    RepositoryCommitError,
    RepositoryCreateError,
    RepositoryInitError,
    RepositoryPushError,
    RepositoryRemoteError,
)
from projectsmith.integrations.github import GitHubHost
from projectsmith.models import ProjectConfiguration, RepositoryRef

LogFn = Callable[[str], None]


def default_description(configuration: ProjectConfiguration) -> str:
    return f"Created with projectsmith - {configuration.template.title} template"


class RepositoryProvisioner:
    """Runs create -> init -> add remote -> commit -> push, strictly in order."""

    def __init__(self, host: GitHubHost, log: LogFn | None = None) -> None:
        self.host = host
        self._log = log or (lambda line: None)

    async def provision(self, configuration: ProjectConfiguration, local_path: Path) -> RepositoryRef:
        """Create the remote repository and push *local_path* to it.

        Raises:
            RepositoryCreateError: Not signed in, or the API refused the repository.
            RepositoryInitError / RepositoryRemoteError / RepositoryCommitError /
            RepositoryPushError: The matching git step failed.
        """
        login = await self.host.who_am_i()
        if login is None:
            raise RepositoryCreateError("not authenticated with GitHub")

        name = configuration.project_slug
        visibility = "private" if configuration.is_private_repository else "public"
        self._log(f"Creating {visibility} repository {login}/{name}")
        try:
            repository = await self.host.create_repository(
                name,
                description=configuration.repository_description or default_description(configuration),
                private=configuration.is_private_repository,
                gitignore_template=configuration.gitignore_template,
                license_template=configuration.license_template,
            )
        except GitHubError as exc:
            raise RepositoryCreateError(str(exc)) from exc
        self._log(f"Repository created: {repository.html_url or repository.clone_url}")

        try:
            await self.host.init(local_path)
        except CommandError as exc:
            raise RepositoryInitError(str(exc), stderr=exc.stderr) from exc
        self._log("Initialized local git repository")

        try:
            await self.host.add_remote(local_path, repository.clone_url)
        except CommandError as exc:
            raise RepositoryRemoteError(str(exc), stderr=exc.stderr) from exc
        self._log(f"Added remote origin {repository.clone_url}")

        try:
            await self.host.initial_commit(local_path, repository)
        except CommandError as exc:
            raise RepositoryCommitError(str(exc), stderr=exc.stderr) from exc
        self._log("Created initial commit")

        try:
            await self.host.push(local_path, repository.default_branch)
        except CommandError as exc:
            raise RepositoryPushError(str(exc), stderr=exc.stderr) from exc
        self._log(f"Pushed to origin/{repository.default_branch}")

        return repository
