"""Cloud deployment through the deployment CLI.

The orchestrator checks the CLI session first, optionally links the
directory to a project, runs exactly one deploy and reads the deployment URL
from the command output.  Environment variables are pushed after the deploy.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from projectsmith.errors import (
    DeploymentFailedError,
    EnvVarFailedError,
    LinkFailedError,
    NotAuthenticatedError,
)
from projectsmith.integrations.vercel import (
    DEFAULT_DOMAIN_SUFFIX,
    DEFAULT_ENV_TARGETS,
    VercelCli,
    command_failed,
    parse_deployment_url,
)
from projectsmith.models import DeploymentResult
from projectsmith.utils import format_command

LogFn = Callable[[str], None]


class DeploymentOptions(BaseModel):
    """Per-deploy settings derived from the project configuration."""

    model_config = ConfigDict(frozen=True)

    name: str | None = Field(default=None, description="Project name override")
    production: bool = False
    environment: dict[str, str] = Field(default_factory=dict)
    link_first: bool = False
    env_targets: tuple[str, ...] = DEFAULT_ENV_TARGETS


class DeploymentOrchestrator:
    """Deploys a project directory and returns its public URL."""

    def __init__(
        self,
        cli: VercelCli,
        domain_suffix: str = DEFAULT_DOMAIN_SUFFIX,
        log: LogFn | None = None,
    ) -> None:
        self.cli = cli
        self.domain_suffix = domain_suffix
        self._log = log or (lambda line: None)

    async def deploy(self, local_path: Path, options: DeploymentOptions) -> DeploymentResult:
        """Deploy *local_path*.

        Raises:
            NotAuthenticatedError: No CLI session; nothing was deployed.
            LinkFailedError: ``link_first`` was set and linking failed.
            DeploymentFailedError: The deploy command printed no deployment URL.
            EnvVarFailedError: An environment variable could not be set.
        """
        if not await self.cli.is_authenticated():
            raise NotAuthenticatedError()

        if options.link_first:
            result = await self.cli.link(local_path)
            if command_failed(result):
                raise LinkFailedError(result.stderr or result.stdout or f"exit {result.returncode}")
            self._log("Linked project directory")

        command = self.cli.build_deploy_command(options.name, options.production)
        self._log(f"Running {format_command(command)}")
        result = await self.cli.deploy(local_path, options.name, options.production)

        url = parse_deployment_url(result.stdout, self.domain_suffix)
        if url is None:
            reason = result.stderr.strip() or (
                f"exit {result.returncode}" if result.returncode != 0
                else "no deployment URL found in command output"
            )
            raise DeploymentFailedError(reason, raw_output=result.stdout)
        if command_failed(result):
            self._log(f"Warning: deploy reported problems: {result.stderr.strip() or result.returncode}")
        self._log(f"Deployed to {url}")

        for key, value in options.environment.items():
            env_result = await self.cli.set_env_var(local_path, key, value, options.env_targets)
            if command_failed(env_result):
                raise EnvVarFailedError(key, env_result.stderr or f"exit {env_result.returncode}")
            self._log(f"Set {key} for {', '.join(options.env_targets)}")

        return DeploymentResult(
            url=url,
            project_name=options.name or "",
            is_production=options.production,
            raw_output=result.stdout,
        )
