"""Deployment CLI collaborator (Vercel).

Drives the ``vercel`` executable through the process executor: identity
check, project link, production/preview deploys and per-target environment
variables.
"""

from __future__ import annotations

import re
from pathlib import Path

from projectsmith.integrations.process import CommandResult, ProcessExecutor

DEFAULT_DOMAIN_SUFFIX = ".vercel.app"
DEFAULT_ENV_TARGETS = ("production", "preview", "development")

_URL_RE = re.compile(r"https://\S+")


def parse_deployment_url(output: str, domain_suffix: str = DEFAULT_DOMAIN_SUFFIX) -> str | None:
    """Extract the deployment URL from deploy command output.

    Returns the first ``https://...`` token on the first line that contains
    both ``https://`` and *domain_suffix*, or ``None``.

    Examples::

        parse_deployment_url("Ready! Available at https://demo.vercel.app")
            -> "https://demo.vercel.app"
    """
    for line in output.splitlines():
        if "https://" in line and domain_suffix in line:
            match = _URL_RE.search(line)
            if match:
                return match.group(0)
    return None


def command_failed(result: CommandResult) -> bool:
    """The CLI reports some failures on stderr while still exiting 0."""
    return result.returncode != 0 or "Error" in result.stderr


class VercelCli:
    """Async wrapper around the deployment CLI.

    Args:
        executor: Process executor every command goes through.
        cli: Executable name.
        timeout: Timeout for deploy commands in seconds.
    """

    def __init__(
        self,
        executor: ProcessExecutor | None = None,
        cli: str = "vercel",
        timeout: int = 600,
    ) -> None:
        self.executor = executor or ProcessExecutor(timeout=timeout)
        self.cli = cli
        self.timeout = timeout

    async def who_am_i(self) -> str | None:
        """Name of the logged-in account, or ``None``.

        A CLI that is not installed counts as not logged in.
        """
        try:
            result = await self.executor.execute([self.cli, "whoami"], timeout=30)
        except FileNotFoundError:
            return None
        output = result.stdout.strip()
        if result.returncode != 0 or not output:
            return None
        if "Error" in output or "not found" in output:
            return None
        return output.splitlines()[-1].strip()

    async def is_authenticated(self) -> bool:
        return await self.who_am_i() is not None

    def build_deploy_command(self, name: str | None = None, production: bool = False) -> list[str]:
        cmd = [self.cli]
        if name:
            cmd += ["--name", name]
        if production:
            cmd.append("--prod")
        cmd.append("--yes")
        return cmd

    async def deploy(
        self, path: str | Path, name: str | None = None, production: bool = False
    ) -> CommandResult:
        """Run one deploy in *path* and return the raw command result."""
        return await self.executor.execute(
            self.build_deploy_command(name, production), cwd=path, timeout=self.timeout
        )

    async def link(self, path: str | Path) -> CommandResult:
        return await self.executor.execute([self.cli, "link", "--yes"], cwd=path, timeout=120)

    async def set_env_var(
        self,
        path: str | Path,
        key: str,
        value: str,
        targets: tuple[str, ...] | list[str] = DEFAULT_ENV_TARGETS,
    ) -> CommandResult:
        """Add *key* to each target environment; the value is sent on stdin."""
        return await self.executor.execute(
            [self.cli, "env", "add", key, *targets],
            cwd=path,
            stdin=value,
            timeout=120,
        )
