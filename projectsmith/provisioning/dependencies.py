"""Dependency installation and optional dev-server launch."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from projectsmith.errors import DependencyInstallError
from projectsmith.integrations.package_managers import PackageManager
from projectsmith.integrations.process import DevServerHandle, ProcessExecutor

LogFn = Callable[[str], None]

_NOISE_PREFIXES = ("npm notice",)


def _meaningful_lines(output: str) -> list[str]:
    return [
        line
        for line in output.splitlines()
        if line.strip() and not line.lstrip().startswith(_NOISE_PREFIXES)
    ]


class DependencyLauncher:
    """Installs a project's dependencies, then optionally starts its dev server.

    The install is awaited; the dev server is spawned detached and never
    supervised, so its exit status cannot affect the pipeline.
    """

    def __init__(
        self,
        executor: ProcessExecutor,
        install_timeout: int = 600,
        log: LogFn | None = None,
    ) -> None:
        self.executor = executor
        self.install_timeout = install_timeout
        self._log = log or (lambda line: None)

    async def install_and_maybe_run(
        self,
        local_path: Path,
        package_manager: PackageManager = PackageManager.NPM,
        auto_run_dev_server: bool = False,
    ) -> DevServerHandle | None:
        """Install dependencies in *local_path*.

        Returns:
            The dev-server handle when one was started, else ``None``.

        Raises:
            DependencyInstallError: The package manager is not installed or
                the install command exited non-zero.
        """
        command = package_manager.install_command
        self._log(f"Running {command}")
        try:
            result = await self.executor.execute(
                command, cwd=local_path, timeout=self.install_timeout
            )
        except FileNotFoundError as exc:
            raise DependencyInstallError(
                command, 127, f"{package_manager.value} not found in PATH: {exc}"
            ) from exc

        for line in _meaningful_lines(result.stdout):
            self._log(line)
        stderr_lines = _meaningful_lines(result.stderr)
        for line in stderr_lines:
            self._log(line)
        self._log(f"{command} exited with status {result.returncode}")

        if result.returncode != 0:
            raise DependencyInstallError(command, result.returncode, "\n".join(stderr_lines))

        if not auto_run_dev_server:
            return None
        return await self._start_dev_server(local_path, package_manager)

    async def _start_dev_server(
        self, local_path: Path, package_manager: PackageManager
    ) -> DevServerHandle | None:
        command = package_manager.dev_command
        try:
            handle = await self.executor.spawn_detached(command, cwd=local_path)
        except OSError as exc:
            self._log(f"Warning: could not start dev server ({command}): {exc}")
            return None
        self._log(f"Started dev server: {command} (pid {handle.pid})")
        return handle
