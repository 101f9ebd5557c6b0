"""Local git operations used by repository provisioning and clone-mode templates.

All commands run through a :class:`~projectsmith.integrations.process.ProcessExecutor`
so tests can substitute a recording fake.
"""

from __future__ import annotations

from pathlib import Path

from projectsmith.errors import CommandError
from projectsmith.integrations.process import CommandResult, ProcessExecutor
from projectsmith.utils import format_command

INITIAL_COMMIT_MESSAGE = "Initial commit"


class GitCli:
    """Thin async wrapper around the ``git`` executable."""

    def __init__(self, executor: ProcessExecutor | None = None, timeout: int = 120) -> None:
        self.executor = executor or ProcessExecutor(timeout=timeout)
        self.timeout = timeout

    async def _run_git(self, *args: str, cwd: str | Path | None = None) -> CommandResult:
        """Run a git command and return its result.

        Raises CommandError if git is not installed or the command exits
        with a non-zero code.
        """
        cmd = ["git", *args]
        try:
            result = await self.executor.execute(cmd, cwd=cwd, timeout=self.timeout)
        except FileNotFoundError as exc:
            cmd_str = format_command(cmd)
            raise CommandError(
                f"Git binary not found: 'git'. Ensure git is installed and in PATH ({cmd_str})",
                command=cmd_str,
                returncode=127,
                stderr=str(exc),
            ) from exc
        if result.returncode != 0:
            cmd_str = format_command(cmd)
            raise CommandError(
                f"Git command failed (exit {result.returncode}): {cmd_str}\n{result.stderr}".rstrip(),
                command=cmd_str,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result

    # ------------------------------------------------------------------
    # Repository setup
    # ------------------------------------------------------------------

    async def init(self, path: str | Path) -> None:
        await self._run_git("init", cwd=path)

    async def add_remote(self, path: str | Path, url: str, name: str = "origin") -> None:
        await self._run_git("remote", "add", name, url, cwd=path)

    async def commit_all(self, path: str | Path, message: str = INITIAL_COMMIT_MESSAGE) -> None:
        """Stage everything under *path* and record one commit."""
        await self._run_git("add", ".", cwd=path)
        await self._run_git("commit", "-m", message, cwd=path)

    async def merge_remote(self, path: str | Path, branch: str, remote: str = "origin") -> None:
        """Fold an auto-initialized remote branch into the local history.

        Local files win on conflict, so the generated tree is what gets pushed.
        """
        await self._run_git("fetch", remote, branch, cwd=path)
        await self._run_git(
            "merge",
            "--allow-unrelated-histories",
            "-X",
            "ours",
            "--no-edit",
            f"{remote}/{branch}",
            cwd=path,
        )

    async def push(self, path: str | Path, branch: str, remote: str = "origin") -> None:
        """Push the current HEAD to *branch* and set it as upstream."""
        await self._run_git("push", "-u", remote, f"HEAD:{branch}", cwd=path)

    # ------------------------------------------------------------------
    # Clone-mode templates
    # ------------------------------------------------------------------

    async def clone(self, url: str, destination: str | Path) -> None:
        await self._run_git("clone", url, str(destination))

    async def checkout(self, path: str | Path, branch: str) -> None:
        await self._run_git("checkout", branch, cwd=path)
