"""Process execution collaborator.

Every external tool call made while provisioning a project (git, the deploy
CLI, package managers) goes through :class:`ProcessExecutor`, which makes the
whole pipeline testable with a fake executor.
"""

from __future__ import annotations

import asyncio
import shlex
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from projectsmith.utils import format_command, run_command


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one command invocation."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass
class DevServerHandle:
    """A detached background process the pipeline started but does not supervise.

    The handle is informational: nothing awaits the process, and its exit
    status is never folded into the pipeline result.
    """

    command: str
    cwd: Path
    pid: int | None = None
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    process: asyncio.subprocess.Process | None = field(default=None, repr=False)

    @property
    def running(self) -> bool:
        return self.process is not None and self.process.returncode is None


class ProcessExecutor:
    """Runs external commands asynchronously.

    Args:
        timeout: Default per-command timeout in seconds.
        env: Extra environment variables passed to every command.
    """

    def __init__(self, timeout: int = 120, env: dict[str, str] | None = None) -> None:
        self.timeout = timeout
        self.env = env

    async def execute(
        self,
        command: str | list[str],
        cwd: str | Path | None = None,
        stdin: str | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        """Run *command* to completion and capture its streams.

        A list is executed directly; a string is split with ``shlex`` so no
        shell is involved.
        """
        argv = shlex.split(command) if isinstance(command, str) else list(command)
        returncode, stdout, stderr = await run_command(
            argv,
            cwd=cwd,
            timeout=timeout or self.timeout,
            env=self.env,
            input_text=stdin,
        )
        return CommandResult(returncode=returncode, stdout=stdout, stderr=stderr)

    async def spawn_detached(
        self, command: str | list[str], cwd: str | Path
    ) -> DevServerHandle:
        """Start *command* in its own session and return immediately.

        Output is discarded; the child keeps running after the pipeline (and
        this process) finish.
        """
        argv = shlex.split(command) if isinstance(command, str) else list(command)
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
            cwd=str(cwd),
            start_new_session=True,
        )
        return DevServerHandle(
            command=format_command(argv),
            cwd=Path(cwd),
            pid=process.pid,
            process=process,
        )
