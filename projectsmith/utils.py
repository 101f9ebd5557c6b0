"""Shared utility functions for projectsmith.

Provides async command execution, JSON I/O, name-case helpers, and Rich-based
console reporting.  Every external tool the provisioning pipeline drives goes
through :func:`run_command`.
"""

from __future__ import annotations

import asyncio
import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.rule import Rule
from rich.table import Table

console = Console()

# ---------------------------------------------------------------------------
# Async command execution
# ---------------------------------------------------------------------------


async def run_command(
    cmd: str | list[str],
    cwd: str | Path | None = None,
    timeout: int = 120,
    capture: bool = True,
    env: dict[str, str] | None = None,
    input_text: str | None = None,
) -> tuple[int, str, str]:
    """Run a command asynchronously.

    Args:
        cmd: Shell command string or list of arguments.
        cwd: Working directory for the child process.
        timeout: Maximum wall-clock seconds before the process is killed.
        capture: Whether to capture stdout/stderr (if ``False`` they inherit
            the parent's streams).
        env: Optional extra environment variables merged on top of ``os.environ``.
        input_text: Optional text written to the child's stdin.

    Returns:
        A ``(returncode, stdout, stderr)`` tuple.  If *capture* is ``False``
        the stdout/stderr strings will be empty.
    """
    merged_env: dict[str, str] | None = None
    if env:
        merged_env = {**os.environ, **env}

    stdout_pipe = asyncio.subprocess.PIPE if capture else None
    stderr_pipe = asyncio.subprocess.PIPE if capture else None
    stdin_pipe = asyncio.subprocess.PIPE if input_text is not None else None

    if isinstance(cmd, list):
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=stdin_pipe,
            stdout=stdout_pipe,
            stderr=stderr_pipe,
            cwd=str(cwd) if cwd else None,
            env=merged_env,
        )
    else:
        process = await asyncio.create_subprocess_shell(
            cmd,
            stdin=stdin_pipe,
            stdout=stdout_pipe,
            stderr=stderr_pipe,
            cwd=str(cwd) if cwd else None,
            env=merged_env,
        )

    payload = input_text.encode("utf-8") if input_text is not None else None
    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(payload), timeout=timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return (
            -1,
            "",
            f"Command timed out after {timeout}s: {format_command(cmd)}",
        )

    stdout_str = (stdout_bytes or b"").decode("utf-8", errors="replace").strip()
    stderr_str = (stderr_bytes or b"").decode("utf-8", errors="replace").strip()
    return (process.returncode or 0, stdout_str, stderr_str)


def format_command(cmd: str | list[str]) -> str:
    """Render a command for log and error messages."""
    return cmd if isinstance(cmd, str) else " ".join(cmd)


# ---------------------------------------------------------------------------
# String / name helpers
# ---------------------------------------------------------------------------


def sanitize_name(name: str) -> str:
    """Convert an arbitrary project name to a safe directory/repository name.

    * Lowercases the input.
    * Replaces runs of anything that is not a letter or digit with one hyphen.
    * Strips leading/trailing hyphens.

    Examples::

        sanitize_name("Demo Site") -> "demo-site"
        sanitize_name("my_cool   app!") -> "my-cool-app"
    """
    result = re.sub(r"[^a-z0-9]+", "-", name.strip().lower())
    return result.strip("-")


def to_kebab_case(name: str) -> str:
    """Kebab-case form of a project name (``"My App"`` -> ``"my-app"``)."""
    return sanitize_name(name)


def to_pascal_case(name: str) -> str:
    """Convert ``my app``, ``some-thing`` or ``some_thing`` to ``MyApp`` / ``SomeThing``."""
    parts = re.split(r"[-_\s]+", name.strip())
    return "".join(word.capitalize() for word in parts if word)


def to_env_name(name: str) -> str:
    """Normalise an environment variable name to ``UPPER_SNAKE_CASE``.

    Examples::

        to_env_name("api key") -> "API_KEY"
        to_env_name("next-public url") -> "NEXT_PUBLIC_URL"
    """
    result = re.sub(r"[^A-Za-z0-9]+", "_", name.strip()).upper()
    return result.strip("_")


# ---------------------------------------------------------------------------
# JSON I/O
# ---------------------------------------------------------------------------


def load_json(path: str | Path) -> dict[str, Any]:
    """Load and parse a JSON file.

    Args:
        path: Path to the JSON file.

    Returns:
        Parsed dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
    """
    file_path = Path(path)
    raw = file_path.read_text(encoding="utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        return {"_root": data}
    return data


# ---------------------------------------------------------------------------
# File-system helpers
# ---------------------------------------------------------------------------


def ensure_dir(path: str | Path) -> Path:
    """Create a directory (and parents) if it does not exist.

    Returns:
        The resolved ``Path`` object.
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path.resolve()


def write_text_atomic(path: str | Path, content: str, mode: int = 0o644) -> Path:
    """Write *content* to *path* so readers never observe a half-written file.

    The text goes to a temporary file in the same directory which then
    replaces the target with ``os.replace``.  Parent directories are created.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(content)
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return target


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Examples::

        format_duration(3.7)    -> "3.7s"
        format_duration(65.2)   -> "1m 5s"
        format_duration(3661.0) -> "1h 1m 1s"
    """
    if seconds < 0:
        return "0.0s"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = seconds % 60

    parts: list[str] = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")

    if hours > 0 or minutes > 0:
        parts.append(f"{int(secs)}s")
    else:
        parts.append(f"{secs:.1f}s")

    return " ".join(parts)


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


STAGE_NAMES: dict[str, str] = {
    "materializing": "MATERIALIZE",
    "repo_provisioning": "REPOSITORY",
    "env_writing": "ENVIRONMENT",
    "deploying": "DEPLOY",
    "installing": "INSTALL",
}

STAGE_COLORS: dict[str, str] = {
    "materializing": "bright_green",
    "repo_provisioning": "bright_cyan",
    "env_writing": "bright_yellow",
    "deploying": "bright_magenta",
    "installing": "bright_blue",
}


def print_stage_header(stage: str) -> None:
    """Print a full-width rule naming the stage, coloured per stage."""
    color = STAGE_COLORS.get(stage, "white")
    name = STAGE_NAMES.get(stage, stage.upper())
    console.print()
    console.print(Rule(f"[bold {color}] {name} [/bold {color}]", style=color))


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Print a two-column key/value summary table.

    Args:
        data: Mapping of label -> value.
        title: Table title.
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)
    console.print()


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{message}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{message}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{message}[/bold yellow]")
