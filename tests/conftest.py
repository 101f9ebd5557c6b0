"""Shared pytest fixtures for the projectsmith test suite.

Provides reusable fixtures for:
- Temporary work directories
- A recording fake of the process executor
- A fake GitHub REST API (httpx.MockTransport)
- Sample templates and project configurations
- Mock subprocess helpers
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from projectsmith.catalog import TemplateCatalog
from projectsmith.integrations.process import CommandResult, DevServerHandle
from projectsmith.models import ProjectConfiguration, Template


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    """Parent directory new projects are created in (auto-cleanup)."""
    location = tmp_path / "work"
    location.mkdir()
    yield location


# ---------------------------------------------------------------------------
# Process execution fakes
# ---------------------------------------------------------------------------


class RecordingExecutor:
    """Stand-in for ``ProcessExecutor`` that records every command.

    Responses are registered per command prefix; the most recently registered
    matching prefix wins and unmatched commands succeed with empty output.

    Usage::

        executor = RecordingExecutor()
        executor.respond("vercel whoami", stdout="demo-user")
        executor.respond(["git", "push"], returncode=1, stderr="rejected")
        executor.missing("vercel")  # raises FileNotFoundError like a missing binary
    """

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.spawned: list[dict[str, Any]] = []
        self._responses: list[tuple[list[str], CommandResult]] = []
        self.spawn_error: Exception | None = None
        self._missing: list[list[str]] = []

    def respond(
        self,
        prefix: str | list[str],
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> None:
        tokens = prefix.split() if isinstance(prefix, str) else list(prefix)
        self._responses.append((tokens, CommandResult(returncode, stdout, stderr)))

    def missing(self, prefix: str | list[str]) -> None:
        self._missing.append(prefix.split() if isinstance(prefix, str) else list(prefix))

    @property
    def commands(self) -> list[list[str]]:
        return [call["command"] for call in self.calls]

    def ran(self, *prefix: str) -> bool:
        return any(cmd[: len(prefix)] == list(prefix) for cmd in self.commands)

    async def execute(
        self,
        command: str | list[str],
        cwd: str | Path | None = None,
        stdin: str | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        argv = command.split() if isinstance(command, str) else list(command)
        self.calls.append({"command": argv, "cwd": cwd, "stdin": stdin, "timeout": timeout})
        for tokens in self._missing:
            if argv[: len(tokens)] == tokens:
                raise FileNotFoundError(2, "No such file or directory", argv[0])
        for tokens, result in reversed(self._responses):
            if argv[: len(tokens)] == tokens:
                return result
        return CommandResult(0, "", "")

    async def spawn_detached(self, command: str | list[str], cwd: str | Path) -> DevServerHandle:
        if self.spawn_error is not None:
            raise self.spawn_error
        self.spawned.append({"command": command, "cwd": cwd})
        text = command if isinstance(command, str) else " ".join(command)
        return DevServerHandle(command=text, cwd=Path(cwd), pid=4242)


@pytest.fixture
def recording_executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing command execution.

    Returns a factory that creates mock subprocess instances with configurable
    stdout, stderr, and return codes.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
                ...
    """
    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory


# ---------------------------------------------------------------------------
# GitHub REST API fake
# ---------------------------------------------------------------------------


def make_repo_payload(name: str = "demo-site", private: bool = False) -> dict[str, Any]:
    return {
        "name": name,
        "full_name": f"octocat/{name}",
        "html_url": f"https://github.com/octocat/{name}",
        "clone_url": f"https://github.com/octocat/{name}.git",
        "ssh_url": f"git@github.com:octocat/{name}.git",
        "default_branch": "main",
        "private": private,
    }


@pytest.fixture
def github_api() -> Callable[..., tuple[httpx.MockTransport, list[httpx.Request]]]:
    """Factory for a fake GitHub API.

    Returns ``(transport, requests)``; every request the client sends is
    appended to ``requests``.

    Usage:
        def test_create(github_api):
            transport, requests = github_api(create_status=422)
    """

    def factory(
        login: str | None = "octocat",
        create_status: int = 201,
        create_headers: dict[str, str] | None = None,
    ) -> tuple[httpx.MockTransport, list[httpx.Request]]:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.method == "GET" and request.url.path == "/user":
                if login is None:
                    return httpx.Response(401, json={"message": "Bad credentials"})
                return httpx.Response(200, json={"login": login})
            if request.method == "POST" and request.url.path == "/user/repos":
                body = json.loads(request.content)
                if create_status >= 300:
                    return httpx.Response(
                        create_status,
                        json={"message": "failed"},
                        headers=create_headers or {},
                    )
                return httpx.Response(
                    create_status, json=make_repo_payload(body["name"], body.get("private", False))
                )
            return httpx.Response(404, json={"message": "Not Found"})

        return httpx.MockTransport(handler), requests

    return factory


# ---------------------------------------------------------------------------
# Templates & configurations
# ---------------------------------------------------------------------------


@pytest.fixture
def bundled_catalog() -> TemplateCatalog:
    """The catalog shipped with the package."""
    return TemplateCatalog.load()


@pytest.fixture
def demo_template() -> Template:
    """Small generate-mode template with a nested directory."""
    return Template(
        id="demo",
        directories=("src", "src/components"),
        files=("src/index.ts", "README.md"),
    )


@pytest.fixture
def make_configuration(work_dir: Path) -> Callable[..., ProjectConfiguration]:
    """Factory for ``ProjectConfiguration`` rooted in ``work_dir``.

    Usage:
        def test_x(make_configuration, demo_template):
            configuration = make_configuration(demo_template, create_remote_repository=True)
    """

    def factory(template: Template, project_name: str = "Demo Site", **overrides: Any) -> ProjectConfiguration:
        overrides.setdefault("location", work_dir)
        return ProjectConfiguration(template=template, project_name=project_name, **overrides)

    return factory
