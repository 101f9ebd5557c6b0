"""Async client for the GitHub REST API and the version-control host facade.

Only the two endpoints provisioning needs are wrapped:
``GET /user`` and ``POST /user/repos``.

Typical usage::

    client = GitHubClient(token="ghp_...")
    repo = await client.create_repository("demo-site", description="Demo", private=True)
    print(repo.clone_url)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import httpx

from projectsmith.errors import (
    GitHubAPIError,
    GitHubError,
    GitHubRateLimitError,
    GitHubRepositoryExistsError,
    GitHubUnauthorizedError,
)
from projectsmith.integrations.git import INITIAL_COMMIT_MESSAGE, GitCli
from projectsmith.models import RepositoryRef

API_VERSION = "2022-11-28"


class GitHubClient:
    """Async client for the GitHub REST API (v3).

    Args:
        token: Personal access token sent as a Bearer token.
        base_url: API root, ``https://api.github.com`` unless using Enterprise.
        timeout: Per-request timeout in seconds.
        transport: Optional ``httpx`` transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        token: str | None = None,
        base_url: str = "https://api.github.com",
        timeout: int = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
            "User-Agent": "projectsmith",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        """Return a fresh ``AsyncClient`` configured with our base URL and headers."""
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            transport=self._transport,
        )

    @staticmethod
    def _raise_for_status(response: httpx.Response, repo_name: str = "") -> None:
        """Map a non-success response onto the GitHub error family."""
        if response.is_success:
            return
        status = response.status_code
        if status == 401:
            raise GitHubUnauthorizedError()
        if status == 403:
            if response.headers.get("X-RateLimit-Remaining") == "0":
                raise GitHubRateLimitError()
            raise GitHubUnauthorizedError(
                "Forbidden. The GitHub token lacks the required permissions."
            )
        if status == 422:
            raise GitHubRepositoryExistsError(repo_name)
        try:
            message = response.json().get("message", "")
        except ValueError:
            message = response.text[:500]
        raise GitHubAPIError(status, message or response.reason_phrase)

    async def _request(
        self,
        method: str,
        url: str,
        json: dict[str, Any] | None = None,
        repo_name: str = "",
    ) -> dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.request(method, url, json=json)
        except httpx.TimeoutException as exc:
            raise GitHubAPIError(0, f"Request timed out after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise GitHubAPIError(0, f"Cannot reach {self.base_url}: {exc}") from exc
        self._raise_for_status(response, repo_name=repo_name)
        return response.json()

    @staticmethod
    def _to_ref(data: dict[str, Any], auto_initialized: bool = False) -> RepositoryRef:
        return RepositoryRef(
            name=data["name"],
            full_name=data.get("full_name", ""),
            html_url=data.get("html_url", ""),
            clone_url=data["clone_url"],
            ssh_url=data.get("ssh_url", ""),
            default_branch=data.get("default_branch") or "main",
            private=bool(data.get("private", False)),
            auto_initialized=auto_initialized,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_authenticated_user(self) -> dict[str, Any]:
        """Return the ``/user`` payload for the token."""
        if not self.token:
            raise GitHubUnauthorizedError("No GitHub token configured.")
        return await self._request("GET", "/user")

    async def create_repository(
        self,
        name: str,
        description: str = "",
        private: bool = False,
        gitignore_template: str | None = None,
        license_template: str | None = None,
    ) -> RepositoryRef:
        """Create a repository owned by the authenticated user.

        GitHub only honours ``gitignore_template`` / ``license_template`` when
        ``auto_init`` is set, so the repository is auto-initialized exactly
        when one of them is requested.
        """
        auto_init = bool(gitignore_template or license_template)
        payload: dict[str, Any] = {
            "name": name,
            "description": description,
            "private": private,
            "auto_init": auto_init,
        }
        if gitignore_template:
            payload["gitignore_template"] = gitignore_template
        if license_template:
            payload["license_template"] = license_template

        data = await self._request("POST", "/user/repos", json=payload, repo_name=name)
        return self._to_ref(data, auto_initialized=auto_init)


class GitHubHost:
    """The version-control collaborator used by repository provisioning.

    Combines the REST client (remote side) with :class:`GitCli` (local side).
    """

    def __init__(self, client: GitHubClient, git: GitCli | None = None) -> None:
        self.client = client
        self.git = git or GitCli()

    async def who_am_i(self) -> str | None:
        """Login of the token's owner, or ``None`` when not authenticated."""
        try:
            user = await self.client.get_authenticated_user()
        except GitHubError:
            return None
        return user.get("login") or None

    async def create_repository(
        self,
        name: str,
        description: str = "",
        private: bool = False,
        gitignore_template: str | None = None,
        license_template: str | None = None,
    ) -> RepositoryRef:
        return await self.client.create_repository(
            name,
            description=description,
            private=private,
            gitignore_template=gitignore_template,
            license_template=license_template,
        )

    async def init(self, path: Path) -> None:
        await self.git.init(path)

    async def add_remote(self, path: Path, url: str) -> None:
        await self.git.add_remote(path, url)

    async def initial_commit(
        self, path: Path, repository: RepositoryRef, message: str = INITIAL_COMMIT_MESSAGE
    ) -> None:
        """Commit the tree, merging the remote's first commit when it has one."""
        await self.git.commit_all(path, message)
        if repository.auto_initialized:
            await self.git.merge_remote(path, repository.default_branch)

    async def push(self, path: Path, branch: str) -> None:
        await self.git.push(path, branch)
