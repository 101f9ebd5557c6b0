"""Turns a template into a project tree on disk.

Generate mode creates the declared directories and writes every declared file
with resolved content.  Clone mode copies a remote GitHub template and strips
its history.  Both run the blocking filesystem work in worker threads.
"""

from __future__ import annotations

import asyncio
import shutil
from collections.abc import Callable
from pathlib import Path

from projectsmith.errors import CommandError, FilesystemError, TemplateCloneError
from projectsmith.integrations.git import GitCli
from projectsmith.models import ProjectConfiguration, Template
from projectsmith.scaffolder.placeholders import build_placeholder_map, find_unresolved_placeholders
from projectsmith.scaffolder.resolver import ContentResolver
from projectsmith.utils import ensure_dir, write_text_atomic

LogFn = Callable[[str], None]


class FilesystemMaterializer:
    """Creates the project directory for one configuration.

    Args:
        resolver: Content resolver used in generate mode.
        git: Git wrapper used in clone mode.
        log: Progress callback; receives one line per step.
    """

    def __init__(
        self,
        resolver: ContentResolver | None = None,
        git: GitCli | None = None,
        log: LogFn | None = None,
    ) -> None:
        self.resolver = resolver or ContentResolver()
        self.git = git or GitCli()
        self._log = log or (lambda line: None)

    async def materialize(self, template: Template, configuration: ProjectConfiguration) -> Path:
        """Create the project tree and return its root.

        Raises:
            FilesystemError: A directory or file could not be created.  Files
                written before the failure stay on disk and are listed in
                ``written``.
            TemplateCloneError: Clone mode could not fetch the template.
            TemplateResolutionError: No content rule matched a declared file.
        """
        root = configuration.project_path
        if template.is_clone_based:
            await self._clone(template, root)
        else:
            await self._generate(template, configuration, root)
        return root

    # -- Generate mode -----------------------------------------------------

    async def _generate(
        self, template: Template, configuration: ProjectConfiguration, root: Path
    ) -> None:
        placeholders = build_placeholder_map(
            configuration.project_name, configuration.template_variables
        )
        written: list[Path] = []

        await self._mkdir(root, written)
        self._log(f"Created project directory {root}")

        for directory in template.directories:
            await self._mkdir(root / directory, written)
        if template.directories:
            self._log(f"Created {len(template.directories)} directories")

        for file_path in template.files:
            content = self.resolver.resolve(file_path, template, placeholders)
            target = root / file_path
            try:
                await asyncio.to_thread(write_text_atomic, target, content)
            except OSError as exc:
                raise FilesystemError(
                    f"Cannot write {target}: {exc}", path=target, written=written
                ) from exc
            written.append(target)
            self._log(f"Wrote {file_path}")

            unresolved = find_unresolved_placeholders(content)
            if unresolved:
                self._log(f"Warning: {file_path} has unresolved placeholders: {', '.join(unresolved)}")

        self._log(f"Generated {len(written)} files from template {template.id}")

    @staticmethod
    async def _mkdir(path: Path, written: list[Path]) -> None:
        try:
            await asyncio.to_thread(ensure_dir, path)
        except OSError as exc:
            raise FilesystemError(
                f"Cannot create directory {path}: {exc}", path=path, written=written
            ) from exc

    # -- Clone mode --------------------------------------------------------

    async def _clone(self, template: Template, root: Path) -> None:
        remote = template.remote
        assert remote is not None

        try:
            await asyncio.to_thread(ensure_dir, root.parent)
        except OSError as exc:
            raise TemplateCloneError(f"Cannot create {root.parent}: {exc}", path=root.parent) from exc

        self._log(f"Cloning {remote.repository} into {root}")
        try:
            await self.git.clone(remote.clone_url, root)
            if not remote.is_default_branch:
                self._log(f"Checking out branch {remote.branch}")
                await self.git.checkout(root, remote.branch)
        except CommandError as exc:
            raise TemplateCloneError(
                f"Cannot clone template {template.id} from {remote.clone_url}: {exc.stderr or exc}",
                path=root,
            ) from exc

        git_dir = root / ".git"
        if git_dir.exists():
            try:
                await asyncio.to_thread(shutil.rmtree, git_dir)
            except OSError as exc:
                raise TemplateCloneError(f"Cannot remove {git_dir}: {exc}", path=git_dir) from exc
        self._log(f"Cloned template {template.id} (history removed)")
