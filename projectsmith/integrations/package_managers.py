"""Supported JavaScript package managers."""

from __future__ import annotations

from enum import Enum


class PackageManager(str, Enum):
    """Package managers a generated project can be installed with."""

    NPM = "npm"
    YARN = "yarn"
    PNPM = "pnpm"
    BUN = "bun"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def install_command(self) -> str:
        """Command that installs the project's dependencies."""
        return f"{self.value} install"

    @property
    def dev_command(self) -> str:
        """Command that starts the project's development server."""
        return _DEV_COMMANDS[self]


_DISPLAY_NAMES: dict[PackageManager, str] = {
    PackageManager.NPM: "npm",
    PackageManager.YARN: "Yarn",
    PackageManager.PNPM: "pnpm",
    PackageManager.BUN: "Bun",
}

_DEV_COMMANDS: dict[PackageManager, str] = {
    PackageManager.NPM: "npm run dev",
    PackageManager.YARN: "yarn dev",
    PackageManager.PNPM: "pnpm dev",
    PackageManager.BUN: "bun run dev",
}
