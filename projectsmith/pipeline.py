"""projectsmith pipeline coordinator.

Runs the provisioning stages for one project, in order:

MATERIALIZE  -- Create the project tree from the template (always).
REPOSITORY   -- Create the GitHub repository and push the tree.
ENVIRONMENT  -- Write env files and ignore rules.
DEPLOY       -- Deploy with the deployment CLI.
INSTALL      -- Install dependencies, optionally start the dev server.

A stage failure stops the run; completed stages are reported, never undone.

Usage::

    projectsmith list
    projectsmith show nextjs-google-auth
    projectsmith create blog "Demo Site" --location ~/work --github --deploy
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from collections.abc import Awaitable, Callable, Iterator
from pathlib import Path

from pydantic import ValidationError
from rich.panel import Panel
from rich.table import Table

from projectsmith.catalog import TemplateCatalog
from projectsmith.config import Config
from projectsmith.errors import StageError, TemplateVariableError, UnknownTemplateError
from projectsmith.integrations.git import GitCli
from projectsmith.integrations.github import GitHubClient, GitHubHost
from projectsmith.integrations.package_managers import PackageManager
from projectsmith.integrations.process import DevServerHandle, ProcessExecutor
from projectsmith.integrations.vercel import VercelCli
from projectsmith.models import (
    EnvironmentVariable,
    PipelineResult,
    PipelineState,
    PipelineStatus,
    ProjectConfiguration,
    RepositoryRef,
    Stage,
    Template,
    TemplateCategory,
)
from projectsmith.provisioning import (
    DependencyLauncher,
    DeploymentOptions,
    DeploymentOrchestrator,
    RepositoryProvisioner,
)
from projectsmith.scaffolder import EnvironmentWriter, FilesystemMaterializer
from projectsmith.scaffolder.env_writer import suggested_variables, uses_frontend_conventions
from projectsmith.utils import (
    STAGE_NAMES,
    console,
    format_duration,
    print_error,
    print_stage_header,
    print_success,
    print_summary_table,
    print_warning,
)

# ---------------------------------------------------------------------------
# Progress log
# ---------------------------------------------------------------------------


class ProvisioningLog:
    """Append-only list of progress lines for one run.

    Components receive :meth:`add` as their log callback.  With ``echo`` set
    every line is also printed to the console as it arrives.
    """

    def __init__(self, echo: bool = False) -> None:
        self.echo = echo
        self._lines: list[str] = []

    def add(self, line: str) -> None:
        self._lines.append(line)
        if self.echo:
            if line.startswith("Warning:"):
                console.print(f"  [yellow]{line}[/yellow]")
            else:
                console.print(f"  [dim]{line}[/dim]")

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._lines))

    def __len__(self) -> int:
        return len(self._lines)


# ---------------------------------------------------------------------------
# Pipeline coordinator
# ---------------------------------------------------------------------------


class Pipeline:
    """Sequences the provisioning stages for a :class:`ProjectConfiguration`.

    Collaborators not passed in are built from *config*.  Stage components
    built here log into the run's :class:`ProvisioningLog`.

    Attributes:
        config: Global configuration.
        state: Current :class:`PipelineState`; ``idle`` until :meth:`run`.
        log: Progress log of the current (or last) run.
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        executor: ProcessExecutor | None = None,
        materializer: FilesystemMaterializer | None = None,
        env_writer: EnvironmentWriter | None = None,
        repository: RepositoryProvisioner | None = None,
        deployment: DeploymentOrchestrator | None = None,
        dependencies: DependencyLauncher | None = None,
        echo: bool = False,
    ) -> None:
        self.config = config or Config()
        self.echo = echo
        self.state = PipelineState.IDLE
        self.log = ProvisioningLog(echo=echo)

        self.executor = executor or ProcessExecutor(timeout=self.config.command_timeout)
        git = GitCli(self.executor, timeout=self.config.command_timeout)

        self.materializer = materializer or FilesystemMaterializer(git=git, log=self._emit)
        self.env_writer = env_writer or EnvironmentWriter(log=self._emit)
        self.repository = repository or RepositoryProvisioner(
            GitHubHost(
                GitHubClient(
                    token=self.config.github.token,
                    base_url=self.config.github.api_url,
                    timeout=self.config.github.timeout,
                ),
                git,
            ),
            log=self._emit,
        )
        self.deployment = deployment or DeploymentOrchestrator(
            VercelCli(
                self.executor,
                cli=self.config.deployment.cli,
                timeout=self.config.deployment.timeout,
            ),
            domain_suffix=self.config.deployment.domain_suffix,
            log=self._emit,
        )
        self.dependencies = dependencies or DependencyLauncher(
            self.executor,
            install_timeout=self.config.dependencies.install_timeout,
            log=self._emit,
        )

    def _emit(self, line: str) -> None:
        self.log.add(line)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self, configuration: ProjectConfiguration) -> PipelineResult:
        """Provision one project.

        Never raises for stage failures: the returned result carries the
        status, the completed stages and the typed error.
        """
        self.log = ProvisioningLog(echo=self.echo)
        self.state = PipelineState.IDLE
        run_start = time.monotonic()

        result = PipelineResult(project_path=configuration.project_path)

        if self.echo:
            console.print(
                Panel(
                    f"[bold bright_cyan]projectsmith[/bold bright_cyan]\n"
                    f"Template : {configuration.template.title}\n"
                    f"Project  : {configuration.project_name}\n"
                    f"Path     : {configuration.project_path}",
                    title="[bold]Provisioning[/bold]",
                    border_style="bright_cyan",
                )
            )

        for stage, requested, action in self._plan(configuration):
            name = STAGE_NAMES[stage.value]
            if not requested:
                self.log.add(f"{name}: not requested")
                continue

            self.state = PipelineState(stage.value)
            if self.echo:
                print_stage_header(stage.value)

            stage_start = time.monotonic()
            try:
                await action(configuration, result)
            except StageError as exc:
                error = exc
            except Exception as exc:  # noqa: BLE001
                error = StageError(f"Unexpected error: {exc}", stage=stage.value)
                error.__cause__ = exc
            else:
                result.completed_stages.append(stage)
                self.log.add(
                    f"{name}: completed in {format_duration(time.monotonic() - stage_start)}"
                )
                continue

            self.state = PipelineState.FAILED
            result.failed_stage = stage
            result.error = error
            result.status = (
                PipelineStatus.PARTIALLY_FAILED if result.completed_stages else PipelineStatus.FAILED
            )
            self.log.add(f"{name}: FAILED: {error}")
            break
        else:
            self.state = PipelineState.COMPLETED
            result.status = PipelineStatus.SUCCEEDED

        result.log = self.log.lines
        if self.echo:
            self._print_final_summary(result, time.monotonic() - run_start)
        return result

    def _plan(
        self, configuration: ProjectConfiguration
    ) -> list[tuple[Stage, bool, Callable[[ProjectConfiguration, PipelineResult], Awaitable[None]]]]:
        return [
            (Stage.MATERIALIZING, True, self._materialize),
            (Stage.REPO_PROVISIONING, configuration.create_remote_repository, self._provision_repository),
            (Stage.ENV_WRITING, bool(configuration.environment_variables), self._write_environment),
            (Stage.DEPLOYING, configuration.deploy_to_cloud, self._deploy),
            (Stage.INSTALLING, configuration.install_dependencies, self._install),
        ]

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _materialize(self, configuration: ProjectConfiguration, result: PipelineResult) -> None:
        result.project_path = await self.materializer.materialize(
            configuration.template, configuration
        )

    async def _provision_repository(
        self, configuration: ProjectConfiguration, result: PipelineResult
    ) -> None:
        repository: RepositoryRef = await self.repository.provision(
            configuration, result.project_path
        )
        result.repository_url = repository.html_url or repository.clone_url

    async def _write_environment(
        self, configuration: ProjectConfiguration, result: PipelineResult
    ) -> None:
        frontend = configuration.frontend_env_conventions
        if frontend is None:
            frontend = uses_frontend_conventions(configuration.template)
        await self.env_writer.write_environment_files(
            result.project_path, configuration.environment_variables, frontend
        )

    async def _deploy(self, configuration: ProjectConfiguration, result: PipelineResult) -> None:
        options = DeploymentOptions(
            name=configuration.deployment_name,
            production=configuration.deploy_is_production,
            environment=dict(configuration.deploy_environment_variables),
            env_targets=tuple(self.config.deployment.env_targets),
        )
        deployment = await self.deployment.deploy(result.project_path, options)
        result.deployment_url = deployment.url

    async def _install(self, configuration: ProjectConfiguration, result: PipelineResult) -> None:
        handle: DevServerHandle | None = await self.dependencies.install_and_maybe_run(
            result.project_path,
            configuration.package_manager,
            configuration.auto_run_dev_server,
        )
        result.dev_server = handle

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def _print_final_summary(self, result: PipelineResult, total_elapsed: float) -> None:
        """Print the final provisioning summary panel."""
        if result.status is PipelineStatus.SUCCEEDED:
            border_style = "bold green"
            status_text = "[bold green]PROJECT READY[/bold green]"
        elif result.status is PipelineStatus.PARTIALLY_FAILED:
            border_style = "bold yellow"
            status_text = "[bold yellow]PARTIALLY PROVISIONED[/bold yellow]"
        else:
            border_style = "bold red"
            status_text = "[bold red]PROVISIONING FAILED[/bold red]"

        completed = ", ".join(STAGE_NAMES[s.value] for s in result.completed_stages)
        detail_lines = [
            status_text,
            "",
            f"Duration   : {format_duration(total_elapsed)}",
            f"Completed  : {completed or 'none'}",
        ]
        if result.failed_stage is not None:
            detail_lines.append(f"Failed     : {STAGE_NAMES[result.failed_stage.value]}")
            detail_lines.append(f"Error      : {result.error}")

        detail_lines.extend(["", f"Path       : {result.project_path}"])
        if result.repository_url:
            detail_lines.append(f"Repository : {result.repository_url}")
        if result.deployment_url:
            detail_lines.append(f"Deployment : {result.deployment_url}")
        if isinstance(result.dev_server, DevServerHandle):
            detail_lines.append(
                f"Dev server : {result.dev_server.command} (pid {result.dev_server.pid})"
            )

        console.print()
        console.print(
            Panel(
                "\n".join(detail_lines),
                title="[bold]Provisioning Complete[/bold]",
                border_style=border_style,
            )
        )


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _key_value(raw: str) -> tuple[str, str]:
    key, sep, value = raw.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {raw!r}")
    return key.strip(), value


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="projectsmith",
        description="projectsmith -- create projects from templates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  projectsmith list --category blank\n"
            "  projectsmith show fullstack-database\n"
            "  projectsmith create blog \"Demo Site\" --var SITE_TITLE=Demo --github --private\n"
            "  projectsmith create nextjs-google-auth shop --secret NEXTAUTH_SECRET=s3cret --deploy --prod\n"
        ),
    )
    parser.add_argument("--config", type=Path, default=None, help="JSON configuration file")
    sub = parser.add_subparsers(dest="command", required=True)

    list_cmd = sub.add_parser("list", help="List available templates")
    list_cmd.add_argument("--category", choices=[c.value for c in TemplateCategory], default=None)

    show_cmd = sub.add_parser("show", help="Show a template's files and variables")
    show_cmd.add_argument("template")

    create = sub.add_parser("create", help="Create a project from a template")
    create.add_argument("template", help="Template id (see 'projectsmith list')")
    create.add_argument("name", help="Project name")
    create.add_argument("--location", type=Path, default=None, help="Parent directory for the project")
    create.add_argument("--var", dest="variables", action="append", type=_key_value, default=[],
                        metavar="ID=VALUE", help="Template variable value")
    create.add_argument("--env", dest="env", action="append", type=_key_value, default=[],
                        metavar="NAME=VALUE", help="Environment variable (secret-ness inferred)")
    create.add_argument("--secret", dest="secrets", action="append", type=_key_value, default=[],
                        metavar="NAME=VALUE", help="Environment variable that is always secret")
    create.add_argument("--frontend-env", action=argparse.BooleanOptionalAction, default=None,
                        help="Write .env.local instead of .env (inferred from the template by default)")

    create.add_argument("--github", action="store_true", help="Create a GitHub repository")
    create.add_argument("--private", action="store_true", help="Make the repository private")
    create.add_argument("--gitignore-template", default=None, help="GitHub .gitignore template, e.g. Node")
    create.add_argument("--license", dest="license_template", default=None, help="License template, e.g. mit")
    create.add_argument("--description", default=None, help="Repository description")

    create.add_argument("--deploy", action="store_true", help="Deploy after creating")
    create.add_argument("--prod", action="store_true", help="Production deployment")
    create.add_argument("--deploy-name", default=None, help="Deployment project name")
    create.add_argument("--deploy-env", dest="deploy_env", action="append", type=_key_value, default=[],
                        metavar="KEY=VALUE", help="Environment variable set on the deployment")

    create.add_argument("--install", action="store_true", default=None, help="Install dependencies")
    create.add_argument("--package-manager", choices=[pm.value for pm in PackageManager], default=None)
    create.add_argument("--dev-server", action="store_true", default=None,
                        help="Start the dev server after installing")
    return parser


def _load_config(path: Path | None) -> Config:
    base = Config.load(path) if path else None
    return Config.from_env(base)


def _list_templates(catalog: TemplateCatalog, category: str | None) -> None:
    templates = catalog.by_category(category) if category else catalog.list_templates()
    table = Table(title="Templates", show_header=True, header_style="bold cyan")
    table.add_column("ID", no_wrap=True)
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Source")
    table.add_column("Files", justify="right")
    for template in templates:
        source = template.remote.repository if template.remote else "generated"
        table.add_row(
            template.id,
            template.title,
            template.category.display_name,
            source,
            str(len(template.files)),
        )
    console.print(table)


def _show_template(template: Template) -> None:
    data: dict[str, str] = {
        "Name": template.title,
        "Category": template.category.display_name,
        "Description": template.description or "-",
    }
    if template.remote:
        data["Clone from"] = f"{template.remote.repository} ({template.remote.branch})"
    data["Directories"] = "\n".join(template.directories) or "-"
    data["Files"] = "\n".join(template.files) or "-"
    if template.variables:
        data["Variables"] = "\n".join(
            f"{v.id} ({v.type.value}{', required' if v.required else ''})"
            f" = {v.default_value or ''}"
            for v in template.variables
        )
    suggestions = suggested_variables(template)
    if suggestions:
        data["Suggested env"] = "\n".join(
            f"{v.name}{' (secret)' if v.is_secret else ''}" for v in suggestions
        )
    print_summary_table(data, title=template.id)


def _build_configuration(
    args: argparse.Namespace, config: Config, catalog: TemplateCatalog
) -> ProjectConfiguration:
    template = catalog.require(args.template)
    variables = catalog.resolve_variables(template, dict(args.variables))

    environment = [EnvironmentVariable.from_pair(k, v) for k, v in args.env]
    environment += [EnvironmentVariable.from_pair(k, v, is_secret=True) for k, v in args.secrets]

    package_manager = args.package_manager or config.dependencies.package_manager
    install = config.dependencies.auto_install if args.install is None else args.install
    dev_server = (
        config.dependencies.auto_run_dev_server if args.dev_server is None else args.dev_server
    )

    return ProjectConfiguration(
        template=template,
        project_name=args.name,
        location=(args.location or config.projects_dir).expanduser(),
        create_remote_repository=args.github,
        is_private_repository=args.private,
        gitignore_template=args.gitignore_template,
        license_template=args.license_template,
        repository_description=args.description,
        deploy_to_cloud=args.deploy,
        deploy_is_production=args.prod,
        deploy_project_name=args.deploy_name,
        deploy_environment_variables=dict(args.deploy_env),
        template_variables=variables,
        environment_variables=tuple(environment),
        frontend_env_conventions=args.frontend_env,
        install_dependencies=install or dev_server,
        package_manager=PackageManager(package_manager),
        auto_run_dev_server=dev_server,
    )


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``projectsmith`` / ``python -m projectsmith.pipeline``."""
    args = _build_parser().parse_args(argv)

    try:
        config = _load_config(args.config)
    except (OSError, ValidationError) as exc:
        print_error(f"Error: cannot load configuration: {exc}")
        sys.exit(1)

    try:
        catalog = TemplateCatalog.load(config.catalog_path, config.metadata_path)
    except ValueError as exc:
        print_error(f"Error: {exc}")
        sys.exit(1)

    if args.command == "list":
        _list_templates(catalog, args.category)
        return

    if args.command == "show":
        template = catalog.get(args.template)
        if template is None:
            print_error(f"Error: {UnknownTemplateError(args.template)}")
            sys.exit(1)
        _show_template(template)
        return

    try:
        configuration = _build_configuration(args, config, catalog)
    except (UnknownTemplateError, TemplateVariableError) as exc:
        print_error(f"Error: {exc}")
        sys.exit(1)
    except ValidationError as exc:
        print_error(f"Error: invalid project settings:\n{exc}")
        sys.exit(1)

    pipeline = Pipeline(config, echo=True)
    result = asyncio.run(pipeline.run(configuration))

    if result.succeeded:
        print_success(f"Project created at {result.project_path}")
        return

    if result.status is PipelineStatus.PARTIALLY_FAILED:
        print_warning("Completed stages were kept; nothing was rolled back.")
    print_error(f"Provisioning failed: {result.error}")
    sys.exit(1)


if __name__ == "__main__":
    main()
