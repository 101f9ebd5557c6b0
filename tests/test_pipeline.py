"""Unit tests for the pipeline coordinator (projectsmith.pipeline).

Tests cover:
- ProvisioningLog (append, snapshot, echo)
- Pipeline.__init__ collaborator wiring
- Pipeline.run stage sequencing and skipped stages
- Pipeline.run status mapping (succeeded / partially failed / failed)
- Unexpected exceptions wrapped as stage errors
- Stage inputs (deploy options, env conventions, install options)
- CLI: list, show, create, argument parsing
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from projectsmith.config import Config, DeploymentConfig
from projectsmith.errors import (
    DependencyInstallError,
    RepositoryCreateError,
    StageError,
    TemplateResolutionError,
)
from projectsmith.integrations.package_managers import PackageManager
from projectsmith.integrations.process import DevServerHandle
from projectsmith.models import (
    DeploymentResult,
    EnvironmentVariable,
    PipelineState,
    PipelineStatus,
    RepositoryRef,
    Stage,
)
from projectsmith.pipeline import (
    Pipeline,
    ProvisioningLog,
    _build_configuration,
    _build_parser,
    _key_value,
    main,
)
from projectsmith.provisioning import DeploymentOptions


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

REPO = RepositoryRef(
    name="demo-site",
    html_url="https://github.com/octocat/demo-site",
    clone_url="https://github.com/octocat/demo-site.git",
)


def _fake(method: str, **kwargs: Any) -> MagicMock:
    """A collaborator whose single async *method* is an ``AsyncMock``."""
    fake = MagicMock()
    setattr(fake, method, AsyncMock(**kwargs))
    return fake


@pytest.fixture
def fakes(tmp_path: Path) -> dict[str, MagicMock]:
    handle = DevServerHandle(command="npm run dev", cwd=tmp_path, pid=4242)
    return {
        "repository": _fake("provision", return_value=REPO),
        "deployment": _fake(
            "deploy", return_value=DeploymentResult(url="https://demo-site.vercel.app")
        ),
        "dependencies": _fake("install_and_maybe_run", return_value=handle),
    }


@pytest.fixture
def env_writer_fake() -> MagicMock:
    return _fake("write_environment_files")


@pytest.fixture
def make_pipeline(recording_executor, fakes):
    """Pipeline with a real materializer and env writer, remote stages faked."""

    def factory(config: Config | None = None, **overrides: Any) -> Pipeline:
        collaborators = {**fakes, **overrides}
        return Pipeline(config, executor=recording_executor, **collaborators)

    return factory


# ---------------------------------------------------------------------------
# ProvisioningLog
# ---------------------------------------------------------------------------


class TestProvisioningLog:
    @pytest.mark.unit
    def test_collects_lines(self):
        log = ProvisioningLog()
        log.add("one")
        log.add("two")
        assert log.lines == ["one", "two"]
        assert list(log) == ["one", "two"]
        assert len(log) == 2

    @pytest.mark.unit
    def test_lines_is_a_snapshot(self):
        log = ProvisioningLog()
        log.add("one")
        snapshot = log.lines
        snapshot.append("mutated")
        assert log.lines == ["one"]

    @pytest.mark.unit
    def test_echo_prints(self, capsys):
        log = ProvisioningLog(echo=True)
        log.add("Wrote README.md")
        log.add("Warning: placeholder left")
        out = capsys.readouterr().out
        assert "Wrote README.md" in out
        assert "Warning: placeholder left" in out

    @pytest.mark.unit
    def test_quiet_by_default(self, capsys):
        ProvisioningLog().add("silent")
        assert capsys.readouterr().out == ""


# ---------------------------------------------------------------------------
# Pipeline.__init__
# ---------------------------------------------------------------------------


class TestPipelineInit:
    @pytest.mark.unit
    def test_defaults(self):
        pipeline = Pipeline()
        assert pipeline.state is PipelineState.IDLE
        assert len(pipeline.log) == 0
        assert pipeline.config == Config()

    @pytest.mark.unit
    def test_builds_collaborators_from_config(self):
        config = Config(deployment=DeploymentConfig(cli="vc", domain_suffix=".example-deploy.app"))
        pipeline = Pipeline(config)
        assert pipeline.deployment.cli.cli == "vc"
        assert pipeline.deployment.domain_suffix == ".example-deploy.app"
        assert pipeline.dependencies.install_timeout == config.dependencies.install_timeout

    @pytest.mark.unit
    def test_injected_collaborators_are_used(self, make_pipeline, fakes):
        pipeline = make_pipeline()
        assert pipeline.repository is fakes["repository"]
        assert pipeline.deployment is fakes["deployment"]


# ---------------------------------------------------------------------------
# Pipeline.run
# ---------------------------------------------------------------------------


class TestPipelineRun:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_materialize_only(self, make_pipeline, fakes, make_configuration, demo_template):
        pipeline = make_pipeline()
        configuration = make_configuration(demo_template)

        result = await pipeline.run(configuration)

        assert result.succeeded
        assert result.status is PipelineStatus.SUCCEEDED
        assert result.completed_stages == [Stage.MATERIALIZING]
        assert result.project_path == configuration.project_path
        assert (result.project_path / "README.md").is_file()
        assert result.repository_url is None
        assert result.deployment_url is None
        assert pipeline.state is PipelineState.COMPLETED

        fakes["repository"].provision.assert_not_awaited()
        fakes["deployment"].deploy.assert_not_awaited()
        fakes["dependencies"].install_and_maybe_run.assert_not_awaited()

        for name in ("REPOSITORY", "ENVIRONMENT", "DEPLOY", "INSTALL"):
            assert f"{name}: not requested" in result.log
        assert any(line.startswith("MATERIALIZE: completed in") for line in result.log)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_all_stages(self, make_pipeline, fakes, make_configuration, demo_template):
        pipeline = make_pipeline()
        configuration = make_configuration(
            demo_template,
            create_remote_repository=True,
            environment_variables=(EnvironmentVariable(name="API_URL", value="http://localhost"),),
            deploy_to_cloud=True,
            install_dependencies=True,
            auto_run_dev_server=True,
        )

        result = await pipeline.run(configuration)

        assert result.succeeded
        assert result.completed_stages == list(Stage)
        assert result.repository_url == "https://github.com/octocat/demo-site"
        assert result.deployment_url == "https://demo-site.vercel.app"
        assert result.dev_server.pid == 4242
        assert (result.project_path / ".env").is_file()

        fakes["repository"].provision.assert_awaited_once_with(configuration, configuration.project_path)
        fakes["dependencies"].install_and_maybe_run.assert_awaited_once_with(
            configuration.project_path, PackageManager.NPM, True
        )

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_repository_url_falls_back_to_clone_url(self, make_pipeline, make_configuration, demo_template):
        repository = _fake("provision", return_value=RepositoryRef(name="x", clone_url="https://git.example/x.git"))
        pipeline = make_pipeline(repository=repository)
        result = await pipeline.run(make_configuration(demo_template, create_remote_repository=True))
        assert result.repository_url == "https://git.example/x.git"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_deploy_options(self, make_pipeline, fakes, make_configuration, demo_template):
        config = Config(deployment=DeploymentConfig(env_targets=["production"]))
        pipeline = make_pipeline(config)
        configuration = make_configuration(
            demo_template,
            deploy_to_cloud=True,
            deploy_is_production=True,
            deploy_environment_variables={"API_KEY": "s3cret"},
        )

        await pipeline.run(configuration)

        path, options = fakes["deployment"].deploy.await_args.args
        assert path == configuration.project_path
        assert options == DeploymentOptions(
            name="demo-site",
            production=True,
            environment={"API_KEY": "s3cret"},
            env_targets=("production",),
        )

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "template_id, forced, expected",
        [
            ("nextjs-google-auth", None, ".env.local"),
            ("fullstack-database", None, ".env"),
            ("fullstack-database", True, ".env.local"),
        ],
    )
    async def test_env_file_conventions(
        self, make_pipeline, env_writer_fake, make_configuration, bundled_catalog, template_id, forced, expected
    ):
        pipeline = make_pipeline(env_writer=env_writer_fake, materializer=_fake("materialize"))
        configuration = make_configuration(
            bundled_catalog.require(template_id),
            environment_variables=(EnvironmentVariable(name="API_URL", value="x"),),
            frontend_env_conventions=forced,
        )
        pipeline.materializer.materialize.return_value = configuration.project_path

        await pipeline.run(configuration)

        _, _, frontend = env_writer_fake.write_environment_files.await_args.args
        assert (".env.local" if frontend else ".env") == expected


class TestPipelineRunFailures:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_first_stage_failure_is_failed(self, make_pipeline, fakes, make_configuration, demo_template):
        error = TemplateResolutionError("src/index.ts", "demo")
        pipeline = make_pipeline(materializer=_fake("materialize", side_effect=error))

        result = await pipeline.run(make_configuration(demo_template, create_remote_repository=True))

        assert result.status is PipelineStatus.FAILED
        assert result.failed_stage is Stage.MATERIALIZING
        assert result.completed_stages == []
        assert result.error is error
        assert pipeline.state is PipelineState.FAILED
        fakes["repository"].provision.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_later_failure_is_partial(self, make_pipeline, fakes, make_configuration, demo_template):
        fakes["repository"].provision.side_effect = RepositoryCreateError("name already exists")
        pipeline = make_pipeline()
        configuration = make_configuration(
            demo_template, create_remote_repository=True, deploy_to_cloud=True
        )

        result = await pipeline.run(configuration)

        assert result.status is PipelineStatus.PARTIALLY_FAILED
        assert result.completed_stages == [Stage.MATERIALIZING]
        assert result.failed_stage is Stage.REPO_PROVISIONING
        assert isinstance(result.error, RepositoryCreateError)
        assert "REPOSITORY: FAILED: Repository create failed: name already exists" in result.log
        # Completed work stays on disk and later stages never run.
        assert (configuration.project_path / "README.md").is_file()
        fakes["deployment"].deploy.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unexpected_exception_is_wrapped(self, make_pipeline, fakes, make_configuration, demo_template):
        fakes["deployment"].deploy.side_effect = RuntimeError("boom")
        pipeline = make_pipeline()

        result = await pipeline.run(make_configuration(demo_template, deploy_to_cloud=True))

        assert result.status is PipelineStatus.PARTIALLY_FAILED
        assert type(result.error) is StageError
        assert result.error.stage == "deploying"
        assert str(result.error) == "Unexpected error: boom"
        assert isinstance(result.error.__cause__, RuntimeError)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_raise_for_status(self, make_pipeline, fakes, make_configuration, demo_template):
        fakes["dependencies"].install_and_maybe_run.side_effect = DependencyInstallError("npm install", 1)
        pipeline = make_pipeline()

        result = await pipeline.run(make_configuration(demo_template, install_dependencies=True))

        assert result.failed_stage is Stage.INSTALLING
        with pytest.raises(DependencyInstallError):
            result.raise_for_status()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_log_is_reset_between_runs(self, make_pipeline, make_configuration, demo_template):
        pipeline = make_pipeline()
        first = await pipeline.run(make_configuration(demo_template))
        second = await pipeline.run(make_configuration(demo_template, project_name="Other Site"))
        assert len(second.log) == len(first.log)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


class TestKeyValue:
    @pytest.mark.unit
    def test_splits_on_first_equals(self):
        assert _key_value("DATABASE_URL=postgres://u:p@h/db?x=1") == ("DATABASE_URL", "postgres://u:p@h/db?x=1")

    @pytest.mark.unit
    def test_empty_value_allowed(self):
        assert _key_value("EMPTY=") == ("EMPTY", "")

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["NOVALUE", "=value"])
    def test_rejects_malformed(self, raw: str):
        with pytest.raises(argparse.ArgumentTypeError):
            _key_value(raw)


class TestBuildConfiguration:
    @pytest.mark.unit
    def test_flags_map_to_configuration(self, bundled_catalog, tmp_path: Path):
        args = _build_parser().parse_args(
            [
                "create", "blog", "Demo Site",
                "--location", str(tmp_path),
                "--var", "SITE_TITLE=Notes",
                "--env", "API_URL=http://localhost",
                "--secret", "SESSION=abc",
                "--github", "--private",
                "--deploy", "--prod", "--deploy-env", "API_KEY=k",
                "--dev-server",
                "--package-manager", "pnpm",
            ]
        )
        configuration = _build_configuration(args, Config(), bundled_catalog)

        assert configuration.template.id == "blog"
        assert configuration.project_path == tmp_path / "demo-site"
        assert configuration.template_variables["{{SITE_TITLE}}"] == "Notes"
        assert [(v.name, v.is_secret) for v in configuration.environment_variables] == [
            ("API_URL", False),
            ("SESSION", True),
        ]
        assert configuration.create_remote_repository and configuration.is_private_repository
        assert configuration.deploy_to_cloud and configuration.deploy_is_production
        assert configuration.deploy_environment_variables == {"API_KEY": "k"}
        assert configuration.package_manager is PackageManager.PNPM
        # Starting the dev server implies installing first.
        assert configuration.install_dependencies is True
        assert configuration.auto_run_dev_server is True

    @pytest.mark.unit
    def test_defaults_come_from_config(self, bundled_catalog, tmp_path: Path):
        config = Config(projects_dir=tmp_path)
        args = _build_parser().parse_args(["create", "blog-blank", "notes"])
        configuration = _build_configuration(args, config, bundled_catalog)

        assert configuration.location == tmp_path
        assert configuration.install_dependencies is False
        assert configuration.package_manager is PackageManager.NPM
        assert configuration.frontend_env_conventions is None


class TestMain:
    @pytest.mark.unit
    def test_list(self, capsys):
        main(["list"])
        out = capsys.readouterr().out
        assert "Templates" in out
        assert "blog" in out

    @pytest.mark.unit
    def test_show(self, capsys):
        main(["show", "blog"])
        out = capsys.readouterr().out
        assert "SITE_TITLE" in out

    @pytest.mark.unit
    def test_show_unknown_template(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["show", "no-such-template"])
        assert exc_info.value.code == 1
        assert "no-such-template" in capsys.readouterr().out

    @pytest.mark.unit
    def test_create_unknown_template(self, tmp_path: Path):
        with pytest.raises(SystemExit) as exc_info:
            main(["create", "no-such-template", "demo", "--location", str(tmp_path)])
        assert exc_info.value.code == 1
        assert not (tmp_path / "demo").exists()

    @pytest.mark.unit
    def test_malformed_key_value_is_a_usage_error(self, tmp_path: Path):
        with pytest.raises(SystemExit) as exc_info:
            main(["create", "blog", "demo", "--env", "NOVALUE"])
        assert exc_info.value.code == 2

    @pytest.mark.unit
    def test_create(self, tmp_path: Path, capsys):
        main(["create", "blog-blank", "Demo Site", "--location", str(tmp_path)])

        project = tmp_path / "demo-site"
        assert (project / "package.json").is_file()
        assert "Project created at" in capsys.readouterr().out

    @pytest.mark.unit
    def test_unknown_package_manager_in_environment(self, monkeypatch, capsys):
        monkeypatch.setenv("PSMITH_PACKAGE_MANAGER", "maven")
        with pytest.raises(SystemExit) as exc_info:
            main(["list"])
        assert exc_info.value.code == 1
        assert "cannot load configuration" in capsys.readouterr().out
