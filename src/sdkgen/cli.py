"""CLI entry point for sdkgen.

Provides ``sdkgen serve`` plus one subcommand per pipeline step,
``sdkgen changelog``, ``sdkgen latest-version`` and ``sdkgen tools``.

Follows Function Core / Imperative Shell:
- Pure function: exit_code_for
- Click commands: main, serve, init, sync, generate, build, clean, changelog,
  latest_version, tools
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import click

from sdkgen.artifacts import build_client, resolve_latest_stable
from sdkgen.config import ConfigError, Settings, load_settings
from sdkgen.errors import SdkgenError
from sdkgen.models import ArtifactVersion, StepReport

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_INFRASTRUCTURE_ERROR = 3


# ---------------------------------------------------------------------------
# Pure functions
# ---------------------------------------------------------------------------


def exit_code_for(report: StepReport) -> int:
    return EXIT_SUCCESS if report.success else EXIT_FAILURE


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run *coro*, turning propagated sdkgen errors into exit code 3."""
    try:
        return asyncio.run(coro)
    except SdkgenError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_INFRASTRUCTURE_ERROR)


def _settings(ctx: click.Context) -> Settings:
    return ctx.obj["settings"]


def _echo_report(report: StepReport) -> None:
    click.echo(report.text)
    sys.exit(exit_code_for(report))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="sdkgen")
@click.option("--verbose", is_flag=True, help="Log progress to stderr.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """sdkgen: Java SDK generation orchestrator."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        settings = load_settings()
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_INFRASTRUCTURE_ERROR)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@main.command()
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Run the MCP tool server on stdio."""
    from sdkgen.server import run_server

    run_server(_settings(ctx))


@main.command()
@click.option("--cwd", type=click.Path(file_okay=False, path_type=Path), default=Path.cwd)
@click.option("--tsp-config", "tsp_config_url", required=True, help="URL to tspconfig.yaml.")
@click.pass_context
def init(ctx: click.Context, cwd: Path, tsp_config_url: str) -> None:
    """Initialize a module from a tspconfig.yaml URL."""
    from sdkgen.pipeline import GenerationPipeline

    _echo_report(_run(GenerationPipeline(_settings(ctx)).init(cwd, tsp_config_url)))


@main.command()
@click.option("--cwd", type=click.Path(file_okay=False, path_type=Path), default=Path.cwd)
@click.pass_context
def sync(ctx: click.Context, cwd: Path) -> None:
    """Download TypeSpec sources referenced by tsp-location.yaml."""
    from sdkgen.pipeline import GenerationPipeline

    _echo_report(_run(GenerationPipeline(_settings(ctx)).sync(cwd)))


@main.command()
@click.argument("spec_source_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.pass_context
def generate(ctx: click.Context, spec_source_dir: Path) -> None:
    """Compile the TypeSpec sources in SPEC_SOURCE_DIR into a Java SDK."""
    from sdkgen.pipeline import GenerationPipeline

    _echo_report(_run(GenerationPipeline(_settings(ctx)).generate(spec_source_dir)))


@main.command()
@click.argument("module_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--group-id", required=True)
@click.option("--artifact-id", required=True)
@click.pass_context
def build(ctx: click.Context, module_dir: Path, group_id: str, artifact_id: str) -> None:
    """Build MODULE_DIR and the modules it depends on."""
    from sdkgen.pipeline import GenerationPipeline

    report = _run(GenerationPipeline(_settings(ctx)).build(module_dir, group_id, artifact_id))
    _echo_report(report)


@main.command()
@click.argument("module_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.pass_context
def clean(ctx: click.Context, module_dir: Path) -> None:
    """Remove generated sources of a management-plane module."""
    from sdkgen.pipeline import GenerationPipeline

    _echo_report(_run(GenerationPipeline(_settings(ctx)).clean(module_dir)))


@main.command()
@click.argument("jar_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--group-id", required=True)
@click.option("--artifact-id", required=True)
@click.pass_context
def changelog(ctx: click.Context, jar_path: Path, group_id: str, artifact_id: str) -> None:
    """Compare JAR_PATH with the latest stable release of the artifact."""
    from sdkgen.changelog import changelog_against_latest

    report = _run(
        changelog_against_latest(jar_path, group_id, artifact_id, settings=_settings(ctx))
    )
    click.echo(report.text)
    sys.exit(EXIT_SUCCESS if report.success else EXIT_FAILURE)


@main.command("latest-version")
@click.option("--group-id", required=True)
@click.option("--artifact-id", required=True)
@click.pass_context
def latest_version(ctx: click.Context, group_id: str, artifact_id: str) -> None:
    """Print the latest stable version published to the registry."""
    settings = _settings(ctx)

    async def _resolve() -> ArtifactVersion:
        async with build_client(settings.http_timeout_seconds) as client:
            return await resolve_latest_stable(
                group_id, artifact_id, registry_url=settings.registry_url, client=client
            )

    version = _run(_resolve())
    click.echo(version.version)


@main.command()
@click.pass_context
def tools(ctx: click.Context) -> None:
    """List the tools offered by the MCP server."""
    from sdkgen.tools import build_tool_registry

    for tool in build_tool_registry(_settings(ctx)).values():
        click.echo(f"{tool.name}: {tool.description}")
