"""API changelog generation between two built jars.

Runs an external API diff tool (japicmp by default) against an old and a new
artifact. The report is always returned: when the tool fails or times out it
carries the captured output instead of raising.

Design follows Function Core / Imperative Shell:
- Pure functions: DiffToolContext.arguments_for, build_report
- Imperative shell: generate, changelog_against_latest
"""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path

import httpx

from sdkgen.artifacts import (
    DownloadedArtifact,
    RegistryError,
    build_client,
    download_artifact,
    resolve_latest_stable,
)
from sdkgen.config import DEFAULT_PROCESS_TIMEOUT_SECONDS, Settings
from sdkgen.models import ChangelogReport
from sdkgen.process import ProcessInvocation, ProcessResult, format_process_output, run_process

logger = logging.getLogger(__name__)

OLD_PLACEHOLDER = "{old}"
NEW_PLACEHOLDER = "{new}"


@dataclasses.dataclass(frozen=True)
class DiffToolContext:
    """How to invoke the diff tool. ``{old}`` and ``{new}`` in arguments are substituted."""

    command: str
    arguments: tuple[str, ...]
    cwd: Path = dataclasses.field(default_factory=Path.cwd)
    timeout_seconds: float = DEFAULT_PROCESS_TIMEOUT_SECONDS

    @classmethod
    def japicmp(cls, settings: Settings, cwd: Path | None = None) -> DiffToolContext:
        """The japicmp command line, reporting only modified API elements."""
        return cls(
            command="java",
            arguments=(
                "-jar",
                settings.diff_tool_jar,
                "--old",
                OLD_PLACEHOLDER,
                "--new",
                NEW_PLACEHOLDER,
                "--only-modified",
                "--ignore-missing-classes",
            ),
            cwd=cwd or Path.cwd(),
            timeout_seconds=settings.process_timeout_seconds,
        )

    def arguments_for(self, old: Path, new: Path) -> tuple[str, ...]:
        return tuple(
            arg.replace(OLD_PLACEHOLDER, str(old)).replace(NEW_PLACEHOLDER, str(new))
            for arg in self.arguments
        )


def build_report(result: ProcessResult, old: str, new: str) -> ChangelogReport:
    """Turn a diff tool result into a report, keeping diagnostics on failure."""
    if result.success:
        text = result.stdout
    else:
        text = f"Changelog generation failed for {old} -> {new}.\n\n{format_process_output(result)}"
    return ChangelogReport(
        text=text,
        success=result.success,
        timed_out=result.timed_out,
        exit_code=result.exit_code,
        old_artifact=old,
        new_artifact=new,
    )


async def generate(
    old_artifact: Path | DownloadedArtifact,
    new_artifact: Path,
    context: DiffToolContext,
) -> ChangelogReport:
    """Compare two jars with the diff tool.

    When *old_artifact* is a DownloadedArtifact this call takes ownership of
    its temporary directory and releases it once the diff tool has finished,
    whatever the outcome.

    Raises:
        SpawnError: If the diff tool could not be started.
    """
    try:
        old_path = old_artifact.path if isinstance(old_artifact, DownloadedArtifact) else old_artifact
        invocation = ProcessInvocation(
            command=context.command,
            args=context.arguments_for(old_path, new_artifact),
            cwd=context.cwd,
            timeout_seconds=context.timeout_seconds,
        )
        result = await run_process(invocation)
    finally:
        if isinstance(old_artifact, DownloadedArtifact):
            old_artifact.release()

    old_label = (
        old_artifact.version.coordinates
        if isinstance(old_artifact, DownloadedArtifact)
        else str(old_artifact)
    )
    return build_report(result, old_label, str(new_artifact))


async def changelog_against_latest(
    jar_path: str | Path,
    group_id: str,
    artifact_id: str,
    *,
    settings: Settings,
    context: DiffToolContext | None = None,
    client: httpx.AsyncClient | None = None,
) -> ChangelogReport:
    """Compare a freshly built jar with the latest stable release on the registry.

    Registry failures are reported in the returned text rather than raised.
    """
    jar = Path(jar_path)
    context = context or DiffToolContext.japicmp(settings, cwd=jar.parent)

    owns_client = client is None
    http = client or build_client(settings.http_timeout_seconds)
    try:
        try:
            version = await resolve_latest_stable(
                group_id, artifact_id, registry_url=settings.registry_url, client=http
            )
            downloaded = await download_artifact(
                version, registry_url=settings.registry_url, client=http
            )
        except RegistryError as e:
            logger.warning("Could not obtain released artifact for %s:%s: %s", group_id, artifact_id, e)
            return ChangelogReport(
                text=f"Unable to fetch the released version of {group_id}:{artifact_id}: {e}",
                success=False,
                new_artifact=str(jar),
            )
    finally:
        if owns_client:
            await http.aclose()

    return await generate(downloaded, jar, context)
