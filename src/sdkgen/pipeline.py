"""Java SDK generation pipeline: init, sync, generate, build, clean.

Each step is one external tool call (two for generate, which installs the
emitter first) with an explicit working directory. Steps never change the
process-wide cwd, so concurrent pipelines in one process do not interfere.

Design follows Function Core / Imperative Shell:
- Pure functions: is_management_plane_module, select_entry_file,
  build_command_args, format_step_report
- Imperative shell: GenerationPipeline (one coroutine per step)
"""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path

from sdkgen.config import Settings
from sdkgen.models import ModuleLocation, PipelineStep, StepReport
from sdkgen.paths import find_repo_root
from sdkgen.process import ProcessInvocation, ProcessResult, format_process_output, run_process

logger = logging.getLogger(__name__)

SYNC_TOOL = "tsp-client"
COMPILER = "tsp"
BUILD_TOOL = "mvn"
NPM = "npm"

LOCATION_DESCRIPTOR = "tsp-location.yaml"
ENTRY_FILES = ("client.tsp", "main.tsp")
TEMP_SPEC_DIR = "TempTypeSpecFiles"

# Generated source trees removed by the clean step, relative to the module.
GENERATED_SOURCE_DIRS = ("src/main", "src/samples", "src/test")

_MANAGEMENT_PLANE_PATTERN = re.compile(r"(^|-)resourcemanager(-|$)")

_STEP_TITLES = {
    PipelineStep.INIT: "SDK initialization",
    PipelineStep.SYNC: "TypeSpec sync",
    PipelineStep.GENERATE: "SDK generation",
    PipelineStep.BUILD: "SDK build",
    PipelineStep.CLEAN: "Source clean",
}


# ---------------------------------------------------------------------------
# Pure functions
# ---------------------------------------------------------------------------


def is_management_plane_module(module_dir: str | Path) -> bool:
    """Return True for management-plane modules, e.g. ``azure-resourcemanager-compute``.

    The path is resolved first so ``.`` and ``..`` classify the directory they name.
    """
    return bool(_MANAGEMENT_PLANE_PATTERN.search(Path(module_dir).resolve().name))


def select_entry_file(spec_source_dir: Path) -> str | None:
    """Pick the TypeSpec entry file, preferring ``client.tsp`` over ``main.tsp``."""
    for name in ENTRY_FILES:
        if (spec_source_dir / name).is_file():
            return name
    return None


def find_spec_source_dir(module_dir: Path) -> Path | None:
    """Locate the TypeSpec sources for a module.

    *module_dir* itself wins if it holds an entry file; otherwise the first
    (sorted) subdirectory of ``TempTypeSpecFiles`` that does.
    """
    if select_entry_file(module_dir) is not None:
        return module_dir
    temp_root = module_dir / TEMP_SPEC_DIR
    if not temp_root.is_dir():
        return None
    for candidate in sorted(p for p in temp_root.iterdir() if p.is_dir()):
        if select_entry_file(candidate) is not None:
            return candidate
    return None


def build_command_args(
    location: ModuleLocation,
    group_id: str,
    artifact_id: str,
    skip_flags: tuple[str, ...],
) -> tuple[str, ...]:
    """Maven arguments building one module plus the modules it depends on."""
    return (
        "--no-transfer-progress",
        "clean",
        "package",
        "-f",
        str(location.module_root / "pom.xml"),
        *skip_flags,
        "-pl",
        f"{group_id}:{artifact_id}",
        "-am",
    )


def format_step_report(step: PipelineStep, result: ProcessResult, hint: str | None = None) -> StepReport:
    """Render a process result as a StepReport with a readable summary."""
    title = _STEP_TITLES[step]
    lines = [f"{title} results:", ""]
    if result.success:
        lines.append(f"[PASS] {title} completed successfully.")
    else:
        if result.timed_out:
            lines.append(f"[FAIL] {title} timed out.")
        else:
            lines.append(f"[FAIL] {title} failed with exit code {result.exit_code}.")
        output = format_process_output(result)
        if output:
            lines.extend(["", output])
        if hint:
            lines.extend(["", hint])
    return StepReport(step=step, success=result.success, text="\n".join(lines))


# ---------------------------------------------------------------------------
# Imperative shell
# ---------------------------------------------------------------------------


class GenerationPipeline:
    """Runs pipeline steps against an SDK module, one awaited call at a time.

    No step retries; a failed step returns a StepReport with the captured
    output and the caller decides what to do next.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings()

    def _invocation(self, command: str, args: tuple[str, ...], cwd: Path) -> ProcessInvocation:
        return ProcessInvocation(
            command=command,
            args=args,
            cwd=cwd,
            timeout_seconds=self.settings.process_timeout_seconds,
        )

    async def init(self, cwd: str | Path, tsp_config_url: str) -> StepReport:
        """Create the module's ``tsp-location.yaml`` from a tspconfig.yaml URL."""
        invocation = self._invocation(
            SYNC_TOOL,
            ("init", "--debug", "--skip-sync-and-generate", "--tsp-config", tsp_config_url),
            Path(cwd),
        )
        return format_step_report(PipelineStep.INIT, await run_process(invocation))

    async def sync(self, cwd: str | Path) -> StepReport:
        """Download the TypeSpec sources referenced by ``tsp-location.yaml`` in *cwd*."""
        directory = Path(cwd)
        if not (directory / LOCATION_DESCRIPTOR).is_file():
            return StepReport(
                step=PipelineStep.SYNC,
                success=False,
                text=f"No {LOCATION_DESCRIPTOR} found in {directory}. Run init first.",
            )
        invocation = self._invocation(SYNC_TOOL, ("update", "--debug", "--save-inputs"), directory)
        return format_step_report(PipelineStep.SYNC, await run_process(invocation))

    async def generate(self, spec_source_dir: str | Path) -> StepReport:
        """Install the Java emitter and compile the TypeSpec entry file."""
        source_dir = Path(spec_source_dir)
        entry = select_entry_file(source_dir)
        if entry is None:
            return StepReport(
                step=PipelineStep.GENERATE,
                success=False,
                text=(
                    f"No TypeSpec entry file ({', '.join(ENTRY_FILES)}) found in {source_dir}. "
                    "Synchronize the TypeSpec source first."
                ),
            )

        emitter = self.settings.emitter_package
        install = await run_process(
            self._invocation(NPM, ("install", f"{emitter}@latest"), source_dir)
        )
        if not install.success:
            return format_step_report(
                PipelineStep.GENERATE,
                install,
                hint=f"Installing the {emitter} emitter failed; check the npm setup.",
            )

        args = (
            "compile",
            entry,
            f"--emit={emitter}",
            f"--option={emitter}.emitter-output-dir={self.settings.emitter_output_dir}",
        )
        result = await run_process(self._invocation(COMPILER, args, source_dir))
        return format_step_report(
            PipelineStep.GENERATE,
            result,
            hint=(
                "Check the output above for details. If it complains about a missing "
                "Java environment, prepare the environment first."
            ),
        )

    async def build(self, module_dir: str | Path, group_id: str, artifact_id: str) -> StepReport:
        """Build one module and its upstream dependencies from the repository root.

        Raises:
            RootNotFoundError: If *module_dir* is not inside an SDK repository.
        """
        module_root = Path(module_dir).absolute()
        location = ModuleLocation(module_root=module_root, repo_root=find_repo_root(module_root))
        args = build_command_args(location, group_id, artifact_id, self.settings.build_skip_flags)
        result = await run_process(self._invocation(BUILD_TOOL, args, location.repo_root))
        return format_step_report(PipelineStep.BUILD, result)

    async def clean(self, module_dir: str | Path) -> StepReport:
        """Delete generated sources of a management-plane module.

        Other modules contain hand-written code, so the request is refused
        and nothing on disk is touched.
        """
        module_root = Path(module_dir).resolve()
        if not is_management_plane_module(module_root):
            logger.warning("Refusing to clean non management-plane module %s", module_root)
            return StepReport(
                step=PipelineStep.CLEAN,
                success=False,
                refused=True,
                text=(
                    f"{module_root.name} is not a management-plane module. Its sources may "
                    "contain hand-written code, so they were not removed. Delete generated "
                    "files manually if needed."
                ),
            )

        removed: list[str] = []
        for relative in GENERATED_SOURCE_DIRS:
            target = module_root / relative
            try:
                # A linked source tree is detached, never followed.
                if target.is_symlink():
                    target.unlink()
                elif target.is_dir():
                    shutil.rmtree(target)
                else:
                    continue
            except OSError as e:
                logger.error("Failed to remove %s", target, exc_info=True)
                done = ", ".join(removed) if removed else "nothing"
                return StepReport(
                    step=PipelineStep.CLEAN,
                    success=False,
                    text=(
                        f"Failed to remove {relative} in {module_root}: {e}. "
                        f"Removed so far: {done}."
                    ),
                )
            removed.append(relative)
        logger.info("Cleaned %s: %s", module_root, removed)

        summary = ", ".join(removed) if removed else "nothing to remove"
        return StepReport(
            step=PipelineStep.CLEAN,
            success=True,
            text=f"Java source cleaned successfully ({summary}).",
        )
