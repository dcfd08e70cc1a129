"""Core data models for sdkgen."""

from __future__ import annotations

import re
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field, computed_field

# A hyphenated qualifier marks a pre-release: 1.0.0-beta.1, 2.1.0-SNAPSHOT.
_PRERELEASE_PATTERN = re.compile(r"-[0-9A-Za-z]")


def is_prerelease(version: str) -> bool:
    """Return True if *version* carries a pre-release qualifier."""
    return bool(_PRERELEASE_PATTERN.search(version))


class PipelineStep(StrEnum):
    """The generation pipeline steps, in execution order."""

    INIT = "init"
    SYNC = "sync"
    GENERATE = "generate"
    BUILD = "build"
    CLEAN = "clean"


class ModuleLocation(BaseModel):
    """A Java SDK module and the repository that contains it."""

    module_root: Path
    repo_root: Path


class ArtifactVersion(BaseModel):
    """A published version of a Maven artifact."""

    group_id: str
    artifact_id: str
    version: str

    @computed_field  # type: ignore[prop-decorator]
    @property
    def stable(self) -> bool:
        return not is_prerelease(self.version)

    @property
    def coordinates(self) -> str:
        return f"{self.group_id}:{self.artifact_id}:{self.version}"


class ChangelogReport(BaseModel):
    """Output of an API diff between two artifacts.

    A failed comparison still produces a report: ``text`` then carries the
    captured stdout and stderr of the diff tool.
    """

    text: str
    success: bool
    timed_out: bool = False
    exit_code: int | None = None
    old_artifact: str | None = Field(default=None, description="Path or coordinates.")
    new_artifact: str | None = None


class StepReport(BaseModel):
    """Human-readable outcome of a single pipeline step."""

    step: PipelineStep
    success: bool
    text: str
    refused: bool = Field(
        default=False,
        description="True when the step declined to run (e.g. unsafe clean).",
    )
