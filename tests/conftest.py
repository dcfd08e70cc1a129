"""Shared test fixtures for sdkgen."""

from __future__ import annotations

import os
import stat
import tempfile
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

POSIX_ONLY = pytest.mark.skipif(os.name == "nt", reason="fake tools are POSIX shell scripts")


class FakeTool:
    """A shell script on PATH that records how it was invoked."""

    def __init__(self, bin_dir: Path, name: str) -> None:
        self.name = name
        self.path = bin_dir / name
        self._args_file = bin_dir / f"{name}.args"
        self._cwd_file = bin_dir / f"{name}.cwd"

    @property
    def called(self) -> bool:
        return self._args_file.exists()

    def args(self) -> list[str]:
        return self._args_file.read_text().splitlines()

    def cwd(self) -> Path:
        return Path(self._cwd_file.read_text().strip()).resolve()


@pytest.fixture
def fake_bin(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A directory prepended to PATH for fake executables."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    return bin_dir


@pytest.fixture
def fake_tool(fake_bin: Path) -> Callable[..., FakeTool]:
    """Factory creating fake executables on PATH.

    ``fake_tool("mvn", body="echo BUILD FAILURE; exit 1")`` writes a script
    that records its arguments and working directory, then runs *body*.
    """

    def _make(name: str, body: str = "exit 0") -> FakeTool:
        tool = FakeTool(fake_bin, name)
        tool.path.write_text(
            "#!/bin/sh\n"
            f"printf '%s\\n' \"$@\" > '{fake_bin / (name + '.args')}'\n"
            f"pwd > '{fake_bin / (name + '.cwd')}'\n"
            f"{body}\n"
        )
        tool.path.chmod(tool.path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return tool

    return _make


@pytest.fixture
def sdk_repo(tmp_path: Path) -> Path:
    """An Azure SDK for Java style repository with two modules.

    Layout::

        repo/pom.xml, repo/sdk/, repo/eng/
        repo/sdk/widgets/resourcemanager-widgets/{pom.xml, src/{main,samples,test}, ...}
        repo/sdk/widgets/widgets-core/{pom.xml, src/{main,test}}
    """
    repo = tmp_path / "repo"
    (repo / "eng").mkdir(parents=True)
    (repo / "pom.xml").write_text("<project/>")
    service = repo / "sdk" / "widgets"

    mgmt = service / "resourcemanager-widgets"
    for sub in ("src/main/java/com/azure/widgets", "src/samples/java", "src/test/java"):
        (mgmt / sub).mkdir(parents=True)
    (mgmt / "src/main/java/com/azure/widgets/Widget.java").write_text("class Widget {}")
    (mgmt / "src/samples/java/Sample.java").write_text("class Sample {}")
    (mgmt / "src/test/java/WidgetTests.java").write_text("class WidgetTests {}")
    (mgmt / "src/resources").mkdir()
    (mgmt / "src/resources/notes.txt").write_text("keep")
    (mgmt / "pom.xml").write_text("<project/>")
    (mgmt / "CHANGELOG.md").write_text("# Release History\n")
    (mgmt / "tsp-location.yaml").write_text("directory: specification/widgets\n")

    core = service / "widgets-core"
    for sub in ("src/main/java", "src/test/java"):
        (core / sub).mkdir(parents=True)
    (core / "src/main/java/Handwritten.java").write_text("class Handwritten {}")
    (core / "pom.xml").write_text("<project/>")

    return repo


@pytest.fixture
def isolated_tempdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Redirect ``tempfile`` to an empty directory so leftovers can be detected."""
    temp_root = tmp_path / "tmp"
    temp_root.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(temp_root))
    return temp_root


def snapshot_tree(root: Path) -> set[str]:
    """Every path under *root*, relative and as strings."""
    return {str(p.relative_to(root)) for p in root.rglob("*")}


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------

REGISTRY = "https://registry.test/maven2"
GROUP = "com.azure.resourcemanager"
ARTIFACT = "azure-resourcemanager-widgets"


def build_metadata(versions: list[str], latest: str | None = None) -> str:
    """A ``maven-metadata.xml`` document listing *versions* oldest first."""
    latest = latest if latest is not None else (versions[-1] if versions else "")
    entries = "".join(f"<version>{v}</version>" for v in versions)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        "<metadata>"
        f"<groupId>{GROUP}</groupId><artifactId>{ARTIFACT}</artifactId>"
        "<versioning>"
        f"<latest>{latest}</latest>"
        f"<versions>{entries}</versions>"
        "<lastUpdated>20250101000000</lastUpdated>"
        "</versioning>"
        "</metadata>"
    )


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
