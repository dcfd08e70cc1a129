"""Maven registry access: latest stable version lookup and jar download.

Downloads land in a ScopedTempDirectory. Whoever holds the returned
DownloadedArtifact owns that directory and must release it; the
``async with`` forms do this on every exit path.

Design follows Function Core / Imperative Shell:
- Pure functions: group_path, metadata_url, artifact_url, parse_metadata,
  pick_latest_stable
- Resource types: ScopedTempDirectory, DownloadedArtifact
- I/O shell: build_client, resolve_latest_stable, download_artifact,
  fetch_artifact
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import xml.etree.ElementTree as ET
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from pathlib import Path
from types import TracebackType

import httpx

from sdkgen.config import DEFAULT_HTTP_TIMEOUT_SECONDS, DEFAULT_REGISTRY_URL
from sdkgen.errors import SdkgenError
from sdkgen.models import ArtifactVersion, is_prerelease

logger = logging.getLogger(__name__)

ARTIFACT_EXTENSION = "jar"
TEMP_DIR_PREFIX = "java-sdk-changelog-"

_CHUNK_SIZE = 64 * 1024


class RegistryError(SdkgenError):
    """Base exception for registry lookups and downloads."""


class NetworkError(RegistryError):
    """The registry could not be reached or returned an error status."""


class MetadataError(RegistryError):
    """The registry metadata document is malformed or lists no versions."""


# ---------------------------------------------------------------------------
# Pure functions
# ---------------------------------------------------------------------------


def group_path(group_id: str) -> str:
    """Convert ``com.azure.resourcemanager`` to ``com/azure/resourcemanager``."""
    return group_id.replace(".", "/")


def metadata_url(group_id: str, artifact_id: str, registry_url: str = DEFAULT_REGISTRY_URL) -> str:
    base = registry_url.rstrip("/")
    return f"{base}/{group_path(group_id)}/{artifact_id}/maven-metadata.xml"


def artifact_url(version: ArtifactVersion, registry_url: str = DEFAULT_REGISTRY_URL) -> str:
    base = registry_url.rstrip("/")
    a, v = version.artifact_id, version.version
    return f"{base}/{group_path(version.group_id)}/{a}/{v}/{a}-{v}.{ARTIFACT_EXTENSION}"


def parse_metadata(document: str | bytes) -> tuple[str | None, list[str]]:
    """Parse ``maven-metadata.xml`` into ``(latest, versions)``.

    ``versions`` keeps the document order, which Maven publishes oldest
    first.

    Raises:
        MetadataError: If the document is not well-formed XML.
    """
    try:
        root = ET.fromstring(document)
    except ET.ParseError as e:
        msg = f"Malformed registry metadata: {e}"
        raise MetadataError(msg) from e

    latest = root.findtext("versioning/latest")
    latest = latest.strip() if latest else None
    versions = [
        v.text.strip()
        for v in root.findall("versioning/versions/version")
        if v.text and v.text.strip()
    ]
    return latest, versions


def pick_latest_stable(versions: Sequence[str], latest: str | None) -> str | None:
    """Return the newest version without a pre-release qualifier.

    *versions* is oldest to newest. When every entry is a pre-release, the
    registry's own *latest* pointer is returned unchanged, even if it is a
    pre-release itself.
    """
    for version in reversed(versions):
        if not is_prerelease(version):
            return version
    return latest


# ---------------------------------------------------------------------------
# Resource types
# ---------------------------------------------------------------------------


class ScopedTempDirectory:
    """A temporary directory removed exactly once, when released.

    Usable as a context manager; ``release`` may also be called directly and
    is idempotent.
    """

    def __init__(self, prefix: str = TEMP_DIR_PREFIX) -> None:
        self._path = Path(tempfile.mkdtemp(prefix=prefix)).resolve()
        self._released = False
        logger.debug("Created temporary directory %s", self._path)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            shutil.rmtree(self._path)
        except FileNotFoundError:
            pass
        except OSError:
            logger.error("Failed to clean up temporary directory: %s", self._path, exc_info=True)
        else:
            logger.debug("Removed temporary directory %s", self._path)

    def __enter__(self) -> ScopedTempDirectory:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


class DownloadedArtifact:
    """A downloaded artifact file together with the directory that owns it."""

    def __init__(self, version: ArtifactVersion, path: Path, directory: ScopedTempDirectory) -> None:
        self.version = version
        self.path = path
        self.directory = directory

    def release(self) -> None:
        self.directory.release()

    def __enter__(self) -> DownloadedArtifact:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"DownloadedArtifact({self.version.coordinates!r}, path={str(self.path)!r})"


# ---------------------------------------------------------------------------
# I/O shell
# ---------------------------------------------------------------------------


def build_client(timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS) -> httpx.AsyncClient:
    """Create an ``httpx.AsyncClient`` configured for registry access."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout_seconds),
        follow_redirects=True,
        headers={"User-Agent": "sdkgen"},
    )


@asynccontextmanager
async def _client_scope(client: httpx.AsyncClient | None) -> AsyncIterator[httpx.AsyncClient]:
    """Yield *client*, or a fresh client closed on exit when none was given."""
    if client is not None:
        yield client
        return
    async with build_client() as owned:
        yield owned


async def resolve_latest_stable(
    group_id: str,
    artifact_id: str,
    *,
    registry_url: str = DEFAULT_REGISTRY_URL,
    client: httpx.AsyncClient | None = None,
) -> ArtifactVersion:
    """Resolve the newest stable published version of an artifact.

    Raises:
        NetworkError: If the metadata document could not be fetched.
        MetadataError: If it lists no versions and no latest pointer.
    """
    from sdkgen.tracing import artifact_attributes, get_tracer

    url = metadata_url(group_id, artifact_id, registry_url)
    tracer = get_tracer()
    with tracer.start_as_current_span("sdkgen.resolve_latest_stable") as span:
        span.set_attribute("sdkgen.registry.url", url)
        async with _client_scope(client) as http:
            try:
                response = await http.get(url)
                response.raise_for_status()
            except httpx.HTTPError as e:
                msg = f"Failed to fetch registry metadata from {url}: {e}"
                raise NetworkError(msg) from e

        latest, versions = parse_metadata(response.content)
        chosen = pick_latest_stable(versions, latest)
        if chosen is None:
            msg = f"No published versions found for {group_id}:{artifact_id} at {url}"
            raise MetadataError(msg)

        version = ArtifactVersion(group_id=group_id, artifact_id=artifact_id, version=chosen)
        span.set_attributes(artifact_attributes(version))
        logger.info("Latest release of %s:%s is %s", group_id, artifact_id, chosen)
        return version


async def download_artifact(
    version: ArtifactVersion,
    *,
    registry_url: str = DEFAULT_REGISTRY_URL,
    client: httpx.AsyncClient | None = None,
) -> DownloadedArtifact:
    """Download an artifact jar into a new ScopedTempDirectory.

    The jar is written to a ``.part`` file and renamed once complete, so the
    final name never refers to a partial download. Ownership of the
    directory passes to the caller; on failure it is released here.

    Raises:
        NetworkError: If the download failed.
    """
    from sdkgen.tracing import artifact_attributes, get_tracer

    url = artifact_url(version, registry_url)
    directory = ScopedTempDirectory()
    final_path = directory.path / url.rsplit("/", 1)[-1]
    part_path = final_path.with_name(final_path.name + ".part")

    tracer = get_tracer()
    try:
        with tracer.start_as_current_span("sdkgen.download_artifact") as span:
            span.set_attributes(artifact_attributes(version))
            async with _client_scope(client) as http:
                try:
                    async with http.stream("GET", url) as response:
                        response.raise_for_status()
                        with part_path.open("wb") as fh:
                            async for chunk in response.aiter_bytes(_CHUNK_SIZE):
                                fh.write(chunk)
                            fh.flush()
                            os.fsync(fh.fileno())
                except httpx.HTTPError as e:
                    msg = f"Failed to download {version.coordinates} from {url}: {e}"
                    raise NetworkError(msg) from e
            os.replace(part_path, final_path)
            span.set_attribute("sdkgen.artifact.size", final_path.stat().st_size)
    except BaseException:
        directory.release()
        raise

    logger.info("Downloaded %s to %s", version.coordinates, final_path)
    return DownloadedArtifact(version=version, path=final_path, directory=directory)


@asynccontextmanager
async def fetch_artifact(
    version: ArtifactVersion,
    *,
    registry_url: str = DEFAULT_REGISTRY_URL,
    client: httpx.AsyncClient | None = None,
) -> AsyncIterator[Path]:
    """Download *version* and yield the jar path; the directory is removed on exit."""
    downloaded = await download_artifact(version, registry_url=registry_url, client=client)
    with downloaded:
        yield downloaded.path
