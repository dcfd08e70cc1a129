"""Tests for sdkgen.artifacts: registry lookup and scoped downloads."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from sdkgen.artifacts import (
    DownloadedArtifact,
    MetadataError,
    NetworkError,
    ScopedTempDirectory,
    artifact_url,
    download_artifact,
    fetch_artifact,
    group_path,
    metadata_url,
    parse_metadata,
    pick_latest_stable,
    resolve_latest_stable,
)
from sdkgen.models import ArtifactVersion
from tests.conftest import ARTIFACT, GROUP, REGISTRY, build_metadata, mock_client


def metadata_handler(document: str, requests: list[httpx.Request] | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        if request.url.path.endswith("maven-metadata.xml"):
            return httpx.Response(200, text=document)
        return httpx.Response(404)

    return handler


# ---------------------------------------------------------------------------
# Pure functions
# ---------------------------------------------------------------------------


class TestUrls:
    def test_group_path(self) -> None:
        assert group_path("com.azure.resourcemanager") == "com/azure/resourcemanager"

    def test_metadata_url(self) -> None:
        assert metadata_url(GROUP, ARTIFACT, REGISTRY + "/") == (
            f"{REGISTRY}/com/azure/resourcemanager/{ARTIFACT}/maven-metadata.xml"
        )

    def test_artifact_url(self) -> None:
        version = ArtifactVersion(group_id=GROUP, artifact_id=ARTIFACT, version="1.2.0")
        assert artifact_url(version, REGISTRY) == (
            f"{REGISTRY}/com/azure/resourcemanager/{ARTIFACT}/1.2.0/{ARTIFACT}-1.2.0.jar"
        )


class TestParseMetadata:
    def test_latest_and_versions_in_order(self) -> None:
        latest, versions = parse_metadata(build_metadata(["1.0.0", "1.1.0-beta.1"], "1.1.0-beta.1"))
        assert latest == "1.1.0-beta.1"
        assert versions == ["1.0.0", "1.1.0-beta.1"]

    def test_missing_versioning(self) -> None:
        latest, versions = parse_metadata("<metadata><groupId>g</groupId></metadata>")
        assert latest is None
        assert versions == []

    def test_malformed_xml_raises(self) -> None:
        with pytest.raises(MetadataError):
            parse_metadata("<metadata><versioning>")


class TestPickLatestStable:
    def test_skips_newer_prerelease(self) -> None:
        assert pick_latest_stable(["1.0.0", "1.1.0-beta.1"], "1.1.0-beta.1") == "1.0.0"

    def test_prefers_newest_stable(self) -> None:
        assert pick_latest_stable(["1.0.0", "1.1.0-beta.1", "1.1.0"], "1.1.0") == "1.1.0"

    def test_all_prerelease_falls_back_to_latest_pointer(self) -> None:
        versions = ["1.0.0-beta.1", "1.0.0-beta.2"]
        assert pick_latest_stable(versions, "1.0.0-beta.2") == "1.0.0-beta.2"

    def test_latest_pointer_returned_verbatim(self) -> None:
        assert pick_latest_stable(["1.0.0-beta.1"], "0.9.0-alpha") == "0.9.0-alpha"

    def test_empty(self) -> None:
        assert pick_latest_stable([], None) is None


# ---------------------------------------------------------------------------
# ScopedTempDirectory / DownloadedArtifact
# ---------------------------------------------------------------------------


class TestScopedTempDirectory:
    def test_created_and_released(self, isolated_tempdir: Path) -> None:
        scope = ScopedTempDirectory()
        assert scope.path.is_dir()
        assert scope.path.parent == isolated_tempdir.resolve()
        (scope.path / "file.jar").write_bytes(b"data")

        scope.release()
        assert not scope.path.exists()
        assert scope.released is True

    def test_release_is_idempotent(self, isolated_tempdir: Path) -> None:
        scope = ScopedTempDirectory()
        scope.release()
        scope.release()
        assert list(isolated_tempdir.iterdir()) == []

    def test_context_manager_releases_on_error(self, isolated_tempdir: Path) -> None:
        with pytest.raises(RuntimeError), ScopedTempDirectory() as scope:
            (scope.path / "partial").write_text("x")
            raise RuntimeError("boom")
        assert list(isolated_tempdir.iterdir()) == []


# ---------------------------------------------------------------------------
# resolve_latest_stable
# ---------------------------------------------------------------------------


class TestResolveLatestStable:
    @pytest.mark.asyncio
    async def test_skips_prerelease(self) -> None:
        requests: list[httpx.Request] = []
        document = build_metadata(["1.0.0", "1.1.0-beta.1", "1.1.0"])
        async with mock_client(metadata_handler(document, requests)) as client:
            version = await resolve_latest_stable(
                GROUP, ARTIFACT, registry_url=REGISTRY, client=client
            )

        assert version.version == "1.1.0"
        assert version.stable is True
        assert version.group_id == GROUP
        assert str(requests[0].url) == metadata_url(GROUP, ARTIFACT, REGISTRY)

    @pytest.mark.asyncio
    async def test_stable_older_than_latest_prerelease(self) -> None:
        document = build_metadata(["1.0.0", "1.1.0-beta.1"])
        async with mock_client(metadata_handler(document)) as client:
            version = await resolve_latest_stable(
                GROUP, ARTIFACT, registry_url=REGISTRY, client=client
            )
        assert version.version == "1.0.0"

    @pytest.mark.asyncio
    async def test_all_prerelease_returns_latest_pointer(self) -> None:
        document = build_metadata(["1.0.0-beta.1", "1.0.0-beta.2"], latest="1.0.0-beta.2")
        async with mock_client(metadata_handler(document)) as client:
            version = await resolve_latest_stable(
                GROUP, ARTIFACT, registry_url=REGISTRY, client=client
            )
        assert version.version == "1.0.0-beta.2"
        assert version.stable is False

    @pytest.mark.asyncio
    async def test_http_error_raises_network_error(self) -> None:
        async with mock_client(lambda request: httpx.Response(404)) as client:
            with pytest.raises(NetworkError, match="maven-metadata.xml"):
                await resolve_latest_stable(GROUP, ARTIFACT, registry_url=REGISTRY, client=client)

    @pytest.mark.asyncio
    async def test_connection_error_raises_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with mock_client(handler) as client:
            with pytest.raises(NetworkError):
                await resolve_latest_stable(GROUP, ARTIFACT, registry_url=REGISTRY, client=client)

    @pytest.mark.asyncio
    async def test_no_versions_raises_metadata_error(self) -> None:
        document = "<metadata><versioning><versions/></versioning></metadata>"
        async with mock_client(metadata_handler(document)) as client:
            with pytest.raises(MetadataError, match="No published versions"):
                await resolve_latest_stable(GROUP, ARTIFACT, registry_url=REGISTRY, client=client)


# ---------------------------------------------------------------------------
# download_artifact / fetch_artifact
# ---------------------------------------------------------------------------

VERSION = ArtifactVersion(group_id=GROUP, artifact_id=ARTIFACT, version="1.1.0")
JAR_BYTES = b"PK\x03\x04" + b"\x00" * 200_000


def jar_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith(f"{ARTIFACT}-1.1.0.jar"):
        return httpx.Response(200, content=JAR_BYTES)
    return httpx.Response(404)


class TestDownloadArtifact:
    @pytest.mark.asyncio
    async def test_downloads_into_scoped_directory(self, isolated_tempdir: Path) -> None:
        async with mock_client(jar_handler) as client:
            downloaded = await download_artifact(VERSION, registry_url=REGISTRY, client=client)

        assert isinstance(downloaded, DownloadedArtifact)
        assert downloaded.path.is_absolute()
        assert downloaded.path.name == f"{ARTIFACT}-1.1.0.jar"
        assert downloaded.path.read_bytes() == JAR_BYTES
        assert [p.name for p in downloaded.path.parent.iterdir()] == [downloaded.path.name]

        downloaded.release()
        assert list(isolated_tempdir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_failed_download_leaves_nothing_behind(self, isolated_tempdir: Path) -> None:
        async with mock_client(lambda request: httpx.Response(500)) as client:
            with pytest.raises(NetworkError):
                await download_artifact(VERSION, registry_url=REGISTRY, client=client)
        assert list(isolated_tempdir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_fetch_artifact_releases_on_exit(self, isolated_tempdir: Path) -> None:
        async with mock_client(jar_handler) as client:
            async with fetch_artifact(VERSION, registry_url=REGISTRY, client=client) as jar:
                assert jar.read_bytes() == JAR_BYTES
        assert not jar.exists()
        assert list(isolated_tempdir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_fetch_artifact_releases_on_error(self, isolated_tempdir: Path) -> None:
        async with mock_client(jar_handler) as client:
            with pytest.raises(RuntimeError):
                async with fetch_artifact(VERSION, registry_url=REGISTRY, client=client):
                    raise RuntimeError("diff failed")
        assert list(isolated_tempdir.iterdir()) == []
