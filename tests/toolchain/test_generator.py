"""
Tests for the generation pipeline.

Every upstream service is mocked with `responses`; archives are synthesized
in memory and unpacked through the fake extraction backend.
"""

import gzip
import hashlib
import json

import pytest
import responses
from requests.exceptions import ChunkedEncodingError

from sdkgenerator.core.exceptions import (
    AssemblyError,
    PackageResolutionError,
    PipelineError,
    RemoteArtifactNotFound,
)
from sdkgenerator.toolchain.catalog import ArtifactCatalog
from sdkgenerator.toolchain.generator import GenerationState, SDKGenerator


@pytest.fixture
def upstream(settings, make_tarball, make_packages_index):
    """
    Bodies for every URL a jammy/arm64 run requests.

    Returns a dict of URL -> bytes; tests register them with responses.
    """
    catalog = ArtifactCatalog(
        settings.versions, settings.target, settings.build, settings.paths, settings.endpoints
    )
    artifacts = catalog.resolve_artifacts()
    bodies = {
        artifacts.build_time_swift.remote_url: make_tarball(
            {"usr/lib/swift/pm/ManifestAPI/libPackageDescription.dylib": b"MachO"}
        ),
        artifacts.build_time_llvm.remote_url: make_tarball(
            {"clang+llvm-16.0.4-arm64-apple-darwin22.0/bin/lld": b"lld"}
        ),
        artifacts.run_time_swift.remote_url: make_tarball(
            {
                "swift-5.8-RELEASE-ubuntu22.04-aarch64/usr/lib/swift/linux/libswiftCore.so": b"ELF",
                "swift-5.8-RELEASE-ubuntu22.04-aarch64/usr/lib/swift_static/linux/libswiftCore.a": b"AR",
            }
        ),
    }

    mirror = settings.endpoints.ubuntu_ports
    index_entries = {}
    for name in settings.target.distribution.packages:
        files = {f"./usr/include/{name}.h": f"/* {name} */\n".encode()}
        symlinks = {}
        if name == "libc6-dev":
            files["./lib/aarch64-linux-gnu/libm.so.6"] = b"ELF"
            symlinks["./usr/lib/aarch64-linux-gnu/libm.so"] = "/lib/aarch64-linux-gnu/libm.so.6"
        deb = make_tarball(files, symlinks)
        filename = f"pool/main/x/{name}/{name}_1.0_arm64.deb"
        bodies[f"{mirror}/{filename}"] = deb
        index_entries[name] = {
            "Architecture": "arm64",
            "Filename": filename,
            "SHA256": hashlib.sha256(deb).hexdigest(),
        }

    bodies[catalog.package_index_artifact().remote_url] = make_packages_index(index_entries)
    return bodies


def _register(rsps, bodies, overrides=None):
    for url, body in bodies.items():
        status = (overrides or {}).get(url, 200)
        rsps.add(responses.GET, url, body=body if status == 200 else b"", status=status)


class TestSuccessfulRun:
    """Tests for a complete generation run."""

    def test_bundle_published(self, settings, upstream, fake_backend):
        generator = SDKGenerator(settings, backend=fake_backend)

        with responses.RequestsMock() as rsps:
            _register(rsps, upstream)
            result = generator.run()

        layout = generator.layout
        assert generator.state is GenerationState.PUBLISHED
        assert result.artifact_id == "5.8-RELEASE_ubuntu_22.04_aarch64"
        assert result.bundle_path == layout.bundle_path
        assert result.manifest_path == layout.manifest_path
        assert len(result.downloaded) == len(upstream)
        assert result.cached == []

        sdk = layout.sdk_dir_path
        assert (sdk / "usr/lib/swift/linux/libswiftCore.so").exists()
        assert (sdk / "usr/include/libc6-dev.h").exists()
        assert (sdk / "usr/lib/aarch64-linux-gnu/libm.so").resolve() == (
            sdk / "lib/aarch64-linux-gnu/libm.so.6"
        ).resolve()
        assert (layout.toolchain_bin_dir_path / "ld.lld").read_bytes() == b"lld"

        manifest = json.loads(layout.manifest_path.read_text())
        variant = manifest["artifacts"][result.artifact_id]["variants"][0]
        assert variant["supportedTriples"] == ["arm64-apple-macosx13.0"]

    def test_second_run_uses_cache_only(self, settings, upstream, fake_backend):
        """Test a repeat run makes no requests and reproduces the manifest exactly."""
        with responses.RequestsMock() as rsps:
            _register(rsps, upstream)
            first = SDKGenerator(settings, backend=fake_backend).run()
        manifest_bytes = first.manifest_path.read_bytes()
        backend_calls = len(fake_backend.calls)

        with responses.RequestsMock() as rsps:
            second = SDKGenerator(settings, backend=fake_backend).run()
            assert len(rsps.calls) == 0

        assert second.downloaded == []
        assert sorted(second.cached) == sorted(first.downloaded)
        assert second.manifest_path.read_bytes() == manifest_bytes
        assert len(fake_backend.calls) == backend_calls


class TestFailedRun:
    """Tests for failing runs."""

    def test_missing_runtime_fails_fetching(self, settings, upstream, fake_backend):
        """Test a 404 aborts the run, names the artifact and publishes nothing."""
        generator = SDKGenerator(settings, backend=fake_backend)
        runtime_url = generator.catalog.resolve_artifacts().run_time_swift.remote_url

        with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
            _register(rsps, upstream, overrides={runtime_url: 404})
            with pytest.raises(PipelineError) as exc_info:
                generator.run()

        error = exc_info.value
        assert error.stage == "fetching"
        assert error.artifact_id == "run-time-swift"
        assert isinstance(error.__cause__, RemoteArtifactNotFound)
        assert generator.state is GenerationState.FAILED
        assert not generator.layout.manifest_path.exists()
        assert not generator.layout.bundle_path.exists()
        assert not settings.paths.working_dir.exists()

    def test_package_missing_from_index(self, settings, upstream, fake_backend, make_packages_index):
        generator = SDKGenerator(settings, backend=fake_backend)
        index_url = generator.catalog.package_index_artifact().remote_url
        upstream[index_url] = make_packages_index({"libc6": {"Filename": "pool/libc6.deb", "SHA256": "0" * 64}})

        with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
            _register(rsps, upstream)
            with pytest.raises(PipelineError) as exc_info:
                generator.run()

        assert exc_info.value.stage == "resolving"
        assert isinstance(exc_info.value.__cause__, PackageResolutionError)

    def test_corrupt_package_index(self, settings, upstream, fake_backend):
        generator = SDKGenerator(settings, backend=fake_backend)
        index = generator.catalog.package_index_artifact()
        upstream[index.remote_url] = gzip.compress(b"")[:5]

        with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
            _register(rsps, upstream)
            with pytest.raises(PipelineError) as exc_info:
                generator.run()

        assert exc_info.value.stage == "resolving"
        assert exc_info.value.artifact_id == index.artifact_id

    def test_assembly_failure_removes_stale_manifest(self, settings, upstream, fake_backend, make_tarball):
        """Test a failing rebuild doesn't leave the previous manifest behind."""
        generator = SDKGenerator(settings, backend=fake_backend)
        with responses.RequestsMock() as rsps:
            _register(rsps, upstream)
            generator.run()
        assert generator.layout.manifest_path.exists()

        runtime = generator.catalog.resolve_artifacts().run_time_swift
        runtime.local_path.write_bytes(make_tarball({"swift/usr/bin/swift": b"no libraries"}))

        with responses.RequestsMock(assert_all_requests_are_fired=False):
            with pytest.raises(PipelineError) as exc_info:
                SDKGenerator(settings, backend=fake_backend).run()

        assert exc_info.value.stage == "assembling"
        assert isinstance(exc_info.value.__cause__, AssemblyError)
        assert not generator.layout.manifest_path.exists()


class TestRerunAfterPublish:
    """Tests for a failing run over a previously published bundle."""

    @pytest.fixture
    def published(self, settings, upstream, fake_backend):
        generator = SDKGenerator(settings, backend=fake_backend)
        with responses.RequestsMock() as rsps:
            _register(rsps, upstream)
            generator.run()
        assert generator.layout.manifest_path.exists()
        return generator

    def test_extraction_failure_removes_manifest(self, settings, published, fake_backend):
        runtime = published.catalog.resolve_artifacts().run_time_swift
        runtime.local_path.write_bytes(b"not a tarball")

        generator = SDKGenerator(settings, backend=fake_backend)
        with responses.RequestsMock(assert_all_requests_are_fired=False):
            with pytest.raises(PipelineError) as exc_info:
                generator.run()

        assert exc_info.value.stage == "extracting"
        assert exc_info.value.artifact_id == "run-time-swift"
        assert generator.state is GenerationState.FAILED
        assert not generator.layout.manifest_path.exists()

    def test_fetch_failure_removes_manifest(self, settings, upstream, published, fake_backend):
        runtime = published.catalog.resolve_artifacts().run_time_swift
        runtime.local_path.unlink()

        generator = SDKGenerator(settings, backend=fake_backend)
        with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
            rsps.add(responses.GET, runtime.remote_url, status=404)
            with pytest.raises(PipelineError) as exc_info:
                generator.run()

        assert exc_info.value.stage == "fetching"
        assert not generator.layout.manifest_path.exists()


class TestTransientFailures:
    """Tests for connection failures the pipeline recovers from."""

    def test_index_reset_while_streaming_is_retried(self, settings, upstream, fake_backend):
        generator = SDKGenerator(settings, backend=fake_backend)
        index_url = generator.catalog.package_index_artifact().remote_url

        with responses.RequestsMock() as rsps:
            rsps.add(
                responses.GET,
                index_url,
                body=ChunkedEncodingError("Connection reset by peer"),
            )
            _register(rsps, upstream)
            result = generator.run()

        assert generator.state is GenerationState.PUBLISHED
        assert "package-index-main" in result.downloaded
        assert result.manifest_path.exists()
