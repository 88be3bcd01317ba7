"""
Unit tests for archive extraction and extraction backends.
"""

import gzip
from pathlib import Path

import pytest
import zstandard

from sdkgenerator.core.exceptions import (
    ExtractionError,
    ExtractionFailed,
    UnsupportedArchiveFormat,
)
from sdkgenerator.toolchain.catalog import ArchiveKind
from sdkgenerator.toolchain.extractor import (
    STAMP_FILE,
    ContainerExtractionBackend,
    Extractor,
    LocalExtractionBackend,
    make_backend,
)


@pytest.fixture
def artifacts_dir(paths):
    paths.artifacts_cache_dir.mkdir(parents=True)
    return paths.artifacts_cache_dir


class TestTarballExtraction:
    """Tests for TARBALL archives."""

    def test_single_root_collapsed(self, paths, artifacts_dir, make_tarball, fake_backend):
        archive = artifacts_dir / "swift-5.8-RELEASE-ubuntu22.04-aarch64.tar.gz"
        archive.write_bytes(
            make_tarball({"swift-5.8-RELEASE-ubuntu22.04-aarch64/usr/lib/swift/linux/libswiftCore.so": b"ELF"})
        )

        root = Extractor(paths, fake_backend).extract(archive, ArchiveKind.TARBALL)

        assert root == paths.working_dir / "swift-5.8-RELEASE-ubuntu22.04-aarch64"
        assert (root / "usr/lib/swift/linux/libswiftCore.so").read_bytes() == b"ELF"
        assert fake_backend.calls == []

    def test_unchanged_archive_not_reextracted(self, paths, artifacts_dir, make_tarball):
        archive = artifacts_dir / "llvm.tar.xz"
        archive.write_bytes(make_tarball({"llvm/bin/lld": b"lld"}))
        extractor = Extractor(paths)

        root = extractor.extract(archive, ArchiveKind.TARBALL)
        (root / "marker").write_text("kept")
        again = extractor.extract(archive, ArchiveKind.TARBALL)

        assert again == root
        assert (root / "marker").exists()

    def test_changed_archive_reextracted(self, paths, artifacts_dir, make_tarball):
        archive = artifacts_dir / "llvm.tar.xz"
        archive.write_bytes(make_tarball({"llvm/bin/lld": b"old"}))
        extractor = Extractor(paths)
        extractor.extract(archive, ArchiveKind.TARBALL)

        archive.write_bytes(make_tarball({"llvm/bin/lld": b"new"}))
        root = extractor.extract(archive, ArchiveKind.TARBALL)

        assert (root / "bin/lld").read_bytes() == b"new"

    def test_failure_leaves_no_partial_output(self, paths, artifacts_dir):
        """Test a corrupt archive produces neither output nor scratch directories."""
        archive = artifacts_dir / "broken.tar.gz"
        archive.write_bytes(b"\x1f\x8b\x08 truncated")

        with pytest.raises(ExtractionFailed) as exc_info:
            Extractor(paths).extract(archive, ArchiveKind.TARBALL)

        assert exc_info.value.archive == archive
        assert list(paths.working_dir.iterdir()) == []

    def test_stamp_records_archive_hash(self, paths, artifacts_dir, make_tarball):
        archive = artifacts_dir / "swift.tar.gz"
        archive.write_bytes(make_tarball({"a/b": b"c"}))

        root = Extractor(paths).extract(archive, ArchiveKind.TARBALL)

        assert Extractor(paths).is_current(root, (root / STAMP_FILE).read_text().strip())
        assert not Extractor(paths).is_current(root, "0" * 64)


class TestDebianPackageExtraction:
    """Tests for DEBIAN_PACKAGE archives."""

    def test_gzip_data_member(self, paths, artifacts_dir, make_tarball, fake_backend):
        archive = artifacts_dir / "linux-libc-dev_5.15_arm64.deb"
        archive.write_bytes(make_tarball({"./usr/include/linux/types.h": b"#pragma once\n"}))

        root = Extractor(paths, fake_backend).extract(archive, ArchiveKind.DEBIAN_PACKAGE)

        # A package with a single top-level usr/ keeps it.
        assert (root / "usr/include/linux/types.h").exists()
        args, cwd = fake_backend.calls[0]
        assert args == ["ar", "x", str(archive.absolute())]
        assert cwd.name.endswith(".scratch")
        assert not cwd.exists()

    def test_zstd_data_member(self, paths, artifacts_dir, make_tarball):
        """Test data.tar.zst members are decompressed in-process."""
        data_tar = gzip.decompress(make_tarball({"./usr/lib/libz.so.1": b"ELF"}))
        payload = zstandard.ZstdCompressor().compress(data_tar)

        class ZstdBackend(LocalExtractionBackend):
            name = "zstd-fake"

            def run(self, args, cwd):
                (Path(cwd) / "data.tar.zst").write_bytes(payload)

        archive = artifacts_dir / "zlib1g_arm64.deb"
        archive.write_bytes(b"!<arch>\n")

        root = Extractor(paths, ZstdBackend()).extract(archive, ArchiveKind.DEBIAN_PACKAGE)

        assert (root / "usr/lib/libz.so.1").read_bytes() == b"ELF"

    def test_missing_data_member(self, paths, artifacts_dir):
        class EmptyBackend(LocalExtractionBackend):
            def run(self, args, cwd):
                (Path(cwd) / "debian-binary").write_text("2.0\n")

        archive = artifacts_dir / "empty.deb"
        archive.write_bytes(b"!<arch>\n")

        with pytest.raises(ExtractionFailed, match="data.tar"):
            Extractor(paths, EmptyBackend()).extract(archive, ArchiveKind.DEBIAN_PACKAGE)

    def test_backend_error_wrapped(self, paths, artifacts_dir):
        class FailingBackend(LocalExtractionBackend):
            def run(self, args, cwd):
                raise ExtractionError("Required tool `ar` is not installed")

        archive = artifacts_dir / "libc6.deb"
        archive.write_bytes(b"!<arch>\n")

        with pytest.raises(ExtractionFailed, match="`ar` is not installed"):
            Extractor(paths, FailingBackend()).extract(archive, ArchiveKind.DEBIAN_PACKAGE)

        assert list(paths.working_dir.iterdir()) == []


class TestInstallerPackageExtraction:
    """Tests for INSTALLER_PACKAGE archives."""

    def test_gzip_tar_payload(self, paths, artifacts_dir, make_tarball, fake_backend):
        archive = artifacts_dir / "swift-5.8-RELEASE-osx.pkg"
        archive.write_bytes(make_tarball({"usr/lib/swift/pm/ManifestAPI/libPackageDescription.dylib": b"MachO"}))

        root = Extractor(paths, fake_backend).extract(archive, ArchiveKind.INSTALLER_PACKAGE)

        assert root == paths.working_dir / "swift-5.8-RELEASE-osx"
        assert (root / "usr/lib/swift/pm/ManifestAPI/libPackageDescription.dylib").exists()
        assert [call[0][:3] for call in fake_backend.calls] == [["7z", "x", "-y"]]

    def test_cpio_payload_handed_to_backend(self, paths, artifacts_dir):
        """Test a payload that isn't a tarball is unpacked by 7z."""
        calls = []

        class CpioBackend(LocalExtractionBackend):
            def run(self, args, cwd):
                calls.append([str(a) for a in args])
                if len(calls) == 1:
                    package = Path(cwd) / "swift.pkg"
                    package.mkdir()
                    (package / "Payload").write_bytes(gzip.compress(b"070701 cpio data"))
                else:
                    (Path(cwd) / "usr").mkdir()

        archive = artifacts_dir / "swift-5.8-RELEASE-osx.pkg"
        archive.write_bytes(b"xar!")

        root = Extractor(paths, CpioBackend()).extract(archive, ArchiveKind.INSTALLER_PACKAGE)

        assert (root / "usr").is_dir()
        assert calls[1][:3] == ["7z", "x", "-y"]
        assert calls[1][3].endswith("payload-0")

    def test_missing_payload(self, paths, artifacts_dir):
        class NoPayloadBackend(LocalExtractionBackend):
            def run(self, args, cwd):
                (Path(cwd) / "Distribution").write_text("<xml/>")

        archive = artifacts_dir / "swift.pkg"
        archive.write_bytes(b"xar!")

        with pytest.raises(ExtractionFailed, match="no Payload"):
            Extractor(paths, NoPayloadBackend()).extract(archive, ArchiveKind.INSTALLER_PACKAGE)


class TestUnsupportedKinds:
    """Tests for archive kinds without a strategy."""

    def test_package_index_not_extractable(self, paths, artifacts_dir):
        archive = artifacts_dir / "Packages.gz"
        archive.write_bytes(gzip.compress(b"Package: libc6\n"))

        with pytest.raises(UnsupportedArchiveFormat):
            Extractor(paths).extract(archive, ArchiveKind.PACKAGE_INDEX)

        assert not paths.working_dir.exists()


class TestBackends:
    """Tests for extraction backends."""

    def test_local_backend_missing_tool(self, tmp_path):
        with pytest.raises(ExtractionError, match="is not installed"):
            LocalExtractionBackend().run(["definitely-not-a-real-tool-xyz"], cwd=tmp_path)

    def test_container_command(self, tmp_path):
        """Test paths are translated into bind-mounted container paths."""
        cwd = tmp_path / "Build" / "libc6.scratch"
        archive = tmp_path / "Artifacts" / "libc6_arm64.deb"
        backend = ContainerExtractionBackend(image="ubuntu:22.04")

        command = backend.build_command(["ar", "x", archive], cwd)

        assert command[:3] == ["docker", "run", "--rm"]
        assert ["-v", f"{cwd}:/work"] == command[3:5]
        assert ["-v", f"{archive.parent}:/input-0:ro"] == command[5:7]
        assert command[7:10] == ["-w", "/work", "ubuntu:22.04"]
        assert command[-3:-1] == ["sh", "-c"]
        assert command[-1].endswith("&& ar x /input-0/libc6_arm64.deb")

    def test_container_paths_inside_workdir(self, tmp_path):
        backend = ContainerExtractionBackend(engine="podman")

        command = backend.build_command(["7z", "x", "-y", tmp_path / "payload-0"], tmp_path)

        assert command[0] == "podman"
        assert command[-1].endswith("&& 7z x -y /work/payload-0")
        assert not any(part.startswith("/input-") for part in command)

    def test_make_backend(self):
        assert isinstance(make_backend(False), LocalExtractionBackend)
        container = make_backend(True, "ubuntu:20.04")
        assert isinstance(container, ContainerExtractionBackend)
        assert container.image == "ubuntu:20.04"
