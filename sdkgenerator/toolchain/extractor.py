"""
Archive extraction.

Turns downloaded archives into directory trees under the working directory.
Tarballs are unpacked in-process; Debian packages and macOS installer
packages need the `ar` and `7z` tools, which an ExtractionBackend runs either
directly on the host or inside a Linux container.

Each archive is unpacked into a `.partial` sibling of its final directory and
renamed into place only when extraction succeeded. A stamp file holding the
archive's SHA-256 lets repeat runs skip archives that haven't changed.
"""

import gzip
import logging
import shlex
import shutil
import subprocess
import tarfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

import zstandard

from sdkgenerator.core.exceptions import (
    ExtractionError,
    ExtractionFailed,
    InsecureArchiveError,
    UnsupportedArchiveFormat,
)
from sdkgenerator.core.filesystem import (
    extract_tarball,
    normalize_root_directory,
    safe_rmtree,
)
from sdkgenerator.core.paths import PathsConfiguration
from sdkgenerator.core.verification import compute_file_hash
from sdkgenerator.toolchain.catalog import ArchiveKind

logger = logging.getLogger(__name__)

STAMP_FILE = ".extracted-sha256"
GZIP_MAGIC = b"\x1f\x8b"
DEB_DATA_MEMBERS = ("data.tar.zst", "data.tar.xz", "data.tar.gz", "data.tar")

Argument = Union[str, Path]


# ============================================================================
# Backends
# ============================================================================


class ExtractionBackend(ABC):
    """Runs an external unpacking tool with a given working directory."""

    name = "abstract"

    @abstractmethod
    def run(self, args: Sequence[Argument], cwd: Path) -> None:
        """
        Run a command to completion.

        Args:
            args: Program and arguments; Path arguments denote files on the host
            cwd: Host directory the command runs in

        Raises:
            ExtractionError: If the tool is missing or exits with an error
        """
        pass


def _run_checked(command: List[str], cwd: Optional[Path] = None) -> None:
    logger.debug(f"Running: {shlex.join(command)}")
    try:
        subprocess.run(command, cwd=cwd, check=True, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise ExtractionError(f"Required tool `{command[0]}` is not installed") from e
    except subprocess.CalledProcessError as e:
        stderr = (e.stderr or "").strip()
        raise ExtractionError(
            f"`{shlex.join(command)}` exited with status {e.returncode}: {stderr}"
        ) from e


class LocalExtractionBackend(ExtractionBackend):
    """Runs tools installed on the build host."""

    name = "local"

    def run(self, args: Sequence[Argument], cwd: Path) -> None:
        _run_checked([str(arg) for arg in args], cwd=cwd)


class ContainerExtractionBackend(ExtractionBackend):
    """
    Runs tools inside a disposable Linux container.

    The working directory is bind-mounted at /work; the parent directory of
    every other Path argument is mounted read-only at /input-N. Missing tools
    are installed with apt before the command runs.

    Example:
        >>> backend = ContainerExtractionBackend(image="ubuntu:22.04")
        >>> backend.run(["ar", "x", Path("Artifacts/libc6_arm64.deb")], cwd=scratch)
    """

    name = "container"

    PREPARE = (
        "command -v 7z >/dev/null 2>&1 || "
        "(apt-get update -qq && apt-get install -y -qq binutils p7zip-full >/dev/null)"
    )

    def __init__(self, image: str = "ubuntu:22.04", engine: str = "docker"):
        self.image = image
        self.engine = engine

    def build_command(self, args: Sequence[Argument], cwd: Path) -> List[str]:
        """Translate a host command into the container engine invocation."""
        cwd = Path(cwd).absolute()
        mounts = ["-v", f"{cwd}:/work"]
        inputs: Dict[Path, str] = {}
        translated = []

        for arg in args:
            if not isinstance(arg, Path):
                translated.append(str(arg))
                continue
            path = arg.absolute()
            if path.is_relative_to(cwd):
                translated.append(f"/work/{path.relative_to(cwd).as_posix()}")
                continue
            if path.parent not in inputs:
                inputs[path.parent] = f"/input-{len(inputs)}"
                mounts += ["-v", f"{path.parent}:{inputs[path.parent]}:ro"]
            translated.append(f"{inputs[path.parent]}/{path.name}")

        script = f"{self.PREPARE} && {shlex.join(translated)}"
        return [
            self.engine,
            "run",
            "--rm",
            *mounts,
            "-w",
            "/work",
            self.image,
            "sh",
            "-c",
            script,
        ]

    def run(self, args: Sequence[Argument], cwd: Path) -> None:
        _run_checked(self.build_command(args, cwd))


def make_backend(use_container: bool, image: str = "ubuntu:22.04") -> ExtractionBackend:
    if use_container:
        return ContainerExtractionBackend(image=image)
    return LocalExtractionBackend()


# ============================================================================
# Extractor
# ============================================================================


class Extractor:
    """
    Unpacks archives into the working directory.

    Example:
        >>> extractor = Extractor(paths)
        >>> root = extractor.extract(Path("Artifacts/swift-5.8-RELEASE-osx.pkg"),
        ...                          ArchiveKind.INSTALLER_PACKAGE)
        >>> (root / "usr" / "lib" / "swift" / "pm").is_dir()
        True
    """

    def __init__(
        self, paths: PathsConfiguration, backend: Optional[ExtractionBackend] = None
    ):
        self.paths = paths
        self.backend = backend or LocalExtractionBackend()
        self._strategies: Dict[ArchiveKind, Callable[[Path, Path, Path], Path]] = {
            ArchiveKind.TARBALL: self._extract_tarball,
            ArchiveKind.INSTALLER_PACKAGE: self._extract_installer_package,
            ArchiveKind.DEBIAN_PACKAGE: self._extract_debian_package,
        }

    def extract(self, archive_path: Union[str, Path], kind: ArchiveKind) -> Path:
        """
        Extract an archive and return the directory holding its contents.

        Raises:
            UnsupportedArchiveFormat: If no strategy handles `kind`
            InsecureArchiveError: If a member would escape the destination
            ExtractionFailed: If unpacking did not complete
        """
        archive_path = Path(archive_path)
        strategy = self._strategies.get(kind)
        if strategy is None:
            raise UnsupportedArchiveFormat(
                f"No extraction strategy for {kind} archive {archive_path.name}"
            )

        destination = self.paths.extraction_dir(archive_path)
        digest = compute_file_hash(archive_path)
        if self.is_current(destination, digest):
            logger.info(f"Already extracted: {destination.name}")
            return destination

        working_dir = self.paths.working_dir
        partial = destination.with_name(destination.name + ".partial")
        scratch = destination.with_name(destination.name + ".scratch")
        safe_rmtree(partial, require_prefix=working_dir)
        safe_rmtree(scratch, require_prefix=working_dir)
        partial.mkdir(parents=True)

        logger.info(f"Extracting {archive_path.name} ({self.backend.name} backend)")
        try:
            root = strategy(archive_path, partial, scratch)
            safe_rmtree(destination, require_prefix=working_dir)
            root.rename(destination)
            (destination / STAMP_FILE).write_text(digest + "\n", encoding="utf-8")
        except (InsecureArchiveError, ExtractionFailed):
            raise
        except (ExtractionError, OSError, EOFError, zstandard.ZstdError) as e:
            raise ExtractionFailed(archive_path, str(e)) from e
        finally:
            safe_rmtree(partial, require_prefix=working_dir)
            safe_rmtree(scratch, require_prefix=working_dir)

        logger.debug(f"Extracted {archive_path.name} to {destination}")
        return destination

    def is_current(self, destination: Path, digest: str) -> bool:
        """Check whether `destination` was extracted from an archive with `digest`."""
        stamp = destination / STAMP_FILE
        if not stamp.is_file():
            return False
        return stamp.read_text(encoding="utf-8").strip() == digest

    def _extract_tarball(self, archive: Path, output: Path, scratch: Path) -> Path:
        extract_tarball(archive, output)
        return normalize_root_directory(output)

    def _extract_debian_package(self, archive: Path, output: Path, scratch: Path) -> Path:
        scratch.mkdir(parents=True, exist_ok=True)
        self.backend.run(["ar", "x", archive.absolute()], cwd=scratch)

        data = next(
            (scratch / name for name in DEB_DATA_MEMBERS if (scratch / name).is_file()),
            None,
        )
        if data is None:
            raise ExtractionFailed(archive, "data.tar.* not found in package")

        if data.suffix == ".zst":
            tar_path = scratch / "data.tar"
            with open(data, "rb") as compressed, open(tar_path, "wb") as decompressed:
                zstandard.ZstdDecompressor().copy_stream(compressed, decompressed)
            data = tar_path

        extract_tarball(data, output)
        return output

    def _extract_installer_package(
        self, archive: Path, output: Path, scratch: Path
    ) -> Path:
        scratch.mkdir(parents=True, exist_ok=True)
        self.backend.run(["7z", "x", "-y", archive.absolute()], cwd=scratch)

        payloads = sorted(p for p in scratch.rglob("Payload") if p.is_file())
        if not payloads:
            raise ExtractionFailed(archive, "no Payload found in installer package")

        for index, payload in enumerate(payloads):
            logger.debug(f"Unpacking payload {payload.relative_to(scratch)}")
            self._unpack_payload(payload, output, scratch / f"payload-{index}")

        return output

    def _unpack_payload(self, payload: Path, output: Path, raw: Path) -> None:
        """Payloads are gzip'd cpio (or tar) archives rooted at the install location."""
        with open(payload, "rb") as f:
            compressed = f.read(2) == GZIP_MAGIC

        if compressed:
            with gzip.open(payload, "rb") as src, open(raw, "wb") as dst:
                shutil.copyfileobj(src, dst)
        else:
            shutil.copyfile(payload, raw)

        if tarfile.is_tarfile(raw):
            extract_tarball(raw, output)
        else:
            self.backend.run(["7z", "x", "-y", raw.absolute()], cwd=output)
