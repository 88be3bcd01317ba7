"""
Bundle assembly.

Copies the needed subsets of the extracted components into the artifact
bundle layout and writes the bundle's metadata files. The manifest
(`info.json`) is always written last, so a bundle with a manifest is a
complete bundle.
"""

import json
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Sequence

from sdkgenerator.core.exceptions import AssemblyError
from sdkgenerator.core.filesystem import (
    FilesystemError,
    atomic_write,
    ensure_directory,
    recursive_copy,
    relativize_absolute_symlinks,
    safe_rmtree,
)
from sdkgenerator.core.paths import BundleLayout

logger = logging.getLogger(__name__)

BUNDLE_SCHEMA_VERSION = "1.0"
SDK_SCHEMA_VERSION = "4.0"
TOOLSET_SCHEMA_VERSION = "1.0"
ARTIFACT_VERSION = "0.0.1"

RUNTIME_SUBDIRS = ("usr/lib/swift", "usr/lib/swift_static")
SYSROOT_SUBDIRS = ("usr/include", "usr/lib", "lib", "lib64")
HOST_TOOLCHAIN_SUBDIRS = ("usr/lib/swift/pm",)
LINKER_NAME = "ld.lld"


@dataclass
class ExtractedComponents:
    """
    Extracted trees feeding one bundle.

    Attributes:
        build_time_swift: macOS toolchain root (contains usr/)
        build_time_llvm: LLVM release root (contains bin/lld)
        run_time_swift: Linux toolchain root (contains usr/lib/swift)
        packages: Roots of the extracted Ubuntu packages
    """

    build_time_swift: Path
    build_time_llvm: Path
    run_time_swift: Path
    packages: List[Path] = field(default_factory=list)


def _dump_json(data: dict) -> str:
    return json.dumps(data, indent=2, sort_keys=True) + "\n"


class BundleAssembler:
    """
    Writes an artifact bundle.

    Example:
        >>> assembler = BundleAssembler(layout, host_triples=["arm64-apple-macosx13.0"])
        >>> manifest = assembler.assemble(components)
    """

    def __init__(self, layout: BundleLayout, host_triples: Sequence[str]):
        if not host_triples:
            raise ValueError("At least one host triple is required")
        self.layout = layout
        self.host_triples = list(host_triples)

    def assemble(self, components: ExtractedComponents) -> Path:
        """
        Build the bundle from extracted components.

        Returns:
            Path to the bundle manifest

        Raises:
            AssemblyError: If a required component is missing or a copy fails
        """
        layout = self.layout
        try:
            # A manifest left by an earlier run must not outlive a failure of this one.
            layout.manifest_path.unlink(missing_ok=True)
            self._prepare_layout()

            self._copy_subdirs(components.run_time_swift, RUNTIME_SUBDIRS, required=True)
            for package_root in components.packages:
                self._copy_subdirs(package_root, SYSROOT_SUBDIRS, required=False)
            rewritten = relativize_absolute_symlinks(layout.sdk_dir_path)
            if rewritten:
                logger.debug(f"Rewrote {rewritten} absolute symlinks in the SDK")

            self._install_linker(components.build_time_llvm)
            self._install_host_libraries(components.build_time_swift)

            atomic_write(layout.toolset_path, _dump_json(self.toolset_metadata()))
            atomic_write(layout.sdk_metadata_path, _dump_json(self.sdk_metadata()))
            atomic_write(layout.manifest_path, _dump_json(self.bundle_manifest()))
        except AssemblyError:
            raise
        except (OSError, FilesystemError, shutil.Error) as e:
            raise AssemblyError(f"Failed to assemble {layout.artifact_id}: {e}") from e

        logger.info(f"Bundle written to {layout.bundle_path}")
        return layout.manifest_path

    def toolset_metadata(self) -> dict:
        layout = self.layout
        return {
            "schemaVersion": TOOLSET_SCHEMA_VERSION,
            "rootPath": layout.toolchain_bin_dir_path.relative_to(
                layout.triple_path
            ).as_posix(),
            "targetTriple": layout.triple,
            "sdkRootPath": layout.sdk_dir_path.relative_to(layout.triple_path).as_posix(),
            "linker": {"path": LINKER_NAME},
            "swiftCompiler": {
                "extraCLIOptions": ["-use-ld=lld", "-Xlinker", "-R/usr/lib/swift/linux/"]
            },
            "cCompiler": {"extraCLIOptions": ["-fuse-ld=lld"]},
            "cxxCompiler": {"extraCLIOptions": ["-fuse-ld=lld"]},
        }

    def sdk_metadata(self) -> dict:
        layout = self.layout
        resources = layout.sdk_dir_path / "usr" / "lib"
        return {
            "schemaVersion": SDK_SCHEMA_VERSION,
            "targetTriples": {
                layout.triple: {
                    "sdkRootPath": layout.relative_to_variant(layout.sdk_dir_path),
                    "toolsetPaths": [layout.relative_to_variant(layout.toolset_path)],
                    "swiftResourcesPath": layout.relative_to_variant(resources / "swift"),
                    "swiftStaticResourcesPath": layout.relative_to_variant(
                        resources / "swift_static"
                    ),
                }
            },
        }

    def bundle_manifest(self) -> dict:
        layout = self.layout
        return {
            "schemaVersion": BUNDLE_SCHEMA_VERSION,
            "artifacts": {
                layout.artifact_id: {
                    "type": "swiftSDK",
                    "version": ARTIFACT_VERSION,
                    "variants": [
                        {
                            "path": layout.variant_path.relative_to(
                                layout.bundle_path
                            ).as_posix(),
                            "supportedTriples": self.host_triples,
                        }
                    ],
                }
            },
        }

    def _prepare_layout(self) -> None:
        """Start from empty SDK and toolchain directories."""
        layout = self.layout
        safe_rmtree(layout.sdk_dir_path, require_prefix=layout.bundle_path)
        safe_rmtree(layout.toolchain_dir_path, require_prefix=layout.bundle_path)
        for directory in layout.all_dirs():
            ensure_directory(directory)

    def _copy_subdirs(self, root: Path, subdirs: Iterable[str], required: bool) -> None:
        for subdir in subdirs:
            source = root / subdir
            if not source.is_dir():
                if required:
                    raise AssemblyError(f"Missing {subdir} in {root}")
                continue
            logger.debug(f"Copying {source} into the SDK")
            recursive_copy(source, self.layout.sdk_dir_path / subdir)

    def _install_linker(self, llvm_root: Path) -> None:
        lld = llvm_root / "bin" / "lld"
        if not lld.exists():
            raise AssemblyError(f"lld not found in {llvm_root}")
        destination = self.layout.toolchain_bin_dir_path / LINKER_NAME
        shutil.copy2(lld, destination, follow_symlinks=True)
        logger.debug(f"Installed {LINKER_NAME} from {lld}")

    def _install_host_libraries(self, swift_root: Path) -> None:
        for subdir in HOST_TOOLCHAIN_SUBDIRS:
            source = swift_root / subdir
            if not source.is_dir():
                raise AssemblyError(f"Missing {subdir} in {swift_root}")
            recursive_copy(source, self.layout.toolchain_dir_path / subdir)
