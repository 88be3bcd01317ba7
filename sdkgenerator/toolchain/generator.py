"""
Generation pipeline.

Drives one run from validated settings to a published bundle:

    CONFIGURED -> RESOLVING -> FETCHING -> EXTRACTING -> ASSEMBLING -> PUBLISHED
                      \\            \\            \\            \\
                       +------------+------------+------------+--> FAILED

Downloads and extractions fan out over a thread pool. The first failure
cancels the remaining work of the stage and is reported as a single
PipelineError naming the stage and the artifact.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from sdkgenerator.core.download import DownloadProgress
from sdkgenerator.core.exceptions import GeneratorError, PipelineError
from sdkgenerator.core.paths import BundleLayout, PathsConfiguration
from sdkgenerator.cross.targets import BuildEnvironment, PlatformTarget
from sdkgenerator.toolchain.assembler import BundleAssembler, ExtractedComponents
from sdkgenerator.toolchain.catalog import (
    ArtifactCatalog,
    ArtifactDescriptor,
    DistributionEndpoints,
    DownloadableArtifacts,
    ToolVersions,
)
from sdkgenerator.toolchain.extractor import ExtractionBackend, Extractor, make_backend
from sdkgenerator.toolchain.fetcher import ArtifactFetcher, FetchReport
from sdkgenerator.toolchain.packages import (
    parse_packages_index,
    resolve_package_artifacts,
)

logger = logging.getLogger(__name__)


class GenerationState(Enum):
    CONFIGURED = "configured"
    RESOLVING = "resolving"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    ASSEMBLING = "assembling"
    PUBLISHED = "published"
    FAILED = "failed"


@dataclass(frozen=True)
class GenerationSettings:
    """Validated inputs of a generation run."""

    versions: ToolVersions
    target: PlatformTarget
    build: BuildEnvironment
    paths: PathsConfiguration
    endpoints: DistributionEndpoints = field(default_factory=DistributionEndpoints)
    use_container: bool = False
    container_image: str = "ubuntu:22.04"
    max_workers: int = 4
    max_retries: int = 3
    timeout: int = 30
    backoff_factor: float = 1.0


@dataclass
class GenerationResult:
    """Outcome of a successful run."""

    artifact_id: str
    bundle_path: Path
    manifest_path: Path
    downloaded: List[str]
    cached: List[str]


class SDKGenerator:
    """
    Generates a cross-compilation SDK bundle.

    Example:
        >>> generator = SDKGenerator(config.validate())
        >>> result = generator.run()
        >>> print(result.bundle_path)
        Bundles/5.8-RELEASE_ubuntu_22.04_aarch64.artifactbundle
    """

    def __init__(
        self,
        settings: GenerationSettings,
        backend: Optional[ExtractionBackend] = None,
        progress_callback: Optional[Callable[[str, DownloadProgress], None]] = None,
    ):
        self.settings = settings
        self.state = GenerationState.CONFIGURED
        self.layout: BundleLayout = settings.paths.bundle_layout(
            settings.versions.swift_version, settings.target
        )
        self.catalog = ArtifactCatalog(
            settings.versions,
            settings.target,
            settings.build,
            settings.paths,
            settings.endpoints,
        )
        self.extractor = Extractor(
            settings.paths,
            backend or make_backend(settings.use_container, settings.container_image),
        )
        self._cancel = threading.Event()
        self.fetcher = ArtifactFetcher(
            timeout=settings.timeout,
            max_retries=settings.max_retries,
            backoff_factor=settings.backoff_factor,
            cancel_event=self._cancel,
            progress_callback=progress_callback,
        )

    def run(self) -> GenerationResult:
        """
        Execute the whole pipeline.

        Raises:
            PipelineError: On any failure; the cause is chained
        """
        self._cancel.clear()
        self.fetcher.report = FetchReport()
        logger.info(f"Generating {self.layout.artifact_id}")

        # Only a run that reaches PUBLISHED leaves a manifest behind.
        self.layout.manifest_path.unlink(missing_ok=True)

        try:
            toolchain, packages = self.resolve()
            artifacts = [*toolchain, *packages]

            self._transition(GenerationState.FETCHING)
            self._fan_out(artifacts, self.fetcher.fetch)

            self._transition(GenerationState.EXTRACTING)
            extracted = self._fan_out(
                artifacts,
                lambda artifact: self.extractor.extract(
                    artifact.local_path, artifact.archive_kind
                ),
            )

            self._transition(GenerationState.ASSEMBLING)
            components = ExtractedComponents(
                build_time_swift=extracted[toolchain.build_time_swift.artifact_id],
                build_time_llvm=extracted[toolchain.build_time_llvm.artifact_id],
                run_time_swift=extracted[toolchain.run_time_swift.artifact_id],
                packages=[extracted[p.artifact_id] for p in packages],
            )
            assembler = BundleAssembler(self.layout, [str(self.settings.build.triple)])
            manifest_path = assembler.assemble(components)
        except PipelineError as e:
            logger.error(str(e))
            self._transition(GenerationState.FAILED)
            raise
        except GeneratorError as e:
            error = PipelineError(self.state.value, None, e)
            logger.error(str(error))
            self._transition(GenerationState.FAILED)
            raise error from e

        self._transition(GenerationState.PUBLISHED)
        return GenerationResult(
            artifact_id=self.layout.artifact_id,
            bundle_path=self.layout.bundle_path,
            manifest_path=manifest_path,
            downloaded=list(self.fetcher.report.downloaded),
            cached=list(self.fetcher.report.cached),
        )

    def resolve(self) -> Tuple[DownloadableArtifacts, List[ArtifactDescriptor]]:
        """
        Resolve toolchain archives and distribution packages.

        Fetches the distribution's package index to learn package locations.
        """
        self._transition(GenerationState.RESOLVING)
        toolchain = self.catalog.resolve_artifacts()

        index_artifact = self.catalog.package_index_artifact()
        try:
            index = parse_packages_index(self.fetcher.fetch(index_artifact))
        except GeneratorError as e:
            raise PipelineError(
                GenerationState.RESOLVING.value, index_artifact.artifact_id, e
            ) from e

        target = self.settings.target
        packages = resolve_package_artifacts(
            index,
            target.distribution.packages,
            target.cpu,
            self.settings.paths,
            self.settings.endpoints,
        )
        logger.info(
            f"Resolved {len(list(toolchain))} toolchain archives and "
            f"{len(packages)} {target.distribution.name} packages"
        )
        return toolchain, packages

    def _fan_out(
        self,
        artifacts: Sequence[ArtifactDescriptor],
        task: Callable[[ArtifactDescriptor], Path],
    ) -> Dict[str, Path]:
        stage = self.state.value
        results: Dict[str, Path] = {}

        with ThreadPoolExecutor(max_workers=self.settings.max_workers) as executor:
            futures = {executor.submit(task, artifact): artifact for artifact in artifacts}
            for future in as_completed(futures):
                artifact = futures[future]
                try:
                    results[artifact.artifact_id] = future.result()
                except Exception as e:
                    # Stop queued work and signal running downloads; leaving the
                    # with-block waits for them to clean up.
                    self._cancel.set()
                    for pending in futures:
                        pending.cancel()
                    raise PipelineError(stage, artifact.artifact_id, e) from e

        return results

    def _transition(self, state: GenerationState) -> None:
        logger.debug(f"{self.state.value} -> {state.value}")
        self.state = state
