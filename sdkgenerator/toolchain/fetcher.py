"""
Artifact fetcher.

Materializes ArtifactDescriptors in the local cache. A descriptor whose file
is already cached (and verifies, when a checksum is known) is served without
any network access; everything else is downloaded through
sdkgenerator.core.download, which only ever exposes complete, verified files.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from sdkgenerator.core.download import DownloadProgress, download_file
from sdkgenerator.core.verification import verify_file_hash
from sdkgenerator.toolchain.catalog import ArtifactDescriptor

logger = logging.getLogger(__name__)


@dataclass
class FetchReport:
    """Which artifacts of a run came from the network and which from cache."""

    downloaded: List[str] = field(default_factory=list)
    cached: List[str] = field(default_factory=list)


class ArtifactFetcher:
    """
    Downloads artifacts into their cache locations.

    Safe to call from several threads at once; each descriptor owns a
    distinct local path.

    Example:
        >>> fetcher = ArtifactFetcher(max_retries=3)
        >>> path = fetcher.fetch(artifacts.run_time_swift)
    """

    def __init__(
        self,
        timeout: int = 30,
        max_retries: int = 3,
        backoff_factor: float = 1.0,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[Callable[[str, DownloadProgress], None]] = None,
    ):
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.cancel_event = cancel_event
        self.progress_callback = progress_callback
        self.report = FetchReport()
        self._lock = threading.Lock()

    def is_cached(self, artifact: ArtifactDescriptor) -> bool:
        """Check whether the artifact's cached file can be used as-is."""
        path = artifact.local_path
        if not path.is_file():
            return False
        if artifact.expected_sha256 is None:
            return True
        return verify_file_hash(path, artifact.expected_sha256)

    def fetch(self, artifact: ArtifactDescriptor) -> Path:
        """
        Make the artifact available locally.

        Returns:
            Path to the complete, verified local file

        Raises:
            RemoteArtifactNotFound: If the URL doesn't exist upstream
            IntegrityMismatch: If the downloaded content fails verification
            DownloadError: If retries are exhausted
            DownloadCancelled: If another task of the run failed
        """
        if self.is_cached(artifact):
            logger.info(f"Using cached {artifact.artifact_id}: {artifact.local_path.name}")
            self._record(self.report.cached, artifact.artifact_id)
            return artifact.local_path

        logger.info(f"Downloading {artifact.artifact_id} from {artifact.remote_url}")
        start = time.time()

        progress = None
        if self.progress_callback:

            def progress(dp: DownloadProgress):
                self.progress_callback(artifact.artifact_id, dp)

        path = download_file(
            url=artifact.remote_url,
            destination=artifact.local_path,
            expected_sha256=artifact.expected_sha256,
            progress_callback=progress,
            timeout=self.timeout,
            max_retries=self.max_retries,
            backoff_factor=self.backoff_factor,
            cancel_event=self.cancel_event,
        )

        logger.debug(f"Fetched {artifact.artifact_id} in {time.time() - start:.2f}s")
        self._record(self.report.downloaded, artifact.artifact_id)
        return path

    def _record(self, bucket: List[str], artifact_id: str) -> None:
        with self._lock:
            bucket.append(artifact_id)
