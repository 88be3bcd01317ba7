"""
Network download manager with progress tracking, retry logic, and checksum verification.

This module provides robust downloading capabilities with:
- HTTP/HTTPS streaming downloads
- Progress reporting (bytes, percentage, speed, ETA)
- Retry logic with exponential backoff for transient failures
- Immediate failure for structural errors (HTTP 4xx)
- Checksum verification during download
- Atomic promotion: data lands at the destination only after it verified
"""

import hashlib
import logging
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import requests
from requests.exceptions import (
    ChunkedEncodingError,
    ConnectionError,
    HTTPError,
    Timeout,
)

from sdkgenerator.core.exceptions import (
    DownloadCancelled,
    DownloadError,
    IntegrityMismatch,
    RemoteArtifactNotFound,
)
from sdkgenerator.core.verification import verify_file_hash

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

# Status codes worth another attempt; every other 4xx is structural.
RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

# Failures of the connection itself, including resets while the body streams.
TRANSIENT_ERRORS = (Timeout, ConnectionError, ChunkedEncodingError)


@dataclass
class DownloadProgress:
    """Progress information for a download."""

    bytes_downloaded: int
    total_bytes: int
    percentage: float
    speed_bps: float  # bytes per second
    eta_seconds: float  # estimated time remaining

    def __str__(self) -> str:
        """Format progress for display."""
        return format_progress(self)


class StreamingHasher:
    """Compute hash incrementally for streaming downloads."""

    def __init__(self, algorithm: str = "sha256"):
        """
        Initialize streaming hasher.

        Args:
            algorithm: Hash algorithm ('sha256', 'sha512')

        Raises:
            ValueError: If algorithm is not supported
        """
        self.algorithm = algorithm.lower()

        if self.algorithm == "sha256":
            self.hasher = hashlib.sha256()
        elif self.algorithm == "sha512":
            self.hasher = hashlib.sha512()
        else:
            raise ValueError(f"Unsupported hash algorithm: {algorithm}")

    def update(self, data: bytes):
        """Add data to hash computation."""
        self.hasher.update(data)

    def finalize(self) -> str:
        """Get final hash value as hex string."""
        return self.hasher.hexdigest()

    def verify(self, expected_hash: str) -> bool:
        """Check if computed hash matches expected value (case-insensitive)."""
        return self.finalize().lower() == expected_hash.lower()


def is_retryable(error: Exception) -> bool:
    """
    Decide whether a failed request may succeed on another attempt.

    Connection resets (also while the body streams) and timeouts are
    transient. HTTP errors are transient only for server-side and throttling
    status codes.
    """
    if isinstance(error, HTTPError):
        response = error.response
        return response is not None and response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(error, TRANSIENT_ERRORS)


def download_file(
    url: str,
    destination: Path,
    expected_sha256: Optional[str] = None,
    progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    timeout: int = 30,
    max_retries: int = 3,
    backoff_factor: float = 1.0,
    cancel_event: Optional[threading.Event] = None,
) -> Path:
    """
    Download file from URL to destination with retry logic and checksum verification.

    If the destination already exists it is reused when it matches
    expected_sha256, or unconditionally when no checksum is known. Otherwise
    the body is streamed into a temporary file next to the destination and
    renamed into place only after the transfer and checksum both succeeded.

    Args:
        url: URL to download from
        destination: Local path to save file
        expected_sha256: Expected SHA256 hash (verified during download)
        progress_callback: Optional callback for progress updates
        timeout: Request timeout in seconds
        max_retries: Maximum number of attempts
        backoff_factor: Base of the exponential backoff between attempts
        cancel_event: Optional event; when set, the transfer is aborted

    Returns:
        Path to downloaded file

    Raises:
        DownloadError: If download fails after retries, or with a non-retryable status
        RemoteArtifactNotFound: If the URL doesn't exist (HTTP 404)
        IntegrityMismatch: If checksum doesn't match expected value
        DownloadCancelled: If cancel_event was set during the transfer
        ValueError: If URL or destination is invalid

    Example:
        >>> url = "https://download.swift.org/.../swift-5.8-RELEASE-ubuntu22.04.tar.gz"
        >>> download_file(url, Path("Artifacts/swift.tar.gz"), expected_sha256="abc1...")
    """
    if not url:
        raise ValueError("URL cannot be empty")

    if not destination:
        raise ValueError("Destination path cannot be empty")

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    if destination.exists():
        if not expected_sha256:
            logger.info(f"Using cached file: {destination}")
            return destination
        logger.info(f"File exists, verifying checksum: {destination}")
        if verify_file_hash(destination, expected_sha256):
            logger.info("Checksum verified, skipping download")
            return destination
        logger.warning(f"Checksum mismatch for cached {destination.name}, re-downloading")
        destination.unlink()

    last_error: Optional[Exception] = None
    for attempt in range(max_retries):
        try:
            return _download_with_progress(
                url=url,
                destination=destination,
                expected_sha256=expected_sha256,
                progress_callback=progress_callback,
                timeout=timeout,
                cancel_event=cancel_event,
            )
        except HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status == 404:
                raise RemoteArtifactNotFound(url) from e
            if not is_retryable(e):
                raise DownloadError(
                    f"Download of {url} failed with HTTP {status}", url=url
                ) from e
            last_error = e
        except TRANSIENT_ERRORS as e:
            last_error = e

        if attempt == max_retries - 1:
            raise DownloadError(
                f"Download failed after {max_retries} attempts: {last_error}", url=url
            ) from last_error

        backoff_seconds = backoff_factor * 2**attempt
        logger.warning(
            f"Download attempt {attempt + 1} failed: {last_error}. "
            f"Retrying in {backoff_seconds}s..."
        )
        if cancel_event is None:
            time.sleep(backoff_seconds)
        elif cancel_event.wait(backoff_seconds):
            raise DownloadCancelled(f"Download of {url} cancelled", url=url)

    raise DownloadError(f"Download of {url} was not attempted", url=url)


def _download_with_progress(
    url: str,
    destination: Path,
    expected_sha256: Optional[str],
    progress_callback: Optional[Callable[[DownloadProgress], None]],
    timeout: int,
    cancel_event: Optional[threading.Event],
) -> Path:
    """
    Perform one download attempt into a temporary file and promote it.

    This is an internal function called by download_file(). The temporary
    file is always removed unless it was promoted to the destination.
    """
    logger.info(f"Downloading from {url}")

    response = requests.get(url, stream=True, timeout=timeout, allow_redirects=True)
    try:
        response.raise_for_status()
    except HTTPError:
        response.close()
        raise

    content_length = response.headers.get("content-length")
    total_size = int(content_length) if content_length else 0

    hasher = StreamingHasher("sha256") if expected_sha256 else None

    temp_fd, temp_name = tempfile.mkstemp(
        dir=destination.parent, prefix=f".{destination.name}.", suffix=".part"
    )
    temp_path = Path(temp_name)

    downloaded = 0
    start_time = time.time()
    last_progress_time = start_time

    try:
        with open(temp_fd, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if cancel_event is not None and cancel_event.is_set():
                    raise DownloadCancelled(f"Download of {url} cancelled", url=url)
                if not chunk:
                    continue

                f.write(chunk)
                downloaded += len(chunk)
                if hasher:
                    hasher.update(chunk)

                # Report progress (max once per 0.5 seconds to avoid spam)
                current_time = time.time()
                if progress_callback and (
                    current_time - last_progress_time >= 0.5 or downloaded == total_size
                ):
                    elapsed = current_time - start_time
                    speed = downloaded / elapsed if elapsed > 0 else 0
                    remaining = total_size - downloaded if total_size > 0 else 0
                    progress_callback(
                        DownloadProgress(
                            bytes_downloaded=downloaded,
                            total_bytes=total_size if total_size > 0 else downloaded,
                            percentage=(downloaded / total_size * 100)
                            if total_size > 0
                            else 0,
                            speed_bps=speed,
                            eta_seconds=remaining / speed if speed > 0 else 0,
                        )
                    )
                    last_progress_time = current_time

        if hasher and not hasher.verify(expected_sha256):
            raise IntegrityMismatch(
                destination.name, expected_sha256, hasher.finalize(), url=url
            )

        temp_path.replace(destination)

    finally:
        response.close()
        temp_path.unlink(missing_ok=True)

    if hasher:
        logger.info("Checksum verified successfully")
    logger.info(f"Download complete: {destination}")
    return destination


def format_progress(progress: DownloadProgress) -> str:
    """
    Format progress for display.

    Example:
        >>> progress = DownloadProgress(52428800, 104857600, 50.0, 1048576, 50)
        >>> print(format_progress(progress))
        50.0/100.0 MB (50.0%) at 1.0 MB/s ETA: 50s
    """
    mb_downloaded = progress.bytes_downloaded / 1024 / 1024
    mb_total = progress.total_bytes / 1024 / 1024
    speed_mbps = progress.speed_bps / 1024 / 1024

    if progress.total_bytes > 0:
        return (
            f"{mb_downloaded:.1f}/{mb_total:.1f} MB "
            f"({progress.percentage:.1f}%) "
            f"at {speed_mbps:.1f} MB/s "
            f"ETA: {progress.eta_seconds:.0f}s"
        )
    else:
        # Unknown total size
        return f"{mb_downloaded:.1f} MB at {speed_mbps:.1f} MB/s"
