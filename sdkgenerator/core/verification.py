"""
Hash verification for downloaded artifacts and extraction stamps.

Provides SHA-256/SHA-512 hash computation and constant-time verification.
"""

import hashlib
import logging
import secrets
from pathlib import Path
from typing import Callable, Optional

from sdkgenerator.core.exceptions import GeneratorError

logger = logging.getLogger(__name__)

_HASH_LENGTHS = {"sha256": 64, "sha512": 128}


class HashFormatError(GeneratorError):
    """Exception raised when hash format is invalid."""

    pass


def compute_file_hash(
    file_path: Path,
    algorithm: str = "sha256",
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> str:
    """
    Compute cryptographic hash of file.

    Args:
        file_path: Path to file
        algorithm: Hash algorithm ('sha256', 'sha512')
        progress_callback: Optional progress callback (bytes_read, total_bytes)

    Returns:
        Hex string of hash

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If algorithm is not supported
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    algorithm = algorithm.lower()
    if algorithm not in _HASH_LENGTHS:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")
    hasher = hashlib.new(algorithm)

    file_size = file_path.stat().st_size
    bytes_read = 0

    with open(file_path, "rb") as f:
        while chunk := f.read(65536):
            hasher.update(chunk)
            bytes_read += len(chunk)

            if progress_callback:
                progress_callback(bytes_read, file_size)

    return hasher.hexdigest()


def verify_file_hash(
    file_path: Path, expected_hash: str, algorithm: str = "sha256"
) -> bool:
    """
    Verify file matches expected hash using constant-time comparison.

    Args:
        file_path: Path to file
        expected_hash: Expected hash value (hex string, case-insensitive)
        algorithm: Hash algorithm ('sha256', 'sha512')

    Returns:
        True if hash matches, False otherwise

    Raises:
        FileNotFoundError: If file doesn't exist
        HashFormatError: If expected_hash isn't a well-formed digest
    """
    expected_hash = expected_hash.lower().strip()
    if not is_valid_hash_format(expected_hash, algorithm):
        raise HashFormatError(f"Invalid hash format for {algorithm}: {expected_hash}")

    actual_hash = compute_file_hash(file_path, algorithm)
    return secrets.compare_digest(actual_hash.encode("utf-8"), expected_hash.encode("utf-8"))


def is_valid_hash_format(hash_str: str, algorithm: str = "sha256") -> bool:
    """
    Validate hash string format.

    Args:
        hash_str: Hash string to validate
        algorithm: Algorithm name

    Returns:
        True if the string is hex of the algorithm's digest length
    """
    if not hash_str:
        return False

    if not all(c in "0123456789abcdef" for c in hash_str.lower()):
        return False

    expected_len = _HASH_LENGTHS.get(algorithm.lower())
    if expected_len and len(hash_str) != expected_len:
        logger.error(
            f"Hash length {len(hash_str)} doesn't match expected {expected_len} for {algorithm}"
        )
        return False

    return True
