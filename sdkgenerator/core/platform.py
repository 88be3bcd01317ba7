"""
Host platform detection.

Used to pick defaults for the build environment when the caller doesn't name
one explicitly: the generator usually runs on the machine that will later
run the cross compiler.
"""

import functools
import logging
import platform

from sdkgenerator.cross.architecture import CPUArchitecture, parse_architecture

logger = logging.getLogger(__name__)


@functools.lru_cache(maxsize=1)
def detect_host_architecture() -> CPUArchitecture:
    """
    Detect the CPU architecture of the running machine.

    This function is cached - it only runs detection once per process.

    Raises:
        UnsupportedArchitecture: If the machine isn't x86_64 or arm64
    """
    machine = platform.machine().lower()
    logger.debug(f"Detected host machine: {machine}")
    return parse_architecture(machine)
