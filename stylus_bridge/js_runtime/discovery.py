"""
Node.js Runtime Discovery.

Probes an ordered list of candidate command names and provides the
command-line arguments used to launch the engine runner.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from stylus_bridge.config import DEFAULT_RUNTIME_CANDIDATES

logger = logging.getLogger(__name__)


@dataclass
class RuntimeInfo:
    """Information about a discovered runtime."""

    name: str
    executable: str
    version: Optional[str] = None


def discover_runtimes(
    candidates: Optional[Iterable[str]] = None,
    with_version: bool = False,
) -> list[RuntimeInfo]:
    """
    Find every candidate executable present on this system.

    Candidates resolving to the same file (``nodejs`` is often a symlink
    to ``node``) are reported once, at the position of the first one.

    Args:
        candidates: Command names or paths, preferred first
        with_version: Also run ``--version`` on each hit

    Returns:
        Discovered runtimes in preference order
    """
    if candidates is None:
        candidates = DEFAULT_RUNTIME_CANDIDATES

    found: list[RuntimeInfo] = []
    seen: set[str] = set()

    for name in candidates:
        path = shutil.which(name)
        if not path:
            logger.debug(f"Runtime candidate not found: {name}")
            continue
        real = os.path.realpath(path)
        if real in seen:
            continue
        seen.add(real)
        version = _get_version(path) if with_version else None
        found.append(RuntimeInfo(name=name, executable=path, version=version))

    return found


def _get_version(executable: str) -> Optional[str]:
    """Get the version of a runtime, e.g. ``20.11.1`` from ``v20.11.1``."""
    try:
        completed = subprocess.run(
            [executable, "--version"],
            capture_output=True,
            text=True,
            timeout=5.0,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug(f"Failed to get version for {executable}: {e}")
        return None

    output = completed.stdout.strip()
    if not output:
        return None
    return output.lstrip("v").split()[0]


def get_runtime_args(
    executable: str,
    entry_point: Path,
    debug: bool = False
) -> list[str]:
    """
    Get command-line arguments for running the engine runner.

    Args:
        executable: Path to the runtime executable
        entry_point: Path to the runner script
        debug: Enable the inspector

    Returns:
        List of command-line arguments
    """
    args = [executable]

    if debug:
        args.append("--inspect")

    args.append(str(entry_point))

    return args
