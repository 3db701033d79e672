"""
Path helper — joining, directory preparation, and batch validation.

Validation is batch-style: every path is probed before anything is
reported, so the operator sees the complete list of missing paths in
one error instead of fixing them one round-trip at a time.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import PurePosixPath, PureWindowsPath

from addsctl.adapters.base import Filesystem
from addsctl.core.errors import PathMissingError, PlatformCallError

logger = logging.getLogger(__name__)


def join_path(base: str, *parts: str) -> str:
    """Join path segments, keeping the flavour (Windows / POSIX) of ``base``.

    Raises:
        ValueError: If ``base`` or any segment is empty.
    """
    if not base or not base.strip():
        raise ValueError("base path must not be empty")
    for part in parts:
        if not part or not part.strip():
            raise ValueError(f"empty path segment after {base!r}")

    flavour = PureWindowsPath if PureWindowsPath(base).drive or "\\" in base else PurePosixPath
    return str(flavour(base, *parts))


def prepare_directory(filesystem: Filesystem, path: str, *, log: logging.Logger | None = None) -> None:
    """Create ``path`` (and parents) if it doesn't exist yet."""
    log = log or logger
    try:
        filesystem.make_directory(path)
    except OSError as e:
        raise PlatformCallError(
            f"Cannot create directory {path}: {e.strerror or e}",
            tips=["Check that the volume exists and is writable by the current account."],
        ) from e
    log.debug("Directory ready: %s", path)


def assert_paths_exist(
    filesystem: Filesystem,
    paths: Iterable[str],
    *,
    log: logging.Logger | None = None,
) -> None:
    """Check every path, then raise once listing all missing ones.

    A probe that raises is treated as "missing"; the scan continues.

    Raises:
        PathMissingError: If at least one path is missing.
    """
    log = log or logger
    missing: list[str] = []
    present: list[str] = []

    for path in paths:
        try:
            found = filesystem.exists(path)
        except Exception as e:
            log.debug("Probe of %s failed, treating as missing: %s", path, e)
            found = False
        (present if found else missing).append(path)

    if missing:
        error = PathMissingError(missing=missing, present=present)
        log.error(error.summary)
        raise error

    log.info("All %d path(s) exist", len(present))
