"""
Preflight checker — one pass/fail gate before anything is changed.

Checks, in order:
    1. platform    — server-class OS
    2. privilege   — elevated (administrator) session
    3. features    — each required feature is known to the OS
                     (known but not installed is only a warning: the
                     feature installer runs later)
    4. paths       — each path exists and its volume has enough free space

Platform and privilege are gates: if either fails, phases 3 and 4 are
skipped. Within phases 3 and 4 every item is checked before reporting.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from addsctl.adapters.base import Platform
from addsctl.core.errors import (
    ErrorKind,
    InsufficientDiskSpaceError,
    InsufficientPrivilegeError,
    PlatformCallError,
    PlatformMismatchError,
    PreflightError,
)
from addsctl.core.models.results import PreflightResult
from addsctl.core.observability.metrics import MetricsRegistry
from addsctl.core.services.features import AD_DS_FEATURE

logger = logging.getLogger(__name__)

GIB = 1024 ** 3
DEFAULT_MIN_FREE_BYTES = 10 * GIB

_REMEDIATION: dict[ErrorKind, str] = {
    ErrorKind.PLATFORM_MISMATCH: "Run this on Windows Server; client editions cannot host AD DS.",
    ErrorKind.INSUFFICIENT_PRIVILEGE: "Start the shell with 'Run as administrator'.",
    ErrorKind.FEATURE_NOT_FOUND: "Run Get-WindowsFeature to list the roles this edition provides.",
    ErrorKind.PATH_MISSING: "Create the missing paths or point the request at an existing volume.",
    ErrorKind.INSUFFICIENT_DISK_SPACE: "Free up space or move the database, log and SYSVOL paths to a larger volume.",
}


_ERROR_CLASSES: dict[ErrorKind, type[PreflightError]] = {
    ErrorKind.PLATFORM_MISMATCH: PlatformMismatchError,
    ErrorKind.INSUFFICIENT_PRIVILEGE: InsufficientPrivilegeError,
    ErrorKind.INSUFFICIENT_DISK_SPACE: InsufficientDiskSpaceError,
}


def _preflight_error(failures: list[tuple[ErrorKind, str]], checks_total: int) -> PreflightError:
    kinds = list(dict.fromkeys(kind for kind, _ in failures))
    error_class = _ERROR_CLASSES.get(kinds[0], PreflightError)
    return error_class(
        f"Preflight failed: {len(failures)} of {checks_total} check(s) failed "
        f"({', '.join(kinds)})",
        failures=failures,
        details=[message for _, message in failures],
        tips=[_REMEDIATION[kind] for kind in kinds if kind in _REMEDIATION],
        kind=kinds[0],
    )


def _format_gib(n: int) -> str:
    return f"{n / GIB:.1f} GiB"


def run_preflight(
    platform: Platform,
    *,
    feature_names: Sequence[str] = (AD_DS_FEATURE,),
    required_paths: Sequence[str] = (),
    min_free_bytes: int = DEFAULT_MIN_FREE_BYTES,
    log: logging.Logger | None = None,
) -> PreflightResult:
    """Run every check and return a passing result, or raise.

    Raises:
        PreflightError: If any check failed.
    """
    log = log or logger
    metrics = MetricsRegistry()
    failures: list[tuple[ErrorKind, str]] = []
    warnings: list[str] = []

    def record(ok: bool, kind: ErrorKind, message: str) -> None:
        metrics.counter("checked").inc()
        if ok:
            metrics.counter("passed").inc()
            return
        metrics.counter("failed").inc()
        failures.append((kind, message))
        log.error("Preflight: %s", message)

    # ── Gates ───────────────────────────────────────────────────
    try:
        is_server = platform.system.is_server()
        found = platform.system.describe()
    except PlatformCallError as e:
        log.debug("Platform probe failed: %s", e.summary)
        is_server, found = False, f"no usable Windows platform ({e.summary})"
    record(is_server, ErrorKind.PLATFORM_MISMATCH, f"server-class OS required, found {found}")

    try:
        elevated = platform.system.is_elevated()
        privilege_message = "administrative privileges required"
    except PlatformCallError as e:
        log.debug("Privilege probe failed: %s", e.summary)
        elevated = False
        privilege_message = f"administrative privileges could not be confirmed ({e.summary})"
    record(elevated, ErrorKind.INSUFFICIENT_PRIVILEGE, privilege_message)

    if not failures:
        # ── Features ────────────────────────────────────────────
        for name in feature_names:
            state = platform.features.get_feature(name)
            record(state is not None, ErrorKind.FEATURE_NOT_FOUND, f"feature '{name}' not found")
            if state is not None and not state.installed:
                warning = f"feature '{name}' is {state.install_state}, it will be installed"
                warnings.append(warning)
                log.warning("Preflight: %s", warning)

        # ── Paths ───────────────────────────────────────────────
        for path in required_paths:
            try:
                exists = platform.filesystem.exists(path)
            except Exception as e:
                log.debug("Probe of %s failed: %s", path, e)
                exists = False
            record(exists, ErrorKind.PATH_MISSING, f"path '{path}' does not exist")
            if not exists:
                continue
            try:
                free = platform.filesystem.free_bytes(path)
            except Exception as e:
                log.debug("Free-space probe of %s failed: %s", path, e)
                record(False, ErrorKind.INSUFFICIENT_DISK_SPACE, f"free space on '{path}' could not be read: {e}")
                continue
            record(
                free >= min_free_bytes,
                ErrorKind.INSUFFICIENT_DISK_SPACE,
                f"'{path}' has {_format_gib(free)} free, {_format_gib(min_free_bytes)} required",
            )

    total = metrics.value("checked")
    passed = metrics.value("passed")
    result = PreflightResult(
        passed=not failures,
        checks_total=total,
        checks_passed=passed,
        checks_failed=metrics.value("failed"),
        warnings=tuple(warnings),
    )
    log.info(
        "Preflight: %d checked, %d passed, %d failed (%.1f%%)",
        total,
        passed,
        result.checks_failed,
        result.pass_rate,
    )

    if failures:
        raise _preflight_error(failures, total)
    return result
