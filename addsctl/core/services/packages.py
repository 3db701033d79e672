"""
Package installer — idempotently ensure PowerShell modules are present.

The source repository must be registered before anything is installed.
Each module is checked first and skipped when already present; missing
modules are installed from the (then trusted) repository and verified.
An install the platform reports as failed counts as a failed module.

Failure policy:
    keep_going=False (default)  → first failed module aborts the batch
    keep_going=True             → install the rest, then raise one error
                                  naming every failed module
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from addsctl.adapters.base import PackageManager
from addsctl.core.errors import PackageVerificationError, PlatformCallError, RepositoryNotFoundError
from addsctl.core.models.results import PackageReport
from addsctl.core.observability.metrics import MetricsRegistry

logger = logging.getLogger(__name__)

DEFAULT_REPOSITORY = "PSGallery"
DEFAULT_MODULES = ("Microsoft.PowerShell.SecretManagement", "Az.Accounts")

_NOT_FOUND_AFTER_INSTALL = "not found by Get-Module -ListAvailable after install"


def _verification_error(reasons: Mapping[str, str], repository: str) -> PackageVerificationError:
    return PackageVerificationError(
        f"Module installation could not be verified: {', '.join(reasons)}",
        details=[f"{name}: {reason}" for name, reason in reasons.items()],
        tips=[
            f"Run Install-Module -Name <module> -Repository {repository} -Verbose to see the failure.",
            "Check outbound HTTPS access to the repository and any proxy settings.",
            "Make sure PowerShellGet and the NuGet provider are up to date.",
        ],
    )


def ensure_modules(
    packages: PackageManager,
    names: Sequence[str] = DEFAULT_MODULES,
    *,
    repository: str = DEFAULT_REPOSITORY,
    keep_going: bool = False,
    log: logging.Logger | None = None,
) -> PackageReport:
    """Install every module in ``names`` that isn't present yet.

    Raises:
        RepositoryNotFoundError: ``repository`` isn't registered.
        PackageVerificationError: A module failed to install, or is still
            missing after install.
    """
    log = log or logger
    metrics = MetricsRegistry()
    installed: list[str] = []
    skipped: list[str] = []
    failed: dict[str, str] = {}

    registered = packages.list_repositories()
    if repository not in registered:
        error = RepositoryNotFoundError(
            f"Package repository '{repository}' is not registered",
            details=[f"registered: {', '.join(registered) if registered else '(none)'}"],
            tips=[
                "Register it with Register-PSRepository, or run "
                "Register-PSRepository -Default to restore PSGallery.",
            ],
        )
        log.error(error.summary)
        raise error

    trusted = False
    try:
        for name in names:
            metrics.counter("checked").inc()
            if packages.is_installed(name):
                log.info("Module %s already installed, skipping", name)
                metrics.counter("skipped").inc()
                skipped.append(name)
                continue

            try:
                if not trusted:
                    packages.trust_repository(repository)
                    trusted = True
                log.info("Installing module %s from %s", name, repository)
                packages.install(name, repository)
            except PlatformCallError as e:
                reason = f"install failed: {e.summary}"
            else:
                if packages.is_installed(name):
                    metrics.counter("installed").inc()
                    installed.append(name)
                    continue
                reason = _NOT_FOUND_AFTER_INSTALL

            metrics.counter("failed").inc()
            failed[name] = reason
            log.error("Module %s: %s", name, reason)
            if not keep_going:
                raise _verification_error({name: reason}, repository)

        if failed:
            raise _verification_error(failed, repository)
    finally:
        log.info(
            "Modules: %d checked, %d installed, %d skipped, %d failed",
            metrics.value("checked"),
            metrics.value("installed"),
            metrics.value("skipped"),
            metrics.value("failed"),
        )

    return PackageReport(
        checked=metrics.value("checked"),
        installed=tuple(installed),
        skipped=tuple(skipped),
        failed=tuple(failed),
    )
