"""
Error taxonomy — every failure the provisioning flow can report.

Each error carries an explicit ``ErrorKind`` tag plus structured parts:
a one-line summary, optional detail bullets, and troubleshooting tips.
Layers add context by wrapping (``OrchestrationError`` keeps the
original as ``__cause__``) instead of concatenating strings.

Nothing in the core is retried: every kind here is terminal.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum


class ErrorKind(StrEnum):
    """Tag identifying the failed check or step."""

    PLATFORM_MISMATCH = "platform_mismatch"
    INSUFFICIENT_PRIVILEGE = "insufficient_privilege"
    FEATURE_NOT_FOUND = "feature_not_found"
    FEATURE_VERIFICATION_FAILED = "feature_verification_failed"
    REPOSITORY_NOT_FOUND = "repository_not_found"
    PACKAGE_VERIFICATION_FAILED = "package_verification_failed"
    PATH_MISSING = "path_missing"
    INSUFFICIENT_DISK_SPACE = "insufficient_disk_space"
    CREDENTIAL_ACQUISITION_FAILED = "credential_acquisition_failed"
    EXTERNAL_PROVISIONING_FAILED = "external_provisioning_failed"
    PLATFORM_CALL_FAILED = "platform_call_failed"
    CONFIGURATION_INVALID = "configuration_invalid"
    UNEXPECTED = "unexpected"


class ProvisioningError(Exception):
    """Base class for all reported failures.

    The rendered message is multi-line::

        <summary>
          - <detail>
        Troubleshooting:
          - <tip>
    """

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(
        self,
        summary: str,
        *,
        details: Iterable[str] = (),
        tips: Iterable[str] = (),
        kind: ErrorKind | None = None,
    ):
        self.summary = summary
        self.details = list(details)
        self.tips = list(tips)
        if kind is not None:
            self.kind = kind
        super().__init__(self.render())

    def render(self) -> str:
        lines = [self.summary]
        lines.extend(f"  - {d}" for d in self.details)
        if self.tips:
            lines.append("Troubleshooting:")
            lines.extend(f"  - {t}" for t in self.tips)
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "summary": self.summary,
            "details": self.details,
            "tips": self.tips,
        }


# ── Preflight ───────────────────────────────────────────────────


class PreflightError(ProvisioningError):
    """One or more preflight checks failed.

    ``failures`` lists every ``(kind, message)`` pair; ``kind`` is the
    category of the first one.
    """

    def __init__(self, summary: str, *, failures: Iterable[tuple[ErrorKind, str]] = (), **kwargs):
        self.failures = list(failures)
        super().__init__(summary, **kwargs)


class PlatformMismatchError(PreflightError):
    kind = ErrorKind.PLATFORM_MISMATCH


class InsufficientPrivilegeError(PreflightError):
    kind = ErrorKind.INSUFFICIENT_PRIVILEGE


class InsufficientDiskSpaceError(PreflightError):
    kind = ErrorKind.INSUFFICIENT_DISK_SPACE


# ── Features / packages ─────────────────────────────────────────


class FeatureNotFoundError(ProvisioningError):
    kind = ErrorKind.FEATURE_NOT_FOUND


class FeatureVerificationError(ProvisioningError):
    kind = ErrorKind.FEATURE_VERIFICATION_FAILED


class RepositoryNotFoundError(ProvisioningError):
    kind = ErrorKind.REPOSITORY_NOT_FOUND


class PackageVerificationError(ProvisioningError):
    kind = ErrorKind.PACKAGE_VERIFICATION_FAILED


# ── Paths ───────────────────────────────────────────────────────


class PathMissingError(ProvisioningError):
    """One or more paths are missing. Reports all of them at once."""

    kind = ErrorKind.PATH_MISSING

    def __init__(self, missing: list[str], present: list[str]):
        self.missing = list(missing)
        self.present = list(present)
        details = [f"missing: {p}" for p in self.missing]
        details.extend(f"exists: {p}" for p in self.present)
        super().__init__(
            f"{len(self.missing)} of {len(self.missing) + len(self.present)} "
            "required path(s) do not exist",
            details=details,
            tips=[
                "Create the missing directories or point the request at existing ones.",
                "Check that the volume is mounted and the path is spelled correctly.",
            ],
        )


# ── Secrets / provisioning / platform ───────────────────────────


class CredentialAcquisitionError(ProvisioningError):
    kind = ErrorKind.CREDENTIAL_ACQUISITION_FAILED


class ExternalProvisioningError(ProvisioningError):
    kind = ErrorKind.EXTERNAL_PROVISIONING_FAILED


class PlatformCallError(ProvisioningError):
    """A platform command could not be run or returned a failure."""

    kind = ErrorKind.PLATFORM_CALL_FAILED


class ConfigError(ProvisioningError):
    """Raised when addsctl.yml is invalid or unreadable."""

    kind = ErrorKind.CONFIGURATION_INVALID


# ── Context wrapper ─────────────────────────────────────────────


class OrchestrationError(ProvisioningError):
    """A step of a provisioning operation failed.

    Inherits the kind of the underlying error so callers can still
    branch on what went wrong. The original is kept as ``cause``.
    """

    def __init__(
        self,
        *,
        operation: str,
        target: str,
        stage: str,
        cause: BaseException,
        tips: Iterable[str] = (),
        operation_id: str = "",
    ):
        self.operation = operation
        self.operation_id = operation_id
        self.target = target
        self.stage = stage
        self.cause = cause

        if isinstance(cause, ProvisioningError):
            kind = cause.kind
            details = [cause.summary, *cause.details]
            tips = [*cause.tips, *tips]
        else:
            kind = ErrorKind.UNEXPECTED
            details = [f"{type(cause).__name__}: {cause}"]

        super().__init__(
            f"{operation} for '{target}' failed at stage {stage}",
            details=details,
            tips=tips,
            kind=kind,
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update(
            operation=self.operation,
            target=self.target,
            stage=self.stage,
            operation_id=self.operation_id,
        )
        return data
