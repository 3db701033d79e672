"""
Result models — immutable snapshots handed back to callers.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from addsctl.core.models.request import FunctionalLevel


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class FeatureState(BaseModel):
    """Install state of a Windows role or feature."""

    model_config = ConfigDict(frozen=True)

    name: str
    installed: bool = False
    install_state: str = "Available"   # Installed, Available, Removed, InstallPending


class FeatureInstallResult(BaseModel):
    """What the feature installer reported."""

    model_config = ConfigDict(frozen=True)

    success: bool
    restart_needed: bool = False
    exit_code: str = ""


class PreflightResult(BaseModel):
    """Outcome of one preflight pass."""

    model_config = ConfigDict(frozen=True)

    passed: bool
    checks_total: int = 0
    checks_passed: int = 0
    checks_failed: int = 0
    warnings: tuple[str, ...] = ()

    @property
    def pass_rate(self) -> float:
        if not self.checks_total:
            return 100.0
        return round(self.checks_passed * 100.0 / self.checks_total, 1)


class PackageReport(BaseModel):
    """Tally of one package-installer run."""

    model_config = ConfigDict(frozen=True)

    checked: int = 0
    installed: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()


class OperationStatus(StrEnum):
    COMPLETED = "Completed"


class OperationOutcome(BaseModel):
    """Summary returned to callers that ask for it (pass-thru)."""

    model_config = ConfigDict(frozen=True)

    operation: str
    domain_name: str
    netbios_name: str
    domain_mode: FunctionalLevel
    forest_mode: FunctionalLevel
    database_path: str
    log_path: str
    sysvol_path: str
    install_dns: bool
    status: OperationStatus = OperationStatus.COMPLETED
    completed_at: str = Field(default_factory=_now_iso)
