"""
Orchestrator — the forest / domain controller provisioning sequence.

Stages:
    Start → Preflight → FeatureInstall → PackageInstall → PathPrep
          → SecretAcquire → ExternalProvision → Done

Any stage may fail, which moves the run to ``Failed``: the remaining
stages are skipped, the error is logged with the stage, and it is
re-raised as an ``OrchestrationError`` carrying the operation, the
target domain, and stage-specific troubleshooting tips. Nothing is
rolled back; every step is safe to re-run.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TypeVar

from pydantic import SecretStr

from addsctl.adapters.base import Platform
from addsctl.core.errors import OrchestrationError
from addsctl.core.models.request import ControllerRequest, Credential, ProvisioningRequest
from addsctl.core.models.results import PackageReport, PreflightResult
from addsctl.core.observability.logging_config import SUCCESS
from addsctl.core.observability.metrics import MetricsRegistry
from addsctl.core.services.features import AD_DS_FEATURE, ensure_feature
from addsctl.core.services.packages import DEFAULT_MODULES, DEFAULT_REPOSITORY, ensure_modules
from addsctl.core.services.paths import assert_paths_exist, prepare_directory
from addsctl.core.services.preflight import DEFAULT_MIN_FREE_BYTES, run_preflight
from addsctl.core.services.secrets import acquire_secret

logger = logging.getLogger(__name__)

T = TypeVar("T")

CREATE_FOREST = "Create forest"
PROMOTE_CONTROLLER = "Promote domain controller"


class Stage(StrEnum):
    START = "Start"
    PREFLIGHT = "Preflight"
    FEATURE_INSTALL = "FeatureInstall"
    PACKAGE_INSTALL = "PackageInstall"
    PATH_PREP = "PathPrep"
    SECRET_ACQUIRE = "SecretAcquire"
    EXTERNAL_PROVISION = "ExternalProvision"
    DONE = "Done"
    FAILED = "Failed"


_TROUBLESHOOTING: dict[Stage, list[str]] = {
    Stage.PREFLIGHT: [
        "Run 'addsctl preflight' to see every failed check.",
    ],
    Stage.FEATURE_INSTALL: [
        "Install the role manually with Install-WindowsFeature AD-Domain-Services -IncludeManagementTools.",
    ],
    Stage.PACKAGE_INSTALL: [
        "Run 'addsctl modules ensure' on its own to isolate the failing module.",
    ],
    Stage.PATH_PREP: [
        "Check the database, log and SYSVOL paths are on a local NTFS volume.",
    ],
    Stage.SECRET_ACQUIRE: [
        "Set ADDSCTL_SAFE_MODE_PASSWORD for unattended runs.",
    ],
    Stage.EXTERNAL_PROVISION: [
        "All earlier steps are idempotent; fix the cause and run the same command again.",
    ],
}


def generate_operation_id() -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"op-{now}-{short}"


@dataclass
class ProvisioningRun:
    """State of one orchestration, from Start to Done or Failed."""

    operation: str
    target: str
    operation_id: str = field(default_factory=generate_operation_id)
    stage: Stage = Stage.START
    history: list[Stage] = field(default_factory=lambda: [Stage.START])
    failed_stage: Stage | None = None
    preflight: PreflightResult | None = None
    packages: PackageReport | None = None
    metrics: MetricsRegistry = field(default_factory=MetricsRegistry)

    def advance(self, stage: Stage) -> None:
        self.stage = stage
        self.history.append(stage)

    @property
    def succeeded(self) -> bool:
        return self.stage == Stage.DONE

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "operation": self.operation,
            "target": self.target,
            "stage": self.stage.value,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "history": [s.value for s in self.history],
            "metrics": self.metrics.to_dict(),
        }


class Orchestrator:
    """Runs the provisioning stages against one platform.

    Args:
        platform: The capabilities to drive.
        feature_name: The role to ensure (AD DS).
        modules: PowerShell modules to ensure.
        repository: Repository the modules come from.
        min_free_bytes: Free space required on each target volume.
        keep_going: Install remaining modules after one fails.
        log: Logger handed to every component.
    """

    def __init__(
        self,
        platform: Platform,
        *,
        feature_name: str = AD_DS_FEATURE,
        modules: Sequence[str] = DEFAULT_MODULES,
        repository: str = DEFAULT_REPOSITORY,
        min_free_bytes: int = DEFAULT_MIN_FREE_BYTES,
        keep_going: bool = False,
        log: logging.Logger | None = None,
    ):
        self.platform = platform
        self.feature_name = feature_name
        self.modules = list(modules)
        self.repository = repository
        self.min_free_bytes = min_free_bytes
        self.keep_going = keep_going
        self.log = log or logger

    # ── Public operations ───────────────────────────────────────

    def create_forest(self, request: ProvisioningRequest) -> ProvisioningRun:
        """Create a new forest rooted at ``request.domain_name``."""
        run = ProvisioningRun(operation=CREATE_FOREST, target=request.domain_name)

        def provision(safe_mode: SecretStr, credential: Credential | None) -> None:
            self.platform.provisioner.create_forest(request, safe_mode)

        return self._execute(run, request, provision)

    def promote_controller(self, request: ControllerRequest) -> ProvisioningRun:
        """Promote this server into the existing ``request.domain_name``."""
        run = ProvisioningRun(operation=PROMOTE_CONTROLLER, target=request.domain_name)

        def provision(safe_mode: SecretStr, credential: Credential | None) -> None:
            self.platform.provisioner.promote_controller(request, safe_mode, credential)

        return self._execute(run, request, provision)

    # ── Stages ──────────────────────────────────────────────────

    def _execute(
        self,
        run: ProvisioningRun,
        request: ProvisioningRequest,
        provision: Callable[[SecretStr, Credential | None], None],
    ) -> ProvisioningRun:
        log = self.log
        log.info("%s '%s' started (%s)", run.operation, run.target, run.operation_id)

        volumes = list(dict.fromkeys(self.platform.filesystem.volume_of(p) for p in request.paths))

        run.preflight = self._stage(
            run,
            Stage.PREFLIGHT,
            lambda: run_preflight(
                self.platform,
                feature_names=[self.feature_name],
                required_paths=volumes,
                min_free_bytes=self.min_free_bytes,
                log=log,
            ),
        )
        self._stage(
            run,
            Stage.FEATURE_INSTALL,
            lambda: ensure_feature(self.platform.features, self.feature_name, log=log),
        )
        run.packages = self._stage(
            run,
            Stage.PACKAGE_INSTALL,
            lambda: ensure_modules(
                self.platform.packages,
                self.modules,
                repository=self.repository,
                keep_going=self.keep_going,
                log=log,
            ),
        )
        self._stage(run, Stage.PATH_PREP, lambda: self._prepare_paths(request))
        safe_mode, credential = self._stage(
            run, Stage.SECRET_ACQUIRE, lambda: self._acquire_secrets(request)
        )
        self._stage(run, Stage.EXTERNAL_PROVISION, lambda: provision(safe_mode, credential))

        run.advance(Stage.DONE)
        log.log(SUCCESS, "%s '%s' completed", run.operation, run.target)
        return run

    def _stage(self, run: ProvisioningRun, stage: Stage, step: Callable[[], T]) -> T:
        run.advance(stage)
        self.log.debug("Stage %s", stage)
        try:
            with run.metrics.timer("stage_ms", stage=stage.value):
                return step()
        except Exception as e:
            run.failed_stage = stage
            run.advance(Stage.FAILED)
            self.log.error("%s '%s' failed at %s: %s", run.operation, run.target, stage, getattr(e, "summary", e))
            raise OrchestrationError(
                operation=run.operation,
                target=run.target,
                stage=stage.value,
                cause=e,
                tips=_TROUBLESHOOTING.get(stage, ()),
                operation_id=run.operation_id,
            ) from e

    def _prepare_paths(self, request: ProvisioningRequest) -> None:
        for path in request.paths:
            prepare_directory(self.platform.filesystem, path, log=self.log)
        assert_paths_exist(self.platform.filesystem, request.paths, log=self.log)

    def _acquire_secrets(self, request: ProvisioningRequest) -> tuple[SecretStr, Credential | None]:
        safe_mode = acquire_secret(
            request.safe_mode_password,
            self.platform.prompt,
            label="Safe mode administrator password",
            log=self.log,
        )
        credential = request.credential
        if credential is not None and credential.password is None:
            password = acquire_secret(
                None,
                self.platform.prompt,
                label=f"Password for {credential.username}",
                log=self.log,
            )
            credential = credential.model_copy(update={"password": password})
        return safe_mode, credential
