"""
Provision use case — the public create-forest / promote-controller API.

Adds what the orchestrator doesn't do itself:
    - a confirmation gate (dry-run, interactive confirm, force)
    - the optional pass-thru summary (``OperationOutcome``)
    - the audit ledger entry
    - a last catch that logs and re-raises with the domain in the message

Gate precedence:
    dry_run  → nothing runs, nothing is written, returns None
    force    → confirmation skipped (and -Force passed to the cmdlet)
    confirm  → asked once; a False answer cancels, returns None
    None     → no gate: the run starts at once (the CLI always passes one)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from addsctl.adapters.base import Platform
from addsctl.core.config.loader import Settings
from addsctl.core.engine.orchestrator import (
    CREATE_FOREST,
    PROMOTE_CONTROLLER,
    Orchestrator,
    ProvisioningRun,
)
from addsctl.core.errors import OrchestrationError, ProvisioningError
from addsctl.core.models.request import ControllerRequest, ProvisioningRequest
from addsctl.core.models.results import OperationOutcome
from addsctl.core.persistence.audit import AuditEntry, AuditStatus, AuditWriter

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[str], bool]


def build_orchestrator(
    platform: Platform,
    settings: Settings,
    log: logging.Logger | None = None,
) -> Orchestrator:
    """Orchestrator configured from settings."""
    return Orchestrator(
        platform,
        feature_name=settings.feature,
        modules=settings.modules,
        repository=settings.repository,
        min_free_bytes=settings.min_free_bytes,
        keep_going=settings.keep_going,
        log=log,
    )


def create_forest(
    request: ProvisioningRequest,
    *,
    platform: Platform,
    settings: Settings | None = None,
    dry_run: bool = False,
    confirm: ConfirmFn | None = None,
    pass_thru: bool = False,
    audit: AuditWriter | None = None,
    log: logging.Logger | None = None,
) -> OperationOutcome | None:
    """Create a new AD forest.

    ``confirm`` is the only confirmation gate. Library callers that leave it
    as None get no prompt at all; the CLI passes ``click.confirm``.

    Returns:
        The outcome summary when ``pass_thru`` is set and the run
        completed, otherwise None.

    Raises:
        ProvisioningError: Any failure, with the domain in its message.
    """
    return _provision(
        CREATE_FOREST,
        request,
        lambda orchestrator: orchestrator.create_forest(request),
        platform=platform,
        settings=settings,
        dry_run=dry_run,
        confirm=confirm,
        pass_thru=pass_thru,
        audit=audit,
        log=log,
    )


def promote_controller(
    request: ControllerRequest,
    *,
    platform: Platform,
    settings: Settings | None = None,
    dry_run: bool = False,
    confirm: ConfirmFn | None = None,
    pass_thru: bool = False,
    audit: AuditWriter | None = None,
    log: logging.Logger | None = None,
) -> OperationOutcome | None:
    """Promote this server to a domain controller of an existing domain.

    Same contract as ``create_forest``.
    """
    return _provision(
        PROMOTE_CONTROLLER,
        request,
        lambda orchestrator: orchestrator.promote_controller(request),
        platform=platform,
        settings=settings,
        dry_run=dry_run,
        confirm=confirm,
        pass_thru=pass_thru,
        audit=audit,
        log=log,
    )


def _provision(
    operation: str,
    request: ProvisioningRequest,
    execute: Callable[[Orchestrator], ProvisioningRun],
    *,
    platform: Platform,
    settings: Settings | None,
    dry_run: bool,
    confirm: ConfirmFn | None,
    pass_thru: bool,
    audit: AuditWriter | None,
    log: logging.Logger | None,
) -> OperationOutcome | None:
    settings = settings or Settings()
    log = log or logger
    what = f"{operation} '{request.domain_name}'"

    # ── Confirmation gate ───────────────────────────────────────
    if dry_run:
        log.warning(
            "What if: %s (NetBIOS %s, database %s, log %s, SYSVOL %s, DNS %s)",
            what,
            request.resolved_netbios_name,
            request.database_path,
            request.log_path,
            request.sysvol_path,
            "yes" if request.install_dns else "no",
        )
        return None

    if not request.force and confirm is not None:
        if not confirm(f"{what}? The server will restart when it finishes."):
            log.warning("%s cancelled", what)
            return None

    # ── Execute ─────────────────────────────────────────────────
    orchestrator = build_orchestrator(platform, settings, log)
    start = time.monotonic()
    try:
        run = execute(orchestrator)
    except ProvisioningError as e:
        log.error("%s failed: %s", what, e.summary)
        _write_audit(audit, operation, request, start, status=AuditStatus.FAILED, error=e)
        raise
    except Exception as e:
        error = OrchestrationError(operation=operation, target=request.domain_name, stage="Start", cause=e)
        log.error("%s failed: %s", what, error.summary)
        _write_audit(audit, operation, request, start, status=AuditStatus.FAILED, error=error)
        raise error from e

    _write_audit(audit, operation, request, start, status=AuditStatus.COMPLETED, run=run)

    if not pass_thru:
        return None
    return OperationOutcome(
        operation=operation,
        domain_name=request.domain_name,
        netbios_name=request.resolved_netbios_name,
        domain_mode=request.domain_mode,
        forest_mode=request.forest_mode,
        database_path=request.database_path,
        log_path=request.log_path,
        sysvol_path=request.sysvol_path,
        install_dns=request.install_dns,
    )


def _write_audit(
    audit: AuditWriter | None,
    operation: str,
    request: ProvisioningRequest,
    start: float,
    *,
    status: AuditStatus,
    run: ProvisioningRun | None = None,
    error: ProvisioningError | None = None,
) -> None:
    if audit is None:
        return
    entry = AuditEntry(
        operation=operation,
        domain_name=request.domain_name,
        status=status,
        duration_ms=int((time.monotonic() - start) * 1000),
    )
    if run is not None:
        entry.operation_id = run.operation_id
        entry.stage = run.stage.value
    if error is not None:
        entry.error_kind = error.kind.value
        entry.stage = getattr(error, "stage", "")
        entry.operation_id = getattr(error, "operation_id", "")
    audit.write(entry)
