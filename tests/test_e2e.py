"""
End-to-end tests for the public provisioning API over the mock platform.

Covers the confirmation gate, pass-thru, the audit ledger, and the three
reference scenarios: full run, preflight failure, and dry-run.
"""

import logging
from pathlib import Path

import pytest
from pydantic import SecretStr

from addsctl.adapters.mock import MockSecretPrompt, MockSystem
from addsctl.core.config.loader import Settings
from addsctl.core.errors import ErrorKind, OrchestrationError, ProvisioningError
from addsctl.core.models.request import ControllerRequest, Credential, ProvisioningRequest
from addsctl.core.models.results import OperationStatus
from addsctl.core.persistence.audit import AuditWriter
from addsctl.core.services.packages import DEFAULT_MODULES
from addsctl.core.use_cases.provision import create_forest, promote_controller


def _always(answer):
    asked = []

    def confirm(message):
        asked.append(message)
        return answer

    confirm.asked = asked
    return confirm


# ── Reference scenarios ──────────────────────────────────────────────


class TestScenarios:
    def test_full_run(self, platform, call_log, forest_request):
        outcome = create_forest(forest_request, platform=platform, pass_thru=True)

        assert outcome is not None
        assert outcome.netbios_name == "CONTOSO"
        assert outcome.domain_name == "contoso.com"
        assert outcome.status == OperationStatus.COMPLETED
        assert platform.provisioner.calls("create_forest") == 1

        steps = [
            "system.is_server",
            "features.install_feature",
            "packages.install",
            "filesystem.make_directory",
            "prompt.ask",
            "provisioner.create_forest",
        ]
        positions = [call_log.index(step) for step in steps]
        assert positions == sorted(positions)

        assert call_log.count("system.is_server") == 1
        assert call_log.count("features.install_feature") == 1
        assert platform.packages.install_log == list(DEFAULT_MODULES)
        assert call_log.count("packages.trust_repository") == 1
        assert platform.filesystem.created == forest_request.paths
        assert call_log.count("filesystem.make_directory") == 3
        assert call_log.count("prompt.ask") == 1
        assert call_log.count("provisioner.create_forest") == 1

    def test_preflight_failure(self, platform, call_log, forest_request):
        platform.system = MockSystem(server=False, call_log=call_log)

        with pytest.raises(ProvisioningError) as exc_info:
            create_forest(forest_request, platform=platform)

        err = exc_info.value
        assert err.kind == ErrorKind.PLATFORM_MISMATCH
        assert "contoso.com" in str(err)
        for prefix in ("features.", "packages.", "prompt.", "provisioner."):
            assert not any(c.startswith(prefix) for c in call_log)

    def test_dry_run(self, platform, call_log, forest_request, caplog):
        with caplog.at_level(logging.WARNING):
            outcome = create_forest(forest_request, platform=platform, dry_run=True, pass_thru=True)

        assert outcome is None
        assert call_log == []
        assert platform.filesystem.created == []
        assert platform.features.calls("install_feature") == 0
        assert platform.packages.install_log == []
        assert "What if: Create forest 'contoso.com'" in caplog.text


# ── Confirmation gate ────────────────────────────────────────────────


class TestConfirmation:
    def test_declined_cancels(self, platform, call_log, forest_request):
        confirm = _always(False)
        assert create_forest(forest_request, platform=platform, confirm=confirm, pass_thru=True) is None
        assert len(confirm.asked) == 1
        assert "contoso.com" in confirm.asked[0]
        assert call_log == []

    def test_accepted_runs(self, platform, forest_request):
        confirm = _always(True)
        create_forest(forest_request, platform=platform, confirm=confirm)
        assert platform.provisioner.calls("create_forest") == 1

    def test_no_confirm_callback_runs_without_gate(self, platform, forest_request):
        outcome = create_forest(forest_request, platform=platform, pass_thru=True)
        assert outcome.status == OperationStatus.COMPLETED
        assert platform.provisioner.calls("create_forest") == 1

    def test_force_skips_confirm(self, platform):
        request = ProvisioningRequest(domain_name="contoso.com", force=True)
        confirm = _always(False)
        create_forest(request, platform=platform, confirm=confirm)
        assert confirm.asked == []
        assert platform.provisioner.calls("create_forest") == 1

    def test_dry_run_beats_force(self, platform, call_log):
        request = ProvisioningRequest(domain_name="contoso.com", force=True)
        confirm = _always(True)
        assert create_forest(request, platform=platform, dry_run=True, confirm=confirm) is None
        assert confirm.asked == []
        assert call_log == []

    def test_no_pass_thru_returns_none(self, platform, forest_request):
        assert create_forest(forest_request, platform=platform) is None
        assert platform.provisioner.calls("create_forest") == 1


# ── Settings ─────────────────────────────────────────────────────────


class TestSettingsApplied:
    def test_configured_modules(self, platform, forest_request):
        settings = Settings(modules=["Corp.Tools"])
        create_forest(forest_request, platform=platform, settings=settings)
        assert platform.packages.install_log == ["Corp.Tools"]

    def test_configured_free_space(self, platform, forest_request):
        settings = Settings(min_free_gb=500)
        with pytest.raises(OrchestrationError) as exc_info:
            create_forest(forest_request, platform=platform, settings=settings)
        assert exc_info.value.kind == ErrorKind.INSUFFICIENT_DISK_SPACE


# ── Controller promotion ─────────────────────────────────────────────


class TestPromote:
    def test_promote_with_pass_thru(self, platform):
        request = ControllerRequest(domain_name="contoso.com", netbios_name="CORP")
        outcome = promote_controller(request, platform=platform, pass_thru=True)
        assert outcome.operation == "Promote domain controller"
        assert outcome.netbios_name == "CORP"
        assert platform.provisioner.promotions == [request]

    def test_promote_missing_credential_password(self, platform):
        platform.prompt = MockSecretPrompt(answers=["safe-mode"])
        request = ControllerRequest(
            domain_name="contoso.com",
            credential=Credential(username="CONTOSO\\admin"),
        )
        with pytest.raises(OrchestrationError) as exc_info:
            promote_controller(request, platform=platform)
        assert exc_info.value.kind == ErrorKind.CREDENTIAL_ACQUISITION_FAILED
        assert "contoso.com" in str(exc_info.value)


# ── Audit ledger ─────────────────────────────────────────────────────


class TestAudit:
    def test_completed_entry(self, platform, forest_request, tmp_path: Path):
        audit = AuditWriter(tmp_path / "audit.ndjson")
        create_forest(forest_request, platform=platform, audit=audit)

        entries = audit.read_all()
        assert len(entries) == 1
        entry = entries[0]
        assert entry.status == "completed"
        assert entry.domain_name == "contoso.com"
        assert entry.operation == "Create forest"
        assert entry.stage == "Done"
        assert entry.operation_id.startswith("op-")
        assert entry.error_kind is None

    def test_failed_entry(self, platform, forest_request, tmp_path: Path):
        platform.provisioner.error = "boom"
        audit = AuditWriter(tmp_path / "audit.ndjson")
        with pytest.raises(OrchestrationError) as exc_info:
            create_forest(forest_request, platform=platform, audit=audit)

        entry = audit.read_all()[0]
        assert entry.status == "failed"
        assert entry.stage == "ExternalProvision"
        assert entry.error_kind == "external_provisioning_failed"
        assert entry.operation_id == exc_info.value.operation_id

    def test_dry_run_and_cancel_not_recorded(self, platform, forest_request, tmp_path: Path):
        audit = AuditWriter(tmp_path / "audit.ndjson")
        create_forest(forest_request, platform=platform, audit=audit, dry_run=True)
        create_forest(forest_request, platform=platform, audit=audit, confirm=_always(False))
        assert audit.read_all() == []

    def test_secret_not_in_ledger(self, platform, tmp_path: Path):
        request = ProvisioningRequest(domain_name="contoso.com", safe_mode_password=SecretStr("Sup3r-S3cret"))
        path = tmp_path / "audit.ndjson"
        create_forest(request, platform=platform, audit=AuditWriter(path))
        assert "Sup3r-S3cret" not in path.read_text()
