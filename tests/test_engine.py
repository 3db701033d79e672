"""
Tests for the orchestrator — stage order, failure handling, run state.
"""

import pytest
from pydantic import SecretStr

from addsctl.adapters.base import DomainProvisioner
from addsctl.adapters.mock import MockPackageManager, MockSecretPrompt, MockSystem
from addsctl.core.engine.orchestrator import (
    CREATE_FOREST,
    PROMOTE_CONTROLLER,
    Orchestrator,
    Stage,
    generate_operation_id,
)
from addsctl.core.errors import (
    ErrorKind,
    OrchestrationError,
    PlatformMismatchError,
    RepositoryNotFoundError,
)
from addsctl.core.models.request import ControllerRequest, Credential, ProvisioningRequest


class ExplodingProvisioner(DomainProvisioner):
    def create_forest(self, request, safe_mode_password):
        raise RuntimeError("unexpected COM failure")

    def promote_controller(self, request, safe_mode_password, credential):
        raise RuntimeError("unexpected COM failure")


# ── Happy path ───────────────────────────────────────────────────────


class TestCreateForest:
    def test_stage_history(self, platform, forest_request):
        run = Orchestrator(platform).create_forest(forest_request)
        assert run.succeeded
        assert run.history == [
            Stage.START,
            Stage.PREFLIGHT,
            Stage.FEATURE_INSTALL,
            Stage.PACKAGE_INSTALL,
            Stage.PATH_PREP,
            Stage.SECRET_ACQUIRE,
            Stage.EXTERNAL_PROVISION,
            Stage.DONE,
        ]
        assert run.failed_stage is None

    def test_platform_calls_in_order(self, platform, call_log, forest_request):
        Orchestrator(platform).create_forest(forest_request)
        order = [
            call_log.index("system.is_server"),
            call_log.index("features.install_feature"),
            call_log.index("packages.install"),
            call_log.index("filesystem.make_directory"),
            call_log.index("prompt.ask"),
            call_log.index("provisioner.create_forest"),
        ]
        assert order == sorted(order)

    def test_provisioner_gets_request(self, platform, forest_request):
        Orchestrator(platform).create_forest(forest_request)
        assert platform.provisioner.forests == [forest_request]
        assert platform.provisioner.forests[0].resolved_netbios_name == "CONTOSO"

    def test_directories_prepared(self, platform, forest_request):
        Orchestrator(platform).create_forest(forest_request)
        assert platform.filesystem.created == forest_request.paths

    def test_supplied_password_skips_prompt(self, platform):
        request = ProvisioningRequest(domain_name="contoso.com", safe_mode_password=SecretStr("x!Y2z"))
        Orchestrator(platform).create_forest(request)
        assert platform.prompt.calls("ask") == 0

    def test_preflight_checks_unique_volumes(self, platform):
        request = ProvisioningRequest(
            domain_name="contoso.com",
            database_path="D:\\NTDS",
            log_path="E:\\Logs",
            sysvol_path="D:\\SYSVOL",
        )
        run = Orchestrator(platform).create_forest(request)
        # server, elevated, feature, then exists + free space for D:\ and E:\
        assert run.preflight.checks_total == 7

    def test_run_metrics_and_dict(self, platform, forest_request):
        run = Orchestrator(platform).create_forest(forest_request)
        assert run.packages.installed == (
            "Microsoft.PowerShell.SecretManagement",
            "Az.Accounts",
        )
        d = run.to_dict()
        assert d["operation"] == CREATE_FOREST
        assert d["target"] == "contoso.com"
        assert d["stage"] == "Done"
        assert len(d["metrics"]["histograms"]) == 6

    def test_operation_id_format(self):
        op_id = generate_operation_id()
        assert op_id.startswith("op-")
        assert len(op_id.split("-")) == 4


class TestPromoteController:
    def test_promotes(self, platform):
        request = ControllerRequest(domain_name="contoso.com", site_name="HQ")
        run = Orchestrator(platform).promote_controller(request)
        assert run.operation == PROMOTE_CONTROLLER
        assert platform.provisioner.promotions == [request]

    def test_prompts_for_credential_password(self, platform):
        platform.prompt = MockSecretPrompt(answers=["safe-mode", "domain-pass"])
        request = ControllerRequest(
            domain_name="contoso.com",
            credential=Credential(username="CONTOSO\\admin"),
        )
        Orchestrator(platform).promote_controller(request)
        assert platform.prompt.messages == [
            "Safe mode administrator password",
            "Password for CONTOSO\\admin",
        ]


# ── Failures ─────────────────────────────────────────────────────────


class TestFailures:
    def test_preflight_failure_stops_everything(self, platform, call_log, forest_request):
        platform.system = MockSystem(server=False, call_log=call_log)
        with pytest.raises(OrchestrationError) as exc_info:
            Orchestrator(platform).create_forest(forest_request)
        err = exc_info.value
        assert err.kind == ErrorKind.PLATFORM_MISMATCH
        assert err.stage == "Preflight"
        assert "contoso.com" in str(err)
        assert isinstance(err.__cause__, PlatformMismatchError)
        assert not any(
            c.startswith(("features.", "packages.", "prompt.", "provisioner.")) for c in call_log
        )

    def test_package_failure(self, platform, forest_request):
        platform.packages = MockPackageManager(repositories=[])
        with pytest.raises(OrchestrationError) as exc_info:
            Orchestrator(platform).create_forest(forest_request)
        err = exc_info.value
        assert err.stage == "PackageInstall"
        assert err.kind == ErrorKind.REPOSITORY_NOT_FOUND
        assert isinstance(err.__cause__, RepositoryNotFoundError)
        assert any("modules ensure" in tip for tip in err.tips)
        assert platform.filesystem.created == []

    def test_secret_failure_leaves_directories(self, platform, forest_request):
        platform.prompt = MockSecretPrompt(answers=[None])
        with pytest.raises(OrchestrationError) as exc_info:
            Orchestrator(platform).create_forest(forest_request)
        assert exc_info.value.stage == "SecretAcquire"
        assert exc_info.value.kind == ErrorKind.CREDENTIAL_ACQUISITION_FAILED
        # no rollback
        assert platform.filesystem.created == forest_request.paths
        assert platform.provisioner.calls("create_forest") == 0

    def test_external_failure(self, platform, forest_request):
        platform.provisioner.error = "Install-ADDSForest: the operation failed"
        with pytest.raises(OrchestrationError) as exc_info:
            Orchestrator(platform).create_forest(forest_request)
        err = exc_info.value
        assert err.kind == ErrorKind.EXTERNAL_PROVISIONING_FAILED
        assert err.stage == "ExternalProvision"
        assert "Install-ADDSForest: the operation failed" in str(err)

    def test_unexpected_exception_wrapped(self, platform, forest_request):
        platform.provisioner = ExplodingProvisioner()
        with pytest.raises(OrchestrationError) as exc_info:
            Orchestrator(platform).create_forest(forest_request)
        err = exc_info.value
        assert err.kind == ErrorKind.UNEXPECTED
        assert isinstance(err.__cause__, RuntimeError)
        assert err.operation_id.startswith("op-")

    def test_failure_logged_with_stage(self, platform, forest_request, caplog):
        platform.system = MockSystem(elevated=False)
        with pytest.raises(OrchestrationError):
            Orchestrator(platform).create_forest(forest_request)
        assert "failed at Preflight" in caplog.text
