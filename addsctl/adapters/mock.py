"""
Mock platform — in-memory test doubles for every platform capability.

Used by the test-suite and by ``--mock`` mode to walk the whole
provisioning flow without touching the machine. Each double keeps its
own state and appends ``"<component>.<method>"`` entries to a call log
that can be shared across doubles to assert ordering.
"""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import SecretStr

from addsctl.adapters.base import (
    DomainProvisioner,
    FeatureManager,
    Filesystem,
    PackageManager,
    Platform,
    SecretPrompt,
    SystemProbe,
)
from addsctl.core.errors import ExternalProvisioningError, PlatformCallError
from addsctl.core.models.request import ControllerRequest, Credential, ProvisioningRequest
from addsctl.core.models.results import FeatureInstallResult, FeatureState

GIB = 1024 ** 3


class _Recorder:
    component = "mock"

    def __init__(self, call_log: list[str] | None = None):
        self.call_log: list[str] = call_log if call_log is not None else []

    def _record(self, method: str) -> None:
        self.call_log.append(f"{self.component}.{method}")

    def calls(self, method: str) -> int:
        """Number of times ``method`` was called on this double."""
        return self.call_log.count(f"{self.component}.{method}")


class MockSystem(_Recorder, SystemProbe):
    component = "system"

    def __init__(self, server: bool = True, elevated: bool = True, call_log: list[str] | None = None):
        super().__init__(call_log)
        self.server = server
        self.elevated = elevated

    def is_server(self) -> bool:
        self._record("is_server")
        return self.server

    def is_elevated(self) -> bool:
        self._record("is_elevated")
        return self.elevated

    def describe(self) -> str:
        return "Mock Server" if self.server else "Mock Workstation"


class MockFilesystem(_Recorder, Filesystem):
    """Filesystem with a fixed set of existing paths.

    Volume roots always exist. Paths listed in ``broken`` raise on probe.
    """

    component = "filesystem"

    def __init__(
        self,
        existing: Iterable[str] = (),
        free: int = 100 * GIB,
        broken: Iterable[str] = (),
        call_log: list[str] | None = None,
    ):
        super().__init__(call_log)
        self.existing: set[str] = set(existing)
        self.free = free
        self.broken: set[str] = set(broken)
        self.created: list[str] = []

    def exists(self, path: str) -> bool:
        self._record("exists")
        if path in self.broken:
            raise PermissionError(f"access denied: {path}")
        return path in self.existing or path == self.volume_of(path)

    def free_bytes(self, path: str) -> int:
        self._record("free_bytes")
        return self.free

    def make_directory(self, path: str) -> None:
        self._record("make_directory")
        self.created.append(path)
        self.existing.add(path)


class MockFeatureManager(_Recorder, FeatureManager):
    """Feature catalog backed by a dict.

    ``install_takes_effect=False`` simulates an install that reports
    success but leaves the feature uninstalled.
    """

    component = "features"

    def __init__(
        self,
        features: Iterable[FeatureState] | None = None,
        install_takes_effect: bool = True,
        restart_needed: bool = False,
        call_log: list[str] | None = None,
    ):
        super().__init__(call_log)
        if features is None:
            features = [
                FeatureState(name="AD-Domain-Services"),
                FeatureState(name="DNS"),
            ]
        self.features: dict[str, FeatureState] = {f.name: f for f in features}
        self.install_takes_effect = install_takes_effect
        self.restart_needed = restart_needed
        self.installed: list[str] = []

    def get_feature(self, name: str) -> FeatureState | None:
        self._record("get_feature")
        return self.features.get(name)

    def install_feature(self, name: str) -> FeatureInstallResult:
        self._record("install_feature")
        self.installed.append(name)
        if self.install_takes_effect:
            self.features[name] = FeatureState(name=name, installed=True, install_state="Installed")
        return FeatureInstallResult(success=True, restart_needed=self.restart_needed)


class MockPackageManager(_Recorder, PackageManager):
    """Module catalog. Names in ``broken`` install without effect."""

    component = "packages"

    def __init__(
        self,
        repositories: Iterable[str] = ("PSGallery",),
        installed: Iterable[str] = (),
        broken: Iterable[str] = (),
        call_log: list[str] | None = None,
    ):
        super().__init__(call_log)
        self.repositories = list(repositories)
        self.modules: set[str] = set(installed)
        self.broken: set[str] = set(broken)
        self.trusted: list[str] = []
        self.install_log: list[str] = []

    def list_repositories(self) -> list[str]:
        self._record("list_repositories")
        return list(self.repositories)

    def trust_repository(self, name: str) -> None:
        self._record("trust_repository")
        if name not in self.repositories:
            raise PlatformCallError(f"Repository '{name}' is not registered")
        self.trusted.append(name)

    def is_installed(self, name: str) -> bool:
        self._record("is_installed")
        return name in self.modules

    def install(self, name: str, repository: str) -> None:
        self._record("install")
        self.install_log.append(name)
        if name not in self.broken:
            self.modules.add(name)


class MockProvisioner(_Recorder, DomainProvisioner):
    component = "provisioner"

    def __init__(self, error: str | None = None, call_log: list[str] | None = None):
        super().__init__(call_log)
        self.error = error
        self.forests: list[ProvisioningRequest] = []
        self.promotions: list[ControllerRequest] = []

    def create_forest(self, request: ProvisioningRequest, safe_mode_password: SecretStr) -> None:
        self._record("create_forest")
        if self.error:
            raise ExternalProvisioningError(self.error)
        self.forests.append(request)

    def promote_controller(
        self,
        request: ControllerRequest,
        safe_mode_password: SecretStr,
        credential: Credential | None,
    ) -> None:
        self._record("promote_controller")
        if self.error:
            raise ExternalProvisioningError(self.error)
        self.promotions.append(request)


class MockSecretPrompt(_Recorder, SecretPrompt):
    """Answers prompts from a queue; raises ``error`` if given."""

    component = "prompt"

    def __init__(
        self,
        answers: Iterable[str | None] = ("P@ssw0rd!",),
        error: BaseException | None = None,
        call_log: list[str] | None = None,
    ):
        super().__init__(call_log)
        self.answers = list(answers)
        self.error = error
        self.messages: list[str] = []

    def ask(self, message: str) -> SecretStr | None:
        self._record("ask")
        self.messages.append(message)
        if self.error is not None:
            raise self.error
        answer = self.answers.pop(0) if self.answers else None
        return SecretStr(answer) if answer is not None else None


def mock_platform(call_log: list[str] | None = None) -> Platform:
    """A healthy platform: server, elevated, ADDS available, PSGallery registered."""
    log: list[str] = call_log if call_log is not None else []
    return Platform(
        system=MockSystem(call_log=log),
        filesystem=MockFilesystem(call_log=log),
        features=MockFeatureManager(call_log=log),
        packages=MockPackageManager(call_log=log),
        provisioner=MockProvisioner(call_log=log),
        prompt=MockSecretPrompt(call_log=log),
    )
