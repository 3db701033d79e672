"""
Adapter base — the contracts between the core and the platform.

Every platform capability the provisioning flow touches sits behind one
narrow abstract class here. The core only talks to these interfaces,
never directly to PowerShell or the OS, so each one can be swapped for
a test double.

To bind a new platform:
    1. Subclass each capability
    2. Bundle the instances in a ``Platform``
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import PurePosixPath, PureWindowsPath

from pydantic import SecretStr

from addsctl.core.models.request import ControllerRequest, Credential, ProvisioningRequest
from addsctl.core.models.results import FeatureInstallResult, FeatureState


class SystemProbe(ABC):
    """Facts about the local machine."""

    @abstractmethod
    def is_server(self) -> bool:
        """True on a server-class OS."""

    @abstractmethod
    def is_elevated(self) -> bool:
        """True when running with administrative rights."""

    def describe(self) -> str:
        """Human-readable OS description for error messages."""
        return "unknown"


class Filesystem(ABC):
    """Local filesystem queries and the one mutation we need."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Whether the path exists."""

    @abstractmethod
    def free_bytes(self, path: str) -> int:
        """Free space on the volume holding ``path``."""

    @abstractmethod
    def make_directory(self, path: str) -> None:
        """Create a directory and its parents. Must be idempotent."""

    def volume_of(self, path: str) -> str:
        """Root of the volume holding ``path`` (``C:\\`` or ``/``)."""
        windows = PureWindowsPath(path)
        if windows.drive:
            return windows.anchor
        return PurePosixPath(path).anchor or "/"


class FeatureManager(ABC):
    """Windows role/feature catalog."""

    @abstractmethod
    def get_feature(self, name: str) -> FeatureState | None:
        """Current state, or None if the feature is unknown to the OS."""

    @abstractmethod
    def install_feature(self, name: str) -> FeatureInstallResult:
        """Install the feature with its management tools."""


class PackageManager(ABC):
    """PowerShell module repositories and the local module catalog."""

    @abstractmethod
    def list_repositories(self) -> list[str]:
        """Names of the registered repositories."""

    @abstractmethod
    def trust_repository(self, name: str) -> None:
        """Mark a repository as trusted so installs don't prompt."""

    @abstractmethod
    def is_installed(self, name: str) -> bool:
        """Whether the module is available locally."""

    @abstractmethod
    def install(self, name: str, repository: str) -> None:
        """Install a module from the repository."""


class DomainProvisioner(ABC):
    """The AD DS deployment cmdlets."""

    @abstractmethod
    def create_forest(
        self,
        request: ProvisioningRequest,
        safe_mode_password: SecretStr,
    ) -> None:
        """Create a new forest with ``request.domain_name`` as root domain."""

    @abstractmethod
    def promote_controller(
        self,
        request: ControllerRequest,
        safe_mode_password: SecretStr,
        credential: Credential | None,
    ) -> None:
        """Promote this server to a controller of an existing domain."""


class SecretPrompt(ABC):
    """Masked interactive input."""

    @abstractmethod
    def ask(self, message: str) -> SecretStr | None:
        """Prompt without echo. May return None or raise on cancel."""


@dataclass
class Platform:
    """All capabilities one provisioning run needs."""

    system: SystemProbe
    filesystem: Filesystem
    features: FeatureManager
    packages: PackageManager
    provisioner: DomainProvisioner
    prompt: SecretPrompt
