"""
Windows Server binding — every capability implemented over PowerShell.
"""

from __future__ import annotations

from addsctl.adapters.base import Platform, SecretPrompt
from addsctl.adapters.windows.addsdeploy import WindowsDomainProvisioner
from addsctl.adapters.windows.features import WindowsFeatureManager
from addsctl.adapters.windows.packages import PowerShellGetPackageManager
from addsctl.adapters.windows.powershell import PowerShellRunner
from addsctl.adapters.windows.system import LocalFilesystem, WindowsSystemProbe


def windows_platform(
    prompt: SecretPrompt,
    runner: PowerShellRunner | None = None,
) -> Platform:
    """Bind all capabilities to one PowerShell runner."""
    runner = runner or PowerShellRunner()
    return Platform(
        system=WindowsSystemProbe(runner),
        filesystem=LocalFilesystem(),
        features=WindowsFeatureManager(runner),
        packages=PowerShellGetPackageManager(runner),
        provisioner=WindowsDomainProvisioner(runner),
        prompt=prompt,
    )


__all__ = [
    "LocalFilesystem",
    "PowerShellGetPackageManager",
    "PowerShellRunner",
    "WindowsDomainProvisioner",
    "WindowsFeatureManager",
    "WindowsSystemProbe",
    "windows_platform",
]
