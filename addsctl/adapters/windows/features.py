"""
Windows feature catalog — ``Get-WindowsFeature`` / ``Install-WindowsFeature``.
"""

from __future__ import annotations

from addsctl.adapters.base import FeatureManager
from addsctl.adapters.windows.powershell import PowerShellRunner, quote
from addsctl.core.errors import PlatformCallError
from addsctl.core.models.results import FeatureInstallResult, FeatureState


def _get_script(name: str) -> str:
    # InstallState is an enum: cast to string so ConvertTo-Json keeps the label
    return (
        f"$f = Get-WindowsFeature -Name {quote(name)}\n"
        "if ($null -eq $f) { 'null'; exit 0 }\n"
        "[pscustomobject]@{ Name = $f.Name; Installed = [bool]$f.Installed; "
        "InstallState = [string]$f.InstallState } | ConvertTo-Json -Compress"
    )


def _install_script(name: str) -> str:
    return (
        f"$r = Install-WindowsFeature -Name {quote(name)} -IncludeManagementTools\n"
        "[pscustomobject]@{ Success = [bool]$r.Success; "
        "RestartNeeded = [string]$r.RestartNeeded; "
        "ExitCode = [string]$r.ExitCode } | ConvertTo-Json -Compress"
    )


class WindowsFeatureManager(FeatureManager):
    def __init__(self, runner: PowerShellRunner):
        self._runner = runner

    def get_feature(self, name: str) -> FeatureState | None:
        data = self._runner.query(_get_script(name))
        if not data:
            return None
        return FeatureState(
            name=data.get("Name", name),
            installed=bool(data.get("Installed")),
            install_state=data.get("InstallState") or "Unknown",
        )

    def install_feature(self, name: str) -> FeatureInstallResult:
        result = self._runner.invoke(_install_script(name))
        data = result.parse_json()
        if not isinstance(data, dict):
            raise PlatformCallError(f"Install-WindowsFeature returned no result for '{name}'")
        return FeatureInstallResult(
            success=bool(data.get("Success")),
            # RestartNeeded is Yes / No / Maybe
            restart_needed=str(data.get("RestartNeeded", "")).lower() in ("yes", "maybe"),
            exit_code=str(data.get("ExitCode", "")),
        )
