"""
PowerShell module catalog — PowerShellGet repositories and modules.
"""

from __future__ import annotations

from addsctl.adapters.base import PackageManager
from addsctl.adapters.windows.powershell import PowerShellRunner, quote

_LIST_REPOSITORIES = "@(Get-PSRepository | ForEach-Object { $_.Name }) | ConvertTo-Json -Compress"


class PowerShellGetPackageManager(PackageManager):
    def __init__(self, runner: PowerShellRunner):
        self._runner = runner

    def list_repositories(self) -> list[str]:
        data = self._runner.query(_LIST_REPOSITORIES)
        if data is None:
            return []
        # a one-element array comes back as a bare string
        if isinstance(data, str):
            return [data]
        return [str(name) for name in data]

    def trust_repository(self, name: str) -> None:
        self._runner.invoke(
            f"Set-PSRepository -Name {quote(name)} -InstallationPolicy Trusted"
        )

    def is_installed(self, name: str) -> bool:
        script = (
            f"$m = Get-Module -ListAvailable -Name {quote(name)}\n"
            "[bool]$m | ConvertTo-Json"
        )
        return self._runner.query(script) is True

    def install(self, name: str, repository: str) -> None:
        self._runner.invoke(
            f"Install-Module -Name {quote(name)} -Repository {quote(repository)} "
            "-Scope AllUsers -Force -AllowClobber"
        )
