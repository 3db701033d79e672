"""
AD DS deployment — ``Install-ADDSForest`` / ``Install-ADDSDomainController``.

Both cmdlets ship with the AD-Domain-Services feature (ADDSDeployment
module). Passwords are read from stdin inside the script and converted
to SecureString there; they never appear in the script text.
"""

from __future__ import annotations

from pydantic import SecretStr

from addsctl.adapters.base import DomainProvisioner
from addsctl.adapters.windows.powershell import PowerShellRunner, quote
from addsctl.core.errors import ExternalProvisioningError, PlatformCallError
from addsctl.core.models.request import ControllerRequest, Credential, ProvisioningRequest

_READ_SAFE_MODE = (
    "$safeMode = ConvertTo-SecureString -String ([Console]::In.ReadLine()) -AsPlainText -Force\n"
)


def _common_args(request: ProvisioningRequest) -> list[str]:
    args = [
        f"-DomainName {quote(request.domain_name)}",
        f"-DatabasePath {quote(request.database_path)}",
        f"-LogPath {quote(request.log_path)}",
        f"-SysvolPath {quote(request.sysvol_path)}",
        "-SafeModeAdministratorPassword $safeMode",
        f"-InstallDns:${str(request.install_dns).lower()}",
        f"-NoRebootOnCompletion:${str(request.no_reboot).lower()}",
        "-Confirm:$false",
    ]
    if request.force:
        args.append("-Force")
    return args


def forest_script(request: ProvisioningRequest) -> str:
    args = [
        *_common_args(request),
        f"-DomainNetbiosName {quote(request.resolved_netbios_name)}",
        f"-DomainMode {quote(str(request.domain_mode))}",
        f"-ForestMode {quote(str(request.forest_mode))}",
    ]
    return (
        "Import-Module ADDSDeployment\n"
        + _READ_SAFE_MODE
        + "Install-ADDSForest `\n    "
        + " `\n    ".join(args)
        + "\n"
    )


def controller_script(request: ControllerRequest, credential: Credential | None) -> str:
    args = _common_args(request)
    lines = ["Import-Module ADDSDeployment\n", _READ_SAFE_MODE]
    if credential is not None:
        lines.append(
            "$credPassword = ConvertTo-SecureString -String ([Console]::In.ReadLine()) "
            "-AsPlainText -Force\n"
            "$credential = New-Object System.Management.Automation.PSCredential("
            f"{quote(credential.username)}, $credPassword)\n"
        )
        args.append("-Credential $credential")
    if request.site_name:
        args.append(f"-SiteName {quote(request.site_name)}")
    if request.replication_source:
        args.append(f"-ReplicationSourceDC {quote(request.replication_source)}")
    lines.append("Install-ADDSDomainController `\n    " + " `\n    ".join(args) + "\n")
    return "".join(lines)


class WindowsDomainProvisioner(DomainProvisioner):
    def __init__(self, runner: PowerShellRunner):
        self._runner = runner

    def create_forest(self, request: ProvisioningRequest, safe_mode_password: SecretStr) -> None:
        try:
            self._runner.invoke(forest_script(request), secrets=[safe_mode_password])
        except PlatformCallError as e:
            raise ExternalProvisioningError(
                f"Install-ADDSForest failed for '{request.domain_name}'",
                details=e.details,
                tips=[
                    "Review C:\\Windows\\debug\\dcpromo.log for the detailed failure.",
                    "Run Test-ADDSForestInstallation with the same parameters to see prerequisite errors.",
                ],
            ) from e

    def promote_controller(
        self,
        request: ControllerRequest,
        safe_mode_password: SecretStr,
        credential: Credential | None,
    ) -> None:
        secrets = [safe_mode_password]
        if credential is not None:
            if credential.password is None:
                raise ExternalProvisioningError(
                    f"No password available for '{credential.username}'"
                )
            secrets.append(credential.password)
        try:
            self._runner.invoke(controller_script(request, credential), secrets=secrets)
        except PlatformCallError as e:
            raise ExternalProvisioningError(
                f"Install-ADDSDomainController failed for '{request.domain_name}'",
                details=e.details,
                tips=[
                    "Check that this server resolves the domain through DNS.",
                    "Run Test-ADDSDomainControllerInstallation to see prerequisite errors.",
                ],
            ) from e
