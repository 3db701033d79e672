"""
Provisioning requests — what the operator asked for.

Requests are validated on construction: the domain name must be
DNS-shaped, functional levels come from a fixed set, and the NetBIOS
name is derived from the domain when not given. Secrets are held as
``SecretStr`` so they never show up in ``repr``, logs or JSON dumps.
"""

from __future__ import annotations

import re
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator

DEFAULT_DATABASE_PATH = r"C:\Windows\NTDS"
DEFAULT_LOG_PATH = r"C:\Windows\NTDS"
DEFAULT_SYSVOL_PATH = r"C:\Windows\SYSVOL"

NETBIOS_MAX_LENGTH = 15

_DNS_LABEL = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")


class FunctionalLevel(StrEnum):
    """Domain / forest functional levels accepted by the AD DS cmdlets."""

    WIN2008 = "Win2008"
    WIN2008R2 = "Win2008R2"
    WIN2012 = "Win2012"
    WIN2012R2 = "Win2012R2"
    WIN_THRESHOLD = "WinThreshold"  # Windows Server 2016
    WIN2025 = "Win2025"

    @property
    def rank(self) -> int:
        return list(FunctionalLevel).index(self)


class Credential(BaseModel):
    """Account used to join an existing domain."""

    username: str = Field(min_length=1)
    password: SecretStr | None = None


def default_netbios_name(domain_name: str) -> str:
    """First DNS label, upper-cased, truncated to the NetBIOS limit."""
    return domain_name.split(".", 1)[0].upper()[:NETBIOS_MAX_LENGTH]


class ProvisioningRequest(BaseModel):
    """Parameters for creating a forest."""

    model_config = ConfigDict(frozen=True)

    domain_name: str
    netbios_name: str | None = None
    domain_mode: FunctionalLevel = FunctionalLevel.WIN_THRESHOLD
    forest_mode: FunctionalLevel = FunctionalLevel.WIN_THRESHOLD
    database_path: str = DEFAULT_DATABASE_PATH
    log_path: str = DEFAULT_LOG_PATH
    sysvol_path: str = DEFAULT_SYSVOL_PATH
    install_dns: bool = True
    force: bool = False
    no_reboot: bool = False
    credential: Credential | None = None
    safe_mode_password: SecretStr | None = None

    @field_validator("domain_name")
    @classmethod
    def _check_domain_name(cls, value: str) -> str:
        value = value.strip().rstrip(".")
        if not value:
            raise ValueError("domain name must not be empty")
        labels = value.split(".")
        bad = [label for label in labels if not _DNS_LABEL.match(label)]
        if bad:
            raise ValueError(f"invalid DNS label(s) in domain name: {', '.join(bad) or '(empty)'}")
        return value.lower()

    @field_validator("netbios_name")
    @classmethod
    def _check_netbios_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip().upper()
        if not value or len(value) > NETBIOS_MAX_LENGTH:
            raise ValueError(f"NetBIOS name must be 1-{NETBIOS_MAX_LENGTH} characters")
        if "." in value or " " in value:
            raise ValueError("NetBIOS name must not contain dots or spaces")
        return value

    @field_validator("database_path", "log_path", "sysvol_path")
    @classmethod
    def _check_path(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("path must not be empty")
        return value.strip()

    @model_validator(mode="after")
    def _check_levels(self) -> ProvisioningRequest:
        if self.domain_mode.rank < self.forest_mode.rank:
            raise ValueError(
                f"domain mode {self.domain_mode} is lower than forest mode {self.forest_mode}"
            )
        return self

    @property
    def resolved_netbios_name(self) -> str:
        return self.netbios_name or default_netbios_name(self.domain_name)

    @property
    def paths(self) -> list[str]:
        """Database, log and SYSVOL paths, in that order."""
        return [self.database_path, self.log_path, self.sysvol_path]


class ControllerRequest(ProvisioningRequest):
    """Parameters for promoting a server into an existing domain."""

    site_name: str | None = None
    replication_source: str | None = None
