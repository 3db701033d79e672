"""
Domain models — Pydantic types for provisioning.

All models are re-exported here for convenient access:

    from addsctl.core.models import ProvisioningRequest, OperationOutcome
"""

from addsctl.core.models.request import (
    ControllerRequest,
    Credential,
    FunctionalLevel,
    ProvisioningRequest,
    default_netbios_name,
)
from addsctl.core.models.results import (
    FeatureInstallResult,
    FeatureState,
    OperationOutcome,
    OperationStatus,
    PackageReport,
    PreflightResult,
)

__all__ = [
    # request.py
    "ControllerRequest",
    "Credential",
    "FunctionalLevel",
    "ProvisioningRequest",
    "default_netbios_name",
    # results.py
    "FeatureInstallResult",
    "FeatureState",
    "OperationOutcome",
    "OperationStatus",
    "PackageReport",
    "PreflightResult",
]
