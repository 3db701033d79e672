"""Adapters — platform bindings behind narrow interfaces.

Public re-exports for convenient access.
"""

from addsctl.adapters.base import (
    DomainProvisioner,
    FeatureManager,
    Filesystem,
    PackageManager,
    Platform,
    SecretPrompt,
    SystemProbe,
)
from addsctl.adapters.mock import mock_platform

__all__ = [
    "DomainProvisioner",
    "FeatureManager",
    "Filesystem",
    "PackageManager",
    "Platform",
    "SecretPrompt",
    "SystemProbe",
    "mock_platform",
]
