"""
Local machine probes and filesystem access.

OS facts come from PowerShell (``Win32_OperatingSystem`` and the current
Windows principal); filesystem calls are plain ``pathlib``/``shutil``.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from addsctl.adapters.base import Filesystem, SystemProbe
from addsctl.adapters.windows.powershell import PowerShellRunner

logger = logging.getLogger(__name__)

# Win32_OperatingSystem.ProductType: 1 workstation, 2 domain controller, 3 server
_SERVER_PRODUCT_TYPES = {2, 3}

_OS_QUERY = (
    "Get-CimInstance -ClassName Win32_OperatingSystem | "
    "Select-Object Caption, Version, ProductType | ConvertTo-Json -Compress"
)

_ELEVATION_QUERY = (
    "$p = New-Object Security.Principal.WindowsPrincipal("
    "[Security.Principal.WindowsIdentity]::GetCurrent()); "
    "$p.IsInRole([Security.Principal.WindowsBuiltInRole]::Administrator) | ConvertTo-Json"
)


class WindowsSystemProbe(SystemProbe):
    def __init__(self, runner: PowerShellRunner):
        self._runner = runner
        self._os: dict | None = None

    def _os_info(self) -> dict:
        if self._os is None:
            data = self._runner.query(_OS_QUERY)
            self._os = data if isinstance(data, dict) else {}
        return self._os

    def is_server(self) -> bool:
        product_type = self._os_info().get("ProductType")
        return product_type in _SERVER_PRODUCT_TYPES

    def is_elevated(self) -> bool:
        return self._runner.query(_ELEVATION_QUERY) is True

    def describe(self) -> str:
        info = self._os_info()
        caption = info.get("Caption") or "unknown OS"
        version = info.get("Version")
        return f"{caption} ({version})" if version else caption


class LocalFilesystem(Filesystem):
    """The machine's own disks."""

    def exists(self, path: str) -> bool:
        return Path(path).exists()

    def free_bytes(self, path: str) -> int:
        # disk_usage needs an existing path: walk up to the nearest one
        target = Path(path)
        while not target.exists() and target.parent != target:
            target = target.parent
        return shutil.disk_usage(target).free

    def make_directory(self, path: str) -> None:
        logger.debug("mkdir -p %s", path)
        Path(path).mkdir(parents=True, exist_ok=True)
