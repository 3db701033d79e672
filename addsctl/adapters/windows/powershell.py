"""
PowerShell runner — the SINGLE PLACE where ``subprocess.run`` is called.

Scripts are handed to ``powershell.exe`` with ``-EncodedCommand`` so no
quoting survives into the command line. Secrets travel on stdin only:
they never appear in the arguments, in the script text, or in logs.

Security invariants:
- Secret lines piped via stdin, one per line, read with
  ``[Console]::In.ReadLine()`` inside the script
- The script text is logged at DEBUG; stdin is never logged
"""

from __future__ import annotations

import base64
import json
import logging
import shutil
import subprocess
import time
from typing import Any

from pydantic import BaseModel, SecretStr

from addsctl.core.errors import PlatformCallError

logger = logging.getLogger(__name__)

DEFAULT_QUERY_TIMEOUT = 120

_EXECUTABLES = ("powershell.exe", "powershell", "pwsh")

# Prepended to every script: cmdlet errors become terminating
_PRELUDE = "$ErrorActionPreference = 'Stop'\n$ProgressPreference = 'SilentlyContinue'\n"


class PowerShellResult(BaseModel):
    """Outcome of one script run."""

    ok: bool
    return_code: int = 0
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0

    def parse_json(self) -> Any:
        """Parse stdout as JSON (``None`` for empty output)."""
        text = self.stdout.strip()
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise PlatformCallError(
                "PowerShell returned output that is not valid JSON",
                details=[text[:500]],
            ) from e


def quote(value: str) -> str:
    """Quote a value as a single-quoted PowerShell literal."""
    return "'" + value.replace("'", "''") + "'"


def encode_command(script: str) -> str:
    """Encode a script for ``-EncodedCommand`` (UTF-16LE, base64)."""
    return base64.b64encode(script.encode("utf-16-le")).decode("ascii")


def find_powershell() -> str | None:
    for name in _EXECUTABLES:
        path = shutil.which(name)
        if path:
            return path
    return None


class PowerShellRunner:
    """Run PowerShell scripts and capture their output.

    Args:
        executable: Path to powershell.exe (default: first found on PATH).
        query_timeout: Timeout in seconds for read-only queries. Mutating
            calls (installs, provisioning) run without a timeout.
    """

    def __init__(self, executable: str | None = None, query_timeout: int = DEFAULT_QUERY_TIMEOUT):
        self._executable = executable
        self.query_timeout = query_timeout

    @property
    def executable(self) -> str:
        exe = self._executable or find_powershell()
        if exe is None:
            raise PlatformCallError(
                "PowerShell was not found on PATH",
                tips=["addsctl drives Windows Server through PowerShell; run it on the target server."],
            )
        return exe

    def run(
        self,
        script: str,
        *,
        secrets: list[SecretStr] | None = None,
        timeout: int | None = None,
    ) -> PowerShellResult:
        """Run a script. Never raises for a non-zero exit; check ``ok``."""
        cmd = [
            self.executable,
            "-NoProfile",
            "-NonInteractive",
            "-ExecutionPolicy",
            "Bypass",
            "-EncodedCommand",
            encode_command(_PRELUDE + script),
        ]
        stdin_data = None
        if secrets:
            stdin_data = "".join(s.get_secret_value() + "\n" for s in secrets)

        logger.debug("PowerShell: %s", script)
        start = time.monotonic()
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                input=stdin_data,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise PlatformCallError(
                f"PowerShell call timed out after {timeout}s",
                details=[script.splitlines()[0] if script else ""],
            ) from e
        except OSError as e:
            raise PlatformCallError(f"Could not start PowerShell: {e}") from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        return PowerShellResult(
            ok=result.returncode == 0,
            return_code=result.returncode,
            stdout=result.stdout or "",
            stderr=(result.stderr or "").strip(),
            duration_ms=elapsed_ms,
        )

    def query(self, script: str) -> Any:
        """Run a read-only script that emits JSON and return the parsed value."""
        result = self.run(script, timeout=self.query_timeout)
        if not result.ok:
            raise PlatformCallError(
                f"PowerShell query failed (exit {result.return_code})",
                details=[result.stderr] if result.stderr else [],
            )
        return result.parse_json()

    def invoke(self, script: str, *, secrets: list[SecretStr] | None = None) -> PowerShellResult:
        """Run a mutating script with no timeout; raise on failure."""
        result = self.run(script, secrets=secrets)
        if not result.ok:
            raise PlatformCallError(
                f"PowerShell command failed (exit {result.return_code})",
                details=[result.stderr] if result.stderr else [],
            )
        return result
