"""
Audit ledger — one NDJSON line per provisioning run.

Only runs that actually executed are recorded, as ``completed`` or
``failed``. Dry-runs and runs cancelled at the confirmation gate leave
no trace. Entries are appended, never rewritten, and hold no secrets.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from collections.abc import Iterator
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_PATH = Path(".state") / "audit.ndjson"


class AuditStatus(StrEnum):
    COMPLETED = "completed"
    FAILED = "failed"


class AuditEntry(BaseModel):
    """One provisioning run."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    operation_id: str = ""
    operation: str = ""            # Create forest, Promote domain controller
    domain_name: str = ""
    status: str = ""
    stage: str = ""                # Done, or the stage that failed
    error_kind: str | None = None
    duration_ms: int = 0
    context: dict[str, Any] = Field(default_factory=dict)


class AuditWriter:
    """Appends entries to, and reads them back from, one ledger file."""

    def __init__(self, path: Path | None = None):
        self._path = path or DEFAULT_AUDIT_PATH

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        """Append one entry. A ledger that can't be written is logged, not raised."""
        line = entry.model_dump_json() + "\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            logger.error("Could not append to audit ledger %s: %s", self._path, e)
            return
        logger.debug("Audit: %s %s (%s)", entry.operation, entry.status, entry.operation_id)

    def iter_entries(self) -> Iterator[AuditEntry]:
        """Entries oldest first; unreadable lines are skipped with a warning."""
        try:
            f = self._path.open("r", encoding="utf-8")
        except FileNotFoundError:
            return
        except OSError as e:
            logger.error("Could not read audit ledger %s: %s", self._path, e)
            return

        with f:
            for line_num, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    yield AuditEntry.model_validate(json.loads(line))
                except (ValueError, ValidationError) as e:
                    logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)

    def read_all(self) -> list[AuditEntry]:
        return list(self.iter_entries())

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        """The last ``n`` entries, oldest first."""
        return list(deque(self.iter_entries(), maxlen=n))
