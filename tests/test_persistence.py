"""
Tests for persistence — the audit ledger.
"""

import json
from pathlib import Path

from addsctl.core.persistence.audit import AuditEntry, AuditWriter


class TestAuditWriter:
    """Tests for the audit ledger."""

    def test_write_and_read(self, tmp_path: Path):
        writer = AuditWriter(path=tmp_path / "audit.ndjson")
        entry = AuditEntry(
            operation_id="op-001",
            operation="Create forest",
            domain_name="contoso.com",
            status="completed",
            stage="Done",
        )
        writer.write(entry)

        entries = writer.read_all()
        assert len(entries) == 1
        assert entries[0].operation_id == "op-001"
        assert entries[0].status == "completed"

    def test_append_multiple(self, tmp_path: Path):
        writer = AuditWriter(path=tmp_path / "audit.ndjson")
        for i in range(5):
            writer.write(AuditEntry(operation_id=f"op-{i:03d}", operation="Create forest"))

        entries = writer.read_all()
        assert len(entries) == 5
        assert entries[0].operation_id == "op-000"
        assert entries[4].operation_id == "op-004"

    def test_read_recent(self, tmp_path: Path):
        writer = AuditWriter(path=tmp_path / "audit.ndjson")
        for i in range(10):
            writer.write(AuditEntry(operation_id=f"op-{i:03d}"))

        recent = writer.read_recent(3)
        assert len(recent) == 3
        assert recent[0].operation_id == "op-007"
        assert recent[2].operation_id == "op-009"

    def test_read_empty_ledger(self, tmp_path: Path):
        writer = AuditWriter(path=tmp_path / "nonexistent.ndjson")
        assert writer.read_all() == []

    def test_corrupt_lines_skipped(self, tmp_path: Path):
        """Corrupt lines in the ledger are skipped gracefully."""
        path = tmp_path / "audit.ndjson"
        path.write_text(
            '{"operation_id": "good-1", "operation": "Create forest"}\n'
            "this is not json\n"
            '{"operation_id": "good-2", "operation": "Create forest"}\n'
        )
        writer = AuditWriter(path=path)
        entries = writer.read_all()
        assert len(entries) == 2
        assert entries[0].operation_id == "good-1"
        assert entries[1].operation_id == "good-2"

    def test_creates_parent_directories(self, tmp_path: Path):
        writer = AuditWriter(path=tmp_path / "deep" / "nested" / "audit.ndjson")
        writer.write(AuditEntry(operation_id="test"))
        assert writer.path.is_file()

    def test_unwritable_ledger_does_not_raise(self, tmp_path: Path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        writer = AuditWriter(path=blocker / "audit.ndjson")
        writer.write(AuditEntry(operation_id="lost"))
        assert writer.read_all() == []

    def test_ndjson_format(self, tmp_path: Path):
        """Each entry is a single line of valid JSON."""
        path = tmp_path / "audit.ndjson"
        writer = AuditWriter(path=path)
        writer.write(AuditEntry(operation_id="op-1"))
        writer.write(AuditEntry(operation_id="op-2"))

        lines = path.read_text().strip().split("\n")
        assert len(lines) == 2
        for line in lines:
            data = json.loads(line)
            assert "operation_id" in data

    def test_entry_fields_serialized(self, tmp_path: Path):
        writer = AuditWriter(path=tmp_path / "audit.ndjson")
        entry = AuditEntry(
            operation_id="full-test",
            operation="Promote domain controller",
            domain_name="contoso.com",
            status="failed",
            stage="ExternalProvision",
            error_kind="external_provisioning_failed",
            duration_ms=1234,
            context={"site": "HQ"},
        )
        writer.write(entry)

        loaded = writer.read_all()[0]
        assert loaded.error_kind == "external_provisioning_failed"
        assert loaded.duration_ms == 1234
        assert loaded.context == {"site": "HQ"}
