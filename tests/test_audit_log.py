"""Tests for audit recording and performance timing."""
import json
import logging

import pytest

from mcp_arista_switch.context import AuthContext
from mcp_arista_switch.datastore import Datastore
from mcp_arista_switch.utils.audit_log import (
    AuditLogger,
    AuditRecord,
    audit_logger,
    get_recent_changes,
    setup_audit_logging,
)
from mcp_arista_switch.utils.logging_config import PerfStats, global_stats, perf_logger, timed, timed_section


@pytest.fixture
def audit_file(tmp_path):
    path = setup_audit_logging(str(tmp_path))
    yield path
    for handler in list(audit_logger.handlers):
        audit_logger.removeHandler(handler)
        handler.close()


class TestAuditLogger:
    """Tests for AuditLogger."""

    @pytest.mark.asyncio
    async def test_record_written_to_file_and_table(self, audit_file, datastore):
        audit = AuditLogger(datastore, AuthContext(user_id=7, role="admin"), ip_address="198.51.100.4")

        record = await audit.record_vlan_action("Create VLAN", 3, 100, {"name": "guest"})

        assert record.target_type == "vlan"
        assert record.details == {"switch_id": 3, "name": "guest"}

        line = audit_file.read_text().strip()
        assert json.loads(line)["action"] == "Create VLAN"

        row = (await datastore.query("audit_log"))[0]
        assert row["user_id"] == 7
        assert row["ip_address"] == "198.51.100.4"
        assert json.loads(row["details"])["name"] == "guest"

    @pytest.mark.asyncio
    async def test_failure_never_raises(self):
        """A datastore without the schema makes recording fail quietly."""
        store = Datastore("sqlite+aiosqlite:///:memory:")
        try:
            audit = AuditLogger(store)
            assert await audit.record_switch_action("Backup configuration", 1) is None
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_without_datastore(self):
        record = await AuditLogger().record("Restore configuration", "switch", 4)

        assert record.user_id is None
        assert record.target_id == 4


class TestGetRecentChanges:
    """Tests for reading the audit file back."""

    def test_filters_and_order(self, tmp_path):
        path = tmp_path / "audit.log"
        lines = [
            AuditRecord("2024-01-01T00:00:00", "Create VLAN", "vlan", 10).to_json(),
            "not json",
            AuditRecord("2024-01-02T00:00:00", "Apply configuration", "switch", 1).to_json(),
            AuditRecord("2024-01-03T00:00:00", "Apply configuration", "switch", 2).to_json(),
        ]
        path.write_text("\n".join(lines) + "\n")

        assert [r.target_id for r in get_recent_changes(str(path))] == [2, 1, 10]
        assert [r.target_id for r in get_recent_changes(str(path), action="Apply configuration", limit=1)] == [2]
        assert [r.action for r in get_recent_changes(str(path), target_id=10)] == ["Create VLAN"]

    def test_missing_file(self, tmp_path):
        assert get_recent_changes(str(tmp_path / "none.log")) == []


class TestTiming:
    """Tests for timed and timed_section."""

    @pytest.mark.asyncio
    async def test_timed_records_stats(self):
        class Sample:
            device_id = "leaf-1"

            @timed("sample_op")
            async def run(self):
                return 42

        before = global_stats.count("sample_op")

        assert await Sample().run() == 42
        assert global_stats.count("sample_op") == before + 1

    @pytest.mark.asyncio
    async def test_timed_section_reraises(self, caplog, monkeypatch):
        monkeypatch.setattr(perf_logger, "propagate", True)
        caplog.set_level(logging.WARNING, logger="eoscraft.perf")

        with pytest.raises(RuntimeError):
            async with timed_section("failing_op", device_id="leaf-1", batch=3):
                raise RuntimeError("boom")

        assert "FAIL: boom" in caplog.text
        assert "batch=3" in caplog.text

    def test_timed_rejects_sync_functions(self):
        with pytest.raises(TypeError):
            timed("op")(lambda: None)

    def test_summary(self):
        stats = PerfStats()
        stats.record("run_cmds", 10.0)
        stats.record("run_cmds", 30.0)

        summary = stats.summary()

        assert "count=   2" in summary
        assert "avg=   20.00ms" in summary
