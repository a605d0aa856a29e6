"""
Tests for the newest-first audit log.
"""
from __future__ import annotations

import json
import logging
import os
import stat
import sys
import threading
from pathlib import Path
from typing import List

import pytest

from truthdesk.audit import AuditLog, filter_entries, new_audit_entry
from truthdesk.errors import AuditLogCorruptError, AuditLogError
from truthdesk.models import AuditEntry, GovernanceResult


def _entry(entry_id: str, **overrides) -> AuditEntry:
    data = {
        "id": entry_id,
        "timestamp": "2024-05-01T12:00:00+00:00",
        "action": "governance_verify",
        "claim": f"claim {entry_id}",
        "domain": "physics",
        "risk_profile": "medium",
        "result_status": "verified",
        "result_action": "proceed",
        "confidence": 0.8,
    }
    data.update(overrides)
    return AuditEntry(**data)


class TestRead:
    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert AuditLog(tmp_path / "audit.json").read() == []

    def test_reads_in_file_order(self, tmp_path: Path) -> None:
        path = tmp_path / "audit.json"
        path.write_text(json.dumps([_entry("b").model_dump(), _entry("a").model_dump()]))
        assert [e.id for e in AuditLog(path).read()] == ["b", "a"]

    def test_corrupt_file_is_hard_error(self, tmp_path: Path) -> None:
        path = tmp_path / "audit.json"
        path.write_text("{not a list")
        with pytest.raises(AuditLogCorruptError):
            AuditLog(path).read()

    def test_wrong_shape_is_hard_error(self, tmp_path: Path) -> None:
        path = tmp_path / "audit.json"
        path.write_text(json.dumps([{"id": "x"}]))
        with pytest.raises(AuditLogCorruptError):
            AuditLog(path).read()

    def test_unreadable_file(self, tmp_path: Path) -> None:
        path = tmp_path / "audit.json"
        path.mkdir()
        with pytest.raises(AuditLogError):
            AuditLog(path).read()


class TestAppend:
    def test_first_append(self, tmp_path: Path) -> None:
        log = AuditLog(tmp_path / "audit.json")
        e = _entry("e1")
        log.append(e)
        assert log.read() == [e]

    def test_prepends(self, tmp_path: Path) -> None:
        """append(e) then append(e2) gives [e2, e]."""
        log = AuditLog(tmp_path / "audit.json")
        e, e2 = _entry("e1"), _entry("e2")
        log.append(e)
        log.append(e2)
        assert [x.id for x in log.read()] == ["e2", "e1"]

    def test_insertion_order_not_timestamp_order(self, tmp_path: Path) -> None:
        log = AuditLog(tmp_path / "audit.json")
        log.append(_entry("new", timestamp="2030-01-01T00:00:00+00:00"))
        log.append(_entry("old", timestamp="2000-01-01T00:00:00+00:00"))
        assert [x.id for x in log.read()] == ["old", "new"]

    def test_pretty_printed_array(self, tmp_path: Path) -> None:
        path = tmp_path / "audit.json"
        AuditLog(path).append(_entry("e1"))
        text = path.read_text()
        assert text.startswith("[\n  {")
        data = json.loads(text)
        assert isinstance(data, list)
        assert data[0]["id"] == "e1"

    def test_accepts_dict(self, tmp_path: Path) -> None:
        log = AuditLog(tmp_path / "audit.json")
        log.append(_entry("d1").model_dump())
        assert log.read()[0].id == "d1"

    def test_rejects_invalid_dict(self, tmp_path: Path) -> None:
        log = AuditLog(tmp_path / "audit.json")
        with pytest.raises(AuditLogError, match="Invalid audit entry"):
            log.append({"id": "x"})
        assert not log.path.exists()

    def test_corrupt_file_falls_back_to_empty(self, tmp_path: Path, caplog) -> None:
        path = tmp_path / "audit.json"
        path.write_text("garbage")
        log = AuditLog(path)

        with caplog.at_level(logging.WARNING, logger="truthdesk.audit"):
            log.append(_entry("fresh"))

        assert [e.id for e in log.read()] == ["fresh"]
        backups = list(tmp_path.glob("audit.json.corrupt-*"))
        assert [b.read_text() for b in backups] == ["garbage"]
        assert "not a valid entry list" in caplog.text

    def test_second_corruption_keeps_first_backup(self, tmp_path: Path) -> None:
        path = tmp_path / "audit.json"
        log = AuditLog(path)
        path.write_text("garbage1")
        log.append(_entry("a"))
        path.write_text("garbage2")
        log.append(_entry("b"))

        backups = sorted(tmp_path.glob("audit.json.corrupt-*"))
        assert len(backups) == 2
        assert {b.read_text() for b in backups} == {"garbage1", "garbage2"}
        assert [e.id for e in log.read()] == ["b"]

    def test_strict_refuses_to_overwrite_corrupt(self, tmp_path: Path) -> None:
        path = tmp_path / "audit.json"
        path.write_text("garbage")
        with pytest.raises(AuditLogCorruptError):
            AuditLog(path, strict=True).append(_entry("x"))
        assert path.read_text() == "garbage"

    def test_missing_directory_is_error(self, tmp_path: Path) -> None:
        with pytest.raises(AuditLogError):
            AuditLog(tmp_path / "no-such-dir" / "audit.json").append(_entry("x"))

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        log = AuditLog(tmp_path / "audit.json")
        log.append(_entry("a"))
        log.append(_entry("b"))
        leftovers = [p.name for p in tmp_path.iterdir() if p.name.endswith(".tmp")]
        assert leftovers == []

    def test_unencodable_claim_is_typed_error(self, tmp_path: Path) -> None:
        path = tmp_path / "audit.json"
        log = AuditLog(path)
        log.append(_entry("before"))
        original = path.read_bytes()

        with pytest.raises(AuditLogError):
            log.append(_entry("x", claim="bad \ud800 text"))

        assert path.read_bytes() == original
        leftovers = [p.name for p in tmp_path.iterdir() if p.name.endswith(".tmp")]
        assert leftovers == []

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permission bits")
    def test_append_keeps_file_mode(self, tmp_path: Path) -> None:
        path = tmp_path / "audit.json"
        log = AuditLog(path)
        log.append(_entry("a"))
        os.chmod(path, 0o640)

        log.append(_entry("b"))

        assert stat.S_IMODE(path.stat().st_mode) == 0o640

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permission bits")
    def test_new_log_is_world_readable(self, tmp_path: Path) -> None:
        path = tmp_path / "audit.json"
        AuditLog(path).append(_entry("a"))
        assert stat.S_IMODE(path.stat().st_mode) == 0o644

    def test_concurrent_appends_lose_nothing(self, tmp_path: Path) -> None:
        path = tmp_path / "audit.json"
        errors: List[Exception] = []

        def writer(n: int) -> None:
            try:
                for i in range(5):
                    AuditLog(path).append(_entry(f"t{n}-{i}"))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        ids = [e.id for e in AuditLog(path).read()]
        assert len(ids) == 40
        assert len(set(ids)) == 40


class TestHelpers:
    def test_new_audit_entry(self) -> None:
        result = GovernanceResult(
            status="verified", action="proceed", confidence=0.91,
            reason="consensus", audit_ref="ref-1",
        )
        entry = new_audit_entry("the sky is blue", "science", "low", result)
        assert entry.id.startswith("audit_")
        assert entry.action == "governance_verify"
        assert entry.result_status == "verified"
        assert entry.result_action == "proceed"
        assert entry.confidence == 0.91
        assert entry.timestamp

    def test_filter_by_action(self) -> None:
        entries = [_entry("a", result_action="proceed"), _entry("b", result_action="abort")]
        assert [e.id for e in filter_entries(entries, action="abort")] == ["b"]
        assert len(filter_entries(entries, action="all")) == 2

    def test_filter_by_query(self) -> None:
        entries = [
            _entry("a", claim="Water boils at 100C", domain="physics"),
            _entry("b", claim="Paris is in France", domain="Geography"),
            _entry("audit_xyz", claim="something", domain="misc"),
        ]
        assert [e.id for e in filter_entries(entries, query="WATER")] == ["a"]
        assert [e.id for e in filter_entries(entries, query="geo")] == ["b"]
        assert [e.id for e in filter_entries(entries, query="xyz")] == ["audit_xyz"]

    def test_filter_preserves_order(self) -> None:
        entries = [_entry("c"), _entry("a"), _entry("b")]
        assert [e.id for e in filter_entries(entries)] == ["c", "a", "b"]
