"""Tests for audit entries and recorders."""

import asyncio
import logging
from unittest.mock import patch, AsyncMock

import pytest

from age_policy.age_math import worker_age_info
from age_policy.audit import (
    AuditContext,
    AuditEntry,
    AuditKind,
    InMemoryAuditRecorder,
    LoggingAuditRecorder,
)
from age_policy.eligibility import check_eligibility
from age_policy.types import AccountFlags, AgeBracket, ComplianceResult, RiskCategory


@pytest.fixture
def decision(default_policy, now):
    return check_eligibility(worker_age_info(16), 18, True, AccountFlags(), default_policy, evaluated_at=now)


class TestAuditEntry:
    def test_from_decision(self, decision, now):
        context = AuditContext(action="apply", worker_id="w-1", job_id="j-1", metadata={"source": "web"})
        entry = AuditEntry.from_outcome(decision, context)

        assert entry.kind == AuditKind.ELIGIBILITY
        assert entry.outcome == "BLOCKED"
        assert entry.reason_codes == ("BELOW_MINIMUM_AGE",)
        assert entry.policy_version == 1
        assert entry.evaluated_at == now
        assert entry.age_years == 16
        assert entry.age_bracket == "AGE_16"
        assert entry.required_min_age == 18
        assert entry.worker_id == "w-1"
        assert entry.metadata == {"source": "web"}

    def test_from_compliance_result(self, now):
        result = ComplianceResult(AgeBracket.AGE_15, RiskCategory.LOW_RISK, 1, now)
        entry = AuditEntry.from_outcome(result)

        assert entry.kind == AuditKind.COMPLIANCE
        assert entry.outcome == "COMPLIANT"
        assert entry.reason_codes == ()
        assert entry.age_bracket == "AGE_15"
        assert entry.action == "check"

    def test_unsupported_outcome(self):
        with pytest.raises(TypeError):
            AuditEntry.from_outcome("ALLOWED")

    def test_to_dict(self, decision, now):
        data = AuditEntry.from_outcome(decision).to_dict()
        assert data["kind"] == "ELIGIBILITY"
        assert data["reason_codes"] == ["BELOW_MINIMUM_AGE"]
        assert data["evaluated_at"] == now.isoformat()


class TestRecorders:
    def test_in_memory_is_append_only(self, decision):
        recorder = InMemoryAuditRecorder()
        first = recorder.record(decision)
        second = recorder.record(decision, AuditContext(worker_id="w-2"))

        assert recorder.entries == (first, second)
        assert recorder.recent(1) == [second]
        assert recorder.recent(0) == []

    def test_logging_recorder(self, decision, caplog):
        with caplog.at_level(logging.INFO):
            LoggingAuditRecorder().record(decision, AuditContext(worker_id="w-7"))

        assert "AUDIT ELIGIBILITY BLOCKED" in caplog.text
        assert "worker=w-7" in caplog.text


class TestMongoAuditRecorder:
    def test_flush_inserts_pending_entries(self, decision):
        from db.audit import MongoAuditRecorder

        recorder = MongoAuditRecorder()
        recorder.record(decision, AuditContext(worker_id="w-1"))
        recorder.record(decision)

        with patch("db.audit.EligibilityAuditDoc") as mock_doc:
            mock_doc.insert_many = AsyncMock()
            written = asyncio.run(recorder.flush())

        assert written == 2
        assert recorder.pending == 0
        mock_doc.insert_many.assert_awaited_once()
        assert len(mock_doc.insert_many.call_args.args[0]) == 2
        assert mock_doc.call_args_list[0].kwargs["worker_id"] == "w-1"
        assert mock_doc.call_args_list[0].kwargs["reason_codes"] == ["BELOW_MINIMUM_AGE"]

    def test_failed_flush_keeps_entries(self, decision, caplog):
        from db.audit import MongoAuditRecorder

        recorder = MongoAuditRecorder()
        recorder.record(decision)

        with patch("db.audit.EligibilityAuditDoc") as mock_doc, caplog.at_level(logging.WARNING):
            mock_doc.insert_many = AsyncMock(side_effect=ConnectionError("mongo down"))
            written = asyncio.run(recorder.flush())

        assert written == 0
        assert recorder.pending == 1
        assert "Audit flush failed" in caplog.text

    def test_flush_with_nothing_pending(self):
        from db.audit import MongoAuditRecorder

        with patch("db.audit.EligibilityAuditDoc") as mock_doc:
            mock_doc.insert_many = AsyncMock()
            assert asyncio.run(MongoAuditRecorder().flush()) == 0
            mock_doc.insert_many.assert_not_awaited()

    def test_buffer_drops_oldest_when_full(self, decision, caplog):
        from db.audit import MongoAuditRecorder

        recorder = MongoAuditRecorder(max_pending=2)
        with caplog.at_level(logging.WARNING):
            for worker_id in ("w-1", "w-2", "w-3"):
                recorder.record(decision, AuditContext(worker_id=worker_id))

        assert recorder.pending == 2
        assert recorder.dropped == 1
        assert "Audit buffer full" in caplog.text

        with patch("db.audit.EligibilityAuditDoc") as mock_doc:
            mock_doc.insert_many = AsyncMock()
            asyncio.run(recorder.flush())

        assert [c.kwargs["worker_id"] for c in mock_doc.call_args_list] == ["w-2", "w-3"]

    def test_buffer_stays_bounded_while_flushes_fail(self, decision):
        from db.audit import MongoAuditRecorder

        recorder = MongoAuditRecorder(max_pending=3)
        with patch("db.audit.EligibilityAuditDoc") as mock_doc:
            mock_doc.insert_many = AsyncMock(side_effect=ConnectionError("mongo down"))
            for _ in range(5):
                recorder.record(decision)
                recorder.record(decision)
                asyncio.run(recorder.flush())

        assert recorder.pending == 3
        assert recorder.dropped == 7

    def test_max_pending_must_be_positive(self):
        from db.audit import MongoAuditRecorder

        with pytest.raises(ValueError):
            MongoAuditRecorder(max_pending=0)
