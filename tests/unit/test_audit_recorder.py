"""
Unit tests - Nhật ký kiểm toán chỉ ghi thêm.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from itertools import count

import pytest

from ledger_integrity.application.audit_recorder import AuditLogFilter, AuditRecorder, ensure_reason
from ledger_integrity.domain.exceptions import AuditRecordNotFoundError, ReasonRequiredError
from ledger_integrity.domain.value_objects import AuditAction, AuditEntityType
from ledger_integrity.infrastructure.memory import InMemoryAuditLogRepository


@pytest.fixture
def recorder(clock):
    ids = count(1)
    return AuditRecorder(InMemoryAuditLogRepository(), clock=clock, id_factory=lambda: f"log-{next(ids)}")


def voucher_snapshot(status="DRAFT", amount="1000000", description="Thu tiền bán hàng"):
    return {
        "document_number": "CT202501001",
        "document_date": date(2025, 1, 15),
        "status": status,
        "description": description,
        "total_debit": Decimal(amount),
    }


class TestReasonRules:
    """Hủy, từ chối, điều chỉnh, mở khóa bắt buộc phải có lý do."""

    @pytest.mark.parametrize("action", ["CANCEL", "REJECT", "ADJUST", "UNLOCK"])
    @pytest.mark.parametrize("reason", [None, "", "   \t"])
    def test_blank_reason_rejected(self, action, reason):
        with pytest.raises(ReasonRequiredError) as exc_info:
            ensure_reason(action, reason)
        assert exc_info.value.action == action

    @pytest.mark.parametrize("action", ["CREATE", "UPDATE", "POST", "SUBMIT", "APPROVE", "PAY", "ACCEPT", "LOCK"])
    def test_reason_optional(self, action):
        ensure_reason(action, None)

    def test_record_rejects_before_appending(self, recorder, accountant):
        with pytest.raises(ReasonRequiredError):
            recorder.record("VOUCHER", "doc-1", AuditAction.CANCEL, voucher_snapshot(), None, accountant, reason=" ")
        assert recorder.repository.list_all() == []


class TestRecord:

    def test_update_captures_field_changes(self, recorder, accountant):
        record = recorder.record(
            AuditEntityType.VOUCHER,
            "doc-1",
            AuditAction.UPDATE,
            voucher_snapshot(),
            voucher_snapshot(amount="1500000", description="Thu tiền bán hàng (sửa)"),
            accountant,
        )
        assert [c.field for c in record.changes] == ["description", "total_debit"]
        assert record.changes[1].old_value == "1000000"
        assert record.changes[1].new_value == "1500000"
        assert record.actor_name == "Nguyễn Văn Kế"
        assert record.actor_role == "ACCOUNTANT"

    def test_create_has_no_before_and_no_changes(self, recorder, accountant):
        record = recorder.record("VOUCHER", "doc-1", "CREATE", None, voucher_snapshot(), accountant)
        assert record.before is None
        assert record.changes is None
        assert record.after.get("status").to_plain() == "DRAFT"

    def test_entity_name_and_period_derived(self, recorder, accountant):
        record = recorder.record("VOUCHER", "doc-1", "CREATE", None, voucher_snapshot(), accountant)
        assert record.entity_name == "CT202501001"
        assert record.related_period == "2025-01"

    def test_reason_is_trimmed(self, recorder, accountant):
        record = recorder.record(
            "VOUCHER", "doc-1", "CANCEL", voucher_snapshot("POSTED"), voucher_snapshot("CANCELLED"),
            accountant, reason="  Sai khách hàng  ",
        )
        assert record.reason == "Sai khách hàng"

    def test_sequences_are_assigned(self, recorder, accountant):
        first = recorder.record("VOUCHER", "doc-1", "CREATE", None, voucher_snapshot(), accountant)
        other = recorder.record("VOUCHER", "doc-2", "CREATE", None, voucher_snapshot(), accountant)
        second = recorder.record("VOUCHER", "doc-1", "POST", voucher_snapshot(), voucher_snapshot("POSTED"), accountant)
        assert (first.sequence, other.sequence, second.sequence) == (1, 2, 3)
        assert (first.entity_sequence, other.entity_sequence, second.entity_sequence) == (1, 1, 2)

    def test_history_in_entity_order(self, recorder, accountant):
        recorder.record("VOUCHER", "doc-1", "CREATE", None, voucher_snapshot(), accountant)
        recorder.record("VOUCHER", "doc-1", "POST", voucher_snapshot(), voucher_snapshot("POSTED"), accountant)
        history = recorder.history("VOUCHER", "doc-1")
        assert [r.action for r in history] == [AuditAction.CREATE, AuditAction.POST]

    def test_get_unknown_record(self, recorder):
        with pytest.raises(AuditRecordNotFoundError):
            recorder.get("missing")

    def test_duplicate_id_rejected_by_store(self, clock, accountant):
        recorder = AuditRecorder(InMemoryAuditLogRepository(), clock=clock, id_factory=lambda: "same")
        recorder.record("VOUCHER", "doc-1", "CREATE", None, voucher_snapshot(), accountant)
        with pytest.raises(ValueError):
            recorder.record("VOUCHER", "doc-2", "CREATE", None, voucher_snapshot(), accountant)


class TestCorrections:
    """Sai sót trong nhật ký được đính chính bằng bản ghi mới."""

    def test_correction_points_to_original(self, recorder, accountant, chief_accountant):
        original = recorder.record("VOUCHER", "doc-1", "CREATE", None, voucher_snapshot(), accountant)
        correction = recorder.record_correction(
            original.id, chief_accountant, "Ghi nhầm diễn giải", corrected_after=voucher_snapshot(description="Đúng"),
        )
        assert correction.corrects_record_id == original.id
        assert correction.action == AuditAction.CREATE
        assert correction.entity_id == "doc-1"
        assert correction.after.get("description").to_plain() == "Đúng"
        assert recorder.get(original.id) == original

    def test_correction_requires_reason(self, recorder, accountant):
        original = recorder.record("VOUCHER", "doc-1", "CREATE", None, voucher_snapshot(), accountant)
        with pytest.raises(ReasonRequiredError):
            recorder.record_correction(original.id, accountant, "  ")


class TestQuery:

    @pytest.fixture
    def populated(self, recorder, accountant, chief_accountant):
        recorder.record("VOUCHER", "doc-1", "CREATE", None, voucher_snapshot(), accountant)
        recorder.record("VOUCHER", "doc-1", "POST", voucher_snapshot(), voucher_snapshot("POSTED"), accountant)
        recorder.record(
            "VOUCHER", "doc-1", "CANCEL", voucher_snapshot("POSTED"), voucher_snapshot("CANCELLED"),
            chief_accountant, reason="Trùng chứng từ",
        )
        recorder.record("PERIOD_LOCK", "2025-02", "LOCK", None, {"period": "2025-02"}, chief_accountant)
        return recorder

    def test_newest_first(self, populated):
        page = populated.query()
        assert [r.action for r in page.records] == [
            AuditAction.LOCK, AuditAction.CANCEL, AuditAction.POST, AuditAction.CREATE,
        ]

    def test_summary(self, populated):
        summary = populated.query().summary
        assert summary.total == 4
        assert summary.by_action == {"CANCEL": 1, "CREATE": 1, "LOCK": 1, "POST": 1}
        assert summary.by_entity_type == {"PERIOD_LOCK": 1, "VOUCHER": 3}
        assert summary.unique_actors == 2

    def test_filters(self, populated):
        assert populated.query(AuditLogFilter(entity_type="PERIOD_LOCK")).total_items == 1
        assert populated.query(AuditLogFilter(action=AuditAction.POST)).total_items == 1
        assert populated.query(AuditLogFilter(actor_id="u-ktt")).total_items == 2
        assert populated.query(AuditLogFilter(period="2025-01")).total_items == 3
        assert populated.query(AuditLogFilter(search="TRÙNG")).total_items == 1
        assert populated.query(AuditLogFilter(search="trưởng")).total_items == 2

    def test_time_window(self, populated):
        start = datetime(2025, 1, 1, 8, 0, 2, tzinfo=timezone.utc)
        end = datetime(2025, 1, 1, 8, 0, 3, tzinfo=timezone.utc)
        page = populated.query(AuditLogFilter(from_time=start, to_time=end))
        assert [r.action for r in page.records] == [AuditAction.CANCEL, AuditAction.POST]

    def test_naive_bounds_read_as_utc(self, populated):
        naive = AuditLogFilter(from_time=datetime(2025, 1, 1, 8, 0, 2), to_time=datetime(2025, 1, 1, 8, 0, 3))
        page = populated.query(naive)
        assert [r.action for r in page.records] == [AuditAction.CANCEL, AuditAction.POST]
        assert populated.query(AuditLogFilter(from_time=datetime(2024, 1, 1))).total_items == 4

    def test_offset_bounds_compared_in_utc(self, populated):
        hanoi = timezone(timedelta(hours=7))
        start = datetime(2025, 1, 1, 15, 0, 2, tzinfo=hanoi)
        assert populated.query(AuditLogFilter(from_time=start)).total_items == 3

    def test_period_filter_covers_wider_periods(self, populated):
        assert populated.query(AuditLogFilter(period="2025-Q1")).total_items == 4
        assert populated.query(AuditLogFilter(period="2025")).total_items == 4
        assert populated.query(AuditLogFilter(period="2025-Q2")).total_items == 0
        with pytest.raises(ValueError):
            AuditLogFilter(period="Q1/2025")

    def test_query_is_repeatable(self, populated):
        filters = AuditLogFilter(entity_id="doc-1")
        assert populated.query(filters) == populated.query(filters)
        assert len(populated.repository.list_all()) == 4

    def test_pagination(self, populated):
        page = populated.query(page=2, page_size=3)
        assert page.total_items == 4
        assert page.total_pages == 2
        assert [r.action for r in page.records] == [AuditAction.CREATE]
        assert page.summary.total == 4

    def test_page_clamped_and_size_checked(self, populated):
        assert populated.query(page=0).page == 1
        with pytest.raises(ValueError):
            populated.query(page_size=0)

    def test_empty_log(self, recorder):
        page = recorder.query()
        assert page.records == []
        assert page.total_pages == 0


class TestListeners:

    def test_listener_notified_and_unsubscribed(self, recorder, accountant):
        seen = []
        unsubscribe = recorder.subscribe(seen.append)
        recorder.record("VOUCHER", "doc-1", "CREATE", None, voucher_snapshot(), accountant)
        unsubscribe()
        recorder.record("VOUCHER", "doc-2", "CREATE", None, voucher_snapshot(), accountant)
        assert [r.entity_id for r in seen] == ["doc-1"]

    def test_failing_listener_does_not_break_recording(self, recorder, accountant, caplog):
        def broken(record):
            raise RuntimeError("boom")

        recorder.subscribe(broken)
        record = recorder.record("VOUCHER", "doc-1", "CREATE", None, voucher_snapshot(), accountant)
        assert recorder.get(record.id) == record
        assert "audit listener failed" in caplog.text
