"""
Tests for the requisition store (both backends).
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.schemas.requisition import ApprovalActionOut, FileAttachment


class TestCreate:
    def test_assigns_identity_and_defaults(self, store, make_draft, clock):
        requisition = store.create(make_draft())

        assert requisition.id.startswith("req_")
        assert requisition.created_at == clock.now
        assert requisition.date == clock.now
        assert requisition.approval_history == []
        assert requisition.attached_files == []
        assert requisition.status == "Pending"
        assert requisition.assigned_approvers == ["2", "3"]

    def test_ids_are_unique(self, store, make_draft):
        ids = {store.create(make_draft()).id for _ in range(5)}
        assert len(ids) == 5

    def test_draft_without_approvers(self, store, make_draft):
        requisition = store.create(make_draft(status="Draft", assigned_approvers=[]))
        assert requisition.status == "Draft"
        assert requisition.assigned_approvers == []

    def test_pending_without_approvers_fails(self, store, make_draft):
        with pytest.raises(ValidationError):
            store.create(make_draft(status="Pending", assigned_approvers=[]))
        assert store.list() == []

    @pytest.mark.parametrize("status", ["Approved", "Rejected"])
    def test_terminal_status_at_creation_fails(self, store, make_draft, status):
        with pytest.raises(ValidationError):
            store.create(make_draft(status=status))

    def test_keeps_supplied_fields(self, store, make_draft):
        attachment = FileAttachment(
            id="f1",
            file_name="quote.pdf",
            file_size=20480,
            upload_date=datetime(2024, 2, 28, tzinfo=timezone.utc),
            file_type="application/pdf",
        )
        requisition = store.create(
            make_draft(
                budget=Decimal("1250.50"),
                accounts_person_id="4",
                remarks="urgent",
                attached_files=[attachment],
                date=datetime(2024, 2, 27, tzinfo=timezone.utc),
            )
        )

        assert requisition.budget == Decimal("1250.50")
        assert requisition.accounts_person_id == "4"
        assert requisition.remarks == "urgent"
        assert requisition.date == datetime(2024, 2, 27, tzinfo=timezone.utc)
        assert [f.file_name for f in requisition.attached_files] == ["quote.pdf"]
        assert requisition.attached_files[0].file_size == 20480


class TestReferenceNumbers:
    def test_sequence_within_year(self, store, make_draft, clock):
        store.create(make_draft())
        store.create(make_draft())
        third = store.create(make_draft())
        assert third.reference_number == "MEMO-2024-003"

    def test_new_year_restarts_sequence(self, store, make_draft, clock):
        store.create(make_draft())
        store.create(make_draft())

        clock.set(datetime(2025, 1, 2, tzinfo=timezone.utc))
        first_2025 = store.create(make_draft())
        assert first_2025.reference_number == "MEMO-2025-001"

    def test_explicit_reference_is_kept(self, store, make_draft):
        requisition = store.create(make_draft(reference_number="MEMO-2024-042"))
        assert requisition.reference_number == "MEMO-2024-042"

    def test_explicit_reference_counts_toward_year(self, store, make_draft):
        store.create(make_draft(reference_number="LEGACY-1"))
        assert store.create(make_draft()).reference_number == "MEMO-2024-002"


class TestReads:
    def test_get_unknown_returns_none(self, store):
        assert store.get_by_id("req_missing") is None

    def test_reads_do_not_alias(self, store, pending):
        copy = store.get_by_id(pending.id)
        copy.assigned_approvers.append("4")
        copy.subject = "changed"
        copy.approval_history.append(
            ApprovalActionOut(
                approver_id="2",
                action="Approved",
                comment="sneaky",
                action_date=datetime.now(timezone.utc),
            )
        )

        fresh = store.get_by_id(pending.id)
        assert fresh.assigned_approvers == ["2", "3"]
        assert fresh.subject == "Office chairs"
        assert fresh.approval_history == []

    def test_created_record_does_not_alias(self, store, make_draft):
        created = store.create(make_draft())
        created.assigned_approvers.clear()
        assert store.get_by_id(created.id).assigned_approvers == ["2", "3"]

    def test_list_filters(self, store, make_draft, clock):
        a = store.create(make_draft(created_by="1", assigned_approvers=["2"]))
        clock.advance(minutes=1)
        b = store.create(make_draft(created_by="2", assigned_approvers=["3", "4"]))
        clock.advance(minutes=1)
        c = store.create(make_draft(created_by="1", status="Draft", assigned_approvers=[]))

        assert [r.id for r in store.list()] == [c.id, b.id, a.id]
        assert [r.id for r in store.list(created_by="1")] == [c.id, a.id]
        assert [r.id for r in store.list(assigned_to="4")] == [b.id]
        assert [r.id for r in store.list(status="Draft")] == [c.id]
        assert [r.id for r in store.list(created_by="1", status="Pending")] == [a.id]

    def test_list_returns_copies(self, store, pending):
        store.list()[0].assigned_approvers.append("4")
        assert store.get_by_id(pending.id).assigned_approvers == ["2", "3"]


class TestUpdate:
    def test_merges_fields(self, store, pending):
        updated = store.update(pending.id, {"subject": "Standing desks", "remarks": "revised"})
        assert updated.subject == "Standing desks"
        assert updated.remarks == "revised"
        assert updated.summary == pending.summary
        assert store.get_by_id(pending.id).subject == "Standing desks"

    def test_reorders_approvers(self, store, pending):
        updated = store.update(pending.id, {"assigned_approvers": ["3", "2", "4"]})
        assert updated.assigned_approvers == ["3", "2", "4"]
        assert store.get_by_id(pending.id).assigned_approvers == ["3", "2", "4"]

    def test_unknown_id(self, store):
        with pytest.raises(NotFoundError):
            store.update("req_missing", {"subject": "x"})

    @pytest.mark.parametrize("field, value", [
        ("id", "req_other"),
        ("reference_number", "MEMO-1999-001"),
        ("created_by", "2"),
    ])
    def test_immutable_fields(self, store, pending, field, value):
        with pytest.raises(ValidationError):
            store.update(pending.id, {field: value})

    def test_unknown_field(self, store, pending):
        with pytest.raises(ValidationError):
            store.update(pending.id, {"priority": "High"})

    def test_invalid_status(self, store, pending):
        with pytest.raises(ValidationError):
            store.update(pending.id, {"status": "Archived"})
        assert store.get_by_id(pending.id).status == "Pending"

    def test_history_is_append_only(self, store, pending, clock):
        first = ApprovalActionOut(approver_id="2", action="Approved", comment="ok", action_date=clock.now)
        store.update(pending.id, {"approval_history": [first]})

        with pytest.raises(ValidationError):
            store.update(pending.id, {"approval_history": []})

        other = ApprovalActionOut(approver_id="3", action="Approved", comment="ok", action_date=clock.now)
        with pytest.raises(ValidationError):
            store.update(pending.id, {"approval_history": [other]})

        assert [a.approver_id for a in store.get_by_id(pending.id).approval_history] == ["2"]

    def test_history_rejects_second_entry_for_approver(self, store, pending, clock):
        first = ApprovalActionOut(approver_id="2", action="Approved", comment="ok", action_date=clock.now)
        again = ApprovalActionOut(approver_id="2", action="Rejected", comment="no", action_date=clock.now)
        store.update(pending.id, {"approval_history": [first]})

        with pytest.raises(ConflictError):
            store.update(pending.id, {"approval_history": [first, again]})
        assert len(store.get_by_id(pending.id).approval_history) == 1

    def test_replaces_attachments(self, store, pending, clock):
        files = [
            FileAttachment(id="f1", file_name="a.pdf", file_size=1, upload_date=clock.now),
            FileAttachment(id="f2", file_name="b.png", file_size=2, upload_date=clock.now, file_type="image/png"),
        ]
        store.update(pending.id, {"attached_files": files})
        updated = store.update(pending.id, {"attached_files": files[1:]})
        assert [f.id for f in updated.attached_files] == ["f2"]
        assert [f.id for f in store.get_by_id(pending.id).attached_files] == ["f2"]
