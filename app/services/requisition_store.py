"""
Requisition store: the owned collection of requisition records.

Two backends share one contract:

- ``InMemoryRequisitionStore`` keeps immutable snapshots in a dict and
  replaces them wholesale on every write,
- ``SqlRequisitionStore`` persists to the SQLAlchemy tables in
  ``app.models.requisition``.

Both return fresh ``RequisitionOut`` copies from every operation, so callers
can never mutate stored state in place. ``locked(id)`` serializes
read-modify-write sequences on one requisition without blocking others;
the SQL backend also holds a row lock, so the guarantee spans processes.
"""
import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError, TransientError, ValidationError
from app.core.locks import KeyedLock
from app.models import requisition as models
from app.schemas.requisition import (
    DRAFT,
    PENDING,
    ApprovalActionOut,
    FileAttachment,
    RequisitionDraft,
    RequisitionOut,
)

logger = logging.getLogger(__name__)

IMMUTABLE_FIELDS = frozenset({"id", "reference_number", "created_by", "created_at"})

UPDATABLE_FIELDS = frozenset(
    {
        "date",
        "subject",
        "summary",
        "tin_number",
        "bin_nid",
        "budget",
        "accounts_person_id",
        "assigned_approvers",
        "status",
        "approval_history",
        "attached_files",
        "remarks",
    }
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_requisition_id() -> str:
    return f"req_{uuid.uuid4().hex}"


def format_reference_number(prefix: str, year: int, sequence: int) -> str:
    """MEMO-2024-003"""
    return f"{prefix}-{year}-{sequence:03d}"


class RequisitionStore:
    """Shared validation and locking for the concrete stores."""

    def __init__(self, clock: Callable[[], datetime] = utcnow, reference_prefix: str = "MEMO"):
        self._clock = clock
        self._reference_prefix = reference_prefix
        self._locks = KeyedLock()

    # -- contract ---------------------------------------------------------

    def create(self, draft: RequisitionDraft) -> RequisitionOut:
        raise NotImplementedError

    def get_by_id(self, requisition_id: str) -> Optional[RequisitionOut]:
        raise NotImplementedError

    def list(
        self,
        created_by: Optional[str] = None,
        assigned_to: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[RequisitionOut]:
        raise NotImplementedError

    def update(self, requisition_id: str, fields: Mapping[str, Any]) -> RequisitionOut:
        raise NotImplementedError

    def locked(self, requisition_id: str):
        """Exclusive access to one requisition for a read-modify-write sequence."""
        return self._locks.hold(("requisition", requisition_id))

    # -- helpers ----------------------------------------------------------

    def _year_lock(self, year: int):
        return self._locks.hold(("reference", year))

    def _reference_for(self, year: int, existing_in_year: int) -> str:
        return format_reference_number(self._reference_prefix, year, existing_in_year + 1)

    @staticmethod
    def _check_draft(draft: RequisitionDraft) -> None:
        if draft.status not in (DRAFT, PENDING):
            raise ValidationError(f"A requisition cannot be created with status {draft.status}")
        if draft.status != DRAFT and not draft.assigned_approvers:
            raise ValidationError("At least one approver is required")

    @staticmethod
    def _merge(current: RequisitionOut, fields: Mapping[str, Any]) -> RequisitionOut:
        """
        Validate a partial update against the current record and return the
        merged record. Nothing is written here.
        """
        for key, value in fields.items():
            if key in IMMUTABLE_FIELDS:
                if value != getattr(current, key):
                    raise ValidationError(f"{key} cannot be changed")
            elif key not in UPDATABLE_FIELDS:
                raise ValidationError(f"Unknown requisition field: {key}")

        data = current.model_dump()
        for key, value in fields.items():
            if key in UPDATABLE_FIELDS:
                data[key] = value
        try:
            merged = RequisitionOut.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e

        history = merged.approval_history
        existing = current.approval_history
        if history[: len(existing)] != existing:
            raise ValidationError("approval_history is append-only")
        approver_ids = [entry.approver_id for entry in history]
        if len(set(approver_ids)) != len(approver_ids):
            raise ConflictError("An approver can only act once on a requisition")

        # detach from anything the caller still holds
        return merged.model_copy(deep=True)


class InMemoryRequisitionStore(RequisitionStore):
    """
    Dict-backed store.

    Records are never mutated in place: writers build a new snapshot and swap
    it into the dict, so lock-free readers always see a whole record.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow, reference_prefix: str = "MEMO"):
        super().__init__(clock, reference_prefix)
        self._records: Dict[str, RequisitionOut] = {}

    def create(self, draft: RequisitionDraft) -> RequisitionOut:
        self._check_draft(draft)
        created_at = self._clock()

        with self._year_lock(created_at.year):
            reference_number = draft.reference_number or self._reference_for(
                created_at.year, self._count_in_year(created_at.year)
            )
            data = draft.model_dump(exclude={"reference_number", "date"})
            data.update(
                id=new_requisition_id(),
                reference_number=reference_number,
                date=draft.date or created_at,
                created_at=created_at,
                approval_history=[],
            )
            record = RequisitionOut.model_validate(data)
            self._records[record.id] = record

        return record.model_copy(deep=True)

    def get_by_id(self, requisition_id: str) -> Optional[RequisitionOut]:
        record = self._records.get(requisition_id)
        return record.model_copy(deep=True) if record is not None else None

    def list(
        self,
        created_by: Optional[str] = None,
        assigned_to: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[RequisitionOut]:
        records = list(self._records.values())
        if created_by:
            records = [r for r in records if r.created_by == created_by]
        if assigned_to:
            records = [r for r in records if assigned_to in r.assigned_approvers]
        if status:
            records = [r for r in records if r.status == status]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return [r.model_copy(deep=True) for r in records]

    def update(self, requisition_id: str, fields: Mapping[str, Any]) -> RequisitionOut:
        with self.locked(requisition_id):
            current = self._records.get(requisition_id)
            if current is None:
                raise NotFoundError("Requisition not found")
            record = self._merge(current, fields)
            self._records[requisition_id] = record
        return record.model_copy(deep=True)

    def _count_in_year(self, year: int) -> int:
        return sum(1 for r in list(self._records.values()) if r.created_at.year == year)


class SqlRequisitionStore(RequisitionStore):
    """
    Store backed by the ``requisitions`` table and its child tables.

    ``locked(id)`` holds a database row lock for the whole block, so the
    read-validate-write of a decision or an edit is atomic across workers,
    not just across threads of one process. Store calls made inside the block
    on the same thread share its session and commit with it.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Callable[[], datetime] = utcnow,
        reference_prefix: str = "MEMO",
    ):
        super().__init__(clock, reference_prefix)
        self._session_factory = session_factory
        self._local = threading.local()

    @contextmanager
    def _scope(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.warning("Integrity error while writing requisition: %s", e.orig)
            raise ConflictError("Conflicting requisition update") from e
        except OperationalError as e:
            db.rollback()
            logger.exception("Requisition database unavailable")
            raise TransientError("Requisition database unavailable") from e
        finally:
            db.close()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = getattr(self._local, "db", None)
        if db is not None:
            # inside locked(): the outer scope commits or rolls back
            yield db
            return
        with self._scope() as db:
            yield db

    @contextmanager
    def locked(self, requisition_id: str):
        with self._locks.hold(("requisition", requisition_id)):
            db = getattr(self._local, "db", None)
            if db is not None:
                _lock_row(db, requisition_id)
                yield
                return

            with self._scope() as db:
                _lock_row(db, requisition_id)
                self._local.db = db
                try:
                    yield
                finally:
                    self._local.db = None

    def create(self, draft: RequisitionDraft) -> RequisitionOut:
        self._check_draft(draft)
        created_at = self._clock()
        year = created_at.year
        self._ensure_sequence(year)

        with self._year_lock(year), self._session() as db:
            _lock_sequence(db, year)
            reference_number = draft.reference_number or self._reference_for(
                year, self._count_in_year(db, year)
            )
            row = models.Requisition(
                id=new_requisition_id(),
                reference_number=reference_number,
                date=draft.date or created_at,
                subject=draft.subject,
                summary=draft.summary,
                tin_number=draft.tin_number,
                bin_nid=draft.bin_nid,
                budget=draft.budget,
                accounts_person_id=draft.accounts_person_id,
                remarks=draft.remarks,
                created_by=draft.created_by,
                status=draft.status,
                created_at=created_at,
            )
            row.approvers = [
                models.RequisitionApprover(approver_id=approver_id, position=i)
                for i, approver_id in enumerate(draft.assigned_approvers)
            ]
            row.attached_files = [_file_row(f, i) for i, f in enumerate(draft.attached_files)]
            db.add(row)
            db.flush()
            return _to_out(row)

    def get_by_id(self, requisition_id: str) -> Optional[RequisitionOut]:
        with self._session() as db:
            row = db.get(models.Requisition, requisition_id)
            return _to_out(row) if row is not None else None

    def list(
        self,
        created_by: Optional[str] = None,
        assigned_to: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[RequisitionOut]:
        with self._session() as db:
            q = db.query(models.Requisition)

            if created_by:
                q = q.filter(models.Requisition.created_by == created_by)
            if assigned_to:
                q = q.filter(
                    models.Requisition.approvers.any(models.RequisitionApprover.approver_id == assigned_to)
                )
            if status:
                q = q.filter(models.Requisition.status == status)

            rows = q.order_by(models.Requisition.created_at.desc()).all()
            return [_to_out(row) for row in rows]

    def update(self, requisition_id: str, fields: Mapping[str, Any]) -> RequisitionOut:
        with self.locked(requisition_id), self._session() as db:
            row = db.get(models.Requisition, requisition_id)
            if row is None:
                raise NotFoundError("Requisition not found")
            merged = self._merge(_to_out(row), fields)

            for key in fields:
                if key in IMMUTABLE_FIELDS:
                    continue
                if key == "assigned_approvers":
                    _sync_approvers(row, merged.assigned_approvers)
                elif key == "approval_history":
                    for entry in merged.approval_history[len(row.approval_history):]:
                        row.approval_history.append(
                            models.ApprovalAction(
                                approver_id=entry.approver_id,
                                action=entry.action,
                                comment=entry.comment,
                                action_date=entry.action_date,
                            )
                        )
                elif key == "attached_files":
                    row.attached_files = [_file_row(f, i) for i, f in enumerate(merged.attached_files)]
                else:
                    setattr(row, key, getattr(merged, key))

            db.flush()
            return _to_out(row)

    def _ensure_sequence(self, year: int) -> None:
        with self._scope() as db:
            if db.get(models.ReferenceSequence, year) is not None:
                return
            db.add(models.ReferenceSequence(year=year, last_value=0))
            try:
                db.flush()
            except IntegrityError:
                # another worker inserted the year first; its row is the one we lock
                db.rollback()

    @staticmethod
    def _count_in_year(db: Session, year: int) -> int:
        start = datetime(year, 1, 1, tzinfo=timezone.utc)
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
        count = (
            db.query(func.count(models.Requisition.id))
            .filter(models.Requisition.created_at >= start)
            .filter(models.Requisition.created_at < end)
            .scalar()
        )
        return count or 0


def _lock_row(db: Session, requisition_id: str) -> None:
    # An UPDATE takes the write lock on every backend; SQLite ignores
    # SELECT ... FOR UPDATE and only locks on the first write.
    db.execute(
        update(models.Requisition)
        .where(models.Requisition.id == requisition_id)
        .values(lock_version=models.Requisition.lock_version + 1)
        .execution_options(synchronize_session=False)
    )


def _lock_sequence(db: Session, year: int) -> None:
    db.execute(
        update(models.ReferenceSequence)
        .where(models.ReferenceSequence.year == year)
        .values(last_value=models.ReferenceSequence.last_value + 1)
        .execution_options(synchronize_session=False)
    )


def _file_row(attachment: FileAttachment, position: int) -> models.FileAttachment:
    return models.FileAttachment(
        id=attachment.id,
        position=position,
        file_name=attachment.file_name,
        file_size=attachment.file_size,
        upload_date=attachment.upload_date,
        file_type=attachment.file_type,
        file_url=attachment.file_url,
    )


def _sync_approvers(row: models.Requisition, approver_ids: List[str]) -> None:
    # reuse rows for approvers that stay so the (requisition, approver)
    # unique constraint never sees a delete and an insert of the same pair
    existing = {a.approver_id: a for a in row.approvers}
    kept = []
    for position, approver_id in enumerate(approver_ids):
        approver = existing.pop(approver_id, None)
        if approver is None:
            approver = models.RequisitionApprover(approver_id=approver_id)
        approver.position = position
        kept.append(approver)
    row.approvers = kept


def _to_out(row: models.Requisition) -> RequisitionOut:
    return RequisitionOut(
        id=row.id,
        reference_number=row.reference_number,
        date=row.date,
        subject=row.subject or "",
        summary=row.summary or "",
        tin_number=row.tin_number or "",
        bin_nid=row.bin_nid or "",
        budget=row.budget,
        accounts_person_id=row.accounts_person_id,
        created_by=row.created_by,
        assigned_approvers=[a.approver_id for a in sorted(row.approvers, key=lambda a: a.position)],
        status=row.status,
        created_at=row.created_at,
        approval_history=[ApprovalActionOut.model_validate(a) for a in row.approval_history],
        attached_files=[FileAttachment.model_validate(f) for f in row.attached_files],
        remarks=row.remarks,
    )
