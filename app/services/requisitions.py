"""
Owner-facing requisition operations: create, edit, submit, and the list and
dashboard views.

The store accepts any update; the editing policy (author only, never after
a terminal decision) is enforced here.
"""
import logging
from typing import List, Optional

from app.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.schemas.requisition import (
    DRAFT,
    PENDING,
    TERMINAL_STATUSES,
    RequisitionCreate,
    RequisitionDraft,
    RequisitionOut,
    RequisitionStatsOut,
    RequisitionUpdate,
)
from app.services.approval_engine import ApprovalEngine
from app.services.requisition_store import RequisitionStore
from app.services.users import UserDirectory

logger = logging.getLogger(__name__)

# required before a requisition can leave Draft
SUBMISSION_FIELDS = ("subject", "summary", "tin_number", "bin_nid")


class RequisitionService:
    def __init__(self, store: RequisitionStore, directory: UserDirectory):
        self.store = store
        self.directory = directory

    def get(self, requisition_id: str) -> RequisitionOut:
        requisition = self.store.get_by_id(requisition_id)
        if requisition is None:
            raise NotFoundError("Requisition not found")
        return requisition

    def create(self, actor_id: str, payload: RequisitionCreate) -> RequisitionOut:
        self._check_approvers(actor_id, payload.assigned_approvers)
        if payload.status == PENDING:
            self._check_submission(payload.model_dump())

        draft = RequisitionDraft(**payload.model_dump(), created_by=actor_id)
        requisition = self.store.create(draft)
        logger.info(
            "Requisition %s created by %s as %s",
            requisition.reference_number, actor_id, requisition.status,
        )
        return requisition

    def edit(self, actor_id: str, requisition_id: str, changes: RequisitionUpdate) -> RequisitionOut:
        fields = changes.model_dump(exclude_unset=True)

        with self.store.locked(requisition_id):
            requisition = self.get(requisition_id)
            self._check_owner(actor_id, requisition)
            if requisition.status in TERMINAL_STATUSES:
                raise AuthorizationError(f"{requisition.status} requisitions cannot be edited")

            if "assigned_approvers" in fields:
                approvers = fields["assigned_approvers"] or []
                if approvers != requisition.assigned_approvers:
                    if requisition.approval_history:
                        raise ConflictError("Approvers cannot be changed after a decision has been recorded")
                    self._check_approvers(actor_id, approvers)
                if requisition.status == PENDING and not approvers:
                    raise ValidationError("At least one approver is required")
                fields["assigned_approvers"] = approvers

            if requisition.status == PENDING:
                self._check_submission({**requisition.model_dump(), **fields})

            updated = self.store.update(requisition_id, fields)

        logger.info("Requisition %s edited by %s (%s)", updated.reference_number, actor_id, ", ".join(sorted(fields)))
        return updated

    def submit(self, actor_id: str, requisition_id: str) -> RequisitionOut:
        """Draft -> Pending."""
        with self.store.locked(requisition_id):
            requisition = self.get(requisition_id)
            self._check_owner(actor_id, requisition)
            if requisition.status != DRAFT:
                raise AuthorizationError(f"Only drafts can be submitted (status is {requisition.status})")
            if not requisition.assigned_approvers:
                raise ValidationError("At least one approver is required")
            self._check_approvers(actor_id, requisition.assigned_approvers)
            self._check_submission(requisition.model_dump())

            updated = self.store.update(requisition_id, {"status": PENDING})

        logger.info("Requisition %s submitted by %s", updated.reference_number, actor_id)
        return updated

    def list_mine(self, actor_id: str, status: Optional[str] = None) -> List[RequisitionOut]:
        return self.store.list(created_by=actor_id, status=status)

    def list_assigned(self, actor_id: str, status: Optional[str] = None) -> List[RequisitionOut]:
        return self.store.list(assigned_to=actor_id, status=status)

    def dashboard_stats(self, actor_id: str) -> RequisitionStatsOut:
        mine = self.store.list(created_by=actor_id)
        counts = {status: 0 for status in ("Draft", "Pending", "Approved", "Rejected")}
        for requisition in mine:
            counts[requisition.status] += 1

        awaiting = [
            r for r in self.store.list(assigned_to=actor_id, status=PENDING)
            if ApprovalEngine.can_act(r, actor_id)
        ]
        return RequisitionStatsOut(
            draft=counts["Draft"],
            pending=counts["Pending"],
            approved=counts["Approved"],
            rejected=counts["Rejected"],
            awaiting_my_decision=len(awaiting),
        )

    @staticmethod
    def _check_owner(actor_id: str, requisition: RequisitionOut) -> None:
        if requisition.created_by != actor_id:
            raise AuthorizationError("Only the author can change this requisition")

    def _check_approvers(self, actor_id: str, approver_ids: List[str]) -> None:
        for approver_id in approver_ids:
            if approver_id == actor_id:
                raise ValidationError("The author cannot approve their own requisition")
            user = self.directory.get_user_by_id(approver_id)
            if user is None:
                raise ValidationError(f"Unknown approver: {approver_id}")
            if not user.active:
                raise ValidationError(f"Approver {approver_id} is inactive")

    @staticmethod
    def _check_submission(data: dict) -> None:
        missing = [name for name in SUBMISSION_FIELDS if not (data.get(name) or "").strip()]
        if missing:
            raise ValidationError(f"Required before submission: {', '.join(missing)}")
