"""
Approval engine: who may act on a requisition, and what the requisition's
status becomes after they do.

Status rules
------------
- any ``Rejected`` action makes the requisition ``Rejected``;
- otherwise, once every assigned approver has an ``Approved`` action the
  requisition is ``Approved``;
- otherwise it stays ``Pending``.

Approval order is not enforced: any assigned approver may act at any time
while the requisition is ``Pending``. The routing order of
``assigned_approvers`` is only used for display (see ``app.services.timeline``).
"""
import logging
from datetime import datetime
from typing import Callable, Iterable, Sequence

from app.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.schemas.requisition import (
    APPROVED,
    PENDING,
    REJECTED,
    ApprovalActionOut,
    RequisitionOut,
)
from app.services.requisition_store import RequisitionStore, utcnow

logger = logging.getLogger(__name__)

DECISIONS = (APPROVED, REJECTED)


def compute_status(assigned_approvers: Sequence[str], history: Iterable[ApprovalActionOut]) -> str:
    history = list(history)
    if any(entry.action == REJECTED for entry in history):
        return REJECTED

    approved_by = {entry.approver_id for entry in history if entry.action == APPROVED}
    if assigned_approvers and all(approver_id in approved_by for approver_id in assigned_approvers):
        return APPROVED
    return PENDING


class ApprovalEngine:
    def __init__(self, store: RequisitionStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self._clock = clock

    def decide(self, requisition_id: str, approver_id: str, action: str, comment: str) -> RequisitionOut:
        """
        Record ``approver_id``'s decision on a pending requisition.

        The checks run in a fixed order and all of them precede the write, so
        a failed call leaves the requisition untouched:

        - ``NotFoundError``: unknown requisition
        - ``AuthorizationError``: not an assigned approver, or status is not Pending
        - ``ConflictError``: the approver already acted
        - ``ValidationError``: empty comment

        Returns a copy of the updated requisition.
        """
        if action not in DECISIONS:
            raise ValidationError(f"Unknown decision: {action!r}")

        with self.store.locked(requisition_id):
            requisition = self.store.get_by_id(requisition_id)
            if requisition is None:
                raise NotFoundError("Requisition not found")

            try:
                self._authorize(requisition, approver_id)
            except (AuthorizationError, ConflictError) as e:
                logger.warning(
                    "Refused %s on %s by %s: %s",
                    action, requisition.reference_number, approver_id, e.message,
                )
                raise

            comment = (comment or "").strip()
            if not comment:
                raise ValidationError("A comment is required")

            history = requisition.approval_history + [
                ApprovalActionOut(
                    approver_id=approver_id,
                    action=action,
                    comment=comment,
                    action_date=self._clock(),
                )
            ]
            status = compute_status(requisition.assigned_approvers, history)
            updated = self.store.update(
                requisition_id,
                {"approval_history": history, "status": status},
            )

        logger.info(
            "%s %s by %s, status %s -> %s",
            requisition.reference_number, action.lower(), approver_id, requisition.status, updated.status,
        )
        return updated

    def approve(self, requisition_id: str, approver_id: str, comment: str) -> RequisitionOut:
        return self.decide(requisition_id, approver_id, APPROVED, comment)

    def reject(self, requisition_id: str, approver_id: str, comment: str) -> RequisitionOut:
        return self.decide(requisition_id, approver_id, REJECTED, comment)

    @staticmethod
    def can_act(requisition: RequisitionOut, approver_id: str) -> bool:
        """Whether ``decide`` would accept a decision from ``approver_id`` right now."""
        try:
            ApprovalEngine._authorize(requisition, approver_id)
        except (AuthorizationError, ConflictError):
            return False
        return True

    @staticmethod
    def _authorize(requisition: RequisitionOut, approver_id: str) -> None:
        if approver_id not in requisition.assigned_approvers:
            raise AuthorizationError("User is not assigned as approver")
        if requisition.status != PENDING:
            raise AuthorizationError(f"Requisition is {requisition.status} and no longer accepts decisions")
        if requisition.action_by(approver_id) is not None:
            raise ConflictError("User has already taken action on this requisition")
