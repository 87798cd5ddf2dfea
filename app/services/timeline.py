from typing import List

from app.schemas.requisition import APPROVED, PENDING, ApproverTimelineEntry, RequisitionOut
from app.services.users import UserDirectory


def build_approver_timeline(requisition: RequisitionOut, directory: UserDirectory) -> List[ApproverTimelineEntry]:
    """
    One entry per assigned approver, in routing order.

    An approver who has not acted is shown "In Progress" while the
    requisition is Pending and they are first in line or the approver before
    them has approved; otherwise "Waiting". Display only: the approval engine
    accepts decisions in any order.
    """
    entries = []
    previous_approved = True
    for approver_id in requisition.assigned_approvers:
        user = directory.get_user_by_id(approver_id)
        action = requisition.action_by(approver_id)

        if action is not None:
            state = action.action
        elif requisition.status == PENDING and previous_approved:
            state = "In Progress"
        else:
            state = "Waiting"

        entries.append(
            ApproverTimelineEntry(
                approver_id=approver_id,
                name=user.name if user else None,
                email=user.email if user else None,
                state=state,
                comment=action.comment if action else None,
                action_date=action.action_date if action else None,
            )
        )
        previous_approved = action is not None and action.action == APPROVED
    return entries
