from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from app.api.deps import get_engine, get_service
from app.core.auth import get_current_user, CurrentUser
from app.schemas.requisition import APPROVED, REJECTED, DecisionIn, RequisitionOut, RequisitionStatus
from app.services.approval_engine import ApprovalEngine
from app.services.requisitions import RequisitionService

router = APIRouter(prefix="/approvals", tags=["approvals"])


@router.get("", response_model=List[RequisitionOut])
def my_approvals(
    service: RequisitionService = Depends(get_service),
    current_user: CurrentUser = Depends(get_current_user),
    status: Optional[RequisitionStatus] = Query(None),
    actionable: Optional[bool] = Query(None, description="only requisitions awaiting my decision"),
):
    requisitions = service.list_assigned(current_user.id, status=status)
    if actionable is True:
        requisitions = [r for r in requisitions if ApprovalEngine.can_act(r, current_user.id)]
    return requisitions


@router.post("/{requisition_id}/approve", response_model=RequisitionOut)
def approve_requisition(
    requisition_id: str,
    payload: DecisionIn,
    engine: ApprovalEngine = Depends(get_engine),
    current_user: CurrentUser = Depends(get_current_user),
):
    return engine.decide(requisition_id, current_user.id, APPROVED, payload.comment)


@router.post("/{requisition_id}/reject", response_model=RequisitionOut)
def reject_requisition(
    requisition_id: str,
    payload: DecisionIn,
    engine: ApprovalEngine = Depends(get_engine),
    current_user: CurrentUser = Depends(get_current_user),
):
    return engine.decide(requisition_id, current_user.id, REJECTED, payload.comment)
