from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from app.api.deps import get_directory, get_service, get_store
from app.core.auth import get_current_user, require_role, CurrentUser
from app.core.errors import NotFoundError
from app.schemas.requisition import (
    ApproverTimelineEntry,
    RequisitionCreate,
    RequisitionOut,
    RequisitionStatsOut,
    RequisitionStatus,
    RequisitionUpdate,
)
from app.services.requisition_store import RequisitionStore
from app.services.requisitions import RequisitionService
from app.services.timeline import build_approver_timeline
from app.services.users import UserDirectory

router = APIRouter(prefix="/requisitions", tags=["requisitions"])


@router.get("", response_model=List[RequisitionOut])
def list_requisitions(
    store: RequisitionStore = Depends(get_store),
    current_user: CurrentUser = Depends(require_role("admin")),
    created_by: Optional[str] = Query(None),
    assigned_to: Optional[str] = Query(None),
    status: Optional[RequisitionStatus] = Query(None),
):
    return store.list(created_by=created_by, assigned_to=assigned_to, status=status)


@router.get("/mine", response_model=List[RequisitionOut])
def my_requisitions(
    service: RequisitionService = Depends(get_service),
    current_user: CurrentUser = Depends(get_current_user),
    status: Optional[RequisitionStatus] = Query(None),
):
    return service.list_mine(current_user.id, status=status)


@router.get("/stats", response_model=RequisitionStatsOut)
def requisition_stats(
    service: RequisitionService = Depends(get_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    return service.dashboard_stats(current_user.id)


@router.get("/{requisition_id}", response_model=RequisitionOut)
def get_requisition(
    requisition_id: str,
    store: RequisitionStore = Depends(get_store),
    current_user: CurrentUser = Depends(get_current_user),
):
    requisition = store.get_by_id(requisition_id)
    if requisition is None:
        raise NotFoundError("Requisition not found")
    return requisition


@router.get("/{requisition_id}/timeline", response_model=List[ApproverTimelineEntry])
def requisition_timeline(
    requisition_id: str,
    service: RequisitionService = Depends(get_service),
    directory: UserDirectory = Depends(get_directory),
    current_user: CurrentUser = Depends(get_current_user),
):
    return build_approver_timeline(service.get(requisition_id), directory)


@router.post("", response_model=RequisitionOut, status_code=201)
def create_requisition(
    payload: RequisitionCreate,
    service: RequisitionService = Depends(get_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    return service.create(current_user.id, payload)


@router.patch("/{requisition_id}", response_model=RequisitionOut)
def update_requisition(
    requisition_id: str,
    payload: RequisitionUpdate,
    service: RequisitionService = Depends(get_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    return service.edit(current_user.id, requisition_id, payload)


@router.post("/{requisition_id}/submit", response_model=RequisitionOut)
def submit_requisition(
    requisition_id: str,
    service: RequisitionService = Depends(get_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    return service.submit(current_user.id, requisition_id)
