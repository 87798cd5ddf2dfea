from pydantic import BaseModel, Field, field_validator
from datetime import datetime, timezone
from typing import List, Literal, Optional
from decimal import Decimal

DRAFT = "Draft"
PENDING = "Pending"
APPROVED = "Approved"
REJECTED = "Rejected"

TERMINAL_STATUSES = (APPROVED, REJECTED)

RequisitionStatus = Literal["Draft", "Pending", "Approved", "Rejected"]
ApprovalDecision = Literal["Approved", "Rejected"]


def as_utc(v):
    """SQLite hands back naive datetimes; treat them as UTC."""
    if isinstance(v, datetime) and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


def _strip(v):
    if isinstance(v, str):
        return v.strip()
    return v


class FileAttachment(BaseModel):
    id: str
    file_name: str
    file_size: int = 0          # bytes
    upload_date: datetime
    file_type: Optional[str] = None
    file_url: Optional[str] = None

    @field_validator("upload_date")
    @classmethod
    def normalize_upload_date(cls, v):
        return as_utc(v)

    class Config:
        from_attributes = True


class ApprovalActionOut(BaseModel):
    approver_id: str
    action: ApprovalDecision
    comment: str
    action_date: datetime

    @field_validator("action_date")
    @classmethod
    def normalize_action_date(cls, v):
        return as_utc(v)

    class Config:
        from_attributes = True


class RequisitionCreate(BaseModel):
    reference_number: Optional[str] = None   # generated when absent
    date: Optional[datetime] = None          # memo date, defaults to creation time
    subject: str = ""
    summary: str = ""
    tin_number: str = ""
    bin_nid: str = ""
    budget: Optional[Decimal] = None
    accounts_person_id: Optional[str] = None
    assigned_approvers: List[str] = Field(default_factory=list)
    status: RequisitionStatus = PENDING      # Draft or Pending at creation
    attached_files: List[FileAttachment] = Field(default_factory=list)
    remarks: Optional[str] = None

    @field_validator("reference_number", "subject", "summary", "tin_number", "bin_nid", mode="before")
    @classmethod
    def strip_strings(cls, v):
        return _strip(v)

    @field_validator("assigned_approvers")
    @classmethod
    def distinct_approvers(cls, v):
        if len(set(v)) != len(v):
            raise ValueError("assigned_approvers must not contain duplicates")
        return v


class RequisitionDraft(RequisitionCreate):
    """What the store receives: the submitted fields plus the author."""
    created_by: str


class RequisitionUpdate(BaseModel):
    date: Optional[datetime] = None
    subject: Optional[str] = None
    summary: Optional[str] = None
    tin_number: Optional[str] = None
    bin_nid: Optional[str] = None
    budget: Optional[Decimal] = None
    accounts_person_id: Optional[str] = None
    assigned_approvers: Optional[List[str]] = None
    attached_files: Optional[List[FileAttachment]] = None
    remarks: Optional[str] = None

    @field_validator("subject", "summary", "tin_number", "bin_nid", mode="before")
    @classmethod
    def strip_strings(cls, v):
        return _strip(v)

    @field_validator("assigned_approvers")
    @classmethod
    def distinct_approvers(cls, v):
        if v is not None and len(set(v)) != len(v):
            raise ValueError("assigned_approvers must not contain duplicates")
        return v


class RequisitionOut(BaseModel):
    id: str
    reference_number: str
    date: Optional[datetime] = None
    subject: str = ""
    summary: str = ""
    tin_number: str = ""
    bin_nid: str = ""
    budget: Optional[Decimal] = None
    accounts_person_id: Optional[str] = None
    created_by: str
    assigned_approvers: List[str] = Field(default_factory=list)
    status: RequisitionStatus
    created_at: datetime
    approval_history: List[ApprovalActionOut] = Field(default_factory=list)
    attached_files: List[FileAttachment] = Field(default_factory=list)
    remarks: Optional[str] = None

    @field_validator("date", "created_at")
    @classmethod
    def normalize_datetimes(cls, v):
        return as_utc(v)

    def action_by(self, approver_id: str) -> Optional[ApprovalActionOut]:
        for entry in self.approval_history:
            if entry.approver_id == approver_id:
                return entry
        return None


class DecisionIn(BaseModel):
    comment: str = ""

    @field_validator("comment", mode="before")
    @classmethod
    def strip_comment(cls, v):
        return _strip(v)


class ApproverTimelineEntry(BaseModel):
    approver_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    state: Literal["Approved", "Rejected", "In Progress", "Waiting"]
    comment: Optional[str] = None
    action_date: Optional[datetime] = None


class RequisitionStatsOut(BaseModel):
    draft: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    awaiting_my_decision: int = 0
