from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base


class Requisition(Base):
    __tablename__ = "requisitions"

    # "req_<hex>", generated by the store
    id = Column(String, primary_key=True, index=True)

    # "MEMO-2024-003"; unique per year only
    reference_number = Column(String, nullable=False, index=True)

    date = Column(DateTime(timezone=True), nullable=True)
    subject = Column(String, nullable=False, default="")
    summary = Column(Text, nullable=False, default="")
    tin_number = Column(String, nullable=False, default="")
    bin_nid = Column(String, nullable=False, default="")
    budget = Column(Numeric(14, 2), nullable=True)
    accounts_person_id = Column(String, nullable=True)
    remarks = Column(Text, nullable=True)

    created_by = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default="Draft", index=True)  # Draft/Pending/Approved/Rejected

    # set by the store's clock, not the database, so reference numbers follow it
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    # bumped by every locked write; the UPDATE is what takes the row lock
    lock_version = Column(Integer, nullable=False, default=0, server_default="0")

    approvers = relationship(
        "RequisitionApprover",
        back_populates="requisition",
        cascade="all, delete-orphan",
        order_by="RequisitionApprover.position",
        lazy="selectin",
    )
    approval_history = relationship(
        "ApprovalAction",
        back_populates="requisition",
        cascade="all, delete-orphan",
        order_by="ApprovalAction.id",
        lazy="selectin",
    )
    attached_files = relationship(
        "FileAttachment",
        back_populates="requisition",
        cascade="all, delete-orphan",
        order_by="FileAttachment.position",
        lazy="selectin",
    )


class RequisitionApprover(Base):
    __tablename__ = "requisition_approvers"
    __table_args__ = (UniqueConstraint("requisition_id", "approver_id", name="uq_requisition_approver"),)

    id = Column(Integer, primary_key=True)
    requisition_id = Column(String, ForeignKey("requisitions.id", ondelete="CASCADE"), nullable=False, index=True)
    approver_id = Column(String, nullable=False, index=True)
    position = Column(Integer, nullable=False)  # routing order

    requisition = relationship("Requisition", back_populates="approvers")


class ApprovalAction(Base):
    __tablename__ = "approval_actions"
    # one decision per approver per requisition
    __table_args__ = (UniqueConstraint("requisition_id", "approver_id", name="uq_approval_action_approver"),)

    # autoincrement id doubles as the chronological order
    id = Column(Integer, primary_key=True)
    requisition_id = Column(String, ForeignKey("requisitions.id", ondelete="CASCADE"), nullable=False, index=True)
    approver_id = Column(String, nullable=False, index=True)
    action = Column(String, nullable=False)  # Approved/Rejected
    comment = Column(Text, nullable=False)
    action_date = Column(DateTime(timezone=True), nullable=False)

    requisition = relationship("Requisition", back_populates="approval_history")


class FileAttachment(Base):
    __tablename__ = "file_attachments"

    pk = Column(Integer, primary_key=True)
    # client-supplied attachment id
    id = Column(String, nullable=False, index=True)
    requisition_id = Column(String, ForeignKey("requisitions.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    file_name = Column(String, nullable=False)
    file_size = Column(BigInteger, nullable=False, default=0)
    upload_date = Column(DateTime(timezone=True), nullable=False)
    file_type = Column(String, nullable=True)
    file_url = Column(String, nullable=True)

    requisition = relationship("Requisition", back_populates="attached_files")


class ReferenceSequence(Base):
    """Per-year numbering row; writers lock it before counting the year."""

    __tablename__ = "reference_sequences"

    year = Column(Integer, primary_key=True, autoincrement=False)
    last_value = Column(Integer, nullable=False, default=0)
