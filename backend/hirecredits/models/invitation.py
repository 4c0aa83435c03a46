import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..platform.database import Base


class InvitationStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    REFUNDED = "REFUNDED"
    EXPIRED = "EXPIRED"


class AssessmentInvitation(Base):
    __tablename__ = "assessment_invitations"
    __table_args__ = (
        Index("ix_assessment_invitations_status_expires", "status", "expires_at"),
        Index("ix_assessment_invitations_company_candidate", "company_id", "candidate_id"),
        Index("ix_assessment_invitations_company_email", "company_id", "candidate_email"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    job_id = Column(String(64), nullable=False, index=True)
    template_id = Column(String(64), nullable=False)
    candidate_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    candidate_email = Column(String, nullable=True)
    invited_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    token = Column(String, unique=True, index=True, nullable=False)
    status = Column(
        Enum(InvitationStatus, native_enum=False, length=16),
        nullable=False,
        default=InvitationStatus.PENDING,
    )
    credit_debited = Column(Boolean, nullable=False, default=False)
    credit_amount = Column(Integer, nullable=False, default=0)
    status_note = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    expired_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    company = relationship("Company", back_populates="invitations")
    candidate = relationship("User", foreign_keys=[candidate_id])
    invited_by = relationship("User", foreign_keys=[invited_by_user_id])
    ledger_entries = relationship("CreditLedgerEntry", back_populates="invitation")
