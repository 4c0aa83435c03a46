import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..platform.database import Base


class LedgerReason(str, enum.Enum):
    PURCHASE = "PURCHASE"
    INVITE_CONSUMED = "INVITE_CONSUMED"
    INVITE_REFUNDED = "INVITE_REFUNDED"
    ADJUSTMENT = "ADJUSTMENT"


class CreditLedgerEntry(Base):
    """Append-only record of a balance change. Never updated after insert."""

    __tablename__ = "credit_ledger_entries"
    __table_args__ = (
        # At most one consume and one refund per invitation.
        UniqueConstraint("related_invitation_id", "reason", name="uq_credit_ledger_invitation_reason"),
        Index("ix_credit_ledger_company_created", "company_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), index=True, nullable=False)
    amount = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    reason = Column(Enum(LedgerReason, native_enum=False, length=32), nullable=False)
    related_invitation_id = Column(Integer, ForeignKey("assessment_invitations.id"), index=True, nullable=True)
    external_ref = Column(String, nullable=True, unique=True, index=True)
    note = Column(String, nullable=True)
    entry_metadata = Column("metadata", JSON, nullable=True)
    created_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    company = relationship("Company", back_populates="credit_ledger_entries")
    invitation = relationship("AssessmentInvitation", back_populates="ledger_entries")
