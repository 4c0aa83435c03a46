from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..platform.database import Base


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    users = relationship("User", back_populates="company")
    credit_balance = relationship(
        "CreditBalance", back_populates="company", uselist=False, cascade="all, delete-orphan"
    )
    credit_ledger_entries = relationship(
        "CreditLedgerEntry", back_populates="company", cascade="all, delete-orphan"
    )
    invitations = relationship("AssessmentInvitation", back_populates="company")
