from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator


class InvitationCreate(BaseModel):
    job_id: str = Field(min_length=1, max_length=64)
    template_id: str = Field(min_length=1, max_length=64)
    candidate_id: Optional[int] = Field(default=None, gt=0)
    candidate_email: Optional[EmailStr] = None
    time_limit_days: Optional[int] = Field(default=None, ge=1, le=30)

    @model_validator(mode="after")
    def _candidate_required(self):
        if self.candidate_id is None and not self.candidate_email:
            raise ValueError("candidate_id or candidate_email is required")
        return self


class InvitationExpire(BaseModel):
    note: Optional[str] = Field(default=None, max_length=500)


class InvitationResponse(BaseModel):
    id: int
    company_id: int
    job_id: str
    template_id: str
    candidate_id: Optional[int] = None
    candidate_email: Optional[str] = None
    status: str
    credit_debited: bool
    credit_amount: int
    status_note: Optional[str] = None
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    # Recruiter-only: link the candidate uses when they have no account
    invite_url: Optional[str] = None


class InvitationListResponse(BaseModel):
    items: List[InvitationResponse]
    total: int
    limit: int
    offset: int


class CandidateInvitationResponse(BaseModel):
    id: int
    job_id: str
    template_id: str
    status: str
    expires_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
