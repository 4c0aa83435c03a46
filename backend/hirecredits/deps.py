"""
Shared dependencies. Re-exports get_current_user from FastAPI-Users and adds role checks.
"""

from fastapi import Depends, HTTPException

from .api.v1.users_fastapi import current_active_user as get_current_user
from .models.user import User, UserRole


def require_recruiter(current_user: User = Depends(get_current_user)) -> User:
    """Recruiter (or admin) acting on behalf of a company."""
    if not (current_user.is_recruiter or current_user.is_admin):
        raise HTTPException(status_code=403, detail="Recruiter access required")
    if current_user.company_id is None:
        raise HTTPException(status_code=403, detail="No company linked to this account")
    return current_user


def require_billing_access(current_user: User = Depends(get_current_user)) -> User:
    """Recruiters read their own company's credits; admins read any company's."""
    if current_user.is_admin:
        return current_user
    return require_recruiter(current_user)


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return current_user


def require_candidate(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != UserRole.CANDIDATE.value:
        raise HTTPException(status_code=403, detail="Candidate access required")
    return current_user


__all__ = ["get_current_user", "require_recruiter", "require_billing_access", "require_admin", "require_candidate"]
