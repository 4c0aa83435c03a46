"""Domain errors for the credit ledger and invitation lifecycle.

Routes do not catch these individually; ``main.py`` maps them to HTTP
responses through exception handlers.
"""

from __future__ import annotations


class CreditsError(Exception):
    """Base class for ledger and invitation errors."""

    status_code = 400
    code = "credits_error"

    def __init__(self, message: str | None = None):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class NotFound(CreditsError):
    """Referenced company or invitation does not exist."""

    status_code = 404
    code = "not_found"


class InsufficientCredits(CreditsError):
    """Not enough credits. Buy more credits to send this assessment."""

    status_code = 402
    code = "insufficient_credits"

    def __init__(self, message: str | None = None, *, balance: int | None = None, required: int | None = None):
        super().__init__(message)
        self.balance = balance
        self.required = required

    def to_detail(self) -> dict:
        detail = super().to_detail()
        if self.balance is not None:
            detail["balance"] = self.balance
        if self.required is not None:
            detail["required"] = self.required
        return detail


class InvalidStateTransition(CreditsError):
    """The invitation is not in a state that allows this action."""

    status_code = 409
    code = "invalid_state_transition"

    def __init__(self, message: str | None = None, *, current: str | None = None, target: str | None = None):
        if message is None and current and target:
            message = f"Cannot move invitation from {current} to {target}"
        super().__init__(message)
        self.current = current
        self.target = target


class TransientStoreError(CreditsError):
    """The data store is temporarily unavailable. Please retry."""

    status_code = 503
    code = "store_unavailable"
