from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, field_validator


class SubscriptionStatusIn(BaseModel):
    email: str

    @field_validator("email")
    @staticmethod
    def _validate_email(value: str) -> str:
        normalized = (value or "").strip().lower()
        if not normalized:
            raise ValueError("email is required")
        return normalized


class SubscriptionDetailOut(BaseModel):
    id: str
    status: str
    current_period_start: Optional[str] = None
    current_period_end: Optional[str] = None
    cancel_at_period_end: bool = False
    payments_made: int
    payments_remaining: int
    total_amount_paid: int
    next_payment_date: Optional[str] = None
    metadata: Dict[str, Any] = {}


class SubscriptionStatusOut(BaseModel):
    has_subscription: bool
    message: Optional[str] = None
    subscription: Optional[SubscriptionDetailOut] = None


class InstallmentActionOut(BaseModel):
    subscription_id: str
    action: str  # canceled | active | error
    payments_made: Optional[int] = None
    payments_remaining: Optional[int] = None
    customer: Optional[str] = None
    error: Optional[str] = None


class ManageInstallmentsOut(BaseModel):
    success: bool = True
    processed: int
    results: list[InstallmentActionOut]
