from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.core.config import settings
from app.schemas.checkout_event import CheckoutEventRecordOut


def _validate_days(value: Optional[int]) -> int:
    if value is None:
        return settings.ANALYTICS_DEFAULT_DAYS
    if value < 1 or value > settings.ANALYTICS_MAX_DAYS:
        raise ValueError(f"days must be between 1 and {settings.ANALYTICS_MAX_DAYS}")
    return value


class ConversionAnalyticsIn(BaseModel):
    days: Optional[int] = Field(None, validate_default=True)

    @field_validator("days")
    @staticmethod
    def _check_days(value: Optional[int]) -> int:
        return _validate_days(value)


class FunnelStepOut(BaseModel):
    count: int
    percentage: float


class FunnelStepsOut(BaseModel):
    form_submitted: FunnelStepOut
    payment_modal_opened: FunnelStepOut
    payment_method_selected: FunnelStepOut
    checkout_started: FunnelStepOut
    payment_completed: FunnelStepOut


class FunnelOut(BaseModel):
    total_sessions: int
    steps: FunnelStepsOut
    abandonment_rate: float
    overall_conversion: float


class DailyMetricOut(BaseModel):
    date: str
    events: int
    payment_selections: int
    total_activity: int


class PaymentMethodMetricOut(BaseModel):
    payment_method: str
    count: int
    percentage: float


class ConversionAnalyticsOut(BaseModel):
    period: str
    funnel: FunnelOut
    daily: list[DailyMetricOut]
    payment_methods: list[PaymentMethodMetricOut]
    total_events: int
    generated_at: datetime


class GranularAnalyticsIn(BaseModel):
    days: Optional[int] = Field(None, validate_default=True)
    limit: int = Field(100, ge=1, le=1000)

    @field_validator("days")
    @staticmethod
    def _check_days(value: Optional[int]) -> int:
        return _validate_days(value)


class GranularStepOut(BaseModel):
    event_type: str
    label: str
    count: int
    percentage: float


class GranularAnalyticsOut(BaseModel):
    period: str
    total_sessions: int
    total_events: int
    pix_conversions: int
    pix_conversion_rate: float
    form_interactions: int
    avg_time_to_action_seconds: float
    steps: list[GranularStepOut]
    recent_events: list[CheckoutEventRecordOut]
    generated_at: datetime
