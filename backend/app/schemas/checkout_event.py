from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_EVENT_TYPE_LENGTH = 64
MAX_SESSION_ID_LENGTH = 64


class CheckoutEventIn(BaseModel):
    session_id: Optional[str] = Field(default=None, max_length=MAX_SESSION_ID_LENGTH)
    event_type: str
    user_name: Optional[str] = Field(default=None, max_length=255)
    user_email: Optional[str] = Field(default=None, max_length=255)
    payment_method: Optional[str] = Field(default=None, max_length=64)
    checkout_session_id: Optional[str] = Field(default=None, max_length=255)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("event_type")
    @staticmethod
    def _validate_event_type(value: str) -> str:
        normalized = (value or "").strip()
        if not normalized:
            raise ValueError("event_type is required")
        if len(normalized) > MAX_EVENT_TYPE_LENGTH:
            raise ValueError(f"event_type must be at most {MAX_EVENT_TYPE_LENGTH} characters")
        return normalized

    @field_validator("metadata", mode="before")
    @staticmethod
    def _default_metadata(value: Any) -> Any:
        return {} if value is None else value


class CheckoutEventOut(BaseModel):
    success: bool = True
    event_id: int
    session_id: str


class CheckoutEventRecordOut(BaseModel):
    id: int
    session_id: str
    event_type: str
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    payment_method: Optional[str] = None
    checkout_session_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="event_metadata")
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
