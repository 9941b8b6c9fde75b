from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.schemas.checkout_event import MAX_SESSION_ID_LENGTH

PAYMENT_MODES = {"one_time", "installment"}
PAYMENT_METHODS = {"card", "pix"}


def _required_text(value: str | None, field: str) -> str:
    normalized = (value or "").strip()
    if not normalized:
        raise ValueError(f"{field} is required")
    return normalized


def _optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


class CreatePaymentIn(BaseModel):
    name: str = Field(max_length=255)
    email: str = Field(max_length=255)
    cpf: Optional[str] = Field(default=None, max_length=20)
    telefone: Optional[str] = Field(default=None, max_length=50)
    payment_mode: str = "one_time"
    payment_method: str = "card"
    session_id: Optional[str] = Field(default=None, max_length=MAX_SESSION_ID_LENGTH)

    @field_validator("name")
    @staticmethod
    def _validate_name(value: str) -> str:
        return _required_text(value, "name")

    @field_validator("email")
    @staticmethod
    def _validate_email(value: str) -> str:
        return _required_text(value, "email").lower()

    @field_validator("cpf", "telefone", "session_id")
    @staticmethod
    def _strip_optional(value: str | None) -> str | None:
        return _optional_text(value)

    @field_validator("payment_mode")
    @staticmethod
    def _validate_mode(value: str) -> str:
        normalized = (value or "one_time").strip().lower()
        if normalized not in PAYMENT_MODES:
            raise ValueError("payment_mode must be 'one_time' or 'installment'")
        return normalized

    @field_validator("payment_method")
    @staticmethod
    def _validate_method(value: str) -> str:
        normalized = (value or "card").strip().lower()
        if normalized not in PAYMENT_METHODS:
            raise ValueError("payment_method must be 'card' or 'pix'")
        return normalized

    @model_validator(mode="after")
    def _pix_is_one_time_only(self) -> "CreatePaymentIn":
        if self.payment_method == "pix" and self.payment_mode == "installment":
            raise ValueError("PIX is only available for one-time payments")
        return self


class CreatePaymentOut(BaseModel):
    url: str
    checkout_session_id: str
    tracking_session_id: str


class LogPaymentIn(BaseModel):
    name: str = Field(max_length=255)
    email: str = Field(max_length=255)
    payment_method: str = Field(max_length=64)
    telefone: Optional[str] = Field(default=None, max_length=50)
    cpf: Optional[str] = Field(default=None, max_length=20)
    pagou_pix: Optional[bool] = None

    @field_validator("name")
    @staticmethod
    def _validate_name(value: str) -> str:
        return _required_text(value, "name")

    @field_validator("email")
    @staticmethod
    def _validate_email(value: str) -> str:
        return _required_text(value, "email")

    @field_validator("payment_method")
    @staticmethod
    def _validate_payment_method(value: str) -> str:
        return _required_text(value, "payment_method")

    @field_validator("telefone", "cpf")
    @staticmethod
    def _strip_optional(value: str | None) -> str | None:
        return _optional_text(value)


class LogPaymentOut(BaseModel):
    success: bool = True
    id: int
