from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from app.core.base import Base


class CheckoutEventType:
    """Funnel milestones emitted by the landing page and the Stripe webhook.

    The column is an open enum: unknown UI-interaction types are stored as-is.
    """

    PAGE_LOADED = "page_loaded"
    FORM_FIELD_FOCUSED = "form_field_focused"
    FORM_SUBMITTED = "form_submitted"
    PAYMENT_TYPE_SELECTED = "payment_type_selected"
    PAYMENT_MODAL_OPENED = "payment_modal_opened"
    PAYMENT_METHOD_SELECTED = "payment_method_selected"
    CHECKOUT_STARTED = "checkout_started"
    REDIRECTED_TO_STRIPE = "redirected_to_stripe"
    CHECKOUT_SESSION_CREATED = "checkout_session_created"
    PAYMENT_COMPLETED = "payment_completed"
    INSTALLMENT_PAYMENT_COMPLETED = "installment_payment_completed"
    CHECKOUT_EXPIRED = "checkout_expired"
    PIX_MODAL_OPENED = "pix_modal_opened"
    PIX_CODE_COPIED = "pix_code_copied"
    PIX_PAYMENT_CONFIRMED = "pix_payment_confirmed"
    PIX_MODAL_CLOSED = "pix_modal_closed"
    CHECKOUT_ERROR = "checkout_error"
    PAYMENT_ERROR = "payment_error"


class CheckoutEvent(Base):
    __tablename__ = "checkout_events"

    id = Column(Integer, primary_key=True, index=True)

    session_id = Column(String(64), nullable=False, index=True)
    event_type = Column(String(64), nullable=False, index=True)

    user_name = Column(String(255), nullable=True)
    user_email = Column(String(255), nullable=True)
    payment_method = Column(String(64), nullable=True)
    checkout_session_id = Column(String(255), nullable=True)

    # "metadata" is reserved on declarative classes; keep the column name, rename the attribute.
    event_metadata = Column("metadata", JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
