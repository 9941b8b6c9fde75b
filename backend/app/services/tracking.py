from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.models.checkout_event import CheckoutEvent

logger = logging.getLogger(__name__)


def generate_session_id() -> str:
    return uuid.uuid4().hex


def record_checkout_event(
    db: Session,
    *,
    event_type: str,
    session_id: Optional[str] = None,
    user_name: Optional[str] = None,
    user_email: Optional[str] = None,
    payment_method: Optional[str] = None,
    checkout_session_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> CheckoutEvent:
    normalized_type = (event_type or "").strip()
    if not normalized_type:
        raise ValueError("event_type is required")

    ev = CheckoutEvent(
        session_id=(session_id or "").strip() or generate_session_id(),
        event_type=normalized_type,
        user_name=user_name or None,
        user_email=user_email or None,
        payment_method=payment_method or None,
        checkout_session_id=checkout_session_id or None,
        event_metadata=dict(metadata or {}),
    )
    db.add(ev)
    # Let caller decide commit timing; flush so `id`/`session_id` can be returned.
    db.flush()
    return ev


def track_best_effort(db: Session, **fields: Any) -> CheckoutEvent | None:
    """
    Record and commit an event without ever raising.

    Used by side channels (webhook re-emission, checkout bookkeeping) where a
    lost analytics row must not fail the primary action.
    """
    try:
        ev = record_checkout_event(db, **fields)
        db.commit()
        return ev
    except Exception:
        db.rollback()
        logger.exception("Failed to track checkout event %s", fields.get("event_type"))
        return None
