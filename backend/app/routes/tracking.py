import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.rate_limit import limiter
from app.schemas.checkout_event import CheckoutEventIn, CheckoutEventOut
from app.services.tracking import record_checkout_event

router = APIRouter(tags=["tracking"])

logger = logging.getLogger(__name__)


def _maybe_limit(rule: str):
    if not settings.ENABLE_RATE_LIMITING:
        def passthrough(fn):
            return fn
        return passthrough
    return limiter.limit(rule)


@router.post("/track-checkout-event", response_model=CheckoutEventOut)
@_maybe_limit(settings.TRACKING_RATE_LIMIT)
def track_checkout_event(
    request: Request,
    payload: CheckoutEventIn,
    db: Session = Depends(get_db),
) -> CheckoutEventOut:
    try:
        ev = record_checkout_event(db, **payload.model_dump())
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to persist checkout event %s", payload.event_type)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Database error: {exc}",
        ) from exc

    logger.info("Checkout event created: id=%s type=%s session=%s", ev.id, ev.event_type, ev.session_id)
    return CheckoutEventOut(success=True, event_id=ev.id, session_id=ev.session_id)
