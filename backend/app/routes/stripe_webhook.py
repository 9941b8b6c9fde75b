from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.services.stripe import StripeService, StripeWebhookError

router = APIRouter(tags=["billing"])


@router.post("/stripe-webhook", status_code=status.HTTP_200_OK)
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
) -> dict[str, bool]:
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    service = StripeService(db)
    try:
        event = service.parse_event(payload, signature)
    except StripeWebhookError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    # Acknowledged even when the tracking insert fails.
    service.process_event(event)
    return {"received": True}
