from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.dependencies.admin import require_admin
from app.schemas.subscription import ManageInstallmentsOut, SubscriptionStatusIn, SubscriptionStatusOut
from app.services.stripe import StripeService, StripeServiceError

router = APIRouter(tags=["subscriptions"])


@router.post("/check-subscription-status", response_model=SubscriptionStatusOut)
def check_subscription_status(
    payload: SubscriptionStatusIn,
    db: Session = Depends(get_db),
):
    service = StripeService(db)
    try:
        return service.get_subscription_status(payload.email)
    except StripeServiceError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc


@router.post(
    "/manage-installments",
    response_model=ManageInstallmentsOut,
    dependencies=[Depends(require_admin)],
)
def manage_installments(db: Session = Depends(get_db)):
    service = StripeService(db)
    try:
        results = service.manage_installments()
    except StripeServiceError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    return {"success": True, "processed": len(results), "results": results}
