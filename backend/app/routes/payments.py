from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.schemas.payment import CreatePaymentIn, CreatePaymentOut, LogPaymentIn, LogPaymentOut
from app.services.payment_logs import create_payment_log
from app.services.stripe import StripeService, StripeServiceError

router = APIRouter(tags=["payments"])

logger = logging.getLogger(__name__)


@router.post("/create-payment", response_model=CreatePaymentOut)
def create_payment(
    request: Request,
    payload: CreatePaymentIn,
    db: Session = Depends(get_db),
) -> CreatePaymentOut:
    origin = (request.headers.get("origin") or settings.FRONTEND_BASE_URL or "http://localhost:8080").rstrip("/")
    service = StripeService(db)
    try:
        session, tracking_session_id = service.create_checkout_session(
            payload,
            success_url=f"{origin}/?payment=success",
            cancel_url=f"{origin}/?payment=cancelled",
        )
    except StripeServiceError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    return CreatePaymentOut(
        url=session.get("url"),
        checkout_session_id=session.get("id"),
        tracking_session_id=tracking_session_id,
    )


@router.post("/log-payment", response_model=LogPaymentOut)
def log_payment(
    payload: LogPaymentIn,
    db: Session = Depends(get_db),
) -> LogPaymentOut:
    try:
        log = create_payment_log(
            db,
            name=payload.name,
            email=payload.email,
            payment_method=payload.payment_method,
            telefone=payload.telefone,
            cpf=payload.cpf,
            pagou_pix=payload.pagou_pix,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to persist payment log for %s", payload.email)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Database error: {exc}",
        ) from exc

    logger.info("Payment log created: id=%s method=%s pagou_pix=%s", log.id, log.payment_method, log.pagou_pix)
    return LogPaymentOut(success=True, id=log.id)
