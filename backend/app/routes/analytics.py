from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.dependencies.admin import require_admin
from app.schemas.analytics import (
    ConversionAnalyticsIn,
    ConversionAnalyticsOut,
    GranularAnalyticsIn,
    GranularAnalyticsOut,
)
from app.services.analytics import get_conversion_analytics, get_granular_analytics

router = APIRouter(tags=["analytics"], dependencies=[Depends(require_admin)])


@router.post("/get-conversion-analytics", response_model=ConversionAnalyticsOut)
def conversion_analytics(
    payload: ConversionAnalyticsIn | None = None,
    db: Session = Depends(get_db),
):
    payload = payload or ConversionAnalyticsIn()
    return get_conversion_analytics(db, days=payload.days)


@router.post("/get-granular-analytics", response_model=GranularAnalyticsOut)
def granular_analytics(
    payload: GranularAnalyticsIn | None = None,
    db: Session = Depends(get_db),
):
    payload = payload or GranularAnalyticsIn()
    return get_granular_analytics(db, days=payload.days, limit=payload.limit)
