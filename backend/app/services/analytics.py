from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Sequence

from sqlalchemy.orm import Session

from app.models.checkout_event import CheckoutEvent, CheckoutEventType
from app.models.payment_log import PaymentLog

logger = logging.getLogger(__name__)

FUNNEL_STEPS: tuple[str, ...] = (
    CheckoutEventType.FORM_SUBMITTED,
    CheckoutEventType.PAYMENT_MODAL_OPENED,
    CheckoutEventType.PAYMENT_METHOD_SELECTED,
    CheckoutEventType.CHECKOUT_STARTED,
    CheckoutEventType.PAYMENT_COMPLETED,
)

GRANULAR_STEPS: tuple[tuple[str, str], ...] = (
    (CheckoutEventType.PAGE_LOADED, "Página Carregada"),
    (CheckoutEventType.PAYMENT_TYPE_SELECTED, "Tipo Pagamento Selecionado"),
    (CheckoutEventType.FORM_FIELD_FOCUSED, "Campo Focado"),
    (CheckoutEventType.FORM_SUBMITTED, "Formulário Enviado"),
    (CheckoutEventType.PIX_MODAL_OPENED, "Modal PIX Aberto"),
    (CheckoutEventType.PIX_CODE_COPIED, "Código PIX Copiado"),
    (CheckoutEventType.PIX_PAYMENT_CONFIRMED, "Pagamento Confirmado"),
)

LEGACY_SESSION_PREFIX = "legacy_"


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive timestamps; every stored timestamp is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def percentage(numerator: int | float, denominator: int | float) -> float:
    """numerator/denominator as a percentage in [0, 100], 0 when the denominator is 0."""
    if not denominator:
        return 0.0
    value = numerator / denominator * 100
    return round(min(100.0, max(0.0, value)), 2)


# ----------------------------------------------------------------------
# Loading
# ----------------------------------------------------------------------
def window_start(days: int, now: datetime) -> datetime:
    return as_utc(now) - timedelta(days=days)


def load_window(db: Session, *, days: int, now: datetime) -> tuple[list[CheckoutEvent], list[PaymentLog]]:
    start = window_start(days, now)
    events = (
        db.query(CheckoutEvent)
        .filter(CheckoutEvent.created_at >= start)
        .order_by(CheckoutEvent.created_at.asc(), CheckoutEvent.id.asc())
        .all()
    )
    logs = (
        db.query(PaymentLog)
        .filter(PaymentLog.created_at >= start)
        .order_by(PaymentLog.created_at.asc(), PaymentLog.id.asc())
        .all()
    )
    return events, logs


# ----------------------------------------------------------------------
# Conversion funnel
# ----------------------------------------------------------------------
def group_sessions(events: Iterable[Any], logs: Iterable[Any]) -> dict[str, set[str]]:
    """
    Map session id -> set of event types seen in that session.

    Legacy payment logs carry no session id; each one becomes its own
    session holding a single payment_method_selected event.
    """
    sessions: dict[str, set[str]] = {}
    for ev in events:
        sessions.setdefault(ev.session_id, set()).add(ev.event_type)
    for log in logs:
        sessions[f"{LEGACY_SESSION_PREFIX}{log.id}"] = {CheckoutEventType.PAYMENT_METHOD_SELECTED}
    return sessions


def calculate_funnel_metrics(events: Sequence[Any], logs: Sequence[Any]) -> dict[str, Any]:
    sessions = group_sessions(events, logs)
    total_sessions = len(sessions)

    counts = {
        step: sum(1 for types in sessions.values() if step in types)
        for step in FUNNEL_STEPS
    }

    steps: dict[str, dict[str, Any]] = {}
    previous = total_sessions
    for step in FUNNEL_STEPS:
        steps[step] = {"count": counts[step], "percentage": percentage(counts[step], previous)}
        previous = counts[step]

    started = counts[CheckoutEventType.CHECKOUT_STARTED]
    completed = counts[CheckoutEventType.PAYMENT_COMPLETED]
    return {
        "total_sessions": total_sessions,
        "steps": steps,
        "abandonment_rate": percentage(started - completed, started),
        "overall_conversion": percentage(completed, total_sessions),
    }


def calculate_daily_metrics(
    events: Sequence[Any],
    logs: Sequence[Any],
    *,
    days: int,
    now: datetime,
) -> list[dict[str, Any]]:
    event_days = Counter(as_utc(ev.created_at).date() for ev in events)
    log_days = Counter(as_utc(log.created_at).date() for log in logs)

    today = as_utc(now).date()
    daily: list[dict[str, Any]] = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        n_events = event_days.get(day, 0)
        n_logs = log_days.get(day, 0)
        daily.append(
            {
                "date": day.isoformat(),
                "events": n_events,
                "payment_selections": n_logs,
                "total_activity": n_events + n_logs,
            }
        )
    return daily


def calculate_payment_method_metrics(events: Sequence[Any], logs: Sequence[Any]) -> list[dict[str, Any]]:
    method_counts: Counter[str] = Counter()
    for ev in events:
        if ev.event_type == CheckoutEventType.PAYMENT_METHOD_SELECTED and ev.payment_method:
            method_counts[ev.payment_method] += 1
    for log in logs:
        method_counts[log.payment_method] += 1

    total = sum(method_counts.values())
    rows = [
        {"payment_method": method, "count": count, "percentage": percentage(count, total)}
        for method, count in method_counts.items()
    ]
    return sorted(rows, key=lambda r: r["count"], reverse=True)


def build_conversion_analytics(
    events: Sequence[Any],
    logs: Sequence[Any],
    *,
    days: int,
    now: datetime,
) -> dict[str, Any]:
    """Assemble the dashboard document. Pure: same rows + same `now` -> same result."""
    return {
        "period": f"{days} days",
        "funnel": calculate_funnel_metrics(events, logs),
        "daily": calculate_daily_metrics(events, logs, days=days, now=now),
        "payment_methods": calculate_payment_method_metrics(events, logs),
        "total_events": len(events) + len(logs),
        "generated_at": as_utc(now),
    }


def get_conversion_analytics(db: Session, *, days: int, now: datetime | None = None) -> dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    events, logs = load_window(db, days=days, now=now)
    logger.info(
        "Computing conversion analytics: days=%s events=%s payment_logs=%s",
        days,
        len(events),
        len(logs),
    )
    return build_conversion_analytics(events, logs, days=days, now=now)


# ----------------------------------------------------------------------
# Granular event report
# ----------------------------------------------------------------------
def build_granular_analytics(
    events: Sequence[Any],
    *,
    days: int,
    limit: int,
    now: datetime,
) -> dict[str, Any]:
    total_sessions = len({ev.session_id for ev in events})
    type_counts = Counter(ev.event_type for ev in events)

    pix_conversions = type_counts.get(CheckoutEventType.PIX_PAYMENT_CONFIRMED, 0)

    load_times = [
        (ev.event_metadata or {}).get("time_since_load")
        for ev in events
    ]
    seconds = [float(v) / 1000 for v in load_times if isinstance(v, (int, float)) and not isinstance(v, bool)]
    # Averaged over every event, not just the ones carrying a timing.
    avg_time_to_action = round(sum(seconds) / len(events), 2) if events else 0.0

    recent = sorted(events, key=lambda ev: (as_utc(ev.created_at), ev.id), reverse=True)[:limit]

    return {
        "period": f"{days} days",
        "total_sessions": total_sessions,
        "total_events": len(events),
        "pix_conversions": pix_conversions,
        "pix_conversion_rate": percentage(pix_conversions, total_sessions),
        "form_interactions": type_counts.get(CheckoutEventType.FORM_FIELD_FOCUSED, 0),
        "avg_time_to_action_seconds": avg_time_to_action,
        "steps": [
            {
                "event_type": event_type,
                "label": label,
                "count": type_counts.get(event_type, 0),
                "percentage": percentage(type_counts.get(event_type, 0), total_sessions),
            }
            for event_type, label in GRANULAR_STEPS
        ],
        "recent_events": recent,
        "generated_at": as_utc(now),
    }


def get_granular_analytics(
    db: Session,
    *,
    days: int,
    limit: int,
    now: datetime | None = None,
) -> dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    events, _ = load_window(db, days=days, now=now)
    return build_granular_analytics(events, days=days, limit=limit, now=now)
