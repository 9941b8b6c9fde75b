from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

import stripe
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.checkout_event import CheckoutEventType
from app.schemas.payment import CreatePaymentIn
from app.services.tracking import generate_session_id, track_best_effort

logger = logging.getLogger(__name__)

PAYMENT_LABEL_INSTALLMENT = "parcelado"
PAYMENT_LABEL_ONE_TIME = "à vista"

WEBHOOK_FALLBACK_SESSION = "stripe_webhook_session"
SUBSCRIPTION_PAYMENT_SESSION = "stripe_subscription_payment"
EXPIRED_FALLBACK_SESSION = "stripe_expired_session"

ACTIVE_SUBSCRIPTION_STATUSES = {"active", "trialing"}


class StripeServiceError(Exception):
    """Base error for Stripe service operations."""


class StripeWebhookError(StripeServiceError):
    """Raised when a webhook payload cannot be verified."""


def payment_label_for_mode(payment_mode: str | None) -> str:
    """Human label stored on tracked payment events."""
    if payment_mode == "installment":
        return PAYMENT_LABEL_INSTALLMENT
    return PAYMENT_LABEL_ONE_TIME


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _timestamp_to_iso(value: Any) -> str | None:
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc).isoformat()


class StripeService:
    """
    Stripe integration facade. All direct Stripe SDK calls live here.

    Responsibilities:
    - Create Checkout sessions for one-time, installment and PIX donations
    - Verify webhook payloads and re-emit them as funnel events
    - Report and enforce the fixed number of installment charges
    """

    def __init__(self, db: Session, stripe_client: Any | None = None):
        self.db = db
        self.stripe = stripe_client or stripe
        if settings.STRIPE_SECRET_KEY:
            self.stripe.api_key = settings.STRIPE_SECRET_KEY

    # ------------------------------------------------------------------
    # Checkout creation
    # ------------------------------------------------------------------
    def create_checkout_session(
        self,
        payload: CreatePaymentIn,
        *,
        success_url: str,
        cancel_url: str,
    ) -> tuple[Any, str]:
        """Create a Stripe Checkout Session. Returns (session, tracking_session_id)."""
        stripe_client = self._require_sdk()
        price = settings.get_price_for_mode(payload.payment_mode)
        if not price or not price[0]:
            raise StripeServiceError(f"No Stripe price configured for payment mode: {payload.payment_mode}")
        price_id, mode = price

        tracking_session_id = payload.session_id or generate_session_id()
        metadata = {
            "customer_name": payload.name,
            "customer_cpf": payload.cpf or "",
            "customer_phone": payload.telefone or "",
            "payment_mode": payload.payment_mode,
            "payment_method": payload.payment_method,
            "tracking_session_id": tracking_session_id,
        }
        params: dict[str, Any] = {
            "mode": mode,
            "customer_email": payload.email,
            "client_reference_id": tracking_session_id,
            "line_items": [
                {
                    "price": price_id,
                    "quantity": 1,
                }
            ],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "automatic_tax": {"enabled": False},
            "metadata": metadata,
            "locale": settings.STRIPE_CHECKOUT_LOCALE,
            "payment_method_types": ["pix"] if payload.payment_method == "pix" else ["card"],
            "billing_address_collection": "required",
        }
        if mode == "subscription":
            params["subscription_data"] = {"metadata": metadata}
        else:
            params["payment_intent_data"] = {"metadata": metadata}

        logger.info(
            "Creating Stripe checkout session: tracking_session=%s mode=%s method=%s",
            tracking_session_id,
            payload.payment_mode,
            payload.payment_method,
        )
        try:
            session = stripe_client.checkout.Session.create(**params)
        except stripe_client.StripeError as exc:
            logger.error("Stripe checkout creation failed: %s", exc)
            raise StripeServiceError(str(exc)) from exc

        logger.info("Checkout session created: %s", session.get("id"))
        track_best_effort(
            self.db,
            event_type=CheckoutEventType.CHECKOUT_SESSION_CREATED,
            session_id=tracking_session_id,
            user_name=payload.name,
            user_email=payload.email,
            payment_method=payload.payment_method,
            checkout_session_id=session.get("id"),
            metadata={
                "timestamp": _now_iso(),
                "payment_mode": payload.payment_mode,
                "price_id": price_id,
            },
        )
        return session, tracking_session_id

    # ------------------------------------------------------------------
    # Webhook handling
    # ------------------------------------------------------------------
    def parse_event(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Validate webhook signature and deserialize the event."""
        if not settings.STRIPE_WEBHOOK_SECRET:
            raise StripeWebhookError("Stripe webhook secret is not configured")
        if not signature:
            raise StripeWebhookError("Missing Stripe-Signature header")
        stripe_client = self.stripe
        try:
            stripe_client.Webhook.construct_event(
                payload=payload,
                sig_header=signature,
                secret=settings.STRIPE_WEBHOOK_SECRET,
            )
        except stripe_client.SignatureVerificationError as exc:
            raise StripeWebhookError(f"Invalid Stripe signature: {exc}") from exc
        except ValueError as exc:
            raise StripeWebhookError(f"Invalid Stripe payload: {exc}") from exc
        return parse_raw_payload(payload)

    def process_event(self, event: dict[str, Any]) -> bool:
        """
        Re-emit a verified Stripe event as funnel tracking.

        Returns True if the event type is handled. Tracking failures are
        logged, never raised.
        """
        event_type = event.get("type")
        logger.info("Stripe webhook event: id=%s type=%s", event.get("id"), event_type)
        obj = (event.get("data") or {}).get("object") or {}

        if event_type == "checkout.session.completed":
            self._handle_checkout_completed(obj)
            return True
        if event_type == "invoice.payment_succeeded":
            self._handle_invoice_paid(obj)
            return True
        if event_type == "checkout.session.expired":
            self._handle_checkout_expired(obj)
            return True
        logger.info("Ignoring unsupported Stripe event type: %s", event_type)
        return False

    def _handle_checkout_completed(self, session: dict[str, Any]) -> None:
        metadata = session.get("metadata") or {}
        customer_details = session.get("customer_details") or {}
        customer_name = metadata.get("customer_name") or ""
        customer_email = session.get("customer_email") or customer_details.get("email") or ""
        payment_mode = metadata.get("payment_mode") or "one_time"
        payment_method = payment_label_for_mode(payment_mode)

        logger.info("Payment completed for session %s (%s)", session.get("id"), payment_method)
        track_best_effort(
            self.db,
            event_type=CheckoutEventType.PAYMENT_COMPLETED,
            session_id=session.get("client_reference_id") or WEBHOOK_FALLBACK_SESSION,
            user_name=customer_name,
            user_email=customer_email,
            payment_method=payment_method,
            checkout_session_id=session.get("id"),
            metadata={
                "timestamp": _now_iso(),
                "stripe_session_id": session.get("id"),
                "amount_total": session.get("amount_total"),
                "currency": session.get("currency"),
                "payment_status": session.get("payment_status"),
                "payment_mode": payment_mode,
            },
        )

    def _handle_invoice_paid(self, invoice: dict[str, Any]) -> None:
        logger.info("Subscription payment succeeded: %s", invoice.get("id"))
        track_best_effort(
            self.db,
            event_type=CheckoutEventType.INSTALLMENT_PAYMENT_COMPLETED,
            session_id=SUBSCRIPTION_PAYMENT_SESSION,
            user_email=invoice.get("customer_email"),
            payment_method=PAYMENT_LABEL_INSTALLMENT,
            metadata={
                "timestamp": _now_iso(),
                "stripe_invoice_id": invoice.get("id"),
                "amount_paid": invoice.get("amount_paid"),
                "currency": invoice.get("currency"),
                "billing_reason": invoice.get("billing_reason"),
            },
        )

    def _handle_checkout_expired(self, session: dict[str, Any]) -> None:
        track_best_effort(
            self.db,
            event_type=CheckoutEventType.CHECKOUT_EXPIRED,
            session_id=session.get("client_reference_id") or EXPIRED_FALLBACK_SESSION,
            checkout_session_id=session.get("id"),
            metadata={
                "timestamp": _now_iso(),
                "stripe_session_id": session.get("id"),
                "expiration_reason": "session_expired",
            },
        )

    # ------------------------------------------------------------------
    # Installment subscriptions
    # ------------------------------------------------------------------
    def get_subscription_status(self, email: str) -> dict[str, Any]:
        stripe_client = self._require_sdk()
        price_id = self._installment_price_id()
        try:
            customers = stripe_client.Customer.list(email=email, limit=1)
            if not customers["data"]:
                return {"has_subscription": False, "message": "No customer found with this email"}

            customer_id = customers["data"][0]["id"]
            subscriptions = stripe_client.Subscription.list(customer=customer_id, price=price_id, limit=10)
            active = [s for s in subscriptions["data"] if s.get("status") in ACTIVE_SUBSCRIPTION_STATUSES]
            if not active:
                return {"has_subscription": False, "message": "No active installment subscription found"}

            subscription = active[0]
            paid = self._paid_invoices(subscription["id"])
        except stripe_client.StripeError as exc:
            logger.error("Stripe subscription lookup failed for %s: %s", email, exc)
            raise StripeServiceError(str(exc)) from exc

        payments_made = len(paid)
        payments_remaining = max(0, settings.INSTALLMENT_COUNT - payments_made)
        period_start, period_end = _period_bounds(subscription)
        return {
            "has_subscription": True,
            "subscription": {
                "id": subscription["id"],
                "status": subscription.get("status"),
                "current_period_start": _timestamp_to_iso(period_start),
                "current_period_end": _timestamp_to_iso(period_end),
                "cancel_at_period_end": bool(subscription.get("cancel_at_period_end")),
                "payments_made": payments_made,
                "payments_remaining": payments_remaining,
                "total_amount_paid": sum(int(inv.get("amount_paid") or 0) for inv in paid),
                "next_payment_date": _timestamp_to_iso(period_end) if payments_remaining > 0 else None,
                "metadata": dict(subscription.get("metadata") or {}),
            },
        }

    def manage_installments(self) -> list[dict[str, Any]]:
        """Cancel (at period end) every installment plan that has collected all its charges."""
        stripe_client = self._require_sdk()
        price_id = self._installment_price_id()
        try:
            subscriptions = stripe_client.Subscription.list(price=price_id, status="active", limit=100)
        except stripe_client.StripeError as exc:
            logger.error("Stripe subscription listing failed: %s", exc)
            raise StripeServiceError(str(exc)) from exc

        logger.info("Found %s active installment subscriptions", len(subscriptions["data"]))
        results: list[dict[str, Any]] = []
        for subscription in subscriptions["data"]:
            subscription_id = subscription["id"]
            try:
                payments_made = len(self._paid_invoices(subscription_id))
                if payments_made >= settings.INSTALLMENT_COUNT:
                    logger.info(
                        "Canceling subscription %s after %s payments", subscription_id, payments_made
                    )
                    stripe_client.Subscription.modify(
                        subscription_id,
                        cancel_at_period_end=True,
                        metadata={
                            **dict(subscription.get("metadata") or {}),
                            "auto_canceled_after_installments": "true",
                            "canceled_at": _now_iso(),
                        },
                    )
                    results.append(
                        {
                            "subscription_id": subscription_id,
                            "action": "canceled",
                            "payments_made": payments_made,
                            "customer": _customer_id(subscription.get("customer")),
                        }
                    )
                else:
                    results.append(
                        {
                            "subscription_id": subscription_id,
                            "action": "active",
                            "payments_made": payments_made,
                            "payments_remaining": settings.INSTALLMENT_COUNT - payments_made,
                        }
                    )
            except stripe_client.StripeError as exc:
                logger.error("Error processing subscription %s: %s", subscription_id, exc)
                results.append({"subscription_id": subscription_id, "action": "error", "error": str(exc)})
        return results

    def _paid_invoices(self, subscription_id: str) -> list[Any]:
        invoices = self.stripe.Invoice.list(subscription=subscription_id, status="paid", limit=10)
        return [inv for inv in invoices["data"] if inv.get("status") == "paid"]

    def _installment_price_id(self) -> str:
        if not settings.STRIPE_INSTALLMENT_PRICE_ID:
            raise StripeServiceError("Stripe installment price is not configured")
        return settings.STRIPE_INSTALLMENT_PRICE_ID

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _require_sdk(self):
        if not settings.STRIPE_SECRET_KEY:
            raise StripeServiceError("Stripe secret key is not configured")
        return self.stripe


def _period_bounds(subscription: Any) -> tuple[Any, Any]:
    # Newer API versions moved the billing period onto the subscription items.
    start = subscription.get("current_period_start")
    end = subscription.get("current_period_end")
    if start is None or end is None:
        items = (subscription.get("items") or {}).get("data") or []
        if items:
            start = start if start is not None else items[0].get("current_period_start")
            end = end if end is not None else items[0].get("current_period_end")
    return start, end


def _customer_id(customer: Any) -> str | None:
    if customer is None or isinstance(customer, str):
        return customer
    return customer.get("id")


def parse_raw_payload(payload: bytes) -> dict[str, Any]:
    """
    Deserialize the raw webhook payload as JSON.
    """
    try:
        data = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise StripeWebhookError(f"Invalid Stripe payload: {exc}") from exc
    if not isinstance(data, dict):
        raise StripeWebhookError("Invalid Stripe payload: expected an object")
    return data
