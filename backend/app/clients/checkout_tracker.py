from __future__ import annotations

import logging
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any

import httpx

from app.core.config import settings
from app.models.checkout_event import CheckoutEventType

logger = logging.getLogger(__name__)

_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="checkout-tracker")


class CheckoutTracker:
    """
    Fire-and-forget emitter for funnel events.

    One tracker per browsing session: it owns the session id and the
    page-load instant used for `time_since_load`. Delivery is best-effort and
    at-most-once; failed posts are logged and dropped.
    """

    def __init__(
        self,
        *,
        endpoint_url: str | None = None,
        session_id: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self.endpoint_url = endpoint_url or settings.TRACKING_ENDPOINT_URL
        self.session_id = session_id or uuid.uuid4().hex
        self.timeout = timeout if timeout is not None else settings.TRACKING_TIMEOUT_SECONDS
        self.user_name: str | None = None
        self.user_email: str | None = None
        self._client = client
        self._executor = executor or _executor
        self._loaded_at = time.monotonic()

    def set_user(self, *, name: str | None, email: str | None) -> None:
        self.user_name = name or None
        self.user_email = email or None

    def build_event(self, event_type: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
        data = dict(data or {})
        return {
            "session_id": self.session_id,
            "event_type": event_type,
            "user_name": self.user_name,
            "user_email": self.user_email,
            "payment_method": data.get("payment_method"),
            "metadata": {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "time_since_load": int((time.monotonic() - self._loaded_at) * 1000),
                **data,
            },
        }

    def track(self, event_type: str, data: dict[str, Any] | None = None) -> Future:
        """Schedule delivery and return immediately. The future resolves to True/False."""
        body = self.build_event(event_type, data)
        return self._executor.submit(self._send, body)

    def _send(self, body: dict[str, Any]) -> bool:
        try:
            if self._client is not None:
                response = self._client.post(self.endpoint_url, json=body, timeout=self.timeout)
            else:
                response = httpx.post(self.endpoint_url, json=body, timeout=self.timeout)
            response.raise_for_status()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Error tracking event %s: %s", body.get("event_type"), exc)
            return False
        logger.debug("[checkout-tracker] %s delivered", body.get("event_type"))
        return True

    # ------------------------------------------------------------------
    # Funnel milestones
    # ------------------------------------------------------------------
    def page_loaded(self, *, url: str | None = None, referrer: str | None = None) -> Future:
        return self.track(CheckoutEventType.PAGE_LOADED, {"url": url, "referrer": referrer})

    def form_field_focused(self, field_name: str) -> Future:
        return self.track(
            CheckoutEventType.FORM_FIELD_FOCUSED,
            {"form_field": field_name, "interaction_type": "focus"},
        )

    def form_submitted(self, form_data: dict[str, Any]) -> Future:
        filled = [v for v in form_data.values() if v]
        return self.track(
            CheckoutEventType.FORM_SUBMITTED,
            {
                "total_fields": len(form_data),
                "filled_fields": len(filled),
            },
        )

    def payment_type_selected(self, payment_type: str, amount: float) -> Future:
        return self.track(
            CheckoutEventType.PAYMENT_TYPE_SELECTED,
            {"payment_type": payment_type, "amount": amount},
        )

    def payment_method_selected(self, payment_method: str) -> Future:
        return self.track(CheckoutEventType.PAYMENT_METHOD_SELECTED, {"payment_method": payment_method})

    def checkout_started(self, payment_method: str) -> Future:
        return self.track(CheckoutEventType.CHECKOUT_STARTED, {"payment_method": payment_method})

    def pix_modal_opened(self, amount: float) -> Future:
        return self.track(CheckoutEventType.PIX_MODAL_OPENED, {"payment_method": "pix", "amount": amount})

    def pix_code_copied(self) -> Future:
        return self.track(
            CheckoutEventType.PIX_CODE_COPIED,
            {"payment_method": "pix", "interaction_type": "copy"},
        )

    def pix_payment_confirmed(self) -> Future:
        return self.track(
            CheckoutEventType.PIX_PAYMENT_CONFIRMED,
            {"payment_method": "pix", "interaction_type": "confirm"},
        )

    def pix_modal_closed(self, reason: str) -> Future:
        # reason: confirmed | cancelled | abandoned
        return self.track(CheckoutEventType.PIX_MODAL_CLOSED, {"payment_method": "pix", "close_reason": reason})

    def checkout_error(self, error_message: str, *, error_type: str = "checkout") -> Future:
        return self.track(
            CheckoutEventType.CHECKOUT_ERROR,
            {"error_message": error_message, "error_type": error_type},
        )
