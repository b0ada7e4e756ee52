# barbershop/payments.py
"""
Payment-session provider.

The booking core only needs two things from a payment provider: open a
checkout session for a tentative reservation, and turn the provider's
webhook calls into ``PaymentEvent`` values. ``StripePaymentProvider`` does
both with Stripe Checkout.
"""

import json
import logging
import time
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional, Protocol

import stripe

from .config import settings
from .errors import PaymentUnavailable

logger = logging.getLogger(__name__)


class WebhookSignatureError(Exception):
    """Webhook payload could not be authenticated or parsed."""


@dataclass(frozen=True)
class PayerContact:
    name: str
    email: str
    phone: Optional[str] = None


@dataclass(frozen=True)
class PaymentSession:
    session_id: str
    redirect_url: str


class PaymentEventKind(str, Enum):
    succeeded = "succeeded"
    expired = "expired"
    failed = "failed"
    refunded = "refunded"


@dataclass(frozen=True)
class PaymentEvent:
    kind: PaymentEventKind
    reservation_id: Optional[int] = None
    amount_paid: Optional[Decimal] = None
    payment_ref: Optional[str] = None


class PaymentProvider(Protocol):
    def create_session(
        self,
        reservation_id: int,
        amount: Decimal,
        payer: PayerContact,
        description: str = "",
    ) -> PaymentSession: ...

    def parse_event(self, payload: bytes, signature: str) -> Optional[PaymentEvent]: ...


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(value: Optional[int]) -> Optional[Decimal]:
    if value is None:
        return None
    return (Decimal(value) / 100).quantize(Decimal("0.01"))


def _reservation_id(obj: dict) -> Optional[int]:
    raw = (obj.get("metadata") or {}).get("reservation_id")
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        logger.warning("payment_event_bad_reservation_id value=%r", raw)
        return None


class StripePaymentProvider:
    def __init__(
        self,
        secret_key: str,
        webhook_secret: Optional[str],
        currency: str = "eur",
        frontend_url: str = "http://localhost:5173",
        session_minutes: int = 30,
        shop_name: str = "Royal Cut",
    ):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.currency = currency
        self.frontend_url = frontend_url.rstrip("/")
        self.session_minutes = session_minutes
        self.shop_name = shop_name

    def create_session(
        self,
        reservation_id: int,
        amount: Decimal,
        payer: PayerContact,
        description: str = "",
    ) -> PaymentSession:
        session = stripe.checkout.Session.create(
            api_key=self.secret_key,
            mode="payment",
            payment_method_types=["card"],
            customer_email=payer.email,
            line_items=[
                {
                    "price_data": {
                        "currency": self.currency,
                        "product_data": {
                            "name": f"{self.shop_name} - {description}" if description else self.shop_name,
                            "description": f"Booking for {payer.name}",
                        },
                        "unit_amount": to_minor_units(amount),
                    },
                    "quantity": 1,
                }
            ],
            metadata={"reservation_id": str(reservation_id)},
            success_url=f"{self.frontend_url}/booking-success?bookingId={reservation_id}",
            cancel_url=f"{self.frontend_url}/booking-cancelled?bookingId={reservation_id}",
            expires_at=int(time.time()) + self.session_minutes * 60,
        )
        logger.info("payment_session_created reservation_id=%s session_id=%s", reservation_id, session.id)
        return PaymentSession(session_id=session.id, redirect_url=session.url)

    def parse_event(self, payload: bytes, signature: str) -> Optional[PaymentEvent]:
        if not self.webhook_secret:
            raise WebhookSignatureError("Webhook secret is not configured")
        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"), signature, self.webhook_secret
            )
            event = json.loads(payload)
        except stripe.SignatureVerificationError as exc:
            raise WebhookSignatureError(f"Invalid webhook signature: {exc}") from exc
        except (UnicodeDecodeError, ValueError) as exc:
            raise WebhookSignatureError(f"Invalid webhook payload: {exc}") from exc

        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}

        if event_type in ("checkout.session.completed", "checkout.session.async_payment_succeeded"):
            # Delayed payment methods complete the session before the money arrives.
            if obj.get("payment_status") != "paid":
                logger.info("payment_event_unpaid_completion session_id=%s", obj.get("id"))
                return None
            return PaymentEvent(
                kind=PaymentEventKind.succeeded,
                reservation_id=_reservation_id(obj),
                amount_paid=from_minor_units(obj.get("amount_total")),
                payment_ref=obj.get("payment_intent"),
            )
        if event_type == "checkout.session.expired":
            return PaymentEvent(kind=PaymentEventKind.expired, reservation_id=_reservation_id(obj))
        if event_type == "checkout.session.async_payment_failed":
            return PaymentEvent(kind=PaymentEventKind.failed, reservation_id=_reservation_id(obj))
        if event_type == "charge.refunded":
            return PaymentEvent(kind=PaymentEventKind.refunded, payment_ref=obj.get("payment_intent"))

        logger.debug("payment_event_ignored type=%s", event_type)
        return None


def get_payment_provider() -> PaymentProvider:
    if settings.stripe_secret_key is None:
        raise PaymentUnavailable("Online payments are not configured")
    webhook_secret = settings.stripe_webhook_secret
    return StripePaymentProvider(
        secret_key=settings.stripe_secret_key.get_secret_value(),
        webhook_secret=webhook_secret.get_secret_value() if webhook_secret else None,
        currency=settings.currency,
        frontend_url=settings.frontend_url,
        session_minutes=settings.hold_minutes,
        shop_name=settings.shop_name,
    )
