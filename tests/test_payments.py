import hashlib
import hmac
import json
import time
from decimal import Decimal
from types import SimpleNamespace
from unittest import mock

import pytest

from barbershop.errors import PaymentUnavailable
from barbershop.payments import (
    PayerContact,
    PaymentEventKind,
    StripePaymentProvider,
    WebhookSignatureError,
    from_minor_units,
    get_payment_provider,
    to_minor_units,
)

SECRET = "whsec_test_secret"


def signed(event: dict, secret: str = SECRET):
    payload = json.dumps(event).encode()
    timestamp = int(time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload.decode()}".encode(), hashlib.sha256).hexdigest()
    return payload, f"t={timestamp},v1={digest}"


def checkout_event(event_type, **obj):
    base = {"id": "cs_1", "metadata": {"reservation_id": "7"}}
    base.update(obj)
    return {"id": "evt_1", "type": event_type, "data": {"object": base}}


@pytest.fixture
def provider():
    return StripePaymentProvider(secret_key="sk_test_x", webhook_secret=SECRET, frontend_url="https://royalcut.pt/")


class TestMinorUnits:
    @pytest.mark.parametrize("amount,cents", [(Decimal("15.00"), 1500), (Decimal("18.5"), 1850), (Decimal("0.005"), 1)])
    def test_to_minor_units(self, amount, cents):
        assert to_minor_units(amount) == cents

    def test_from_minor_units(self):
        assert from_minor_units(1850) == Decimal("18.50")
        assert from_minor_units(None) is None


class TestCreateSession:
    def test_checkout_session_carries_reservation(self, provider):
        fake = SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.com/c/pay/cs_test_1")
        with mock.patch("stripe.checkout.Session.create", return_value=fake) as create:
            session = provider.create_session(
                7, Decimal("18.00"), PayerContact(name="Ana", email="ana@example.com"), description="Skin Fade"
            )

        assert session.session_id == "cs_test_1"
        assert session.redirect_url == fake.url
        kwargs = create.call_args.kwargs
        assert kwargs["api_key"] == "sk_test_x"
        assert kwargs["metadata"] == {"reservation_id": "7"}
        assert kwargs["customer_email"] == "ana@example.com"
        assert kwargs["line_items"][0]["price_data"]["unit_amount"] == 1800
        assert kwargs["line_items"][0]["price_data"]["product_data"]["name"] == "Royal Cut - Skin Fade"
        assert kwargs["success_url"] == "https://royalcut.pt/booking-success?bookingId=7"
        assert kwargs["expires_at"] > time.time()


class TestParseEvent:
    def test_paid_checkout_is_success(self, provider):
        payload, header = signed(
            checkout_event(
                "checkout.session.completed", payment_status="paid", amount_total=1500, payment_intent="pi_1"
            )
        )

        event = provider.parse_event(payload, header)

        assert event.kind == PaymentEventKind.succeeded
        assert event.reservation_id == 7
        assert event.amount_paid == Decimal("15.00")
        assert event.payment_ref == "pi_1"

    def test_unpaid_completion_is_ignored(self, provider):
        payload, header = signed(checkout_event("checkout.session.completed", payment_status="unpaid"))

        assert provider.parse_event(payload, header) is None

    @pytest.mark.parametrize(
        "event_type,kind",
        [
            ("checkout.session.expired", PaymentEventKind.expired),
            ("checkout.session.async_payment_failed", PaymentEventKind.failed),
        ],
    )
    def test_release_events(self, provider, event_type, kind):
        payload, header = signed(checkout_event(event_type))

        event = provider.parse_event(payload, header)

        assert event.kind == kind
        assert event.reservation_id == 7

    def test_refund(self, provider):
        payload, header = signed(
            {"id": "evt_2", "type": "charge.refunded", "data": {"object": {"payment_intent": "pi_1"}}}
        )

        event = provider.parse_event(payload, header)

        assert event.kind == PaymentEventKind.refunded
        assert event.payment_ref == "pi_1"
        assert event.reservation_id is None

    def test_unrelated_event_is_ignored(self, provider):
        payload, header = signed({"id": "evt_3", "type": "customer.created", "data": {"object": {}}})

        assert provider.parse_event(payload, header) is None

    def test_bad_reservation_metadata(self, provider):
        payload, header = signed(checkout_event("checkout.session.expired", metadata={"reservation_id": "abc"}))

        assert provider.parse_event(payload, header).reservation_id is None

    def test_wrong_secret_rejected(self, provider):
        payload, header = signed(checkout_event("checkout.session.expired"), secret="whsec_other")

        with pytest.raises(WebhookSignatureError):
            provider.parse_event(payload, header)

    def test_tampered_payload_rejected(self, provider):
        payload, header = signed(checkout_event("checkout.session.expired"))

        with pytest.raises(WebhookSignatureError):
            provider.parse_event(payload.replace(b'"7"', b'"8"'), header)

    def test_missing_webhook_secret(self):
        provider = StripePaymentProvider(secret_key="sk_test_x", webhook_secret=None)
        payload, header = signed(checkout_event("checkout.session.expired"))

        with pytest.raises(WebhookSignatureError):
            provider.parse_event(payload, header)


def test_unconfigured_provider_is_unavailable(monkeypatch):
    from barbershop import payments

    monkeypatch.setattr(payments.settings, "stripe_secret_key", None)

    with pytest.raises(PaymentUnavailable):
        get_payment_provider()
