"""
Shared fixtures: a throwaway SQLite file database per test, a small shop
(one Monday-working barber, two services) and fakes for the payment
provider and notification sender.
"""

from datetime import datetime, time, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlmodel import Session

from barbershop.config import settings
from barbershop.db import build_engine, get_session, init_db
from barbershop.deps import get_now
from barbershop.main import app
from barbershop.models import (
    Barber,
    PaymentStatus,
    Reservation,
    ReservationStatus,
    Service,
    User,
    UserRole,
    WorkingHours,
)
from barbershop.notifications import get_notifier
from barbershop.payments import PaymentSession, get_payment_provider

# 2030-06-03 is a Monday (weekday index 1)
MONDAY = datetime(2030, 6, 3)


class FakePayments:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []
        self.events = {}

    def create_session(self, reservation_id, amount, payer, description=""):
        self.calls.append((reservation_id, amount, payer, description))
        if self.fail:
            raise ConnectionError("provider down")
        return PaymentSession(
            session_id=f"cs_test_{reservation_id}",
            redirect_url=f"https://checkout.example/{reservation_id}",
        )

    def parse_event(self, payload, signature):
        return self.events.get(signature)


class FakeNotifier:
    def __init__(self, errors: Optional[List[str]] = None):
        self.errors = errors or []
        self.sent = []

    def _record(self, kind, notice):
        self.sent.append((kind, notice))
        return list(self.errors)

    def send_confirmation(self, notice):
        return self._record("confirmation", notice)

    def send_cancellation(self, notice):
        return self._record("cancellation", notice)

    def send_reminder(self, notice):
        return self._record("reminder", notice)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def now():
    return MONDAY.replace(hour=8)


def add_barber(session, name="Marcus Silva", email=None, opens=time(9, 0), closes=time(20, 0), weekdays=(1,)):
    user = User(email=email or f"{name.split()[0].lower()}@royalcut.pt", role=UserRole.barber.value)
    session.add(user)
    session.commit()
    barber = Barber(name=name, user_id=user.id)
    session.add(barber)
    session.commit()
    for weekday in weekdays:
        session.add(WorkingHours(barber_id=barber.id, weekday=weekday, opens_at=opens, closes_at=closes))
    session.commit()
    session.refresh(barber)
    return barber


@pytest.fixture
def shop(session):
    admin = User(email="admin@royalcut.pt", role=UserRole.admin.value)
    session.add(admin)
    barber = add_barber(session)
    cut = Service(name="Classic Cut", duration_minutes=30, price=Decimal("15.00"))
    fade = Service(name="Skin Fade", duration_minutes=45, price=Decimal("18.00"))
    session.add(cut)
    session.add(fade)
    session.commit()
    for row in (admin, cut, fade):
        session.refresh(row)
    return SimpleNamespace(admin=admin, barber=barber, cut=cut, fade=fade)


def make_reservation(
    session,
    barber_id,
    service,
    start,
    status=ReservationStatus.confirmed.value,
    hold_expires_at=None,
    client_email="client@example.com",
    created_at=None,
    **extra,
):
    default_payment = (
        PaymentStatus.paid.value if status == ReservationStatus.confirmed.value else PaymentStatus.pending.value
    )
    extra.setdefault("payment_status", default_payment)
    reservation = Reservation(
        barber_id=barber_id,
        service_id=service.id,
        client_name="Test Client",
        client_email=client_email,
        start_at=start,
        end_at=start + timedelta(minutes=service.duration_minutes),
        status=status,
        amount_charged=service.price,
        hold_expires_at=hold_expires_at,
        created_at=created_at or MONDAY,
        **extra,
    )
    session.add(reservation)
    session.commit()
    session.refresh(reservation)
    return reservation


@pytest.fixture
def payments():
    return FakePayments()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def client(engine, now, payments, notifier):
    clock = SimpleNamespace(now=now)

    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_now] = lambda: clock.now
    app.dependency_overrides[get_payment_provider] = lambda: payments
    app.dependency_overrides[get_notifier] = lambda: notifier
    test_client = TestClient(app)
    test_client.clock = clock
    yield test_client
    app.dependency_overrides.clear()


def issue_token(email, expires_in=timedelta(minutes=30)):
    # Tokens are minted by the identity provider in production.
    claims = {"sub": email, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(claims, settings.secret_key.get_secret_value(), algorithm=settings.algorithm)


def auth_headers(email, expires_in=timedelta(minutes=30)):
    return {"Authorization": f"Bearer {issue_token(email, expires_in)}"}
