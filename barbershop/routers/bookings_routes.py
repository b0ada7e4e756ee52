# barbershop/routers/bookings_routes.py

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends
from pydantic import EmailStr
from sqlmodel import Session, col, select

from barbershop.booking import BookingRequest, cancel_by_client, create_booking, get_reservation
from barbershop.db import get_session
from barbershop.deps import get_now
from barbershop.models import Reservation
from barbershop.notifications import NotificationSender, get_notifier
from barbershop.payments import PaymentProvider, get_payment_provider
from barbershop.schemas import (
    BookingCreate,
    BookingCreated,
    CancelRequest,
    PaymentPublic,
    ReservationDetail,
    ReservationPublic,
)

router = APIRouter(
    prefix="/bookings",
    tags=["bookings"],
)


@router.post("", response_model=BookingCreated, status_code=201)
def create(
    body: BookingCreate,
    session: Session = Depends(get_session),
    payments: PaymentProvider = Depends(get_payment_provider),
    now: datetime = Depends(get_now),
):
    receipt = create_booking(
        session,
        BookingRequest(
            barber_id=body.barber_id,
            service_id=body.service_id,
            start_at=body.start_at,
            end_at=body.end_at,
            client_name=body.client_name,
            client_email=body.client_email,
            client_phone=body.client_phone,
            notes=body.notes,
        ),
        payments,
        now,
    )
    return BookingCreated(
        booking=ReservationPublic.model_validate(receipt.reservation),
        payment=PaymentPublic(
            session_id=receipt.payment.session_id,
            checkout_url=receipt.payment.redirect_url,
        ),
    )


@router.get("", response_model=List[ReservationPublic])
def my_bookings(email: EmailStr, session: Session = Depends(get_session)):
    return session.exec(
        select(Reservation)
        .where(Reservation.client_email == email)
        .order_by(col(Reservation.start_at).desc())
        .limit(20)
    ).all()


@router.get("/{reservation_id}", response_model=ReservationDetail)
def get_booking(reservation_id: int, session: Session = Depends(get_session)):
    return get_reservation(session, reservation_id)


@router.post("/{reservation_id}/cancel", response_model=ReservationPublic)
def cancel(
    reservation_id: int,
    body: CancelRequest,
    session: Session = Depends(get_session),
    notifier: NotificationSender = Depends(get_notifier),
    now: datetime = Depends(get_now),
):
    return cancel_by_client(session, reservation_id, body.client_email, now, notifier=notifier)
