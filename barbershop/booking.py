# barbershop/booking.py
"""
Reservation write path.

``try_reserve`` is the conflict guard: the overlap check, the release of
expired holds and the insert all run while holding the barber's lock and,
on databases that support it, a ``FOR UPDATE`` lock on the barber row. No
other reservation for that barber can be written in between.

Status changes go through ``_transition``, a conditional UPDATE that only
matches rows still in the expected source state, so a terminal
reservation is never overwritten.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from .config import settings
from .deps import Actor, can_manage_barber
from .errors import (
    Conflict,
    InvalidState,
    LeadTimeViolation,
    NotFound,
    PaymentUnavailable,
    PermissionDenied,
    ValidationError,
)
from .locks import BarberLocks, barber_locks
from .models import (
    ACTIVE_STATUSES,
    Barber,
    PaymentStatus,
    Reservation,
    ReservationStatus,
    Service,
    WorkingHours,
)
from .notifications import NotificationSender, ReservationNotice
from .payments import PayerContact, PaymentEvent, PaymentEventKind, PaymentProvider, PaymentSession
from .slots import is_on_grid

logger = logging.getLogger(__name__)

STAFF_TARGETS = (
    ReservationStatus.completed.value,
    ReservationStatus.no_show.value,
    ReservationStatus.cancelled.value,
)


@dataclass(frozen=True)
class BookingRequest:
    barber_id: int
    service_id: int
    start_at: datetime
    client_name: str
    client_email: str
    client_phone: Optional[str] = None
    notes: Optional[str] = None
    end_at: Optional[datetime] = None


@dataclass(frozen=True)
class BookingReceipt:
    reservation: Reservation
    payment: PaymentSession


# -- lookups ---------------------------------------------------------


def weekday_index(day: date) -> int:
    """0=Sunday ... 6=Saturday."""
    return (day.weekday() + 1) % 7


def get_active_barber(session: Session, barber_id: int) -> Barber:
    barber = session.get(Barber, barber_id)
    if barber is None or not barber.active:
        raise NotFound("Barber not found")
    return barber


def get_active_service(session: Session, service_id: int) -> Service:
    service = session.get(Service, service_id)
    if service is None or not service.active:
        raise NotFound("Service not found")
    return service


def get_reservation(session: Session, reservation_id: int) -> Reservation:
    reservation = session.get(Reservation, reservation_id)
    if reservation is None:
        raise NotFound("Reservation not found")
    return reservation


def get_working_hours(session: Session, barber_id: int, day: date) -> Optional[WorkingHours]:
    return session.exec(
        select(WorkingHours)
        .where(WorkingHours.barber_id == barber_id)
        .where(WorkingHours.weekday == weekday_index(day))
    ).first()


def active_reservations_between(
    session: Session, barber_id: int, start: datetime, end: datetime
) -> List[Reservation]:
    """Tentative or confirmed reservations of a barber overlapping [start, end)."""
    return list(
        session.exec(
            select(Reservation)
            .where(Reservation.barber_id == barber_id)
            .where(col(Reservation.status).in_(ACTIVE_STATUSES))
            .where(Reservation.start_at < end)
            .where(Reservation.end_at > start)
            .order_by(Reservation.start_at)
            .execution_options(populate_existing=True)
        ).all()
    )


def _lock_barber_row(session: Session, barber_id: int) -> None:
    # Cross-process serialisation where the database supports row locks.
    session.exec(select(Barber.id).where(Barber.id == barber_id).with_for_update()).first()


def _transition(session: Session, reservation_id: int, from_statuses: Iterable[str], **values) -> bool:
    result = session.execute(
        update(Reservation)
        .where(col(Reservation.id) == reservation_id)
        .where(col(Reservation.status).in_(tuple(from_statuses)))
        .values(**values)
    )
    return result.rowcount == 1


# -- notifications ---------------------------------------------------


def build_notice(session: Session, reservation: Reservation) -> ReservationNotice:
    barber = session.get(Barber, reservation.barber_id)
    service = session.get(Service, reservation.service_id)
    return ReservationNotice(
        reservation_id=reservation.id,
        client_name=reservation.client_name,
        client_email=reservation.client_email,
        client_phone=reservation.client_phone,
        service_name=service.name if service else "",
        barber_name=barber.name if barber else "",
        start_at=reservation.start_at,
        amount=reservation.amount_paid,
    )


def notify(send: Callable[[ReservationNotice], List[str]], notice: ReservationNotice) -> List[str]:
    """Run a notification without letting its failure reach the caller."""
    try:
        errors = send(notice)
    except Exception as exc:
        logger.exception("notification_crashed reservation_id=%s", notice.reservation_id)
        return [str(exc)]
    if errors:
        logger.warning("notification_failed reservation_id=%s errors=%s", notice.reservation_id, errors)
    return errors


# -- conflict guard --------------------------------------------------


def try_reserve(
    session: Session,
    request: BookingRequest,
    now: datetime,
    locks: BarberLocks = barber_locks,
    hold_minutes: Optional[int] = None,
    step_minutes: Optional[int] = None,
) -> Reservation:
    """
    Atomically claim [start, start + duration) for a barber as a tentative hold.

    Raises ValidationError, NotFound or Conflict; on success the returned
    reservation is committed.
    """
    hold_minutes = hold_minutes if hold_minutes is not None else settings.hold_minutes
    step_minutes = step_minutes if step_minutes is not None else settings.slot_minutes

    start = request.start_at
    if start.tzinfo is not None or (request.end_at is not None and request.end_at.tzinfo is not None):
        raise ValidationError("Times must be given in shop local time without an offset")
    if start < now:
        raise ValidationError("Cannot book an appointment in the past")

    barber = get_active_barber(session, request.barber_id)
    service = get_active_service(session, request.service_id)

    end = start + timedelta(minutes=service.duration_minutes)
    if request.end_at is not None and request.end_at != end:
        raise ValidationError("Requested end does not match the service duration")

    hours = get_working_hours(session, barber.id, start.date())
    if hours is None or not hours.active:
        raise ValidationError("Barber is not scheduled to work that day")
    work_start = datetime.combine(start.date(), hours.opens_at)
    work_end = datetime.combine(start.date(), hours.closes_at)
    if start < work_start or end > work_end:
        raise ValidationError("Appointment must be within working hours")
    if not is_on_grid(start, hours.opens_at, step_minutes):
        raise ValidationError(f"Start time must be on the {step_minutes}-minute grid")

    barber_id = barber.id
    with locks.hold(barber_id):
        try:
            _lock_barber_row(session, barber_id)
            existing = active_reservations_between(session, barber_id, start, end)
            if any(r.blocks_interval(now) for r in existing):
                session.rollback()
                logger.info(
                    "reservation_conflict barber_id=%s start=%s end=%s", barber_id, start, end
                )
                raise Conflict("This time slot is already taken. Please choose another.")

            for stale in existing:
                released = _transition(
                    session,
                    stale.id,
                    (ReservationStatus.tentative.value,),
                    status=ReservationStatus.cancelled.value,
                    payment_status=PaymentStatus.expired.value,
                    cancelled_at=now,
                    cancelled_by="payment",
                )
                if not released:
                    session.rollback()
                    raise Conflict("This time slot is already taken. Please choose another.")
                logger.info("hold_released reservation_id=%s reason=expired", stale.id)

            reservation = Reservation(
                barber_id=barber_id,
                service_id=service.id,
                client_name=request.client_name,
                client_email=request.client_email,
                client_phone=request.client_phone,
                notes=request.notes,
                start_at=start,
                end_at=end,
                status=ReservationStatus.tentative.value,
                payment_status=PaymentStatus.pending.value,
                amount_charged=service.price,
                hold_expires_at=now + timedelta(minutes=hold_minutes),
                created_at=now,
            )
            session.add(reservation)
            session.commit()
        except IntegrityError:
            session.rollback()
            logger.info("reservation_conflict_constraint barber_id=%s start=%s", barber_id, start)
            raise Conflict("This time slot is already taken. Please choose another.")

    session.refresh(reservation)
    logger.info(
        "reservation_held reservation_id=%s barber_id=%s start=%s end=%s",
        reservation.id,
        barber_id,
        start,
        end,
    )
    return reservation


def create_booking(
    session: Session,
    request: BookingRequest,
    payments: PaymentProvider,
    now: datetime,
    locks: BarberLocks = barber_locks,
) -> BookingReceipt:
    """Hold the slot, then open a payment session for it."""
    reservation = try_reserve(session, request, now, locks=locks)
    service = session.get(Service, reservation.service_id)

    try:
        payment = payments.create_session(
            reservation.id,
            reservation.amount_charged,
            PayerContact(name=request.client_name, email=request.client_email, phone=request.client_phone),
            description=service.name if service else "",
        )
    except Exception as exc:
        logger.exception("payment_session_failed reservation_id=%s", reservation.id)
        _transition(
            session,
            reservation.id,
            (ReservationStatus.tentative.value,),
            status=ReservationStatus.cancelled.value,
            payment_status=PaymentStatus.failed.value,
            cancelled_at=now,
            cancelled_by="payment",
        )
        session.commit()
        raise PaymentUnavailable("Could not start the payment. Please try again.") from exc

    reservation.payment_session_id = payment.session_id
    session.add(reservation)
    session.commit()
    session.refresh(reservation)
    return BookingReceipt(reservation=reservation, payment=payment)


# -- lifecycle -------------------------------------------------------


def cancel_by_client(
    session: Session,
    reservation_id: int,
    client_email: str,
    now: datetime,
    notifier: Optional[NotificationSender] = None,
    lead_hours: Optional[int] = None,
) -> Reservation:
    lead_hours = lead_hours if lead_hours is not None else settings.cancellation_lead_hours
    reservation = get_reservation(session, reservation_id)

    if reservation.client_email.strip().lower() != client_email.strip().lower():
        raise PermissionDenied("Email does not match the reservation")
    if reservation.is_terminal:
        raise InvalidState(f"Reservation is already {reservation.status}")
    if reservation.start_at - now < timedelta(hours=lead_hours):
        raise LeadTimeViolation(
            f"Cancellations require at least {lead_hours} hours notice"
        )

    changed = _transition(
        session,
        reservation.id,
        ACTIVE_STATUSES,
        status=ReservationStatus.cancelled.value,
        cancelled_at=now,
        cancelled_by="client",
    )
    session.commit()
    if not changed:
        raise InvalidState("Reservation changed state, reload and try again")

    session.refresh(reservation)
    logger.info("reservation_cancelled reservation_id=%s by=client", reservation.id)
    if notifier is not None:
        notify(notifier.send_cancellation, build_notice(session, reservation))
    return reservation


def mark_payment_succeeded(
    session: Session,
    reservation_id: int,
    amount_paid: Optional[Decimal] = None,
    payment_ref: Optional[str] = None,
    notifier: Optional[NotificationSender] = None,
    locks: BarberLocks = barber_locks,
) -> Reservation:
    reservation = get_reservation(session, reservation_id)

    if (
        reservation.status == ReservationStatus.confirmed.value
        and reservation.payment_status == PaymentStatus.paid.value
    ):
        logger.info("payment_duplicate reservation_id=%s", reservation.id)
        return reservation
    if reservation.status != ReservationStatus.tentative.value:
        logger.warning(
            "payment_for_inactive_reservation reservation_id=%s status=%s payment_ref=%s",
            reservation.id,
            reservation.status,
            payment_ref,
        )
        raise InvalidState(f"Cannot confirm a {reservation.status} reservation")

    # Same lock as the guard: an expired hold is either released or confirmed, never both.
    with locks.hold(reservation.barber_id):
        _lock_barber_row(session, reservation.barber_id)
        changed = _transition(
            session,
            reservation.id,
            (ReservationStatus.tentative.value,),
            status=ReservationStatus.confirmed.value,
            payment_status=PaymentStatus.paid.value,
            amount_paid=amount_paid if amount_paid is not None else reservation.amount_charged,
            payment_ref=payment_ref,
            hold_expires_at=None,
        )
        session.commit()
    if not changed:
        raise InvalidState("Reservation is no longer awaiting payment")

    session.refresh(reservation)
    logger.info("reservation_confirmed reservation_id=%s", reservation.id)
    if notifier is not None:
        notify(notifier.send_confirmation, build_notice(session, reservation))
    return reservation


def mark_payment_failed(
    session: Session,
    reservation_id: int,
    now: datetime,
    expired: bool = True,
) -> Reservation:
    reservation = get_reservation(session, reservation_id)
    payment_status = PaymentStatus.expired.value if expired else PaymentStatus.failed.value

    if (
        reservation.status == ReservationStatus.cancelled.value
        and reservation.payment_status in (PaymentStatus.expired.value, PaymentStatus.failed.value)
    ):
        return reservation
    if reservation.status != ReservationStatus.tentative.value:
        raise InvalidState(f"Cannot fail payment of a {reservation.status} reservation")

    changed = _transition(
        session,
        reservation.id,
        (ReservationStatus.tentative.value,),
        status=ReservationStatus.cancelled.value,
        payment_status=payment_status,
        cancelled_at=now,
        cancelled_by="payment",
    )
    session.commit()
    if not changed:
        raise InvalidState("Reservation is no longer awaiting payment")

    session.refresh(reservation)
    logger.info("reservation_cancelled reservation_id=%s by=payment status=%s", reservation.id, payment_status)
    return reservation


def mark_refunded(session: Session, payment_ref: str) -> int:
    result = session.execute(
        update(Reservation)
        .where(col(Reservation.payment_ref) == payment_ref)
        .values(payment_status=PaymentStatus.refunded.value)
    )
    session.commit()
    logger.info("payment_refunded payment_ref=%s reservations=%s", payment_ref, result.rowcount)
    return result.rowcount


def apply_staff_status(
    session: Session,
    reservation_id: int,
    new_status: str,
    actor: Actor,
    now: datetime,
) -> Reservation:
    reservation = get_reservation(session, reservation_id)

    if not can_manage_barber(actor, reservation.barber_id):
        raise PermissionDenied("You cannot manage this barber's reservations")
    if new_status not in STAFF_TARGETS:
        raise ValidationError("Staff can only mark reservations completed, no_show or cancelled")
    if reservation.status != ReservationStatus.confirmed.value:
        raise InvalidState(f"Cannot change a {reservation.status} reservation to {new_status}")
    if now < reservation.start_at:
        raise InvalidState("The appointment has not started yet")

    values = {"status": new_status}
    if new_status == ReservationStatus.cancelled.value:
        values.update(cancelled_at=now, cancelled_by="staff")
    changed = _transition(session, reservation.id, (ReservationStatus.confirmed.value,), **values)
    session.commit()
    if not changed:
        raise InvalidState("Reservation changed state, reload and try again")

    session.refresh(reservation)
    logger.info(
        "reservation_status_changed reservation_id=%s status=%s actor=%s",
        reservation.id,
        new_status,
        actor.email,
    )
    return reservation


def release_expired_holds(session: Session, now: datetime) -> int:
    """Cancel every tentative reservation whose hold deadline has passed."""
    result = session.execute(
        update(Reservation)
        .where(col(Reservation.status) == ReservationStatus.tentative.value)
        .where(col(Reservation.hold_expires_at) <= now)
        .values(
            status=ReservationStatus.cancelled.value,
            payment_status=PaymentStatus.expired.value,
            cancelled_at=now,
            cancelled_by="payment",
        )
    )
    session.commit()
    if result.rowcount:
        logger.info("holds_released count=%s", result.rowcount)
    return result.rowcount


def apply_payment_event(
    session: Session,
    event: PaymentEvent,
    now: datetime,
    notifier: Optional[NotificationSender] = None,
) -> None:
    """Drive the reservation lifecycle from a provider webhook event."""
    if event.kind == PaymentEventKind.refunded:
        if event.payment_ref:
            mark_refunded(session, event.payment_ref)
        return
    if event.reservation_id is None:
        raise ValidationError("Payment event carries no reservation id")

    if event.kind == PaymentEventKind.succeeded:
        mark_payment_succeeded(
            session,
            event.reservation_id,
            amount_paid=event.amount_paid,
            payment_ref=event.payment_ref,
            notifier=notifier,
        )
    else:
        mark_payment_failed(
            session,
            event.reservation_id,
            now,
            expired=event.kind == PaymentEventKind.expired,
        )
