# barbershop/reports.py

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlmodel import Session, col, select

from .deps import Actor
from .models import Reservation, ReservationStatus


def _count(session: Session, *criteria) -> int:
    stmt = select(func.count()).select_from(Reservation)
    for criterion in criteria:
        stmt = stmt.where(criterion)
    return session.exec(stmt).one()


def dashboard(session: Session, now: datetime) -> dict:
    today_start = datetime.combine(now.date(), datetime.min.time())
    today_end = today_start + timedelta(days=1)
    month_start = today_start.replace(day=1)
    status = col(Reservation.status)

    revenue = session.exec(
        select(func.coalesce(func.sum(Reservation.amount_paid), 0))
        .where(status == ReservationStatus.completed.value)
        .where(Reservation.start_at >= month_start)
    ).one()

    completed = _count(session, status == ReservationStatus.completed.value)
    no_shows = _count(session, status == ReservationStatus.no_show.value)
    no_show_rate = (Decimal(no_shows) * 100 / (completed + no_shows)) if (completed + no_shows) else Decimal(0)

    return {
        "total_bookings": _count(session),
        "today_bookings": _count(
            session,
            Reservation.start_at >= today_start,
            Reservation.start_at < today_end,
            status.in_((ReservationStatus.confirmed.value, ReservationStatus.completed.value)),
        ),
        "pending_bookings": _count(session, status == ReservationStatus.tentative.value),
        "no_shows": no_shows,
        "no_show_rate": f"{no_show_rate:.1f}%",
        "month_revenue": Decimal(revenue).quantize(Decimal("0.01")),
    }


def list_reservations(
    session: Session,
    actor: Actor,
    page: int = 1,
    limit: int = 20,
    status: Optional[str] = None,
    barber_id: Optional[int] = None,
    on_date: Optional[date] = None,
    search: Optional[str] = None,
) -> Tuple[List[Reservation], int]:
    # Barbers only see their own reservations
    if not actor.is_admin:
        barber_id = actor.barber_id if actor.barber_id is not None else -1

    criteria = []
    if status:
        criteria.append(Reservation.status == status)
    if barber_id is not None:
        criteria.append(Reservation.barber_id == barber_id)
    if on_date is not None:
        day_start = datetime.combine(on_date, datetime.min.time())
        criteria.append(Reservation.start_at >= day_start)
        criteria.append(Reservation.start_at < day_start + timedelta(days=1))
    if search:
        pattern = f"%{search.lower()}%"
        criteria.append(
            or_(
                func.lower(Reservation.client_name).like(pattern),
                func.lower(Reservation.client_email).like(pattern),
                func.lower(Reservation.client_phone).like(pattern),
            )
        )

    stmt = select(Reservation)
    for criterion in criteria:
        stmt = stmt.where(criterion)
    stmt = stmt.order_by(col(Reservation.start_at).desc()).offset((page - 1) * limit).limit(limit)

    return list(session.exec(stmt).all()), _count(session, *criteria)
