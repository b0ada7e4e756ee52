# barbershop/reminders.py

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import update
from sqlmodel import Session, col, select

from .booking import build_notice, notify
from .config import settings
from .models import Reservation, ReservationStatus
from .notifications import NotificationSender

logger = logging.getLogger(__name__)


def reservations_needing_reminder(
    session: Session,
    now: datetime,
    window_start_hours: Optional[int] = None,
    window_end_hours: Optional[int] = None,
) -> List[Reservation]:
    """Confirmed reservations starting 23h-25h from now that have not been reminded."""
    lower = now + timedelta(hours=window_start_hours or settings.reminder_window_start_hours)
    upper = now + timedelta(hours=window_end_hours or settings.reminder_window_end_hours)
    return list(
        session.exec(
            select(Reservation)
            .where(Reservation.status == ReservationStatus.confirmed.value)
            .where(Reservation.start_at >= lower)
            .where(Reservation.start_at <= upper)
            .where(col(Reservation.reminder_sent_at).is_(None))
            .order_by(Reservation.start_at)
        ).all()
    )


def send_due_reminders(session: Session, notifier: NotificationSender, now: datetime) -> Tuple[int, int]:
    due = reservations_needing_reminder(session, now)
    if not due:
        logger.info("reminders_none_pending")
        return 0, 0

    logger.info("reminders_pending count=%s", len(due))
    sent = failed = 0
    for reservation in due:
        errors = notify(notifier.send_reminder, build_notice(session, reservation))
        if errors:
            failed += 1
            continue
        session.execute(
            update(Reservation)
            .where(col(Reservation.id) == reservation.id)
            .where(col(Reservation.reminder_sent_at).is_(None))
            .values(reminder_sent_at=now)
        )
        session.commit()
        sent += 1

    logger.info("reminders_done sent=%s failed=%s", sent, failed)
    return sent, failed
