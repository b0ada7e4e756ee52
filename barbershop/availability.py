# barbershop/availability.py

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional

from sqlmodel import Session

from .booking import active_reservations_between, get_active_barber, get_active_service, get_working_hours
from .config import settings
from .slots import Slot, generate_slots

logger = logging.getLogger(__name__)

NOT_WORKING_REASON = "Barber does not work on this day."


@dataclass
class DayAvailability:
    barber_id: int
    service_id: int
    date: date
    duration_minutes: int
    slots: List[Slot] = field(default_factory=list)
    reason: Optional[str] = None


def occupied_intervals(session: Session, barber_id: int, day: date, now: datetime):
    """[start, end) of every reservation still holding time on ``day``."""
    day_start = datetime.combine(day, datetime.min.time())
    day_end = day_start + timedelta(days=1)
    return [
        (r.start_at, r.end_at)
        for r in active_reservations_between(session, barber_id, day_start, day_end)
        if r.blocks_interval(now)
    ]


def list_slots(
    session: Session,
    barber_id: int,
    day: date,
    service_id: int,
    now: datetime,
    step_minutes: Optional[int] = None,
) -> DayAvailability:
    barber = get_active_barber(session, barber_id)
    service = get_active_service(session, service_id)
    result = DayAvailability(
        barber_id=barber.id,
        service_id=service.id,
        date=day,
        duration_minutes=service.duration_minutes,
    )

    hours = get_working_hours(session, barber.id, day)
    if hours is None or not hours.active:
        result.reason = NOT_WORKING_REASON
        return result

    result.slots = generate_slots(
        day,
        hours.opens_at,
        hours.closes_at,
        service.duration_minutes,
        occupied_intervals(session, barber.id, day, now),
        now,
        step_minutes=step_minutes or settings.slot_minutes,
    )
    logger.debug(
        "slots_generated barber_id=%s date=%s total=%s available=%s",
        barber.id,
        day,
        len(result.slots),
        sum(1 for s in result.slots if s.available),
    )
    return result
