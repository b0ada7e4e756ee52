# barbershop/slots.py
"""
Slot generation.

Pure functions only: no database access and no clock reads. ``now`` is
passed in so the same inputs always yield the same slots.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional, Tuple

from .errors import ValidationError

Interval = Tuple[datetime, datetime]

REASON_PAST = "past"
REASON_TAKEN = "taken"


@dataclass(frozen=True)
class Slot:
    start: datetime
    end: datetime
    available: bool
    reason: Optional[str] = None

    @property
    def time(self) -> str:
        return self.start.strftime("%H:%M")


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open [start, end) overlap test."""
    return a_start < b_end and a_end > b_start


def generate_slots(
    day: date,
    opens_at: time,
    closes_at: time,
    duration_minutes: int,
    occupied: Iterable[Interval],
    now: datetime,
    step_minutes: int = 30,
) -> List[Slot]:
    """
    Candidate start times for one barber on one day.

    A candidate is emitted every ``step_minutes`` from ``opens_at`` for as
    long as ``start + duration`` still fits before ``closes_at``. Every
    candidate is returned, with ``available`` False when it starts before
    ``now`` or overlaps one of the ``occupied`` intervals.
    """
    if duration_minutes <= 0:
        raise ValidationError("Service duration must be positive")
    if step_minutes <= 0:
        raise ValidationError("Slot granularity must be positive")

    work_start = datetime.combine(day, opens_at)
    work_end = datetime.combine(day, closes_at)
    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=step_minutes)
    busy = sorted(occupied)

    slots: List[Slot] = []
    current = work_start
    while current + duration <= work_end:
        slot_end = current + duration
        reason = None
        if current < now:
            reason = REASON_PAST
        elif any(overlaps(current, slot_end, b_start, b_end) for b_start, b_end in busy):
            reason = REASON_TAKEN
        slots.append(Slot(start=current, end=slot_end, available=reason is None, reason=reason))
        current += step

    return slots


def is_on_grid(start: datetime, opens_at: time, step_minutes: int) -> bool:
    """True when ``start`` falls on the slot grid anchored at ``opens_at``."""
    offset = start - datetime.combine(start.date(), opens_at)
    return offset >= timedelta(0) and offset % timedelta(minutes=step_minutes) == timedelta(0)
