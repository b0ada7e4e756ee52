# barbershop/routers/barbers_routes.py

from datetime import datetime
from datetime import date as Date
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from barbershop.auth import get_current_user
from barbershop.availability import list_slots
from barbershop.booking import get_active_barber
from barbershop.db import get_session
from barbershop.deps import Actor, can_manage_barber, get_now
from barbershop.models import Barber, WorkingHours
from barbershop.schemas import (
    AvailabilityResponse,
    BarberPublic,
    SlotPublic,
    WorkingHoursIn,
    WorkingHoursPublic,
)

router = APIRouter(
    prefix="/barbers",
    tags=["barbers"],
)


@router.get("", response_model=List[BarberPublic])
def list_barbers(session: Session = Depends(get_session)):
    return session.exec(
        select(Barber).where(Barber.active == True).order_by(Barber.name)  # noqa: E712
    ).all()


@router.get("/{barber_id}", response_model=BarberPublic)
def get_barber(barber_id: int, session: Session = Depends(get_session)):
    return get_active_barber(session, barber_id)


@router.get("/{barber_id}/slots", response_model=AvailabilityResponse)
def barber_slots(
    barber_id: int,
    date: Date,
    service_id: int,
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now),
):
    availability = list_slots(session, barber_id, date, service_id, now)
    return AvailabilityResponse(
        barber_id=availability.barber_id,
        service_id=availability.service_id,
        date=availability.date,
        duration_minutes=availability.duration_minutes,
        reason=availability.reason,
        slots=[
            SlotPublic(
                time=slot.time,
                start_at=slot.start,
                end_at=slot.end,
                available=slot.available,
                reason=slot.reason,
            )
            for slot in availability.slots
        ],
    )


@router.get("/{barber_id}/schedule", response_model=List[WorkingHoursPublic])
def get_schedule(barber_id: int, session: Session = Depends(get_session)):
    get_active_barber(session, barber_id)
    return session.exec(
        select(WorkingHours).where(WorkingHours.barber_id == barber_id).order_by(WorkingHours.weekday)
    ).all()


@router.put("/{barber_id}/schedule", response_model=List[WorkingHoursPublic])
def put_schedule(
    barber_id: int,
    schedule: List[WorkingHoursIn],
    session: Session = Depends(get_session),
    current_user: Actor = Depends(get_current_user),
):
    if not can_manage_barber(current_user, barber_id):
        raise HTTPException(status_code=403, detail="Forbidden")
    get_active_barber(session, barber_id)

    weekdays = [day.weekday for day in schedule]
    if len(weekdays) != len(set(weekdays)):
        raise HTTPException(status_code=422, detail="weekday cannot contain duplicates")

    # Upsert: one row per (barber, weekday)
    for day in schedule:
        row = session.exec(
            select(WorkingHours)
            .where(WorkingHours.barber_id == barber_id)
            .where(WorkingHours.weekday == day.weekday)
        ).first()
        if row is None:
            row = WorkingHours(barber_id=barber_id, weekday=day.weekday, opens_at=day.opens_at, closes_at=day.closes_at)
        row.opens_at = day.opens_at
        row.closes_at = day.closes_at
        row.active = day.active
        session.add(row)

    session.commit()
    return session.exec(
        select(WorkingHours).where(WorkingHours.barber_id == barber_id).order_by(WorkingHours.weekday)
    ).all()
