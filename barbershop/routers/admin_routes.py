# barbershop/routers/admin_routes.py

import math
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from barbershop.auth import get_current_user
from barbershop.booking import apply_staff_status
from barbershop.db import get_session
from barbershop.deps import Actor, get_now, require_role
from barbershop.models import ReservationStatus, UserRole
from barbershop.reports import dashboard, list_reservations
from barbershop.schemas import DashboardStats, ReservationDetail, ReservationPage, StaffStatusUpdate

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
)


@router.get("/dashboard", response_model=DashboardStats)
def get_dashboard(
    session: Session = Depends(get_session),
    current_user: Actor = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    require_role(current_user, UserRole.admin.value)
    return dashboard(session, now)


@router.get("/bookings", response_model=ReservationPage)
def list_bookings(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    status: Optional[ReservationStatus] = None,
    barber_id: Optional[int] = None,
    on_date: Optional[date] = Query(default=None, alias="date"),
    search: Optional[str] = None,
    session: Session = Depends(get_session),
    current_user: Actor = Depends(get_current_user),
):
    rows, total = list_reservations(
        session,
        current_user,
        page=page,
        limit=limit,
        status=status.value if status else None,
        barber_id=barber_id,
        on_date=on_date,
        search=search,
    )
    return ReservationPage(
        data=[ReservationDetail.model_validate(r) for r in rows],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit),
    )


@router.patch("/bookings/{reservation_id}/status", response_model=ReservationDetail)
def update_status(
    reservation_id: int,
    body: StaffStatusUpdate,
    session: Session = Depends(get_session),
    current_user: Actor = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    return apply_staff_status(session, reservation_id, body.status.value, current_user, now)
