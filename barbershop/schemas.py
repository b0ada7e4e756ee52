# barbershop/schemas.py

from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from .config import settings
from .models import ReservationStatus


class ServicePublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    duration_minutes: int
    price: Decimal


class WorkingHoursIn(BaseModel):
    weekday: int = Field(ge=0, le=6)  # 0=Sunday
    opens_at: time
    closes_at: time
    active: bool = True

    @model_validator(mode="after")
    def _opens_before_closes(self):
        if self.active and self.opens_at >= self.closes_at:
            raise ValueError("opens_at must be before closes_at")
        return self


class WorkingHoursPublic(WorkingHoursIn):
    model_config = ConfigDict(from_attributes=True)


class BarberPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    bio: Optional[str] = None
    specialty: Optional[str] = None


class SlotPublic(BaseModel):
    time: str
    start_at: datetime
    end_at: datetime
    available: bool
    reason: Optional[str] = None


class AvailabilityResponse(BaseModel):
    barber_id: int
    service_id: int
    date: date
    duration_minutes: int
    slots: List[SlotPublic]
    reason: Optional[str] = None


class BookingCreate(BaseModel):
    client_name: str = Field(min_length=2)
    client_email: EmailStr
    client_phone: Optional[str] = Field(default=None, min_length=9)
    barber_id: int
    service_id: int
    start_at: datetime
    end_at: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator("start_at", "end_at")
    @classmethod
    def _to_shop_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Offsets are converted to shop wall-clock; naive values already are.
        if value is None or value.tzinfo is None:
            return value
        return value.astimezone(settings.tz).replace(tzinfo=None)


class ReservationPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    barber_id: int
    service_id: int
    client_name: str
    start_at: datetime
    end_at: datetime
    status: ReservationStatus
    payment_status: str
    amount_charged: Decimal
    amount_paid: Optional[Decimal] = None


class ReservationDetail(ReservationPublic):
    client_email: str
    client_phone: Optional[str] = None
    notes: Optional[str] = None
    hold_expires_at: Optional[datetime] = None
    created_at: datetime
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None


class PaymentPublic(BaseModel):
    session_id: str
    checkout_url: str


class BookingCreated(BaseModel):
    booking: ReservationPublic
    payment: PaymentPublic


class CancelRequest(BaseModel):
    client_email: EmailStr


class StaffStatusUpdate(BaseModel):
    status: ReservationStatus


class ReservationPage(BaseModel):
    data: List[ReservationDetail]
    total: int
    page: int
    limit: int
    total_pages: int


class DashboardStats(BaseModel):
    total_bookings: int
    today_bookings: int
    pending_bookings: int
    no_shows: int
    no_show_rate: str
    month_revenue: Decimal
