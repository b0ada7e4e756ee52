# barbershop/models.py

from datetime import datetime, time
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Index, UniqueConstraint, text
from sqlmodel import Field, SQLModel


class UserRole(str, Enum):
    admin = "admin"
    barber = "barber"


class ReservationStatus(str, Enum):
    tentative = "tentative"
    confirmed = "confirmed"
    cancelled = "cancelled"
    completed = "completed"
    no_show = "no_show"


class PaymentStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    failed = "failed"
    expired = "expired"
    refunded = "refunded"


ACTIVE_STATUSES = (ReservationStatus.tentative.value, ReservationStatus.confirmed.value)
TERMINAL_STATUSES = (
    ReservationStatus.cancelled.value,
    ReservationStatus.completed.value,
    ReservationStatus.no_show.value,
)

_ACTIVE_PREDICATE = text("status IN ('tentative', 'confirmed')")


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    role: str  # admin or barber


class Barber(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    bio: Optional[str] = None
    specialty: Optional[str] = None
    active: bool = True
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)


class Service(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: Optional[str] = None
    duration_minutes: int
    price: Decimal = Field(max_digits=8, decimal_places=2)
    active: bool = True


class WorkingHours(SQLModel, table=True):
    __tablename__ = "working_hours"
    __table_args__ = (
        UniqueConstraint("barber_id", "weekday", name="uq_barber_weekday"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    barber_id: int = Field(foreign_key="barber.id", index=True)
    weekday: int  # 0=Sunday ... 6=Saturday
    opens_at: time
    closes_at: time
    active: bool = True


class Reservation(SQLModel, table=True):
    __table_args__ = (
        # Backstop for the barber lock: two active holds can never share a start.
        Index(
            "uq_active_barber_start",
            "barber_id",
            "start_at",
            unique=True,
            sqlite_where=_ACTIVE_PREDICATE,
            postgresql_where=_ACTIVE_PREDICATE,
        ),
        Index("ix_reservation_barber_window", "barber_id", "start_at", "end_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    barber_id: int = Field(foreign_key="barber.id")
    service_id: int = Field(foreign_key="service.id")

    client_name: str
    client_email: str = Field(index=True)
    client_phone: Optional[str] = None
    notes: Optional[str] = None

    start_at: datetime
    end_at: datetime
    status: str = Field(default=ReservationStatus.tentative.value, index=True)

    payment_status: str = PaymentStatus.pending.value
    amount_charged: Decimal = Field(max_digits=8, decimal_places=2)
    amount_paid: Optional[Decimal] = Field(default=None, max_digits=8, decimal_places=2)
    payment_session_id: Optional[str] = Field(default=None, index=True)
    payment_ref: Optional[str] = Field(default=None, index=True)

    hold_expires_at: Optional[datetime] = None
    reminder_sent_at: Optional[datetime] = None
    created_at: datetime
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None  # client, staff or payment

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def blocks_interval(self, now: datetime) -> bool:
        """True while this reservation holds its [start, end) interval."""
        if self.status == ReservationStatus.confirmed.value:
            return True
        if self.status == ReservationStatus.tentative.value:
            return self.hold_expires_at is None or self.hold_expires_at > now
        return False
