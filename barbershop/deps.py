# barbershop/deps.py

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fastapi import HTTPException

from .config import shop_now
from .models import UserRole


@dataclass(frozen=True)
class Actor:
    """The authenticated staff member making a request."""

    user_id: int
    email: str
    role: str
    barber_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin.value


def can_manage_barber(actor: Actor, barber_id: int) -> bool:
    """Admins manage every barber; a barber manages only their own profile."""
    if actor.is_admin:
        return True
    return actor.role == UserRole.barber.value and actor.barber_id == barber_id


def require_role(actor: Actor, role: str):
    if actor.role != role:
        raise HTTPException(status_code=403, detail="Forbidden")


# Dependency: request clock, overridable in tests
def get_now() -> datetime:
    return shop_now()
