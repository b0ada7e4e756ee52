# barbershop/data.py
"""Demo catalogue loaded on first start when BARBERSHOP_SEED_DEMO_DATA is on."""

import logging
from datetime import time
from decimal import Decimal

from sqlmodel import Session, select

from .models import Barber, Service, User, UserRole, WorkingHours

logger = logging.getLogger(__name__)

SERVICES = [
    # name, minutes, price
    ("Classic Cut", 30, Decimal("15.00")),
    ("Skin Fade", 45, Decimal("18.00")),
    ("Beard Trim", 30, Decimal("10.00")),
    ("Cut & Beard", 60, Decimal("25.00")),
    ("Hot Towel Shave", 30, Decimal("14.00")),
]

BARBERS = [
    # email, name, specialty
    ("marcus@royalcut.pt", "Marcus Silva", "Skin Fade"),
    ("diogo@royalcut.pt", "Diogo Ferreira", "Beard Sculpting"),
    ("andre@royalcut.pt", "Andre Costa", "Texture & Waves"),
]

# weekday (0=Sunday): opens, closes, active
WEEKLY_HOURS = {
    0: (time(9, 0), time(13, 0), False),
    1: (time(9, 0), time(20, 0), True),
    2: (time(9, 0), time(20, 0), True),
    3: (time(9, 0), time(20, 0), True),
    4: (time(9, 0), time(20, 0), True),
    5: (time(9, 0), time(20, 0), True),
    6: (time(9, 0), time(17, 0), True),
}


def seed(session: Session, admin_email: str = "admin@royalcut.pt") -> bool:
    """Insert the demo catalogue unless services already exist."""
    if session.exec(select(Service)).first() is not None:
        return False

    session.add(User(email=admin_email, role=UserRole.admin.value))
    for name, minutes, price in SERVICES:
        session.add(Service(name=name, duration_minutes=minutes, price=price))

    for email, name, specialty in BARBERS:
        user = User(email=email, role=UserRole.barber.value)
        session.add(user)
        session.flush()
        barber = Barber(name=name, specialty=specialty, user_id=user.id)
        session.add(barber)
        session.flush()
        for weekday, (opens_at, closes_at, active) in WEEKLY_HOURS.items():
            session.add(
                WorkingHours(
                    barber_id=barber.id,
                    weekday=weekday,
                    opens_at=opens_at,
                    closes_at=closes_at,
                    active=active,
                )
            )

    session.commit()
    logger.info("seed_loaded services=%s barbers=%s", len(SERVICES), len(BARBERS))
    return True
