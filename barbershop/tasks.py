# barbershop/tasks.py
"""
Periodic jobs, run by Celery beat outside the request path.

    celery -A barbershop.tasks worker --beat
"""

import logging

from celery import Celery
from celery.schedules import crontab
from sqlmodel import Session

from .booking import release_expired_holds
from .config import settings, shop_now
from .db import engine
from .notifications import get_notifier
from .reminders import send_due_reminders

logger = logging.getLogger(__name__)

celery_app = Celery("barbershop", broker=settings.celery_broker_url)
celery_app.conf.timezone = settings.timezone
celery_app.conf.beat_schedule = {
    "send-booking-reminders": {
        "task": "barbershop.tasks.send_reminders",
        "schedule": crontab(hour="10,18", minute=0),
    },
    "release-expired-holds": {
        "task": "barbershop.tasks.release_holds",
        "schedule": crontab(minute="*/5"),
    },
}


@celery_app.task(name="barbershop.tasks.send_reminders")
def send_reminders() -> dict:
    with Session(engine) as session:
        sent, failed = send_due_reminders(session, get_notifier(), shop_now())
    return {"sent": sent, "failed": failed}


@celery_app.task(name="barbershop.tasks.release_holds")
def release_holds() -> int:
    with Session(engine) as session:
        return release_expired_holds(session, shop_now())
