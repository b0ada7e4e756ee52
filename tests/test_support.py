import threading
import time
from concurrent.futures import ThreadPoolExecutor

from sqlmodel import select

from barbershop.data import BARBERS, SERVICES, seed
from barbershop.locks import BarberLocks
from barbershop.models import Barber, Service, WorkingHours
from barbershop.tasks import celery_app


class TestBarberLocks:
    def test_same_barber_is_serialised(self):
        locks = BarberLocks()
        inside = []
        overlap = threading.Event()

        def work(_):
            with locks.hold(1):
                inside.append(1)
                if len(inside) > 1:
                    overlap.set()
                time.sleep(0.01)
                inside.pop()

        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(work, range(8)))

        assert not overlap.is_set()
        assert len(locks) == 1

    def test_lock_released_on_error(self):
        locks = BarberLocks()
        try:
            with locks.hold(3):
                raise RuntimeError("boom")
        except RuntimeError:
            pass

        with locks.hold(3):
            pass

    def test_one_lock_per_barber(self):
        locks = BarberLocks()
        with locks.hold(1), locks.hold(2):
            assert len(locks) == 2


class TestSeed:
    def test_loads_catalogue_once(self, session):
        assert seed(session) is True
        assert seed(session) is False

        assert len(session.exec(select(Service)).all()) == len(SERVICES)
        assert len(session.exec(select(Barber)).all()) == len(BARBERS)
        sundays = session.exec(select(WorkingHours).where(WorkingHours.weekday == 0)).all()
        assert sundays and not any(row.active for row in sundays)


def test_beat_schedule():
    schedule = celery_app.conf.beat_schedule

    assert schedule["send-booking-reminders"]["task"] == "barbershop.tasks.send_reminders"
    assert schedule["release-expired-holds"]["task"] == "barbershop.tasks.release_holds"
    assert "barbershop.tasks.send_reminders" in celery_app.tasks
