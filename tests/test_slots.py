from datetime import date, datetime, time, timedelta

import pytest

from barbershop.errors import ValidationError
from barbershop.slots import REASON_PAST, REASON_TAKEN, generate_slots, is_on_grid, overlaps

DAY = date(2030, 6, 3)
EARLY = datetime(2030, 6, 3, 7, 0)


def at(hh, mm=0):
    return datetime.combine(DAY, time(hh, mm))


def by_time(slots):
    return {slot.time: slot for slot in slots}


class TestOverlap:
    def test_half_open_adjacent_intervals_do_not_overlap(self):
        assert not overlaps(at(9), at(10), at(10), at(11))
        assert not overlaps(at(10), at(11), at(9), at(10))

    def test_contained_and_partial_overlaps(self):
        assert overlaps(at(9), at(12), at(10), at(11))
        assert overlaps(at(9, 30), at(10, 15), at(10), at(10, 45))


class TestWindow:
    def test_open_day_45_minute_service(self):
        slots = generate_slots(DAY, time(9), time(20), 45, [], EARLY)

        assert slots[0].start == at(9) and slots[0].end == at(9, 45)
        assert slots[-1].start == at(19)
        assert all(b.start - a.start == timedelta(minutes=30) for a, b in zip(slots, slots[1:]))
        assert all(slot.available for slot in slots)

    def test_fifteen_minute_grid_last_slot_ends_at_close(self):
        slots = generate_slots(DAY, time(9), time(20), 45, [], EARLY, step_minutes=15)

        assert slots[-1].start == at(19, 15)
        assert slots[-1].end == at(20)

    @pytest.mark.parametrize("duration", [15, 25, 30, 45, 50, 60, 90, 119])
    def test_no_slot_overruns_the_window(self, duration):
        close = at(18)
        slots = generate_slots(DAY, time(9), time(18), duration, [], EARLY)

        assert slots
        assert all(slot.end <= close for slot in slots)
        # the next candidate on the grid would not fit
        assert slots[-1].start + timedelta(minutes=30) + timedelta(minutes=duration) > close

    def test_duration_longer_than_window_yields_nothing(self):
        assert generate_slots(DAY, time(9), time(10), 90, [], EARLY) == []

    def test_granularity_is_independent_of_duration(self):
        slots = generate_slots(DAY, time(9), time(12), 45, [], EARLY)

        assert [slot.time for slot in slots] == ["09:00", "09:30", "10:00", "10:30", "11:00"]

    @pytest.mark.parametrize("duration,step", [(0, 30), (-15, 30), (30, 0)])
    def test_non_positive_inputs_rejected(self, duration, step):
        with pytest.raises(ValidationError):
            generate_slots(DAY, time(9), time(12), duration, [], EARLY, step_minutes=step)


class TestAvailability:
    def test_existing_reservation_blocks_overlapping_candidates(self):
        occupied = [(at(10), at(10, 45))]
        slots = by_time(generate_slots(DAY, time(9), time(20), 30, occupied, EARLY))

        assert slots["09:30"].available
        assert not slots["10:00"].available
        assert not slots["10:30"].available
        assert slots["10:30"].reason == REASON_TAKEN
        assert slots["11:00"].available
        assert all(slot.available for slot in slots.values() if slot.start >= at(11))

    def test_existing_reservation_on_fifteen_minute_grid(self):
        occupied = [(at(10), at(10, 45))]
        slots = by_time(generate_slots(DAY, time(9), time(20), 30, occupied, EARLY, step_minutes=15))

        assert slots["09:30"].available
        for hhmm in ("09:45", "10:00", "10:15"):
            assert not slots[hhmm].available

    def test_slots_before_now_are_unavailable(self):
        now = at(12, 10)
        slots = generate_slots(DAY, time(9), time(20), 30, [], now)

        for slot in slots:
            if slot.start < now:
                assert not slot.available
                assert slot.reason == REASON_PAST
            else:
                assert slot.available

    def test_slot_starting_exactly_now_is_available(self):
        slots = by_time(generate_slots(DAY, time(9), time(20), 30, [], at(12)))

        assert slots["12:00"].available
        assert not slots["11:30"].available

    def test_every_candidate_is_emitted_in_order(self):
        occupied = [(at(9), at(20))]
        slots = generate_slots(DAY, time(9), time(20), 30, occupied, EARLY)

        assert len(slots) == 22
        assert not any(slot.available for slot in slots)
        assert [s.start for s in slots] == sorted(s.start for s in slots)

    def test_identical_inputs_give_identical_output(self):
        occupied = [(at(13), at(13, 30)), (at(10), at(10, 45))]
        first = generate_slots(DAY, time(9), time(20), 45, occupied, at(9, 40))
        second = generate_slots(DAY, time(9), time(20), 45, list(occupied), at(9, 40))

        assert first == second


def test_is_on_grid():
    assert is_on_grid(at(9), time(9), 30)
    assert is_on_grid(at(14, 30), time(9), 30)
    assert not is_on_grid(at(14, 15), time(9), 30)
    assert not is_on_grid(at(8, 30), time(9), 30)
    assert is_on_grid(at(9, 45), time(9, 15), 30)
