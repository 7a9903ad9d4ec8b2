"""
Tests for slot calculator.
"""

from datetime import date

import pendulum
import pytest

from equislot.domain.models import DayAvailability, Interval, UnavailableReason
from equislot.domain.slot_calculator import SlotCalculator, calculate_available_slots

DAY = date(2026, 11, 2)


class TestSlotCalculator:
    """Tests for SlotCalculator."""

    def test_open_day_without_bookings(self):
        """09:00-12:00 with 30-minute slots gives six available slots."""
        slots = calculate_available_slots(
            opening_time="09:00",
            closing_time="12:00",
            booked_slots=[],
            service_duration_minutes=30,
        )

        assert [s.start_time for s in slots] == ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]
        assert all(s.is_available for s in slots)

    def test_booked_slot_is_marked(self):
        slots = calculate_available_slots(
            opening_time="09:00",
            closing_time="12:00",
            booked_slots=[Interval("10:00", "10:30")],
            service_duration_minutes=30,
        )

        by_start = {s.start_time: s for s in slots}
        assert not by_start["10:00"].is_available
        assert by_start["10:00"].unavailable_reason == UnavailableReason.BOOKED
        assert all(s.is_available for start, s in by_start.items() if start != "10:00")

    def test_partial_overlap_blocks_both_slots(self):
        slots = calculate_available_slots(
            opening_time="09:00",
            closing_time="11:00",
            booked_slots=[Interval("09:45", "10:15")],
            service_duration_minutes=30,
        )

        assert [s.is_available for s in slots] == [True, False, False, True]

    def test_final_partial_slot_is_dropped(self):
        slots = calculate_available_slots(
            opening_time="09:00",
            closing_time="10:45",
            booked_slots=[],
            service_duration_minutes=30,
        )

        assert [s.start_time for s in slots] == ["09:00", "09:30", "10:00"]
        assert slots[-1].end_time == "10:30"

    def test_slots_never_overlap_and_have_fixed_length(self):
        slots = calculate_available_slots(
            opening_time="08:00",
            closing_time="17:00",
            booked_slots=[Interval("09:10", "10:20"), Interval("13:00", "14:00")],
            service_duration_minutes=45,
        )

        intervals = [s.interval for s in slots]
        for interval in intervals:
            assert interval.duration_minutes() == 45
        for first, second in zip(intervals, intervals[1:]):
            assert not first.overlaps(second)

    def test_booked_slots_are_never_available(self):
        booked = [Interval("09:10", "10:20"), Interval("13:00", "14:00")]
        slots = calculate_available_slots(
            opening_time="08:00",
            closing_time="17:00",
            booked_slots=booked,
            service_duration_minutes=45,
        )

        for slot in slots:
            if any(slot.interval.overlaps(b) for b in booked):
                assert not slot.is_available
                assert slot.unavailable_reason == UnavailableReason.BOOKED

    def test_interval_shorter_than_service_never_overlaps(self):
        calculator = SlotCalculator(interval_minutes=15)

        slots = calculator.calculate(
            opening_time="09:00",
            closing_time="10:00",
            booked_slots=[],
            service_duration_minutes=30,
        )

        assert [s.start_time for s in slots] == ["09:00", "09:30"]
        for earlier, later in zip(slots, slots[1:]):
            assert earlier.end_time <= later.start_time

    def test_interval_longer_than_service_leaves_gaps(self):
        calculator = SlotCalculator(interval_minutes=60)

        slots = calculator.calculate(
            opening_time="09:00",
            closing_time="11:00",
            booked_slots=[],
            service_duration_minutes=30,
        )

        assert [(s.start_time, s.end_time) for s in slots] == [
            ("09:00", "09:30"),
            ("10:00", "10:30"),
        ]

    def test_empty_or_inverted_hours(self):
        assert calculate_available_slots("12:00", "09:00", [], 30) == []

    def test_invalid_duration_raises_error(self):
        with pytest.raises(ValueError):
            calculate_available_slots("09:00", "12:00", [], 0)


class TestPastSlots:
    def test_today_marks_started_slots_as_past(self):
        now = pendulum.datetime(2026, 11, 2, 10, 15, tz="Europe/Stockholm")

        slots = calculate_available_slots(
            opening_time="09:00",
            closing_time="12:00",
            booked_slots=[],
            service_duration_minutes=30,
            date=DAY,
            current_datetime=now,
        )

        past = [s.start_time for s in slots if s.unavailable_reason == UnavailableReason.PAST]
        assert past == ["09:00", "09:30", "10:00"]
        assert all(s.is_available for s in slots if s.start_time >= "10:30")

    def test_slot_starting_now_is_not_past(self):
        now = pendulum.datetime(2026, 11, 2, 10, 0, tz="Europe/Stockholm")

        slots = calculate_available_slots("09:00", "11:00", [], 30, date=DAY, current_datetime=now)

        assert slots[2].start_time == "10:00"
        assert slots[2].is_available

    def test_slot_is_past_half_a_second_after_its_start(self):
        now = pendulum.datetime(2026, 11, 2, 10, 0, 0, 500000, tz="Europe/Stockholm")

        slots = calculate_available_slots("09:00", "11:00", [], 30, date=DAY, current_datetime=now)

        assert slots[2].start_time == "10:00"
        assert slots[2].unavailable_reason == UnavailableReason.PAST
        assert slots[3].is_available

    def test_past_wins_over_booked(self):
        now = pendulum.datetime(2026, 11, 2, 11, 0, tz="Europe/Stockholm")

        slots = calculate_available_slots(
            "09:00", "12:00", [Interval("09:00", "09:30")], 30, date=DAY, current_datetime=now
        )

        assert slots[0].unavailable_reason == UnavailableReason.PAST

    def test_day_in_the_past_is_fully_past(self):
        now = pendulum.datetime(2026, 11, 3, 8, 0, tz="Europe/Stockholm")

        slots = calculate_available_slots("09:00", "12:00", [], 60, date=DAY, current_datetime=now)

        assert slots
        assert all(s.unavailable_reason == UnavailableReason.PAST for s in slots)

    def test_future_day_has_no_past_slots(self):
        now = pendulum.datetime(2026, 11, 1, 23, 59, tz="Europe/Stockholm")

        slots = calculate_available_slots("09:00", "12:00", [], 60, date=DAY, current_datetime=now)

        assert all(s.is_available for s in slots)

    def test_no_clock_means_nothing_is_past(self):
        slots = calculate_available_slots("09:00", "12:00", [], 60, date=DAY)

        assert all(s.is_available for s in slots)


class TestCalculateForDay:
    def test_closed_day_yields_no_slots(self):
        day = DayAvailability(date=DAY, is_closed=True, opening_time="09:00", closing_time="12:00")

        assert SlotCalculator().calculate_for_day(day, 30) == []

    def test_missing_hours_yield_no_slots(self):
        day = DayAvailability(date=DAY, is_closed=False, opening_time="09:00")

        assert SlotCalculator().calculate_for_day(day, 30) == []

    def test_uses_booked_slots_of_the_day(self):
        day = DayAvailability(
            date=DAY,
            is_closed=False,
            opening_time="09:00",
            closing_time="11:00",
            booked_slots=[Interval("09:00", "10:00")],
        )

        slots = SlotCalculator().calculate_for_day(day, 60)

        assert [(s.start_time, s.is_available) for s in slots] == [("09:00", False), ("10:00", True)]
