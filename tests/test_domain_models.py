"""
Tests for domain models.
"""

from datetime import date

import pytest

from equislot.domain.entities import (
    AvailabilityException,
    Booking,
    BookingStatus,
    OpeningHours,
    ProviderSchedule,
)
from equislot.domain.models import (
    Interval,
    Location,
    TimeSlot,
    UnavailableReason,
    add_minutes,
    format_minutes,
    normalize_time,
    parse_time,
)
from equislot.domain.result import (
    DomainError,
    ErrorCode,
    error_status,
    fail,
    ok,
)


class TestTimeHelpers:
    def test_parse_and_format(self):
        assert parse_time("09:30") == 570
        assert format_minutes(570) == "09:30"

    def test_seconds_are_dropped(self):
        assert normalize_time("09:30:00") == "09:30"

    def test_invalid_time_raises_error(self):
        with pytest.raises(ValueError, match="HH:MM"):
            parse_time("25:00")
        with pytest.raises(ValueError):
            parse_time("")

    def test_add_minutes_rolls_over_hours(self):
        assert add_minutes("10:45", 30) == "11:15"
        assert add_minutes("23:30", 60) == "24:30"


class TestInterval:
    def test_create_valid_interval(self):
        interval = Interval("09:00", "10:30")

        assert interval.start_minutes == 540
        assert interval.end_minutes == 630
        assert interval.duration_minutes() == 90
        assert str(interval) == "09:00-10:30"

    def test_invalid_interval_raises_error(self):
        with pytest.raises(ValueError, match="Start time .* must be before end time"):
            Interval("10:00", "09:00")
        with pytest.raises(ValueError):
            Interval("10:00", "10:00")

    def test_end_of_day_marker(self):
        assert Interval("23:00", "24:00").duration_minutes() == 60

    def test_overlaps_is_half_open(self):
        morning = Interval("09:00", "12:00")
        midday = Interval("11:00", "14:00")
        afternoon = Interval("12:00", "15:00")

        assert morning.overlaps(midday)
        assert midday.overlaps(morning)
        assert not morning.overlaps(afternoon)
        assert morning.is_adjacent_to(afternoon)

    def test_contains(self):
        assert Interval("09:00", "17:00").contains(Interval("10:00", "11:00"))
        assert not Interval("10:00", "11:00").contains(Interval("09:00", "17:00"))


class TestTimeSlot:
    def test_mark_unavailable_returns_copy(self):
        slot = TimeSlot("09:00", "09:30", is_available=True)
        blocked = slot.mark_unavailable(UnavailableReason.TRAVEL_TIME)

        assert slot.is_available
        assert not blocked.is_available
        assert blocked.unavailable_reason == UnavailableReason.TRAVEL_TIME
        assert blocked.unavailable_reason.value == "travel-time"

    def test_format_display(self):
        slot = TimeSlot("09:00", "09:30", is_available=False, unavailable_reason=UnavailableReason.PAST)
        assert "past" in slot.format_display()


class TestLocation:
    def test_distance_between_cities(self):
        stockholm = Location(59.3293, 18.0686)
        gothenburg = Location(57.7089, 11.9746)

        distance = stockholm.distance_to(gothenburg)

        assert 390 < distance < 405
        assert stockholm.distance_to(stockholm) == pytest.approx(0)

    def test_travel_time_uses_speed(self):
        a = Location(57.0, 12.0)
        b = Location(57.0, 12.5)

        assert a.travel_time_to(b, speed_kmh=50) == pytest.approx(a.distance_to(b) / 50 * 60)

    def test_invalid_coordinates(self):
        with pytest.raises(ValueError, match="Latitude"):
            Location(91, 0)
        with pytest.raises(ValueError, match="Longitude"):
            Location(0, 181)


class TestProviderSchedule:
    def test_weekly_hours_and_missing_weekday(self):
        schedule = ProviderSchedule(
            provider_id="p1",
            weekly={0: OpeningHours(weekday=0, opening_time="08:00", closing_time="16:00")},
        )

        monday = schedule.hours_for(date(2026, 11, 2))
        tuesday = schedule.hours_for(date(2026, 11, 3))

        assert monday.opening_time == "08:00"
        assert not monday.is_closed
        assert tuesday.is_closed

    def test_exception_wins_over_weekly_hours(self):
        schedule = ProviderSchedule(
            provider_id="p1",
            weekly={0: OpeningHours(weekday=0, opening_time="08:00", closing_time="16:00")},
            exceptions={
                date(2026, 11, 2): AvailabilityException(
                    date=date(2026, 11, 2),
                    is_closed=False,
                    opening_time="10:00",
                    closing_time="12:00",
                )
            },
        )

        hours = schedule.hours_for(date(2026, 11, 2))

        assert (hours.opening_time, hours.closing_time) == ("10:00", "12:00")


class TestBooking:
    def test_active_statuses(self):
        booking = Booking(
            id="b1",
            customer_id="c1",
            provider_id="p1",
            service_id="s1",
            booking_date=date(2026, 11, 2),
            start_time="09:00",
            end_time="10:00",
        )
        assert booking.is_active
        assert booking.interval == Interval("09:00", "10:00")

        booking.status = BookingStatus.CANCELLED
        assert not booking.is_active


class TestResult:
    def test_success(self):
        result = ok(42)

        assert result.is_success
        assert not result.is_failure
        assert result.value == 42
        assert result.error is None

    def test_failure(self):
        result = fail(ErrorCode.GROUP_FULL, "Full", group_id="g1")

        assert result.is_failure
        assert result.error.code == ErrorCode.GROUP_FULL
        assert result.error.details == {"group_id": "g1"}
        with pytest.raises(ValueError):
            result.value

    @pytest.mark.parametrize(
        "code, status",
        [
            (ErrorCode.BOOKING_NOT_FOUND, 404),
            (ErrorCode.NO_DATA, 404),
            (ErrorCode.UNAUTHORIZED, 403),
            (ErrorCode.OVERLAP, 409),
            (ErrorCode.GROUP_FULL, 409),
            (ErrorCode.INVALID_STATUS_TRANSITION, 400),
        ],
    )
    def test_error_status(self, code, status):
        assert error_status(DomainError(code=code, message="x")) == status
