"""
Tests for wake-time scheduling
"""

from datetime import datetime, time
from unittest.mock import Mock

import pytest

from conftest import FakeHost
from daybreak.errors import SchedulingError
from daybreak.models import SoundId, is_alarm_payload
from daybreak.scheduler import WakeScheduler, next_fire_time

NOW = datetime(2024, 3, 10, 7, 30, 0)


class TestNextFireTime:
    """Test day rollover of the next fire time"""

    def test_later_today(self):
        """A time later in the day fires today"""
        assert next_fire_time(time(8, 0), NOW) == datetime(2024, 3, 10, 8, 0)

    def test_equal_rolls_to_tomorrow(self):
        """A time equal to now fires tomorrow"""
        assert next_fire_time(time(7, 30), NOW) == datetime(2024, 3, 11, 7, 30)

    def test_earlier_rolls_to_tomorrow(self):
        """A time earlier in the day fires tomorrow at the same time of day"""
        assert next_fire_time(time(6, 45), NOW) == datetime(2024, 3, 11, 6, 45)

    def test_rollover_across_month_end(self):
        """Rollover follows the calendar, not the day number"""
        now = datetime(2024, 2, 29, 23, 0)
        assert next_fire_time(time(6, 0), now) == datetime(2024, 3, 1, 6, 0)

    @pytest.mark.parametrize("hour,minute", [(0, 0), (3, 15), (7, 29), (7, 30)])
    def test_past_or_present_always_next_day(self, hour, minute):
        """Every time at or before now lands on the next calendar day"""
        fire_at = next_fire_time(time(hour, minute), NOW)
        assert fire_at.date() == datetime(2024, 3, 11).date()
        assert (fire_at.hour, fire_at.minute) == (hour, minute)

    def test_later_by_seconds_stays_today(self):
        """Seconds are kept, so a time seconds ahead of now fires today"""
        now = datetime(2024, 3, 11, 7, 0, 10)
        assert next_fire_time(time(7, 0, 30), now) == datetime(2024, 3, 11, 7, 0, 30)

    def test_earlier_by_seconds_rolls_over(self):
        now = datetime(2024, 3, 11, 7, 0, 30)
        assert next_fire_time(time(7, 0, 10), now) == datetime(2024, 3, 12, 7, 0, 10)


class TestWakeScheduler:
    """Test trigger registration and cancellation"""

    def test_schedule_registers_tagged_payload(self):
        """The host receives this system's alarm payload"""
        host = FakeHost()
        scheduler = WakeScheduler(host, clock=lambda: NOW)

        trigger = scheduler.schedule(time(6, 0), SoundId.HEAVY_SLEEPER)

        assert trigger.scheduled_at == datetime(2024, 3, 11, 6, 0)
        assert trigger.sound_id is SoundId.HEAVY_SLEEPER
        at, payload = host.triggers[trigger.registration_handle]
        assert at == trigger.scheduled_at
        assert is_alarm_payload(payload)
        assert payload["sound_id"] == "heavy_sleeper_joke"
        assert scheduler.current == trigger

    def test_reschedule_cancels_previous_first(self):
        """At most one trigger is registered after any number of edits"""
        host = FakeHost()
        scheduler = WakeScheduler(host, clock=lambda: NOW)

        first = scheduler.schedule(time(6, 0), SoundId.GENTLE_WAKEUP)
        second = scheduler.schedule(time(6, 30), SoundId.GENTLE_WAKEUP)
        third = scheduler.schedule(time(8, 0), SoundId.SILENT)

        assert list(host.triggers) == [third.registration_handle]
        assert host.cancelled == [first.registration_handle, second.registration_handle]

    def test_host_rejection_raises_scheduling_error(self):
        """A rejected registration surfaces without retry"""
        host = FakeHost(fail_register=True)
        scheduler = WakeScheduler(host, clock=lambda: NOW)

        with pytest.raises(SchedulingError):
            scheduler.schedule(time(6, 0), SoundId.GENTLE_WAKEUP)

        assert scheduler.current is None
        assert host.triggers == {}

    def test_cancel_is_idempotent(self):
        """Cancelling twice, or with nothing scheduled, is a no-op"""
        host = FakeHost()
        scheduler = WakeScheduler(host, clock=lambda: NOW)
        scheduler.cancel()

        trigger = scheduler.schedule(time(6, 0), SoundId.GENTLE_WAKEUP)
        scheduler.cancel()
        scheduler.cancel(trigger)

        assert scheduler.current is None
        assert host.triggers == {}

    def test_cancel_swallows_host_errors(self):
        """A host failure on cancel is logged, not raised"""
        host = Mock()
        host.register_trigger.return_value = "alarm_x"
        host.cancel_trigger.side_effect = RuntimeError("host gone")
        scheduler = WakeScheduler(host, clock=lambda: NOW)
        scheduler.schedule(time(6, 0), SoundId.GENTLE_WAKEUP)

        scheduler.cancel()

        assert scheduler.current is None

    def test_adopt_and_forget(self):
        """A restored trigger becomes current and can be dropped"""
        host = FakeHost()
        scheduler = WakeScheduler(host, clock=lambda: NOW)
        trigger = WakeScheduler(FakeHost(), clock=lambda: NOW).schedule(time(6, 0), SoundId.GENTLE_WAKEUP)

        scheduler.adopt(trigger)
        assert scheduler.current == trigger

        scheduler.forget()
        assert scheduler.current is None
