"""
Test cases for anchor parsing, schedule validation and trigger construction.
"""

from datetime import datetime, timedelta, timezone

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from scheduler.models import Frequency, ScheduledJob
from scheduler.triggers import TriggerRegistry, build_trigger, parse_anchor, validate_schedule
from utilities.exceptions import ScheduleValidationError, TriggerConstructionError

UTC = timezone.utc
NOW = datetime(2024, 3, 10, 12, 0, tzinfo=UTC)


async def fire(job_id):
    pass


class TestParseAnchor:
    """Test cases for parse_anchor."""

    def test_minutes_precision(self):
        assert parse_anchor("2024-03-11", "09:30", UTC) == datetime(2024, 3, 11, 9, 30, tzinfo=UTC)

    def test_seconds_precision(self):
        assert parse_anchor("2024-03-11", "09:30:15", UTC) == datetime(2024, 3, 11, 9, 30, 15, tzinfo=UTC)

    @pytest.mark.parametrize("date,time", [(None, "09:30"), ("2024-03-11", None), ("", ""), ("2024-03-11", "")])
    def test_missing_parts(self, date, time):
        with pytest.raises(ScheduleValidationError, match="required"):
            parse_anchor(date, time, UTC)

    @pytest.mark.parametrize("date,time", [
        ("11/03/2024", "09:30"),
        ("2024-03-11", "9.30"),
        ("2024-02-30", "09:30"),
        ("2024-03-11", "25:00"),
    ])
    def test_malformed(self, date, time):
        with pytest.raises(ScheduleValidationError, match="Invalid date/time format"):
            parse_anchor(date, time, UTC)


class TestValidateSchedule:
    """Test cases for validate_schedule."""

    def test_future_is_valid(self):
        result = validate_schedule("2024-03-10", "12:01", UTC, now=NOW)
        assert result.valid is True
        assert result.error is None

    def test_now_is_not_future(self):
        result = validate_schedule("2024-03-10", "12:00", UTC, now=NOW)
        assert result.valid is False
        assert result.error == "Date and time must be in the future"

    def test_past_is_invalid(self):
        result = validate_schedule("2024-03-09", "23:59", UTC, now=NOW)
        assert result.valid is False

    def test_malformed_is_invalid(self):
        result = validate_schedule("tomorrow", "noon", UTC, now=NOW)
        assert result.valid is False
        assert "Invalid date/time format" in result.error


class TestBuildTrigger:
    """Test cases for trigger pattern derivation."""

    def test_once_fires_at_anchor(self):
        trigger = build_trigger("2024-03-11", "09:30:15", Frequency.ONCE, UTC, now=NOW)

        assert isinstance(trigger, DateTrigger)
        assert trigger.get_next_fire_time(None, NOW) == datetime(2024, 3, 11, 9, 30, 15, tzinfo=UTC)

    def test_once_in_past_fails(self):
        with pytest.raises(TriggerConstructionError):
            build_trigger("2024-03-09", "09:30", Frequency.ONCE, UTC, now=NOW)

    def test_malformed_anchor_fails(self):
        with pytest.raises(TriggerConstructionError):
            build_trigger("2024-13-01", "09:30", Frequency.DAILY, UTC, now=NOW)

    def test_daily_uses_time_of_day(self):
        """Recurring triggers drop seconds and fire at the anchor's hour and minute."""
        trigger = build_trigger("2024-01-01", "09:30:45", Frequency.DAILY, UTC, now=NOW)

        assert isinstance(trigger, CronTrigger)
        next_fire = trigger.get_next_fire_time(None, NOW)
        assert next_fire == datetime(2024, 3, 11, 9, 30, tzinfo=UTC)

    def test_daily_recurring_anchor_may_be_past(self):
        trigger = build_trigger("2020-01-01", "18:00", Frequency.DAILY, UTC, now=NOW)
        assert trigger.get_next_fire_time(None, NOW) == datetime(2024, 3, 10, 18, 0, tzinfo=UTC)

    def test_weekly_uses_anchor_weekday(self):
        # 2024-01-03 is a Wednesday; NOW is Sunday 2024-03-10
        trigger = build_trigger("2024-01-03", "07:00", Frequency.WEEKLY, UTC, now=NOW)

        next_fire = trigger.get_next_fire_time(None, NOW)
        assert next_fire == datetime(2024, 3, 13, 7, 0, tzinfo=UTC)
        assert next_fire.weekday() == 2

    def test_monthly_uses_anchor_day(self):
        trigger = build_trigger("2024-01-15", "06:45", Frequency.MONTHLY, UTC, now=NOW)
        assert trigger.get_next_fire_time(None, NOW) == datetime(2024, 3, 15, 6, 45, tzinfo=UTC)

    def test_monthly_skips_short_months(self):
        """Day 31 does not exist in April, so the next fire is May 31."""
        trigger = build_trigger("2024-01-31", "09:00", Frequency.MONTHLY, UTC, now=NOW)

        after_march = datetime(2024, 4, 1, tzinfo=UTC)
        assert trigger.get_next_fire_time(None, after_march) == datetime(2024, 5, 31, 9, 0, tzinfo=UTC)

    def test_recurring_next_fire_is_strictly_future(self):
        for frequency in (Frequency.DAILY, Frequency.WEEKLY, Frequency.MONTHLY):
            trigger = build_trigger("2024-03-10", "12:00", frequency, UTC, now=NOW)
            assert trigger.get_next_fire_time(None, NOW + timedelta(seconds=1)) > NOW


class TestTriggerRegistry:
    """Test cases for the live trigger table."""

    @pytest.fixture
    def registry(self):
        scheduler = AsyncIOScheduler(timezone=UTC)
        return TriggerRegistry(scheduler, UTC, fire)

    @pytest.fixture
    def daily_job(self):
        return ScheduledJob(date="2024-01-01", time="09:30", frequency=Frequency.DAILY)

    def test_arm_registers_trigger(self, registry, daily_job):
        next_run = registry.arm(daily_job)

        assert daily_job.id in registry
        assert len(registry) == 1
        assert next_run.hour == 9 and next_run.minute == 30
        assert registry.scheduler.get_job(daily_job.id) is not None

    def test_arm_replaces_existing_trigger(self, registry, daily_job):
        registry.arm(daily_job)
        daily_job.frequency = Frequency.WEEKLY
        registry.arm(daily_job)

        assert len(registry) == 1
        assert registry.next_run(daily_job.id).weekday() == 0  # 2024-01-01 was a Monday

    def test_arm_failure_leaves_no_trigger(self, registry):
        job = ScheduledJob(date="2000-01-01", time="09:30", frequency=Frequency.ONCE)

        with pytest.raises(TriggerConstructionError):
            registry.arm(job)

        assert job.id not in registry
        assert registry.scheduler.get_job(job.id) is None

    def test_disarm(self, registry, daily_job):
        registry.arm(daily_job)

        assert registry.disarm(daily_job.id) is True
        assert daily_job.id not in registry
        assert registry.next_run(daily_job.id) is None
        assert registry.disarm(daily_job.id) is False

    def test_disarm_all(self, registry):
        for hour in ("01:00", "02:00", "03:00"):
            registry.arm(ScheduledJob(date="2024-01-01", time=hour, frequency=Frequency.DAILY))

        assert registry.disarm_all() == 3
        assert len(registry) == 0
        assert registry.scheduler.get_jobs() == []
