from datetime import datetime, timezone

import pytest

from guidance_dashboard.modules.clock import CivilClock, parse_civil_date


def test_now_converts_utc_to_manila():
    clock = CivilClock('Asia/Manila', now_func=lambda: datetime(2025, 6, 15, 22, 59, tzinfo=timezone.utc))

    now = clock.now()

    assert now.date == '2025-06-16'
    assert now.time == '06:59 AM'
    assert (now.hours, now.minutes) == (6, 59)
    assert now.total_minutes == 419
    assert now.day_name == 'Monday'
    assert now.year == 2025


def test_naive_datetimes_are_school_local():
    clock = CivilClock(now_func=lambda: datetime(2025, 6, 16, 13, 5))

    now = clock.now()

    assert now.time == '01:05 PM'
    assert now.total_minutes == 13 * 60 + 5
    assert clock.today() == '2025-06-16'


def test_date_offset_crosses_month_and_year():
    clock = CivilClock(now_func=lambda: datetime(2025, 1, 1, 8, 0))

    yesterday = clock.date_offset(-1)

    assert yesterday.date == '2024-12-31'
    assert yesterday.day_short == 'Tue'
    assert yesterday.day_full == 'Tuesday'
    assert yesterday.year == 2024
    assert clock.date_offset(0).date == '2025-01-01'


def test_parse_civil_date():
    assert parse_civil_date(' 2025-06-16 ') == '2025-06-16'
    with pytest.raises(ValueError):
        parse_civil_date('16/06/2025')
    with pytest.raises(ValueError):
        parse_civil_date('2025-02-30')
