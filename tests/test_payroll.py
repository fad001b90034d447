"""
Test Suite for the Payroll Accrual Engine

Covers combination pricing, the effective hourly rate, and the
month-to-date accrual gated on shift end times.
"""

import pytest
from datetime import datetime, timezone
import sys
from pathlib import Path

# Setup import path for src
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from work_schedule.payroll import (
    Settings, compute_amounts, compute_breakdown, effective_hourly_rate, hourly_rate_from_salary
)
from work_schedule.shift_taxonomy import ShiftCombination


@pytest.fixture
def settings():
    """Flat 100/hour rate (no basic salary) with a premium on morning+evening."""
    return Settings(
        basic_salary=0,
        hourly_rate=100,
        shift_combinations=[
            ShiftCombination("9-4", 6.5),
            ShiftCombination("4-10", 5.5),
            ShiftCombination("9-4+4-10", 13),
            ShiftCombination("N", 12.5),
            ShiftCombination("4-10+N", 19),
        ],
    )


def test_combination_pricing_is_not_additive():
    """
    Why this is important: a day worked as a recognised combination must
    be paid at the combination hours, not the combination on top of the
    single shifts.
    """
    settings = Settings(basic_salary=0, hourly_rate=100, shift_combinations=[
        ShiftCombination("9-4", 6.5),
        ShiftCombination("4-10", 5.5),
        ShiftCombination("9-4+4-10", 12),
    ])
    schedule = {"2025-03-05": ["9-4", "4-10"]}
    result = compute_amounts(schedule, {}, settings, 0, 2025, 3, datetime(2025, 4, 2, 12, 0))
    assert result.total_amount == pytest.approx(12 * 100)


def test_combination_premium_is_added(settings):
    schedule = {"2025-03-05": ["4-10", "9-4"]}
    result = compute_amounts(schedule, {}, settings, 0, 2025, 3, datetime(2025, 4, 2, 12, 0))
    assert result.total_amount == pytest.approx(1300)


def test_only_viewed_month_is_counted(settings):
    schedule = {
        "2025-02-28": ["N"],
        "2025-03-01": ["4-10"],
        "2025-04-01": ["4-10"],
    }
    result = compute_amounts(schedule, {}, settings, 0, 2025, 3, datetime(2025, 6, 1))
    assert result.total_amount == pytest.approx(550)
    assert result.month_to_date_amount == 0


@pytest.mark.parametrize(
    "now, expected_mtd",
    [
        (datetime(2025, 3, 11, 8, 59), 0),
        (datetime(2025, 3, 11, 9, 0), 1250),
        (datetime(2025, 3, 12, 0, 30), 1250),
    ],
)
def test_night_shift_accrues_from_nine_next_morning(settings, now, expected_mtd):
    schedule = {"2025-03-10": ["N"]}
    result = compute_amounts(schedule, {}, settings, 0, 2025, 3, now)
    assert result.total_amount == pytest.approx(1250)
    assert result.month_to_date_amount == pytest.approx(expected_mtd)


def test_night_shift_started_today_is_not_accrued(settings):
    schedule = {"2025-03-10": ["N"]}
    result = compute_amounts(schedule, {}, settings, 0, 2025, 3, datetime(2025, 3, 10, 23, 59))
    assert result.month_to_date_amount == 0


@pytest.mark.parametrize(
    "now, expected_mtd",
    [
        (datetime(2025, 3, 5, 15, 59), 0),
        (datetime(2025, 3, 5, 16, 0), 650),
        (datetime(2025, 3, 5, 21, 59), 650),
        (datetime(2025, 3, 5, 22, 0), 1300),
    ],
)
def test_todays_shifts_accrue_as_they_end(settings, now, expected_mtd):
    """The combination premium only counts once both shifts are over."""
    schedule = {"2025-03-05": ["9-4", "4-10"]}
    result = compute_amounts(schedule, {}, settings, 0, 2025, 3, now)
    assert result.total_amount == pytest.approx(1300)
    assert result.month_to_date_amount == pytest.approx(expected_mtd)


def test_combination_delta_waits_for_night_shift(settings):
    schedule = {"2025-03-04": ["4-10", "N"]}
    before = compute_amounts(schedule, {}, settings, 0, 2025, 3, datetime(2025, 3, 5, 8, 0))
    after = compute_amounts(schedule, {}, settings, 0, 2025, 3, datetime(2025, 3, 5, 9, 0))
    # Evening ended the night before; night and the combination delta wait for 09:00
    assert before.month_to_date_amount == pytest.approx(550)
    assert after.month_to_date_amount == pytest.approx(1900)
    assert after.total_amount == pytest.approx(1900)


def test_future_dates_never_accrue(settings):
    schedule = {"2025-03-20": ["4-10"], "2025-03-01": ["4-10"]}
    result = compute_amounts(schedule, {}, settings, 0, 2025, 3, datetime(2025, 3, 10, 12, 0))
    assert result.total_amount == pytest.approx(1100)
    assert result.month_to_date_amount == pytest.approx(550)


def test_effective_rate_prefers_monthly_override():
    settings = Settings(basic_salary=35000, hourly_rate=173.08, shift_combinations=[])
    assert effective_hourly_rate(settings, 5200, 2020, 2025) == pytest.approx(30)
    assert effective_hourly_rate(settings, 0, 2025, 2025) == pytest.approx(hourly_rate_from_salary(35000))


def test_global_salary_is_not_applied_to_other_years():
    """
    Why this is important: a salary entered this year must not silently
    reprice earlier or later years that have no override of their own.
    """
    settings = Settings(basic_salary=52000, hourly_rate=173.08, shift_combinations=[])
    assert effective_hourly_rate(settings, None, 2024, 2025) == pytest.approx(173.08)
    assert effective_hourly_rate(settings, 0, 2026, 2025) == pytest.approx(173.08)
    assert effective_hourly_rate(settings, 0, 2025, 2025) == pytest.approx(300)


def test_override_sets_rate_in_amounts(settings):
    schedule = {"2024-03-05": ["4-10"]}
    result = compute_amounts(schedule, {}, settings, 5200, 2024, 3, datetime(2025, 1, 1))
    assert result.effective_hourly_rate == pytest.approx(30)
    assert result.total_amount == pytest.approx(5.5 * 30)


def test_missing_combinations_contribute_zero():
    schedule = {"2025-03-05": ["9-4", "4-10"], "2025-03-06": ["N"]}
    empty = Settings(basic_salary=35000, hourly_rate=173.08, shift_combinations=[])
    result = compute_amounts(schedule, {}, empty, 0, 2025, 3, datetime(2025, 3, 31))
    assert result.total_amount == 0
    assert result.month_to_date_amount == 0

    none_result = compute_amounts(schedule, {}, None, 0, 2025, 3, datetime(2025, 3, 31))
    assert none_result.total_amount == 0


def test_bad_schedule_data_is_skipped(settings):
    schedule = {"not-a-date": ["N"], "2025-03-05": ["4-10", "X"], "2025-03-06": []}
    result = compute_amounts(schedule, {}, settings, 0, 2025, 3, datetime(2025, 4, 1))
    assert result.total_amount == pytest.approx(550)


def test_breakdown_lines(settings):
    schedule = {"2025-03-05": ["9-4", "4-10"], "2025-03-10": ["N"]}
    special = {"2025-03-05": True}
    result = compute_breakdown(schedule, special, settings, 0, 2025, 3, datetime(2025, 3, 10, 12, 0))
    assert [line.date for line in result.lines] == ["2025-03-05", "2025-03-10"]
    first, second = result.lines
    assert first.is_special and not second.is_special
    assert first.hours == pytest.approx(13)
    assert first.accrued_amount == pytest.approx(1300)
    assert second.accrued_amount == 0
    assert result.month_to_date_amount == pytest.approx(1300)


def test_settings_round_trip_defaults():
    settings = Settings.from_dict({"basicSalary": 40000})
    assert settings.shift_combinations  # defaults filled in
    assert Settings.from_dict({"shiftCombinations": []}).shift_combinations == []
    assert settings.with_basic_salary(52000).hourly_rate == pytest.approx(300)


def test_timezone_aware_now_is_accepted(settings):
    schedule = {"2025-03-05": ["4-10"], "2025-03-28": ["4-10"]}
    now = datetime(2025, 3, 20, 12, 0, tzinfo=timezone.utc)
    result = compute_amounts(schedule, {}, settings, 0, 2025, 3, now)
    assert result.total_amount == pytest.approx(1100)
    assert result.month_to_date_amount == pytest.approx(550)


@pytest.mark.parametrize("day_value", [5, "4-10", {"code": "N"}])
def test_malformed_day_value_is_skipped(settings, day_value):
    schedule = {"2025-03-05": day_value, "2025-03-06": ["N"]}
    result = compute_amounts(schedule, {}, settings, 0, 2025, 3, datetime(2025, 4, 1))
    assert result.total_amount == pytest.approx(1250)
