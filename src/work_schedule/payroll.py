"""
Payroll Accrual Engine for Work Schedule Tracker

Converts the shifts on a private calendar into a monthly payroll amount
using combination pricing, and works out how much of it has been earned
so far ("month-to-date") from the wall-clock end of each shift.
"""

from datetime import date, datetime
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, FrozenSet
import logging

from .shift_taxonomy import (
    ShiftCode, ShiftCombination, build_combination_table, default_shift_combinations,
    parse_shift_code, shift_end
)

logger = logging.getLogger(__name__)

WEEKS_PER_YEAR = 52
HOURS_PER_WEEK = 40

DEFAULT_BASIC_SALARY = 35000.0
DEFAULT_HOURLY_RATE = 173.08


def hourly_rate_from_salary(monthly_salary: float) -> float:
    """Monthly salary -> hourly rate, assuming a 40 hour week"""
    return monthly_salary * 12 / WEEKS_PER_YEAR / HOURS_PER_WEEK


@dataclass
class Settings:
    """Pay settings: basic salary, derived hourly rate and combination table"""
    basic_salary: float = DEFAULT_BASIC_SALARY
    hourly_rate: float = DEFAULT_HOURLY_RATE
    shift_combinations: List[ShiftCombination] = field(default_factory=default_shift_combinations)

    def with_basic_salary(self, basic_salary: float) -> 'Settings':
        return Settings(
            basic_salary=basic_salary,
            hourly_rate=round(hourly_rate_from_salary(basic_salary), 2),
            shift_combinations=list(self.shift_combinations)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "basicSalary": self.basic_salary,
            "hourlyRate": self.hourly_rate,
            "shiftCombinations": [combo.to_dict() for combo in self.shift_combinations]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Settings':
        if "shiftCombinations" in data:
            combinations = [ShiftCombination.from_dict(c) for c in data.get("shiftCombinations") or []]
        else:
            combinations = default_shift_combinations()
        return cls(
            basic_salary=float(data.get("basicSalary", DEFAULT_BASIC_SALARY) or 0),
            hourly_rate=float(data.get("hourlyRate", DEFAULT_HOURLY_RATE) or 0),
            shift_combinations=combinations
        )


@dataclass
class AccrualLine:
    """Earnings for a single calendar date"""
    date: str
    codes: List[ShiftCode]
    hours: float
    amount: float
    accrued_amount: float
    is_special: bool = False


@dataclass
class AccrualResult:
    """Result of an accrual run for one viewed month"""
    total_amount: float
    month_to_date_amount: float
    effective_hourly_rate: float = 0.0
    lines: List[AccrualLine] = field(default_factory=list)


def effective_hourly_rate(settings: Optional[Settings], monthly_override: Optional[float],
                          viewed_year: int, current_year: int) -> float:
    """
    Hourly rate for the viewed month.

    A positive per-month override always wins. Without one, the global
    basic salary only applies when the viewed year is the current year;
    it is never carried into other years. If neither gives a salary the
    stored hourly rate is used as is.
    """
    settings = settings or Settings(basic_salary=0, hourly_rate=0, shift_combinations=[])
    if monthly_override and monthly_override > 0:
        salary = monthly_override
    elif viewed_year == current_year:
        salary = settings.basic_salary or 0
    else:
        salary = 0

    if salary > 0:
        return hourly_rate_from_salary(salary)
    return settings.hourly_rate or 0


def shift_has_ended(work_date: date, code: ShiftCode, now: datetime) -> bool:
    """
    Whether a shift counts towards month-to-date at the given instant.

    Comparing against the shift's end instant covers every case: earlier
    days have always ended, today's shifts only after their clock end,
    a night shift only from 09:00 the next morning, and future days never.
    """
    return now >= shift_end(work_date, code)


def _unique_codes(raw_codes) -> List[ShiftCode]:
    codes: List[ShiftCode] = []
    if raw_codes and not isinstance(raw_codes, (list, tuple)):
        logger.warning(f"Ignoring malformed shift list {raw_codes!r} in schedule")
        return codes
    for raw in raw_codes or []:
        code = parse_shift_code(raw)
        if code is None:
            logger.warning(f"Ignoring unknown shift code '{raw}' in schedule")
            continue
        if code not in codes:
            codes.append(code)
    return codes


def compute_breakdown(schedule: Dict[str, List[str]], special_dates: Dict[str, bool],
                      settings: Optional[Settings], monthly_override: Optional[float],
                      viewed_year: int, viewed_month: int,
                      now: Optional[datetime] = None) -> AccrualResult:
    """
    Compute per-date earnings for the viewed month plus both totals.

    Each code on a date is paid at its single-code hours. When a date has
    several codes and a combination covers exactly that set, the
    difference between the combination hours and the sum of the single
    hours is added as a correction, so the date is paid at the
    combination hours overall. The correction only counts towards
    month-to-date once every shift in it has ended.
    """
    now = now or datetime.now()
    if now.tzinfo is not None:
        # Shift times are local wall-clock times
        now = now.astimezone().replace(tzinfo=None)
    rate = effective_hourly_rate(settings, monthly_override, viewed_year, now.year)
    combinations = settings.shift_combinations if settings else []
    table: Dict[FrozenSet[str], float] = build_combination_table(combinations)
    special_dates = special_dates or {}
    is_current_month = (viewed_year, viewed_month) == (now.year, now.month)

    lines: List[AccrualLine] = []
    total = 0.0
    month_to_date = 0.0

    for date_str in sorted((schedule or {}).keys()):
        try:
            work_date = date.fromisoformat(date_str)
        except ValueError:
            logger.warning(f"Skipping malformed schedule date '{date_str}'")
            continue
        if (work_date.year, work_date.month) != (viewed_year, viewed_month):
            continue

        codes = _unique_codes(schedule[date_str])
        if not codes:
            continue

        day_hours = 0.0
        day_amount = 0.0
        day_accrued = 0.0
        single_hours: Dict[ShiftCode, float] = {}

        for code in codes:
            hours = table.get(frozenset({code.value}))
            if hours is None:
                logger.debug(f"No combination for {code.value}, contributes nothing on {date_str}")
                continue
            single_hours[code] = hours
            amount = hours * rate
            day_hours += hours
            day_amount += amount
            if is_current_month and shift_has_ended(work_date, code, now):
                day_accrued += amount

        if len(codes) >= 2:
            multi_hours = table.get(frozenset(code.value for code in codes))
            if multi_hours is not None:
                delta_hours = multi_hours - sum(single_hours.values())
                delta = delta_hours * rate
                day_hours += delta_hours
                day_amount += delta
                if is_current_month and all(shift_has_ended(work_date, code, now) for code in codes):
                    day_accrued += delta

        total += day_amount
        month_to_date += day_accrued
        lines.append(AccrualLine(
            date=date_str,
            codes=codes,
            hours=day_hours,
            amount=day_amount,
            accrued_amount=day_accrued,
            is_special=special_dates.get(date_str) is True
        ))

    logger.debug(f"Accrual for {viewed_year}-{viewed_month:02d}: total={total:.2f}, "
                 f"month_to_date={month_to_date:.2f}, rate={rate:.4f}")
    return AccrualResult(
        total_amount=total,
        month_to_date_amount=month_to_date,
        effective_hourly_rate=rate,
        lines=lines
    )


def compute_amounts(schedule: Dict[str, List[str]], special_dates: Dict[str, bool],
                    settings: Optional[Settings], monthly_override: Optional[float],
                    viewed_year: int, viewed_month: int,
                    now: Optional[datetime] = None) -> AccrualResult:
    """Total and month-to-date payroll for the viewed month. Never raises on bad data."""
    result = compute_breakdown(schedule, special_dates, settings, monthly_override,
                               viewed_year, viewed_month, now)
    return AccrualResult(
        total_amount=result.total_amount,
        month_to_date_amount=result.month_to_date_amount,
        effective_hourly_rate=result.effective_hourly_rate
    )
