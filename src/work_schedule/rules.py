"""
Conflict and Special-Date Rules for Work Schedule Tracker

Pure predicates over a date's current shift set, its day of week and
its special flag. Used both for direct calendar edits and by the roster
reconciliation engine.
"""

from datetime import date
from typing import Iterable, List, FrozenSet, Set, Union
import logging

from .shift_taxonomy import ShiftCode, parse_shift_code

logger = logging.getLogger(__name__)

SATURDAY = 5
SUNDAY = 6

# Pairs of codes that may never share a date
CONFLICTING_PAIRS: List[FrozenSet[ShiftCode]] = [
    frozenset({ShiftCode.MORNING, ShiftCode.SATURDAY_REGULAR}),
    frozenset({ShiftCode.SATURDAY_REGULAR, ShiftCode.EVENING}),
]

SPECIAL_DATE_CODES = frozenset({ShiftCode.MORNING, ShiftCode.EVENING, ShiftCode.NIGHT})
SATURDAY_CODES = frozenset({ShiftCode.SATURDAY_REGULAR, ShiftCode.NIGHT})
SUNDAY_CODES = frozenset({ShiftCode.MORNING, ShiftCode.EVENING, ShiftCode.NIGHT})
WEEKDAY_CODES = frozenset({ShiftCode.EVENING, ShiftCode.NIGHT})


class ConstraintViolation:
    """Types of constraint violations for a calendar edit"""
    UNKNOWN_SHIFT = "Unknown shift code"
    SHIFT_CONFLICT = "Shift cannot be combined with a shift already on this date"
    NOT_ALLOWED_ON_DAY = "Shift is not worked on this day of the week"
    REQUIRES_SPECIAL_DATE = "Shift requires the date to be marked special"


DateLike = Union[date, str]


def _as_date(value: DateLike) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def _as_codes(codes: Iterable) -> Set[ShiftCode]:
    result = set()
    for raw in codes or []:
        code = parse_shift_code(raw)
        if code is not None:
            result.add(code)
    return result


def conflicting_codes(current_codes: Iterable, candidate: ShiftCode) -> List[ShiftCode]:
    """Codes already on the date that the candidate may not coexist with"""
    current = _as_codes(current_codes)
    if candidate in current:
        return []
    conflicts = []
    for pair in CONFLICTING_PAIRS:
        if candidate in pair:
            (other,) = pair - {candidate}
            if other in current:
                conflicts.append(other)
    return conflicts


def has_conflict(current_codes: Iterable, candidate: ShiftCode) -> bool:
    """
    True if adding candidate to the date's codes would put a forbidden
    pair on the same date. Re-adding a code that is already present is
    never a conflict.
    """
    return bool(conflicting_codes(current_codes, candidate))


def requires_special_date(work_date: DateLike, code: ShiftCode) -> bool:
    """
    A morning shift on Monday to Saturday is only valid on a date
    flagged special. Sunday mornings and every other code never need it.
    """
    if code != ShiftCode.MORNING:
        return False
    return _as_date(work_date).weekday() != SUNDAY


def allowed_codes_for_date(work_date: DateLike, is_special: bool) -> FrozenSet[ShiftCode]:
    """Codes normally worked on a date, given its weekday and special flag"""
    if is_special:
        return SPECIAL_DATE_CODES
    weekday = _as_date(work_date).weekday()
    if weekday == SATURDAY:
        return SATURDAY_CODES
    if weekday == SUNDAY:
        return SUNDAY_CODES
    return WEEKDAY_CODES


def is_shift_allowed_on_date(work_date: DateLike, code: ShiftCode, is_special: bool) -> bool:
    return code in allowed_codes_for_date(work_date, is_special)


def validate_shift_assignment(date_str: str, code: Union[ShiftCode, str],
                              current_codes: Iterable, is_special: bool) -> List[str]:
    """
    Validate a direct calendar edit against all business rules.
    Returns list of constraint violations (empty if valid).
    """
    violations = []
    shift_code = parse_shift_code(code)
    if shift_code is None:
        violations.append(f"{ConstraintViolation.UNKNOWN_SHIFT}: {code}")
        return violations

    try:
        work_date = date.fromisoformat(date_str)
    except ValueError:
        violations.append(f"Invalid date format: {date_str}")
        return violations

    for other in conflicting_codes(current_codes, shift_code):
        violations.append(f"{ConstraintViolation.SHIFT_CONFLICT} ({shift_code.value} with {other.value})")

    if not is_special and requires_special_date(work_date, shift_code):
        violations.append(ConstraintViolation.REQUIRES_SPECIAL_DATE)
    elif not is_shift_allowed_on_date(work_date, shift_code, is_special):
        violations.append(ConstraintViolation.NOT_ALLOWED_ON_DAY)

    if violations:
        logger.debug(f"Edit {shift_code.value} on {date_str} rejected: {violations}")
    return violations
