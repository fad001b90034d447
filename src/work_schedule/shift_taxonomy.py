"""
Shift Taxonomy for Work Schedule Tracker

Static definitions of the internal shift codes, their clock times, the
mapping from roster shift-type labels onto codes, and the combination
pricing table used by the payroll engine.
"""

from datetime import date, datetime, time, timedelta
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Any


class ShiftCode(str, Enum):
    MORNING = "9-4"
    EVENING = "4-10"
    SATURDAY_REGULAR = "12-10"
    NIGHT = "N"


@dataclass(frozen=True)
class ShiftTiming:
    """Clock start/end hours for a shift code"""
    start_hour: int
    end_hour: int
    crosses_midnight: bool = False


SHIFT_TIMINGS: Dict[ShiftCode, ShiftTiming] = {
    ShiftCode.MORNING: ShiftTiming(start_hour=9, end_hour=16),
    ShiftCode.EVENING: ShiftTiming(start_hour=16, end_hour=22),
    ShiftCode.SATURDAY_REGULAR: ShiftTiming(start_hour=12, end_hour=22),
    # Night duty runs until 09:00 on the following calendar day
    ShiftCode.NIGHT: ShiftTiming(start_hour=22, end_hour=9, crosses_midnight=True),
}

# Roster shift-type labels -> internal codes
ROSTER_LABELS: Dict[str, ShiftCode] = {
    "Morning Shift (9-4)": ShiftCode.MORNING,
    "Evening Shift (4-10)": ShiftCode.EVENING,
    "Saturday Regular (12-10)": ShiftCode.SATURDAY_REGULAR,
    "Night Duty": ShiftCode.NIGHT,
    "Sunday/Public Holiday/Special": ShiftCode.MORNING,
}

SHIFT_DISPLAY_NAMES: Dict[ShiftCode, str] = {
    ShiftCode.MORNING: "Morning (9-4)",
    ShiftCode.EVENING: "Evening (4-10)",
    ShiftCode.SATURDAY_REGULAR: "Saturday (12-10)",
    ShiftCode.NIGHT: "Night Duty",
}

# "AM" is an older spelling of the morning code in combination identifiers
COMBINATION_ALIASES = {"AM": ShiftCode.MORNING.value}


def parse_shift_code(value: Any) -> Optional[ShiftCode]:
    """Return the ShiftCode for a stored code string, or None if unknown"""
    if isinstance(value, ShiftCode):
        return value
    try:
        return ShiftCode(str(value).strip())
    except ValueError:
        return None


def resolve_roster_label(label: str) -> Optional[ShiftCode]:
    """Map a roster shift-type label onto a ShiftCode. Unknown labels give None."""
    if not label:
        return None
    return ROSTER_LABELS.get(label.strip())


def shift_start(work_date: date, code: ShiftCode) -> datetime:
    """Instant at which a shift on work_date begins"""
    timing = SHIFT_TIMINGS[code]
    return datetime.combine(work_date, time(timing.start_hour))


def shift_end(work_date: date, code: ShiftCode) -> datetime:
    """Instant at which a shift on work_date has finished"""
    timing = SHIFT_TIMINGS[code]
    end_date = work_date + timedelta(days=1) if timing.crosses_midnight else work_date
    return datetime.combine(end_date, time(timing.end_hour))


@dataclass
class ShiftCombination:
    """Pricing rule: billable hours for one or more codes worked on the same date"""
    id: str
    hours: float
    combination: str = ""

    @property
    def codes(self) -> FrozenSet[str]:
        return parse_combination_key(self.id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "combination": self.combination or self.id.replace("+", " + "),
            "hours": self.hours
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ShiftCombination':
        return cls(
            id=str(data["id"]),
            hours=float(data.get("hours", 0) or 0),
            combination=data.get("combination", "")
        )


def parse_combination_key(key: str) -> FrozenSet[str]:
    """
    Parse a combination identifier such as "9-4+4-10" or "AM + 12-10"
    into the set of code strings it covers. Ordering and spacing are
    irrelevant, so "9-4+4-10" and "4-10+9-4" are the same combination.
    """
    parts = []
    for raw in key.split("+"):
        part = raw.strip()
        if not part:
            continue
        parts.append(COMBINATION_ALIASES.get(part, part))
    return frozenset(parts)


def combination_key(codes: Iterable[Any]) -> str:
    """Canonical sorted, '+'-joined key for a set of codes"""
    values = sorted({c.value if isinstance(c, ShiftCode) else str(c) for c in codes})
    return "+".join(values)


def build_combination_table(combinations: Iterable[ShiftCombination]) -> Dict[FrozenSet[str], float]:
    """Index combinations by the code set they cover. The first definition wins."""
    table: Dict[FrozenSet[str], float] = {}
    for combo in combinations or []:
        codes = combo.codes
        if codes and codes not in table:
            table[codes] = combo.hours
    return table


DEFAULT_SHIFT_COMBINATIONS: List[ShiftCombination] = [
    ShiftCombination("9-4", 6.5, "9-4"),
    ShiftCombination("9-4+4-10", 12, "9-4 + 4-10"),
    ShiftCombination("9-4+N", 19, "9-4 + N"),
    ShiftCombination("9-4+4-10+N", 24.5, "9-4 + 4-10 + N"),
    ShiftCombination("AM+12-10", 9, "AM + 12-10"),
    ShiftCombination("AM+12-10+N", 21.5, "AM + 12-10 + N"),
    ShiftCombination("12-10", 9.5, "12-10"),
    ShiftCombination("12-10+N", 22, "12-10 + N"),
    ShiftCombination("4-10", 5.5, "4-10"),
    ShiftCombination("4-10+N", 18, "4-10 + N"),
    ShiftCombination("N", 12.5, "N"),
]


def default_shift_combinations() -> List[ShiftCombination]:
    """Fresh copy of the default combination table"""
    return [ShiftCombination(c.id, c.hours, c.combination) for c in DEFAULT_SHIFT_COMBINATIONS]
