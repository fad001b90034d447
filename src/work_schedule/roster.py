"""
Shared Roster Ledger types for Work Schedule Tracker

Roster entries and change events as seen by the calendar, owner
identity matching, and the derived staff name lists.
"""

import json
import logging
import re
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Any, Iterable, Tuple

logger = logging.getLogger(__name__)

RELIEF_SUFFIX = "(R)"
ADMIN_NAME = "ADMIN"
TITLE_NAMES = {"MIT", "SMIT"}
SENIOR_TITLE = "SMIT"

_RELIEF_SUFFIX_RE = re.compile(r"\s*\(R\)\s*$", re.IGNORECASE)
_LEGACY_SPECIAL_RE = re.compile(r"Special Date:\s*([^;]+)")


class ChangeAction(str, Enum):
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"


def normalize_identity(name: Optional[str]) -> str:
    """Strip the relief-role suffix and case-fold a display name"""
    if not name:
        return ""
    return _RELIEF_SUFFIX_RE.sub("", name.strip()).strip().casefold()


def identities_match(assigned_name: Optional[str], owner_identity: Optional[str]) -> bool:
    """SMITH, smith and SMITH(R) all refer to the same person"""
    normalized = normalize_identity(owner_identity)
    return bool(normalized) and normalize_identity(assigned_name) == normalized


def has_relief_suffix(name: str) -> bool:
    return bool(_RELIEF_SUFFIX_RE.search(name or ""))


def parse_legacy_special_annotation(description: Optional[str]) -> Optional[str]:
    """Pull the text of a 'Special Date: ...;' segment out of an old change description"""
    if not description:
        return None
    match = _LEGACY_SPECIAL_RE.search(description)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return None


@dataclass
class RosterEntry:
    """One assignment on the shared roster ledger"""
    date: str
    shift_type: str
    assigned_name: str
    id: str = ""
    original_assigned_name: Optional[str] = None
    last_edited_by: str = ""
    last_edited_at: str = ""
    created_at: str = ""
    change_description: str = ""
    special_annotation: Optional[str] = None

    @property
    def is_special(self) -> bool:
        return bool(self.special_annotation and self.special_annotation.strip())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "shift_type": self.shift_type,
            "assigned_name": self.assigned_name,
            "original_assigned_name": self.original_assigned_name,
            "last_edited_by": self.last_edited_by,
            "last_edited_at": self.last_edited_at,
            "created_at": self.created_at,
            "change_description": self.change_description,
            "special_annotation": self.special_annotation
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RosterEntry':
        description = data.get("change_description") or ""
        annotation = data.get("special_annotation")
        # Handle backward compatibility for annotations embedded in the description
        if annotation is None:
            annotation = parse_legacy_special_annotation(description)

        return cls(
            id=str(data.get("id", "")),
            date=data["date"],
            shift_type=data["shift_type"],
            assigned_name=data["assigned_name"],
            original_assigned_name=data.get("original_assigned_name"),
            last_edited_by=data.get("last_edited_by", ""),
            last_edited_at=data.get("last_edited_at", ""),
            created_at=data.get("created_at", ""),
            change_description=description,
            special_annotation=annotation
        )


@dataclass(frozen=True)
class RosterChangeEvent:
    """A single change notification from the roster change feed"""
    action: ChangeAction
    date: str
    shift_label: str
    assigned_name: str
    editor_name: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RosterChangeEvent':
        try:
            action = ChangeAction(data["action"])
        except ValueError:
            raise ValueError(f"Unknown roster change action: {data['action']!r}")
        return cls(
            action=action,
            date=data["date"],
            shift_label=data.get("shiftType") or data.get("shift_type", ""),
            assigned_name=data.get("assignedName") or data.get("assigned_name", ""),
            editor_name=data.get("editorName") or data.get("editor_name", "")
        )


def date_is_globally_special(date_str: str, entries: Iterable[RosterEntry]) -> bool:
    """True if any owner's entry on the date carries a special-date annotation"""
    return any(entry.date == date_str and entry.is_special for entry in entries or [])


def filter_owner_entries(entries: Iterable[RosterEntry], owner_identity: str,
                         year: Optional[int] = None, month: Optional[int] = None) -> List[RosterEntry]:
    """Entries assigned to the owner, optionally limited to one month, oldest first"""
    prefix = None
    if year is not None and month is not None:
        prefix = f"{year}-{month:02d}-"
    owned = [
        entry for entry in entries or []
        if identities_match(entry.assigned_name, owner_identity)
        and (prefix is None or entry.date.startswith(prefix))
    ]
    return sorted(owned, key=lambda entry: (entry.date, entry.shift_type))


def entries_to_events(entries: Iterable[RosterEntry], owner_identity: str,
                      editor_name: str = "") -> List[RosterChangeEvent]:
    """Turn the owner's roster entries into 'added' events for a bulk import"""
    return [
        RosterChangeEvent(
            action=ChangeAction.ADDED,
            date=entry.date,
            shift_label=entry.shift_type,
            assigned_name=entry.assigned_name,
            editor_name=editor_name or entry.last_edited_by
        )
        for entry in filter_owner_entries(entries, owner_identity)
    ]


def load_roster_entries(path) -> List[RosterEntry]:
    """Read a JSON dump of the roster ledger (a list of entry objects)"""
    with open(Path(path), 'r', encoding='utf-8') as f:
        raw = json.load(f)
    if isinstance(raw, dict):
        raw = raw.get("entries", [])
    entries = []
    for item in raw:
        try:
            entries.append(RosterEntry.from_dict(item))
        except KeyError as e:
            logger.warning(f"Skipping roster entry missing field {e}: {item}")
    return entries


@dataclass
class StaffMember:
    """Staff table row"""
    code: str
    name: str
    title: str = "MIT"
    salary: float = 0
    employee_id: str = ""
    first_name: str = ""
    surname: str = ""

    @property
    def full_name(self) -> str:
        surname = self.surname or self.name
        return f"{self.first_name} {surname}" if self.first_name else surname


def with_relief_variants(staff: Iterable[StaffMember]) -> Tuple[StaffMember, ...]:
    """
    Add a NAME(R) entry for every base staff member that has none yet.
    The generated code is the base code with an R appended.
    """
    members = list(staff)
    existing = {member.name for member in members}
    variants = [
        replace(member, name=f"{member.name}{RELIEF_SUFFIX}", code=f"{member.code}R")
        for member in members
        if member.name != ADMIN_NAME
        and not has_relief_suffix(member.name)
        and f"{member.name}{RELIEF_SUFFIX}" not in existing
    ]
    return tuple(members + variants)


def derive_available_names(staff: Iterable[StaffMember]) -> Tuple[str, ...]:
    """
    Selectable staff names: admin and bare title rows excluded, relief
    names first, then alphabetical. Call again whenever the table changes.
    """
    names = {
        member.name for member in staff
        if member.name != ADMIN_NAME and member.name not in TITLE_NAMES
    }
    return tuple(sorted(names, key=lambda name: (not has_relief_suffix(name), name)))


def sort_by_group(names: Iterable[str], staff: Iterable[StaffMember]) -> List[str]:
    """Seniors first; within a title base names before relief names; then by name"""
    titles = {member.name: member.title or "MIT" for member in staff}

    def group_key(name: str):
        title = titles.get(name, "MIT")
        return (title != SENIOR_TITLE, title, has_relief_suffix(name), name)

    return sorted(names, key=group_key)
