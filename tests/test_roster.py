"""
Test Suite for Roster Ledger Types and Staff Names
"""

import json
import pytest
import tempfile
import sys
from pathlib import Path

# Setup import path for src
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from work_schedule.roster import (
    ChangeAction, RosterChangeEvent, RosterEntry, StaffMember, derive_available_names,
    entries_to_events, filter_owner_entries, identities_match, load_roster_entries,
    normalize_identity, sort_by_group, with_relief_variants
)


def test_normalize_identity():
    assert normalize_identity("SMITH(R)") == normalize_identity("smith")
    assert normalize_identity("  Smith (r) ") == "smith"
    assert normalize_identity(None) == ""


def test_empty_owner_matches_nobody():
    assert not identities_match("SMITH", "")
    assert not identities_match("", "")


def test_legacy_special_annotation_is_migrated():
    entry = RosterEntry.from_dict({
        "date": "2025-04-18",
        "shift_type": "Night Duty",
        "assigned_name": "SMITH",
        "change_description": "Added by admin; Special Date: Good Friday; Night cover"
    })
    assert entry.special_annotation == "Good Friday"
    assert entry.is_special


def test_structured_annotation_wins_over_description():
    entry = RosterEntry.from_dict({
        "date": "2025-04-18",
        "shift_type": "Night Duty",
        "assigned_name": "SMITH",
        "change_description": "Special Date: Old text;",
        "special_annotation": "Good Friday"
    })
    assert entry.special_annotation == "Good Friday"


def test_blank_annotation_is_not_special():
    assert not RosterEntry("2025-04-18", "Night Duty", "SMITH", special_annotation="  ").is_special


def test_change_event_from_dict():
    event = RosterChangeEvent.from_dict({
        "action": "removed", "date": "2025-03-08", "shiftType": "Night Duty",
        "assignedName": "SMITH", "editorName": "ADMIN"
    })
    assert event.action == ChangeAction.REMOVED
    assert event.shift_label == "Night Duty"
    assert event.editor_name == "ADMIN"

    with pytest.raises(ValueError):
        RosterChangeEvent.from_dict({"action": "moved", "date": "2025-03-08"})


def test_filter_owner_entries_by_month():
    entries = [
        RosterEntry("2025-03-20", "Night Duty", "SMITH(R)"),
        RosterEntry("2025-03-02", "Evening Shift (4-10)", "smith"),
        RosterEntry("2025-04-01", "Night Duty", "SMITH"),
        RosterEntry("2025-03-03", "Night Duty", "JONES"),
    ]
    owned = filter_owner_entries(entries, "SMITH", 2025, 3)
    assert [e.date for e in owned] == ["2025-03-02", "2025-03-20"]

    events = entries_to_events(entries, "SMITH", editor_name="import")
    assert len(events) == 3
    assert all(e.action == ChangeAction.ADDED and e.editor_name == "import" for e in events)


def test_load_roster_entries_skips_incomplete_rows():
    rows = [
        {"date": "2025-03-02", "shift_type": "Night Duty", "assigned_name": "SMITH"},
        {"date": "2025-03-03", "assigned_name": "SMITH"},
    ]
    with tempfile.TemporaryDirectory() as temp_dir:
        path = Path(temp_dir) / "roster.json"
        path.write_text(json.dumps({"entries": rows}), encoding="utf-8")
        entries = load_roster_entries(path)
    assert [e.date for e in entries] == ["2025-03-02"]


@pytest.fixture
def staff():
    return [
        StaffMember("A1", "ADMIN", "ADMIN"),
        StaffMember("S1", "SMITH", "SMIT"),
        StaffMember("J1", "JONES"),
        StaffMember("B1", "BROWN"),
        StaffMember("B1R", "BROWN(R)"),
        StaffMember("M1", "MIT"),
    ]


def test_relief_variants_are_added_once(staff):
    members = with_relief_variants(staff)
    names = [m.name for m in members]

    assert "SMITH(R)" in names and "JONES(R)" in names
    assert names.count("BROWN(R)") == 1
    assert "ADMIN(R)" not in names
    assert next(m for m in members if m.name == "JONES(R)").code == "J1R"
    # Source table left untouched
    assert len(staff) == 6


def test_available_names(staff):
    names = derive_available_names(with_relief_variants(staff))

    assert "ADMIN" not in names and "MIT" not in names
    relief = [n for n in names if n.endswith("(R)")]
    assert list(names[:len(relief)]) == sorted(relief)
    assert list(names[len(relief):]) == ["BROWN", "JONES", "SMITH"]


def test_sort_by_group(staff):
    ordered = sort_by_group(["JONES(R)", "BROWN", "SMITH", "JONES"], with_relief_variants(staff))
    assert ordered == ["SMITH", "BROWN", "JONES", "JONES(R)"]


def test_full_name():
    assert StaffMember("S1", "SMITH", first_name="Anna", surname="Smith").full_name == "Anna Smith"
    assert StaffMember("S1", "SMITH").full_name == "SMITH"
