"""
Roster Reconciliation for Work Schedule Tracker

Applies change events from the shared roster ledger to one person's
private calendar. Only events whose assigned name matches the calendar
owner are applied; additions are checked against the conflict rule and
mark the date special when the shift needs it or the roster says so.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple
import logging

from .data_manager import DataManager
from .roster import (
    ChangeAction, RosterChangeEvent, RosterEntry, date_is_globally_special,
    entries_to_events, identities_match
)
from .rules import conflicting_codes, requires_special_date
from .shift_taxonomy import ShiftCode, parse_shift_code, resolve_roster_label

logger = logging.getLogger(__name__)

Schedule = Dict[str, List[str]]
SpecialDates = Dict[str, bool]


class SyncOutcome(str, Enum):
    APPLIED = "applied"
    NOT_OWNER = "not_owner"
    UNKNOWN_SHIFT = "unknown_shift"
    CONFLICT = "conflict"
    NOT_PRESENT = "not_present"
    NO_CHANGE = "no_change"
    INVALID_DATE = "invalid_date"


@dataclass(frozen=True)
class CalendarNotification:
    """Non-blocking message for the owner about a calendar change"""
    kind: str
    owner: str
    date: str = ""
    shift_label: str = ""
    assigned_name: str = ""
    special_marked: bool = False
    count: int = 0
    dates: Tuple[str, ...] = ()

    @property
    def message(self) -> str:
        if self.kind == "batch":
            return f"{self.count} shifts imported into {self.owner}'s calendar across {len(self.dates)} dates"
        verb = "removed from" if self.kind == ChangeAction.REMOVED.value else "added to"
        text = f"{self.assigned_name} {verb} {self.owner}'s calendar: {self.date} - {self.shift_label}"
        if self.special_marked:
            text += " (date marked as special)"
        return text


@dataclass
class ReconciliationOptions:
    suppress_notifications: bool = False
    on_notification: Optional[Callable[[CalendarNotification], None]] = None

    def notify(self, notification: CalendarNotification):
        if self.suppress_notifications or self.on_notification is None:
            return
        self.on_notification(notification)


@dataclass
class ReconciliationResult:
    """New calendar state after one event; the inputs are never mutated"""
    schedule: Schedule
    special_dates: SpecialDates
    applied: bool
    outcome: SyncOutcome
    code: Optional[ShiftCode] = None
    special_marked: bool = False


@dataclass
class BatchResult:
    schedule: Schedule
    special_dates: SpecialDates
    applied_count: int = 0
    dates: List[str] = field(default_factory=list)
    results: List[ReconciliationResult] = field(default_factory=list)


def _unchanged(schedule: Schedule, special_dates: SpecialDates, outcome: SyncOutcome,
               code: Optional[ShiftCode] = None) -> ReconciliationResult:
    return ReconciliationResult(schedule, special_dates, False, outcome, code)


def _codes_on(schedule: Schedule, date_str: str) -> List[ShiftCode]:
    codes = []
    for raw in schedule.get(date_str) or []:
        code = parse_shift_code(raw)
        if code is not None and code not in codes:
            codes.append(code)
    return codes


def _apply_removal(event: RosterChangeEvent, code: ShiftCode, owner_identity: str,
                   schedule: Schedule, special_dates: SpecialDates,
                   options: ReconciliationOptions) -> ReconciliationResult:
    current = schedule.get(event.date) or []
    if code not in _codes_on(schedule, event.date):
        logger.debug(f"{code.value} not on {owner_identity}'s calendar for {event.date}, nothing to remove")
        return _unchanged(schedule, special_dates, SyncOutcome.NOT_PRESENT, code)

    new_schedule = dict(schedule)
    remaining = [raw for raw in current if parse_shift_code(raw) != code]
    if remaining:
        new_schedule[event.date] = remaining
    else:
        del new_schedule[event.date]

    # The special flag stays: it may have been set for other reasons
    logger.info(f"Removed {code.value} from {owner_identity}'s calendar on {event.date}")
    options.notify(CalendarNotification(
        kind=ChangeAction.REMOVED.value,
        owner=owner_identity,
        date=event.date,
        shift_label=event.shift_label,
        assigned_name=event.assigned_name
    ))
    return ReconciliationResult(new_schedule, special_dates, True, SyncOutcome.APPLIED, code)


def _apply_addition(event: RosterChangeEvent, code: ShiftCode, owner_identity: str,
                    schedule: Schedule, special_dates: SpecialDates,
                    all_entries: Iterable[RosterEntry],
                    options: ReconciliationOptions) -> ReconciliationResult:
    current_codes = _codes_on(schedule, event.date)

    conflicts = conflicting_codes(current_codes, code)
    if conflicts:
        logger.info(f"Refused {code.value} on {event.date} for {owner_identity}: conflicts with "
                    f"{', '.join(c.value for c in conflicts)}")
        return _unchanged(schedule, special_dates, SyncOutcome.CONFLICT, code)

    already_special = special_dates.get(event.date) is True
    roster_says_special = date_is_globally_special(event.date, all_entries)
    needs_special = requires_special_date(event.date, code)

    new_schedule = schedule
    new_special_dates = special_dates
    special_marked = False

    if (needs_special or roster_says_special) and not already_special:
        new_special_dates = dict(special_dates)
        new_special_dates[event.date] = True
        special_marked = True

    if code not in current_codes:
        new_schedule = dict(schedule)
        new_schedule[event.date] = list(schedule.get(event.date) or []) + [code.value]

    applied = special_marked or new_schedule is not schedule
    if not applied:
        logger.debug(f"{code.value} already on {owner_identity}'s calendar for {event.date}")
        return _unchanged(schedule, special_dates, SyncOutcome.NO_CHANGE, code)

    logger.info(f"Added {code.value} to {owner_identity}'s calendar on {event.date}"
                f"{' and marked the date special' if special_marked else ''}")
    options.notify(CalendarNotification(
        kind=ChangeAction.ADDED.value,
        owner=owner_identity,
        date=event.date,
        shift_label=event.shift_label,
        assigned_name=event.assigned_name,
        special_marked=special_marked
    ))
    return ReconciliationResult(new_schedule, new_special_dates, True, SyncOutcome.APPLIED, code,
                                special_marked=special_marked)


def reconcile(event: RosterChangeEvent, owner_identity: str, schedule: Schedule,
              special_dates: SpecialDates, all_entries: Iterable[RosterEntry] = (),
              options: Optional[ReconciliationOptions] = None) -> ReconciliationResult:
    """
    Apply one roster change event to the owner's calendar snapshot.

    Returns the resulting schedule and special dates (new dicts when
    anything changed, the inputs otherwise) and whether the event was
    applied. Repeating an event that already landed gives applied=False
    and leaves the state as it is.
    """
    options = options or ReconciliationOptions()
    schedule = schedule or {}
    special_dates = special_dates or {}

    if not identities_match(event.assigned_name, owner_identity):
        logger.debug(f"Event for {event.assigned_name} does not belong to {owner_identity}")
        return _unchanged(schedule, special_dates, SyncOutcome.NOT_OWNER)

    code = resolve_roster_label(event.shift_label)
    if code is None:
        logger.warning(f"Dropping roster event with unknown shift type '{event.shift_label}' "
                       f"on {event.date}")
        return _unchanged(schedule, special_dates, SyncOutcome.UNKNOWN_SHIFT)

    try:
        date.fromisoformat(event.date)
    except (TypeError, ValueError):
        logger.warning(f"Dropping roster event with malformed date '{event.date}'")
        return _unchanged(schedule, special_dates, SyncOutcome.INVALID_DATE, code)

    if event.action == ChangeAction.REMOVED:
        return _apply_removal(event, code, owner_identity, schedule, special_dates, options)
    if event.action in (ChangeAction.ADDED, ChangeAction.UPDATED):
        return _apply_addition(event, code, owner_identity, schedule, special_dates,
                               all_entries, options)
    raise ValueError(f"Unsupported roster change action: {event.action!r}")


def reconcile_batch(events: Iterable[RosterChangeEvent], owner_identity: str,
                    schedule: Schedule, special_dates: SpecialDates,
                    all_entries: Iterable[RosterEntry] = (),
                    options: Optional[ReconciliationOptions] = None) -> BatchResult:
    """
    Apply events strictly in order, as in a bulk import. Per-event
    notifications are suppressed; a single summary is sent at the end.
    """
    options = options or ReconciliationOptions()
    per_event = ReconciliationOptions(suppress_notifications=True)
    entries = list(all_entries)

    batch = BatchResult(schedule=schedule or {}, special_dates=special_dates or {})
    for event in events:
        result = reconcile(event, owner_identity, batch.schedule, batch.special_dates,
                           entries, per_event)
        batch.results.append(result)
        batch.schedule = result.schedule
        batch.special_dates = result.special_dates
        if result.applied:
            batch.applied_count += 1
            if event.date not in batch.dates:
                batch.dates.append(event.date)

    logger.info(f"Batch import for {owner_identity}: {batch.applied_count} of "
                f"{len(batch.results)} events applied")
    if batch.applied_count:
        options.notify(CalendarNotification(
            kind="batch",
            owner=owner_identity,
            count=batch.applied_count,
            dates=tuple(sorted(batch.dates))
        ))
    return batch


def rename_events(date_str: str, shift_label: str, old_name: str, new_name: str,
                  editor_name: str = "") -> Tuple[RosterChangeEvent, RosterChangeEvent]:
    """A reassignment is a removal for the old name followed by an addition for the new"""
    return (
        RosterChangeEvent(ChangeAction.REMOVED, date_str, shift_label, old_name, editor_name),
        RosterChangeEvent(ChangeAction.ADDED, date_str, shift_label, new_name, editor_name),
    )


class CalendarSync:
    """
    Keeps one owner's stored calendar in step with the roster change feed.

    Each event is reconciled against the stored calendar and persisted
    before the next is looked at. If persisting fails the store is left
    as it was and the error propagates, so the caller may safely retry.
    """

    def __init__(self, data_manager: DataManager, owner_identity: Optional[str] = None,
                 fetch_entries: Optional[Callable[[], List[RosterEntry]]] = None,
                 options: Optional[ReconciliationOptions] = None):
        self.data_manager = data_manager
        self.owner_identity = owner_identity or data_manager.get_setting("ownerIdentity", "")
        self.fetch_entries = fetch_entries
        self.options = options or ReconciliationOptions()

    def _entries(self, entries: Optional[Iterable[RosterEntry]]) -> List[RosterEntry]:
        if entries is not None:
            return list(entries)
        if self.fetch_entries is not None:
            return list(self.fetch_entries())
        return []

    def apply(self, event: RosterChangeEvent,
              entries: Optional[Iterable[RosterEntry]] = None) -> ReconciliationResult:
        """Reconcile one event against the store and persist the result"""
        schedule = self.data_manager.load_schedule()
        special_dates = self.data_manager.load_special_dates()
        all_entries = self._entries(entries) if event.action != ChangeAction.REMOVED else []

        # Hold notifications back until the change has been persisted
        pending: List[CalendarNotification] = []
        result = reconcile(event, self.owner_identity, schedule, special_dates,
                           all_entries, ReconciliationOptions(on_notification=pending.append))
        if result.applied:
            self.data_manager.save_calendar(result.schedule, result.special_dates)
        for notification in pending:
            self.options.notify(notification)
        return result

    def apply_all(self, events: Iterable[RosterChangeEvent],
                  entries: Optional[Iterable[RosterEntry]] = None) -> List[ReconciliationResult]:
        """Apply events one at a time in arrival order"""
        all_entries = self._entries(entries)
        return [self.apply(event, all_entries) for event in events]

    def apply_rename(self, date_str: str, shift_label: str, old_name: str, new_name: str,
                     editor_name: str = "",
                     entries: Optional[Iterable[RosterEntry]] = None) -> Tuple[ReconciliationResult, ReconciliationResult]:
        """
        Move a shift from one assignee to another. The removal is persisted
        before the addition is attempted.
        """
        removal, addition = rename_events(date_str, shift_label, old_name, new_name, editor_name)
        removed = self.apply(removal)
        added = self.apply(addition, entries)
        return removed, added

    def import_entries(self, entries: Iterable[RosterEntry]) -> BatchResult:
        """Bulk import the owner's roster entries with a single summary notification"""
        all_entries = list(entries)
        events = entries_to_events(all_entries, self.owner_identity)
        pending: List[CalendarNotification] = []
        batch = reconcile_batch(
            events,
            self.owner_identity,
            self.data_manager.load_schedule(),
            self.data_manager.load_special_dates(),
            all_entries,
            ReconciliationOptions(on_notification=pending.append)
        )
        if batch.applied_count:
            self.data_manager.save_calendar(batch.schedule, batch.special_dates)
        for notification in pending:
            self.options.notify(notification)
        return batch
