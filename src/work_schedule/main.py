"""
Main Entry Point for Work Schedule Tracker

Command-line access to the payroll figures, roster synchronisation and
exports, with application-wide logging and error handling.
"""

import argparse
import json
import sys
import logging
from pathlib import Path
from datetime import datetime
from typing import List, Optional

from work_schedule.data_manager import DataManager, DataManagerError
from work_schedule.payroll import compute_amounts
from work_schedule.reconciliation import CalendarNotification, CalendarSync, ReconciliationOptions
from work_schedule.reporting import ExportManager
from work_schedule.roster import (
    RosterChangeEvent, StaffMember, derive_available_names, load_roster_entries, with_relief_variants
)


def setup_logging(log_dir: str = "logs", level: str = "INFO"):
    """Setup application logging"""
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    log_file = log_path / f"work_schedule_{datetime.now().strftime('%Y%m%d')}.log"

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stdout)
        ]
    )

    return logging.getLogger(__name__)


def handle_exception(exc_type, exc_value, exc_traceback):
    """Global exception handler"""
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return

    logger = logging.getLogger(__name__)
    logger.error(
        "Uncaught exception",
        exc_info=(exc_type, exc_value, exc_traceback)
    )


def print_notification(notification: CalendarNotification):
    print(notification.message)


class WorkScheduleApp:
    """Main application class"""

    def __init__(self, data_file: Optional[str] = None):
        self.logger = logging.getLogger(__name__)
        self.data_file = data_file
        self.data_manager = None
        self.export_manager = None

    def initialize(self):
        """Initialize application components"""
        if self.data_file:
            self.data_manager = DataManager(self.data_file)
        else:
            self.data_manager = DataManager()
        self.logger.info(f"Data manager initialized with {self.data_manager.data_file}")
        self.export_manager = ExportManager(self.data_manager)

    def sync(self, owner: Optional[str], notify: bool = True) -> CalendarSync:
        options = ReconciliationOptions(
            suppress_notifications=not notify,
            on_notification=print_notification
        )
        return CalendarSync(self.data_manager, owner_identity=owner, options=options)

    def show_amounts(self, year: int, month: int, now: Optional[datetime] = None):
        result = compute_amounts(
            self.data_manager.load_schedule(),
            self.data_manager.load_special_dates(),
            self.data_manager.load_settings(),
            self.data_manager.load_monthly_salary(year, month),
            year, month, now
        )
        print(f"{year}-{month:02d} total: {result.total_amount:.2f}")
        print(f"{year}-{month:02d} month to date: {result.month_to_date_amount:.2f}")
        return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="work-schedule", description="Work schedule and payroll tracker")
    parser.add_argument("--data-file", help="Calendar data file (JSON)")
    parser.add_argument("--log-dir", default="logs")
    parser.add_argument("--log-level", default="INFO")
    commands = parser.add_subparsers(dest="command", required=True)

    amounts = commands.add_parser("amounts", help="Show total and month-to-date pay")
    amounts.add_argument("--year", type=int, default=datetime.now().year)
    amounts.add_argument("--month", type=int, default=datetime.now().month)
    amounts.add_argument("--now", type=datetime.fromisoformat, help="Evaluate at this instant")

    sync = commands.add_parser("sync", help="Apply roster change events to the calendar")
    sync.add_argument("--events", required=True, help="JSON list of change events")
    sync.add_argument("--entries", help="JSON dump of all roster entries")
    sync.add_argument("--owner", help="Calendar owner (defaults to the stored owner)")

    bulk = commands.add_parser("import", help="Import every roster entry of the owner")
    bulk.add_argument("--entries", required=True)
    bulk.add_argument("--owner")

    export = commands.add_parser("export", help="Export earnings or roster shifts")
    export.add_argument("--year", type=int, default=datetime.now().year)
    export.add_argument("--month", type=int, default=datetime.now().month)
    export.add_argument("--format", choices=["excel", "csv", "ics"], default="excel")
    export.add_argument("--output", required=True)
    export.add_argument("--entries", help="Roster entries, required for ics")
    export.add_argument("--owner")

    names = commands.add_parser("names", help="List selectable staff names")
    names.add_argument("--staff", required=True, help="JSON list of staff members")

    return parser


def run(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger = setup_logging(args.log_dir, args.log_level)

    if args.command == "names":
        try:
            with open(args.staff, 'r', encoding='utf-8') as f:
                staff = [StaffMember(**item) for item in json.load(f)]
        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Could not read staff table {args.staff}: {e}", exc_info=True)
            return 1
        for name in derive_available_names(with_relief_variants(staff)):
            print(name)
        return 0

    app = WorkScheduleApp(args.data_file)
    try:
        app.initialize()

        if args.command == "amounts":
            app.show_amounts(args.year, args.month, args.now)

        elif args.command == "sync":
            with open(args.events, 'r', encoding='utf-8') as f:
                events = [RosterChangeEvent.from_dict(item) for item in json.load(f)]
            entries = load_roster_entries(args.entries) if args.entries else []
            results = app.sync(args.owner).apply_all(events, entries)
            print(f"{sum(1 for r in results if r.applied)} of {len(results)} events applied")

        elif args.command == "import":
            batch = app.sync(args.owner).import_entries(load_roster_entries(args.entries))
            print(f"{batch.applied_count} shifts imported")

        elif args.command == "export":
            if args.format == "ics":
                if not args.entries:
                    logger.error("--entries is required for ics export")
                    return 1
                owner = args.owner or app.data_manager.get_setting("ownerIdentity", "")
                result = app.export_manager.report_generator.export_ical(
                    load_roster_entries(args.entries), owner, args.year, args.month, args.output)
                for error in result.errors:
                    logger.warning(error)
                return 0 if result.success else 1
            if not app.export_manager.export_earnings(args.year, args.month, args.format, args.output):
                return 1

        return 0

    except (DataManagerError, OSError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}", exc_info=True)
        return 1


def main():
    """Main entry point"""
    sys.excepthook = handle_exception
    sys.exit(run())


if __name__ == "__main__":
    main()
