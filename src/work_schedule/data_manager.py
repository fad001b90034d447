"""
Data Manager for Work Schedule Tracker

Handles all file I/O operations and JSON persistence for the private
calendar (shifts and special dates), pay settings and per-month salary
overrides.
"""

import copy
import json
import logging
from datetime import datetime
from typing import Dict, List, Any
from pathlib import Path

from .payroll import Settings
from .rules import ConstraintViolation, validate_shift_assignment
from .shift_taxonomy import ShiftCode, default_shift_combinations, parse_shift_code

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"
EXPORT_VERSION = "3.0"
DEFAULT_SCHEDULE_TITLE = "Work Schedule"


class DataManagerError(Exception):
    """Base exception for DataManager operations"""
    pass


class DataFileCorruptedError(DataManagerError):
    """Raised when the data file is corrupted"""
    pass


class DataFileNotFoundError(DataManagerError):
    """Raised when the data file is not found"""
    pass


class DataSaveError(DataManagerError):
    """Raised when saving data fails"""
    pass


class DataValidationError(DataManagerError):
    """Raised when data validation fails"""
    pass


def month_key(year: int, month: int) -> str:
    return f"{year}-{month:02d}"


class DataManager:
    """Manages persistence of the calendar, settings and salary overrides"""

    def __init__(self, data_file: str = "data/work_schedule.json"):
        if data_file == "data/work_schedule.json":
            # Use path relative to the package directory
            data_file = Path(__file__).parent.parent / "data" / "work_schedule.json"
        self.data_file = Path(data_file)
        self.data = self._load_or_create_data()

    def _load_or_create_data(self) -> Dict[str, Any]:
        """Load existing data or create default structure with recovery from backup"""
        if self.data_file.exists():
            try:
                with open(self.data_file, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                    return self._validate_and_migrate_data(data)
            except (json.JSONDecodeError, IOError) as e:
                logger.error(f"Error loading main data file {self.data_file}: {e}")
                backup_file = self.data_file.with_suffix('.bak')
                if backup_file.exists():
                    try:
                        logger.info(f"Attempting recovery from backup file {backup_file}")
                        with open(backup_file, 'r', encoding='utf-8') as f:
                            data = json.load(f)
                        backup_file.replace(self.data_file)
                        logger.info("Successfully recovered data from backup")
                        return self._validate_and_migrate_data(data)
                    except (json.JSONDecodeError, IOError) as backup_e:
                        logger.error(f"Backup file also corrupted: {backup_e}")
                        logger.info("Creating default data due to corrupted files")
                        return self._create_default_data()
                else:
                    raise DataFileCorruptedError(f"Main data file corrupted and no backup available: {e}")
        else:
            backup_file = self.data_file.with_suffix('.bak')
            if backup_file.exists():
                try:
                    logger.info(f"Main data file missing, attempting recovery from backup {backup_file}")
                    with open(backup_file, 'r', encoding='utf-8') as f:
                        data = json.load(f)
                    backup_file.replace(self.data_file)
                    logger.info("Successfully recovered data from backup")
                    return self._validate_and_migrate_data(data)
                except (json.JSONDecodeError, IOError) as backup_e:
                    logger.error(f"Backup file corrupted: {backup_e}")
                    logger.info("Creating default data due to corrupted backup")
                    return self._create_default_data()
            else:
                logger.info("No data file found, creating default data")
                return self._create_default_data()

    def _validate_and_migrate_data(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Validate and migrate data structure to current version"""
        default_data = self._create_default_data()

        # Merge with defaults to ensure all keys exist
        for key in default_data:
            if key not in data or data[key] is None:
                data[key] = default_data[key]

        settings = data["settings"]
        for key, value in default_data["settings"].items():
            settings.setdefault(key, value)
        if not settings.get("shiftCombinations"):
            settings["shiftCombinations"] = default_data["settings"]["shiftCombinations"]

        # Days without shifts are absent, not present-empty
        data["schedule"] = {
            date_str: list(codes)
            for date_str, codes in data["schedule"].items()
            if codes
        }
        data["specialDates"] = {
            date_str: True
            for date_str, flag in data["specialDates"].items()
            if flag is True
        }
        return data

    def _create_default_data(self) -> Dict[str, Any]:
        """Create default data structure"""
        settings = Settings().to_dict()
        settings.update({
            "appVersion": APP_VERSION,
            "ownerIdentity": "",
            "scheduleTitle": DEFAULT_SCHEDULE_TITLE,
            "lastUsedMonth": datetime.now().strftime("%Y-%m"),
            "dataFile": str(self.data_file)
        })
        return {
            "settings": settings,
            "schedule": {},  # {date: [shift codes]}
            "specialDates": {},  # {date: true}
            "monthlySalaries": {}  # {YYYY-MM: salary}
        }

    def _validate_saved_data(self) -> bool:
        """Validate that the saved data file matches current data"""
        try:
            if not self.data_file.exists():
                raise DataFileNotFoundError(f"Saved data file {self.data_file} does not exist")

            with open(self.data_file, 'r', encoding='utf-8') as f:
                saved_data = json.load(f)

            required_keys = ["settings", "schedule", "specialDates", "monthlySalaries"]
            for key in required_keys:
                if key not in saved_data:
                    raise DataValidationError(f"Required section '{key}' missing from saved data")

            if saved_data.get("settings", {}).get("appVersion") != self.data.get("settings", {}).get("appVersion"):
                raise DataValidationError("App version mismatch in saved data")

            return True

        except (json.JSONDecodeError, IOError) as e:
            raise DataValidationError(f"Failed to validate saved data: {e}")

    def save_data(self) -> bool:
        """Save current data to file atomically with validation"""
        temp_file = None
        backup_file = self.data_file.with_suffix('.bak')

        try:
            self.data_file.parent.mkdir(parents=True, exist_ok=True)

            # Keep the previous file as a backup
            if self.data_file.exists():
                self.data_file.replace(backup_file)

            temp_file = self.data_file.with_suffix('.tmp')
            with open(temp_file, 'w', encoding='utf-8') as f:
                json.dump(self.data, f, indent=2, ensure_ascii=False)

            temp_file.replace(self.data_file)
            self._validate_saved_data()
            return True

        except DataValidationError as e:
            logger.error(f"Data validation failed after save: {e}", exc_info=True)
            if backup_file.exists():
                try:
                    backup_file.replace(self.data_file)
                except OSError as restore_e:
                    logger.error(f"Failed to restore from backup: {restore_e}", exc_info=True)
            raise DataSaveError(f"Save operation failed validation: {e}")

        except (IOError, OSError, TypeError, ValueError) as e:
            logger.error(f"Error during save operation: {e}", exc_info=True)
            raise DataSaveError(f"Failed to save data: {e}")

        finally:
            if temp_file and temp_file.exists():
                try:
                    temp_file.unlink()
                except OSError as cleanup_e:
                    logger.error(f"Failed to clean up temporary file {temp_file}: {cleanup_e}", exc_info=True)

    def _commit(self, updates: Dict[str, Any]) -> None:
        """Replace whole sections and persist; on failure the previous sections are restored"""
        previous = {key: self.data.get(key) for key in updates}
        self.data.update(updates)
        try:
            self.save_data()
        except DataSaveError:
            self.data.update(previous)
            raise

    # Calendar
    def load_schedule(self) -> Dict[str, List[str]]:
        """Snapshot of the calendar: {date: [shift codes]}"""
        return copy.deepcopy(self.data.get("schedule", {}))

    def save_schedule(self, schedule: Dict[str, List[str]]):
        self._commit({"schedule": self._normalize_schedule(schedule)})

    def load_special_dates(self) -> Dict[str, bool]:
        return dict(self.data.get("specialDates", {}))

    def save_special_dates(self, special_dates: Dict[str, bool]):
        self._commit({"specialDates": self._normalize_special_dates(special_dates)})

    def save_calendar(self, schedule: Dict[str, List[str]], special_dates: Dict[str, bool]):
        """Persist shifts and special dates together"""
        self._commit({
            "schedule": self._normalize_schedule(schedule),
            "specialDates": self._normalize_special_dates(special_dates)
        })

    @staticmethod
    def _normalize_schedule(schedule: Dict[str, List[Any]]) -> Dict[str, List[str]]:
        normalized = {}
        for date_str, codes in (schedule or {}).items():
            values = [c.value if isinstance(c, ShiftCode) else str(c) for c in codes or []]
            if values:
                normalized[date_str] = values
        return normalized

    @staticmethod
    def _normalize_special_dates(special_dates: Dict[str, bool]) -> Dict[str, bool]:
        return {date_str: True for date_str, flag in (special_dates or {}).items() if flag is True}

    def is_special_date(self, date_str: str) -> bool:
        return self.data.get("specialDates", {}).get(date_str) is True

    def set_special_date(self, date_str: str, is_special: bool):
        """Mark or unmark a date as special"""
        special_dates = self.load_special_dates()
        if is_special:
            special_dates[date_str] = True
        else:
            special_dates.pop(date_str, None)
        self.save_special_dates(special_dates)

    def add_shift(self, date_str: str, code: Any, force: bool = False) -> List[str]:
        """
        Add a shift by direct edit. Returns the rule violations found; the
        shift is only stored when there are none, or when force is set and
        none of them is a conflict with a shift already on the date.
        """
        schedule = self.load_schedule()
        current = schedule.get(date_str, [])
        violations = validate_shift_assignment(date_str, code, current, self.is_special_date(date_str))
        shift_code = parse_shift_code(code)

        blocking = [v for v in violations if not v.startswith((
            ConstraintViolation.REQUIRES_SPECIAL_DATE, ConstraintViolation.NOT_ALLOWED_ON_DAY))]
        if blocking or (violations and not force):
            return violations

        if shift_code.value not in current:
            schedule[date_str] = current + [shift_code.value]
            self.save_schedule(schedule)
        return violations

    def remove_shift(self, date_str: str, code: Any) -> bool:
        shift_code = parse_shift_code(code)
        schedule = self.load_schedule()
        current = schedule.get(date_str, [])
        if shift_code is None or shift_code.value not in current:
            return False
        remaining = [c for c in current if c != shift_code.value]
        if remaining:
            schedule[date_str] = remaining
        else:
            del schedule[date_str]
        self.save_schedule(schedule)
        return True

    def clear_date(self, date_str: str) -> bool:
        """Remove every shift and the special flag from a date"""
        schedule = self.load_schedule()
        special_dates = self.load_special_dates()
        if date_str not in schedule and date_str not in special_dates:
            return False
        schedule.pop(date_str, None)
        special_dates.pop(date_str, None)
        self.save_calendar(schedule, special_dates)
        return True

    def clear_month(self, year: int, month: int) -> int:
        """Clear all shifts and special flags in a month; returns dates cleared"""
        prefix = f"{month_key(year, month)}-"
        schedule = self.load_schedule()
        special_dates = self.load_special_dates()
        cleared = {d for d in list(schedule) + list(special_dates) if d.startswith(prefix)}
        if not cleared:
            return 0
        for date_str in cleared:
            schedule.pop(date_str, None)
            special_dates.pop(date_str, None)
        self.save_calendar(schedule, special_dates)
        logger.info(f"Cleared {len(cleared)} dates in {month_key(year, month)}")
        return len(cleared)

    # Pay settings
    def load_settings(self) -> Settings:
        return Settings.from_dict(self.data.get("settings", {}))

    def save_settings(self, settings: Settings):
        merged = dict(self.data.get("settings", {}))
        merged.update(settings.to_dict())
        self._commit({"settings": merged})

    def load_monthly_salary(self, year: int, month: int) -> float:
        """Salary override for a month; 0 when none is set"""
        return float(self.data.get("monthlySalaries", {}).get(month_key(year, month), 0) or 0)

    def save_monthly_salary(self, year: int, month: int, salary: float):
        salaries = dict(self.data.get("monthlySalaries", {}))
        salaries[month_key(year, month)] = salary
        self._commit({"monthlySalaries": salaries})

    def get_all_monthly_salaries(self) -> Dict[str, float]:
        return dict(self.data.get("monthlySalaries", {}))

    # Settings Management
    def get_setting(self, key: str, default=None):
        """Get application setting"""
        return self.data.get("settings", {}).get(key, default)

    def set_setting(self, key: str, value):
        """Set application setting"""
        self.data.setdefault("settings", {})[key] = value

    # Export / import
    def export_data(self) -> Dict[str, Any]:
        """Full calendar export in the versioned exchange layout"""
        now = datetime.now()
        settings = self.load_settings()
        if not settings.shift_combinations:
            settings.shift_combinations = default_shift_combinations()
        return {
            "schedule": self.load_schedule(),
            "specialDates": self.load_special_dates(),
            "settings": settings.to_dict(),
            "scheduleTitle": self.get_setting("scheduleTitle", DEFAULT_SCHEDULE_TITLE),
            "exportDate": now.isoformat(),
            "version": EXPORT_VERSION,
            "monthlySalaries": self.get_all_monthly_salaries(),
            "filename": f"Schedule_{now.strftime('%d-%m-%Y')}.json"
        }

    def import_data(self, data: Dict[str, Any]):
        """Replace calendar sections from an export; sections absent from it are kept"""
        updates: Dict[str, Any] = {}
        if data.get("schedule") is not None:
            updates["schedule"] = self._normalize_schedule(data["schedule"])
        if data.get("specialDates") is not None:
            updates["specialDates"] = self._normalize_special_dates(data["specialDates"])
        if data.get("settings"):
            imported = dict(data["settings"])
            if not imported.get("shiftCombinations"):
                logger.info("Adding missing shift combinations to imported settings")
                imported["shiftCombinations"] = [c.to_dict() for c in default_shift_combinations()]
            merged = dict(self.data.get("settings", {}))
            merged.update(Settings.from_dict(imported).to_dict())
            updates["settings"] = merged
        if data.get("scheduleTitle"):
            updates.setdefault("settings", dict(self.data.get("settings", {})))
            updates["settings"]["scheduleTitle"] = data["scheduleTitle"]
        if data.get("monthlySalaries") is not None:
            updates["monthlySalaries"] = dict(data["monthlySalaries"])

        self._commit(updates)
        logger.info(f"Imported data sections: {', '.join(sorted(updates)) or 'none'}")
