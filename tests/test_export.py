import pytest
import sys
from pathlib import Path
import tempfile
import os
from datetime import datetime

import pandas as pd

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from work_schedule.data_manager import DataManager
from work_schedule.payroll import Settings
from work_schedule.reporting import ExportManager
from work_schedule.roster import RosterEntry

AFTER_MARCH = datetime(2025, 4, 1, 12, 0)


@pytest.fixture
def data_manager():
    """Fixture for a DataManager instance with actual temp file (safe for tests)."""
    with tempfile.NamedTemporaryFile(
        mode="w", suffix=".json", delete=False
    ) as tempfile_obj:
        temp_path = tempfile_obj.name
        # Begin with a minimal valid object
        tempfile_obj.write("{}")
    dm = DataManager(temp_path)
    # Flat 100/hour with the default combination table
    dm.save_settings(Settings(basic_salary=0, hourly_rate=100))
    dm.set_setting("ownerIdentity", "SMITH")
    dm.save_calendar(
        {"2025-03-05": ["9-4", "4-10"], "2025-03-10": ["N"]},
        {"2025-03-05": True}
    )
    yield dm
    for path in (Path(temp_path), Path(temp_path).with_suffix(".bak")):
        if path.exists():
            os.unlink(path)


@pytest.fixture
def export_manager(data_manager):
    """Fixture for an ExportManager instance."""
    return ExportManager(data_manager)


def test_excel_export(export_manager):
    with tempfile.TemporaryDirectory() as temp_dir:
        output_path = str(Path(temp_dir) / "earnings.xlsx")
        assert export_manager.export_earnings(2025, 3, "excel", output_path, AFTER_MARCH)

        earnings = pd.read_excel(output_path, sheet_name="Earnings")
        assert list(earnings["Date"]) == ["2025-03-05", "2025-03-10"]
        assert list(earnings["Amount"]) == [1200, 1250]
        assert list(earnings["Special"]) == [True, False]

        summary = pd.read_excel(output_path, sheet_name="Summary")
        totals = dict(zip(summary["Metric"], summary["Value"]))
        assert float(totals["Total Amount"]) == pytest.approx(2450)
        assert totals["Owner"] == "SMITH"


def test_csv_export(export_manager):
    with tempfile.TemporaryDirectory() as temp_dir:
        output_path = str(Path(temp_dir) / "earnings.csv")
        assert export_manager.export_earnings(2025, 3, "csv", output_path, AFTER_MARCH)

        earnings = pd.read_csv(output_path)
        assert len(earnings) == 2
        assert earnings["Hours"].sum() == pytest.approx(24.5)


def test_empty_month_exports_header_only(export_manager):
    with tempfile.TemporaryDirectory() as temp_dir:
        output_path = str(Path(temp_dir) / "empty.csv")
        assert export_manager.export_earnings(2025, 6, "csv", output_path, AFTER_MARCH)
        assert len(pd.read_csv(output_path)) == 0


def test_unsupported_format(export_manager):
    with pytest.raises(ValueError):
        export_manager.export_earnings(2025, 3, "pdf", "out.pdf")


def test_batch_export(export_manager):
    with tempfile.TemporaryDirectory() as temp_dir:
        results = export_manager.batch_export(2025, 3, temp_dir, ["excel", "csv", "pdf"])
        assert results == {"excel": True, "csv": True, "pdf": False}
        assert len(list(Path(temp_dir).iterdir())) == 2


def test_ical_night_shift_ends_next_morning(export_manager):
    """
    Why this is important: a night duty event that ended at midnight would
    put the owner off the roster for the morning they are still on duty.
    """
    entries = [
        RosterEntry("2025-03-10", "Night Duty", "SMITH(R)"),
        RosterEntry("2025-03-11", "Afternoon Shift", "SMITH"),
        RosterEntry("2025-03-12", "Night Duty", "JONES"),
        RosterEntry("2025-04-01", "Night Duty", "SMITH"),
    ]
    content, exported, errors = export_manager.report_generator.generate_ical(entries, "SMITH", 2025, 3)

    assert exported == 1
    assert len(errors) == 1
    assert "DTSTART:20250310T220000\r\n" in content
    assert "DTEND:20250311T090000\r\n" in content
    assert content.startswith("BEGIN:VCALENDAR\r\n")
    assert content.endswith("END:VCALENDAR\r\n")


def test_ical_export_writes_file(export_manager):
    entries = [RosterEntry("2025-03-08", "Saturday Regular (12-10)", "SMITH")]
    with tempfile.TemporaryDirectory() as temp_dir:
        output_path = str(Path(temp_dir) / "shifts.ics")
        result = export_manager.report_generator.export_ical(entries, "SMITH", 2025, 3, output_path)

        assert result.success
        assert result.entries_exported == 1
        with open(output_path, "r", encoding="utf-8", newline="") as f:
            assert "DTEND:20250308T220000\r\n" in f.read()


def test_ical_export_without_shifts_fails(export_manager):
    with tempfile.TemporaryDirectory() as temp_dir:
        output_path = Path(temp_dir) / "shifts.ics"
        result = export_manager.report_generator.export_ical([], "SMITH", 2025, 3, str(output_path))

        assert not result.success
        assert not output_path.exists()
