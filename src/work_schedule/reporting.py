"""
Reporting and Export Module for Work Schedule Tracker

Handles Excel and CSV export of the monthly earnings breakdown and iCal
export of an owner's roster shifts.
"""

import pandas as pd
from datetime import datetime, date
import calendar
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Iterable, Tuple
import logging

from .data_manager import DataManager
from .payroll import AccrualResult, compute_breakdown
from .roster import RosterEntry, filter_owner_entries
from .shift_taxonomy import SHIFT_DISPLAY_NAMES, resolve_roster_label, shift_end, shift_start

logger = logging.getLogger(__name__)

ICAL_TIME_FORMAT = "%Y%m%dT%H%M%S"


@dataclass
class ExportResult:
    success: bool
    filename: str
    entries_exported: int = 0
    errors: List[str] = field(default_factory=list)


class ReportGenerator:
    """Main class for generating reports and exports"""

    def __init__(self, data_manager: DataManager):
        self.data_manager = data_manager

    def calculate_month(self, year: int, month: int, now: Optional[datetime] = None) -> AccrualResult:
        """Per-date earnings for a month from the stored calendar"""
        return compute_breakdown(
            self.data_manager.load_schedule(),
            self.data_manager.load_special_dates(),
            self.data_manager.load_settings(),
            self.data_manager.load_monthly_salary(year, month),
            year, month, now
        )

    def _create_earnings_dataframe(self, result: AccrualResult) -> pd.DataFrame:
        """Create earnings DataFrame, one row per worked date"""
        data = []
        for line in result.lines:
            work_date = date.fromisoformat(line.date)
            data.append({
                'Date': line.date,
                'Day': work_date.strftime("%A"),
                'Shifts': ", ".join(SHIFT_DISPLAY_NAMES[code] for code in line.codes),
                'Special': line.is_special,
                'Hours': line.hours,
                'Amount': round(line.amount, 2),
                'Earned_To_Date': round(line.accrued_amount, 2)
            })
        columns = ['Date', 'Day', 'Shifts', 'Special', 'Hours', 'Amount', 'Earned_To_Date']
        return pd.DataFrame(data, columns=columns)

    def _create_summary_dataframe(self, year: int, month: int, result: AccrualResult) -> pd.DataFrame:
        data = [
            {'Metric': 'Month', 'Value': f"{calendar.month_name[month]} {year}"},
            {'Metric': 'Owner', 'Value': self.data_manager.get_setting("ownerIdentity", "")},
            {'Metric': 'Days Worked', 'Value': len(result.lines)},
            {'Metric': 'Hours', 'Value': sum(line.hours for line in result.lines)},
            {'Metric': 'Hourly Rate', 'Value': round(result.effective_hourly_rate, 4)},
            {'Metric': 'Total Amount', 'Value': round(result.total_amount, 2)},
            {'Metric': 'Month To Date', 'Value': round(result.month_to_date_amount, 2)},
        ]
        return pd.DataFrame(data)

    def export_earnings_excel(self, year: int, month: int, output_path: str,
                              now: Optional[datetime] = None) -> bool:
        """Export the month's earnings breakdown to Excel"""
        try:
            result = self.calculate_month(year, month, now)
            with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
                self._create_earnings_dataframe(result).to_excel(writer, sheet_name='Earnings', index=False)
                self._create_summary_dataframe(year, month, result).to_excel(writer, sheet_name='Summary', index=False)
                self._format_excel_worksheets(writer)
            return True

        except Exception as e:
            logger.error(f"Error exporting to Excel: {e}", exc_info=True)
            return False

    def _format_excel_worksheets(self, writer):
        """Format Excel worksheets"""
        from openpyxl.styles import PatternFill, Font

        header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
        header_font = Font(color="FFFFFF", bold=True)

        for worksheet in writer.sheets.values():
            for cell in worksheet[1]:
                cell.fill = header_fill
                cell.font = header_font

            # Auto-adjust column widths
            for column in worksheet.columns:
                max_length = max((len(str(cell.value)) for cell in column if cell.value is not None), default=0)
                worksheet.column_dimensions[column[0].column_letter].width = min(max_length + 2, 50)

    def export_earnings_csv(self, year: int, month: int, output_path: str,
                            now: Optional[datetime] = None) -> bool:
        """Export the month's earnings breakdown to CSV"""
        try:
            result = self.calculate_month(year, month, now)
            self._create_earnings_dataframe(result).to_csv(output_path, index=False)
            return True

        except Exception as e:
            logger.error(f"Error exporting to CSV: {e}", exc_info=True)
            return False

    def generate_ical(self, entries: Iterable[RosterEntry], owner_identity: str,
                      year: int, month: int) -> Tuple[str, int, List[str]]:
        """Build iCal text for the owner's roster shifts in a month"""
        stamp = datetime.now().strftime(ICAL_TIME_FORMAT)
        lines = [
            "BEGIN:VCALENDAR",
            "VERSION:2.0",
            "PRODID:-//Work Schedule Tracker//Roster Export//EN",
            "CALSCALE:GREGORIAN",
            f"X-WR-CALNAME:{owner_identity} Shifts - {calendar.month_name[month]} {year}",
        ]
        exported = 0
        errors = []

        for entry in filter_owner_entries(entries, owner_identity, year, month):
            code = resolve_roster_label(entry.shift_type)
            if code is None:
                errors.append(f"Unknown shift type '{entry.shift_type}' on {entry.date}")
                continue
            work_date = date.fromisoformat(entry.date)
            lines.extend([
                "BEGIN:VEVENT",
                f"UID:{entry.date}-{code.value}-{owner_identity}@work-schedule".replace(" ", "_"),
                f"DTSTAMP:{stamp}",
                f"DTSTART:{shift_start(work_date, code).strftime(ICAL_TIME_FORMAT)}",
                f"DTEND:{shift_end(work_date, code).strftime(ICAL_TIME_FORMAT)}",
                f"SUMMARY:{SHIFT_DISPLAY_NAMES[code]}",
                f"DESCRIPTION:{entry.shift_type} - {entry.assigned_name}",
                "END:VEVENT",
            ])
            exported += 1

        lines.append("END:VCALENDAR")
        return "\r\n".join(lines) + "\r\n", exported, errors

    def export_ical(self, entries: Iterable[RosterEntry], owner_identity: str,
                    year: int, month: int, output_path: str) -> ExportResult:
        """Write the owner's month of roster shifts to an .ics file"""
        content, exported, errors = self.generate_ical(entries, owner_identity, year, month)
        filename = Path(output_path).name
        if exported == 0:
            errors.append("No shifts found for this staff member in the selected month")
            return ExportResult(success=False, filename=filename, errors=errors)

        try:
            with open(output_path, 'w', encoding='utf-8', newline='') as f:
                f.write(content)
        except OSError as e:
            logger.error(f"Error writing calendar file {output_path}: {e}", exc_info=True)
            return ExportResult(success=False, filename=filename, errors=errors + [str(e)])

        return ExportResult(success=True, filename=filename, entries_exported=exported, errors=errors)


class ExportManager:
    """Manager class for handling all export operations"""

    def __init__(self, data_manager: DataManager):
        self.data_manager = data_manager
        self.report_generator = ReportGenerator(data_manager)

    def export_earnings(self, year: int, month: int, format_type: str, output_path: str,
                        now: Optional[datetime] = None) -> bool:
        """Export earnings in specified format"""
        if format_type.lower() in ('excel', 'xlsx'):
            return self.report_generator.export_earnings_excel(year, month, output_path, now)
        elif format_type.lower() == 'csv':
            return self.report_generator.export_earnings_csv(year, month, output_path, now)
        else:
            raise ValueError(f"Unsupported format: {format_type}")

    def get_default_filename(self, year: int, month: int, format_type: str) -> str:
        """Generate default filename for export"""
        month_name = calendar.month_name[month].lower()
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        extension = 'xlsx' if format_type.lower() == 'excel' else format_type.lower()
        return f"earnings_{month_name}_{year}_{timestamp}.{extension}"

    def batch_export(self, year: int, month: int, output_dir: str,
                     formats: List[str] = None) -> Dict[str, bool]:
        """Export earnings in multiple formats"""
        if formats is None:
            formats = ['excel', 'csv']

        results = {}
        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)

        for format_type in formats:
            file_path = output_path / self.get_default_filename(year, month, format_type)
            try:
                results[format_type] = self.export_earnings(year, month, format_type, str(file_path))
            except ValueError as e:
                logger.error(f"Error exporting {format_type}: {e}", exc_info=True)
                results[format_type] = False

        return results
