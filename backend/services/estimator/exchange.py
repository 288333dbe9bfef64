"""
Tax Estimator - Import / Export

- JSON export / import of the whole document
- CSV export (one section per category, for spreadsheets)
- Timesheet CSV import into the WFH hours log

Timesheet CSV:
- Delimiter detected (comma, semicolon, tab, pipe)
- A "Date" column plus one of "Minutes", "Hours" or "Duration" (H:MM)
- Dates already in the log are skipped, as are repeated dates in the file
"""

import csv
import io
import json
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from services.estimator.depreciation import parse_date
from services.estimator.editor import add_wfh_log_entries, generate_id
from services.estimator.errors import DocumentFormatError
from services.estimator.models import Document, WfhHoursLogEntry
from services.estimator.store import merge_document

logger = logging.getLogger(__name__)


REQUIRED_IMPORT_KEYS = ("userSettings", "income", "generalExpenses", "wfh")

EMPTY_SECTION = "No data for this category."


# ==================== JSON ====================

def export_json(document: Document) -> str:
    return json.dumps(document.to_json_dict(), indent=2)


def import_json(text: str, financial_year: Optional[str] = None) -> Document:
    """
    Parse an exported JSON document and merge it forward to the current layout.

    Raises DocumentFormatError for invalid JSON or missing top-level sections.
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise DocumentFormatError(
            "Failed to import data. File might be corrupted or not valid JSON."
        ) from e

    if not isinstance(data, dict) or any(key not in data for key in REQUIRED_IMPORT_KEYS):
        raise DocumentFormatError("Invalid data format in JSON file.")

    year = financial_year
    if year is None:
        settings = data.get("userSettings")
        year = settings.get("financialYear") if isinstance(settings, dict) else None
    if not year:
        raise DocumentFormatError("Imported data has no financial year", parameter="financialYear")

    return merge_document(data, year)


def export_filename(financial_year: str, extension: str, today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"tax_data_{financial_year}_{today.isoformat()}.{extension}"


# ==================== CSV EXPORT ====================

def _csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _csv_section(title: str, rows: Sequence[Dict[str, Any]], headers: List[str], keys: List[str]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow([title])
    if not rows:
        buffer.write(f"{EMPTY_SECTION}\n")
    else:
        writer.writerow(headers)
        for row in rows:
            writer.writerow([_csv_value(row.get(key)) for key in keys])
    return buffer.getvalue()


def export_csv(document: Document) -> str:
    """Spreadsheet-friendly export: income, other income, expenses, WFH log."""
    data = document.to_json_dict()
    sections = [
        f"Tax Calculator Data - Financial Year: {document.financial_year}\n",
        _csv_section(
            "PAYG Income",
            data["income"]["payg"],
            ["Source Name", "Gross Salary", "Tax Withheld"],
            ["sourceName", "grossSalary", "taxWithheld"],
        ),
        _csv_section(
            "Other Income",
            [data["income"]["other"]],
            ["Bank Interest", "Unfranked Dividends", "Franked Dividends", "Franking Credits", "Net Capital Gains"],
            ["bankInterest", "dividendsUnfranked", "dividendsFranked", "frankingCredits", "netCapitalGains"],
        ),
        _csv_section(
            "General Expenses",
            data["generalExpenses"],
            ["Description", "Date", "Cost", "Category", "Work %", "Depreciable", "Effective Life", "Method"],
            ["description", "date", "cost", "category", "workPercentage", "isDepreciable",
             "effectiveLifeYears", "depreciationMethod"],
        ),
        _csv_section(
            "WFH Hours Log",
            data["wfh"]["hoursLog"],
            ["Date", "Minutes"],
            ["date", "minutes"],
        ),
    ]
    return "\n".join(sections)


# ==================== TIMESHEET IMPORT ====================

_DURATION = re.compile(r"^\s*(\d+)\s*:\s*(\d{1,2})\s*$")


@dataclass
class TimesheetRow:
    date: date
    minutes: float


@dataclass
class TimesheetImportResult:
    imported: int = 0
    skipped_existing: int = 0
    skipped_invalid: int = 0
    skipped_dates: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "imported": self.imported,
            "skipped_existing": self.skipped_existing,
            "skipped_invalid": self.skipped_invalid,
            "skipped_dates": self.skipped_dates,
        }


def _find_column(columns: List[str], *names: str) -> Optional[str]:
    lookup = {column.strip().lower(): column for column in columns if column}
    for name in names:
        if name in lookup:
            return lookup[name]
    return None


def _parse_number(value: Any) -> Optional[float]:
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _row_minutes(row: Dict[str, Any], minutes_col, hours_col, duration_col) -> Optional[float]:
    if minutes_col:
        return _parse_number(row.get(minutes_col))
    if hours_col:
        hours = _parse_number(row.get(hours_col))
        return hours * 60 if hours is not None else None
    match = _DURATION.match(str(row.get(duration_col) or ""))
    if not match:
        return None
    return int(match.group(1)) * 60 + int(match.group(2))


def parse_timesheet_csv(text: str) -> Tuple[List[TimesheetRow], int]:
    """
    Parse a timesheet export.

    Returns (valid rows, number of rows skipped as unreadable).
    Raises DocumentFormatError when the required columns are missing.
    """
    text = text.lstrip("\ufeff")
    sample = text[:4096]
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=",;\t|")
    except csv.Error:
        dialect = csv.excel

    reader = csv.DictReader(io.StringIO(text), dialect=dialect)
    columns = reader.fieldnames or []

    date_col = _find_column(columns, "date", "day", "work date")
    minutes_col = _find_column(columns, "minutes", "mins")
    hours_col = _find_column(columns, "hours", "hrs")
    duration_col = _find_column(columns, "duration", "time")
    if not date_col:
        raise DocumentFormatError("Timesheet must have a Date column", parameter="date")
    if not (minutes_col or hours_col or duration_col):
        raise DocumentFormatError(
            "Timesheet must have a Minutes, Hours or Duration column", parameter="minutes"
        )

    rows: List[TimesheetRow] = []
    invalid = 0
    for row in reader:
        worked_on = parse_date(row.get(date_col))
        minutes = _row_minutes(row, minutes_col, hours_col, duration_col)
        if worked_on is None or minutes is None or minutes <= 0:
            invalid += 1
            continue
        rows.append(TimesheetRow(date=worked_on, minutes=minutes))

    return rows, invalid


def import_timesheet(document: Document, text: str) -> Tuple[Document, TimesheetImportResult]:
    """Add one WFH log entry per new date from a timesheet CSV."""
    rows, invalid = parse_timesheet_csv(text)
    result = TimesheetImportResult(skipped_invalid=invalid)

    seen = {
        parsed.isoformat()
        for parsed in (parse_date(entry.date) for entry in document.wfh.hours_log)
        if parsed is not None
    }
    entries: List[WfhHoursLogEntry] = []
    for row in rows:
        day = row.date.isoformat()
        if day in seen:
            result.skipped_existing += 1
            result.skipped_dates.append(day)
            continue
        seen.add(day)
        entries.append(WfhHoursLogEntry(id=generate_id("wfh"), date=day, minutes=row.minutes))

    result.imported = len(entries)
    logger.info(
        f"Timesheet import: {result.imported} added, {result.skipped_existing} existing dates skipped, "
        f"{result.skipped_invalid} invalid rows"
    )
    if not entries:
        return document, result
    return add_wfh_log_entries(document, entries), result
