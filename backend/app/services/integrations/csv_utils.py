"""
Helpers shared by the CSV export parsers.
"""

import csv
import io
from datetime import datetime, timezone
from typing import Optional

from app.core.errors import ValidationError

DATE_FORMATS = (
    "%Y/%m/%d",
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%b %d, %Y",  # Goodreads shelf pages: "Jan 15, 2024"
    "%b %Y",
    "%Y/%m",
    "%Y-%m",
    "%Y",
)


def read_csv_rows(text: str) -> list[dict[str, str]]:
    """
    Parse CSV text (header row + data rows) into dicts with trimmed values.

    Raises ValidationError when there is no data row.
    """
    # Exports saved by spreadsheet apps often start with a BOM
    text = (text or "").lstrip("\ufeff")

    # Quoted fields (reviews) may span lines, so let the csv module split rows
    reader = csv.DictReader(io.StringIO(text, newline=""))
    if reader.fieldnames:
        reader.fieldnames = [name.strip() for name in reader.fieldnames]

    rows = []
    for raw in reader:
        row = {
            key: (value or "").strip()
            for key, value in raw.items()
            if key is not None
        }
        if any(row.values()):
            rows.append(row)

    if not rows:
        raise ValidationError("CSV file is empty or has no data rows")
    return rows


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """Parse the date formats Goodreads and Letterboxd use, as UTC."""
    if not value:
        return None
    value = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def split_list(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]
