"""JSON and CSV export of extracted form data."""

import csv
import io
from datetime import date

from models import ExtractedData

NO_DATA = "No data to export"
CSV_HEADERS = ("Label", "Value", "Type", "Confidence", "Verified")


def to_json(data: ExtractedData) -> str:
    """Lossless JSON representation; from_json reads it back."""
    return data.model_dump_json(by_alias=True, indent=2)


def from_json(text: str) -> ExtractedData:
    return ExtractedData.model_validate_json(text)


def _format_confidence(value: float) -> str:
    return f"{value:g}"


def to_csv(data: ExtractedData | None) -> str:
    if data is None or not data.fields:
        return NO_DATA

    output = io.StringIO()
    output.write(",".join(CSV_HEADERS) + "\n")
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for field in data.fields:
        writer.writerow([
            field.label,
            field.value,
            field.type,
            _format_confidence(field.confidence),
            "Yes" if field.verified else "No",
        ])
    return output.getvalue().rstrip("\n")


EXPORT_FORMATS = {
    "json": (to_json, "application/json"),
    "csv": (to_csv, "text/csv"),
}


def export_filename(source: str, fmt: str, on: date | None = None) -> str:
    """<base>_extracted_<YYYY-MM-DD>.<ext>, base being the name up to the first dot."""
    base = (source or "").split(".")[0] or "form"
    day = (on or date.today()).isoformat()
    return f"{base}_extracted_{day}.{fmt}"
