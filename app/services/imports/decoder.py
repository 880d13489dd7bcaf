"""
Tabular decoder: spreadsheet bytes -> header row + ordered data rows.

The first non-empty row is the header row, every following row is data.
Blank data rows come back as rows of ``None`` and are left for the caller to
filter. Content that is not an xlsx workbook or delimited text raises
``DecodeError``.
"""
import csv
import io
import logging
import unicodedata
from dataclasses import dataclass, field
from typing import Any, List, Optional

from openpyxl import load_workbook

from app.core.exceptions import DecodeError

logger = logging.getLogger(__name__)

ZIP_MAGIC = b"PK\x03\x04"
OLE2_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"  # legacy .xls container
TEXT_ENCODINGS = ("utf-8-sig", "cp1251")
CSV_DELIMITERS = ",;\t|"
# formats that are never tabular even when they happen to decode as text
BINARY_MAGICS = (
    b"%PDF",
    b"\x89PNG",
    b"GIF8",
    b"\xff\xd8\xff",  # jpeg
    b"\x1f\x8b",  # gzip
    b"Rar!",
    b"7z\xbc\xaf",
)
MAX_CONTROL_SHARE = 0.01


@dataclass
class DecodedTable:
    headers: List[str] = field(default_factory=list)
    rows: List[List[Any]] = field(default_factory=list)


def is_blank_row(row) -> bool:
    return all(cell is None or (isinstance(cell, str) and not cell.strip()) for cell in row)


def _normalize_cell(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _header_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _build_table(raw_rows) -> DecodedTable:
    rows = [[_normalize_cell(cell) for cell in row] for row in raw_rows]
    start = 0
    while start < len(rows) and is_blank_row(rows[start]):
        start += 1
    if start == len(rows):
        return DecodedTable()

    header_row = rows[start]
    # drop trailing empty header cells
    width = len(header_row)
    while width > 0 and header_row[width - 1] is None:
        width -= 1
    headers = [_header_text(cell) for cell in header_row[:width]]

    data = []
    for row in rows[start + 1:]:
        if len(row) < width:
            row = row + [None] * (width - len(row))
        data.append(row)
    return DecodedTable(headers=headers, rows=data)


def _read_xlsx(content: bytes) -> DecodedTable:
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise DecodeError(f"Could not open workbook: {e}") from e
    try:
        if not workbook.worksheets:
            return DecodedTable()
        sheet = workbook.worksheets[0]
        raw_rows = [list(row) for row in sheet.iter_rows(values_only=True)]
    except Exception as e:
        raise DecodeError(f"Could not read worksheet: {e}") from e
    finally:
        workbook.close()
    return _build_table(raw_rows)


def _is_known_binary(content: bytes) -> bool:
    return any(content.startswith(magic) for magic in BINARY_MAGICS)


def _looks_like_text(text: str) -> bool:
    sample = text[:8192]
    if not sample:
        return True
    control = sum(1 for ch in sample if ch not in "\t\r\n" and unicodedata.category(ch) == "Cc")
    return control <= len(sample) * MAX_CONTROL_SHARE


def _decode_text(content: bytes) -> Optional[str]:
    if b"\x00" in content or _is_known_binary(content):
        return None
    for encoding in TEXT_ENCODINGS:
        try:
            text = content.decode(encoding)
        except UnicodeDecodeError:
            continue
        return text if _looks_like_text(text) else None
    return None


def _read_csv(text: str) -> DecodedTable:
    sample = text[:8192]
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=CSV_DELIMITERS)
    except csv.Error:
        dialect = csv.excel
    try:
        raw_rows = list(csv.reader(io.StringIO(text), dialect))
    except csv.Error as e:
        raise DecodeError(f"Could not parse CSV: {e}") from e
    return _build_table(raw_rows)


def decode_table(content: bytes, file_name: Optional[str] = None) -> DecodedTable:
    if not content:
        return DecodedTable()
    if content.startswith(ZIP_MAGIC):
        table = _read_xlsx(content)
    elif content.startswith(OLE2_MAGIC):
        raise DecodeError("Legacy .xls workbooks are not supported, save the file as .xlsx")
    else:
        text = _decode_text(content)
        if text is None:
            raise DecodeError("File is neither an xlsx workbook nor delimited text")
        table = _read_csv(text)
    logger.debug("Decoded %s: %d headers, %d data rows", file_name or "file", len(table.headers), len(table.rows))
    return table
