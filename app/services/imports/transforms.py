"""
Value transforms a mapping rule can apply to a cell before validation.

Transforms are pure: they never raise for bad input. Date extraction returns
``None`` when nothing matches, unknown transform names pass values through.
"""
import enum
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from dateutil.parser import isoparse

logger = logging.getLogger(__name__)


class TransformKind(str, enum.Enum):
    NONE = "none"
    UPPER = "upper"
    LOWER = "lower"
    TRIM = "trim"
    EXTRACT_DATETIME = "extract_datetime"
    UNKNOWN = "unknown"


_NAME_TO_KIND = {
    "": TransformKind.NONE,
    "none": TransformKind.NONE,
    "touppercase": TransformKind.UPPER,
    "upper": TransformKind.UPPER,
    "tolowercase": TransformKind.LOWER,
    "lower": TransformKind.LOWER,
    "trim": TransformKind.TRIM,
    "extract_datetime": TransformKind.EXTRACT_DATETIME,
    "parsedate": TransformKind.EXTRACT_DATETIME,
}


@dataclass(frozen=True)
class Transform:
    kind: TransformKind = TransformKind.NONE
    name: str = "none"
    params: dict = field(default_factory=dict)

    @classmethod
    def from_config(cls, processing: Any) -> "Transform":
        """Build from the stored ``{"function": ..., "params": {...}}`` shape."""
        if not isinstance(processing, dict):
            return cls()
        name = processing.get("function")
        name = str(name).strip() if name is not None else ""
        params = processing.get("params")
        params = dict(params) if isinstance(params, dict) else {}
        kind = _NAME_TO_KIND.get(name.lower(), TransformKind.UNKNOWN)
        return cls(kind=kind, name=name or "none", params=params)


# (pattern, strptime formats) tried in order against the raw string
_DATETIME_PATTERNS = [
    (re.compile(r"(?:от|from)\s+(\d{2}\.\d{2}\.\d{4}\s+\d{1,2}:\d{2}:\d{2})", re.IGNORECASE), ["%d.%m.%Y %H:%M:%S"]),
    (re.compile(r"^(\d{2}\.\d{2}\.\d{4}\s+\d{1,2}:\d{2}:\d{2})$"), ["%d.%m.%Y %H:%M:%S"]),
    (re.compile(r"^(\d{4}\.\d{2}\.\d{2}\s+\d{1,2}\.\d{2}\.\d{2})$"), ["%Y.%m.%d %H.%M.%S"]),
]

# moment.js style tokens that mapping authors write in "format" params
_MOMENT_TOKENS = [
    ("YYYY", "%Y"),
    ("YY", "%y"),
    ("MM", "%m"),
    ("DD", "%d"),
    ("HH", "%H"),
    ("H", "%H"),
    ("mm", "%M"),
    ("ss", "%S"),
]
_MOMENT_RE = re.compile("|".join(token for token, _ in _MOMENT_TOKENS))


def to_strptime_format(fmt: str) -> str:
    if "%" in fmt:
        return fmt
    lookup = dict(_MOMENT_TOKENS)
    return _MOMENT_RE.sub(lambda m: lookup[m.group(0)], fmt)


def _strptime(text: str, formats) -> Optional[datetime]:
    # collapse runs of whitespace so "01.02.2023  9:00:00" still parses
    text = re.sub(r"\s+", " ", text.strip())
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def extract_datetime(value: Any, params: dict = None) -> Optional[datetime]:
    """Pull a datetime out of a messy cell value, or return None."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None

    for pattern, formats in _DATETIME_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        parsed = _strptime(match.group(1), formats)
        if parsed is not None:
            logger.debug("Parsed %r via pattern %s", text, pattern.pattern)
            return parsed
        logger.debug("Pattern %s matched %r but did not parse", pattern.pattern, text)

    custom_format = (params or {}).get("format")
    if isinstance(custom_format, str) and custom_format.strip():
        parsed = _strptime(text, [to_strptime_format(custom_format.strip())])
        if parsed is not None:
            return parsed
        logger.debug("Custom format %r did not match %r", custom_format, text)

    try:
        return isoparse(text)
    except (ValueError, OverflowError):
        pass

    logger.warning("All date parsing attempts failed for %r", text)
    return None


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def apply_transform(value: Any, transform: Transform) -> Any:
    kind = transform.kind
    if kind == TransformKind.NONE:
        return value
    if kind == TransformKind.UPPER:
        text = _as_text(value)
        return text.upper() if text is not None else None
    if kind == TransformKind.LOWER:
        text = _as_text(value)
        return text.lower() if text is not None else None
    if kind == TransformKind.TRIM:
        text = _as_text(value)
        return text.strip() if text is not None else None
    if kind == TransformKind.EXTRACT_DATETIME:
        return extract_datetime(value, transform.params)

    logger.warning("Unknown processing function %r, value passed through unchanged", transform.name)
    return value
