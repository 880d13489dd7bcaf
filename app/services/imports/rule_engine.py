"""
Field-mapping rule engine.

Applies one client mapping rule set to one decoded row. Everything here is a
pure function of its inputs: per-field problems come back as ``FieldError``
data and the orchestrator decides what they mean for the row and the import.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence, Tuple

from dateutil.parser import isoparse

from app.core.exceptions import InvalidMappingFormatError
from app.models.enums import FieldType
from app.services.imports.system_fields import SYSTEM_FIELDS
from app.services.imports.transforms import Transform, apply_transform

logger = logging.getLogger(__name__)

REQUIRED_FIELD_MISSING = "required field missing"


@dataclass(frozen=True)
class MappingRule:
    source_header: Optional[str] = None
    default_value: Optional[str] = None
    transform: Transform = field(default_factory=Transform)
    is_required: bool = False
    is_identifier: bool = False


@dataclass(frozen=True)
class FieldError:
    field: str
    header: Optional[str]
    value: Any
    error: str

    def to_dict(self) -> dict:
        return {"field": self.field, "header": self.header, "value": self.value, "error": self.error}


@dataclass
class RowEvaluation:
    values: Dict[str, Any]
    errors: List[FieldError]

    @property
    def ok(self) -> bool:
        return not self.errors


def is_empty(value: Any) -> bool:
    return value is None or (not isinstance(value, (datetime, date)) and str(value).strip() == "")


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_mapping_rules(raw: Any) -> Dict[str, MappingRule]:
    """Turn the stored JSON mapping into typed rules keyed by system field.

    Entries that are not objects are skipped, as are inert entries with neither
    a source header nor a default value.
    """
    if not isinstance(raw, dict):
        raise InvalidMappingFormatError("Mapping rules must be a JSON object keyed by system field")

    rules = {}
    for system_field, entry in raw.items():
        if not isinstance(entry, dict):
            logger.warning("Skipping malformed mapping entry for %r: %r", system_field, entry)
            continue
        header = _clean_text(entry.get("field", entry.get("source_header")))
        default_value = entry.get("default_value")
        if is_empty(default_value):
            default_value = None
        if header is None and default_value is None:
            logger.debug("Skipping inert mapping entry for %r", system_field)
            continue
        rules[str(system_field)] = MappingRule(
            source_header=header,
            default_value=default_value,
            transform=Transform.from_config(entry.get("processing")),
            is_required=bool(entry.get("is_required", False)),
            is_identifier=bool(entry.get("is_identifier", False)),
        )
    return rules


def identifier_fields(rules: Dict[str, MappingRule]) -> List[str]:
    return [name for name, rule in rules.items() if rule.is_identifier]


# ----------------------------
# Type coercion
# ----------------------------
_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_GROUPING_CHARS = re.compile(r"[\s\u00a0\u202f'_]")

_DATETIME_FORMATS = [
    "%d.%m.%Y %H:%M:%S",
    "%d.%m.%Y %H:%M",
    "%d.%m.%Y",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
]


_THOUSANDS_COMMA_RE = re.compile(r"^[+-]?\d{1,3},\d{3}$")


def normalize_number(text: str, integer: bool = False) -> Optional[str]:
    """Normalize a localized numeric string to ``[-]digits[.digits]``.

    Thousands separators (spaces, apostrophes, repeated separators) are dropped;
    when both ``.`` and ``,`` appear the last one is the decimal point. A lone
    comma is a decimal comma, except for integers where ``1,234`` is grouping.
    """
    text = _GROUPING_CHARS.sub("", text)
    if not text:
        return None
    has_dot, has_comma = "." in text, "," in text
    if has_dot and has_comma:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif has_comma:
        if text.count(",") > 1 or (integer and _THOUSANDS_COMMA_RE.match(text)):
            text = text.replace(",", "")
        else:
            text = text.replace(",", ".")
    elif text.count(".") > 1:
        text = text.replace(".", "")
    return text if _NUMBER_RE.match(text) else None


def _to_decimal(value: Any, integer: bool = False) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return Decimal(repr(value))
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    normalized = normalize_number(str(value), integer=integer)
    if normalized is None:
        return None
    try:
        return Decimal(normalized)
    except InvalidOperation:
        return None


def _to_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = re.sub(r"\s+", " ", str(value).strip())
    for fmt in _DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return isoparse(text)
    except (ValueError, OverflowError):
        return None


def coerce_value(value: Any, field_type: FieldType) -> Tuple[bool, Any]:
    """Return ``(ok, coerced)`` for a non-empty value and a catalog type."""
    if field_type == FieldType.INTEGER:
        number = _to_decimal(value, integer=True)
        if number is None or number != number.to_integral_value():
            return False, value
        return True, int(number)

    if field_type == FieldType.FLOAT:
        number = _to_decimal(value)
        if number is None:
            return False, value
        return True, float(number)

    if field_type == FieldType.DATETIME:
        parsed = _to_datetime(value)
        return (parsed is not None), (parsed if parsed is not None else value)

    if field_type == FieldType.DATE:
        parsed = _to_datetime(value)
        return (parsed is not None), (parsed.date() if parsed is not None else value)

    # STRING
    if isinstance(value, float) and value.is_integer():
        return True, str(int(value))
    if isinstance(value, datetime):
        return True, value.isoformat()
    return True, str(value)


# ----------------------------
# Row evaluation
# ----------------------------
def build_header_index(headers: Sequence[Any]) -> Dict[str, int]:
    index = {}
    for position, header in enumerate(headers):
        key = "" if header is None else str(header).strip()
        if key and key not in index:
            index[key] = position
    return index


def evaluate_row(
    headers: Sequence[Any],
    row: Sequence[Any],
    rules: Dict[str, MappingRule],
    catalog: Dict[str, FieldType] = SYSTEM_FIELDS,
    header_index: Dict[str, int] = None,
) -> RowEvaluation:
    if header_index is None:
        header_index = build_header_index(headers)

    values = {}
    errors = []
    for system_field, rule in rules.items():
        value = None
        if rule.source_header is not None:
            position = header_index.get(rule.source_header)
            if position is not None and position < len(row):
                value = row[position]

        if is_empty(value) and rule.default_value is not None:
            logger.debug("Field %s: using default %r", system_field, rule.default_value)
            value = rule.default_value

        value = apply_transform(value, rule.transform)

        if is_empty(value):
            if rule.is_required:
                errors.append(FieldError(system_field, rule.source_header, value, REQUIRED_FIELD_MISSING))
            values[system_field] = value
            continue

        field_type = catalog.get(system_field)
        if field_type is not None:
            ok, coerced = coerce_value(value, field_type)
            if not ok:
                logger.debug("Field %s: %r is not a valid %s", system_field, value, field_type.value)
                errors.append(
                    FieldError(system_field, rule.source_header, value, f"invalid type, expected {field_type.value}")
                )
            else:
                value = coerced
        values[system_field] = value

    return RowEvaluation(values=values, errors=errors)
