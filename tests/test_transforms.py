from datetime import date, datetime

import pytest

from app.services.imports.transforms import (
    Transform,
    TransformKind,
    apply_transform,
    extract_datetime,
    to_strptime_format,
)


@pytest.mark.parametrize("name, kind", [
    (None, TransformKind.NONE),
    ("", TransformKind.NONE),
    ("NONE", TransformKind.NONE),
    ("toUpperCase", TransformKind.UPPER),
    ("toLowerCase", TransformKind.LOWER),
    ("trim", TransformKind.TRIM),
    ("EXTRACT_DATETIME", TransformKind.EXTRACT_DATETIME),
    ("parseDate", TransformKind.EXTRACT_DATETIME),
    ("reverseWords", TransformKind.UNKNOWN),
])
def test_transform_names(name, kind):
    assert Transform.from_config({"function": name}).kind == kind


def test_missing_processing_block_is_no_transform():
    assert Transform.from_config(None).kind == TransformKind.NONE
    assert Transform.from_config("toUpperCase").kind == TransformKind.NONE


def test_case_and_trim_transforms():
    assert apply_transform("Berlin", Transform(TransformKind.UPPER)) == "BERLIN"
    assert apply_transform("Berlin", Transform(TransformKind.LOWER)) == "berlin"
    assert apply_transform("  Berlin ", Transform(TransformKind.TRIM)) == "Berlin"
    assert apply_transform(None, Transform(TransformKind.UPPER)) is None
    assert apply_transform(42, Transform(TransformKind.LOWER)) == "42"


def test_unknown_transform_passes_value_through(caplog):
    transform = Transform.from_config({"function": "reverseWords"})
    with caplog.at_level("WARNING"):
        assert apply_transform("keep me", transform) == "keep me"
    assert "reverseWords" in caplog.text


def test_from_prefix_and_plain_value_give_same_instant():
    expected = datetime(2023, 2, 1, 13, 45, 0)
    assert extract_datetime("от 01.02.2023 13:45:00") == expected
    assert extract_datetime("01.02.2023 13:45:00") == expected
    assert extract_datetime("Order from 01.02.2023 13:45:00 (online)") == expected


def test_dotted_year_first_format():
    assert extract_datetime("2023.02.01 9.05.30") == datetime(2023, 2, 1, 9, 5, 30)


def test_custom_format_with_moment_tokens():
    assert to_strptime_format("DD/MM/YYYY HH:mm") == "%d/%m/%Y %H:%M"
    assert extract_datetime("01/02/2023 13:45", {"format": "DD/MM/YYYY HH:mm"}) == datetime(2023, 2, 1, 13, 45)
    assert extract_datetime("01-02-2023", {"format": "%d-%m-%Y"}) == datetime(2023, 2, 1)


def test_iso_fallback():
    assert extract_datetime("2023-02-01T13:45:00") == datetime(2023, 2, 1, 13, 45)


def test_native_dates_are_kept():
    value = datetime(2023, 2, 1, 13, 45)
    assert extract_datetime(value) is value
    assert extract_datetime(date(2023, 2, 1)) == datetime(2023, 2, 1)


@pytest.mark.parametrize("value", ["not a date", "32.13.2023 99:99:99", "", None])
def test_unparseable_value_gives_none(value):
    assert extract_datetime(value) is None
