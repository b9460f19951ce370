from datetime import datetime

import pytest

from services.errors import ValidationError
from services.row_normalizer import (
    PLACEHOLDER,
    category_values,
    normalize_row,
    parse_capital_amount,
    parse_delivery_date,
    parse_established_date,
)


def test_camel_case_row_maps_to_columns(make_row):
    values = normalize_row(make_row(1))

    assert values["company_name"] == "Example Co 1"
    assert values["press_release_title"] == "New service announcement 1"
    assert values["press_release_category1"] == "IT"
    assert values["industry"] == "Information and communications"
    assert values["delivery_date"].year == 2024
    assert values["delivery_date"].tzinfo is not None


def test_snake_case_keys_are_accepted():
    values = normalize_row(
        {
            "delivery_date": "2024/03/05",
            "press_release_url": "https://prtimes.jp/a.html",
            "press_release_title": "Title",
            "company_name": "Snake Inc",
        }
    )
    assert values["company_name"] == "Snake Inc"
    assert values["delivery_date"].month == 3


@pytest.mark.parametrize(
    "missing, field",
    [
        ("pressReleaseTitle", "press_release_title"),
        ("pressReleaseUrl", "press_release_url"),
        ("companyName", "company_name"),
        ("deliveryDate", "delivery_date"),
    ],
)
def test_missing_required_field_raises(make_row, missing, field):
    row = make_row()
    row[missing] = "   "
    with pytest.raises(ValidationError) as info:
        normalize_row(row)
    assert info.value.field == field


def test_unparseable_delivery_date_is_a_validation_error(make_row):
    with pytest.raises(ValidationError):
        normalize_row(make_row(deliveryDate="not a date"))


def test_blank_categories_become_placeholder(make_row):
    values = normalize_row(make_row(pressReleaseCategory2="", industry=None, listingStatus=float("nan")))

    assert values["press_release_category2"] == PLACEHOLDER
    assert values["industry"] == PLACEHOLDER
    assert values["listing_status"] == PLACEHOLDER
    assert ("category2", PLACEHOLDER) in category_values(values)


def test_long_values_are_truncated(make_row):
    values = normalize_row(make_row(companyName="x" * 400, pressReleaseCategory1="c" * 300))
    assert len(values["company_name"]) == 255
    assert len(values["press_release_category1"]) == 100


def test_explicit_numeric_columns_win_over_text(make_row):
    values = normalize_row(make_row(capitalAmountNumeric="2,500", establishedYear="1999", establishedMonth="12"))
    assert values["capital_amount_numeric"] == 2500
    assert values["established_year"] == 1999
    assert values["established_month"] == 12


def test_capital_and_established_derived_from_text(make_row):
    values = normalize_row(make_row())
    assert values["capital_amount_numeric"] == 15000
    assert values["established_year"] == 2010
    assert values["established_month"] == 4


@pytest.mark.parametrize(
    "text, expected",
    [
        ("1億円", 10000),
        ("1億5,000万円", 15000),
        ("3,000万円", 3000),
        ("10,000,000円", 1000),
        ("非公開", None),
        ("", None),
    ],
)
def test_parse_capital_amount(text, expected):
    assert parse_capital_amount(text) == expected


def test_parse_established_date_rejects_bad_month():
    assert parse_established_date("2001年13月") == (2001, None)
    assert parse_established_date(None) == (None, None)


def test_parse_delivery_date_japanese_format():
    parsed = parse_delivery_date("2024年7月1日 09:30")
    assert (parsed.year, parsed.month, parsed.day, parsed.hour, parsed.minute) == (2024, 7, 1, 9, 30)


def test_parse_delivery_date_keeps_datetime_objects():
    value = datetime(2023, 1, 2, 3, 4)
    assert parse_delivery_date(value).replace(tzinfo=None) == value


@pytest.mark.parametrize("value", ["inf", "-1e400", "1e12", float("inf"), 2**40])
def test_numeric_column_out_of_int_range_is_a_row_error(make_row, value):
    with pytest.raises(ValidationError) as excinfo:
        normalize_row(make_row(capitalAmountNumeric=value))
    assert excinfo.value.field == "capital_amount_numeric"


def test_non_numeric_cells_fall_back_to_text(make_row):
    values = normalize_row(make_row(capitalAmountNumeric="nan", establishedYear="unknown"))
    assert values["capital_amount_numeric"] == 15000
    assert values["established_year"] == 2010


def test_parse_capital_amount_too_large_for_column():
    assert parse_capital_amount("500,000億円") is None
    assert parse_capital_amount("9" * 400 + "万円") is None
