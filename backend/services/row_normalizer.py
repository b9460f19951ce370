"""
Turn one parsed PR TIMES row into column values for prtimes_companies.

Rows come from the CSV/scrape producer either with the scraper's camelCase
keys (``pressReleaseTitle``) or with column names (``press_release_title``).
"""
from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any, Mapping
from zoneinfo import ZoneInfo

from services.errors import ValidationError

PLACEHOLDER = "-"
JST = ZoneInfo("Asia/Tokyo")

# column -> max length (None = unbounded text)
TEXT_COLUMNS: dict[str, int | None] = {
    "press_release_url": 1000,
    "press_release_title": None,
    "press_release_type": 100,
    "press_release_category1": 100,
    "press_release_category2": 100,
    "company_name": 255,
    "company_website": 1000,
    "industry": 100,
    "address": 500,
    "phone_number": 100,
    "representative": 200,
    "listing_status": 200,
    "capital_amount_text": 200,
    "established_date_text": 100,
}

# record column -> category index type
CATEGORY_FIELDS: dict[str, str] = {
    "press_release_category1": "category1",
    "press_release_category2": "category2",
    "industry": "industry",
    "listing_status": "listing_status",
}

REQUIRED_COLUMNS = ("delivery_date", "press_release_title", "press_release_url", "company_name")

_ALIASES: dict[str, tuple[str, ...]] = {
    "delivery_date": ("deliveryDate",),
    "press_release_url": ("pressReleaseUrl", "url"),
    "press_release_title": ("pressReleaseTitle", "title"),
    "press_release_type": ("pressReleaseType",),
    "press_release_category1": ("pressReleaseCategory1", "category1"),
    "press_release_category2": ("pressReleaseCategory2", "category2"),
    "company_name": ("companyName",),
    "company_website": ("companyWebsite",),
    "industry": ("businessCategory", "business_category"),
    "address": (),
    "phone_number": ("phoneNumber",),
    "representative": (),
    "listing_status": ("listingStatus",),
    "capital_amount_text": ("capitalAmountText",),
    "established_date_text": ("establishedDateText",),
    "capital_amount_numeric": ("capitalAmountNumeric",),
    "established_year": ("establishedYear",),
    "established_month": ("establishedMonth",),
}

_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
)
_JP_DATE_RE = re.compile(r"(\d{4})年\s*(\d{1,2})月\s*(\d{1,2})日(?:\s*(\d{1,2}):(\d{2}))?")
_NUMBER_RE = re.compile(r"(\d+(?:,\d+)*(?:\.\d+)?)")
_YEAR_RE = re.compile(r"(\d{4})")
_MONTH_RE = re.compile(r"(\d{1,2})月")

# prtimes_companies integer columns are 32-bit
_INT_MIN = -(2**31)
_INT_MAX = 2**31 - 1


def _pick(raw: Mapping[str, Any], column: str) -> Any:
    if column in raw:
        return raw[column]
    for alias in _ALIASES.get(column, ()):
        if alias in raw:
            return raw[alias]
    return None


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    text = str(value).strip()
    return text or None


def _clip(value: str | None, limit: int | None) -> str | None:
    if value is None or limit is None:
        return value
    return value[:limit]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _fits_int_column(value: float) -> bool:
    # False for inf and nan as well
    return _INT_MIN <= value <= _INT_MAX


def parse_delivery_date(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = _clean_text(value)
        if text is None:
            return None
        parsed = None
        match = _JP_DATE_RE.search(text)
        if match:
            year, month, day, hour, minute = match.groups()
            try:
                parsed = datetime(int(year), int(month), int(day), int(hour or 0), int(minute or 0))
            except ValueError:
                parsed = None
        if parsed is None:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                for fmt in _DATE_FORMATS:
                    try:
                        parsed = datetime.strptime(text, fmt)
                        break
                    except ValueError:
                        continue
        if parsed is None:
            raise ValidationError(f"Unparseable delivery date: {text!r}", field="delivery_date")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=JST)
    return parsed


def parse_capital_amount(text: str | None) -> int | None:
    """
    Capital in units of 10,000 yen, e.g. '1億5,000万円' -> 15000.

    Amounts that do not fit the integer column yield None; the text column
    still keeps what was written.
    """
    if not text:
        return None

    if "億" in text:
        oku_part, _, rest = text.partition("億")
        oku = _NUMBER_RE.search(oku_part)
        if not oku:
            return None
        total = float(oku.group(1).replace(",", "")) * 10000
        man = _NUMBER_RE.search(rest.split("万")[0]) if "万" in rest else None
        if man:
            total += float(man.group(1).replace(",", ""))
    else:
        match = _NUMBER_RE.search(text)
        if not match:
            return None
        total = float(match.group(1).replace(",", ""))
        if "万" not in text:
            total /= 10000

    if not _fits_int_column(total + 0.5):
        return None
    return _round_half_up(total)


def parse_established_date(text: str | None) -> tuple[int | None, int | None]:
    if not text:
        return None, None
    year = _YEAR_RE.search(text)
    month = _MONTH_RE.search(text)
    month_value = int(month.group(1)) if month else None
    if month_value is not None and not 1 <= month_value <= 12:
        month_value = None
    return (int(year.group(1)) if year else None), month_value


def _to_int(value: Any, column: str) -> int | None:
    """Blank or non-numeric input is None; a number the column cannot hold is a row error."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = value
    else:
        text = _clean_text(value)
        if text is None:
            return None
        try:
            number = float(text.replace(",", ""))
        except ValueError:
            return None
    if isinstance(number, float) and math.isnan(number):
        return None
    if not _fits_int_column(number):
        raise ValidationError(f"Value out of range for {column}: {value!r}", field=column)
    return int(number)


def normalize_row(raw: Mapping[str, Any]) -> dict[str, Any]:
    """
    Validate and convert a producer row.

    Raises ValidationError when delivery date, title, URL or company name is
    missing, the date cannot be parsed, or an explicit numeric column holds a
    number outside the 32-bit integer range. Blank category fields are stored
    as the placeholder "-".
    """
    if not isinstance(raw, Mapping):
        raise ValidationError("Row must be a mapping")

    out: dict[str, Any] = {}
    for column, limit in TEXT_COLUMNS.items():
        out[column] = _clip(_clean_text(_pick(raw, column)), limit)

    out["delivery_date"] = parse_delivery_date(_pick(raw, "delivery_date"))

    for column in REQUIRED_COLUMNS:
        if out[column] is None:
            raise ValidationError(f"Missing required field: {column}", field=column)

    for column in CATEGORY_FIELDS:
        if out[column] is None:
            out[column] = PLACEHOLDER

    capital = _to_int(_pick(raw, "capital_amount_numeric"), "capital_amount_numeric")
    if capital is None:
        capital = parse_capital_amount(out["capital_amount_text"])
    out["capital_amount_numeric"] = capital

    text_year, text_month = parse_established_date(out["established_date_text"])
    year = _to_int(_pick(raw, "established_year"), "established_year")
    month = _to_int(_pick(raw, "established_month"), "established_month")
    out["established_year"] = year if year is not None else text_year
    out["established_month"] = month if month is not None and 1 <= month <= 12 else text_month

    return out


def category_values(record: Mapping[str, Any]) -> list[tuple[str, str]]:
    """(category_type, category_name) pairs a normalized record contributes."""
    return [(ctype, record[column]) for column, ctype in CATEGORY_FIELDS.items()]
