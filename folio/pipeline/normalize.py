"""Normalization — canonical machine-usable forms next to the raw display strings.

Every transform is field-local and pure. Derived fields are recomputed from
their raw field on each call, so normalizing a normalized record is a no-op.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any

from pydantic import TypeAdapter, ValidationError

from folio.pipeline.record import BookRecord

DEFAULT_CURRENCY = "€"

_CURRENCY_MARKERS = re.compile(r"[€$£]|\b(?:EUR|USD|GBP|CHF)\b")
_PRICE_NUMBER = re.compile(r"\d{1,3}(?:\.\d{3})+,\d+|\d+[,.]\d+")
_GERMAN_DATE = re.compile(r"(\d{1,2})\.(\d{1,2})\.(\d{4})")
_DAY_MONTH_YEAR = re.compile(r"(\d{1,2})\.?\s+([A-Za-zäÄ]+)\.?\s+(\d{4})")
_MONTH_DAY_YEAR = re.compile(r"([A-Za-z]+)\.?\s+(\d{1,2}),?\s+(\d{4})")
_DIGITS = re.compile(r"\d+")

_MONTH_NAMES = [
    ("januar", "january", "jan", "jänner"),
    ("februar", "february", "feb"),
    ("märz", "march", "mar", "mär", "maerz"),
    ("april", "apr"),
    ("mai", "may"),
    ("juni", "june", "jun"),
    ("juli", "july", "jul"),
    ("august", "aug"),
    ("september", "sep", "sept"),
    ("oktober", "october", "okt", "oct"),
    ("november", "nov"),
    ("dezember", "december", "dez", "dec"),
]
_MONTHS: dict[str, int] = {
    name: number for number, names in enumerate(_MONTH_NAMES, start=1) for name in names
}

LANGUAGE_CODES: dict[str, tuple[str, ...]] = {
    "de": ("deutsch", "german"),
    "en": ("englisch", "english"),
    "fr": ("französisch", "français", "francais", "french"),
    "es": ("spanisch", "español", "espanol", "spanish"),
    "it": ("italienisch", "italiano", "italian"),
}
_LANGUAGE_TAG = re.compile(r"^([a-z]{2})(?:[-_][a-z]{2})?$")

_datetime_adapter = TypeAdapter(datetime)
_date_adapter = TypeAdapter(date)


def normalize_price(price: str) -> tuple[str, float | None]:
    """Add the default currency when none is shown and parse the numeric value."""
    raw = price.strip()
    if not raw:
        return price, None
    if not _CURRENCY_MARKERS.search(raw):
        raw = f"{raw} {DEFAULT_CURRENCY}"
    match = _PRICE_NUMBER.search(raw)
    if not match:
        return raw, None
    number = match.group(0)
    if "," in number:
        number = number.replace(".", "").replace(",", ".")
    return raw, float(number)


def _safe_date(year: int, month: int, day: int) -> str | None:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def normalize_date(value: str) -> str | None:
    """ISO ``YYYY-MM-DD`` for a display date, or ``None`` when it does not parse."""
    text = value.strip()
    if not text:
        return None

    match = _GERMAN_DATE.search(text)
    if match:
        day, month, year = match.groups()
        return _safe_date(int(year), int(month), int(day))

    if "-" in text:
        for adapter in (_date_adapter, _datetime_adapter):
            try:
                parsed = adapter.validate_python(text)
            except ValidationError:
                continue
            return parsed.isoformat()[:10]

    match = _DAY_MONTH_YEAR.search(text)
    if match and match.group(2).lower() in _MONTHS:
        day, month, year = match.groups()
        return _safe_date(int(year), _MONTHS[month.lower()], int(day))

    match = _MONTH_DAY_YEAR.search(text)
    if match and match.group(1).lower() in _MONTHS:
        month, day, year = match.groups()
        return _safe_date(int(year), _MONTHS[month.lower()], int(day))

    return None


def normalize_page_count(page_count: str | None) -> int | None:
    if not page_count:
        return None
    match = _DIGITS.search(page_count)
    return int(match.group(0)) if match else None


def clean_isbn(isbn: str) -> str | None:
    cleaned = re.sub(r"[^\dX]", "", isbn.upper())
    return cleaned or None


def clean_ean(ean: str) -> str | None:
    cleaned = re.sub(r"\D", "", ean)
    return cleaned or None


def language_code(language: str) -> str | None:
    """Two-letter code for a language name, or ``None`` when it is not in the table."""
    lowered = language.strip().lower()
    if not lowered:
        return None
    tag = _LANGUAGE_TAG.match(lowered)
    if tag and tag.group(1) in LANGUAGE_CODES:
        return tag.group(1)
    for code, names in LANGUAGE_CODES.items():
        if any(name in lowered for name in names):
            return code
    return None


def normalize_record(record: BookRecord) -> BookRecord:
    """Return a copy of ``record`` with derived canonical fields filled in."""
    price, price_value = normalize_price(record.price)
    updates: dict[str, Any] = {
        "price": price,
        "price_value": price_value,
        "publication_date_iso": normalize_date(record.publication_date),
        "page_count_value": normalize_page_count(record.page_count),
        "isbn_clean": clean_isbn(record.isbn),
        "ean_clean": clean_ean(record.ean),
        "language_code": language_code(record.language),
    }
    return record.model_copy(update=updates)
