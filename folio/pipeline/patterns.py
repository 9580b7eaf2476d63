"""Text-pattern heuristics shared by the reconciler and the fixer."""

from __future__ import annotations

import re

# 2-4 capitalized words, e.g. "Max Mustermann"
_NAME = r"([A-ZÄÖÜ][a-zäöüß]+(?: [A-ZÄÖÜ][a-zäöüß]+){1,3})"

AUTHOR_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"\b(?i:von)\s+" + _NAME),
    re.compile(r"\b(?i:by)\s+" + _NAME),
    re.compile(r"\b(?i:autor)[:\s]+" + _NAME),
    re.compile(r"\b(?i:author)[:\s]+" + _NAME),
    re.compile(r"\b(?i:bestseller-autor)\s+" + _NAME),
]

# Flag-free sources handed to the in-page author probe; keyword case is spelled out
# so the name classes stay case-sensitive in JavaScript too.
IN_PAGE_AUTHOR_PATTERNS: list[str] = [
    r"(?:[Vv]on|VON)\s+" + _NAME,
    r"(?:[Aa]utor|AUTOR)\s+" + _NAME,
]

SERIES_NUMBER_PATTERN = re.compile(r"Band\s+(\d+)")

# Series labels that have been mistaken for the author, with the author they belong to.
# TODO: replace with a detector that compares author candidates against the series field.
KNOWN_SERIES_AUTHORS: dict[str, str] = {
    "Ein Fall für Isabelle Bonnet": "Pierre Martin",
}


def extract_author_from_text(text: str | None) -> str:
    """Return the first author name found by the ordered patterns, or ``""``."""
    if not text:
        return ""
    for pattern in AUTHOR_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1).strip()
    return ""


def find_series_marker(text: str | None) -> str | None:
    """Return the known series label contained in ``text``, if any."""
    if not text:
        return None
    for marker in KNOWN_SERIES_AUTHORS:
        if marker in text:
            return marker
    return None


def split_series(text: str) -> tuple[str, str]:
    """Split a series label like ``"Ein Fall für Isabelle Bonnet Band 7"`` into name and number."""
    match = SERIES_NUMBER_PATTERN.search(text)
    number = match.group(1) if match else ""
    name = SERIES_NUMBER_PATTERN.sub("", text)
    name = re.sub(r"\s+", " ", name).strip(" -–,:|")
    return name, number
