"""Field reconciliation — merges candidates by a fixed per-field precedence table.

For every field the sources in ``PRECEDENCE`` are consulted in order and the
first non-empty candidate wins, independent of the order in which the
extractor produced them. Fields without a table entry take their first
candidate.
"""

from __future__ import annotations

import logging
from typing import Any

from folio.pipeline.patterns import extract_author_from_text
from folio.pipeline.record import BookRecord, CandidateField, CandidateSet, SourceKind

logger = logging.getLogger(__name__)

S = SourceKind

PRECEDENCE: dict[str, tuple[SourceKind, ...]] = {
    "title": (S.HEADING, S.DATA_ATTRIBUTE, S.STRUCTURED_DATA),
    "author": (
        S.IN_PAGE_LINK,
        S.IN_PAGE_DESCRIPTION,
        S.CSS,
        S.DATA_ATTRIBUTE,
        S.STRUCTURED_DATA,
        S.DESCRIPTION_PATTERN,
    ),
    "description": (S.SECTION, S.STRUCTURED_DATA),
    "isbn": (S.SECTION, S.DATA_ATTRIBUTE, S.STRUCTURED_DATA),
    "ean": (S.SECTION, S.DATA_ATTRIBUTE, S.STRUCTURED_DATA),
    "publisher": (S.SECTION, S.STRUCTURED_DATA),
    "publication_date": (S.SECTION, S.STRUCTURED_DATA),
    "language": (S.SECTION, S.STRUCTURED_DATA),
    "page_count": (S.SECTION, S.STRUCTURED_DATA),
    "cover_url": (S.IMAGE,),
    "price": (S.CSS, S.STRUCTURED_DATA),
    "series": (S.BUTTON,),
    "series_number": (S.BUTTON,),
    "asin": (S.URL,),
}

TITLE_SEPARATOR = "|"


def rank_of(field: str, source_kind: SourceKind) -> int | None:
    """Precedence rank (0 is highest) of a source for a field, ``None`` if not admitted."""
    order = PRECEDENCE.get(field)
    if order is None:
        return 0
    try:
        return order.index(source_kind)
    except ValueError:
        return None


def ranked(candidates: list[CandidateField]) -> list[CandidateField]:
    """Admitted candidates with their rank assigned, best first; ties keep input order."""
    result: list[CandidateField] = []
    for candidate in candidates:
        rank = rank_of(candidate.field, candidate.source_kind)
        if rank is None:
            logger.debug(
                "Ignoring %s candidate for %s", candidate.source_kind.value, candidate.field
            )
            continue
        result.append(candidate.model_copy(update={"precedence_rank": rank}))
    return sorted(result, key=lambda c: c.precedence_rank)


def pick(candidates: list[CandidateField]) -> CandidateField | None:
    for candidate in ranked(candidates):
        if not candidate.is_empty:
            return candidate
    return None


def reconcile(candidates: CandidateSet, base: BookRecord | None = None) -> BookRecord:
    """Build a record from the winning candidate of every field."""
    values: dict[str, Any] = {}
    for field in candidates.fields():
        if field not in BookRecord.model_fields:
            logger.debug("Dropping candidates for unknown field %s", field)
            continue
        winner = pick(candidates.for_field(field))
        if winner is not None:
            values[field] = _clean(winner.value)

    title = values.get("title", "")
    if isinstance(title, str) and TITLE_SEPARATOR in title:
        head, _, tail = title.partition(TITLE_SEPARATOR)
        values["title"] = head.strip()
        if tail.strip() and not values.get("subtitle"):
            values["subtitle"] = tail.strip()

    pattern_author = extract_author_from_text(values.get("description", ""))
    if pattern_author:
        derived = CandidateField(
            field="author", value=pattern_author, source_kind=S.DESCRIPTION_PATTERN
        )
        winner = pick([*candidates.for_field("author"), derived])
        if winner is not None:
            if winner is derived:
                logger.debug("Author taken from description pattern: %s", pattern_author)
            values["author"] = _clean(winner.value)

    record = base or BookRecord()
    return record.model_copy(update=values)


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)):
        return str(value)
    return value
