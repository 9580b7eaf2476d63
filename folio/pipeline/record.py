"""Book record data models — canonical output, candidates, and per-attempt results."""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Iterator

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Keys that are omitted from the wire form when unset.
OPTIONAL_WIRE_FIELDS = frozenset(
    {
        "priceValue",
        "isbnClean",
        "eanClean",
        "publicationDateISO",
        "languageCode",
        "pageCountValue",
        "validationWarning",
    }
)


class BookRecord(BaseModel):
    """Canonical bibliographic record produced by one scrape.

    Every field has an empty default so consumers never see a missing key.
    Raw display fields (``price``, ``publication_date``, ``page_count``,
    ``isbn``/``ean``, ``language``) are kept next to their derived canonical
    forms; a derived field is only set when its raw field parsed.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    title: str = ""
    subtitle: str = ""
    author: str = ""
    series: str = ""
    series_number: str = ""
    description: str = ""
    format: str = ""
    price: str = ""
    price_value: float | None = None
    isbn: str = ""
    isbn_clean: str | None = None
    ean: str = ""
    ean_clean: str | None = None
    publisher: str = ""
    publication_date: str = ""
    publication_date_iso: str | None = Field(default=None, alias="publicationDateISO")
    language: str = ""
    language_code: str | None = None
    page_count: str | None = ""
    page_count_value: int | None = None
    cover_url: str = ""
    categories: list[str] = Field(default_factory=list)
    file_size: str = ""
    copy_protection: str = ""
    asin: str = ""
    validation_warning: dict[str, Any] | None = None

    def to_wire(self) -> dict[str, Any]:
        """Serialize with camelCase keys, dropping unset optional derived fields."""
        data = self.model_dump(by_alias=True)
        return {
            key: value
            for key, value in data.items()
            if not (key in OPTIONAL_WIRE_FIELDS and value is None)
        }


class SourceKind(str, Enum):
    """Where a candidate value was observed."""

    HEADING = "heading"
    CSS = "css"
    DATA_ATTRIBUTE = "data_attribute"
    STRUCTURED_DATA = "structured_data"
    IN_PAGE_LINK = "in_page_link"
    IN_PAGE_DESCRIPTION = "in_page_description"
    SECTION = "section"
    DESCRIPTION_PATTERN = "description_pattern"
    IMAGE = "image"
    BUTTON = "button"
    URL = "url"


class CandidateField(BaseModel):
    """One observation of one field from one extraction source."""

    model_config = ConfigDict(frozen=True)

    field: str
    value: Any
    source_kind: SourceKind
    precedence_rank: int = 0

    @property
    def is_empty(self) -> bool:
        if self.value is None:
            return True
        if isinstance(self.value, str):
            return not self.value.strip()
        if isinstance(self.value, (list, tuple, dict)):
            return not self.value
        return False


class CandidateSet:
    """Ordered, append-only collection of candidates for one page."""

    def __init__(self, candidates: Iterable[CandidateField] = ()) -> None:
        self._candidates: list[CandidateField] = list(candidates)

    def add(self, field: str, value: Any, source_kind: SourceKind) -> None:
        """Record a candidate. Empty values are dropped."""
        candidate = CandidateField(field=field, value=value, source_kind=source_kind)
        if not candidate.is_empty:
            self._candidates.append(candidate)

    def for_field(self, field: str) -> list[CandidateField]:
        return [c for c in self._candidates if c.field == field]

    def fields(self) -> set[str]:
        return {c.field for c in self._candidates}

    def __iter__(self) -> Iterator[CandidateField]:
        return iter(list(self._candidates))

    def __len__(self) -> int:
        return len(self._candidates)


class ValidationResult(BaseModel):
    """Required-field check result. Read-only."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    missing_fields: tuple[str, ...] = ()


class AttemptOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    PARTIAL = "partial"
    FAILED = "failed"


class RetryAttempt(BaseModel):
    """One iteration of the controller's attempt loop."""

    model_config = ConfigDict(frozen=True)

    index: int
    outcome: AttemptOutcome
    partial_record: BookRecord | None = None
    error: str | None = None
