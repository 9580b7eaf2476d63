"""Last-resort record synthesized from the URL alone."""

from __future__ import annotations

import re
from urllib.parse import unquote, urlparse

from folio.config.sites import ClassifiedURL
from folio.pipeline.fixer import PLACEHOLDER_COVER_URL
from folio.pipeline.record import BookRecord

DEGRADED_DESCRIPTION = "Extraction failed; record derived from URL."

_SEPARATORS = re.compile(r"[-_+]+")
_ID_MARKERS = {"dp", "gp", "product"}


def title_from_url(classified: ClassifiedURL) -> str:
    """Readable title from the last meaningful path segment.

    Product-id segments (an Amazon ASIN and the ``dp``/``gp/product`` markers
    around it) are skipped in favour of the slug in front of them.
    """
    segments = [unquote(s) for s in urlparse(classified.canonical_url).path.split("/") if s]
    is_asin = classified.site.name == "amazon" and bool(classified.product_id)
    while segments and (
        (is_asin and segments[-1] == classified.product_id) or segments[-1] in _ID_MARKERS
    ):
        segments.pop()
    if not segments:
        return ""
    words = _SEPARATORS.sub(" ", segments[-1]).split()
    return " ".join(word.capitalize() for word in words)


def build_degraded_record(classified: ClassifiedURL) -> BookRecord:
    return BookRecord(
        title=title_from_url(classified),
        description=DEGRADED_DESCRIPTION,
        cover_url=PLACEHOLDER_COVER_URL,
        language=classified.site.home_language,
        language_code=classified.site.home_language_code,
        asin=classified.product_id if classified.site.name == "amazon" else "",
    )
