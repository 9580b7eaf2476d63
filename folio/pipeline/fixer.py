"""Corrective fixes for known defect patterns in reconciled records."""

from __future__ import annotations

import logging
from typing import Any

from folio.config.sites import SiteProfile
from folio.pipeline.patterns import KNOWN_SERIES_AUTHORS, extract_author_from_text, find_series_marker
from folio.pipeline.record import BookRecord

logger = logging.getLogger(__name__)

PLACEHOLDER_COVER_URL = "https://via.placeholder.com/150x225?text=No+Cover"


def fix_record(record: BookRecord, site: SiteProfile) -> BookRecord:
    """Apply the known repairs in order and return a new record.

    1. Missing cover -> placeholder image.
    2. Page count without any digit -> ``None``.
    3. Missing language -> the site's home-market language and code.
    4. Author that is really a series label -> author from the description,
       else the author known for that series.
    """
    updates: dict[str, Any] = {}

    if not record.cover_url.strip():
        updates["cover_url"] = PLACEHOLDER_COVER_URL

    if record.page_count is not None and record.page_count.strip():
        if not any(ch.isdigit() for ch in record.page_count):
            updates["page_count"] = None

    if not record.language.strip():
        updates["language"] = site.home_language
        updates["language_code"] = site.home_language_code

    marker = find_series_marker(record.author)
    if marker is not None:
        author = extract_author_from_text(record.description)
        if not author:
            author = KNOWN_SERIES_AUTHORS[marker]
        logger.info("Replaced series label %r in author with %r", record.author, author)
        updates["author"] = author

    if not updates:
        return record
    return record.model_copy(update=updates)
