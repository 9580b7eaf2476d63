"""Candidate extraction — turns a rendered page into source-tagged field observations.

Nothing here decides which value wins. Each source contributes at most one
candidate per field; the reconciler applies precedence afterwards.

Sources:
- Title heading and CSS selector cascades (first selector with text wins)
- Bounded sections: sibling content between two ``h2`` headings
- ``data-*`` attributes on product marker elements
- JSON-LD ``Book``/``Product`` objects
- The author the renderer resolved inside the page
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Iterable

from bs4 import BeautifulSoup, Tag

from folio.browser.page import RenderedPage
from folio.config.sites import SiteProfile
from folio.pipeline.patterns import KNOWN_SERIES_AUTHORS, SERIES_NUMBER_PATTERN, split_series
from folio.pipeline.record import CandidateSet, SourceKind
from folio.telemetry.errors import ExtractionError

logger = logging.getLogger(__name__)

DATA_ATTRIBUTE_MARKERS = "[data-ean], [data-isbn], [data-artikel-id], [data-matnr], [data-titel]"

# data-* attribute -> record fields it feeds
DATA_ATTRIBUTE_FIELDS: dict[str, tuple[str, ...]] = {
    "data-titel": ("title",),
    "data-autor": ("author",),
    "data-isbn": ("isbn",),
    "data-ean": ("ean",),
}

# Sub-heading label in the "Details" section -> record fields it feeds
DETAIL_LABELS: dict[str, tuple[str, ...]] = {
    "Format": ("format",),
    "Kopierschutz": ("copy_protection",),
    "Verlag": ("publisher",),
    "Erscheinungsdatum": ("publication_date",),
    "Seitenzahl": ("page_count",),
    "Dateigröße": ("file_size",),
    "Sprache": ("language",),
    "EAN": ("ean", "isbn"),
    "ISBN": ("isbn", "ean"),
}

THALIA_AUTHOR_SELECTORS = [
    'a[href*="/person/"]',
    'a[href*="/search?filterPERSON="]',
    ".author-name",
    'span[itemprop="author"]',
    "div.author",
]

BREADCRUMB_SELECTORS = [
    'nav[aria-label*="readcrumb"] a',
    ".breadcrumb a",
    '[itemtype*="BreadcrumbList"] [itemprop="name"]',
]

AMAZON_AUTHOR_SELECTORS = [".author a", "a.contributorNameID", ".contributorNameID"]
AMAZON_DESCRIPTION_SELECTORS = [
    "#bookDescription_feature_div .a-expander-content",
    "#productDescription p",
    "#bookDescription_feature_div noscript",
]
AMAZON_COVER_SELECTORS = ["#imgBlkFront", "#landingImage", "#ebooksImgBlkFront"]
AMAZON_PRICE_SELECTORS = ["#kindle-price", "#price", ".a-price .a-offscreen"]
AMAZON_DETAIL_SELECTORS = ["#detailBullets_feature_div li", ".detail-bullet-list li"]

COVER_PATH_PATTERN = re.compile(r"/cover/")
PRICE_PATTERN = re.compile(r"(\d+,\d+)\s*€")
AMAZON_SERIES_PATTERN = re.compile(
    r"(?:Buch|Band|Teil|Book)\s+(\d+)\s+(?:von|of)\s+\d+\s*:\s*(.+)", re.IGNORECASE
)
_BIDI_MARKS = re.compile(r"[\u200e\u200f\u202a-\u202e]")


def parse_html(html: str) -> BeautifulSoup:
    """Parse rendered HTML into a queryable document."""
    if not isinstance(html, str):
        raise ExtractionError(f"Rendered HTML must be text, got {type(html).__name__}")
    try:
        return BeautifulSoup(html, "html.parser")
    except (TypeError, ValueError, AssertionError) as e:
        raise ExtractionError(f"HTML could not be parsed: {e}") from e


def text_of(node: Tag | None) -> str:
    if node is None:
        return ""
    return _BIDI_MARKS.sub("", node.get_text(" ", strip=True)).strip()


def first_text(soup: BeautifulSoup | Tag, selectors: Iterable[str]) -> str:
    """Ordered selector cascade: text of the first selector whose first match has text."""
    for selector in selectors:
        text = text_of(soup.select_one(selector))
        if text:
            return text
    return ""


def all_texts(soup: BeautifulSoup | Tag, selectors: Iterable[str]) -> list[str]:
    """Distinct texts of every match of the first selector that matches anything."""
    for selector in selectors:
        texts: list[str] = []
        for node in soup.select(selector):
            text = text_of(node)
            if text and text not in texts:
                texts.append(text)
        if texts:
            return texts
    return []


def scan_section(soup: BeautifulSoup, label: str, level: str = "h2") -> list[Tag]:
    """Elements between the ``level`` heading whose text equals ``label`` and the next one."""
    heading = next(
        (h for h in soup.find_all(level) if text_of(h) == label),
        None,
    )
    if heading is None:
        return []
    section: list[Tag] = []
    for sibling in heading.find_next_siblings():
        if sibling.name == level:
            break
        section.append(sibling)
    return section


def scan_labelled_section(
    soup: BeautifulSoup, label: str, level: str = "h2", sublevel: str = "h3"
) -> dict[str, str]:
    """Label -> value pairs of a section whose sub-headings name the active label.

    The first non-empty sibling after a sub-heading is its value. ``dt``/``dd``
    pairs inside the section are read the same way.
    """
    pairs: dict[str, str] = {}
    active = ""
    for element in scan_section(soup, label, level):
        if element.name == sublevel:
            active = text_of(element)
            continue
        for term in element.find_all("dt"):
            value = term.find_next_sibling("dd")
            key = text_of(term).rstrip(":")
            if key and value is not None and text_of(value):
                pairs.setdefault(key, text_of(value))
        text = text_of(element)
        if active and text:
            pairs.setdefault(active, text)
    return pairs


def harvest_data_attributes(soup: BeautifulSoup) -> dict[str, str]:
    """All ``data-*`` attributes on elements carrying a product marker attribute."""
    data: dict[str, str] = {}
    for element in soup.select(DATA_ATTRIBUTE_MARKERS):
        for name, value in element.attrs.items():
            if name.startswith("data-") and name not in data:
                data[name] = value if isinstance(value, str) else " ".join(value)
    return data


def _collect_ld_objects(node: Any, found: list[dict[str, Any]]) -> None:
    if isinstance(node, list):
        for item in node:
            _collect_ld_objects(item, found)
        return
    if not isinstance(node, dict):
        return
    types = node.get("@type")
    types = types if isinstance(types, list) else [types]
    if any(t in ("Book", "Product") for t in types):
        found.append(node)
    if "@graph" in node:
        _collect_ld_objects(node["@graph"], found)


def parse_structured_data(soup: BeautifulSoup) -> list[dict[str, Any]]:
    """JSON-LD ``Book``/``Product`` objects embedded in the page."""
    found: list[dict[str, Any]] = []
    for script in soup.select('script[type="application/ld+json"]'):
        try:
            payload = json.loads(script.string or script.get_text() or "")
        except json.JSONDecodeError:
            logger.debug("Skipping malformed JSON-LD block")
            continue
        _collect_ld_objects(payload, found)
    return found


def _ld_name(value: Any) -> str:
    """Name from a JSON-LD value that may be a string, an object, or a list of either."""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, dict):
        return str(value.get("name") or "").strip()
    if isinstance(value, list):
        names = [_ld_name(item) for item in value]
        return ", ".join(n for n in names if n)
    return ""


def _ld_text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return _ld_name(value)
    return str(value).strip()


def _add_structured(candidates: CandidateSet, objects: list[dict[str, Any]]) -> None:
    for obj in objects:
        candidates.add("title", _ld_text(obj.get("name")), SourceKind.STRUCTURED_DATA)
        candidates.add("author", _ld_name(obj.get("author")), SourceKind.STRUCTURED_DATA)
        candidates.add("publisher", _ld_name(obj.get("publisher")), SourceKind.STRUCTURED_DATA)
        candidates.add(
            "publication_date", _ld_text(obj.get("datePublished")), SourceKind.STRUCTURED_DATA
        )
        candidates.add("language", _ld_text(obj.get("inLanguage")), SourceKind.STRUCTURED_DATA)
        candidates.add("isbn", _ld_text(obj.get("isbn")), SourceKind.STRUCTURED_DATA)
        candidates.add("page_count", _ld_text(obj.get("numberOfPages")), SourceKind.STRUCTURED_DATA)
        candidates.add("description", _ld_text(obj.get("description")), SourceKind.STRUCTURED_DATA)
        offers = obj.get("offers")
        if isinstance(offers, list):
            offers = offers[0] if offers else None
        if isinstance(offers, dict) and offers.get("price") not in (None, ""):
            price = str(offers["price"]).replace(".", ",")
            currency = "€" if offers.get("priceCurrency", "EUR") == "EUR" else offers["priceCurrency"]
            candidates.add("price", f"{price} {currency}", SourceKind.STRUCTURED_DATA)


def _add_data_attributes(candidates: CandidateSet, attributes: dict[str, str]) -> None:
    for attribute, fields in DATA_ATTRIBUTE_FIELDS.items():
        value = (attributes.get(attribute) or "").strip()
        for field in fields:
            candidates.add(field, value, SourceKind.DATA_ATTRIBUTE)


def _cover_candidate(soup: BeautifulSoup) -> str:
    for image in soup.find_all("img"):
        for attribute in ("src", "data-src"):
            src = image.get(attribute)
            if isinstance(src, str) and COVER_PATH_PATTERN.search(src):
                return src
    return ""


def _categories(soup: BeautifulSoup) -> list[str]:
    return [c for c in all_texts(soup, BREADCRUMB_SELECTORS) if "›" not in c]


def _extract_thalia(soup: BeautifulSoup, candidates: CandidateSet) -> None:
    candidates.add("title", text_of(soup.find("h1")), SourceKind.HEADING)
    candidates.add("author", first_text(soup, THALIA_AUTHOR_SELECTORS), SourceKind.CSS)

    description = "\n".join(
        text for text in (text_of(el) for el in scan_section(soup, "Beschreibung")) if text
    )
    candidates.add("description", description, SourceKind.SECTION)

    for label, value in scan_labelled_section(soup, "Details").items():
        for field in DETAIL_LABELS.get(label, ()):
            candidates.add(field, value, SourceKind.SECTION)

    price = first_text(soup, [".price-display"])
    if price:
        candidates.add("price", price, SourceKind.CSS)
    else:
        for block in soup.find_all("div"):
            text = text_of(block)
            if "€" in text and "inkl. MwSt" in text:
                match = PRICE_PATTERN.search(text)
                if match:
                    candidates.add("price", f"{match.group(1)} €", SourceKind.CSS)
                break

    candidates.add("cover_url", _cover_candidate(soup), SourceKind.IMAGE)

    for button in soup.find_all("button"):
        text = text_of(button)
        if any(marker in text for marker in KNOWN_SERIES_AUTHORS) or SERIES_NUMBER_PATTERN.search(
            text
        ):
            series, number = split_series(text)
            candidates.add("series", series, SourceKind.BUTTON)
            candidates.add("series_number", number, SourceKind.BUTTON)
            break

    candidates.add("categories", _categories(soup), SourceKind.CSS)


def _parse_amazon_bullet(text: str) -> tuple[str, str]:
    label, _, value = text.partition(":")
    return re.sub(r"\s+", " ", label).strip(), value.strip()


def _extract_amazon(soup: BeautifulSoup, candidates: CandidateSet) -> None:
    candidates.add("title", first_text(soup, ["#productTitle", "h1"]), SourceKind.HEADING)
    candidates.add(
        "author", ", ".join(all_texts(soup, AMAZON_AUTHOR_SELECTORS)), SourceKind.CSS
    )
    candidates.add(
        "description", first_text(soup, AMAZON_DESCRIPTION_SELECTORS), SourceKind.SECTION
    )
    candidates.add("price", first_text(soup, AMAZON_PRICE_SELECTORS), SourceKind.CSS)

    for selector in AMAZON_COVER_SELECTORS:
        image = soup.select_one(selector)
        if image is not None:
            src = image.get("data-old-hires") or image.get("src")
            if isinstance(src, str) and src:
                candidates.add("cover_url", src, SourceKind.IMAGE)
                break

    for text in all_texts(soup, AMAZON_DETAIL_SELECTORS):
        label, value = _parse_amazon_bullet(text)
        if not value:
            continue
        if "ISBN-13" in label:
            candidates.add("ean", value, SourceKind.SECTION)
            candidates.add("isbn", value, SourceKind.SECTION)
        elif "ISBN-10" in label:
            candidates.add("isbn", value, SourceKind.SECTION)
        elif any(key in label for key in ("Herausgeber", "Verlag", "Publisher")):
            publisher, _, rest = value.partition("(")
            candidates.add("publisher", publisher.split(";")[0].strip(), SourceKind.SECTION)
            candidates.add("publication_date", rest.rstrip(") ").strip(), SourceKind.SECTION)
        elif "Erscheinungstermin" in label or "Publication date" in label:
            candidates.add("publication_date", value, SourceKind.SECTION)
        elif "Sprache" in label or "Language" in label:
            candidates.add("language", value, SourceKind.SECTION)
        elif "Seitenzahl" in label or "Seiten" in value or "pages" in value:
            candidates.add("page_count", value, SourceKind.SECTION)

    series_text = first_text(soup, ["#seriesBulletWidget_feature_div", "#seriesTitle_feature_div"])
    match = AMAZON_SERIES_PATTERN.search(series_text)
    if match:
        candidates.add("series", match.group(2).strip(), SourceKind.BUTTON)
        candidates.add("series_number", match.group(1), SourceKind.BUTTON)

    candidates.add(
        "categories",
        [c for c in all_texts(soup, ["#wayfinding-breadcrumbs_feature_div li"]) if "›" not in c],
        SourceKind.CSS,
    )


SITE_EXTRACTORS: dict[str, Callable[[BeautifulSoup, CandidateSet], None]] = {
    "thalia": _extract_thalia,
    "amazon": _extract_amazon,
}


def extract_candidates(page: RenderedPage, site: SiteProfile) -> CandidateSet:
    """Collect every candidate the page offers for ``site``.

    Raises:
        ExtractionError: when the HTML cannot be parsed at all.
    """
    soup = parse_html(page.html)
    candidates = CandidateSet()

    author = page.computed_author
    if author is not None:
        kind = SourceKind.IN_PAGE_LINK if author.source == "link" else SourceKind.IN_PAGE_DESCRIPTION
        candidates.add("author", author.name, kind)

    SITE_EXTRACTORS[site.name](soup, candidates)

    _add_data_attributes(candidates, page.data_attributes or harvest_data_attributes(soup))
    _add_structured(candidates, page.structured_data or parse_structured_data(soup))

    logger.debug(
        "Extracted %d candidates for %s (fields: %s)",
        len(candidates),
        page.url,
        ", ".join(sorted(candidates.fields())),
    )
    return candidates
