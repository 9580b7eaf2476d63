"""Site table and URL classification.

A URL is accepted only when its host contains a known site domain and its
path contains one of that site's detail-page markers. Classification runs
before any browser work so rejected input never starts a renderer.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlparse, urlunparse

from folio.telemetry.errors import InvalidURLError

_ALLOWED_SCHEMES = {"http", "https"}


@dataclass(frozen=True)
class SiteProfile:
    """Static description of one supported retail site."""

    name: str
    domain: str
    path_markers: tuple[str, ...]
    home_language: str
    home_language_code: str
    product_id_pattern: re.Pattern[str] | None = None
    exact_hosts: tuple[str, ...] = ()


@dataclass(frozen=True)
class ClassifiedURL:
    site: SiteProfile
    canonical_url: str
    product_id: str = ""


THALIA = SiteProfile(
    name="thalia",
    domain="thalia.de",
    path_markers=("/artikeldetails/", "/shop/home/artikeldetails/"),
    home_language="Deutsch",
    home_language_code="de",
    product_id_pattern=re.compile(r"/artikeldetails/(?:[^/]+/)?([A-Z]?\d+)"),
)

AMAZON_DE = SiteProfile(
    name="amazon",
    domain="amazon.de",
    path_markers=("/dp/", "/gp/product/"),
    home_language="Deutsch",
    home_language_code="de",
    product_id_pattern=re.compile(r"/(?:dp|gp/product)/([A-Z0-9]{10})"),
    exact_hosts=("www.amazon.de", "amazon.de"),
)

SITES: dict[str, SiteProfile] = {site.name: site for site in (THALIA, AMAZON_DE)}


def _host_matches(hostname: str, site: SiteProfile) -> bool:
    if site.exact_hosts:
        return hostname in site.exact_hosts
    return site.domain in hostname


def classify_url(url: str, allowed_sites: tuple[str, ...] | None = None) -> ClassifiedURL:
    """Identify the site a product URL belongs to.

    Raises:
        InvalidURLError: when the URL is malformed or not a detail page of a
            supported site.
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidURLError("URL is required")

    parsed = urlparse(url.strip())
    if parsed.scheme.lower() not in _ALLOWED_SCHEMES:
        raise InvalidURLError(f"Invalid URL scheme '{parsed.scheme}'")

    hostname = (parsed.hostname or "").lower().rstrip(".")
    if not hostname:
        raise InvalidURLError("URL must include a hostname")

    candidates = [SITES[name] for name in allowed_sites] if allowed_sites else SITES.values()
    for site in candidates:
        if not _host_matches(hostname, site):
            continue
        if not any(marker in parsed.path for marker in site.path_markers):
            raise InvalidURLError(
                f"URL is not a {site.name} product detail page: {parsed.path or '/'}"
            )
        product_id = ""
        if site.product_id_pattern is not None:
            match = site.product_id_pattern.search(parsed.path)
            if match:
                product_id = match.group(1)
        canonical = urlunparse(
            (parsed.scheme.lower(), parsed.netloc.lower(), parsed.path, "", "", "")
        )
        return ClassifiedURL(site=site, canonical_url=canonical, product_id=product_id)

    raise InvalidURLError(f"Unsupported host '{hostname}'")
