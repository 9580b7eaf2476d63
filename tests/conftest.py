"""Shared fixtures: canned product pages and scripted renderers."""

from __future__ import annotations

import pytest

from folio.browser.page import RenderedPage
from folio.config.settings import ScrapeConfig, TelemetryConfig

THALIA_URL = "https://www.thalia.de/shop/home/artikeldetails/A1062060419"
AMAZON_URL = "https://www.amazon.de/Die-Mitternachtsbibliothek-Matt-Haig/dp/3426282569?ref=sr_1_1"

THALIA_HTML = """
<html><body>
  <nav aria-label="Breadcrumb">
    <a href="/buecher">Bücher</a>
    <a href="/romane">Romane &amp; Erzählungen</a>
  </nav>
  <h1>Die Mitternachtsbibliothek | Roman</h1>
  <a href="/person/matt-haig">Matt Haig</a>
  <div class="price-display">24,00 €</div>
  <img src="https://images.thalia.media/cover/1234/mitternacht.jpg" alt="Cover">
  <button>Ein Fall für Isabelle Bonnet Band 7</button>
  <h2>Beschreibung</h2>
  <p>Zwischen Leben und Tod gibt es eine Bibliothek.</p>
  <p>Der Bestseller von Matt Haig.</p>
  <h2>Details</h2>
  <h3>Format</h3>
  <p>Fester Einband</p>
  <h3>Verlag</h3>
  <p>Droemer HC</p>
  <h3>Erscheinungsdatum</h3>
  <p>01.03.2021</p>
  <h3>Seitenzahl</h3>
  <p>320</p>
  <h3>Sprache</h3>
  <p>Deutsch</p>
  <h3>EAN</h3>
  <p>9783426282564</p>
  <h2>Bewertungen</h2>
  <p>Not part of the details.</p>
</body></html>
"""

AMAZON_HTML = """
<html><body>
  <span id="productTitle"> Die Mitternachtsbibliothek: Roman </span>
  <span class="author"><a href="/Matt-Haig/e/B001">Matt Haig</a></span>
  <span class="author"><a href="/Sabine-Hübner/e/B002">Sabine Hübner</a></span>
  <div id="bookDescription_feature_div">
    <div class="a-expander-content">Zwischen Leben und Tod gibt es eine Bibliothek.</div>
  </div>
  <span class="a-price"><span class="a-offscreen">22,00 €</span></span>
  <img id="landingImage" src="https://m.media-amazon.com/images/I/small.jpg"
       data-old-hires="https://m.media-amazon.com/images/I/large.jpg">
  <div id="detailBullets_feature_div"><ul>
    <li><span>Herausgeber &rlm; : &lrm; Droemer HC; 1. Edition (1. März 2021)</span></li>
    <li><span>Sprache &rlm; : &lrm; Deutsch</span></li>
    <li><span>Gebundene Ausgabe &rlm; : &lrm; 320 Seiten</span></li>
    <li><span>ISBN-10 &rlm; : &lrm; 3426282569</span></li>
    <li><span>ISBN-13 &rlm; : &lrm; 978-3426282564</span></li>
  </ul></div>
  <div id="wayfinding-breadcrumbs_feature_div"><ul>
    <li><a>Bücher</a></li><li>›</li><li><a>Literatur &amp; Fiktion</a></li>
  </ul></div>
</body></html>
"""


class ScriptedRenderer:
    """PageRenderer that plays back one scripted step per call.

    A step is either a :class:`RenderedPage` to return or an exception to raise.
    """

    def __init__(self, steps):
        self._steps = list(steps)
        self.calls: list[str] = []

    async def render(self, url, config):
        self.calls.append(url)
        step = self._steps[min(len(self.calls), len(self._steps)) - 1]
        if isinstance(step, BaseException):
            raise step
        return step


@pytest.fixture
def thalia_page() -> RenderedPage:
    return RenderedPage(url=THALIA_URL, html=THALIA_HTML)


@pytest.fixture
def amazon_page() -> RenderedPage:
    return RenderedPage(url=AMAZON_URL, html=AMAZON_HTML)


@pytest.fixture
def scripted_renderer():
    return ScriptedRenderer


@pytest.fixture
def fast_config(tmp_path) -> ScrapeConfig:
    """Config with no backoff wait and a per-test ledger directory."""
    config = ScrapeConfig(telemetry=TelemetryConfig(ledger_dir=tmp_path / "ledger"))
    return config.model_copy(
        update={"retry": config.retry.model_copy(update={"backoff_base_ms": 0, "max_retries": 3})}
    )
