"""Browser Layer — Playwright-based headless browser that renders product pages.

The Browser Layer has no extraction authority. It loads a page, clears the
consent overlay, lets lazy content settle, and returns HTML plus the values
computed by in-page probes. Everything it returns is a candidate; the
pipeline decides what to keep.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from playwright.async_api import Browser, BrowserContext, Page, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from folio.browser.consent import ConsentResult, dismiss_consent
from folio.browser.page import ComputedAuthor, RenderedPage
from folio.config.settings import BrowserConfig, ScrapeConfig
from folio.pipeline.candidates import DATA_ATTRIBUTE_MARKERS
from folio.pipeline.patterns import IN_PAGE_AUTHOR_PATTERNS
from folio.telemetry.errors import (
    ErrorCode,
    NavigationError,
    NavigationTimeout,
    RendererUnavailableError,
    emit_structured_error,
)

logger = logging.getLogger(__name__)


class ActionStatus(str, Enum):
    SUCCESS = "success"
    TIMEOUT = "timeout"


@dataclass
class ActionResult:
    """Result of a browser action."""

    status: ActionStatus
    detail: str = ""


STRUCTURED_DATA_PROBE = """() => {
    const wanted = ['Book', 'Product'];
    const found = [];
    const visit = (node) => {
        if (!node || typeof node !== 'object') return;
        if (Array.isArray(node)) { node.forEach(visit); return; }
        const type = node['@type'];
        const types = Array.isArray(type) ? type : [type];
        if (types.some(t => wanted.includes(t))) found.push(node);
        if (node['@graph']) visit(node['@graph']);
    };
    document.querySelectorAll('script[type="application/ld+json"]').forEach(script => {
        try { visit(JSON.parse(script.textContent)); } catch (e) { /* malformed block */ }
    });
    return found;
}"""

DATA_ATTRIBUTE_PROBE = """(selector) => {
    const data = {};
    document.querySelectorAll(selector).forEach(el => {
        Array.from(el.attributes).forEach(attr => {
            if (attr.name.startsWith('data-') && !(attr.name in data)) {
                data[attr.name] = attr.value;
            }
        });
    });
    return data;
}"""

COMPUTED_AUTHOR_PROBE = """([linkSelectors, sectionLabel, patternSources]) => {
    for (const selector of linkSelectors) {
        const link = document.querySelector(selector);
        if (link && link.textContent.trim()) {
            return {name: link.textContent.trim(), source: 'link'};
        }
    }
    const heading = Array.from(document.querySelectorAll('h2')).find(
        h => h.textContent.trim() === sectionLabel
    );
    if (!heading) return null;
    let text = '';
    let el = heading.nextElementSibling;
    while (el && el.tagName !== 'H2') {
        if (el.textContent.trim()) text += el.textContent.trim() + ' ';
        el = el.nextElementSibling;
    }
    for (const source of patternSources) {
        const pattern = new RegExp(source);
        const match = text.match(pattern);
        if (match && match[1]) return {name: match[1].trim(), source: 'description'};
    }
    return null;
}"""

AUTO_SCROLL_PROBE = """async ([step, maxSteps]) => {
    for (let i = 0; i < maxSteps; i++) {
        window.scrollBy(0, step);
        await new Promise(r => setTimeout(r, 100));
        if (window.scrollY + window.innerHeight >= document.body.scrollHeight) break;
    }
    window.scrollTo(0, 0);
}"""

AUTHOR_LINK_SELECTORS = [
    'a[href*="/person/"]',
    "a.contributorNameID",
    ".author a",
]


class BrowserLayer:
    """Playwright browser session for a single render.

    Contract:
    - One instance serves one render and is closed afterwards (``async with``)
    - A navigation timeout is reported, not raised; the partial DOM is kept
    - Probe failures degrade to empty values
    """

    def __init__(self, config: BrowserConfig | None = None) -> None:
        self._config = config or BrowserConfig()
        self._playwright: Any = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @property
    def page(self) -> Page | None:
        return self._page

    async def __aenter__(self) -> BrowserLayer:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    async def start(self) -> None:
        """Launch browser and create an isolated context."""
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self._config.headless,
                args=["--no-sandbox", "--disable-setuid-sandbox"],
            )
            self._context = await self._browser.new_context(
                viewport={
                    "width": self._config.viewport_width,
                    "height": self._config.viewport_height,
                },
                user_agent=self._config.user_agent,
                locale=self._config.locale,
            )
            self._page = await self._context.new_page()
        except PlaywrightError as e:
            await self.stop()
            raise RendererUnavailableError(f"Browser could not be started: {e}") from e

    async def stop(self) -> None:
        """Clean up browser resources."""
        try:
            if self._context:
                await self._context.close()
            if self._browser:
                await self._browser.close()
            if self._playwright:
                await self._playwright.stop()
        except PlaywrightError as e:
            emit_structured_error(
                logger,
                code=ErrorCode.BROWSER_CLEANUP_FAILED,
                message=str(e),
                suppressed=True,
            )
        finally:
            self._context = None
            self._browser = None
            self._playwright = None
            self._page = None

    def _require_page(self) -> Page:
        if not self._page:
            raise RendererUnavailableError("Browser not started")
        return self._page

    async def navigate(self, url: str, timeout_ms: int = 30000) -> ActionResult:
        """Navigate to a URL. A timeout keeps whatever has loaded."""
        page = self._require_page()
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            return ActionResult(status=ActionStatus.SUCCESS, detail=f"Navigated to {url}")
        except PlaywrightTimeoutError as e:
            emit_structured_error(
                logger,
                code=NavigationTimeout.code,
                message=str(e),
                suppressed=True,
                url=url,
            )
            return ActionResult(status=ActionStatus.TIMEOUT, detail=str(e))
        except PlaywrightError as e:
            raise NavigationError(f"Navigation to {url} failed: {e}") from e

    async def wait_for_selector(self, selector: str, timeout_ms: int = 10000) -> bool:
        """Wait for an element to appear in DOM."""
        page = self._require_page()
        try:
            await page.wait_for_selector(selector, timeout=timeout_ms)
            return True
        except PlaywrightError:
            return False

    async def evaluate(self, probe: str, arg: Any = None, default: Any = None) -> Any:
        """Run an in-page probe; failures are logged and yield ``default``."""
        page = self._require_page()
        try:
            if arg is None:
                return await page.evaluate(probe)
            return await page.evaluate(probe, arg)
        except PlaywrightError as e:
            emit_structured_error(
                logger,
                code=ErrorCode.PROBE_FAILED,
                message=str(e),
                suppressed=True,
                url=page.url,
            )
            return default

    async def dismiss_consent(self, wait_after_ms: int = 1000) -> ConsentResult:
        return await dismiss_consent(self._require_page(), wait_after_ms=wait_after_ms)

    async def auto_scroll(self) -> None:
        """Scroll through the page so lazy sections render, then return to top."""
        await self.evaluate(
            AUTO_SCROLL_PROBE,
            [self._config.scroll_step_px, self._config.scroll_max_steps],
        )

    async def content(self) -> str:
        page = self._require_page()
        try:
            return await page.content()
        except PlaywrightError as e:
            raise NavigationError(f"Page content unavailable: {e}") from e

    async def _partial_content(self, url: str) -> str:
        """HTML of a page whose load timed out; empty when the page is still navigating."""
        try:
            return await self.content()
        except NavigationError as e:
            emit_structured_error(
                logger,
                code=NavigationTimeout.code,
                message=str(e),
                suppressed=True,
                url=url,
            )
            return ""

    async def render(self, url: str, config: ScrapeConfig) -> RenderedPage:
        """Load ``url`` and collect HTML plus in-page candidates."""
        nav = await self.navigate(url, timeout_ms=int(config.timeouts.page_load_timeout_s * 1000))
        partial = nav.status == ActionStatus.TIMEOUT

        consent = await self.dismiss_consent(wait_after_ms=config.timeouts.consent_wait_ms)
        if consent.dismissed:
            logger.info("Consent overlay dismissed (%s)", consent.method)

        if not partial:
            selector_ms = int(config.timeouts.selector_timeout_s * 1000)
            if not await self.wait_for_selector("h1", timeout_ms=selector_ms):
                logger.warning("No h1 appeared within %sms on %s", selector_ms, url)
            if self._config.auto_scroll:
                await self.auto_scroll()

        structured = await self.evaluate(STRUCTURED_DATA_PROBE, default=[])
        attributes = await self.evaluate(DATA_ATTRIBUTE_PROBE, DATA_ATTRIBUTE_MARKERS, default={})
        author = await self.evaluate(
            COMPUTED_AUTHOR_PROBE,
            [AUTHOR_LINK_SELECTORS, "Beschreibung", IN_PAGE_AUTHOR_PATTERNS],
            default=None,
        )
        html = await self._partial_content(url) if partial else await self.content()

        return RenderedPage(
            url=url,
            html=html,
            structured_data=[d for d in structured or [] if isinstance(d, dict)],
            data_attributes={str(k): str(v) for k, v in (attributes or {}).items()},
            computed_author=_to_computed_author(author),
            partial=partial,
            consent_dismissed=consent.dismissed,
        )


def _to_computed_author(raw: Any) -> ComputedAuthor | None:
    if not isinstance(raw, dict):
        return None
    name = str(raw.get("name") or "").strip()
    source = raw.get("source")
    if not name or source not in ("link", "description"):
        return None
    return ComputedAuthor(name=name, source=source)


class PlaywrightRenderer:
    """:class:`~folio.browser.page.PageRenderer` backed by a fresh Playwright session per call."""

    async def render(self, url: str, config: ScrapeConfig) -> RenderedPage:
        async with BrowserLayer(config.browser) as browser:
            return await browser.render(url, config)
