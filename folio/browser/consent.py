"""Cookie-consent overlay dismissal.

Best-effort: known accept-button selectors are tried in order, then every
button on the page is scanned for an accept phrase. Nothing here raises; a
banner that stays up only costs extraction quality.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from folio.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)


@dataclass
class ConsentResult:
    """Outcome of a dismissal attempt."""

    dismissed: bool
    method: str = ""
    selector: str | None = None


# Accept buttons of the consent platforms seen on the supported sites
CONSENT_SELECTORS = [
    'button[data-testid="uc-accept-all-button"]',
    "button.consent-accept-all",
    "button.privacy-accept-all",
    "#onetrust-accept-btn-handler",
    "#sp-cc-accept",
    'input[name="accept"]',
    'button[id*="accept"]',
    'button[title*="akzeptieren"]',
    'button[title*="Akzeptieren"]',
]

ACCEPT_PHRASES = [
    "Alles akzeptieren",
    "Alle akzeptieren",
    "Akzeptieren",
    "Accept all",
    "Accept",
]

_CLICK_BY_TEXT_JS = """(phrases) => {
    const buttons = Array.from(document.querySelectorAll('button'));
    for (const phrase of phrases) {
        const match = buttons.find(b => (b.textContent || '').includes(phrase));
        if (match) {
            match.click();
            return phrase;
        }
    }
    return null;
}"""


async def dismiss_consent(page: Page, wait_after_ms: int = 1000) -> ConsentResult:
    """Try to close a cookie-consent overlay on ``page``."""
    for selector in CONSENT_SELECTORS:
        try:
            button = await page.query_selector(selector)
            if button is None:
                continue
            await button.click(timeout=2000)
            if wait_after_ms > 0:
                await page.wait_for_timeout(wait_after_ms)
            logger.debug("Consent dismissed via selector %s", selector)
            return ConsentResult(dismissed=True, method="selector", selector=selector)
        except PlaywrightError as e:
            logger.debug("Consent selector %s failed: %s", selector, e)

    try:
        phrase = await page.evaluate(_CLICK_BY_TEXT_JS, ACCEPT_PHRASES)
        if phrase and wait_after_ms > 0:
            await page.wait_for_timeout(wait_after_ms)
    except PlaywrightError as e:
        emit_structured_error(
            logger,
            code=ErrorCode.CONSENT_DISMISS_FAILED,
            message=str(e),
            suppressed=True,
            url=page.url,
        )
        return ConsentResult(dismissed=False)

    if phrase:
        logger.debug("Consent dismissed via button text %r", phrase)
        return ConsentResult(dismissed=True, method="text", selector=phrase)

    return ConsentResult(dismissed=False)
