"""REST API routes for Folio.

Thin pass-through to the Conduit:
- ``POST /api/scrape`` accepts any supported product URL
- ``POST /api/scrape-thalia`` accepts Thalia URLs only
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from folio.browser.page import PageRenderer
from folio.conduit.engine import Conduit
from folio.config.settings import ScrapeConfig
from folio.telemetry.errors import InvalidURLError, RendererUnavailableError

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Request/Response Models ---


class ScrapeRequest(BaseModel):
    """Request to scrape one product page."""

    url: str


class ScrapeResponse(BaseModel):
    """Successful scrape, degraded or not."""

    success: bool = True
    bookData: dict[str, Any]


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


# --- Dependencies ---


def get_config() -> ScrapeConfig:
    return ScrapeConfig()


def get_renderer() -> PageRenderer:
    from folio.browser.layer import PlaywrightRenderer

    return PlaywrightRenderer()


# --- Routes ---


async def _scrape(
    request: ScrapeRequest,
    config: ScrapeConfig,
    renderer: PageRenderer,
    allowed_sites: tuple[str, ...] | None = None,
) -> ScrapeResponse | JSONResponse:
    conduit = Conduit(config=config, renderer=renderer)
    try:
        outcome = await conduit.scrape(request.url, allowed_sites=allowed_sites)
    except InvalidURLError as e:
        return JSONResponse(status_code=400, content=ErrorResponse(error=str(e)).model_dump())
    except RendererUnavailableError as e:
        return JSONResponse(status_code=500, content=ErrorResponse(error=str(e)).model_dump())

    logger.info(
        "Scraped %s in %d attempt(s)%s",
        outcome.canonical_url,
        len(outcome.attempts),
        " (degraded)" if outcome.degraded else "",
    )
    return ScrapeResponse(bookData=outcome.record.to_wire())


@router.post(
    "/scrape",
    response_model=ScrapeResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def scrape(
    request: ScrapeRequest,
    config: ScrapeConfig = Depends(get_config),
    renderer: PageRenderer = Depends(get_renderer),
) -> ScrapeResponse | JSONResponse:
    """Scrape a Thalia or Amazon.de product page."""
    return await _scrape(request, config, renderer)


@router.post(
    "/scrape-thalia",
    response_model=ScrapeResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def scrape_thalia(
    request: ScrapeRequest,
    config: ScrapeConfig = Depends(get_config),
    renderer: PageRenderer = Depends(get_renderer),
) -> ScrapeResponse | JSONResponse:
    """Scrape a Thalia product page; any other site is rejected."""
    return await _scrape(request, config, renderer, allowed_sites=("thalia",))
