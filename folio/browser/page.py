"""Rendered page types and the renderer capability contract consumed by the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from folio.config.settings import ScrapeConfig


@dataclass(frozen=True)
class ComputedAuthor:
    """Author resolved inside the page, by link or by description pattern."""

    name: str
    source: Literal["link", "description"]


@dataclass(frozen=True)
class RenderedPage:
    """Everything one render produced.

    ``partial`` is set when navigation timed out and ``html`` holds whatever
    had loaded by then.
    """

    url: str
    html: str
    structured_data: list[dict[str, Any]] = field(default_factory=list)
    data_attributes: dict[str, str] = field(default_factory=dict)
    computed_author: ComputedAuthor | None = None
    partial: bool = False
    consent_dismissed: bool = False


class PageRenderer(Protocol):
    """Capability that turns a URL into a :class:`RenderedPage`.

    Implementations own one browser session per call and must release it on
    every exit path. A navigation timeout must yield a partial page rather
    than an exception; other load failures raise ``NavigationError``; an
    unusable browser raises ``RendererUnavailableError``.
    """

    async def render(self, url: str, config: ScrapeConfig) -> RenderedPage: ...
