"""FastAPI application entry point for Folio."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from folio.api.routes import router
from folio.config.settings import APIConfig, ScrapeConfig

VERSION = "1.0.0"


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(api_config: APIConfig | None = None) -> FastAPI:
    """Factory function for creating the FastAPI application."""
    api_config = api_config or APIConfig()
    _configure_logging(ScrapeConfig().log_level)

    app = FastAPI(
        title="Folio",
        description="Book metadata extraction for Thalia and Amazon.de product pages",
        version=VERSION,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=api_config.allowed_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api")

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "service": "folio", "version": VERSION}

    return app


app = create_app()
