"""
FastAPI application entrypoint for the Swiss vignette automation API.

This module sets up the FastAPI app, configures logging, and registers
route handlers.
"""

from __future__ import annotations

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import vignette
from shared.config import AppConfig, get_config
from shared.logging import configure_logging_from_config


def create_app(config: AppConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = config or get_config()

    configure_logging_from_config(config)

    app = FastAPI(
        title="Swiss Vignette Automation API",
        description="Orders an e-vignette through the shop's checkout and returns the payment URL",
        version="1.0.0",
    )
    app.state.config = config

    # CORS middleware (permissive; the form page may be served from another origin)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(vignette.router)

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    return app


load_dotenv()
app = create_app()
