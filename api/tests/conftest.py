"""
Pytest configuration and fixtures for API tests.

The app is built with an explicit AppConfig (mock email delivery, no SMTP)
and exercised through FastAPI's TestClient. Browser work is patched out per
test at api.routes.vignette.extract_payment_url.
"""

from __future__ import annotations

import dataclasses
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from shared.config import AppConfig


@pytest.fixture
def app_config() -> AppConfig:
    """Configuration for tests: mock mail delivery and a local site API base."""
    return dataclasses.replace(
        AppConfig.from_env(),
        smtp_host=None,
        site_api_base_url="https://site.example.test",
    )


@pytest.fixture
def client(app_config) -> Generator[TestClient, None, None]:
    """Create a FastAPI test client around a freshly built app."""
    app = create_app(app_config)

    with TestClient(app) as test_client:
        yield test_client
