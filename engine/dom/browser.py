"""
Browser context creation for checkout sessions (viewport, UA, locale, timezone).
"""

from __future__ import annotations

from playwright.async_api import Browser, BrowserContext

from engine.dom.constants import (
    EXTRA_HTTP_HEADERS,
    LOCALE,
    TIMEZONE_ID,
    USER_AGENT,
    VIEWPORT,
)


async def create_browser_context(
    browser: Browser,
    *,
    locale: str = LOCALE,
) -> BrowserContext:
    """
    Create a browser context for one order.

    Uses a stable desktop UA, viewport and Swiss timezone so the shop serves
    its regular desktop funnel.
    """
    context = await browser.new_context(
        viewport=dict(VIEWPORT),
        user_agent=USER_AGENT,
        timezone_id=TIMEZONE_ID,
        locale=locale,
        extra_http_headers=dict(EXTRA_HTTP_HEADERS),
    )

    return context
