"""
Browser lifecycle for one order.

PageSession owns playwright, the browser, its context and the single page.
The collector is attached before any navigation. Every resource is released
on every exit path, including cancellation.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from engine.collector import PaymentURLCollector
from engine.dom.browser import create_browser_context
from engine.dom.constants import LAUNCH_ARGS
from shared.config import AppConfig
from shared.logging import get_logger

logger = get_logger(__name__)


class PageSession:
    """
    Usage:
        async with PageSession(config, collector) as session:
            await driver_for(session.page).run()
    """

    def __init__(
        self,
        config: AppConfig,
        collector: PaymentURLCollector,
        *,
        order_id: str = "",
        playwright_factory: Callable[[], Any] = async_playwright,
    ) -> None:
        self.config = config
        self.collector = collector
        self.order_id = order_id
        self._playwright_factory = playwright_factory
        self._playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    async def __aenter__(self) -> "PageSession":
        try:
            self._playwright = await self._playwright_factory().start()
            self.browser = await self._playwright.chromium.launch(
                headless=self.config.browser_headless,
                args=LAUNCH_ARGS,
            )
            self.context = await create_browser_context(self.browser)
            self.page = await self.context.new_page()
            self.page.set_default_timeout(self.config.step_timeout_ms)
            self.page.set_default_navigation_timeout(self.config.nav_timeout_ms)
            self.collector.attach(self.page)
        except BaseException:
            await self.close()
            raise
        logger.info("session.opened", headless=self.config.browser_headless)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Release collector listeners, page, context, browser and playwright. Idempotent."""
        await self.collector.dispose()
        page, self.page = self.page, None
        context, self.context = self.context, None
        browser, self.browser = self.browser, None
        pw, self._playwright = self._playwright, None

        for label, closer in (
            ("page", page.close if page is not None else None),
            ("context", context.close if context is not None else None),
            ("browser", browser.close if browser is not None else None),
            ("playwright", pw.stop if pw is not None else None),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except Exception as e:
                logger.warning("session.close_failed", resource=label, error=str(e)[:200])
        logger.info("session.closed")

    async def capture_failure_artifact(self, step: str) -> Optional[str]:
        """Best-effort full-page screenshot into ARTIFACTS_DIR. Never raises."""
        if self.page is None:
            return None
        try:
            stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
            directory = Path(self.config.artifacts_dir)
            directory.mkdir(parents=True, exist_ok=True)
            name = f"{self.order_id or 'order'}_{step}_{stamp}.png"
            path = directory / name
            await self.page.screenshot(path=str(path), full_page=True)
        except Exception as e:
            logger.warning("session.screenshot_failed", step=step, error=str(e)[:200])
            return None
        logger.info("session.screenshot_saved", step=step, path=str(path))
        return str(path)
