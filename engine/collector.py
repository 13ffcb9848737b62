"""
Multi-channel payment URL capture.

The gateway URL exists only transiently (a redirect, a frame navigation, a
short-lived page.url), so three independent observers feed one append-only
record:

- response: every completed response URL, plus the Location header of redirects
- navigation: main-frame framenavigated events
- polling: page.url sampled after the pay control is clicked

All three use the same strict GatewayPattern. The first record is canonical;
later records are kept for diagnostics. Listener registrations are explicit
EventSubscription objects released by dispose().
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Optional
from urllib.parse import urljoin

from playwright.async_api import Frame, Page, Response

from engine.dom.constants import CAPTURE_POLL_INTERVAL_MS, CAPTURE_WINDOW_MS
from engine.gateway import GatewayPattern
from engine.models import CapturedURL, CaptureSource
from shared.logging import get_logger

logger = get_logger(__name__)


class EventSubscription:
    """A page.on registration that can be removed exactly once."""

    def __init__(self, page: Page, event: str, handler: Callable[..., Any]) -> None:
        self.page = page
        self.event = event
        self.handler = handler
        self.active = False

    def subscribe(self) -> "EventSubscription":
        self.page.on(self.event, self.handler)
        self.active = True
        return self

    def dispose(self) -> None:
        if not self.active:
            return
        self.active = False
        try:
            self.page.remove_listener(self.event, self.handler)
        except Exception as e:
            logger.debug("collector.unsubscribe_failed", event=self.event, error=str(e))


class PaymentURLCollector:
    def __init__(
        self,
        gateway: GatewayPattern,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.gateway = gateway
        self._clock = clock
        self._records: list[CapturedURL] = []
        self._captured = asyncio.Event()
        self._subscriptions: list[EventSubscription] = []
        self._page: Optional[Page] = None
        self._poll_task: Optional[asyncio.Task] = None

    # -- recording -----------------------------------------------------------

    def offer(self, url: Optional[str], source: CaptureSource) -> bool:
        """Record url if it matches the gateway pattern. Returns True when recorded."""
        if not url or not self.gateway.matches(url):
            return False
        record = CapturedURL(value=url.strip(), source=source, timestamp=self._clock())
        # Single-threaded event loop: check-before-write keeps the first record canonical.
        first = not self._records
        self._records.append(record)
        if first:
            self._captured.set()
            logger.info("payment_url.captured", source=source, url=record.value)
        else:
            logger.debug("payment_url.observed_again", source=source, url=record.value)
        return True

    def canonical(self) -> Optional[CapturedURL]:
        return self._records[0] if self._records else None

    def captures(self) -> tuple[CapturedURL, ...]:
        return tuple(self._records)

    async def wait_for_capture(self, timeout: float) -> Optional[CapturedURL]:
        """Wait up to timeout seconds for a first capture."""
        if self._records:
            return self._records[0]
        try:
            await asyncio.wait_for(self._captured.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
        return self.canonical()

    # -- sources ---------------------------------------------------------------

    def _on_response(self, response: Response) -> None:
        self.offer(response.url, "response")
        try:
            status = response.status
            if 300 <= status < 400:
                location = response.headers.get("location")
                if location:
                    self.offer(urljoin(response.url, location), "response")
        except Exception as e:
            logger.debug("collector.response_inspect_failed", error=str(e))

    def _on_frame_navigated(self, frame: Frame) -> None:
        if frame.parent_frame is not None:
            return
        self.offer(frame.url, "navigation")

    def attach(self, page: Page) -> None:
        """Subscribe to response and navigation events. Call before the first navigation."""
        self._page = page
        self._subscriptions = [
            EventSubscription(page, "response", self._on_response).subscribe(),
            EventSubscription(page, "framenavigated", self._on_frame_navigated).subscribe(),
        ]
        logger.info("collector.attached", gateway_host=self.gateway.host)

    def arm_polling(
        self,
        *,
        window_ms: int = CAPTURE_WINDOW_MS,
        interval_ms: int = CAPTURE_POLL_INTERVAL_MS,
    ) -> asyncio.Task:
        """Start sampling page.url for window_ms. Re-arming replaces the previous loop."""
        if self._page is None:
            raise RuntimeError("collector is not attached to a page")
        if self._poll_task is not None and not self._poll_task.done():
            self._poll_task.cancel()
        self._poll_task = asyncio.create_task(self._poll(self._page, window_ms, interval_ms))
        return self._poll_task

    async def _poll(self, page: Page, window_ms: int, interval_ms: int) -> None:
        deadline = time.monotonic() + window_ms / 1000
        last_seen = None
        # Runs for the whole window; offer() keeps the first record canonical.
        while time.monotonic() < deadline:
            if page.is_closed():
                return
            url = page.url
            if url != last_seen:
                last_seen = url
                self.offer(url, "polling")
            await asyncio.sleep(interval_ms / 1000)
        logger.info("collector.polling_window_closed", window_ms=window_ms)

    async def dispose(self) -> None:
        """Remove listeners and stop polling. Safe to call more than once."""
        for sub in self._subscriptions:
            sub.dispose()
        self._subscriptions = []
        task, self._poll_task = self._poll_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
