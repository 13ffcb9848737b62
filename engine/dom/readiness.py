"""
Page and step readiness.

wait_for_page_ready settles a freshly loaded page (network idle, DOM
stability, minimum dwell) with a soft timeout. wait_for_step_ready checks a
step's predicate: the URL contains an expected segment OR a marker target
resolves. The predicate is bounded; on expiry StepNotReadyError is raised.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from engine.dom.constants import (
    DOM_STABILITY_TIMEOUT,
    MINIMUM_WAIT_AFTER_LOAD,
    PAGE_READY_SOFT_TIMEOUT,
    STEP_POLL_INTERVAL_MS,
    STEP_TIMEOUT_MS,
)
from engine.dom.resolver import PAGE_SCOPE, ElementScope, SelectorResolver, SemanticTarget
from engine.errors import StepNotReadyError
from shared.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StepReadiness:
    """Either condition is sufficient."""

    url_segments: tuple[str, ...] = ()
    marker: Optional[SemanticTarget] = None
    marker_scope: ElementScope = PAGE_SCOPE

    def url_matches(self, url: str) -> bool:
        lowered = (url or "").lower()
        return any(seg.lower() in lowered for seg in self.url_segments)


async def wait_for_page_ready(
    page: Page,
    soft_timeout: int = PAGE_READY_SOFT_TIMEOUT,
) -> dict:
    """
    Wait for network idle, then DOM stability and a minimum dwell.

    Returns a timings dict. A soft timeout is logged and not raised: SPA shops
    often keep long-polling connections open and never reach network idle.
    """
    start_time = datetime.now(timezone.utc)
    timings: dict = {
        "navigation_start": start_time.isoformat(),
        "network_idle": None,
        "ready": None,
        "total_load_duration_ms": None,
        "soft_timeout": False,
    }

    try:
        await page.wait_for_load_state("networkidle", timeout=soft_timeout)
        timings["network_idle"] = datetime.now(timezone.utc).isoformat()
        await asyncio.sleep(DOM_STABILITY_TIMEOUT / 1000)
        await asyncio.sleep(MINIMUM_WAIT_AFTER_LOAD / 1000)
    except PlaywrightTimeoutError:
        logger.warning("page_ready_soft_timeout", timeout_ms=soft_timeout)
        timings["soft_timeout"] = True

    ready_time = datetime.now(timezone.utc)
    timings["ready"] = ready_time.isoformat()
    timings["total_load_duration_ms"] = (ready_time - start_time).total_seconds() * 1000

    logger.info(
        "readiness_complete",
        total_load_duration_ms=timings["total_load_duration_ms"],
        soft_timeout=timings["soft_timeout"],
    )
    return timings


async def wait_for_step_ready(
    page: Page,
    resolver: SelectorResolver,
    readiness: StepReadiness,
    *,
    step: str,
    timeout_ms: int = STEP_TIMEOUT_MS,
    poll_interval_ms: int = STEP_POLL_INTERVAL_MS,
) -> str:
    """
    Poll the step predicate until it holds.

    Returns which condition held ("url" or "marker"). Raises StepNotReadyError
    when neither holds within timeout_ms.
    """
    if not readiness.url_segments and readiness.marker is None:
        return "none"

    deadline = time.monotonic() + timeout_ms / 1000
    while True:
        if readiness.url_matches(page.url):
            logger.info("step.ready", step=step, condition="url", url=page.url)
            return "url"
        if readiness.marker is not None:
            found = await resolver.try_resolve(
                readiness.marker, readiness.marker_scope, timeout_ms=0
            )
            if found is not None:
                logger.info("step.ready", step=step, condition="marker", marker=readiness.marker.key)
                return "marker"
        if time.monotonic() >= deadline:
            raise StepNotReadyError(
                f"Step {step} not ready after {timeout_ms} ms (url={page.url})"
            )
        await asyncio.sleep(poll_interval_ms / 1000)
