"""
Navigation retry helper: deterministic backoff, failure classification, bot-block mitigation.

Every page load of the funnel (landing and step reloads) goes through
navigate_with_retry. Order context (order_id, adapter, step) comes from the
structlog context bound by the caller.
"""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Optional

from playwright.async_api import Page, Response
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from shared.logging import get_logger

logger = get_logger(__name__)

# Max 3 attempts, backoff 1s / 2s / 4s, jitter 0–500 ms
MAX_NAV_ATTEMPTS = 3
BACKOFF_SECONDS = (1, 2, 4)
JITTER_MS = 500
NAV_TIMEOUT_MS = 30_000
HARD_PAGE_TIMEOUT_MS = 90_000
# Bot-block: wait 2 s then one reload
BOT_BLOCK_WAIT_SECONDS = 2

BOT_BLOCK_INDICATORS = (
    "captcha",
    "verify you are human",
    "access denied",
    "zugriff verweigert",
    "request blocked",
)


@dataclass
class NavigateResult:
    """Result of navigate_with_retry."""

    success: bool
    response: Optional[Response]
    error_summary: Optional[str]
    attempts: int = 1
    bot_block_mitigation_used: bool = False


def _backoff_seconds(attempt: int) -> float:
    """Exponential backoff for attempt 1-based index; add jitter 0–500 ms."""
    base = BACKOFF_SECONDS[min(attempt - 1, len(BACKOFF_SECONDS) - 1)]
    jitter = random.uniform(0, JITTER_MS / 1000.0)
    return base + jitter


def _classify_failure(exc: BaseException) -> tuple[bool, str]:
    """
    Classify navigation failure as retryable or not.

    Returns (retryable, reason): navigation_timeout, net_err or non_retryable.
    """
    if isinstance(exc, PlaywrightTimeoutError):
        return True, "navigation_timeout"
    msg = (getattr(exc, "message", None) or str(exc)).lower()
    if "net::err_" in msg:
        return True, "net_err"
    return False, "non_retryable"


def _is_retryable_status(status: Optional[int]) -> bool:
    return status in (403, 429, 503)


def _retry_reason_for_status(status: int) -> str:
    if status == 429:
        return "status_429"
    return "status_403_503"


async def is_bot_block_page(page: Page) -> bool:
    """Title or body mentions a captcha / access-denied interstitial."""
    try:
        title = await page.title()
        body_text = await page.inner_text("body")
        combined = f"{title} {body_text}".lower()
        return any(ind in combined for ind in BOT_BLOCK_INDICATORS)
    except Exception:
        return False


async def navigate_with_retry(
    page: Page,
    url: Optional[str] = None,
    *,
    reload: bool = False,
    nav_timeout_ms: int = NAV_TIMEOUT_MS,
    hard_page_timeout_ms: int = HARD_PAGE_TIMEOUT_MS,
    max_attempts: int = MAX_NAV_ATTEMPTS,
) -> NavigateResult:
    """
    Load url (or reload the current page when reload=True) with retries.

    Retries timeouts, net::ERR_* failures and 403/429/503 with backoff; other
    4xx/5xx fail immediately. A detected bot-block page gets exactly one
    mitigation reload; it is never worked around beyond that.
    """
    if not reload and not url:
        raise ValueError("url is required unless reload=True")
    target = url if not reload else page.url

    page_elapsed_ms = 0.0
    last_response: Optional[Response] = None
    attempt = 0

    for attempt in range(1, max_attempts + 1):
        logger.info("navigation.attempt", attempt=attempt, url=target, reload=reload)

        if page_elapsed_ms >= hard_page_timeout_ms:
            logger.warning(
                "navigation.failed",
                attempt=attempt,
                url=target,
                failure_classification="hard_timeout",
                elapsed_ms=page_elapsed_ms,
            )
            return NavigateResult(False, None, "Navigation timeout", attempts=attempt)

        attempt_start = time.monotonic()
        try:
            if reload:
                response = await page.reload(wait_until="domcontentloaded", timeout=nav_timeout_ms)
            else:
                response = await page.goto(target, wait_until="domcontentloaded", timeout=nav_timeout_ms)
        except Exception as e:
            page_elapsed_ms += (time.monotonic() - attempt_start) * 1000
            retryable, reason = _classify_failure(e)
            if retryable and attempt < max_attempts:
                backoff = _backoff_seconds(attempt)
                logger.info(
                    "navigation.retry",
                    reason=reason,
                    attempt=attempt,
                    backoff_s=round(backoff, 2),
                    url=target,
                    error=str(e)[:300],
                )
                await asyncio.sleep(backoff)
                page_elapsed_ms += backoff * 1000
                continue
            logger.error(
                "navigation.failed",
                attempt=attempt,
                url=target,
                failure_classification=reason,
                error=str(e)[:300],
            )
            summary = "Navigation timeout" if reason == "navigation_timeout" else "Navigation failed"
            return NavigateResult(False, None, summary, attempts=attempt)

        page_elapsed_ms += (time.monotonic() - attempt_start) * 1000
        last_response = response
        if response is None:
            break

        status = response.status
        if _is_retryable_status(status):
            reason_status = _retry_reason_for_status(status)
            if attempt < max_attempts:
                backoff = _backoff_seconds(attempt)
                logger.info(
                    "navigation.retry",
                    reason=reason_status,
                    attempt=attempt,
                    backoff_s=round(backoff, 2),
                    url=target,
                    status=status,
                )
                await asyncio.sleep(backoff)
                page_elapsed_ms += backoff * 1000
                continue
            logger.warning(
                "navigation.failed",
                attempt=attempt,
                url=target,
                failure_classification=reason_status,
                status=status,
            )
            summary = "Rate limited (429)" if status == 429 else "Blocked (403/503)"
            return NavigateResult(False, response, summary, attempts=attempt)

        if status >= 400:
            logger.error(
                "navigation.failed",
                attempt=attempt,
                url=target,
                failure_classification="non_retryable_status",
                status=status,
            )
            return NavigateResult(False, response, f"HTTP {status}", attempts=attempt)

        break

    mitigation_used = False
    if last_response is not None and await is_bot_block_page(page):
        logger.info("navigation.bot_block_detected", url=target)
        await asyncio.sleep(BOT_BLOCK_WAIT_SECONDS)
        mitigation_used = True
        try:
            await page.reload(wait_until="domcontentloaded", timeout=nav_timeout_ms)
        except Exception as e:
            logger.warning(
                "navigation.failed",
                url=target,
                failure_classification="bot_block_reload_failed",
                error=str(e)[:300],
            )
            return NavigateResult(
                False, last_response, "Bot-block; reload failed",
                attempts=attempt, bot_block_mitigation_used=True,
            )
        if await is_bot_block_page(page):
            logger.warning("navigation.failed", url=target, failure_classification="bot_block")
            return NavigateResult(
                False, last_response, "Bot-block",
                attempts=attempt, bot_block_mitigation_used=True,
            )

    logger.info(
        "navigation.success",
        attempt=attempt,
        url=target,
        bot_block_mitigation_used=mitigation_used,
    )
    return NavigateResult(
        True, last_response, None,
        attempts=attempt, bot_block_mitigation_used=mitigation_used,
    )
