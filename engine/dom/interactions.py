"""
Low-level interactions on resolved elements: clicking with fallbacks,
typing with synthetic framework events, enablement waits.
"""

from __future__ import annotations

import asyncio
import time

from playwright.async_api import Locator

from engine.dom.constants import (
    CLAIMED_ATTR,
    CLICK_TIMEOUT_MS,
    ENABLED_WAIT_MS,
    TYPE_DELAY_MS,
)
from shared.logging import get_logger

logger = get_logger(__name__)

# Reactive form frameworks only register a value after these events fire.
_DISPATCH_EVENTS_SCRIPT = """
el => {
  for (const type of ['input', 'change']) {
    el.dispatchEvent(new Event(type, { bubbles: true }));
  }
  el.dispatchEvent(new FocusEvent('blur', { bubbles: true }));
  if (typeof el.blur === 'function') el.blur();
}
"""


async def click_element(locator: Locator, *, label: str = "") -> None:
    """
    Click with escalating fallbacks: normal click, forced click, DOM click().

    Raises the last error when all three fail.
    """
    try:
        await locator.scroll_into_view_if_needed(timeout=2000)
    except Exception:
        pass

    try:
        await locator.click(timeout=CLICK_TIMEOUT_MS)
        return
    except Exception as e:
        logger.info("interaction.click_fallback", label=label, error=str(e)[:200])

    try:
        await locator.click(timeout=CLICK_TIMEOUT_MS, force=True)
        return
    except Exception:
        pass

    await locator.evaluate("el => el.click()")


async def dispatch_input_events(locator: Locator) -> None:
    await locator.evaluate(_DISPATCH_EVENTS_SCRIPT)


async def type_into(locator: Locator, value: str, *, label: str = "") -> None:
    """Clear the field, type value key by key, then fire input/change/blur."""
    await click_element(locator, label=label)
    await locator.fill("")
    await locator.type(value, delay=TYPE_DELAY_MS)
    await dispatch_input_events(locator)
    logger.info("interaction.typed", label=label, length=len(value))


async def select_value(locator: Locator, value: str) -> None:
    """Native <select>: choose by label first, then by value."""
    try:
        await locator.select_option(label=value)
    except Exception:
        await locator.select_option(value=value)
    await dispatch_input_events(locator)


async def claim_element(locator: Locator) -> None:
    """Mark an element so later resolutions skip it."""
    await locator.evaluate(f"el => el.setAttribute('{CLAIMED_ATTR}', '1')")


async def is_disabled(locator: Locator) -> bool:
    try:
        if await locator.is_disabled():
            return True
        return (await locator.get_attribute("aria-disabled")) == "true"
    except Exception:
        return False


async def wait_until_enabled(
    locator: Locator,
    *,
    timeout_ms: int = ENABLED_WAIT_MS,
    poll_interval_ms: int = 250,
) -> bool:
    """Poll until the control is enabled. Returns False when the window closes."""
    deadline = time.monotonic() + timeout_ms / 1000
    while True:
        if not await is_disabled(locator):
            return True
        if time.monotonic() >= deadline:
            return False
        await asyncio.sleep(poll_interval_ms / 1000)
