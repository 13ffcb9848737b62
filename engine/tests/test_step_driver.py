"""
Unit tests for the StepDriver funnel: forward-only transitions, per-step
retries with reload, and failure reporting with the last reached state.

DOM helpers are patched at engine.step_driver; the adapter returns mock
elements, so no browser is involved.
"""

from __future__ import annotations

import dataclasses
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from engine.adapters.base import CountryControls, PaymentControls, PlateFields
from engine.dom.navigation_retry import NavigateResult
from engine.dom.resolver import PAGE_SCOPE, SemanticTarget
from engine.errors import (
    ElementNotFoundError,
    ExtractionFailure,
    InvalidTransitionError,
    NavigationError,
    StepNotReadyError,
)
from engine.models import CapturedURL, OrderRequest, StepState
from engine.step_driver import StepDriver
from shared.config import AppConfig

GATEWAY_URL = "https://pajar.bazg.admin.ch/payment/8f1c2a"


def _element(key: str, tag: str = "button", type_: str = "") -> MagicMock:
    element = MagicMock()
    element.target.key = key
    element.snapshot.tag = tag
    element.snapshot.type = type_
    element.locator = MagicMock(name=f"{key}_locator")
    return element


def _adapter() -> MagicMock:
    adapter = MagicMock()
    adapter.name = "test_shop"
    adapter.start_url = "https://shop.example.test/"
    adapter.resolve_category = AsyncMock(return_value=_element("category.motor_vehicle"))
    adapter.resolve_start_date = AsyncMock(return_value=None)
    adapter.resolve_country = AsyncMock(
        return_value=CountryControls(
            opener=_element("country_opener"),
            option=SemanticTarget.from_key("country.GB", kind="option"),
            overlay=PAGE_SCOPE,
            display_name="United Kingdom",
        )
    )
    adapter.resolve_plate_fields = AsyncMock(
        return_value=PlateFields(primary=_element("plate", tag="input", type_="text"))
    )
    adapter.resolve_email_field = AsyncMock(return_value=None)
    adapter.resolve_cart_action = AsyncMock(return_value=_element("add_to_cart"))
    adapter.resolve_checkout_action = AsyncMock(return_value=_element("checkout"))
    adapter.resolve_payment_action = AsyncMock(
        return_value=PaymentControls(submit=_element("pay"))
    )
    return adapter


def _collector(captured=True) -> MagicMock:
    collector = MagicMock()
    value = CapturedURL(GATEWAY_URL, "response", 1.0) if captured else None
    collector.wait_for_capture = AsyncMock(return_value=value)
    return collector


@pytest.fixture
def config() -> AppConfig:
    return dataclasses.replace(
        AppConfig.from_env(),
        step_max_attempts=3,
        step_timeout_ms=100,
        capture_window_ms=100,
    )


@pytest.fixture
def dom():
    mocks = SimpleNamespace(
        navigate_with_retry=AsyncMock(return_value=NavigateResult(True, None, None)),
        wait_for_page_ready=AsyncMock(),
        dismiss_cookie_banner=AsyncMock(return_value=False),
        wait_for_step_ready=AsyncMock(),
        click_element=AsyncMock(),
        type_into=AsyncMock(),
        claim_element=AsyncMock(),
        dispatch_input_events=AsyncMock(),
        wait_until_enabled=AsyncMock(return_value=True),
        select_value=AsyncMock(),
    )
    with patch.multiple("engine.step_driver", **vars(mocks)):
        yield mocks


def _driver(config, adapter=None, collector=None) -> StepDriver:
    resolver = MagicMock()
    resolver.resolve = AsyncMock(return_value=_element("country.GB", tag="li"))
    resolver.try_resolve = AsyncMock(return_value=None)
    order = OrderRequest(plate_number="GF23WSN", email="test@example.com")
    return StepDriver(
        MagicMock(),
        adapter or _adapter(),
        collector or _collector(),
        resolver,
        order,
        config=config,
        settle_ms=0,
    )


def _reload_calls(navigate: AsyncMock) -> int:
    return sum(1 for c in navigate.await_args_list if c.kwargs.get("reload"))


@pytest.mark.asyncio
async def test_happy_path_reaches_payment_redirected(config, dom):
    collector = _collector()
    driver = _driver(config, collector=collector)

    assert driver.state is StepState.LANDING
    final = await driver.run()

    assert final is StepState.PAYMENT_REDIRECTED
    assert driver.last_state is StepState.PAYMENT_REDIRECTED
    assert _reload_calls(dom.navigate_with_retry) == 0
    collector.arm_polling.assert_called_once_with(
        window_ms=config.capture_window_ms,
        interval_ms=config.capture_poll_interval_ms,
    )
    dom.type_into.assert_awaited_once()
    assert dom.type_into.await_args.args[1] == "GF23WSN"


@pytest.mark.asyncio
async def test_checkout_never_ready_fails_with_in_cart(config, dom):
    def ready(page, resolver, readiness, *, step, timeout_ms):
        if step == StepState.CHECKOUT_REACHED.value:
            raise StepNotReadyError("checkout marker missing")

    dom.wait_for_step_ready.side_effect = ready
    adapter = _adapter()
    driver = _driver(config, adapter=adapter)

    with pytest.raises(StepNotReadyError) as exc_info:
        await driver.run()

    assert driver.state is StepState.FAILED
    assert driver.last_state is StepState.IN_CART
    assert exc_info.value.last_state is StepState.IN_CART
    assert adapter.resolve_checkout_action.await_count == 3
    assert _reload_calls(dom.navigate_with_retry) == 2
    adapter.resolve_payment_action.assert_not_awaited()


@pytest.mark.asyncio
async def test_missing_payment_url_is_not_retried(config, dom):
    adapter = _adapter()
    driver = _driver(config, adapter=adapter, collector=_collector(captured=False))

    with pytest.raises(ExtractionFailure) as exc_info:
        await driver.run()

    assert adapter.resolve_payment_action.await_count == 1
    assert exc_info.value.last_state is StepState.CHECKOUT_REACHED
    assert driver.state is StepState.FAILED
    assert _reload_calls(dom.navigate_with_retry) == 0


@pytest.mark.asyncio
async def test_step_retried_after_reload_then_succeeds(config, dom):
    adapter = _adapter()
    adapter.resolve_category.side_effect = [
        ElementNotFoundError("no category tile", target="category.motor_vehicle"),
        _element("category.motor_vehicle"),
    ]
    driver = _driver(config, adapter=adapter)

    assert await driver.run() is StepState.PAYMENT_REDIRECTED
    assert adapter.resolve_category.await_count == 2
    assert _reload_calls(dom.navigate_with_retry) == 1


@pytest.mark.asyncio
async def test_browser_error_during_reload_fails_with_reached_state(config, dom):
    """A page that closes while reloading must still end in FAILED with the reached state."""
    ready_calls = []

    async def page_ready(page):
        ready_calls.append(page)
        if len(ready_calls) > 1:
            raise PlaywrightError("Target page, context or browser has been closed")

    dom.wait_for_page_ready.side_effect = page_ready
    adapter = _adapter()
    adapter.resolve_payment_action.side_effect = ElementNotFoundError("no pay control", target="pay")
    driver = _driver(config, adapter=adapter)

    with pytest.raises(ElementNotFoundError) as exc_info:
        await driver.run()

    assert driver.state is StepState.FAILED
    assert driver.last_state is StepState.CHECKOUT_REACHED
    assert exc_info.value.last_state is StepState.CHECKOUT_REACHED
    assert adapter.resolve_payment_action.await_count == 3
    assert _reload_calls(dom.navigate_with_retry) == 2


@pytest.mark.asyncio
async def test_landing_failure_retries_navigation_without_reload(config, dom):
    dom.navigate_with_retry.return_value = NavigateResult(False, None, "HTTP 404")
    driver = _driver(config)

    with pytest.raises(NavigationError) as exc_info:
        await driver.run()

    assert dom.navigate_with_retry.await_count == 3
    assert _reload_calls(dom.navigate_with_retry) == 0
    assert exc_info.value.last_state is StepState.LANDING
    assert "HTTP 404" in exc_info.value.message


@pytest.mark.asyncio
async def test_disabled_cart_control_redispatches_plate_events(config, dom):
    dom.wait_until_enabled.side_effect = [False, True]
    adapter = _adapter()
    driver = _driver(config, adapter=adapter)

    assert await driver.run() is StepState.PAYMENT_REDIRECTED
    plate_locator = adapter.resolve_plate_fields.return_value.primary.locator
    dom.dispatch_input_events.assert_awaited_once_with(plate_locator)


@pytest.mark.asyncio
async def test_cart_control_stays_disabled(config, dom):
    dom.wait_until_enabled.return_value = False
    driver = _driver(config)

    with pytest.raises(StepNotReadyError) as exc_info:
        await driver.run()

    assert exc_info.value.last_state is StepState.PLATE_ENTERED


@pytest.mark.asyncio
async def test_playwright_timeout_becomes_step_not_ready(config, dom):
    dom.click_element.side_effect = PlaywrightTimeoutError("Timeout 5000ms exceeded")
    driver = _driver(config)

    with pytest.raises(StepNotReadyError) as exc_info:
        await driver.run()

    assert exc_info.value.last_state is StepState.LANDING
    assert isinstance(exc_info.value.__cause__, PlaywrightTimeoutError)


@pytest.mark.asyncio
async def test_confirmation_field_is_filled_when_present(config, dom):
    adapter = _adapter()
    adapter.resolve_plate_fields.return_value = PlateFields(
        primary=_element("plate", tag="input"),
        confirmation=SemanticTarget.from_key("plate_confirmation", kind="field"),
    )
    driver = _driver(config, adapter=adapter)
    driver.resolver.try_resolve.return_value = _element("plate_confirmation", tag="input")

    await driver.run()

    labels = [c.kwargs["label"] for c in dom.type_into.await_args_list]
    assert labels == ["plate", "plate_confirmation"]
    assert dom.claim_element.await_count == 2


def test_transitions_are_forward_only(config):
    driver = _driver(config)

    driver.transition(StepState.CATEGORY_SELECTED)
    with pytest.raises(InvalidTransitionError):
        driver.transition(StepState.LANDING)
    with pytest.raises(InvalidTransitionError):
        driver.transition(StepState.CATEGORY_SELECTED)

    driver.transition(StepState.IN_CART)
    driver.transition(StepState.FAILED)
    assert driver.last_state is StepState.IN_CART
    with pytest.raises(InvalidTransitionError):
        driver.transition(StepState.CHECKOUT_REACHED)
