"""
Entry point: order in, payment URL (or an explicit failure) out.

    result = await extract_payment_url(OrderRequest(plate_number="ZH445789", email="a@b.ch"))

Resolution order:
1. a captured gateway URL (method "captured")
2. a synthesized fallback, only when checkout was reached (method "fallback")
3. a failure result carrying the error and the last reached StepState
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from playwright.async_api import Error as PlaywrightError

from engine.adapters import SiteAdapter, get_adapter
from engine.collector import PaymentURLCollector
from engine.dom.resolver import SelectorResolver
from engine.errors import VignetteAutomationError
from engine.fallback import FallbackURLSynthesizer
from engine.models import (
    OrderRequest,
    SessionResult,
    StepState,
    new_order_id,
    validate_order,
)
from engine.session import PageSession
from engine.step_driver import StepDriver
from shared.config import AppConfig, get_config
from shared.logging import bind_request_context, clear_request_context, get_logger

logger = get_logger(__name__)


async def extract_payment_url(
    order: OrderRequest,
    *,
    config: Optional[AppConfig] = None,
    adapter: Optional[SiteAdapter] = None,
    order_id: Optional[str] = None,
    session_factory: Callable[..., Any] = PageSession,
) -> SessionResult:
    """
    Drive the checkout funnel for one order and return a SessionResult.

    Raises ValidationError for a malformed order before any browser work.
    Every other failure is reported through SessionResult(success=False).
    """
    order = validate_order(order)
    config = config or get_config()
    adapter = adapter or get_adapter(config.site_adapter)
    order_id = order_id or new_order_id()

    bind_request_context(order_id=order_id, adapter=adapter.name)
    collector = PaymentURLCollector(adapter.gateway)
    last_state = StepState.LANDING
    error: Optional[VignetteAutomationError] = None

    logger.info(
        "order.started",
        vehicle_category=order.vehicle_category,
        payment_method=order.payment_key,
        country=order.country,
    )
    try:
        async with session_factory(config, collector, order_id=order_id) as session:
            resolver = SelectorResolver(
                session.page,
                timeout_ms=config.resolve_timeout_ms,
                poll_interval_ms=config.resolve_poll_interval_ms,
            )
            driver = StepDriver(
                session.page,
                adapter,
                collector,
                resolver,
                order,
                config=config,
            )
            try:
                await driver.run()
            except VignetteAutomationError as e:
                error = e
                await session.capture_failure_artifact(driver.last_state.value)
            finally:
                last_state = driver.last_state
    except PlaywrightError as e:
        logger.error("session.browser_error", error=str(e)[:300])
        error = VignetteAutomationError(f"Browser session failed: {e}", last_state=last_state)

    try:
        return _resolve_result(order, order_id, adapter, collector, last_state, error)
    finally:
        clear_request_context()


def _resolve_result(
    order: OrderRequest,
    order_id: str,
    adapter: SiteAdapter,
    collector: PaymentURLCollector,
    last_state: StepState,
    error: Optional[VignetteAutomationError],
) -> SessionResult:
    captures = collector.captures()
    captured = collector.canonical()

    if captured is not None:
        logger.info("order.completed", method="captured", source=captured.source, url=captured.value)
        return SessionResult(
            order_id=order_id,
            success=True,
            last_state=last_state,
            payment_url=captured.value,
            method="captured",
            captures=captures,
        )

    if last_state.reached(StepState.CHECKOUT_REACHED):
        url = FallbackURLSynthesizer(adapter.gateway).synthesize(order)
        logger.warning(
            "payment_url.fallback",
            url=url,
            reason=type(error).__name__ if error else None,
        )
        return SessionResult(
            order_id=order_id,
            success=True,
            last_state=last_state,
            payment_url=url,
            method="fallback",
            captures=captures,
        )

    if error is None:
        error = VignetteAutomationError("Funnel ended before checkout", last_state=last_state)
    logger.error(
        "order.failed",
        last_state=last_state.value,
        error_type=type(error).__name__,
        error=str(error)[:300],
    )
    return SessionResult(
        order_id=order_id,
        success=False,
        last_state=last_state,
        error=error,
        captures=captures,
    )
