"""
Funnel state machine.

Each step resolves its controls through the site adapter, interacts, then
waits for the adapter's readiness predicate before the state advances.
Failed steps are retried in place after a page reload; the driver never
skips ahead. Transitions are strictly forward.

    Landing -> CategorySelected -> CountrySelected -> PlateEntered
            -> InCart -> CheckoutReached -> PaymentRedirected
    (any) -> Failed
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from engine.adapters.base import SiteAdapter
from engine.collector import PaymentURLCollector
from engine.dom.consent import dismiss_cookie_banner
from engine.dom.constants import SETTLE_AFTER_CLICK_MS
from engine.dom.interactions import (
    claim_element,
    click_element,
    dispatch_input_events,
    select_value,
    type_into,
    wait_until_enabled,
)
from engine.dom.navigation_retry import navigate_with_retry
from engine.dom.readiness import wait_for_page_ready, wait_for_step_ready
from engine.dom.resolver import ResolvedElement, SelectorResolver
from engine.errors import (
    ElementNotFoundError,
    ExtractionFailure,
    InvalidTransitionError,
    NavigationError,
    StepNotReadyError,
    VignetteAutomationError,
)
from engine.models import OrderRequest, StepState
from shared.config import AppConfig
from shared.logging import bind_request_context, get_logger

logger = get_logger(__name__)

RETRYABLE_ERRORS = (NavigationError, ElementNotFoundError, PlaywrightError)

StepFn = Callable[[], Awaitable[None]]


class StepDriver:
    def __init__(
        self,
        page: Page,
        adapter: SiteAdapter,
        collector: PaymentURLCollector,
        resolver: SelectorResolver,
        order: OrderRequest,
        *,
        config: AppConfig,
        settle_ms: int = SETTLE_AFTER_CLICK_MS,
    ) -> None:
        self.page = page
        self.adapter = adapter
        self.collector = collector
        self.resolver = resolver
        self.order = order
        self.config = config
        self.settle_ms = settle_ms
        self.state = StepState.LANDING
        self.last_state = StepState.LANDING
        self._plate_locators: list[Locator] = []

    # -- state -----------------------------------------------------------------

    def transition(self, new_state: StepState) -> None:
        """Advance the funnel. Backward moves and moves out of FAILED raise InvalidTransitionError."""
        if self.state is StepState.FAILED:
            raise InvalidTransitionError(
                f"Cannot leave terminal state {self.state.value} for {new_state.value}",
                last_state=self.last_state,
            )
        if new_state is StepState.FAILED:
            logger.warning("step.failed_state", from_state=self.state.value)
            self.state = StepState.FAILED
            return
        if new_state.ordinal <= self.state.ordinal:
            raise InvalidTransitionError(
                f"Backward transition {self.state.value} -> {new_state.value}",
                last_state=self.last_state,
            )
        logger.info("step.transition", from_state=self.state.value, to_state=new_state.value)
        self.state = new_state
        self.last_state = new_state

    # -- driver loop -----------------------------------------------------------

    def _steps(self) -> list[tuple[str, Optional[StepState], StepFn]]:
        return [
            ("landing", None, self._land),
            ("category", StepState.CATEGORY_SELECTED, self._select_category),
            ("country", StepState.COUNTRY_SELECTED, self._select_country),
            ("plate", StepState.PLATE_ENTERED, self._enter_plate),
            ("cart", StepState.IN_CART, self._add_to_cart),
            ("checkout", StepState.CHECKOUT_REACHED, self._go_to_checkout),
            ("payment", StepState.PAYMENT_REDIRECTED, self._trigger_payment),
        ]

    async def run(self) -> StepState:
        """
        Run every step in order.

        Returns PAYMENT_REDIRECTED on success. On failure the state becomes
        FAILED and the error is raised with last_state set to the last stage
        reached.
        """
        for name, target, step in self._steps():
            await self._run_step(name, target, step)
        return self.state

    async def _run_step(self, name: str, target: Optional[StepState], step: StepFn) -> None:
        bind_request_context(step=name)
        max_attempts = self.config.step_max_attempts
        last_error: Optional[BaseException] = None

        for attempt in range(1, max_attempts + 1):
            logger.info("step.attempt", attempt=attempt, max_attempts=max_attempts)
            try:
                await step()
            except ExtractionFailure as e:
                # A reload after the pay click could submit the order twice.
                self._fail(e)
                raise
            except RETRYABLE_ERRORS as e:
                last_error = e
                logger.warning(
                    "step.attempt_failed",
                    attempt=attempt,
                    error_type=type(e).__name__,
                    error=str(e)[:300],
                )
                if attempt < max_attempts and name != "landing":
                    try:
                        await self._reload()
                    except PlaywrightError as reload_error:
                        # Counts against this attempt; a closed page fails the next one too.
                        last_error = reload_error
                        logger.warning(
                            "step.reload_failed",
                            attempt=attempt,
                            error_type=type(reload_error).__name__,
                            error=str(reload_error)[:300],
                        )
                continue
            if target is not None:
                self.transition(target)
            logger.info("step.completed", attempt=attempt)
            return

        error = self._as_domain_error(name, last_error)
        self._fail(error)
        if error is last_error:
            raise error
        raise error from last_error

    def _fail(self, error: VignetteAutomationError) -> None:
        error.last_state = self.last_state
        self.transition(StepState.FAILED)
        logger.error(
            "step.exhausted",
            last_state=self.last_state.value,
            error_type=type(error).__name__,
            error=str(error)[:300],
        )

    @staticmethod
    def _as_domain_error(name: str, error: Optional[BaseException]) -> VignetteAutomationError:
        if isinstance(error, VignetteAutomationError):
            return error
        if isinstance(error, PlaywrightTimeoutError):
            return StepNotReadyError(f"Step {name} timed out: {error}")
        return VignetteAutomationError(f"Step {name} failed: {error}")

    async def _reload(self) -> None:
        result = await navigate_with_retry(
            self.page,
            reload=True,
            nav_timeout_ms=self.config.nav_timeout_ms,
        )
        if not result.success:
            logger.warning("step.reload_failed", error_summary=result.error_summary)
            return
        await wait_for_page_ready(self.page)

    async def _settle(self) -> None:
        if self.settle_ms:
            await asyncio.sleep(self.settle_ms / 1000)

    async def _await_ready(self, state: StepState) -> None:
        await wait_for_step_ready(
            self.page,
            self.resolver,
            self.adapter.readiness(state),
            step=state.value,
            timeout_ms=self.config.step_timeout_ms,
        )

    # -- steps -----------------------------------------------------------------

    async def _land(self) -> None:
        result = await navigate_with_retry(
            self.page,
            self.adapter.start_url,
            nav_timeout_ms=self.config.nav_timeout_ms,
        )
        if not result.success:
            raise NavigationError(f"Could not load {self.adapter.start_url}: {result.error_summary}")
        await wait_for_page_ready(self.page)
        await dismiss_cookie_banner(self.resolver)
        await self._await_ready(StepState.LANDING)

    async def _select_category(self) -> None:
        category = await self.adapter.resolve_category(self.resolver, self.order)
        await click_element(category.locator, label=category.target.key)
        await self._settle()

        start_date = await self.adapter.resolve_start_date(self.resolver, self.order)
        if start_date is not None and self.order.start_date:
            await self._fill_field(start_date, self.order.start_date)

        await self._await_ready(StepState.CATEGORY_SELECTED)

    async def _select_country(self) -> None:
        controls = await self.adapter.resolve_country(self.resolver, self.order)
        opener = controls.opener

        if opener.snapshot.tag == "select":
            await self._select_native(opener, controls.option.synonyms)
        else:
            await click_element(opener.locator, label=opener.target.key)
            if opener.snapshot.tag == "input":
                # Autocomplete comboboxes filter the overlay while typing.
                await opener.locator.fill(controls.display_name)
            await self._settle()
            option = await self.resolver.resolve(controls.option, controls.overlay)
            await click_element(option.locator, label=controls.option.key)
        await self._settle()
        await self._await_ready(StepState.COUNTRY_SELECTED)

    async def _select_native(self, opener: ResolvedElement, names: tuple[str, ...]) -> None:
        for name in names:
            try:
                await select_value(opener.locator, name)
                return
            except PlaywrightError:
                continue
        raise ElementNotFoundError(
            f"No country option among {list(names)}",
            target=opener.target.key,
        )

    async def _enter_plate(self) -> None:
        plate = self.order.plate_number
        fields = await self.adapter.resolve_plate_fields(self.resolver, self.order)
        self._plate_locators = []

        await type_into(fields.primary.locator, plate, label="plate")
        await claim_element(fields.primary.locator)
        self._plate_locators.append(fields.primary.locator)

        if fields.confirmation is not None:
            confirmation = await self.resolver.try_resolve(fields.confirmation)
            if confirmation is None:
                logger.info("plate.no_confirmation_field")
            else:
                await type_into(confirmation.locator, plate, label="plate_confirmation")
                await claim_element(confirmation.locator)
                self._plate_locators.append(confirmation.locator)

        email = await self.adapter.resolve_email_field(self.resolver, self.order)
        if email is not None:
            await type_into(email.locator, self.order.email, label="email")

        await self._settle()
        await self._await_ready(StepState.PLATE_ENTERED)

    async def _fill_field(self, element: ResolvedElement, value: str) -> None:
        if element.snapshot.type == "date":
            await element.locator.fill(value)
            await dispatch_input_events(element.locator)
        else:
            await type_into(element.locator, value, label=element.target.key)

    async def _add_to_cart(self) -> None:
        action = await self.adapter.resolve_cart_action(self.resolver, self.order)
        if not await wait_until_enabled(action.locator):
            logger.info("cart.control_disabled", redispatching=len(self._plate_locators))
            for locator in self._plate_locators:
                await dispatch_input_events(locator)
            if not await wait_until_enabled(action.locator):
                raise StepNotReadyError("Add-to-cart control stayed disabled")
        await click_element(action.locator, label=action.target.key)
        await self._settle()
        await self._await_ready(StepState.IN_CART)

    async def _go_to_checkout(self) -> None:
        action = await self.adapter.resolve_checkout_action(self.resolver, self.order)
        await click_element(action.locator, label=action.target.key)
        await self._settle()
        await self._await_ready(StepState.CHECKOUT_REACHED)

    async def _trigger_payment(self) -> None:
        controls = await self.adapter.resolve_payment_action(self.resolver, self.order)

        if controls.method is not None:
            await click_element(controls.method.locator, label=controls.method.target.key)
            await self._settle()

        if controls.terms is not None:
            await self._tick(controls.terms)

        self.collector.arm_polling(
            window_ms=self.config.capture_window_ms,
            interval_ms=self.config.capture_poll_interval_ms,
        )
        await click_element(controls.submit.locator, label=controls.submit.target.key)
        logger.info("payment.triggered")

        captured = await self.collector.wait_for_capture(self.config.capture_window_ms / 1000)
        if captured is None:
            raise ExtractionFailure(
                f"No gateway URL observed within {self.config.capture_window_ms} ms"
            )

    async def _tick(self, terms: ResolvedElement) -> None:
        try:
            if await terms.locator.is_checked():
                return
        except PlaywrightError:
            # Labels and custom checkboxes have no checked state; click them.
            pass
        await click_element(terms.locator, label=terms.target.key)
        await self._settle()
