"""
Site adapter interface.

One StepDriver runs every funnel; what differs between shops (and between
revisions of one shop) lives behind this interface: where to start, which
semantic targets each step resolves, how each step proves it is ready, and
which gateway pattern identifies the payment URL.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from engine.dom.readiness import StepReadiness
from engine.dom.resolver import ElementScope, ResolvedElement, SelectorResolver, SemanticTarget
from engine.gateway import GatewayPattern
from engine.models import OrderRequest, StepState


@dataclass
class CountryControls:
    """
    opener: the dropdown/combobox (or a native <select>) for the country.
    option: target for the country entry inside the opened list.
    overlay: scope the option is searched in once the list is open.
    """

    opener: ResolvedElement
    option: SemanticTarget
    overlay: ElementScope
    display_name: str


@dataclass
class PlateFields:
    """The confirmation field may only exist after the primary one is blurred."""

    primary: ResolvedElement
    confirmation: Optional[SemanticTarget] = None


@dataclass
class PaymentControls:
    submit: ResolvedElement
    method: Optional[ResolvedElement] = None
    terms: Optional[ResolvedElement] = None


class SiteAdapter(Protocol):
    name: str
    start_url: str
    gateway: GatewayPattern

    def readiness(self, state: StepState) -> StepReadiness:
        """Predicate that proves the page is ready for the step leading out of `state`."""
        ...

    async def resolve_category(self, resolver: SelectorResolver, order: OrderRequest) -> ResolvedElement:
        ...

    async def resolve_start_date(
        self, resolver: SelectorResolver, order: OrderRequest
    ) -> Optional[ResolvedElement]:
        ...

    async def resolve_country(self, resolver: SelectorResolver, order: OrderRequest) -> CountryControls:
        ...

    async def resolve_plate_fields(self, resolver: SelectorResolver, order: OrderRequest) -> PlateFields:
        ...

    async def resolve_email_field(
        self, resolver: SelectorResolver, order: OrderRequest
    ) -> Optional[ResolvedElement]:
        ...

    async def resolve_cart_action(self, resolver: SelectorResolver, order: OrderRequest) -> ResolvedElement:
        ...

    async def resolve_checkout_action(self, resolver: SelectorResolver, order: OrderRequest) -> ResolvedElement:
        ...

    async def resolve_payment_action(self, resolver: SelectorResolver, order: OrderRequest) -> PaymentControls:
        ...
