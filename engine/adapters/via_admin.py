"""
Adapter for the federal e-vignette shop (via.admin.ch).

The shop is an Angular Material SPA served in DE/FR/IT/EN. Category tiles,
the country combobox (options render in a CDK overlay), a plate field that
grows a confirmation copy after blur, a cart, and a checkout page whose pay
control redirects to the federal payment gateway.
"""

from __future__ import annotations

from typing import Optional

from engine.adapters.base import CountryControls, PaymentControls, PlateFields
from engine.dom.readiness import StepReadiness
from engine.dom.resolver import (
    PAGE_SCOPE,
    ElementScope,
    ResolvedElement,
    SelectorResolver,
    SemanticTarget,
)
from engine.dom.synonyms import CONFIRMATION_WORDS, country_synonyms
from engine.gateway import GatewayPattern
from engine.models import OrderRequest, StepState
from shared.logging import get_logger

logger = get_logger(__name__)

OPTIONAL_CONTROL_TIMEOUT_MS = 3000

GATEWAY = GatewayPattern(
    host="pajar.bazg.admin.ch",
    path_pattern=r"/(?:payment|pay|checkout)(?:/[A-Za-z0-9_\-.~%]+)+/?",
)

COUNTRY_OVERLAY = ElementScope(".cdk-overlay-container, [role='listbox']", "country list")

CATEGORY_TARGETS = {
    "motor_vehicle": SemanticTarget.from_key(
        "category.motor_vehicle",
        tokens=("motorfahrzeug", "motor-vehicle", "motor_vehicle", "motorvehicle"),
    ),
    "trailer": SemanticTarget.from_key(
        "category.trailer",
        tokens=("anhanger", "anhaenger", "trailer", "remorque"),
    ),
}

START_DATE = SemanticTarget.from_key(
    "start_date",
    kind="field",
    tokens=("startdate", "start-date", "validfrom", "valid-from", "gultigab", "datefrom"),
    field_type="date",
)

COUNTRY_OPENER = SemanticTarget.from_key(
    "country_opener",
    kind="field",
    tokens=("country", "land", "pays", "paese", "nationality"),
    exclude_tokens=("kontrollschild", "plate"),
)

PLATE_PRIMARY = SemanticTarget.from_key(
    "plate",
    kind="field",
    tokens=("plate", "kontrollschild", "kennzeichen", "licence", "license", "immatric", "targa"),
    exclude_tokens=CONFIRMATION_WORDS + ("country",),
    field_type="text",
    position=0,
)

PLATE_CONFIRMATION = SemanticTarget.from_key(
    "plate_confirmation",
    kind="field",
    tokens=CONFIRMATION_WORDS,
    exclude_tokens=("mail",),
    field_type="text",
    position=0,
)

EMAIL = SemanticTarget.from_key(
    "email",
    kind="field",
    tokens=("email", "e-mail"),
    exclude_tokens=CONFIRMATION_WORDS,
    field_type="email",
)

ADD_TO_CART = SemanticTarget.from_key(
    "add_to_cart",
    tokens=("add-to-cart", "addtocart", "add_to_cart", "warenkorb-hinzufugen"),
)

CHECKOUT = SemanticTarget.from_key(
    "checkout",
    tokens=("checkout", "zur-kasse", "to-checkout"),
)

TERMS = SemanticTarget.from_key(
    "terms",
    kind="checkbox",
    tokens=("terms", "agb", "agree", "conditions", "accepttc"),
)

PAYMENT_METHOD_TOKENS = {
    "creditcard": ("creditcard", "credit-card", "kreditkarte"),
    "paypal": ("paypal",),
    "twint": ("twint",),
    "postfinance": ("postfinance",),
}


def _payment_method_target(key: str) -> SemanticTarget:
    return SemanticTarget.from_key(
        f"payment.{key}",
        tokens=PAYMENT_METHOD_TOKENS.get(key, (key,)),
    )


def _pay_target(method_key: str) -> SemanticTarget:
    # "Pay" is a substring of the other methods' labels; those never count as the pay control.
    other_methods = tuple(
        label.lower() for key, labels in PAYMENT_METHOD_TOKENS.items() if key != method_key for label in labels
    )
    return SemanticTarget.from_key(
        "pay",
        tokens=("pay-now", "paynow", "pay-button", "submit-payment"),
        exclude_tokens=other_methods + ("payment method", "zahlungsart"),
    )


class ViaAdminAdapter:
    name = "via_admin"
    start_url = "https://via.admin.ch/shop/dashboard"
    gateway = GATEWAY

    _READINESS = {
        StepState.LANDING: StepReadiness(marker=CATEGORY_TARGETS["motor_vehicle"]),
        StepState.CATEGORY_SELECTED: StepReadiness(marker=COUNTRY_OPENER),
        StepState.COUNTRY_SELECTED: StepReadiness(marker=PLATE_PRIMARY),
        StepState.PLATE_ENTERED: StepReadiness(marker=ADD_TO_CART),
        StepState.IN_CART: StepReadiness(url_segments=("/cart", "/warenkorb"), marker=CHECKOUT),
        StepState.CHECKOUT_REACHED: StepReadiness(
            url_segments=("/checkout", "/kasse"),
            marker=_pay_target("creditcard"),
        ),
    }

    def readiness(self, state: StepState) -> StepReadiness:
        return self._READINESS.get(state, StepReadiness())

    async def resolve_category(self, resolver: SelectorResolver, order: OrderRequest) -> ResolvedElement:
        return await resolver.resolve(CATEGORY_TARGETS[order.vehicle_category])

    async def resolve_start_date(
        self, resolver: SelectorResolver, order: OrderRequest
    ) -> Optional[ResolvedElement]:
        # Annual vignettes have no start date on the shop; the field only exists for some products.
        if not order.start_date:
            return None
        return await resolver.try_resolve(START_DATE, timeout_ms=OPTIONAL_CONTROL_TIMEOUT_MS)

    async def resolve_country(self, resolver: SelectorResolver, order: OrderRequest) -> CountryControls:
        names = country_synonyms(order.country)
        opener = await resolver.resolve(COUNTRY_OPENER)
        option = SemanticTarget(key=f"country.{order.country}", kind="option", synonyms=names)
        return CountryControls(
            opener=opener,
            option=option,
            overlay=COUNTRY_OVERLAY,
            display_name=names[0],
        )

    async def resolve_plate_fields(self, resolver: SelectorResolver, order: OrderRequest) -> PlateFields:
        primary = await resolver.resolve(PLATE_PRIMARY)
        return PlateFields(primary=primary, confirmation=PLATE_CONFIRMATION)

    async def resolve_email_field(
        self, resolver: SelectorResolver, order: OrderRequest
    ) -> Optional[ResolvedElement]:
        return await resolver.try_resolve(EMAIL, timeout_ms=OPTIONAL_CONTROL_TIMEOUT_MS)

    async def resolve_cart_action(self, resolver: SelectorResolver, order: OrderRequest) -> ResolvedElement:
        return await resolver.resolve(ADD_TO_CART)

    async def resolve_checkout_action(self, resolver: SelectorResolver, order: OrderRequest) -> ResolvedElement:
        return await resolver.resolve(CHECKOUT)

    async def resolve_payment_action(self, resolver: SelectorResolver, order: OrderRequest) -> PaymentControls:
        method = await resolver.try_resolve(
            _payment_method_target(order.payment_key),
            PAGE_SCOPE,
            timeout_ms=OPTIONAL_CONTROL_TIMEOUT_MS,
        )
        if method is None:
            logger.info("payment.method_not_offered", method=order.payment_key)
        terms = await resolver.try_resolve(TERMS, timeout_ms=OPTIONAL_CONTROL_TIMEOUT_MS)
        submit = await resolver.resolve(_pay_target(order.payment_key))
        return PaymentControls(submit=submit, method=method, terms=terms)
