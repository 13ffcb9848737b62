"""
Order, funnel state and result types for the checkout engine.

OrderRequest is created by the caller and normalized by validate_order();
StepState is owned by the StepDriver; CapturedURL records are appended by the
PaymentURLCollector; SessionResult is built once per order at teardown.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Literal, Optional

from engine.errors import ValidationError, VignetteAutomationError
from shared.logging import get_logger

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# Separators users type into plates: "ZH 445 789", "GF-23-WSN", "AB.123"
PLATE_SEPARATORS = re.compile(r"[\s\-\.·/_]+")

VEHICLE_CATEGORIES = {
    "car": "motor_vehicle",
    "camper": "motor_vehicle",
    "motorbike": "motor_vehicle",
    "motorcycle": "motor_vehicle",
    "trailer": "trailer",
    "caravan": "trailer",
}
PAYMENT_METHODS = {
    "creditcard": "creditcard",
    "credit card": "creditcard",
    # Apple Pay is not offered by the shop; card is the closest method.
    "applepay": "creditcard",
    "apple pay": "creditcard",
    "paypal": "paypal",
    "twint": "twint",
    "postfinance": "postfinance",
}

CaptureSource = Literal["response", "navigation", "polling"]
ResultMethod = Literal["captured", "fallback"]


class StepState(str, Enum):
    """Funnel stage reached by the StepDriver. Forward-only; FAILED is terminal."""

    LANDING = "Landing"
    CATEGORY_SELECTED = "CategorySelected"
    COUNTRY_SELECTED = "CountrySelected"
    PLATE_ENTERED = "PlateEntered"
    IN_CART = "InCart"
    CHECKOUT_REACHED = "CheckoutReached"
    PAYMENT_REDIRECTED = "PaymentRedirected"
    FAILED = "Failed"

    @property
    def ordinal(self) -> int:
        if self is StepState.FAILED:
            return len(FUNNEL_ORDER)
        return FUNNEL_ORDER.index(self)

    def reached(self, other: "StepState") -> bool:
        """True if this state is at or beyond `other` in the funnel (FAILED never is)."""
        if self is StepState.FAILED or other is StepState.FAILED:
            return False
        return self.ordinal >= other.ordinal


FUNNEL_ORDER: tuple[StepState, ...] = (
    StepState.LANDING,
    StepState.CATEGORY_SELECTED,
    StepState.COUNTRY_SELECTED,
    StepState.PLATE_ENTERED,
    StepState.IN_CART,
    StepState.CHECKOUT_REACHED,
    StepState.PAYMENT_REDIRECTED,
)


@dataclass(frozen=True)
class OrderRequest:
    plate_number: str
    email: str
    start_date: Optional[str] = None
    vignette_type: str = "annual"
    vehicle_type: str = "car"
    payment_method: str = "creditcard"
    # ISO-3166 alpha-2 of the registration country
    country: str = "GB"

    @property
    def vehicle_category(self) -> str:
        return VEHICLE_CATEGORIES.get(self.vehicle_type, "motor_vehicle")

    @property
    def payment_key(self) -> str:
        return PAYMENT_METHODS.get(self.payment_method, "creditcard")


def normalize_plate(plate: str) -> str:
    """Strip whitespace and separators and upper-case: 'gf 23-wsn' -> 'GF23WSN'."""
    return PLATE_SEPARATORS.sub("", plate or "").upper()


def validate_order(order: OrderRequest) -> OrderRequest:
    """
    Validate an order and return its normalized copy.

    Raises ValidationError for a missing plate or email, a malformed email,
    or a start_date that is not an ISO date. Unknown vehicle types and
    payment methods fall back to defaults with a warning.
    """
    missing = []
    if not (order.plate_number or "").strip():
        missing.append("plateNumber")
    if not (order.email or "").strip():
        missing.append("email")
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    email = order.email.strip()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email format")

    plate = normalize_plate(order.plate_number)
    if not plate:
        raise ValidationError("Missing required fields: plateNumber")

    start_date = (order.start_date or "").strip() or None
    if start_date is not None:
        try:
            date.fromisoformat(start_date)
        except ValueError:
            raise ValidationError(f"Invalid startDate: {start_date!r}") from None

    vehicle_type = (order.vehicle_type or "car").strip().lower()
    if vehicle_type not in VEHICLE_CATEGORIES:
        logger.warning("order.unknown_vehicle_type", vehicle_type=vehicle_type)

    payment_method = (order.payment_method or "creditcard").strip().lower()
    if payment_method not in PAYMENT_METHODS:
        logger.warning("order.unknown_payment_method", payment_method=payment_method)

    return replace(
        order,
        plate_number=plate,
        email=email,
        start_date=start_date,
        vignette_type=(order.vignette_type or "annual").strip().lower(),
        vehicle_type=vehicle_type,
        payment_method=payment_method,
        country=(order.country or "GB").strip().upper(),
    )


def new_order_id() -> str:
    """Per-call order identifier (timestamp based, not persisted)."""
    return f"vignette_{int(time.time() * 1000)}"


@dataclass(frozen=True)
class CapturedURL:
    value: str
    source: CaptureSource
    timestamp: float


@dataclass(frozen=True)
class SessionResult:
    """
    Outcome of one extract_payment_url call.

    success=True: payment_url is set and method says where it came from.
    success=False: payment_url and method are None and error carries the
    terminal failure together with the last reached StepState.
    """

    order_id: str
    success: bool
    last_state: StepState
    payment_url: Optional[str] = None
    method: Optional[ResultMethod] = None
    error: Optional[VignetteAutomationError] = None
    captures: tuple[CapturedURL, ...] = ()
