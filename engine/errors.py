"""
Error taxonomy for the checkout engine and user-safe summaries.

Every propagated failure carries the last StepState the funnel reached so an
operator can tell "site unreachable" from "site changed its markup" from
"payment step ran but no URL was observed". Raw exception text stays in logs;
API responses use `user_safe_summary`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from engine.models import StepState

# Canonical user-safe strings (no raw exception content in API responses).
USER_SAFE_ERROR_SUMMARIES = frozenset(
    {
        "Invalid order",
        "Site unreachable",
        "Site markup changed",
        "Checkout step not ready",
        "Payment URL not observed",
        "Automation failed",
    }
)


class VignetteAutomationError(Exception):
    """Base class; `last_state` is filled in by the StepDriver when known."""

    summary = "Automation failed"

    def __init__(self, message: str, *, last_state: Optional["StepState"] = None) -> None:
        super().__init__(message)
        self.message = message
        self.last_state = last_state

    @property
    def user_safe_summary(self) -> str:
        return self.summary

    def __str__(self) -> str:
        if self.last_state is None:
            return self.message
        return f"{self.message} (last state: {self.last_state.value})"


class ValidationError(VignetteAutomationError):
    """Malformed OrderRequest. Never retried."""

    summary = "Invalid order"

    @property
    def user_safe_summary(self) -> str:
        # Validation messages are built from field names only.
        return self.message


class NavigationError(VignetteAutomationError):
    """Page failed to load within the navigation timeout."""

    summary = "Site unreachable"


class StepNotReadyError(NavigationError):
    """A step's readiness predicate did not hold within the step timeout."""

    summary = "Checkout step not ready"


class ElementNotFoundError(VignetteAutomationError):
    """SelectorResolver exhausted every strategy for a required target."""

    summary = "Site markup changed"

    def __init__(
        self,
        message: str,
        *,
        target: Optional[str] = None,
        last_state: Optional["StepState"] = None,
    ) -> None:
        super().__init__(message, last_state=last_state)
        self.target = target


class ExtractionFailure(VignetteAutomationError):
    """Checkout was reached but no gateway URL was observed in the capture window."""

    summary = "Payment URL not observed"


class InvalidTransitionError(VignetteAutomationError):
    """Attempted backward or post-terminal StepState transition (programming error)."""


def get_user_safe_error_summary(
    exc: BaseException,
    fallback: str = "Automation failed",
) -> str:
    """
    Return a user-safe error summary for API responses.

    Domain errors map to their category summary; anything else maps to the
    fallback so unexpected exception text never leaks.
    """
    if isinstance(exc, VignetteAutomationError):
        return exc.user_safe_summary
    return fallback
