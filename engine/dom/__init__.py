"""
Playwright helpers for driving the checkout funnel.

Semantic element resolution, interaction fallbacks, readiness predicates,
navigation retry and cookie banner handling.

Public API: re-exports the symbols used by the step driver, the adapters and
tests so that `from engine.dom import ...` stays stable.
"""

from __future__ import annotations

from engine.dom.browser import create_browser_context
from engine.dom.consent import dismiss_cookie_banner
from engine.dom.constants import (
    CANDIDATE_ATTR,
    CAPTURE_POLL_INTERVAL_MS,
    CAPTURE_WINDOW_MS,
    CLAIMED_ATTR,
    RESOLVE_POLL_INTERVAL_MS,
    RESOLVE_TIMEOUT_MS,
    STEP_TIMEOUT_MS,
)
from engine.dom.interactions import (
    claim_element,
    click_element,
    dispatch_input_events,
    select_value,
    type_into,
    wait_until_enabled,
)
from engine.dom.navigation_retry import (
    NavigateResult,
    is_bot_block_page,
    navigate_with_retry,
)
from engine.dom.readiness import StepReadiness, wait_for_page_ready, wait_for_step_ready
from engine.dom.resolver import (
    PAGE_SCOPE,
    ElementScope,
    ElementSnapshot,
    ResolvedElement,
    SelectorResolver,
    SemanticTarget,
    rank_candidates,
)
from engine.dom.synonyms import country_synonyms, synonyms_for
from engine.dom.text import normalize_for_match, normalize_whitespace

__all__ = [
    # constants
    "CANDIDATE_ATTR",
    "CLAIMED_ATTR",
    "RESOLVE_TIMEOUT_MS",
    "RESOLVE_POLL_INTERVAL_MS",
    "STEP_TIMEOUT_MS",
    "CAPTURE_WINDOW_MS",
    "CAPTURE_POLL_INTERVAL_MS",
    # browser
    "create_browser_context",
    # consent
    "dismiss_cookie_banner",
    # interactions
    "click_element",
    "type_into",
    "select_value",
    "dispatch_input_events",
    "claim_element",
    "wait_until_enabled",
    # navigation_retry
    "NavigateResult",
    "navigate_with_retry",
    "is_bot_block_page",
    # readiness
    "StepReadiness",
    "wait_for_page_ready",
    "wait_for_step_ready",
    # resolver
    "SemanticTarget",
    "ElementScope",
    "ElementSnapshot",
    "ResolvedElement",
    "SelectorResolver",
    "PAGE_SCOPE",
    "rank_candidates",
    # synonyms / text
    "synonyms_for",
    "country_synonyms",
    "normalize_for_match",
    "normalize_whitespace",
]
