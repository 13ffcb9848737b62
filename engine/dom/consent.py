"""
Cookie banner dismissal.

The shop shows a consent banner on first load that overlays the funnel.
Dismissal is best effort: a missing banner or a failed click never fails the
landing step.
"""

from __future__ import annotations

from engine.dom.interactions import click_element
from engine.dom.resolver import ElementScope, SelectorResolver, SemanticTarget
from shared.logging import get_logger

logger = get_logger(__name__)

CONSENT_BANNER_TIMEOUT_MS = 3000

CONSENT_SCOPES: tuple[ElementScope, ...] = (
    ElementScope(
        "[id*='cookie'], [class*='cookie'], [id*='consent'], [class*='consent'], [role='dialog']",
        "consent banner",
    ),
    ElementScope("body", "page"),
)

COOKIE_ACCEPT = SemanticTarget.from_key(
    "cookie_accept",
    tokens=("accept", "akzeptier", "consent-accept", "cookie-accept"),
    exclude_tokens=("settings", "einstellungen", "parametres", "impostazioni", "reject", "ablehnen"),
)


async def dismiss_cookie_banner(resolver: SelectorResolver) -> bool:
    """Click the banner's accept control if one shows up. Returns True when clicked."""
    for scope in CONSENT_SCOPES:
        found = await resolver.try_resolve(
            COOKIE_ACCEPT, scope, timeout_ms=CONSENT_BANNER_TIMEOUT_MS
        )
        if found is None:
            continue
        try:
            await click_element(found.locator, label=COOKIE_ACCEPT.key)
        except Exception as e:
            logger.warning("consent.dismiss_failed", scope=scope.description, error=str(e)[:200])
            return False
        logger.info("consent.dismissed", scope=scope.description, strategy=found.strategy)
        return True

    logger.info("consent.no_banner")
    return False
