"""
Site adapters.

Registry keyed by the SITE_ADAPTER config value.
"""

from __future__ import annotations

from engine.adapters.base import CountryControls, PaymentControls, PlateFields, SiteAdapter
from engine.adapters.via_admin import ViaAdminAdapter

ADAPTERS: dict[str, type] = {
    ViaAdminAdapter.name: ViaAdminAdapter,
}


def get_adapter(name: str) -> SiteAdapter:
    """Instantiate the adapter registered under name. Raises ValueError when unknown."""
    try:
        return ADAPTERS[name]()
    except KeyError:
        raise ValueError(
            f"Unknown site adapter {name!r}; known: {', '.join(sorted(ADAPTERS))}"
        ) from None


__all__ = [
    "ADAPTERS",
    "CountryControls",
    "PaymentControls",
    "PlateFields",
    "SiteAdapter",
    "ViaAdminAdapter",
    "get_adapter",
]
