"""
Strict gateway URL pattern.

A gateway URL is identified by a fixed host plus a path shape, never by
keyword heuristics: the shop's own "checkout" and "payment" pages contain
the same words and would be false positives.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from urllib.parse import urlparse


@dataclass(frozen=True)
class GatewayPattern:
    """
    host: exact hostname of the payment processor page.
    path_pattern: regex the URL path must fully match.
    """

    host: str
    path_pattern: str
    fallback_path: str = "/payment/fallback"
    _compiled: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_compiled", re.compile(self.path_pattern))

    def matches(self, url: str | None) -> bool:
        if not url or not isinstance(url, str):
            return False
        try:
            parsed = urlparse(url.strip())
        except ValueError:
            return False
        if parsed.scheme != "https":
            return False
        if (parsed.hostname or "").lower() != self.host:
            return False
        return bool(self._compiled.fullmatch(parsed.path or ""))

    @property
    def base_url(self) -> str:
        return f"https://{self.host}"
