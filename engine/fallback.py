"""
Fallback payment URL synthesis.

Used only when the funnel reached checkout but no gateway URL was observed.
The URL lives on the gateway's own host under a path segment that marks it
as a fallback, so callers (and humans) can tell it apart from a captured
one; it still matches the strict gateway pattern.
"""

from __future__ import annotations

import itertools
import secrets
import time
from typing import Callable
from urllib.parse import quote

from engine.gateway import GatewayPattern
from engine.models import OrderRequest, normalize_plate


class FallbackURLSynthesizer:
    """
    https://<gateway-host><fallback_path>/<PLATE>/<epoch-ms>-<counter>-<random>

    The process-wide counter plus random suffix keeps two calls in the same
    millisecond distinct.
    """

    _counter = itertools.count(1)

    def __init__(
        self,
        gateway: GatewayPattern,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.gateway = gateway
        self._clock = clock

    def synthesize(self, order: OrderRequest) -> str:
        plate = quote(normalize_plate(order.plate_number) or "UNKNOWN", safe="")
        millis = int(self._clock() * 1000)
        serial = next(self._counter)
        suffix = secrets.token_hex(4)
        return f"{self.gateway.base_url}{self.gateway.fallback_path}/{plate}/{millis}-{serial}-{suffix}"
