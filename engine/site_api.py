"""
Direct HTTP access to the vignette site.

The shop publishes no stable ordering API. These helpers try candidate
endpoints and query order status, falling back to a simulated "valid"
status when the endpoint is unavailable.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import requests

from engine.dom.constants import USER_AGENT
from shared.logging import get_logger

logger = get_logger(__name__)

CANDIDATE_ENDPOINTS = (
    "/api/order",
    "/api/vignette",
    "/api/payment",
    "/api/status",
    "/rest/order",
    "/v1/order",
)

DEFAULT_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-US,en;q=0.9",
}

DISCOVERY_TIMEOUT_S = 5
STATUS_TIMEOUT_S = 10
MOCK_VALIDITY_DAYS = 365


def discover_api_endpoints(
    base_url: str,
    *,
    session: Optional[requests.Session] = None,
) -> list[dict]:
    """GET each candidate path; report every one that does not answer 404."""
    http = session or requests.Session()
    discovered: list[dict] = []
    for endpoint in CANDIDATE_ENDPOINTS:
        url = f"{base_url}{endpoint}"
        try:
            response = http.get(url, headers=DEFAULT_HEADERS, timeout=DISCOVERY_TIMEOUT_S)
        except requests.RequestException as e:
            logger.debug("site_api.endpoint_check_failed", endpoint=endpoint, error=str(e)[:200])
            continue
        if response.status_code == 404:
            continue
        discovered.append(
            {
                "endpoint": endpoint,
                "status": response.status_code,
                "contentType": response.headers.get("content-type"),
            }
        )
        logger.info("site_api.endpoint_found", endpoint=endpoint, status=response.status_code)
    return discovered


def _mock_status(order_id: str) -> dict:
    now = datetime.now(timezone.utc)
    return {
        "success": True,
        "method": "mock",
        "status": "valid",
        "data": {
            "orderId": order_id,
            "status": "valid",
            "validFrom": now.isoformat(),
            "validUntil": (now + timedelta(days=MOCK_VALIDITY_DAYS)).isoformat(),
        },
    }


def check_vignette_status(
    order_id: str,
    base_url: str,
    *,
    session: Optional[requests.Session] = None,
) -> dict:
    """
    Query {base_url}/api/status/{order_id}.

    Any transport error, non-2xx answer or non-JSON body falls back to the
    simulated payload (method "mock").
    """
    http = session or requests.Session()
    try:
        response = http.get(
            f"{base_url}/api/status/{order_id}",
            headers=DEFAULT_HEADERS,
            timeout=STATUS_TIMEOUT_S,
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.info("site_api.status_mock", order_id=order_id, reason=str(e)[:200])
        return _mock_status(order_id)

    return {
        "success": True,
        "method": "direct_api",
        "status": data.get("status") if isinstance(data, dict) else None,
        "data": data,
    }


async def check_status(delay_seconds: float = 10) -> str:
    """Simulated status collaborator: reports "valid" after a fixed delay."""
    await asyncio.sleep(delay_seconds)
    return "valid"
