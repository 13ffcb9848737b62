"""
Unit tests for endpoint discovery and status lookup (requests session mocked).
"""

from __future__ import annotations

from datetime import datetime
from unittest.mock import MagicMock

import pytest
import requests

from engine.site_api import (
    CANDIDATE_ENDPOINTS,
    check_status,
    check_vignette_status,
    discover_api_endpoints,
)

BASE = "https://www.vignetteswitzerland.com"


def _response(status_code: int, json_body=None, content_type="application/json"):
    response = MagicMock()
    response.status_code = status_code
    response.headers = {"content-type": content_type}
    response.json.return_value = json_body
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code}")
    return response


def test_discover_reports_non_404_endpoints():
    session = MagicMock()
    session.get.side_effect = [
        _response(404),
        _response(200),
        _response(404),
        _response(401, content_type="text/html"),
        requests.ConnectionError("reset"),
        _response(404),
    ]

    found = discover_api_endpoints(BASE, session=session)

    assert [f["endpoint"] for f in found] == ["/api/vignette", "/api/status"]
    assert found[1] == {"endpoint": "/api/status", "status": 401, "contentType": "text/html"}
    assert session.get.call_count == len(CANDIDATE_ENDPOINTS)


def test_status_uses_direct_api_when_available():
    session = MagicMock()
    session.get.return_value = _response(200, {"status": "active", "plate": "ZH445789"})

    outcome = check_vignette_status("vignette_1", BASE, session=session)

    assert outcome["method"] == "direct_api"
    assert outcome["status"] == "active"
    session.get.assert_called_once()
    assert session.get.call_args.args[0] == f"{BASE}/api/status/vignette_1"


@pytest.mark.parametrize(
    "failure",
    [requests.Timeout("slow"), _response(500)],
)
def test_status_falls_back_to_mock(failure):
    session = MagicMock()
    if isinstance(failure, Exception):
        session.get.side_effect = failure
    else:
        session.get.return_value = failure

    outcome = check_vignette_status("vignette_2", BASE, session=session)

    assert outcome["method"] == "mock"
    assert outcome["status"] == "valid"
    valid_from = datetime.fromisoformat(outcome["data"]["validFrom"])
    valid_until = datetime.fromisoformat(outcome["data"]["validUntil"])
    assert (valid_until - valid_from).days == 365


@pytest.mark.asyncio
async def test_check_status_resolves_valid():
    assert await check_status(delay_seconds=0) == "valid"
