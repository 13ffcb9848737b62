"""
Tests for vignette endpoints.

These tests cover:
- JSON clients get JSON, form posts get an HTML page
- failed automation maps to 500 with the last reached funnel state
- malformed orders map to 500 before any browser work
- a mail outage never fails an order
- status, discovery and health endpoints
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

from fastapi import status

from engine.errors import StepNotReadyError
from engine.models import SessionResult, StepState

PAYMENT_URL = "https://pajar.bazg.admin.ch/payment/8f1c2a/redirect"

ORDER_JSON = {
    "plateNumber": "GF23WSN",
    "startDate": "2025-08-29",
    "vignetteType": "annual",
    "vehicleType": "car",
    "email": "test@example.com",
    "paymentMethod": "creditcard",
}


def _captured(order_id: str = "vignette_1") -> SessionResult:
    return SessionResult(
        order_id=order_id,
        success=True,
        last_state=StepState.PAYMENT_REDIRECTED,
        payment_url=PAYMENT_URL,
        method="captured",
    )


def _failed() -> SessionResult:
    return SessionResult(
        order_id="vignette_2",
        success=False,
        last_state=StepState.IN_CART,
        error=StepNotReadyError("checkout marker missing", last_state=StepState.IN_CART),
    )


def test_json_order_returns_payment_url(client):
    """A JSON order answers JSON with the captured URL and no email."""
    with patch(
        "api.routes.vignette.extract_payment_url",
        new=AsyncMock(return_value=_captured()),
    ) as extract, patch("api.routes.vignette.send_confirmation") as send:
        response = client.post("/vignette/order", json=ORDER_JSON)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["success"] is True
    assert data["paymentUrl"] == PAYMENT_URL
    assert data["orderId"] == "vignette_1"
    assert data["method"] == "captured"
    assert data["status"] == "pending"

    order = extract.await_args.args[0]
    assert order.plate_number == "GF23WSN"
    assert order.start_date == "2025-08-29"
    send.assert_not_called()


def test_form_order_returns_html_and_sends_confirmation(client):
    """A browser form post gets the confirmation page and a background email."""
    form = {
        "plateNumber": "GF23WSN",
        "email": "test@example.com",
        "vehicleType": "car",
        "paymentMethod": "twint",
    }
    with patch(
        "api.routes.vignette.extract_payment_url",
        new=AsyncMock(return_value=_captured()),
    ) as extract, patch("api.routes.vignette.send_confirmation") as send:
        response = client.post("/vignette/order", data=form)

    assert response.status_code == status.HTTP_200_OK
    assert response.headers["content-type"].startswith("text/html")
    assert PAYMENT_URL in response.text
    assert "vignette_1" in response.text
    assert extract.await_args.args[0].payment_method == "twint"

    send.assert_called_once()
    address, message, _config = send.call_args.args
    assert address == "test@example.com"
    assert PAYMENT_URL in message


def test_failed_automation_maps_to_500_with_last_state(client):
    """A failed result is a 500 carrying the user-safe summary and the last state."""
    with patch(
        "api.routes.vignette.extract_payment_url",
        new=AsyncMock(return_value=_failed()),
    ):
        response = client.post("/vignette/order", json=ORDER_JSON)

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    data = response.json()
    assert data["success"] is False
    assert data["error"] == "Checkout step not ready"
    assert data["lastState"] == "InCart"
    assert "checkout marker missing" not in response.text


def test_failed_form_order_sends_error_notification(client):
    with patch(
        "api.routes.vignette.extract_payment_url",
        new=AsyncMock(return_value=_failed()),
    ), patch("api.routes.vignette.send_error_notification") as notify:
        response = client.post("/vignette/order", data={"plateNumber": "GF23WSN", "email": "test@example.com"})

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert "Checkout step not ready" in response.text
    notify.assert_called_once()
    assert notify.call_args.args[:2] == ("test@example.com", "Checkout step not ready")


def test_unexpected_exception_maps_to_generic_500(client):
    with patch(
        "api.routes.vignette.extract_payment_url",
        new=AsyncMock(side_effect=RuntimeError("stack detail")),
    ):
        response = client.post("/vignette/order", json=ORDER_JSON)

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["error"] == "Automation failed"
    assert "stack detail" not in response.text


def test_missing_email_maps_to_500_before_browser_work(client):
    """Validation runs in the engine before any browser is launched."""
    body = {**ORDER_JSON, "email": ""}
    with patch("engine.orchestrator.PaymentURLCollector") as collector_cls:
        response = client.post("/vignette/order", json=body)

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["error"] == "Missing required fields: email"
    collector_cls.assert_not_called()


def test_malformed_email_maps_to_500(client):
    response = client.post("/vignette/order", json={**ORDER_JSON, "email": "not-an-email"})

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["error"] == "Invalid email format"


def test_malformed_json_body_maps_to_500(client):
    response = client.post(
        "/vignette/order",
        content=b"{not json",
        headers={"content-type": "application/json"},
    )

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["error"] == "Invalid request body"


def test_mail_outage_does_not_fail_the_order(client):
    """SMTP errors are logged by the mailer; the order still succeeds."""
    with patch(
        "api.routes.vignette.extract_payment_url",
        new=AsyncMock(return_value=_captured()),
    ), patch("shared.mailer._deliver", side_effect=OSError("SMTP down")) as deliver:
        response = client.post("/vignette/order", data={"plateNumber": "GF23WSN", "email": "test@example.com"})

    assert response.status_code == status.HTTP_200_OK
    assert PAYMENT_URL in response.text
    deliver.assert_called_once()


def test_status_endpoint(client):
    outcome = {
        "success": True,
        "method": "mock",
        "status": "valid",
        "data": {"orderId": "vignette_1", "status": "valid"},
    }
    with patch("api.routes.vignette.check_vignette_status", return_value=outcome) as check:
        response = client.get("/vignette/status/vignette_1")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["orderId"] == "vignette_1"
    assert data["method"] == "mock"
    assert data["status"] == "valid"
    check.assert_called_once_with("vignette_1", "https://site.example.test")


def test_discover_endpoint(client):
    found = [{"endpoint": "/api/status", "status": 401, "contentType": "text/html"}]
    with patch("api.routes.vignette.discover_api_endpoints", return_value=found):
        response = client.get("/vignette/discover")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["discoveredEndpoints"] == found


def test_health_endpoints(client):
    assert client.get("/health").json() == {"status": "ok"}

    data = client.get("/vignette/health").json()
    assert data["status"] == "healthy"
    assert data["service"] == "Swiss Vignette Automation API"
