"""
Route handlers for vignette endpoints.

POST /vignette/order answers JSON when the request's Content-Type or Accept
mentions application/json and an HTML page otherwise (browser form posts).
HTML submissions also get an email, sent after the response is delivered.
"""

from __future__ import annotations

from typing import Annotated, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, Response

from api.rendering import render_confirmation, render_error
from api.schemas import (
    DiscoveredEndpoint,
    DiscoverResponse,
    ErrorResponse,
    HealthResponse,
    OrderRequestBody,
    OrderResponse,
    StatusResponse,
)
from engine.errors import ValidationError, get_user_safe_error_summary
from engine.models import EMAIL_PATTERN
from engine.orchestrator import extract_payment_url
from engine.site_api import check_vignette_status, discover_api_endpoints
from shared.config import AppConfig
from shared.logging import bind_request_context, get_logger
from shared.mailer import send_confirmation, send_error_notification

logger = get_logger(__name__)
router = APIRouter(prefix="/vignette", tags=["vignette"])


def get_app_config(request: Request) -> AppConfig:
    """Dependency: the AppConfig built by create_app."""
    return request.app.state.config


def wants_json(request: Request) -> bool:
    content_type = request.headers.get("content-type", "")
    accept = request.headers.get("accept", "")
    return "application/json" in content_type or "application/json" in accept


async def _read_order_body(request: Request) -> OrderRequestBody:
    """Parse a JSON or form-encoded body. Raises ValueError on malformed input."""
    if "application/json" in request.headers.get("content-type", ""):
        payload = await request.json()
    else:
        payload = dict(await request.form())
    return OrderRequestBody.model_validate(payload)


def _error_response(
    *,
    as_json: bool,
    status_code: int,
    error: str,
    last_state: Optional[str] = None,
) -> Response:
    if as_json:
        body = ErrorResponse(error=error, last_state=last_state)
        return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True, mode="json"))
    return HTMLResponse(status_code=status_code, content=render_error(error=error))


@router.post(
    "/order",
    summary="Order a vignette and return the payment URL",
    responses={200: {"model": OrderResponse}, 500: {"model": ErrorResponse}},
)
async def create_order(
    request: Request,
    background_tasks: BackgroundTasks,
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> Response:
    as_json = wants_json(request)
    try:
        body = await _read_order_body(request)
    except ValueError as e:
        logger.warning("order.bad_body", error=str(e)[:300])
        return _error_response(as_json=as_json, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, error="Invalid request body")

    order = body.to_order()
    try:
        result = await extract_payment_url(order, config=config)
    except ValidationError as e:
        logger.warning("order.invalid", error=e.message)
        return _error_response(
            as_json=as_json,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error=e.user_safe_summary,
        )
    except Exception as e:
        logger.exception("order.unexpected_error", error=str(e)[:300])
        return _error_response(
            as_json=as_json,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error=get_user_safe_error_summary(e),
        )

    bind_request_context(order_id=result.order_id)
    if not result.success:
        summary = get_user_safe_error_summary(result.error) if result.error else "Automation failed"
        if not as_json and EMAIL_PATTERN.match(order.email.strip()):
            background_tasks.add_task(send_error_notification, order.email.strip(), summary, config)
        return _error_response(
            as_json=as_json,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error=summary,
            last_state=result.last_state.value,
        )

    logger.info("order.responded", method=result.method, as_json=as_json)
    if as_json:
        body_out = OrderResponse(
            method=result.method,
            order_id=result.order_id,
            payment_url=result.payment_url,
        )
        return JSONResponse(content=body_out.model_dump(by_alias=True, mode="json"))

    email = order.email.strip()
    background_tasks.add_task(
        send_confirmation,
        email,
        f"Your vignette is ready! Payment link: {result.payment_url}",
        config,
    )
    return HTMLResponse(
        render_confirmation(
            order_id=result.order_id,
            payment_url=result.payment_url,
            method=result.method,
            email=email,
        )
    )


@router.get("/status/{order_id}", response_model=StatusResponse, summary="Check order status")
def get_order_status(
    order_id: str,
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> StatusResponse:
    bind_request_context(order_id=order_id)
    outcome = check_vignette_status(order_id, config.site_api_base_url)
    logger.info("status.checked", method=outcome["method"], status=outcome["status"])
    return StatusResponse(
        order_id=order_id,
        method=outcome["method"],
        status=outcome["status"],
        data=outcome["data"],
    )


@router.get("/discover", response_model=DiscoverResponse, summary="Discover candidate site API endpoints")
def discover_endpoints(config: Annotated[AppConfig, Depends(get_app_config)]) -> DiscoverResponse:
    found = discover_api_endpoints(config.site_api_base_url)
    return DiscoverResponse(
        discovered_endpoints=[DiscoveredEndpoint.model_validate(item) for item in found],
    )


@router.get("/health", response_model=HealthResponse)
def vignette_health() -> HealthResponse:
    return HealthResponse()
