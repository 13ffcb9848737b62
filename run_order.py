#!/usr/bin/env python3
"""
CLI for placing a vignette order.

Usage:
    python run_order.py --plate ZH445789 --email test@example.com
    python run_order.py --plate ZH445789 --email test@example.com --local --no-headless
    python run_order.py --plate ZH445789 --email test@example.com --demo

By default the order is posted to the running API. --local drives the
engine in-process; --demo also waits for the simulated status check.
"""

import argparse
import asyncio
import json
import sys
import urllib.error
import urllib.request
from dataclasses import replace

from dotenv import load_dotenv

load_dotenv()

from engine.errors import ValidationError
from engine.models import OrderRequest
from engine.orchestrator import extract_payment_url
from engine.site_api import check_status
from shared.config import get_config
from shared.logging import configure_logging_from_config

ENDPOINT = "http://localhost:8000/vignette/order"


def _post_order(endpoint: str, payload: dict) -> int:
    body = json.dumps(payload).encode("utf-8")
    req = urllib.request.Request(
        endpoint,
        data=body,
        headers={"Content-Type": "application/json", "Accept": "application/json"},
        method="POST",
    )

    try:
        # The funnel plus capture window can take a couple of minutes.
        with urllib.request.urlopen(req, timeout=180) as resp:
            raw = resp.read().decode("utf-8", errors="replace")
            print(f"Status: {resp.status}")
            try:
                print(json.dumps(json.loads(raw), indent=2))
            except json.JSONDecodeError:
                print(raw)
            return 0

    except urllib.error.HTTPError as e:
        err = e.read().decode("utf-8", errors="replace")
        print(f"HTTP Error {e.code}", file=sys.stderr)
        print(err, file=sys.stderr)
        return 1

    except urllib.error.URLError as e:
        print(f"Request failed: {e.reason}", file=sys.stderr)
        return 1


async def _run_local(order: OrderRequest, headless: bool, demo: bool) -> int:
    config = replace(get_config(), browser_headless=headless)
    configure_logging_from_config(config, stream=sys.stderr, json_output=False)
    try:
        result = await extract_payment_url(order, config=config)
    except ValidationError as e:
        print(f"Invalid order: {e.message}", file=sys.stderr)
        return 1

    print("\n" + "=" * 80)
    print(
        json.dumps(
            {
                "success": result.success,
                "orderId": result.order_id,
                "method": result.method,
                "paymentUrl": result.payment_url,
                "lastState": result.last_state.value,
                "error": str(result.error) if result.error else None,
                "captures": [
                    {"source": c.source, "url": c.value, "timestamp": c.timestamp}
                    for c in result.captures
                ],
            },
            indent=2,
        )
    )
    if result.success and demo:
        print(f"Waiting {config.status_mock_delay_seconds:g}s for status...")
        print(f"Status: {await check_status(config.status_mock_delay_seconds)}")
    return 0 if result.success else 1


def main() -> None:
    parser = argparse.ArgumentParser(description="Order a Swiss e-vignette")
    parser.add_argument("--plate", required=True, help="Licence plate number")
    parser.add_argument("--email", required=True, help="Confirmation email address")
    parser.add_argument("--start-date", default=None, help="Validity start (YYYY-MM-DD)")
    parser.add_argument("--vehicle-type", default="car")
    parser.add_argument("--payment-method", default="creditcard")
    parser.add_argument("--country", default="GB", help="Registration country (ISO code)")
    parser.add_argument("--endpoint", default=ENDPOINT, help="API endpoint when not --local")
    parser.add_argument("--local", action="store_true", help="Run the engine in-process")
    parser.add_argument("--demo", action="store_true", help="Run in-process and wait for the mock status")
    parser.add_argument(
        "--no-headless",
        action="store_true",
        help="Show browser window (Chrome). Use for local debugging.",
    )
    args = parser.parse_args()

    order = OrderRequest(
        plate_number=args.plate,
        email=args.email,
        start_date=args.start_date,
        vehicle_type=args.vehicle_type,
        payment_method=args.payment_method,
        country=args.country,
    )

    if args.local or args.demo:
        code = asyncio.run(_run_local(order, headless=not args.no_headless, demo=args.demo))
    else:
        code = _post_order(
            args.endpoint,
            {
                "plateNumber": order.plate_number,
                "email": order.email,
                "startDate": order.start_date,
                "vehicleType": order.vehicle_type,
                "paymentMethod": order.payment_method,
                "country": order.country,
            },
        )
    sys.exit(code)


if __name__ == "__main__":
    main()
