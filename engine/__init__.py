"""
Checkout automation engine.

- engine.orchestrator: extract_payment_url(order) entry point
- engine.step_driver: funnel state machine
- engine.collector: payment URL capture
- engine.adapters: per-site semantics (targets, readiness, gateway)
- engine.dom: Playwright helpers
"""
