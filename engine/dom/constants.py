"""
DOM interaction constants: browser profile, timeouts, candidate selectors.

All durations are in milliseconds.
"""

from __future__ import annotations

VIEWPORT = {"width": 1366, "height": 900}
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)
LOCALE = "de-CH"
TIMEZONE_ID = "Europe/Zurich"
EXTRA_HTTP_HEADERS = {
    "Accept-Language": "de-CH,de;q=0.9,en-US;q=0.8,en;q=0.7",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}
LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-first-run",
]

# Page readiness
DOM_STABILITY_TIMEOUT = 1000
MINIMUM_WAIT_AFTER_LOAD = 500
PAGE_READY_SOFT_TIMEOUT = 10000

# SelectorResolver polling window
RESOLVE_TIMEOUT_MS = 8000
RESOLVE_POLL_INTERVAL_MS = 250

# Step readiness and interaction pacing
STEP_TIMEOUT_MS = 20000
STEP_POLL_INTERVAL_MS = 250
SETTLE_AFTER_CLICK_MS = 500
CLICK_TIMEOUT_MS = 5000
ENABLED_WAIT_MS = 5000
TYPE_DELAY_MS = 40

# Payment URL capture
CAPTURE_WINDOW_MS = 15000
CAPTURE_POLL_INTERVAL_MS = 500

# Attribute stamped on resolver candidates so the chosen one can be located
CANDIDATE_ATTR = "data-vr-idx"
# Attribute marking an element already used by an earlier resolution
CLAIMED_ATTR = "data-vr-claimed"

# Everything the resolver may consider interactive, in one selector list
INTERACTIVE_SELECTORS = (
    "button",
    "a",
    "[role='button']",
    "[role='option']",
    "[role='radio']",
    "[role='checkbox']",
    "[role='combobox']",
    "li",
    "label",
    "input",
    "select",
    "textarea",
)

FIELD_INPUT_TYPES = frozenset({"", "text", "email", "search", "tel", "date", "number"})
