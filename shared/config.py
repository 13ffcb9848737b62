"""
Environment-based configuration for the vignette checkout automation.

This module exposes a small, typed configuration surface shared by the API
and the engine. All values are sourced from environment variables with
sensible, non-secret defaults.

No secrets or credentials are hard-coded here; they must be provided via
the environment (or python-dotenv in local development).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal, Optional

Environment = Literal["local", "dev", "staging", "prod"]


@dataclass(frozen=True)
class AppConfig:
    """
    Top-level application configuration.

    Timeouts are in milliseconds unless the name says otherwise.
    """

    environment: Environment
    log_level: str

    # Optional file path for structured JSON logs; when set, logs are written
    # to file (and stdout if log_stdout).
    log_file: Optional[str]
    log_stdout: bool

    # Which site adapter drives the funnel (see engine.adapters).
    site_adapter: str
    browser_headless: bool
    artifacts_dir: str

    # Funnel timing
    nav_timeout_ms: int
    step_timeout_ms: int
    step_max_attempts: int
    resolve_timeout_ms: int
    resolve_poll_interval_ms: int

    # Payment URL capture window (after the pay control is clicked)
    capture_window_ms: int
    capture_poll_interval_ms: int

    # Confirmation email (mock delivery when smtp_host is unset)
    smtp_host: Optional[str]
    smtp_port: int
    smtp_username: Optional[str]
    smtp_password: Optional[str]
    smtp_from: str

    # Status endpoint of the site and the demo status delay
    site_api_base_url: str
    status_mock_delay_seconds: float

    @classmethod
    def from_env(cls) -> "AppConfig":
        """
        Construct configuration from environment variables.

        All fields have defaults suitable for local development.
        """

        environment = os.getenv("APP_ENV", "local")

        if environment not in {"local", "dev", "staging", "prod"}:
            raise ValueError(f"Unsupported APP_ENV value: {environment!r}")

        def _bool_env(name: str, default: bool) -> bool:
            raw = (os.getenv(name) or str(default)).strip().lower()
            return raw in ("true", "1", "yes")

        def _step_max_attempts() -> int:
            raw = os.getenv("STEP_MAX_ATTEMPTS", "3").strip()
            try:
                attempts = int(raw)
            except ValueError:
                return 3
            return max(1, min(5, attempts))

        return cls(
            environment=environment,  # type: ignore[arg-type]
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE") or None,
            log_stdout=_bool_env("LOG_STDOUT", True),
            site_adapter=os.getenv("SITE_ADAPTER", "via_admin").strip().lower(),
            browser_headless=_bool_env("BROWSER_HEADLESS", True),
            artifacts_dir=os.getenv("ARTIFACTS_DIR", "./artifacts"),
            nav_timeout_ms=int(os.getenv("NAV_TIMEOUT_MS", "30000")),
            step_timeout_ms=int(os.getenv("STEP_TIMEOUT_MS", "20000")),
            step_max_attempts=_step_max_attempts(),
            resolve_timeout_ms=int(os.getenv("RESOLVE_TIMEOUT_MS", "8000")),
            resolve_poll_interval_ms=int(os.getenv("RESOLVE_POLL_INTERVAL_MS", "250")),
            capture_window_ms=int(os.getenv("CAPTURE_WINDOW_MS", "15000")),
            capture_poll_interval_ms=int(os.getenv("CAPTURE_POLL_INTERVAL_MS", "500")),
            smtp_host=os.getenv("SMTP_HOST") or None,
            smtp_port=int(os.getenv("SMTP_PORT", "587")),
            smtp_username=os.getenv("SMTP_USERNAME") or None,
            smtp_password=os.getenv("SMTP_PASSWORD") or None,
            smtp_from=os.getenv("SMTP_FROM", "noreply@vignette-bot.com"),
            site_api_base_url=os.getenv(
                "SITE_API_BASE_URL", "https://www.vignetteswitzerland.com"
            ).rstrip("/"),
            status_mock_delay_seconds=float(os.getenv("STATUS_MOCK_DELAY_SECONDS", "10")),
        )


def get_config() -> AppConfig:
    """
    Helper to obtain the current configuration.

    Long-lived processes should build one `AppConfig` at startup and pass it
    explicitly; scripts can simply call this.
    """

    return AppConfig.from_env()
