"""
Shared utilities for the vignette checkout automation.

This package is intentionally small and focused. It currently provides:

- `shared.config` for environment-based configuration
- `shared.logging` for structlog-based structured logging
- `shared.mailer` for confirmation / error emails

Both the API and the engine treat `shared/` as infrastructure code and avoid
introducing service-specific coupling here.
"""
