"""
HTML pages for browser form submissions (Jinja2 templates in api/templates).
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

TEMPLATES_DIR = Path(__file__).parent / "templates"


@lru_cache(maxsize=1)
def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html", "xml"]),
    )


def render_confirmation(*, order_id: str, payment_url: str, method: str, email: str) -> str:
    template = _environment().get_template("confirmation.html")
    return template.render(order_id=order_id, payment_url=payment_url, method=method, email=email)


def render_error(*, error: str) -> str:
    return _environment().get_template("error.html").render(error=error)
