"""
Confirmation email helper.

Sends order confirmations and error notifications. When SMTP is not
configured the message is logged as a mock delivery. Delivery problems are
logged and reported in the return value; they never raise, so a mail outage
cannot fail an order.
"""

from __future__ import annotations

import smtplib
import time
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional, Union

from shared.config import AppConfig, get_config
from shared.logging import get_logger

logger = get_logger(__name__)

CONFIRMATION_SUBJECT = "Swiss Vignette Order Confirmation"
ERROR_SUBJECT = "Swiss Vignette Order Error"


@dataclass(frozen=True)
class DeliveryReceipt:
    message_id: str
    recipient: str
    mock: bool


def _confirmation_html(message: str) -> str:
    return f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #333;">{CONFIRMATION_SUBJECT}</h2>
  <p>Thank you for your order!</p>
  <div style="background: #f5f5f5; padding: 20px; border-radius: 5px; margin: 20px 0;">
    {escape(message)}
  </div>
  <p style="color: #666; font-size: 14px;">This is an automated message from the Swiss Vignette Bot.</p>
</div>
"""


def _error_html(error: str) -> str:
    return f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #d32f2f;">{ERROR_SUBJECT}</h2>
  <p>We encountered an issue while processing your order.</p>
  <div style="background: #ffebee; padding: 20px; border-radius: 5px; margin: 20px 0; border-left: 4px solid #d32f2f;">
    <strong>Error:</strong> {escape(error)}
  </div>
  <p>Please try again or contact support if the issue persists.</p>
</div>
"""


def _deliver(
    to: str,
    subject: str,
    text: str,
    html_body: str,
    config: AppConfig,
) -> DeliveryReceipt:
    message_id = f"mock-{int(time.time() * 1000)}"

    if not config.smtp_host:
        logger.info("email.mock_sent", to=to, subject=subject, text=text)
        return DeliveryReceipt(message_id=message_id, recipient=to, mock=True)

    msg = MIMEMultipart("alternative")
    msg["From"] = config.smtp_from
    msg["To"] = to
    msg["Subject"] = subject
    msg.attach(MIMEText(text, "plain"))
    msg.attach(MIMEText(html_body, "html"))

    with smtplib.SMTP(config.smtp_host, config.smtp_port, timeout=15) as server:
        server.starttls()
        if config.smtp_username and config.smtp_password:
            server.login(config.smtp_username, config.smtp_password)
        server.send_message(msg)

    message_id = msg.get("Message-ID") or f"smtp-{int(time.time() * 1000)}"
    logger.info("email.sent", to=to, subject=subject, message_id=message_id)
    return DeliveryReceipt(message_id=message_id, recipient=to, mock=False)


def send_confirmation(
    address: str,
    message: str,
    config: Optional[AppConfig] = None,
) -> Union[DeliveryReceipt, dict]:
    """
    Send an order confirmation.

    Returns a DeliveryReceipt, or {"error": "..."} when delivery failed.
    """
    config = config or get_config()
    logger.info("email.sending_confirmation", to=address)
    try:
        return _deliver(address, CONFIRMATION_SUBJECT, message, _confirmation_html(message), config)
    except Exception as e:
        logger.warning("email.send_failed", to=address, error=str(e), error_type=type(e).__name__)
        return {"error": str(e)}


def send_error_notification(
    address: str,
    error: str,
    config: Optional[AppConfig] = None,
) -> Union[DeliveryReceipt, dict]:
    """Send an error notification; same failure contract as send_confirmation."""
    config = config or get_config()
    text = f"An error occurred while processing your vignette order: {error}"
    try:
        return _deliver(address, ERROR_SUBJECT, text, _error_html(error), config)
    except Exception as e:
        logger.warning("email.send_failed", to=address, error=str(e), error_type=type(e).__name__)
        return {"error": str(e)}
