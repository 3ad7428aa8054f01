import os
from typing import Any, Dict, Optional

import httpx

BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"
DEFAULT_TIMEOUT = float(os.getenv("BREVO_TIMEOUT_SECONDS", "10"))


class EmailDeliveryError(RuntimeError):
    """Raised when the email provider rejects or fails a send."""


def _api_key() -> str:
    api_key = os.getenv("BREVO_API_KEY")
    if not api_key:
        raise EmailDeliveryError("Email service not configured")
    return api_key


def is_configured() -> bool:
    return bool(os.getenv("BREVO_API_KEY"))


def _sender() -> Dict[str, str]:
    return {
        "name": os.getenv("BREVO_SENDER_NAME", "Apex Digital Africa"),
        "email": os.getenv("BREVO_SENDER_EMAIL", "apexdigitalafrica@gmail.com"),
    }


def build_payload(to: str, name: Optional[str], subject: str, html: str) -> Dict[str, Any]:
    sender = _sender()
    return {
        "sender": sender,
        "to": [{"email": to, "name": name or to}],
        "replyTo": sender,
        "subject": subject,
        "htmlContent": html,
    }


async def send_email(to: str, name: Optional[str], subject: str, html: str) -> Dict[str, Any]:
    """Send a rendered HTML message through Brevo's transactional API."""
    headers = {
        "accept": "application/json",
        "api-key": _api_key(),
        "content-type": "application/json",
    }
    payload = build_payload(to, name, subject, html)

    try:
        async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT) as client:
            response = await client.post(BREVO_API_URL, json=payload, headers=headers)
        response.raise_for_status()
        data = response.json() if response.content else {}
    except (httpx.HTTPError, ValueError) as exc:
        # reported to Sentry by the caller
        raise EmailDeliveryError(f"Brevo request failed: {exc}") from exc

    return data
