"""
Resend Email Integration
=========================

Sends system-health alert emails through the Resend API.

Setup:
1. Create an API key in Resend -> API Keys
2. Set RESEND_API_KEY and ALERT_EMAIL in .env (ALERT_FROM_EMAIL optional)
"""

import html
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from scripts.lib.config import Settings, get_settings
from scripts.lib.errors import NotificationError

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


def build_alert_html(service_name: str, error_message: Optional[str] = None,
                     diagnosis: Optional[str] = None, sent_at: Optional[datetime] = None) -> str:
    """HTML body for a service-down alert."""
    sent_at = sent_at or datetime.now(timezone.utc)
    parts = [
        "<h1>System Health Alert</h1>",
        f"<p><strong>Service:</strong> {html.escape(service_name)}</p>",
        "<p><strong>Status:</strong> FAIL</p>",
        f"<p><strong>Time:</strong> {sent_at.strftime('%Y-%m-%d %H:%M:%S %Z')}</p>",
    ]
    if diagnosis:
        parts.append(f"<p><strong>🔍 Diagnosis:</strong> {html.escape(diagnosis)}</p>")
    if error_message and error_message != diagnosis:
        parts.append(f"<p><strong>Error:</strong> {html.escape(error_message)}</p>")
    parts.append("<hr>")
    parts.append("<p>This is an automated alert from your Truckinglane monitoring system.</p>")
    return "\n".join(parts)


class ResendEmailNotifier:
    """Resend email connector for alerts."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.api_key = settings.resend_api_key
        self.to_email = settings.alert_email
        self.from_email = settings.alert_from_email
        self.timeout = settings.http_timeout_seconds

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.to_email)

    async def send(self, subject: str, html_body: str) -> Dict[str, Any]:
        """
        Send one email.

        Raises:
            NotificationError: If Resend is not configured, unreachable, or
                rejects the request.
        """
        if not self.is_configured:
            raise NotificationError("email", "RESEND_API_KEY / ALERT_EMAIL not configured")

        payload = {
            "from": self.from_email,
            "to": [self.to_email],
            "subject": subject,
            "html": html_body,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as http:
                response = await http.post(
                    RESEND_API_URL,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.HTTPError as e:
            raise NotificationError("email", f"Resend request failed: {e}")

        if response.status_code >= 400:
            raise NotificationError(
                "email", f"Resend returned {response.status_code}: {response.text[:200]}",
            )

        try:
            data = response.json()
        except ValueError as e:
            raise NotificationError("email", f"Resend returned a non-JSON body: {e}")

        logger.info("Alert email sent to %s", self.to_email)
        return data

    async def send_alert(self, service_name: str, error_message: Optional[str] = None,
                         diagnosis: Optional[str] = None) -> Dict[str, Any]:
        """Send the service-down alert email."""
        return await self.send(
            subject=f"🚨 ALERT: {service_name} is DOWN",
            html_body=build_alert_html(service_name, error_message, diagnosis),
        )

    def get_status(self) -> Dict[str, Any]:
        return {
            "name": "Resend",
            "configured": self.is_configured,
            "features": ["alert_email"],
        }
