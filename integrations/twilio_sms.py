"""
Twilio SMS Integration
=======================

Sends system-health alert text messages through the Twilio Messages API.

Setup:
1. Copy Account SID and Auth Token from the Twilio console
2. Set TWILIO_SID, TWILIO_TOKEN, TWILIO_FROM and ALERT_PHONE in .env
"""

import logging
from typing import Any, Dict, Optional

import aiohttp

from scripts.lib.config import Settings, get_settings
from scripts.lib.errors import NotificationError

logger = logging.getLogger(__name__)

TWILIO_API_URL = "https://api.twilio.com/2010-04-01"


def build_alert_text(service_name: str, error_message: Optional[str] = None,
                     diagnosis: Optional[str] = None) -> str:
    detail = diagnosis or error_message or "Check dashboard for details."
    return f"TRUCKINGLANE ALERT: {service_name} FAILED. {detail}"


class TwilioSMSNotifier:
    """Twilio SMS connector for alerts."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.account_sid = settings.twilio_sid
        self.auth_token = settings.twilio_token
        self.from_number = settings.twilio_from
        self.to_number = settings.alert_phone
        self.timeout = settings.http_timeout_seconds

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number and self.to_number)

    @property
    def messages_url(self) -> str:
        return f"{TWILIO_API_URL}/Accounts/{self.account_sid}/Messages.json"

    async def send(self, body: str) -> Dict[str, Any]:
        """
        Send one text message to the alert phone.

        Raises:
            NotificationError: If Twilio is not configured, unreachable, or
                rejects the request.
        """
        if not self.is_configured:
            raise NotificationError("sms", "Twilio credentials or ALERT_PHONE not configured")

        form = {"To": self.to_number, "From": self.from_number, "Body": body}
        auth = aiohttp.BasicAuth(self.account_sid, self.auth_token)
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.messages_url, data=form, auth=auth) as resp:
                    if resp.status >= 400:
                        text = await resp.text()
                        raise NotificationError(
                            "sms", f"Twilio returned {resp.status}: {text[:200]}",
                        )
                    try:
                        data = await resp.json(content_type=None)
                    except ValueError as e:
                        raise NotificationError("sms", f"Twilio returned a non-JSON body: {e}")
        except aiohttp.ClientError as e:
            raise NotificationError("sms", f"Twilio request failed: {e}")
        except TimeoutError as e:
            raise NotificationError("sms", f"Twilio request timed out: {e}")

        logger.info("Alert SMS sent to %s", self.to_number)
        return data

    async def send_alert(self, service_name: str, error_message: Optional[str] = None,
                         diagnosis: Optional[str] = None) -> Dict[str, Any]:
        """Send the service-down alert text."""
        return await self.send(build_alert_text(service_name, error_message, diagnosis))

    def get_status(self) -> Dict[str, Any]:
        return {
            "name": "Twilio",
            "configured": self.is_configured,
            "features": ["alert_sms"],
        }
