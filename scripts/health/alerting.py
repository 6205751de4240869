"""
Truckinglane Hub — Alert Debouncer
====================================

Per-service alert state machine (ok / warn / fail) persisted in
system_alert_state. Only fail notifies, and never more than once per
debounce window for the same service.

Functions:
  should_alert()    - Pure debounce decision
  decide_alert()    - Decision with the full reasoning attached
  check_and_alert() - Load state, decide, notify (email + SMS), save state

Classes:
  AlertStateStore   - Supabase-backed system_alert_state access
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Optional

from integrations.resend_email import ResendEmailNotifier
from integrations.twilio_sms import TwilioSMSNotifier
from models.health_models import AlertDecision, AlertState
from scripts.lib.config import get_settings
from scripts.lib.errors import NotificationError
from scripts.lib.logger import setup_logger
from scripts.lib.supabase_client import get_client
from scripts.lib.utils import parse_timestamp, utc_now

logger = setup_logger("alerting")

DEFAULT_DEBOUNCE = timedelta(minutes=5)


def should_alert(
    previous_status: str,
    new_status: str,
    last_alerted_at: Optional[datetime],
    now: datetime,
    debounce: timedelta = DEFAULT_DEBOUNCE,
    repeat_while_failing: bool = True,
) -> bool:
    """
    True when a notification should go out for this status update.

    Fires only for fail, only outside the debounce window, and (unless
    repeat_while_failing) only on a transition into fail.
    """
    if new_status != "fail":
        return False
    if last_alerted_at is not None and now - last_alerted_at < debounce:
        return False
    return previous_status != "fail" or repeat_while_failing


def decide_alert(
    service_name: str,
    state: Optional[AlertState],
    new_status: str,
    now: datetime,
    debounce: timedelta = DEFAULT_DEBOUNCE,
    repeat_while_failing: bool = True,
) -> AlertDecision:
    previous_status = state.last_status if state else "ok"
    last_alerted_at = state.last_alerted_at if state else None
    is_debounced = last_alerted_at is not None and now - last_alerted_at < debounce
    return AlertDecision(
        service_name=service_name,
        previous_status=previous_status,
        new_status=new_status,
        is_state_change=previous_status != new_status,
        is_debounced=is_debounced,
        should_alert=should_alert(
            previous_status, new_status, last_alerted_at, now,
            debounce=debounce, repeat_while_failing=repeat_while_failing,
        ),
    )


class AlertStateStore:
    """Read/write system_alert_state rows."""

    table = "system_alert_state"

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_client()
        return self._client

    def get(self, service_name: str) -> Optional[AlertState]:
        result = (
            self.client.table(self.table)
            .select("*")
            .eq("service_name", service_name)
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        row = result.data[0]
        return AlertState(
            service_name=row["service_name"],
            last_status=row.get("last_status") or "ok",
            last_alerted_at=parse_timestamp(row.get("last_alerted_at")),
            updated_at=parse_timestamp(row.get("updated_at")),
        )

    def save(self, service_name: str, status: str, now: datetime,
             alerted: bool = False) -> None:
        row = {
            "service_name": service_name,
            "last_status": status,
            "updated_at": now.isoformat(),
        }
        if alerted:
            row["last_alerted_at"] = now.isoformat()
        self.client.table(self.table).upsert(row, on_conflict="service_name").execute()


async def _notify(service_name: str, error_message: Optional[str],
                  diagnosis: Optional[str], email, sms) -> dict:
    """Send email then SMS; a failed channel does not stop the other."""
    sent = {"email": False, "sms": False}
    for channel, notifier in (("email", email), ("sms", sms)):
        if not notifier.is_configured:
            logger.warning("%s alerts not configured, skipping", channel)
            continue
        try:
            await notifier.send_alert(service_name, error_message, diagnosis)
            sent[channel] = True
        except NotificationError as e:
            logger.error("Alert %s for %s failed: %s", channel, service_name, e.message)
        except Exception as e:
            logger.error("Alert %s for %s raised %s: %s", channel, service_name, type(e).__name__, e)
    return sent


async def check_and_alert(
    service_name: str,
    new_status: str,
    error_message: Optional[str] = None,
    diagnosis: Optional[str] = None,
    store: Optional[AlertStateStore] = None,
    email: Optional[ResendEmailNotifier] = None,
    sms: Optional[TwilioSMSNotifier] = None,
    now: Optional[datetime] = None,
) -> Optional[AlertDecision]:
    """
    Apply a status update to the alert state and notify when it qualifies.

    State store failures are logged and return None; they never break the
    health check that triggered them.
    """
    settings = get_settings()
    store = store or AlertStateStore()
    now = now or utc_now()
    debounce = timedelta(minutes=settings.alert_debounce_minutes)

    try:
        state = await asyncio.to_thread(store.get, service_name)
    except Exception as e:
        logger.error("Cannot read alert state for %s: %s", service_name, e)
        return None

    decision = decide_alert(
        service_name, state, new_status, now,
        debounce=debounce, repeat_while_failing=settings.alert_repeat_while_failing,
    )
    logger.info(
        "[alert] Service: %s, Previous: %s, New: %s, StateChange: %s, "
        "Debounced: %s, ShouldAlert: %s",
        service_name, decision.previous_status, new_status,
        decision.is_state_change, decision.is_debounced, decision.should_alert,
    )

    if decision.should_alert:
        logger.warning("Sending alert for %s failure", service_name)
        await _notify(
            service_name, error_message, diagnosis,
            email or ResendEmailNotifier(settings),
            sms or TwilioSMSNotifier(settings),
        )

    try:
        await asyncio.to_thread(
            store.save, service_name, new_status, now, alerted=decision.should_alert,
        )
    except Exception as e:
        logger.error("Cannot save alert state for %s: %s", service_name, e)

    return decision
