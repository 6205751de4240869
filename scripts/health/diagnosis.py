"""
Auto-diagnosis for failed health events.

Turns a raw error string into a one-line, human-readable cause. Rules are
checked in order and the first match wins. A carrier_lookup denial is
reported as an FMCSA access problem ahead of the generic 401/403 rule.
"""
from typing import Optional

CALL_SERVICES = ("elevenlabs_calls", "elevenlabs_webhook")
FMCSA_DENIED = ("fmcsa", "403", "forbidden")

_GENERIC_RULES = (
    (("timeout", "timed out", "econnreset"),
     "Network timeout - {service} did not respond within expected time. "
     "Check network connectivity or service load."),
    (("401", "403", "unauthorized", "forbidden", "invalid api key"),
     "Authentication failed - API key may be expired or invalid for {service}."),
    (("429", "rate limit", "too many requests"),
     "Rate limit exceeded - {service} is rejecting requests due to high volume."),
    (("503", "502", "service unavailable"),
     "Service unavailable - {service} backend is down or undergoing maintenance."),
    (("econnrefused", "connection refused"),
     "Connection refused - Cannot reach {service} endpoint. Check if service is running."),
    (("enotfound", "dns"),
     "DNS resolution failed - Cannot resolve {service} hostname."),
)


def diagnose_failure(
    service_name: str,
    error_message: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> str:
    """Best-guess diagnosis for a failed service."""
    error = (error_message or "").lower()

    if service_name == "carrier_lookup" and any(n in error for n in FMCSA_DENIED):
        return "FMCSA API access denied - Check API key validity or quota."

    for needles, template in _GENERIC_RULES:
        if any(n in error for n in needles):
            return template.format(service=service_name)

    if service_name in CALL_SERVICES and ("no call" in error or "missing" in error):
        return ("No recent calls detected - Either no inbound calls or webhook "
                "pipeline is broken.")

    missing = (metadata or {}).get("missing_downstream")
    if missing:
        return (f"Pipeline break detected - {service_name} completed but "
                f"downstream events ({missing}) are missing.")

    if error_message:
        return f"Error in {service_name}: {error_message[:100]}"

    return f"Unknown failure in {service_name} - Check logs for details."
