"""
Runtime settings for Truckinglane Hub.

Values come from the environment, with .env at the project root loaded
first. Call get_settings() rather than reading os.environ directly so tests
can swap values with patch.dict + get_settings.cache_clear().
"""
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(PROJECT_ROOT / ".env")


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Settings:
    supabase_url: str
    supabase_key: str
    resend_api_key: str
    alert_email: str
    alert_from_email: str
    twilio_sid: str
    twilio_token: str
    twilio_from: str
    alert_phone: str
    alert_debounce_minutes: int
    alert_repeat_while_failing: bool
    http_timeout_seconds: float
    intent_high_threshold: int
    cors_origins: tuple
    require_api_key: bool
    environment: str

    @property
    def email_configured(self) -> bool:
        return bool(self.resend_api_key and self.alert_email)

    @property
    def sms_configured(self) -> bool:
        return bool(self.twilio_sid and self.twilio_token and self.twilio_from and self.alert_phone)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read settings from the environment (cached)."""
    return Settings(
        supabase_url=os.getenv("SUPABASE_URL", ""),
        supabase_key=(
            os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
            or os.getenv("SUPABASE_KEY", "")
        ),
        resend_api_key=os.getenv("RESEND_API_KEY", ""),
        alert_email=os.getenv("ALERT_EMAIL", ""),
        alert_from_email=os.getenv(
            "ALERT_FROM_EMAIL", "Truckinglane Alerts <onboarding@resend.dev>"
        ),
        twilio_sid=os.getenv("TWILIO_SID", ""),
        twilio_token=os.getenv("TWILIO_TOKEN", ""),
        twilio_from=os.getenv("TWILIO_FROM", ""),
        alert_phone=os.getenv("ALERT_PHONE", ""),
        alert_debounce_minutes=_env_int("ALERT_DEBOUNCE_MINUTES", 5),
        alert_repeat_while_failing=_env_bool("ALERT_REPEAT_WHILE_FAILING", True),
        http_timeout_seconds=_env_float("HTTP_TIMEOUT_SECONDS", 10.0),
        intent_high_threshold=_env_int("INTENT_HIGH_THRESHOLD", 50),
        cors_origins=tuple(
            o.strip() for o in os.getenv(
                "CORS_ORIGINS", "http://localhost:3000,http://localhost:8001"
            ).split(",") if o.strip()
        ),
        require_api_key=_env_bool("REQUIRE_API_KEY", False),
        environment=os.getenv("ENVIRONMENT", "development"),
    )
