"""
Truckinglane Hub — Scoring Rule Configuration
================================================

Builds the immutable rule tables injected into the intent and fit scorers.
Defaults live here; configs/scoring_rules.yaml may override keyword lists,
intent rule points and regex patterns.

Functions:
  default_intent_config() - Built-in intent rule table
  default_fit_config()    - Built-in v1 fit configuration
  load_intent_config()    - Defaults merged with the YAML "intent" section
  load_fit_config()       - Defaults merged with the YAML "fit" section
"""
from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml

from models.scoring_models import (
    FitScoringConfig,
    IntentRule,
    IntentScoringConfig,
)
from scripts.lib.config import get_settings
from scripts.lib.errors import ConfigError
from scripts.lib.logger import setup_logger

logger = setup_logger("rules_config")

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
CONFIG_PATH = PROJECT_ROOT / "configs" / "scoring_rules.yaml"

DEFAULT_INTENT_RULES = (
    IntentRule(key="mc_dot", points=20, reason="MC/DOT number provided"),
    IntentRule(key="company", points=15, reason="Company name provided"),
    IntentRule(key="load_number", points=20, reason="Load number mentioned"),
    IntentRule(key="cities", points=15, reason="Origin/destination cities mentioned"),
    IntentRule(key="callback", points=15, reason="Callback requested"),
    IntentRule(key="dispatch", points=10, reason="Asked to speak with dispatch"),
    IntentRule(key="rate", points=10, reason="Rate/price discussed"),
    IntentRule(key="rate_accept", points=20, reason="Rate acceptance indicated"),
    IntentRule(key="equipment", points=10, reason="Equipment type specified"),
    IntentRule(key="urgent", points=10, reason="Urgent/immediate language detected"),
)

DEFAULT_KEYWORDS = {
    "callback": ("callback", "call back", "call me back", "give me a call",
                 "reach me at", "contact me"),
    "dispatch": ("speak to dispatch", "talk to dispatch", "real person",
                 "speak to someone", "transfer me", "speak with an agent"),
    "rate": ("rate", "price", "how much", "pay", "cost", "dollars",
             "per mile", "per ton"),
    "rate_accept": ("sounds good", "i'll take it", "book it", "let's do it",
                    "we can do that", "that works", "deal", "confirmed",
                    "we're good"),
    "urgent": ("asap", "right now", "immediately", "today", "urgent",
               "emergency", "need it now", "quickly"),
    "equipment": ("flatbed", "dry van", "reefer", "van", "step deck", "lowboy",
                  "hotshot", "53 foot", "48 foot"),
}

DEFAULT_PATTERNS = {
    # Case-sensitive: "Dallas, TX"
    "cities": r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?),?\s*([A-Z]{2})\b",
    "load_number": r"(?i)\b(load\s*#?\s*\d+|\d{6,})\b",
    "mc_dot": r"(?i)\b(mc\s*#?\s*\d+|dot\s*#?\s*\d+|usdot\s*\d+|\d{5,7})\b",
}

TARGET_COMMODITIES = ("flatbed", "reefer", "specialized", "general",
                      "general freight", "dry van", "refrigerated")

TARGET_EQUIPMENT = ("flatbed", "stepdeck", "step deck", "van", "reefer",
                    "dry van", "lowboy", "rgn", "conestoga", "hotshot")

US_STATES = (
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA",
    "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD",
    "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
    "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC",
    "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY",
)


def _build_intent_config(
    rules=DEFAULT_INTENT_RULES,
    keywords: Optional[dict] = None,
    patterns: Optional[dict] = None,
    max_score: int = 100,
    high_intent_threshold: Optional[int] = None,
) -> IntentScoringConfig:
    keywords = {**DEFAULT_KEYWORDS, **(keywords or {})}
    patterns = {**DEFAULT_PATTERNS, **(patterns or {})}

    for name, pattern in patterns.items():
        try:
            re.compile(pattern)
        except re.error as e:
            raise ConfigError(f"Invalid '{name}' pattern: {e}", config_key=f"intent.patterns.{name}")

    return IntentScoringConfig(
        rules=tuple(rules),
        callback_keywords=tuple(k.lower() for k in keywords["callback"]),
        dispatch_keywords=tuple(k.lower() for k in keywords["dispatch"]),
        rate_keywords=tuple(k.lower() for k in keywords["rate"]),
        rate_accept_keywords=tuple(k.lower() for k in keywords["rate_accept"]),
        urgent_keywords=tuple(k.lower() for k in keywords["urgent"]),
        equipment_keywords=tuple(k.lower() for k in keywords["equipment"]),
        city_pattern=patterns["cities"],
        load_number_pattern=patterns["load_number"],
        mc_dot_pattern=patterns["mc_dot"],
        max_score=max_score,
        high_intent_threshold=(
            get_settings().intent_high_threshold
            if high_intent_threshold is None else high_intent_threshold
        ),
    )


def default_intent_config() -> IntentScoringConfig:
    return _build_intent_config()


def default_fit_config() -> FitScoringConfig:
    return FitScoringConfig(
        target_commodities=TARGET_COMMODITIES,
        target_equipment=TARGET_EQUIPMENT,
        us_states=US_STATES,
    )


def _read_yaml(path: Path) -> dict:
    if not path.exists():
        logger.debug("No scoring config at %s, using defaults", path)
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse {path.name}: {e}", config_key=str(path))
    if not isinstance(data, dict):
        raise ConfigError(f"{path.name} must contain a mapping", config_key=str(path))
    return data


@lru_cache(maxsize=4)
def load_intent_config(path: Optional[Path] = None) -> IntentScoringConfig:
    """Intent config with YAML overrides applied (cached per path)."""
    section = _read_yaml(Path(path) if path else CONFIG_PATH).get("intent") or {}
    if not section:
        return default_intent_config()

    rules = DEFAULT_INTENT_RULES
    if section.get("rules"):
        rules = tuple(IntentRule(**r) for r in section["rules"])
        known = {r.key for r in DEFAULT_INTENT_RULES}
        missing = known - {r.key for r in rules}
        if missing:
            raise ConfigError(
                f"Intent rules missing keys: {', '.join(sorted(missing))}",
                config_key="intent.rules",
            )

    config = _build_intent_config(
        rules=rules,
        keywords=section.get("keywords"),
        patterns=section.get("patterns"),
        max_score=section.get("max_score", 100),
        high_intent_threshold=section.get("high_intent_threshold"),
    )
    logger.info("Loaded intent scoring rules (%d rules)", len(config.rules))
    return config


@lru_cache(maxsize=4)
def load_fit_config(path: Optional[Path] = None) -> FitScoringConfig:
    """Fit config with YAML keyword overrides applied (weights stay locked)."""
    section = _read_yaml(Path(path) if path else CONFIG_PATH).get("fit") or {}
    defaults = default_fit_config()
    if not section:
        return defaults
    return defaults.model_copy(update={
        "target_commodities": tuple(
            c.lower() for c in section.get("target_commodities", defaults.target_commodities)
        ),
        "target_equipment": tuple(
            e.lower() for e in section.get("target_equipment", defaults.target_equipment)
        ),
    })
