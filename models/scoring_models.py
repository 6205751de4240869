"""
Truckinglane Hub — Scoring Pydantic Models
============================================

Immutable rule configuration for lead intent scoring and account fit
scoring, the score records they produce, and API request bodies.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ─── Intent Scoring ─────────────────────────────────────────

class IntentRule(BaseModel):
    """One additive intent signal."""
    model_config = ConfigDict(frozen=True)

    key: str
    points: int
    reason: str


class IntentScoringConfig(BaseModel):
    """Rule table, keyword lists and regexes for lead intent scoring."""
    model_config = ConfigDict(frozen=True)

    rules: tuple[IntentRule, ...]
    callback_keywords: tuple[str, ...]
    dispatch_keywords: tuple[str, ...]
    rate_keywords: tuple[str, ...]
    rate_accept_keywords: tuple[str, ...]
    urgent_keywords: tuple[str, ...]
    equipment_keywords: tuple[str, ...]
    city_pattern: str
    load_number_pattern: str
    mc_dot_pattern: str
    max_score: int = 100
    high_intent_threshold: int = 50

    def rule(self, key: str) -> IntentRule:
        for rule in self.rules:
            if rule.key == key:
                return rule
        raise KeyError(key)


class IntentScore(BaseModel):
    """Score for a lead (or points for a single text source)."""
    score: int = 0
    reasons: list[str] = Field(default_factory=list)
    is_high_intent: bool = False


# ─── Account Fit Scoring ────────────────────────────────────

class FitWeights(BaseModel):
    """V1 fit weights. Locked: changing these changes every stored score."""
    model_config = ConfigDict(frozen=True)

    commodity: int = 30
    equipment: int = 20
    fmcsa: int = 20
    geography: int = 10
    scale: int = 10
    website: int = 10


class FitScoringConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: str = "v1"
    weights: FitWeights = FitWeights()
    target_commodities: tuple[str, ...]
    target_equipment: tuple[str, ...]
    us_states: tuple[str, ...]
    queue_min_score: int = 40
    medium_priority_score: int = 50
    high_priority_score: int = 80


class FitBreakdown(BaseModel):
    commodity: int = 0
    equipment: int = 0
    fmcsa: int = 0
    geography: int = 0
    scale: int = 0
    website: int = 0

    def total(self) -> int:
        return (self.commodity + self.equipment + self.fmcsa
                + self.geography + self.scale + self.website)


class FitScore(BaseModel):
    score: int
    breakdown: FitBreakdown
    reasons: list[str] = Field(default_factory=list)
    priority: str = "low"


class AccountRecord(BaseModel):
    """Prospecting account as stored in the accounts table."""
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: Optional[str] = None
    agency_id: Optional[str] = None
    commodities: list[str] = Field(default_factory=list)
    equipment_types: list[str] = Field(default_factory=list)
    mc_number: Optional[str] = None
    dot_number: Optional[str] = None
    fmcsa_data: Optional[dict[str, Any]] = None
    regions: list[str] = Field(default_factory=list)
    website: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None

    @field_validator("commodities", "equipment_types", "regions", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return value or []


# ─── Keyword High-Intent Check ──────────────────────────────

class KeywordMatch(BaseModel):
    is_high_intent: bool = False
    matched_keyword: Optional[str] = None
    matched_scope: Optional[str] = None
    premium_response: str
    instructions: str


# ─── Request Models ─────────────────────────────────────────

class LeadScoreRequest(BaseModel):
    """Score a lead without touching the database."""
    lead: dict = Field(description="Lead row (carrier_mc, caller_company, notes, ...)")
    transcript: Optional[str] = None
    summary: Optional[str] = None


class BackfillRequest(BaseModel):
    limit: Optional[int] = Field(None, ge=1, le=10000, description="Max leads to process")
    dry_run: bool = False


class AccountScoreRequest(BaseModel):
    auto_queue: bool = True


class HighIntentCheckRequest(BaseModel):
    load_number: Optional[str] = None
    origin_city: Optional[str] = None
    destination_city: Optional[str] = None
    keyword: Optional[str] = None
    agent_id: Optional[str] = None
