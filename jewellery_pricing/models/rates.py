from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import METALS

RateSourceKind = Literal["live", "cache", "fallback"]


class RateQuote(BaseModel):
    model_config = ConfigDict(frozen=True)

    metal: str
    currency: str
    per_gram: float = Field(..., ge=0, allow_inf_nan=False)
    fetched_at: datetime
    source: RateSourceKind = "live"

    @field_validator("metal")
    @classmethod
    def valid_metal(cls, v: str) -> str:
        v = v.lower()
        if v not in METALS:
            raise ValueError("unsupported metal")
        return v

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class RatePair(BaseModel):
    """Gold and silver per-gram quotes for one currency; the cache unit."""

    model_config = ConfigDict(frozen=True)

    currency: str
    gold: RateQuote
    silver: RateQuote
    fetched_at: datetime

    @property
    def gold_per_gram(self) -> float:
        return self.gold.per_gram

    @property
    def silver_per_gram(self) -> float:
        return self.silver.per_gram

    @property
    def fully_degraded(self) -> bool:
        return self.gold.source == "fallback" and self.silver.source == "fallback"
