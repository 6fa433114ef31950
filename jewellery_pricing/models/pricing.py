from __future__ import annotations

from datetime import datetime
from typing import Annotated, Dict, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_BASE_RATE_PER_CARAT = 300000.0
DEFAULT_CUT_MULTIPLIERS: Dict[str, float] = {
    "excellent": 1.3,
    "very-good": 1.15,
    "good": 1.0,
    "fair": 0.85,
    "poor": 0.7,
}
# D is best, M is worst
DEFAULT_COLOR_MULTIPLIERS: Dict[str, float] = {
    "D": 1.5,
    "E": 1.4,
    "F": 1.3,
    "G": 1.2,
    "H": 1.1,
    "I": 1.0,
    "J": 0.9,
    "K": 0.8,
    "L": 0.7,
    "M": 0.6,
}
DEFAULT_CLARITY_MULTIPLIERS: Dict[str, float] = {
    "FL": 1.5,
    "IF": 1.4,
    "VVS1": 1.3,
    "VVS2": 1.2,
    "VS1": 1.1,
    "VS2": 1.0,
    "SI1": 0.9,
    "SI2": 0.8,
    "I1": 0.7,
    "I2": 0.6,
    "I3": 0.5,
}
DEFAULT_DIAMOND_MAKING_CHARGE_PERCENT = 15.0
DEFAULT_DIAMOND_GST_PERCENT = 3.0


class DiamondDetails(BaseModel):
    carat: float
    cut: str
    color: str
    clarity: str
    base_rate_per_carat: float
    base_cost: float
    cut_multiplier: float
    color_multiplier: float
    clarity_multiplier: float


class PriceBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    metal_cost: float = Field(0.0, ge=0)
    diamond_cost: float = Field(0.0, ge=0)
    making_charges: float = Field(0.0, ge=0)
    gst: float = Field(0.0, ge=0)
    final_price: float = Field(0.0, ge=0)
    diamond_details: Optional[DiamondDetails] = None


def _check_multipliers(v: Dict[str, float]) -> Dict[str, float]:
    for grade, mult in v.items():
        if mult < 0:
            raise ValueError(f"multiplier for '{grade}' cannot be negative")
    return v


Multipliers = Annotated[Dict[str, float], AfterValidator(_check_multipliers)]


class DiamondPricingConfig(BaseModel):
    id: Optional[int] = None
    base_rate_per_carat: float = Field(DEFAULT_BASE_RATE_PER_CARAT, gt=0)
    cut_multipliers: Multipliers = Field(
        default_factory=lambda: dict(DEFAULT_CUT_MULTIPLIERS)
    )
    color_multipliers: Multipliers = Field(
        default_factory=lambda: dict(DEFAULT_COLOR_MULTIPLIERS)
    )
    clarity_multipliers: Multipliers = Field(
        default_factory=lambda: dict(DEFAULT_CLARITY_MULTIPLIERS)
    )
    making_charge_percent: float = Field(DEFAULT_DIAMOND_MAKING_CHARGE_PERCENT, ge=0)
    gst_percent: float = Field(DEFAULT_DIAMOND_GST_PERCENT, ge=0)
    last_updated: Optional[datetime] = None
    updated_by: Optional[str] = None


class DiamondConfigPatch(BaseModel):
    """Partial admin update. Multiplier maps are merged over the stored ones."""

    base_rate_per_carat: Optional[float] = Field(None, gt=0)
    cut_multipliers: Optional[Multipliers] = None
    color_multipliers: Optional[Multipliers] = None
    clarity_multipliers: Optional[Multipliers] = None
    making_charge_percent: Optional[float] = Field(None, ge=0)
    gst_percent: Optional[float] = Field(None, ge=0)
    updated_by: Optional[str] = None

    @model_validator(mode="after")
    def at_least_one(self):  # type: ignore[override]
        fields = [
            "base_rate_per_carat",
            "cut_multipliers",
            "color_multipliers",
            "clarity_multipliers",
            "making_charge_percent",
            "gst_percent",
        ]
        if all(getattr(self, f) is None for f in fields):
            raise ValueError("at least one pricing field must be provided for update")
        return self


class DiamondPriceRequest(BaseModel):
    """Preview input; grades are case-normalised to the multiplier map keys."""

    carat: float = Field(..., gt=0)
    cut: str = Field(..., min_length=1)
    color: str = Field(..., min_length=1)
    clarity: str = Field(..., min_length=1)

    @field_validator("cut")
    @classmethod
    def lower_cut(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("color", "clarity")
    @classmethod
    def upper_grade(cls, v: str) -> str:
        return v.strip().upper()


class DiamondPricePreview(BaseModel):
    carat: float
    cut: str
    color: str
    clarity: str
    base_rate_per_carat: float
    base_cost: float
    with_multipliers: float
    cut_multiplier: float
    color_multiplier: float
    clarity_multiplier: float
