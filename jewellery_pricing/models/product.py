from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from .constants import CLARITY_GRADES, COLOR_GRADES, CUT_GRADES, MATERIALS
from .pricing import PriceBreakdown


class DiamondSpec(BaseModel):
    has_diamond: bool = False
    carat: Optional[float] = None
    cut: Optional[str] = None
    color: Optional[str] = None
    clarity: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.carat) and bool(self.cut) and bool(self.color) and bool(self.clarity)


class PricingAttributes(BaseModel):
    """What the computation engine needs to know about a product.

    Deliberately lenient: out-of-range numbers are clamped by the engine,
    not rejected here, so a bad catalog row still gets a price.
    """

    material: str = "other"
    weight_grams: float = 0.0
    metal_weight_grams: Optional[float] = None
    karat: Optional[float] = 24
    diamond: Optional[DiamondSpec] = None

    @field_validator("material", mode="before")
    @classmethod
    def normalize_material(cls, v: Any) -> str:
        v = str(v or "").strip().lower()
        return v if v in MATERIALS else "other"

    @property
    def has_diamond(self) -> bool:
        return bool(self.diamond and self.diamond.has_diamond)


class DiamondSpecIn(DiamondSpec):
    carat: Optional[float] = Field(None, gt=0)

    @field_validator("cut")
    @classmethod
    def valid_cut(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v.lower() not in CUT_GRADES:
            raise ValueError("unsupported cut grade")
        return v.lower() if v is not None else v

    @field_validator("color")
    @classmethod
    def valid_color(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v.upper() not in COLOR_GRADES:
            raise ValueError("unsupported color grade")
        return v.upper() if v is not None else v

    @field_validator("clarity")
    @classmethod
    def valid_clarity(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v.upper() not in CLARITY_GRADES:
            raise ValueError("unsupported clarity grade")
        return v.upper() if v is not None else v


class ProductIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: str = ""
    category: str = Field(..., min_length=1, max_length=60)
    material: str
    price: float = Field(0, ge=0, description="Stored price; used for non-metal items and as fallback")
    weight: float = Field(..., ge=0, description="Grams")
    metal_weight: Optional[float] = Field(None, ge=0)
    karat: int = Field(24, gt=0, le=24)
    diamond: Optional[DiamondSpecIn] = None
    stock: int = Field(1, ge=0)

    @field_validator("material")
    @classmethod
    def valid_material(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in MATERIALS:
            raise ValueError("unsupported material")
        return v


class ProductOut(BaseModel):
    id: int
    name: str
    description: str
    category: str
    material: str
    weight: float
    metal_weight: Optional[float] = None
    karat: Optional[float] = None
    diamond: Optional[DiamondSpec] = None
    stock: int
    is_active: bool
    stored_price: float
    price: float
    price_source: str
    price_breakdown: Optional[PriceBreakdown] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def attributes_from_row(row: Dict[str, Any]) -> PricingAttributes:
    """Build engine input from a products table row."""
    diamond = None
    if row.get("has_diamond"):
        diamond = DiamondSpec(
            has_diamond=True,
            carat=row.get("diamond_carat"),
            cut=row.get("diamond_cut"),
            color=row.get("diamond_color"),
            clarity=row.get("diamond_clarity"),
        )
    return PricingAttributes(
        material=row.get("material"),
        weight_grams=row.get("weight") or 0.0,
        metal_weight_grams=row.get("metal_weight"),
        karat=row.get("karat"),
        diamond=diamond,
    )
