"""Price computation engine.

One pure function, `compute_price`, turns pricing attributes + a resolved
RatePair (+ the diamond config for stone-set pieces) into an itemized
PriceBreakdown. Listing, detail, cart, bulk recompute and checkout all go
through `price_product`, which wraps it with the stored-price pass-through
and failure fallback, so every surface quotes the same number for the same
inputs.

Order of operations:
    metal   = weight x metal rate x purity (gold only; purity = karat / 24)
    diamond = carat x base rate x cut x color x clarity multipliers
    making  = (metal + diamond) x making %
    gst     = (metal + diamond + making) x gst %
    final   = sum of the four, rounded half-up to whole currency units

Diamond-bearing items take making % and GST % from the diamond config;
everything else uses the settings defaults (10% / 3%).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from jewellery_pricing.core.config import Settings
from jewellery_pricing.core.errors import ComputationFailure, IncompleteDiamondSpec
from jewellery_pricing.core.logging import get_logger
from jewellery_pricing.models.constants import METALS
from jewellery_pricing.models.pricing import (
    DiamondDetails,
    DiamondPricingConfig,
    PriceBreakdown,
)
from jewellery_pricing.models.product import DiamondSpec, PricingAttributes
from jewellery_pricing.models.rates import RatePair
from jewellery_pricing.services.money import round2, round_whole

logger = get_logger("pricing")

FULL_KARAT = 24.0


@dataclass(frozen=True)
class PricingPolicy:
    default_making_charge_percent: float = 10.0
    default_gst_percent: float = 3.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "PricingPolicy":
        return cls(
            default_making_charge_percent=settings.default_making_charge_percent,
            default_gst_percent=settings.default_gst_percent,
        )


DEFAULT_POLICY = PricingPolicy()


@dataclass(frozen=True)
class PricedItem:
    price: float
    breakdown: Optional[PriceBreakdown]
    source: str  # 'computed' | 'stored' | 'fallback'


def _non_negative(value: Optional[float]) -> float:
    """Clamp bad numeric input (None, NaN, inf, negatives) to zero."""
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def purity_factor(karat: Optional[float]) -> float:
    """Gold purity relative to 24K. Unspecified or out-of-range karat is 24K."""
    k = _non_negative(karat)
    if k == 0 or k >= FULL_KARAT:
        return 1.0
    return k / FULL_KARAT


def metal_cost(attrs: PricingAttributes, rates: RatePair) -> float:
    weight = _non_negative(attrs.metal_weight_grams) or _non_negative(attrs.weight_grams)
    if attrs.material == "gold":
        return weight * rates.gold_per_gram * purity_factor(attrs.karat)
    if attrs.material == "silver":
        return weight * rates.silver_per_gram
    # diamond / other: no metal basis
    return 0.0


def _multiplier(table: dict, grade: str) -> float:
    value = table.get(grade)
    if value is None:
        return 1.0
    return _non_negative(value)


def diamond_cost(
    spec: DiamondSpec, config: DiamondPricingConfig
) -> Tuple[float, DiamondDetails]:
    """Multiplier-table price for one stone.

    Raises IncompleteDiamondSpec unless carat, cut, color and clarity are all
    present; a partial spec never gets a partial multiplier applied.
    """
    if not spec.is_complete:
        raise IncompleteDiamondSpec("carat, cut, color and clarity are all required")
    carat = _non_negative(spec.carat)
    cut_mult = _multiplier(config.cut_multipliers, spec.cut)
    color_mult = _multiplier(config.color_multipliers, spec.color)
    clarity_mult = _multiplier(config.clarity_multipliers, spec.clarity)
    base = carat * config.base_rate_per_carat
    details = DiamondDetails(
        carat=carat,
        cut=spec.cut,
        color=spec.color,
        clarity=spec.clarity,
        base_rate_per_carat=config.base_rate_per_carat,
        base_cost=round2(base),
        cut_multiplier=cut_mult,
        color_multiplier=color_mult,
        clarity_multiplier=clarity_mult,
    )
    return base * cut_mult * color_mult * clarity_mult, details


def compute_price(
    attrs: PricingAttributes,
    rates: RatePair,
    diamond_config: Optional[DiamondPricingConfig] = None,
    policy: PricingPolicy = DEFAULT_POLICY,
) -> PriceBreakdown:
    metal = metal_cost(attrs, rates)

    uses_diamond_config = attrs.has_diamond and diamond_config is not None
    diamond = 0.0
    details = None
    if uses_diamond_config:
        try:
            diamond, details = diamond_cost(attrs.diamond, diamond_config)
        except IncompleteDiamondSpec:
            diamond, details = 0.0, None

    base_cost = metal + diamond
    if uses_diamond_config:
        making_pct = diamond_config.making_charge_percent
        gst_pct = diamond_config.gst_percent
    else:
        making_pct = policy.default_making_charge_percent
        gst_pct = policy.default_gst_percent

    making = (base_cost * _non_negative(making_pct)) / 100
    gst = ((base_cost + making) * _non_negative(gst_pct)) / 100

    try:
        # Final price rounds the unrounded sum; displayed components may not
        # add up to it exactly.
        return PriceBreakdown(
            metal_cost=round2(metal),
            diamond_cost=round2(diamond),
            making_charges=round2(making),
            gst=round2(gst),
            final_price=round_whole(metal + diamond + making + gst),
            diamond_details=details,
        )
    except (ArithmeticError, ValueError) as e:
        # e.g. an infinite rate overflowing Decimal rounding
        raise ComputationFailure(str(e)) from e


def price_product(
    attrs: PricingAttributes,
    rates: RatePair,
    diamond_config: Optional[DiamondPricingConfig] = None,
    *,
    stored_price: float = 0.0,
    policy: PricingPolicy = DEFAULT_POLICY,
    product_ref: object = None,
) -> PricedItem:
    """Live unit price for a catalog item; computation failures never reach the caller.

    Items with no metal basis and no priced stone keep their stored price.
    If computation itself fails, the stored price is served and logged.
    """
    stored = _non_negative(stored_price)
    try:
        breakdown = compute_price(attrs, rates, diamond_config, policy)
    except ComputationFailure:
        logger.warning(
            "price computation failed for product=%s; using stored price %s",
            product_ref,
            stored,
            exc_info=True,
            extra={"product_id": product_ref},
        )
        return PricedItem(price=stored, breakdown=None, source="fallback")

    if attrs.material not in METALS and breakdown.diamond_cost == 0:
        return PricedItem(price=stored, breakdown=breakdown, source="stored")
    return PricedItem(price=breakdown.final_price, breakdown=breakdown, source="computed")
