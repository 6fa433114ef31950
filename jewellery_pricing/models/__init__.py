"""Pydantic domain models for the jewellery pricing engine."""

from .constants import (
    CLARITY_GRADES,
    COLOR_GRADES,
    CUT_GRADES,
    MATERIALS,
    METALS,
    ORDER_STATUSES,
    PAYMENT_METHODS,
)  # re-export
from .rates import RatePair, RateQuote
from .pricing import DiamondConfigPatch, DiamondPricingConfig, PriceBreakdown
from .product import DiamondSpec, PricingAttributes, ProductIn, ProductOut
from .order import CartLine, OrderIn, OrderLineSnapshot, OrderOut

__all__ = [
    "CLARITY_GRADES",
    "COLOR_GRADES",
    "CUT_GRADES",
    "MATERIALS",
    "METALS",
    "ORDER_STATUSES",
    "PAYMENT_METHODS",
    "RatePair",
    "RateQuote",
    "DiamondConfigPatch",
    "DiamondPricingConfig",
    "PriceBreakdown",
    "DiamondSpec",
    "PricingAttributes",
    "ProductIn",
    "ProductOut",
    "CartLine",
    "OrderIn",
    "OrderLineSnapshot",
    "OrderOut",
]
