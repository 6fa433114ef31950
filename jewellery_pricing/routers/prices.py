from __future__ import annotations

from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from jewellery_pricing.models.constants import STANDARD_KARATS
from jewellery_pricing.models.rates import RatePair
from jewellery_pricing.services.money import round2
from jewellery_pricing.services.pricing import purity_factor
from jewellery_pricing.services.rates.cache_service import RateCache, get_rate_cache

"""Metal prices router.

Endpoints:
    - GET /prices?currency=INR -> current gold/silver per-gram rates with
      their sources, plus 10 g reference prices for standard karats
    - POST /prices/calc        -> live gold price for {weight, karat}

Declared as plain `def`: a cache miss performs blocking HTTP, so these run in
the threadpool.
"""

router = APIRouter(prefix="/prices", tags=["prices"])

REFERENCE_GRAMS = 10


class GoldCalcIn(BaseModel):
    weight: float = Field(..., gt=0, description="Grams")
    karat: float = Field(..., gt=0, le=24)
    currency: Optional[str] = None


def _rates_payload(pair: RatePair) -> Dict[str, object]:
    reference = {
        f"{k}K": round2(REFERENCE_GRAMS * pair.gold_per_gram * purity_factor(k))
        for k in sorted(STANDARD_KARATS, reverse=True)
    }
    return {
        "currency": pair.currency,
        "unit": "gram",
        "gold_per_gram": pair.gold_per_gram,
        "silver_per_gram": pair.silver_per_gram,
        "sources": {"gold": pair.gold.source, "silver": pair.silver.source},
        "fetched_at": pair.fetched_at.isoformat(),
        "reference_10g": reference,
        "silver_10g": round2(REFERENCE_GRAMS * pair.silver_per_gram),
    }


@router.get("", summary="Current metal rates")
def get_prices(
    currency: Optional[str] = Query(None, description="ISO currency, defaults to INR"),
    cache: RateCache = Depends(get_rate_cache),
):
    return {**_rates_payload(cache.get_rates(currency)), "provider": cache.provider_name}


@router.post("/calc", summary="Live gold price for a weight and karat")
def calc_gold_price(payload: GoldCalcIn, cache: RateCache = Depends(get_rate_cache)):
    pair = cache.get_rates(payload.currency)
    price = round2(payload.weight * pair.gold_per_gram * purity_factor(payload.karat))
    return {
        "currency": pair.currency,
        "unit": "gram",
        "weight": payload.weight,
        "karat": payload.karat,
        "price": price,
        "source": pair.gold.source,
    }
