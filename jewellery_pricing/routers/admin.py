from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from jewellery_pricing.core.config import Settings, get_settings
from jewellery_pricing.db.dal import Database
from jewellery_pricing.models.pricing import (
    DiamondConfigPatch,
    DiamondPriceRequest,
    DiamondPricePreview,
    DiamondPricingConfig,
)
from jewellery_pricing.services.diamond_config import (
    get_or_create_diamond_config,
    preview_diamond_price,
    recompute_diamond_prices,
    recompute_silver_prices,
    update_diamond_config,
)
from jewellery_pricing.services.pricing import PricingPolicy
from jewellery_pricing.services.rates.cache_service import RateCache, get_rate_cache

"""Admin router for diamond pricing and catalog recompute.

Endpoints (guarded by settings.enable_admin_routes):
    - GET /admin/diamond-pricing           -> current config (created on first read)
    - PUT /admin/diamond-pricing           -> partial update; maps merge by key
    - POST /admin/recalc-diamond           -> re-price diamond-bearing products
    - POST /admin/recalc-silver            -> re-price silver products
    - POST /admin/calculate-diamond-price  -> stone-only preview, nothing stored

Authentication is out of scope here; deploy behind an authenticating proxy
or switch the routes off.
"""

router = APIRouter(prefix="/admin", tags=["admin"])


def get_db(settings: Settings = Depends(get_settings)) -> Database:
    return Database(settings.db_path)


def require_admin_enabled(settings: Settings = Depends(get_settings)):
    if not settings.enable_admin_routes:
        raise HTTPException(status_code=403, detail="admin routes disabled")
    return True


@router.get("/diamond-pricing", response_model=DiamondPricingConfig)
async def get_diamond_pricing(
    _: bool = Depends(require_admin_enabled), db: Database = Depends(get_db)
):
    return get_or_create_diamond_config(db)


@router.put("/diamond-pricing", response_model=DiamondPricingConfig)
async def put_diamond_pricing(
    patch: DiamondConfigPatch,
    _: bool = Depends(require_admin_enabled),
    db: Database = Depends(get_db),
):
    try:
        return update_diamond_config(db, patch)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.post("/recalc-diamond", summary="Recompute diamond product prices")
def recalc_diamond(
    currency: Optional[str] = None,
    _: bool = Depends(require_admin_enabled),
    db: Database = Depends(get_db),
    cache: RateCache = Depends(get_rate_cache),
    settings: Settings = Depends(get_settings),
):
    result = recompute_diamond_prices(
        db,
        cache.get_rates(currency),
        get_or_create_diamond_config(db),
        PricingPolicy.from_settings(settings),
    )
    return {"message": "diamond prices recalculated", **result}


@router.post("/recalc-silver", summary="Recompute silver product prices")
def recalc_silver(
    currency: Optional[str] = None,
    _: bool = Depends(require_admin_enabled),
    db: Database = Depends(get_db),
    cache: RateCache = Depends(get_rate_cache),
    settings: Settings = Depends(get_settings),
):
    result = recompute_silver_prices(
        db,
        cache.get_rates(currency),
        get_or_create_diamond_config(db),
        PricingPolicy.from_settings(settings),
    )
    return {"message": "silver prices recalculated", **result}


@router.post("/calculate-diamond-price", response_model=DiamondPricePreview)
async def calculate_diamond_price(
    payload: DiamondPriceRequest,
    _: bool = Depends(require_admin_enabled),
    db: Database = Depends(get_db),
):
    return preview_diamond_price(get_or_create_diamond_config(db), payload)
