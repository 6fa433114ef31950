from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from jewellery_pricing.core.config import Settings, get_settings
from jewellery_pricing.db.dal import Database
from jewellery_pricing.models.product import ProductIn, ProductOut
from jewellery_pricing.services.catalog import get_priced_product, list_priced_products
from jewellery_pricing.services.diamond_config import get_or_create_diamond_config
from jewellery_pricing.services.pricing import PricingPolicy
from jewellery_pricing.services.rates.cache_service import RateCache, get_rate_cache

from .admin import require_admin_enabled

router = APIRouter(prefix="/products", tags=["products"])


def get_db(settings: Settings = Depends(get_settings)) -> Database:
    return Database(settings.db_path)


@router.get("", summary="List products priced live")
def list_products(
    category: Optional[str] = None,
    material: Optional[str] = None,
    search: Optional[str] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    sort: str = Query("newest", description="newest | price | price_desc | name"),
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=200),
    currency: Optional[str] = None,
    db: Database = Depends(get_db),
    cache: RateCache = Depends(get_rate_cache),
    settings: Settings = Depends(get_settings),
):
    rates = cache.get_rates(currency)
    try:
        return list_priced_products(
            db,
            rates,
            get_or_create_diamond_config(db),
            PricingPolicy.from_settings(settings),
            category=category,
            material=material,
            search=search,
            min_price=min_price,
            max_price=max_price,
            sort=sort,
            page=page,
            limit=limit,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.get("/{product_id}", response_model=ProductOut, summary="Product detail")
def get_product(
    product_id: int,
    currency: Optional[str] = None,
    db: Database = Depends(get_db),
    cache: RateCache = Depends(get_rate_cache),
    settings: Settings = Depends(get_settings),
):
    rates = cache.get_rates(currency)
    product = get_priced_product(
        db,
        product_id,
        rates,
        get_or_create_diamond_config(db),
        PricingPolicy.from_settings(settings),
    )
    if product is None:
        raise HTTPException(status_code=404, detail="product not found")
    return product


@router.post(
    "",
    response_model=ProductOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create catalog product",
)
def create_product(
    payload: ProductIn,
    _: bool = Depends(require_admin_enabled),
    db: Database = Depends(get_db),
    cache: RateCache = Depends(get_rate_cache),
    settings: Settings = Depends(get_settings),
):
    diamond = payload.diamond
    has_diamond = bool(diamond and diamond.has_diamond)
    product_id = db.create_product(
        {
            "name": payload.name,
            "description": payload.description,
            "category": payload.category,
            "material": payload.material,
            "price": payload.price,
            "weight": payload.weight,
            "metal_weight": payload.metal_weight,
            "karat": payload.karat,
            "has_diamond": 1 if has_diamond else 0,
            "diamond_carat": diamond.carat if has_diamond else None,
            "diamond_cut": diamond.cut if has_diamond else None,
            "diamond_color": diamond.color if has_diamond else None,
            "diamond_clarity": diamond.clarity if has_diamond else None,
            "stock": payload.stock,
        }
    )
    # Detail read prices the new row and stores its first breakdown
    return get_priced_product(
        db,
        product_id,
        cache.get_rates(),
        get_or_create_diamond_config(db),
        PricingPolicy.from_settings(settings),
    )
