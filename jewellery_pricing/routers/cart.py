from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from jewellery_pricing.core.config import Settings, get_settings
from jewellery_pricing.db.dal import Database
from jewellery_pricing.services.catalog import value_cart
from jewellery_pricing.services.diamond_config import get_or_create_diamond_config
from jewellery_pricing.services.pricing import PricingPolicy
from jewellery_pricing.services.rates.cache_service import RateCache, get_rate_cache

"""Cart router.

A cart is addressed by an opaque key (user id or guest token). Every read
returns the cart valued at live prices; the quote is not binding until an
order locks it.
"""

router = APIRouter(prefix="/cart", tags=["cart"])


def get_db(settings: Settings = Depends(get_settings)) -> Database:
    return Database(settings.db_path)


class CartItemIn(BaseModel):
    product_id: int
    quantity: int = Field(1, ge=1, le=100)


class CartQuantityIn(BaseModel):
    quantity: int = Field(..., ge=0, le=100, description="0 removes the line")


def _valued(db: Database, cart_key: str, cache: RateCache, settings: Settings, currency=None):
    return value_cart(
        db,
        cart_key,
        cache.get_rates(currency),
        get_or_create_diamond_config(db),
        PricingPolicy.from_settings(settings),
    )


@router.get("/{cart_key}", summary="Cart with live valuation")
def get_cart(
    cart_key: str,
    currency: Optional[str] = None,
    db: Database = Depends(get_db),
    cache: RateCache = Depends(get_rate_cache),
    settings: Settings = Depends(get_settings),
):
    return _valued(db, cart_key, cache, settings, currency)


@router.post("/{cart_key}/items", status_code=status.HTTP_201_CREATED, summary="Add to cart")
def add_item(
    cart_key: str,
    payload: CartItemIn,
    db: Database = Depends(get_db),
    cache: RateCache = Depends(get_rate_cache),
    settings: Settings = Depends(get_settings),
):
    product = db.get_product(payload.product_id)
    if product is None or not product.get("is_active"):
        raise HTTPException(status_code=404, detail="product not found")
    db.add_cart_item(cart_key, payload.product_id, payload.quantity)
    return _valued(db, cart_key, cache, settings)


@router.put("/{cart_key}/items/{product_id}", summary="Set line quantity")
def set_quantity(
    cart_key: str,
    product_id: int,
    payload: CartQuantityIn,
    db: Database = Depends(get_db),
    cache: RateCache = Depends(get_rate_cache),
    settings: Settings = Depends(get_settings),
):
    if not db.set_cart_quantity(cart_key, product_id, payload.quantity):
        raise HTTPException(status_code=404, detail="item not in cart")
    return _valued(db, cart_key, cache, settings)


@router.delete("/{cart_key}/items/{product_id}", summary="Remove line")
def remove_item(
    cart_key: str,
    product_id: int,
    db: Database = Depends(get_db),
    cache: RateCache = Depends(get_rate_cache),
    settings: Settings = Depends(get_settings),
):
    if not db.remove_cart_item(cart_key, product_id):
        raise HTTPException(status_code=404, detail="item not in cart")
    return _valued(db, cart_key, cache, settings)


@router.delete("/{cart_key}", status_code=status.HTTP_204_NO_CONTENT, summary="Empty cart")
def clear_cart(cart_key: str, db: Database = Depends(get_db)):
    db.clear_cart(cart_key)
