from __future__ import annotations

import json
import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from jewellery_pricing.core.logging import get_logger
from jewellery_pricing.db.dal import Database
from jewellery_pricing.models.order import CartLine
from jewellery_pricing.models.pricing import DiamondPricingConfig
from jewellery_pricing.models.product import ProductOut, attributes_from_row
from jewellery_pricing.models.rates import RatePair
from jewellery_pricing.services.money import round2
from jewellery_pricing.services.pricing import (
    DEFAULT_POLICY,
    PricedItem,
    PricingPolicy,
    price_product,
)

"""Catalog and cart valuation (live prices on read).

Every read path prices through `price_product` with a RatePair the caller
resolved once, so a listing, a detail page and a cart quote the same number
for the same product and rates. Price-range filters apply to the computed
price, never to the stored column.

Sort keys:
    newest (default) | price | price_desc | name
"""

logger = get_logger("catalog")

SORT_KEYS = {"newest", "price", "price_desc", "name"}


def _parse_ts(raw: Any) -> Optional[datetime]:
    if isinstance(raw, str):
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    return raw


def _stored_breakdown(row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    raw = row.get("price_breakdown")
    if not raw:
        return None
    try:
        decoded = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None
    return decoded if isinstance(decoded, dict) else None


def price_row(
    row: Dict[str, Any],
    rates: RatePair,
    config: Optional[DiamondPricingConfig],
    policy: PricingPolicy = DEFAULT_POLICY,
) -> PricedItem:
    return price_product(
        attributes_from_row(row),
        rates,
        config,
        stored_price=row.get("price") or 0.0,
        policy=policy,
        product_ref=row.get("id"),
    )


def to_product_out(row: Dict[str, Any], priced: PricedItem) -> ProductOut:
    attrs = attributes_from_row(row)
    return ProductOut(
        id=int(row["id"]),
        name=row["name"],
        description=row.get("description") or "",
        category=row["category"],
        material=row["material"],
        weight=row.get("weight") or 0.0,
        metal_weight=row.get("metal_weight"),
        karat=row.get("karat"),
        diamond=attrs.diamond,
        stock=int(row.get("stock") or 0),
        is_active=bool(row.get("is_active")),
        stored_price=row.get("price") or 0.0,
        price=priced.price,
        price_source=priced.source,
        price_breakdown=priced.breakdown,
        created_at=_parse_ts(row.get("created_at")),
        updated_at=_parse_ts(row.get("updated_at")),
    )


def list_priced_products(
    db: Database,
    rates: RatePair,
    config: Optional[DiamondPricingConfig],
    policy: PricingPolicy = DEFAULT_POLICY,
    *,
    category: Optional[str] = None,
    material: Optional[str] = None,
    search: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    sort: str = "newest",
    page: int = 1,
    limit: int = 100,
) -> Dict[str, Any]:
    if sort not in SORT_KEYS:
        raise ValueError(f"unsupported sort '{sort}'")
    rows = db.list_products(category=category, material=material, search=search)
    priced = [(row, price_row(row, rates, config, policy)) for row in rows]
    if min_price is not None:
        priced = [p for p in priced if p[1].price >= min_price]
    if max_price is not None:
        priced = [p for p in priced if p[1].price <= max_price]

    # Rows arrive newest first from the DAL
    if sort == "price":
        priced.sort(key=lambda p: p[1].price)
    elif sort == "price_desc":
        priced.sort(key=lambda p: p[1].price, reverse=True)
    elif sort == "name":
        priced.sort(key=lambda p: p[0]["name"].lower())

    total = len(priced)
    start = (page - 1) * limit
    window = priced[start : start + limit]
    return {
        "products": [to_product_out(row, item) for row, item in window],
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit) if total else 0,
        "currency": rates.currency,
    }


def get_priced_product(
    db: Database,
    product_id: int,
    rates: RatePair,
    config: Optional[DiamondPricingConfig],
    policy: PricingPolicy = DEFAULT_POLICY,
) -> Optional[ProductOut]:
    """Detail read; refreshes the stored price and breakdown when they moved."""
    row = db.get_product(product_id)
    if row is None:
        return None
    priced = price_row(row, rates, config, policy)
    if priced.source == "computed" and priced.breakdown is not None:
        fresh = priced.breakdown.model_dump(mode="json")
        if priced.price != row.get("price") or fresh != _stored_breakdown(row):
            db.save_product_pricing(product_id, priced.price, fresh)
            logger.debug("persisted refreshed breakdown for product=%s", product_id)
    return to_product_out(row, priced)


def load_cart_lines(db: Database, cart_key: str) -> List[CartLine]:
    """Cart rows whose product still exists, with pricing attributes attached."""
    lines: List[CartLine] = []
    for row in db.get_cart_lines(cart_key):
        if row.get("id") is None:
            logger.info(
                "cart %s references missing product=%s; skipped",
                cart_key,
                row.get("cart_product_id"),
            )
            continue
        lines.append(
            CartLine(
                product_id=int(row["id"]),
                quantity=int(row["quantity"]),
                name=row.get("name") or "",
                attributes=attributes_from_row(row),
                stored_price=row.get("price") or 0.0,
            )
        )
    return lines


def value_cart(
    db: Database,
    cart_key: str,
    rates: RatePair,
    config: Optional[DiamondPricingConfig],
    policy: PricingPolicy = DEFAULT_POLICY,
) -> Dict[str, Any]:
    """Live cart quote. Not a lock; checkout re-prices with its own RatePair."""
    items = []
    subtotal = 0.0
    for line in load_cart_lines(db, cart_key):
        priced = price_product(
            line.attributes,
            rates,
            config,
            stored_price=line.stored_price,
            policy=policy,
            product_ref=line.product_id,
        )
        line_total = round2(priced.price * line.quantity)
        subtotal += line_total
        items.append(
            {
                "product_id": line.product_id,
                "name": line.name,
                "quantity": line.quantity,
                "unit_price": priced.price,
                "line_total": line_total,
                "price_source": priced.source,
            }
        )
    return {
        "cart_key": cart_key,
        "currency": rates.currency,
        "items": items,
        "subtotal": round2(subtotal),
    }
