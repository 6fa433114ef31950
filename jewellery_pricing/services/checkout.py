"""Checkout price locking and order lifecycle.

An order resolves exactly one RatePair, prices every cart line against it
and freezes the resulting unit prices into OrderLineSnapshots. The totals are
computed once from those snapshots and persisted next to the rate pair used.
Nothing after placement re-prices: status changes only append history.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from jewellery_pricing.core.config import Settings
from jewellery_pricing.core.logging import get_logger
from jewellery_pricing.db.dal import Database
from jewellery_pricing.models.order import (
    CartLine,
    OrderIn,
    OrderLineSnapshot,
    OrderStatusUpdate,
)
from jewellery_pricing.models.pricing import DiamondPricingConfig
from jewellery_pricing.models.rates import RatePair
from jewellery_pricing.services.catalog import load_cart_lines
from jewellery_pricing.services.diamond_config import get_or_create_diamond_config
from jewellery_pricing.services.money import round2
from jewellery_pricing.services.pricing import DEFAULT_POLICY, PricingPolicy, price_product
from jewellery_pricing.services.rates.cache_service import RateCache

logger = get_logger("checkout")


class EmptyCart(ValueError):
    pass


def lock_order_prices(
    cart_lines: Iterable[CartLine],
    rates: RatePair,
    diamond_config: Optional[DiamondPricingConfig] = None,
    policy: PricingPolicy = DEFAULT_POLICY,
    now: Optional[datetime] = None,
) -> List[OrderLineSnapshot]:
    """Price each line against the one RatePair handed in and freeze it."""
    captured_at = now or datetime.now(timezone.utc)
    snapshots: List[OrderLineSnapshot] = []
    for line in cart_lines:
        priced = price_product(
            line.attributes,
            rates,
            diamond_config,
            stored_price=line.stored_price,
            policy=policy,
            product_ref=line.product_id,
        )
        snapshots.append(
            OrderLineSnapshot(
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=priced.price,
                captured_at=captured_at,
            )
        )
    return snapshots


def initial_status(payment_method: str) -> str:
    return "confirmed" if payment_method == "cod" else "pending"


def place_order(
    db: Database,
    order_in: OrderIn,
    rate_cache: RateCache,
    settings: Settings,
    currency: Optional[str] = None,
    clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
) -> int:
    """Lock prices for a cart and persist the order. Returns the order id.

    Raises EmptyCart when no line with an existing product remains.
    """
    lines = load_cart_lines(db, order_in.cart_key)
    if not lines:
        raise EmptyCart("cart is empty")

    # Resolved once; every line below shares this pair
    rates = rate_cache.get_rates(currency)
    if rates.fully_degraded:
        logger.warning(
            "placing order for cart=%s on fallback rates gold=%s silver=%s %s",
            order_in.cart_key,
            rates.gold_per_gram,
            rates.silver_per_gram,
            rates.currency,
            extra={"cart_key": order_in.cart_key, "currency": rates.currency},
        )
    config = None
    if any(line.attributes.has_diamond for line in lines):
        config = get_or_create_diamond_config(db)

    snapshots = lock_order_prices(
        lines, rates, config, PricingPolicy.from_settings(settings), now=clock()
    )
    subtotal = round2(sum(s.line_total for s in snapshots))
    tax_amount = round2(subtotal * settings.order_tax_percent / 100)
    total_amount = round2(subtotal + tax_amount)
    status = initial_status(order_in.payment_method)

    order_id = db.create_order(
        {
            "cart_key": order_in.cart_key,
            "payment_method": order_in.payment_method,
            "shipping_address": order_in.shipping_address.model_dump(),
            "currency": rates.currency,
            "gold_per_gram": rates.gold_per_gram,
            "silver_per_gram": rates.silver_per_gram,
            "rates_source": f"{rates.gold.source}/{rates.silver.source}",
            "subtotal": subtotal,
            "tax_amount": tax_amount,
            "total_amount": total_amount,
        },
        [
            {
                "product_id": s.product_id,
                "quantity": s.quantity,
                "unit_price": s.unit_price,
                "captured_at": s.captured_at.isoformat(),
            }
            for s in snapshots
        ],
        status,
    )
    logger.info(
        "order placed id=%s cart=%s lines=%s total=%s %s status=%s",
        order_id,
        order_in.cart_key,
        len(snapshots),
        total_amount,
        rates.currency,
        status,
        extra={"order_id": order_id, "cart_key": order_in.cart_key, "currency": rates.currency},
    )
    return order_id


def update_order_status(db: Database, order_id: int, update: OrderStatusUpdate) -> bool:
    """Move an order along its lifecycle. Locked prices are left untouched."""
    changed = db.update_order_status(order_id, update.status, update.note)
    if changed:
        logger.info(
            "order %s status -> %s", order_id, update.status, extra={"order_id": order_id}
        )
    return changed
