from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from jewellery_pricing.core.config import Settings, get_settings
from jewellery_pricing.db.dal import Database
from jewellery_pricing.models.order import (
    OrderIn,
    OrderLineOut,
    OrderOut,
    OrderStatusUpdate,
    StatusEvent,
)
from jewellery_pricing.services.checkout import EmptyCart, place_order, update_order_status
from jewellery_pricing.services.rates.cache_service import RateCache, get_rate_cache

router = APIRouter(prefix="/orders", tags=["orders"])


def get_db(settings: Settings = Depends(get_settings)) -> Database:
    return Database(settings.db_path)


def _ts(raw: Any) -> datetime:
    return datetime.fromisoformat(raw.replace("Z", "+00:00")) if isinstance(raw, str) else raw


def _row_to_order(order: Dict[str, Any]) -> OrderOut:
    return OrderOut(
        id=int(order["id"]),
        cart_key=order["cart_key"],
        status=order["status"],
        payment_method=order["payment_method"],
        currency=order["currency"],
        gold_per_gram=order["gold_per_gram"],
        silver_per_gram=order["silver_per_gram"],
        subtotal=order["subtotal"],
        tax_amount=order["tax_amount"],
        total_amount=order["total_amount"],
        items=[
            OrderLineOut(
                product_id=i["product_id"],
                quantity=i["quantity"],
                unit_price=i["unit_price"],
                line_total=round(i["unit_price"] * i["quantity"], 2),
                captured_at=_ts(i["captured_at"]),
            )
            for i in order["items"]
        ],
        status_history=[
            StatusEvent(status=e["status"], note=e["note"], created_at=_ts(e["created_at"]))
            for e in order["status_history"]
        ],
        created_at=_ts(order["created_at"]),
    )


@router.post(
    "",
    response_model=OrderOut,
    status_code=status.HTTP_201_CREATED,
    summary="Place order (locks prices)",
)
def create_order(
    payload: OrderIn,
    currency: Optional[str] = None,
    db: Database = Depends(get_db),
    cache: RateCache = Depends(get_rate_cache),
    settings: Settings = Depends(get_settings),
):
    try:
        order_id = place_order(db, payload, cache, settings, currency=currency)
    except EmptyCart as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return _row_to_order(db.get_order(order_id))


@router.get("/{order_id}", response_model=OrderOut, summary="Get order")
async def get_order(order_id: int, db: Database = Depends(get_db)):
    order = db.get_order(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="order not found")
    return _row_to_order(order)


@router.patch("/{order_id}/status", response_model=OrderOut, summary="Update order status")
async def patch_status(
    order_id: int, payload: OrderStatusUpdate, db: Database = Depends(get_db)
):
    if not update_order_status(db, order_id, payload):
        raise HTTPException(status_code=404, detail="order not found")
    return _row_to_order(db.get_order(order_id))
