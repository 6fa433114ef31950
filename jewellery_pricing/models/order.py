from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import ORDER_STATUSES, PAYMENT_METHODS
from .product import PricingAttributes


class CartLine(BaseModel):
    """One cart row joined with the product fields pricing needs."""

    product_id: int
    quantity: int = Field(..., ge=1)
    name: str = ""
    attributes: PricingAttributes
    stored_price: float = 0.0


class OrderLineSnapshot(BaseModel):
    """Unit price frozen at order creation. Never recomputed afterwards."""

    model_config = ConfigDict(frozen=True)

    product_id: int
    quantity: int
    unit_price: float
    captured_at: datetime

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


class ShippingAddress(BaseModel):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    line1: str = Field(..., min_length=1)
    line2: Optional[str] = None
    city: str = Field(..., min_length=1)
    state: Optional[str] = None
    pincode: str = Field(..., min_length=1)
    country: str = "India"
    email: Optional[str] = None


class OrderIn(BaseModel):
    cart_key: str = Field(..., min_length=1)
    payment_method: str = "cod"
    shipping_address: ShippingAddress

    @field_validator("payment_method")
    @classmethod
    def valid_payment_method(cls, v: str) -> str:
        v = v.lower()
        if v not in PAYMENT_METHODS:
            raise ValueError("unsupported payment method")
        return v


class OrderStatusUpdate(BaseModel):
    status: str
    note: Optional[str] = None

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: str) -> str:
        if v not in ORDER_STATUSES:
            raise ValueError("unsupported order status")
        return v


class OrderLineOut(BaseModel):
    product_id: int
    quantity: int
    unit_price: float
    line_total: float
    captured_at: datetime


class StatusEvent(BaseModel):
    status: str
    note: Optional[str] = None
    created_at: datetime


class OrderOut(BaseModel):
    id: int
    cart_key: str
    status: str
    payment_method: str
    currency: str
    gold_per_gram: float
    silver_per_gram: float
    subtotal: float
    tax_amount: float
    total_amount: float
    items: List[OrderLineOut]
    status_history: List[StatusEvent] = []
    created_at: datetime
