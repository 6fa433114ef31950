"""Data Access Layer for the pricing engine.

Responsibilities
----------------
- Catalog CRUD plus write-back of computed prices and breakdowns.
- Diamond pricing config storage (get-first / insert / update; never delete).
- Cart lines keyed by an opaque cart key, joined with product attributes.
- Orders with their locked line prices and append-only status history.

The DAL stores whatever it is handed; pricing decisions live in services.
"""

from __future__ import annotations

from pathlib import Path
import json
import sqlite3
from typing import Any, Dict, Iterable, List, Optional

UTC_NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ','now')"

PRODUCT_COLUMNS = (
    "name",
    "description",
    "category",
    "material",
    "price",
    "weight",
    "metal_weight",
    "karat",
    "has_diamond",
    "diamond_carat",
    "diamond_cut",
    "diamond_color",
    "diamond_clarity",
    "stock",
)
_PRODUCT_DEFAULTS: Dict[str, Any] = {
    "description": "",
    "price": 0.0,
    "weight": 0.0,
    "has_diamond": 0,
    "stock": 1,
}
_MULTIPLIER_COLUMNS = ("cut_multipliers", "color_multipliers", "clarity_multipliers")


class Database:
    def __init__(self, db_path: Path):
        self.db_path = db_path

    # ------------------------------------------------------------------
    # Connection helpers
    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    # ------------------------------------------------------------------
    # Products
    def create_product(self, product: Dict[str, Any]) -> int:
        row = {**_PRODUCT_DEFAULTS, **{k: v for k, v in product.items() if v is not None}}
        row["has_diamond"] = 1 if row["has_diamond"] else 0
        values = [row.get(col) for col in PRODUCT_COLUMNS]
        placeholders = ", ".join("?" for _ in PRODUCT_COLUMNS)
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                f"INSERT INTO products ({', '.join(PRODUCT_COLUMNS)}) VALUES ({placeholders})",
                values,
            )
            conn.commit()
            return int(cur.lastrowid)

    def get_product(self, product_id: int) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("SELECT * FROM products WHERE id = ?", (product_id,))
            row = cur.fetchone()
            return dict(row) if row else None

    def list_products(
        self,
        category: Optional[str] = None,
        material: Optional[str] = None,
        search: Optional[str] = None,
        has_diamond: Optional[bool] = None,
        active_only: bool = True,
    ) -> List[Dict[str, Any]]:
        clauses: List[str] = []
        params: List[Any] = []
        if active_only:
            clauses.append("is_active = 1")
        if category:
            clauses.append("LOWER(category) = LOWER(?)")
            params.append(category)
        if material:
            clauses.append("material = LOWER(?)")
            params.append(material)
        if has_diamond is not None:
            clauses.append("has_diamond = ?")
            params.append(1 if has_diamond else 0)
        if search:
            like = f"%{search.lower()}%"
            clauses.append(
                "(LOWER(name) LIKE ? OR LOWER(description) LIKE ? "
                "OR LOWER(category) LIKE ? OR LOWER(material) LIKE ?)"
            )
            params.extend([like, like, like, like])
        where = (" WHERE " + " AND ".join(clauses)) if clauses else ""
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT * FROM products{where} ORDER BY created_at DESC, id DESC", params)
            return [dict(r) for r in cur.fetchall()]

    def save_product_pricing(
        self, product_id: int, price: float, breakdown: Optional[Dict[str, Any]]
    ) -> None:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                f"""
                UPDATE products
                SET price = ?, price_breakdown = ?, priced_at = ({UTC_NOW_SQL}),
                    updated_at = ({UTC_NOW_SQL})
                WHERE id = ?
                """,
                (
                    price,
                    json.dumps(breakdown, separators=(",", ":")) if breakdown is not None else None,
                    product_id,
                ),
            )
            conn.commit()

    # ------------------------------------------------------------------
    # Diamond pricing config
    @staticmethod
    def _decode_diamond_row(row: sqlite3.Row) -> Dict[str, Any]:
        data = dict(row)
        for col in _MULTIPLIER_COLUMNS:
            try:
                decoded = json.loads(data[col]) if data[col] else {}
            except (json.JSONDecodeError, TypeError):
                decoded = {}
            data[col] = decoded if isinstance(decoded, dict) else {}
        return data

    def get_diamond_config(self) -> Optional[Dict[str, Any]]:
        """First record by id; any later duplicates are ignored."""
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("SELECT * FROM diamond_pricing ORDER BY id ASC LIMIT 1")
            row = cur.fetchone()
            return self._decode_diamond_row(row) if row else None

    def insert_diamond_config(self, config: Dict[str, Any]) -> int:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO diamond_pricing (
                    base_rate_per_carat, cut_multipliers, color_multipliers,
                    clarity_multipliers, making_charge_percent, gst_percent, updated_by
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    config["base_rate_per_carat"],
                    json.dumps(config["cut_multipliers"]),
                    json.dumps(config["color_multipliers"]),
                    json.dumps(config["clarity_multipliers"]),
                    config["making_charge_percent"],
                    config["gst_percent"],
                    config.get("updated_by"),
                ),
            )
            conn.commit()
            return int(cur.lastrowid)

    def update_diamond_config(self, config_id: int, config: Dict[str, Any]) -> None:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                f"""
                UPDATE diamond_pricing
                SET base_rate_per_carat = ?, cut_multipliers = ?, color_multipliers = ?,
                    clarity_multipliers = ?, making_charge_percent = ?, gst_percent = ?,
                    updated_by = ?, last_updated = ({UTC_NOW_SQL})
                WHERE id = ?
                """,
                (
                    config["base_rate_per_carat"],
                    json.dumps(config["cut_multipliers"]),
                    json.dumps(config["color_multipliers"]),
                    json.dumps(config["clarity_multipliers"]),
                    config["making_charge_percent"],
                    config["gst_percent"],
                    config.get("updated_by"),
                    config_id,
                ),
            )
            conn.commit()

    # ------------------------------------------------------------------
    # Cart
    def get_cart_lines(self, cart_key: str) -> List[Dict[str, Any]]:
        """Cart rows joined with their product; product columns are NULL when
        the product has since disappeared."""
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT c.cart_key, c.product_id AS cart_product_id, c.quantity, c.added_at, p.*
                FROM cart_items c
                LEFT JOIN products p ON p.id = c.product_id
                WHERE c.cart_key = ?
                ORDER BY c.added_at ASC, c.product_id ASC
                """,
                (cart_key,),
            )
            return [dict(r) for r in cur.fetchall()]

    def add_cart_item(self, cart_key: str, product_id: int, quantity: int = 1) -> None:
        if quantity <= 0:
            raise ValueError("quantity must be positive")
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO cart_items (cart_key, product_id, quantity)
                VALUES (?, ?, ?)
                ON CONFLICT(cart_key, product_id) DO UPDATE SET
                    quantity = cart_items.quantity + excluded.quantity
                """,
                (cart_key, product_id, quantity),
            )
            conn.commit()

    def set_cart_quantity(self, cart_key: str, product_id: int, quantity: int) -> bool:
        with self._connect() as conn:
            cur = conn.cursor()
            if quantity <= 0:
                cur.execute(
                    "DELETE FROM cart_items WHERE cart_key = ? AND product_id = ?",
                    (cart_key, product_id),
                )
            else:
                cur.execute(
                    "UPDATE cart_items SET quantity = ? WHERE cart_key = ? AND product_id = ?",
                    (quantity, cart_key, product_id),
                )
            conn.commit()
            return cur.rowcount > 0

    def remove_cart_item(self, cart_key: str, product_id: int) -> bool:
        return self.set_cart_quantity(cart_key, product_id, 0)

    def clear_cart(self, cart_key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM cart_items WHERE cart_key = ?", (cart_key,))
            conn.commit()

    # ------------------------------------------------------------------
    # Orders
    def create_order(
        self,
        order: Dict[str, Any],
        lines: Iterable[Dict[str, Any]],
        status: str,
        clear_cart: bool = True,
    ) -> int:
        """Persist an order, its locked lines and the first status event in
        one transaction; optionally empties the source cart in the same one."""
        with self._connect() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    """
                    INSERT INTO orders (
                        cart_key, status, payment_method, shipping_address, currency,
                        gold_per_gram, silver_per_gram, rates_source,
                        subtotal, tax_amount, total_amount
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        order["cart_key"],
                        status,
                        order["payment_method"],
                        json.dumps(order["shipping_address"]),
                        order["currency"],
                        order["gold_per_gram"],
                        order["silver_per_gram"],
                        order["rates_source"],
                        order["subtotal"],
                        order["tax_amount"],
                        order["total_amount"],
                    ),
                )
                order_id = int(cur.lastrowid)
                cur.executemany(
                    """
                    INSERT INTO order_items (order_id, product_id, quantity, unit_price, captured_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            order_id,
                            line["product_id"],
                            line["quantity"],
                            line["unit_price"],
                            line["captured_at"],
                        )
                        for line in lines
                    ],
                )
                cur.execute(
                    "INSERT INTO order_status_history (order_id, status, note) VALUES (?, ?, ?)",
                    (order_id, status, "order placed"),
                )
                if clear_cart:
                    cur.execute(
                        "DELETE FROM cart_items WHERE cart_key = ?", (order["cart_key"],)
                    )
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            return order_id

    def get_order(self, order_id: int) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("SELECT * FROM orders WHERE id = ?", (order_id,))
            row = cur.fetchone()
            if not row:
                return None
            order = dict(row)
            cur.execute(
                "SELECT * FROM order_items WHERE order_id = ? ORDER BY id ASC", (order_id,)
            )
            order["items"] = [dict(r) for r in cur.fetchall()]
            cur.execute(
                "SELECT status, note, created_at FROM order_status_history "
                "WHERE order_id = ? ORDER BY id ASC",
                (order_id,),
            )
            order["status_history"] = [dict(r) for r in cur.fetchall()]
            try:
                order["shipping_address"] = json.loads(order["shipping_address"])
            except (json.JSONDecodeError, TypeError):
                order["shipping_address"] = {}
            return order

    def update_order_status(self, order_id: int, status: str, note: Optional[str] = None) -> bool:
        """Touches only status columns; locked line prices are never rewritten."""
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                f"UPDATE orders SET status = ?, updated_at = ({UTC_NOW_SQL}) WHERE id = ?",
                (status, order_id),
            )
            if cur.rowcount == 0:
                return False
            cur.execute(
                "INSERT INTO order_status_history (order_id, status, note) VALUES (?, ?, ?)",
                (order_id, status, note),
            )
            conn.commit()
            return True
