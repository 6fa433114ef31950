"""Database schema DDL definitions and initialization utilities.

Tables:
  - products: catalog entries with pricing attributes, the last stored price
    and the last computed breakdown (JSON) kept for transparency
  - diamond_pricing: the diamond multiplier config; the lowest id is authoritative
  - cart_items: cart lines keyed by an opaque cart key (user or guest)
  - orders: placed orders with the rate pair used and the locked totals
  - order_items: per-line locked unit prices; rows are immutable once written
  - order_status_history: lifecycle events, append-only
  - metadata: key/value store (schema version)
"""

from __future__ import annotations
import sqlite3
from typing import Sequence
from pathlib import Path

BASIC_UTC_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ','now')"

PRODUCTS_DDL = f"""
CREATE TABLE IF NOT EXISTS products (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    category TEXT NOT NULL,
    material TEXT NOT NULL, -- 'gold' | 'silver' | 'diamond' | 'other'
    price REAL NOT NULL DEFAULT 0, -- last stored price
    weight REAL NOT NULL DEFAULT 0, -- grams
    metal_weight REAL, -- grams of metal in composite pieces
    karat REAL DEFAULT 24,
    has_diamond INTEGER NOT NULL DEFAULT 0,
    diamond_carat REAL,
    diamond_cut TEXT,
    diamond_color TEXT,
    diamond_clarity TEXT,
    stock INTEGER NOT NULL DEFAULT 1,
    is_active INTEGER NOT NULL DEFAULT 1,
    price_breakdown TEXT, -- JSON PriceBreakdown
    priced_at TEXT,
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW})
);
"""

DIAMOND_PRICING_DDL = f"""
CREATE TABLE IF NOT EXISTS diamond_pricing (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    base_rate_per_carat REAL NOT NULL,
    cut_multipliers TEXT NOT NULL, -- JSON {{grade: multiplier}}
    color_multipliers TEXT NOT NULL,
    clarity_multipliers TEXT NOT NULL,
    making_charge_percent REAL NOT NULL,
    gst_percent REAL NOT NULL,
    updated_by TEXT,
    last_updated TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW})
);
"""

CART_ITEMS_DDL = f"""
CREATE TABLE IF NOT EXISTS cart_items (
    cart_key TEXT NOT NULL,
    product_id INTEGER NOT NULL,
    quantity INTEGER NOT NULL DEFAULT 1 CHECK (quantity > 0),
    added_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    PRIMARY KEY (cart_key, product_id),
    FOREIGN KEY (product_id) REFERENCES products(id) ON DELETE CASCADE
);
"""

ORDERS_DDL = f"""
CREATE TABLE IF NOT EXISTS orders (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    cart_key TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    payment_method TEXT NOT NULL DEFAULT 'cod',
    shipping_address TEXT NOT NULL, -- JSON
    currency TEXT NOT NULL,
    gold_per_gram REAL NOT NULL,
    silver_per_gram REAL NOT NULL,
    rates_source TEXT NOT NULL, -- e.g. 'live/live', 'fallback/cache'
    subtotal REAL NOT NULL,
    tax_amount REAL NOT NULL,
    total_amount REAL NOT NULL,
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW})
);
"""

ORDER_ITEMS_DDL = """
CREATE TABLE IF NOT EXISTS order_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    order_id INTEGER NOT NULL,
    product_id INTEGER NOT NULL,
    quantity INTEGER NOT NULL,
    unit_price REAL NOT NULL,
    captured_at TEXT NOT NULL,
    FOREIGN KEY (order_id) REFERENCES orders(id) ON DELETE CASCADE
);
"""

ORDER_STATUS_HISTORY_DDL = f"""
CREATE TABLE IF NOT EXISTS order_status_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    order_id INTEGER NOT NULL,
    status TEXT NOT NULL,
    note TEXT,
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    FOREIGN KEY (order_id) REFERENCES orders(id) ON DELETE CASCADE
);
"""

METADATA_DDL = f"""
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW})
);
"""

ORDER_ITEMS_IMMUTABLE_DDL = """
CREATE TRIGGER IF NOT EXISTS trg_order_items_immutable
BEFORE UPDATE ON order_items
BEGIN
    SELECT RAISE(ABORT, 'order lines are locked');
END;
"""

PRODUCTS_MATERIAL_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_products_material ON products(material);"
)
PRODUCTS_DIAMOND_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_products_diamond ON products(has_diamond);"
)
ORDER_ITEMS_ORDER_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_order_items_order ON order_items(order_id);"
)

DDL_ORDER: Sequence[str] = (
    PRODUCTS_DDL,
    DIAMOND_PRICING_DDL,
    CART_ITEMS_DDL,
    ORDERS_DDL,
    ORDER_ITEMS_DDL,
    ORDER_STATUS_HISTORY_DDL,
    METADATA_DDL,
)


def init_db(path: Path) -> None:
    """Create all tables idempotently.

    Parameters
    ----------
    path: Path to SQLite database file.
    """
    conn = sqlite3.connect(path)
    try:
        cur = conn.cursor()
        for ddl in DDL_ORDER:
            cur.execute(ddl)
        _ensure_indexes(cur)
        cur.execute(ORDER_ITEMS_IMMUTABLE_DDL)
        conn.commit()
    finally:
        conn.close()


def _ensure_indexes(cur: sqlite3.Cursor) -> None:
    """Create indexes, tolerating legacy schemas missing indexed columns."""
    for ddl in (
        PRODUCTS_MATERIAL_INDEX_DDL,
        PRODUCTS_DIAMOND_INDEX_DDL,
        ORDER_ITEMS_ORDER_INDEX_DDL,
    ):
        try:
            cur.execute(ddl)
        except sqlite3.OperationalError:
            # Legacy tables may lack columns; migration handles re-creation.
            continue
