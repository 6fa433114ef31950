"""Seeding helpers for a demo catalog.

Provides `seed_catalog`, which inserts a handful of representative products
(gold at 24K/22K/18K, silver, a diamond ring on gold, a loose diamond and a
fixed-price accessory) when the catalog is empty. A non-empty catalog is
left untouched so this can be safely re-run.
"""

from __future__ import annotations
from pathlib import Path
import sqlite3
from typing import Any, Dict, List

from .dal import Database
from .migrate import apply_migrations

SAMPLE_PRODUCTS: List[Dict[str, Any]] = [
    {"name": "Classic Gold Coin", "category": "coins", "material": "gold", "weight": 10, "karat": 24},
    {"name": "Temple Necklace", "category": "necklaces", "material": "gold", "weight": 25.5, "karat": 22},
    {"name": "Everyday Gold Bangle", "category": "bangles", "material": "gold", "weight": 12, "karat": 18},
    {"name": "Silver Anklet Pair", "category": "anklets", "material": "silver", "weight": 20},
    {
        "name": "Solitaire Ring",
        "category": "rings",
        "material": "gold",
        "weight": 3.5,
        "metal_weight": 3.3,
        "karat": 18,
        "has_diamond": 1,
        "diamond_carat": 0.5,
        "diamond_cut": "excellent",
        "diamond_color": "G",
        "diamond_clarity": "VS1",
    },
    {
        "name": "Loose Brilliant Diamond",
        "category": "diamonds",
        "material": "diamond",
        "weight": 0.2,
        "has_diamond": 1,
        "diamond_carat": 1.0,
        "diamond_cut": "very-good",
        "diamond_color": "H",
        "diamond_clarity": "VS2",
    },
    {"name": "Velvet Jewellery Box", "category": "accessories", "material": "other", "weight": 0, "price": 1499},
]


def seed_catalog(db_path: Path) -> int:
    """Insert SAMPLE_PRODUCTS into an empty catalog; returns rows inserted."""
    apply_migrations(db_path)  # ensure tables exist
    with sqlite3.connect(db_path) as conn:
        (count,) = conn.execute("SELECT COUNT(*) FROM products").fetchone()
    if count:
        return 0
    db = Database(db_path)
    for product in SAMPLE_PRODUCTS:
        db.create_product({"stock": 5, **product})
    return len(SAMPLE_PRODUCTS)


if __name__ == "__main__":
    from jewellery_pricing.core.config import get_settings

    inserted = seed_catalog(get_settings().db_path)
    print(f"seeded {inserted} products")
