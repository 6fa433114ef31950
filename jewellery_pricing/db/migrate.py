"""Database migration utilities.

Handles schema evolution by applying idempotent migrations keyed by an integer
`schema_version` stored in the metadata table. Each migration upgrades the
SQLite schema in-place while preserving catalog and order data.
"""

from __future__ import annotations
from pathlib import Path
import sqlite3
from typing import Optional

from . import schema as schema_def
from .schema import init_db

CURRENT_SCHEMA_VERSION = 2
SCHEMA_VERSION_KEY = "schema_version"
# Columns added to products after the first catalog imports
LEGACY_PRODUCT_COLUMNS = (
    ("metal_weight", "REAL"),
    ("price_breakdown", "TEXT"),
    ("priced_at", "TEXT"),
)


def _get_schema_version(conn: sqlite3.Connection) -> Optional[int]:
    try:
        cur = conn.cursor()
        cur.execute("SELECT value FROM metadata WHERE key=?", (SCHEMA_VERSION_KEY,))
        row = cur.fetchone()
        if row:
            return int(row[0])
    except sqlite3.OperationalError:
        # metadata table may not exist yet (first run before init_db)
        return None
    return None


def apply_migrations(db_path: Path) -> int:
    """Apply required migrations and return resulting schema version."""
    init_db(db_path)
    conn = sqlite3.connect(db_path)
    try:
        version = _get_schema_version(conn) or 1
        if version < 2:
            _migrate_to_v2(conn)
            version = 2
        _set_schema_version(conn, version)
        conn.commit()
        return version
    finally:
        conn.close()


def _set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    cur = conn.cursor()
    cur.execute(
        "INSERT INTO metadata (key, value) VALUES (?, ?) "
        "ON CONFLICT(key) DO UPDATE SET value=excluded.value, "
        f"updated_at=({schema_def.BASIC_UTC_NOW})",
        (SCHEMA_VERSION_KEY, str(version)),
    )


def _migrate_to_v2(conn: sqlite3.Connection) -> None:
    """Upgrade schema to version 2 (normalized pricing attributes).

    - adds the breakdown / composite-weight columns to legacy product tables
    - lowercases materials so pricing matches 'Gold' and 'gold' alike
    - gold rows with a missing or zero karat become 24K
    """
    cur = conn.cursor()
    try:
        for column, col_type in LEGACY_PRODUCT_COLUMNS:
            if not _column_exists(cur, "products", column):
                cur.execute(f"ALTER TABLE products ADD COLUMN {column} {col_type}")
        cur.execute(
            f"""
            UPDATE products
            SET material = LOWER(TRIM(material)), updated_at = ({schema_def.BASIC_UTC_NOW})
            WHERE material != LOWER(TRIM(material))
            """
        )
        cur.execute(
            f"""
            UPDATE products
            SET karat = 24, updated_at = ({schema_def.BASIC_UTC_NOW})
            WHERE material = 'gold' AND (karat IS NULL OR karat <= 0)
            """
        )
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def _column_exists(cur: sqlite3.Cursor, table: str, column: str) -> bool:
    cur.execute(f"PRAGMA table_info({table})")
    return any(row[1] == column for row in cur.fetchall())
