"""Diamond pricing configuration service.

A single authoritative record holds the per-carat base rate, the cut / color /
clarity multiplier tables and the making / GST percentages used for every
diamond-bearing product. Reading it never fails: a missing record is created
from defaults on first access.

Also hosts the admin-side bulk recompute, which re-prices a slice of the
catalog against current rates and the current config and writes the results
back, skipping rows whose price has not moved.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from jewellery_pricing.core.errors import ConfigMissing
from jewellery_pricing.core.logging import get_logger
from jewellery_pricing.db.dal import Database
from jewellery_pricing.models.pricing import (
    DiamondConfigPatch,
    DiamondPriceRequest,
    DiamondPricePreview,
    DiamondPricingConfig,
)
from jewellery_pricing.models.product import DiamondSpec, attributes_from_row
from jewellery_pricing.models.rates import RatePair
from jewellery_pricing.services.money import round2
from jewellery_pricing.services.pricing import (
    DEFAULT_POLICY,
    PricingPolicy,
    diamond_cost,
    price_product,
)

logger = get_logger("admin")

_MAP_FIELDS = ("cut_multipliers", "color_multipliers", "clarity_multipliers")
_SCALAR_FIELDS = ("base_rate_per_carat", "making_charge_percent", "gst_percent")


def _parse_ts(raw: Any) -> Optional[datetime]:
    if isinstance(raw, str):
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    return raw


def _row_to_config(row: Dict[str, Any]) -> DiamondPricingConfig:
    return DiamondPricingConfig(
        id=row["id"],
        base_rate_per_carat=row["base_rate_per_carat"],
        cut_multipliers=row["cut_multipliers"],
        color_multipliers=row["color_multipliers"],
        clarity_multipliers=row["clarity_multipliers"],
        making_charge_percent=row["making_charge_percent"],
        gst_percent=row["gst_percent"],
        last_updated=_parse_ts(row.get("last_updated")),
        updated_by=row.get("updated_by"),
    )


def load_diamond_config(db: Database) -> DiamondPricingConfig:
    row = db.get_diamond_config()
    if row is None:
        raise ConfigMissing("no diamond pricing record")
    return _row_to_config(row)


def get_or_create_diamond_config(db: Database) -> DiamondPricingConfig:
    """Return the authoritative config, inserting the defaults if none exists."""
    try:
        return load_diamond_config(db)
    except ConfigMissing:
        defaults = DiamondPricingConfig()
        db.insert_diamond_config(defaults.model_dump(exclude={"id", "last_updated"}))
        logger.info("diamond pricing config initialised with defaults")
        return load_diamond_config(db)


def update_diamond_config(db: Database, patch: DiamondConfigPatch) -> DiamondPricingConfig:
    """Apply a partial update.

    Scalars replace the stored value. Multiplier maps are merged key by key, so
    an admin can adjust one grade without resending the whole table.
    """
    current = get_or_create_diamond_config(db)
    merged = current.model_dump(exclude={"id", "last_updated"})
    for field in _SCALAR_FIELDS:
        value = getattr(patch, field)
        if value is not None:
            merged[field] = value
    for field in _MAP_FIELDS:
        value = getattr(patch, field)
        if value is not None:
            merged[field] = {**merged[field], **value}
    merged["updated_by"] = patch.updated_by or current.updated_by
    # Re-validate the merged record before it is written
    validated = DiamondPricingConfig(**merged)
    db.update_diamond_config(current.id, validated.model_dump(exclude={"id", "last_updated"}))
    logger.info(
        "diamond pricing config updated by=%s fields=%s",
        validated.updated_by,
        sorted(patch.model_dump(exclude_none=True, exclude={"updated_by"})),
    )
    return load_diamond_config(db)


def preview_diamond_price(
    config: DiamondPricingConfig, request: DiamondPriceRequest
) -> DiamondPricePreview:
    """Stone-only price for an arbitrary spec, without touching the catalog."""
    spec = DiamondSpec(
        has_diamond=True,
        carat=request.carat,
        cut=request.cut,
        color=request.color,
        clarity=request.clarity,
    )
    cost, details = diamond_cost(spec, config)
    return DiamondPricePreview(
        carat=details.carat,
        cut=details.cut,
        color=details.color,
        clarity=details.clarity,
        base_rate_per_carat=details.base_rate_per_carat,
        base_cost=details.base_cost,
        with_multipliers=round2(cost),
        cut_multiplier=details.cut_multiplier,
        color_multiplier=details.color_multiplier,
        clarity_multiplier=details.clarity_multiplier,
    )


def recompute_catalog_prices(
    db: Database,
    rates: RatePair,
    config: Optional[DiamondPricingConfig],
    rows: Iterable[Dict[str, Any]],
    policy: PricingPolicy = DEFAULT_POLICY,
) -> Dict[str, int]:
    """Re-price the given product rows and persist changed prices.

    Returns counters {total, updated, errors}. A row whose computation fails,
    or whose diamond spec is incomplete, counts as an error and keeps its
    stored price; the batch carries on.
    """
    total = updated = errors = 0
    for row in rows:
        total += 1
        attrs = attributes_from_row(row)
        if attrs.has_diamond and not attrs.diamond.is_complete:
            errors += 1
            logger.warning("skipping product=%s: incomplete diamond spec", row["id"])
            continue
        priced = price_product(
            attrs,
            rates,
            config,
            stored_price=row.get("price") or 0.0,
            policy=policy,
            product_ref=row["id"],
        )
        if priced.source == "fallback":
            errors += 1
            continue
        if priced.source == "stored":
            continue
        if priced.price != (row.get("price") or 0.0):
            db.save_product_pricing(
                row["id"],
                priced.price,
                priced.breakdown.model_dump(mode="json") if priced.breakdown else None,
            )
            updated += 1
    logger.info(
        "catalog recompute finished total=%s updated=%s errors=%s", total, updated, errors
    )
    return {"total": total, "updated": updated, "errors": errors}


def recompute_diamond_prices(
    db: Database,
    rates: RatePair,
    config: DiamondPricingConfig,
    policy: PricingPolicy = DEFAULT_POLICY,
) -> Dict[str, int]:
    rows = db.list_products(has_diamond=True, active_only=False)
    return recompute_catalog_prices(db, rates, config, rows, policy)


def recompute_silver_prices(
    db: Database,
    rates: RatePair,
    config: Optional[DiamondPricingConfig] = None,
    policy: PricingPolicy = DEFAULT_POLICY,
) -> Dict[str, int]:
    rows = db.list_products(material="silver", active_only=False)
    return recompute_catalog_prices(db, rates, config, rows, policy)
