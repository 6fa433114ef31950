import json
import sqlite3

import pytest
from pydantic import ValidationError

from jewellery_pricing.models.pricing import (
    DEFAULT_CUT_MULTIPLIERS,
    DiamondConfigPatch,
    DiamondPriceRequest,
    DiamondPricingConfig,
)
from jewellery_pricing.services.diamond_config import (
    get_or_create_diamond_config,
    preview_diamond_price,
    recompute_diamond_prices,
    recompute_silver_prices,
    update_diamond_config,
)

SOLITAIRE = {
    "name": "Solitaire",
    "material": "diamond",
    "weight": 0.2,
    "has_diamond": 1,
    "diamond_carat": 1.0,
    "diamond_cut": "excellent",
    "diamond_color": "G",
    "diamond_clarity": "VS1",
}


def _config_rows(settings):
    with sqlite3.connect(settings.db_path) as conn:
        return conn.execute("SELECT id FROM diamond_pricing ORDER BY id").fetchall()


class TestGetOrCreate:
    def test_defaults_created_once(self, db, settings):
        first = get_or_create_diamond_config(db)
        second = get_or_create_diamond_config(db)
        assert first.id == second.id
        assert len(_config_rows(settings)) == 1
        assert first.base_rate_per_carat == 300000
        assert first.cut_multipliers == DEFAULT_CUT_MULTIPLIERS
        assert first.making_charge_percent == 15
        assert first.gst_percent == 3

    def test_first_record_wins_over_duplicates(self, db):
        original = get_or_create_diamond_config(db)
        dup = DiamondPricingConfig(base_rate_per_carat=1.0).model_dump(exclude={"id", "last_updated"})
        db.insert_diamond_config(dup)
        assert get_or_create_diamond_config(db).id == original.id
        assert get_or_create_diamond_config(db).base_rate_per_carat == 300000


class TestUpdate:
    def test_maps_merge_key_by_key(self, db):
        updated = update_diamond_config(
            db, DiamondConfigPatch(cut_multipliers={"excellent": 1.5, "ideal": 1.6}, updated_by="ops")
        )
        assert updated.cut_multipliers["excellent"] == 1.5
        assert updated.cut_multipliers["ideal"] == 1.6
        assert updated.cut_multipliers["good"] == 1.0
        assert updated.updated_by == "ops"
        assert updated.last_updated is not None

    def test_scalars_replace(self, db):
        updated = update_diamond_config(
            db, DiamondConfigPatch(base_rate_per_carat=250000, making_charge_percent=12)
        )
        assert updated.base_rate_per_carat == 250000
        assert updated.making_charge_percent == 12
        assert updated.gst_percent == 3

    def test_change_applies_to_next_computation(self, db):
        update_diamond_config(db, DiamondConfigPatch(base_rate_per_carat=100000))
        preview = preview_diamond_price(
            get_or_create_diamond_config(db),
            DiamondPriceRequest(carat=1, cut="good", color="I", clarity="VS2"),
        )
        assert preview.with_multipliers == 100000

    @pytest.mark.parametrize(
        "fields",
        [
            {},
            {"base_rate_per_carat": 0},
            {"gst_percent": -1},
            {"color_multipliers": {"D": -0.5}},
        ],
    )
    def test_invalid_patches_rejected(self, fields):
        with pytest.raises(ValidationError):
            DiamondConfigPatch(**fields)


class TestPreview:
    def test_preview_reports_each_multiplier(self):
        preview = preview_diamond_price(
            DiamondPricingConfig(),
            DiamondPriceRequest(carat=1.0, cut="excellent", color="g", clarity="vs1"),
        )
        assert preview.base_cost == 300000
        assert preview.with_multipliers == 514800
        assert (preview.cut_multiplier, preview.color_multiplier, preview.clarity_multiplier) == (
            1.3,
            1.2,
            1.1,
        )
        assert preview.color == "G"

    def test_preview_normalises_grade_case(self):
        preview = preview_diamond_price(
            DiamondPricingConfig(),
            DiamondPriceRequest(carat=1.0, cut=" Excellent", color="g", clarity="vs1"),
        )
        assert preview.cut == "excellent"
        assert preview.cut_multiplier == 1.3
        assert preview.with_multipliers == 514800

    def test_preview_requires_all_fields(self):
        with pytest.raises(ValidationError):
            DiamondPriceRequest(carat=1.0, cut="excellent", color="G")


class TestRecompute:
    def test_diamond_recompute_persists_price_and_breakdown(self, db, add_product, make_pair):
        pid = add_product(**SOLITAIRE)
        result = recompute_diamond_prices(db, make_pair(), get_or_create_diamond_config(db))
        assert result == {"total": 1, "updated": 1, "errors": 0}
        row = db.get_product(pid)
        assert row["price"] == 609781
        assert json.loads(row["price_breakdown"])["diamond_cost"] == 514800

    def test_unchanged_prices_are_not_rewritten(self, db, add_product, make_pair):
        add_product(**SOLITAIRE)
        config = get_or_create_diamond_config(db)
        recompute_diamond_prices(db, make_pair(), config)
        assert recompute_diamond_prices(db, make_pair(), config)["updated"] == 0

    def test_incomplete_spec_counts_as_error(self, db, add_product, make_pair):
        add_product(**SOLITAIRE)
        add_product(**{**SOLITAIRE, "name": "Half-specified", "diamond_clarity": None})
        result = recompute_diamond_prices(db, make_pair(), get_or_create_diamond_config(db))
        assert result == {"total": 2, "updated": 1, "errors": 1}

    def test_silver_recompute_only_touches_silver(self, db, add_product, make_pair):
        silver = add_product(material="silver", weight=20, karat=None)
        gold = add_product()
        result = recompute_silver_prices(db, make_pair())
        assert result == {"total": 1, "updated": 1, "errors": 0}
        assert db.get_product(silver)["price"] == 1700
        assert db.get_product(gold)["price"] == 0
