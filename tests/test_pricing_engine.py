import math

import pytest

from jewellery_pricing.core.errors import ComputationFailure
from jewellery_pricing.models.pricing import DiamondPricingConfig
from jewellery_pricing.models.product import DiamondSpec, PricingAttributes
from jewellery_pricing.services.pricing import (
    PricingPolicy,
    compute_price,
    metal_cost,
    price_product,
    purity_factor,
)


def _diamond(carat=1.0, cut="excellent", color="G", clarity="VS1"):
    return DiamondSpec(has_diamond=True, carat=carat, cut=cut, color=color, clarity=clarity)


class TestScenarios:
    def test_gold_24k_ten_grams(self, make_pair):
        b = compute_price(PricingAttributes(material="gold", weight_grams=10, karat=24), make_pair())
        assert b.metal_cost == 65000
        assert b.diamond_cost == 0
        assert b.making_charges == 6500
        assert b.gst == 2145
        assert b.final_price == 73645

    def test_silver_twenty_grams(self, make_pair):
        b = compute_price(PricingAttributes(material="silver", weight_grams=20), make_pair())
        assert b.metal_cost == 1500
        assert b.making_charges == 150
        assert b.gst == 49.5
        # 1699.5 rounds half up
        assert b.final_price == 1700

    def test_one_carat_diamond_uses_config_percentages(self, make_pair):
        attrs = PricingAttributes(material="diamond", weight_grams=0.2, diamond=_diamond())
        b = compute_price(attrs, make_pair(), DiamondPricingConfig())
        assert b.metal_cost == 0
        assert b.diamond_cost == 514800
        assert b.making_charges == 77220
        assert b.gst == 17760.6
        assert b.final_price == 609781
        assert b.diamond_details.cut_multiplier == 1.3
        assert b.diamond_details.base_cost == 300000


class TestPurity:
    @pytest.mark.parametrize("karat", [24, 22, 18])
    def test_standard_karats(self, karat):
        assert purity_factor(karat) == karat / 24

    @pytest.mark.parametrize("karat", [14, 9])
    def test_non_standard_karat_uses_same_formula(self, karat):
        assert purity_factor(karat) == karat / 24

    @pytest.mark.parametrize("karat", [None, 0, -5, 30])
    def test_unspecified_or_out_of_range_is_pure(self, karat):
        assert purity_factor(karat) == 1.0

    def test_silver_ignores_karat(self, make_pair):
        rates = make_pair()
        a = metal_cost(PricingAttributes(material="silver", weight_grams=10, karat=18), rates)
        b = metal_cost(PricingAttributes(material="silver", weight_grams=10, karat=24), rates)
        assert a == b == 750


class TestProperties:
    def test_silver_metal_cost_is_linear_in_weight(self, make_pair):
        rates = make_pair(silver=82.4)
        single = metal_cost(PricingAttributes(material="silver", weight_grams=7), rates)
        triple = metal_cost(PricingAttributes(material="silver", weight_grams=21), rates)
        assert triple == pytest.approx(3 * single)

    def test_compute_price_is_idempotent(self, make_pair):
        attrs = PricingAttributes(material="gold", weight_grams=3.3, karat=18, diamond=_diamond(0.5))
        config = DiamondPricingConfig()
        assert compute_price(attrs, make_pair(), config) == compute_price(attrs, make_pair(), config)

    @pytest.mark.parametrize(
        "spec",
        [
            _diamond(carat=None),
            _diamond(cut=None),
            _diamond(color=None),
            _diamond(clarity=None),
        ],
    )
    def test_incomplete_diamond_costs_nothing(self, make_pair, spec):
        attrs = PricingAttributes(material="gold", weight_grams=1, diamond=spec)
        b = compute_price(attrs, make_pair(), DiamondPricingConfig())
        assert b.diamond_cost == 0
        assert b.diamond_details is None

    def test_diamond_without_config_is_not_priced(self, make_pair):
        attrs = PricingAttributes(material="gold", weight_grams=10, diamond=_diamond())
        b = compute_price(attrs, make_pair(), None)
        assert b.diamond_cost == 0
        assert b.final_price == 73645

    @pytest.mark.parametrize("weight", [-10, math.nan, math.inf])
    def test_invalid_weight_clamps_to_zero(self, make_pair, weight):
        b = compute_price(PricingAttributes(material="gold", weight_grams=weight), make_pair())
        assert b.metal_cost == 0
        assert b.final_price == 0

    def test_metal_weight_preferred_over_gross_weight(self, make_pair):
        attrs = PricingAttributes(material="gold", weight_grams=3.5, metal_weight_grams=3.0)
        assert metal_cost(attrs, make_pair()) == 19500

    def test_missing_multiplier_key_defaults_to_one(self, make_pair):
        config = DiamondPricingConfig(
            base_rate_per_carat=1000, cut_multipliers={}, color_multipliers={}, clarity_multipliers={}
        )
        attrs = PricingAttributes(material="diamond", diamond=_diamond(cut="ideal"))
        assert compute_price(attrs, make_pair(), config).diamond_cost == 1000

    def test_zero_multiplier_is_respected(self, make_pair):
        config = DiamondPricingConfig(base_rate_per_carat=1000, cut_multipliers={"excellent": 0})
        attrs = PricingAttributes(material="diamond", diamond=_diamond())
        assert compute_price(attrs, make_pair(), config).diamond_cost == 0

    def test_policy_overrides_default_percentages(self, make_pair):
        policy = PricingPolicy(default_making_charge_percent=0, default_gst_percent=0)
        b = compute_price(PricingAttributes(material="gold", weight_grams=10), make_pair(), policy=policy)
        assert b.final_price == 65000

    def test_final_price_rounds_the_unrounded_sum(self, make_pair):
        policy = PricingPolicy(default_making_charge_percent=0, default_gst_percent=0)
        b = compute_price(
            PricingAttributes(material="silver", weight_grams=1), make_pair(silver=100.495), policy=policy
        )
        # 100.495 -> 100.50 when shown, but the total is 100 not 101
        assert b.metal_cost == 100.5
        assert b.final_price == 100

    def test_unknown_material_normalizes_to_other(self):
        assert PricingAttributes(material="Platinum").material == "other"
        assert PricingAttributes(material=" GOLD ").material == "gold"


class TestPriceProduct:
    def test_metal_item_is_computed(self, make_pair):
        item = price_product(PricingAttributes(material="gold", weight_grams=10), make_pair(), stored_price=1)
        assert item.source == "computed"
        assert item.price == 73645

    def test_other_material_keeps_stored_price(self, make_pair):
        item = price_product(PricingAttributes(material="other"), make_pair(), stored_price=1499)
        assert item.source == "stored"
        assert item.price == 1499
        assert item.breakdown is not None

    def test_failure_falls_back_to_stored_price(self, make_pair):
        item = price_product(
            PricingAttributes(material="gold", weight_grams=10), make_pair(gold=1e308), stored_price=42000
        )
        assert item.source == "fallback"
        assert item.price == 42000
        assert item.breakdown is None

    def test_overflow_raises_computation_failure(self, make_pair):
        with pytest.raises(ComputationFailure):
            compute_price(PricingAttributes(material="gold", weight_grams=10), make_pair(gold=1e308))
