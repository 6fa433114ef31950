import json

import pytest

from jewellery_pricing.db.dal import Database
from jewellery_pricing.db.seed import SAMPLE_PRODUCTS, seed_catalog
from jewellery_pricing.services.catalog import (
    get_priced_product,
    list_priced_products,
    value_cart,
)
from jewellery_pricing.services.diamond_config import get_or_create_diamond_config


@pytest.fixture
def catalog(add_product):
    return {
        # stored prices are stale on purpose; filters must use computed ones
        "coin": add_product(name="Gold Coin", category="coins", price=10),
        "chain": add_product(name="Gold Chain", category="chains", weight=20, karat=22, price=500000),
        "anklet": add_product(name="Silver Anklet", category="anklets", material="silver", weight=20),
        "box": add_product(name="Jewellery Box", category="accessories", material="other", weight=0, price=1499),
    }


def _list(db, make_pair, **kwargs):
    return list_priced_products(db, make_pair(), get_or_create_diamond_config(db), **kwargs)


class TestListing:
    def test_price_range_uses_computed_price(self, db, make_pair, catalog):
        result = _list(db, make_pair, min_price=70000, max_price=80000)
        assert [p.id for p in result["products"]] == [catalog["coin"]]

    def test_sort_by_price(self, db, make_pair, catalog):
        prices = [p.price for p in _list(db, make_pair, sort="price")["products"]]
        assert prices == sorted(prices)
        assert prices[0] == 1499

    def test_sort_by_price_desc(self, db, make_pair, catalog):
        result = _list(db, make_pair, sort="price_desc")
        assert result["products"][0].id == catalog["chain"]

    def test_filters_and_search(self, db, make_pair, catalog):
        assert _list(db, make_pair, material="SILVER")["total"] == 1
        assert _list(db, make_pair, category="coins")["products"][0].name == "Gold Coin"
        assert _list(db, make_pair, search="chain")["total"] == 1

    def test_pagination(self, db, make_pair, catalog):
        result = _list(db, make_pair, page=2, limit=3)
        assert result["total"] == 4
        assert result["pages"] == 2
        assert len(result["products"]) == 1

    def test_unknown_sort_rejected(self, db, make_pair):
        with pytest.raises(ValueError):
            _list(db, make_pair, sort="popularity")

    def test_other_material_reports_stored_source(self, db, make_pair, catalog):
        box = _list(db, make_pair, category="accessories")["products"][0]
        assert box.price == 1499
        assert box.price_source == "stored"


class TestDetail:
    def test_detail_persists_breakdown(self, db, make_pair, catalog):
        product = get_priced_product(db, catalog["chain"], make_pair(), None)
        assert product.price_breakdown.metal_cost == pytest.approx(119166.67)
        row = db.get_product(catalog["chain"])
        assert row["price"] == product.price
        assert json.loads(row["price_breakdown"])["final_price"] == product.price
        assert row["priced_at"] is not None

    def test_detail_skips_write_when_unchanged(self, db, make_pair, catalog):
        get_priced_product(db, catalog["coin"], make_pair(), None)
        priced_at = db.get_product(catalog["coin"])["priced_at"]
        get_priced_product(db, catalog["coin"], make_pair(), None)
        assert db.get_product(catalog["coin"])["priced_at"] == priced_at

    def test_missing_product(self, db, make_pair):
        assert get_priced_product(db, 404, make_pair(), None) is None


class TestCartValuation:
    def test_cart_valued_at_live_prices(self, db, make_pair, catalog):
        db.add_cart_item("k", catalog["coin"], 1)
        db.add_cart_item("k", catalog["coin"], 1)
        db.add_cart_item("k", catalog["anklet"], 3)
        cart = value_cart(db, "k", make_pair(), None)
        assert [(i["product_id"], i["quantity"]) for i in cart["items"]] == [
            (catalog["coin"], 2),
            (catalog["anklet"], 3),
        ]
        assert cart["subtotal"] == 2 * 73645 + 3 * 1700

    def test_cart_follows_rate_changes(self, db, make_pair, catalog):
        db.add_cart_item("k", catalog["anklet"], 1)
        assert value_cart(db, "k", make_pair(silver=100), None)["subtotal"] == round(20 * 100 * 1.1 * 1.03)

    def test_quantity_updates(self, db, catalog):
        db.add_cart_item("k", catalog["coin"], 2)
        assert db.set_cart_quantity("k", catalog["coin"], 5)
        assert db.get_cart_lines("k")[0]["quantity"] == 5
        assert db.remove_cart_item("k", catalog["coin"])
        assert db.get_cart_lines("k") == []
        assert not db.remove_cart_item("k", catalog["coin"])


def test_seed_catalog_is_rerunnable(settings, make_pair):
    assert seed_catalog(settings.db_path) == len(SAMPLE_PRODUCTS)
    assert seed_catalog(settings.db_path) == 0
    db = Database(settings.db_path)
    result = list_priced_products(db, make_pair(), get_or_create_diamond_config(db))
    sources = {p.name: p.price_source for p in result["products"]}
    assert sources["Loose Brilliant Diamond"] == "computed"
    assert sources["Velvet Jewellery Box"] == "stored"
