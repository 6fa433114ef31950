from fastapi.testclient import TestClient

from jewellery_pricing.core.config import Settings
from jewellery_pricing.main import create_app

GOLD_COIN = {"name": "Gold Coin", "category": "coins", "material": "Gold", "weight": 10, "karat": 24}
ADDRESS = {
    "name": "Asha Rao",
    "phone": "9876543210",
    "line1": "12 MG Road",
    "city": "Bengaluru",
    "pincode": "560001",
}


def test_root_and_request_id(client):
    resp = client.get("/", headers={"x-request-id": "abc-123"})
    assert resp.status_code == 200
    assert resp.headers["x-request-id"] == "abc-123"


def test_prices(client):
    body = client.get("/prices").json()
    assert body["currency"] == "INR"
    assert body["gold_per_gram"] == 6500.0
    assert body["silver_per_gram"] == 75.0
    assert body["sources"] == {"gold": "live", "silver": "live"}
    assert body["provider"] == "scripted"
    assert body["reference_10g"] == {"24K": 65000.0, "22K": 59583.33, "18K": 48750.0}


def test_prices_calc(client):
    body = client.post("/prices/calc", json={"weight": 10, "karat": 22}).json()
    assert body["price"] == 59583.33
    bad = client.post("/prices/calc", json={"weight": 10, "karat": 30})
    assert bad.status_code == 422
    assert bad.json()["error"] == "validation_error"


def test_product_create_and_read(client):
    created = client.post("/products", json=GOLD_COIN)
    assert created.status_code == 201
    product = created.json()
    assert product["material"] == "gold"
    assert product["price"] == 73645
    assert product["price_breakdown"]["gst"] == 2145

    detail = client.get(f"/products/{product['id']}").json()
    assert detail["price"] == 73645
    listing = client.get("/products", params={"min_price": 70000}).json()
    assert [p["id"] for p in listing["products"]] == [product["id"]]
    assert client.get("/products", params={"max_price": 1000}).json()["total"] == 0


def test_unknown_product_is_404(client):
    resp = client.get("/products/999")
    assert resp.status_code == 404
    assert resp.json() == {"error": "not_found", "detail": "product not found"}


def test_invalid_diamond_grade_rejected(client):
    payload = {**GOLD_COIN, "diamond": {"has_diamond": True, "carat": 0.5, "cut": "ideal"}}
    assert client.post("/products", json=payload).status_code == 422


def test_cart_to_order_flow(client):
    pid = client.post("/products", json=GOLD_COIN).json()["id"]
    cart = client.post("/cart/guest-1/items", json={"product_id": pid, "quantity": 2})
    assert cart.status_code == 201
    assert cart.json()["subtotal"] == 147290

    assert client.put(f"/cart/guest-1/items/{pid}", json={"quantity": 1}).json()["subtotal"] == 73645

    order = client.post("/orders", json={"cart_key": "guest-1", "shipping_address": ADDRESS})
    assert order.status_code == 201
    body = order.json()
    assert body["status"] == "confirmed"
    assert body["items"][0]["unit_price"] == 73645
    assert body["total_amount"] == 75854.35
    assert client.get("/cart/guest-1").json()["items"] == []

    shipped = client.patch(f"/orders/{body['id']}/status", json={"status": "shipped"}).json()
    assert shipped["status"] == "shipped"
    assert shipped["items"] == body["items"]
    assert client.get(f"/orders/{body['id']}").json()["total_amount"] == 75854.35


def test_empty_cart_order_is_400(client):
    resp = client.post("/orders", json={"cart_key": "empty", "shipping_address": ADDRESS})
    assert resp.status_code == 400
    assert resp.json()["error"] == "http_error"


def test_cart_add_unknown_product(client):
    assert client.post("/cart/k/items", json={"product_id": 77}).status_code == 404


def test_admin_diamond_pricing_roundtrip(client):
    initial = client.get("/admin/diamond-pricing").json()
    assert initial["base_rate_per_carat"] == 300000
    updated = client.put(
        "/admin/diamond-pricing", json={"color_multipliers": {"G": 1.25}, "updated_by": "admin@shop"}
    ).json()
    assert updated["color_multipliers"]["G"] == 1.25
    assert updated["color_multipliers"]["D"] == 1.5
    assert client.put("/admin/diamond-pricing", json={}).status_code == 422


def test_admin_preview_and_recalc(client):
    preview = client.post(
        "/admin/calculate-diamond-price",
        json={"carat": 1.0, "cut": "excellent", "color": "G", "clarity": "VS1"},
    ).json()
    assert preview["with_multipliers"] == 514800
    client.post(
        "/products",
        json={
            "name": "Loose Diamond",
            "category": "diamonds",
            "material": "diamond",
            "weight": 0.2,
            "diamond": {"has_diamond": True, "carat": 1.0, "cut": "excellent", "color": "g", "clarity": "vs1"},
        },
    )
    result = client.post("/admin/recalc-diamond").json()
    assert result["total"] == 1
    assert result["errors"] == 0
    assert client.post("/admin/recalc-silver").json()["total"] == 0


def test_admin_preview_accepts_any_grade_case(client):
    preview = client.post(
        "/admin/calculate-diamond-price",
        json={"carat": 1.0, "cut": "Excellent", "color": "g", "clarity": "Vs1"},
    ).json()
    assert preview["cut_multiplier"] == 1.3
    assert preview["with_multipliers"] == 514800


def test_admin_routes_can_be_disabled(tmp_path, rate_cache):
    settings = Settings(data_dir=tmp_path, rate_source="static", enable_admin_routes=False, _env_file=None)
    settings.init_post_load()
    client = TestClient(create_app(settings_override=settings, rate_cache=rate_cache))
    assert client.get("/admin/diamond-pricing").status_code == 403
    assert client.post("/products", json=GOLD_COIN).status_code == 403
    assert client.get("/products").status_code == 200
