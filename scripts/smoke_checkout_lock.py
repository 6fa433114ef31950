from jewellery_pricing.main import create_app
from fastapi.testclient import TestClient
from jewellery_pricing.core.config import Settings
import tempfile
import json

ADDRESS = {
    "name": "Smoke Test",
    "phone": "9000000000",
    "line1": "1 Test Street",
    "city": "Mumbai",
    "pincode": "400001",
}


def run():
    with tempfile.TemporaryDirectory() as d:
        settings = Settings(data_dir=d, rate_source="static")
        settings.init_post_load()
        app = create_app(settings_override=settings)
        client = TestClient(app)

        results = {}
        ring = client.post(
            "/products",
            json={
                "name": "Solitaire Ring",
                "category": "rings",
                "material": "gold",
                "weight": 3.5,
                "metal_weight": 3.3,
                "karat": 18,
                "diamond": {
                    "has_diamond": True,
                    "carat": 0.5,
                    "cut": "excellent",
                    "color": "G",
                    "clarity": "VS1",
                },
            },
        ).json()
        results["ring_price"] = ring["price"]
        client.post("/cart/smoke/items", json={"product_id": ring["id"], "quantity": 1})
        order = client.post(
            "/orders", json={"cart_key": "smoke", "shipping_address": ADDRESS}
        ).json()
        results["locked_unit_price"] = order["items"][0]["unit_price"]

        client.put("/admin/diamond-pricing", json={"base_rate_per_carat": 600000})
        results["ring_price_after_config_change"] = client.get(
            f"/products/{ring['id']}"
        ).json()["price"]
        client.patch(f"/orders/{order['id']}/status", json={"status": "shipped"})
        results["locked_unit_price_after_ship"] = client.get(
            f"/orders/{order['id']}"
        ).json()["items"][0]["unit_price"]
        print(json.dumps(results, indent=2))


if __name__ == "__main__":
    run()
