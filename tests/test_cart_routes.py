import unittest
import uuid

from storefront.extensions import db
from storefront.models import Order
from support import StorefrontTestCase

IDLI = {"id": "1", "name": "Idli", "size": "Regular", "price": "₹40", "quantity": 2,
        "imageUrl": "/img/idli.jpg", "category": "breakfast"}
COFFEE = {"id": "7", "name": "Filter Coffee", "size": "Small", "price": "₹15", "quantity": 2,
          "imageUrl": "/img/coffee.jpg", "category": "beverages"}


class TestCartRoutes(StorefrontTestCase):
    def test_empty_cart(self):
        resp = self.client.get("/api/cart")

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["cart"], {
            "lines": [], "total": 0, "itemCount": 0, "categoryTotals": {},
        })

    def test_add_and_merge(self):
        self.client.post("/api/cart/items", json=IDLI)
        resp = self.client.post("/api/cart/items", json={**IDLI, "quantity": 1})

        cart = resp.get_json()["cart"]
        self.assertEqual(len(cart["lines"]), 1)
        self.assertEqual(cart["itemCount"], 3)
        self.assertEqual(cart["total"], 120)

    def test_cart_survives_between_requests(self):
        self.client.post("/api/cart/items", json=IDLI)
        self.client.post("/api/cart/items", json=COFFEE)

        cart = self.client.get("/api/cart").get_json()["cart"]
        self.assertEqual(cart["categoryTotals"], {"breakfast": 80, "beverages": 30})
        self.assertEqual(cart["total"], 110)

    def test_bad_line(self):
        resp = self.client.post("/api/cart/items", json={**IDLI, "price": "forty"})

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()["error_code"], "INVALID_PRICE")

    def test_update_and_remove(self):
        self.client.post("/api/cart/items", json=IDLI)

        resp = self.client.patch("/api/cart/items/1/Regular", json={"quantity": 5})
        self.assertEqual(resp.get_json()["cart"]["itemCount"], 5)

        resp = self.client.patch("/api/cart/items/1/Regular", json={"quantity": 0})
        self.assertEqual(resp.get_json()["cart"]["lines"], [])

        resp = self.client.delete("/api/cart/items/1/Regular")
        self.assertEqual(resp.status_code, 200)

    def test_patch_requires_quantity(self):
        resp = self.client.patch("/api/cart/items/1/Regular", json={})
        self.assertEqual(resp.status_code, 400)

    def test_clear(self):
        self.client.post("/api/cart/items", json=IDLI)
        resp = self.client.delete("/api/cart")
        self.assertEqual(resp.get_json()["cart"]["lines"], [])

    def test_checkout_empty_cart(self):
        resp = self.client.post("/api/cart/checkout", json={"userId": self.create_user()})
        self.assertEqual(resp.status_code, 400)

    def test_checkout_needs_a_user(self):
        self.client.post("/api/cart/items", json=IDLI)
        resp = self.client.post("/api/cart/checkout", json={})
        self.assertEqual(resp.status_code, 400)


class TestCheckoutToSettlement(StorefrontTestCase):
    def test_cart_to_settled_order(self):
        user_id, headers = self.sign_in()
        self.client.post("/api/cart/items", json=IDLI)
        self.client.post("/api/cart/items", json=COFFEE)

        resp = self.client.post("/api/cart/checkout", headers=headers)
        self.assertEqual(resp.status_code, 200)
        body = resp.get_json()
        order = body["order"]
        self.assertEqual(order["userId"], user_id)
        self.assertEqual(order["status"], "PENDING")
        self.assertEqual(len(order["products"]), 4)
        self.assertEqual(body["total"], 110)
        self.assertEqual(self.client.get("/api/cart").get_json()["cart"]["lines"], [])

        resp = self.client.post("/api/payment/create-intent", json={
            "orderId": order["id"],
            "amount": body["total"],
            "categoryTotals": body["categoryTotals"],
        })
        self.assertEqual(resp.status_code, 200)
        intent_id = resp.get_json()["paymentIntentId"]
        self.gateway.mark_succeeded(intent_id)

        resp = self.client.post("/api/payment/create-transfers", json={
            "paymentIntentId": intent_id,
            "orderId": order["id"],
            "categoryTotals": body["categoryTotals"],
        })
        self.assertEqual(resp.status_code, 200)
        amounts = sorted(t["amount"] for t in self.gateway.transfers)
        self.assertEqual(amounts, [3000, 8000])

        resp = self.client.put(f"/api/orders/{order['id']}/status", json={"status": "COMPLETED"}, headers=headers)
        self.assertEqual(resp.status_code, 200)
        with self.app.app_context():
            self.assertEqual(db.session.get(Order, uuid.UUID(order["id"])).status, "COMPLETED")


if __name__ == "__main__":
    unittest.main()
