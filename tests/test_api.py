import re

import pytest
from fastapi.testclient import TestClient

from artisan_market import config
from artisan_market.lifecycle import orders as lifecycle
from artisan_market.models.approval import ApprovalStatus

from conftest import ADDRESS, stock_products

BUYER = {"X-User-Id": "user-1"}
ADMIN = {"X-User-Id": "admin-1"}


@pytest.fixture
def place(client, db):
    def _place(prices=(250.0,), **fields):
        body = {"items": stock_products(db, *prices), "shipping_address": ADDRESS, "payment_method": "upi", **fields}
        return client.post("/orders", json=body, headers=BUYER)

    return _place


def test_health(client):
    assert client.get("/").status_code == 200


class TestOrders:
    def test_place_order(self, client, place):
        response = place(prices=(100.0, 20.5), shipping_cost=40)
        assert response.status_code == 201
        order = response.json()
        assert re.match(r"^ZM-\d{4}-000001$", order["order_number"])
        assert order["total"] == 160.5
        assert order["status"] == "placed"
        assert [entry["status"] for entry in order["status_history"]] == ["placed"]

    def test_price_comes_from_the_stored_product(self, client, db):
        cart = stock_products(db, 500.0)
        cart[0].update(price=0.01, name="Bargain", artisan_id="someone-else", quantity=2)
        body = {"items": cart, "shipping_address": ADDRESS, "payment_method": "upi"}
        response = client.post("/orders", json=body, headers=BUYER)
        assert response.status_code == 201
        item = response.json()["items"][0]
        assert (item["price"], item["name"], item["artisan_id"], item["quantity"]) == (500.0, "Clay pot 1", "artisan-1", 2)
        assert response.json()["total"] == 1000.0

    def test_unknown_product_is_404(self, client):
        body = {
            "items": [{"product_id": "no-such-product", "price": 0.01}],
            "shipping_address": ADDRESS,
            "payment_method": "upi",
        }
        response = client.post("/orders", json=body, headers=BUYER)
        assert response.status_code == 404
        assert response.json() == {"error": "Product no-such-product not found"}

    def test_unapproved_product_is_409(self, client, db):
        cart = stock_products(db, 500.0, status=ApprovalStatus.PENDING)
        cart[0]["price"] = 1
        body = {"items": cart, "shipping_address": ADDRESS, "payment_method": "upi"}
        assert client.post("/orders", json=body, headers=BUYER).status_code == 409
        assert client.get("/orders", headers=BUYER).json() == []

    def test_empty_cart_is_400(self, client):
        body = {"items": [], "shipping_address": ADDRESS, "payment_method": "upi"}
        response = client.post("/orders", json=body, headers=BUYER)
        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "items"

    def test_placing_requires_identity(self, client):
        body = {"items": [{"product_id": "product-1", "quantity": 1}], "shipping_address": ADDRESS, "payment_method": "upi"}
        assert client.post("/orders", json=body).status_code == 401

    def test_malformed_body_is_400(self, client):
        response = client.post("/orders", json={"shipping_address": ADDRESS}, headers=BUYER)
        assert response.status_code == 400
        fields = {error["field"] for error in response.json()["details"]}
        assert {"body.items", "body.payment_method"} <= fields

    def test_wrong_total_is_400(self, client, place):
        response = place(prices=(100.0,), total=5)
        assert response.status_code == 400
        assert response.json()["error"] == "Validation failed"

    def test_unknown_order_is_404(self, client):
        response = client.get("/orders/does-not-exist")
        assert response.status_code == 404
        assert response.json() == {"error": "Order does-not-exist not found"}

    def test_status_update_and_eligibility(self, client, place):
        order_id = place().json()["id"]
        response = client.patch(f"/orders/{order_id}/status", json={"status": "delivered"}, headers=ADMIN)
        assert response.status_code == 200
        assert response.json()["delivered_at"] is not None
        eligibility = client.get(f"/orders/{order_id}/eligibility").json()
        assert eligibility == {
            "order_id": order_id,
            "status": "delivered",
            "can_be_cancelled": False,
            "can_be_returned": True,
        }

    def test_unknown_status_is_400(self, client, place):
        order_id = place().json()["id"]
        response = client.patch(f"/orders/{order_id}/status", json={"status": "lost"})
        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "status"

    def test_illegal_advance_is_409(self, client, place):
        order_id = place().json()["id"]
        response = client.post(f"/orders/{order_id}/advance", json={"status": "shipped"}, headers=ADMIN)
        assert response.status_code == 409

    def test_cancel(self, client, place):
        order_id = place().json()["id"]
        response = client.post(f"/orders/{order_id}/cancel", json={"reason": "Ordered twice"}, headers=BUYER)
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        again = client.post(f"/orders/{order_id}/cancel", json={}, headers=BUYER)
        assert again.status_code == 409

    def test_payment_event(self, client, place):
        order_id = place(prices=(300.0,)).json()["id"]
        response = client.post(
            f"/orders/{order_id}/payment-events", json={"payment_status": "paid", "payment_id": "pay_42"}
        )
        assert response.status_code == 200
        assert response.json()["payment_status"] == "paid"
        assert response.json()["status"] == "placed"

    def test_my_orders_and_stats(self, client, place):
        place(prices=(100.0,))
        place(prices=(50.0,))
        orders = client.get("/orders", headers=BUYER).json()
        assert len(orders) == 2
        stats = client.get("/orders/stats", headers=BUYER).json()
        assert stats == [{"status": "placed", "count": 2, "total_amount": 150.0}]

    def test_bad_paging_is_400(self, client):
        assert client.get("/orders?limit=500", headers=BUYER).status_code == 400

    def test_unexpected_error_hides_details_outside_development(self, client, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(lifecycle, "get_order", explode)
        monkeypatch.setattr(config, "ENVIRONMENT", "production")
        quiet_client = TestClient(client.app, raise_server_exceptions=False)

        response = quiet_client.get("/orders/anything")
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}

        monkeypatch.setattr(config, "ENVIRONMENT", "development")
        assert quiet_client.get("/orders/anything").json()["details"] == "disk on fire"


class TestApprovals:
    @pytest.fixture
    def artisan_id(self, client, artisan_data):
        response = client.post("/approvals/artisan", json=artisan_data())
        assert response.status_code == 201
        return response.json()["id"]

    def test_review_queue_requires_identity(self, client, artisan_id):
        assert client.get("/approvals/artisan").status_code == 401
        queue = client.get("/approvals/artisan", headers=ADMIN).json()
        assert [artisan["id"] for artisan in queue] == [artisan_id]

    def test_approve_makes_artisan_public(self, client, artisan_id):
        assert client.get(f"/catalog/artisan/{artisan_id}").status_code == 404
        response = client.patch(f"/approvals/artisan/{artisan_id}", json={"decision": "approved"}, headers=ADMIN)
        assert response.status_code == 200
        assert response.json()["approved_by"] == "admin-1"
        assert client.get(f"/catalog/artisan/{artisan_id}").status_code == 200
        assert [a["id"] for a in client.get("/catalog/artisan").json()] == [artisan_id]

    def test_rejection_without_reason_is_400(self, client, artisan_id):
        response = client.patch(f"/approvals/artisan/{artisan_id}", json={"decision": "rejected"}, headers=ADMIN)
        assert response.status_code == 400
        assert response.json()["details"] == [{"field": "notes", "message": "A rejection reason is required"}]

    def test_unknown_kind_is_400(self, client):
        assert client.get("/catalog/gadget").status_code == 400

    def test_duplicate_email_is_409(self, client, artisan_id, artisan_data):
        response = client.post("/approvals/artisan", json=dict(artisan_data("2"), email="ravi1@example.com"))
        assert response.status_code == 409

    def test_profile_edit_and_pending_changes(self, client, artisan_id):
        client.patch(f"/approvals/artisan/{artisan_id}", json={"decision": "approved"}, headers=ADMIN)
        response = client.put(
            f"/approvals/artisan/{artisan_id}/profile", json={"phone": "9333333333"}, headers={"X-User-Id": "user-artisan-1"}
        )
        assert response.json()["pending_changes"]["changed_fields"] == ["phone"]

        cleared = client.delete(f"/approvals/artisan/{artisan_id}/pending-changes", headers=ADMIN)
        assert cleared.json()["pending_changes"]["has_changes"] is False
        assert client.delete(f"/approvals/artisan/{artisan_id}/pending-changes", headers=ADMIN).status_code == 409

    def test_review_without_temporal_is_503(self, client, artisan_id):
        response = client.post(f"/approvals/artisan/{artisan_id}/review", json={}, headers=ADMIN)
        assert response.status_code == 503


class TestComments:
    @pytest.fixture
    def post_id(self, client):
        post = client.post("/approvals/blog_post", json={"title": "Weaving on a pit loom"}).json()
        client.patch(f"/approvals/blog_post/{post['id']}", json={"decision": "approved"}, headers=ADMIN)
        return post["id"]

    def test_comment_moderation_flow(self, client, post_id):
        author = {"name": "Meera", "email": "meera@example.com"}
        created = client.post(f"/posts/{post_id}/comments", json={"author": author, "content": "Beautiful"})
        assert created.status_code == 201
        comment_id = created.json()["id"]
        assert client.get(f"/posts/{post_id}/comments").json() == []

        queue = client.get("/comments/moderation", headers=ADMIN).json()
        assert [c["id"] for c in queue] == [comment_id]

        approved = client.post(f"/comments/{comment_id}/approve", json={}, headers=ADMIN)
        assert approved.json()["status"] == "approved"
        assert [c["id"] for c in client.get(f"/posts/{post_id}/comments").json()] == [comment_id]

    def test_unknown_action_is_400(self, client, post_id):
        assert client.post("/comments/whatever/bury", json={}, headers=ADMIN).status_code == 400

    def test_unknown_comment_is_404(self, client):
        assert client.post("/comments/missing/spam", json={}, headers=ADMIN).status_code == 404
