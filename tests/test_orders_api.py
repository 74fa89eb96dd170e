"""Buyer and admin order endpoints."""
from decimal import Decimal

from fastapi.testclient import TestClient
from sqlmodel import select

from conftest import make_coupon, make_order, make_package, make_product, order_payload
from storefront.core.security import create_access_token
from storefront.models import OrderDiscount, OrderEvent, ProductType, User


def test_create_requires_sign_in(client: TestClient, catalog):
    r = client.post("/order", json=order_payload(catalog))
    assert r.status_code == 401


def test_create_direct_product_order(client: TestClient, db, auth_headers):
    product = make_product(
        db,
        name="Steam Wallet",
        type=ProductType.DIRECT.value,
        price=Decimal("9.99"),
        account_info_fields=[{"field_name": "Steam Email", "is_required": True}],
    )
    body = {
        "product_id": product.id,
        "account_info": [{"field_name": "Steam Email", "value": " gamer@example.com "}],
        "payment_method": "card",
    }
    r = client.post("/order", json=body, headers=auth_headers)
    assert r.status_code == 201, r.text
    j = r.json()
    assert j["status"] == "pending"
    assert Decimal(j["total_amount"]) == Decimal("9.99")
    assert j["package_id"] is None
    assert j["currency"] == "usd"
    assert j["account_info"] == [{"field_name": "Steam Email", "value": "gamer@example.com"}]

    created = db.exec(select(OrderEvent).where(OrderEvent.order_id == j["id"])).one()
    assert created.event == "created"


def test_create_with_coupon_records_discount(client: TestClient, db, auth_headers, catalog):
    package = make_package(db, catalog.product, title="1200 UC", price=Decimal("10.00"))
    make_coupon(db, code="SAVE20")
    body = order_payload(catalog, package_id=package.id, coupon_code="save20")
    r = client.post("/order", json=body, headers=auth_headers)
    assert r.status_code == 201, r.text
    j = r.json()
    assert Decimal(j["base_amount"]) == Decimal("10.00")
    assert Decimal(j["total_amount"]) == Decimal("8.00")
    assert j["coupon_code"] == "SAVE20"

    discount = db.exec(select(OrderDiscount).where(OrderDiscount.order_id == j["id"])).one()
    assert discount.discount_amount == Decimal("2.00")


def test_coupon_below_minimum_is_not_recorded(client: TestClient, db, auth_headers, catalog):
    package = make_package(db, catalog.product, price=Decimal("10.00"))
    make_coupon(db, code="BIG20", min_order_amount=Decimal("20"))
    r = client.post("/order", json=order_payload(catalog, package_id=package.id, coupon_code="BIG20"), headers=auth_headers)
    assert r.status_code == 201, r.text
    assert Decimal(r.json()["total_amount"]) == Decimal("10.00")
    assert r.json()["coupon_code"] is None
    assert db.exec(select(OrderDiscount)).all() == []


def test_invalid_order_lists_every_problem(client: TestClient, auth_headers, catalog):
    body = order_payload(
        catalog,
        package_id=None,
        account_info=[{"field_name": "Email", "value": "nope"}],
        coupon_code="GHOST",
    )
    r = client.post("/order", json=body, headers=auth_headers)
    assert r.status_code == 400
    j = r.json()
    assert j["kind"] == "validation_error"
    assert "A package is required for this product." in j["errors"]
    assert "Missing required account fields: Player ID" in j["errors"]
    assert "Invalid coupon code." in j["errors"]
    assert any(e.startswith("Invalid email format for field: Email") for e in j["errors"])


def test_unknown_payment_method_is_422(client: TestClient, auth_headers, catalog):
    r = client.post("/order", json=order_payload(catalog, payment_method="bitcoin"), headers=auth_headers)
    assert r.status_code == 422


def test_buyer_sees_only_own_orders(client: TestClient, db, buyer, auth_headers, catalog):
    mine = make_order(db, buyer, catalog)
    other = User(email="other@example.com")
    db.add(other)
    db.commit()
    db.refresh(other)
    theirs = make_order(db, other, catalog)

    assert client.get(f"/order/{mine.id}", headers=auth_headers).status_code == 200
    r = client.get(f"/order/{theirs.id}", headers=auth_headers)
    assert r.status_code == 404
    assert r.json()["kind"] == "not_found"

    page = client.get("/order", headers=auth_headers).json()
    assert page["total"] == 1
    assert [o["id"] for o in page["items"]] == [mine.id]

    other_headers = {"Authorization": f"Bearer {create_access_token({'sub': str(other.id)})}"}
    assert client.post(f"/order/{mine.id}/cancel", headers=other_headers).status_code == 404


def test_buyer_cancels_pending_order(client: TestClient, db, buyer, auth_headers, catalog):
    order = make_order(db, buyer, catalog)
    r = client.post(f"/order/{order.id}/cancel", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "rejected"
    assert r.json()["refund_amount"] is None
    r = client.post(f"/order/{order.id}/cancel", headers=auth_headers)
    assert r.status_code == 409


def test_banned_buyer_is_refused(client: TestClient, db, buyer, auth_headers, catalog):
    buyer.is_banned = True
    db.add(buyer)
    db.commit()
    assert client.post("/order", json=order_payload(catalog), headers=auth_headers).status_code == 403


def test_admin_requires_secret(client: TestClient):
    assert client.get("/order/admin/all").status_code == 403
    assert client.get("/order/admin/all", headers={"X-Admin-Secret": "wrong"}).status_code == 403


def test_admin_lists_and_filters(client: TestClient, db, buyer, admin_headers, catalog):
    for status in ("pending", "paid", "paid", "delivered"):
        make_order(db, buyer, catalog, status=status)
    r = client.get("/order/admin/all", params={"status": "paid"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["total"] == 2
    assert {o["status"] for o in r.json()["items"]} == {"paid"}

    r = client.get("/order/admin/all", params={"page": 2, "page_size": 3}, headers=admin_headers)
    j = r.json()
    assert (j["total"], j["pages"], len(j["items"])) == (4, 2, 1)


def test_admin_moves_order_through_lifecycle(client: TestClient, db, buyer, admin_headers, catalog):
    order = make_order(db, buyer, catalog, payment_method="wallet-transfer")
    r = client.patch(f"/order/admin/{order.id}/status", json={"status": "delivered"}, headers=admin_headers)
    assert r.status_code == 409
    assert r.json()["kind"] == "invalid_transition"

    r = client.patch(f"/order/admin/{order.id}/status", json={"status": "paid"}, headers=admin_headers)
    assert r.json()["status"] == "paid"
    r = client.patch(
        f"/order/admin/{order.id}/status",
        json={"status": "delivered", "admin_note": "Code: ABCD-1234"},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert r.json()["status"] == "delivered"
    assert r.json()["admin_note"] == "Code: ABCD-1234"

    r = client.patch(f"/order/admin/{order.id}/note", json={"admin_note": "Resent code"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "delivered"
    assert r.json()["admin_note"] == "Resent code"


def test_admin_rejects_paid_card_order_with_refund(client: TestClient, db, buyer, admin_headers, catalog):
    order = make_order(db, buyer, catalog, status="paid")
    r = client.patch(f"/order/admin/{order.id}/status", json={"status": "rejected"}, headers=admin_headers)
    assert r.status_code == 200
    assert Decimal(r.json()["refund_amount"]) == Decimal("25.00")
    assert r.json()["refund_date"] is not None


def test_admin_stats(client: TestClient, db, buyer, admin_headers, catalog):
    make_order(db, buyer, catalog, status="paid", total_amount=Decimal("10.00"))
    make_order(db, buyer, catalog, status="rejected", total_amount=Decimal("4.00"))
    j = client.get("/order/admin/stats", headers=admin_headers).json()
    assert j["total_orders"] == 2
    assert Decimal(j["total_revenue"]) == Decimal("10")
    assert j["by_status"]["rejected"]["count"] == 1


def test_coupon_preview(client: TestClient, db, auth_headers, catalog):
    make_coupon(db, code="HALF", discount_value=Decimal("50"))
    body = {"product_id": catalog.product.id, "package_id": catalog.package.id, "coupon_code": "half"}
    r = client.post("/coupon/validate", json=body, headers=auth_headers)
    assert r.status_code == 200, r.text
    j = r.json()
    assert j["code"] == "HALF"
    assert Decimal(j["discount_amount"]) == Decimal("5.00")
    assert Decimal(j["total_amount"]) == Decimal("4.99")

    make_coupon(db, code="DONE", is_active=False)
    body["coupon_code"] = "DONE"
    r = client.post("/coupon/validate", json=body, headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["errors"] == ["This coupon is no longer active."]


def test_coupon_preview_refuses_retired_package(client: TestClient, db, auth_headers, catalog):
    retired = make_package(db, catalog.product, title="Old bundle", price=Decimal("10.00"), is_active=False, is_deleted=True)
    make_coupon(db, code="SAVE20")
    body = {"product_id": catalog.product.id, "package_id": retired.id, "coupon_code": "SAVE20"}
    r = client.post("/coupon/validate", json=body, headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["errors"] == ["Package not found or inactive."]
