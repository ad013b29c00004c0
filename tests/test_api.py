"""HTTP level tests for the order, payment, voucher and admin endpoints."""

import pytest

import routes.buyerOrders as buyer_routes
from core.extensions import db
from models.orderModels import Order
from models.paymentModels import Payment
from models.voucherModels import Voucher

PAYOS_OK = {"code": "00", "desc": "ok", "data": {"checkoutUrl": "https://pay.payos.vn/web/xyz"}}
QR_OK = {"code": "00", "desc": "ok", "data": {"qrDataURL": "data:image/png;base64,AAAA"}}


@pytest.fixture
def buyer_headers(seed, auth_headers):
    return auth_headers(seed.buyer.id, "buyer")


@pytest.fixture
def vendor_headers(seed, auth_headers):
    return auth_headers(seed.vendor.id, "vendor")


@pytest.fixture
def admin_headers(seed, auth_headers):
    return auth_headers(seed.admin.id, "admin")


@pytest.fixture
def placed(client, seed, buyer_headers):
    response = client.post("/api/orders", headers=buyer_headers, json={
        "addressId": seed.address.id,
        "items": [
            {"productId": seed.laptop_bag.id, "quantity": 1},
            {"productId": seed.charger.id, "quantity": 2},
        ],
    })
    assert response.status_code == 201
    return response.get_json()["orderId"]


class TestOrderEndpoints:
    def test_place_order(self, client, seed, buyer_headers, make_voucher, stock):
        make_voucher()

        response = client.post("/api/orders", headers=buyer_headers, json={
            "addressId": seed.address.id,
            "items": [
                {"productId": seed.laptop_bag.id, "quantity": 1},
                {"productId": seed.charger.id, "quantity": 3},
            ],
            "voucherCode": "SALE10",
        })

        assert response.status_code == 201
        body = response.get_json()
        assert body["message"] == "Order placed successfully"
        assert body["totalPrice"] == 95
        assert stock(seed.charger) == 0

    def test_requires_token(self, client, seed):
        response = client.post("/api/orders", json={"addressId": seed.address.id, "items": []})

        assert response.status_code == 401

    def test_only_buyers_order(self, client, seed, vendor_headers):
        response = client.post("/api/orders", headers=vendor_headers, json={
            "addressId": seed.address.id,
            "items": [{"productId": seed.cable.id, "quantity": 1}],
        })

        assert response.status_code == 403

    @pytest.mark.parametrize(
        "payload, status",
        [
            ({"items": [{"productId": 1, "quantity": 1}]}, 400),
            ({"addressId": 1, "items": []}, 400),
            ({"addressId": 1, "items": [{"productId": 1, "quantity": 0}]}, 400),
        ],
    )
    def test_rejects_bad_input(self, client, buyer_headers, payload, status):
        response = client.post("/api/orders", headers=buyer_headers, json=payload)

        assert response.status_code == status
        assert "message" in response.get_json()

    def test_insufficient_stock_message(self, client, seed, buyer_headers):
        response = client.post("/api/orders", headers=buyer_headers, json={
            "addressId": seed.address.id,
            "items": [{"productId": seed.charger.id, "quantity": 10}],
        })

        assert response.status_code == 400
        assert response.get_json()["message"].startswith("Insufficient inventory for Charger")
        assert Order.query.count() == 0

    def test_unknown_product_is_404(self, client, seed, buyer_headers):
        response = client.post("/api/orders", headers=buyer_headers, json={
            "addressId": seed.address.id,
            "items": [{"productId": 9999, "quantity": 1}],
        })

        assert response.status_code == 404

    def test_unexpected_errors_are_500(self, client, seed, buyer_headers, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(buyer_routes, "place_order", broken)

        response = client.post("/api/orders", headers=buyer_headers, json={
            "addressId": seed.address.id,
            "items": [{"productId": seed.cable.id, "quantity": 1}],
        })

        assert response.status_code == 500
        assert response.get_json() == {"message": "Internal server error"}

    def test_list_and_detail(self, client, seed, buyer_headers, auth_headers, placed):
        listed = client.get("/api/orders", headers=buyer_headers).get_json()["orders"]
        assert [o["id"] for o in listed] == [placed]
        assert listed[0]["items"][0]["product"]["title"] == "Laptop Bag"

        detail = client.get(f"/api/orders/{placed}", headers=buyer_headers)
        assert detail.status_code == 200
        assert detail.get_json()["order"]["totalPrice"] == 80

        other = client.get(f"/api/orders/{placed}", headers=auth_headers(seed.other_buyer.id, "buyer"))
        assert other.status_code == 404

    def test_invalid_status_filter(self, client, buyer_headers):
        response = client.get("/api/orders?status=lost", headers=buyer_headers)

        assert response.status_code == 400

    def test_reading_orders_does_not_write(self, client, buyer_headers, placed):
        order = db.session.get(Order, placed)
        for item in order.order_items:
            item.status = "shipped"
        db.session.commit()

        listed = client.get("/api/orders", headers=buyer_headers).get_json()["orders"]

        assert listed[0]["status"] == "pending"
        assert db.session.get(Order, placed).status == "pending"


class TestVendorEndpoints:
    def test_vendor_sees_own_items(self, client, seed, vendor_headers, auth_headers, placed):
        orders = client.get("/api/vendor/orders", headers=vendor_headers).get_json()["orders"]

        assert len(orders) == 1
        assert orders[0]["orderId"] == placed
        assert {i["productName"] for i in orders[0]["items"]} == {"Laptop Bag", "Charger"}

        other = client.get("/api/vendor/orders", headers=auth_headers(seed.other_vendor.id, "vendor"))
        assert other.get_json()["orders"] == []

    def test_shipping_every_item_ships_the_order(self, client, vendor_headers, placed):
        items = db.session.get(Order, placed).order_items
        item_ids = [item.id for item in items]

        first = client.put(f"/api/order-items/{item_ids[0]}/status", headers=vendor_headers,
                           json={"status": "shipped"})
        assert first.status_code == 200
        assert first.get_json()["orderStatus"] == "pending"

        second = client.put(f"/api/order-items/{item_ids[1]}/status", headers=vendor_headers,
                            json={"status": "shipped"})
        assert second.get_json()["orderStatus"] == "shipped"

    def test_item_status_errors(self, client, seed, vendor_headers, buyer_headers, auth_headers, placed):
        item_id = db.session.get(Order, placed).order_items[0].id
        url = f"/api/order-items/{item_id}/status"

        assert client.put(url, headers=vendor_headers, json={"status": "teleported"}).status_code == 400
        assert client.put(url, headers=buyer_headers, json={"status": "shipped"}).status_code == 403
        other_vendor = auth_headers(seed.other_vendor.id, "vendor")
        assert client.put(url, headers=other_vendor, json={"status": "shipped"}).status_code == 403
        assert client.put("/api/order-items/9999/status", headers=vendor_headers,
                          json={"status": "shipped"}).status_code == 404

    def test_inventory_listing_and_update(self, client, seed, vendor_headers, stock):
        listed = client.get("/api/vendor/inventory", headers=vendor_headers).get_json()["inventory"]
        assert {row["title"]: row["quantity"] for row in listed} == {"Laptop Bag": 5, "Charger": 3}

        response = client.put(f"/api/vendor/inventory/{seed.charger.id}", headers=vendor_headers,
                              json={"quantity": 12})
        assert response.status_code == 200
        assert stock(seed.charger) == 12

        assert client.put(f"/api/vendor/inventory/{seed.cable.id}", headers=vendor_headers,
                          json={"quantity": 1}).status_code == 404
        assert client.put(f"/api/vendor/inventory/{seed.charger.id}", headers=vendor_headers,
                          json={"quantity": -3}).status_code == 400


class TestPaymentEndpoints:
    def test_cod_payment_and_status(self, client, buyer_headers, placed):
        response = client.post("/api/payments", headers=buyer_headers, json={"orderId": placed, "method": "COD"})

        assert response.status_code == 201
        body = response.get_json()
        assert body["payment"]["status"] == "pending"
        assert body["payment"]["amount"] == 80

        status = client.get(f"/api/payments/status/{placed}", headers=buyer_headers).get_json()
        assert status["payment"]["method"] == "COD"
        assert status["order"] == {"id": placed, "status": "pending"}

    def test_status_of_other_buyers_order(self, client, seed, auth_headers, placed):
        response = client.get(f"/api/payments/status/{placed}", headers=auth_headers(seed.other_buyer.id, "buyer"))

        assert response.status_code == 403

    def test_status_without_payment(self, client, buyer_headers, placed):
        assert client.get(f"/api/payments/status/{placed}", headers=buyer_headers).status_code == 404

    def test_payos_payment_url(self, client, buyer_headers, placed, gateway):
        gateway.reply(PAYOS_OK)

        response = client.post("/api/payments", headers=buyer_headers, json={"orderId": placed, "method": "PayOS"})

        assert response.status_code == 201
        assert response.get_json()["paymentUrl"] == "https://pay.payos.vn/web/xyz"
        assert gateway.calls[0].json["returnUrl"] == "https://shop.test/api/payments/payos/callback"

    def test_gateway_failure_is_502(self, client, buyer_headers, placed, gateway):
        gateway.reply({"code": "99", "desc": "Merchant locked"})

        response = client.post("/api/payments", headers=buyer_headers, json={"orderId": placed, "method": "VietQR"})

        assert response.status_code == 502
        assert "Merchant locked" in response.get_json()["message"]
        assert Payment.query.filter_by(order_id=placed).one().status == "failed"

    def test_vietqr_callback_is_idempotent(self, client, buyer_headers, placed, gateway):
        gateway.reply(QR_OK)
        client.post("/api/payments", headers=buyer_headers, json={"orderId": placed, "method": "VietQR"})
        payload = {"orderId": str(placed), "status": "SUCCESS", "transactionId": "FT1"}

        first = client.post("/api/payments/vietqr/callback", json=payload)
        paid_at = Payment.query.filter_by(order_id=placed).one().paid_at
        second = client.post("/api/payments/vietqr/callback", json=payload)

        assert first.status_code == second.status_code == 200
        assert second.get_json()["paymentStatus"] == "paid"
        assert Payment.query.filter_by(order_id=placed).one().paid_at == paid_at
        assert db.session.get(Order, placed).status == "processing"

    def test_callbacks_cannot_settle_cash_on_delivery(self, client, buyer_headers, placed):
        client.post("/api/payments", headers=buyer_headers, json={"orderId": placed, "method": "COD"})

        vietqr = client.post("/api/payments/vietqr/callback", json={"orderId": str(placed), "status": "SUCCESS"})
        payos = client.get(f"/api/payments/payos/callback?orderCode={placed}&status=PAID")

        assert vietqr.status_code == 404
        assert payos.status_code == 404
        assert Payment.query.filter_by(order_id=placed).one().status == "pending"
        assert db.session.get(Order, placed).status == "pending"

    def test_payos_redirect_ignores_vietqr_payment(self, client, buyer_headers, placed, gateway):
        gateway.reply(QR_OK)
        client.post("/api/payments", headers=buyer_headers, json={"orderId": placed, "method": "VietQR"})

        response = client.get(f"/api/payments/payos/callback?orderCode={placed}&status=PAID")

        assert response.status_code == 404
        assert Payment.query.filter_by(order_id=placed).one().status == "pending"

    def test_replace_flag_must_be_boolean(self, client, buyer_headers, placed):
        first = client.post("/api/payments", headers=buyer_headers, json={"orderId": placed, "method": "COD"})
        payment_id = first.get_json()["payment"]["id"]

        response = client.post("/api/payments", headers=buyer_headers,
                               json={"orderId": placed, "method": "COD", "replaceExisting": "false"})

        assert response.status_code == 400
        assert Payment.query.filter_by(order_id=placed).one().id == payment_id

    def test_replace_flag_true_replaces(self, client, buyer_headers, placed):
        first = client.post("/api/payments", headers=buyer_headers, json={"orderId": placed, "method": "COD"})
        payment_id = first.get_json()["payment"]["id"]

        kept = client.post("/api/payments", headers=buyer_headers,
                           json={"orderId": placed, "method": "COD", "replaceExisting": False})
        replaced = client.post("/api/payments", headers=buyer_headers,
                               json={"orderId": placed, "method": "COD", "replaceExisting": True})

        assert kept.status_code == 400
        assert replaced.status_code == 201
        assert Payment.query.filter_by(order_id=placed).one().id != payment_id

    def test_vietqr_callback_errors(self, client):
        assert client.post("/api/payments/vietqr/callback", json={"status": "SUCCESS"}).status_code == 400

        response = client.post("/api/payments/vietqr/callback", json={"orderId": "424242", "status": "SUCCESS"})
        assert response.status_code == 404
        assert "message" in response.get_json()

    def test_payos_return_and_cancel(self, client, buyer_headers, placed, gateway):
        gateway.reply(PAYOS_OK)
        client.post("/api/payments", headers=buyer_headers, json={"orderId": placed, "method": "PayOS"})
        order_code = Payment.query.filter_by(order_id=placed).one().transaction_id

        cancelled = client.get(f"/api/payments/payos/cancel?orderCode={order_code}&status=PAID")
        assert cancelled.get_json()["paymentStatus"] == "failed"

        # a late success still wins over the earlier cancel
        paid = client.get(f"/api/payments/payos/callback?orderCode={order_code}&status=PAID")
        assert paid.get_json()["paymentStatus"] == "paid"
        assert db.session.get(Order, placed).status == "processing"

    def test_payos_callback_requires_order_code(self, client):
        assert client.get("/api/payments/payos/callback?status=PAID").status_code == 400


class TestVoucherEndpoints:
    def test_admin_crud(self, client, admin_headers):
        created = client.post("/api/vouchers", headers=admin_headers, json={
            "code": "WELCOME",
            "discount": 15,
            "discountType": "percentage",
            "maxDiscount": 30,
            "usageLimit": 2,
            "expirationDate": "2099-01-01T00:00:00Z",
            "isActive": False,
        })
        assert created.status_code == 201
        voucher = created.get_json()
        assert voucher["isActive"] is True

        duplicate = client.post("/api/vouchers", headers=admin_headers, json={
            "code": "WELCOME", "discount": 5, "expirationDate": "2099-01-01",
        })
        assert duplicate.status_code == 400

        updated = client.put(f"/api/vouchers/{voucher['id']}", headers=admin_headers,
                             json={"expirationDate": "2000-01-01T00:00:00"})
        assert updated.get_json()["isActive"] is False

        assert len(client.get("/api/vouchers", headers=admin_headers).get_json()["vouchers"]) == 1
        assert client.delete(f"/api/vouchers/{voucher['id']}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/vouchers/{voucher['id']}", headers=admin_headers).status_code == 404

    @pytest.mark.parametrize(
        "payload",
        [
            {"discount": 10, "expirationDate": "2099-01-01"},
            {"code": "X", "discount": "ten", "expirationDate": "2099-01-01"},
            {"code": "X", "discount": 150, "expirationDate": "2099-01-01"},
            {"code": "X", "discount": 10, "expirationDate": "next tuesday"},
            {"code": "X", "discount": 10, "expirationDate": "2099-01-01", "usageLimit": 0},
        ],
    )
    def test_rejects_invalid_voucher(self, client, admin_headers, payload):
        assert client.post("/api/vouchers", headers=admin_headers, json=payload).status_code == 400
        assert Voucher.query.count() == 0

    def test_create_without_optional_fields(self, client, admin_headers):
        response = client.post("/api/vouchers", headers=admin_headers, json={
            "code": "NEW", "discount": 5, "expirationDate": "2099-01-01",
        })

        assert response.status_code == 201
        body = response.get_json()
        assert body["usageLimit"] == 1
        assert body["usedCount"] == 0
        assert body["discountType"] == "percentage"
        assert body["isActive"] is True

    def test_partial_update_keeps_fixed_type(self, client, admin_headers, make_voucher):
        voucher = make_voucher(code="FLAT", discount=50000, discount_type="fixed")

        response = client.put(f"/api/vouchers/{voucher.id}", headers=admin_headers, json={"discount": 60000})

        assert response.status_code == 200
        assert response.get_json()["discount"] == 60000

    def test_switching_to_percentage_checks_current_discount(self, client, admin_headers, make_voucher):
        voucher = make_voucher(code="FLAT", discount=50000, discount_type="fixed")

        response = client.put(f"/api/vouchers/{voucher.id}", headers=admin_headers,
                              json={"discountType": "percentage"})

        assert response.status_code == 400
        assert db.session.get(Voucher, voucher.id).discount_type == "fixed"

    def test_non_admin_forbidden(self, client, buyer_headers):
        assert client.get("/api/vouchers", headers=buyer_headers).status_code == 403

    def test_lookup_by_code_does_not_redeem(self, client, buyer_headers, make_voucher):
        make_voucher()

        response = client.get("/api/vouchers/code/SALE10", headers=buyer_headers)

        assert response.status_code == 200
        assert response.get_json()["usedCount"] == 0
        assert client.get("/api/vouchers/code/NOPE", headers=buyer_headers).status_code == 404


class TestAdminEndpoints:
    def test_list_payments(self, client, buyer_headers, admin_headers, placed):
        client.post("/api/payments", headers=buyer_headers, json={"orderId": placed, "method": "COD"})

        payments = client.get("/api/admin/payments?status=pending", headers=admin_headers).get_json()["payments"]

        assert [p["orderId"] for p in payments] == [placed]
        assert client.get("/api/admin/payments?status=lost", headers=admin_headers).status_code == 400
        assert client.get("/api/admin/payments", headers=buyer_headers).status_code == 403

    def test_trigger_verification(self, client, admin_headers, gateway):
        response = client.post("/api/admin/payments/verify", headers=admin_headers)

        assert response.status_code == 200
        assert response.get_json()["summary"]["checked"] == 0


def test_ping(client):
    assert client.get("/ping").status_code == 200
