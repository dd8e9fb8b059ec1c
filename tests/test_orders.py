"""
Tests for checkout and the order status workflow.
"""

from decimal import Decimal

import pytest
from rest_framework import status

from api.models import Invoice, Order


def _payload(*lines):
    return {
        "customer": {"name": "Nguyen Van A", "email": "buyer@example.com", "phone": "0901234567"},
        "items": [{"product": p.pk, "quantity": q} for p, q in lines],
        "shipping_address": "12 Le Loi, District 1, HCMC",
        "payment_method": "bank-transfer",
        "notes": "Call before delivery",
    }


@pytest.mark.django_db
class TestCheckout:
    def test_create_snapshots_lines_and_takes_stock(self, customer_api, customer_account, make_product):
        board = make_product(code="UNO-R3", name="Arduino Uno R3", price="250000", stock=10)
        sensor = make_product(code="DHT22", name="DHT22", price="45000", stock=3)

        response = customer_api.post("/api/orders/", _payload((board, 2), (sensor, 3)), format="json")

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()["data"]
        assert data["order_code"].startswith("ORD-")
        assert data["status"] == Order.STATUS_PENDING
        assert data["total_amount"] == 635000
        assert [(i["product_code"], i["quantity"], i["subtotal"]) for i in data["items"]] == [
            ("UNO-R3", 2, 500000),
            ("DHT22", 3, 135000),
        ]
        assert data["customer"]["email"] == "buyer@example.com"

        board.refresh_from_db()
        sensor.refresh_from_db()
        assert board.stock == 8
        assert sensor.stock == 0
        assert sensor.status == "out-of-stock"

        order = Order.objects.get(pk=data["id"])
        assert order.user == customer_account
        assert order.total_amount == sum(i.subtotal for i in order.items.all())

    def test_insufficient_stock_rolls_back(self, customer_api, make_product):
        plenty = make_product(stock=10)
        scarce = make_product(name="Rare relay", stock=1)

        response = customer_api.post("/api/orders/", _payload((plenty, 2), (scarce, 2)), format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "Insufficient stock for Rare relay" in response.json()["message"]
        plenty.refresh_from_db()
        assert plenty.stock == 10
        assert Order.objects.count() == 0

    def test_repeated_lines_count_against_stock(self, customer_api, make_product):
        product = make_product(stock=3)
        response = customer_api.post("/api/orders/", _payload((product, 2), (product, 2)), format="json")
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unknown_or_inactive_product_is_404(self, customer_api, make_product):
        hidden = make_product(is_active=False)
        response = customer_api.post("/api/orders/", _payload((hidden, 1)), format="json")
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_empty_items_rejected(self, customer_api):
        payload = _payload()
        response = customer_api.post("/api/orders/", payload, format="json")
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_anonymous_checkout_is_401(self, api_client, make_product):
        response = api_client.post("/api/orders/", _payload((make_product(), 1)), format="json")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestOrderReads:
    def test_list_is_back_office_only(self, customer_api, staff_api, make_product, make_order):
        make_order([(make_product(), 1)])
        assert customer_api.get("/api/orders/").status_code == status.HTTP_403_FORBIDDEN

        body = staff_api.get("/api/orders/").json()
        assert body["pagination"]["total"] == 1

    def test_list_filters_by_status(self, staff_api, make_product, make_order):
        product = make_product()
        make_order([(product, 1)])
        make_order([(product, 1)], status=Order.STATUS_SHIPPED)

        data = staff_api.get("/api/orders/", {"status": "shipped"}).json()["data"]
        assert [o["status"] for o in data] == ["shipped"]

    def test_myorders_and_owner_retrieve(
        self, customer_api, customer_account, other_customer_account, make_product, make_order
    ):
        product = make_product()
        mine = make_order([(product, 1)], user=customer_account)
        theirs = make_order([(product, 1)], user=other_customer_account)

        data = customer_api.get("/api/orders/myorders/").json()["data"]
        assert [o["id"] for o in data] == [mine.pk]

        assert customer_api.get(f"/api/orders/{mine.pk}/").status_code == status.HTTP_200_OK
        assert customer_api.get(f"/api/orders/{theirs.pk}/").status_code == status.HTTP_403_FORBIDDEN

    def test_stats(self, staff_api, make_product, make_order):
        product = make_product(price="1000")
        make_order([(product, 1)])
        make_order([(product, 2)], status=Order.STATUS_DELIVERED)
        make_order([(product, 5)], status=Order.STATUS_CANCELLED)

        data = staff_api.get("/api/orders/stats/").json()["data"]
        assert data["total"] == 3
        assert data["pending"] == 1
        assert data["delivered"] == 1
        assert data["cancelled"] == 1
        assert data["total_revenue"] == 2000


@pytest.mark.django_db
class TestStatusWorkflow:
    def test_delivery_stamps_date_and_issues_invoice(self, manager_api, make_product, make_order):
        order = make_order([(make_product(price="1000"), 3)], status=Order.STATUS_SHIPPED)

        response = manager_api.put(f"/api/orders/{order.pk}/status/", {"status": "delivered"}, format="json")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["delivered_at"] is not None
        invoice = Invoice.objects.get(order=order)
        assert data["invoice_number"] == invoice.invoice_number
        assert invoice.total_amount == Decimal("3000")

    def test_staff_cannot_change_status(self, staff_api, make_product, make_order):
        order = make_order([(make_product(), 1)])
        response = staff_api.put(f"/api/orders/{order.pk}/status/", {"status": "processing"}, format="json")
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_invalid_status_rejected(self, manager_api, make_product, make_order):
        order = make_order([(make_product(), 1)])
        response = manager_api.put(f"/api/orders/{order.pk}/status/", {"status": "lost"}, format="json")
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.parametrize("state", [Order.STATUS_PENDING, Order.STATUS_PROCESSING, Order.STATUS_SHIPPED])
    def test_cancel_through_status_restores_stock(self, manager_api, make_product, make_order, state):
        product = make_product(stock=7)
        order = make_order([(product, 3)], status=state)

        response = manager_api.put(f"/api/orders/{order.pk}/status/", {"status": "cancelled"}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["status"] == Order.STATUS_CANCELLED
        product.refresh_from_db()
        assert product.stock == 10

    def test_delivered_order_cannot_be_cancelled_through_status(self, manager_api, make_product, make_order):
        product = make_product(stock=5)
        order = make_order([(product, 3)], status=Order.STATUS_DELIVERED, payment_status=Order.PAYMENT_PAID)
        product.stock = 2
        product.save()

        response = manager_api.put(f"/api/orders/{order.pk}/status/", {"status": "cancelled"}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Delivered orders cannot be cancelled"
        order.refresh_from_db()
        product.refresh_from_db()
        assert order.status == Order.STATUS_DELIVERED
        assert product.stock == 2
        assert Invoice.objects.get(order=order).status == Invoice.STATUS_PAID

    def test_cancelled_order_cannot_change_status(self, manager_api, make_product, make_order):
        product = make_product(stock=4)
        order = make_order([(product, 2)], status=Order.STATUS_CANCELLED)

        response = manager_api.put(f"/api/orders/{order.pk}/status/", {"status": "processing"}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "A cancelled order cannot change status"
        order.refresh_from_db()
        product.refresh_from_db()
        assert order.status == Order.STATUS_CANCELLED
        assert product.stock == 4

    def test_payment_stamps_paid_at(self, manager_api, make_product, make_order):
        order = make_order([(make_product(), 1)])
        response = manager_api.put(f"/api/orders/{order.pk}/payment/", {"payment_status": "paid"}, format="json")
        assert response.status_code == status.HTTP_200_OK
        order.refresh_from_db()
        assert order.payment_status == Order.PAYMENT_PAID
        assert order.paid_at is not None


@pytest.mark.django_db
class TestCancellation:
    def test_owner_cancel_restores_stock(self, customer_api, make_product):
        product = make_product(stock=10)
        created = customer_api.post("/api/orders/", _payload((product, 4)), format="json").json()["data"]
        product.refresh_from_db()
        assert product.stock == 6

        response = customer_api.put(f"/api/orders/{created['id']}/cancel/")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["status"] == Order.STATUS_CANCELLED
        product.refresh_from_db()
        assert product.stock == 10

    def test_repeated_cancel_restores_stock_once(self, customer_api, manager_api, make_product):
        product = make_product(stock=10)
        created = customer_api.post("/api/orders/", _payload((product, 4)), format="json").json()["data"]

        assert customer_api.put(f"/api/orders/{created['id']}/cancel/").status_code == status.HTTP_200_OK
        again = customer_api.put(f"/api/orders/{created['id']}/cancel/")
        by_admin = manager_api.put(f"/api/orders/{created['id']}/cancel-admin/")

        assert again.status_code == status.HTTP_400_BAD_REQUEST
        assert by_admin.status_code == status.HTTP_400_BAD_REQUEST
        product.refresh_from_db()
        assert product.stock == 10

    def test_owner_cannot_cancel_after_processing(self, customer_api, customer_account, make_product, make_order):
        order = make_order([(make_product(), 1)], status=Order.STATUS_PROCESSING, user=customer_account)
        response = customer_api.put(f"/api/orders/{order.pk}/cancel/")
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_cannot_cancel_someone_elses_order(self, customer_api, other_customer_account, make_product, make_order):
        order = make_order([(make_product(), 1)], user=other_customer_account)
        response = customer_api.put(f"/api/orders/{order.pk}/cancel/")
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_owner_confirms_received(self, customer_api, customer_account, make_product, make_order):
        order = make_order([(make_product(), 1)], status=Order.STATUS_SHIPPED, user=customer_account)
        response = customer_api.put(f"/api/orders/{order.pk}/received/")
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["status"] == Order.STATUS_DELIVERED
        assert Invoice.objects.filter(order=order).exists()

    def test_received_requires_shipped(self, customer_api, customer_account, make_product, make_order):
        order = make_order([(make_product(), 1)], user=customer_account)
        response = customer_api.put(f"/api/orders/{order.pk}/received/")
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_admin_cancel_restores_stock(self, manager_api, make_product, make_order):
        product = make_product(stock=7)
        order = make_order([(product, 3)], status=Order.STATUS_SHIPPED)

        response = manager_api.put(f"/api/orders/{order.pk}/cancel-admin/")

        assert response.status_code == status.HTTP_200_OK
        product.refresh_from_db()
        assert product.stock == 10

    def test_admin_cancel_refused_for_delivered(self, manager_api, make_product, make_order):
        order = make_order([(make_product(), 1)], status=Order.STATUS_DELIVERED)
        response = manager_api.put(f"/api/orders/{order.pk}/cancel-admin/")
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Delivered orders cannot be cancelled"

    def test_admin_cancel_refused_twice(self, manager_api, make_product, make_order):
        order = make_order([(make_product(), 1)], status=Order.STATUS_CANCELLED)
        response = manager_api.put(f"/api/orders/{order.pk}/cancel-admin/")
        assert response.status_code == status.HTTP_400_BAD_REQUEST
