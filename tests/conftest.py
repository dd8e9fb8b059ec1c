"""
Pytest configuration and fixtures for the ELECSTRIKE API.
"""

from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from api.models import Order, OrderItem, Product, User

PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def _test_settings(settings, tmp_path):
    """Keep uploads out of the project tree and hashing fast."""
    settings.MEDIA_ROOT = str(tmp_path / "media")
    settings.PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]


@pytest.fixture
def api_client():
    """
    Fixture for an anonymous Django REST framework API client.
    """
    return APIClient()


def _make_user(role, username, **extra):
    return User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password=PASSWORD,
        full_name=username.title(),
        role=role,
        **extra,
    )


def _client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def admin_account(db):
    return _make_user(User.ROLE_ADMIN, "boss")


@pytest.fixture
def manager_account(db):
    return _make_user(User.ROLE_MANAGER, "manager")


@pytest.fixture
def staff_account(db):
    return _make_user(User.ROLE_STAFF, "clerk")


@pytest.fixture
def customer_account(db):
    return _make_user(User.ROLE_CUSTOMER, "buyer")


@pytest.fixture
def other_customer_account(db):
    return _make_user(User.ROLE_CUSTOMER, "stranger")


@pytest.fixture
def admin_api(admin_account):
    return _client_for(admin_account)


@pytest.fixture
def manager_api(manager_account):
    return _client_for(manager_account)


@pytest.fixture
def staff_api(staff_account):
    return _client_for(staff_account)


@pytest.fixture
def customer_api(customer_account):
    return _client_for(customer_account)


@pytest.fixture
def make_product(db):
    counter = {"n": 0}

    def _make(code=None, stock=50, price="120000", **extra):
        counter["n"] += 1
        defaults = {
            "name": f"Component {counter['n']}",
            "category": "vi-dieu-khien",
        }
        defaults.update(extra)
        return Product.objects.create(
            product_code=code or f"CMP-{counter['n']:03d}",
            price=Decimal(price),
            stock=stock,
            **defaults,
        )

    return _make


@pytest.fixture
def make_order(db):
    """
    Creates an order straight through the ORM (no stock movement).
    items: [(product, quantity), ...]
    """

    def _make(items, status=Order.STATUS_PENDING, user=None, email="buyer@example.com", **extra):
        order = Order.objects.create(
            customer_name="Nguyen Van A",
            customer_email=email,
            customer_phone="0901234567",
            shipping_address="12 Le Loi, District 1, HCMC",
            user=user,
            created_by=user,
            **extra,
        )
        for product, qty in items:
            OrderItem.objects.create(
                order=order,
                product=product,
                product_name=product.name,
                product_code=product.product_code,
                quantity=qty,
                price=product.price,
            )
        if status != Order.STATUS_PENDING:
            order.status = status
            order.save()
        return order

    return _make
