"""
Tests for signup, login and token-based access.
"""

import pytest
from rest_framework import status

from api.models import User

PASSWORD = "secret123"


@pytest.mark.django_db
class TestSignup:
    url = "/api/auth/signup/"

    def test_signup_creates_customer_and_returns_token(self, api_client):
        response = api_client.post(
            self.url,
            {"full_name": "Tran Thi B", "email": "TTB@Example.com", "password": "abcdef", "role": "admin"},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["success"] is True
        assert body["data"]["access_token"]
        assert body["data"]["user"]["email"] == "ttb@example.com"
        assert body["data"]["user"]["role"] == User.ROLE_CUSTOMER
        assert body["data"]["user"]["username"] == "ttb"
        assert "password" not in body["data"]["user"]

    def test_duplicate_email_rejected(self, api_client, customer_account):
        response = api_client.post(
            self.url,
            {"full_name": "Copy", "email": customer_account.email, "password": "abcdef"},
            format="json",
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["success"] is False
        assert "email" in response.json()["errors"]

    def test_duplicate_username_rejected(self, api_client, customer_account):
        response = api_client.post(
            self.url,
            {"full_name": "Copy", "email": "new@example.com", "password": "abcdef", "username": "buyer"},
            format="json",
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "username" in response.json()["errors"]

    def test_short_password_rejected(self, api_client):
        response = api_client.post(
            self.url, {"full_name": "X", "email": "x@example.com", "password": "123"}, format="json"
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_derived_username_is_made_unique(self, api_client, customer_account):
        response = api_client.post(
            self.url,
            {"full_name": "Other Buyer", "email": "buyer@another.vn", "password": "abcdef"},
            format="json",
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["data"]["user"]["username"] == "buyer2"


@pytest.mark.django_db
class TestLogin:
    url = "/api/auth/login/"

    def test_login_returns_token_usable_as_bearer(self, api_client, customer_account):
        response = api_client.post(self.url, {"email": "BUYER@example.com", "password": PASSWORD}, format="json")
        assert response.status_code == status.HTTP_200_OK
        token = response.json()["data"]["access_token"]

        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        me = api_client.get("/api/auth/me/")
        assert me.status_code == status.HTTP_200_OK
        assert me.json()["data"]["username"] == "buyer"

    def test_wrong_password_is_401(self, api_client, customer_account):
        response = api_client.post(self.url, {"email": customer_account.email, "password": "nope"}, format="json")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"success": False, "message": "Invalid email or password"}

    def test_missing_fields_is_400(self, api_client):
        response = api_client.post(self.url, {"email": "someone@example.com"}, format="json")
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_inactive_account_is_403(self, api_client, customer_account):
        customer_account.is_active = False
        customer_account.save()
        response = api_client.post(self.url, {"email": customer_account.email, "password": PASSWORD}, format="json")
        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestProtectedRoutes:
    @pytest.mark.parametrize(
        "url",
        [
            "/api/auth/me/",
            "/api/orders/",
            "/api/customers/",
            "/api/invoices/",
            "/api/users/",
            "/api/analytics/overview/",
            "/api/dashboard/stats/",
        ],
    )
    def test_anonymous_gets_401(self, api_client, url):
        response = api_client.get(url)
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["success"] is False

    def test_garbage_token_gets_401(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION="Bearer not-a-token")
        assert api_client.get("/api/auth/me/").status_code == status.HTTP_401_UNAUTHORIZED

    def test_logout_acknowledges(self, customer_api):
        response = customer_api.post("/api/auth/logout/")
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["success"] is True
