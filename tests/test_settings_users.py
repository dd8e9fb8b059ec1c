"""
Tests for the company settings, self-service account settings and admin user management.
"""

import re
from io import BytesIO

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from PIL import Image
from rest_framework import status

from api.models import Setting, User


def _png(name="me.png"):
    buffer = BytesIO()
    Image.new("RGB", (8, 8), color=(200, 30, 30)).save(buffer, format="PNG")
    return SimpleUploadedFile(name, buffer.getvalue(), content_type="image/png")


@pytest.mark.django_db
class TestCompanySettings:
    url = "/api/settings/"

    def test_get_is_public_and_creates_defaults(self, api_client):
        response = api_client.get(self.url)
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["company_name"] == "ELECSTRIKE Co., Ltd."
        assert Setting.objects.count() == 1

    def test_admin_updates_single_row(self, admin_api):
        admin_api.get(self.url)
        response = admin_api.put(
            self.url, {"company_name": "  ELECSTRIKE JSC ", "email": "Sales@Elecstrike.vn"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["company_name"] == "ELECSTRIKE JSC"
        assert data["email"] == "sales@elecstrike.vn"
        assert data["currency"] == "VND"
        assert Setting.objects.count() == 1

    def test_blank_company_name_rejected(self, admin_api):
        response = admin_api.put(self.url, {"company_name": "   "}, format="json")
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_manager_cannot_update(self, manager_api):
        response = manager_api.put(self.url, {"company_name": "Hijacked"}, format="json")
        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestChangePassword:
    url = "/api/settings/change-password/"

    def test_changes_password(self, customer_api, customer_account):
        response = customer_api.put(
            self.url,
            {"current_password": "secret123", "new_password": "newpass1", "confirm_password": "newpass1"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        customer_account.refresh_from_db()
        assert customer_account.check_password("newpass1")

    @pytest.mark.parametrize(
        "payload, field",
        [
            ({"current_password": "secret123", "new_password": "newpass1", "confirm_password": "other"}, "confirm_password"),
            ({"current_password": "secret123", "new_password": "abc", "confirm_password": "abc"}, "new_password"),
            ({"current_password": "wrong-one", "new_password": "newpass1", "confirm_password": "newpass1"}, "current_password"),
            ({"current_password": "secret123", "new_password": "secret123", "confirm_password": "secret123"}, "new_password"),
        ],
    )
    def test_rejections(self, customer_api, customer_account, payload, field):
        response = customer_api.put(self.url, payload, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert field in response.json()["errors"]
        customer_account.refresh_from_db()
        assert customer_account.check_password("secret123")


@pytest.mark.django_db
class TestProfile:
    url = "/api/users/profile/"

    def test_get_and_update(self, customer_api):
        assert customer_api.get(self.url).json()["data"]["username"] == "buyer"

        response = customer_api.put(
            self.url,
            {"full_name": "Buyer Nguyen", "phone": "0901234567", "addresses": [{"label": "home", "line": "12 Le Loi"}]},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["full_name"] == "Buyer Nguyen"
        assert data["addresses"][0]["label"] == "home"
        assert "password" not in data

    def test_password_change_needs_current_password(self, customer_api, customer_account):
        missing = customer_api.put(self.url, {"password": "newpass1"}, format="json")
        assert missing.status_code == status.HTTP_400_BAD_REQUEST

        ok = customer_api.put(self.url, {"password": "newpass1", "current_password": "secret123"}, format="json")
        assert ok.status_code == status.HTTP_200_OK
        customer_account.refresh_from_db()
        assert customer_account.check_password("newpass1")

    def test_email_is_not_editable(self, customer_api, customer_account):
        customer_api.put(self.url, {"email": "changed@example.com"}, format="json")
        customer_account.refresh_from_db()
        assert customer_account.email == "buyer@example.com"

    def test_settings_profile_update(self, customer_api):
        response = customer_api.put("/api/settings/profile/", {"full_name": "B. Nguyen"}, format="json")
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["full_name"] == "B. Nguyen"


@pytest.mark.django_db
class TestAvatarUpload:
    url = "/api/users/profile/avatar/"

    def test_upload_renames_file(self, customer_api, customer_account):
        response = customer_api.post(self.url, {"avatar": _png()}, format="multipart")

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert re.search(rf"/media/avatars/{customer_account.pk}-\d+\.png$", body["avatar_url"])
        customer_account.refresh_from_db()
        assert customer_account.avatar.name.startswith("avatars/")

    def test_replacing_removes_previous_file(self, customer_api, customer_account):
        customer_api.post(self.url, {"avatar": _png()}, format="multipart")
        customer_account.refresh_from_db()
        first = customer_account.avatar.name
        storage = customer_account.avatar.storage

        customer_api.post(self.url, {"avatar": _png("again.png")}, format="multipart")
        customer_account.refresh_from_db()

        if customer_account.avatar.name != first:
            assert not storage.exists(first)
        assert storage.exists(customer_account.avatar.name)

    def test_too_large(self, customer_api, settings):
        settings.AVATAR_MAX_UPLOAD_BYTES = 10
        response = customer_api.post(self.url, {"avatar": _png()}, format="multipart")
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_not_an_image(self, customer_api):
        upload = SimpleUploadedFile("notes.txt", b"just some text", content_type="text/plain")
        response = customer_api.post(self.url, {"avatar": upload}, format="multipart")
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_missing_file(self, customer_api):
        response = customer_api.post(self.url, {}, format="multipart")
        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestAdminUsers:
    url = "/api/users/"

    def test_list_with_keyword(self, admin_api, customer_account, other_customer_account):
        body = admin_api.get(self.url, {"keyword": "stranger"}).json()
        assert [u["username"] for u in body["data"]] == ["stranger"]

        by_role = admin_api.get(self.url, {"role": "customer"}).json()["data"]
        assert {u["username"] for u in by_role} == {"buyer", "stranger"}

    def test_admin_changes_role(self, admin_api, customer_account):
        response = admin_api.patch(f"{self.url}{customer_account.pk}/", {"role": "staff"}, format="json")
        assert response.status_code == status.HTTP_200_OK
        customer_account.refresh_from_db()
        assert customer_account.role == User.ROLE_STAFF

    def test_cannot_delete_self(self, admin_api, admin_account):
        response = admin_api.delete(f"{self.url}{admin_account.pk}/")
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert User.objects.filter(pk=admin_account.pk).exists()

    def test_deletes_other_user(self, admin_api, other_customer_account):
        response = admin_api.delete(f"{self.url}{other_customer_account.pk}/")
        assert response.status_code == status.HTTP_200_OK
        assert not User.objects.filter(pk=other_customer_account.pk).exists()

    def test_no_create_through_admin_list(self, admin_api):
        response = admin_api.post(self.url, {"username": "ghost"}, format="json")
        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED

    @pytest.mark.parametrize("client_name", ["manager_api", "customer_api"])
    def test_non_admins_forbidden(self, request, client_name):
        client = request.getfixturevalue(client_name)
        assert client.get(self.url).status_code == status.HTTP_403_FORBIDDEN
