"""
Tests for the JSON error envelope and the health check.
"""

import pytest
from django.db import IntegrityError
from rest_framework import status
from rest_framework.exceptions import ValidationError

from api.exceptions import BusinessRuleError, exception_handler


@pytest.mark.django_db
def test_unknown_route_is_json_404(api_client):
    response = api_client.get("/api/no-such-thing/")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json() == {"success": False, "message": "Resource not found"}


@pytest.mark.django_db
def test_health(api_client):
    response = api_client.get("/api/health/")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "healthy", "service": "ELECSTRIKE API"}


class TestExceptionHandler:
    def test_integrity_error_is_duplicate_data(self):
        response = exception_handler(IntegrityError("UNIQUE constraint failed"), {})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data == {"success": False, "message": "Duplicate data"}

    def test_validation_error_lists_messages(self):
        response = exception_handler(ValidationError({"email": ["Email already exists"]}), {})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["message"] == ["Email already exists"]
        assert response.data["errors"] == {"email": ["Email already exists"]}

    def test_business_rule(self):
        response = exception_handler(BusinessRuleError("Invoice is already paid"), {})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data == {"success": False, "message": "Invoice is already paid"}

    def test_unexpected_error_is_500(self):
        response = exception_handler(RuntimeError("boom"), {})
        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.data == {"success": False, "message": "Server error"}
