# api/permissions.py — role checks on top of JWT authentication
from rest_framework import permissions

from .models import User


class HasRole(permissions.BasePermission):
    """
    Grants access when the authenticated user's role is in `allowed_roles`.
    Anonymous requests fail here too; DRF then answers 401 instead of 403.
    """

    allowed_roles: tuple = ()
    message = "You do not have permission to perform this action"

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.role in self.allowed_roles)


class IsAdmin(HasRole):
    allowed_roles = (User.ROLE_ADMIN,)
    message = "Only administrators can perform this action"


class IsAdminOrManager(HasRole):
    allowed_roles = (User.ROLE_ADMIN, User.ROLE_MANAGER)
    message = "Only administrators and managers can perform this action"


class IsBackOffice(HasRole):
    allowed_roles = User.BACK_OFFICE_ROLES


class IsBackOfficeOrOwner(permissions.IsAuthenticated):
    """Back-office staff see every order; other users only the ones they placed."""

    def has_object_permission(self, request, view, obj):
        user = request.user
        return user.is_back_office or obj.is_owned_by(user)
