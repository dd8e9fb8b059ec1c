# api/exceptions.py — business refusals + one handler that turns every failure into the JSON envelope
import logging

from django.core.exceptions import ObjectDoesNotExist
from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError
from django.http import Http404, JsonResponse
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.views import set_rollback

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Resource not found"
DUPLICATE_MESSAGE = "Duplicate data"
SERVER_ERROR_MESSAGE = "Server error"


class BusinessRuleError(exceptions.APIException):
    """A request that is well formed but refused by a business rule (insufficient stock, already paid...)."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request refused"
    default_code = "business_rule"


def _flatten(detail) -> list:
    if isinstance(detail, dict):
        out = []
        for value in detail.values():
            out.extend(_flatten(value))
        return out
    if isinstance(detail, (list, tuple)):
        out = []
        for value in detail:
            out.extend(_flatten(value))
        return out
    return [str(detail)]


def _message_of(detail) -> str:
    # simplejwt puts {"detail": ..., "code": ..., "messages": [...]} in its errors
    if isinstance(detail, dict) and "detail" in detail:
        return str(detail["detail"])
    if isinstance(detail, (dict, list)):
        return "; ".join(_flatten(detail))
    return str(detail)


def _view_name(context) -> str:
    view = (context or {}).get("view")
    return view.__class__.__name__ if view is not None else "?"


def exception_handler(exc, context):
    if isinstance(exc, (Http404, ObjectDoesNotExist)):
        set_rollback()
        return Response({"success": False, "message": NOT_FOUND_MESSAGE}, status=status.HTTP_404_NOT_FOUND)

    if isinstance(exc, IntegrityError):
        set_rollback()
        logger.warning("Integrity error in %s: %s", _view_name(context), exc)
        return Response({"success": False, "message": DUPLICATE_MESSAGE}, status=status.HTTP_400_BAD_REQUEST)

    if isinstance(exc, DjangoValidationError):
        detail = exc.message_dict if hasattr(exc, "error_dict") else exc.messages
        exc = exceptions.ValidationError(detail=detail)
    elif isinstance(exc, DjangoPermissionDenied):
        exc = exceptions.PermissionDenied()

    response = drf_exception_handler(exc, context)
    if response is None:
        set_rollback()
        logger.error("Unhandled error in %s", _view_name(context), exc_info=exc)
        return Response(
            {"success": False, "message": SERVER_ERROR_MESSAGE}, status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    if isinstance(exc, exceptions.ValidationError):
        response.data = {"success": False, "message": _flatten(exc.detail), "errors": exc.detail}
    elif isinstance(exc, exceptions.NotFound):
        response.data = {"success": False, "message": _message_of(exc.detail) or NOT_FOUND_MESSAGE}
    else:
        response.data = {"success": False, "message": _message_of(exc.detail)}
    return response


# --------- Django-level handlers (URLs outside the router, crashes outside DRF) ---------
def not_found(request, exception=None):
    return JsonResponse({"success": False, "message": NOT_FOUND_MESSAGE}, status=404)


def server_error(request):
    return JsonResponse({"success": False, "message": SERVER_ERROR_MESSAGE}, status=500)
