# api/analytics_views.py — read-only reporting endpoints (analytics: back office, dashboard: any signed-in user)
from django.utils.dateparse import parse_date
from rest_framework import serializers
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from . import analytics
from .permissions import IsBackOffice
from .responses import success_response


def _date_param(request, name):
    raw = (request.query_params.get(name) or "").strip()
    if not raw:
        return None
    # accept full ISO timestamps from the client date pickers
    value = parse_date(raw[:10])
    if value is None:
        raise serializers.ValidationError({name: "Invalid date, expected YYYY-MM-DD"})
    return value


def _date_range(request):
    return analytics.day_bounds(_date_param(request, "start_date"), _date_param(request, "end_date"))


def _int_param(request, name, default, maximum=100):
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise serializers.ValidationError({name: "Must be an integer"})
    if value < 1:
        raise serializers.ValidationError({name: "Must be at least 1"})
    return min(value, maximum)


# ---------------------------
# Analytics
# ---------------------------
@api_view(["GET"])
@permission_classes([IsBackOffice])
def revenue(request):
    start, end = _date_range(request)
    return success_response(analytics.revenue_by_day(start, end))


@api_view(["GET"])
@permission_classes([IsBackOffice])
def top_products(request):
    start, end = _date_range(request)
    limit = _int_param(request, "limit", 5)
    return success_response(analytics.top_products(limit, start, end))


@api_view(["GET"])
@permission_classes([IsBackOffice])
def status_breakdown(request):
    return success_response(analytics.status_breakdown())


@api_view(["GET"])
@permission_classes([IsBackOffice])
def overview(request):
    start, end = _date_range(request)
    return success_response(analytics.overview(start, end))


@api_view(["GET"])
@permission_classes([IsBackOffice])
def order_status_distribution(request):
    return success_response(analytics.order_status_distribution())


@api_view(["GET"])
@permission_classes([IsBackOffice])
def product_sales_performance(request):
    start, end = _date_range(request)
    limit = _int_param(request, "limit", 10)
    return success_response(analytics.product_sales_performance(limit, start, end))


@api_view(["GET"])
@permission_classes([IsBackOffice])
def revenue_by_order(request):
    start, end = _date_range(request)
    limit = _int_param(request, "limit", 20)
    return success_response(analytics.revenue_by_order(limit, start, end))


# ---------------------------
# Dashboard
# ---------------------------
@api_view(["GET"])
@permission_classes([IsAuthenticated])
def dashboard_stats(request):
    return success_response(analytics.dashboard_stats())


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def dashboard_charts(request):
    return success_response(analytics.dashboard_charts())


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def revenue_by_month(request):
    months = _int_param(request, "months", 6, maximum=24)
    return success_response(analytics.revenue_by_month(months))
