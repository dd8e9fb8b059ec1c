# api/analytics.py — ORM aggregations behind /api/analytics/* and /api/dashboard/*
from datetime import datetime, time, timedelta

from django.conf import settings
from django.db.models import Count, Sum
from django.db.models.functions import TruncDate, TruncMonth
from django.utils import timezone

from .models import ZERO, Customer, Order, OrderItem, Product


# ---------------------------
# Helpers
# ---------------------------
def day_bounds(start_date=None, end_date=None):
    """date objects -> aware datetimes; the end day is inclusive."""
    tz = timezone.get_current_timezone()
    start = timezone.make_aware(datetime.combine(start_date, time.min), tz) if start_date else None
    end = timezone.make_aware(datetime.combine(end_date + timedelta(days=1), time.min), tz) if end_date else None
    return start, end


def _in_range(qs, start=None, end=None, field="created_at"):
    if start is not None:
        qs = qs.filter(**{f"{field}__gte": start})
    if end is not None:
        qs = qs.filter(**{f"{field}__lt": end})
    return qs


def _pct(part, whole, digits=2):
    return round(part * 100 / whole, digits) if whole else 0


def _month_start(year, month):
    return timezone.make_aware(datetime(year, month, 1), timezone.get_current_timezone())


def _shift_month(year, month, delta):
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def growth(current, previous):
    """Month-over-month growth in percent, one decimal; 100 when starting from nothing."""
    if not previous:
        return 100.0 if current > 0 else 0.0
    return round(float(current - previous) * 100 / float(previous), 1)


def _total(qs):
    return qs.aggregate(total=Sum("total_amount"))["total"] or ZERO


def _revenue(qs):
    """Booked revenue of the analytics reports: processing and delivered orders."""
    return _total(qs.filter(status__in=Order.REVENUE_STATUSES))


def _delivered_revenue(qs):
    return _total(qs.filter(status=Order.STATUS_DELIVERED))


# ---------------------------
# Analytics
# ---------------------------
def revenue_by_day(start=None, end=None):
    qs = _in_range(Order.objects.filter(status__in=Order.REVENUE_STATUSES), start, end)
    rows = (
        qs.annotate(day=TruncDate("created_at"))
        .values("day")
        .annotate(revenue=Sum("total_amount"), order_count=Count("id"))
        .order_by("day")
    )
    return [
        {"date": row["day"].isoformat(), "revenue": row["revenue"] or ZERO, "order_count": row["order_count"]}
        for row in rows
    ]


def top_products(limit=5, start=None, end=None):
    items = OrderItem.objects.exclude(order__status=Order.STATUS_CANCELLED)
    items = _in_range(items, start, end, field="order__created_at")
    rows = (
        items.values(
            "product_id",
            "product__name",
            "product__product_code",
            "product__category",
            "product__price",
            "product__stock",
        )
        .annotate(
            total_quantity=Sum("quantity"),
            total_revenue=Sum("subtotal"),
            order_count=Count("order", distinct=True),
        )
        .order_by("-total_quantity", "product_id")[:limit]
    )
    return [
        {
            "product_id": row["product_id"],
            "product_name": row["product__name"],
            "product_code": row["product__product_code"],
            "total_quantity": row["total_quantity"],
            "total_revenue": row["total_revenue"] or ZERO,
            "order_count": row["order_count"],
            "category": row["product__category"],
            "price": row["product__price"],
            "stock": row["product__stock"],
        }
        for row in rows
    ]


def status_breakdown():
    rows = list(
        Order.objects.values("status")
        .annotate(count=Count("id"), total_revenue=Sum("total_amount"))
        .order_by("-count", "status")
    )
    total = sum(row["count"] for row in rows)
    return {
        "status_breakdown": [
            {
                "status": row["status"],
                "count": row["count"],
                "total_revenue": row["total_revenue"] or ZERO,
                "percentage": _pct(row["count"], total),
            }
            for row in rows
        ],
        "total_orders": total,
    }


def overview(start=None, end=None):
    orders = _in_range(Order.objects.all(), start, end)
    products = Product.objects.filter(is_active=True)
    return {
        "total_revenue": _revenue(orders),
        "completed_orders": orders.filter(status__in=Order.REVENUE_STATUSES).count(),
        "total_orders": orders.count(),
        "pending_orders": orders.filter(status__in=Order.OPEN_STATUSES).count(),
        "total_products": products.count(),
        "low_stock_products": products.filter(stock__lte=settings.LOW_STOCK_THRESHOLD).count(),
    }


def order_status_distribution():
    rows = list(Order.objects.values("status").annotate(value=Count("id")).order_by("-value", "status"))
    total = sum(row["value"] for row in rows)
    return [{"name": row["status"], "value": row["value"], "percentage": _pct(row["value"], total)} for row in rows]


def product_sales_performance(limit=10, start=None, end=None):
    items = OrderItem.objects.exclude(order__status=Order.STATUS_CANCELLED)
    items = _in_range(items, start, end, field="order__created_at")
    rows = (
        items.values("product_name", "product_code")
        .annotate(
            total_qty=Sum("quantity"),
            total_revenue=Sum("subtotal"),
            order_count=Count("order", distinct=True),
        )
        .order_by("-total_revenue", "product_name")[:limit]
    )
    return [
        {
            "product_name": row["product_name"],
            "product_code": row["product_code"],
            "total_qty": row["total_qty"],
            "total_revenue": row["total_revenue"] or ZERO,
            "order_count": row["order_count"],
        }
        for row in rows
    ]


def revenue_by_order(limit=20, start=None, end=None):
    qs = _in_range(Order.objects.filter(status=Order.STATUS_DELIVERED), start, end)
    qs = qs.annotate(item_count=Count("items")).order_by("-total_amount", "-created_at")[:limit]
    return [
        {
            "id": order.pk,
            "order_code": order.order_code,
            "customer_name": order.customer_name,
            "total_amount": order.total_amount,
            "item_count": order.item_count,
            "created_at": order.created_at,
        }
        for order in qs
    ]


# ---------------------------
# Dashboard
# ---------------------------
# revenue here is delivered orders only; today's takings count every order that is not cancelled
def dashboard_stats(now=None):
    now = timezone.localtime(now or timezone.now())
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    this_month = _month_start(now.year, now.month)
    last_month = _month_start(*_shift_month(now.year, now.month, -1))

    orders = Order.objects.all()
    todays = orders.filter(created_at__gte=today)
    this_month_orders = orders.filter(created_at__gte=this_month)
    last_month_orders = orders.filter(created_at__gte=last_month, created_at__lt=this_month)

    customers_this = Customer.objects.filter(created_at__gte=this_month).count()
    customers_last = Customer.objects.filter(created_at__gte=last_month, created_at__lt=this_month).count()

    return {
        "today": {
            "orders_today": todays.count(),
            "pending_orders": orders.filter(status=Order.STATUS_PENDING).count(),
            "shipping_orders": orders.filter(status=Order.STATUS_SHIPPED).count(),
            "revenue_today": _total(todays.exclude(status=Order.STATUS_CANCELLED)),
        },
        "counts": {
            "revenue": _delivered_revenue(orders),
            "orders": orders.count(),
            "products": Product.objects.filter(is_active=True).count(),
            "customers": Customer.objects.count(),
        },
        "growth": {
            "revenue": growth(_delivered_revenue(this_month_orders), _delivered_revenue(last_month_orders)),
            "orders": growth(this_month_orders.count(), last_month_orders.count()),
            "customers": growth(customers_this, customers_last),
        },
    }


def dashboard_charts(now=None, days=30):
    now = timezone.localtime(now or timezone.now())
    first_day = now.date() - timedelta(days=days - 1)
    start, _ = day_bounds(first_day)

    per_day = {
        row["day"]: row
        for row in Order.objects.filter(status=Order.STATUS_DELIVERED, created_at__gte=start)
        .annotate(day=TruncDate("created_at"))
        .values("day")
        .annotate(revenue=Sum("total_amount"), orders=Count("id"))
    }
    revenue_chart = []
    for offset in range(days):
        day = first_day + timedelta(days=offset)
        row = per_day.get(day)
        revenue_chart.append(
            {
                "date": day.isoformat(),
                "revenue": (row["revenue"] or ZERO) if row else ZERO,
                "orders": row["orders"] if row else 0,
            }
        )

    status_chart = [
        {"status": row["status"], "count": row["count"]}
        for row in Order.objects.values("status").annotate(count=Count("id")).order_by("status")
    ]

    top = (
        OrderItem.objects.filter(order__status=Order.STATUS_DELIVERED)
        .values("product_id", "product_name")
        .annotate(total_quantity=Sum("quantity"), total_revenue=Sum("subtotal"))
        .order_by("-total_quantity", "product_name")[:10]
    )

    recent = Order.objects.order_by("-created_at")[:10]
    return {
        "revenue_chart": revenue_chart,
        "status_chart": status_chart,
        "top_products": list(top),
        "recent_orders": [
            {
                "id": order.pk,
                "order_code": order.order_code,
                "customer_name": order.customer_name,
                "total_amount": order.total_amount,
                "status": order.status,
                "created_at": order.created_at,
            }
            for order in recent
        ],
    }


def revenue_by_month(months=6, now=None):
    now = timezone.localtime(now or timezone.now())
    first = _month_start(*_shift_month(now.year, now.month, -(months - 1)))

    buckets = {}
    rows = (
        Order.objects.filter(status=Order.STATUS_DELIVERED, created_at__gte=first)
        .annotate(month=TruncMonth("created_at"))
        .values("month")
        .annotate(revenue=Sum("total_amount"), orders=Count("id"))
    )
    for row in rows:
        month = timezone.localtime(row["month"]) if timezone.is_aware(row["month"]) else row["month"]
        buckets[(month.year, month.month)] = row

    out = []
    for offset in range(months - 1, -1, -1):
        year, month = _shift_month(now.year, now.month, -offset)
        row = buckets.get((year, month))
        out.append(
            {
                "month": f"{month}/{year}",
                "revenue": (row["revenue"] or ZERO) if row else ZERO,
                "orders": row["orders"] if row else 0,
            }
        )
    return out
