# api/urls.py — function routes first (they share prefixes with router resources), router last
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import analytics_views, auth_views, cart, setting_views, user_views
from .customer_views import CustomerViewSet
from .invoice_views import InvoiceViewSet
from .views import OrderViewSet, ProductViewSet

router = DefaultRouter()
router.register(r"products", ProductViewSet, basename="product")
router.register(r"orders", OrderViewSet, basename="order")
router.register(r"customers", CustomerViewSet, basename="customer")
router.register(r"invoices", InvoiceViewSet, basename="invoice")
router.register(r"users", user_views.UserViewSet, basename="user")


urlpatterns = [
    # Auth
    path("auth/signup/", auth_views.signup, name="auth-signup"),
    path("auth/login/", auth_views.login, name="auth-login"),
    path("auth/me/", auth_views.me, name="auth-me"),
    path("auth/logout/", auth_views.logout, name="auth-logout"),

    # Self-service profile (before users/<pk>/)
    path("users/profile/", user_views.profile, name="user-profile"),
    path("users/profile/avatar/", user_views.upload_avatar, name="user-avatar"),

    # Settings
    path("settings/", setting_views.SettingView.as_view(), name="settings"),
    path("settings/profile/", setting_views.update_profile, name="settings-profile"),
    path("settings/change-password/", setting_views.change_password, name="settings-change-password"),

    # Analytics
    path("analytics/revenue/", analytics_views.revenue, name="analytics-revenue"),
    path("analytics/top-products/", analytics_views.top_products, name="analytics-top-products"),
    path("analytics/status/", analytics_views.status_breakdown, name="analytics-status"),
    path("analytics/overview/", analytics_views.overview, name="analytics-overview"),
    path(
        "analytics/order-status-distribution/",
        analytics_views.order_status_distribution,
        name="analytics-order-status-distribution",
    ),
    path(
        "analytics/product-sales-performance/",
        analytics_views.product_sales_performance,
        name="analytics-product-sales-performance",
    ),
    path("analytics/revenue-by-order/", analytics_views.revenue_by_order, name="analytics-revenue-by-order"),

    # Dashboard
    path("dashboard/stats/", analytics_views.dashboard_stats, name="dashboard-stats"),
    path("dashboard/charts/", analytics_views.dashboard_charts, name="dashboard-charts"),
    path("dashboard/revenue-by-month/", analytics_views.revenue_by_month, name="dashboard-revenue-by-month"),

    # Cart (session)
    path("cart/", cart.cart_detail, name="cart-detail"),
    path("cart/add/", cart.cart_add, name="cart-add"),
    path("cart/update/", cart.cart_update, name="cart-update"),
    path("cart/clear/", cart.cart_clear, name="cart-clear"),

    path("", include(router.urls)),
]
