# api/views.py — Products (public catalog + back-office CRUD) and Orders (checkout + status workflow)
import logging

from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone
from rest_framework import filters, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import AllowAny, IsAuthenticated

from .exceptions import BusinessRuleError
from .models import ZERO, Order, Product
from .permissions import IsAdmin, IsAdminOrManager, IsBackOffice, IsBackOfficeOrOwner
from .responses import EnvelopeMixin, success_response
from .serializers import (
    OrderCreateSerializer,
    OrderPaymentSerializer,
    OrderReadSerializer,
    OrderStatusSerializer,
    ProductSerializer,
    ProductSuggestionSerializer,
)

logger = logging.getLogger(__name__)


# -------------------------------------------------
# Products (CRUD, soft delete)
# -------------------------------------------------
class ProductViewSet(EnvelopeMixin, viewsets.ModelViewSet):
    serializer_class = ProductSerializer
    queryset = Product.objects.all().order_by("-created_at")

    filterset_fields = ["category", "status"]
    search_fields = ["name", "product_code"]
    ordering_fields = ["created_at", "name", "price", "stock"]

    envelope_messages = {
        "create": "Product created",
        "update": "Product updated",
        "destroy": "Product deleted",
    }

    def get_permissions(self):
        if self.action in ("list", "retrieve", "suggestions"):
            return [AllowAny()]
        if self.action == "destroy":
            return [IsAdmin()]
        return [IsAdminOrManager()]

    def get_queryset(self):
        qs = super().get_queryset()
        user = self.request.user
        if self.action == "list" or not (user.is_authenticated and user.is_back_office):
            qs = qs.filter(is_active=True)
        keyword = (self.request.query_params.get("keyword") or "").strip()
        if keyword:
            qs = qs.filter(Q(name__icontains=keyword) | Q(product_code__icontains=keyword))
        return qs

    def perform_destroy(self, instance):
        instance.is_active = False
        instance.save(update_fields=["is_active", "updated_at"])
        logger.info("Product %s deactivated", instance.product_code)

    @action(detail=False, methods=["get"])
    def suggestions(self, request):
        query = (request.query_params.get("query") or "").strip()
        if len(query) < 2:
            return success_response([])
        qs = Product.objects.filter(is_active=True).filter(
            Q(name__icontains=query) | Q(product_code__icontains=query)
        ).order_by("name")[:5]
        return success_response(ProductSuggestionSerializer(qs, many=True).data)


# -------------------------------------------------
# Orders (separate read and write serializers)
# -------------------------------------------------
class OrderViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Order.objects.all().prefetch_related("items").select_related("invoice").order_by("-created_at")
    filter_backends = [filters.OrderingFilter]
    ordering_fields = ["created_at", "total_amount", "status"]

    def get_serializer_class(self):
        if self.action == "create":
            return OrderCreateSerializer
        return OrderReadSerializer

    def get_permissions(self):
        if self.action in ("list", "stats"):
            return [IsBackOffice()]
        if self.action == "retrieve":
            return [IsBackOfficeOrOwner()]
        if self.action in ("update_status", "update_payment", "cancel_admin"):
            return [IsAdminOrManager()]
        return [IsAuthenticated()]

    def get_queryset(self):
        qs = super().get_queryset()
        qp = self.request.query_params
        if self.action == "list":
            if qp.get("status"):
                qs = qs.filter(status=qp["status"])
            if qp.get("payment_status"):
                qs = qs.filter(payment_status=qp["payment_status"])
        return qs

    def _own_order(self, message):
        order = self.get_object()
        if not order.is_owned_by(self.request.user):
            raise PermissionDenied(message)
        return order

    def _locked(self, order):
        # status checks must read the row they are about to change
        return Order.objects.select_for_update().get(pk=order.pk)

    def _check_cancellable(self, order):
        if order.status == Order.STATUS_DELIVERED:
            raise BusinessRuleError("Delivered orders cannot be cancelled")
        if order.status == Order.STATUS_CANCELLED:
            raise BusinessRuleError("Order is already cancelled")

    def _read(self, order, message=None):
        # re-read: the invoice may have just been issued by post_save
        order = self.get_queryset().get(pk=order.pk)
        return success_response(OrderReadSerializer(order, context=self.get_serializer_context()).data, message)

    def list(self, request, *args, **kwargs):
        qs = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(qs)
        ser = OrderReadSerializer(page if page is not None else qs, many=True, context={"request": request})
        if page is not None:
            return self.get_paginated_response(ser.data)
        return success_response(ser.data)

    def retrieve(self, request, *args, **kwargs):
        obj = self.get_object()
        return success_response(OrderReadSerializer(obj, context={"request": request}).data)

    def create(self, request, *args, **kwargs):
        ser = OrderCreateSerializer(data=request.data, context={"request": request})
        ser.is_valid(raise_exception=True)
        ser.save()
        return success_response(ser.data, "Order created", status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["get"])
    def myorders(self, request):
        qs = self.get_queryset().filter(Q(user=request.user) | Q(created_by=request.user)).distinct()
        page = self.paginate_queryset(qs)
        ser = OrderReadSerializer(page if page is not None else qs, many=True, context={"request": request})
        if page is not None:
            return self.get_paginated_response(ser.data)
        return success_response(ser.data)

    @action(detail=False, methods=["get"])
    def stats(self, request):
        counts = {value: 0 for value, _ in Order.STATUS_CHOICES}
        for row in Order.objects.values("status").annotate(count=Count("id")):
            counts[row["status"]] = row["count"]
        revenue = Order.objects.filter(status=Order.STATUS_DELIVERED).aggregate(total=Sum("total_amount"))["total"]
        return success_response({"total": sum(counts.values()), **counts, "total_revenue": revenue or ZERO})

    @action(detail=True, methods=["put"], url_path="status")
    @transaction.atomic
    def update_status(self, request, pk=None):
        order = self._locked(self.get_object())
        ser = OrderStatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        new_status = ser.validated_data["status"]

        if order.status == Order.STATUS_CANCELLED and new_status != Order.STATUS_CANCELLED:
            raise BusinessRuleError("A cancelled order cannot change status")
        if new_status == Order.STATUS_CANCELLED and order.status != Order.STATUS_CANCELLED:
            self._check_cancellable(order)
            order.restore_stock()
        if new_status == Order.STATUS_DELIVERED and not order.delivered_at:
            order.delivered_at = timezone.now()

        order.status = new_status
        order.save()  # post_save issues the invoice on delivery
        logger.info("Order %s moved to %s by %s", order.order_code, new_status, request.user.username)
        return self._read(order, "Order status updated")

    @action(detail=True, methods=["put"], url_path="payment")
    def update_payment(self, request, pk=None):
        order = self.get_object()
        ser = OrderPaymentSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        order.payment_status = ser.validated_data["payment_status"]
        if order.payment_status == Order.PAYMENT_PAID and not order.paid_at:
            order.paid_at = timezone.now()
        order.save()
        logger.info("Order %s payment set to %s", order.order_code, order.payment_status)
        return self._read(order, "Payment status updated")

    @action(detail=True, methods=["put"])
    @transaction.atomic
    def cancel(self, request, pk=None):
        order = self._locked(self._own_order("You can only cancel your own orders"))
        if order.status != Order.STATUS_PENDING:
            raise BusinessRuleError("Only pending orders can be cancelled")
        order.restore_stock()
        order.status = Order.STATUS_CANCELLED
        order.save()
        logger.info("Order %s cancelled by its owner", order.order_code)
        return self._read(order, "Order cancelled")

    @action(detail=True, methods=["put"], url_path="received")
    def confirm_received(self, request, pk=None):
        order = self._own_order("You can only confirm your own orders")
        if order.status != Order.STATUS_SHIPPED:
            raise BusinessRuleError("Only shipped orders can be confirmed as received")
        order.status = Order.STATUS_DELIVERED
        order.delivered_at = timezone.now()
        order.save()
        return self._read(order, "Order received")

    @action(detail=True, methods=["put"], url_path="cancel-admin")
    @transaction.atomic
    def cancel_admin(self, request, pk=None):
        order = self._locked(self.get_object())
        self._check_cancellable(order)
        order.restore_stock()
        order.status = Order.STATUS_CANCELLED
        order.save()
        logger.info("Order %s cancelled by %s", order.order_code, request.user.username)
        return self._read(order, "Order cancelled")
