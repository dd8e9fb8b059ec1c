# api/customer_views.py — back-office customer book with order stats and loyalty points
import logging

from django.db import transaction
from django.db.models import Count, DecimalField, IntegerField, OuterRef, Q, Subquery, Sum, Value
from django.db.models.functions import Coalesce
from rest_framework import viewsets
from rest_framework.decorators import action

from .customer_serializers import CustomerSerializer, LoyaltySerializer
from .exceptions import BusinessRuleError
from .models import ZERO, Customer, Order
from .permissions import IsAdminOrManager, IsBackOffice
from .responses import EnvelopeMixin, success_response

logger = logging.getLogger(__name__)


def _with_order_stats(qs):
    """Annotates total_orders/total_spent from non-cancelled orders sharing the customer email."""
    orders = (
        Order.objects.filter(customer_email=OuterRef("email"))
        .exclude(status=Order.STATUS_CANCELLED)
        .order_by()
        .values("customer_email")
    )
    return qs.annotate(
        total_orders=Coalesce(
            Subquery(orders.annotate(n=Count("id")).values("n"), output_field=IntegerField()),
            Value(0),
        ),
        total_spent=Coalesce(
            Subquery(
                orders.annotate(s=Sum("total_amount")).values("s"),
                output_field=DecimalField(max_digits=14, decimal_places=2),
            ),
            Value(ZERO),
            output_field=DecimalField(max_digits=14, decimal_places=2),
        ),
    )


class CustomerViewSet(EnvelopeMixin, viewsets.ModelViewSet):
    serializer_class = CustomerSerializer
    queryset = Customer.objects.all().order_by("-created_at")
    filterset_fields = ["status"]
    ordering_fields = ["created_at", "name", "loyalty_points"]

    envelope_messages = {
        "create": "Customer created",
        "update": "Customer updated",
        "destroy": "Customer deleted",
    }

    def get_permissions(self):
        if self.action == "destroy":
            return [IsAdminOrManager()]
        return [IsBackOffice()]

    def get_queryset(self):
        qs = _with_order_stats(super().get_queryset())
        keyword = (self.request.query_params.get("keyword") or "").strip()
        if keyword:
            qs = qs.filter(
                Q(name__icontains=keyword) | Q(email__icontains=keyword) | Q(phone__icontains=keyword)
            )
        return qs

    def perform_destroy(self, instance):
        if Order.objects.filter(customer_email=instance.email).exists():
            raise BusinessRuleError(
                "Cannot delete a customer who has orders. Set the customer to inactive instead."
            )
        logger.info("Customer %s deleted", instance.email)
        instance.delete()

    @action(detail=True, methods=["put"])
    @transaction.atomic
    def loyalty(self, request, pk=None):
        customer = self.get_object()
        ser = LoyaltySerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        points = ser.validated_data["points"]

        customer = Customer.objects.select_for_update().get(pk=customer.pk)
        if ser.validated_data["action"] == "add":
            customer.loyalty_points += points
        else:
            if points > customer.loyalty_points:
                raise BusinessRuleError(
                    f"Not enough loyalty points. Current balance: {customer.loyalty_points}"
                )
            customer.loyalty_points -= points
        customer.save(update_fields=["loyalty_points", "updated_at"])
        logger.info("Customer %s loyalty %s %d", customer.email, ser.validated_data["action"], points)

        data = CustomerSerializer(self.get_queryset().get(pk=customer.pk)).data
        return success_response(data, "Loyalty points updated")
