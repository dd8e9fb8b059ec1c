# api/invoice_views.py — invoices: issue, pay, change status, cancel
import logging

from django.db import transaction
from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action

from .exceptions import BusinessRuleError
from .models import Invoice, Order
from .permissions import IsBackOffice
from .responses import success_response
from .serializers import (
    InvoiceCreateSerializer,
    InvoiceDetailSerializer,
    InvoiceSerializer,
    InvoiceStatusSerializer,
)

logger = logging.getLogger(__name__)


class InvoiceViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    permission_classes = [IsBackOffice]
    queryset = Invoice.objects.all().select_related("order", "user").order_by("-created_at")
    filterset_fields = ["status"]
    search_fields = ["invoice_number", "order__order_code", "order__customer_name"]
    ordering_fields = ["created_at", "due_date", "total_amount"]

    def get_serializer_class(self):
        if self.action == "create":
            return InvoiceCreateSerializer
        if self.action == "list":
            return InvoiceSerializer
        return InvoiceDetailSerializer

    def _detail(self, invoice, message=None):
        invoice = self.get_queryset().get(pk=invoice.pk)
        return success_response(InvoiceDetailSerializer(invoice, context=self.get_serializer_context()).data, message)

    def list(self, request, *args, **kwargs):
        flipped = Invoice.objects.mark_overdue()
        if flipped:
            logger.info("%d invoices marked overdue", flipped)
        return super().list(request, *args, **kwargs)

    def retrieve(self, request, *args, **kwargs):
        return self._detail(self.get_object())

    def create(self, request, *args, **kwargs):
        ser = InvoiceCreateSerializer(data=request.data, context=self.get_serializer_context())
        ser.is_valid(raise_exception=True)
        ser.save()
        return success_response(ser.data, "Invoice created", status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["put"])
    @transaction.atomic
    def paid(self, request, pk=None):
        invoice = self.get_object()
        if invoice.status == Invoice.STATUS_PAID:
            raise BusinessRuleError("Invoice is already paid")
        if invoice.status == Invoice.STATUS_CANCELLED:
            raise BusinessRuleError("A cancelled invoice cannot be paid")

        now = timezone.now()
        invoice.status = Invoice.STATUS_PAID
        invoice.paid_at = now
        invoice.save()

        order = invoice.order
        order.payment_status = Order.PAYMENT_PAID
        order.paid_at = order.paid_at or now
        order.save()
        logger.info("Invoice %s paid", invoice.invoice_number)
        return self._detail(invoice, "Invoice marked as paid")

    @action(detail=True, methods=["put"], url_path="status")
    def update_status(self, request, pk=None):
        invoice = self.get_object()
        ser = InvoiceStatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        invoice.status = ser.validated_data["status"]
        if invoice.status == Invoice.STATUS_PAID and not invoice.paid_at:
            invoice.paid_at = timezone.now()
        invoice.save()
        return self._detail(invoice, "Invoice status updated")

    @action(detail=True, methods=["put"])
    def cancel(self, request, pk=None):
        invoice = self.get_object()
        if invoice.status == Invoice.STATUS_PAID:
            raise BusinessRuleError("A paid invoice cannot be cancelled")
        invoice.status = Invoice.STATUS_CANCELLED
        invoice.save()
        logger.info("Invoice %s cancelled", invoice.invoice_number)
        return self._detail(invoice, "Invoice cancelled")
