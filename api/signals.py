# api/signals.py — invoice on delivery + order totals after line deletion
import logging

from django.db.models import Sum
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import ZERO, Invoice, Order, OrderItem

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Order)
def issue_invoice_on_delivery(sender, instance, raw=False, **kwargs):
    if raw or instance.status != Order.STATUS_DELIVERED:
        return
    if Invoice.objects.filter(order=instance).exists():
        return
    Invoice.issue_for_order(instance)
    logger.info("Order %s delivered, invoice issued automatically", instance.order_code)


@receiver(post_delete, sender=OrderItem)
def refresh_order_total(sender, instance, **kwargs):
    total = OrderItem.objects.filter(order_id=instance.order_id).aggregate(total=Sum("subtotal"))["total"] or ZERO
    # queryset update: the parent may be going away in the same cascade
    Order.objects.filter(pk=instance.order_id).update(total_amount=total)
