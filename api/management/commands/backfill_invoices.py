"""
Management command to issue the missing invoices of delivered orders.

Orders delivered before invoices were issued automatically have none; each one
gets a Paid invoice dated on its delivery.
"""

import logging

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand
from django.db import DatabaseError, transaction

from api.models import Invoice, Order

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Issue invoices for delivered orders that do not have one yet"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List the orders that would be invoiced without writing anything",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        delivered = Order.objects.filter(status=Order.STATUS_DELIVERED).order_by("created_at")
        self.stdout.write(f"Found {delivered.count()} delivered orders")

        created = skipped = errors = 0
        for order in delivered.iterator():
            if Invoice.objects.filter(order=order).exists():
                skipped += 1
                continue
            if dry_run:
                self.stdout.write(f"  would invoice {order.order_code}")
                created += 1
                continue
            try:
                with transaction.atomic():
                    issued_at = order.delivered_at or order.updated_at
                    invoice = Invoice.issue_for_order(
                        order,
                        status=Invoice.STATUS_PAID,
                        due_date=issued_at,
                        issue_date=issued_at,
                        paid_at=order.paid_at or issued_at,
                        notes=f"Backfilled for delivered order {order.order_code}",
                    )
                created += 1
                self.stdout.write(f"  {invoice.invoice_number} -> {order.order_code}")
            except (DatabaseError, ValidationError) as exc:
                errors += 1
                logger.error("Could not invoice order %s: %s", order.order_code, exc)
                self.stderr.write(f"  failed for {order.order_code}: {exc}")

        style = self.style.SUCCESS if not errors else self.style.WARNING
        self.stdout.write(style(f"Created: {created}, skipped: {skipped}, errors: {errors}"))
