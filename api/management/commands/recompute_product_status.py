"""
Management command to re-derive every product status from its stock level.
"""

from django.core.management.base import BaseCommand
from django.db import transaction

from api.models import Product


class Command(BaseCommand):
    help = "Recompute product stock status (in-stock / low-stock / out-of-stock)"

    def handle(self, *args, **options):
        changed = 0
        with transaction.atomic():
            for product in Product.objects.select_for_update().only("id", "product_code", "stock", "status"):
                expected = Product.status_for_stock(product.stock)
                if product.status == expected:
                    continue
                self.stdout.write(f"  {product.product_code}: {product.status} -> {expected}")
                Product.objects.filter(pk=product.pk).update(status=expected)
                changed += 1

        self.stdout.write(self.style.SUCCESS(f"Updated {changed} products"))
