# api/models.py — User, Product, Customer, Order/OrderItem, Invoice, Setting + monthly code sequences
import logging
import os
import time
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.contrib.auth.models import AbstractUser, UserManager
from django.core.exceptions import ValidationError
from django.core.validators import MinLengthValidator, MinValueValidator, RegexValidator
from django.db import models, transaction
from django.db.models import Sum
from django.utils import timezone

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

phone_validator = RegexValidator(r"^[0-9]{10,11}$", "Phone number must have 10-11 digits")
company_phone_validator = RegexValidator(r"^[0-9\s\-\+\(\)]*$", "Invalid phone number")


def _with_field(update_fields, *names):
    """Extend an explicit update_fields list so derived columns are written too."""
    if update_fields is None:
        return None
    fields = set(update_fields)
    fields.update(names)
    return list(fields)


# --------- Sequences (ORD-YYYYMM-NNNN / INV-YYYYMM-NNNN) ---------
class DocumentSequence(models.Model):
    prefix = models.CharField(max_length=10)
    period = models.CharField(max_length=6, help_text="YYYYMM")
    value = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["prefix", "period"], name="uniq_sequence_prefix_period"),
        ]

    def __str__(self):
        return f"{self.prefix}-{self.period} @ {self.value}"

    @classmethod
    def next_code(cls, prefix: str, when=None) -> str:
        """
        Allocates the next code for the calendar month of `when`.
        The row lock serializes concurrent writers, so two orders never share a number.
        """
        when = timezone.localtime(when or timezone.now())
        period = when.strftime("%Y%m")
        with transaction.atomic():
            seq, _ = cls.objects.select_for_update().get_or_create(prefix=prefix, period=period)
            seq.value += 1
            seq.save(update_fields=["value"])
        return f"{prefix}-{period}-{seq.value:04d}"


# --------- Users ---------
def avatar_upload_to(instance, filename):
    ext = os.path.splitext(filename)[1].lower()
    return f"avatars/{instance.pk}-{int(time.time() * 1000)}{ext}"


class AccountManager(UserManager):
    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault("role", User.ROLE_ADMIN)
        extra_fields.setdefault("full_name", username)
        return super().create_superuser(username, email, password, **extra_fields)


class User(AbstractUser):
    ROLE_ADMIN = "admin"
    ROLE_MANAGER = "manager"
    ROLE_STAFF = "staff"
    ROLE_CUSTOMER = "customer"
    ROLE_CHOICES = [
        (ROLE_ADMIN, "Admin"),
        (ROLE_MANAGER, "Manager"),
        (ROLE_STAFF, "Staff"),
        (ROLE_CUSTOMER, "Customer"),
    ]
    BACK_OFFICE_ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_STAFF)

    username = models.CharField(
        max_length=150,
        unique=True,
        validators=[MinLengthValidator(3, "Username must have at least 3 characters")],
        error_messages={"unique": "Username already exists"},
    )
    email = models.EmailField(unique=True, error_messages={"unique": "Email already exists"})
    full_name = models.CharField(max_length=255)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_CUSTOMER)
    avatar = models.ImageField(upload_to=avatar_upload_to, blank=True, default="")
    phone = models.CharField(max_length=20, blank=True, default="")
    address = models.CharField(max_length=500, blank=True, default="")
    addresses = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    REQUIRED_FIELDS = ["email", "full_name"]

    objects = AccountManager()

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.username} ({self.role})"

    def save(self, *args, **kwargs):
        self.email = (self.email or "").strip().lower()
        self.username = (self.username or "").strip()
        self.full_name = (self.full_name or "").strip()
        super().save(*args, **kwargs)

    @property
    def is_back_office(self) -> bool:
        return self.role in self.BACK_OFFICE_ROLES


# --------- Products ---------
class Product(models.Model):
    CATEGORY_CHOICES = [
        ("vi-dieu-khien", "Microcontrollers"),
        ("cam-bien", "Sensors"),
        ("module-truyen-thong", "Communication modules"),
        ("linh-kien-dien-tu", "Electronic components"),
        ("module-nguon", "Power modules"),
        ("bo-mach", "Development boards"),
        ("dong-co", "Motors"),
    ]

    STATUS_IN_STOCK = "in-stock"
    STATUS_LOW_STOCK = "low-stock"
    STATUS_OUT_OF_STOCK = "out-of-stock"
    STATUS_CHOICES = [
        (STATUS_IN_STOCK, "In stock"),
        (STATUS_LOW_STOCK, "Low stock"),
        (STATUS_OUT_OF_STOCK, "Out of stock"),
    ]

    product_code = models.CharField(
        max_length=40, unique=True, error_messages={"unique": "Product code already exists"}
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    category = models.CharField(max_length=40, choices=CATEGORY_CHOICES)
    price = models.DecimalField(
        max_digits=14, decimal_places=2, validators=[MinValueValidator(ZERO, "Price cannot be negative")]
    )
    stock = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_OUT_OF_STOCK)
    supplier = models.CharField(max_length=255, blank=True, default="")
    specifications = models.JSONField(default=dict, blank=True)
    image_url = models.CharField(max_length=500, blank=True, default="")
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["category", "status"], name="product_category_status_idx")]

    def __str__(self):
        return f"{self.name} ({self.product_code})"

    @staticmethod
    def status_for_stock(stock: int) -> str:
        if stock <= 0:
            return Product.STATUS_OUT_OF_STOCK
        if stock < settings.LOW_STOCK_THRESHOLD:
            return Product.STATUS_LOW_STOCK
        return Product.STATUS_IN_STOCK

    def save(self, *args, **kwargs):
        self.product_code = (self.product_code or "").strip().upper()
        self.name = (self.name or "").strip()
        self.status = self.status_for_stock(int(self.stock or 0))
        if "stock" in (kwargs.get("update_fields") or ()):
            kwargs["update_fields"] = _with_field(kwargs["update_fields"], "status")
        super().save(*args, **kwargs)


# --------- Customers ---------
class Customer(models.Model):
    STATUS_CHOICES = [("active", "Active"), ("inactive", "Inactive")]

    name = models.CharField(max_length=255)
    email = models.EmailField(
        max_length=255, unique=True, error_messages={"unique": "Email already exists"}
    )
    phone = models.CharField(max_length=11, validators=[phone_validator], db_index=True)
    address = models.CharField(max_length=500, blank=True, default="")
    loyalty_points = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="active")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.name} <{self.email}>"

    def save(self, *args, **kwargs):
        self.name = (self.name or "").strip()
        self.email = (self.email or "").strip().lower()
        self.phone = (self.phone or "").strip()
        super().save(*args, **kwargs)


# --------- Orders ---------
class Order(models.Model):
    STATUS_PENDING = "pending"
    STATUS_PROCESSING = "processing"
    STATUS_SHIPPED = "shipped"
    STATUS_DELIVERED = "delivered"
    STATUS_CANCELLED = "cancelled"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_PROCESSING, "Processing"),
        (STATUS_SHIPPED, "Shipped"),
        (STATUS_DELIVERED, "Delivered"),
        (STATUS_CANCELLED, "Cancelled"),
    ]
    OPEN_STATUSES = (STATUS_PENDING, STATUS_PROCESSING, STATUS_SHIPPED)
    REVENUE_STATUSES = (STATUS_PROCESSING, STATUS_DELIVERED)

    PAYMENT_UNPAID = "unpaid"
    PAYMENT_PAID = "paid"
    PAYMENT_REFUNDED = "refunded"
    PAYMENT_STATUS_CHOICES = [
        (PAYMENT_UNPAID, "Unpaid"),
        (PAYMENT_PAID, "Paid"),
        (PAYMENT_REFUNDED, "Refunded"),
    ]

    PAYMENT_METHOD_CHOICES = [
        ("cash", "Cash"),
        ("bank-transfer", "Bank transfer"),
        ("credit-card", "Credit card"),
        ("e-wallet", "E-wallet"),
    ]

    order_code = models.CharField(max_length=20, unique=True, blank=True, editable=False)

    # customer snapshot at order time
    customer_name = models.CharField(max_length=255)
    customer_email = models.EmailField(max_length=255, db_index=True)
    customer_phone = models.CharField(max_length=20)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, related_name="orders", on_delete=models.SET_NULL, null=True, blank=True
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, related_name="created_orders", on_delete=models.SET_NULL, null=True, blank=True
    )

    total_amount = models.DecimalField(
        max_digits=14, decimal_places=2, default=ZERO, validators=[MinValueValidator(ZERO)]
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default=PAYMENT_UNPAID)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default="cash")
    shipping_address = models.TextField()
    notes = models.TextField(blank=True, default="")

    delivered_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["status", "-created_at"], name="order_status_created_idx")]

    def __str__(self):
        return f"{self.order_code} - {self.customer_name}"

    @property
    def customer(self) -> dict:
        return {"name": self.customer_name, "email": self.customer_email, "phone": self.customer_phone}

    def compute_total(self) -> Decimal:
        if not self.pk:
            return ZERO
        return self.items.aggregate(total=Sum("subtotal"))["total"] or ZERO

    def save(self, *args, **kwargs):
        if not self.order_code:
            self.order_code = DocumentSequence.next_code("ORD")
        self.order_code = self.order_code.upper()
        self.customer_email = (self.customer_email or "").strip().lower()
        self.total_amount = self.compute_total()
        if kwargs.get("update_fields") is not None:
            kwargs["update_fields"] = _with_field(kwargs["update_fields"], "total_amount", "updated_at")
        super().save(*args, **kwargs)

    def is_owned_by(self, user) -> bool:
        if not user or not user.is_authenticated:
            return False
        return self.user_id == user.pk or self.created_by_id == user.pk

    def restore_stock(self):
        """Puts every line quantity back on the shelf (cancellation)."""
        for item in self.items.select_related("product"):
            product = Product.objects.select_for_update().get(pk=item.product_id)
            product.stock += item.quantity
            product.save(update_fields=["stock", "updated_at"])
            logger.info("Restored %s units of %s from order %s", item.quantity, product.product_code, self.order_code)


class OrderItem(models.Model):
    order = models.ForeignKey(Order, related_name="items", on_delete=models.CASCADE)
    product = models.ForeignKey(Product, related_name="order_items", on_delete=models.PROTECT)
    product_name = models.CharField(max_length=255)
    product_code = models.CharField(max_length=40)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1, "Quantity must be greater than 0")])
    price = models.DecimalField(
        max_digits=14, decimal_places=2, validators=[MinValueValidator(ZERO, "Price cannot be negative")]
    )
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return f"{self.quantity}x {self.product_name} in {self.order.order_code}"

    def save(self, *args, **kwargs):
        self.subtotal = Decimal(self.price) * int(self.quantity)
        if kwargs.get("update_fields") is not None:
            kwargs["update_fields"] = _with_field(kwargs["update_fields"], "subtotal")
        super().save(*args, **kwargs)
        # keep the parent total in step with its lines
        self.order.save(update_fields=["total_amount"])


# --------- Invoices ---------
class InvoiceQuerySet(models.QuerySet):
    def mark_overdue(self, now=None) -> int:
        now = now or timezone.now()
        return self.filter(status=Invoice.STATUS_UNPAID, due_date__lt=now).update(
            status=Invoice.STATUS_OVERDUE, updated_at=now
        )


class Invoice(models.Model):
    STATUS_UNPAID = "Unpaid"
    STATUS_PAID = "Paid"
    STATUS_OVERDUE = "Overdue"
    STATUS_CANCELLED = "Cancelled"
    STATUS_CHOICES = [
        (STATUS_UNPAID, "Unpaid"),
        (STATUS_PAID, "Paid"),
        (STATUS_OVERDUE, "Overdue"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    invoice_number = models.CharField(max_length=20, unique=True, blank=True, editable=False)
    order = models.OneToOneField(
        Order,
        related_name="invoice",
        on_delete=models.PROTECT,
        error_messages={"unique": "This order already has an invoice"},
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, related_name="invoices", on_delete=models.SET_NULL, null=True, blank=True
    )
    issue_date = models.DateTimeField(default=timezone.now)
    due_date = models.DateTimeField(blank=True)
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, validators=[MinValueValidator(ZERO)])
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_UNPAID)
    payment_method = models.CharField(max_length=30, default="COD")
    notes = models.TextField(blank=True, default="")
    paid_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = InvoiceQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["status", "-created_at"], name="invoice_status_created_idx")]

    def __str__(self):
        return f"{self.invoice_number} ({self.status})"

    def save(self, *args, **kwargs):
        if not self.invoice_number:
            self.invoice_number = DocumentSequence.next_code("INV")
        self.invoice_number = self.invoice_number.upper()
        if not self.due_date:
            self.due_date = (self.issue_date or timezone.now()) + timedelta(days=settings.INVOICE_DUE_DAYS)
        super().save(*args, **kwargs)

    @classmethod
    def issue_for_order(cls, order, *, user=None, due_date=None, payment_method="", notes="", status=None, **extra):
        """Creates the invoice of an order, taking amount, user and payment data from it."""
        if status is None:
            status = cls.STATUS_PAID if order.payment_status == Order.PAYMENT_PAID else cls.STATUS_UNPAID
        invoice = cls(
            order=order,
            user=user or order.user or order.created_by,
            total_amount=order.total_amount,
            due_date=due_date,
            payment_method=payment_method or order.payment_method,
            notes=notes or "",
            status=status,
            **extra,
        )
        if status == cls.STATUS_PAID and not invoice.paid_at:
            invoice.paid_at = order.paid_at or timezone.now()
        invoice.save()
        logger.info("Issued invoice %s for order %s", invoice.invoice_number, order.order_code)
        return invoice


# --------- System settings (singleton) ---------
class Setting(models.Model):
    CURRENCY_CHOICES = [("VND", "VND"), ("USD", "USD"), ("EUR", "EUR")]

    company_name = models.CharField(max_length=255, default="ELECSTRIKE Co., Ltd.")
    logo_url = models.CharField(max_length=500, blank=True, default="")
    tax_code = models.CharField(max_length=20, blank=True, default="")
    address = models.CharField(max_length=500, blank=True, default="")
    phone = models.CharField(max_length=30, blank=True, default="", validators=[company_phone_validator])
    email = models.EmailField(blank=True, default="")
    currency = models.CharField(max_length=3, choices=CURRENCY_CHOICES, default="VND")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "settings"

    def __str__(self):
        return self.company_name

    def save(self, *args, **kwargs):
        if self._state.adding and Setting.objects.exists():
            raise ValidationError("Only one system settings record may exist")
        self.company_name = (self.company_name or "").strip()
        self.email = (self.email or "").strip().lower()
        super().save(*args, **kwargs)

    @classmethod
    def get_instance(cls) -> "Setting":
        instance = cls.objects.order_by("pk").first()
        if instance is None:
            instance = cls.objects.create()
        return instance
