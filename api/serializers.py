# api/serializers.py — products, orders (separate WRITE/READ serializers), invoices, users/auth, settings
import logging

from django.conf import settings
from django.contrib.auth import password_validation
from django.core.exceptions import ObjectDoesNotExist
from django.db import transaction
from rest_framework import serializers
from rest_framework.exceptions import NotFound

from .exceptions import BusinessRuleError
from .models import Invoice, Order, OrderItem, Product, Setting, User

logger = logging.getLogger(__name__)

AVATAR_CONTENT_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")
AVATAR_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")


# --------- Products ---------
class ProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = [
            "id",
            "product_code",
            "name",
            "description",
            "category",
            "price",
            "stock",
            "status",          # derived from stock on save
            "supplier",
            "specifications",
            "image_url",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["status", "created_at", "updated_at"]

    def validate_product_code(self, value):
        code = (value or "").strip().upper()
        if not code:
            raise serializers.ValidationError("Product code is required")
        qs = Product.objects.filter(product_code=code)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("Product code already exists")
        return code

    def validate_name(self, value):
        name = (value or "").strip()
        if not name:
            raise serializers.ValidationError("Product name is required")
        return name

    def validate_specifications(self, value):
        if value in (None, ""):
            return {}
        if not isinstance(value, dict):
            raise serializers.ValidationError("Specifications must be an object of name/value pairs")
        return {str(k): str(v) for k, v in value.items()}


class ProductSuggestionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = ["id", "name"]


# ===========================
#  ORDER / ITEMS (WRITE)
# ===========================
class OrderCustomerSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField(max_length=255)
    phone = serializers.CharField(max_length=20)


class OrderItemWriteSerializer(serializers.Serializer):
    product = serializers.IntegerField()
    quantity = serializers.IntegerField(
        min_value=1, error_messages={"min_value": "Quantity must be greater than 0"}
    )


class OrderCreateSerializer(serializers.Serializer):
    customer = OrderCustomerSerializer()
    items = OrderItemWriteSerializer(many=True, allow_empty=False)
    shipping_address = serializers.CharField()
    payment_method = serializers.ChoiceField(choices=Order.PAYMENT_METHOD_CHOICES, default="cash")
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    @transaction.atomic
    def create(self, validated_data):
        """
        Resolves every line under a row lock before writing anything:
        - unknown/inactive product -> 404
        - not enough stock (counting repeated lines) -> 400
        Lines snapshot the product name, code and price; stock is decremented in the same transaction.
        """
        request = self.context.get("request")
        user = request.user if request is not None and request.user.is_authenticated else None

        locked = {}
        resolved = []
        for item in validated_data["items"]:
            pid = item["product"]
            product = locked.get(pid)
            if product is None:
                try:
                    product = Product.objects.select_for_update().get(pk=pid, is_active=True)
                except Product.DoesNotExist:
                    raise NotFound(f"Product {pid} not found")
                locked[pid] = product
            qty = item["quantity"]
            if product.stock < qty:
                raise BusinessRuleError(
                    f"Insufficient stock for {product.name}. Available: {product.stock}"
                )
            product.stock -= qty
            resolved.append((product, qty))

        customer = validated_data["customer"]
        order = Order.objects.create(
            customer_name=customer["name"].strip(),
            customer_email=customer["email"],
            customer_phone=customer["phone"].strip(),
            user=user,
            created_by=user,
            shipping_address=validated_data["shipping_address"].strip(),
            payment_method=validated_data["payment_method"],
            notes=validated_data.get("notes") or "",
        )
        for product, qty in resolved:
            OrderItem.objects.create(
                order=order,
                product=product,
                product_name=product.name,
                product_code=product.product_code,
                quantity=qty,
                price=product.price,
            )
        for product in locked.values():
            product.save(update_fields=["stock", "updated_at"])

        logger.info("Order %s created with %d lines, total %s", order.order_code, len(resolved), order.total_amount)
        return order

    def to_representation(self, instance):
        return OrderReadSerializer(instance, context=self.context).data


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.STATUS_CHOICES)


class OrderPaymentSerializer(serializers.Serializer):
    payment_status = serializers.ChoiceField(choices=Order.PAYMENT_STATUS_CHOICES)


# ===========================
#  ORDER / ITEMS (READ)
# ===========================
class OrderItemReadSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ("id", "product", "product_name", "product_code", "quantity", "price", "subtotal")


class OrderReadSerializer(serializers.ModelSerializer):
    customer = serializers.ReadOnlyField()
    items = OrderItemReadSerializer(many=True, read_only=True)
    invoice_number = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = (
            "id",
            "order_code",
            "customer",
            "user",
            "created_by",
            "items",
            "total_amount",
            "status",
            "payment_status",
            "payment_method",
            "shipping_address",
            "notes",
            "invoice_number",
            "delivered_at",
            "paid_at",
            "created_at",
            "updated_at",
        )

    def get_invoice_number(self, obj):
        try:
            return obj.invoice.invoice_number
        except ObjectDoesNotExist:
            return None


# --------- Invoices ---------
class InvoiceSerializer(serializers.ModelSerializer):
    order_code = serializers.CharField(source="order.order_code", read_only=True)
    customer = serializers.ReadOnlyField(source="order.customer")

    class Meta:
        model = Invoice
        fields = [
            "id",
            "invoice_number",
            "order",
            "order_code",
            "customer",
            "user",
            "issue_date",
            "due_date",
            "total_amount",
            "status",
            "payment_method",
            "notes",
            "paid_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class InvoiceDetailSerializer(InvoiceSerializer):
    order = OrderReadSerializer(read_only=True)


class InvoiceCreateSerializer(serializers.Serializer):
    order = serializers.CharField()
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    payment_method = serializers.CharField(required=False, allow_blank=True, max_length=30)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate_order(self, value):
        # malformed or out-of-range ids are unknown orders (404), not field errors
        try:
            pk = int(str(value).strip())
        except ValueError:
            raise NotFound("Order not found")
        if not 0 < pk < 2**63:
            raise NotFound("Order not found")
        return pk

    @transaction.atomic
    def create(self, validated_data):
        try:
            order = Order.objects.select_for_update().get(pk=validated_data["order"])
        except Order.DoesNotExist:
            raise NotFound("Order not found")
        if Invoice.objects.filter(order=order).exists():
            raise BusinessRuleError("An invoice already exists for this order")
        request = self.context.get("request")
        return Invoice.issue_for_order(
            order,
            user=order.user or (request.user if request is not None else None),
            due_date=validated_data.get("due_date"),
            payment_method=validated_data.get("payment_method") or "COD",
            notes=validated_data.get("notes") or "",
        )

    def to_representation(self, instance):
        return InvoiceDetailSerializer(instance, context=self.context).data


class InvoiceStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Invoice.STATUS_CHOICES)


# --------- Users / auth ---------
def validate_avatar_upload(upload):
    """Size and type gate for avatar uploads (limit comes from AVATAR_MAX_UPLOAD_BYTES)."""
    limit = settings.AVATAR_MAX_UPLOAD_BYTES
    if upload.size > limit:
        raise serializers.ValidationError(f"Avatar must be at most {limit // (1024 * 1024)} MB")
    content_type = getattr(upload, "content_type", "") or ""
    name = (upload.name or "").lower()
    if content_type not in AVATAR_CONTENT_TYPES or not name.endswith(AVATAR_EXTENSIONS):
        raise serializers.ValidationError("Only JPEG, PNG, GIF and WebP images are allowed")
    return upload


class UserSerializer(serializers.ModelSerializer):
    avatar = serializers.ImageField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "full_name",
            "role",
            "avatar",
            "phone",
            "address",
            "addresses",
            "is_active",
            "last_login",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class SignupSerializer(serializers.Serializer):
    full_name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=6, trim_whitespace=False)
    username = serializers.CharField(required=False, allow_blank=True, min_length=3, max_length=150)

    def validate_email(self, value):
        email = value.strip().lower()
        if User.objects.filter(email=email).exists():
            raise serializers.ValidationError("Email already exists")
        return email

    def validate_username(self, value):
        username = (value or "").strip()
        if username and User.objects.filter(username=username).exists():
            raise serializers.ValidationError("Username already exists")
        return username

    def _username_from_email(self, email):
        base = email.split("@", 1)[0][:140]
        if len(base) < 3:
            base = f"{base}_user"
        candidate, n = base, 1
        while User.objects.filter(username=candidate).exists():
            n += 1
            candidate = f"{base}{n}"
        return candidate

    def create(self, validated_data):
        email = validated_data["email"]
        username = validated_data.get("username") or self._username_from_email(email)
        user = User.objects.create_user(
            username=username,
            email=email,
            password=validated_data["password"],
            full_name=validated_data["full_name"].strip(),
            role=User.ROLE_CUSTOMER,
        )
        logger.info("User %s signed up", user.username)
        return user


class LoginSerializer(serializers.Serializer):
    email = serializers.CharField(error_messages={"required": "Email and password are required"})
    password = serializers.CharField(
        trim_whitespace=False, error_messages={"required": "Email and password are required"}
    )


class ProfileSerializer(serializers.ModelSerializer):
    """Self-service profile; a password change needs the current password."""

    avatar = serializers.ImageField(read_only=True)
    password = serializers.CharField(write_only=True, required=False, min_length=6, trim_whitespace=False)
    current_password = serializers.CharField(write_only=True, required=False, trim_whitespace=False)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "full_name",
            "role",
            "avatar",
            "phone",
            "address",
            "addresses",
            "password",
            "current_password",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "username", "email", "role", "created_at", "updated_at"]

    def validate_addresses(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError("Addresses must be a list")
        return value

    def validate(self, attrs):
        password = attrs.get("password")
        if password:
            current = attrs.get("current_password")
            if not current:
                raise serializers.ValidationError({"current_password": "Current password is required"})
            if not self.instance.check_password(current):
                raise serializers.ValidationError({"current_password": "Current password is incorrect"})
        return attrs

    def update(self, instance, validated_data):
        validated_data.pop("current_password", None)
        password = validated_data.pop("password", None)
        for field, value in validated_data.items():
            setattr(instance, field, value)
        if password:
            instance.set_password(password)
        instance.save()
        return instance


class SettingsProfileSerializer(serializers.ModelSerializer):
    avatar = serializers.ImageField(required=False, validators=[validate_avatar_upload])

    class Meta:
        model = User
        fields = ["id", "username", "email", "full_name", "avatar", "phone", "role"]
        read_only_fields = ["id", "username", "email", "role"]


class AvatarUploadSerializer(serializers.Serializer):
    avatar = serializers.ImageField(
        validators=[validate_avatar_upload], error_messages={"required": "Please choose an image"}
    )


class PasswordChangeSerializer(serializers.Serializer):
    current_password = serializers.CharField(trim_whitespace=False)
    new_password = serializers.CharField(trim_whitespace=False)
    confirm_password = serializers.CharField(trim_whitespace=False)

    def validate(self, attrs):
        user = self.context["request"].user
        if attrs["new_password"] != attrs["confirm_password"]:
            raise serializers.ValidationError({"confirm_password": "Password confirmation does not match"})
        if len(attrs["new_password"]) < 6:
            raise serializers.ValidationError({"new_password": "New password must have at least 6 characters"})
        if not user.check_password(attrs["current_password"]):
            raise serializers.ValidationError({"current_password": "Current password is incorrect"})
        if attrs["new_password"] == attrs["current_password"]:
            raise serializers.ValidationError(
                {"new_password": "New password must be different from the current password"}
            )
        password_validation.validate_password(attrs["new_password"], user)
        return attrs


class AdminUserSerializer(serializers.ModelSerializer):
    avatar = serializers.ImageField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "full_name",
            "role",
            "avatar",
            "phone",
            "is_active",
            "last_login",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "username", "avatar", "phone", "last_login", "created_at", "updated_at"]

    def validate_email(self, value):
        email = value.strip().lower()
        qs = User.objects.filter(email=email)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("Email already exists")
        return email


# --------- System settings ---------
class SettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = Setting
        fields = [
            "id",
            "company_name",
            "logo_url",
            "tax_code",
            "address",
            "phone",
            "email",
            "currency",
            "updated_at",
        ]
        read_only_fields = ["id", "updated_at"]

    def validate_company_name(self, value):
        name = (value or "").strip()
        if not name:
            raise serializers.ValidationError("Company name is required")
        return name
