# api/customer_serializers.py
from rest_framework import serializers

from .models import ZERO, Customer, Order


class CustomerSerializer(serializers.ModelSerializer):
    # filled by CustomerViewSet.get_queryset annotations, computed on the fly otherwise
    total_orders = serializers.SerializerMethodField()
    total_spent = serializers.SerializerMethodField()

    class Meta:
        model = Customer
        fields = [
            "id",
            "name",
            "email",
            "phone",
            "address",
            "loyalty_points",
            "status",
            "total_orders",
            "total_spent",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["created_at", "updated_at"]

    def _orders(self, obj):
        return Order.objects.filter(customer_email=obj.email).exclude(status=Order.STATUS_CANCELLED)

    def get_total_orders(self, obj):
        value = getattr(obj, "total_orders", None)
        if value is None:
            value = self._orders(obj).count()
        return int(value)

    def get_total_spent(self, obj):
        value = getattr(obj, "total_spent", None)
        if value is None:
            value = sum((o.total_amount for o in self._orders(obj)), ZERO)
        return value

    def validate_name(self, value):
        name = (value or "").strip()
        if not name:
            raise serializers.ValidationError("Customer name is required")
        return name

    def validate_email(self, value):
        email = value.strip().lower()
        qs = Customer.objects.filter(email=email)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("Email already exists")
        return email

    def validate_phone(self, value):
        phone = value.strip()
        qs = Customer.objects.filter(phone=phone)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("Phone number already exists")
        return phone


class LoyaltySerializer(serializers.Serializer):
    points = serializers.IntegerField(
        min_value=1, error_messages={"min_value": "Points must be a positive integer"}
    )
    action = serializers.ChoiceField(choices=[("add", "Add"), ("subtract", "Subtract")])
