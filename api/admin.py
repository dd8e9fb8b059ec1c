# api/admin.py
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import Customer, DocumentSequence, Invoice, Order, OrderItem, Product, Setting, User


# ===============================
# User
# ===============================
@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("id", "username", "email", "full_name", "role", "is_active", "created_at")
    list_filter = ("role", "is_active")
    search_fields = ("username", "email", "full_name", "phone")
    ordering = ("-created_at",)
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Profile", {"fields": ("full_name", "role", "avatar", "phone", "address", "addresses")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Profile", {"fields": ("email", "full_name", "role")}),
    )


# ===============================
# Product
# ===============================
@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("id", "product_code", "name", "category", "price", "stock", "status", "is_active")
    list_filter = ("category", "status", "is_active")
    search_fields = ("product_code", "name", "supplier")
    readonly_fields = ("status", "created_at", "updated_at")


# ===============================
# Customer
# ===============================
@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "email", "phone", "loyalty_points", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("name", "email", "phone")


# ===============================
# Order / OrderItem
# ===============================
class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ("subtotal",)


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "order_code", "customer_name", "status", "payment_status", "total_amount", "created_at")
    list_filter = ("status", "payment_status", "payment_method")
    search_fields = ("order_code", "customer_name", "customer_email", "customer_phone")
    readonly_fields = ("order_code", "total_amount", "created_at", "updated_at")
    inlines = [OrderItemInline]


# ===============================
# Invoice
# ===============================
@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("id", "invoice_number", "order", "status", "total_amount", "issue_date", "due_date")
    list_filter = ("status",)
    search_fields = ("invoice_number", "order__order_code")
    readonly_fields = ("invoice_number", "created_at", "updated_at")


# ===============================
# Settings / sequences
# ===============================
@admin.register(Setting)
class SettingAdmin(admin.ModelAdmin):
    list_display = ("company_name", "email", "phone", "currency", "updated_at")

    def has_add_permission(self, request):
        return not Setting.objects.exists()


@admin.register(DocumentSequence)
class DocumentSequenceAdmin(admin.ModelAdmin):
    list_display = ("prefix", "period", "value")
    list_filter = ("prefix",)
