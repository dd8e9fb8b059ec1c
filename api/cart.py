# api/cart.py — session cart mirrored from the storefront (works for guests and signed-in users)
from decimal import Decimal
from typing import Any, Dict, List, Tuple

from rest_framework import serializers
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import AllowAny

from .models import ZERO, Product
from .responses import success_response

SESSION_KEY = "cart"


# ======================================================================
# Session helpers
# ======================================================================
def _ensure_cart(request) -> Dict[str, Any]:
    if not isinstance(request.session.get(SESSION_KEY), dict):
        request.session[SESSION_KEY] = {"items": []}
    return request.session[SESSION_KEY]


def _save_cart(request, items: List[Dict[str, Any]]) -> None:
    request.session[SESSION_KEY] = {"items": items}
    request.session.modified = True


def _normalize_items(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Drops malformed lines and products that are unknown or no longer for sale."""
    parsed: List[Tuple[int, int]] = []
    for it in items or []:
        try:
            pid = int(it.get("product"))
            qty = int(it.get("quantity") or 0)
        except (AttributeError, TypeError, ValueError):
            continue
        if qty > 0:
            parsed.append((pid, qty))

    active = {p.id: p for p in Product.objects.filter(id__in=[pid for pid, _ in parsed], is_active=True)}
    out: List[Dict[str, Any]] = []
    for pid, qty in parsed:
        if pid in active:
            out.append({"product": pid, "quantity": qty})
    return out


def _cart_payload(items: List[Dict[str, Any]]) -> Dict[str, Any]:
    products = {p.id: p for p in Product.objects.filter(id__in=[it["product"] for it in items])}
    view_items = []
    total_items = 0
    total = ZERO
    for it in items:
        p = products[it["product"]]
        qty = int(it["quantity"])
        line_total = Decimal(p.price) * qty
        view_items.append(
            {
                "product": p.id,
                "product_code": p.product_code,
                "name": p.name,
                "image_url": p.image_url,
                "price": p.price,
                "stock": p.stock,
                "quantity": qty,
                "line_total": line_total,
            }
        )
        total_items += qty
        total += line_total
    return {"items": view_items, "total_items": total_items, "total": total}


class CartLineSerializer(serializers.Serializer):
    product = serializers.IntegerField()
    quantity = serializers.IntegerField(default=1)


# ---------- Endpoints ----------
@api_view(["GET"])
@permission_classes([AllowAny])
def cart_detail(request):
    items = _normalize_items(_ensure_cart(request).get("items", []))
    _save_cart(request, items)
    return success_response(_cart_payload(items))


@api_view(["POST"])
@permission_classes([AllowAny])
def cart_add(request):
    ser = CartLineSerializer(data=request.data)
    ser.is_valid(raise_exception=True)
    pid, qty = ser.validated_data["product"], ser.validated_data["quantity"]
    if qty <= 0:
        raise serializers.ValidationError({"quantity": "Quantity must be greater than 0"})
    if not Product.objects.filter(pk=pid, is_active=True).exists():
        raise NotFound("Product not found")

    items = _normalize_items(_ensure_cart(request).get("items", []))
    for it in items:
        if it["product"] == pid:
            it["quantity"] += qty
            break
    else:
        items.append({"product": pid, "quantity": qty})

    _save_cart(request, items)
    return success_response(_cart_payload(items), "Added to cart")


@api_view(["POST"])
@permission_classes([AllowAny])
def cart_update(request):
    """{product, quantity}; a quantity of 0 or less removes the line."""
    ser = CartLineSerializer(data=request.data)
    ser.is_valid(raise_exception=True)
    pid, qty = ser.validated_data["product"], ser.validated_data["quantity"]

    updated = []
    for it in _normalize_items(_ensure_cart(request).get("items", [])):
        if it["product"] == pid:
            if qty > 0:
                updated.append({"product": pid, "quantity": qty})
        else:
            updated.append(it)

    items = _normalize_items(updated)
    _save_cart(request, items)
    return success_response(_cart_payload(items), "Cart updated")


@api_view(["POST"])
@permission_classes([AllowAny])
def cart_clear(request):
    _save_cart(request, [])
    return success_response(_cart_payload([]), "Cart cleared")
