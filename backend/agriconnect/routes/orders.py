# Overview: Flask API routes for orders; parses input and returns JSON responses.

"""
Order routes. All require authentication.

- POST /api/orders: place an order (buyer_id from the token, farmer_id and
  total_price derived server-side)
- GET/PATCH /api/orders/<id>: detail, status transition or delivery edits
- GET /api/buyer/<buyer_id>/orders, /api/farmer/<farmer_id>/orders
"""

from flask import Blueprint, request, g

from ..errors import MarketplaceError, error_response
from ..models import Order
from ..services import order_service
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_order
from ..decorators import require_auth

ORDER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "quantity", "delivery_address", "notes"},
    required_on_create={"product_id", "quantity"},
    ignored_fields={"buyer_id", "farmer_id", "total_price", "status"},
)

ORDER_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"status", "delivery_address", "notes"},
)

orders_bp = Blueprint("orders", __name__, url_prefix="/api")


@orders_bp.post("/orders")
@require_auth
def place_order_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Order, payload=payload, policy=ORDER_CREATE_POLICY, partial=False)
        enforce_rules_order(patch)
        order = order_service.place_order(
            identity=g.identity,
            product_id=patch["product_id"],
            quantity=patch["quantity"],
            delivery_address=patch.get("delivery_address"),
            notes=patch.get("notes"),
        )
    except MarketplaceError as e:
        return error_response(e)
    return order.to_dict(), 201


@orders_bp.get("/orders/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        return order_service.get_order_detail(order_id=order_id, identity=g.identity)
    except MarketplaceError as e:
        return error_response(e)


@orders_bp.patch("/orders/<int:order_id>")
@require_auth
def update_order_route(order_id: int):
    """
    Body: {"status": "..."} and/or {"delivery_address", "notes"}.

    Illegal status jumps answer 409.
    """
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Order, payload=payload, policy=ORDER_UPDATE_POLICY, partial=True)
        order = order_service.update_order(order_id=order_id, identity=g.identity, patch=patch)
    except MarketplaceError as e:
        return error_response(e)
    return order.to_dict(), 200


@orders_bp.get("/buyer/<int:buyer_id>/orders")
@require_auth
def list_buyer_orders(buyer_id: int):
    try:
        return order_service.list_by_buyer(buyer_id=buyer_id, identity=g.identity)
    except MarketplaceError as e:
        return error_response(e)


@orders_bp.get("/farmer/<int:farmer_id>/orders")
@require_auth
def list_farmer_orders(farmer_id: int):
    try:
        return order_service.list_by_farmer(farmer_id=farmer_id, identity=g.identity)
    except MarketplaceError as e:
        return error_response(e)
