# Overview: Flask API routes for product listings; parses input and returns JSON responses.

# backend/agriconnect/routes/products.py
"""
Product catalog routes.

Public:
- GET /api/products: approved, active listings (admins may ask for approved=false|all)
- GET /api/products/<id>: detail with embedded farmer profile

Farmer/admin:
- POST /api/products (farmer_id from the token)
- POST /api/products/sync: flush of products queued while offline
- PATCH/DELETE /api/products/<id> (owner or admin)
- GET /api/farmer/<farmer_id>/products
"""
from flask import Blueprint, request, g

from ..errors import Forbidden, MarketplaceError, ValidationError, error_response
from ..models import Product
from ..services import catalog_service
from ..services.catalog_service import ProductFilters
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
)
from ..decorators import require_auth, require_role, optional_identity

PRODUCT_FIELDS = {
    "name", "description", "category", "price", "unit", "quantity",
    "harvest_date", "commune", "location", "province", "images", "is_active",
}

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_FIELDS,
    required_on_create={"name", "category", "price", "unit", "quantity", "commune", "harvest_date"},
    # Server-derived: owner comes from the token, stock from quantity
    ignored_fields={"id", "farmer_id", "available_quantity", "is_approved", "created_at", "updated_at"},
)

PRODUCT_SYNC_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_FIELDS | {"client_ref"},
    required_on_create=PRODUCT_CREATE_POLICY.required_on_create,
    ignored_fields=PRODUCT_CREATE_POLICY.ignored_fields,
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_FIELDS | {"available_quantity"},
    ignored_fields={"id", "farmer_id", "created_at", "updated_at"},
)

MAX_SYNC_ITEMS = 100

products_bp = Blueprint("products", __name__, url_prefix="/api")


def _approved_filter(raw: str | None) -> bool | None:
    value = (raw or "true").strip().lower()
    if value == "true":
        return True
    if value == "false":
        return False
    if value == "all":
        return None
    raise ValidationError(
        "Validation failed",
        [{"field": "approved", "message": "Must be true, false or all"}],
    )


@products_bp.get("/products")
def list_products():
    """
    List products, newest first.

    Query params (all optional and independent):
    - category, commune, province: exact match
    - search: substring of the name
    - approved: true (default) | false | all. Anything but true is admin-only.
    """
    try:
        approved = _approved_filter(request.args.get("approved"))
        filters = ProductFilters(
            category=request.args.get("category") or None,
            commune=request.args.get("commune") or None,
            province=request.args.get("province") or None,
            search=request.args.get("search") or None,
            approved=approved,
        )
        if approved is not True:
            identity = optional_identity()
            if identity is None or not identity.is_admin:
                raise Forbidden("Only admins can list unapproved products")
            return catalog_service.list_products(filters)
        return catalog_service.list_public_products(filters)
    except MarketplaceError as e:
        return error_response(e)


@products_bp.get("/products/<int:product_id>")
def get_product(product_id: int):
    try:
        return catalog_service.get_product_detail(product_id=product_id, identity=optional_identity())
    except MarketplaceError as e:
        return error_response(e)


@products_bp.post("/products")
@require_auth
@require_role("farmer", "admin")
def create_product_route():
    """Create a product owned by the caller; it starts unapproved."""
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
        enforce_rules_product(patch)
        created = catalog_service.create_product(identity=g.identity, patch=patch)
    except MarketplaceError as e:
        return error_response(e)

    return created.to_dict(), 201


@products_bp.post("/products/sync")
@require_auth
@require_role("farmer", "admin")
def sync_products_route():
    """
    Replay product creations queued by the client while offline.

    Body: a JSON array of products (or {"items": [...]}). Each item may carry
    a client_ref idempotency key; replaying the same key returns the product
    already created instead of a duplicate. The batch is validated up front:
    one bad item rejects the whole batch with issues prefixed by its index.
    """
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        payload = payload.get("items")
    if not isinstance(payload, list):
        return error_response(ValidationError(
            "Validation failed", [{"field": "items", "message": "Expected a list of products"}]
        ))
    if len(payload) > MAX_SYNC_ITEMS:
        return error_response(ValidationError(
            "Validation failed", [{"field": "items", "message": f"At most {MAX_SYNC_ITEMS} items per sync"}]
        ))

    patches = []
    issues = []
    for i, item in enumerate(payload):
        try:
            patch = validate_payload(model=Product, payload=item, policy=PRODUCT_SYNC_POLICY, partial=False)
            enforce_rules_product(patch)
            patches.append(patch)
        except ValidationError as e:
            issues.extend({"field": f"items[{i}].{issue['field']}", "message": issue["message"]} for issue in e.issues)
    if issues:
        return error_response(ValidationError("Validation failed", issues))

    try:
        result = catalog_service.sync_products(identity=g.identity, items=patches)
    except MarketplaceError as e:
        return error_response(e)
    return result, 201 if result["count"] else 200


@products_bp.patch("/products/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    """Partial update (owner or admin)."""
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = catalog_service.update_product(product_id=product_id, identity=g.identity, patch=patch)
    except MarketplaceError as e:
        return error_response(e)
    return updated.to_dict(), 200


@products_bp.delete("/products/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    """Hard delete (owner or admin)."""
    try:
        catalog_service.delete_product(product_id=product_id, identity=g.identity)
    except MarketplaceError as e:
        return error_response(e)
    return {"ok": True}, 200


@products_bp.get("/farmer/<int:farmer_id>/products")
@require_auth
def list_farmer_products(farmer_id: int):
    """A farmer's own listings including unapproved ones; others see visible ones only."""
    try:
        return catalog_service.list_farmer_products(farmer_id=farmer_id, identity=g.identity)
    except MarketplaceError as e:
        return error_response(e)
