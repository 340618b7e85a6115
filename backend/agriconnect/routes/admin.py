# Overview: Flask API routes for admin operations; users and product moderation.

# backend/agriconnect/routes/admin.py
"""
Admin routes. Every endpoint requires an admin token.

- GET /api/admin/users, PUT /api/admin/users/<id>
- GET /api/admin/products/pending
- PATCH /api/admin/products/<id>/approve
- PATCH /api/admin/products/<id>/reject  body: {"reason": "..."}
"""

from flask import Blueprint, request, g

from ..errors import MarketplaceError, error_response
from ..models import User
from ..services import auth_service, moderation_service
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_user
from ..decorators import require_auth, require_role

ADMIN_USER_POLICY = ModelValidationPolicy(
    writable_fields={
        "username", "email", "first_name", "last_name", "phone", "role",
        "location", "profile_image", "is_active",
    },
    ignored_fields={"id", "created_at", "updated_at", "last_login_at"},
)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@admin_bp.get("/users")
@require_auth
@require_role("admin")
def list_users():
    """
    List all users, newest first.

    Query params:
    - role: farmer | buyer | admin
    - include_inactive: bool (default true)
    """
    role = request.args.get("role") or None
    include_inactive = request.args.get("include_inactive", "true").lower() == "true"
    users = auth_service.list_users(role=role, include_inactive=include_inactive)
    return [u.to_dict() for u in users]


@admin_bp.put("/users/<int:user_id>")
@require_auth
@require_role("admin")
def update_user(user_id: int):
    """Update any allowed field, including role and is_active."""
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=User, payload=payload, policy=ADMIN_USER_POLICY, partial=True)
        enforce_rules_user(patch)
        user = auth_service.admin_update_user(user_id=user_id, patch=patch)
    except MarketplaceError as e:
        return error_response(e)
    return user.to_dict()


# =============================================================================
# PRODUCT MODERATION
# =============================================================================

@admin_bp.get("/products/pending")
@require_auth
@require_role("admin")
def pending_products():
    return moderation_service.pending_queue()


@admin_bp.patch("/products/<int:product_id>/approve")
@require_auth
@require_role("admin")
def approve_product(product_id: int):
    try:
        product = moderation_service.approve(product_id=product_id, identity=g.identity)
    except MarketplaceError as e:
        return error_response(e)
    return product.to_dict()


@admin_bp.patch("/products/<int:product_id>/reject")
@require_auth
@require_role("admin")
def reject_product(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        product = moderation_service.reject(
            product_id=product_id, identity=g.identity, reason=payload.get("reason")
        )
    except MarketplaceError as e:
        return error_response(e)
    return product.to_dict()
