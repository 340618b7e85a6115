# backend/agriconnect/services/catalog_service.py
"""
Catalog Service

Product listings owned by farmers.

OWNERSHIP: farmer_id always comes from the authenticated identity, never
from the payload. Only the owning farmer or an admin may edit or delete.

VISIBILITY: new products start unapproved (moderation_status=pending).
Public callers only ever see is_active AND is_approved rows; owners and
admins also see their unapproved listings.
"""
from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import case, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ConflictError, Forbidden, NotFound, ValidationError
from ..models import Order, Product, User
from ..models.catalog import MODERATION_PENDING, MODERATION_REJECTED
from .concurrency import lock_for_update, run_with_retry
from .token_service import Identity

PRODUCT_MUTABLE_FIELDS = {
    "name", "description", "category", "price", "unit", "quantity",
    "available_quantity", "harvest_date", "commune", "location", "province",
    "images", "is_active",
}

PRODUCT_CREATE_ROLES = {"farmer", "admin"}


@dataclass
class ProductFilters:
    """
    Independent optional filters for list_products.

    approved=None means unrestricted (admin views); True/False restrict.
    """
    category: str | None = None
    commune: str | None = None
    province: str | None = None
    search: str | None = None
    approved: bool | None = True
    active_only: bool = False
    farmer_id: int | None = None


def farmer_summary(user: User | None) -> dict | None:
    """Shallow farmer fields joined onto listing rows."""
    if user is None:
        return None
    return {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "phone": user.phone,
    }


def can_manage(identity: Identity | None, product: Product) -> bool:
    return identity is not None and (identity.is_admin or identity.owns(product.farmer_id))


def _shift_stock(p: Product, new_quantity: int) -> None:
    """
    Move quantity to new_quantity and shift available_quantity by the same
    delta, clamped to 0..new_quantity.

    The arithmetic runs in SQL against the stored row so an order committed
    after p was loaded is not undone.
    """
    shifted = Product.available_quantity + (new_quantity - Product.quantity)
    db.session.execute(
        update(Product)
        .where(Product.id == p.id)
        .values(
            quantity=new_quantity,
            available_quantity=case(
                (shifted < 0, 0),
                (shifted > new_quantity, new_quantity),
                else_=shifted,
            ),
        )
        .execution_options(synchronize_session=False)
    )


def apply_product_patch(p: Product, patch: dict) -> None:
    """
    Merge a validated patch, keeping 0 <= available_quantity <= quantity.

    Changing quantity shifts available_quantity by the same delta (clamped),
    unless available_quantity is set explicitly in the same patch.
    """
    if "available_quantity" in patch:
        new_quantity = patch.get("quantity", p.quantity)
        new_available = patch["available_quantity"]
        if new_available is None or new_available < 0 or new_available > new_quantity:
            raise ValidationError(
                "Validation failed",
                [{"field": "available_quantity", "message": "Must be between 0 and quantity"}],
            )

    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS or k in ("quantity", "available_quantity"):
            continue
        setattr(p, k, v)

    if "available_quantity" in patch:
        p.quantity = new_quantity
        p.available_quantity = new_available
    elif "quantity" in patch:
        _shift_stock(p, patch["quantity"])


def _new_product(identity: Identity, patch: dict) -> Product:
    if identity.role not in PRODUCT_CREATE_ROLES:
        raise Forbidden("Only farmers can publish products")

    fields = {k: v for k, v in patch.items() if k != "available_quantity"}
    p = Product(
        farmer_id=identity.id,
        province=current_app.config.get("DEFAULT_PROVINCE", "Haut-Katanga"),
        images=[],
        is_active=True,
        is_approved=False,
        moderation_status=MODERATION_PENDING,
    )
    p.quantity = fields["quantity"]
    p.available_quantity = fields["quantity"]
    apply_product_patch(p, {k: v for k, v in fields.items() if k != "quantity" and v is not None})
    return p


def create_product(*, identity: Identity, patch: dict) -> Product:
    """
    Create a product from a validated patch.

    available_quantity starts equal to quantity; the product is unapproved.
    """
    p = _new_product(identity, patch)
    db.session.add(p)
    db.session.commit()
    current_app.logger.info("Product id=%s created by farmer id=%s (pending moderation)", p.id, p.farmer_id)
    return p


def sync_products(*, identity: Identity, items: list[dict]) -> dict:
    """
    Apply a batch of product creations queued while the client was offline.

    Items carrying a client_ref already applied for this farmer are replayed:
    the existing product is returned instead of creating a duplicate.
    """
    created: list[Product] = []
    replayed: list[Product] = []

    for patch in items:
        # A blank key is no key: such items are always created
        client_ref = str(patch.get("client_ref") or "").strip() or None
        if client_ref:
            existing = (
                db.session.query(Product)
                .filter(Product.farmer_id == identity.id, Product.client_ref == client_ref)
                .first()
            )
            if existing:
                replayed.append(existing)
                continue

        p = _new_product(identity, patch)
        p.client_ref = client_ref
        db.session.add(p)
        try:
            db.session.commit()
        except IntegrityError:
            # Same client_ref flushed concurrently by another request
            db.session.rollback()
            if client_ref is None:
                raise
            existing = (
                db.session.query(Product)
                .filter(Product.farmer_id == identity.id, Product.client_ref == client_ref)
                .first()
            )
            if existing is None:
                raise
            replayed.append(existing)
            continue
        created.append(p)

    current_app.logger.info(
        "Synced queued products for farmer id=%s: %s created, %s replayed",
        identity.id, len(created), len(replayed),
    )
    return {
        "created": [p.to_dict() for p in created],
        "replayed": [p.to_dict() for p in replayed],
        "count": len(created),
    }


def list_products(filters: ProductFilters) -> list[dict]:
    """
    Filtered listing, newest first, each row enriched with a farmer summary.
    """
    query = (
        db.session.query(Product, User)
        .outerjoin(User, Product.farmer_id == User.id)
    )

    if filters.approved is True:
        query = query.filter(Product.is_approved.is_(True))
    elif filters.approved is False:
        query = query.filter(Product.is_approved.is_(False))

    if filters.active_only:
        query = query.filter(Product.is_active.is_(True))
    if filters.category:
        query = query.filter(Product.category == filters.category)
    if filters.commune:
        query = query.filter(Product.commune == filters.commune)
    if filters.province:
        query = query.filter(Product.province == filters.province)
    if filters.farmer_id is not None:
        query = query.filter(Product.farmer_id == filters.farmer_id)
    if filters.search:
        query = query.filter(Product.name.ilike(f"%{filters.search}%"))

    rows = query.order_by(Product.created_at.desc(), Product.id.desc()).all()
    return [p.to_dict(farmer=farmer_summary(farmer)) for p, farmer in rows]


def list_public_products(filters: ProductFilters) -> list[dict]:
    """Public view: approved and active only, whatever the caller asked for."""
    filters.approved = True
    filters.active_only = True
    return list_products(filters)


def get_product(product_id: int) -> Product:
    p = db.session.get(Product, product_id)
    if not p:
        raise NotFound("Product not found")
    return p


def get_product_detail(*, product_id: int, identity: Identity | None) -> dict:
    """
    Detail view with the full farmer profile embedded.

    Unapproved or inactive products are NotFound for anyone but the owner
    and admins.
    """
    p = get_product(product_id)
    if not p.is_visible and not can_manage(identity, p):
        raise NotFound("Product not found")
    farmer = p.farmer.to_public_dict() if p.farmer else None
    return p.to_dict(farmer=farmer)


def list_farmer_products(*, farmer_id: int, identity: Identity) -> list[dict]:
    """A farmer's listings; others only see the visible ones."""
    own = identity.is_admin or identity.owns(farmer_id)
    filters = ProductFilters(farmer_id=farmer_id, approved=None if own else True, active_only=not own)
    return list_products(filters)


def update_product(*, product_id: int, identity: Identity, patch: dict) -> Product:
    """
    Merge a partial update. Owner or admin only.

    The row is locked for the transaction and a quantity change is applied
    as a delta in SQL, so orders placed meanwhile keep their decrement.
    An owner editing a rejected product resubmits it for moderation.
    """
    def _op():
        p = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if not p:
            db.session.rollback()
            raise NotFound("Product not found")
        if not can_manage(identity, p):
            db.session.rollback()
            raise Forbidden("Only the owner or an admin can edit this product")

        try:
            apply_product_patch(p, patch)
        except ValidationError:
            db.session.rollback()
            raise

        if p.moderation_status == MODERATION_REJECTED and identity.owns(p.farmer_id):
            p.moderation_status = MODERATION_PENDING
            p.rejection_reason = None

        db.session.commit()
        return p

    p = run_with_retry(_op)
    current_app.logger.info(
        "Product id=%s updated by user id=%s fields=%s",
        p.id, identity.id, ", ".join(sorted(patch.keys())),
    )
    return p


def delete_product(*, product_id: int, identity: Identity) -> None:
    """
    Hard-delete a product with its reviews and contacts. Owner or admin only.

    Products with orders are kept so order history stays intact.
    """
    p = get_product(product_id)
    if not can_manage(identity, p):
        raise Forbidden("Only the owner or an admin can delete this product")

    has_orders = db.session.query(Order.id).filter(Order.product_id == p.id).first() is not None
    if has_orders:
        raise ConflictError("Product has orders; deactivate it instead (is_active=false)")

    db.session.delete(p)
    db.session.commit()
    current_app.logger.info("Product id=%s deleted by user id=%s", product_id, identity.id)
