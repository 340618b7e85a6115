# Overview: Service-layer operations for moderation; gates product visibility behind admin approval.

"""
Moderation Gate

A product is publicly visible only once an admin approves it. Rejection is
recorded (status + reason) instead of deleting the product, so the farmer
can see why and resubmit, and an admin can still approve it later.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import ValidationError
from ..models import Product, User
from ..models.catalog import MODERATION_APPROVED, MODERATION_PENDING, MODERATION_REJECTED
from agriconnect.time_utils import utcnow
from .catalog_service import farmer_summary, get_product
from .token_service import Identity


def pending_queue() -> list[dict]:
    """Products awaiting review, oldest first so nothing starves."""
    rows = (
        db.session.query(Product, User)
        .outerjoin(User, Product.farmer_id == User.id)
        .filter(
            Product.is_approved.is_(False),
            Product.moderation_status == MODERATION_PENDING,
        )
        .order_by(Product.created_at.asc(), Product.id.asc())
        .all()
    )
    return [p.to_dict(farmer=farmer_summary(farmer)) for p, farmer in rows]


def approve(*, product_id: int, identity: Identity) -> Product:
    """Flip the product to approved. Idempotent."""
    p = get_product(product_id)
    if p.is_approved and p.moderation_status == MODERATION_APPROVED:
        return p

    p.is_approved = True
    p.moderation_status = MODERATION_APPROVED
    p.rejection_reason = None
    p.moderated_at = utcnow()
    p.moderated_by_user_id = identity.id
    db.session.commit()
    current_app.logger.info("Product id=%s approved by admin id=%s", p.id, identity.id)
    return p


def reject(*, product_id: int, identity: Identity, reason: str | None) -> Product:
    """Mark the product rejected with a reason; it leaves public listings."""
    reason = str(reason or "").strip()
    if not reason:
        raise ValidationError("Validation failed", [{"field": "reason", "message": "This field is required"}])

    p = get_product(product_id)
    p.is_approved = False
    p.moderation_status = MODERATION_REJECTED
    p.rejection_reason = reason
    p.moderated_at = utcnow()
    p.moderated_by_user_id = identity.id
    db.session.commit()
    current_app.logger.info("Product id=%s rejected by admin id=%s: %s", p.id, identity.id, reason)
    return p
