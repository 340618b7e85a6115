# Overview: Service-layer operations for reviews and contact requests.

"""
Review & Contact Ledger

Append-only records linking a buyer to a product and its farmer.
farmer_id is always derived from the product, never taken from the payload,
so it cannot drift from products.farmer_id.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import Forbidden, InvalidTransition, NotFound, ValidationError
from ..models import Contact, Order, Product, Review, User
from ..models.feedback import CONTACT_PENDING, CONTACT_STATUSES, CONTACT_TRANSITIONS
from ..models.orders import ORDER_DELIVERED
from .catalog_service import can_manage, get_product
from .token_service import Identity


def _reviewable_product(product_id: int, identity: Identity) -> Product:
    product = get_product(product_id)
    if not product.is_visible and not can_manage(identity, product):
        raise NotFound("Product not found")
    if identity.owns(product.farmer_id):
        raise Forbidden("You cannot review your own product")
    return product


def has_received(buyer_id: int, product_id: int) -> bool:
    return (
        db.session.query(Order.id)
        .filter(
            Order.buyer_id == buyer_id,
            Order.product_id == product_id,
            Order.status == ORDER_DELIVERED,
        )
        .first()
        is not None
    )


def add_review(*, identity: Identity, product_id: int, rating: int, comment: str | None = None) -> Review:
    """
    Append a review.

    With REVIEWS_REQUIRE_PURCHASE (default on) the buyer must have a
    delivered order for the product.
    """
    product = _reviewable_product(product_id, identity)

    if current_app.config.get("REVIEWS_REQUIRE_PURCHASE", True) and not identity.is_admin:
        if not has_received(identity.id, product.id):
            raise Forbidden("You can only review products from a delivered order")

    review = Review(
        buyer_id=identity.id,
        product_id=product.id,
        farmer_id=product.farmer_id,
        rating=rating,
        comment=comment,
    )
    db.session.add(review)
    db.session.commit()
    current_app.logger.info("Review id=%s (rating %s) on product id=%s", review.id, rating, product.id)
    return review


def list_reviews_for_product(product_id: int, identity: Identity | None = None) -> dict:
    """
    Reviews newest first, each with the buyer's public profile, plus the average.

    Hidden products are NotFound here too, except for the owner and admins.
    """
    product = get_product(product_id)
    if not product.is_visible and not can_manage(identity, product):
        raise NotFound("Product not found")

    rows = (
        db.session.query(Review, User)
        .outerjoin(User, Review.buyer_id == User.id)
        .filter(Review.product_id == product_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )
    items = []
    for review, buyer in rows:
        item = review.to_dict()
        item["buyer"] = buyer.to_public_dict() if buyer else None
        items.append(item)

    average = None
    if items:
        average = round(sum(i["rating"] for i in items) / len(items), 2)

    return {"items": items, "count": len(items), "average_rating": average}


def add_contact(
    *,
    identity: Identity,
    product_id: int,
    message: str,
    buyer_phone: str | None = None,
) -> Contact:
    """Append a direct-contact request to the product's farmer (status pending)."""
    product = get_product(product_id)
    if not product.is_visible and not can_manage(identity, product):
        raise NotFound("Product not found")
    if identity.owns(product.farmer_id):
        raise Forbidden("You cannot contact yourself")

    contact = Contact(
        buyer_id=identity.id,
        product_id=product.id,
        farmer_id=product.farmer_id,
        message=message,
        buyer_phone=buyer_phone,
        status=CONTACT_PENDING,
    )
    db.session.add(contact)
    db.session.commit()
    current_app.logger.info("Contact id=%s from buyer id=%s to farmer id=%s", contact.id, identity.id, product.farmer_id)
    return contact


def list_contacts_for_farmer(*, farmer_id: int, identity: Identity) -> list[dict]:
    """Contact requests addressed to a farmer, newest first, with buyer and product."""
    if not (identity.owns(farmer_id) or identity.is_admin):
        raise Forbidden("You can only view your own contacts")

    rows = (
        db.session.query(Contact, User, Product)
        .outerjoin(User, Contact.buyer_id == User.id)
        .outerjoin(Product, Contact.product_id == Product.id)
        .filter(Contact.farmer_id == farmer_id)
        .order_by(Contact.created_at.desc(), Contact.id.desc())
        .all()
    )
    result = []
    for contact, buyer, product in rows:
        item = contact.to_dict()
        item["buyer"] = buyer.to_public_dict() if buyer else None
        item["product"] = product.to_summary() if product else None
        result.append(item)
    return result


def update_contact_status(*, contact_id: int, identity: Identity, status: str) -> Contact:
    """Farmer (or admin) moves a contact along pending -> contacted -> completed."""
    if status not in CONTACT_STATUSES:
        raise ValidationError(
            "Validation failed",
            [{"field": "status", "message": f"Must be one of: {', '.join(CONTACT_STATUSES)}"}],
        )

    contact = db.session.get(Contact, contact_id)
    if not contact:
        raise NotFound("Contact not found")
    if not (identity.owns(contact.farmer_id) or identity.is_admin):
        raise Forbidden("Only the farmer can update this contact")

    if status == contact.status:
        return contact
    if status not in CONTACT_TRANSITIONS[contact.status]:
        raise InvalidTransition(f"Cannot change contact status from {contact.status} to {status}")

    contact.status = status
    db.session.commit()
    return contact
