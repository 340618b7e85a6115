# Overview: Flask API routes for reviews and direct-contact requests.

from flask import Blueprint, request, g

from ..errors import MarketplaceError, error_response
from ..models import Contact, Review
from ..services import feedback_service
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_review, require_fields
from ..decorators import optional_identity, require_auth

# farmer_id is always derived from the product
REVIEW_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "rating", "comment"},
    required_on_create={"product_id", "rating"},
    ignored_fields={"buyer_id", "farmer_id"},
)

CONTACT_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "message", "buyer_phone"},
    required_on_create={"product_id", "message"},
    ignored_fields={"buyer_id", "farmer_id", "status"},
)

feedback_bp = Blueprint("feedback", __name__, url_prefix="/api")


@feedback_bp.get("/products/<int:product_id>/reviews")
def list_product_reviews(product_id: int):
    """Public: reviews newest first with the average rating."""
    try:
        return feedback_service.list_reviews_for_product(product_id, identity=optional_identity())
    except MarketplaceError as e:
        return error_response(e)


@feedback_bp.post("/reviews")
@require_auth
def add_review_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Review, payload=payload, policy=REVIEW_POLICY, partial=False)
        enforce_rules_review(patch)
        review = feedback_service.add_review(
            identity=g.identity,
            product_id=patch["product_id"],
            rating=patch["rating"],
            comment=patch.get("comment"),
        )
    except MarketplaceError as e:
        return error_response(e)
    return review.to_dict(), 201


@feedback_bp.post("/contacts")
@require_auth
def add_contact_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Contact, payload=payload, policy=CONTACT_POLICY, partial=False)
        contact = feedback_service.add_contact(
            identity=g.identity,
            product_id=patch["product_id"],
            message=patch["message"],
            buyer_phone=patch.get("buyer_phone"),
        )
    except MarketplaceError as e:
        return error_response(e)
    return contact.to_dict(), 201


@feedback_bp.patch("/contacts/<int:contact_id>")
@require_auth
def update_contact_route(contact_id: int):
    """Body: {"status": "contacted" | "completed"} (farmer or admin)."""
    payload = request.get_json(silent=True) or {}
    try:
        require_fields(payload, "status")
        contact = feedback_service.update_contact_status(
            contact_id=contact_id, identity=g.identity, status=str(payload["status"])
        )
    except MarketplaceError as e:
        return error_response(e)
    return contact.to_dict(), 200


@feedback_bp.get("/farmer/<int:farmer_id>/contacts")
@require_auth
def list_farmer_contacts(farmer_id: int):
    try:
        return feedback_service.list_contacts_for_farmer(farmer_id=farmer_id, identity=g.identity)
    except MarketplaceError as e:
        return error_response(e)
