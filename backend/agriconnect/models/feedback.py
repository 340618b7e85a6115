from __future__ import annotations

from ..extensions import db
from agriconnect.time_utils import to_utc_z


CONTACT_PENDING = "pending"
CONTACT_CONTACTED = "contacted"
CONTACT_COMPLETED = "completed"

CONTACT_TRANSITIONS = {
    CONTACT_PENDING: {CONTACT_CONTACTED, CONTACT_COMPLETED},
    CONTACT_CONTACTED: {CONTACT_COMPLETED},
    CONTACT_COMPLETED: set(),
}
CONTACT_STATUSES = tuple(CONTACT_TRANSITIONS)


class Review(db.Model):
    """Append-only buyer feedback on a product (rating 1-5)."""
    __tablename__ = "reviews"
    __table_args__ = (
        db.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),
        db.Index("ix_reviews_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    farmer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    buyer = db.relationship("User", foreign_keys=[buyer_id])
    product = db.relationship(
        "Product",
        backref=db.backref("reviews", lazy=True, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "buyer_id": self.buyer_id,
            "product_id": self.product_id,
            "farmer_id": self.farmer_id,
            "rating": self.rating,
            "comment": self.comment,
            "created_at": to_utc_z(self.created_at),
        }


class Contact(db.Model):
    """
    Direct-contact request from a buyer to the farmer behind a product.

    Only status moves after creation: pending -> contacted -> completed.
    """
    __tablename__ = "contacts"
    __table_args__ = (
        db.Index("ix_contacts_farmer_created", "farmer_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    farmer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    message = db.Column(db.Text, nullable=False)
    buyer_phone = db.Column(db.String(20), nullable=True)
    status = db.Column(db.String(20), nullable=False, default=CONTACT_PENDING)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    buyer = db.relationship("User", foreign_keys=[buyer_id])
    product = db.relationship(
        "Product",
        backref=db.backref("contacts", lazy=True, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "buyer_id": self.buyer_id,
            "product_id": self.product_id,
            "farmer_id": self.farmer_id,
            "message": self.message,
            "buyer_phone": self.buyer_phone,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
