from __future__ import annotations

from ..extensions import db
from agriconnect.time_utils import to_utc_z


MODERATION_PENDING = "pending"
MODERATION_APPROVED = "approved"
MODERATION_REJECTED = "rejected"


def format_money(value) -> str | None:
    """Decimal -> "1500.00". Money never passes through float."""
    if value is None:
        return None
    return f"{value:.2f}"


class Product(db.Model):
    """
    Product listing owned by one farmer.

    VISIBILITY: public listings only show rows with is_active AND is_approved.
    is_approved mirrors moderation_status == "approved"; moderation_status
    additionally records rejections (with rejection_reason) so they are
    auditable and reversible.

    STOCK: available_quantity starts at quantity and is only decremented by
    order placement through a conditional UPDATE (see order_service).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("available_quantity >= 0", name="ck_products_available_non_negative"),
        db.CheckConstraint("available_quantity <= quantity", name="ck_products_available_le_quantity"),
        # Idempotency key for queued (offline) creations, per farmer
        db.UniqueConstraint("farmer_id", "client_ref", name="uq_products_farmer_client_ref"),
        db.Index("ix_products_visible", "is_active", "is_approved"),
        db.Index("ix_products_moderation", "moderation_status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    farmer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(100), nullable=False, index=True)

    price = db.Column(db.Numeric(10, 2, asdecimal=True), nullable=False)
    unit = db.Column(db.String(50), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    available_quantity = db.Column(db.Integer, nullable=False)

    harvest_date = db.Column(db.DateTime, nullable=True)
    commune = db.Column(db.String(100), nullable=True, index=True)
    location = db.Column(db.String(255), nullable=True)
    province = db.Column(db.String(100), nullable=False, default="Haut-Katanga")
    images = db.Column(db.JSON, nullable=False, default=list)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_approved = db.Column(db.Boolean, nullable=False, default=False)
    moderation_status = db.Column(db.String(16), nullable=False, default=MODERATION_PENDING)
    rejection_reason = db.Column(db.Text, nullable=True)
    moderated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    moderated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    client_ref = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    farmer = db.relationship("User", foreign_keys=[farmer_id], backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} farmer_id={self.farmer_id}>"

    @property
    def is_visible(self) -> bool:
        return bool(self.is_active and self.is_approved)

    def to_dict(self, *, farmer=None) -> dict:
        data = {
            "id": self.id,
            "farmer_id": self.farmer_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "price": format_money(self.price),
            "unit": self.unit,
            "quantity": self.quantity,
            "available_quantity": self.available_quantity,
            "harvest_date": to_utc_z(self.harvest_date),
            "commune": self.commune,
            "location": self.location,
            "province": self.province,
            "images": list(self.images or []),
            "is_active": self.is_active,
            "is_approved": self.is_approved,
            "moderation_status": self.moderation_status,
            "rejection_reason": self.rejection_reason,
            "moderated_at": to_utc_z(self.moderated_at) if self.moderated_at else None,
            "client_ref": self.client_ref,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if farmer is not None:
            data["farmer"] = farmer
        return data

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "price": format_money(self.price),
            "unit": self.unit,
            "commune": self.commune,
            "images": list(self.images or []),
        }
