from __future__ import annotations

from ..extensions import db
from agriconnect.time_utils import to_utc_z
from .catalog import format_money


ORDER_PENDING = "pending"
ORDER_CONFIRMED = "confirmed"
ORDER_DELIVERED = "delivered"
ORDER_CANCELLED = "cancelled"

# Legal transitions; delivered and cancelled are terminal
ORDER_TRANSITIONS = {
    ORDER_PENDING: {ORDER_CONFIRMED, ORDER_CANCELLED},
    ORDER_CONFIRMED: {ORDER_DELIVERED, ORDER_CANCELLED},
    ORDER_DELIVERED: set(),
    ORDER_CANCELLED: set(),
}
ORDER_STATUSES = tuple(ORDER_TRANSITIONS)


class Order(db.Model):
    """
    A buyer's order against one product.

    farmer_id is copied from the product at placement time and total_price
    is price * quantity at placement time; neither is recomputed later.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_orders_quantity_positive"),
        db.Index("ix_orders_buyer_created", "buyer_id", "created_at"),
        db.Index("ix_orders_farmer_created", "farmer_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    farmer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    total_price = db.Column(db.Numeric(12, 2, asdecimal=True), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=ORDER_PENDING, index=True)

    delivery_address = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    buyer = db.relationship("User", foreign_keys=[buyer_id])
    farmer = db.relationship("User", foreign_keys=[farmer_id])
    product = db.relationship("Product", backref=db.backref("orders", lazy=True))

    def __repr__(self) -> str:
        return f"<Order id={self.id} product_id={self.product_id} status={self.status}>"

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in ORDER_TRANSITIONS.get(self.status, set())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "buyer_id": self.buyer_id,
            "product_id": self.product_id,
            "farmer_id": self.farmer_id,
            "quantity": self.quantity,
            "total_price": format_money(self.total_price),
            "status": self.status,
            "delivery_address": self.delivery_address,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
