"""
Order Engine

Buyers order against a product's available stock.

WHY a conditional UPDATE: the stock check and the decrement must be one
atomic unit. The decrement is

    UPDATE products SET available_quantity = available_quantity - :q
    WHERE id = :id AND available_quantity >= :q

and the order row is inserted in the same transaction. If two requests
race for the last unit, the second UPDATE matches no row and fails with
InsufficientStock; stock never goes negative.

Status lifecycle:
    pending -> confirmed | cancelled
    confirmed -> delivered | cancelled
    delivered, cancelled: terminal
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import case, update

from ..extensions import db
from ..errors import Forbidden, InsufficientStock, InvalidTransition, NotFound, ValidationError
from ..models import Order, Product, User
from ..models.orders import ORDER_CANCELLED, ORDER_PENDING, ORDER_STATUSES
from ..validation import CENTS
from .concurrency import lock_for_update, run_with_retry
from .token_service import Identity

# Fields the buyer may still change while the order is pending
ORDER_BUYER_MUTABLE_FIELDS = {"delivery_address", "notes"}


def compute_total(price: Decimal, quantity: int) -> Decimal:
    """price * quantity in exact decimal arithmetic, rounded to cents."""
    return (Decimal(price) * quantity).quantize(CENTS)


def place_order(
    *,
    identity: Identity,
    product_id: int,
    quantity: int,
    delivery_address: str | None = None,
    notes: str | None = None,
) -> Order:
    """
    Place an order and decrement stock atomically.

    buyer_id comes from the identity and farmer_id from the product.

    Raises:
        NotFound: product missing, inactive or not approved
        Forbidden: ordering one's own product
        InsufficientStock: quantity exceeds available_quantity
    """
    if quantity is None or quantity < 1:
        raise ValidationError("Validation failed", [{"field": "quantity", "message": "Must be at least 1"}])

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if not product or not product.is_visible:
            db.session.rollback()
            raise NotFound("Product not found")

        if product.farmer_id == identity.id:
            db.session.rollback()
            raise Forbidden("You cannot order your own product")

        if quantity > product.available_quantity:
            available = product.available_quantity
            db.session.rollback()
            raise InsufficientStock(requested=quantity, available=available)

        farmer_id = product.farmer_id
        total_price = compute_total(product.price, quantity)

        result = db.session.execute(
            update(Product)
            .where(Product.id == product_id, Product.available_quantity >= quantity)
            .values(available_quantity=Product.available_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # Another order took the stock between our read and our write
            db.session.rollback()
            raise InsufficientStock(requested=quantity)

        order = Order(
            buyer_id=identity.id,
            product_id=product_id,
            farmer_id=farmer_id,
            quantity=quantity,
            total_price=total_price,
            status=ORDER_PENDING,
            delivery_address=delivery_address,
            notes=notes,
        )
        db.session.add(order)
        db.session.commit()
        return order

    try:
        order = run_with_retry(_op)
    except InsufficientStock:
        current_app.logger.warning(
            "Insufficient stock for product id=%s (buyer id=%s, requested %s)",
            product_id, identity.id, quantity,
        )
        raise

    current_app.logger.info(
        "Order id=%s placed by buyer id=%s for product id=%s qty=%s total=%s",
        order.id, order.buyer_id, order.product_id, order.quantity, order.total_price,
    )
    return order


def _restock(order: Order) -> None:
    """Return a cancelled order's quantity to stock, never above quantity."""
    restored = Product.available_quantity + order.quantity
    db.session.execute(
        update(Product)
        .where(Product.id == order.product_id)
        .values(
            available_quantity=case(
                (restored > Product.quantity, Product.quantity),
                else_=restored,
            )
        )
        .execution_options(synchronize_session=False)
    )


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFound("Order not found")
    return order


def update_order(*, order_id: int, identity: Identity, patch: dict) -> Order:
    """
    Apply a status transition and/or buyer edits.

    - farmer of the order or admin: any legal transition
    - buyer: may only cancel, and may edit delivery_address/notes while pending
    Setting the current status again is a no-op.
    """
    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            db.session.rollback()
            raise NotFound("Order not found")

        is_buyer = identity.owns(order.buyer_id)
        is_seller = identity.owns(order.farmer_id) or identity.is_admin
        if not (is_buyer or is_seller):
            db.session.rollback()
            raise Forbidden("Not a party to this order")

        edits = {k: v for k, v in patch.items() if k in ORDER_BUYER_MUTABLE_FIELDS}
        if edits:
            if not (is_buyer or identity.is_admin):
                db.session.rollback()
                raise Forbidden("Only the buyer can edit delivery details")
            if order.status != ORDER_PENDING:
                db.session.rollback()
                raise InvalidTransition("Delivery details can only change while the order is pending")
            for k, v in edits.items():
                setattr(order, k, v)

        new_status = patch.get("status")
        old_status = order.status
        if new_status is not None and new_status != old_status:
            if new_status not in ORDER_STATUSES:
                db.session.rollback()
                raise ValidationError(
                    "Validation failed",
                    [{"field": "status", "message": f"Must be one of: {', '.join(ORDER_STATUSES)}"}],
                )
            if not is_seller and new_status != ORDER_CANCELLED:
                db.session.rollback()
                raise Forbidden("Buyers can only cancel orders")
            if not order.can_transition_to(new_status):
                db.session.rollback()
                raise InvalidTransition(f"Cannot change order status from {old_status} to {new_status}")

            order.status = new_status
            if new_status == ORDER_CANCELLED:
                _restock(order)

        db.session.commit()
        if new_status is not None and new_status != old_status:
            current_app.logger.info(
                "Order id=%s status %s -> %s by user id=%s", order.id, old_status, new_status, identity.id
            )
        return order

    return run_with_retry(_op)


def list_by_buyer(*, buyer_id: int, identity: Identity) -> list[dict]:
    """Buyer's orders, newest first, with product summary and farmer profile."""
    if not (identity.owns(buyer_id) or identity.is_admin):
        raise Forbidden("You can only view your own orders")

    rows = (
        db.session.query(Order, Product, User)
        .outerjoin(Product, Order.product_id == Product.id)
        .outerjoin(User, Order.farmer_id == User.id)
        .filter(Order.buyer_id == buyer_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    result = []
    for order, product, farmer in rows:
        item = order.to_dict()
        item["product"] = product.to_summary() if product else None
        item["farmer"] = farmer.to_public_dict() if farmer else None
        result.append(item)
    return result


def list_by_farmer(*, farmer_id: int, identity: Identity) -> list[dict]:
    """Orders received by a farmer, newest first, with product summary and buyer profile."""
    if not (identity.owns(farmer_id) or identity.is_admin):
        raise Forbidden("You can only view your own orders")

    rows = (
        db.session.query(Order, Product, User)
        .outerjoin(Product, Order.product_id == Product.id)
        .outerjoin(User, Order.buyer_id == User.id)
        .filter(Order.farmer_id == farmer_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    result = []
    for order, product, buyer in rows:
        item = order.to_dict()
        item["product"] = product.to_summary() if product else None
        item["buyer"] = buyer.to_public_dict() if buyer else None
        result.append(item)
    return result


def get_order_detail(*, order_id: int, identity: Identity) -> dict:
    order = get_order(order_id)
    if not (identity.owns(order.buyer_id) or identity.owns(order.farmer_id) or identity.is_admin):
        raise Forbidden("Not a party to this order")
    item = order.to_dict()
    item["product"] = order.product.to_summary() if order.product else None
    item["buyer"] = order.buyer.to_public_dict() if order.buyer else None
    item["farmer"] = order.farmer.to_public_dict() if order.farmer else None
    return item
