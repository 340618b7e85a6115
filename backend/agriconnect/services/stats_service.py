# Overview: Aggregate counts for the public landing page.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Order, Product, User


def get_stats() -> dict:
    """
    Marketplace totals.

    - farmers: users with role farmer
    - products: approved products
    - orders: all orders
    - communes: distinct communes with at least one product
    """
    total_farmers = db.session.query(func.count(User.id)).filter(User.role == "farmer").scalar() or 0
    total_products = (
        db.session.query(func.count(Product.id)).filter(Product.is_approved.is_(True)).scalar() or 0
    )
    total_orders = db.session.query(func.count(Order.id)).scalar() or 0
    total_communes = (
        db.session.query(func.count(func.distinct(Product.commune)))
        .filter(Product.commune.isnot(None))
        .scalar()
        or 0
    )
    return {
        "total_farmers": int(total_farmers),
        "total_products": int(total_products),
        "total_orders": int(total_orders),
        "total_communes": int(total_communes),
    }
