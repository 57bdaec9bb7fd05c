"""
Order Service — Storefront
Handles order CRUD: create from a cart draft, list, update status.
"""

import logging
import uuid
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from storefront.cart import PRICE_DECIMAL_PLACES, decimal_places
from storefront.extensions import db
from storefront.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from storefront.models import Order, OrderLine, User, ORDER_STATUSES

logger = logging.getLogger(__name__)

# Only consulted when ENFORCE_STATUS_TRANSITIONS is on.
VALID_TRANSITIONS = {
    "PENDING": {"COMPLETED", "CANCELLED"},
    "COMPLETED": set(),
    "CANCELLED": set(),
}


def parse_uuid(value):
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def _validate_products(products):
    if not isinstance(products, list):
        raise ValidationError("products must be a list")

    rows = []
    for index, product in enumerate(products):
        if not isinstance(product, dict):
            raise ValidationError(f"products[{index}] must be an object")
        missing = [f for f in ("name", "price", "category") if product.get(f) in (None, "")]
        if missing:
            raise ValidationError(f"products[{index}] missing fields: {', '.join(missing)}")
        price = product["price"]
        if isinstance(price, bool) or not isinstance(price, (int, float)) or not 0 <= price < float("inf"):
            raise ValidationError(f"products[{index}] price must be a non-negative number")
        if decimal_places(price) > PRICE_DECIMAL_PLACES:
            raise ValidationError(
                f"products[{index}] price has more than {PRICE_DECIMAL_PLACES} decimal places"
            )
        rows.append({"name": product["name"], "price": price, "category": product["category"]})
    return rows


def create_order(user_id, products, status="PENDING"):
    """
    Persist an order and its product rows in one transaction.
    Either the order comes back with every row, or nothing is written.
    """
    owner_id = parse_uuid(user_id)
    if owner_id is None:
        raise ValidationError("userId must be a valid id")
    if status not in ORDER_STATUSES:
        raise ValidationError("Invalid status")
    rows = _validate_products(products)

    if db.session.get(User, owner_id) is None:
        raise NotFoundError("User not found", error_code="USER_NOT_FOUND")

    try:
        order = Order(user_id=owner_id, status=status)
        db.session.add(order)
        db.session.flush()

        db.session.add_all([
            OrderLine(
                order_id=order.order_id,
                name=row["name"],
                unit_price=row["price"],
                category=row["category"],
            )
            for row in rows
        ])
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Error creating order for user %s: %s", owner_id, e)
        raise PersistenceError("Failed to create order")

    logger.info("Created order %s with %d products", order.order_id, len(rows))
    return get_order_by_id(order.order_id)


def get_order_by_id(order_id):
    order_id = parse_uuid(order_id)
    if order_id is None:
        return None
    return Order.query.filter_by(order_id=order_id).first()


def get_orders_by_user(user_id):
    owner_id = parse_uuid(user_id)
    if owner_id is None:
        return []
    return Order.query.filter_by(user_id=owner_id).order_by(Order.created_at.desc()).all()


def get_all_orders():
    """Admin view. The caller is responsible for checking the session first."""
    return Order.query.order_by(Order.created_at.desc()).all()


def update_order_status(order_id, new_status, principal):
    """
    Overwrite an order's status.
    Checks run in a fixed order: session, then status value, then order existence.
    The current status is not consulted unless ENFORCE_STATUS_TRANSITIONS is set.
    """
    if principal is None:
        raise AuthorizationError()
    if not new_status:
        raise ValidationError("Order ID and status are required")
    if new_status not in ORDER_STATUSES:
        raise ValidationError("Invalid status", error_code="INVALID_STATUS")

    order = get_order_by_id(order_id)
    if not order:
        raise NotFoundError("Order not found", error_code="ORDER_NOT_FOUND")

    if current_app.config.get("ENFORCE_STATUS_TRANSITIONS"):
        allowed = VALID_TRANSITIONS.get(order.status, set())
        if new_status != order.status and new_status not in allowed:
            raise ConflictError(
                f"Cannot transition from {order.status} to {new_status}",
                error_code="INVALID_TRANSITION",
            )

    previous = order.status
    order.status = new_status
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Error updating status of order %s: %s", order.order_id, e)
        raise PersistenceError("Failed to update order status")

    logger.info("Order %s status %s -> %s by %s", order.order_id, previous, new_status, principal.user_id)
    return order
