"""
Order Model — Storefront
Status: PENDING | COMPLETED | CANCELLED
One OrderLine row per unit; quantity is expressed by repeating rows.
"""

import uuid
from collections import defaultdict
from datetime import datetime, timezone
from storefront.extensions import db

ORDER_STATUSES = ("PENDING", "COMPLETED", "CANCELLED")


class Order(db.Model):
    __tablename__ = "orders"

    order_id = db.Column(
        db.UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    user_id = db.Column(db.UUID(as_uuid=True), db.ForeignKey("users.user_id"), nullable=False)
    status = db.Column(
        db.Enum(*ORDER_STATUSES, name="order_status"),
        nullable=False,
        default="PENDING"
    )
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    lines = db.relationship(
        "OrderLine",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OrderLine.line_id",
    )
    user = db.relationship("User", backref=db.backref("orders", lazy=True))

    def total(self):
        return sum(line.unit_price_value() for line in self.lines)

    def category_totals(self):
        totals = defaultdict(float)
        for line in self.lines:
            totals[line.category] += line.unit_price_value()
        return dict(totals)

    def to_dict(self, include_user=False):
        data = {
            "id":        str(self.order_id),
            "userId":    str(self.user_id),
            "status":    self.status,
            "createdAt": self.created_at.isoformat(),
            "products":  [line.to_dict() for line in self.lines],
        }
        if include_user:
            data["user"] = self.user.to_summary() if self.user else None
        return data


class OrderLine(db.Model):
    __tablename__ = "order_lines"

    line_id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    order_id = db.Column(
        db.UUID(as_uuid=True),
        db.ForeignKey("orders.order_id"),
        nullable=False,
        index=True
    )
    name = db.Column(db.String(255), nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    category = db.Column(db.String(100), nullable=False)

    def unit_price_value(self):
        return float(self.unit_price)

    def to_dict(self):
        return {
            "id":       self.line_id,
            "name":     self.name,
            "price":    self.unit_price_value(),
            "category": self.category,
            "orderId":  str(self.order_id),
        }
