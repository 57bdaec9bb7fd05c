"""
Settlement Model — one row per order, tracking the two-phase payment split.
INTENT_CREATED  charge requested, waiting for the customer to pay
SUBMITTING      transfers claimed by one request and being sent
SETTLED         every category transfer was accepted
PARTIALLY_SETTLED  some transfers were accepted, the rest failed (reconcile by hand)

A row left in SUBMITTING means transfers may have been sent without being
recorded; it is never resubmitted automatically.
"""

from datetime import datetime, timezone
from storefront.extensions import db

SETTLEMENT_STATES = ("INTENT_CREATED", "SUBMITTING", "SETTLED", "PARTIALLY_SETTLED")


def transfer_group_for(order_id):
    return f"order_{order_id}"


class Settlement(db.Model):
    __tablename__ = "settlements"

    settlement_id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    order_id = db.Column(
        db.UUID(as_uuid=True),
        db.ForeignKey("orders.order_id"),
        nullable=False,
        unique=True
    )
    payment_intent_id = db.Column(db.String(255), nullable=False, index=True)
    transfer_group = db.Column(db.String(255), nullable=False)
    state = db.Column(
        db.Enum(*SETTLEMENT_STATES, name="settlement_state"),
        nullable=False,
        default="INTENT_CREATED"
    )
    intent_status = db.Column(db.String(50), nullable=True)
    amount_minor = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(3), nullable=False)
    category_totals = db.Column(db.JSON, nullable=False)
    transfer_ids = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    settled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    order = db.relationship("Order", backref=db.backref("settlement", uselist=False))

    def to_dict(self):
        return {
            "orderId":         str(self.order_id),
            "paymentIntentId": self.payment_intent_id,
            "transferGroup":   self.transfer_group,
            "state":           self.state,
            "intentStatus":    self.intent_status,
            "amountMinor":     self.amount_minor,
            "currency":        self.currency,
            "categoryTotals":  self.category_totals,
            "transferIds":     self.transfer_ids or [],
            "createdAt":       self.created_at.isoformat(),
            "settledAt":       self.settled_at.isoformat() if self.settled_at else None,
        }
