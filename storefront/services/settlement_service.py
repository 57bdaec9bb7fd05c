"""
Settlement Service — split one customer payment across category merchant accounts.

Phase A (create_intent): request a charge for the whole order under the
transfer group ``order_<id>`` and record a Settlement row in INTENT_CREATED.
The customer then completes payment in the browser.

Phase B (create_transfers): confirm the charge succeeded, then send one
transfer per category to that category's connected account, all tied to the
source charge and the same transfer group.

Phase B claims the settlement (INTENT_CREATED -> SUBMITTING) before any
transfer is sent, so only one request can ever submit transfers for an order.
Transfers already accepted are never reversed. A failure part-way through
leaves the settlement PARTIALLY_SETTLED and raises PartialSettlementError so
an operator can reconcile by hand; Phase B refuses to run a second time.
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from storefront.extensions import db
from storefront.errors import (
    ConflictError,
    InvariantViolation,
    NotFoundError,
    PartialSettlementError,
    PaymentNotCompletedError,
    PersistenceError,
    ValidationError,
)
from storefront.models import Settlement, transfer_group_for
from storefront.services.order_service import get_order_by_id
from storefront.services.payment_gateway import get_payment_gateway

logger = logging.getLogger(__name__)

MAX_TRANSFER_WORKERS = 8

PAID_INTENT_STATUSES = ("succeeded", "processing")


def to_minor_units(amount):
    """Round a major-unit amount to the nearest minor unit, halves away from zero."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValidationError(f"Invalid amount: {amount!r}")
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _validate_amount(amount, field="amount"):
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise ValidationError(f"{field} must be a number")
    if amount != amount or amount in (float("inf"), float("-inf")):
        raise ValidationError(f"{field} must be a finite number")
    return amount


def _validate_category_totals(category_totals):
    if not isinstance(category_totals, dict) or not category_totals:
        raise ValidationError("categoryTotals must be a non-empty object")
    for category, amount in category_totals.items():
        if not category:
            raise ValidationError("categoryTotals has an empty category name")
        _validate_amount(amount, field=f"categoryTotals[{category}]")
        if amount < 0:
            raise ValidationError(f"categoryTotals[{category}] must not be negative")
    return category_totals


def _tolerance_minor(category_count):
    # Each category total may carry up to half a minor unit of rounding.
    return Decimal(category_count) / 2


def _check_sum(expected, category_totals, what):
    _check_sum_minor(to_minor_units(expected), category_totals, what)


def _check_sum_minor(expected_minor, category_totals, what):
    parts_minor = sum(to_minor_units(v) for v in category_totals.values())
    if abs(expected_minor - parts_minor) > _tolerance_minor(len(category_totals)):
        raise ValidationError(
            f"categoryTotals do not add up to the {what}",
            error_code="TOTALS_MISMATCH",
        )


def resolve_destination(category):
    accounts = current_app.config["CATEGORY_ACCOUNTS"]
    return accounts.get(category) or accounts["default"]


def _require_order(order_id):
    order = get_order_by_id(order_id)
    if not order:
        raise NotFoundError("Order not found", error_code="ORDER_NOT_FOUND")
    return order


def _commit(action, order_id):
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Error %s for order %s: %s", action, order_id, e)
        raise PersistenceError(f"Failed {action}")


def _refuse_if_paid(settlement):
    """An intent the customer already paid (or is paying) must not be replaced."""
    status = settlement.intent_status
    if status not in PAID_INTENT_STATUSES:
        status = get_payment_gateway().retrieve_charge(settlement.payment_intent_id)["status"]
    if status in PAID_INTENT_STATUSES:
        settlement.intent_status = status
        _commit("recording payment status", settlement.order_id)
        logger.warning("Refusing new intent for %s: PaymentIntent %s is %s",
                       settlement.transfer_group, settlement.payment_intent_id, status)
        raise ConflictError(
            "Payment for this order is already completed or in progress",
            error_code="ALREADY_PAID",
        )


def create_intent(order_id, amount, category_totals):
    """Phase A. Returns {"clientSecret", "transferGroup", "paymentIntentId"}."""
    _validate_amount(amount)
    if amount <= 0:
        raise ValidationError("amount must be positive")
    _validate_category_totals(category_totals)
    _check_sum(amount, category_totals, "amount")

    order = _require_order(order_id)
    _check_sum(order.total(), category_totals, "order total")
    settlement = order.settlement
    if settlement and settlement.state != "INTENT_CREATED":
        raise ConflictError("Order has already been settled", error_code="ALREADY_SETTLED")
    if settlement:
        _refuse_if_paid(settlement)

    transfer_group = transfer_group_for(order.order_id)
    currency = current_app.config["PAYMENT_CURRENCY"]
    amount_minor = to_minor_units(amount)

    charge = get_payment_gateway().create_charge(
        amount_minor,
        currency,
        transfer_group,
        {
            "order_id": str(order.order_id),
            "category_totals": json.dumps(category_totals),
        },
    )

    if settlement is None:
        settlement = Settlement(order_id=order.order_id, transfer_group=transfer_group)
        db.session.add(settlement)
    # A fresh checkout attempt replaces the previous, unpaid intent.
    settlement.payment_intent_id = charge["id"]
    settlement.amount_minor = amount_minor
    settlement.currency = currency
    settlement.category_totals = dict(category_totals)
    settlement.intent_status = None
    settlement.state = "INTENT_CREATED"
    _commit("recording payment intent", order.order_id)

    logger.info("PaymentIntent %s created for %s (%d %s)", charge["id"], transfer_group, amount_minor, currency)
    return {
        "clientSecret": charge["client_secret"],
        "transferGroup": transfer_group,
        "paymentIntentId": charge["id"],
    }


def build_transfers(order_id, category_totals, source_reference):
    currency = current_app.config["PAYMENT_CURRENCY"]
    transfer_group = transfer_group_for(order_id)
    return [
        {
            "category": category,
            "amount_minor": to_minor_units(amount),
            "currency": currency,
            "destination": resolve_destination(category),
            "source_reference": source_reference,
            "transfer_group": transfer_group,
            "metadata": {"category": category, "order_id": str(order_id)},
        }
        for category, amount in category_totals.items()
    ]


def _submit_all(gateway, transfers):
    """Submit every transfer concurrently; returns (created, failed) lists."""
    def submit(transfer):
        return gateway.create_transfer(
            transfer["amount_minor"],
            transfer["currency"],
            transfer["destination"],
            transfer["source_reference"],
            transfer["transfer_group"],
            transfer["metadata"],
        )

    created, failed = [], []
    workers = max(1, min(MAX_TRANSFER_WORKERS, len(transfers)))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [(t, pool.submit(submit, t)) for t in transfers]
        for transfer, future in futures:
            try:
                created.append((transfer, future.result()))
            except Exception as e:
                logger.error("Transfer for category %s failed: %s", transfer["category"], e)
                failed.append((transfer, e))
    return created, failed


def _refuse_resubmission(state):
    if state == "SUBMITTING":
        raise ConflictError(
            "Transfers for this order are already being submitted",
            error_code="SETTLEMENT_IN_PROGRESS",
        )
    raise ConflictError(
        f"Transfers already submitted for this order ({state})",
        error_code="ALREADY_SETTLED",
    )


def _claim_for_submission(settlement):
    """Move INTENT_CREATED -> SUBMITTING in the database; only one caller can win."""
    result = db.session.execute(
        db.update(Settlement)
        .where(
            Settlement.settlement_id == settlement.settlement_id,
            Settlement.state == "INTENT_CREATED",
        )
        .values(state="SUBMITTING")
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        logger.warning("Settlement for %s was claimed by another request", settlement.transfer_group)
        _refuse_resubmission("SUBMITTING")
    _commit("claiming settlement", settlement.order_id)


def create_transfers(payment_intent_id, order_id, category_totals):
    """Phase B. Returns the list of created transfer ids."""
    if not payment_intent_id:
        raise ValidationError("paymentIntentId is required")
    _validate_category_totals(category_totals)

    order = _require_order(order_id)
    settlement = order.settlement
    if settlement is None:
        raise NotFoundError("No payment intent recorded for this order", error_code="SETTLEMENT_NOT_FOUND")
    if settlement.payment_intent_id != payment_intent_id:
        raise ValidationError("paymentIntentId does not belong to this order", error_code="INTENT_MISMATCH")
    if settlement.state != "INTENT_CREATED":
        _refuse_resubmission(settlement.state)
    _check_sum(order.total(), category_totals, "order total")
    _check_sum_minor(settlement.amount_minor, category_totals, "amount charged")

    gateway = get_payment_gateway()
    charge = gateway.retrieve_charge(payment_intent_id)
    settlement.intent_status = charge["status"]
    if charge["status"] != "succeeded":
        _commit("recording payment status", order.order_id)
        logger.warning("Refusing transfers for %s: PaymentIntent %s is %s",
                       settlement.transfer_group, payment_intent_id, charge["status"])
        raise PaymentNotCompletedError()

    source_reference = charge.get("source_reference")
    if not source_reference:
        logger.error("PaymentIntent %s succeeded without a charge", payment_intent_id)
        raise InvariantViolation("Confirmed payment has no source charge")

    _claim_for_submission(settlement)

    transfers = build_transfers(order.order_id, category_totals, source_reference)
    created, failed = _submit_all(gateway, transfers)

    transfer_ids = [transfer_id for _, transfer_id in created]
    settlement.transfer_ids = transfer_ids
    settlement.settled_at = datetime.now(timezone.utc)
    settlement.state = "PARTIALLY_SETTLED" if failed else "SETTLED"
    try:
        _commit("recording transfers", order.order_id)
    except PersistenceError:
        # The row stays SUBMITTING, so no retry can send these again.
        logger.error("Transfers %s for %s were sent but not recorded; reconcile manually",
                     transfer_ids, settlement.transfer_group)
        raise

    if failed:
        failed_categories = [transfer["category"] for transfer, _ in failed]
        logger.error(
            "Partial settlement for %s: %d transfers created %s, failed categories %s",
            settlement.transfer_group, len(transfer_ids), transfer_ids, failed_categories,
        )
        raise PartialSettlementError(
            "Partial settlement: some transfers failed and must be reconciled manually",
            transfer_ids=transfer_ids,
            failed_categories=failed_categories,
        )

    logger.info("Settled %s with %d transfers", settlement.transfer_group, len(transfer_ids))
    return transfer_ids


def record_intent_status(payment_intent_id, status):
    """Store the processor-reported status of an intent; returns False if unknown."""
    settlement = Settlement.query.filter_by(payment_intent_id=payment_intent_id).first()
    if not settlement:
        return False
    settlement.intent_status = status
    _commit("recording payment status", settlement.order_id)
    return True


def get_settlement(order_id):
    order = _require_order(order_id)
    if order.settlement is None:
        raise NotFoundError("No settlement for this order", error_code="SETTLEMENT_NOT_FOUND")
    return order.settlement
