"""
Payment Gateway — thin wrapper over Stripe.
Only three calls are needed: create a PaymentIntent, read it back, create a Transfer.
Stripe errors are turned into UpstreamProviderError; callers never see raw Stripe exceptions.
"""

import logging
import stripe
from flask import current_app

from storefront.errors import UpstreamProviderError

logger = logging.getLogger(__name__)


class StripeGateway:
    def __init__(self, api_key):
        self.api_key = api_key

    def create_charge(self, amount_minor, currency, transfer_group, metadata):
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.api_key,
                amount=amount_minor,
                currency=currency,
                transfer_group=transfer_group,
                metadata=metadata,
            )
        except stripe.StripeError as e:
            logger.error("Stripe rejected PaymentIntent for %s: %s", transfer_group, e.user_message or type(e).__name__)
            raise UpstreamProviderError("Payment intent creation failed")
        return {"id": intent.id, "client_secret": intent.client_secret}

    def retrieve_charge(self, payment_intent_id):
        try:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id, api_key=self.api_key)
        except stripe.StripeError as e:
            logger.error("Could not retrieve PaymentIntent %s: %s", payment_intent_id, e.user_message or type(e).__name__)
            raise UpstreamProviderError("Could not retrieve payment")
        return {"status": intent.status, "source_reference": _source_charge_id(intent)}

    def create_transfer(self, amount_minor, currency, destination, source_reference, transfer_group, metadata):
        try:
            transfer = stripe.Transfer.create(
                api_key=self.api_key,
                amount=amount_minor,
                currency=currency,
                destination=destination,
                source_transaction=source_reference,
                transfer_group=transfer_group,
                metadata=metadata,
            )
        except stripe.StripeError as e:
            logger.error("Transfer to %s failed for %s: %s", destination, transfer_group, e.user_message or type(e).__name__)
            raise UpstreamProviderError("Transfer creation failed")
        return transfer.id


def _source_charge_id(intent):
    # Newer API versions expose latest_charge; older ones embed a charges list.
    latest = getattr(intent, "latest_charge", None)
    if latest:
        return latest if isinstance(latest, str) else getattr(latest, "id", None)
    charges = getattr(intent, "charges", None)
    data = getattr(charges, "data", None) if charges else None
    if data:
        return getattr(data[0], "id", None)
    return None


def get_payment_gateway():
    gateway = current_app.extensions.get("payment_gateway")
    if gateway is None:
        gateway = StripeGateway(current_app.config["STRIPE_SECRET_KEY"])
        current_app.extensions["payment_gateway"] = gateway
    return gateway
