import logging
from flask import Blueprint, current_app, request, jsonify
import stripe
from storefront.services.settlement_service import record_intent_status

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint('webhooks', __name__)

TRACKED_EVENTS = {
    'payment_intent.succeeded',
    'payment_intent.payment_failed',
    'payment_intent.canceled',
}


@webhooks_bp.route('/stripe', methods=['POST'])
def stripe_webhook():
    """
    Handle Stripe Webhooks
    Records the payment status on the order's settlement. Never creates transfers.
    ---
    tags:
      - Webhooks
    responses:
      200:
        description: Event processed
      400:
        description: Invalid payload or signature
    """
    payload = request.get_data(as_text=True)
    sig_header = request.headers.get('Stripe-Signature')

    try:
        event = stripe.Webhook.construct_event(
            payload, sig_header, current_app.config['STRIPE_WEBHOOK_SECRET']
        )
    except ValueError:
        return jsonify({'success': False, 'error': 'Invalid payload'}), 400
    except stripe.SignatureVerificationError:
        return jsonify({'success': False, 'error': 'Invalid signature'}), 400

    if event['type'] in TRACKED_EVENTS:
        handle_payment_intent_event(event['data']['object'])

    return jsonify({'status': 'success'}), 200


def handle_payment_intent_event(payment_intent):
    intent_id = payment_intent['id']
    status = payment_intent['status']
    if not record_intent_status(intent_id, status):
        logger.warning('Webhook for unknown PaymentIntent %s (%s)', intent_id, status)
        return
    logger.info('PaymentIntent %s is now %s', intent_id, status)
