from flask import Blueprint, request, jsonify
from storefront.auth import get_session
from storefront.errors import AuthorizationError, ValidationError
from storefront.services.settlement_service import (
    create_intent,
    create_transfers,
    get_settlement,
)

payment_bp = Blueprint('payment', __name__)


@payment_bp.route('/payment/create-intent', methods=['POST'])
def create_intent_route():
    """
    Start payment for an order (phase A)
    ---
    tags:
      - Payment
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - orderId
            - amount
            - categoryTotals
          properties:
            orderId:
              type: string
            amount:
              type: number
            categoryTotals:
              type: object
              additionalProperties:
                type: number
    responses:
      200:
        description: Client secret for the browser payment step and the transfer group
      400:
        description: Invalid amount or totals
      404:
        description: Order not found
      409:
        description: Order already settled, or its payment already completed
      500:
        description: Payment processor failure
    """
    data = request.get_json(silent=True) or {}
    order_id = data.get('orderId')
    amount = data.get('amount')
    category_totals = data.get('categoryTotals')

    if not order_id or amount is None or category_totals is None:
        raise ValidationError('orderId, amount and categoryTotals are required')

    result = create_intent(order_id, amount, category_totals)
    return jsonify(result), 200


@payment_bp.route('/payment/create-transfers', methods=['POST'])
def create_transfers_route():
    """
    Split a completed payment across category accounts (phase B)
    ---
    tags:
      - Payment
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - paymentIntentId
            - orderId
            - categoryTotals
          properties:
            paymentIntentId:
              type: string
            orderId:
              type: string
            categoryTotals:
              type: object
              additionalProperties:
                type: number
    responses:
      200:
        description: All transfers created
      400:
        description: Payment not completed, or invalid request
      409:
        description: Transfers were already submitted for this order
      500:
        description: Processor failure or partial settlement
    """
    data = request.get_json(silent=True) or {}
    payment_intent_id = data.get('paymentIntentId')
    order_id = data.get('orderId')
    category_totals = data.get('categoryTotals')

    if not payment_intent_id or not order_id or category_totals is None:
        raise ValidationError('paymentIntentId, orderId and categoryTotals are required')

    transfer_ids = create_transfers(payment_intent_id, order_id, category_totals)
    return jsonify({'success': True, 'transferIds': transfer_ids}), 200


@payment_bp.route('/payment/settlements/<order_id>', methods=['GET'])
def get_settlement_route(order_id):
    """
    Settlement record for an order (operators)
    ---
    tags:
      - Payment
    security:
      - Bearer: []
    parameters:
      - name: order_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Settlement state, payment intent and transfer ids
      403:
        description: No valid session
      404:
        description: Order or settlement not found
    """
    if get_session() is None:
        raise AuthorizationError()

    settlement = get_settlement(order_id)
    return jsonify({'success': True, 'settlement': settlement.to_dict()}), 200
