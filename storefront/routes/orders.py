from flask import Blueprint, request, jsonify
from storefront.auth import get_session
from storefront.errors import AuthorizationError, NotFoundError, ValidationError
from storefront.services.order_service import (
    create_order,
    get_all_orders,
    get_order_by_id,
    get_orders_by_user,
    update_order_status,
)

orders_bp = Blueprint('orders', __name__)


@orders_bp.route('/orders', methods=['POST'])
def create_order_route():
    """
    Create an order from a cart draft
    ---
    tags:
      - Orders
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - userId
            - products
            - status
          properties:
            userId:
              type: string
            products:
              type: array
              items:
                type: object
                properties:
                  name:
                    type: string
                  price:
                    type: number
                  category:
                    type: string
            status:
              type: string
              enum: [PENDING, COMPLETED, CANCELLED]
    responses:
      200:
        description: Order created with all of its products
      400:
        description: Missing or invalid fields
      500:
        description: Order could not be persisted
    """
    data = request.get_json(silent=True) or {}
    user_id = data.get('userId') or data.get('ownerId')
    products = data.get('products')
    status = data.get('status')

    if not user_id or products is None or not status:
        raise ValidationError('Missing required fields')

    order = create_order(user_id, products, status)
    return jsonify({'success': True, 'order': order.to_dict()}), 200


@orders_bp.route('/orders/all', methods=['GET'])
def list_all_orders():
    """
    List every order, newest first (signed-in users only)
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    responses:
      200:
        description: All orders with their products and owner
      403:
        description: No valid session
    """
    if get_session() is None:
        raise AuthorizationError()

    orders = get_all_orders()
    return jsonify({
        'success': True,
        'orders': [o.to_dict(include_user=True) for o in orders],
    }), 200


@orders_bp.route('/orders/user', methods=['GET'])
def list_user_orders():
    """
    List one user's orders, newest first
    ---
    tags:
      - Orders
    parameters:
      - name: userId
        in: query
        type: string
        required: true
    responses:
      200:
        description: The user's orders
      400:
        description: userId missing
    """
    user_id = request.args.get('userId')
    if not user_id:
        raise ValidationError('User ID is required')

    orders = get_orders_by_user(user_id)
    return jsonify({'success': True, 'orders': [o.to_dict() for o in orders]}), 200


@orders_bp.route('/orders/<order_id>', methods=['GET'])
def get_order_route(order_id):
    """
    Get a single order
    ---
    tags:
      - Orders
    parameters:
      - name: order_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Order with products
      404:
        description: Order not found
    """
    order = get_order_by_id(order_id)
    if not order:
        raise NotFoundError('Order not found', error_code='ORDER_NOT_FOUND')
    return jsonify({'success': True, 'order': order.to_dict()}), 200


@orders_bp.route('/orders/<order_id>/status', methods=['PUT'])
def update_order_status_route(order_id):
    """
    Update an order's status
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - name: order_id
        in: path
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - status
          properties:
            status:
              type: string
              enum: [PENDING, COMPLETED, CANCELLED]
    responses:
      200:
        description: Status updated
      400:
        description: Missing or invalid status
      403:
        description: No valid session
      404:
        description: Order not found
      500:
        description: Update failed
    """
    principal = get_session()
    data = request.get_json(silent=True) or {}
    status = data.get('status')

    order = update_order_status(order_id, status, principal)
    return jsonify({
        'success': True,
        'message': f'Order status updated to {status}',
        'order': order.to_dict(),
    }), 200
