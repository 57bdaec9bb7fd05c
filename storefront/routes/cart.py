"""
Cart Routes — the session-scoped cart.
One Cart is built per request from the signed session cookie (see get_cart)
and discarded when the request ends; every mutation writes back to the cookie.
"""

from flask import Blueprint, g, request, jsonify, session
from storefront.auth import get_session
from storefront.cart import Cart, SessionCartStorage
from storefront.errors import ValidationError
from storefront.services.order_service import create_order

cart_bp = Blueprint('cart', __name__)


def get_cart():
    if 'cart' not in g:
        g.cart = Cart(SessionCartStorage(session))
    return g.cart


def _cart_response(cart, status_code=200):
    return jsonify({'success': True, 'cart': cart.to_dict()}), status_code


@cart_bp.route('/cart', methods=['GET'])
def show_cart():
    """
    Current cart with totals
    ---
    tags:
      - Cart
    responses:
      200:
        description: Lines, total, item count and per-category totals
    """
    return _cart_response(get_cart())


@cart_bp.route('/cart/items', methods=['POST'])
def add_item():
    """
    Add an item (merges with an existing line of the same id and size)
    ---
    tags:
      - Cart
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [id, name, size, price, quantity]
          properties:
            id:
              type: string
            name:
              type: string
            size:
              type: string
            price:
              type: string
              example: "₹40"
            quantity:
              type: integer
            imageUrl:
              type: string
            category:
              type: string
    responses:
      200:
        description: Updated cart
      400:
        description: Missing fields, bad quantity or malformed price
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')

    cart = get_cart()
    cart.add_line(data)
    return _cart_response(cart)


@cart_bp.route('/cart/items/<item_id>/<size>', methods=['PATCH'])
def update_item(item_id, size):
    """
    Set the quantity of a line (0 or less removes it)
    ---
    tags:
      - Cart
    parameters:
      - name: item_id
        in: path
        type: string
        required: true
      - name: size
        in: path
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [quantity]
          properties:
            quantity:
              type: integer
    responses:
      200:
        description: Updated cart
      400:
        description: quantity missing or not a whole number
    """
    data = request.get_json(silent=True) or {}
    if 'quantity' not in data:
        raise ValidationError('quantity is required')

    cart = get_cart()
    cart.set_quantity(item_id, size, data['quantity'])
    return _cart_response(cart)


@cart_bp.route('/cart/items/<item_id>/<size>', methods=['DELETE'])
def remove_item(item_id, size):
    """
    Remove a line (no-op if absent)
    ---
    tags:
      - Cart
    responses:
      200:
        description: Updated cart
    """
    cart = get_cart()
    cart.remove_line(item_id, size)
    return _cart_response(cart)


@cart_bp.route('/cart', methods=['DELETE'])
def clear_cart():
    """
    Empty the cart
    ---
    tags:
      - Cart
    responses:
      200:
        description: Empty cart
    """
    cart = get_cart()
    cart.clear()
    return _cart_response(cart)


@cart_bp.route('/cart/checkout', methods=['POST'])
def checkout():
    """
    Turn the cart into a PENDING order and empty the cart
    ---
    tags:
      - Cart
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            userId:
              type: string
              description: Used only when there is no signed-in session
    responses:
      200:
        description: The created order, plus the totals to pay with
      400:
        description: Empty cart or no user
    """
    cart = get_cart()
    if not cart.lines:
        raise ValidationError('Cart is empty')

    user = get_session()
    data = request.get_json(silent=True) or {}
    user_id = str(user.user_id) if user else data.get('userId')
    if not user_id:
        raise ValidationError('User ID is required')

    draft = cart.to_order_draft(user_id)
    total = cart.total()
    order = create_order(draft['userId'], draft['products'], draft['status'])
    cart.clear()

    return jsonify({
        'success': True,
        'order': order.to_dict(),
        'total': total,
        'categoryTotals': draft['categoryTotals'],
    }), 200
