from flask import Blueprint, request, jsonify
from storefront.errors import ValidationError
from storefront.services.user_service import link_phone

user_bp = Blueprint('users', __name__)


@user_bp.route('/link-phone', methods=['POST'])
def link_phone_route():
    """
    Attach a verified phone number to a user
    ---
    tags:
      - Users
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - phoneNumber
            - userId
          properties:
            phoneNumber:
              type: string
            userId:
              type: string
    responses:
      200:
        description: Phone number linked
      400:
        description: Missing fields
      404:
        description: User not found
      409:
        description: Phone number already belongs to another user
    """
    data = request.get_json(silent=True) or {}
    phone_number = data.get('phoneNumber')
    user_id = data.get('userId')

    if not phone_number or not user_id:
        raise ValidationError('phoneNumber and userId are required')

    link_phone(user_id, phone_number)
    return jsonify({'success': True}), 200
