from flask import Blueprint, request, jsonify
from storefront.auth import issue_tokens
from storefront.errors import ValidationError
from storefront.services.otp_provider import get_otp_provider
from storefront.services.user_service import sign_in_with_phone

otp_bp = Blueprint('otp', __name__)


@otp_bp.route('/send-otp', methods=['POST'])
def send_otp():
    """
    Send an OTP by SMS
    ---
    tags:
      - OTP
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - phoneNumber
          properties:
            phoneNumber:
              type: string
    responses:
      200:
        description: OTP sent; status is the provider's verification status
      400:
        description: Phone number missing
      500:
        description: Upstream API error
    """
    data = request.get_json(silent=True) or {}
    phone_number = data.get('phoneNumber')

    if not phone_number:
        raise ValidationError('Phone number is required')

    status = get_otp_provider().send_code(phone_number)
    return jsonify({'success': True, 'status': status}), 200


@otp_bp.route('/verify-otp', methods=['POST'])
def verify_otp():
    """
    Verify an OTP and sign in
    ---
    tags:
      - OTP
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - phoneNumber
            - otp
          properties:
            phoneNumber:
              type: string
            otp:
              type: string
    responses:
      200:
        description: Verification status; tokens and user included when approved
      400:
        description: Phone number or OTP missing
      500:
        description: Upstream API error
    """
    data = request.get_json(silent=True) or {}
    phone_number = data.get('phoneNumber')
    otp = data.get('otp')

    if not phone_number or not otp:
        raise ValidationError('Phone number and OTP are required')

    status = get_otp_provider().check_code(phone_number, str(otp))
    if status != 'approved':
        return jsonify({'success': True, 'status': status}), 200

    user = sign_in_with_phone(phone_number)
    return jsonify({
        'success': True,
        'status': status,
        'user': user.to_dict(),
        **issue_tokens(user),
    }), 200
