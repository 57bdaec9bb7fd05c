from flask import Blueprint, jsonify
from flask_jwt_extended import create_access_token, get_jwt, get_jwt_identity, jwt_required
from storefront.auth import ACCESS_TOKEN_TTL, get_session, issue_tokens
from storefront.errors import AuthorizationError
from storefront.extensions import BLOCKLIST
from storefront.services.user_service import create_anonymous_user

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/anonymous', methods=['POST'])
def anonymous_sign_in():
    """
    Sign in without a phone number
    ---
    tags:
      - Auth
    responses:
      200:
        description: Tokens for a new anonymous user
    """
    user = create_anonymous_user()
    return jsonify({'success': True, 'user': user.to_dict(), **issue_tokens(user)}), 200


@auth_bp.route('/session', methods=['GET'])
def current_session():
    """
    The signed-in user
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Current user
      403:
        description: No valid session
    """
    user = get_session()
    if user is None:
        raise AuthorizationError()
    return jsonify({'success': True, 'user': user.to_dict()}), 200


@auth_bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh():
    """
    Refresh access token
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: New access token
      401:
        description: Invalid refresh token
    """
    current_user_id = get_jwt_identity()
    new_access_token = create_access_token(identity=current_user_id, expires_delta=ACCESS_TOKEN_TTL)
    return jsonify({'access_token': new_access_token}), 200


@auth_bp.route('/logout', methods=['POST'])
@jwt_required()
def logout():
    """
    Logout user (Revoke token)
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Logout successful
    """
    BLOCKLIST.add(get_jwt()['jti'])
    return jsonify({'success': True, 'message': 'Logout successful'}), 200
