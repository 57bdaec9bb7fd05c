"""
Session lookup shared by the routes.
A session is a valid JWT access token whose identity is an existing user.
"""

import logging
from datetime import timedelta
from flask_jwt_extended import (
    create_access_token,
    create_refresh_token,
    get_jwt_identity,
    verify_jwt_in_request,
)
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from storefront.extensions import db
from storefront.models import User
from storefront.services.order_service import parse_uuid

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TTL = timedelta(minutes=15)
REFRESH_TOKEN_TTL = timedelta(days=7)


def get_session():
    """Return the signed-in User, or None for missing, invalid or revoked tokens."""
    try:
        verify_jwt_in_request(optional=True)
    except (JWTExtendedException, PyJWTError) as e:
        logger.info("Rejected session token: %s", type(e).__name__)
        return None

    identity = get_jwt_identity()
    user_id = parse_uuid(identity) if identity else None
    if user_id is None:
        return None
    return db.session.get(User, user_id)


def issue_tokens(user):
    identity = str(user.user_id)
    return {
        'access_token': create_access_token(identity=identity, expires_delta=ACCESS_TOKEN_TTL),
        'refresh_token': create_refresh_token(identity=identity, expires_delta=REFRESH_TOKEN_TTL),
    }
