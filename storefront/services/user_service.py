"""
User Service — phone-number accounts.
"""

import logging
from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from storefront.extensions import db
from storefront.errors import ConflictError, NotFoundError, PersistenceError
from storefront.models import User
from storefront.services.order_service import parse_uuid

logger = logging.getLogger(__name__)


def _commit(action):
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError('Phone number or email already in use', error_code='DUPLICATE_USER')
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('Database error %s: %s', action, e)
        raise PersistenceError('Database error')


def sign_in_with_phone(phone_number):
    """
    Find the user owning a verified phone number, creating one on first sign-in.
    New users get the phone number as a temporary name and a placeholder email.
    """
    user = User.query.filter_by(phone_number=phone_number).first()
    if user is None:
        domain = current_app.config['TEMP_EMAIL_DOMAIN']
        user = User(
            name=phone_number,
            email=f'{phone_number}@{domain}',
            phone_number=phone_number,
            phone_number_verified=True,
        )
        db.session.add(user)
        _commit('creating user')
        logger.info('Signed up user %s on phone verification', user.user_id)
        return user

    if not user.phone_number_verified:
        user.phone_number_verified = True
        _commit('verifying phone number')
    return user


def create_anonymous_user():
    user = User(name='Anonymous', is_anonymous=True)
    db.session.add(user)
    _commit('creating anonymous user')
    return user


def link_phone(user_id, phone_number):
    user_uuid = parse_uuid(user_id)
    user = db.session.get(User, user_uuid) if user_uuid else None
    if not user:
        raise NotFoundError('User not found', error_code='USER_NOT_FOUND')

    user.phone_number = phone_number
    user.phone_number_verified = True
    _commit('linking phone number')
    return user
