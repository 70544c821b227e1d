"""Password hashing and signed access/refresh tokens.

Access tokens are stateless and short-lived. Refresh tokens are long-lived
and only accepted while they match the value stored on the user row, so a
new login (or logout) revokes whatever session came before it.
"""
import uuid

import bcrypt
from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from . import errors
from .database import db
from .models import User

ACCESS_SALT = 'clinic-access-token'
REFRESH_SALT = 'clinic-refresh-token'


def hash_password(password: str, rounds: int = None) -> str:
    if rounds is None:
        rounds = current_app.config['BCRYPT_ROUNDS']
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds)).decode('utf-8')


def check_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # malformed stored hash
        return False


def _access_serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=ACCESS_SALT)


def _refresh_serializer():
    return URLSafeTimedSerializer(current_app.config['REFRESH_SECRET_KEY'], salt=REFRESH_SALT)


def _claims(user_id, email, role):
    return {
        'user_id': user_id,
        'email': email,
        'role': role.value if hasattr(role, 'value') else role,
        # two pairs issued within the same second must still differ
        'jti': uuid.uuid4().hex,
    }


def issue_token_pair(user_id, email, role):
    return {
        'access_token': _access_serializer().dumps(_claims(user_id, email, role)),
        'refresh_token': _refresh_serializer().dumps(_claims(user_id, email, role)),
    }


def _load(serializer, token, max_age):
    if not token or not isinstance(token, str):
        raise errors.AuthenticationError('Token is missing', code=errors.TOKEN_INVALID)
    try:
        return serializer.loads(token, max_age=max_age)
    except SignatureExpired:
        raise errors.AuthenticationError('Token has expired', code=errors.TOKEN_EXPIRED)
    except BadSignature:
        raise errors.AuthenticationError('Token is invalid', code=errors.TOKEN_INVALID)


def verify_access_token(token):
    return _load(_access_serializer(), token, current_app.config['ACCESS_TOKEN_EXPIRES'])


def verify_refresh_token(token):
    return _load(_refresh_serializer(), token, current_app.config['REFRESH_TOKEN_EXPIRES'])


def rotate_refresh_token(old_token):
    """Exchange a refresh token for a new pair, revoking the old one."""
    claims = verify_refresh_token(old_token)
    user = db.session.get(User, claims.get('user_id'))
    if user is None or user.refresh_token != old_token:
        raise errors.AuthenticationError('Refresh token is invalid or expired', code=errors.TOKEN_INVALID)
    if not user.is_active:
        raise errors.AuthenticationError('Your account has been deactivated', code=errors.ACCOUNT_DEACTIVATED)

    tokens = issue_token_pair(user.id, user.email, user.role)
    user.refresh_token = tokens['refresh_token']
    db.session.commit()
    current_app.logger.info('[AUTH] Rotated refresh token for user %s', user.id)
    return user, tokens
