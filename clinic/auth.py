"""Request guards: bearer-token authentication and role/ownership checks.

Stack them under the route decorator, ``authenticate`` first::

    @api.route('/patients/<int:user_id>')
    @authenticate
    @require_ownership_or_admin('user_id')
    def get_patient(user_id): ...
"""
from functools import wraps

from flask import g, request

from . import errors
from .database import db
from .models import Role, User
from .security import verify_access_token


def current_user():
    return g.current_user


def _bearer_token():
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def authenticate(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        token = _bearer_token()
        if token is None:
            raise errors.AuthenticationError('Access token required', code=errors.UNAUTHORIZED)
        claims = verify_access_token(token)
        user = db.session.get(User, claims.get('user_id'))
        if user is None:
            raise errors.AuthenticationError('User not found', code=errors.TOKEN_INVALID)
        if not user.is_active:
            raise errors.AuthenticationError(
                'Your account has been deactivated. Please contact support.',
                code=errors.ACCOUNT_DEACTIVATED)
        g.current_user = user
        return view(*args, **kwargs)
    return wrapper


def _caller():
    user = g.get('current_user')
    if user is None:
        raise errors.AuthenticationError('Authentication required', code=errors.UNAUTHORIZED)
    return user


def has_full_access(role):
    """Whether ``role`` may see every record without an ownership check."""
    if role is Role.ADMIN:
        return True
    if role is Role.DOCTOR or role is Role.PATIENT:
        return False
    raise AssertionError(f'unhandled role {role!r}')


def require_role(*roles):
    allowed = {Role(role) for role in roles}

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            user = _caller()
            if user.role not in allowed:
                names = ', '.join(sorted(role.value for role in allowed))
                raise errors.AuthorizationError(
                    f'Access denied. Required roles: {names}. Your role: {user.role.value}')
            return view(*args, **kwargs)
        return wrapper
    return decorator


def _ownership_value(field, view_args):
    if field in view_args:
        return view_args[field]
    body = request.get_json(silent=True)
    if isinstance(body, dict):
        return body.get(field)
    return None


def require_ownership_or_admin(field='user_id'):
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            user = _caller()
            if has_full_access(user.role):
                return view(*args, **kwargs)
            owner = _ownership_value(field, kwargs)
            if owner is None or owner == '':
                raise errors.ValidationError('User ID is required to verify ownership',
                                             code=errors.MISSING_REQUIRED_FIELD)
            try:
                owner = int(owner)
            except (TypeError, ValueError):
                raise errors.ValidationError(f'{field} must be an integer', code=errors.INVALID_FORMAT)
            if owner != user.id:
                raise errors.AuthorizationError('You can only access your own resources')
            return view(*args, **kwargs)
        return wrapper
    return decorator


def require_appointment_access():
    """Admins and doctors pass. Patients pass too; the view must then check
    the appointment's ``patient_id`` with :func:`ensure_appointment_owner`."""
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            _caller()
            return view(*args, **kwargs)
        return wrapper
    return decorator


def ensure_appointment_owner(appointment):
    user = _caller()
    if user.role is Role.PATIENT and appointment.patient_id != user.id:
        raise errors.AuthorizationError('You can only access your own appointments')
