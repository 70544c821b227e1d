import traceback

import pydantic
from flask import current_app, jsonify, request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .database import db

# Codes returned in the "error" field of every failed response
INVALID_CREDENTIALS = 'AUTH_001'
TOKEN_EXPIRED = 'AUTH_002'
TOKEN_INVALID = 'AUTH_003'
ACCOUNT_LOCKED = 'AUTH_004'
ACCOUNT_DEACTIVATED = 'AUTH_005'
UNAUTHORIZED = 'AUTH_006'
FORBIDDEN = 'AUTH_007'

VALIDATION_ERROR = 'VAL_001'
MISSING_REQUIRED_FIELD = 'VAL_002'
INVALID_FORMAT = 'VAL_003'

NOT_FOUND = 'RES_001'
ALREADY_EXISTS = 'RES_002'
CONFLICT = 'RES_003'
INVALID_STATE = 'RES_004'

DATABASE_ERROR = 'DB_001'
UNIQUE_VIOLATION = 'DB_002'
FOREIGN_KEY_VIOLATION = 'DB_003'

RATE_LIMITED = 'SRV_003'
INTERNAL_ERROR = 'SRV_001'

# PostgreSQL SQLSTATE values
PG_UNIQUE_VIOLATION = '23505'
PG_FOREIGN_KEY_VIOLATION = '23503'
PG_NOT_NULL_VIOLATION = '23502'
PG_CHECK_VIOLATION = '23514'

HTTP_CODES = {
    400: VALIDATION_ERROR,
    401: UNAUTHORIZED,
    403: FORBIDDEN,
    404: NOT_FOUND,
    409: CONFLICT,
    429: RATE_LIMITED,
}


class AppError(Exception):
    """Base class for errors that map onto an API response."""

    status_code = 500
    code = INTERNAL_ERROR

    def __init__(self, message, code=None, status_code=None, details=None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self):
        body = {'success': False, 'error': self.code, 'message': self.message}
        if self.details:
            body['details'] = self.details
        return body


class ValidationError(AppError):
    status_code = 400
    code = VALIDATION_ERROR


class AuthenticationError(AppError):
    status_code = 401
    code = INVALID_CREDENTIALS

    def __init__(self, message='Authentication failed', code=None):
        super().__init__(message, code=code)


class AuthorizationError(AppError):
    status_code = 403
    code = FORBIDDEN

    def __init__(self, message='Access denied'):
        super().__init__(message)


class NotFoundError(AppError):
    status_code = 404
    code = NOT_FOUND

    def __init__(self, resource='Resource'):
        super().__init__(f'{resource} not found')


class ConflictError(AppError):
    status_code = 409
    code = ALREADY_EXISTS


class DatabaseError(AppError):
    status_code = 500
    code = DATABASE_ERROR

    def __init__(self, message='Database operation failed'):
        super().__init__(message)


def handle_database_error(exc):
    """Translate a driver-level failure into an AppError."""
    if not isinstance(exc, IntegrityError):
        return DatabaseError()

    orig = getattr(exc, 'orig', None)
    pgcode = getattr(orig, 'pgcode', None)
    text = str(orig or exc).lower()

    if pgcode == PG_UNIQUE_VIOLATION or 'unique' in text:
        return ConflictError('A record with this value already exists', code=UNIQUE_VIOLATION)
    if pgcode == PG_FOREIGN_KEY_VIOLATION or 'foreign key' in text:
        return ValidationError('Referenced record does not exist', code=FOREIGN_KEY_VIOLATION)
    if pgcode == PG_NOT_NULL_VIOLATION or 'not null' in text:
        return ValidationError('Required field is missing', code=MISSING_REQUIRED_FIELD)
    if pgcode == PG_CHECK_VIOLATION or 'check constraint' in text:
        return ValidationError('Invalid data value')
    return DatabaseError()


def _pydantic_details(exc):
    return [
        {'field': '.'.join(str(part) for part in err['loc']), 'message': err['msg']}
        for err in exc.errors()
    ]


def register_error_handlers(app):

    @app.errorhandler(AppError)
    def app_error(err):
        if err.status_code >= 500:
            app.logger.error('[ERROR] %s %s: %s', request.method, request.path, err.message)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(pydantic.ValidationError)
    def validation_error(err):
        body = ValidationError('Validation failed', details=_pydantic_details(err))
        return jsonify(body.to_dict()), 400

    @app.errorhandler(HTTPException)
    def http_error(err):
        code = HTTP_CODES.get(err.code, VALIDATION_ERROR if err.code < 500 else INTERNAL_ERROR)
        if err.code == 404:
            message = f'Route {request.method} {request.path} not found'
        else:
            message = err.description
        return jsonify({'success': False, 'error': code, 'message': message}), err.code

    @app.errorhandler(SQLAlchemyError)
    def database_error(err):
        db.session.rollback()
        mapped = handle_database_error(err)
        app.logger.warning('[DB] %s %s: %s', request.method, request.path, err)
        return jsonify(mapped.to_dict()), mapped.status_code

    @app.errorhandler(Exception)
    def unexpected_error(err):
        app.logger.exception('[ERROR] Unhandled exception on %s %s', request.method, request.path)
        body = {'success': False, 'error': INTERNAL_ERROR}
        if current_app.config.get('ENV_NAME') == 'production':
            body['message'] = 'An unexpected error occurred'
        else:
            body['message'] = str(err)
            body['stack'] = traceback.format_exception(type(err), err, err.__traceback__)
        return jsonify(body), 500
