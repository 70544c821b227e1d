import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app import create_app
from clinic import errors
from clinic.config import (DEV_REFRESH_SECRET_KEY, DEV_SECRET_KEY, ProductionConfig, TestingConfig,
                           validate_config)


class FakePgError(Exception):
    def __init__(self, pgcode):
        super().__init__(f'pg error {pgcode}')
        self.pgcode = pgcode


@pytest.mark.parametrize('orig, expected, status', [
    (FakePgError('23505'), errors.UNIQUE_VIOLATION, 409),
    (FakePgError('23503'), errors.FOREIGN_KEY_VIOLATION, 400),
    (FakePgError('23502'), errors.MISSING_REQUIRED_FIELD, 400),
    (FakePgError('23514'), errors.VALIDATION_ERROR, 400),
    (Exception('UNIQUE constraint failed: users.email'), errors.UNIQUE_VIOLATION, 409),
    (Exception('FOREIGN KEY constraint failed'), errors.FOREIGN_KEY_VIOLATION, 400),
    (Exception('NOT NULL constraint failed: users.full_name'), errors.MISSING_REQUIRED_FIELD, 400),
])
def test_integrity_errors_map_to_the_taxonomy(orig, expected, status):
    mapped = errors.handle_database_error(IntegrityError('INSERT ...', {}, orig))
    assert mapped.code == expected
    assert mapped.status_code == status


def test_other_database_failures_are_generic():
    mapped = errors.handle_database_error(OperationalError('SELECT 1', {}, Exception('server closed')))
    assert isinstance(mapped, errors.DatabaseError)
    assert mapped.status_code == 500


def test_unknown_route_uses_the_error_envelope(client):
    resp = client.get('/api/nowhere')
    assert resp.status_code == 404
    assert resp.get_json() == {'success': False, 'error': 'RES_001',
                               'message': 'Route GET /api/nowhere not found'}


def test_malformed_json_is_a_validation_error(client):
    resp = client.post('/api/auth/login', data='{"email": ', content_type='application/json')
    assert resp.status_code == 400
    assert resp.get_json()['success'] is False


def _app_with_crash(config, **overrides):
    app = create_app(config, overrides)

    @app.route('/boom')
    def boom():
        raise RuntimeError('secret internals')

    return app


def test_unexpected_errors_are_hidden_in_production():
    app = _app_with_crash(ProductionConfig, SQLALCHEMY_DATABASE_URI='sqlite://',
                          SECRET_KEY='prod-access', REFRESH_SECRET_KEY='prod-refresh')
    body = app.test_client().get('/boom').get_json()
    assert body == {'success': False, 'error': 'SRV_001', 'message': 'An unexpected error occurred'}


def test_unexpected_errors_are_detailed_in_development():
    body = _app_with_crash(TestingConfig).test_client().get('/boom').get_json()
    assert body['message'] == 'secret internals'
    assert any('RuntimeError' in line for line in body['stack'])


@pytest.mark.parametrize('secrets', [
    {},
    {'SECRET_KEY': 'same', 'REFRESH_SECRET_KEY': 'same'},
])
def test_production_requires_real_secrets(secrets):
    config = {'ENV_NAME': 'production', 'SECRET_KEY': DEV_SECRET_KEY,
              'REFRESH_SECRET_KEY': DEV_REFRESH_SECRET_KEY}
    config.update(secrets)
    with pytest.raises(RuntimeError):
        validate_config(config)


def test_wrong_method_is_a_client_error(client):
    resp = client.delete('/api/auth/login')
    assert resp.status_code == 405
    assert resp.get_json()['error'] == 'VAL_001'
