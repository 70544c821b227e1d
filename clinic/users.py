from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError

from . import errors
from .database import db
from .models import Doctor, Patient, Role, User
from .security import check_password, hash_password

USER_FIELDS = ('full_name', 'email', 'phone_number', 'gender', 'dob')
PATIENT_FIELDS = ('medical_history', 'allergies', 'emergency_contact')
DOCTOR_FIELDS = ('specialization', 'license_number', 'experience_years')

INVALID_CREDENTIALS_MESSAGE = 'Email or password is incorrect'


def _normalize_email(email):
    return (email or '').strip().lower()


def check_password_policy(password):
    low = current_app.config['MIN_PASSWORD_LENGTH']
    high = current_app.config['MAX_PASSWORD_LENGTH']
    if not low <= len(password) <= high:
        raise errors.ValidationError(
            f'Password must be between {low} and {high} characters long', code=errors.INVALID_FORMAT)


def get_user_by_email(email):
    return User.query.filter_by(email=_normalize_email(email)).first()


def get_user(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise errors.NotFoundError('User')
    return user


def create_user(profile, password, role):
    """Create a user plus the patient/doctor row that belongs to its role.

    ``profile`` is a plain dict; keys outside the user and role-specific
    profile fields are ignored.
    """
    role = Role(role)
    check_password_policy(password)
    email = _normalize_email(profile.get('email'))
    if get_user_by_email(email) is not None:
        raise errors.ConflictError('A user with this email already exists')

    user = User(
        email=email,
        password_hash=hash_password(password),
        role=role,
        **{field: profile.get(field) for field in USER_FIELDS if field != 'email'}
    )
    db.session.add(user)
    try:
        db.session.flush()
        if role is Role.PATIENT:
            db.session.add(Patient(user_id=user.id, **_pick(profile, PATIENT_FIELDS)))
        elif role is Role.DOCTOR:
            db.session.add(Doctor(user_id=user.id, **_pick(profile, DOCTOR_FIELDS)))
        db.session.commit()
    except IntegrityError as exc:
        # a concurrent registration won the unique index
        db.session.rollback()
        raise errors.handle_database_error(exc)

    current_app.logger.info('[AUTH] Created %s account %s (id %s)', role.value, email, user.id)
    return user


def _pick(data, fields):
    return {field: data[field] for field in fields if data.get(field) is not None}


def verify_credentials(email, password):
    """Return the user for a correct email/password pair.

    Unknown emails and wrong passwords fail with the same message so the
    response does not reveal which accounts exist.
    """
    user = get_user_by_email(email)
    if user is None:
        raise errors.AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

    now = datetime.utcnow()
    locked = user.account_locked_until is not None and user.account_locked_until > now

    if not check_password(password, user.password_hash):
        if not locked:
            _record_failed_login(user, now)
        raise errors.AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

    # only a caller who knows the password learns about the lock
    if locked:
        raise errors.AuthenticationError(
            'Account is temporarily locked after too many failed login attempts',
            code=errors.ACCOUNT_LOCKED)

    if not user.is_active:
        raise errors.AuthenticationError(
            'Your account has been deactivated. Please contact support.',
            code=errors.ACCOUNT_DEACTIVATED)

    user.failed_login_attempts = 0
    user.account_locked_until = None
    user.last_login = now
    db.session.commit()
    return user


def _record_failed_login(user, now):
    user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
    if user.failed_login_attempts >= current_app.config['MAX_FAILED_LOGIN_ATTEMPTS']:
        minutes = current_app.config['ACCOUNT_LOCKOUT_MINUTES']
        user.account_locked_until = now + timedelta(minutes=minutes)
        user.failed_login_attempts = 0
        current_app.logger.warning('[AUTH] Locked account %s for %s minutes', user.id, minutes)
    db.session.commit()


def set_refresh_token(user_id, token):
    user = get_user(user_id)
    user.refresh_token = token
    db.session.commit()


def change_password(user, current_password, new_password):
    if not check_password(current_password, user.password_hash):
        raise errors.AuthenticationError('Current password is incorrect')
    check_password_policy(new_password)
    user.password_hash = hash_password(new_password)
    # sessions opened with the old password end here
    user.refresh_token = None
    db.session.commit()
    current_app.logger.info('[AUTH] Password changed for user %s', user.id)


def set_active(user_id, active):
    """Deactivate or reactivate an account. Users are never hard-deleted."""
    user = get_user(user_id)
    user.is_active = active
    if not active:
        user.refresh_token = None
    db.session.commit()
    current_app.logger.info('[ADMIN] User %s %s', user.id, 'reactivated' if active else 'deactivated')
    return user


def _apply(target, changes, fields):
    for field in fields:
        if field in changes:
            setattr(target, field, changes[field])


def _update_profile(user, changes):
    if 'email' in changes:
        changes['email'] = _normalize_email(changes['email'])
        other = get_user_by_email(changes['email'])
        if other is not None and other.id != user.id:
            raise errors.ConflictError('A user with this email already exists')
    _apply(user, changes, USER_FIELDS)


def get_patient(user_id):
    patient = db.session.get(Patient, user_id)
    if patient is None:
        raise errors.NotFoundError('Patient')
    return patient


def update_patient(user_id, changes):
    patient = get_patient(user_id)
    _update_profile(patient.user, changes)
    _apply(patient, changes, PATIENT_FIELDS)
    db.session.commit()
    return patient


def list_doctors():
    return (Doctor.query.join(User)
            .filter(User.is_active.is_(True))
            .order_by(User.full_name)
            .all())


def get_doctor(user_id):
    doctor = db.session.get(Doctor, user_id)
    if doctor is None:
        raise errors.NotFoundError('Doctor')
    return doctor


def update_doctor(user_id, changes):
    doctor = get_doctor(user_id)
    _update_profile(doctor.user, changes)
    _apply(doctor, changes, DOCTOR_FIELDS)
    db.session.commit()
    return doctor


def ensure_default_admin(email, password):
    """Create the admin account on a fresh database."""
    if User.query.filter_by(role=Role.ADMIN).first() is not None:
        return None
    admin = User(full_name='Administrator', email=_normalize_email(email),
                 password_hash=hash_password(password), role=Role.ADMIN)
    db.session.add(admin)
    db.session.commit()
    current_app.logger.info('[ADMIN] Created default admin account %s', admin.email)
    return admin
