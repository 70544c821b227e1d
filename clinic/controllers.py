from flask import Blueprint, current_app, jsonify, request

from . import appointments, availability, errors, schemas, users
from .auth import (authenticate, current_user, ensure_appointment_owner, require_appointment_access,
                   require_ownership_or_admin, require_role)
from .models import AppointmentStatus, Role
from .security import issue_token_pair, rotate_refresh_token

api = Blueprint('api', __name__)


def _body(schema):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise errors.ValidationError('Request body must be a JSON object', code=errors.INVALID_FORMAT)
    return schema.model_validate(data)


def _changes(model):
    # None means "leave unchanged", like the old COALESCE updates
    return model.model_dump(exclude_none=True)


def ok(data=None, message=None, status=200):
    body = {'success': True}
    if message:
        body['message'] = message
    if data is not None:
        body['data'] = data
    return jsonify(body), status


def _int_arg(name):
    value = request.args.get(name)
    if value in (None, ''):
        return None
    try:
        number = int(value)
    except ValueError:
        raise errors.ValidationError(f'{name} must be an integer', code=errors.INVALID_FORMAT)
    if number < 1:
        raise errors.ValidationError(f'{name} must be positive', code=errors.INVALID_FORMAT)
    return number


def _session_payload(user, tokens):
    return {
        'user': {'id': user.id, 'full_name': user.full_name, 'email': user.email, 'role': user.role.value},
        'tokens': tokens,
    }


def _start_session(user):
    tokens = issue_token_pair(user.id, user.email, user.role)
    users.set_refresh_token(user.id, tokens['refresh_token'])
    return tokens


# ===== AUTH =====

@api.route('/auth/register', methods=['POST'])
def register():
    """Create a patient or doctor account and log it in."""
    data = _body(schemas.RegisterRequest)
    user = users.create_user(data.model_dump(), data.password, data.role)
    tokens = _start_session(user)
    return ok(_session_payload(user, tokens), 'User registered successfully', 201)


@api.route('/auth/login', methods=['POST'])
def login():
    data = _body(schemas.LoginRequest)
    user = users.verify_credentials(data.email, data.password)
    tokens = _start_session(user)
    current_app.logger.info('[AUTH] User %s logged in', user.id)
    return ok(_session_payload(user, tokens), 'Login successful')


@api.route('/auth/refresh', methods=['POST'])
def refresh():
    data = _body(schemas.RefreshRequest)
    user, tokens = rotate_refresh_token(data.refresh_token)
    return ok({'tokens': tokens}, 'Token refreshed successfully')


@api.route('/auth/logout', methods=['POST'])
@authenticate
def logout():
    """Forget the stored refresh token. Cleanup failures never block logout."""
    user = current_user()
    try:
        users.set_refresh_token(user.id, None)
    except Exception:
        current_app.logger.exception('[AUTH] Could not clear refresh token for user %s', user.id)
    return ok(message='Logout successful')


@api.route('/auth/me', methods=['GET'])
@authenticate
def me():
    return ok({'user': current_user().to_dict()})


@api.route('/auth/change-password', methods=['PUT'])
@authenticate
def change_password():
    data = _body(schemas.ChangePasswordRequest)
    users.change_password(current_user(), data.current_password, data.new_password)
    return ok(message='Password changed successfully')


# ===== PATIENTS =====

@api.route('/patients', methods=['POST'])
@authenticate
@require_role(Role.ADMIN)
def create_patient():
    data = _body(schemas.PatientCreate)
    user = users.create_user(data.model_dump(), data.password, Role.PATIENT)
    return ok(user.patient.to_dict(), 'Patient created', 201)


@api.route('/patients/<int:user_id>', methods=['GET'])
@authenticate
@require_ownership_or_admin('user_id')
def get_patient(user_id):
    return ok(users.get_patient(user_id).to_dict())


@api.route('/patients/<int:user_id>', methods=['PUT'])
@authenticate
@require_ownership_or_admin('user_id')
def update_patient(user_id):
    data = _body(schemas.PatientUpdate)
    return ok(users.update_patient(user_id, _changes(data)).to_dict(), 'Patient updated')


# ===== DOCTORS =====

@api.route('/doctors', methods=['GET'])
def list_doctors():
    return ok([doctor.to_dict() for doctor in users.list_doctors()])


@api.route('/doctors/<int:doctor_id>', methods=['GET'])
def get_doctor(doctor_id):
    return ok(users.get_doctor(doctor_id).to_dict())


@api.route('/doctors', methods=['POST'])
@authenticate
@require_role(Role.ADMIN)
def create_doctor():
    data = _body(schemas.DoctorCreate)
    user = users.create_user(data.model_dump(), data.password, Role.DOCTOR)
    return ok(user.doctor.to_dict(), 'Doctor created', 201)


@api.route('/doctors/<int:doctor_id>', methods=['PUT'])
@authenticate
@require_role(Role.DOCTOR, Role.ADMIN)
@require_ownership_or_admin('doctor_id')
def update_doctor(doctor_id):
    data = _body(schemas.DoctorUpdate)
    return ok(users.update_doctor(doctor_id, _changes(data)).to_dict(), 'Doctor updated')


# ===== DOCTOR AVAILABILITY =====

@api.route('/doctors/<int:doctor_id>/availability', methods=['GET'])
def get_availability(doctor_id):
    """Weekly slots for one doctor, in the order they were set."""
    slots = availability.get_availability(doctor_id)
    return ok([slot.to_dict() for slot in slots])


@api.route('/doctors/<int:doctor_id>/availability', methods=['POST'])
@authenticate
@require_role(Role.DOCTOR, Role.ADMIN)
@require_ownership_or_admin('doctor_id')
def set_availability(doctor_id):
    """Replace every slot of the doctor with the posted list."""
    data = _body(schemas.AvailabilityRequest)
    windows = [(slot.available_day,) + slot.times() for slot in data.slots]
    slots = availability.replace_availability(doctor_id, windows)
    return ok([slot.to_dict() for slot in slots], 'Availability updated', 201)


# ===== APPOINTMENTS =====

@api.route('/appointments', methods=['POST'])
@authenticate
def create_appointment():
    data = _body(schemas.AppointmentCreate)
    user = current_user()
    if user.role is Role.PATIENT and data.patient_id != user.id:
        raise errors.AuthorizationError('Patients can only book appointments for themselves')
    appt = appointments.create_appointment(data.patient_id, data.doctor_id,
                                           data.appointment_time, data.notes)
    return ok(appt.to_dict(), 'Appointment created', 201)


@api.route('/appointments', methods=['GET'])
@authenticate
def list_appointments():
    """All appointments, newest first. Patients only ever see their own."""
    user = current_user()
    status = request.args.get('status') or None
    if status is not None and status not in {s.value for s in AppointmentStatus}:
        raise errors.ValidationError(f"Unknown status '{status}'", code=errors.INVALID_FORMAT)

    patient_id = _int_arg('patient_id')
    if user.role is Role.PATIENT:
        patient_id = user.id
    found = appointments.list_appointments(
        patient_id=patient_id,
        doctor_id=_int_arg('doctor_id'),
        status=status,
        active=request.args.get('active', '').lower() in ('1', 'true', 'yes'),
        page=_int_arg('page'),
        limit=_int_arg('limit'),
    )
    return ok([appt.to_dict() for appt in found])


@api.route('/appointments/<int:appointment_id>', methods=['GET'])
@authenticate
@require_appointment_access()
def get_appointment(appointment_id):
    appt = appointments.get_appointment(appointment_id)
    ensure_appointment_owner(appt)
    return ok(appt.to_dict())


@api.route('/appointments/<int:appointment_id>', methods=['PUT'])
@authenticate
@require_appointment_access()
def update_appointment(appointment_id):
    data = _body(schemas.AppointmentUpdate)
    ensure_appointment_owner(appointments.get_appointment(appointment_id))
    changes = _changes(data)
    if current_user().role is Role.PATIENT and changes.get('status') is AppointmentStatus.COMPLETED:
        raise errors.AuthorizationError('Only doctors and admins can complete appointments')
    appt = appointments.update_appointment(appointment_id, changes)
    return ok(appt.to_dict(), 'Appointment updated')


@api.route('/appointments/<int:appointment_id>/cancel', methods=['POST'])
@authenticate
@require_appointment_access()
def cancel_appointment(appointment_id):
    data = schemas.CancelRequest.model_validate(request.get_json(silent=True) or {})
    ensure_appointment_owner(appointments.get_appointment(appointment_id))
    appt = appointments.cancel_appointment(appointment_id, data.reason)
    return ok(appt.to_dict(), 'Appointment cancelled')


@api.route('/appointments/<int:appointment_id>/complete', methods=['POST'])
@authenticate
@require_role(Role.DOCTOR, Role.ADMIN)
def complete_appointment(appointment_id):
    appt = appointments.complete_appointment(appointment_id)
    return ok(appt.to_dict(), 'Appointment completed')


@api.route('/appointments/<int:appointment_id>', methods=['DELETE'])
@authenticate
@require_role(Role.ADMIN)
def delete_appointment(appointment_id):
    """Deprecated hard delete; cancel instead."""
    return ok(appointments.delete_appointment(appointment_id), 'Appointment deleted')


# ===== ADMIN: ACCOUNTS =====

@api.route('/users/<int:user_id>/deactivate', methods=['POST'])
@authenticate
@require_role(Role.ADMIN)
def deactivate_user(user_id):
    """Soft delete: the account stays, but can no longer log in."""
    if user_id == current_user().id:
        raise errors.ValidationError('Admins cannot deactivate their own account')
    return ok(users.set_active(user_id, False).to_dict(), 'User deactivated')


@api.route('/users/<int:user_id>/reactivate', methods=['POST'])
@authenticate
@require_role(Role.ADMIN)
def reactivate_user(user_id):
    return ok(users.set_active(user_id, True).to_dict(), 'User reactivated')
