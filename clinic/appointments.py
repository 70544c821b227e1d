"""Appointment storage and the booking workflow.

Booking does not check the doctor's availability windows or other bookings
at the same time: two patients can hold the same slot. Status moves only
from ``scheduled`` to ``completed`` or ``cancelled``; both are final.
"""
from datetime import datetime

from flask import current_app

from . import errors
from .database import db
from .models import Appointment, AppointmentStatus, Doctor, Patient


def _require_party(model, key, label):
    party = db.session.get(model, key)
    if party is None:
        raise errors.ValidationError(f'Referenced {label} does not exist', code=errors.FOREIGN_KEY_VIOLATION)
    if not party.user.is_active:
        raise errors.ValidationError(f'The {label} account is deactivated and cannot be booked')


def create_appointment(patient_id, doctor_id, appointment_time, notes=None):
    _require_party(Patient, patient_id, 'patient')
    _require_party(Doctor, doctor_id, 'doctor')

    appt = Appointment(
        patient_id=patient_id,
        doctor_id=doctor_id,
        appointment_time=appointment_time,
        notes=notes,
        status=AppointmentStatus.SCHEDULED,
    )
    db.session.add(appt)
    db.session.commit()
    current_app.logger.info('[APPOINTMENT] Booked %s: patient %s with doctor %s at %s',
                            appt.id, patient_id, doctor_id, appointment_time.isoformat())
    return appt


def list_appointments(patient_id=None, doctor_id=None, status=None, active=False,
                      page=None, limit=None):
    """Appointments newest first, optionally filtered and paginated.

    ``active`` keeps only bookings that are still scheduled. Without
    ``page``/``limit`` every match is returned.
    """
    query = Appointment.query
    if patient_id is not None:
        query = query.filter(Appointment.patient_id == patient_id)
    if doctor_id is not None:
        query = query.filter(Appointment.doctor_id == doctor_id)
    if status is not None:
        query = query.filter(Appointment.status == AppointmentStatus(status))
    if active:
        query = query.filter(Appointment.status == AppointmentStatus.SCHEDULED)
    query = query.order_by(Appointment.appointment_time.desc(), Appointment.id.desc())

    if page is None and limit is None:
        return query.all()
    page = page or 1
    limit = min(limit or current_app.config['DEFAULT_PAGE_LIMIT'], current_app.config['MAX_PAGE_LIMIT'])
    return query.limit(limit).offset((page - 1) * limit).all()


def get_appointment(appointment_id):
    appt = db.session.get(Appointment, appointment_id)
    if appt is None:
        raise errors.NotFoundError('Appointment')
    return appt


def _transition(appt, new_status):
    if appt.status is new_status and not new_status.is_terminal:
        return
    if appt.status.is_terminal:
        raise errors.ConflictError(
            f'Appointment is already {appt.status.value} and cannot become {new_status.value}',
            code=errors.INVALID_STATE)
    appt.status = new_status


def update_appointment(appointment_id, changes):
    """Apply only the fields present in ``changes``.

    Finished appointments keep their time and status; notes stay editable.
    """
    appt = get_appointment(appointment_id)
    was_terminal = appt.status.is_terminal
    if 'status' in changes:
        _transition(appt, AppointmentStatus(changes['status']))
    if 'appointment_time' in changes:
        if was_terminal:
            raise errors.ConflictError(
                f'Cannot reschedule a {appt.status.value} appointment', code=errors.INVALID_STATE)
        appt.appointment_time = changes['appointment_time']
    if 'notes' in changes:
        appt.notes = changes['notes']
    appt.updated_at = datetime.utcnow()
    db.session.commit()
    return appt


def cancel_appointment(appointment_id, reason=None):
    appt = get_appointment(appointment_id)
    _transition(appt, AppointmentStatus.CANCELLED)
    appt.cancellation_reason = reason
    appt.updated_at = datetime.utcnow()
    db.session.commit()
    current_app.logger.info('[APPOINTMENT] Cancelled %s', appt.id)
    return appt


def complete_appointment(appointment_id):
    appt = update_appointment(appointment_id, {'status': AppointmentStatus.COMPLETED})
    current_app.logger.info('[APPOINTMENT] Marked %s as completed', appt.id)
    return appt


def delete_appointment(appointment_id):
    """Hard delete, kept for admins. Prefer :func:`cancel_appointment`."""
    appt = get_appointment(appointment_id)
    snapshot = appt.to_dict()
    db.session.delete(appt)
    db.session.commit()
    current_app.logger.warning('[APPOINTMENT] Deleted %s permanently', appointment_id)
    return snapshot
