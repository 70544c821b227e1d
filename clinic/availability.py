"""Weekly availability templates for doctors.

Slots are recurring (weekday + wall-clock window), never expanded into
calendar dates. Setting availability always replaces the whole set.
"""
from collections import defaultdict

from flask import current_app

from . import errors
from .database import db
from .models import AvailabilitySlot, Doctor


def get_availability(doctor_id):
    if db.session.get(Doctor, doctor_id) is None:
        raise errors.NotFoundError('Doctor')
    return (AvailabilitySlot.query
            .filter_by(doctor_id=doctor_id)
            .order_by(AvailabilitySlot.id)
            .all())


def validate_slots(slots):
    """Check a list of ``(day, start, end)`` tuples.

    Every window must end after it starts, and windows on the same day may
    touch but not overlap.
    """
    by_day = defaultdict(list)
    for index, (day, start, end) in enumerate(slots):
        if start >= end:
            raise errors.ValidationError(
                f'Slot {index}: start_time must be before end_time', code=errors.INVALID_FORMAT)
        by_day[day].append((start, end, index))

    for day, windows in by_day.items():
        windows.sort()
        for (_, prev_end, prev_index), (start, _, index) in zip(windows, windows[1:]):
            if start < prev_end:
                raise errors.ValidationError(
                    f'Slots {prev_index} and {index} overlap on {day}')


def replace_availability(doctor_id, slots):
    """Atomically swap a doctor's slots for ``slots``.

    The delete and the inserts share one transaction, so readers see
    either the old set or the new one.
    """
    if db.session.get(Doctor, doctor_id) is None:
        raise errors.NotFoundError('Doctor')
    validate_slots(slots)

    new_slots = [
        AvailabilitySlot(doctor_id=doctor_id, available_day=day, start_time=start, end_time=end)
        for day, start, end in slots
    ]
    try:
        AvailabilitySlot.query.filter_by(doctor_id=doctor_id).delete(synchronize_session=False)
        db.session.add_all(new_slots)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info('[AVAILABILITY] Doctor %s now has %d slot(s)', doctor_id, len(new_slots))
    return new_slots
