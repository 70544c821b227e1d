import pytest
from sqlalchemy.exc import IntegrityError

from clinic import errors
from clinic.availability import get_availability, replace_availability, validate_slots
from clinic.database import db
from clinic.schemas import SlotIn
from conftest import bearer

MONDAY_MORNING = {'available_day': 'Monday', 'start_time': '09:00', 'end_time': '12:00'}


def _post(client, doctor_id, token, slots):
    return client.post(f'/api/doctors/{doctor_id}/availability',
                       headers=bearer(token), json={'slots': slots})


def _windows(*slots):
    return [(s.available_day,) + s.times() for s in (SlotIn(**raw) for raw in slots)]


@pytest.fixture
def doctor(api):
    return api.account('doc@clinic.org', role='doctor')


def test_set_then_get_keeps_insertion_order(client, doctor):
    doctor_id, token = doctor
    slots = [
        {'available_day': 'Wednesday', 'start_time': '14:00', 'end_time': '17:00'},
        MONDAY_MORNING,
        {'available_day': 'Monday', 'start_time': '13:00', 'end_time': '15:30'},
    ]
    resp = _post(client, doctor_id, token, slots)
    assert resp.status_code == 201

    listed = client.get(f'/api/doctors/{doctor_id}/availability').get_json()['data']
    assert [(s['available_day'], s['start_time'], s['end_time']) for s in listed] == [
        ('Wednesday', '14:00', '17:00'), ('Monday', '09:00', '12:00'), ('Monday', '13:00', '15:30')]


def test_replace_with_empty_list_clears_everything(client, doctor):
    doctor_id, token = doctor
    _post(client, doctor_id, token, [MONDAY_MORNING])

    resp = _post(client, doctor_id, token, [])
    assert resp.status_code == 201
    assert client.get(f'/api/doctors/{doctor_id}/availability').get_json()['data'] == []


def test_replace_always_leaves_exactly_the_new_slots(doctor):
    doctor_id, _ = doctor
    replace_availability(doctor_id, _windows(
        MONDAY_MORNING,
        {'available_day': 'Tuesday', 'start_time': '09:00', 'end_time': '10:00'},
        {'available_day': 'Friday', 'start_time': '08:00', 'end_time': '09:00'},
    ))
    replace_availability(doctor_id, _windows(MONDAY_MORNING, dict(MONDAY_MORNING, available_day='Sunday')))
    assert len(get_availability(doctor_id)) == 2

    replace_availability(doctor_id, _windows(MONDAY_MORNING, dict(MONDAY_MORNING, available_day='Sunday')))
    assert len(get_availability(doctor_id)) == 2


@pytest.mark.parametrize('slot', [
    {'available_day': 'Monday', 'start_time': '12:00', 'end_time': '09:00'},
    {'available_day': 'Monday', 'start_time': '09:00', 'end_time': '09:00'},
    {'available_day': 'Someday', 'start_time': '09:00', 'end_time': '10:00'},
    {'available_day': 'Monday', 'start_time': '9am', 'end_time': '10:00'},
    {'available_day': 'Monday', 'start_time': '24:00', 'end_time': '10:00'},
])
def test_invalid_slots_are_rejected_and_old_set_kept(client, doctor, slot):
    doctor_id, token = doctor
    _post(client, doctor_id, token, [MONDAY_MORNING])

    resp = _post(client, doctor_id, token, [slot])
    assert resp.status_code == 400

    listed = client.get(f'/api/doctors/{doctor_id}/availability').get_json()['data']
    assert len(listed) == 1


def test_overlapping_slots_on_the_same_day_are_rejected(client, doctor):
    doctor_id, token = doctor
    resp = _post(client, doctor_id, token, [
        MONDAY_MORNING, {'available_day': 'Monday', 'start_time': '11:30', 'end_time': '13:00'}])
    assert resp.status_code == 400
    assert 'overlap' in resp.get_json()['message']


def test_adjacent_and_other_day_slots_are_fine():
    validate_slots(_windows(
        MONDAY_MORNING,
        {'available_day': 'Monday', 'start_time': '12:00', 'end_time': '13:00'},
        {'available_day': 'Tuesday', 'start_time': '10:00', 'end_time': '11:00'},
    ))


def test_only_the_doctor_or_an_admin_may_set_availability(client, api, doctor):
    doctor_id, _ = doctor
    _, other_doctor_token = api.account('other@clinic.org', role='doctor')
    _, patient_token = api.account('pat@clinic.org')
    _, admin_token = api.admin()

    assert _post(client, doctor_id, other_doctor_token, [MONDAY_MORNING]).status_code == 403
    assert _post(client, doctor_id, patient_token, [MONDAY_MORNING]).status_code == 403
    assert _post(client, doctor_id, admin_token, [MONDAY_MORNING]).status_code == 201
    assert client.post(f'/api/doctors/{doctor_id}/availability',
                       json={'slots': []}).status_code == 401


def test_unknown_doctor(client, app):
    assert client.get('/api/doctors/999/availability').status_code == 404
    with pytest.raises(errors.NotFoundError):
        replace_availability(999, [])


def test_slots_must_be_a_list(client, doctor):
    doctor_id, token = doctor
    resp = client.post(f'/api/doctors/{doctor_id}/availability',
                       headers=bearer(token), json={'slots': 'Monday 9-12'})
    assert resp.status_code == 400


def test_failed_replace_keeps_the_previous_slots(doctor, monkeypatch):
    doctor_id, _ = doctor
    replace_availability(doctor_id, _windows(MONDAY_MORNING))

    def failing_commit():
        raise IntegrityError('INSERT INTO doctor_availability ...', {}, Exception('disk full'))

    monkeypatch.setattr(db.session(), 'commit', failing_commit)
    with pytest.raises(IntegrityError):
        replace_availability(doctor_id, _windows(
            {'available_day': 'Tuesday', 'start_time': '09:00', 'end_time': '10:00'}))
    monkeypatch.undo()

    assert [slot.available_day for slot in get_availability(doctor_id)] == ['Monday']
