from datetime import datetime

from conftest import bearer


def test_book_and_complete_a_monday_visit(client, api):
    _, admin_token = api.admin()
    admin = bearer(admin_token)

    resp = client.post('/api/doctors', headers=admin, json={
        'full_name': 'Dr Dana', 'email': 'dana@clinic.org', 'password': 'dana-pass-123',
        'specialization': 'General practice'})
    doctor_id = resp.get_json()['data']['id']
    doctor = bearer(api.token_for('dana@clinic.org', 'dana-pass-123'))

    resp = client.post(f'/api/doctors/{doctor_id}/availability', headers=doctor, json={
        'slots': [{'available_day': 'Monday', 'start_time': '09:00', 'end_time': '12:00'}]})
    assert resp.status_code == 201

    patient_id, patient_token = api.account('paul@clinic.org', full_name='Paul')
    patient = bearer(patient_token)

    monday_ten = '2030-01-07T10:00:00'
    assert datetime.fromisoformat(monday_ten).strftime('%A') == 'Monday'
    resp = client.post('/api/appointments', headers=patient, json={
        'patient_id': patient_id, 'doctor_id': doctor_id, 'appointment_time': monday_ten,
        'notes': 'annual check-up'})
    assert resp.status_code == 201
    appt = resp.get_json()['data']
    assert appt['status'] == 'scheduled'
    assert appt['doctor_name'] == 'Dr Dana'

    resp = client.put(f"/api/appointments/{appt['id']}", headers=doctor, json={'status': 'completed'})
    assert resp.status_code == 200

    fetched = client.get(f"/api/appointments/{appt['id']}", headers=patient).get_json()['data']
    assert fetched['status'] == 'completed'
    assert fetched['notes'] == 'annual check-up'

    # completed visits cannot be cancelled afterwards
    resp = client.post(f"/api/appointments/{appt['id']}/cancel", headers=patient, json={'reason': 'oops'})
    assert resp.status_code == 409
    fetched = client.get(f"/api/appointments/{appt['id']}", headers=patient).get_json()['data']
    assert fetched['status'] == 'completed'
    assert fetched['cancellation_reason'] is None
