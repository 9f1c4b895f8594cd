from medvault_pkg import db
from medvault_pkg.models import Appointment
from medvault_pkg.sockets import socketio


def _approve(client, doctor, patient, scope='all'):
    request_id = client.post('/api/access-requests', headers=doctor["headers"],
                             json={"patient_id": patient["id"], "scope": scope}).get_json()["access_request"]["id"]
    client.post(f'/api/access-requests/{request_id}/approve', headers=patient["headers"])


def _patient_row(client, doctor, patient):
    listing = client.get('/api/doctor/patients', headers=doctor["headers"]).get_json()
    return next(p for p in listing["patients"] if p["user_id"] == patient["id"]), listing


def test_patient_list_badges(client, register):
    doctor, patient = register('doctor'), register('patient')

    row, listing = _patient_row(client, doctor, patient)
    assert row["access_status"] == 'none'
    assert row["action"] == 'request_access'
    assert listing["pending_requests"] == 0

    client.post('/api/access-requests', headers=doctor["headers"], json={"patient_id": patient["id"]})
    row, listing = _patient_row(client, doctor, patient)
    assert row["action"] == 'request_access'
    assert listing["pending_requests"] == 1


def test_approved_patient_shows_view_records(client, register):
    doctor, patient = register('doctor'), register('patient')
    _approve(client, doctor, patient)

    row, listing = _patient_row(client, doctor, patient)
    assert row["access_status"] == 'approved'
    assert row["action"] == 'view_records'
    assert listing["pending_requests"] == 0


def test_records_are_gated_by_access(client, register):
    doctor, patient = register('doctor'), register('patient', first_name='Ann', last_name='Lee')
    client.post('/api/reports', headers=patient["headers"], json={
        "title": "Chest X-ray", "date": "2024-03-01",
        "file_url": "https://files.example.com/xray.png", "file_name": "xray.png"})

    assert client.get(f'/api/doctor/patients/{patient["id"]}/records', headers=doctor["headers"]).status_code == 403

    _approve(client, doctor, patient)
    records = client.get(f'/api/doctor/patients/{patient["id"]}/records', headers=doctor["headers"]).get_json()
    assert records["profile"]["name"] == 'Ann Lee'
    assert [r["title"] for r in records["reports"]] == ['Chest X-ray']


def test_profile_scope_hides_reports(client, register):
    doctor, patient = register('doctor'), register('patient')
    _approve(client, doctor, patient, scope='profile')

    records = client.get(f'/api/doctor/patients/{patient["id"]}/records', headers=doctor["headers"]).get_json()
    assert records["profile"] is not None
    assert records["reports"] is None


def test_doctor_manages_appointment_status(client, register):
    doctor = register('doctor', name='Gregory House')
    patient = register('patient')
    booked = client.post('/api/appointments', headers=patient["headers"], json={
        "doctor_name": "gregory house", "specialty": "Diagnostics", "date": "2030-01-15", "time": "09:30"})
    assert booked.status_code == 201
    appointment = booked.get_json()["appointment"]
    assert appointment["doctor_id"] == doctor["id"]

    listing = client.get('/api/doctor/appointments', headers=doctor["headers"]).get_json()
    assert [a["id"] for a in listing["appointments"]] == [appointment["id"]]

    bad = client.patch(f'/api/doctor/appointments/{appointment["id"]}/status',
                       headers=doctor["headers"], json={"status": "postponed"})
    assert bad.status_code == 400

    done = client.patch(f'/api/doctor/appointments/{appointment["id"]}/status',
                        headers=doctor["headers"], json={"status": "completed"})
    assert done.status_code == 200
    assert done.get_json()["appointment"]["status"] == 'completed'

    patient_view = client.get('/api/appointments', headers=patient["headers"]).get_json()
    assert patient_view["appointments"][0]["status"] == 'completed'


def test_other_doctors_cannot_touch_the_appointment(client, register):
    register('doctor', name='Gregory House')
    other = register('doctor', name='Lisa Cuddy')
    patient = register('patient')
    appointment = client.post('/api/appointments', headers=patient["headers"], json={
        "doctor_name": "Gregory House", "specialty": "Diagnostics", "date": "2030-01-15", "time": "09:30"
    }).get_json()["appointment"]

    response = client.patch(f'/api/doctor/appointments/{appointment["id"]}/status',
                            headers=other["headers"], json={"status": "cancelled"})
    assert response.status_code == 404


def test_dashboard_dispatches_on_role(client, register):
    doctor, patient = register('doctor'), register('patient')
    assert client.get('/api/dashboard', headers=patient["headers"]).get_json()["role"] == 'patient'
    assert client.get('/api/dashboard', headers=doctor["headers"]).get_json()["role"] == 'doctor'


def test_booking_rejects_a_doctor_id_that_is_not_a_doctor(app, client, register):
    patient, other_patient = register('patient'), register('patient')
    other_socket = socketio.test_client(app, auth={"token": other_patient["token"]})

    for doctor_id in (other_patient["id"], 9999, True, "abc"):
        response = client.post('/api/appointments', headers=patient["headers"], json={
            "doctor_id": doctor_id, "doctor_name": "Dr. Who", "specialty": "General",
            "date": "2030-01-15", "time": "09:30"})
        assert response.status_code == 400
        assert response.get_json()["code"] == 'MalformedInput'

    assert Appointment.query.count() == 0
    assert [e for e in other_socket.get_received() if e["name"] == 'record_changed'] == []


def test_booking_by_doctor_id(client, register):
    doctor, patient = register('doctor', name='Gregory House'), register('patient')
    booked = client.post('/api/appointments', headers=patient["headers"], json={
        "doctor_id": doctor["id"], "doctor_name": "Dr. House", "specialty": "Diagnostics",
        "date": "2030-01-15", "time": "09:30"})
    assert booked.status_code == 201
    assert booked.get_json()["appointment"]["doctor_id"] == doctor["id"]

    listing = client.get('/api/doctor/appointments', headers=doctor["headers"]).get_json()
    assert [a["id"] for a in listing["appointments"]] == [booked.get_json()["appointment"]["id"]]


def test_same_named_doctor_cannot_take_a_linked_appointment(client, register):
    first = register('doctor', name='John Smith')
    namesake = register('doctor', name='John Smith')
    patient = register('patient')
    appointment = client.post('/api/appointments', headers=patient["headers"], json={
        "doctor_id": first["id"], "doctor_name": "John Smith", "specialty": "General",
        "date": "2030-01-15", "time": "09:30"}).get_json()["appointment"]

    listing = client.get('/api/doctor/appointments', headers=namesake["headers"]).get_json()
    assert listing["appointments"] == []

    response = client.patch(f'/api/doctor/appointments/{appointment["id"]}/status',
                            headers=namesake["headers"], json={"status": "cancelled"})
    assert response.status_code == 404
    assert db.session.get(Appointment, appointment["id"]).status == 'scheduled'


def test_unlinked_booking_is_matched_by_name(client, register):
    patient = register('patient')
    # Booked before the doctor had an account, so no link was made.
    appointment = client.post('/api/appointments', headers=patient["headers"], json={
        "doctor_name": "Meredith Grey", "specialty": "Surgery",
        "date": "2030-01-15", "time": "09:30"}).get_json()["appointment"]
    assert appointment["doctor_id"] is None

    doctor = register('doctor', name='meredith grey')
    listing = client.get('/api/doctor/appointments', headers=doctor["headers"]).get_json()
    assert [a["id"] for a in listing["appointments"]] == [appointment["id"]]
