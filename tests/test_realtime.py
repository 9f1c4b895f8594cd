from medvault_pkg.sockets import socketio


def _changes(socket_client, table=None):
    events = [e["args"][0] for e in socket_client.get_received() if e["name"] == 'record_changed']
    return [e for e in events if table is None or e["table"] == table]


def test_connection_requires_a_valid_token(app):
    assert not socketio.test_client(app).is_connected()
    assert not socketio.test_client(app, auth={"token": "garbage"}).is_connected()


def test_access_request_changes_reach_both_parties(app, client, register):
    doctor, patient = register('doctor'), register('patient')
    doctor_socket = socketio.test_client(app, auth={"token": doctor["token"]})
    patient_socket = socketio.test_client(app, auth={"token": patient["token"]})
    assert doctor_socket.is_connected() and patient_socket.is_connected()

    response = client.post('/api/access-requests', headers=doctor["headers"], json={"patient_id": patient["id"]})
    request_id = response.get_json()["access_request"]["id"]

    inserted = _changes(patient_socket, 'access_requests')
    assert len(inserted) == 1
    assert inserted[0]["kind"] == 'insert'
    assert inserted[0]["id"] == request_id
    assert inserted[0]["data"]["status"] == 'pending'
    assert [e["kind"] for e in _changes(doctor_socket, 'access_requests')] == ['insert']

    client.post(f'/api/access-requests/{request_id}/approve', headers=patient["headers"])

    received = _changes(doctor_socket)
    updated = [e for e in received if e["table"] == 'access_requests']
    assert [(e["kind"], e["data"]["status"]) for e in updated] == [('update', 'approved')]
    assert any(e["table"] == 'notifications' and e["data"]["notification_type"] == 'ACCESS_APPROVED'
               for e in received)


def test_changes_are_private_to_recipients(app, client, register):
    doctor, patient, bystander = register('doctor'), register('patient'), register('patient')
    bystander_socket = socketio.test_client(app, auth={"token": bystander["token"]})

    client.post('/api/access-requests', headers=doctor["headers"], json={"patient_id": patient["id"]})

    assert _changes(bystander_socket) == []


def test_unsubscribe_stops_delivery(app, client, register):
    patient = register('patient')
    patient_socket = socketio.test_client(app, auth={"token": patient["token"]})
    patient_socket.emit('unsubscribe')

    client.post('/api/reports', headers=patient["headers"], json={
        "title": "Scan", "date": "2024-01-01", "file_url": "https://files.example.com/scan.pdf", "file_name": "scan.pdf"})

    assert _changes(patient_socket) == []


def test_new_report_reaches_doctors_with_report_access(app, client, register):
    doctor, patient = register('doctor'), register('patient')
    request_id = client.post('/api/access-requests', headers=doctor["headers"],
                             json={"patient_id": patient["id"], "scope": "reports"}).get_json()["access_request"]["id"]
    client.post(f'/api/access-requests/{request_id}/approve', headers=patient["headers"])
    doctor_socket = socketio.test_client(app, auth={"token": doctor["token"]})

    client.post('/api/reports', headers=patient["headers"], json={
        "title": "CBC", "date": "2024-01-01", "file_url": "https://files.example.com/cbc.pdf", "file_name": "cbc.pdf"})

    assert [e["kind"] for e in _changes(doctor_socket, 'reports')] == ['insert']


def test_logout_publishes_auth_state(app, client, register):
    patient = register('patient', email='ann@example.com')
    patient_socket = socketio.test_client(app, auth={"token": patient["token"]})

    client.post('/api/auth/logout', headers=patient["headers"])

    events = [e["args"][0] for e in patient_socket.get_received() if e["name"] == 'auth_state_changed']
    assert events == [{"event": "SIGNED_OUT", "user_id": patient["id"]}]
