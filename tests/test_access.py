import datetime

import pytest

from medvault_pkg import db
from medvault_pkg.access import services as access_service
from medvault_pkg.errors import InvalidState
from medvault_pkg.models import AccessRequest, AuditLog, Notification, Role


def _request_access(client, doctor, patient, scope='all'):
    return client.post('/api/access-requests', headers=doctor["headers"],
                       json={"patient_id": patient["id"], "scope": scope})


def _visibility(client, caller, doctor, patient, resource):
    response = client.get(
        f"/api/access-requests/visibility?doctor_id={doctor['id']}&patient_id={patient['id']}&resource={resource}",
        headers=caller["headers"]
    )
    assert response.status_code == 200
    return response.get_json()


def test_no_request_means_nothing_visible(client, register):
    doctor, patient = register('doctor'), register('patient')
    for resource in ('profile', 'reports'):
        result = _visibility(client, doctor, doctor, patient, resource)
        assert result["visible"] is False
        assert result["status"] == 'none'


def test_request_then_approve_grants_visibility(client, register):
    doctor, patient = register('doctor'), register('patient')

    response = _request_access(client, doctor, patient)
    assert response.status_code == 201
    request_id = response.get_json()["access_request"]["id"]
    assert response.get_json()["access_request"]["status"] == 'pending'
    assert _visibility(client, doctor, doctor, patient, 'reports')["visible"] is False

    pending = client.get('/api/access-requests', headers=patient["headers"]).get_json()["access_requests"]
    assert [r["id"] for r in pending] == [request_id]
    assert pending[0]["doctor_name"] == "Doc Tor1"

    approve = client.post(f'/api/access-requests/{request_id}/approve', headers=patient["headers"])
    assert approve.status_code == 200
    assert approve.get_json()["access_request"]["status"] == 'approved'
    assert _visibility(client, patient, doctor, patient, 'reports')["visible"] is True
    assert _visibility(client, patient, doctor, patient, 'profile')["visible"] is True


def test_duplicate_pending_request_is_rejected(client, register):
    doctor, patient = register('doctor'), register('patient')
    assert _request_access(client, doctor, patient).status_code == 201

    second = _request_access(client, doctor, patient)
    assert second.status_code == 409
    assert second.get_json()["code"] == 'DuplicatePendingRequest'
    assert AccessRequest.query.filter_by(doctor_id=doctor["id"], patient_id=patient["id"]).count() == 1


def test_request_after_approval_is_invalid(client, register):
    doctor, patient = register('doctor'), register('patient')
    request_id = _request_access(client, doctor, patient).get_json()["access_request"]["id"]
    client.post(f'/api/access-requests/{request_id}/approve', headers=patient["headers"])

    again = _request_access(client, doctor, patient)
    assert again.status_code == 409
    assert again.get_json()["code"] == 'InvalidState'


def test_rerequest_after_rejection_governs(client, register):
    doctor, patient = register('doctor'), register('patient')
    first_id = _request_access(client, doctor, patient).get_json()["access_request"]["id"]
    reject = client.post(f'/api/access-requests/{first_id}/reject', headers=patient["headers"])
    assert reject.get_json()["access_request"]["status"] == 'rejected'
    assert _visibility(client, doctor, doctor, patient, 'reports')["status"] == 'rejected'

    second = _request_access(client, doctor, patient)
    assert second.status_code == 201
    second_id = second.get_json()["access_request"]["id"]
    assert second_id != first_id

    result = _visibility(client, doctor, doctor, patient, 'reports')
    assert result["status"] == 'pending'
    assert result["visible"] is False
    # The rejected row stays as history.
    assert AccessRequest.query.filter_by(doctor_id=doctor["id"], patient_id=patient["id"]).count() == 2


def test_decided_request_cannot_be_decided_again(client, register):
    doctor, patient = register('doctor'), register('patient')
    request_id = _request_access(client, doctor, patient).get_json()["access_request"]["id"]
    client.post(f'/api/access-requests/{request_id}/reject', headers=patient["headers"])

    response = client.post(f'/api/access-requests/{request_id}/approve', headers=patient["headers"])
    assert response.status_code == 409
    assert _visibility(client, doctor, doctor, patient, 'reports')["visible"] is False


def test_only_the_named_patient_can_decide(client, register):
    doctor, patient, other_patient = register('doctor'), register('patient'), register('patient')
    request_id = _request_access(client, doctor, patient).get_json()["access_request"]["id"]

    assert client.post(f'/api/access-requests/{request_id}/approve', headers=other_patient["headers"]).status_code == 403
    assert client.post(f'/api/access-requests/{request_id}/approve', headers=doctor["headers"]).status_code == 403
    assert client.post(f'/api/access-requests/{request_id}/reject', headers=other_patient["headers"]).status_code == 403
    assert db.session.get(AccessRequest, request_id).status == 'pending'


def test_patients_cannot_request_access(client, register):
    patient, other_patient = register('patient'), register('patient')
    response = client.post('/api/access-requests', headers=patient["headers"], json={"patient_id": other_patient["id"]})
    assert response.status_code == 403


def test_unauthenticated_request_is_refused(client, register):
    patient = register('patient')
    response = client.post('/api/access-requests', json={"patient_id": patient["id"]})
    assert response.status_code == 401
    assert response.get_json()["code"] == 'AuthRequired'


def test_unknown_scope_and_unknown_patient(client, register):
    doctor, patient = register('doctor'), register('patient')
    assert _request_access(client, doctor, patient, scope='everything').status_code == 400
    missing = client.post('/api/access-requests', headers=doctor["headers"], json={"patient_id": 9999})
    assert missing.status_code == 404


def test_patient_id_must_be_an_integer(client, register):
    doctor, patient = register('doctor'), register('patient')
    for patient_id in (True, False, str(patient["id"]), None):
        response = client.post('/api/access-requests', headers=doctor["headers"], json={"patient_id": patient_id})
        assert response.status_code == 400
        assert response.get_json()["code"] == 'MalformedInput'
    assert AccessRequest.query.count() == 0


def test_scope_limits_visibility(client, register):
    doctor, patient = register('doctor'), register('patient')
    request_id = _request_access(client, doctor, patient, scope='profile').get_json()["access_request"]["id"]
    client.post(f'/api/access-requests/{request_id}/approve', headers=patient["headers"])

    assert _visibility(client, doctor, doctor, patient, 'profile')["visible"] is True
    assert _visibility(client, doctor, doctor, patient, 'reports')["visible"] is False


def test_visibility_is_private_to_the_pair(client, register):
    doctor, patient, outsider = register('doctor'), register('patient'), register('patient')
    response = client.get(
        f"/api/access-requests/visibility?doctor_id={doctor['id']}&patient_id={patient['id']}",
        headers=outsider["headers"]
    )
    assert response.status_code == 403


def test_state_changes_notify_and_audit(client, register):
    doctor, patient = register('doctor'), register('patient')
    request_id = _request_access(client, doctor, patient).get_json()["access_request"]["id"]
    client.post(f'/api/access-requests/{request_id}/approve', headers=patient["headers"])

    assert Notification.query.filter_by(recipient_user_id=patient["id"], notification_type='ACCESS_REQUESTED').count() == 1
    assert Notification.query.filter_by(recipient_user_id=doctor["id"], notification_type='ACCESS_APPROVED').count() == 1
    actions = [log.action for log in AuditLog.query.filter_by(target_model="AccessRequest", target_id=str(request_id)).order_by(AuditLog.id).all()]
    assert actions == ['ACCESS_REQUESTED', 'ACCESS_APPROVED']


def test_most_recent_row_governs_on_timestamp_ties(app, make_user):
    doctor, patient = make_user(Role.DOCTOR), make_user(Role.PATIENT)
    stamp = datetime.datetime(2024, 1, 1, 12, 0, 0)
    db.session.add(AccessRequest(doctor_id=doctor.id, patient_id=patient.id, status='approved', created_at=stamp))
    db.session.add(AccessRequest(doctor_id=doctor.id, patient_id=patient.id, status='rejected', created_at=stamp))
    db.session.commit()

    assert access_service.access_status(doctor.id, patient.id) == 'rejected'
    assert access_service.check_visibility(doctor.id, patient.id, 'reports') is False


def test_superseded_pending_request_cannot_be_approved(app, make_user):

    doctor, patient = make_user(Role.DOCTOR), make_user(Role.PATIENT)
    older = AccessRequest(doctor_id=doctor.id, patient_id=patient.id, status='pending',
                          created_at=datetime.datetime(2024, 1, 1))
    newer = AccessRequest(doctor_id=doctor.id, patient_id=patient.id, status='pending',
                          created_at=datetime.datetime(2024, 1, 2))
    db.session.add_all([older, newer])
    db.session.commit()

    with pytest.raises(InvalidState):
        access_service.approve(older.id, patient)
    assert access_service.approve(newer.id, patient).status == 'approved'
