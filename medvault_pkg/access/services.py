# medvault_pkg/access/services.py
"""
Doctor-to-patient access control.

Every (doctor, patient) pair moves through NONE -> PENDING -> APPROVED | REJECTED.
NONE means no AccessRequest row exists. Rows are never deleted: when a pair has
several, the most recently created one governs and the rest stay as history.
"""
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from .. import db
from ..audit.services import create_audit_log
from ..errors import (AuthRequired, DuplicatePendingRequest, Forbidden, InvalidState,
                      MalformedInput, RecordNotFound, RemoteUnavailable)
from ..models import ACCESS_SCOPES, RESOURCE_CLASSES, AccessRequest, Patient, Role, User
from ..services import notify_access_decision, notify_access_requested
from ..sockets import publish_change

STATUS_NONE = 'none'


def _newest_first(query):
    return query.order_by(AccessRequest.created_at.desc(), AccessRequest.id.desc())


def governing_request(doctor_id, patient_id):
    """The most recent AccessRequest for the pair, or None."""
    return _newest_first(AccessRequest.query.filter_by(doctor_id=doctor_id, patient_id=patient_id)).first()


def access_status(doctor_id, patient_id):
    current = governing_request(doctor_id, patient_id)
    return current.status if current else STATUS_NONE


def check_visibility(doctor_id, patient_id, resource_class):
    """True iff the governing request is approved and its scope covers resource_class."""
    if resource_class not in RESOURCE_CLASSES:
        raise MalformedInput(f"Unknown resource class '{resource_class}'. Use one of: {', '.join(RESOURCE_CLASSES)}.")
    current = governing_request(doctor_id, patient_id)
    return bool(current and current.status == 'approved' and current.covers(resource_class))


def _governing_by_pair(query):
    governing = {}
    for row in _newest_first(query):
        governing.setdefault((row.doctor_id, row.patient_id), row)
    return governing


def access_statuses_for_doctor(doctor_id):
    """Maps patient user id -> governing status for every patient the doctor has asked about."""
    rows = _governing_by_pair(AccessRequest.query.filter_by(doctor_id=doctor_id))
    return {patient_id: row.status for (_, patient_id), row in rows.items()}


def doctors_with_visibility(patient_id, resource_class):
    """User ids of doctors whose governing request for this patient covers resource_class."""
    rows = _governing_by_pair(AccessRequest.query.filter_by(patient_id=patient_id))
    return [doctor_id for (doctor_id, _), row in rows.items()
            if row.status == 'approved' and row.covers(resource_class)]


def requests_for_doctor(doctor_id):
    rows = _governing_by_pair(AccessRequest.query.filter_by(doctor_id=doctor_id))
    return sorted(rows.values(), key=lambda r: (r.created_at, r.id), reverse=True)


def pending_requests_for_patient(patient_id):
    """Governing requests still awaiting the patient's decision, newest first."""
    rows = _governing_by_pair(AccessRequest.query.filter_by(patient_id=patient_id))
    pending = [row for row in rows.values() if row.status == 'pending']
    return sorted(pending, key=lambda r: (r.created_at, r.id), reverse=True)


def _commit(action_description):
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"[AccessControl] Failed to {action_description}: {e}")
        raise RemoteUnavailable(f"Could not {action_description}. Please try again.")


def _publish(access_request, kind):
    publish_change(
        'access_requests',
        access_request.id,
        kind,
        [access_request.doctor_id, access_request.patient_id],
        access_request.to_dict()
    )


def request_access(doctor, patient_id, scope='all'):
    """
    Opens a PENDING request from `doctor` to the patient with user id `patient_id`.
    Allowed from NONE or REJECTED; a pending pair raises DuplicatePendingRequest.
    """
    if doctor is None:
        raise AuthRequired()
    if doctor.role is not Role.DOCTOR:
        raise Forbidden("Only doctors can request access to patient records.")
    if scope not in ACCESS_SCOPES:
        raise MalformedInput(f"Invalid scope '{scope}'. Use one of: {', '.join(ACCESS_SCOPES)}.")

    patient_user = db.session.get(User, patient_id)
    if not patient_user or patient_user.role is not Role.PATIENT:
        raise RecordNotFound("Patient not found.")

    current = governing_request(doctor.id, patient_id)
    if current is not None and current.status == 'pending':
        raise DuplicatePendingRequest()
    if current is not None and current.status == 'approved':
        raise InvalidState("Access to this patient has already been approved.")

    access_request = AccessRequest(
        doctor_id=doctor.id,
        patient_id=patient_id,
        requested_scope=scope,
        status='pending'
    )
    db.session.add(access_request)
    db.session.flush()
    create_audit_log(
        action="ACCESS_REQUESTED",
        target_model="AccessRequest",
        target_id=access_request.id,
        change_details={"scope": scope, "previous_status": current.status if current else STATUS_NONE},
        actor=doctor
    )
    _commit("create access request")
    current_app.logger.info(
        f"[AccessControl] Doctor {doctor.id} requested '{scope}' access to patient {patient_id} (request {access_request.id})"
    )

    _publish(access_request, 'insert')
    notify_access_requested(access_request, doctor.doctor_profile.name if doctor.doctor_profile else doctor.display_name)
    return access_request


def _decide(request_id, actor, new_status):
    if actor is None:
        raise AuthRequired()
    access_request = db.session.get(AccessRequest, request_id)
    if not access_request:
        raise RecordNotFound("Access request not found.")
    if actor.id != access_request.patient_id:
        raise Forbidden("Only the patient named in this request can respond to it.")
    if access_request.status != 'pending':
        raise InvalidState(f"Access request is already {access_request.status}.")
    current = governing_request(access_request.doctor_id, access_request.patient_id)
    if current.id != access_request.id:
        raise InvalidState("This access request has been superseded by a newer one.")

    previous_status = access_request.status
    access_request.status = new_status
    create_audit_log(
        action=f"ACCESS_{new_status.upper()}",
        target_model="AccessRequest",
        target_id=access_request.id,
        change_details={"status": {"old": previous_status, "new": new_status}},
        actor=actor
    )
    _commit(f"mark access request as {new_status}")
    current_app.logger.info(
        f"[AccessControl] Patient {actor.id} {new_status} request {access_request.id} from doctor {access_request.doctor_id}"
    )

    _publish(access_request, 'update')
    patient_profile = Patient.query.filter_by(user_id=actor.id).first()
    notify_access_decision(access_request, patient_profile.name if patient_profile else actor.display_name)
    return access_request


def approve(request_id, actor):
    return _decide(request_id, actor, 'approved')


def reject(request_id, actor):
    return _decide(request_id, actor, 'rejected')
