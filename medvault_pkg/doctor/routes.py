# medvault_pkg/doctor/routes.py
from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy import and_, func, or_
from sqlalchemy.exc import SQLAlchemyError
from .. import db
from ..access import services as access_service
from ..errors import Forbidden, MalformedInput, RecordNotFound, RemoteUnavailable
from ..models import APPOINTMENT_STATUSES, Appointment, Doctor, Patient, Role
from ..repository import appointment_repository, report_repository
from ..sockets import publish_change
from ..utils import get_json_body, role_required

doctor_bp = Blueprint('doctor_bp', __name__)


def access_badge(status):
    """What the doctor's patient list offers for a pair in `status`."""
    return "view_records" if status == 'approved' else "request_access"


def _doctor_name(user):
    profile = Doctor.query.filter_by(user_id=user.id).first()
    return profile.name if profile else user.display_name


def _own_appointments_query(user):
    # Older bookings only carry the typed doctor name; a linked id always wins.
    return Appointment.query.filter(or_(
        Appointment.doctor_id == user.id,
        and_(Appointment.doctor_id.is_(None),
             func.lower(Appointment.doctor_name) == _doctor_name(user).lower())
    ))


@doctor_bp.route('/patients', methods=['GET'])
@role_required(Role.DOCTOR)
def list_patients():
    """Every registered patient, with this doctor's access status and the badge to show."""
    current_user = g.current_user
    search = (request.args.get('search') or '').strip()

    try:
        query = Patient.query
        if search:
            query = query.filter(Patient.name.ilike(f"%{search}%"))
        patients = query.order_by(Patient.name.asc()).all()
        statuses = access_service.access_statuses_for_doctor(current_user.id)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"[DoctorPortal] Could not load patients for doctor {current_user.id}: {e}")
        raise RemoteUnavailable("Could not load patients. Please try again.")

    patients_data = []
    for patient in patients:
        status = statuses.get(patient.user_id, access_service.STATUS_NONE)
        patients_data.append({
            "user_id": patient.user_id,
            "name": patient.name,
            "age": patient.age,
            "condition": patient.condition,
            "access_status": status,
            "action": access_badge(status)
        })

    return jsonify({
        "patients": patients_data,
        "total": len(patients_data),
        "pending_requests": sum(1 for s in statuses.values() if s == 'pending')
    }), 200


@doctor_bp.route('/patients/<int:patient_user_id>/records', methods=['GET'])
@role_required(Role.DOCTOR)
def get_patient_records(patient_user_id):
    current_user = g.current_user
    can_see_profile = access_service.check_visibility(current_user.id, patient_user_id, 'profile')
    can_see_reports = access_service.check_visibility(current_user.id, patient_user_id, 'reports')
    if not (can_see_profile or can_see_reports):
        raise Forbidden("You do not have access to this patient's records.")

    profile = None
    if can_see_profile:
        patient = Patient.query.filter_by(user_id=patient_user_id).first()
        if patient is None:
            raise RecordNotFound("Patient not found.")
        profile = patient.to_dict()

    return jsonify({
        "patient_id": patient_user_id,
        "profile": profile,
        "reports": report_repository.fetch(patient_user_id) if can_see_reports else None,
        "visible": {"profile": can_see_profile, "reports": can_see_reports}
    }), 200


@doctor_bp.route('/appointments', methods=['GET'])
@role_required(Role.DOCTOR)
def get_doctor_appointments():
    current_user = g.current_user
    try:
        appointments = _own_appointments_query(current_user).order_by(
            Appointment.date.asc(), Appointment.time.asc()
        ).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"[DoctorPortal] Could not load appointments for doctor {current_user.id}: {e}")
        raise RemoteUnavailable("Could not load appointments. Please try again.")

    patient_names = {p.user_id: p.name for p in Patient.query.filter(
        Patient.user_id.in_({a.patient_id for a in appointments})
    ).all()} if appointments else {}

    appointments_data = []
    for appointment in appointments:
        data = appointment.to_dict()
        data["patient_name"] = patient_names.get(appointment.patient_id, "Unknown Patient")
        appointments_data.append(data)
    return jsonify({"appointments": appointments_data, "total": len(appointments_data)}), 200


@doctor_bp.route('/appointments/<string:appointment_id>/status', methods=['PATCH'])
@role_required(Role.DOCTOR)
def update_appointment_status(appointment_id):
    current_user = g.current_user
    data = get_json_body()
    new_status = data.get('status')
    if new_status not in APPOINTMENT_STATUSES:
        raise MalformedInput(f"Invalid status. Use one of: {', '.join(APPOINTMENT_STATUSES)}.")

    appointment = _own_appointments_query(current_user).filter(Appointment.id == appointment_id).first()
    if appointment is None:
        raise RecordNotFound("Appointment not found.")
    patient_id = appointment.patient_id

    updated = appointment_repository.update(appointment_id, {"status": new_status}, owner_ref=patient_id)
    if updated is None:
        raise RecordNotFound("Appointment not found.")

    current_app.logger.info(f"[DoctorPortal] Doctor {current_user.id} set appointment {appointment_id} to {new_status}")
    publish_change('appointments', appointment_id, 'update', [patient_id, current_user.id], updated)
    return jsonify({"message": f"Appointment marked as {new_status}.", "appointment": updated}), 200
