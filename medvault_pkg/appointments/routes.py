# medvault_pkg/appointments/routes.py
from flask import Blueprint, jsonify, current_app, g
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from .. import db
from ..errors import MalformedInput
from ..models import Doctor, Role, User
from ..repository import appointment_repository
from ..sockets import publish_change
from ..utils import get_json_body, role_required

appointments_bp = Blueprint('appointments_bp', __name__)


def match_doctor_user_id(doctor_name):
    """Best-effort link from a typed doctor name to a registered doctor account."""
    if not doctor_name:
        return None
    try:
        doctor = Doctor.query.filter(func.lower(Doctor.name) == doctor_name.strip().lower()).first()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.warning(f"Could not match doctor '{doctor_name}': {e}")
        return None
    return doctor.user_id if doctor else None


def require_doctor_user_id(doctor_id):
    """The given id as an int, provided it belongs to a registered doctor account."""
    if isinstance(doctor_id, bool) or not isinstance(doctor_id, (int, str)):
        raise MalformedInput("'doctor_id' must refer to a registered doctor.")
    try:
        doctor_id = int(doctor_id)
    except ValueError:
        raise MalformedInput("'doctor_id' must refer to a registered doctor.")
    user = db.session.get(User, doctor_id)
    if user is None or user.role is not Role.DOCTOR:
        raise MalformedInput("'doctor_id' must refer to a registered doctor.")
    return doctor_id


@appointments_bp.route('/appointments', methods=['GET'])
@role_required(Role.PATIENT)
def get_appointments():
    appointments = appointment_repository.fetch(g.current_user.id)
    return jsonify({"appointments": appointments, "total": len(appointments)}), 200


@appointments_bp.route('/appointments', methods=['POST'])
@role_required(Role.PATIENT)
def create_appointment():
    current_user = g.current_user
    data = get_json_body()
    if data.get('doctor_id') in (None, ''):
        data['doctor_id'] = match_doctor_user_id(data.get('doctor_name'))
    else:
        data['doctor_id'] = require_doctor_user_id(data['doctor_id'])

    appointment, synced = appointment_repository.create(current_user.id, data)
    if synced:
        publish_change('appointments', appointment['id'], 'insert',
                       [current_user.id, appointment['doctor_id']], appointment)
    return jsonify({
        "message": "Appointment booked successfully!" if synced
                   else "Appointment saved locally; the server could not be reached.",
        "appointment": appointment,
        "synced": synced
    }), 201
