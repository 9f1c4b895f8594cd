# medvault_pkg/access/routes.py
from flask import Blueprint, request, jsonify, g
from ..errors import Forbidden, MalformedInput
from ..models import Role
from ..utils import get_json_body, login_required, role_required
from . import services as access_service

access_bp = Blueprint('access_bp', __name__)


@access_bp.route('/access-requests', methods=['POST'])
@role_required(Role.DOCTOR)
def create_access_request():
    data = get_json_body()
    patient_id = data.get('patient_id')
    if not isinstance(patient_id, int) or isinstance(patient_id, bool):
        raise MalformedInput("'patient_id' (patient user id) is required.")
    access_request = access_service.request_access(g.current_user, patient_id, data.get('scope', 'all'))
    return jsonify({
        "message": "Access request sent.",
        "access_request": access_request.to_dict()
    }), 201


@access_bp.route('/access-requests', methods=['GET'])
@login_required
def list_access_requests():
    """Patients see requests awaiting their decision; doctors see the current request per patient."""
    current_user = g.current_user
    if current_user.role is Role.PATIENT:
        rows = access_service.pending_requests_for_patient(current_user.id)
    elif current_user.role is Role.DOCTOR:
        rows = access_service.requests_for_doctor(current_user.id)
    else:
        rows = []
    return jsonify({"access_requests": [r.to_dict() for r in rows]}), 200


@access_bp.route('/access-requests/<int:request_id>/approve', methods=['POST'])
@login_required
def approve_access_request(request_id):
    access_request = access_service.approve(request_id, g.current_user)
    return jsonify({"message": "Access approved.", "access_request": access_request.to_dict()}), 200


@access_bp.route('/access-requests/<int:request_id>/reject', methods=['POST'])
@login_required
def reject_access_request(request_id):
    access_request = access_service.reject(request_id, g.current_user)
    return jsonify({"message": "Access denied.", "access_request": access_request.to_dict()}), 200


@access_bp.route('/access-requests/visibility', methods=['GET'])
@login_required
def get_visibility():
    doctor_id = request.args.get('doctor_id', type=int)
    patient_id = request.args.get('patient_id', type=int)
    resource_class = request.args.get('resource', 'reports')
    if doctor_id is None or patient_id is None:
        raise MalformedInput("'doctor_id' and 'patient_id' query parameters are required.")
    if g.current_user.id not in (doctor_id, patient_id):
        raise Forbidden("You can only check access for pairs you belong to.")
    return jsonify({
        "doctor_id": doctor_id,
        "patient_id": patient_id,
        "resource": resource_class,
        "visible": access_service.check_visibility(doctor_id, patient_id, resource_class),
        "status": access_service.access_status(doctor_id, patient_id)
    }), 200
