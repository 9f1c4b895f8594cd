# medvault_pkg/medications/routes.py
from flask import Blueprint, jsonify, g
from ..errors import RecordNotFound
from ..models import Role
from ..repository import medication_repository
from ..sockets import publish_change
from ..utils import get_json_body, role_required

medications_bp = Blueprint('medications_bp', __name__)


@medications_bp.route('/medications', methods=['GET'])
@role_required(Role.PATIENT)
def get_medications():
    medications = medication_repository.fetch(g.current_user.id)
    return jsonify({"medications": medications, "total": len(medications)}), 200


@medications_bp.route('/medications', methods=['POST'])
@role_required(Role.PATIENT)
def add_medication():
    current_user = g.current_user
    medication, synced = medication_repository.create(current_user.id, get_json_body())
    if synced:
        publish_change('medications', medication['id'], 'insert', [current_user.id], medication)
    return jsonify({
        "message": "Medication added." if synced else "Medication saved locally; the server could not be reached.",
        "medication": medication,
        "synced": synced
    }), 201


@medications_bp.route('/medications/<string:medication_id>', methods=['DELETE'])
@role_required(Role.PATIENT)
def delete_medication(medication_id):
    current_user = g.current_user
    if not medication_repository.delete(medication_id, current_user.id):
        raise RecordNotFound("Medication not found.")
    publish_change('medications', medication_id, 'delete', [current_user.id])
    return jsonify({"message": "Medication removed."}), 200
