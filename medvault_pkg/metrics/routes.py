# medvault_pkg/metrics/routes.py
from flask import Blueprint, jsonify, g
from ..errors import MalformedInput, RecordNotFound
from ..models import Role
from ..repository import health_metric_repository
from ..sockets import publish_change
from ..utils import get_json_body, role_required
from .services import compute_health_summary

metrics_bp = Blueprint('metrics_bp', __name__)

READING_FIELDS = ('heart_rate', 'systolic', 'diastolic', 'blood_sugar', 'temperature')


@metrics_bp.route('/health-metrics', methods=['GET'])
@role_required(Role.PATIENT)
def get_health_metrics():
    metrics = health_metric_repository.fetch(g.current_user.id)
    return jsonify({"health_metrics": metrics, "total": len(metrics)}), 200


@metrics_bp.route('/health-metrics/summary', methods=['GET'])
@role_required(Role.PATIENT)
def get_health_summary():
    metrics = health_metric_repository.fetch(g.current_user.id)
    return jsonify(compute_health_summary(metrics)), 200


@metrics_bp.route('/health-metrics', methods=['POST'])
@role_required(Role.PATIENT)
def record_health_metric():
    current_user = g.current_user
    data = get_json_body()
    if all(data.get(field) in (None, '') for field in READING_FIELDS):
        raise MalformedInput("At least one reading is required.")

    metric, synced = health_metric_repository.create(current_user.id, data)
    if synced:
        publish_change('health_metrics', metric['id'], 'insert', [current_user.id], metric)
    return jsonify({
        "message": "Health metric recorded." if synced else "Health metric saved locally; the server could not be reached.",
        "health_metric": metric,
        "synced": synced
    }), 201


@metrics_bp.route('/health-metrics/<string:metric_id>', methods=['DELETE'])
@role_required(Role.PATIENT)
def delete_health_metric(metric_id):
    current_user = g.current_user
    if not health_metric_repository.delete(metric_id, current_user.id):
        raise RecordNotFound("Health metric not found.")
    publish_change('health_metrics', metric_id, 'delete', [current_user.id])
    return jsonify({"message": "Health metric deleted."}), 200
