# medvault_pkg/reports/routes.py
from flask import Blueprint, jsonify, g
from ..access.services import doctors_with_visibility
from ..errors import MalformedInput, RecordNotFound
from ..models import Role
from ..repository import report_repository
from ..sockets import publish_change
from ..utils import get_json_body, role_required
from .analysis import analyze_report

reports_bp = Blueprint('reports_bp', __name__)


def _report_audience(owner_id):
    return [owner_id] + doctors_with_visibility(owner_id, 'reports')


@reports_bp.route('/reports', methods=['GET'])
@role_required(Role.PATIENT)
def get_reports():
    reports = report_repository.fetch(g.current_user.id)
    return jsonify({"reports": reports, "total": len(reports)}), 200


@reports_bp.route('/reports', methods=['POST'])
@role_required(Role.PATIENT)
def upload_report():
    current_user = g.current_user
    data = get_json_body()
    if not data.get('file_url') or not data.get('file_name'):
        raise MalformedInput("Please select a file to upload ('file_url' and 'file_name' are required).")

    report, synced = report_repository.create(current_user.id, data)
    if synced:
        publish_change('reports', report['id'], 'insert', _report_audience(current_user.id), report)
    return jsonify({
        "message": "Report uploaded successfully!" if synced else "Report saved locally; the server could not be reached.",
        "report": report,
        "synced": synced
    }), 201


@reports_bp.route('/reports/<string:report_id>', methods=['DELETE'])
@role_required(Role.PATIENT)
def delete_report(report_id):
    current_user = g.current_user
    if not report_repository.delete(report_id, current_user.id):
        raise RecordNotFound("Report not found.")
    publish_change('reports', report_id, 'delete', _report_audience(current_user.id))
    return jsonify({"message": "Report deleted successfully."}), 200


@reports_bp.route('/reports/analyze', methods=['POST'])
@role_required(Role.PATIENT)
def analyze_uploaded_report():
    data = get_json_body()
    file_name = data.get('file_name')
    if not file_name:
        raise MalformedInput("'file_name' is required.")
    return jsonify({"file_name": file_name, "analysis": analyze_report(file_name)}), 200
