# medvault_pkg/dashboard/routes.py
import datetime

from flask import Blueprint, jsonify, g
from ..access import services as access_service
from ..errors import Forbidden
from ..models import Notification, Role
from ..repository import appointment_repository, health_metric_repository, medication_repository, report_repository
from ..metrics.services import compute_health_summary
from ..utils import login_required

dashboard_bp = Blueprint('dashboard_bp', __name__)


def _unread_notifications(user_id):
    unread = Notification.query.filter(
        Notification.recipient_user_id == user_id,
        Notification.is_read == False
    ).order_by(Notification.is_urgent.desc(), Notification.created_at.desc())
    return {"count": unread.count(), "items": [n.to_dict() for n in unread.limit(10).all()]}


def patient_dashboard(user):
    today = datetime.date.today().isoformat()
    appointments = appointment_repository.fetch(user.id)
    upcoming = [a for a in appointments if (a.get('date') or '') >= today and a.get('status') != 'cancelled']
    return {
        "role": Role.PATIENT.value,
        "upcoming_appointments": upcoming[:5],
        "recent_reports": report_repository.fetch(user.id)[:5],
        "medications": medication_repository.fetch(user.id),
        "health_summary": compute_health_summary(health_metric_repository.fetch(user.id)),
        "pending_access_requests": [r.to_dict() for r in access_service.pending_requests_for_patient(user.id)],
        "unread_notifications": _unread_notifications(user.id)
    }


def doctor_dashboard(user):
    statuses = access_service.access_statuses_for_doctor(user.id)
    return {
        "role": Role.DOCTOR.value,
        "access_requests": {
            status: sum(1 for s in statuses.values() if s == status)
            for status in ('pending', 'approved', 'rejected')
        },
        "approved_patient_ids": sorted(pid for pid, s in statuses.items() if s == 'approved'),
        "unread_notifications": _unread_notifications(user.id)
    }


DASHBOARDS = {
    Role.PATIENT: patient_dashboard,
    Role.DOCTOR: doctor_dashboard,
}


@dashboard_bp.route('/dashboard', methods=['GET'])
@login_required
def get_dashboard_data():
    """
    Aggregates the logged-in user's dashboard. Every role has exactly one view;
    an account without a role gets none.
    """
    current_user = g.current_user
    build = DASHBOARDS.get(current_user.role)
    if build is None:
        raise Forbidden("This account has no portal role.")
    return jsonify(build(current_user)), 200
