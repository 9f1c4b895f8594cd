# medvault_pkg/notifications/routes.py
from flask import Blueprint, request, jsonify, g
from .. import db
from ..errors import RecordNotFound
from ..models import Notification
from ..sockets import publish_change
from ..utils import login_required
from datetime import datetime

notifications_bp = Blueprint('notifications_bp', __name__)


def _own_notification(notification_id, user_id):
    notification = Notification.query.filter_by(id=notification_id, recipient_user_id=user_id).first()
    if notification is None:
        raise RecordNotFound("Notification not found or you do not have access to it.")
    return notification


@notifications_bp.route('/notifications', methods=['GET'])
@login_required
def get_notifications():
    """Get paginated list of notifications for the current user."""
    current_user = g.current_user

    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 20, type=int)
    is_read_filter_str = request.args.get('is_read')  # 'true' / 'false'
    notification_type_filter = request.args.get('type')  # e.g. ACCESS_REQUESTED

    query = Notification.query.filter_by(recipient_user_id=current_user.id)
    if is_read_filter_str is not None:
        query = query.filter_by(is_read=is_read_filter_str.lower() == 'true')
    if notification_type_filter:
        query = query.filter(Notification.notification_type == notification_type_filter.upper())

    query = query.order_by(Notification.created_at.desc())
    notifications_pagination = query.paginate(page=page, per_page=per_page, error_out=False)

    return jsonify({
        "notifications": [n.to_dict() for n in notifications_pagination.items],
        "total": notifications_pagination.total,
        "unread_count": Notification.query.filter_by(
            recipient_user_id=current_user.id, is_read=False
        ).count(),
        "page": notifications_pagination.page,
        "per_page": notifications_pagination.per_page,
        "pages": notifications_pagination.pages
    }), 200


@notifications_bp.route('/notifications/<string:notification_id>/mark-read', methods=['POST'])
@login_required
def mark_notification_as_read(notification_id):
    current_user = g.current_user
    notification = _own_notification(notification_id, current_user.id)

    if notification.is_read:
        return jsonify({
            "message": "Notification already marked as read.",
            "notification": notification.to_dict()
        }), 200

    notification.is_read = True
    notification.read_at = datetime.utcnow()
    db.session.commit()

    data = notification.to_dict()
    publish_change('notifications', notification.id, 'update', [current_user.id], data)
    return jsonify({"message": "Notification marked as read.", "notification": data}), 200


@notifications_bp.route('/notifications/mark-all-read', methods=['POST'])
@login_required
def mark_all_notifications_as_read():
    current_user = g.current_user

    unread_notifications_query = Notification.query.filter_by(
        recipient_user_id=current_user.id, is_read=False
    )
    count = unread_notifications_query.count()
    if count == 0:
        return jsonify({"message": "No unread notifications to mark as read."}), 200

    unread_notifications_query.update({
        Notification.is_read: True,
        Notification.read_at: datetime.utcnow()
    })
    db.session.commit()

    return jsonify({"message": f"{count} notification(s) marked as read."}), 200


@notifications_bp.route('/notifications/<string:notification_id>', methods=['DELETE'])
@login_required
def delete_notification(notification_id):
    current_user = g.current_user
    notification = _own_notification(notification_id, current_user.id)

    db.session.delete(notification)
    db.session.commit()

    publish_change('notifications', notification_id, 'delete', [current_user.id])
    return jsonify({"message": "Notification deleted successfully."}), 200
