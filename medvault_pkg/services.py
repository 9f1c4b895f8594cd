# medvault_pkg/services.py
# Internal helper/service functions used across different blueprints.

import datetime
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from . import db
from .models import Notification, User
from .sockets import publish_change

# --- Notification Services ---

def create_notification(
    recipient_user_ids,
    message_template,
    template_context=None,
    notification_type="GENERAL",
    link_to_item_type=None,
    link_to_item_id=None,
    related_patient_id=None,
    is_urgent=False,
    metadata_json=None,
    cooldown_minutes=5
):
    """
    Creates one or more in-app notifications and pushes each to its recipient's room.
    Duplicates (same user, type, message and link) inside `cooldown_minutes` are skipped.
    Returns a list of notification dicts, or None if the commit failed.
    """
    if isinstance(recipient_user_ids, int):
        recipient_user_ids = [recipient_user_ids]
    elif not isinstance(recipient_user_ids, list):
        current_app.logger.error(f"[NotificationService] recipient_user_ids must be an int or a list of ints. Got: {type(recipient_user_ids)}")
        return None

    if not recipient_user_ids:
        return []

    link_to_item_id = str(link_to_item_id) if link_to_item_id is not None else None
    notifications_to_add = []

    for user_id in recipient_user_ids:
        user = db.session.get(User, user_id)
        if not user:
            current_app.logger.warning(f"[NotificationService] Skipping notification for non-existent user_id: {user_id}")
            continue

        try:
            message = message_template.format(**(template_context or {}))
        except KeyError as e:
            current_app.logger.error(f"[NotificationService] Template formatting error for user {user_id}: {e} - Template: '{message_template}', Context: {template_context}")
            continue

        if cooldown_minutes > 0:
            cooldown_threshold = datetime.datetime.utcnow() - datetime.timedelta(minutes=cooldown_minutes)
            recent_duplicate = Notification.query.filter(
                Notification.recipient_user_id == user_id,
                Notification.notification_type == notification_type,
                Notification.message == message,
                Notification.link_to_item_type == link_to_item_type,
                Notification.link_to_item_id == link_to_item_id,
                Notification.created_at >= cooldown_threshold
            ).first()

            if recent_duplicate:
                current_app.logger.info(f"[NotificationService] Cooldown: Skipped duplicate for user {user_id}, type '{notification_type}'.")
                continue

        notifications_to_add.append(Notification(
            recipient_user_id=user_id,
            message=message,
            notification_type=notification_type,
            link_to_item_type=link_to_item_type,
            link_to_item_id=link_to_item_id,
            related_patient_id=related_patient_id,
            is_urgent=is_urgent,
            metadata_json=metadata_json
        ))

    if not notifications_to_add:
        return []

    try:
        db.session.add_all(notifications_to_add)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"[NotificationService] Database commit failed while saving notifications: {e}")
        return None

    sent_notifications_data = []
    for n in notifications_to_add:
        data = n.to_dict()
        sent_notifications_data.append(data)
        current_app.logger.info(f"[NotificationService] Created: ID {n.id} for User {n.recipient_user_id}, Type '{n.notification_type}'")
        publish_change('notifications', n.id, 'insert', [n.recipient_user_id], data)
    return sent_notifications_data


def notify_access_requested(access_request, doctor_name):
    return create_notification(
        recipient_user_ids=access_request.patient_id,
        message_template="Dr. {doctor_name} has requested access to {scope_text}.",
        template_context={"doctor_name": doctor_name, "scope_text": describe_scope(access_request.requested_scope)},
        notification_type="ACCESS_REQUESTED",
        link_to_item_type="AccessRequest",
        link_to_item_id=access_request.id,
        related_patient_id=access_request.patient_id,
        is_urgent=False,
        cooldown_minutes=0
    )


def notify_access_decision(access_request, patient_name):
    approved = access_request.status == 'approved'
    return create_notification(
        recipient_user_ids=access_request.doctor_id,
        message_template="{patient_name} has {verb} your request to access {scope_text}.",
        template_context={
            "patient_name": patient_name,
            "verb": "approved" if approved else "denied",
            "scope_text": "their profile and medical reports" if access_request.requested_scope == 'all'
                          else f"their {'medical reports' if access_request.requested_scope == 'reports' else 'profile'}"
        },
        notification_type="ACCESS_APPROVED" if approved else "ACCESS_REJECTED",
        link_to_item_type="AccessRequest",
        link_to_item_id=access_request.id,
        related_patient_id=access_request.patient_id,
        cooldown_minutes=0
    )


def notify_appointment_reminder(appointment):
    return create_notification(
        recipient_user_ids=appointment.patient_id,
        message_template="Reminder: appointment with {doctor_name} ({specialty}) tomorrow, {date} at {time}.",
        template_context={
            "doctor_name": appointment.doctor_name,
            "specialty": appointment.specialty,
            "date": appointment.date.isoformat(),
            "time": appointment.time
        },
        notification_type="APPOINTMENT_REMINDER",
        link_to_item_type="Appointment",
        link_to_item_id=appointment.id,
        related_patient_id=appointment.patient_id,
        is_urgent=True,
        cooldown_minutes=60
    )


def describe_scope(scope):
    return {
        'profile': 'your profile',
        'reports': 'your medical reports',
        'all': 'your profile and medical reports',
    }.get(scope, 'your information')
