# medvault_pkg/audit/services.py
from flask import has_request_context, request, g
from .. import db
from ..models import AuditLog

def create_audit_log(action, target_model=None, target_id=None, change_details=None, actor=None, commit=False):
    """
    Creates an audit log entry.
    The actor defaults to g.current_user; IP and user agent come from the request when there is one.
    The session is not committed automatically unless specified.
    """
    if actor is None and has_request_context():
        actor = getattr(g, 'current_user', None)

    ip_address = None
    user_agent = None
    if has_request_context():
        ip_address = request.remote_addr
        user_agent = request.user_agent.string if request.user_agent else None

    log_entry = AuditLog(
        action=action,
        target_model=target_model,
        target_id=str(target_id) if target_id is not None else None,
        change_details=change_details,
        user_id=actor.id if actor else None,
        user_email=actor.email if actor else "system",
        ip_address=ip_address,
        user_agent=user_agent
    )
    db.session.add(log_entry)

    if commit:
        db.session.commit()
    return log_entry
