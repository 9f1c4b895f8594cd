# medvault_pkg/auth/routes.py
from flask import Blueprint, request, jsonify, current_app, g
from .. import db
from ..errors import AuthRequired, Forbidden, InvalidState, MalformedInput, RemoteUnavailable
from ..models import Doctor, Patient, Role, TokenBlacklist, User
from ..sockets import publish_auth_event
from ..utils import create_access_token, create_refresh_token, verify_refresh_token, \
                    get_json_body, login_required, validate_credentials
from ..audit.services import create_audit_log
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
import datetime
import jwt

auth_bp = Blueprint('auth_bp', __name__)

# Metadata keys a user may change on their own account. 'role' is deliberately absent.
EDITABLE_METADATA_KEYS = ('name', 'first_name', 'last_name', 'specialization', 'phone')


def _session_payload(user):
    return {
        "access_token": create_access_token(user),
        "refresh_token": create_refresh_token(user.id),
        "user": user.to_dict()
    }


@auth_bp.route('/register', methods=['POST'])
def register():
    data = get_json_body()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password')
    validate_credentials(email, password)

    try:
        role = Role(data.get('role'))
    except ValueError:
        raise MalformedInput("'role' must be 'patient' or 'doctor'.")

    if role is Role.PATIENT:
        first_name = (data.get('first_name') or '').strip()
        last_name = (data.get('last_name') or '').strip()
        if not first_name or not last_name:
            raise MalformedInput("First and last name are required.")
        metadata = {"role": role.value, "first_name": first_name, "last_name": last_name}
        profile_name = f"{first_name} {last_name}"
    else:
        name = (data.get('name') or '').strip()
        specialization = (data.get('specialization') or '').strip()
        if not name or not specialization:
            raise MalformedInput("Name and specialization are required.")
        metadata = {"role": role.value, "name": name, "specialization": specialization}
        profile_name = name

    if User.query.filter_by(email=email).first():
        raise InvalidState("User with this email already exists.")

    try:
        new_user = User(email=email, user_metadata=metadata)
        new_user.set_password(password)
        db.session.add(new_user)
        db.session.flush()
        if role is Role.PATIENT:
            db.session.add(Patient(user_id=new_user.id, name=profile_name, email=email))
        else:
            db.session.add(Doctor(user_id=new_user.id, name=profile_name, email=email,
                                  specialization=metadata['specialization']))
        create_audit_log(action="USER_REGISTERED", target_model="User", target_id=new_user.id, actor=new_user)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise InvalidState("User with this email already exists.")
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error during registration for {email}: {e}")
        raise RemoteUnavailable("An error occurred during registration.")

    current_app.logger.info(f"New {role.value} registered: {email}")
    return jsonify({
        "message": "Account created successfully! You can now log in.",
        "user": new_user.to_dict()
    }), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = get_json_body()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password')
    validate_credentials(email, password)

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        current_app.logger.warning(f"Failed login attempt for email: {email}")
        raise AuthRequired("Invalid email or password.")
    if not user.is_active:
        current_app.logger.warning(f"Inactive user login attempt: {email}")
        raise Forbidden("User account is inactive.")

    # Portal login pages pass the role they belong to; a doctor cannot sign in through the patient page.
    expected_role = data.get('role')
    if expected_role and (user.role is None or user.role.value != expected_role):
        current_app.logger.warning(f"Role mismatch on login for {email}: expected {expected_role}")
        raise Forbidden(f"This account is not registered as a {expected_role}.")

    create_audit_log(action="LOGIN_SUCCESS", target_model="User", target_id=user.id, actor=user, commit=True)
    current_app.logger.info(f"User '{email}' logged in successfully.")
    publish_auth_event('SIGNED_IN', user.id)
    return jsonify({"message": "Login successful.", **_session_payload(user)}), 200


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    jti = getattr(g, 'current_token_jti', None)
    token_exp = getattr(g, 'current_token_exp', None)
    if not jti or token_exp is None:
        raise MalformedInput("Token information unavailable for logout.")

    try:
        db.session.add(TokenBlacklist(jti=jti, expires_at=datetime.datetime.utcfromtimestamp(token_exp)))
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        current_app.logger.info(f"Token JTI {jti} already blacklisted.")
        return jsonify({"message": "Already logged out or token revoked."}), 200
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Logout error for JTI {jti}: {e}")
        raise RemoteUnavailable("Failed to process logout.")

    current_app.logger.info(f"User {g.current_user.id} logged out. Token JTI {jti} blacklisted.")
    publish_auth_event('SIGNED_OUT', g.current_user.id)
    return jsonify({"message": "Logged out successfully."}), 200


@auth_bp.route('/refresh-token', methods=['POST'])
def refresh_token_route():
    data = get_json_body()
    if 'refresh_token' not in data:
        raise MalformedInput("Refresh token is required.")

    try:
        payload = verify_refresh_token(data['refresh_token'])
    except jwt.ExpiredSignatureError:
        raise AuthRequired("Refresh token has expired.")
    except jwt.InvalidTokenError:
        raise AuthRequired("Invalid or malformed refresh token.")

    user = db.session.get(User, int(payload['sub']))
    if not user or not user.is_active:
        raise AuthRequired("User not found or inactive.")

    current_app.logger.info(f"Access token refreshed for user ID: {user.id}")
    return jsonify({"access_token": create_access_token(user)}), 200


@auth_bp.route('/session', methods=['GET'])
@login_required
def get_session():
    """Current session: the user plus token expiry, as the client's session check expects."""
    expires_at = getattr(g, 'current_token_exp', None)
    return jsonify({
        "user": g.current_user.to_dict(),
        "expires_at": datetime.datetime.utcfromtimestamp(expires_at).isoformat() if expires_at else None
    }), 200


@auth_bp.route('/me', methods=['GET'])
@login_required
def get_current_user_profile():
    return jsonify(g.current_user.to_dict()), 200


@auth_bp.route('/me', methods=['PUT'])
@login_required
def update_current_user():
    current_user = g.current_user
    data = get_json_body()
    changes = data.get('user_metadata', data)
    if not isinstance(changes, dict):
        raise MalformedInput("'user_metadata' must be an object.")
    if 'role' in changes and changes['role'] != (current_user.role.value if current_user.role else None):
        raise Forbidden("The account role cannot be changed.")

    metadata = dict(current_user.user_metadata or {})
    for key in EDITABLE_METADATA_KEYS:
        if key in changes:
            metadata[key] = changes[key]
    current_user.user_metadata = metadata

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update metadata for user {current_user.id}: {e}")
        raise RemoteUnavailable("Could not update your account.")

    publish_auth_event('USER_UPDATED', current_user.id)
    return jsonify({"message": "Account updated.", "user": current_user.to_dict()}), 200
