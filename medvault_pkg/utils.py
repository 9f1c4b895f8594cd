# medvault_pkg/utils.py
import jwt
import datetime
import re
import uuid # For generating JTI
from functools import wraps
from flask import request, current_app, g
from . import db
from .errors import AuthRequired, Forbidden, MalformedInput
from .models import User, TokenBlacklist

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')

# --- JWT Helper Functions ---
def create_access_token(user):
    """Creates a new JWT access token carrying the user's role claim."""
    jti = str(uuid.uuid4()) # Unique ID for this token
    payload = {
        'exp': datetime.datetime.utcnow() + datetime.timedelta(minutes=current_app.config.get('JWT_EXPIRATION_MINUTES', 30)),
        'iat': datetime.datetime.utcnow(),
        'sub': str(user.id),
        'jti': jti,
        'role': user.role.value if user.role else None
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET_KEY'], algorithm=current_app.config.get('JWT_ALGORITHM', 'HS256'))

def decode_access_token(token):
    """
    Decodes a JWT access token.
    Returns the payload if successful, or an error string if decoding fails.
    """
    key_to_use = current_app.config['JWT_SECRET_KEY']
    algo = current_app.config.get('JWT_ALGORITHM', 'HS256')
    try:
        payload = jwt.decode(token, key_to_use, algorithms=[algo])
        if payload.get('type') == 'refresh':
            return "Refresh tokens cannot be used for API access."
        if TokenBlacklist.query.filter_by(jti=payload.get('jti')).first():
            current_app.logger.info(f"Attempt to use blacklisted token (jti: {payload.get('jti')})")
            return "Token has been revoked (logged out)."
        return payload
    except jwt.ExpiredSignatureError:
        current_app.logger.info("Token decode failed: ExpiredSignatureError")
        return "Token has expired. Please log in again."
    except jwt.InvalidSignatureError:
        current_app.logger.warning("Token decode failed: InvalidSignatureError (Wrong secret key or tampered token)")
        return "Invalid token signature. Please log in again."
    except jwt.DecodeError as e:
        current_app.logger.warning(f"Token decode failed: DecodeError - {e}")
        return "Invalid token format. Please log in again."
    except jwt.InvalidTokenError as e:
        current_app.logger.error(f"Unexpected error decoding token: {e}")
        return "Invalid token. Please log in again."

def create_refresh_token(user_id):
    """Creates a new JWT refresh token."""
    jti = str(uuid.uuid4())
    payload = {
        'exp': datetime.datetime.utcnow() + datetime.timedelta(days=current_app.config.get('JWT_REFRESH_TOKEN_EXPIRES_DAYS', 7)),
        'iat': datetime.datetime.utcnow(),
        'sub': str(user_id),
        'jti': jti,
        'type': 'refresh' # Differentiate from access token
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET_KEY'], algorithm=current_app.config.get('JWT_ALGORITHM', 'HS256'))

def verify_refresh_token(token):
    """
    Verifies a refresh token. Returns payload or raises JWT specific exception on failure.
    """
    key_to_use = current_app.config['JWT_SECRET_KEY']
    algo = current_app.config.get('JWT_ALGORITHM', 'HS256')
    try:
        payload = jwt.decode(token, key_to_use, algorithms=[algo])
        if payload.get('type') != 'refresh':
            current_app.logger.warning("Invalid token type provided to verify_refresh_token.")
            raise jwt.InvalidTokenError("Not a valid refresh token.")
        return payload
    except jwt.InvalidTokenError as e:
        current_app.logger.warning(f"Refresh token verification failed: {e}")
        raise

def load_user_from_token(token):
    """Resolves an access token to an active User, or returns an error message string."""
    payload = decode_access_token(token)
    if isinstance(payload, str):
        return payload
    try:
        user = db.session.get(User, int(payload.get('sub')))
    except (TypeError, ValueError):
        return "Invalid token payload (subject missing)!"
    if not user:
        return "User from token not found in database."
    if not user.is_active:
        return "User account is inactive."
    g.current_token_jti = payload.get('jti')
    g.current_token_exp = payload.get('exp')
    return user

# --- Current User Utility & role decorators ---
def get_current_user_from_token():
    auth_header = request.headers.get('Authorization')
    token = None
    if auth_header and auth_header.startswith('Bearer '):
        token = auth_header.split(" ")[1]

    if not token:
        g.authentication_error = "Token is missing!"
        return None

    user = load_user_from_token(token)
    if isinstance(user, str):
        g.authentication_error = user
        return None
    return user

def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        current_user = get_current_user_from_token()
        if not current_user:
            raise AuthRequired(getattr(g, 'authentication_error', None))
        g.current_user = current_user
        return f(*args, **kwargs)
    return decorated_function

def role_required(*roles):
    """Restricts a route to users whose metadata role is one of `roles`."""
    def decorator(f):
        @wraps(f)
        @login_required
        def decorated_function(*args, **kwargs):
            if g.current_user.role not in roles:
                allowed = ', '.join(role.value for role in roles)
                raise Forbidden(f"This action requires the {allowed} role.")
            return f(*args, **kwargs)
        return decorated_function
    return decorator

# --- Input helpers ---
def get_json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise MalformedInput("Request body must be a JSON object.")
    return data

def validate_credentials(email, password):
    """Client-side style validation done before touching the database."""
    if not email or not EMAIL_RE.match(email):
        raise MalformedInput("Invalid email address.")
    min_length = current_app.config.get('MIN_PASSWORD_LENGTH', 8)
    if not password or len(password) < min_length:
        raise MalformedInput(f"Password must be at least {min_length} characters.")
