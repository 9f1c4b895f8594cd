from . import db # Imports the db instance from __init__.py
from werkzeug.security import generate_password_hash, check_password_hash
import datetime
import enum
import re
import uuid

from .errors import MalformedInput


class Role(str, enum.Enum):
    PATIENT = 'patient'
    DOCTOR = 'doctor'


ACCESS_SCOPES = ('profile', 'reports', 'all')
RESOURCE_CLASSES = ('profile', 'reports')
ACCESS_STATUSES = ('pending', 'approved', 'rejected')
APPOINTMENT_STATUSES = ('scheduled', 'completed', 'cancelled')

_TIME_RE = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')


# --- Field parsing helpers shared by the from_payload constructors ---

def parse_date(value, field_name, required=True):
    if value in (None, ''):
        if required:
            raise MalformedInput(f"'{field_name}' is required (YYYY-MM-DD).")
        return None
    if isinstance(value, datetime.date):
        return value
    try:
        return datetime.date.fromisoformat(str(value)[:10])
    except ValueError:
        raise MalformedInput(f"Invalid '{field_name}' format. Use YYYY-MM-DD.")


def parse_time(value, field_name, required=True):
    if value in (None, ''):
        if required:
            raise MalformedInput(f"'{field_name}' is required (HH:MM).")
        return None
    value = str(value)[:5]
    if not _TIME_RE.match(value):
        raise MalformedInput(f"Invalid '{field_name}' format. Use HH:MM.")
    return value


def parse_number(value, field_name, data_type=float):
    if value in (None, ''):
        return None
    try:
        return data_type(value)
    except (ValueError, TypeError):
        raise MalformedInput(f"'{field_name}' must be a number.")


def require_text(data, field_name):
    value = data.get(field_name)
    if not isinstance(value, str) or not value.strip():
        raise MalformedInput(f"'{field_name}' is required.")
    return value.strip()


def _iso(value):
    return value.isoformat() if value else None


# --- Identity ---

class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    hashed_password = db.Column(db.String(256), nullable=False)
    # Role and display data live here, like the identity provider's user metadata.
    user_metadata = db.Column(db.JSON, nullable=False, default=dict)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    def set_password(self, password):
        self.hashed_password = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.hashed_password, password)

    @property
    def role(self):
        """The user's Role, or None when the metadata carries no known role."""
        try:
            return Role((self.user_metadata or {}).get('role'))
        except ValueError:
            return None

    @property
    def display_name(self):
        metadata = self.user_metadata or {}
        name = metadata.get('name')
        if not name and metadata.get('first_name'):
            name = f"{metadata.get('first_name')} {metadata.get('last_name') or ''}".strip()
        return name or self.email.split('@')[0]

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role.value if self.role else None,
            "user_metadata": self.user_metadata or {},
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at)
        }

    def __repr__(self):
        return f'<User {self.email}>'


class TokenBlacklist(db.Model):
    """
    Model for storing blacklisted JWT tokens (e.g., after logout).
    """
    __tablename__ = 'token_blacklist'
    id = db.Column(db.Integer, primary_key=True)
    jti = db.Column(db.String(36), nullable=False, unique=True, index=True) # JWT ID
    expires_at = db.Column(db.DateTime, nullable=False) # Should match token's expiry

    def __repr__(self):
        return f'<TokenBlacklist jti:{self.jti}>'


# --- Profiles ---

class Patient(db.Model):
    __tablename__ = 'patients'
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), unique=True, nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(120), nullable=True)
    date_of_birth = db.Column(db.Date, nullable=True)
    condition = db.Column(db.String(255), nullable=True) # Primary condition
    # gender, blood_group, phone, address, emergency_contact, medical_conditions, allergies
    profile_data = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    user = db.relationship('User', backref=db.backref('patient_profile', uselist=False))

    @property
    def age(self):
        if self.date_of_birth:
            today = datetime.date.today()
            return today.year - self.date_of_birth.year - \
                   ((today.month, today.day) < (self.date_of_birth.month, self.date_of_birth.day))
        return None

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "date_of_birth": _iso(self.date_of_birth),
            "age": self.age,
            "condition": self.condition,
            "profile_data": self.profile_data or {},
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at)
        }

    def __repr__(self):
        return f'<Patient {self.name} (user {self.user_id})>'


class Doctor(db.Model):
    __tablename__ = 'doctors'
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), unique=True, nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(120), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    specialization = db.Column(db.String(120), nullable=True)
    experience_years = db.Column(db.Integer, nullable=True)
    qualifications = db.Column(db.JSON, nullable=False, default=list) # Ordered list of strings
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    user = db.relationship('User', backref=db.backref('doctor_profile', uselist=False))

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "specialization": self.specialization,
            "experience_years": self.experience_years,
            "qualifications": list(self.qualifications or []),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at)
        }

    def __repr__(self):
        return f'<Doctor {self.name} ({self.specialization})>'


# --- Access control ---

class AccessRequest(db.Model):
    __tablename__ = 'access_requests'
    # Integer key so rows created within the same clock tick still sort by insertion.
    id = db.Column(db.Integer, primary_key=True)
    doctor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    patient_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    requested_scope = db.Column(db.String(20), nullable=False, default='all')
    status = db.Column(
        db.String(20),
        nullable=False,
        default='pending',
        index=True,
        comment="Valid values: pending, approved, rejected"
    )
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    doctor = db.relationship('User', foreign_keys=[doctor_id])
    patient = db.relationship('User', foreign_keys=[patient_id])

    def covers(self, resource_class):
        return self.requested_scope == 'all' or self.requested_scope == resource_class

    def to_dict(self, include_related=True):
        data = {
            "id": self.id,
            "doctor_id": self.doctor_id,
            "patient_id": self.patient_id,
            "requested_scope": self.requested_scope,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at)
        }
        if include_related:
            doctor_profile = Doctor.query.filter_by(user_id=self.doctor_id).first()
            data["doctor_name"] = doctor_profile.name if doctor_profile else "Unknown Doctor"
        return data

    def __repr__(self):
        return (
            f"<AccessRequest {self.id} | Doctor {self.doctor_id} -> Patient {self.patient_id} | "
            f"{self.requested_scope}: {self.status}>"
        )


# --- Patient-owned records (read and written through the reconciling repositories) ---

class Appointment(db.Model):
    __tablename__ = 'appointments'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    patient_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    # Best-effort link; bookings only require the doctor's name.
    doctor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)
    doctor_name = db.Column(db.String(200), nullable=False)
    specialty = db.Column(db.String(120), nullable=False)
    date = db.Column(db.Date, nullable=False, index=True)
    time = db.Column(db.String(5), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    status = db.Column(
        db.String(20),
        nullable=False,
        default='scheduled',
        index=True,
        comment="Valid values: scheduled, completed, cancelled"
    )
    reminder_sent = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)

    @classmethod
    def from_payload(cls, owner_id, data):
        return cls(
            patient_id=owner_id,
            doctor_id=parse_number(data.get('doctor_id'), 'doctor_id', int),
            doctor_name=require_text(data, 'doctor_name'),
            specialty=require_text(data, 'specialty'),
            date=parse_date(data.get('date'), 'date'),
            time=parse_time(data.get('time'), 'time'),
            notes=data.get('notes') or None,
            status='scheduled',
            reminder_sent=False
        )

    def to_dict(self):
        return {
            "id": self.id,
            "patient_id": self.patient_id,
            "doctor_id": self.doctor_id,
            "doctor_name": self.doctor_name,
            "specialty": self.specialty,
            "date": _iso(self.date),
            "time": self.time,
            "notes": self.notes,
            "status": self.status,
            "reminder_sent": bool(self.reminder_sent),
            "created_at": _iso(self.created_at)
        }

    def __repr__(self):
        return f"<Appointment {self.id} | Patient {self.patient_id} | {self.doctor_name} @ {self.date} {self.time}>"


class Report(db.Model):
    __tablename__ = 'reports'
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    doctor_name = db.Column(db.String(200), nullable=True)
    date = db.Column(db.Date, nullable=False, index=True)
    category = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    file_url = db.Column(db.Text, nullable=True) # URL or data URL of the uploaded file
    file_name = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)

    @classmethod
    def from_payload(cls, owner_id, data):
        return cls(
            owner_id=owner_id,
            title=require_text(data, 'title'),
            doctor_name=data.get('doctor_name') or data.get('doctor'),
            date=parse_date(data.get('date'), 'date'),
            category=data.get('category'),
            notes=data.get('notes'),
            file_url=data.get('file_url'),
            file_name=data.get('file_name')
        )

    def to_dict(self):
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "title": self.title,
            "doctor_name": self.doctor_name,
            "date": _iso(self.date),
            "category": self.category,
            "notes": self.notes,
            "file_url": self.file_url,
            "file_name": self.file_name,
            "created_at": _iso(self.created_at)
        }

    def __repr__(self):
        return f'<Report {self.id} - {self.title}>'


class HealthMetric(db.Model):
    __tablename__ = 'health_metrics'
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    time = db.Column(db.String(5), nullable=True)

    # Every reading is optional; a row may carry any subset.
    heart_rate = db.Column(db.Integer, nullable=True)
    systolic = db.Column(db.Integer, nullable=True)
    diastolic = db.Column(db.Integer, nullable=True)
    blood_sugar = db.Column(db.Integer, nullable=True)
    temperature = db.Column(db.Float, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)

    @classmethod
    def from_payload(cls, owner_id, data):
        temperature = parse_number(data.get('temperature'), 'temperature')
        return cls(
            owner_id=owner_id,
            date=parse_date(data.get('date'), 'date'),
            time=parse_time(data.get('time'), 'time', required=False),
            heart_rate=parse_number(data.get('heart_rate'), 'heart_rate', int),
            systolic=parse_number(data.get('systolic'), 'systolic', int),
            diastolic=parse_number(data.get('diastolic'), 'diastolic', int),
            blood_sugar=parse_number(data.get('blood_sugar'), 'blood_sugar', int),
            temperature=round(temperature, 1) if temperature is not None else None,
            notes=data.get('notes') or None
        )

    def to_dict(self):
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "date": _iso(self.date),
            "time": self.time,
            "heart_rate": self.heart_rate,
            "systolic": self.systolic,
            "diastolic": self.diastolic,
            "blood_sugar": self.blood_sugar,
            "temperature": self.temperature,
            "notes": self.notes,
            "created_at": _iso(self.created_at)
        }

    def __repr__(self):
        return f'<HealthMetric {self.id} for User {self.owner_id} on {self.date}>'


class Medication(db.Model):
    __tablename__ = 'medications'
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    dosage = db.Column(db.String(100), nullable=True)
    frequency = db.Column(db.String(100), nullable=True)
    start_date = db.Column(db.Date, nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)

    @classmethod
    def from_payload(cls, owner_id, data):
        return cls(
            owner_id=owner_id,
            name=require_text(data, 'name'),
            dosage=data.get('dosage'),
            frequency=data.get('frequency'),
            start_date=parse_date(data.get('start_date'), 'start_date', required=False),
            notes=data.get('notes')
        )

    def to_dict(self):
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "dosage": self.dosage,
            "frequency": self.frequency,
            "start_date": _iso(self.start_date),
            "notes": self.notes,
            "created_at": _iso(self.created_at)
        }

    def __repr__(self):
        return f'<Medication {self.id} - {self.name} for User {self.owner_id}>'


# --- Notifications & audit ---

class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    recipient_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    related_patient_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)

    message = db.Column(db.Text, nullable=False)
    notification_type = db.Column(
        db.String(100),
        nullable=False,
        index=True,
        comment="E.g., ACCESS_REQUESTED, ACCESS_APPROVED, ACCESS_REJECTED, APPOINTMENT_REMINDER"
    )

    is_read = db.Column(db.Boolean, default=False, nullable=False, index=True)
    read_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, nullable=False, index=True)

    link_to_item_type = db.Column(
        db.String(50),
        nullable=True,
        comment="E.g., 'AccessRequest', 'Appointment'"
    )
    link_to_item_id = db.Column(db.String(36), nullable=True)

    metadata_json = db.Column(db.JSON, nullable=True, comment="Optional structured payload for frontend logic")
    is_urgent = db.Column(db.Boolean, default=False, nullable=False)

    recipient = db.relationship(
        'User',
        foreign_keys=[recipient_user_id],
        backref=db.backref('all_notifications', lazy='dynamic', order_by="desc(Notification.created_at)")
    )

    def to_dict(self):
        return {
            "id": self.id,
            "recipient_user_id": self.recipient_user_id,
            "message": self.message,
            "notification_type": self.notification_type,
            "is_read": self.is_read,
            "read_at": _iso(self.read_at),
            "created_at": _iso(self.created_at),
            "link_to_item_type": self.link_to_item_type,
            "link_to_item_id": self.link_to_item_id,
            "related_patient_id": self.related_patient_id,
            "metadata_json": self.metadata_json,
            "is_urgent": self.is_urgent
        }

    def __repr__(self):
        return (
            f"<Notification {self.id} | User: {self.recipient_user_id} | "
            f"Type: {self.notification_type} | Urgent: {self.is_urgent}>"
        )


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'
    id = db.Column(db.Integer, primary_key=True)
    action = db.Column(db.String(100), nullable=False, index=True)
    target_model = db.Column(db.String(100), nullable=True)
    target_id = db.Column(db.String(36), nullable=True, index=True)
    change_details = db.Column(db.JSON, nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    user_email = db.Column(db.String(120), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f'<AuditLog {self.action} {self.target_model}:{self.target_id}>'
