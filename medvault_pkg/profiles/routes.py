# medvault_pkg/profiles/routes.py
from flask import Blueprint, jsonify, current_app, g
from sqlalchemy.exc import SQLAlchemyError
from .. import db
from ..access.services import doctors_with_visibility
from ..errors import MalformedInput, RemoteUnavailable
from ..models import Doctor, Patient, Role, parse_date, parse_number
from ..sockets import publish_change
from ..utils import get_json_body, role_required

profiles_bp = Blueprint('profiles_bp', __name__)

PATIENT_PROFILE_KEYS = ('gender', 'blood_group', 'phone', 'address', 'emergency_contact',
                        'medical_conditions', 'allergies')


def _commit_profile(description):
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"[Profiles] Failed to save {description}: {e}")
        raise RemoteUnavailable(f"Could not save {description}. Please try again.")


# --- Patient ---

@profiles_bp.route('/profile', methods=['GET'])
@role_required(Role.PATIENT)
def get_patient_profile():
    current_user = g.current_user
    patient = Patient.query.filter_by(user_id=current_user.id).first()
    if patient is None:
        # Sign-up may not have created the row; show what the account metadata knows.
        return jsonify({"profile": {"user_id": current_user.id, "name": current_user.display_name,
                                    "email": current_user.email, "profile_data": {}}}), 200
    return jsonify({"profile": patient.to_dict()}), 200


@profiles_bp.route('/profile', methods=['PUT'])
@role_required(Role.PATIENT)
def update_patient_profile():
    current_user = g.current_user
    data = get_json_body()

    patient = Patient.query.filter_by(user_id=current_user.id).first()
    created = patient is None
    if created:
        patient = Patient(user_id=current_user.id, name=current_user.display_name, email=current_user.email)
        db.session.add(patient)

    if 'name' in data:
        if not isinstance(data['name'], str) or not data['name'].strip():
            raise MalformedInput("'name' cannot be empty.")
        patient.name = data['name'].strip()
    if 'date_of_birth' in data:
        patient.date_of_birth = parse_date(data['date_of_birth'], 'date_of_birth', required=False)
    if 'condition' in data:
        patient.condition = data['condition'] or None

    profile_data = dict(patient.profile_data or {})
    for key in PATIENT_PROFILE_KEYS:
        if key in data:
            profile_data[key] = data[key]
    patient.profile_data = profile_data

    _commit_profile("your profile")
    current_app.logger.info(f"[Profiles] Patient profile {'created' if created else 'updated'} for user {current_user.id}")

    profile = patient.to_dict()
    publish_change('patients', patient.id, 'insert' if created else 'update',
                   [current_user.id] + doctors_with_visibility(current_user.id, 'profile'), profile)
    return jsonify({"message": "Profile updated successfully!", "profile": profile}), 200


# --- Doctor ---

@profiles_bp.route('/doctor/profile', methods=['GET'])
@role_required(Role.DOCTOR)
def get_doctor_profile():
    current_user = g.current_user
    doctor = Doctor.query.filter_by(user_id=current_user.id).first()
    if doctor is None:
        metadata = current_user.user_metadata or {}
        return jsonify({"profile": {"user_id": current_user.id, "name": current_user.display_name,
                                    "email": current_user.email,
                                    "specialization": metadata.get('specialization'),
                                    "qualifications": []}}), 200
    return jsonify({"profile": doctor.to_dict()}), 200


@profiles_bp.route('/doctor/profile', methods=['PUT'])
@role_required(Role.DOCTOR)
def update_doctor_profile():
    current_user = g.current_user
    data = get_json_body()

    doctor = Doctor.query.filter_by(user_id=current_user.id).first()
    if doctor is None:
        doctor = Doctor(user_id=current_user.id, name=current_user.display_name, email=current_user.email)
        db.session.add(doctor)

    if 'name' in data:
        if not isinstance(data['name'], str) or not data['name'].strip():
            raise MalformedInput("'name' cannot be empty.")
        doctor.name = data['name'].strip()
    for field in ('phone', 'specialization'):
        if field in data:
            setattr(doctor, field, data[field] or None)
    if 'experience_years' in data:
        doctor.experience_years = parse_number(data['experience_years'], 'experience_years', int)
    if 'qualifications' in data:
        qualifications = data['qualifications']
        if not isinstance(qualifications, list) or not all(isinstance(q, str) for q in qualifications):
            raise MalformedInput("'qualifications' must be a list of strings.")
        doctor.qualifications = [q.strip() for q in qualifications if q.strip()]

    _commit_profile("your profile")
    current_app.logger.info(f"[Profiles] Doctor profile saved for user {current_user.id}")
    return jsonify({"message": "Profile updated successfully!", "profile": doctor.to_dict()}), 200
