from flask import Blueprint, jsonify
from flask_login import (
    login_user,
    logout_user,
    login_required,
    current_user,
    user_logged_in,
    user_logged_out,
)
from agriconnect.extensions import db
from agriconnect.errors import ValidationError
from agriconnect.models import Language, Theme, User, UserRole
from agriconnect.services.audit_service import log_audit
from agriconnect.services.store import to_document
from agriconnect.utils import json_ready, request_data
from datetime import datetime
import logging
import re

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__)

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
MIN_PASSWORD_LENGTH = 6


def user_payload(user):
    return to_document(user, exclude=('password_hash',))


@user_logged_in.connect
def _record_login(sender, user, **extra):
    log_audit(
        actor_id=user.id,
        actor_role=user.role.name,
        action='LOGIN_SUCCESS',
        target_type='USER',
        target_id=user.id,
        payload={'event': 'login_success'}
    )


@user_logged_out.connect
def _record_logout(sender, user, **extra):
    if user is None or not user.is_authenticated:
        return
    log_audit(
        actor_id=user.id,
        actor_role=user.role.name,
        action='LOGOUT',
        target_type='USER',
        target_id=user.id,
        payload={'event': 'logout'}
    )


@bp.route('/api/auth/login', methods=['POST'])
def login():
    data = request_data()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    if not email or not password:
        return jsonify({'error': 'Email and password cannot be empty'}), 400

    user = User.query.filter_by(email=email).first()

    if user and user.check_password(password) and user.is_active:
        user.last_login_at = datetime.utcnow()
        db.session.commit()
        login_user(user, remember=True)
        return jsonify({
            'ok': True,
            'role': user.role.value,
            'user_id': user.id,
        })

    log_audit(
        actor_id=None,
        actor_role='ANONYMOUS',
        action='LOGIN_FAILED',
        target_type='USER',
        target_id=None,
        payload={
            'reason': 'invalid_credentials' if user else 'user_not_found'})
    return jsonify({'error': 'Invalid email or password'}), 401


@bp.route('/api/auth/register', methods=['POST'])
def register():
    data = request_data()
    name = (data.get('name') or '').strip()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    role = (data.get('role') or '').strip().upper()

    if not name:
        raise ValidationError('Name cannot be empty')
    if not EMAIL_RE.match(email):
        raise ValidationError('A valid email is required')
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
    try:
        user_role = UserRole[role]
    except KeyError:
        raise ValidationError('Role must be farmer or buyer')

    # Check if email already exists
    if User.query.filter_by(email=email).first():
        return jsonify({'error': 'Email already registered'}), 400

    user = User(
        email=email,
        name=name,
        role=user_role,
        location=(data.get('location') or '').strip() or None,
    )
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    log_audit(
        actor_id=user.id,
        actor_role=user.role.name,
        action='REGISTER',
        target_type='USER',
        target_id=user.id,
        payload={'role': user.role.value}
    )

    # Auto login
    login_user(user, remember=True)
    return jsonify({'ok': True, 'user': json_ready(user_payload(user))}), 201


@bp.route('/api/auth/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'ok': True})


@bp.route('/api/auth/me', methods=['GET'])
@login_required
def me():
    user = current_user._get_current_object()
    return jsonify({'user': json_ready(user_payload(user))})


@bp.route('/api/auth/profile', methods=['PUT', 'PATCH'])
@login_required
def update_profile():
    data = request_data()
    changed = []

    if 'name' in data:
        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationError('Name cannot be empty')
        current_user.name = name
        changed.append('name')
    if 'location' in data:
        current_user.location = (data.get('location') or '').strip() or None
        changed.append('location')
    if 'preferred_language' in data:
        try:
            current_user.preferred_language = Language(
                data.get('preferred_language'))
        except ValueError:
            raise ValidationError('Language must be en or ur')
        changed.append('preferred_language')
    if 'theme' in data:
        try:
            current_user.theme = Theme(data.get('theme'))
        except ValueError:
            raise ValidationError('Theme must be light or dark')
        changed.append('theme')
    if 'profile_image' in data:
        current_user.profile_image = (
            (data.get('profile_image') or '').strip() or None)
        changed.append('profile_image')

    db.session.commit()
    user = current_user._get_current_object()
    logger.info("User %s updated profile fields %s", user.id, changed)
    return jsonify({'user': json_ready(user_payload(user))})
