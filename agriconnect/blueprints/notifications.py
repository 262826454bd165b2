from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from agriconnect.errors import ValidationError
from agriconnect.services.notification_service import (
    list_notifications,
    mark_notifications_read,
    notification_payload,
    unread_count,
)
from agriconnect.utils import get_limit, get_store, json_ready, request_data

bp = Blueprint('notifications', __name__)


@bp.route('/api/notifications', methods=['GET'])
@login_required
def notifications():
    store = get_store()
    items = list_notifications(store, current_user.id, limit=get_limit())
    return jsonify({
        'notifications': json_ready(
            [notification_payload(n) for n in items]),
        'unread_count': unread_count(store, current_user.id),
    })


@bp.route('/api/notifications/unread-count', methods=['GET'])
@login_required
def notifications_unread_count():
    return jsonify({'count': unread_count(get_store(), current_user.id)})


@bp.route('/api/notifications/read', methods=['POST'])
@login_required
def mark_read():
    ids = request_data().get('ids')
    if not isinstance(ids, list):
        raise ValidationError('ids must be a list of notification ids')
    try:
        updated = mark_notifications_read(get_store(), current_user.id, ids)
    except (TypeError, ValueError):
        raise ValidationError('ids must be a list of notification ids')
    return jsonify({'ok': True, 'updated': updated})
