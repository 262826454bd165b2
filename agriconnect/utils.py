from datetime import datetime
from flask import current_app, request
from agriconnect.errors import ValidationError
from agriconnect.extensions import db
from agriconnect.services.store import Store
import logging

logger = logging.getLogger(__name__)


def get_store():
    return Store(db.session)


def json_ready(value):
    """Convert documents to JSON-safe values; datetimes become ISO 8601."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: json_ready(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_ready(v) for v in value]
    return value


def request_data():
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form


def get_limit(default=None):
    raw = request.args.get('limit')
    if raw in (None, ''):
        return default
    try:
        limit = int(raw)
    except ValueError:
        raise ValidationError('limit must be a positive integer')
    if limit <= 0:
        raise ValidationError('limit must be a positive integer')
    return min(limit, current_app.config.get('ITEMS_PER_PAGE', 20) * 5)
