"""Server-Sent Events over the live query hub.

Each connection subscribes one query; the current rows are sent first and a
new ``data:`` event follows every committed change to the result set.
"""
from flask import Blueprint, Response, current_app, stream_with_context
from flask_login import login_required, current_user
from agriconnect.errors import PermissionDenied, ReferentialIntegrityError
from agriconnect.models import UserRole
from agriconnect.services.chat_service import get_chat_for
from agriconnect.services.realtime import (
    chat_messages_feed,
    farmer_crops_feed,
    farmer_orders_feed,
    latest_notifications_feed,
    user_chats_feed,
)
from agriconnect.utils import get_store, json_ready
import json
import logging
import queue

logger = logging.getLogger(__name__)

bp = Blueprint('stream', __name__)


def _farmer_only(feed):
    def build(user):
        if user.role != UserRole.FARMER:
            raise PermissionDenied('This feed is only available to farmers')
        return feed(user.id)
    return build


FEEDS = {
    'crops': _farmer_only(farmer_crops_feed),
    'orders': _farmer_only(farmer_orders_feed),
    'chats': lambda user: user_chats_feed(user.id),
    'notifications': lambda user: latest_notifications_feed(
        user.id, current_app.config.get('NOTIFICATION_FEED_LIMIT', 3)),
}


def event_stream(query):
    hub = current_app.extensions['realtime']
    heartbeat = current_app.config.get('STREAM_HEARTBEAT_SECONDS', 15)
    events = queue.Queue()
    # The initial rows are queued before the response starts.
    subscription = hub.subscribe(query, events.put)

    def generate():
        try:
            while True:
                try:
                    rows = events.get(timeout=heartbeat)
                except queue.Empty:
                    yield ': keep-alive\n\n'
                    continue
                yield f'data: {json.dumps(json_ready(rows))}\n\n'
        finally:
            subscription.unsubscribe()

    return Response(
        stream_with_context(generate()),
        mimetype='text/event-stream',
        headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'},
    )


@bp.route('/api/stream/<feed>', methods=['GET'])
@login_required
def stream_feed(feed):
    build = FEEDS.get(feed)
    if build is None:
        raise ReferentialIntegrityError(f'Unknown feed: {feed}')
    logger.info("User %s opened %s stream", current_user.id, feed)
    return event_stream(build(current_user))


@bp.route('/api/stream/chats/<int:chat_id>/messages', methods=['GET'])
@login_required
def stream_chat_messages(chat_id):
    chat = get_chat_for(get_store(), current_user, chat_id)
    return event_stream(chat_messages_feed(chat.id))
