from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from agriconnect.errors import ValidationError
from agriconnect.services.chat_service import (
    chat_payload,
    get_or_create_chat,
    list_chats,
    list_messages,
    message_payload,
    send_message,
)
from agriconnect.utils import get_limit, get_store, json_ready, request_data
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('chat', __name__)


@bp.route('/api/chats', methods=['GET'])
@login_required
def chats():
    items = list_chats(get_store(), current_user.id)
    return jsonify({
        'chats': json_ready([chat_payload(c, current_user.id) for c in items])
    })


@bp.route('/api/chats', methods=['POST'])
@login_required
def start_chat():
    data = request_data()
    other_id = data.get('user_id')
    try:
        other_id = int(other_id)
    except (TypeError, ValueError):
        raise ValidationError('user_id is required')

    chat = get_or_create_chat(get_store(), current_user.id, other_id)
    return jsonify({'chat': json_ready(chat_payload(chat, current_user.id))})


@bp.route('/api/chats/<int:chat_id>/messages', methods=['GET'])
@login_required
def messages(chat_id):
    items = list_messages(
        get_store(), current_user, chat_id, limit=get_limit())
    return jsonify({
        'messages': json_ready([message_payload(m) for m in items])
    })


@bp.route('/api/chats/<int:chat_id>/messages', methods=['POST'])
@login_required
def post_message(chat_id):
    data = request_data()
    message = send_message(
        get_store(), current_user, chat_id, data.get('text'))
    logger.info(
        "Message %s sent in chat %s by user %s",
        message.id,
        chat_id,
        current_user.id,
    )
    return jsonify({'message': json_ready(message_payload(message))}), 201
