from sqlalchemy.exc import IntegrityError
from agriconnect.errors import (
    PermissionDenied,
    ReferentialIntegrityError,
    ValidationError,
)
from agriconnect.models import Chat, ChatMessage, User
from agriconnect.services.notification_service import create_notification
from agriconnect.services.store import normalize_timestamps, to_document
import logging

logger = logging.getLogger(__name__)

MESSAGES_LINK = '/messages'
MAX_MESSAGE_LENGTH = 2000


def canonical_pair(user_id, other_id):
    first, second = sorted((int(user_id), int(other_id)))
    return first, second


def _find_chat(store, pair):
    chats = store.find(
        Chat,
        where={'participant_a_id': pair[0], 'participant_b_id': pair[1]},
        limit=1,
    )
    return chats[0] if chats else None


def get_or_create_chat(store, user_id, other_id):
    if int(user_id) == int(other_id):
        raise ValidationError('Cannot start a chat with yourself')
    if store.get(User, other_id) is None:
        raise ReferentialIntegrityError('User not found')

    pair = canonical_pair(user_id, other_id)
    chat = _find_chat(store, pair)
    if chat:
        return chat

    try:
        chat = store.insert(
            Chat,
            participant_a_id=pair[0],
            participant_b_id=pair[1],
        )
        store.commit()
    except IntegrityError:
        # Created concurrently by the other participant.
        store.rollback()
        chat = _find_chat(store, pair)
    logger.info("Chat %s ready for users %s", chat.id, pair)
    return chat


def get_chat_for(store, actor, chat_id):
    chat = store.get(Chat, chat_id)
    if chat is None:
        raise ReferentialIntegrityError('Chat not found')
    if actor.id not in chat.participants:
        logger.warning(
            "User %s attempted to access chat %s", actor.id, chat_id)
        raise PermissionDenied('No permission to access this chat')
    return chat


def list_chats(store, user_id):
    chats = (
        store.find(Chat, where={'participant_a_id': user_id})
        + store.find(Chat, where={'participant_b_id': user_id})
    )
    chats.sort(
        key=lambda c: (c.last_message_at is not None,
                       c.last_message_at or c.created_at),
        reverse=True,
    )
    return chats


def list_messages(store, actor, chat_id, limit=None):
    chat = get_chat_for(store, actor, chat_id)
    return store.find(
        ChatMessage,
        where={'chat_id': chat.id},
        order_by='created_at',
        limit=limit,
    )


def send_message(store, actor, chat_id, text, notifier=create_notification):
    text = (text or '').strip()
    if not text:
        raise ValidationError('Message cannot be empty')
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationError('Message is too long')

    chat = get_chat_for(store, actor, chat_id)
    message = store.insert(
        ChatMessage,
        chat_id=chat.id,
        sender_id=actor.id,
        text=text,
    )
    store.update(
        chat,
        last_message_text=text,
        last_message_sender_id=actor.id,
        last_message_at=message.created_at,
    )
    store.commit()

    recipient_id = (
        chat.participant_b_id
        if actor.id == chat.participant_a_id
        else chat.participant_a_id
    )
    notifier(
        store,
        recipient_id,
        'notification.newMessage',
        {'senderName': actor.name},
        MESSAGES_LINK,
    )
    return message


def chat_payload(chat, user_id):
    other = chat.other_participant(user_id)
    last_message = None
    if chat.last_message_at is not None:
        last_message = {
            'text': chat.last_message_text,
            'sender_id': chat.last_message_sender_id,
            'timestamp': chat.last_message_at,
        }
    return normalize_timestamps({
        'id': chat.id,
        'participants': chat.participants,
        'other_participant': {
            'id': other.id if other else None,
            'name': other.name if other else 'User',
        },
        'last_message': last_message,
    })


def message_payload(message):
    return to_document(message)
