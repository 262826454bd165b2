from sqlalchemy.exc import SQLAlchemyError
from agriconnect.models import Notification
from agriconnect.services.store import normalize_timestamps
import json
import logging

logger = logging.getLogger(__name__)


def create_notification(store, recipient_id, message_key, params=None,
                        link=''):
    """Write an unread notification for ``recipient_id`` in its own commit.

    Callers invoke this after their primary write has committed. A failure
    here is logged and swallowed: the primary operation already happened
    and must not be reported as failed. Returns the notification or None.
    """
    try:
        notification = store.insert(
            Notification,
            user_id=recipient_id,
            message=message_key,
            link=link or '',
            is_read=False,
            message_params_json=json.dumps(params or {}, ensure_ascii=False),
        )
        store.commit()
        return notification
    except SQLAlchemyError:
        store.rollback()
        logger.exception(
            "Failed to create notification %s for user %s",
            message_key,
            recipient_id,
        )
        return None


def list_notifications(store, user_id, limit=None):
    return store.find(
        Notification,
        where={'user_id': user_id},
        order_by='created_at',
        descending=True,
        limit=limit,
    )


def unread_count(store, user_id):
    return store.session.query(Notification).filter_by(
        user_id=user_id,
        is_read=False,
    ).count()


def mark_notifications_read(store, user_id, notification_ids):
    """Mark the recipient's own notifications as read in one commit."""
    ids = {int(i) for i in notification_ids or []}
    if not ids:
        return 0
    updated = 0
    for notification in list_notifications(store, user_id):
        if notification.id in ids and not notification.is_read:
            store.update(notification, is_read=True)
            updated += 1
    store.commit()
    return updated


def notification_payload(notification):
    return normalize_timestamps({
        'id': notification.id,
        'user_id': notification.user_id,
        'message': notification.message,
        'message_params': notification.get_params(),
        'link': notification.link,
        'is_read': notification.is_read,
        'created_at': notification.created_at,
    })
