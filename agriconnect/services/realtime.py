"""Live query subscriptions driven by committed writes.

A subscriber gets the current result set synchronously, then a fresh one
after each commit that touched a table its query reads, but only when the
result actually changed. Writes are observed through SQLAlchemy session
events, so every code path that commits through a session is covered.
"""
from flask import current_app, has_app_context
from sqlalchemy import event
from sqlalchemy.orm import Session
from agriconnect.extensions import db
from agriconnect.models import ChatMessage, Crop, Notification, Order
from agriconnect.services.chat_service import chat_payload, list_chats
from agriconnect.services.notification_service import notification_payload
from agriconnect.services.order_service import OrderService
from agriconnect.services.store import Store, to_document
import itertools
import logging
import threading

logger = logging.getLogger(__name__)

_TOUCHED_KEY = 'realtime_touched_tables'
_COMMITTED_KEY = 'realtime_committed_tables'


def _default_serializer(obj, store):
    return to_document(obj, exclude=('version_id',))


class LiveQuery:

    def __init__(
            self,
            model,
            where=None,
            order_by=None,
            descending=False,
            limit=None,
            serializer=None,
            depends_on=()):
        self.model = model
        self.where = dict(where or {})
        self.order_by = order_by
        self.descending = descending
        self.limit = limit
        self.serializer = serializer or _default_serializer
        self.tables = {model.__tablename__} | set(depends_on)

    def evaluate(self, session):
        store = Store(session)
        rows = store.find(
            self.model,
            where=self.where,
            order_by=self.order_by,
            descending=self.descending,
            limit=self.limit,
        )
        return [self.serializer(row, store) for row in rows]

    def __repr__(self):
        return f'<LiveQuery {self.model.__name__} where={self.where}>'


class Subscription:

    _ids = itertools.count(1)

    def __init__(self, hub, query, callback):
        self.id = next(self._ids)
        self.hub = hub
        self.query = query
        self.callback = callback
        self.active = True
        self._lock = threading.RLock()
        self._last = None

    def refresh(self, initial=False):
        # One refresh at a time per subscription; each re-reads the latest
        # committed state, so a late refresh never delivers stale rows.
        # Reentrant: a callback that commits refreshes its own query inline.
        with self._lock:
            if not self.active:
                return False
            result = self.hub.evaluate(self.query)
            if not initial and result == self._last:
                return False
            self._last = result
            self.callback(result)
            return True

    def unsubscribe(self):
        self.hub.unsubscribe(self)


class SubscriptionHub:

    def __init__(self, app=None):
        self.app = None
        self._subscriptions = {}
        self._lock = threading.Lock()
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.app = app
        app.extensions['realtime'] = self

    def evaluate(self, query):
        with self.app.app_context():
            with Session(db.engine) as session:
                return query.evaluate(session)

    def subscribe(self, query, callback):
        """Register ``callback`` for ``query`` and deliver the current rows.

        The first delivery happens before this returns. Errors raised by
        the initial evaluation or callback propagate to the caller.
        """
        subscription = Subscription(self, query, callback)
        with self._lock:
            self._subscriptions[subscription.id] = subscription
        try:
            subscription.refresh(initial=True)
        except Exception:
            self.unsubscribe(subscription)
            raise
        logger.debug("Subscription %s opened for %r", subscription.id, query)
        return subscription

    def unsubscribe(self, subscription):
        subscription.active = False
        with self._lock:
            self._subscriptions.pop(subscription.id, None)
        logger.debug("Subscription %s closed", subscription.id)

    def subscription_count(self):
        with self._lock:
            return len(self._subscriptions)

    def notify(self, tables):
        with self._lock:
            targets = [
                s for s in self._subscriptions.values()
                if s.query.tables & tables
            ]
        for subscription in targets:
            try:
                subscription.refresh()
            except Exception:
                # A broken subscriber must not fail the writer's commit.
                logger.exception(
                    "Subscription %s refresh failed", subscription.id)


@event.listens_for(Session, 'after_flush')
def _collect_touched_tables(session, flush_context):
    touched = session.info.setdefault(_TOUCHED_KEY, set())
    for obj in itertools.chain(session.new, session.dirty, session.deleted):
        table = getattr(obj, '__tablename__', None)
        if table:
            touched.add(table)


@event.listens_for(Session, 'after_commit')
def _mark_committed(session):
    touched = session.info.pop(_TOUCHED_KEY, None)
    if touched:
        session.info.setdefault(_COMMITTED_KEY, set()).update(touched)


@event.listens_for(Session, 'after_rollback')
def _discard_touched_tables(session):
    session.info.pop(_TOUCHED_KEY, None)


# Subscribers are refreshed once the writer has released its connection.
@event.listens_for(Session, 'after_transaction_end')
def _dispatch_committed_changes(session, transaction):
    if transaction.parent is not None:
        return
    committed = session.info.pop(_COMMITTED_KEY, None)
    if not committed or not has_app_context():
        return
    hub = current_app.extensions.get('realtime')
    if hub is not None:
        hub.notify(committed)


# Named feeds

class UserChatsQuery:
    """Chats a user takes part in, most recently active first."""

    def __init__(self, user_id):
        self.user_id = user_id
        self.tables = {'chats', 'users'}

    def evaluate(self, session):
        store = Store(session)
        return [
            chat_payload(chat, self.user_id)
            for chat in list_chats(store, self.user_id)
        ]

    def __repr__(self):
        return f'<UserChatsQuery user={self.user_id}>'


def _order_serializer(order, store):
    return OrderService(store).augment(order)


def _notification_serializer(notification, store):
    return notification_payload(notification)


def farmer_crops_feed(farmer_id):
    return LiveQuery(
        Crop,
        where={'farmer_id': farmer_id},
        order_by='created_at',
        descending=True,
    )


def farmer_orders_feed(farmer_id):
    return LiveQuery(
        Order,
        where={'farmer_id': farmer_id},
        order_by='created_at',
        descending=True,
        serializer=_order_serializer,
        depends_on=('users', 'crops'),
    )


def user_chats_feed(user_id):
    return UserChatsQuery(user_id)


def chat_messages_feed(chat_id):
    return LiveQuery(
        ChatMessage,
        where={'chat_id': chat_id},
        order_by='created_at',
    )


def latest_notifications_feed(user_id, limit=3):
    return LiveQuery(
        Notification,
        where={'user_id': user_id},
        order_by='created_at',
        descending=True,
        limit=limit,
        serializer=_notification_serializer,
    )
