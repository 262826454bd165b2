"""Thin document-style adapter over the SQLAlchemy session.

Services talk to the database only through a ``Store`` built around an
explicit session, so the order lifecycle never reaches for global state.
Reads inside ``run_transaction`` always refresh from the database and the
versioned models (``Crop``, ``Order``) make concurrent writers collide with
``StaleDataError``, which is retried here.
"""
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm.exc import StaleDataError
from agriconnect.errors import TransientConflict, TransactionTimeout
import enum
import logging
import time

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


def normalize_timestamps(value):
    """Turn stored timestamps into aware UTC datetimes.

    Recurses through plain dicts, lists and tuples only; any other object
    is returned as is.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if type(value) is dict:
        return {k: normalize_timestamps(v) for k, v in value.items()}
    if type(value) is list:
        return [normalize_timestamps(v) for v in value]
    if type(value) is tuple:
        return tuple(normalize_timestamps(v) for v in value)
    return value


def to_storage(value):
    # Columns hold naive UTC.
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def to_document(obj, exclude=()):
    if obj is None:
        return None
    doc = {}
    for attr in sa_inspect(obj).mapper.column_attrs:
        if attr.key in exclude:
            continue
        value = getattr(obj, attr.key)
        if isinstance(value, enum.Enum):
            value = value.value
        elif isinstance(value, Decimal):
            value = float(value)
        doc[attr.key] = value
    return normalize_timestamps(doc)


class Transaction:
    """Handle passed to a transaction body."""

    def __init__(self, store):
        self._store = store

    def get(self, model, ident):
        return self._store.get(model, ident, refresh=True)

    def update(self, obj, **fields):
        return self._store.update(obj, **fields)

    def delete(self, obj):
        self._store.delete(obj)


class Store:

    def __init__(self, session, clock=datetime.utcnow):
        self.session = session
        self.clock = clock

    def get(self, model, ident, refresh=False):
        if ident is None:
            return None
        return self.session.get(model, ident, populate_existing=refresh)

    def find(
            self,
            model,
            where=None,
            order_by=None,
            descending=False,
            limit=None):
        query = self.session.query(model)
        for field, value in (where or {}).items():
            query = query.filter(getattr(model, field) == to_storage(value))
        if order_by:
            column = getattr(model, order_by)
            if descending:
                query = query.order_by(column.desc(), model.id.desc())
            else:
                query = query.order_by(column.asc(), model.id.asc())
        if limit:
            query = query.limit(limit)
        return query.all()

    def insert(self, model, **fields):
        fields = {k: to_storage(v) for k, v in fields.items()}
        columns = sa_inspect(model).columns
        if 'created_at' in columns and fields.get('created_at') is None:
            fields['created_at'] = self.clock()
        obj = model(**fields)
        self.session.add(obj)
        self.session.flush()
        return obj

    def update(self, obj, **fields):
        for key, value in fields.items():
            setattr(obj, key, to_storage(value))
        return obj

    def delete(self, obj):
        self.session.delete(obj)

    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()

    def run_transaction(
            self,
            body,
            max_attempts=DEFAULT_MAX_ATTEMPTS,
            timeout=None):
        """Run ``body(tx)`` and commit its writes atomically.

        A version conflict at commit rolls back and re-runs the body, which
        re-reads fresh state. Any other exception rolls back and propagates.
        """
        deadline = time.monotonic() + timeout if timeout else None
        attempt = 0
        while True:
            attempt += 1
            if deadline is not None and time.monotonic() > deadline:
                raise TransactionTimeout()
            try:
                result = body(Transaction(self))
                if deadline is not None and time.monotonic() > deadline:
                    raise TransactionTimeout()
                self.session.commit()
                return result
            except StaleDataError:
                self.session.rollback()
                logger.info(
                    "Transaction conflict on attempt %s/%s",
                    attempt,
                    max_attempts,
                )
                if attempt >= max_attempts:
                    logger.warning(
                        "Transaction gave up after %s attempts", attempt)
                    raise TransientConflict()
            except Exception:
                self.session.rollback()
                raise
