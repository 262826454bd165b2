from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
import itertools
import pytest
from sqlalchemy.orm.exc import StaleDataError

from agriconnect.errors import (
    PreconditionFailed,
    TransactionTimeout,
    TransientConflict,
)
from agriconnect.models import Chat, ChatMessage, Crop
from agriconnect.services import store as store_module
from agriconnect.services.store import (
    Store,
    normalize_timestamps,
    to_document,
    to_storage,
)
from agriconnect.extensions import db


def test_naive_timestamps_become_aware_utc():
    naive = datetime(2024, 3, 1, 12, 30)
    value = normalize_timestamps(naive)
    assert value.tzinfo == timezone.utc
    assert value == naive.replace(tzinfo=timezone.utc)


def test_normalization_recurses_through_nested_structures():
    moment = datetime(2024, 3, 1, 12, 30)
    nested = {'a': [{'b': (moment, {'c': [moment]})}], 'n': 5, 's': 'x'}

    result = normalize_timestamps(nested)

    inner = result['a'][0]['b']
    assert isinstance(inner, tuple)
    assert inner[0].tzinfo == timezone.utc
    assert inner[1]['c'][0].tzinfo == timezone.utc
    assert result['n'] == 5 and result['s'] == 'x'


def test_normalization_leaves_other_objects_alone():

    class Holder:
        def __init__(self):
            self.when = datetime(2024, 1, 1)

    holder = Holder()
    assert normalize_timestamps(holder) is holder
    assert holder.when.tzinfo is None


def test_aware_timestamps_convert_to_utc():
    karachi = timezone(timedelta(hours=5))
    local = datetime(2024, 3, 1, 17, 0, tzinfo=karachi)

    assert normalize_timestamps(local) == local
    assert normalize_timestamps(local).utcoffset() == timedelta(0)
    assert to_storage(local) == datetime(2024, 3, 1, 12, 0)


def test_timestamp_round_trip_through_store(store, farmer, buyer):
    karachi = timezone(timedelta(hours=5))
    written = datetime(2024, 5, 2, 9, 15, 30, tzinfo=karachi)
    chat = store.insert(
        Chat,
        participant_a_id=min(farmer.id, buyer.id),
        participant_b_id=max(farmer.id, buyer.id),
        last_message_at=written,
    )
    store.commit()

    doc = to_document(store.get(Chat, chat.id, refresh=True))
    read_back = normalize_timestamps({'chats': [{'doc': (doc,)}]})

    value = read_back['chats'][0]['doc'][0]['last_message_at']
    assert value == written
    assert value.tzinfo == timezone.utc


def test_insert_assigns_created_at_from_clock(app, farmer, buyer):
    fixed = datetime(2023, 12, 31, 23, 59)
    store = Store(db.session, clock=lambda: fixed)
    chat = store.insert(
        Chat,
        participant_a_id=min(farmer.id, buyer.id),
        participant_b_id=max(farmer.id, buyer.id),
    )
    message = store.insert(
        ChatMessage, chat_id=chat.id, sender_id=farmer.id, text='hi')
    store.commit()

    assert message.created_at == fixed
    assert to_document(message)['created_at'].tzinfo == timezone.utc


def test_find_filters_orders_and_limits(store, make_crop):
    make_crop(name='Wheat')
    make_crop(name='Rice')
    make_crop(name='Maize')

    names = [c.crop_name for c in store.find(
        Crop, order_by='created_at', descending=True, limit=2)]
    assert names == ['Maize', 'Rice']
    assert [c.crop_name for c in store.find(
        Crop, where={'crop_name': 'Rice'})] == ['Rice']


def test_to_document_serializes_enums_and_decimals(make_crop):
    doc = to_document(make_crop(price='12.50'), exclude=('version_id',))
    assert doc['status'] == 'available'
    assert doc['category'] == 'grains'
    assert doc['price'] == 12.5
    assert 'version_id' not in doc


def test_run_transaction_retries_conflicts(store, make_crop):
    crop = make_crop(quantity=5)
    attempts = []

    def body(tx):
        current = tx.get(Crop, crop.id)
        attempts.append(current.quantity)
        if len(attempts) < 3:
            raise StaleDataError('simulated conflict')
        return tx.update(current, quantity=current.quantity - 1)

    store.run_transaction(body)

    assert attempts == [5, 5, 5]
    assert store.get(Crop, crop.id, refresh=True).quantity == 4


def test_run_transaction_gives_up_after_max_attempts(store):
    calls = []

    def body(tx):
        calls.append(1)
        raise StaleDataError('always conflicting')

    with pytest.raises(TransientConflict):
        store.run_transaction(body, max_attempts=3)
    assert len(calls) == 3


def test_run_transaction_times_out(store, monkeypatch):
    ticks = itertools.chain([0.0], itertools.repeat(5.0))
    clock = SimpleNamespace(monotonic=lambda: next(ticks))
    monkeypatch.setattr(store_module, 'time', clock)

    with pytest.raises(TransactionTimeout) as info:
        store.run_transaction(lambda tx: None, timeout=1)
    assert isinstance(info.value, TransientConflict)
    assert info.value.status_code == 503


def test_business_errors_roll_back_and_propagate(store, make_crop):
    crop = make_crop(quantity=5)

    def body(tx):
        current = tx.get(Crop, crop.id)
        tx.update(current, quantity=0)
        raise PreconditionFailed('nope')

    with pytest.raises(PreconditionFailed):
        store.run_transaction(body)
    assert store.get(Crop, crop.id, refresh=True).quantity == 5
