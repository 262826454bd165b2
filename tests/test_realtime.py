from sqlalchemy.orm import Session

from agriconnect.extensions import db
from agriconnect.models import Chat, Crop
from agriconnect.services.chat_service import (
    chat_payload,
    get_or_create_chat,
    send_message,
)
from agriconnect.services.crop_service import update_crop
from agriconnect.services.notification_service import create_notification
from agriconnect.services.order_service import OrderService
from agriconnect.services.realtime import (
    LiveQuery,
    farmer_crops_feed,
    farmer_orders_feed,
    latest_notifications_feed,
    user_chats_feed,
)


def test_initial_callback_is_synchronous(app, make_crop, farmer):
    make_crop(name='Wheat')
    hub = app.extensions['realtime']
    received = []

    subscription = hub.subscribe(farmer_crops_feed(farmer.id), received.append)

    assert len(received) == 1
    assert [c['crop_name'] for c in received[0]] == ['Wheat']
    assert received[0][0]['created_at'].tzinfo is not None
    subscription.unsubscribe()


def test_committed_change_is_pushed(app, store, make_crop, farmer):
    crop = make_crop(quantity=10)
    hub = app.extensions['realtime']
    received = []
    hub.subscribe(farmer_crops_feed(farmer.id), received.append)

    update_crop(store, farmer, crop.id, {'quantity': 0})

    assert len(received) == 2
    assert received[-1][0]['quantity'] == 0
    assert received[-1][0]['status'] == 'sold'


def test_unchanged_results_are_not_redelivered(app, store, make_crop,
                                               farmer, other_farmer):
    make_crop()
    hub = app.extensions['realtime']
    received = []
    hub.subscribe(farmer_crops_feed(farmer.id), received.append)

    # Another farmer's listing touches the table but not this result set.
    make_crop(owner=other_farmer, name='Mango')

    assert len(received) == 1


def test_rolled_back_writes_are_not_pushed(app, store, make_crop, farmer):
    crop = make_crop(quantity=10)
    hub = app.extensions['realtime']
    received = []
    hub.subscribe(farmer_crops_feed(farmer.id), received.append)

    store.update(crop, quantity=3)
    store.session.flush()
    store.rollback()

    assert len(received) == 1
    assert store.get(Crop, crop.id, refresh=True).quantity == 10


def test_unsubscribe_stops_delivery(app, store, make_crop, farmer):
    crop = make_crop(quantity=10)
    hub = app.extensions['realtime']
    received = []
    subscription = hub.subscribe(farmer_crops_feed(farmer.id), received.append)

    subscription.unsubscribe()
    update_crop(store, farmer, crop.id, {'quantity': 1})

    assert len(received) == 1
    assert hub.subscription_count() == 0


def test_failing_subscriber_does_not_break_writer(app, store, make_crop,
                                                  farmer):
    crop = make_crop(quantity=10)
    hub = app.extensions['realtime']
    calls = []

    def flaky(rows):
        calls.append(rows)
        if len(calls) > 1:
            raise RuntimeError('subscriber went away')

    hub.subscribe(farmer_crops_feed(farmer.id), flaky)
    update_crop(store, farmer, crop.id, {'quantity': 4})

    assert len(calls) == 2
    assert store.get(Crop, crop.id, refresh=True).quantity == 4


def test_order_feed_sees_placement(app, store, make_crop, farmer, buyer):
    crop = make_crop()
    hub = app.extensions['realtime']
    received = []
    hub.subscribe(farmer_orders_feed(farmer.id), received.append)

    OrderService(store).place_order(buyer, crop.id, 2)

    assert received[0] == []
    assert received[-1][0]['buyer_name'] == 'Ahmed'
    assert received[-1][0]['status'] == 'Pending'


def test_notification_feed_keeps_latest_three(app, store, buyer):
    hub = app.extensions['realtime']
    received = []
    hub.subscribe(latest_notifications_feed(buyer.id), received.append)

    for key in ('a', 'b', 'c', 'd'):
        create_notification(store, buyer.id, f'notification.{key}')

    assert [n['message'] for n in received[-1]] == [
        'notification.d', 'notification.c', 'notification.b']


def test_chat_list_feed(app, store, farmer, buyer):
    hub = app.extensions['realtime']
    received = []
    hub.subscribe(user_chats_feed(farmer.id), received.append)
    assert received == [[]]

    chat = get_or_create_chat(store, buyer.id, farmer.id)
    send_message(store, buyer, chat.id, 'Is the wheat ready?')

    payload = chat_payload(store.get(Chat, chat.id, refresh=True), farmer.id)
    assert payload['last_message']['timestamp'].tzinfo is not None

    latest = received[-1]
    assert latest == [payload]
    assert latest[0]['other_participant']['name'] == 'Ahmed'
    assert latest[0]['last_message']['text'] == 'Is the wheat ready?'


def test_callback_may_write_to_its_own_query(app, store, make_crop, farmer):
    crop_id = make_crop(quantity=10).id
    hub = app.extensions['realtime']
    received = []

    def restock_once(rows):
        received.append([c['quantity'] for c in rows])
        if len(received) == 2:
            with Session(db.engine) as session:
                session.get(Crop, crop_id).quantity = 2
                session.commit()

    hub.subscribe(farmer_crops_feed(farmer.id), restock_once)
    update_crop(store, farmer, crop_id, {'quantity': 4})

    assert received == [[10], [4], [2]]


def test_live_query_limits_and_orders(app, make_crop, farmer):
    for name in ('a', 'b', 'c'):
        make_crop(name=name)
    hub = app.extensions['realtime']
    received = []
    query = LiveQuery(
        Crop,
        where={'farmer_id': farmer.id},
        order_by='crop_name',
        limit=2,
    )
    hub.subscribe(query, received.append)

    assert [c['crop_name'] for c in received[0]] == ['a', 'b']
