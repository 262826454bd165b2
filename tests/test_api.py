import io
import json

from agriconnect.models import AuditLog, Crop, CropStatus
import agriconnect.blueprints.crops as crops_blueprint


def test_api_requires_login(client):
    response = client.get('/api/orders')
    assert response.status_code == 401
    assert response.get_json()['login_required'] is True


def test_marketplace_is_public(client, make_crop):
    crop = make_crop(name='Wheat')
    make_crop(name='Gone', quantity=0)

    listing = client.get('/api/crops').get_json()['crops']
    assert [c['crop_name'] for c in listing] == ['Wheat']
    assert listing[0]['created_at'].endswith('+00:00')

    detail = client.get(f'/api/crops/{crop.id}')
    assert detail.status_code == 200
    missing = client.get('/api/crops/999')
    assert missing.status_code == 404
    assert missing.get_json() == {
        'error': 'Crop not found', 'code': 'not_found'}


def test_register_login_and_profile(client, app):
    response = client.post('/api/auth/register', json={
        'name': 'Bilal',
        'email': 'Bilal@Example.com',
        'password': 'longenough',
        'role': 'farmer',
        'location': 'Sahiwal',
    })
    assert response.status_code == 201
    user = response.get_json()['user']
    assert user['email'] == 'bilal@example.com'
    assert user['role'] == 'farmer'
    assert 'password_hash' not in user

    me = client.get('/api/auth/me').get_json()['user']
    assert me['name'] == 'Bilal'

    updated = client.patch('/api/auth/profile', json={
        'preferred_language': 'ur', 'theme': 'dark'}).get_json()['user']
    assert updated['preferred_language'] == 'ur'
    assert updated['theme'] == 'dark'

    bad = client.patch('/api/auth/profile', json={'theme': 'neon'})
    assert bad.status_code == 400
    assert bad.get_json()['code'] == 'validation_error'

    assert client.post('/api/auth/logout').status_code == 200
    assert client.get('/api/auth/me').status_code == 401
    actions = {a.action for a in AuditLog.query.all()}
    assert {'REGISTER', 'LOGIN_SUCCESS', 'LOGOUT'} <= actions


def test_register_validation(client, buyer):
    base = {'name': 'X', 'email': 'x@example.com', 'password': 'secret12'}

    assert client.post('/api/auth/register', json=dict(
        base, role='admin')).status_code == 400
    assert client.post('/api/auth/register', json=dict(
        base, role='buyer', password='123')).status_code == 400
    duplicate = client.post('/api/auth/register', json=dict(
        base, role='buyer', email=buyer.email))
    assert duplicate.status_code == 400


def test_failed_login_is_audited(client, buyer):
    response = client.post(
        '/api/auth/login',
        json={'email': buyer.email, 'password': 'wrong'})
    assert response.status_code == 401
    assert AuditLog.query.filter_by(action='LOGIN_FAILED').count() == 1


def test_order_flow_over_http(client, login, make_crop, farmer, buyer):
    crop = make_crop(quantity=10, price='5')

    login(farmer)
    denied = client.post(
        '/api/orders', json={'crop_id': crop.id, 'quantity': 4})
    assert denied.status_code == 403

    login(buyer)
    placed = client.post(
        '/api/orders', json={'crop_id': crop.id, 'quantity': 4})
    assert placed.status_code == 201
    order = placed.get_json()['order']
    assert order['total_price'] == 20.0
    assert order['status'] == 'Pending'

    too_early = client.post(f"/api/orders/{order['id']}/complete")
    assert too_early.status_code == 403

    login(farmer)
    premature = client.post(f"/api/orders/{order['id']}/complete")
    assert premature.status_code == 409
    assert premature.get_json()['code'] == 'precondition_failed'

    accepted = client.post(f"/api/orders/{order['id']}/accept")
    assert accepted.get_json()['order']['status'] == 'Accepted'
    done = client.post(f"/api/orders/{order['id']}/complete")
    assert done.status_code == 200
    assert done.get_json()['order']['status'] == 'Completed'

    crop_doc = client.get(f'/api/crops/{crop.id}').get_json()['crop']
    assert crop_doc['quantity'] == 6
    assert crop_doc['status'] == 'available'

    login(buyer)
    notes = client.get('/api/notifications').get_json()
    keys = [n['message'] for n in notes['notifications']]
    assert keys.count('notification.orderCompleted') == 1
    assert notes['unread_count'] == 2

    orders = client.get('/api/orders').get_json()['orders']
    assert orders[0]['farmer_name'] == 'Aslam'
    assert AuditLog.query.filter_by(action='ORDER_COMPLETE').count() == 1


def test_bad_farmer_id_is_a_validation_error(client, login, make_crop,
                                             buyer):
    crop = make_crop()
    login(buyer)
    response = client.post('/api/orders', json={
        'crop_id': crop.id, 'quantity': 1, 'farmer_id': 'abc'})

    assert response.status_code == 400
    assert response.get_json()['code'] == 'validation_error'


def test_insufficient_stock_over_http(client, login, make_crop, make_order,
                                      farmer):
    crop = make_crop(quantity=2)
    order = make_order(crop, 5)

    login(farmer)
    response = client.post(f'/api/orders/{order.id}/complete')

    assert response.status_code == 409
    assert response.get_json()['code'] == 'insufficient_stock'


def test_farmer_manages_listings(client, login, farmer, store):
    login(farmer)
    created = client.post('/api/crops', json={
        'crop_name': 'Onion',
        'category': 'vegetables',
        'price': 40,
        'quantity': 25,
        'image_url': 'https://img.example.com/onion.jpg',
    })
    assert created.status_code == 201
    crop_id = created.get_json()['crop']['id']

    edited = client.patch(f'/api/crops/{crop_id}', json={'quantity': 0})
    assert edited.get_json()['crop']['status'] == 'sold'

    mine = client.get('/api/crops/mine').get_json()['crops']
    assert [c['id'] for c in mine] == [crop_id]

    invalid = client.post('/api/crops', json={'crop_name': 'Bad'})
    assert invalid.status_code == 400

    assert client.delete(f'/api/crops/{crop_id}').status_code == 200
    assert store.get(Crop, crop_id, refresh=True) is None
    assert AuditLog.query.filter_by(action='CROP_DELETE').count() == 1


def test_buyer_cannot_list_crops(client, login, buyer):
    login(buyer)
    response = client.post('/api/crops', json={'crop_name': 'x'})
    assert response.status_code == 403


def test_image_upload_endpoint(client, login, farmer, monkeypatch):
    uploads = []

    def fake_upload(data, filename, mimetype):
        uploads.append((data, filename, mimetype))
        return 'https://res.example.com/onion.jpg'

    monkeypatch.setattr(crops_blueprint, 'upload_image', fake_upload)
    login(farmer)

    response = client.post(
        '/api/crops/images',
        data={'image': (io.BytesIO(b'jpeg-bytes'), 'onion.jpg',
                        'image/jpeg')},
        content_type='multipart/form-data',
    )

    assert response.status_code == 201
    assert response.get_json()['image_url'].endswith('onion.jpg')
    assert uploads == [(b'jpeg-bytes', 'onion.jpg', 'image/jpeg')]


def test_chat_over_http(client, login, farmer, buyer, other_buyer):
    login(buyer)
    chat = client.post(
        '/api/chats', json={'user_id': farmer.id}).get_json()['chat']
    assert chat['other_participant']['name'] == 'Aslam'

    sent = client.post(
        f"/api/chats/{chat['id']}/messages", json={'text': 'Salaam'})
    assert sent.status_code == 201

    login(farmer)
    messages = client.get(
        f"/api/chats/{chat['id']}/messages").get_json()['messages']
    assert [m['text'] for m in messages] == ['Salaam']
    assert client.get('/api/notifications/unread-count').get_json() == {
        'count': 1}

    login(other_buyer)
    assert client.get(
        f"/api/chats/{chat['id']}/messages").status_code == 403
    assert client.post(
        '/api/chats', json={'user_id': other_buyer.id}).status_code == 400


def test_chat_list_over_http(client, login, farmer, buyer):
    login(buyer)
    assert client.get('/api/chats').get_json() == {'chats': []}

    chat = client.post(
        '/api/chats', json={'user_id': farmer.id}).get_json()['chat']
    client.post(f"/api/chats/{chat['id']}/messages", json={'text': 'Hi'})

    response = client.get('/api/chats')
    assert response.status_code == 200
    chats = response.get_json()['chats']
    assert [c['id'] for c in chats] == [chat['id']]
    assert chats[0]['last_message']['text'] == 'Hi'
    assert chats[0]['last_message']['timestamp'].endswith('+00:00')


def test_mark_notifications_read(client, login, store, buyer):
    from agriconnect.services.notification_service import (
        create_notification,
    )
    note = create_notification(store, buyer.id, 'notification.orderAccepted')

    login(buyer)
    response = client.post(
        '/api/notifications/read', json={'ids': [note.id]})
    assert response.get_json() == {'ok': True, 'updated': 1}
    assert client.post(
        '/api/notifications/read', json={'ids': 'all'}).status_code == 400


def test_assistant_chat_falls_back_without_key(client, login, buyer):
    login(buyer)
    response = client.post('/api/assistant/chat', json={'prompt': 'Hello'})
    assert response.get_json() == {
        'reply': 'I am currently unavailable. Please try again later.'}
    assert client.post(
        '/api/assistant/chat', json={'prompt': ' '}).status_code == 400


def test_notification_stream_sends_current_rows(client, login, app, store,
                                                buyer):
    from agriconnect.services.notification_service import (
        create_notification,
    )
    create_notification(store, buyer.id, 'notification.newMessage')
    login(buyer)

    response = client.get('/api/stream/notifications', buffered=False)
    assert response.mimetype == 'text/event-stream'
    first = next(iter(response.response)).decode()
    response.close()

    assert first.startswith('data: ')
    rows = json.loads(first[len('data: '):])
    assert [r['message'] for r in rows] == ['notification.newMessage']
    assert app.extensions['realtime'].subscription_count() == 0


def test_farmer_only_streams(client, login, buyer):
    login(buyer)
    assert client.get('/api/stream/crops').status_code == 403
    assert client.get('/api/stream/nope').status_code == 404


def test_sold_status_stays_consistent_after_http_completion(
        client, login, make_crop, make_order, farmer, store):
    crop = make_crop(quantity=3)
    order = make_order(crop, 3)

    login(farmer)
    client.post(f'/api/orders/{order.id}/complete')

    crop = store.get(Crop, crop.id, refresh=True)
    assert crop.quantity == 0
    assert crop.status == CropStatus.SOLD
