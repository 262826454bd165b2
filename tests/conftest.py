from decimal import Decimal
import pytest

from agriconnect import create_app
from agriconnect.config import TestingConfig
from agriconnect.extensions import db
from agriconnect.models import (
    Crop,
    CropCategory,
    CropStatus,
    Order,
    OrderStatus,
    User,
    UserRole,
)
from agriconnect.services.store import Store

PASSWORD = 'secret123'


def make_user(email, name, role, location='Lahore'):
    user = User(email=email, name=name, role=role, location=location)
    user.set_password(PASSWORD)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return Store(db.session)


@pytest.fixture
def farmer(app):
    return make_user('farmer@example.com', 'Aslam', UserRole.FARMER)


@pytest.fixture
def other_farmer(app):
    return make_user('farmer2@example.com', 'Rukhsana', UserRole.FARMER)


@pytest.fixture
def buyer(app):
    return make_user('buyer@example.com', 'Ahmed', UserRole.BUYER)


@pytest.fixture
def other_buyer(app):
    return make_user('buyer2@example.com', 'Sana', UserRole.BUYER)


@pytest.fixture
def make_crop(store, farmer):
    def make(quantity=10, price='50.00', owner=None, name='Wheat'):
        owner = owner or farmer
        crop = store.insert(
            Crop,
            farmer_id=owner.id,
            farmer_name=owner.name,
            crop_name=name,
            category=CropCategory.GRAINS,
            quantity=quantity,
            price=Decimal(price),
            image_url='https://img.example.com/wheat.jpg',
            location=owner.location,
            status=(
                CropStatus.SOLD if quantity == 0 else CropStatus.AVAILABLE
            ),
        )
        store.commit()
        return crop
    return make


@pytest.fixture
def make_order(store, buyer):
    """Insert an order directly, bypassing placement checks."""
    def make(crop, quantity, status=OrderStatus.ACCEPTED, owner=None):
        owner = owner or buyer
        order = store.insert(
            Order,
            buyer_id=owner.id,
            farmer_id=crop.farmer_id,
            crop_id=crop.id,
            crop_name=crop.crop_name,
            quantity=quantity,
            total_price=Decimal(quantity) * crop.price,
            status=status,
        )
        store.commit()
        return order
    return make


@pytest.fixture
def login(client):
    def do(user):
        response = client.post(
            '/api/auth/login',
            json={'email': user.email, 'password': PASSWORD},
        )
        assert response.status_code == 200
        return response
    return do
