from agriconnect.extensions import db
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime
from sqlalchemy import CheckConstraint, UniqueConstraint
import enum
import json


class UserRole(enum.Enum):
    FARMER = 'farmer'
    BUYER = 'buyer'


class Language(enum.Enum):
    EN = 'en'
    UR = 'ur'


class Theme(enum.Enum):
    LIGHT = 'light'
    DARK = 'dark'


class CropCategory(enum.Enum):
    VEGETABLES = 'vegetables'
    FRUITS = 'fruits'
    GRAINS = 'grains'
    SPICES = 'spices'


class CropStatus(enum.Enum):
    AVAILABLE = 'available'
    SOLD = 'sold'


class OrderStatus(enum.Enum):
    PENDING = 'Pending'
    ACCEPTED = 'Accepted'
    COMPLETED = 'Completed'
    REJECTED = 'Rejected'


class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    role = db.Column(db.Enum(UserRole), nullable=False)
    location = db.Column(db.String(200), nullable=True)
    preferred_language = db.Column(
        db.Enum(Language),
        default=Language.EN,
        nullable=False)
    theme = db.Column(db.Enum(Theme), default=Theme.LIGHT, nullable=False)
    profile_image = db.Column(db.String(500), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    last_login_at = db.Column(db.DateTime, nullable=True)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f'<User {self.email}>'


class Crop(db.Model):
    __tablename__ = 'crops'

    id = db.Column(db.Integer, primary_key=True)
    farmer_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    # Denormalized for marketplace cards.
    farmer_name = db.Column(db.String(100), nullable=True)
    crop_name = db.Column(db.String(200), nullable=False, index=True)
    category = db.Column(db.Enum(CropCategory), nullable=False, index=True)
    # Kilograms
    quantity = db.Column(db.Integer, nullable=False, default=0)
    # Per kilogram
    price = db.Column(db.Numeric(10, 2), nullable=False)
    image_url = db.Column(db.String(500), nullable=True)
    location = db.Column(db.String(200), nullable=True)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(
        db.Enum(CropStatus),
        default=CropStatus.AVAILABLE,
        nullable=False,
        index=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)
    version_id = db.Column(db.Integer, nullable=False)

    farmer = db.relationship('User', foreign_keys=[farmer_id])

    __table_args__ = (
        CheckConstraint('quantity >= 0', name='check_crop_quantity'),
        CheckConstraint('price > 0', name='check_crop_price_positive'),
    )
    __mapper_args__ = {'version_id_col': version_id}

    def __repr__(self):
        return f'<Crop {self.crop_name} qty={self.quantity}>'


class Order(db.Model):
    __tablename__ = 'orders'

    id = db.Column(db.Integer, primary_key=True)
    buyer_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    farmer_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    crop_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'crops.id',
            ondelete='SET NULL'),
        nullable=True,
        index=True)
    # Order snapshot, kept when the listing is deleted.
    crop_name = db.Column(db.String(200), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(
        db.Enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)
    version_id = db.Column(db.Integer, nullable=False)

    buyer = db.relationship('User', foreign_keys=[buyer_id])
    farmer = db.relationship('User', foreign_keys=[farmer_id])

    __table_args__ = (
        CheckConstraint('quantity > 0', name='check_order_quantity_positive'),
    )
    __mapper_args__ = {'version_id_col': version_id}

    def __repr__(self):
        return f'<Order {self.id} status={self.status}>'


class Chat(db.Model):
    __tablename__ = 'chats'

    id = db.Column(db.Integer, primary_key=True)
    # Canonical pair: participant_a_id < participant_b_id
    participant_a_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    participant_b_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    last_message_text = db.Column(db.Text, nullable=True)
    last_message_sender_id = db.Column(db.Integer, nullable=True)
    last_message_at = db.Column(db.DateTime, nullable=True, index=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    participant_a = db.relationship('User', foreign_keys=[participant_a_id])
    participant_b = db.relationship('User', foreign_keys=[participant_b_id])
    messages = db.relationship(
        'ChatMessage',
        backref='chat',
        lazy='dynamic',
        cascade='all, delete-orphan')

    __table_args__ = (
        UniqueConstraint(
            'participant_a_id',
            'participant_b_id',
            name='uq_chat_participants'),
        CheckConstraint(
            'participant_a_id < participant_b_id',
            name='check_chat_pair_sorted'),
    )

    @property
    def participants(self):
        return [self.participant_a_id, self.participant_b_id]

    def other_participant(self, user_id):
        if user_id == self.participant_a_id:
            return self.participant_b
        return self.participant_a

    def __repr__(self):
        return (
            f"<Chat {self.id} "
            f"users={self.participant_a_id},{self.participant_b_id}>"
        )


class ChatMessage(db.Model):
    __tablename__ = 'chat_messages'

    id = db.Column(db.Integer, primary_key=True)
    chat_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'chats.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    sender_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='SET NULL'),
        nullable=True,
        index=True)
    text = db.Column(db.Text, nullable=False)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True)

    sender = db.relationship('User', foreign_keys=[sender_id])

    def __repr__(self):
        return f'<ChatMessage {self.id} chat={self.chat_id}>'


class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    # i18n message key, e.g. notification.orderCompleted
    message = db.Column(db.String(100), nullable=False)
    message_params_json = db.Column(db.Text, nullable=True)
    # Client route, e.g. /orders or /messages
    link = db.Column(db.String(200), nullable=False, default='')
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True)

    def set_params(self, params):
        self.message_params_json = json.dumps(
            params or {}, ensure_ascii=False)

    def get_params(self):
        if self.message_params_json:
            return json.loads(self.message_params_json)
        return {}

    def __repr__(self):
        return f'<Notification {self.id} user={self.user_id}>'


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    actor_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='SET NULL'),
        nullable=True)
    actor_role = db.Column(db.String(20), nullable=False)
    # e.g., ORDER_COMPLETE, LOGIN_SUCCESS
    action = db.Column(db.String(100), nullable=False)
    # ORDER, CROP, USER, etc.
    target_type = db.Column(db.String(50), nullable=True)
    target_id = db.Column(db.Integer, nullable=True)
    ip = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)
    # JSON format key field snapshot
    payload_json = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True)

    def set_payload(self, data):
        self.payload_json = json.dumps(data, ensure_ascii=False)

    def get_payload(self):
        if self.payload_json:
            return json.loads(self.payload_json)
        return {}

    def __repr__(self):
        return f'<AuditLog {self.id} action={self.action}>'
