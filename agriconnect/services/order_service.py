"""Order lifecycle: Pending -> Accepted -> Completed, or Pending -> Rejected.

Completion is the only multi-record write: it re-reads the order and its
crop inside one transaction, decrements stock and closes the order, so
inventory never goes negative and an order cannot be completed twice.
Placing an order does not reserve stock; several pending orders may
together exceed what is on hand and the shortfall surfaces at completion.
"""
from decimal import Decimal
from agriconnect.errors import (
    InsufficientStock,
    PermissionDenied,
    PreconditionFailed,
    ReferentialIntegrityError,
    ValidationError,
)
from agriconnect.models import (
    Crop,
    CropStatus,
    Order,
    OrderStatus,
    User,
    UserRole,
)
from agriconnect.services.notification_service import create_notification
from agriconnect.services.store import (
    DEFAULT_MAX_ATTEMPTS,
    normalize_timestamps,
)
import logging

logger = logging.getLogger(__name__)

ORDERS_LINK = '/orders'

# status -> statuses reachable from it
TRANSITIONS = {
    OrderStatus.PENDING: (OrderStatus.ACCEPTED, OrderStatus.REJECTED),
    OrderStatus.ACCEPTED: (OrderStatus.COMPLETED,),
    OrderStatus.COMPLETED: (),
    OrderStatus.REJECTED: (),
}

STATUS_MESSAGE_KEYS = {
    OrderStatus.ACCEPTED: 'notification.orderAccepted',
    OrderStatus.REJECTED: 'notification.orderRejected',
    OrderStatus.COMPLETED: 'notification.orderCompleted',
}


def can_transition(current, target):
    return target in TRANSITIONS.get(current, ())


def parse_quantity(value, allow_zero=False):
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError('Quantity must be a whole number of kg')
    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError('Quantity must be a positive integer')
    return value


def _parse_id(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError('farmer_id must be a user id')


class OrderService:

    def __init__(
            self,
            store,
            notifier=create_notification,
            completion_roles=('FARMER',),
            max_attempts=DEFAULT_MAX_ATTEMPTS,
            timeout=None):
        self.store = store
        self.notifier = notifier
        self.completion_roles = tuple(r.upper() for r in completion_roles)
        self.max_attempts = max_attempts
        self.timeout = timeout

    @classmethod
    def from_config(cls, store, config):
        return cls(
            store,
            completion_roles=config.get(
                'ORDER_COMPLETION_ROLES', ('FARMER',)),
            max_attempts=config.get(
                'ORDER_TRANSACTION_MAX_ATTEMPTS', DEFAULT_MAX_ATTEMPTS),
            timeout=config.get('ORDER_TRANSACTION_TIMEOUT_SECONDS'),
        )

    def _notify(self, recipient_id, status, crop_name):
        self.notifier(
            self.store,
            recipient_id,
            STATUS_MESSAGE_KEYS[status],
            {'cropName': crop_name},
            ORDERS_LINK,
        )

    def place_order(self, actor, crop_id, quantity, farmer_id=None):
        if actor.role != UserRole.BUYER:
            raise PermissionDenied('Only buyers can place orders')
        quantity = parse_quantity(quantity)

        crop = self.store.get(Crop, crop_id, refresh=True)
        if crop is None:
            raise ReferentialIntegrityError('Crop not found')
        if farmer_id is not None and _parse_id(farmer_id) != crop.farmer_id:
            raise PreconditionFailed('Farmer does not own this crop')
        if crop.status != CropStatus.AVAILABLE:
            raise PreconditionFailed('Crop is not available')
        if quantity > crop.quantity:
            raise InsufficientStock(
                f'Only {crop.quantity} kg of {crop.crop_name} available')

        # Price is snapshotted; later price edits do not touch this order.
        total_price = Decimal(quantity) * Decimal(str(crop.price))
        order = self.store.insert(
            Order,
            buyer_id=actor.id,
            farmer_id=crop.farmer_id,
            crop_id=crop.id,
            crop_name=crop.crop_name,
            quantity=quantity,
            total_price=total_price,
            status=OrderStatus.PENDING,
        )
        self.store.commit()
        logger.info(
            "Order %s placed by buyer %s for crop %s qty=%s total=%s",
            order.id,
            actor.id,
            crop.id,
            quantity,
            total_price,
        )

        self.notifier(
            self.store,
            order.farmer_id,
            'notification.newOrder',
            {'cropName': order.crop_name, 'buyerName': actor.name},
            ORDERS_LINK,
        )
        return order

    def update_order_status(self, actor, order_id, status):
        """Accept or reject a pending order on behalf of its farmer."""
        if status not in (OrderStatus.ACCEPTED, OrderStatus.REJECTED):
            raise ValidationError('Status must be Accepted or Rejected')

        def body(tx):
            order = tx.get(Order, order_id)
            if order is None:
                raise ReferentialIntegrityError('Order not found')
            if order.farmer_id != actor.id:
                raise PermissionDenied(
                    'Only the farmer can update this order')
            if not can_transition(order.status, status):
                raise PreconditionFailed(
                    f'Order is {order.status.value}, '
                    f'cannot change to {status.value}')
            tx.update(order, status=status)
            return order

        order = self.store.run_transaction(
            body, max_attempts=self.max_attempts, timeout=self.timeout)
        logger.info(
            "Order %s -> %s by farmer %s", order.id, status.value, actor.id)

        self._notify(order.buyer_id, status, order.crop_name)
        return order

    def accept_order(self, actor, order_id):
        return self.update_order_status(actor, order_id, OrderStatus.ACCEPTED)

    def reject_order(self, actor, order_id):
        return self.update_order_status(actor, order_id, OrderStatus.REJECTED)

    def _check_completion_actor(self, actor, order):
        if actor.role.name not in self.completion_roles:
            raise PermissionDenied(
                'Your role cannot complete orders')
        if actor.role == UserRole.FARMER and order.farmer_id != actor.id:
            raise PermissionDenied('Only the farmer can complete this order')
        if actor.role == UserRole.BUYER and order.buyer_id != actor.id:
            raise PermissionDenied('Only the buyer can complete this order')

    def complete_order(self, actor, order_id):
        """Decrement stock and mark the order Completed atomically.

        The buyer is notified only after the transaction commits; if it
        fails nothing is written and nobody is notified.
        """

        def body(tx):
            order = tx.get(Order, order_id)
            if order is None:
                raise ReferentialIntegrityError('Order not found')
            self._check_completion_actor(actor, order)
            if order.status != OrderStatus.ACCEPTED:
                raise PreconditionFailed(
                    f'Order is {order.status.value}; '
                    'it must be Accepted to complete')

            crop = tx.get(Crop, order.crop_id)
            if crop is None:
                raise ReferentialIntegrityError(
                    'Associated crop does not exist')

            new_quantity = crop.quantity - order.quantity
            if new_quantity < 0:
                raise InsufficientStock(
                    f'Not enough stock: {crop.quantity} kg left, '
                    f'order needs {order.quantity} kg')

            if new_quantity == 0:
                tx.update(crop, quantity=0, status=CropStatus.SOLD)
            else:
                tx.update(crop, quantity=new_quantity)
            tx.update(order, status=OrderStatus.COMPLETED)
            return order, new_quantity

        order, remaining = self.store.run_transaction(
            body, max_attempts=self.max_attempts, timeout=self.timeout)
        logger.info(
            "Order %s completed by %s, crop %s remaining=%s",
            order.id,
            actor.id,
            order.crop_id,
            remaining,
        )

        self._notify(order.buyer_id, OrderStatus.COMPLETED, order.crop_name)
        return order

    def get_order(self, actor, order_id):
        order = self.store.get(Order, order_id)
        if order is None:
            raise ReferentialIntegrityError('Order not found')
        if actor.id not in (order.buyer_id, order.farmer_id):
            raise PermissionDenied('No permission to access this order')
        return order

    def list_orders_for_user(self, user):
        field = 'buyer_id' if user.role == UserRole.BUYER else 'farmer_id'
        orders = self.store.find(
            Order,
            where={field: user.id},
            order_by='created_at',
            descending=True,
        )
        return [self.augment(order) for order in orders]

    def augment(self, order):
        buyer = self.store.get(User, order.buyer_id)
        farmer = self.store.get(User, order.farmer_id)
        crop = self.store.get(Crop, order.crop_id)
        return normalize_timestamps({
            'id': order.id,
            'buyer_id': order.buyer_id,
            'farmer_id': order.farmer_id,
            'crop_id': order.crop_id,
            'crop_name': (
                crop.crop_name if crop
                else order.crop_name or 'Unknown Crop'
            ),
            'buyer_name': buyer.name if buyer else 'Unknown Buyer',
            'farmer_name': farmer.name if farmer else 'Unknown Farmer',
            'quantity': order.quantity,
            'total_price': float(order.total_price),
            'status': order.status.value,
            'created_at': order.created_at,
            'updated_at': order.updated_at,
        })
