from flask import Blueprint, current_app, jsonify
from flask_login import login_required, current_user
from agriconnect.middleware import role_required
from agriconnect.services.audit_service import log_audit
from agriconnect.services.order_service import OrderService
from agriconnect.utils import get_store, json_ready, request_data
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('orders', __name__)


def _service():
    return OrderService.from_config(get_store(), current_app.config)


@bp.route('/api/orders', methods=['GET'])
@login_required
def list_orders():
    orders = _service().list_orders_for_user(current_user)
    return jsonify({'orders': json_ready(orders)})


@bp.route('/api/orders', methods=['POST'])
@login_required
@role_required('BUYER')
def place_order():
    data = request_data()
    service = _service()
    order = service.place_order(
        current_user,
        data.get('crop_id'),
        data.get('quantity'),
        farmer_id=data.get('farmer_id'),
    )

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.name,
        action='ORDER_CREATE',
        target_type='ORDER',
        target_id=order.id,
        payload={
            'crop_id': order.crop_id,
            'quantity': order.quantity,
            'total_price': float(order.total_price),
        }
    )
    return jsonify({'order': json_ready(service.augment(order))}), 201


@bp.route('/api/orders/<int:order_id>', methods=['GET'])
@login_required
def order_detail(order_id):
    service = _service()
    order = service.get_order(current_user, order_id)
    return jsonify({'order': json_ready(service.augment(order))})


def _change_status(order_id, action, apply):
    service = _service()
    order = apply(service)(current_user, order_id)

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.name,
        action=action,
        target_type='ORDER',
        target_id=order.id,
        payload={'status': order.status.value}
    )
    return jsonify({'ok': True, 'order': json_ready(service.augment(order))})


@bp.route('/api/orders/<int:order_id>/accept', methods=['POST'])
@login_required
@role_required('FARMER')
def accept_order(order_id):
    return _change_status(
        order_id, 'ORDER_ACCEPT', lambda s: s.accept_order)


@bp.route('/api/orders/<int:order_id>/reject', methods=['POST'])
@login_required
@role_required('FARMER')
def reject_order(order_id):
    return _change_status(
        order_id, 'ORDER_REJECT', lambda s: s.reject_order)


@bp.route('/api/orders/<int:order_id>/complete', methods=['POST'])
@login_required
def complete_order(order_id):
    # Allowed roles come from ORDER_COMPLETION_ROLES, checked by the service.
    return _change_status(
        order_id, 'ORDER_COMPLETE', lambda s: s.complete_order)
