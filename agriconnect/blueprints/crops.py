from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from agriconnect.errors import ValidationError
from agriconnect.middleware import role_required
from agriconnect.services.audit_service import log_audit
from agriconnect.services.crop_service import (
    add_crop,
    crop_payload,
    delete_crop,
    get_crop,
    list_available_crops,
    list_farmer_crops,
    update_crop,
)
from agriconnect.services.image_upload_service import upload_image
from agriconnect.utils import get_limit, get_store, json_ready, request_data
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('crops', __name__)


@bp.route('/api/crops', methods=['GET'])
def marketplace():
    crops = list_available_crops(
        get_store(),
        category=request.args.get('category') or None,
        limit=get_limit(),
    )
    return jsonify({'crops': json_ready([crop_payload(c) for c in crops])})


@bp.route('/api/crops/<int:crop_id>', methods=['GET'])
def crop_detail(crop_id):
    crop = get_crop(get_store(), crop_id)
    return jsonify({'crop': json_ready(crop_payload(crop))})


@bp.route('/api/crops/mine', methods=['GET'])
@login_required
@role_required('FARMER')
def my_listings():
    crops = list_farmer_crops(get_store(), current_user.id)
    return jsonify({'crops': json_ready([crop_payload(c) for c in crops])})


@bp.route('/api/crops', methods=['POST'])
@login_required
@role_required('FARMER')
def create_crop():
    crop = add_crop(get_store(), current_user, request_data())

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.name,
        action='CROP_CREATE',
        target_type='CROP',
        target_id=crop.id,
        payload={'crop_name': crop.crop_name, 'quantity': crop.quantity}
    )
    return jsonify({'crop': json_ready(crop_payload(crop))}), 201


@bp.route('/api/crops/<int:crop_id>', methods=['PUT', 'PATCH'])
@login_required
@role_required('FARMER')
def edit_crop(crop_id):
    data = request_data()
    crop = update_crop(get_store(), current_user, crop_id, data)

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.name,
        action='CROP_UPDATE',
        target_type='CROP',
        target_id=crop.id,
        payload={'fields': sorted(data.keys())}
    )
    return jsonify({'crop': json_ready(crop_payload(crop))})


@bp.route('/api/crops/<int:crop_id>', methods=['DELETE'])
@login_required
@role_required('FARMER')
def remove_crop(crop_id):
    delete_crop(get_store(), current_user, crop_id)

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.name,
        action='CROP_DELETE',
        target_type='CROP',
        target_id=crop_id,
    )
    return jsonify({'ok': True})


@bp.route('/api/crops/images', methods=['POST'])
@login_required
@role_required('FARMER')
def upload_crop_image():
    file = request.files.get('image')
    if not file or not file.filename:
        raise ValidationError('Please select an image to upload')

    url = upload_image(file.read(), file.filename, file.mimetype)
    return jsonify({'image_url': url}), 201
