from decimal import Decimal, InvalidOperation
from agriconnect.errors import (
    PermissionDenied,
    ReferentialIntegrityError,
    ValidationError,
)
from agriconnect.models import Crop, CropCategory, CropStatus, Order, UserRole
from agriconnect.services.order_service import parse_quantity
from agriconnect.services.store import to_document
import logging

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    'crop_name',
    'category',
    'quantity',
    'price',
    'description',
    'image_url',
    'location',
)


def status_for_quantity(quantity):
    # sold iff nothing left
    return CropStatus.SOLD if quantity == 0 else CropStatus.AVAILABLE


def _parse_category(value):
    try:
        return CropCategory((value or '').strip().lower())
    except ValueError:
        allowed = ', '.join(c.value for c in CropCategory)
        raise ValidationError(f'Category must be one of: {allowed}')


def _parse_price(value):
    if isinstance(value, bool):
        raise ValidationError('Price must be greater than 0')
    try:
        price = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError('Price must be greater than 0')
    if not price.is_finite() or price <= 0:
        raise ValidationError('Price must be greater than 0')
    return price


def _clean(data, partial):
    fields = {}
    if 'crop_name' in data or not partial:
        name = (data.get('crop_name') or '').strip()
        if not name:
            raise ValidationError('Crop name cannot be empty')
        fields['crop_name'] = name
    if 'category' in data or not partial:
        fields['category'] = _parse_category(data.get('category'))
    if 'price' in data or not partial:
        fields['price'] = _parse_price(data.get('price'))
    if 'quantity' in data or not partial:
        fields['quantity'] = parse_quantity(
            data.get('quantity'), allow_zero=True)
    if 'image_url' in data or not partial:
        image_url = (data.get('image_url') or '').strip()
        if not image_url:
            raise ValidationError('An image is required')
        fields['image_url'] = image_url
    if 'description' in data:
        fields['description'] = (data.get('description') or '').strip()
    if 'location' in data:
        fields['location'] = (data.get('location') or '').strip() or None
    return fields


def _require_owner(actor, crop):
    if crop.farmer_id != actor.id:
        logger.warning(
            "User %s attempted to modify crop %s", actor.id, crop.id)
        raise PermissionDenied('No permission to modify this crop')


def list_available_crops(store, category=None, limit=None):
    where = {'status': CropStatus.AVAILABLE}
    if category:
        where['category'] = _parse_category(category)
    return store.find(
        Crop,
        where=where,
        order_by='created_at',
        descending=True,
        limit=limit,
    )


def list_farmer_crops(store, farmer_id):
    return store.find(
        Crop,
        where={'farmer_id': farmer_id},
        order_by='created_at',
        descending=True,
    )


def get_crop(store, crop_id):
    crop = store.get(Crop, crop_id)
    if crop is None:
        raise ReferentialIntegrityError('Crop not found')
    return crop


def add_crop(store, actor, data):
    if actor.role != UserRole.FARMER:
        raise PermissionDenied('Only farmers can list crops')
    fields = _clean(data, partial=False)
    if not fields.get('location'):
        fields['location'] = actor.location or 'Unknown'
    crop = store.insert(
        Crop,
        farmer_id=actor.id,
        farmer_name=actor.name,
        status=status_for_quantity(fields['quantity']),
        **fields
    )
    store.commit()
    logger.info("Crop %s listed by farmer %s", crop.id, actor.id)
    return crop


def update_crop(store, actor, crop_id, data):
    fields = _clean(
        {k: v for k, v in data.items() if k in EDITABLE_FIELDS},
        partial=True,
    )
    if 'quantity' in fields:
        fields['status'] = status_for_quantity(fields['quantity'])

    def body(tx):
        crop = tx.get(Crop, crop_id)
        if crop is None:
            raise ReferentialIntegrityError('Crop not found')
        _require_owner(actor, crop)
        return tx.update(crop, **fields)

    crop = store.run_transaction(body)
    logger.info(
        "Crop %s updated by farmer %s fields=%s",
        crop.id,
        actor.id,
        sorted(fields),
    )
    return crop


def delete_crop(store, actor, crop_id):

    def body(tx):
        crop = tx.get(Crop, crop_id)
        if crop is None:
            raise ReferentialIntegrityError('Crop not found')
        _require_owner(actor, crop)
        # Orders keep their snapshot and lose the reference.
        for order in store.find(Order, where={'crop_id': crop.id}):
            tx.update(order, crop_id=None)
        tx.delete(crop)

    store.run_transaction(body)
    logger.info("Crop %s deleted by farmer %s", crop_id, actor.id)


def crop_payload(crop):
    return to_document(crop, exclude=('version_id',))
