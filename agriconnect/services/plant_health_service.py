from flask import current_app
from agriconnect.errors import ExternalServiceError, ValidationError
import base64
import logging
import requests

logger = logging.getLogger(__name__)

API_URL = 'https://plant.id/api/v3/health_assessment'


def _error_message(response):
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        return body.get('message') or body.get('error') or response.text
    return response.text


def _suggestion(raw):
    details = raw.get('details') or {}
    if raw.get('details'):
        description = (
            details.get('description') or 'No description available.')
    else:
        description = 'No details available.'
    return {
        'id': raw.get('id'),
        'name': raw.get('name'),
        'probability': raw.get('probability') or 0,
        'description': description,
        'treatment': details.get('treatment'),
    }


def check_crop_health(image_bytes, api_key=None, timeout=None):
    """Run a plant.id health assessment on a single photo.

    Returns ``is_plant``, ``is_healthy`` and the disease ``suggestions``
    ordered from most to least probable.
    """
    if not image_bytes:
        raise ValidationError('An image is required')
    config = current_app.config
    api_key = api_key or config.get('PLANT_ID_API_KEY')
    timeout = timeout or config.get('HTTP_TIMEOUT_SECONDS', 15)
    if not api_key:
        raise ExternalServiceError('Crop health service is not configured')

    try:
        response = requests.post(
            API_URL,
            headers={'Content-Type': 'application/json', 'Api-Key': api_key},
            json={'images': [base64.b64encode(image_bytes).decode('ascii')]},
            timeout=timeout,
        )
    except requests.RequestException as exc:
        logger.error("Plant.id request failed: %s", exc)
        raise ExternalServiceError('Crop health service is unreachable')

    if not response.ok:
        message = _error_message(response)
        logger.error("Plant.id API error: %s", message)
        raise ExternalServiceError(message or 'Crop health check failed')

    try:
        result = response.json().get('result')
    except ValueError:
        raise ExternalServiceError('Crop health check failed')

    if not result or not (result.get('is_plant') or {}).get('binary'):
        raise ExternalServiceError(
            'The uploaded image could not be identified as a plant.')
    if not result.get('is_healthy') or not result.get('disease'):
        logger.error("Plant.id response missing health objects: %s", result)
        raise ExternalServiceError(
            'The API did not return a valid health assessment. '
            'The image might be unclear.')

    suggestions = [
        _suggestion(s) for s in result['disease'].get('suggestions') or []
    ]
    suggestions.sort(key=lambda s: s['probability'], reverse=True)
    return {
        'is_plant': True,
        'is_healthy': bool(result['is_healthy'].get('binary')),
        'suggestions': suggestions,
    }
