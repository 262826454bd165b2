from flask import current_app
from agriconnect.errors import ExternalServiceError, ValidationError
import logging
import requests

logger = logging.getLogger(__name__)

UPLOAD_URL = 'https://api.cloudinary.com/v1_1/{cloud}/image/upload'
ALLOWED_MIMETYPES = ('image/jpeg', 'image/png', 'image/webp', 'image/gif')


def upload_image(file_bytes, filename, mimetype):
    """Send an image to Cloudinary with the unsigned preset.

    Returns the hosted ``secure_url``.
    """
    if not file_bytes:
        raise ValidationError('An image is required')
    if mimetype not in ALLOWED_MIMETYPES:
        raise ValidationError('Only JPEG, PNG, WEBP or GIF images allowed')

    config = current_app.config
    cloud = config.get('CLOUDINARY_CLOUD_NAME')
    if not cloud:
        raise ExternalServiceError('Image hosting is not configured')

    try:
        response = requests.post(
            UPLOAD_URL.format(cloud=cloud),
            data={'upload_preset': config.get('CLOUDINARY_UPLOAD_PRESET')},
            files={'file': (filename or 'upload', file_bytes, mimetype)},
            timeout=config.get('HTTP_TIMEOUT_SECONDS', 15),
        )
        response.raise_for_status()
        url = response.json().get('secure_url')
    except (requests.RequestException, ValueError) as exc:
        logger.error("Cloudinary upload failed: %s", exc)
        raise ExternalServiceError('Image upload failed')

    if not url:
        raise ExternalServiceError('Image URL not returned from Cloudinary')
    logger.info("Image %s uploaded", filename)
    return url
