from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from agriconnect.errors import ValidationError
from agriconnect.middleware import role_required
from agriconnect.services.ai_service import (
    get_ai_response,
    get_plant_disease_info,
    get_weather_tip,
)
from agriconnect.services.plant_health_service import check_crop_health
from agriconnect.services.weather_service import get_weather
from agriconnect.utils import request_data
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('assistant', __name__)

MAX_PROMPT_LENGTH = 2000


def _language(data=None):
    language = (data or {}).get('language') or request.args.get('language')
    return language or current_user.preferred_language.value


@bp.route('/api/assistant/chat', methods=['POST'])
@login_required
def chatbot():
    data = request_data()
    prompt = (data.get('prompt') or '').strip()
    if not prompt:
        raise ValidationError('Prompt cannot be empty')
    if len(prompt) > MAX_PROMPT_LENGTH:
        raise ValidationError('Prompt is too long')

    reply = get_ai_response(prompt, _language(data))
    return jsonify({'reply': reply})


@bp.route('/api/assistant/weather', methods=['GET'])
@login_required
def weather():
    location = request.args.get('location') or current_user.location
    report = get_weather(location)
    tip = get_weather_tip(report, _language())
    return jsonify({'weather': report, 'tip': tip})


@bp.route('/api/assistant/crop-health', methods=['POST'])
@login_required
@role_required('FARMER')
def crop_health():
    file = request.files.get('image')
    if not file or not file.filename:
        raise ValidationError('Please select an image to upload')
    image_bytes = file.read()
    language = _language(request.form)

    assessment = check_crop_health(image_bytes)
    top = assessment['suggestions'][0] if assessment['suggestions'] else None
    info = None
    if not assessment['is_healthy'] and top:
        info = get_plant_disease_info(
            image_bytes, file.mimetype, top['name'], language)

    logger.info(
        "Crop health check by farmer %s healthy=%s top=%s",
        current_user.id,
        assessment['is_healthy'],
        top['name'] if top else None,
    )
    return jsonify({'assessment': assessment, 'disease_info': info})
