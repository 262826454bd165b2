"""Farming assistant backed by the Gemini ``generateContent`` REST API.

Without an API key, or when a call fails, every helper answers with a short
canned reply in the requested language instead of raising.
"""
from flask import current_app
import base64
import json
import logging
import requests

logger = logging.getLogger(__name__)

API_URL = (
    'https://generativelanguage.googleapis.com/v1beta/models/'
    '{model}:generateContent'
)

LANGUAGE_NAMES = {'en': 'English', 'ur': 'Urdu'}

FALLBACKS = {
    'chat_unavailable': {
        'en': 'I am currently unavailable. Please try again later.',
        'ur': 'معذرت، میں اس وقت دستیاب نہیں ہوں۔ '
              'براہ کرم بعد میں دوبارہ کوشش کریں۔',
    },
    'chat_error': {
        'en': 'An error occurred. Please check your API key and try again.',
        'ur': 'ایک خرابی پیش آگئی۔ '
              'براہ کرم اپنی API کلید چیک کریں اور دوبارہ کوشش کریں۔',
    },
    'tip_unavailable': {
        'en': 'Weather tip is unavailable right now.',
        'ur': 'موسم کی تجویز اس وقت دستیاب نہیں ہے۔',
    },
    'tip_error': {
        'en': 'An error occurred while getting the tip.',
        'ur': 'مشورہ حاصل کرنے میں ایک خرابی پیش آگئی۔',
    },
}

DISEASE_FALLBACKS = {
    'unavailable': {
        'en': {
            'description': (
                'This is a mock description. More details about the '
                'disease would appear here.'),
            'solution': (
                'This is a mock solution. Suggestions for treatment and '
                'prevention would be provided here.'),
        },
        'ur': {
            'description': (
                'یہ ایک فرضی تفصیل ہے۔ '
                'بیماری کے بارے میں مزید تفصیلات یہاں ظاہر ہوں گی۔'),
            'solution': (
                'یہ ایک فرضی حل ہے۔ '
                'علاج اور روک تھام کے لیے تجاویز یہاں فراہم کی جائیں گی۔'),
        },
    },
    'error': {
        'en': {
            'description': (
                'An error occurred while fetching detailed information.'),
            'solution': 'Please try again later.',
        },
        'ur': {
            'description': 'تفصیلی معلومات حاصل کرنے میں ایک خرابی پیش آگئی۔',
            'solution': 'براہ کرم بعد میں دوبارہ کوشش کریں۔',
        },
    },
}

DISEASE_SCHEMA = {
    'type': 'OBJECT',
    'properties': {
        'description': {
            'type': 'STRING',
            'description': 'Detailed description of the plant disease.',
        },
        'solution': {
            'type': 'STRING',
            'description': (
                'Comprehensive solutions for treating and preventing the '
                'disease, formatted clearly for a farmer.'),
        },
    },
    'required': ['description', 'solution'],
}


class AssistantUnavailable(Exception):
    pass


def _language(language):
    return language if language in LANGUAGE_NAMES else 'en'


def _fallback(key, language):
    return FALLBACKS[key][_language(language)]


def generate(parts, system_instruction, generation_config=None):
    """Send one ``generateContent`` request and return the reply text."""
    config = current_app.config
    api_key = config.get('GEMINI_API_KEY')
    if not api_key:
        raise AssistantUnavailable('Gemini API key not configured')

    payload = {
        'contents': [{'parts': parts}],
        'systemInstruction': {'parts': [{'text': system_instruction}]},
    }
    if generation_config:
        payload['generationConfig'] = generation_config

    response = requests.post(
        API_URL.format(model=config.get('GEMINI_MODEL', 'gemini-2.5-flash')),
        params={'key': api_key},
        headers={'Content-Type': 'application/json'},
        json=payload,
        timeout=config.get('HTTP_TIMEOUT_SECONDS', 15),
    )
    response.raise_for_status()
    data = response.json()
    return (
        data.get('candidates', [{}])[0]
        .get('content', {})
        .get('parts', [{}])[0]
        .get('text', '')
    )


def get_ai_response(prompt, language='en'):
    language = _language(language)
    system_instruction = (
        'You are an agriculture assistant for Pakistani farmers and buyers. '
        f'Respond in {LANGUAGE_NAMES[language]}. Provide simple, relevant, '
        'and accurate information. Keep your answers concise and to the '
        'point, typically 2-4 sentences, unless the user asks for more '
        'detail. Your tone should be helpful and encouraging. Use simple '
        'language.'
    )
    try:
        return generate([{'text': prompt}], system_instruction)
    except AssistantUnavailable:
        logger.warning("Gemini API key not found, using canned reply")
        return _fallback('chat_unavailable', language)
    except (requests.RequestException, ValueError, LookupError) as exc:
        logger.error("Error fetching from Gemini API: %s", exc)
        return _fallback('chat_error', language)


def get_weather_tip(weather, language='en'):
    language = _language(language)
    forecast = ', '.join(
        f"{day['day']}: {day['temp']}°C"
        for day in weather.get('forecast', [])
    )
    prompt = (
        'Based on the following weather conditions for a farmer in '
        f"Pakistan ({weather.get('description')}, temperature: "
        f"{weather.get('temp')}°C, humidity: {weather.get('humidity')}%), "
        'provide a short, actionable tip (2-3 sentences) to help them save '
        'resources like water/fertilizer or protect their crops. The '
        f'forecast for the next few days is: {forecast}.'
    )
    system_instruction = (
        'You are an agriculture expert providing concise, practical advice. '
        f'Respond in {LANGUAGE_NAMES[language]}.'
    )
    try:
        return generate([{'text': prompt}], system_instruction)
    except AssistantUnavailable:
        return _fallback('tip_unavailable', language)
    except (requests.RequestException, ValueError, LookupError) as exc:
        logger.error("Error fetching weather tip from Gemini API: %s", exc)
        return _fallback('tip_error', language)


def _disease_prompt(disease_name, language):
    if language == 'ur':
        return (
            f'منسلکہ تصویر اور "{disease_name}" کی ابتدائی تشخیص کی بنیاد پر، '
            'فراہم کریں:\n'
            '1. تصویر اور آپ کے ماہرانہ علم کی بنیاد پر بیماری کی تفصیلی '
            'وضاحت۔\n'
            '2. حل کا ایک جامع مجموعہ (حیاتیاتی، کیمیائی، احتیاطی) جو کسان '
            'کے لیے سمجھنے میں آسان ہو۔'
        )
    return (
        'Based on the attached image and the initial diagnosis of '
        f'"{disease_name}", provide:\n'
        '1. A detailed description of the disease, based on the image and '
        'your expert knowledge.\n'
        '2. A comprehensive set of solutions (biological, chemical, '
        'preventative) that are easy for a farmer to understand.'
    )


def get_plant_disease_info(image_bytes, mime_type, disease_name,
                           language='en'):
    language = _language(language)
    system_instruction = (
        'You are an expert plant pathologist. Your response must be in '
        f'{LANGUAGE_NAMES[language]}. Provide the output in a JSON object '
        'with two keys: "description" and "solution".'
    )
    parts = [
        {
            'inlineData': {
                'data': base64.b64encode(image_bytes).decode('ascii'),
                'mimeType': mime_type,
            },
        },
        {'text': _disease_prompt(disease_name, language)},
    ]
    generation_config = {
        'responseMimeType': 'application/json',
        'responseSchema': DISEASE_SCHEMA,
    }
    try:
        text = generate(parts, system_instruction, generation_config)
        info = json.loads(text.strip())
        return {
            'description': info['description'],
            'solution': info['solution'],
        }
    except AssistantUnavailable:
        return dict(DISEASE_FALLBACKS['unavailable'][language])
    except (requests.RequestException, ValueError, LookupError,
            TypeError) as exc:
        logger.error(
            "Error fetching plant disease info from Gemini API: %s", exc)
        return dict(DISEASE_FALLBACKS['error'][language])
