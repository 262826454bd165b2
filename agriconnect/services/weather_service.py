from datetime import datetime, timezone
from flask import current_app
from agriconnect.errors import ExternalServiceError, ValidationError
import logging
import requests

logger = logging.getLogger(__name__)

BASE_URL = 'https://api.openweathermap.org/data/2.5'
GEO_URL = 'https://api.openweathermap.org/geo/1.0/direct'
FORECAST_DAYS = 5


def weather_icon(icon_code):
    code = icon_code or ''
    first = code[:1]
    if first == '0':
        return '☀️'
    if first == '1':
        return '🌙' if code.endswith('n') else '☀️'
    if first == '2':
        return '⛈️'
    if first == '3':
        return '🌦️'
    if first == '5':
        return '🌧️'
    if first == '6':
        return '❄️'
    if first == '7':
        return '🌫️'
    if first == '8':
        return '☀️' if code == '800' else '☁️'
    return '🤷'


def _get_json(url, params, timeout):
    try:
        response = requests.get(url, params=params, timeout=timeout)
        response.raise_for_status()
        return response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.error("Weather request to %s failed: %s", url, exc)
        raise ExternalServiceError('Failed to fetch weather data')


def daily_forecast(entries, days=FORECAST_DAYS):
    """One midday reading per day, at most ``days`` of them."""
    midday = [e for e in entries if '12:00:00' in e.get('dt_txt', '')]
    forecast = []
    for entry in midday[:days]:
        moment = datetime.fromtimestamp(entry['dt'], tz=timezone.utc)
        forecast.append({
            'day': moment.strftime('%a'),
            'temp': round(entry['main']['temp']),
            'icon': weather_icon(entry['weather'][0]['icon']),
        })
    return forecast


def get_weather(location, api_key=None, timeout=None):
    location = (location or '').strip()
    if not location:
        raise ValidationError('Location is required')
    config = current_app.config
    api_key = api_key or config.get('OPENWEATHER_API_KEY')
    timeout = timeout or config.get('HTTP_TIMEOUT_SECONDS', 15)
    if not api_key:
        raise ExternalServiceError('Weather service is not configured')

    places = _get_json(
        GEO_URL,
        {'q': location, 'limit': 1, 'appid': api_key},
        timeout,
    )
    if not places:
        raise ExternalServiceError('Location not found')
    coords = {
        'lat': places[0]['lat'],
        'lon': places[0]['lon'],
        'appid': api_key,
        'units': 'metric',
    }

    current = _get_json(f'{BASE_URL}/weather', coords, timeout)
    forecast = _get_json(f'{BASE_URL}/forecast', coords, timeout)

    try:
        report = {
            'temp': round(current['main']['temp']),
            'humidity': current['main']['humidity'],
            'description': current['weather'][0]['description'],
            'icon': weather_icon(current['weather'][0]['icon']),
            'forecast': daily_forecast(forecast.get('list', [])),
        }
    except (KeyError, IndexError, TypeError) as exc:
        logger.error("Unexpected weather payload for %s: %s", location, exc)
        raise ExternalServiceError('Failed to fetch weather data')
    logger.info("Weather fetched for %s", location)
    return report
