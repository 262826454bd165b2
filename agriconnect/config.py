import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or (
        'dev-secret-key-change-in-production'
    )
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or (
        'sqlite:///agriconnect.db'
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Pagination configuration
    ITEMS_PER_PAGE = 20

    # Roles allowed to run the completion transaction.
    # The farmer completes orders from the received-orders view.
    ORDER_COMPLETION_ROLES = tuple(
        r.strip().upper()
        for r in os.environ.get('ORDER_COMPLETION_ROLES', 'FARMER').split(',')
        if r.strip()
    )
    ORDER_TRANSACTION_MAX_ATTEMPTS = int(
        os.environ.get('ORDER_TRANSACTION_MAX_ATTEMPTS', '5')
    )
    ORDER_TRANSACTION_TIMEOUT_SECONDS = float(
        os.environ.get('ORDER_TRANSACTION_TIMEOUT_SECONDS', '10')
    )

    # Notification bell shows the latest few entries.
    NOTIFICATION_FEED_LIMIT = 3

    # Gemini config.
    # Without a key the assistant answers with canned messages.
    GEMINI_API_KEY = os.environ.get('GEMINI_API_KEY', '')
    GEMINI_MODEL = os.environ.get('GEMINI_MODEL', 'gemini-2.5-flash')

    OPENWEATHER_API_KEY = os.environ.get('OPENWEATHER_API_KEY', '')
    PLANT_ID_API_KEY = os.environ.get('PLANT_ID_API_KEY', '')

    # Unsigned uploads only need the cloud name and preset.
    CLOUDINARY_CLOUD_NAME = os.environ.get('CLOUDINARY_CLOUD_NAME', '')
    CLOUDINARY_UPLOAD_PRESET = os.environ.get(
        'CLOUDINARY_UPLOAD_PRESET', 'agriconnect_unsigned'
    )

    HTTP_TIMEOUT_SECONDS = float(os.environ.get('HTTP_TIMEOUT_SECONDS', '15'))
    STREAM_HEARTBEAT_SECONDS = 15

    LOG_FILE = os.environ.get('LOG_FILE', 'app.log')


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    GEMINI_API_KEY = ''
    OPENWEATHER_API_KEY = 'test-weather-key'
    PLANT_ID_API_KEY = 'test-plant-key'
    CLOUDINARY_CLOUD_NAME = 'test-cloud'
    LOG_FILE = None
