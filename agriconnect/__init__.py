from flask import Flask, jsonify
from flask_migrate import Migrate
from flask_login import LoginManager
from agriconnect.extensions import db
from agriconnect.config import Config
from agriconnect.errors import register_error_handlers
from agriconnect.middleware import setup_auth_middleware
import logging

logger = logging.getLogger(__name__)

migrate = Migrate()
login_manager = LoginManager()


def configure_logging(log_file):
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    configure_logging(app.config.get('LOG_FILE'))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    # Setup user loader
    from agriconnect.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Not logged in', 'login_required': True}), 401

    # Live queries hook session events once imported
    from agriconnect.services.realtime import SubscriptionHub
    SubscriptionHub(app)

    from agriconnect.services.audit_service import setup_major_events_log
    if app.config.get('LOG_FILE'):
        setup_major_events_log('major_events.log')

    # Register blueprints
    from agriconnect.blueprints import (
        assistant,
        auth,
        chat,
        crops,
        notifications,
        orders,
        stream,
    )

    app.register_blueprint(auth.bp)
    app.register_blueprint(crops.bp)
    app.register_blueprint(orders.bp)
    app.register_blueprint(chat.bp)
    app.register_blueprint(notifications.bp)
    app.register_blueprint(assistant.bp)
    app.register_blueprint(stream.bp)

    register_error_handlers(app)

    # Setup authentication middleware (API-wide login protection)
    setup_auth_middleware(app)

    # Note: Database tables are managed via Flask-Migrate
    # Use 'flask db upgrade' to create/update tables

    logger.info("Flask application initialized")
    return app
