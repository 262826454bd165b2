from flask import jsonify
import logging

logger = logging.getLogger(__name__)


class MarketplaceError(Exception):
    """Base class for errors surfaced to the initiating user action."""

    status_code = 400
    code = 'error'

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class ValidationError(MarketplaceError):
    """Invalid input."""

    status_code = 400
    code = 'validation_error'


class PermissionDenied(MarketplaceError):
    """No permission to perform this action."""

    status_code = 403
    code = 'permission_denied'


class ReferentialIntegrityError(MarketplaceError):
    """Referenced record does not exist."""

    status_code = 404
    code = 'not_found'


class PreconditionFailed(MarketplaceError):
    """Current state does not allow this operation."""

    status_code = 409
    code = 'precondition_failed'


class InsufficientStock(MarketplaceError):
    """Not enough stock."""

    status_code = 409
    code = 'insufficient_stock'


class TransientConflict(MarketplaceError):
    """The record was modified concurrently. Please try again."""

    status_code = 503
    code = 'transient_conflict'


class TransactionTimeout(TransientConflict):
    """The operation timed out. Please try again."""

    code = 'transaction_timeout'


class ExternalServiceError(MarketplaceError):
    """External service is unavailable."""

    status_code = 502
    code = 'external_service_error'


def register_error_handlers(app):

    @app.errorhandler(MarketplaceError)
    def handle_marketplace_error(exc):
        if exc.status_code >= 500:
            logger.warning(
                "%s: %s", exc.__class__.__name__, exc.message)
        return jsonify(exc.to_dict()), exc.status_code
