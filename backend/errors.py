import logging

from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base error carrying the HTTP status it is rendered with."""
    status_code = 500
    message = 'Internal server error'

    def __init__(self, message=None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class ValidationError(ApiError):
    status_code = 400
    message = 'Invalid input'


class InvalidTransitionError(ValidationError):
    message = 'Invalid status transition'


class AuthenticationError(ApiError):
    status_code = 401
    message = 'Invalid credentials'


class AuthorizationError(ApiError):
    status_code = 403
    message = 'Insufficient permissions'


class NotFoundError(ApiError):
    status_code = 404
    message = 'Not found'


class ConflictError(ApiError):
    status_code = 400
    message = 'Already exists'


class InternalError(ApiError):
    pass


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        if error.status_code >= 500:
            logger.error(f"{type(error).__name__}: {error.message}")
        return jsonify({'message': error.message}), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'message': error.description}), error.code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error):
        logger.exception("Datastore failure")
        return jsonify({'message': InternalError.message}), 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.exception("Unhandled error")
        return jsonify({'message': InternalError.message}), 500
